"""AI assistant runtime: assistants, threads, and tool-calling against registered AI functions."""

from __future__ import annotations

import inspect
import json
import logging
import uuid
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Protocol, Tuple

import httpx
from pydantic import ValidationError as PydanticValidationError

from .errors import AssistantError, ValidationError
from .settings import Settings

if TYPE_CHECKING:
    from .context import ServiceContext

logger = logging.getLogger(__name__)

Message = Dict[str, Any]


@dataclass(frozen=True)
class ToolCall:
    id: str
    name: str
    arguments: str  # raw JSON text as produced by the model


@dataclass(frozen=True)
class Completion:
    text: str = ""
    tool_calls: Tuple[ToolCall, ...] = ()


@dataclass(frozen=True)
class FunctionResult:
    name: str
    arguments: Dict[str, Any]
    result: Any = None
    error: Optional[str] = None


@dataclass
class AssistantReply:
    text: str
    function_results: List[FunctionResult] = field(default_factory=list)


class LLMProvider(Protocol):
    name: str

    async def complete(self, messages: List[Message], tools: List[Dict[str, Any]]) -> Completion:
        """Return the model's next message: text and/or tool calls."""


class MockProvider:
    """
    Offline provider. On the first round it asks for three todos (plan, do,
    review) for the task in the last user message; once tool results are in
    the conversation it answers with a short summary.
    """

    name = "mock"
    prompt_prefix = "Create some todos for the following task:"

    async def complete(self, messages: List[Message], tools: List[Dict[str, Any]]) -> Completion:
        if not tools or any(m.get("role") == "tool" for m in messages):
            return Completion(text="The todos have been created.")
        prompt = next((m.get("content") or "" for m in reversed(messages) if m.get("role") == "user"), "")
        task = prompt.split(self.prompt_prefix, 1)[-1].strip() or "the task"
        function_name = tools[0]["function"]["name"]
        steps = [
            ("Plan", f"Work out what is needed for: {task}"),
            ("Do", f"Carry out the main work for: {task}"),
            ("Review", f"Check that everything for '{task}' is finished"),
        ]
        calls = tuple(
            ToolCall(
                id=f"call_{i}",
                name=function_name,
                arguments=json.dumps({"title": f"{label}: {task}", "content": content}),
            )
            for i, (label, content) in enumerate(steps)
        )
        return Completion(tool_calls=calls)


class OpenAIProvider:
    """Chat-completions provider for OpenAI-compatible endpoints."""

    name = "openai"

    def __init__(
        self,
        api_key: str,
        model: str,
        base_url: str = "https://api.openai.com/v1",
        timeout_seconds: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self._transport = transport

    async def complete(self, messages: List[Message], tools: List[Dict[str, Any]]) -> Completion:
        payload: Dict[str, Any] = {"model": self.model, "messages": messages}
        if tools:
            payload["tools"] = tools
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        timeout = httpx.Timeout(self.timeout_seconds)
        async with httpx.AsyncClient(timeout=timeout, transport=self._transport) as client:
            try:
                response = await client.post(f"{self.base_url}/chat/completions", headers=headers, json=payload)
                response.raise_for_status()
            except httpx.HTTPStatusError as exc:
                raise AssistantError(
                    f"OpenAI API error ({exc.response.status_code}): {exc.response.text}"
                ) from exc
            except (httpx.TimeoutException, httpx.TransportError) as exc:
                raise AssistantError(f"OpenAI request failed: {exc}") from exc

        try:
            message = response.json()["choices"][0]["message"]
        except (ValueError, KeyError, IndexError) as exc:
            raise AssistantError("OpenAI response did not contain a message") from exc
        try:
            calls = tuple(
                ToolCall(id=c["id"], name=c["function"]["name"], arguments=c["function"].get("arguments") or "{}")
                for c in message.get("tool_calls") or []
            )
            text = message.get("content") or ""
        except (AttributeError, KeyError, TypeError) as exc:
            raise AssistantError("OpenAI response contained a malformed tool call") from exc
        return Completion(text=text, tool_calls=calls)


def build_provider(settings: Settings) -> LLMProvider:
    if settings.ai_provider == "openai":
        if not settings.ai_api_key:
            raise AssistantError("AI_API_KEY is required for the openai provider")
        return OpenAIProvider(
            settings.ai_api_key,
            settings.ai_model,
            base_url=settings.ai_base_url,
            timeout_seconds=settings.ai_timeout_seconds,
        )
    return MockProvider()


@dataclass
class _Assistant:
    id: str
    name: str
    instructions: str
    function_names: Tuple[str, ...]


@dataclass
class _Thread:
    id: str
    assistant_id: str
    messages: List[Message] = field(default_factory=list)


# PUBLIC_INTERFACE
class AssistantRuntime:
    """
    Keeps assistants and conversation threads in memory and drives the
    provider through tool-calling rounds. Tool calls run the registry's AI
    functions with the caller's ServiceContext.
    """

    def __init__(self, provider: LLMProvider, max_rounds: int = 4) -> None:
        self.provider = provider
        self.max_rounds = max(1, max_rounds)
        self._assistants: Dict[str, _Assistant] = {}
        self._threads: Dict[str, _Thread] = {}

    @property
    def assistant_count(self) -> int:
        return len(self._assistants)

    @property
    def thread_count(self) -> int:
        return len(self._threads)

    async def create_assistant(self, name: str, instructions: str, function_names: List[str]) -> str:
        assistant_id = uuid.uuid4().hex
        self._assistants[assistant_id] = _Assistant(assistant_id, name, instructions, tuple(function_names))
        return assistant_id

    async def create_thread(self, assistant_id: str) -> str:
        self._get_assistant(assistant_id)
        thread_id = uuid.uuid4().hex
        self._threads[thread_id] = _Thread(thread_id, assistant_id)
        return thread_id

    async def delete_thread(self, thread_id: str) -> None:
        self._threads.pop(thread_id, None)

    async def delete_assistant(self, assistant_id: str) -> None:
        self._assistants.pop(assistant_id, None)
        for thread_id in [t.id for t in self._threads.values() if t.assistant_id == assistant_id]:
            del self._threads[thread_id]

    def _get_assistant(self, assistant_id: str) -> _Assistant:
        try:
            return self._assistants[assistant_id]
        except KeyError:
            raise ValidationError(f"Unknown assistant '{assistant_id}'") from None

    def _get_thread(self, thread_id: str, assistant_id: str) -> _Thread:
        thread = self._threads.get(thread_id)
        if thread is None or thread.assistant_id != assistant_id:
            raise ValidationError(f"Unknown thread '{thread_id}' for assistant '{assistant_id}'")
        return thread

    def _tools(self, context: ServiceContext, assistant: _Assistant) -> List[Dict[str, Any]]:
        tools = []
        for name in assistant.function_names:
            try:
                binding = context.registry.ai_function(name)
            except KeyError:
                raise AssistantError(f"Assistant '{assistant.name}' uses unknown AI function '{name}'") from None
            tools.append(
                {
                    "type": "function",
                    "function": {
                        "name": binding.name,
                        "description": binding.description,
                        "parameters": binding.json_schema(),
                    },
                }
            )
        return tools

    async def _run_tool(self, context: ServiceContext, assistant: _Assistant, call: ToolCall) -> FunctionResult:
        try:
            arguments = json.loads(call.arguments)
        except json.JSONDecodeError:
            return FunctionResult(call.name, {}, error="arguments are not valid JSON")
        if not isinstance(arguments, dict):
            return FunctionResult(call.name, {}, error="arguments must be a JSON object")
        if call.name not in assistant.function_names:
            return FunctionResult(call.name, arguments, error=f"unknown function '{call.name}'")

        handler = context.registry.ai_function(call.name).handler
        try:
            result = handler(context, arguments)
            if inspect.isawaitable(result):
                result = await result
        except (ValidationError, PydanticValidationError) as exc:
            logger.warning("AI function %s rejected arguments: %s", call.name, exc)
            return FunctionResult(call.name, arguments, error=str(exc))
        return FunctionResult(call.name, arguments, result=result)

    async def query_assistant(
        self, context: ServiceContext, assistant_id: str, thread_id: str, prompt: str
    ) -> AssistantReply:
        """
        Add prompt to the thread and let the model call functions until it
        answers without tool calls or max_rounds is reached.
        """
        assistant = self._get_assistant(assistant_id)
        thread = self._get_thread(thread_id, assistant_id)
        tools = self._tools(context, assistant)

        if not thread.messages:
            thread.messages.append({"role": "system", "content": assistant.instructions})
        thread.messages.append({"role": "user", "content": prompt})

        results: List[FunctionResult] = []
        for round_no in range(1, self.max_rounds + 1):
            completion = await self.provider.complete(list(thread.messages), tools)
            if not completion.tool_calls:
                thread.messages.append({"role": "assistant", "content": completion.text})
                return AssistantReply(completion.text, results)

            thread.messages.append(
                {
                    "role": "assistant",
                    "content": completion.text or None,
                    "tool_calls": [
                        {"id": c.id, "type": "function", "function": {"name": c.name, "arguments": c.arguments}}
                        for c in completion.tool_calls
                    ],
                }
            )
            for call in completion.tool_calls:
                outcome = await self._run_tool(context, assistant, call)
                results.append(outcome)
                content = {"error": outcome.error} if outcome.error else {"result": outcome.result}
                thread.messages.append(
                    {"role": "tool", "tool_call_id": call.id, "content": json.dumps(content, default=str)}
                )
            logger.debug("Assistant %s round %d ran %d tool calls", assistant.name, round_no, len(completion.tool_calls))

        logger.warning("Assistant %s stopped after %d rounds", assistant.name, self.max_rounds)
        return AssistantReply("", results)
