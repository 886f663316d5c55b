"""
Startup-time table of the service's functions.

Every webhook, trigger, schedule, executable and AI function is added with an
ordinary call (see bindings.register_functions); handlers always receive the
ServiceContext as their first argument.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Tuple

Handler = Callable[..., Any]


@dataclass(frozen=True)
class WebhookBinding:
    name: str
    handler: Handler


@dataclass(frozen=True)
class TriggerBinding:
    name: str
    collection: str
    mutation_types: Tuple[str, ...]
    handler: Handler


@dataclass(frozen=True)
class ScheduleBinding:
    name: str
    interval_seconds: float
    handler: Handler


@dataclass(frozen=True)
class ExecutableBinding:
    name: str
    handler: Handler


@dataclass(frozen=True)
class AIFunctionParam:
    name: str
    description: str
    type: str = "string"
    required: bool = True


@dataclass(frozen=True)
class AIFunctionBinding:
    name: str
    description: str
    parameters: Tuple[AIFunctionParam, ...]
    handler: Handler

    def json_schema(self) -> Dict[str, Any]:
        """Parameter schema in JSON-schema form, as sent to tool-calling models."""
        return {
            "type": "object",
            "properties": {
                p.name: {"type": p.type, "description": p.description} for p in self.parameters
            },
            "required": [p.name for p in self.parameters if p.required],
        }


# PUBLIC_INTERFACE
@dataclass
class FunctionRegistry:
    """Registered functions keyed by name. Names are unique per kind."""

    webhooks: Dict[str, WebhookBinding] = field(default_factory=dict)
    triggers: Dict[str, TriggerBinding] = field(default_factory=dict)
    schedules: Dict[str, ScheduleBinding] = field(default_factory=dict)
    executables: Dict[str, ExecutableBinding] = field(default_factory=dict)
    ai_functions: Dict[str, AIFunctionBinding] = field(default_factory=dict)

    @staticmethod
    def _add(table: Dict[str, Any], kind: str, name: str, binding: Any) -> None:
        if name in table:
            raise ValueError(f"{kind} '{name}' is already registered")
        table[name] = binding

    def add_webhook(self, name: str, handler: Handler) -> None:
        self._add(self.webhooks, "Webhook", name, WebhookBinding(name, handler))

    def add_trigger(self, name: str, collection: str, mutation_types: List[str], handler: Handler) -> None:
        self._add(
            self.triggers, "Trigger", name, TriggerBinding(name, collection, tuple(mutation_types), handler)
        )

    def add_schedule(self, name: str, interval_seconds: float, handler: Handler) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self._add(self.schedules, "Schedule", name, ScheduleBinding(name, interval_seconds, handler))

    def add_executable(self, name: str, handler: Handler) -> None:
        self._add(self.executables, "Executable", name, ExecutableBinding(name, handler))

    def add_ai_function(
        self, name: str, description: str, parameters: List[AIFunctionParam], handler: Handler
    ) -> None:
        self._add(
            self.ai_functions,
            "AI function",
            name,
            AIFunctionBinding(name, description, tuple(parameters), handler),
        )

    def webhook(self, name: str) -> WebhookBinding:
        return self.webhooks[name]

    def executable(self, name: str) -> ExecutableBinding:
        return self.executables[name]

    def ai_function(self, name: str) -> AIFunctionBinding:
        return self.ai_functions[name]

    def triggers_for(self, collection: str, mutation_type: str) -> List[TriggerBinding]:
        return [
            t for t in self.triggers.values()
            if t.collection == collection and mutation_type in t.mutation_types
        ]
