"""Turns a free-text task into several todos by letting the assistant call createTodoFromAssistant."""

from __future__ import annotations

import logging
from typing import Any, List, Mapping

from pydantic import ValidationError as PydanticValidationError

from .context import ServiceContext
from .errors import AssistantError, ValidationError
from .registry import AIFunctionParam
from .schemas import CreateTodoParams
from .services import TodoService
from .utils import clean_text

logger = logging.getLogger(__name__)

ASSISTANT_NAME = "todoCreator"
ASSISTANT_INSTRUCTIONS = (
    "You are designed to create todo list items based on the specified task. "
    "You should create anywhere between 3-5 todos."
)
CREATE_FUNCTION_NAME = "createTodoFromAssistant"
CREATE_FUNCTION_DESCRIPTION = "This function creates a new item in a todo list"
CREATE_FUNCTION_PARAMS = [
    AIFunctionParam("title", "The title of the todo item", "string", True),
    AIFunctionParam("content", "The content of the todo item", "string", True),
]


# PUBLIC_INTERFACE
async def create_todo_from_assistant(context: ServiceContext, params: Mapping[str, Any]) -> str:
    """AI-callable create: validate the model's arguments and create one todo."""
    try:
        parsed = CreateTodoParams.model_validate(dict(params))
    except PydanticValidationError as exc:
        raise ValidationError(f"Invalid todo arguments: {exc.errors()}") from exc
    return await TodoService(context).create(parsed.title, parsed.content)


# PUBLIC_INTERFACE
async def create_todos_with_ai(context: ServiceContext, task: str) -> List[str]:
    """
    Ask a short-lived assistant to create todos for task and return their ids.
    The assistant and its thread are removed afterwards, also on failure.
    """
    description = clean_text(task)
    if description is None:
        raise ValidationError("Invalid request: missing task description")
    runtime = context.assistant
    if runtime is None:
        raise AssistantError("No assistant runtime configured")

    assistant_id = await runtime.create_assistant(ASSISTANT_NAME, ASSISTANT_INSTRUCTIONS, [CREATE_FUNCTION_NAME])
    try:
        thread_id = await runtime.create_thread(assistant_id)
        try:
            reply = await runtime.query_assistant(
                context,
                assistant_id,
                thread_id,
                f"Create some todos for the following task: {description}",
            )
        finally:
            await runtime.delete_thread(thread_id)
    finally:
        await runtime.delete_assistant(assistant_id)

    ids = [r.result for r in reply.function_results if r.name == CREATE_FUNCTION_NAME and r.error is None]
    logger.info("Assistant created %d todos for task %r", len(ids), description)
    return ids
