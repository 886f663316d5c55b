"""
The service's function table. This replaces declarative bindings: every
webhook, trigger, schedule, executable and AI function is added here with a
plain call when the app starts.
"""

from __future__ import annotations

import logging
from typing import Any, Dict

from .cleanup import clean_todos
from .context import ServiceContext
from .decomposer import (
    CREATE_FUNCTION_DESCRIPTION,
    CREATE_FUNCTION_NAME,
    CREATE_FUNCTION_PARAMS,
    create_todo_from_assistant,
    create_todos_with_ai,
)
from .errors import TransientRepositoryError
from .models import TODOS_COLLECTION
from .registry import FunctionRegistry
from .schemas import TriggerRequest
from .settings import Settings
from .triggers import on_update_todo
from . import webhooks

logger = logging.getLogger(__name__)


# PUBLIC_INTERFACE
def register_functions(registry: FunctionRegistry, settings: Settings) -> FunctionRegistry:
    """Populate registry with every function this service exposes."""
    registry.add_executable("cleanTodos", clean_todos)
    registry.add_schedule("cleanTodosOnSchedule", settings.cleanup_interval_seconds, clean_todos)
    registry.add_trigger("onUpdateTodo", TODOS_COLLECTION, ["update"], on_update_todo)

    registry.add_webhook("createTodo", webhooks.create_todo)
    registry.add_webhook("getTodos", webhooks.get_todos)
    registry.add_webhook("getTodoById", webhooks.get_todo_by_id)
    registry.add_webhook("updateTodo", webhooks.update_todo)
    registry.add_webhook("toggleTodo", webhooks.toggle_todo)
    registry.add_webhook("deleteTodo", webhooks.delete_todo)
    registry.add_webhook("createTodoWithAI", webhooks.create_todo_with_ai)

    registry.add_executable("createTodosWithAI", create_todos_with_ai)
    registry.add_ai_function(
        CREATE_FUNCTION_NAME,
        CREATE_FUNCTION_DESCRIPTION,
        CREATE_FUNCTION_PARAMS,
        create_todo_from_assistant,
    )
    return registry


# PUBLIC_INTERFACE
def bind_triggers(context: ServiceContext) -> None:
    """
    Subscribe to the repository's committed updates and run the registered
    update triggers for the affected collection. A failing trigger is logged;
    the write it reacts to has already been committed.
    """

    async def _dispatch(collection: str, before: Dict[str, Any], after: Dict[str, Any]) -> None:
        for binding in context.registry.triggers_for(collection, "update"):
            request = TriggerRequest(
                collection=collection, mutation_type="update", doc_before=before, doc_after=after
            )
            try:
                await binding.handler(context, request)
            except TransientRepositoryError as exc:
                logger.warning(
                    "Trigger %s could not write %s/%s, update left unstamped: %s",
                    binding.name,
                    collection,
                    after.get("id"),
                    exc,
                )
            except Exception:
                logger.exception("Trigger %s failed for %s/%s", binding.name, collection, after.get("id"))

    context.repository.add_update_listener(_dispatch)
