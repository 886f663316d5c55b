"""
HTTP-style entry points. Each webhook maps query parameters to a TodoService
call and always answers with a WebhookResponse; errors never escape.
"""

from __future__ import annotations

import logging
from typing import Awaitable, Callable

from .context import ServiceContext
from .errors import AssistantError, NotFoundError, TransientRepositoryError, ValidationError
from .schemas import TodoOut, WebhookRequest, WebhookResponse
from .services import TodoService
from .utils import missing_params

logger = logging.getLogger(__name__)

MISSING_ID = "Invalid request: missing ID"


def _respond(message, status_code: int = 200) -> WebhookResponse:
    return WebhookResponse(message=message, status_code=status_code)


async def _guard(name: str, call: Callable[[], Awaitable[WebhookResponse]]) -> WebhookResponse:
    try:
        return await call()
    except ValidationError as exc:
        return _respond(str(exc), 400)
    except NotFoundError as exc:
        return _respond(f"Todo with ID {exc.doc_id} not found", 404)
    except TransientRepositoryError as exc:
        logger.warning("Webhook %s failed on storage: %s", name, exc)
        return _respond(f"Storage unavailable: {exc}", 503)
    except AssistantError as exc:
        logger.warning("Webhook %s failed in the AI assistant: %s", name, exc)
        return _respond(f"AI assistant failed: {exc}", 502)
    except Exception:
        logger.exception("Webhook %s failed", name)
        return _respond("Internal error", 500)


# PUBLIC_INTERFACE
async def create_todo(context: ServiceContext, request: WebhookRequest) -> WebhookResponse:
    params = request.query_params
    if missing_params(params, "title", "content"):
        return _respond("Invalid request", 400)

    async def _call() -> WebhookResponse:
        todo_id = await TodoService(context).create(params["title"], params["content"])
        return _respond(f"Todo created: {todo_id}")

    return await _guard("createTodo", _call)


# PUBLIC_INTERFACE
async def get_todos(context: ServiceContext, request: WebhookRequest) -> WebhookResponse:
    async def _call() -> WebhookResponse:
        todos = await TodoService(context).read_all()
        return _respond([TodoOut(**t).model_dump(mode="json") for t in todos])

    return await _guard("getTodos", _call)


# PUBLIC_INTERFACE
async def get_todo_by_id(context: ServiceContext, request: WebhookRequest) -> WebhookResponse:
    params = request.query_params
    if missing_params(params, "id"):
        return _respond(MISSING_ID, 400)

    async def _call() -> WebhookResponse:
        todo = await TodoService(context).read_by_id(params["id"])
        return _respond(TodoOut(**todo).model_dump(mode="json"))

    return await _guard("getTodoById", _call)


# PUBLIC_INTERFACE
async def update_todo(context: ServiceContext, request: WebhookRequest) -> WebhookResponse:
    params = request.query_params
    if missing_params(params, "id"):
        return _respond(MISSING_ID, 400)

    async def _call() -> WebhookResponse:
        await TodoService(context).update(params["id"], params.get("title"), params.get("content"))
        return _respond(f"Todo with ID {params['id']} updated")

    return await _guard("updateTodo", _call)


# PUBLIC_INTERFACE
async def toggle_todo(context: ServiceContext, request: WebhookRequest) -> WebhookResponse:
    params = request.query_params
    if missing_params(params, "id", "done"):
        return _respond("Invalid request: missing ID or done status", 400)

    async def _call() -> WebhookResponse:
        done = await TodoService(context).toggle(params["id"], params["done"])
        return _respond(f"Todo with ID {params['id']} marked as {'done' if done else 'not done'}")

    return await _guard("toggleTodo", _call)


# PUBLIC_INTERFACE
async def delete_todo(context: ServiceContext, request: WebhookRequest) -> WebhookResponse:
    params = request.query_params
    if missing_params(params, "id"):
        return _respond(MISSING_ID, 400)

    async def _call() -> WebhookResponse:
        await TodoService(context).delete(params["id"])
        return _respond(f"Todo with ID {params['id']} deleted")

    return await _guard("deleteTodo", _call)


# PUBLIC_INTERFACE
async def create_todo_with_ai(context: ServiceContext, request: WebhookRequest) -> WebhookResponse:
    params = request.query_params
    if missing_params(params, "task"):
        return _respond("Invalid request: missing task description", 400)

    async def _call() -> WebhookResponse:
        ids = await context.execute_function("createTodosWithAI", params["task"])
        return _respond(f"Todos created with AI: {len(ids)}")

    return await _guard("createTodoWithAI", _call)
