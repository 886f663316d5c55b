"""Todo lifecycle: field validation and the writes each operation is allowed to make."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from .context import ServiceContext
from .errors import NotFoundError, ValidationError
from .models import TODOS_COLLECTION, TodoEntity
from .utils import clean_text, parse_bool_param

logger = logging.getLogger(__name__)


def _require_id(todo_id: Optional[str]) -> str:
    value = clean_text(todo_id)
    if value is None:
        raise ValidationError("Invalid request: missing ID")
    return value


# PUBLIC_INTERFACE
class TodoService:
    """
    Create/read/update/toggle/delete for todos.

    The service holds no document state between calls. It never writes
    updated_at after creation; the update trigger stamps it.
    """

    def __init__(self, context: ServiceContext) -> None:
        self.context = context

    async def create(self, title: Optional[str], content: Optional[str]) -> str:
        """Insert a new todo and return its id."""
        clean_title = clean_text(title)
        clean_content = clean_text(content)
        if clean_title is None or clean_content is None:
            raise ValidationError("Invalid request: title and content are required")

        now = self.context.now()
        ref = self.context.todos().doc()
        await ref.insert(
            {
                "title": clean_title,
                "content": clean_content,
                "done": False,
                "created_at": now,
                "updated_at": now,
            }
        )
        logger.info("Created todo %s", ref.id)
        return ref.id

    async def read_all(self) -> List[TodoEntity]:
        docs = await self.context.todos().query()
        return [TodoEntity(**doc) for doc in docs]  # type: ignore[typeddict-item]

    async def read_by_id(self, todo_id: Optional[str]) -> TodoEntity:
        doc_id = _require_id(todo_id)
        doc = await self.context.todos().doc(doc_id).snapshot()
        if doc is None:
            raise NotFoundError(doc_id, TODOS_COLLECTION)
        return TodoEntity(**doc)  # type: ignore[typeddict-item]

    async def update(
        self, todo_id: Optional[str], title: Optional[str] = None, content: Optional[str] = None
    ) -> None:
        """
        Apply the provided non-empty title/content. done and created_at are never touched.

        Raises:
            ValidationError: id missing, or neither field provided.
            NotFoundError: id does not resolve.
        """
        doc_id = _require_id(todo_id)
        changes: Dict[str, Any] = {}
        if clean_text(title) is not None:
            changes["title"] = clean_text(title)
        if clean_text(content) is not None:
            changes["content"] = clean_text(content)
        if not changes:
            raise ValidationError("No fields to update")

        ref = self.context.todos().doc(doc_id)
        if await ref.snapshot() is None:
            raise NotFoundError(doc_id, TODOS_COLLECTION)
        await ref.update(changes)
        logger.info("Updated todo %s fields=%s", doc_id, sorted(changes))

    async def toggle(self, todo_id: Optional[str], done: Any) -> bool:
        """Set done from a bool or a boolean-like string; return the stored value."""
        doc_id = _require_id(todo_id)
        if done is None:
            raise ValidationError("Invalid request: missing ID or done status")
        value = parse_bool_param(done)

        ref = self.context.todos().doc(doc_id)
        if await ref.snapshot() is None:
            raise NotFoundError(doc_id, TODOS_COLLECTION)
        await ref.update({"done": value})
        logger.info("Marked todo %s done=%s", doc_id, value)
        return value

    async def delete(self, todo_id: Optional[str]) -> None:
        """Delete a todo. Deleting an id that does not exist succeeds silently."""
        doc_id = _require_id(todo_id)
        await self.context.todos().doc(doc_id).delete()
        logger.info("Deleted todo %s", doc_id)
