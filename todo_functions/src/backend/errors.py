from __future__ import annotations


class TodoError(Exception):
    """Base class for errors raised by the todo functions core."""


# PUBLIC_INTERFACE
class ValidationError(TodoError):
    """Required input is missing, empty, or cannot be parsed."""


# PUBLIC_INTERFACE
class NotFoundError(TodoError):
    """A referenced document id does not resolve."""

    def __init__(self, doc_id: str, collection: str = "todos") -> None:
        super().__init__(f"Document '{doc_id}' not found in '{collection}'")
        self.doc_id = doc_id
        self.collection = collection


# PUBLIC_INTERFACE
class TransientRepositoryError(TodoError):
    """Delegated storage failure (locked database, I/O, timeout). Not retried by the core."""


# PUBLIC_INTERFACE
class AssistantError(TodoError):
    """The AI provider failed or returned something the runtime cannot use."""
