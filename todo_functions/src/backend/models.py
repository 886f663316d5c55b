from __future__ import annotations

from datetime import datetime
from typing import TypedDict

TODOS_COLLECTION = "todos"

# Fields whose change makes an update "substantive". updated_at is deliberately absent.
SUBSTANTIVE_FIELDS = ("done", "title", "content")


# PUBLIC_INTERFACE
class TodoEntity(TypedDict):
    """
    A todo document as stored in the `todos` collection.

    Fields:
    - id: Opaque unique identifier assigned by the repository
    - title: Non-empty short title
    - content: Non-empty body text
    - done: Completion flag, False at creation
    - created_at: UTC creation timestamp, never mutated
    - updated_at: UTC timestamp of the last substantive update
    """

    id: str
    title: str
    content: str
    done: bool
    created_at: datetime
    updated_at: datetime
