from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _require_text(value: Optional[str], name: str) -> str:
    if value is None:
        raise ValueError(f"{name} is required")
    s = value.strip()
    if not s:
        raise ValueError(f"{name} must not be empty")
    return s


# PUBLIC_INTERFACE
class TodoOut(BaseModel):
    """
    Schema returned by webhooks for a Todo document.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": "3f1c2a9e8d7b4c6a9e0f1a2b3c4d5e6f",
                "title": "Buy milk",
                "content": "2%",
                "done": False,
                "created_at": "2025-01-25T10:15:30.123456+00:00",
                "updated_at": "2025-01-26T09:00:00.000001+00:00",
            }
        }
    )

    id: str = Field(..., description="Unique identifier assigned by the repository")
    title: str = Field(..., description="Short title for the todo item")
    content: str = Field(..., description="Body text of the todo item")
    done: bool = Field(..., description="Completion status flag")
    created_at: datetime = Field(..., description="Creation timestamp")
    updated_at: datetime = Field(..., description="Last substantive update timestamp")


# PUBLIC_INTERFACE
class WebhookRequest(BaseModel):
    """Incoming webhook call: query parameters as string key/value pairs."""

    query_params: Dict[str, str] = Field(default_factory=dict)


# PUBLIC_INTERFACE
class WebhookResponse(BaseModel):
    """
    Result of a webhook. `message` is either a confirmation string or the
    requested data (a todo or a list of todos).
    """

    message: Any
    status_code: int = Field(200, ge=100, le=599)


# PUBLIC_INTERFACE
class TriggerRequest(BaseModel):
    """Document state immediately before and after one mutation."""

    collection: str
    mutation_type: str = "update"
    doc_before: Dict[str, Any]
    doc_after: Dict[str, Any]


# PUBLIC_INTERFACE
class CreateTodoParams(BaseModel):
    """
    Arguments of the createTodoFromAssistant AI function.
    """

    model_config = ConfigDict(
        json_schema_extra={"example": {"title": "Book venue", "content": "Call three venues for quotes"}}
    )

    title: str = Field(..., description="The title of the todo item")
    content: str = Field(..., description="The content of the todo item")

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        return _require_text(v, "title")

    @field_validator("content")
    @classmethod
    def validate_content(cls, v: str) -> str:
        return _require_text(v, "content")


# PUBLIC_INTERFACE
class ExecutableCall(BaseModel):
    """Body of an executable invocation: positional arguments for the function."""

    args: List[Any] = Field(default_factory=list)


# PUBLIC_INTERFACE
class ExecutableResult(BaseModel):
    result: Any = None
