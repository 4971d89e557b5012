"""Request models for task and comment operations.

Field names are snake_case; camelCase aliases (``dueDate``, ``tagNames``)
are accepted as well so HTTP payloads can be validated directly.
"""

from typing import Any, Optional, TypeVar
from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from tasktracker.models.comment import AUTHOR_MAX_LENGTH, CONTENT_MAX_LENGTH
from tasktracker.models.tag import NAME_MAX_LENGTH
from tasktracker.models.task import (
    ASSIGNEE_MAX_LENGTH,
    DESCRIPTION_MAX_LENGTH,
    TITLE_MAX_LENGTH,
    TaskPriority,
    TaskStatus,
)
from tasktracker.utils.clock import ensure_utc
from tasktracker.utils.errors import ValidationFailure


RequestT = TypeVar("RequestT", bound=BaseModel)


def _require_text(value: Any, label: str) -> Any:
    if isinstance(value, str) and not value.strip():
        raise ValueError(f"{label} is required")
    return value


class CreateTaskRequest(BaseModel):
    """Create a task. Title, status and priority are required."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    title: str = Field(..., max_length=TITLE_MAX_LENGTH)
    description: Optional[str] = Field(None, max_length=DESCRIPTION_MAX_LENGTH)
    status: TaskStatus
    priority: TaskPriority
    assignee: Optional[str] = Field(None, max_length=ASSIGNEE_MAX_LENGTH)
    due_date: Optional[datetime] = Field(None, alias="dueDate")
    tag_names: Optional[set[str]] = Field(None, alias="tagNames")

    @field_validator("title")
    @classmethod
    def _title_not_blank(cls, value: str) -> str:
        return _require_text(value, "Title")

    @field_validator("due_date")
    @classmethod
    def _due_date_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(value)

    @field_validator("tag_names")
    @classmethod
    def _tag_names_valid(cls, value: Optional[set[str]]) -> Optional[set[str]]:
        if value is None:
            return None
        for name in value:
            if not name.strip():
                raise ValueError("Tag names must not be blank")
            if len(name) > NAME_MAX_LENGTH:
                raise ValueError(f"Tag names must be at most {NAME_MAX_LENGTH} characters")
        return value


class UpdateTaskRequest(BaseModel):
    """
    Partial task update.

    Only fields explicitly supplied are applied (``model_fields_set``).
    Supplying ``None`` clears description, assignee or due date; it is
    rejected for title, status and priority.
    """
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    title: Optional[str] = Field(None, max_length=TITLE_MAX_LENGTH)
    description: Optional[str] = Field(None, max_length=DESCRIPTION_MAX_LENGTH)
    status: Optional[TaskStatus] = None
    priority: Optional[TaskPriority] = None
    assignee: Optional[str] = Field(None, max_length=ASSIGNEE_MAX_LENGTH)
    due_date: Optional[datetime] = Field(None, alias="dueDate")

    @field_validator("title", "status", "priority", mode="before")
    @classmethod
    def _not_null(cls, value: Any) -> Any:
        if value is None:
            raise ValueError("may not be null")
        return value

    @field_validator("title")
    @classmethod
    def _title_not_blank(cls, value: str) -> str:
        return _require_text(value, "Title")

    @field_validator("due_date")
    @classmethod
    def _due_date_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(value)

    def changes(self) -> dict[str, Any]:
        """Supplied fields only, keyed by field name."""
        return {name: getattr(self, name) for name in self.model_fields_set}


class CreateCommentRequest(BaseModel):
    """Add a comment to a task."""
    model_config = ConfigDict(extra="ignore")

    content: str = Field(..., max_length=CONTENT_MAX_LENGTH)
    author: Optional[str] = Field(None, max_length=AUTHOR_MAX_LENGTH)

    @field_validator("content")
    @classmethod
    def _content_not_blank(cls, value: str) -> str:
        return _require_text(value, "Content")


def parse_request(model: type[RequestT], data: Any) -> RequestT:
    """Validate ``data`` into ``model``, raising ValidationFailure on error."""
    if isinstance(data, model):
        return data
    try:
        return model.model_validate(data if data is not None else {})
    except ValidationError as e:
        raise ValidationFailure.from_pydantic(e) from e
