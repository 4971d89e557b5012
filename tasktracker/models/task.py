"""Task models."""

from enum import Enum
from typing import Optional
from datetime import datetime
from pydantic import BaseModel, Field

from tasktracker.models.comment import Comment
from tasktracker.models.tag import Tag
from tasktracker.utils.clock import ensure_utc


TITLE_MAX_LENGTH = 200
DESCRIPTION_MAX_LENGTH = 1000
ASSIGNEE_MAX_LENGTH = 100


class TaskStatus(str, Enum):
    """Task status values. No transition graph is enforced between them."""
    TODO = "TODO"
    IN_PROGRESS = "IN_PROGRESS"
    BLOCKED = "BLOCKED"
    DONE = "DONE"
    CANCELLED = "CANCELLED"


class TaskPriority(str, Enum):
    """Task priority values."""
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"


class Task(BaseModel):
    """Task row. Comments and tags reference it by id."""
    id: Optional[int] = Field(None, description="Storage-assigned id, immutable once set")
    title: str = Field(..., description="Task title")
    description: Optional[str] = Field(None, description="Task description")
    status: TaskStatus = Field(default=TaskStatus.TODO, description="Task status")
    priority: TaskPriority = Field(default=TaskPriority.MEDIUM, description="Task priority")
    assignee: Optional[str] = Field(None, description="Assignee name")
    due_date: Optional[datetime] = Field(None, description="Due timestamp (UTC)")
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    deleted: bool = Field(default=False, description="Soft-delete flag")

    def is_overdue(self, now: datetime) -> bool:
        return is_overdue(self.due_date, self.status, now)


class TaskAggregate(BaseModel):
    """A task materialized together with its comments and tags."""
    task: Task
    comments: list[Comment] = Field(default_factory=list)
    tags: list[Tag] = Field(default_factory=list)


def is_overdue(due_date: Optional[datetime], status: TaskStatus, now: datetime) -> bool:
    """
    Derived overdue flag.

    True iff a due date is set, it lies strictly before ``now`` and the task
    is not DONE. Never persisted.
    """
    if due_date is None or status == TaskStatus.DONE:
        return False
    return ensure_utc(due_date) < ensure_utc(now)
