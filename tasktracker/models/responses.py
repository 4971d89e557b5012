"""Response models returned by the services (entity -> response conversion)."""

from typing import Optional
from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from tasktracker.models.comment import Comment
from tasktracker.models.task import TaskAggregate, TaskPriority, TaskStatus


class CommentResponse(BaseModel):
    """Comment as exposed to callers."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: int
    content: str
    author: Optional[str] = None
    task_id: int
    created_at: Optional[datetime] = None

    @classmethod
    def from_entity(cls, comment: Comment) -> "CommentResponse":
        return cls(
            id=comment.id,
            content=comment.content,
            author=comment.author,
            task_id=comment.task_id,
            created_at=comment.created_at,
        )


class TaskResponse(BaseModel):
    """Task as exposed to callers, with the derived overdue flag."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: int
    title: str
    description: Optional[str] = None
    status: TaskStatus
    priority: TaskPriority
    assignee: Optional[str] = None
    due_date: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    overdue: bool = Field(default=False, description="Computed at read time, never stored")
    comments: list[CommentResponse] = Field(default_factory=list)
    tag_names: list[str] = Field(default_factory=list)

    @classmethod
    def from_aggregate(cls, aggregate: TaskAggregate, now: datetime) -> "TaskResponse":
        task = aggregate.task
        return cls(
            id=task.id,
            title=task.title,
            description=task.description,
            status=task.status,
            priority=task.priority,
            assignee=task.assignee,
            due_date=task.due_date,
            created_at=task.created_at,
            updated_at=task.updated_at,
            overdue=task.is_overdue(now),
            comments=[CommentResponse.from_entity(c) for c in aggregate.comments],
            tag_names=sorted(tag.name for tag in aggregate.tags),
        )


class TaskStatusReport(BaseModel):
    """Number of non-deleted tasks with a given status."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    status: TaskStatus
    count: int
