"""Tag models - shared labels and the task/tag join row."""

from typing import Optional
from pydantic import BaseModel, Field


NAME_MAX_LENGTH = 50


class Tag(BaseModel):
    """Tag model. Names are unique and case-sensitive."""
    id: Optional[int] = None
    name: str = Field(..., description="Unique tag name")


class TaskTag(BaseModel):
    """Association row between a task and a tag."""
    task_id: int
    tag_id: int
