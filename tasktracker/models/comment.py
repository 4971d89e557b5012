"""Comment model - free-form notes owned by exactly one task."""

from typing import Optional
from datetime import datetime
from pydantic import BaseModel, Field


CONTENT_MAX_LENGTH = 2000
AUTHOR_MAX_LENGTH = 100


class Comment(BaseModel):
    """Comment model."""
    id: Optional[int] = None
    task_id: int = Field(..., description="Owning task id (FK)")
    content: str = Field(..., description="Comment body")
    author: Optional[str] = Field(None, description="Author name")
    created_at: Optional[datetime] = None
