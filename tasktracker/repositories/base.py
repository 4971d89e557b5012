"""Storage contracts the services depend on.

Every task read honors the soft-delete flag: deleted tasks are never returned
by these methods. Relations are id-based (``Comment.task_id``, task/tag join
rows); repositories materialize them into ``TaskAggregate`` on read.
"""

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from datetime import datetime
from typing import Iterable, List, Optional, Tuple

from tasktracker.models.comment import Comment
from tasktracker.models.paging import PageParams
from tasktracker.models.tag import Tag
from tasktracker.models.task import Task, TaskAggregate, TaskPriority, TaskStatus


class TaskRepository(ABC):
    @abstractmethod
    def insert(self, task: Task) -> Task:
        """Persist a new task. Storage assigns id, created_at and updated_at."""
        pass

    @abstractmethod
    def update(self, task: Task) -> Task:
        """Write all mutable fields of an existing task and refresh updated_at."""
        pass

    @abstractmethod
    def find_active_by_id(self, task_id: int) -> Optional[Task]:
        pass

    @abstractmethod
    def find_active_with_relationships(self, task_id: int) -> Optional[TaskAggregate]:
        """Task plus its comments and tags in a single round trip."""
        pass

    @abstractmethod
    def find_active(
        self,
        params: PageParams,
        status: Optional[TaskStatus] = None,
        priority: Optional[TaskPriority] = None,
        assignee: Optional[str] = None,
    ) -> Tuple[List[TaskAggregate], int]:
        """
        One page of non-deleted tasks and the total number of matches.

        ``None`` filters impose no constraint; provided ones are AND-ed.
        """
        pass

    @abstractmethod
    def find_overdue(self, now: datetime) -> List[TaskAggregate]:
        """Non-deleted tasks with due_date < now and status != DONE."""
        pass

    @abstractmethod
    def count_by_status(self) -> List[Tuple[TaskStatus, int]]:
        """Grouped count over non-deleted tasks. Absent statuses are omitted."""
        pass

    @abstractmethod
    def add_tags(self, task_id: int, tag_ids: Iterable[int]) -> None:
        """Associate tags with a task (join rows)."""
        pass


class CommentRepository(ABC):
    @abstractmethod
    def insert(self, comment: Comment) -> Comment:
        pass

    @abstractmethod
    def find_by_id(self, comment_id: int) -> Optional[Comment]:
        pass

    @abstractmethod
    def find_by_task(self, task_id: int) -> List[Comment]:
        """Comments of a task, most recent first."""
        pass

    @abstractmethod
    def delete(self, comment_id: int) -> None:
        pass


class TagRepository(ABC):
    @abstractmethod
    def find_by_names(self, names: Iterable[str]) -> List[Tag]:
        """Batch lookup by exact (case-sensitive) name."""
        pass

    @abstractmethod
    def create(self, name: str) -> Tag:
        """Insert a tag. Raises TagConflictError if the name already exists."""
        pass


class Storage(ABC):
    """Bundle of repositories sharing one unit-of-work boundary."""

    tasks: TaskRepository
    comments: CommentRepository
    tags: TagRepository

    @abstractmethod
    def unit_of_work(self) -> AbstractContextManager:
        """All writes inside the block commit together or not at all."""
        pass
