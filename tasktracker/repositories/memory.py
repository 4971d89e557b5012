"""In-process storage backend.

Thread-safe: every table access happens under one re-entrant lock. A unit of
work holds the lock for its whole duration and restores a snapshot of all
tables when the block raises, so partial writes are never visible.
"""

import copy
import logging
import threading
from collections import Counter
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Iterable, List, Optional, Tuple

from tasktracker.models.comment import Comment
from tasktracker.models.paging import PageParams
from tasktracker.models.tag import Tag
from tasktracker.models.task import Task, TaskAggregate, TaskPriority, TaskStatus
from tasktracker.repositories.base import (
    CommentRepository,
    Storage,
    TagRepository,
    TaskRepository,
)
from tasktracker.utils.clock import ensure_utc, utc_now
from tasktracker.utils.errors import StorageError, TagConflictError

logger = logging.getLogger(__name__)


@dataclass
class _Tables:
    tasks: dict[int, Task] = field(default_factory=dict)
    comments: dict[int, Comment] = field(default_factory=dict)
    tags: dict[int, Tag] = field(default_factory=dict)
    task_tags: set[tuple[int, int]] = field(default_factory=set)
    sequences: dict[str, int] = field(default_factory=dict)

    def next_id(self, table: str) -> int:
        value = self.sequences.get(table, 0) + 1
        self.sequences[table] = value
        return value


def _next_timestamp(previous: Optional[datetime]) -> datetime:
    """Current time, bumped past ``previous`` when the clock has not advanced."""
    now = utc_now()
    if previous is not None and now <= previous:
        return previous + timedelta(microseconds=1)
    return now


def _sort_value(task: Task, field_name: str) -> Any:
    value = getattr(task, field_name)
    if isinstance(value, (TaskStatus, TaskPriority)):
        return value.value
    if isinstance(value, datetime):
        return ensure_utc(value)
    return value


def _sort_tasks(tasks: Iterable[Task], params: PageParams) -> List[Task]:
    # Ties keep id order; nulls go last ascending and first descending.
    rows = sorted(tasks, key=lambda t: t.id)
    present = [t for t in rows if getattr(t, params.sort_by) is not None]
    missing = [t for t in rows if getattr(t, params.sort_by) is None]
    present.sort(key=lambda t: _sort_value(t, params.sort_by), reverse=params.descending)
    return missing + present if params.descending else present + missing


class InMemoryTaskRepository(TaskRepository):
    def __init__(self, storage: "InMemoryStorage"):
        self._storage = storage

    def _aggregate(self, task: Task) -> TaskAggregate:
        tables = self._storage.tables
        comments = sorted(
            (c for c in tables.comments.values() if c.task_id == task.id),
            key=lambda c: (c.created_at, c.id),
            reverse=True,
        )
        tag_ids = {tag_id for task_id, tag_id in tables.task_tags if task_id == task.id}
        tags = sorted((tables.tags[i] for i in tag_ids), key=lambda t: t.name)
        return TaskAggregate(
            task=task.model_copy(),
            comments=[c.model_copy() for c in comments],
            tags=[t.model_copy() for t in tags],
        )

    def _active(self) -> List[Task]:
        return [t for t in self._storage.tables.tasks.values() if not t.deleted]

    def insert(self, task: Task) -> Task:
        with self._storage.lock:
            tables = self._storage.tables
            now = utc_now()
            stored = task.model_copy(update={
                "id": tables.next_id("tasks"),
                "due_date": ensure_utc(task.due_date),
                "created_at": now,
                "updated_at": now,
            })
            tables.tasks[stored.id] = stored
            logger.debug("Task row inserted id=%s", stored.id)
            return stored.model_copy()

    def update(self, task: Task) -> Task:
        with self._storage.lock:
            tables = self._storage.tables
            current = tables.tasks.get(task.id)
            if current is None:
                raise StorageError(f"Failed to update task: {task.id} does not exist")
            stored = task.model_copy(update={
                "due_date": ensure_utc(task.due_date),
                "created_at": current.created_at,
                "updated_at": _next_timestamp(current.updated_at),
            })
            tables.tasks[stored.id] = stored
            return stored.model_copy()

    def find_active_by_id(self, task_id: int) -> Optional[Task]:
        with self._storage.lock:
            task = self._storage.tables.tasks.get(task_id)
            if task is None or task.deleted:
                return None
            return task.model_copy()

    def find_active_with_relationships(self, task_id: int) -> Optional[TaskAggregate]:
        with self._storage.lock:
            task = self._storage.tables.tasks.get(task_id)
            if task is None or task.deleted:
                return None
            return self._aggregate(task)

    def find_active(
        self,
        params: PageParams,
        status: Optional[TaskStatus] = None,
        priority: Optional[TaskPriority] = None,
        assignee: Optional[str] = None,
    ) -> Tuple[List[TaskAggregate], int]:
        with self._storage.lock:
            matches = [
                t for t in self._active()
                if (status is None or t.status == status)
                and (priority is None or t.priority == priority)
                and (assignee is None or t.assignee == assignee)
            ]
            ordered = _sort_tasks(matches, params)
            page = ordered[params.offset:params.offset + params.size]
            return [self._aggregate(t) for t in page], len(matches)

    def find_overdue(self, now: datetime) -> List[TaskAggregate]:
        with self._storage.lock:
            now = ensure_utc(now)
            overdue = [
                t for t in self._active()
                if t.due_date is not None
                and ensure_utc(t.due_date) < now
                and t.status != TaskStatus.DONE
            ]
            overdue.sort(key=lambda t: (ensure_utc(t.due_date), t.id))
            return [self._aggregate(t) for t in overdue]

    def count_by_status(self) -> List[Tuple[TaskStatus, int]]:
        with self._storage.lock:
            counts = Counter(t.status for t in self._active())
        return [(status, counts[status]) for status in TaskStatus if counts[status]]

    def add_tags(self, task_id: int, tag_ids: Iterable[int]) -> None:
        with self._storage.lock:
            tables = self._storage.tables
            if task_id not in tables.tasks:
                raise StorageError(f"Failed to tag task: {task_id} does not exist")
            for tag_id in tag_ids:
                if tag_id not in tables.tags:
                    raise StorageError(f"Failed to tag task: tag {tag_id} does not exist")
                tables.task_tags.add((task_id, tag_id))


class InMemoryCommentRepository(CommentRepository):
    def __init__(self, storage: "InMemoryStorage"):
        self._storage = storage

    def insert(self, comment: Comment) -> Comment:
        with self._storage.lock:
            tables = self._storage.tables
            if comment.task_id not in tables.tasks:
                raise StorageError(f"Failed to insert comment: task {comment.task_id} does not exist")
            stored = comment.model_copy(update={
                "id": tables.next_id("comments"),
                "created_at": utc_now(),
            })
            tables.comments[stored.id] = stored
            return stored.model_copy()

    def find_by_id(self, comment_id: int) -> Optional[Comment]:
        with self._storage.lock:
            comment = self._storage.tables.comments.get(comment_id)
            return comment.model_copy() if comment else None

    def find_by_task(self, task_id: int) -> List[Comment]:
        with self._storage.lock:
            comments = [c for c in self._storage.tables.comments.values() if c.task_id == task_id]
            comments.sort(key=lambda c: (c.created_at, c.id), reverse=True)
            return [c.model_copy() for c in comments]

    def delete(self, comment_id: int) -> None:
        with self._storage.lock:
            self._storage.tables.comments.pop(comment_id, None)


class InMemoryTagRepository(TagRepository):
    def __init__(self, storage: "InMemoryStorage"):
        self._storage = storage

    def find_by_names(self, names: Iterable[str]) -> List[Tag]:
        wanted = set(names)
        with self._storage.lock:
            return [t.model_copy() for t in self._storage.tables.tags.values() if t.name in wanted]

    def create(self, name: str) -> Tag:
        with self._storage.lock:
            tables = self._storage.tables
            # Unique constraint on tags.name
            if any(t.name == name for t in tables.tags.values()):
                raise TagConflictError(name)
            tag = Tag(id=tables.next_id("tags"), name=name)
            tables.tags[tag.id] = tag
            return tag.model_copy()


class InMemoryStorage(Storage):
    """Dict-backed store used for local runs and tests."""

    def __init__(self):
        self.lock = threading.RLock()
        self.tables = _Tables()
        self.tasks = InMemoryTaskRepository(self)
        self.comments = InMemoryCommentRepository(self)
        self.tags = InMemoryTagRepository(self)
        logger.info("In-memory storage ready")

    @contextmanager
    def unit_of_work(self):
        with self.lock:
            snapshot = copy.deepcopy(self.tables)
            try:
                yield
            except BaseException:
                self.tables = snapshot
                logger.warning("Unit of work rolled back")
                raise

    def remove_task(self, task_id: int) -> None:
        """Physically remove a task, cascading to its comments and tag links.

        Not reachable from any service operation (tasks are only soft-deleted);
        kept for maintenance scripts and tests of the ownership rules.
        """
        with self.lock:
            tables = self.tables
            tables.tasks.pop(task_id, None)
            for comment_id in [c.id for c in tables.comments.values() if c.task_id == task_id]:
                del tables.comments[comment_id]
            tables.task_tags = {(t, g) for t, g in tables.task_tags if t != task_id}
