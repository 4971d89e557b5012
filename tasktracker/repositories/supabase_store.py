"""Supabase (PostgREST) storage backend.

Schema, the tags.name unique constraint, the updated_at trigger and the
``count_tasks_by_status`` function are defined in ``supabase/migrations``.

PostgREST offers no client-side transactions. A unit of work therefore
journals the task, comment and task_tags rows inserted inside it and deletes
them again, newest first, if the block raises. Updates are single-row
statements and need no journal. Tag rows are not journaled: a new tag is
visible to other requests as soon as it is inserted, and tags are never
deleted.
"""

import logging
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime
from typing import Any, Iterable, List, Optional, Tuple

from supabase import Client

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
from tasktracker.services.supabase_client import SupabaseClient
from tasktracker.utils.clock import ensure_utc
from tasktracker.utils.errors import StorageError, TagConflictError

logger = logging.getLogger(__name__)

TASKS_TABLE = "tasks"
COMMENTS_TABLE = "comments"
TAGS_TABLE = "tags"
TASK_TAGS_TABLE = "task_tags"

# Embedded resources resolved by PostgREST through the foreign keys
TASK_WITH_RELATIONSHIPS = "*, comments(*), tags(*)"

UNIQUE_VIOLATION = "23505"

# Identity columns are bigint; larger ids cannot match a row
MAX_ID = 2**63 - 1

# (table, key column, key value) of rows inserted by the active unit of work
_journal_var: ContextVar[Optional[list[tuple[str, str, Any]]]] = ContextVar("supabase_journal", default=None)


def _in_id_range(value: int) -> bool:
    return 0 < value <= MAX_ID


def _is_unique_violation(error: Exception) -> bool:
    code = getattr(error, "code", None)
    return code == UNIQUE_VIOLATION or "duplicate key" in str(error).lower()


def _row_to_aggregate(row: dict) -> TaskAggregate:
    row = dict(row)
    comments = [Comment.model_validate(c) for c in row.pop("comments", None) or []]
    tags = [Tag.model_validate(t) for t in row.pop("tags", None) or []]
    comments.sort(key=lambda c: (c.created_at, c.id), reverse=True)
    tags.sort(key=lambda t: t.name)
    return TaskAggregate(task=Task.model_validate(row), comments=comments, tags=tags)


def _task_fields(task: Task) -> dict:
    data = task.model_dump(mode="json", exclude={"id", "created_at", "updated_at"})
    if task.due_date is not None:
        data["due_date"] = ensure_utc(task.due_date).isoformat()
    return data


class _SupabaseRepository:
    def __init__(self, storage: "SupabaseStorage"):
        self._storage = storage

    def _session(self) -> SupabaseClient:
        return SupabaseClient(self._storage.client)


class SupabaseTaskRepository(_SupabaseRepository, TaskRepository):
    def insert(self, task: Task) -> Task:
        with self._session() as client:
            try:
                result = client.table(TASKS_TABLE).insert(_task_fields(task)).execute()
            except Exception as e:
                raise StorageError(f"Failed to create task: {e}") from e
            if not result.data:
                raise StorageError("Failed to create task: no data returned")
            created = Task.model_validate(result.data[0])
            self._storage.record_insert(TASKS_TABLE, "id", created.id)
            return created

    def update(self, task: Task) -> Task:
        with self._session() as client:
            try:
                result = client.table(TASKS_TABLE).update(_task_fields(task)).eq("id", task.id).execute()
            except Exception as e:
                raise StorageError(f"Failed to update task: {e}") from e
            if not result.data:
                raise StorageError(f"Failed to update task: {task.id}")
            return Task.model_validate(result.data[0])

    def find_active_by_id(self, task_id: int) -> Optional[Task]:
        if not _in_id_range(task_id):
            return None
        with self._session() as client:
            try:
                result = (
                    client.table(TASKS_TABLE).select("*")
                    .eq("id", task_id).eq("deleted", False)
                    .limit(1).execute()
                )
            except Exception as e:
                raise StorageError(f"Failed to get task: {e}") from e
            return Task.model_validate(result.data[0]) if result.data else None

    def find_active_with_relationships(self, task_id: int) -> Optional[TaskAggregate]:
        if not _in_id_range(task_id):
            return None
        with self._session() as client:
            try:
                result = (
                    client.table(TASKS_TABLE).select(TASK_WITH_RELATIONSHIPS)
                    .eq("id", task_id).eq("deleted", False)
                    .limit(1).execute()
                )
            except Exception as e:
                raise StorageError(f"Failed to get task: {e}") from e
            return _row_to_aggregate(result.data[0]) if result.data else None

    def find_active(
        self,
        params: PageParams,
        status: Optional[TaskStatus] = None,
        priority: Optional[TaskPriority] = None,
        assignee: Optional[str] = None,
    ) -> Tuple[List[TaskAggregate], int]:
        with self._session() as client:
            try:
                query = client.table(TASKS_TABLE).select(TASK_WITH_RELATIONSHIPS, count="exact").eq("deleted", False)
                if status is not None:
                    query = query.eq("status", status.value)
                if priority is not None:
                    query = query.eq("priority", priority.value)
                if assignee is not None:
                    query = query.eq("assignee", assignee)
                result = (
                    query.order(params.sort_by, desc=params.descending, nullsfirst=params.descending)
                    .order("id")
                    .range(params.offset, params.offset + params.size - 1)
                    .execute()
                )
            except Exception as e:
                raise StorageError(f"Failed to list tasks: {e}") from e
            rows = result.data or []
            total = result.count if result.count is not None else len(rows)
            return [_row_to_aggregate(r) for r in rows], total

    def find_overdue(self, now: datetime) -> List[TaskAggregate]:
        with self._session() as client:
            try:
                result = (
                    client.table(TASKS_TABLE).select(TASK_WITH_RELATIONSHIPS)
                    .eq("deleted", False)
                    .lt("due_date", ensure_utc(now).isoformat())
                    .neq("status", TaskStatus.DONE.value)
                    .order("due_date").order("id")
                    .execute()
                )
            except Exception as e:
                raise StorageError(f"Failed to list overdue tasks: {e}") from e
            return [_row_to_aggregate(r) for r in result.data or []]

    def count_by_status(self) -> List[Tuple[TaskStatus, int]]:
        with self._session() as client:
            try:
                # GROUP BY runs in the database function
                result = client.rpc("count_tasks_by_status", {}).execute()
            except Exception as e:
                raise StorageError(f"Failed to count tasks by status: {e}") from e
            return [
                (TaskStatus(row["status"]), int(row["count"]))
                for row in result.data or []
                if int(row["count"]) > 0
            ]

    def add_tags(self, task_id: int, tag_ids: Iterable[int]) -> None:
        rows = [{"task_id": task_id, "tag_id": tag_id} for tag_id in tag_ids]
        if not rows:
            return
        with self._session() as client:
            try:
                client.table(TASK_TAGS_TABLE).insert(rows).execute()
            except Exception as e:
                raise StorageError(f"Failed to tag task: {e}") from e
            self._storage.record_insert(TASK_TAGS_TABLE, "task_id", task_id)


class SupabaseCommentRepository(_SupabaseRepository, CommentRepository):
    def insert(self, comment: Comment) -> Comment:
        with self._session() as client:
            try:
                result = client.table(COMMENTS_TABLE).insert({
                    "task_id": comment.task_id,
                    "content": comment.content,
                    "author": comment.author,
                }).execute()
            except Exception as e:
                raise StorageError(f"Failed to create comment: {e}") from e
            if not result.data:
                raise StorageError("Failed to create comment: no data returned")
            created = Comment.model_validate(result.data[0])
            self._storage.record_insert(COMMENTS_TABLE, "id", created.id)
            return created

    def find_by_id(self, comment_id: int) -> Optional[Comment]:
        if not _in_id_range(comment_id):
            return None
        with self._session() as client:
            try:
                result = client.table(COMMENTS_TABLE).select("*").eq("id", comment_id).limit(1).execute()
            except Exception as e:
                raise StorageError(f"Failed to get comment: {e}") from e
            return Comment.model_validate(result.data[0]) if result.data else None

    def find_by_task(self, task_id: int) -> List[Comment]:
        if not _in_id_range(task_id):
            return []
        with self._session() as client:
            try:
                result = (
                    client.table(COMMENTS_TABLE).select("*")
                    .eq("task_id", task_id)
                    .order("created_at", desc=True).order("id", desc=True)
                    .execute()
                )
            except Exception as e:
                raise StorageError(f"Failed to list comments: {e}") from e
            return [Comment.model_validate(r) for r in result.data or []]

    def delete(self, comment_id: int) -> None:
        with self._session() as client:
            try:
                client.table(COMMENTS_TABLE).delete().eq("id", comment_id).execute()
            except Exception as e:
                raise StorageError(f"Failed to delete comment: {e}") from e


class SupabaseTagRepository(_SupabaseRepository, TagRepository):
    def find_by_names(self, names: Iterable[str]) -> List[Tag]:
        wanted = sorted(set(names))
        if not wanted:
            return []
        with self._session() as client:
            try:
                result = client.table(TAGS_TABLE).select("*").in_("name", wanted).execute()
            except Exception as e:
                raise StorageError(f"Failed to get tags: {e}") from e
            return [Tag.model_validate(r) for r in result.data or []]

    def create(self, name: str) -> Tag:
        with self._session() as client:
            try:
                result = client.table(TAGS_TABLE).insert({"name": name}).execute()
            except Exception as e:
                if _is_unique_violation(e):
                    raise TagConflictError(name, cause=e) from e
                raise StorageError(f"Failed to create tag: {e}") from e
            if not result.data:
                raise StorageError("Failed to create tag: no data returned")
            return Tag.model_validate(result.data[0])


class SupabaseStorage(Storage):
    """Storage backed by the Supabase REST API."""

    def __init__(self, client: Optional[Client] = None):
        self.client = client
        self.tasks = SupabaseTaskRepository(self)
        self.comments = SupabaseCommentRepository(self)
        self.tags = SupabaseTagRepository(self)

    def record_insert(self, table: str, column: str, value: Any) -> None:
        journal = _journal_var.get()
        if journal is not None:
            journal.append((table, column, value))

    @contextmanager
    def unit_of_work(self):
        if _journal_var.get() is not None:
            # Nested block joins the outer unit
            yield
            return
        journal: list[tuple[str, str, Any]] = []
        token = _journal_var.set(journal)
        try:
            yield
        except BaseException:
            self._compensate(journal)
            raise
        finally:
            _journal_var.reset(token)

    def _compensate(self, journal: list[tuple[str, str, Any]]) -> None:
        if not journal:
            return
        logger.warning("Rolling back unit of work", extra={"rows": len(journal)})
        with SupabaseClient(self.client) as client:
            for table, column, value in reversed(journal):
                try:
                    client.table(table).delete().eq(column, value).execute()
                except Exception:
                    # Keep undoing the remaining rows; the original error is re-raised by the caller
                    logger.exception(
                        "Failed to undo insert",
                        extra={"table": table, "column": column, "value": value}
                    )
