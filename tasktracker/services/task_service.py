"""Task service - create, read, update, soft-delete, filter and report on tasks."""

from typing import Any, List, Optional

from tasktracker.models.paging import Page, PageParams
from tasktracker.models.requests import CreateTaskRequest, UpdateTaskRequest, parse_request
from tasktracker.models.responses import TaskResponse, TaskStatusReport
from tasktracker.models.task import Task, TaskAggregate, TaskPriority, TaskStatus
from tasktracker.repositories.base import Storage
from tasktracker.services.audit_log import AuditLogService
from tasktracker.services.tag_resolver import TagResolver
from tasktracker.utils.clock import utc_now
from tasktracker.utils.errors import NotFoundError, ValidationFailure
from tasktracker.utils.logging import get_structured_logger, preview_text, timed

logger = get_structured_logger(__name__)


def _coerce_enum(enum_cls, value: Any, field_name: str):
    """Accept enum members or their names; None stays None."""
    if value is None or isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ValidationFailure({field_name: f"must be one of: {allowed}"})


class TaskService:
    """
    Orchestrates task operations on top of a Storage backend.

    Mutations run inside one unit of work; reads are single queries. Every
    response carries the derived ``overdue`` flag computed at call time.
    """

    def __init__(self, storage: Storage, audit_log: Optional[AuditLogService] = None,
                 tag_resolver: Optional[TagResolver] = None):
        self.storage = storage
        self.audit_log = audit_log or AuditLogService(enabled=False)
        self.tag_resolver = tag_resolver or TagResolver(storage.tags)

    def _to_response(self, aggregate: TaskAggregate) -> TaskResponse:
        return TaskResponse.from_aggregate(aggregate, utc_now())

    def _get_active(self, task_id: int) -> Task:
        task = self.storage.tasks.find_active_by_id(task_id)
        if task is None:
            raise NotFoundError("Task", task_id)
        return task

    # ===== CRUD =====

    @timed("task_service.create")
    def create(self, request: Any) -> TaskResponse:
        """Create a task, resolving (and creating) its tags in the same unit of work."""
        request = parse_request(CreateTaskRequest, request)
        logger.info("Creating task", title=preview_text(request.title))

        with self.storage.unit_of_work():
            task = self.storage.tasks.insert(Task(
                title=request.title,
                description=request.description,
                status=request.status,
                priority=request.priority,
                assignee=request.assignee,
                due_date=request.due_date,
            ))
            if request.tag_names:
                tags = self.tag_resolver.resolve_or_create(request.tag_names)
                self.storage.tasks.add_tags(task.id, [tag.id for tag in tags])
            aggregate = self.storage.tasks.find_active_with_relationships(task.id)

        logger.info("Task created", task_id=task.id)
        self.audit_log.log_task_event("TASK_CREATED", task.id, f"title={preview_text(task.title)}")
        return self._to_response(aggregate)

    def get_by_id(self, task_id: int) -> TaskResponse:
        aggregate = self.storage.tasks.find_active_with_relationships(task_id)
        if aggregate is None:
            raise NotFoundError("Task", task_id)
        return self._to_response(aggregate)

    @timed("task_service.update")
    def update(self, task_id: int, request: Any) -> TaskResponse:
        """Merge the supplied fields into the task; omitted fields keep their values."""
        request = parse_request(UpdateTaskRequest, request)
        changes = request.changes()
        logger.info("Updating task", task_id=task_id, fields=sorted(changes))

        with self.storage.unit_of_work():
            task = self._get_active(task_id)
            updated = self.storage.tasks.update(task.model_copy(update=changes))
            aggregate = self.storage.tasks.find_active_with_relationships(updated.id)

        logger.info("Task updated", task_id=task_id)
        self.audit_log.log_task_event("TASK_UPDATED", task_id, f"fields={','.join(sorted(changes))}")
        return self._to_response(aggregate)

    def soft_delete(self, task_id: int) -> None:
        """Flag the task as deleted. It is unreachable by id afterwards."""
        logger.info("Soft-deleting task", task_id=task_id)

        with self.storage.unit_of_work():
            task = self._get_active(task_id)
            self.storage.tasks.update(task.model_copy(update={"deleted": True}))

        logger.info("Task soft-deleted", task_id=task_id)
        self.audit_log.log_task_event("TASK_DELETED", task_id)

    # ===== LISTING / FILTERING =====

    def list(self, params: Optional[PageParams] = None) -> Page[TaskResponse]:
        params = params or PageParams()
        rows, total = self.storage.tasks.find_active(params)
        return Page[TaskResponse].build([self._to_response(r) for r in rows], params, total)

    def list_by_status(self, status: Any, params: Optional[PageParams] = None) -> Page[TaskResponse]:
        status = _coerce_enum(TaskStatus, status, "status")
        if status is None:
            raise ValidationFailure({"status": "Status is required"})
        params = params or PageParams()
        rows, total = self.storage.tasks.find_active(params, status=status)
        return Page[TaskResponse].build([self._to_response(r) for r in rows], params, total)

    def list_with_filters(
        self,
        status: Any = None,
        priority: Any = None,
        assignee: Optional[str] = None,
        params: Optional[PageParams] = None,
    ) -> Page[TaskResponse]:
        """Filter by any combination of status, priority and assignee (exact match)."""
        status = _coerce_enum(TaskStatus, status, "status")
        priority = _coerce_enum(TaskPriority, priority, "priority")
        params = params or PageParams()
        rows, total = self.storage.tasks.find_active(
            params, status=status, priority=priority, assignee=assignee
        )
        return Page[TaskResponse].build([self._to_response(r) for r in rows], params, total)

    def list_overdue(self) -> List[TaskResponse]:
        now = utc_now()
        return [TaskResponse.from_aggregate(a, now) for a in self.storage.tasks.find_overdue(now)]

    # ===== REPORTING =====

    def count_by_status(self) -> List[TaskStatusReport]:
        return [
            TaskStatusReport(status=status, count=count)
            for status, count in self.storage.tasks.count_by_status()
        ]
