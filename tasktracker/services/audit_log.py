"""Fire-and-forget audit logging on a small worker pool."""

from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Optional

from tasktracker.utils.app_config import AppConfig
from tasktracker.utils.logging import get_correlation_id, get_structured_logger

logger = get_structured_logger(__name__)


class AuditLogService:
    """
    Record task lifecycle events without blocking the request worker.

    Events are written to the ``tasktracker.audit`` logger from a background
    thread. Failures are logged and never reach the caller.
    """

    def __init__(self, enabled: Optional[bool] = None, max_workers: Optional[int] = None):
        self.enabled = AppConfig.AUDIT_LOG_ENABLED if enabled is None else enabled
        self._executor: Optional[ThreadPoolExecutor] = None
        if self.enabled:
            self._executor = ThreadPoolExecutor(
                max_workers=max_workers or AppConfig.AUDIT_LOG_WORKERS,
                thread_name_prefix="audit",
            )
        self._audit_logger = get_structured_logger("tasktracker.audit")

    def log_task_event(self, action: str, task_id: Any, details: str = "") -> Optional[Future]:
        if not self.enabled or self._executor is None:
            return None
        # Worker threads do not inherit the request's context
        correlation_id = get_correlation_id()
        future = self._executor.submit(self._write, action, task_id, details, correlation_id)
        future.add_done_callback(self._report_failure)
        return future

    def _write(self, action: str, task_id: Any, details: str, correlation_id: Optional[str]) -> None:
        self._audit_logger.info(
            f"AUDIT | action={action} taskId={task_id} details={details}",
            audit_action=action,
            task_id=task_id,
            correlation_id=correlation_id,
        )

    @staticmethod
    def _report_failure(future: Future) -> None:
        error = future.exception()
        if error is not None:
            logger.error("Audit event failed", error=str(error), type=type(error).__name__)

    def shutdown(self, wait: bool = True) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=wait)
            self._executor = None
