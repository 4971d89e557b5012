"""Process-wide service instances (lazy singletons)."""

import logging
from typing import Optional

from tasktracker.repositories.base import Storage
from tasktracker.services.audit_log import AuditLogService
from tasktracker.services.comment_service import CommentService
from tasktracker.services.task_service import TaskService
from tasktracker.utils.app_config import AppConfig

logger = logging.getLogger(__name__)

_storage: Optional[Storage] = None
_audit_log: Optional[AuditLogService] = None
_task_service: Optional[TaskService] = None
_comment_service: Optional[CommentService] = None


def _create_storage(backend: str) -> Storage:
    if backend == "supabase":
        from tasktracker.repositories.supabase_store import SupabaseStorage
        return SupabaseStorage()
    if backend == "memory":
        from tasktracker.repositories.memory import InMemoryStorage
        return InMemoryStorage()
    raise ValueError(f"Unknown STORAGE_BACKEND: {backend}")


def get_storage() -> Storage:
    """Get or create the storage backend selected by STORAGE_BACKEND."""
    global _storage
    if _storage is None:
        _storage = _create_storage(AppConfig.STORAGE_BACKEND)
        logger.info("Storage backend initialized", extra={"backend": AppConfig.STORAGE_BACKEND})
    return _storage


def get_audit_log() -> AuditLogService:
    global _audit_log
    if _audit_log is None:
        _audit_log = AuditLogService()
    return _audit_log


def get_task_service() -> TaskService:
    global _task_service
    if _task_service is None:
        _task_service = TaskService(get_storage(), audit_log=get_audit_log())
    return _task_service


def get_comment_service() -> CommentService:
    global _comment_service
    if _comment_service is None:
        _comment_service = CommentService(get_storage(), audit_log=get_audit_log())
    return _comment_service


def reset_services(storage: Optional[Storage] = None) -> None:
    """Drop cached instances; optionally install a specific storage (tests)."""
    global _storage, _audit_log, _task_service, _comment_service
    if _audit_log is not None:
        _audit_log.shutdown(wait=True)
    _storage = storage
    _audit_log = None
    _task_service = None
    _comment_service = None
