"""Comment service - comments scoped to a non-deleted task."""

from typing import Any, List, Optional

from tasktracker.models.comment import Comment
from tasktracker.models.requests import CreateCommentRequest, parse_request
from tasktracker.models.responses import CommentResponse
from tasktracker.repositories.base import Storage
from tasktracker.services.audit_log import AuditLogService
from tasktracker.utils.errors import NotFoundError
from tasktracker.utils.logging import get_structured_logger

logger = get_structured_logger(__name__)


class CommentService:
    def __init__(self, storage: Storage, audit_log: Optional[AuditLogService] = None):
        self.storage = storage
        self.audit_log = audit_log or AuditLogService(enabled=False)

    def _require_task(self, task_id: int) -> None:
        if self.storage.tasks.find_active_by_id(task_id) is None:
            raise NotFoundError("Task", task_id)

    def add_comment(self, task_id: int, content: Any = None, author: Optional[str] = None) -> CommentResponse:
        """
        Add a comment to a task.

        ``content`` may be a plain string (with ``author``) or a
        CreateCommentRequest / mapping carrying both fields.
        """
        if isinstance(content, str) or content is None:
            payload: Any = {"content": content, "author": author}
        else:
            payload = content
        request = parse_request(CreateCommentRequest, payload)
        logger.info("Adding comment to task", task_id=task_id)

        with self.storage.unit_of_work():
            self._require_task(task_id)
            saved = self.storage.comments.insert(Comment(
                task_id=task_id,
                content=request.content,
                author=request.author,
            ))

        self.audit_log.log_task_event("COMMENT_ADDED", task_id, f"commentId={saved.id}")
        return CommentResponse.from_entity(saved)

    def list_comments(self, task_id: int) -> List[CommentResponse]:
        logger.debug("Fetching comments for task", task_id=task_id)
        self._require_task(task_id)
        return [CommentResponse.from_entity(c) for c in self.storage.comments.find_by_task(task_id)]

    def delete_comment(self, comment_id: int, task_id: Optional[int] = None) -> None:
        """Physically remove a comment. With ``task_id`` the comment must belong to that task."""
        logger.info("Deleting comment", comment_id=comment_id, task_id=task_id)

        with self.storage.unit_of_work():
            comment = self.storage.comments.find_by_id(comment_id)
            if comment is None or (task_id is not None and comment.task_id != task_id):
                raise NotFoundError("Comment", comment_id)
            self.storage.comments.delete(comment_id)

        self.audit_log.log_task_event("COMMENT_DELETED", comment.task_id, f"commentId={comment_id}")
