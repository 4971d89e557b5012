"""Task and comment REST endpoints (Vercel-style request/response dicts).

POST   /api/tasks                                 -> create (201)
GET    /api/tasks                                 -> list (page, size, sortBy, sortDir)
GET    /api/tasks/{id}                            -> get by id
PUT    /api/tasks/{id}                            -> partial update (PATCH accepted too)
DELETE /api/tasks/{id}                            -> soft delete (204)
GET    /api/tasks/status/{status}                 -> list by status
GET    /api/tasks/filter                          -> filter by status/priority/assignee
GET    /api/tasks/overdue                         -> overdue tasks
GET    /api/tasks/reports/by-status               -> counts per status
POST   /api/tasks/{taskId}/comments               -> add comment (201)
GET    /api/tasks/{taskId}/comments               -> list comments
DELETE /api/tasks/{taskId}/comments/{commentId}   -> delete comment (204)
"""

import json
import re
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from pydantic import BaseModel

from tasktracker.models.paging import PageParams
from tasktracker.services.registry import get_comment_service, get_task_service
from tasktracker.utils.errors import NotFoundError, TaskTrackerError, ValidationFailure
from tasktracker.utils.logging import correlation_context, get_structured_logger, setup_logging
from tasktracker.utils.logging_config import LoggingConfig

setup_logging()
logger = get_structured_logger(__name__)


class BadRequest(TaskTrackerError):
    """Malformed request that never reached a service."""
    pass


def _json_response(status_code: int, payload: Any = None, correlation_id: Optional[str] = None) -> dict:
    headers = {"Content-Type": "application/json"}
    if correlation_id:
        headers[LoggingConfig.LOG_CORRELATION_ID_HEADER] = correlation_id
    if isinstance(payload, BaseModel):
        payload = payload.model_dump(mode="json", by_alias=True)
    elif isinstance(payload, list):
        payload = [p.model_dump(mode="json", by_alias=True) if isinstance(p, BaseModel) else p for p in payload]
    return {
        "statusCode": status_code,
        "headers": headers,
        "body": json.dumps(payload) if payload is not None else "",
    }


def _error_body(status_code: int, message: str, field_errors: Optional[dict] = None) -> dict:
    return {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "status": status_code,
        "message": message,
        "fieldErrors": field_errors,
    }


def _error_response(error: Exception, correlation_id: Optional[str]) -> dict:
    if isinstance(error, NotFoundError):
        logger.warning("Resource not found", error=str(error))
        return _json_response(404, _error_body(404, str(error)), correlation_id)
    if isinstance(error, ValidationFailure):
        logger.warning("Validation error", field_errors=error.field_errors)
        return _json_response(400, _error_body(400, str(error), error.field_errors), correlation_id)
    if isinstance(error, BadRequest):
        logger.warning("Bad request", error=str(error))
        return _json_response(400, _error_body(400, str(error)), correlation_id)
    logger.error("Unexpected error", exc_info=True, error=str(error), type=type(error).__name__)
    return _json_response(500, _error_body(500, "An unexpected error occurred"), correlation_id)


def _header(headers: dict, name: str) -> Optional[str]:
    for key, value in (headers or {}).items():
        if key.lower() == name.lower():
            return value
    return None


def _query(request: dict) -> dict:
    query = request.get("query", {}) or {}
    # Vercel may hand over repeated parameters as lists
    return {k: (v[0] if isinstance(v, list) and v else v) for k, v in query.items()}


def _body(request: dict) -> dict:
    raw = request.get("body")
    if raw is None or raw == "":
        return {}
    if isinstance(raw, (bytes, bytearray)):
        raw = raw.decode("utf-8")
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as e:
            raise BadRequest("Malformed JSON request body") from e
    if not isinstance(raw, dict):
        raise BadRequest("Request body must be a JSON object")
    return raw


def _blank_to_none(value: Any) -> Any:
    return None if value == "" else value


# ===== ROUTE HANDLERS =====

def _create_task(request: dict, **_: str) -> tuple:
    return 201, get_task_service().create(_body(request))


def _list_tasks(request: dict, **_: str) -> tuple:
    params = PageParams.from_query(_query(request))
    return 200, get_task_service().list(params)


def _get_task(request: dict, task_id: str) -> tuple:
    return 200, get_task_service().get_by_id(int(task_id))


def _update_task(request: dict, task_id: str) -> tuple:
    return 200, get_task_service().update(int(task_id), _body(request))


def _delete_task(request: dict, task_id: str) -> tuple:
    get_task_service().soft_delete(int(task_id))
    return 204, None


def _tasks_by_status(request: dict, status: str) -> tuple:
    params = PageParams.from_query(_query(request))
    return 200, get_task_service().list_by_status(status, params)


def _filter_tasks(request: dict, **_: str) -> tuple:
    query = _query(request)
    params = PageParams.from_query(query)
    return 200, get_task_service().list_with_filters(
        status=_blank_to_none(query.get("status")),
        priority=_blank_to_none(query.get("priority")),
        assignee=_blank_to_none(query.get("assignee")),
        params=params,
    )


def _overdue_tasks(request: dict, **_: str) -> tuple:
    return 200, get_task_service().list_overdue()


def _status_report(request: dict, **_: str) -> tuple:
    return 200, get_task_service().count_by_status()


def _add_comment(request: dict, task_id: str) -> tuple:
    return 201, get_comment_service().add_comment(int(task_id), _body(request))


def _list_comments(request: dict, task_id: str) -> tuple:
    return 200, get_comment_service().list_comments(int(task_id))


def _delete_comment(request: dict, task_id: str, comment_id: str) -> tuple:
    get_comment_service().delete_comment(int(comment_id), task_id=int(task_id))
    return 204, None


ROUTES: list[tuple[str, re.Pattern, Callable[..., tuple]]] = [
    ("POST", re.compile(r"^/api/tasks/?$"), _create_task),
    ("GET", re.compile(r"^/api/tasks/?$"), _list_tasks),
    ("GET", re.compile(r"^/api/tasks/overdue/?$"), _overdue_tasks),
    ("GET", re.compile(r"^/api/tasks/filter/?$"), _filter_tasks),
    ("GET", re.compile(r"^/api/tasks/reports/by-status/?$"), _status_report),
    ("GET", re.compile(r"^/api/tasks/status/(?P<status>[^/]+)/?$"), _tasks_by_status),
    ("POST", re.compile(r"^/api/tasks/(?P<task_id>\d+)/comments/?$"), _add_comment),
    ("GET", re.compile(r"^/api/tasks/(?P<task_id>\d+)/comments/?$"), _list_comments),
    ("DELETE", re.compile(r"^/api/tasks/(?P<task_id>\d+)/comments/(?P<comment_id>\d+)/?$"), _delete_comment),
    ("GET", re.compile(r"^/api/tasks/(?P<task_id>\d+)/?$"), _get_task),
    ("PUT", re.compile(r"^/api/tasks/(?P<task_id>\d+)/?$"), _update_task),
    ("PATCH", re.compile(r"^/api/tasks/(?P<task_id>\d+)/?$"), _update_task),
    ("DELETE", re.compile(r"^/api/tasks/(?P<task_id>\d+)/?$"), _delete_task),
]


def _resolve(method: str, path: str):
    path_matched = False
    for route_method, pattern, func in ROUTES:
        match = pattern.match(path)
        if not match:
            continue
        path_matched = True
        if route_method == method:
            return func, match.groupdict()
    return None, path_matched


def handler(request: dict) -> dict:
    """Dispatch a request dict to the matching task/comment operation."""
    method = (request.get("method") or "GET").upper()
    path = (request.get("path") or "").split("?", 1)[0]
    incoming_id = _header(request.get("headers", {}), LoggingConfig.LOG_CORRELATION_ID_HEADER)

    with correlation_context(incoming_id) as correlation_id:
        logger.info(f"{method} {path}", method=method, path=path)

        func, params = _resolve(method, path)
        if func is None:
            status = 405 if params else 404
            message = "Method not allowed" if params else "No route for path"
            return _json_response(status, _error_body(status, message), correlation_id)

        try:
            status_code, payload = func(request, **params)
        except Exception as e:
            return _error_response(e, correlation_id)

        return _json_response(status_code, payload, correlation_id)
