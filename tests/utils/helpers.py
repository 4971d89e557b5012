"""Test helper functions."""

import json
from datetime import datetime
from typing import Any, Dict, Optional


def _json_default(value: Any) -> str:
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


def create_request(
    method: str = "GET",
    path: str = "/api/tasks",
    body: Any = None,
    query: Optional[Dict[str, Any]] = None,
    headers: Optional[Dict[str, str]] = None,
) -> Dict[str, Any]:
    """Create a Vercel-style request dict for the task endpoints."""
    if headers is None:
        headers = {"content-type": "application/json"}

    return {
        "method": method,
        "path": path,
        "headers": headers,
        "body": json.dumps(body, default=_json_default) if isinstance(body, dict) else body,
        "query": query or {},
    }


def response_json(response: Dict[str, Any]) -> Any:
    """Decode the JSON body of a handler response."""
    return json.loads(response["body"]) if response["body"] else None
