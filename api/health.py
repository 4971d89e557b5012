"""Health check endpoint.

GET /api/health -> 200 when the configured storage answers a query, 503 otherwise
"""

import json

from tasktracker.services.registry import get_storage
from tasktracker.utils.app_config import AppConfig
from tasktracker.utils.logging import correlation_context, get_structured_logger, setup_logging
from tasktracker.utils.logging_config import LoggingConfig

setup_logging()
logger = get_structured_logger(__name__)


def check_storage() -> None:
    """Run the cheapest read the storage supports. Raises if the backend is unreachable."""
    get_storage().tasks.count_by_status()


def handler(request: dict) -> dict:
    """Report service status and whether storage is reachable."""
    with correlation_context() as correlation_id:
        payload = {
            "status": "ok",
            "service": LoggingConfig.LOG_SERVICE_NAME,
            "storage": AppConfig.STORAGE_BACKEND,
        }
        status_code = 200
        try:
            check_storage()
        except Exception as e:
            logger.error("Storage health check failed", error=str(e), type=type(e).__name__)
            payload["status"] = "unavailable"
            status_code = 503

        return {
            "statusCode": status_code,
            "headers": {
                "Content-Type": "application/json",
                LoggingConfig.LOG_CORRELATION_ID_HEADER: correlation_id,
            },
            "body": json.dumps(payload),
        }
