"""Logging configuration for the task tracker, driven by environment variables."""

import os
import logging
import sys
from pythonjsonlogger.json import JsonFormatter


def _level(name: str, default: int = logging.INFO) -> int:
    return getattr(logging, name.upper(), default)


class LoggingConfig:
    """Process-wide logging settings."""

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
    LOG_FORMAT = os.environ.get("LOG_FORMAT", "json").lower()
    LOG_SERVICE_NAME = os.environ.get("LOG_SERVICE_NAME", "task-tracker")
    LOG_CORRELATION_ID_HEADER = os.environ.get("LOG_CORRELATION_ID_HEADER", "X-Correlation-ID")
    LOG_SLOW_OPERATION_THRESHOLD_MS = int(os.environ.get("LOG_SLOW_OPERATION_THRESHOLD_MS", "1000"))
    # Audit events can be kept at INFO while the rest of the app runs at WARNING
    LOG_AUDIT_LEVEL = os.environ.get("LOG_AUDIT_LEVEL", "INFO").upper()

    _configured = False

    @classmethod
    def build_formatter(cls) -> logging.Formatter:
        if cls.LOG_FORMAT == "json":
            return JsonFormatter(
                "%(timestamp)s %(levelname)s %(name)s %(message)s",
                timestamp=True,
                static_fields={"service": cls.LOG_SERVICE_NAME},
            )
        return logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    @classmethod
    def setup_logging(cls, force: bool = False) -> None:
        """Install one stdout handler on the root logger. Repeat calls are no-ops unless forced."""
        if cls._configured and not force:
            return

        level = _level(cls.LOG_LEVEL)
        root_logger = logging.getLogger()
        root_logger.setLevel(level)
        root_logger.handlers.clear()

        # Serverless runtimes collect stdout
        handler = logging.StreamHandler(sys.stdout)
        handler.setLevel(logging.NOTSET)
        handler.setFormatter(cls.build_formatter())
        root_logger.addHandler(handler)

        logging.getLogger("tasktracker.audit").setLevel(_level(cls.LOG_AUDIT_LEVEL))

        # Supabase client stack is chatty at INFO
        for noisy in ("httpx", "httpcore", "hpack", "postgrest", "supabase"):
            logging.getLogger(noisy).setLevel(logging.WARNING)

        cls._configured = True


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance with the given name."""
    return logging.getLogger(name)
