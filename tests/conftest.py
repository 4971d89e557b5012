"""Shared pytest fixtures and configuration."""

import os
import pytest
from unittest.mock import MagicMock
from freezegun import freeze_time

# Set test environment variables before application modules read them
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("STORAGE_BACKEND", "memory")
os.environ.setdefault("AUDIT_LOG_ENABLED", "false")
os.environ.setdefault("LOG_FORMAT", "text")
os.environ.setdefault("SUPABASE_URL", "https://test.supabase.co")
os.environ.setdefault("SUPABASE_SERVICE_ROLE_KEY", "test-key")

from tasktracker.repositories.memory import InMemoryStorage  # noqa: E402
from tasktracker.services.audit_log import AuditLogService  # noqa: E402
from tasktracker.services.comment_service import CommentService  # noqa: E402
from tasktracker.services.registry import reset_services  # noqa: E402
from tasktracker.services.task_service import TaskService  # noqa: E402


@pytest.fixture
def storage():
    """Fresh in-memory storage per test."""
    return InMemoryStorage()


@pytest.fixture
def task_service(storage):
    return TaskService(storage, audit_log=AuditLogService(enabled=False))


@pytest.fixture
def comment_service(storage):
    return CommentService(storage, audit_log=AuditLogService(enabled=False))


@pytest.fixture
def installed_storage(storage):
    """Install the test storage behind the module-level service registry."""
    reset_services(storage)
    yield storage
    reset_services()


@pytest.fixture
def mock_supabase_client():
    """Mock Supabase client with a chainable query builder per table."""
    client = MagicMock()
    tables: dict = {}

    def table(name):
        if name not in tables:
            builder = MagicMock(name=f"table:{name}")
            for method in ("select", "insert", "update", "delete", "eq", "neq", "lt",
                           "in_", "order", "range", "limit"):
                getattr(builder, method).return_value = builder
            builder.execute.return_value = MagicMock(data=[], count=0)
            tables[name] = builder
        return tables[name]

    client.table.side_effect = table
    client.tables = tables
    return client


@pytest.fixture
def freeze_time_fixture():
    """Fixture for freezing time in tests."""
    with freeze_time("2024-12-09 12:00:00") as frozen_time:
        yield frozen_time
