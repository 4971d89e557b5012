"""Tests for the health check endpoint."""

import pytest
from unittest.mock import MagicMock, patch
from api.health import handler
from tasktracker.utils.errors import StorageError
from tests.utils.helpers import create_request, response_json


@pytest.mark.unit
def test_health_reports_reachable_storage(installed_storage):
    response = handler(create_request("GET", "/api/health"))

    assert response["statusCode"] == 200
    body = response_json(response)
    assert body == {"status": "ok", "service": "task-tracker", "storage": "memory"}


@pytest.mark.unit
def test_health_queries_storage():
    storage = MagicMock()

    with patch("api.health.get_storage", return_value=storage):
        response = handler(create_request("GET", "/api/health"))

    assert response["statusCode"] == 200
    storage.tasks.count_by_status.assert_called_once_with()


@pytest.mark.unit
def test_health_unavailable_when_storage_fails():
    storage = MagicMock()
    storage.tasks.count_by_status.side_effect = StorageError("Failed to count tasks: connection refused")

    with patch("api.health.get_storage", return_value=storage):
        response = handler(create_request("GET", "/api/health"))

    assert response["statusCode"] == 503
    assert response_json(response)["status"] == "unavailable"
    assert "connection refused" not in response["body"]


@pytest.mark.unit
def test_health_unavailable_when_storage_cannot_be_built():
    with patch("api.health.get_storage", side_effect=ValueError("Unknown STORAGE_BACKEND: 'sqlite'")):
        response = handler(create_request("GET", "/api/health"))

    assert response["statusCode"] == 503
