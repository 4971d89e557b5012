"""Tests for request validation and partial-update semantics."""

import pytest
from datetime import datetime, timezone
from pydantic import ValidationError
from tasktracker.models.requests import (
    CreateCommentRequest,
    CreateTaskRequest,
    UpdateTaskRequest,
    parse_request,
)
from tasktracker.models.task import TaskPriority, TaskStatus
from tasktracker.utils.errors import ValidationFailure


@pytest.mark.unit
def test_create_request_valid():
    request = CreateTaskRequest(
        title="Fix login bug",
        status="TODO",
        priority="HIGH",
        tagNames=["backend", "urgent", "backend"],
    )

    assert request.status is TaskStatus.TODO
    assert request.priority is TaskPriority.HIGH
    assert request.tag_names == {"backend", "urgent"}


@pytest.mark.unit
def test_create_request_accepts_camel_and_snake_case():
    due = "2025-01-15T09:30:00Z"
    camel = CreateTaskRequest.model_validate({"title": "A", "status": "TODO", "priority": "LOW", "dueDate": due})
    snake = CreateTaskRequest.model_validate({"title": "A", "status": "TODO", "priority": "LOW", "due_date": due})

    assert camel.due_date == snake.due_date == datetime(2025, 1, 15, 9, 30, tzinfo=timezone.utc)


@pytest.mark.unit
def test_create_request_naive_due_date_becomes_utc():
    request = CreateTaskRequest(title="A", status="TODO", priority="LOW", due_date=datetime(2025, 1, 1, 8, 0))

    assert request.due_date.tzinfo is not None
    assert request.due_date.utcoffset().total_seconds() == 0


@pytest.mark.unit
@pytest.mark.parametrize("missing", ["title", "status", "priority"])
def test_create_request_required_fields(missing):
    data = {"title": "Task", "status": "TODO", "priority": "LOW"}
    del data[missing]

    with pytest.raises(ValidationFailure) as exc_info:
        parse_request(CreateTaskRequest, data)

    assert missing in exc_info.value.field_errors


@pytest.mark.unit
def test_create_request_rejects_blank_title():
    with pytest.raises(ValidationFailure) as exc_info:
        parse_request(CreateTaskRequest, {"title": "   ", "status": "TODO", "priority": "LOW"})

    assert "title" in exc_info.value.field_errors


@pytest.mark.unit
def test_create_request_length_bounds():
    with pytest.raises(ValidationFailure) as exc_info:
        parse_request(CreateTaskRequest, {
            "title": "x" * 201,
            "description": "d" * 1001,
            "assignee": "a" * 101,
            "status": "TODO",
            "priority": "LOW",
        })

    errors = exc_info.value.field_errors
    assert {"title", "description", "assignee"} <= set(errors)


@pytest.mark.unit
def test_create_request_title_at_limit_is_valid():
    request = parse_request(CreateTaskRequest, {"title": "x" * 200, "status": "DONE", "priority": "URGENT"})
    assert len(request.title) == 200


@pytest.mark.unit
def test_create_request_rejects_unknown_enum_values():
    with pytest.raises(ValidationFailure) as exc_info:
        parse_request(CreateTaskRequest, {"title": "Task", "status": "ARCHIVED", "priority": "CRITICAL"})

    assert "status" in exc_info.value.field_errors
    assert "priority" in exc_info.value.field_errors


@pytest.mark.unit
def test_create_request_rejects_bad_tag_names():
    with pytest.raises(ValidationError):
        CreateTaskRequest(title="Task", status="TODO", priority="LOW", tag_names={"ok", " "})

    with pytest.raises(ValidationError):
        CreateTaskRequest(title="Task", status="TODO", priority="LOW", tag_names={"t" * 51})


@pytest.mark.unit
def test_update_request_tracks_supplied_fields_only():
    request = UpdateTaskRequest.model_validate({"status": "DONE"})

    assert request.changes() == {"status": TaskStatus.DONE}


@pytest.mark.unit
def test_update_request_empty_changes_nothing():
    assert UpdateTaskRequest().changes() == {}


@pytest.mark.unit
def test_update_request_explicit_null_clears_optional_fields():
    request = UpdateTaskRequest.model_validate({"assignee": None, "dueDate": None})

    assert request.changes() == {"assignee": None, "due_date": None}


@pytest.mark.unit
@pytest.mark.parametrize("field", ["title", "status", "priority"])
def test_update_request_rejects_null_for_required_fields(field):
    with pytest.raises(ValidationFailure) as exc_info:
        parse_request(UpdateTaskRequest, {field: None})

    assert field in exc_info.value.field_errors


@pytest.mark.unit
def test_update_request_rejects_empty_title():
    """An empty title is a value, not 'no change', and it is invalid."""
    with pytest.raises(ValidationFailure):
        parse_request(UpdateTaskRequest, {"title": ""})


@pytest.mark.unit
def test_comment_request_validation():
    assert CreateCommentRequest(content="Looks good").author is None

    with pytest.raises(ValidationFailure) as exc_info:
        parse_request(CreateCommentRequest, {"content": "  ", "author": "b" * 101})

    assert {"content", "author"} <= set(exc_info.value.field_errors)


@pytest.mark.unit
def test_parse_request_passes_model_instances_through():
    request = CreateCommentRequest(content="hi")
    assert parse_request(CreateCommentRequest, request) is request
