"""Tests for structured logging helpers and correlation ids."""

import json
import logging
import pytest
from unittest.mock import patch
from tasktracker.utils.logging import (
    correlation_context,
    get_correlation_id,
    get_structured_logger,
    log_timing,
    preview_text,
    timed,
)
from tasktracker.utils.logging_config import LoggingConfig


@pytest.mark.unit
def test_correlation_context_generates_and_restores():
    assert get_correlation_id() is None

    with correlation_context() as outer:
        assert outer.startswith("req_")
        with correlation_context("req_inner") as inner:
            assert get_correlation_id() == inner == "req_inner"
        assert get_correlation_id() == outer

    assert get_correlation_id() is None


@pytest.mark.unit
@pytest.mark.parametrize("text,expected", [
    (None, None),
    ("", None),
    ("short title", "short title"),
    ("x" * 100, "x" * 80 + "..."),
])
def test_preview_text(text, expected):
    assert preview_text(text) == expected


@pytest.mark.unit
def test_structured_logger_attaches_fields(caplog):
    caplog.set_level(logging.INFO, logger="tests.structured")
    log = get_structured_logger("tests.structured")

    with correlation_context("req_fields"):
        log.info("Task created", task_id=12)

    record = caplog.records[-1]
    assert record.task_id == 12
    assert record.correlation_id == "req_fields"
    assert hasattr(record, "timestamp")


@pytest.mark.unit
def test_log_timing_warns_on_slow_operation(caplog):
    caplog.set_level(logging.DEBUG, logger="tests.timing")
    log = get_structured_logger("tests.timing")

    with patch.object(LoggingConfig, "LOG_SLOW_OPERATION_THRESHOLD_MS", -1):
        with log_timing("bulk_import", logger=log, batch=3):
            pass

    slow = [r for r in caplog.records if r.levelno == logging.WARNING]
    assert len(slow) == 1
    assert slow[0].operation == "bulk_import"
    assert slow[0].batch == 3


@pytest.mark.unit
def test_timed_decorator_preserves_result_and_errors(caplog):
    caplog.set_level(logging.DEBUG, logger="tests.timed")
    log = get_structured_logger("tests.timed")

    @timed("double", logger=log)
    def double(value):
        if value < 0:
            raise ValueError("negative")
        return value * 2

    assert double(4) == 8
    assert double.__name__ == "double"
    with pytest.raises(ValueError):
        double(-1)
    # Completion is logged even when the call raises
    completed = [r for r in caplog.records if r.getMessage() == "Completed double"]
    assert len(completed) == 2


@pytest.mark.unit
def test_json_formatter_includes_service_and_fields():
    with patch.object(LoggingConfig, "LOG_FORMAT", "json"):
        formatter = LoggingConfig.build_formatter()

    record = logging.LogRecord("tasktracker.test", logging.INFO, __file__, 1, "Task updated", None, None)
    record.task_id = 4

    payload = json.loads(formatter.format(record))

    assert payload["message"] == "Task updated"
    assert payload["levelname"] == "INFO"
    assert payload["service"] == "task-tracker"
    assert payload["task_id"] == 4


@pytest.mark.unit
def test_json_formatter_is_current_python_json_logger():
    with patch.object(LoggingConfig, "LOG_FORMAT", "json"):
        formatter = LoggingConfig.build_formatter()

    assert type(formatter).__module__ == "pythonjsonlogger.json"
