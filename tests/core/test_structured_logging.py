"""JSON-lines output: request context and progress-engine fields."""

from __future__ import annotations

import json
import logging
import sys

from progress_service.core.logging import _ContainerFormatter, _JsonFormatter


def _record(msg: str = "test message", **extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="progress_service.services.events",
        level=logging.INFO,
        pathname="events.py",
        lineno=1,
        msg=msg,
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_formatter_produces_valid_json() -> None:
    parsed = json.loads(_JsonFormatter().format(_record("Recorded lesson")))
    assert parsed["level"] == "INFO"
    assert parsed["logger"] == "progress_service.services.events"
    assert parsed["message"] == "Recorded lesson"
    assert "timestamp" in parsed


def test_json_formatter_includes_request_fields() -> None:
    record = _record(
        request_id="abc-123", method="GET", path="/health", duration_ms=12.5
    )
    parsed = json.loads(_JsonFormatter().format(record))
    assert parsed["request_id"] == "abc-123"
    assert parsed["method"] == "GET"
    assert parsed["path"] == "/health"
    assert parsed["duration_ms"] == 12.5


def test_json_formatter_includes_domain_fields() -> None:
    record = _record(
        student="ada@example.com",
        course_id="c-1",
        module_id="m-1",
        event_type="module_completed",
    )
    parsed = json.loads(_JsonFormatter().format(record))
    assert parsed["student"] == "ada@example.com"
    assert parsed["course_id"] == "c-1"
    assert parsed["module_id"] == "m-1"
    assert parsed["event_type"] == "module_completed"


def test_json_formatter_omits_absent_fields() -> None:
    parsed = json.loads(_JsonFormatter().format(_record()))
    assert "student" not in parsed
    assert "request_id" not in parsed


def test_json_formatter_includes_exception_info() -> None:
    formatter = _JsonFormatter()
    try:
        raise ValueError("test error")
    except ValueError:
        record = _record("Something failed")
        record.exc_info = sys.exc_info()
        output = formatter.format(record)

    parsed = json.loads(output)
    assert "ValueError: test error" in parsed["exception"]


def test_container_formatter_is_not_json() -> None:
    output = _ContainerFormatter().format(_record("server started"))
    assert "INFO" in output
    assert "server started" in output
    try:
        json.loads(output)
        raise AssertionError("Container format should not be valid JSON")
    except json.JSONDecodeError:
        pass
