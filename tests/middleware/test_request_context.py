"""Tests for the request context middleware.

Verifies that every response gets:
- An X-Request-ID header (generated or echoed from the request)
- Request timing logged with the same id
"""

from __future__ import annotations

import logging
import uuid

import pytest
from fastapi.testclient import TestClient

from progress_service.middleware.request_context import (
    _RequestContextFilter,
    install_request_id_filter,
    request_id_var,
)


def test_request_id_generated_when_not_provided(client: TestClient) -> None:
    """When no X-Request-ID header is sent, one is generated."""
    resp = client.get("/health")
    req_id = resp.headers.get("x-request-id")
    assert req_id is not None
    uuid.UUID(req_id)  # raises ValueError if invalid


def test_request_id_echoed_when_provided(client: TestClient) -> None:
    """When the client sends X-Request-ID, the same value is echoed back."""
    custom_id = "my-custom-request-id-123"
    resp = client.get("/health", headers={"X-Request-ID": custom_id})
    assert resp.headers.get("x-request-id") == custom_id


def test_request_id_present_on_error_responses(client: TestClient) -> None:
    """Even error responses (401, 404) get an X-Request-ID header."""
    resp = client.get("/progress/my-progress")  # no token -> 401
    assert resp.status_code == 401
    assert resp.headers.get("x-request-id") is not None

    resp = client.get("/no/such/path")
    assert resp.status_code == 404
    assert resp.headers.get("x-request-id") is not None


def test_request_summary_is_logged(
    client: TestClient, caplog: pytest.LogCaptureFixture
) -> None:
    with caplog.at_level(
        logging.INFO, logger="progress_service.middleware.request_context"
    ):
        client.get("/health", headers={"X-Request-ID": "trace-me"})

    summaries = [r for r in caplog.records if r.getMessage().startswith("GET /health")]
    assert len(summaries) == 1
    record = summaries[0]
    assert record.request_id == "trace-me"  # type: ignore[attr-defined]
    assert record.status_code == 200  # type: ignore[attr-defined]
    assert "-> 200" in record.getMessage()


def test_filter_stamps_current_request_id() -> None:
    record = logging.LogRecord("x", logging.INFO, "x.py", 1, "msg", (), None)
    token = request_id_var.set("req-42")
    try:
        _RequestContextFilter().filter(record)
    finally:
        request_id_var.reset(token)
    assert record.request_id == "req-42"  # type: ignore[attr-defined]


def test_filter_outside_request_uses_placeholder() -> None:
    record = logging.LogRecord("x", logging.INFO, "x.py", 1, "msg", (), None)
    _RequestContextFilter().filter(record)
    assert record.request_id == "-"  # type: ignore[attr-defined]


def test_install_filter_is_idempotent() -> None:
    target = logging.getLogger("progress_service.tests.filter_target")
    install_request_id_filter(target)
    install_request_id_filter(target)
    assert (
        sum(isinstance(f, _RequestContextFilter) for f in target.filters) == 1
    )
