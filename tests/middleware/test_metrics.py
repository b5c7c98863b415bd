"""Prometheus middleware and domain counters.

Counters live in the global registry and cannot be reset, so every
assertion is on the delta around the action.
"""

from __future__ import annotations

from fastapi.testclient import TestClient
from prometheus_client import REGISTRY

from tests.conftest import auth, seed_course


def _get_sample(name: str, labels: dict | None = None) -> float:
    value = REGISTRY.get_sample_value(name, labels=labels or {})
    return value if value is not None else 0.0


def test_request_counter_increments(client: TestClient) -> None:
    labels = {"method": "GET", "endpoint": "/health", "status_code": "200"}
    before = _get_sample("http_requests_total", labels)
    client.get("/health")
    assert _get_sample("http_requests_total", labels) - before == 1


def test_request_duration_histogram_observes(client: TestClient) -> None:
    labels = {"method": "GET", "endpoint": "/health"}
    before = _get_sample("http_request_duration_seconds_count", labels)
    client.get("/health")
    assert _get_sample("http_request_duration_seconds_count", labels) - before == 1


def test_endpoint_label_is_route_template(client: TestClient) -> None:
    seeded = seed_course()
    labels = {
        "method": "GET",
        "endpoint": "/progress/course/{course_id}",
        "status_code": "200",
    }
    before = _get_sample("http_requests_total", labels)
    client.get(f"/progress/course/{seeded.id}", headers=auth())
    assert _get_sample("http_requests_total", labels) - before == 1


def test_unknown_path_is_unmatched(client: TestClient) -> None:
    labels = {"method": "GET", "endpoint": "unmatched", "status_code": "404"}
    before = _get_sample("http_requests_total", labels)
    client.get("/no/such/path")
    assert _get_sample("http_requests_total", labels) - before == 1


def test_metrics_endpoint_returns_prometheus_format(client: TestClient) -> None:
    client.get("/health")
    resp = client.get("/metrics")
    assert resp.status_code == 200
    assert "http_requests_total" in resp.text
    assert "progress_events_total" in resp.text or "completions_total" in resp.text


def test_metrics_endpoint_not_self_instrumented(client: TestClient) -> None:
    labels = {"method": "GET", "endpoint": "/metrics", "status_code": "200"}
    before = _get_sample("http_requests_total", labels)
    client.get("/metrics")
    client.get("/metrics")
    assert _get_sample("http_requests_total", labels) == before


def test_progress_event_counters(client: TestClient) -> None:
    seeded = seed_course(lessons_per_module=(2,))
    body = {"courseId": str(seeded.id), "lessonId": str(seeded.lesson(0, 0).id)}
    recorded = {"event_type": "lesson_completed", "outcome": "recorded"}
    duplicate = {"event_type": "lesson_completed", "outcome": "duplicate"}
    before_recorded = _get_sample("progress_events_total", recorded)
    before_duplicate = _get_sample("progress_events_total", duplicate)

    client.post("/progress/lesson-completed", json=body, headers=auth())
    client.post("/progress/lesson-completed", json=body, headers=auth())

    assert _get_sample("progress_events_total", recorded) - before_recorded == 1
    assert _get_sample("progress_events_total", duplicate) - before_duplicate == 1


def test_completion_counters(client: TestClient) -> None:
    seeded = seed_course(lessons_per_module=(1,))
    module_before = _get_sample("completions_total", {"level": "module"})
    course_before = _get_sample("completions_total", {"level": "course"})

    client.post(
        "/progress/lesson-completed",
        json={"courseId": str(seeded.id), "lessonId": str(seeded.lesson(0, 0).id)},
        headers=auth(),
    )

    assert _get_sample("completions_total", {"level": "module"}) - module_before == 1
    assert _get_sample("completions_total", {"level": "course"}) - course_before == 1
