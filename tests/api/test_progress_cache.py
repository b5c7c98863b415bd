"""Read-through cache for GET /progress/course/{course_id}.

Counters are global and never reset, so hit/miss assertions use deltas.
"""

from __future__ import annotations

from fastapi.testclient import TestClient
from prometheus_client import REGISTRY

from progress_service.services.cache import cache_service, progress_key
from tests.conftest import STUDENT_EMAIL, auth, seed_course


def _cache_ops(operation: str) -> float:
    value = REGISTRY.get_sample_value(
        "progress_cache_operations_total", {"operation": operation}
    )
    return value or 0.0


def _complete(client: TestClient, seeded, lesson) -> None:
    resp = client.post(
        "/progress/lesson-completed",
        json={"courseId": str(seeded.id), "lessonId": str(lesson.id)},
        headers=auth(),
    )
    assert resp.status_code == 200


def test_cache_miss_then_hit(client: TestClient) -> None:
    seeded = seed_course()
    misses, hits = _cache_ops("miss"), _cache_ops("hit")

    first = client.get(f"/progress/course/{seeded.id}", headers=auth())
    second = client.get(f"/progress/course/{seeded.id}", headers=auth())

    assert first.status_code == second.status_code == 200
    assert first.json() == second.json()
    assert _cache_ops("miss") - misses == 1
    assert _cache_ops("hit") - hits == 1


def test_recorded_event_invalidates_entry(client: TestClient) -> None:
    seeded = seed_course(lessons_per_module=(2,))
    client.get(f"/progress/course/{seeded.id}", headers=auth())
    assert progress_key(STUDENT_EMAIL, seeded.id) in cache_service._store

    _complete(client, seeded, seeded.lesson(0, 0))
    assert progress_key(STUDENT_EMAIL, seeded.id) not in cache_service._store

    resp = client.get(f"/progress/course/{seeded.id}", headers=auth())
    assert resp.json()["courseCompletion"]["completed_lessons"] == 1


def test_cache_entries_are_per_student(client: TestClient) -> None:
    other = "linus@example.com"
    seeded = seed_course(students=(STUDENT_EMAIL, other))
    _complete(client, seeded, seeded.lesson(0, 0))

    mine = client.get(f"/progress/course/{seeded.id}", headers=auth())
    theirs = client.get(f"/progress/course/{seeded.id}", headers=auth(other))

    assert mine.json()["courseCompletion"]["completed_lessons"] == 1
    assert theirs.json()["courseCompletion"]["completed_lessons"] == 0
    assert theirs.json()["courseCompletion"]["student_name"] == other


def test_cached_entry_not_served_to_other_students(client: TestClient) -> None:
    seeded = seed_course()
    client.get(f"/progress/course/{seeded.id}", headers=auth())

    resp = client.get(f"/progress/course/{seeded.id}", headers=auth("eve@example.com"))
    assert resp.status_code == 403
