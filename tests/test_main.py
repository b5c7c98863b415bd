from __future__ import annotations

from uuid import uuid4

from fastapi.testclient import TestClient

from progress_service.main import app
from tests.conftest import auth, seed_course, teacher_auth

client = TestClient(app)


def test_missing_token_is_401() -> None:
    resp = client.get("/progress/my-progress")
    assert resp.status_code == 401


def test_garbage_token_is_401() -> None:
    resp = client.get(
        "/progress/my-progress", headers={"Authorization": "Bearer not-a-jwt"}
    )
    assert resp.status_code == 401
    assert resp.json() == {"detail": "Invalid token"}


def test_student_route_rejects_teacher() -> None:
    resp = client.get("/progress/my-progress", headers=teacher_auth())
    assert resp.status_code == 403
    assert resp.json() == {"detail": "Access denied. Students only."}


def test_teacher_route_rejects_student() -> None:
    resp = client.get(
        "/progress/teacher/dashboard", params={"courseId": str(uuid4())}, headers=auth()
    )
    assert resp.status_code == 403
    assert resp.json() == {"detail": "Access denied. Teachers only."}


def test_body_validation_error_shape() -> None:
    resp = client.post(
        "/progress/lesson-completed", json={"courseId": "nope"}, headers=auth()
    )
    assert resp.status_code == 400
    body = resp.json()
    assert body["error"] == "validation_error"
    assert isinstance(body["detail"], list)
    assert body["detail"]


def test_service_error_shape() -> None:
    seed_course()
    resp = client.post(
        "/progress/lesson-completed",
        json={"courseId": str(uuid4()), "lessonId": str(uuid4())},
        headers=auth(),
    )
    assert resp.status_code == 404
    body = resp.json()
    assert body["error"] == "not_found"
    assert isinstance(body["detail"], str)


def test_docs_follow_environment() -> None:
    from progress_service.core.config import SETTINGS

    resp = client.get("/docs")
    assert resp.status_code == (200 if SETTINGS.is_dev else 404)
