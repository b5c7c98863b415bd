"""Teacher dashboard, per-student detail, course analytics and engagement."""

from __future__ import annotations

from uuid import uuid4

from fastapi.testclient import TestClient

from tests.conftest import (
    STUDENT_EMAIL,
    auth,
    seed_course,
    teacher_auth,
)

SECOND = "linus@example.com"
THIRD = "barbara@example.com"


def _complete(client: TestClient, seeded, lesson, email: str = STUDENT_EMAIL):
    resp = client.post(
        "/progress/lesson-completed",
        json={
            "courseId": str(seeded.id),
            "lessonId": str(lesson.id),
            "timeSpentSeconds": 120,
        },
        headers=auth(email),
    )
    assert resp.status_code == 200, resp.text


# ---- dashboard ----


def test_dashboard_lists_enrolled_students(client: TestClient) -> None:
    seeded = seed_course(students=(SECOND, STUDENT_EMAIL))
    _complete(client, seeded, seeded.lesson(0, 0))

    resp = client.get("/progress/teacher/dashboard", headers=teacher_auth())

    assert resp.status_code == 200
    rows = resp.json()
    assert [r["student_email"] for r in rows] == [STUDENT_EMAIL, SECOND]
    assert rows[0]["course_completion_percentage"] == 50
    assert rows[0]["last_activity_at"] is not None
    assert rows[1]["course_completion_percentage"] == 0
    assert rows[1]["last_activity_at"] is None


def test_dashboard_course_filter_checks_ownership(client: TestClient) -> None:
    theirs = seed_course(teacher="mallory@example.com")
    resp = client.get(
        "/progress/teacher/dashboard",
        params={"courseId": str(theirs.id)},
        headers=teacher_auth(),
    )
    assert resp.status_code == 403


def test_dashboard_only_covers_own_courses(client: TestClient) -> None:
    seed_course(title="Mine")
    seed_course(title="Theirs", teacher="mallory@example.com")

    rows = client.get("/progress/teacher/dashboard", headers=teacher_auth()).json()

    assert {r["course_title"] for r in rows} == {"Mine"}


def test_dashboard_forbidden_to_students(client: TestClient) -> None:
    resp = client.get("/progress/teacher/dashboard", headers=auth())
    assert resp.status_code == 403
    assert resp.json()["detail"] == "Access denied. Teachers only."


# ---- student detail ----


def test_student_detail(client: TestClient) -> None:
    seeded = seed_course()
    _complete(client, seeded, seeded.lesson(0, 0))

    resp = client.get(
        f"/progress/teacher/student/{STUDENT_EMAIL}/course/{seeded.id}",
        headers=teacher_auth(),
    )

    assert resp.status_code == 200
    body = resp.json()
    assert body["student"] == {"email": STUDENT_EMAIL, "name": "Ada Lovelace"}
    assert body["courseCompletion"]["completed_lessons"] == 1
    assert len(body["detailedProgress"]) == 1


def test_student_detail_for_unenrolled_student_is_404(client: TestClient) -> None:
    seeded = seed_course()
    resp = client.get(
        f"/progress/teacher/student/{SECOND}/course/{seeded.id}",
        headers=teacher_auth(),
    )
    assert resp.status_code == 404


def test_student_detail_for_unknown_course_is_404(client: TestClient) -> None:
    seed_course()
    resp = client.get(
        f"/progress/teacher/student/{STUDENT_EMAIL}/course/{uuid4()}",
        headers=teacher_auth(),
    )
    assert resp.status_code == 404


def test_student_detail_for_foreign_course_is_403(client: TestClient) -> None:
    theirs = seed_course(teacher="mallory@example.com")
    resp = client.get(
        f"/progress/teacher/student/{STUDENT_EMAIL}/course/{theirs.id}",
        headers=teacher_auth(),
    )
    assert resp.status_code == 403


# ---- analytics ----


def test_course_analytics_buckets_students(client: TestClient) -> None:
    seeded = seed_course(
        lessons_per_module=(2,), students=(STUDENT_EMAIL, SECOND, THIRD)
    )
    _complete(client, seeded, seeded.lesson(0, 0))
    _complete(client, seeded, seeded.lesson(0, 1))
    _complete(client, seeded, seeded.lesson(0, 0), SECOND)

    resp = client.get(
        f"/progress/teacher/course/{seeded.id}/analytics", headers=teacher_auth()
    )

    assert resp.status_code == 200
    body = resp.json()
    assert body["course"] == {"id": str(seeded.id), "title": "Intro to Python"}
    assert body["analytics"] == {
        "totalStudents": 3,
        "completedStudents": 1,
        "inProgressStudents": 1,
        "notStartedStudents": 1,
        "averageCompletion": 50,
        "completionRate": 33,
    }
    # two lessons, module and course for the first student, one lesson for SECOND
    assert len(body["recentActivities"]) == 5


def test_analytics_for_empty_course(client: TestClient) -> None:
    seeded = seed_course(students=())
    body = client.get(
        f"/progress/teacher/course/{seeded.id}/analytics", headers=teacher_auth()
    ).json()
    assert body["analytics"]["totalStudents"] == 0
    assert body["analytics"]["averageCompletion"] == 0
    assert body["analytics"]["completionRate"] == 0


# ---- engagement ----


def test_student_engagement(client: TestClient) -> None:
    seeded = seed_course(lessons_per_module=(2,), assignments=1)
    _complete(client, seeded, seeded.lesson(0, 0))
    client.post(
        "/progress/assignment-submitted",
        json={
            "courseId": str(seeded.id),
            "assignmentId": str(seeded.assignments[0].id),
            "timeSpentMinutes": 5,
        },
        headers=auth(),
    )
    client.post(
        "/progress/discussion-participated",
        json={"courseId": str(seeded.id), "discussionId": "d-1"},
        headers=auth(),
    )
    client.post(
        "/progress/poll-responded",
        json={"courseId": str(seeded.id), "pollId": "p-1"},
        headers=auth(),
    )

    resp = client.get(
        f"/progress/teacher/student/{STUDENT_EMAIL}/engagement",
        headers=teacher_auth(),
    )

    assert resp.status_code == 200
    assert resp.json() == {
        "pollParticipation": 1,
        "discussionParticipation": 1,
        "totalStudyTimeMinutes": 7,
        "enrolledCourses": 1,
        "period": "30 days",
    }


def test_engagement_for_student_outside_teachers_courses(client: TestClient) -> None:
    seed_course(teacher="mallory@example.com")
    resp = client.get(
        f"/progress/teacher/student/{STUDENT_EMAIL}/engagement",
        headers=teacher_auth(),
    )
    assert resp.status_code == 404
    assert resp.json()["detail"] == "Student not found in your courses"


def test_engagement_window_validated(client: TestClient) -> None:
    seed_course()
    resp = client.get(
        f"/progress/teacher/student/{STUDENT_EMAIL}/engagement",
        params={"days": 0},
        headers=teacher_auth(),
    )
    assert resp.status_code == 400
