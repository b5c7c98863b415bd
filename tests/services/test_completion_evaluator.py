"""Module and course completion evaluators, driven directly."""

from __future__ import annotations

import asyncio
import dataclasses
import logging

import pytest
from prometheus_client import REGISTRY

from progress_service.models.progress import ProgressRecord
from progress_service.repos.bundle import IN_MEMORY, progress_repo
from progress_service.repos.progress_repo import DuplicateRecordError
from progress_service.services import notifications
from progress_service.services.completion import (
    check_course_completion,
    check_module_completion,
)
from progress_service.services.events import record_event, utcnow
from tests.conftest import STUDENT_EMAIL, queued_notifications, seed_course


def _records(event_type: str) -> list[ProgressRecord]:
    return [r for r in progress_repo._records if r.event_type == event_type]


def _sample(name: str, labels: dict) -> float:
    return REGISTRY.get_sample_value(name, labels) or 0.0


# ---- empty modules and courses ----


def test_empty_module_completes_by_default(caplog: pytest.LogCaptureFixture) -> None:
    seeded = seed_course(lessons_per_module=(0,))

    with caplog.at_level(logging.WARNING):
        done = asyncio.run(
            check_module_completion(
                IN_MEMORY, STUDENT_EMAIL, seeded.id, seeded.modules[0].id
            )
        )

    assert done is True
    assert len(_records("module_completed")) == 1
    assert len(_records("course_completed")) == 1
    assert "has no lessons and no exam; granting completion" in caplog.text


def test_empty_module_requires_content_when_asked() -> None:
    seeded = seed_course(lessons_per_module=(0,))

    done = asyncio.run(
        check_module_completion(
            IN_MEMORY,
            STUDENT_EMAIL,
            seeded.id,
            seeded.modules[0].id,
            requires_content=True,
        )
    )

    assert done is False
    assert _records("module_completed") == []
    assert queued_notifications() == []


def test_course_without_modules() -> None:
    seeded = seed_course(lessons_per_module=())

    strict = asyncio.run(
        check_course_completion(
            IN_MEMORY, STUDENT_EMAIL, seeded.id, requires_content=True
        )
    )
    lenient = asyncio.run(check_course_completion(IN_MEMORY, STUDENT_EMAIL, seeded.id))

    assert strict is False
    assert lenient is True
    assert len(_records("course_completed")) == 1


# ---- transitions ----


def test_second_check_is_a_no_op() -> None:
    seeded = seed_course(lessons_per_module=(0,))
    module_id = seeded.modules[0].id

    first = asyncio.run(
        check_module_completion(IN_MEMORY, STUDENT_EMAIL, seeded.id, module_id)
    )
    second = asyncio.run(
        check_module_completion(IN_MEMORY, STUDENT_EMAIL, seeded.id, module_id)
    )

    assert (first, second) == (True, False)
    assert len(_records("module_completed")) == 1
    assert len(queued_notifications()) == 4


def test_module_from_another_course_is_ignored() -> None:
    seeded = seed_course(lessons_per_module=(0,))
    other = seed_course(title="Other", lessons_per_module=(0,))

    done = asyncio.run(
        check_module_completion(
            IN_MEMORY, STUDENT_EMAIL, seeded.id, other.modules[0].id
        )
    )

    assert done is False
    assert _records("module_completed") == []


def test_notification_content() -> None:
    seeded = seed_course(lessons_per_module=(0,))
    asyncio.run(
        check_module_completion(
            IN_MEMORY, STUDENT_EMAIL, seeded.id, seeded.modules[0].id
        )
    )

    student_module, teacher_module, student_course, teacher_course = (
        queued_notifications()
    )
    assert student_module["user_type"] == "student"
    assert student_module["message"] == (
        'You have successfully completed the module "Module 1" '
        'in the course "Intro to Python".'
    )
    assert teacher_module["data"]["student_name"] == "Ada Lovelace"
    assert teacher_module["data"]["student_email"] == STUDENT_EMAIL
    assert student_course["data"]["completion_percentage"] == 100
    assert teacher_course["user_email"] == seeded.course.teacher_email


# ---- dispatch failures ----


class _BrokenQueue:
    async def enqueue(self, queue: str, payload: dict):
        raise ConnectionError("redis down")


def test_dispatch_failure_does_not_undo_completion(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setattr(notifications.dispatcher, "_queue", _BrokenQueue())
    seeded = seed_course(lessons_per_module=(0,))
    before = _sample("notifications_total", {"outcome": "enqueue_failed"})

    done = asyncio.run(
        check_module_completion(
            IN_MEMORY, STUDENT_EMAIL, seeded.id, seeded.modules[0].id
        )
    )

    assert done is True
    assert len(_records("module_completed")) == 1
    assert len(_records("course_completed")) == 1
    assert _sample("notifications_total", {"outcome": "enqueue_failed"}) - before == 4


# ---- recorder race ----


class _RacingProgressRepo:
    """Misses the fast-path lookup once, as if a concurrent insert won."""

    def __init__(self, inner) -> None:
        self._inner = inner
        self._missed = False

    async def get_by_dedupe_key(self, key: str):
        if not self._missed:
            self._missed = True
            return None
        return await self._inner.get_by_dedupe_key(key)

    async def add(self, record: ProgressRecord) -> None:
        await self._inner.add(record)


def test_unique_violation_resolves_to_existing_record() -> None:
    seeded = seed_course()
    lesson = seeded.lesson(0, 0)

    def _lesson_record() -> ProgressRecord:
        return ProgressRecord.new(
            student_email=STUDENT_EMAIL,
            course_id=seeded.id,
            module_id=lesson.module_id,
            lesson_id=lesson.id,
            target_id=str(lesson.id),
            event_type="lesson_completed",
            created_at=utcnow(),
        )

    winner = asyncio.run(record_event(IN_MEMORY, _lesson_record()))
    racing = dataclasses.replace(
        IN_MEMORY, progress=_RacingProgressRepo(progress_repo)
    )
    loser = asyncio.run(record_event(racing, _lesson_record()))

    assert winner.created is True
    assert loser.created is False
    assert loser.record.id == winner.record.id
    assert len(_records("lesson_completed")) == 1


def test_in_memory_repo_rejects_duplicate_key() -> None:
    seeded = seed_course()
    record = ProgressRecord.new(
        student_email=STUDENT_EMAIL,
        course_id=seeded.id,
        event_type="course_completed",
        created_at=utcnow(),
    )
    asyncio.run(progress_repo.add(record))
    with pytest.raises(DuplicateRecordError):
        asyncio.run(progress_repo.add(record))
