from __future__ import annotations

from typing import Protocol
from uuid import UUID

from progress_service.models.progress import ProgressRecord


class DuplicateRecordError(Exception):
    """A row with the same unique key already exists."""


class ProgressRepo(Protocol):
    async def add(self, record: ProgressRecord) -> None: ...
    async def get_by_dedupe_key(self, key: str) -> ProgressRecord | None: ...
    async def list_for_student(self, student_email: str) -> list[ProgressRecord]: ...
    async def list_for_student_course(
        self, student_email: str, course_id: UUID
    ) -> list[ProgressRecord]: ...
    async def completed_lesson_ids(
        self, student_email: str, course_id: UUID
    ) -> set[UUID]: ...
    async def completed_module_ids(
        self, student_email: str, course_id: UUID
    ) -> set[UUID]: ...


def _newest_first(records: list[ProgressRecord]) -> list[ProgressRecord]:
    # reversed() first so equal timestamps keep newest-inserted first
    return sorted(reversed(records), key=lambda r: r.created_at, reverse=True)


class InMemoryProgressRepo:
    def __init__(self) -> None:
        self._records: list[ProgressRecord] = []
        self._by_key: dict[str, ProgressRecord] = {}

    async def add(self, record: ProgressRecord) -> None:
        if record.dedupe_key is not None:
            if record.dedupe_key in self._by_key:
                raise DuplicateRecordError(record.dedupe_key)
            self._by_key[record.dedupe_key] = record
        self._records.append(record)

    async def get_by_dedupe_key(self, key: str) -> ProgressRecord | None:
        return self._by_key.get(key)

    async def list_for_student(self, student_email: str) -> list[ProgressRecord]:
        return _newest_first(
            [r for r in self._records if r.student_email == student_email]
        )

    async def list_for_student_course(
        self, student_email: str, course_id: UUID
    ) -> list[ProgressRecord]:
        return _newest_first(
            [
                r
                for r in self._records
                if r.student_email == student_email and r.course_id == course_id
            ]
        )

    async def completed_lesson_ids(
        self, student_email: str, course_id: UUID
    ) -> set[UUID]:
        return {
            r.lesson_id
            for r in self._records
            if r.student_email == student_email
            and r.course_id == course_id
            and r.event_type == "lesson_completed"
            and r.status == "completed"
            and r.lesson_id is not None
        }

    async def completed_module_ids(
        self, student_email: str, course_id: UUID
    ) -> set[UUID]:
        return {
            r.module_id
            for r in self._records
            if r.student_email == student_email
            and r.course_id == course_id
            and r.event_type == "module_completed"
            and r.status == "completed"
            and r.module_id is not None
        }
