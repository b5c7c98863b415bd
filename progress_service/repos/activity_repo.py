from __future__ import annotations

from typing import Protocol
from uuid import UUID

from progress_service.models.progress import Activity


class ActivityRepo(Protocol):
    async def add(self, activity: Activity) -> None: ...
    async def list_for_student(
        self,
        student_email: str,
        *,
        course_id: UUID | None = None,
        limit: int | None = None,
    ) -> list[Activity]: ...
    async def list_for_course(
        self, course_id: UUID, *, limit: int | None = None
    ) -> list[Activity]: ...


class InMemoryActivityRepo:
    def __init__(self) -> None:
        self._activities: list[Activity] = []

    async def add(self, activity: Activity) -> None:
        self._activities.append(activity)

    async def list_for_student(
        self,
        student_email: str,
        *,
        course_id: UUID | None = None,
        limit: int | None = None,
    ) -> list[Activity]:
        matches = [
            a
            for a in self._activities
            if a.student_email == student_email
            and (course_id is None or a.course_id == course_id)
        ]
        return _newest_first(matches)[:limit]

    async def list_for_course(
        self, course_id: UUID, *, limit: int | None = None
    ) -> list[Activity]:
        matches = [a for a in self._activities if a.course_id == course_id]
        return _newest_first(matches)[:limit]


def _newest_first(activities: list[Activity]) -> list[Activity]:
    return sorted(reversed(activities), key=lambda a: a.created_at, reverse=True)
