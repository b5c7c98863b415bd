from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal
from uuid import UUID, uuid4

EventType = Literal[
    "lesson_completed",
    "quiz_passed",
    "assignment_submitted",
    "discussion_participated",
    "poll_responded",
    "module_completed",
    "course_completed",
]
ProgressStatus = Literal["completed", "submitted", "failed"]

# At most one record per (student, course, target, event type).
ONE_TIME_EVENTS: frozenset[str] = frozenset(
    {"lesson_completed", "module_completed", "course_completed"}
)

# Fixed credit per event type; quizzes carry their computed score.
EVENT_SCORES: dict[str, int] = {
    "lesson_completed": 100,
    "assignment_submitted": 0,
    "discussion_participated": 10,
    "poll_responded": 5,
    "module_completed": 100,
    "course_completed": 100,
}


def dedupe_key(
    student_email: str, course_id: UUID, target: str, event_type: str
) -> str:
    return f"{student_email}|{course_id}|{target}|{event_type}"


@dataclass(frozen=True, slots=True)
class ProgressRecord:
    """Append-only learner event; never updated or deleted.

    ``dedupe_key`` is set for one-time achievements and for quiz passes
    recorded from a scored attempt; storage enforces its uniqueness.
    Repeatable events leave it None.
    """

    id: UUID
    student_email: str
    course_id: UUID
    event_type: str
    status: str
    created_at: int
    score: int = 0
    time_spent_seconds: int = 0
    module_id: UUID | None = None
    lesson_id: UUID | None = None
    target_id: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    dedupe_key: str | None = None

    @staticmethod
    def new(
        *,
        student_email: str,
        course_id: UUID,
        event_type: str,
        created_at: int,
        status: str = "completed",
        score: int | None = None,
        time_spent_seconds: int = 0,
        module_id: UUID | None = None,
        lesson_id: UUID | None = None,
        target_id: str | None = None,
        metadata: dict[str, Any] | None = None,
        dedupe: str | None = None,
    ) -> ProgressRecord:
        if dedupe is None and event_type in ONE_TIME_EVENTS:
            target = target_id or (str(module_id) if module_id else str(course_id))
            dedupe = dedupe_key(student_email, course_id, target, event_type)
        return ProgressRecord(
            id=uuid4(),
            student_email=student_email,
            course_id=course_id,
            event_type=event_type,
            status=status,
            created_at=created_at,
            score=EVENT_SCORES.get(event_type, 0) if score is None else score,
            time_spent_seconds=time_spent_seconds,
            module_id=module_id,
            lesson_id=lesson_id,
            target_id=target_id,
            metadata=dict(metadata or {}),
            dedupe_key=dedupe,
        )


@dataclass(frozen=True, slots=True)
class Activity:
    """Human-readable activity-feed entry shown on dashboards."""

    id: UUID
    student_email: str
    course_id: UUID
    activity_type: str
    description: str
    created_at: int
    metadata: dict[str, Any] = field(default_factory=dict)

    @staticmethod
    def new(
        *,
        student_email: str,
        course_id: UUID,
        activity_type: str,
        description: str,
        created_at: int,
        metadata: dict[str, Any] | None = None,
    ) -> Activity:
        return Activity(
            id=uuid4(),
            student_email=student_email,
            course_id=course_id,
            activity_type=activity_type,
            description=description,
            created_at=created_at,
            metadata=dict(metadata or {}),
        )


def percentage(part: float, whole: float) -> int:
    """``round(100 * part / whole)`` with halves rounded up; 0 when whole is 0."""
    if whole <= 0:
        return 0
    return int(100 * part / whole + 0.5)
