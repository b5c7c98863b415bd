from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any
from uuid import UUID, uuid4


@dataclass(frozen=True, slots=True)
class Question:
    id: str
    type: str  # multiple_choice|true_false|short_answer|...
    prompt: str = ""
    options: tuple[str, ...] = ()
    correct_answer: Any = None

    def is_auto_scored(self) -> bool:
        return self.type in ("multiple_choice", "true_false")

    def is_correct(self, answer: Any) -> bool:
        return self.is_auto_scored() and answer == self.correct_answer


@dataclass(frozen=True, slots=True)
class Quiz:
    id: UUID
    course_id: UUID
    title: str
    questions: tuple[Question, ...]
    created_by: str
    passing_score: int = 70
    max_attempts: int = 1
    is_module_exam: bool = False
    is_published: bool = True
    module_id: UUID | None = None
    lesson_id: UUID | None = None
    description: str | None = None
    time_limit_minutes: int | None = None

    @staticmethod
    def new(
        *,
        course_id: UUID,
        title: str,
        questions: tuple[Question, ...],
        created_by: str,
        passing_score: int = 70,
        max_attempts: int = 1,
        is_module_exam: bool = False,
        is_published: bool = True,
        module_id: UUID | None = None,
        lesson_id: UUID | None = None,
        description: str | None = None,
        time_limit_minutes: int | None = None,
    ) -> Quiz:
        return Quiz(
            id=uuid4(),
            course_id=course_id,
            title=title,
            questions=questions,
            created_by=created_by,
            passing_score=passing_score,
            max_attempts=max_attempts,
            is_module_exam=is_module_exam,
            is_published=is_published,
            module_id=module_id,
            lesson_id=lesson_id,
            description=description,
            time_limit_minutes=time_limit_minutes,
        )


@dataclass(frozen=True, slots=True)
class QuizAttempt:
    """One sitting of a quiz: not_started -> in_progress -> completed.

    In progress while ``completed_at`` is None.
    """

    id: UUID
    quiz_id: UUID
    student_email: str
    attempt_number: int
    started_at: int
    completed_at: int | None = None
    answers: dict[str, Any] = field(default_factory=dict)
    score: int | None = None
    passed: bool | None = None
    time_taken_seconds: int | None = None

    @property
    def in_progress(self) -> bool:
        return self.completed_at is None

    @staticmethod
    def new(
        *, quiz_id: UUID, student_email: str, attempt_number: int, started_at: int
    ) -> QuizAttempt:
        return QuizAttempt(
            id=uuid4(),
            quiz_id=quiz_id,
            student_email=student_email,
            attempt_number=attempt_number,
            started_at=started_at,
        )
