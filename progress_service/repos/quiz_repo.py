from __future__ import annotations

from dataclasses import replace
from typing import Any, Protocol
from uuid import UUID

from progress_service.models.quiz import Quiz, QuizAttempt
from progress_service.repos.progress_repo import DuplicateRecordError


class QuizRepo(Protocol):
    async def get_quiz(self, quiz_id: UUID) -> Quiz | None: ...
    async def add_quiz(self, quiz: Quiz) -> None: ...
    async def list_course_quizzes(
        self, course_id: UUID, *, published_only: bool = True
    ) -> list[Quiz]: ...
    async def get_module_exam(
        self, module_id: UUID, *, published_only: bool = True
    ) -> Quiz | None: ...
    async def get_open_attempt(
        self, quiz_id: UUID, student_email: str
    ) -> QuizAttempt | None: ...
    async def attempt_count(self, quiz_id: UUID, student_email: str) -> int: ...
    async def create_attempt(
        self, quiz_id: UUID, student_email: str, started_at: int
    ) -> QuizAttempt: ...
    async def complete_attempt(
        self,
        attempt_id: UUID,
        *,
        answers: dict[str, Any],
        score: int,
        passed: bool,
        time_taken_seconds: int | None,
        completed_at: int,
    ) -> QuizAttempt | None: ...
    async def list_attempts(self, quiz_id: UUID) -> list[QuizAttempt]: ...
    async def list_student_course_attempts(
        self, student_email: str, course_id: UUID
    ) -> list[QuizAttempt]: ...
    async def latest_passing_attempt(
        self, quiz_id: UUID, student_email: str
    ) -> QuizAttempt | None: ...


class InMemoryQuizRepo:
    def __init__(self) -> None:
        self._quizzes: dict[UUID, Quiz] = {}
        self._attempts: dict[UUID, QuizAttempt] = {}

    async def get_quiz(self, quiz_id: UUID) -> Quiz | None:
        return self._quizzes.get(quiz_id)

    async def add_quiz(self, quiz: Quiz) -> None:
        if quiz.is_module_exam and quiz.module_id is not None and (
            await self.get_module_exam(quiz.module_id, published_only=False)
        ) is not None:
            raise DuplicateRecordError(f"{quiz.module_id}|module_exam")
        self._quizzes[quiz.id] = quiz

    async def list_course_quizzes(
        self, course_id: UUID, *, published_only: bool = True
    ) -> list[Quiz]:
        return [
            q
            for q in self._quizzes.values()
            if q.course_id == course_id and (q.is_published or not published_only)
        ]

    async def get_module_exam(
        self, module_id: UUID, *, published_only: bool = True
    ) -> Quiz | None:
        for q in self._quizzes.values():
            if q.module_id == module_id and q.is_module_exam and (
                q.is_published or not published_only
            ):
                return q
        return None

    async def get_open_attempt(
        self, quiz_id: UUID, student_email: str
    ) -> QuizAttempt | None:
        for a in self._attempts.values():
            if a.quiz_id == quiz_id and a.student_email == student_email and (
                a.in_progress
            ):
                return a
        return None

    async def attempt_count(self, quiz_id: UUID, student_email: str) -> int:
        numbers = [
            a.attempt_number
            for a in self._attempts.values()
            if a.quiz_id == quiz_id and a.student_email == student_email
        ]
        return max(numbers, default=0)

    async def create_attempt(
        self, quiz_id: UUID, student_email: str, started_at: int
    ) -> QuizAttempt:
        if await self.get_open_attempt(quiz_id, student_email) is not None:
            raise DuplicateRecordError(f"{quiz_id}|{student_email}|open")
        attempt = QuizAttempt.new(
            quiz_id=quiz_id,
            student_email=student_email,
            attempt_number=await self.attempt_count(quiz_id, student_email) + 1,
            started_at=started_at,
        )
        self._attempts[attempt.id] = attempt
        return attempt

    async def complete_attempt(
        self,
        attempt_id: UUID,
        *,
        answers: dict[str, Any],
        score: int,
        passed: bool,
        time_taken_seconds: int | None,
        completed_at: int,
    ) -> QuizAttempt | None:
        attempt = self._attempts.get(attempt_id)
        if attempt is None or not attempt.in_progress:
            return None
        updated = replace(
            attempt,
            answers=dict(answers),
            score=score,
            passed=passed,
            time_taken_seconds=time_taken_seconds,
            completed_at=completed_at,
        )
        self._attempts[attempt_id] = updated
        return updated

    async def list_attempts(self, quiz_id: UUID) -> list[QuizAttempt]:
        attempts = [a for a in self._attempts.values() if a.quiz_id == quiz_id]
        return sorted(reversed(attempts), key=lambda a: a.started_at, reverse=True)

    async def list_student_course_attempts(
        self, student_email: str, course_id: UUID
    ) -> list[QuizAttempt]:
        quiz_ids = {q.id for q in self._quizzes.values() if q.course_id == course_id}
        return [
            a
            for a in self._attempts.values()
            if a.student_email == student_email and a.quiz_id in quiz_ids
        ]

    async def latest_passing_attempt(
        self, quiz_id: UUID, student_email: str
    ) -> QuizAttempt | None:
        passing = [
            a
            for a in self._attempts.values()
            if a.quiz_id == quiz_id
            and a.student_email == student_email
            and a.passed is True
        ]
        return max(passing, key=lambda a: a.completed_at or 0, default=None)
