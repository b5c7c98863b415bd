"""PostgreSQL implementation of QuizRepo.

Attempt numbers are allocated inside the INSERT itself and guarded by the
(quiz, student, attempt_number) unique constraint plus the partial index
allowing one open attempt; a concurrent double start surfaces as
DuplicateRecordError instead of two attempts.
"""

from __future__ import annotations

import uuid
from typing import Any
from uuid import UUID

from sqlalchemy import func, insert, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from progress_service.db.tables import QuizAttemptRow, QuizRow
from progress_service.models.quiz import Question, Quiz, QuizAttempt
from progress_service.repos.progress_repo import DuplicateRecordError


class PgQuizRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_quiz(self, quiz_id: UUID) -> Quiz | None:
        row = await self._session.get(QuizRow, quiz_id)
        if row is None:
            return None
        return _row_to_quiz(row)

    async def add_quiz(self, quiz: Quiz) -> None:
        row = QuizRow(
            id=quiz.id,
            course_id=quiz.course_id,
            module_id=quiz.module_id,
            lesson_id=quiz.lesson_id,
            title=quiz.title,
            description=quiz.description,
            questions=[_question_to_json(q) for q in quiz.questions],
            time_limit_minutes=quiz.time_limit_minutes,
            passing_score=quiz.passing_score,
            max_attempts=quiz.max_attempts,
            is_module_exam=quiz.is_module_exam,
            is_published=quiz.is_published,
            created_by=quiz.created_by,
        )
        try:
            async with self._session.begin_nested():
                self._session.add(row)
                await self._session.flush()
        except IntegrityError:
            if not quiz.is_module_exam:
                raise
            raise DuplicateRecordError(f"{quiz.module_id}|module_exam") from None

    async def list_course_quizzes(
        self, course_id: UUID, *, published_only: bool = True
    ) -> list[Quiz]:
        stmt = select(QuizRow).where(QuizRow.course_id == course_id)
        if published_only:
            stmt = stmt.where(QuizRow.is_published.is_(True))
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_quiz(r) for r in rows]

    async def get_module_exam(
        self, module_id: UUID, *, published_only: bool = True
    ) -> Quiz | None:
        stmt = select(QuizRow).where(
            QuizRow.module_id == module_id, QuizRow.is_module_exam.is_(True)
        )
        if published_only:
            stmt = stmt.where(QuizRow.is_published.is_(True))
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_quiz(row)

    async def get_open_attempt(
        self, quiz_id: UUID, student_email: str
    ) -> QuizAttempt | None:
        stmt = select(QuizAttemptRow).where(
            QuizAttemptRow.quiz_id == quiz_id,
            QuizAttemptRow.student_email == student_email,
            QuizAttemptRow.completed_at.is_(None),
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_attempt(row)

    async def attempt_count(self, quiz_id: UUID, student_email: str) -> int:
        stmt = select(
            func.coalesce(func.max(QuizAttemptRow.attempt_number), 0)
        ).where(
            QuizAttemptRow.quiz_id == quiz_id,
            QuizAttemptRow.student_email == student_email,
        )
        return int((await self._session.execute(stmt)).scalar_one())

    async def create_attempt(
        self, quiz_id: UUID, student_email: str, started_at: int
    ) -> QuizAttempt:
        next_number = (
            select(func.coalesce(func.max(QuizAttemptRow.attempt_number), 0) + 1)
            .where(
                QuizAttemptRow.quiz_id == quiz_id,
                QuizAttemptRow.student_email == student_email,
            )
            .scalar_subquery()
        )
        stmt = (
            insert(QuizAttemptRow)
            .values(
                id=uuid.uuid4(),
                quiz_id=quiz_id,
                student_email=student_email,
                attempt_number=next_number,
                answers={},
                started_at=started_at,
            )
            .returning(QuizAttemptRow)
        )
        try:
            async with self._session.begin_nested():
                row = (await self._session.execute(stmt)).scalar_one()
        except IntegrityError:
            raise DuplicateRecordError(f"{quiz_id}|{student_email}|open") from None
        return _row_to_attempt(row)

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
        stmt = (
            update(QuizAttemptRow)
            .where(
                QuizAttemptRow.id == attempt_id,
                QuizAttemptRow.completed_at.is_(None),
            )
            .values(
                answers=answers,
                score=score,
                passed=passed,
                time_taken_seconds=time_taken_seconds,
                completed_at=completed_at,
            )
            .returning(QuizAttemptRow)
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_attempt(row)

    async def list_attempts(self, quiz_id: UUID) -> list[QuizAttempt]:
        stmt = (
            select(QuizAttemptRow)
            .where(QuizAttemptRow.quiz_id == quiz_id)
            .order_by(QuizAttemptRow.started_at.desc())
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_attempt(r) for r in rows]

    async def list_student_course_attempts(
        self, student_email: str, course_id: UUID
    ) -> list[QuizAttempt]:
        stmt = (
            select(QuizAttemptRow)
            .join(QuizRow, QuizRow.id == QuizAttemptRow.quiz_id)
            .where(
                QuizAttemptRow.student_email == student_email,
                QuizRow.course_id == course_id,
            )
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_attempt(r) for r in rows]

    async def latest_passing_attempt(
        self, quiz_id: UUID, student_email: str
    ) -> QuizAttempt | None:
        stmt = (
            select(QuizAttemptRow)
            .where(
                QuizAttemptRow.quiz_id == quiz_id,
                QuizAttemptRow.student_email == student_email,
                QuizAttemptRow.passed.is_(True),
            )
            .order_by(QuizAttemptRow.completed_at.desc())
            .limit(1)
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_attempt(row)


def _question_to_json(q: Question) -> dict[str, Any]:
    return {
        "id": q.id,
        "type": q.type,
        "prompt": q.prompt,
        "options": list(q.options),
        "correct_answer": q.correct_answer,
    }


def _row_to_quiz(row: QuizRow) -> Quiz:
    return Quiz(
        id=row.id,
        course_id=row.course_id,
        title=row.title,
        questions=tuple(
            Question(
                id=str(q["id"]),
                type=q.get("type", "multiple_choice"),
                prompt=q.get("prompt", ""),
                options=tuple(q.get("options") or ()),
                correct_answer=q.get("correct_answer"),
            )
            for q in row.questions or []
        ),
        created_by=row.created_by,
        passing_score=row.passing_score,
        max_attempts=row.max_attempts,
        is_module_exam=row.is_module_exam,
        is_published=row.is_published,
        module_id=row.module_id,
        lesson_id=row.lesson_id,
        description=row.description,
        time_limit_minutes=row.time_limit_minutes,
    )


def _row_to_attempt(row: QuizAttemptRow) -> QuizAttempt:
    return QuizAttempt(
        id=row.id,
        quiz_id=row.quiz_id,
        student_email=row.student_email,
        attempt_number=row.attempt_number,
        started_at=row.started_at,
        completed_at=row.completed_at,
        answers=dict(row.answers or {}),
        score=row.score,
        passed=row.passed,
        time_taken_seconds=row.time_taken_seconds,
    )
