"""PostgreSQL implementation of ProgressRepo."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from progress_service.db.tables import ProgressRecordRow
from progress_service.models.progress import ProgressRecord
from progress_service.repos.progress_repo import DuplicateRecordError


class PgProgressRepo:
    """Satisfies the ProgressRepo Protocol using PostgreSQL via SQLAlchemy."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def add(self, record: ProgressRecord) -> None:
        row = ProgressRecordRow(
            id=record.id,
            student_email=record.student_email,
            course_id=record.course_id,
            module_id=record.module_id,
            lesson_id=record.lesson_id,
            target_id=record.target_id,
            event_type=record.event_type,
            status=record.status,
            score=record.score,
            time_spent_seconds=record.time_spent_seconds,
            meta=record.metadata,
            created_at=record.created_at,
            dedupe_key=record.dedupe_key,
        )
        # Savepoint: a unique violation must not poison the request transaction.
        try:
            async with self._session.begin_nested():
                self._session.add(row)
                await self._session.flush()
        except IntegrityError:
            raise DuplicateRecordError(record.dedupe_key) from None

    async def get_by_dedupe_key(self, key: str) -> ProgressRecord | None:
        stmt = select(ProgressRecordRow).where(ProgressRecordRow.dedupe_key == key)
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_record(row)

    async def list_for_student(self, student_email: str) -> list[ProgressRecord]:
        stmt = (
            select(ProgressRecordRow)
            .where(ProgressRecordRow.student_email == student_email)
            .order_by(ProgressRecordRow.created_at.desc())
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_record(r) for r in rows]

    async def list_for_student_course(
        self, student_email: str, course_id: UUID
    ) -> list[ProgressRecord]:
        stmt = (
            select(ProgressRecordRow)
            .where(
                ProgressRecordRow.student_email == student_email,
                ProgressRecordRow.course_id == course_id,
            )
            .order_by(ProgressRecordRow.created_at.desc())
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_record(r) for r in rows]

    async def completed_lesson_ids(
        self, student_email: str, course_id: UUID
    ) -> set[UUID]:
        stmt = select(ProgressRecordRow.lesson_id).where(
            ProgressRecordRow.student_email == student_email,
            ProgressRecordRow.course_id == course_id,
            ProgressRecordRow.event_type == "lesson_completed",
            ProgressRecordRow.status == "completed",
            ProgressRecordRow.lesson_id.is_not(None),
        )
        return set((await self._session.execute(stmt)).scalars().all())

    async def completed_module_ids(
        self, student_email: str, course_id: UUID
    ) -> set[UUID]:
        stmt = select(ProgressRecordRow.module_id).where(
            ProgressRecordRow.student_email == student_email,
            ProgressRecordRow.course_id == course_id,
            ProgressRecordRow.event_type == "module_completed",
            ProgressRecordRow.status == "completed",
            ProgressRecordRow.module_id.is_not(None),
        )
        return set((await self._session.execute(stmt)).scalars().all())


def _row_to_record(row: ProgressRecordRow) -> ProgressRecord:
    return ProgressRecord(
        id=row.id,
        student_email=row.student_email,
        course_id=row.course_id,
        event_type=row.event_type,
        status=row.status,
        created_at=row.created_at,
        score=row.score,
        time_spent_seconds=row.time_spent_seconds,
        module_id=row.module_id,
        lesson_id=row.lesson_id,
        target_id=row.target_id,
        metadata=dict(row.meta or {}),
        dedupe_key=row.dedupe_key,
    )
