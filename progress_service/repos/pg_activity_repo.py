"""PostgreSQL implementation of ActivityRepo."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from progress_service.db.tables import ActivityRow
from progress_service.models.progress import Activity


class PgActivityRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def add(self, activity: Activity) -> None:
        self._session.add(
            ActivityRow(
                id=activity.id,
                student_email=activity.student_email,
                course_id=activity.course_id,
                activity_type=activity.activity_type,
                description=activity.description,
                meta=activity.metadata,
                created_at=activity.created_at,
            )
        )
        await self._session.flush()

    async def list_for_student(
        self,
        student_email: str,
        *,
        course_id: UUID | None = None,
        limit: int | None = None,
    ) -> list[Activity]:
        stmt = select(ActivityRow).where(ActivityRow.student_email == student_email)
        if course_id is not None:
            stmt = stmt.where(ActivityRow.course_id == course_id)
        stmt = stmt.order_by(ActivityRow.created_at.desc())
        if limit is not None:
            stmt = stmt.limit(limit)
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_activity(r) for r in rows]

    async def list_for_course(
        self, course_id: UUID, *, limit: int | None = None
    ) -> list[Activity]:
        stmt = (
            select(ActivityRow)
            .where(ActivityRow.course_id == course_id)
            .order_by(ActivityRow.created_at.desc())
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_activity(r) for r in rows]


def _row_to_activity(row: ActivityRow) -> Activity:
    return Activity(
        id=row.id,
        student_email=row.student_email,
        course_id=row.course_id,
        activity_type=row.activity_type,
        description=row.description,
        created_at=row.created_at,
        metadata=dict(row.meta or {}),
    )
