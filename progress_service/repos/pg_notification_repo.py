"""PostgreSQL implementation of NotificationRepo."""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from progress_service.db.tables import NotificationRow
from progress_service.models.notification import Notification


class PgNotificationRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def add(self, notification: Notification) -> None:
        # ON CONFLICT DO NOTHING: a task redelivered after a partial failure
        # must not produce a second row.
        stmt = (
            insert(NotificationRow)
            .values(
                id=notification.id,
                user_email=notification.user_email,
                user_type=notification.user_type,
                type=notification.type,
                title=notification.title,
                message=notification.message,
                data=notification.data,
                read=notification.read,
                created_at=notification.created_at,
            )
            .on_conflict_do_nothing(index_elements=["id"])
        )
        await self._session.execute(stmt)

    async def list_for_user(self, user_email: str) -> list[Notification]:
        stmt = (
            select(NotificationRow)
            .where(NotificationRow.user_email == user_email)
            .order_by(NotificationRow.created_at.desc())
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [
            Notification(
                id=r.id,
                user_email=r.user_email,
                user_type=r.user_type,
                type=r.type,
                title=r.title,
                message=r.message,
                created_at=r.created_at,
                data=dict(r.data or {}),
                read=r.read,
            )
            for r in rows
        ]
