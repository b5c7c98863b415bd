"""Repository bundle handed to the service layer.

Without DATABASE_URL every request shares the module-level in-memory
singletons below (tests reset them between cases). With it, each unit of
work gets Postgres repos bound to one AsyncSession, so a completion
cascade commits or rolls back as a whole.

Side effects outside the database (cache invalidation, queued
notifications) are registered with ``after_commit`` and only run once the
unit of work has committed. A bundle used outside ``unit_of_work`` (the
bare ``IN_MEMORY`` singletons) has nothing to wait for and runs them
immediately.
"""

from __future__ import annotations

import dataclasses
from collections.abc import AsyncGenerator, Awaitable, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any

from progress_service.db.engine import async_session_factory
from progress_service.repos.activity_repo import ActivityRepo, InMemoryActivityRepo
from progress_service.repos.catalog_repo import CatalogRepo, InMemoryCatalogRepo
from progress_service.repos.notification_repo import (
    InMemoryNotificationRepo,
    NotificationRepo,
)
from progress_service.repos.pg_activity_repo import PgActivityRepo
from progress_service.repos.pg_catalog_repo import PgCatalogRepo
from progress_service.repos.pg_notification_repo import PgNotificationRepo
from progress_service.repos.pg_progress_repo import PgProgressRepo
from progress_service.repos.pg_quiz_repo import PgQuizRepo
from progress_service.repos.progress_repo import InMemoryProgressRepo, ProgressRepo
from progress_service.repos.quiz_repo import InMemoryQuizRepo, QuizRepo

AfterCommit = Callable[[], Awaitable[Any]]


@dataclass(frozen=True, slots=True)
class Repositories:
    progress: ProgressRepo
    activities: ActivityRepo
    catalog: CatalogRepo
    quizzes: QuizRepo
    notifications: NotificationRepo
    # None outside a unit of work.
    pending: list[AfterCommit] | None = None

    async def after_commit(self, callback: AfterCommit) -> None:
        if self.pending is None:
            await callback()
        else:
            self.pending.append(callback)


progress_repo = InMemoryProgressRepo()
activity_repo = InMemoryActivityRepo()
catalog_repo = InMemoryCatalogRepo()
quiz_repo = InMemoryQuizRepo()
notification_repo = InMemoryNotificationRepo()

IN_MEMORY = Repositories(
    progress=progress_repo,
    activities=activity_repo,
    catalog=catalog_repo,
    quizzes=quiz_repo,
    notifications=notification_repo,
)


@asynccontextmanager
async def unit_of_work() -> AsyncGenerator[Repositories, None]:
    """Yield a Repositories bundle; commit on success, roll back on error.

    Callbacks registered through ``after_commit`` run in order after a
    successful commit and are dropped on rollback.
    """
    pending: list[AfterCommit] = []
    if async_session_factory is None:
        yield dataclasses.replace(IN_MEMORY, pending=pending)
    else:
        async with async_session_factory() as session:
            try:
                yield Repositories(
                    progress=PgProgressRepo(session),
                    activities=PgActivityRepo(session),
                    catalog=PgCatalogRepo(session),
                    quizzes=PgQuizRepo(session),
                    notifications=PgNotificationRepo(session),
                    pending=pending,
                )
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    for callback in pending:
        await callback()
