"""Append primitives shared by the recorder, the evaluators and quizzes.

``record_event`` is the single place a ProgressRecord is written. For
records with a dedupe key the read-before-insert is only a fast path; the
storage uniqueness constraint decides, and a DuplicateRecordError from the
insert is folded into the same "already recorded" result.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from functools import partial
from typing import Any
from uuid import UUID

from progress_service.core.metrics import PROGRESS_EVENTS
from progress_service.models.progress import Activity, ProgressRecord
from progress_service.repos.bundle import Repositories
from progress_service.repos.progress_repo import DuplicateRecordError
from progress_service.services.cache import cache_service, progress_key

logger = logging.getLogger(__name__)


def utcnow() -> int:
    return int(datetime.now(UTC).timestamp())


@dataclass(frozen=True, slots=True)
class RecordResult:
    record: ProgressRecord
    created: bool


async def record_event(repos: Repositories, record: ProgressRecord) -> RecordResult:
    log_extra = {
        "student": record.student_email,
        "course_id": str(record.course_id),
        "event_type": record.event_type,
    }
    if record.dedupe_key is not None:
        existing = await repos.progress.get_by_dedupe_key(record.dedupe_key)
        if existing is not None:
            return _duplicate(existing, log_extra)

    try:
        await repos.progress.add(record)
    except DuplicateRecordError:
        # Lost a race with a concurrent insert of the same achievement.
        existing = await repos.progress.get_by_dedupe_key(record.dedupe_key or "")
        if existing is None:
            raise
        return _duplicate(existing, log_extra)

    PROGRESS_EVENTS.labels(event_type=record.event_type, outcome="recorded").inc()
    logger.info(
        "Recorded %s for %s in course %s",
        record.event_type,
        record.student_email,
        record.course_id,
        extra=log_extra,
    )
    return RecordResult(record=record, created=True)


def _duplicate(existing: ProgressRecord, log_extra: dict[str, str]) -> RecordResult:
    PROGRESS_EVENTS.labels(event_type=existing.event_type, outcome="duplicate").inc()
    logger.info(
        "Duplicate %s for %s ignored (existing record %s)",
        existing.event_type,
        existing.student_email,
        existing.id,
        extra=log_extra,
    )
    return RecordResult(record=existing, created=False)


async def log_activity(
    repos: Repositories,
    *,
    student_email: str,
    course_id: UUID,
    activity_type: str,
    description: str,
    now: int,
    metadata: dict[str, Any] | None = None,
) -> Activity:
    activity = Activity.new(
        student_email=student_email,
        course_id=course_id,
        activity_type=activity_type,
        description=description,
        created_at=now,
        metadata=metadata,
    )
    await repos.activities.add(activity)
    return activity


async def invalidate_progress(
    repos: Repositories, student_email: str, course_id: UUID
) -> None:
    """Drop the cached course bundle once the current unit of work commits."""
    await repos.after_commit(
        partial(cache_service.delete, progress_key(student_email, course_id))
    )
