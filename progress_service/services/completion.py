"""Module and course completion evaluators.

Completion is never stored as a running aggregate. Each check re-derives
it from the raw progress rows:

  module complete  <=>  every lesson in the module has a lesson_completed
                        record for the student in this course, AND the
                        module's published exam (if any) has a passed attempt
  course complete  <=>  every module in the course has a module_completed
                        record for the student

On the first transition a module_completed / course_completed record is
appended. Its dedupe key makes the transition at-most-once, which in turn
makes the notifications at-most-once: only the caller whose insert wins
queues them, and only after its unit of work commits.

Empty modules (no lessons, no exam) and empty courses (no modules) are
complete the first time they are checked unless
COMPLETION_REQUIRES_CONTENT is set; granting such a completion is logged
at WARNING.
"""

from __future__ import annotations

import logging
from functools import partial
from uuid import UUID

from progress_service.core.config import SETTINGS
from progress_service.core.metrics import COMPLETIONS
from progress_service.models.progress import ProgressRecord
from progress_service.repos.bundle import Repositories
from progress_service.services.events import (
    log_activity,
    record_event,
    utcnow,
)
from progress_service.services.notifications import (
    course_completion_notifications,
    dispatcher,
    module_completion_notifications,
    student_display_name,
)

logger = logging.getLogger(__name__)


def _requires_content(override: bool | None) -> bool:
    return SETTINGS.completion_requires_content if override is None else override


async def check_module_completion(
    repos: Repositories,
    student_email: str,
    course_id: UUID,
    module_id: UUID,
    *,
    requires_content: bool | None = None,
) -> bool:
    """Evaluate one module for one student.

    Returns True only when this call performed the transition to complete.
    """
    log_extra = {
        "student": student_email,
        "course_id": str(course_id),
        "module_id": str(module_id),
    }
    module = await repos.catalog.get_module(module_id)
    if module is None or module.course_id != course_id:
        logger.warning(
            "Module %s is not part of course %s; skipping completion check",
            module_id,
            course_id,
            extra=log_extra,
        )
        return False

    lesson_ids = {le.id for le in await repos.catalog.list_module_lessons(module_id)}
    completed = await repos.progress.completed_lesson_ids(student_email, course_id)
    if not lesson_ids <= completed:
        return False

    exam = await repos.quizzes.get_module_exam(module_id)
    if exam is not None:
        passing = await repos.quizzes.latest_passing_attempt(exam.id, student_email)
        if passing is None:
            logger.debug(
                "Module %s lessons done but exam %s not passed",
                module_id,
                exam.id,
                extra=log_extra,
            )
            return False

    if not lesson_ids and exam is None:
        if _requires_content(requires_content):
            logger.info(
                "Module %s has no lessons and no exam; not granting completion",
                module_id,
                extra=log_extra,
            )
            return False
        logger.warning(
            "Module %s has no lessons and no exam; granting completion",
            module_id,
            extra=log_extra,
        )

    course = await repos.catalog.get_course(course_id)
    if course is None:
        return False

    now = utcnow()
    record = ProgressRecord.new(
        student_email=student_email,
        course_id=course_id,
        module_id=module_id,
        event_type="module_completed",
        created_at=now,
        metadata={"module_title": module.title, "has_exam": exam is not None},
    )
    result = await record_event(repos, record)
    if not result.created:
        return False

    COMPLETIONS.labels(level="module").inc()
    logger.info(
        "Module %s completed by %s", module.title, student_email, extra=log_extra
    )
    await log_activity(
        repos,
        student_email=student_email,
        course_id=course_id,
        activity_type="module_completed",
        description=f"Completed module: {module.title}",
        now=now,
        metadata={"module_id": str(module_id), "has_exam": exam is not None},
    )

    profile = await repos.catalog.get_profile(student_email)
    notifications = module_completion_notifications(
        student_email=student_email,
        student_name=student_display_name(student_email, profile),
        course=course,
        module=module,
        has_exam=exam is not None,
        now=now,
    )
    # Queued only once the completion is committed.
    await repos.after_commit(partial(dispatcher.dispatch_all, notifications))

    await check_course_completion(
        repos, student_email, course_id, requires_content=requires_content
    )
    return True


async def check_course_completion(
    repos: Repositories,
    student_email: str,
    course_id: UUID,
    *,
    requires_content: bool | None = None,
) -> bool:
    """Evaluate one course for one student; only reached via a module transition."""
    log_extra = {"student": student_email, "course_id": str(course_id)}
    course = await repos.catalog.get_course(course_id)
    if course is None:
        return False

    module_ids = {m.id for m in await repos.catalog.list_modules(course_id)}
    done = await repos.progress.completed_module_ids(student_email, course_id)
    if not module_ids <= done:
        return False

    if not module_ids:
        if _requires_content(requires_content):
            return False
        logger.warning(
            "Course %s has no modules; granting completion", course_id, extra=log_extra
        )

    now = utcnow()
    record = ProgressRecord.new(
        student_email=student_email,
        course_id=course_id,
        event_type="course_completed",
        created_at=now,
        metadata={"course_title": course.title, "completed_at": now},
    )
    result = await record_event(repos, record)
    if not result.created:
        return False

    COMPLETIONS.labels(level="course").inc()
    logger.info(
        "Course %s completed by %s", course.title, student_email, extra=log_extra
    )
    await log_activity(
        repos,
        student_email=student_email,
        course_id=course_id,
        activity_type="course_completed",
        description=f"Completed course: {course.title}",
        now=now,
        metadata={"course_title": course.title},
    )

    profile = await repos.catalog.get_profile(student_email)
    notifications = course_completion_notifications(
        student_email=student_email,
        student_name=student_display_name(student_email, profile),
        course=course,
        now=now,
    )
    await repos.after_commit(partial(dispatcher.dispatch_all, notifications))
    return True
