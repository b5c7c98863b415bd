"""Completion notifications: message building and fire-and-forget dispatch.

The evaluators build Notification objects with the helpers below and hand
them to ``dispatcher`` once their unit of work has committed. Dispatch
only enqueues onto the ``notifications`` task queue; the worker persists
and retries. A dispatch failure is logged and counted, never raised, so
a completed module or course is never rolled back because a notification
could not be queued.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime

from progress_service.core.metrics import NOTIFICATIONS
from progress_service.models.course import Course, CourseModule, UserProfile
from progress_service.models.notification import Notification
from progress_service.services.task_queue import TaskQueue, task_queue

logger = logging.getLogger(__name__)

NOTIFICATION_QUEUE = "notifications"


def student_display_name(email: str, profile: UserProfile | None) -> str:
    return profile.display_name if profile is not None else email


def _iso(ts: int) -> str:
    return datetime.fromtimestamp(ts, UTC).isoformat()


def module_completion_notifications(
    *,
    student_email: str,
    student_name: str,
    course: Course,
    module: CourseModule,
    has_exam: bool,
    now: int,
) -> list[Notification]:
    data = {
        "module_title": module.title,
        "course_title": course.title,
        "course_id": str(course.id),
        "module_id": str(module.id),
        "completion_date": _iso(now),
        "has_exam": has_exam,
    }
    student_msg = (
        f'You have successfully completed the module "{module.title}" '
        f'in the course "{course.title}".'
    )
    teacher_msg = (
        f'{student_name} has completed the module "{module.title}" '
        f'in your course "{course.title}".'
    )
    if has_exam:
        student_msg += " You passed the module exam!"
        teacher_msg += " They passed the module exam!"
    return [
        Notification.new(
            user_email=student_email,
            user_type="student",
            type="module_completion",
            title="Module Completed!",
            message=student_msg,
            created_at=now,
            data=data,
        ),
        Notification.new(
            user_email=course.teacher_email,
            user_type="teacher",
            type="module_completion",
            title="Student Completed Module",
            message=teacher_msg,
            created_at=now,
            data={
                **data,
                "student_name": student_name,
                "student_email": student_email,
            },
        ),
    ]


def course_completion_notifications(
    *,
    student_email: str,
    student_name: str,
    course: Course,
    now: int,
) -> list[Notification]:
    data = {
        "course_title": course.title,
        "course_id": str(course.id),
        "completion_percentage": 100,
        "completion_date": _iso(now),
    }
    return [
        Notification.new(
            user_email=student_email,
            user_type="student",
            type="course_completion",
            title="Course Completed!",
            message=(
                f'Congratulations! You have successfully completed "{course.title}". '
                "Your certificate is now available."
            ),
            created_at=now,
            data=data,
        ),
        Notification.new(
            user_email=course.teacher_email,
            user_type="teacher",
            type="course_completion",
            title="Student Completed Course",
            message=(
                f"{student_name} has successfully completed "
                f'your course "{course.title}".'
            ),
            created_at=now,
            data={
                **data,
                "student_name": student_name,
                "student_email": student_email,
            },
        ),
    ]


class NotificationDispatcher:
    def __init__(self, queue: TaskQueue) -> None:
        self._queue = queue

    async def dispatch(self, notification: Notification) -> bool:
        """Queue one notification. Returns False if it could not be queued."""
        try:
            task = await self._queue.enqueue(
                NOTIFICATION_QUEUE, notification.to_payload()
            )
        except Exception:
            NOTIFICATIONS.labels(outcome="enqueue_failed").inc()
            logger.exception(
                "Failed to queue %s notification for %s",
                notification.type,
                notification.user_email,
            )
            return False
        NOTIFICATIONS.labels(outcome="queued").inc()
        logger.debug(
            "Queued %s notification task=%s for %s",
            notification.type,
            task.id,
            notification.user_email,
        )
        return True

    async def dispatch_all(self, notifications: list[Notification]) -> int:
        sent = 0
        for n in notifications:
            if await self.dispatch(n):
                sent += 1
        return sent


dispatcher = NotificationDispatcher(task_queue)
