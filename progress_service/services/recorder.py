"""Event recorder: turns learner actions into progress records.

Every operation validates the course (404) and the caller's enrollment
(403) before writing. lesson_completed is one-time per (student, course,
lesson); the other events are repeatable and always append a new record.

A newly recorded lesson completion, or a lesson-scoped poll response,
triggers the module completion check for the lesson's module. A duplicate
lesson completion returns the existing record and evaluates nothing.
"""

from __future__ import annotations

from uuid import UUID

from progress_service.models.course import Lesson
from progress_service.models.progress import ProgressRecord
from progress_service.repos.bundle import Repositories
from progress_service.services.access import enrolled_course
from progress_service.services.completion import check_module_completion
from progress_service.services.errors import NotFoundError, ProgressValidationError
from progress_service.services.events import (
    RecordResult,
    invalidate_progress,
    log_activity,
    record_event,
    utcnow,
)


async def _course_lesson(
    repos: Repositories,
    course_id: UUID,
    lesson_id: UUID,
    module_id: UUID | None,
) -> Lesson:
    lesson = await repos.catalog.get_lesson(lesson_id)
    if lesson is None or lesson.course_id != course_id:
        raise NotFoundError("Lesson not found in this course")
    if module_id is not None and module_id != lesson.module_id:
        raise ProgressValidationError("Lesson does not belong to the given module")
    return lesson


async def _course_module(
    repos: Repositories,
    course_id: UUID,
    module_id: UUID | None,
    owner_module_id: UUID | None = None,
) -> UUID | None:
    """Check a client-supplied module id; fall back to the target's own module."""
    if module_id is None:
        return owner_module_id
    module = await repos.catalog.get_module(module_id)
    if module is None or module.course_id != course_id:
        raise NotFoundError("Module not found in this course")
    if owner_module_id is not None and owner_module_id != module_id:
        raise ProgressValidationError("Item does not belong to the given module")
    return module_id


def _check_time(seconds: int) -> None:
    if seconds < 0:
        raise ProgressValidationError("Time spent cannot be negative")


async def record_lesson_completed(
    repos: Repositories,
    student_email: str,
    *,
    course_id: UUID,
    lesson_id: UUID,
    module_id: UUID | None = None,
    lesson_title: str | None = None,
    time_spent_seconds: int = 0,
) -> RecordResult:
    _check_time(time_spent_seconds)
    await enrolled_course(repos, course_id, student_email)
    lesson = await _course_lesson(repos, course_id, lesson_id, module_id)
    title = lesson_title or lesson.title

    now = utcnow()
    result = await record_event(
        repos,
        ProgressRecord.new(
            student_email=student_email,
            course_id=course_id,
            module_id=lesson.module_id,
            lesson_id=lesson_id,
            target_id=str(lesson_id),
            event_type="lesson_completed",
            time_spent_seconds=time_spent_seconds,
            created_at=now,
            metadata={"lesson_title": title, "completed_at": now},
        ),
    )
    if not result.created:
        return result

    await log_activity(
        repos,
        student_email=student_email,
        course_id=course_id,
        activity_type="lesson_completed",
        description=f"Completed lesson: {title}",
        now=now,
        metadata={"lesson_id": str(lesson_id), "module_id": str(lesson.module_id)},
    )
    await check_module_completion(repos, student_email, course_id, lesson.module_id)
    await invalidate_progress(repos, student_email, course_id)
    return result


async def record_quiz_completed(
    repos: Repositories,
    student_email: str,
    *,
    course_id: UUID,
    quiz_id: UUID,
    score: int,
    passed: bool,
    module_id: UUID | None = None,
    time_spent_seconds: int = 0,
) -> RecordResult:
    """Record a quiz result reported by the client.

    Exam gating reads quiz attempts, not these rows, so this never
    completes a module; scored submissions go through quiz_service.
    """
    _check_time(time_spent_seconds)
    if not 0 <= score <= 100:
        raise ProgressValidationError("Score must be between 0 and 100")
    await enrolled_course(repos, course_id, student_email)
    quiz = await repos.quizzes.get_quiz(quiz_id)
    if quiz is None or quiz.course_id != course_id:
        raise NotFoundError("Quiz not found in this course")
    module_id = await _course_module(repos, course_id, module_id, quiz.module_id)

    now = utcnow()
    result = await record_event(
        repos,
        ProgressRecord.new(
            student_email=student_email,
            course_id=course_id,
            module_id=module_id,
            target_id=str(quiz_id),
            event_type="quiz_passed",
            status="completed" if passed else "failed",
            score=score,
            time_spent_seconds=time_spent_seconds,
            created_at=now,
            metadata={"quiz_id": str(quiz_id), "passed": passed, "completed_at": now},
        ),
    )
    await log_activity(
        repos,
        student_email=student_email,
        course_id=course_id,
        activity_type="quiz_completed",
        description=f"Completed quiz: {quiz.title} (Score: {score}%)",
        now=now,
        metadata={"quiz_id": str(quiz_id), "score": score, "passed": passed},
    )
    await invalidate_progress(repos, student_email, course_id)
    return result


async def record_assignment_submitted(
    repos: Repositories,
    student_email: str,
    *,
    course_id: UUID,
    assignment_id: UUID,
    module_id: UUID | None = None,
    time_spent_minutes: int = 0,
) -> RecordResult:
    _check_time(time_spent_minutes)
    await enrolled_course(repos, course_id, student_email)
    assignments = await repos.catalog.list_assignments(course_id)
    assignment = next((a for a in assignments if a.id == assignment_id), None)
    if assignment is None:
        raise NotFoundError("Assignment not found in this course")
    module_id = await _course_module(
        repos, course_id, module_id, assignment.module_id
    )

    now = utcnow()
    result = await record_event(
        repos,
        ProgressRecord.new(
            student_email=student_email,
            course_id=course_id,
            module_id=module_id,
            target_id=str(assignment_id),
            event_type="assignment_submitted",
            status="submitted",
            time_spent_seconds=time_spent_minutes * 60,
            created_at=now,
            metadata={"assignment_id": str(assignment_id), "submitted_at": now},
        ),
    )
    await log_activity(
        repos,
        student_email=student_email,
        course_id=course_id,
        activity_type="assignment_submitted",
        description=f"Submitted assignment: {assignment.title}",
        now=now,
        metadata={"assignment_id": str(assignment_id)},
    )
    await invalidate_progress(repos, student_email, course_id)
    return result


async def record_discussion_participation(
    repos: Repositories,
    student_email: str,
    *,
    course_id: UUID,
    discussion_id: str,
    post_id: str | None = None,
    module_id: UUID | None = None,
) -> RecordResult:
    if not discussion_id:
        raise ProgressValidationError("Discussion ID is required")
    await enrolled_course(repos, course_id, student_email)
    module_id = await _course_module(repos, course_id, module_id)

    now = utcnow()
    result = await record_event(
        repos,
        ProgressRecord.new(
            student_email=student_email,
            course_id=course_id,
            module_id=module_id,
            target_id=discussion_id,
            event_type="discussion_participated",
            created_at=now,
            metadata={
                "discussion_id": discussion_id,
                "post_id": post_id,
                "participated_at": now,
            },
        ),
    )
    await log_activity(
        repos,
        student_email=student_email,
        course_id=course_id,
        activity_type="discussion_participation",
        description="Participated in a discussion",
        now=now,
        metadata={"discussion_id": discussion_id, "post_id": post_id},
    )
    await invalidate_progress(repos, student_email, course_id)
    return result


async def record_poll_response(
    repos: Repositories,
    student_email: str,
    *,
    course_id: UUID,
    poll_id: str,
    response_id: str | None = None,
    module_id: UUID | None = None,
) -> RecordResult:
    if not poll_id:
        raise ProgressValidationError("Poll ID is required")
    await enrolled_course(repos, course_id, student_email)
    module_id = await _course_module(repos, course_id, module_id)

    now = utcnow()
    result = await record_event(
        repos,
        ProgressRecord.new(
            student_email=student_email,
            course_id=course_id,
            module_id=module_id,
            target_id=poll_id,
            event_type="poll_responded",
            created_at=now,
            metadata={
                "poll_id": poll_id,
                "response_id": response_id,
                "responded_at": now,
            },
        ),
    )
    await log_activity(
        repos,
        student_email=student_email,
        course_id=course_id,
        activity_type="poll_participation",
        description="Responded to a poll",
        now=now,
        metadata={"poll_id": poll_id, "response_id": response_id},
    )
    await invalidate_progress(repos, student_email, course_id)
    return result


async def record_poll_participation(
    repos: Repositories,
    student_email: str,
    *,
    course_id: UUID,
    lesson_id: UUID,
    poll_question: str,
    selected_option: str | None = None,
    lesson_title: str | None = None,
    module_id: UUID | None = None,
) -> RecordResult:
    """Lesson-embedded poll; also re-checks the lesson's module."""
    await enrolled_course(repos, course_id, student_email)
    lesson = await _course_lesson(repos, course_id, lesson_id, module_id)
    title = lesson_title or lesson.title

    now = utcnow()
    result = await record_event(
        repos,
        ProgressRecord.new(
            student_email=student_email,
            course_id=course_id,
            module_id=lesson.module_id,
            lesson_id=lesson_id,
            target_id=str(lesson_id),
            event_type="poll_responded",
            created_at=now,
            metadata={
                "lesson_title": title,
                "poll_question": poll_question,
                "selected_option": selected_option,
                "participated_at": now,
            },
        ),
    )
    await log_activity(
        repos,
        student_email=student_email,
        course_id=course_id,
        activity_type="poll_participation",
        description=f'Responded to poll: "{poll_question}"',
        now=now,
        metadata={
            "lesson_id": str(lesson_id),
            "lesson_title": title,
            "poll_question": poll_question,
            "selected_option": selected_option,
        },
    )
    await check_module_completion(repos, student_email, course_id, lesson.module_id)
    await invalidate_progress(repos, student_email, course_id)
    return result
