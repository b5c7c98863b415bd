"""Quizzes and the attempt state machine.

    not_started --start--> in_progress --submit--> completed

At most one attempt per (quiz, student) is in progress; starting again
while one is open resumes it instead of burning an attempt. Attempt
numbers are allocated by the repo, and a new attempt is refused once the
highest number reached equals the quiz's max_attempts.

Submitting scores the answers, closes the attempt, and appends a
quiz_passed progress record keyed on the attempt id (status "failed" for a
score below the pass mark). A passed module exam re-runs the module
completion check.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any
from uuid import UUID

from progress_service.models.course import Course
from progress_service.models.principal import Principal
from progress_service.models.progress import ProgressRecord, dedupe_key, percentage
from progress_service.models.quiz import Question, Quiz, QuizAttempt
from progress_service.repos.bundle import Repositories
from progress_service.repos.progress_repo import DuplicateRecordError
from progress_service.services.access import (
    enrolled_course,
    owned_course,
    viewer_scope,
)
from progress_service.services.completion import check_module_completion
from progress_service.services.errors import (
    BusinessRuleError,
    NotFoundError,
    ProgressValidationError,
)
from progress_service.services.events import (
    RecordResult,
    invalidate_progress,
    log_activity,
    record_event,
    utcnow,
)

logger = logging.getLogger(__name__)


def score_answers(quiz: Quiz, answers: dict[str, Any]) -> int:
    """Integer percentage of questions answered correctly.

    Every question counts toward the total, but only multiple_choice and
    true_false questions can be answered correctly. No questions scores 0.
    """
    correct = sum(1 for q in quiz.questions if q.is_correct(answers.get(q.id)))
    return percentage(correct, len(quiz.questions))


# ---------------------------------------------------------------------------
# Authoring and reads
# ---------------------------------------------------------------------------


async def create_quiz(
    repos: Repositories,
    course: Course,
    *,
    title: str,
    questions: tuple[Question, ...],
    module_id: UUID | None = None,
    lesson_id: UUID | None = None,
    description: str | None = None,
    time_limit_minutes: int | None = None,
    passing_score: int = 70,
    max_attempts: int = 1,
    is_module_exam: bool = False,
    is_published: bool = True,
) -> Quiz:
    if not title.strip():
        raise ProgressValidationError("Title is required")
    if not 0 <= passing_score <= 100:
        raise ProgressValidationError("passing_score must be between 0 and 100")
    if max_attempts < 1:
        raise ProgressValidationError("max_attempts must be at least 1")
    if not questions:
        raise ProgressValidationError("At least one question is required")
    if len({q.id for q in questions}) != len(questions):
        raise ProgressValidationError("Question ids must be unique")
    if is_module_exam and module_id is None:
        raise ProgressValidationError("Module ID is required for module exams")
    if module_id is not None:
        module = await repos.catalog.get_module(module_id)
        if module is None or module.course_id != course.id:
            raise NotFoundError("Module not found in this course")
        if is_module_exam and (
            await repos.quizzes.get_module_exam(module_id, published_only=False)
        ) is not None:
            raise BusinessRuleError("This module already has an exam")
    if lesson_id is not None:
        lesson = await repos.catalog.get_lesson(lesson_id)
        if lesson is None or lesson.course_id != course.id:
            raise NotFoundError("Lesson not found in this course")

    quiz = Quiz.new(
        course_id=course.id,
        title=title,
        questions=questions,
        created_by=course.teacher_email,
        passing_score=passing_score,
        max_attempts=max_attempts,
        is_module_exam=is_module_exam,
        is_published=is_published,
        module_id=module_id,
        lesson_id=lesson_id,
        description=description,
        time_limit_minutes=time_limit_minutes,
    )
    try:
        await repos.quizzes.add_quiz(quiz)
    except DuplicateRecordError:
        # A concurrent create took the module's exam slot.
        raise BusinessRuleError("This module already has an exam") from None
    logger.info(
        "Quiz %s created in course %s (module_exam=%s)",
        quiz.id,
        course.id,
        is_module_exam,
        extra={"course_id": str(course.id)},
    )
    return quiz


async def get_quiz(
    repos: Repositories, principal: Principal, quiz_id: UUID
) -> tuple[Quiz, bool]:
    """Return the quiz and whether the caller may see correct answers."""
    quiz = await repos.quizzes.get_quiz(quiz_id)
    if quiz is None:
        raise NotFoundError("Quiz not found")
    full_view = await viewer_scope(repos, quiz.course_id, principal)
    if not full_view and not quiz.is_published:
        raise NotFoundError("Quiz not found")
    return quiz, full_view


async def list_course_quizzes(
    repos: Repositories, principal: Principal, course_id: UUID
) -> tuple[list[Quiz], bool]:
    full_view = await viewer_scope(repos, course_id, principal)
    quizzes = await repos.quizzes.list_course_quizzes(
        course_id, published_only=not full_view
    )
    return quizzes, full_view


async def get_module_exam(
    repos: Repositories, principal: Principal, module_id: UUID
) -> tuple[Quiz | None, bool]:
    module = await repos.catalog.get_module(module_id)
    if module is None:
        raise NotFoundError("Module not found")
    full_view = await viewer_scope(repos, module.course_id, principal)
    return await repos.quizzes.get_module_exam(module_id), full_view


# ---------------------------------------------------------------------------
# Attempts
# ---------------------------------------------------------------------------


async def _published_quiz(repos: Repositories, quiz_id: UUID) -> Quiz:
    quiz = await repos.quizzes.get_quiz(quiz_id)
    if quiz is None or not quiz.is_published:
        raise NotFoundError("Quiz not found")
    return quiz


async def start_attempt(
    repos: Repositories, student_email: str, quiz_id: UUID
) -> tuple[QuizAttempt, bool]:
    """Open a new attempt, or resume the open one.

    Returns (attempt, resumed).
    """
    quiz = await _published_quiz(repos, quiz_id)
    await enrolled_course(repos, quiz.course_id, student_email)

    open_attempt = await repos.quizzes.get_open_attempt(quiz_id, student_email)
    if open_attempt is not None:
        return open_attempt, True

    attempts_so_far = await repos.quizzes.attempt_count(quiz_id, student_email)
    if attempts_so_far >= quiz.max_attempts:
        raise BusinessRuleError(
            f"Maximum attempts exceeded ({attempts_so_far} of {quiz.max_attempts})"
        )

    now = utcnow()
    try:
        attempt = await repos.quizzes.create_attempt(quiz_id, student_email, now)
    except DuplicateRecordError:
        # A concurrent start won; hand back the attempt it opened.
        open_attempt = await repos.quizzes.get_open_attempt(quiz_id, student_email)
        if open_attempt is None:
            raise BusinessRuleError("Attempt could not be started, retry") from None
        return open_attempt, True

    await log_activity(
        repos,
        student_email=student_email,
        course_id=quiz.course_id,
        activity_type="quiz_started",
        description=f"Started quiz: {quiz.title}",
        now=now,
        metadata={"quiz_id": str(quiz_id), "attempt_number": attempt.attempt_number},
    )
    logger.info(
        "Attempt %d of quiz %s started by %s",
        attempt.attempt_number,
        quiz_id,
        student_email,
        extra={"student": student_email, "course_id": str(quiz.course_id)},
    )
    return attempt, False


@dataclass(frozen=True, slots=True)
class SubmitResult:
    attempt: QuizAttempt
    progress: RecordResult
    module_completed: bool


async def submit_attempt(
    repos: Repositories,
    student_email: str,
    quiz_id: UUID,
    *,
    answers: dict[str, Any],
    time_taken_seconds: int | None = None,
) -> SubmitResult:
    if time_taken_seconds is not None and time_taken_seconds < 0:
        raise ProgressValidationError("time_taken_seconds cannot be negative")
    quiz = await _published_quiz(repos, quiz_id)
    await enrolled_course(repos, quiz.course_id, student_email)

    open_attempt = await repos.quizzes.get_open_attempt(quiz_id, student_email)
    if open_attempt is None:
        raise BusinessRuleError("No active attempt found. Start the quiz first.")

    score = score_answers(quiz, answers)
    # A quiz without questions scores 0 and can never pass, whatever the mark.
    passed = bool(quiz.questions) and score >= quiz.passing_score
    now = utcnow()
    attempt = await repos.quizzes.complete_attempt(
        open_attempt.id,
        answers=answers,
        score=score,
        passed=passed,
        time_taken_seconds=time_taken_seconds,
        completed_at=now,
    )
    if attempt is None:
        raise BusinessRuleError("This attempt has already been submitted")

    progress = await record_event(
        repos,
        ProgressRecord.new(
            student_email=student_email,
            course_id=quiz.course_id,
            module_id=quiz.module_id,
            lesson_id=quiz.lesson_id,
            target_id=str(quiz_id),
            event_type="quiz_passed",
            status="completed" if passed else "failed",
            score=score,
            time_spent_seconds=time_taken_seconds or 0,
            created_at=now,
            metadata={
                "quiz_id": str(quiz_id),
                "attempt_id": str(attempt.id),
                "attempt_number": attempt.attempt_number,
                "passed": passed,
            },
            dedupe=dedupe_key(
                student_email, quiz.course_id, str(attempt.id), "quiz_passed"
            ),
        ),
    )
    await log_activity(
        repos,
        student_email=student_email,
        course_id=quiz.course_id,
        activity_type="quiz_completed",
        description=f"Completed quiz: {quiz.title} (Score: {score}%)",
        now=now,
        metadata={"quiz_id": str(quiz_id), "score": score, "passed": passed},
    )

    module_completed = False
    if passed and quiz.is_module_exam and quiz.module_id is not None:
        module_completed = await check_module_completion(
            repos, student_email, quiz.course_id, quiz.module_id
        )
    await invalidate_progress(repos, student_email, quiz.course_id)
    return SubmitResult(
        attempt=attempt, progress=progress, module_completed=module_completed
    )


async def quiz_results(
    repos: Repositories, teacher_email: str, quiz_id: UUID
) -> dict[str, Any]:
    """Attempt statistics for the owning teacher.

    Only completed attempts count toward the rates; ``attempts`` lists all.
    """
    quiz = await repos.quizzes.get_quiz(quiz_id)
    if quiz is None:
        raise NotFoundError("Quiz not found")
    await owned_course(repos, quiz.course_id, teacher_email)

    attempts = await repos.quizzes.list_attempts(quiz_id)
    completed = [a for a in attempts if not a.in_progress]
    passed = [a for a in completed if a.passed]
    average = (
        int(sum(a.score or 0 for a in completed) / len(completed) + 0.5)
        if completed
        else 0
    )
    return {
        "quiz": quiz,
        "total_attempts": len(completed),
        "passed_attempts": len(passed),
        "pass_rate": percentage(len(passed), len(completed)),
        "average_score": average,
        "attempts": attempts,
    }
