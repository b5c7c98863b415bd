"""Quiz authoring, attempts and results.

  POST /quizzes                          teacher, owning the course -> 201
  GET  /quizzes/{quiz_id}                owner or enrolled student
  GET  /quizzes/course/{course_id}       owner sees drafts too
  GET  /quizzes/module/{module_id}/exam  {"exam": null} when the module has none
  POST /quizzes/{quiz_id}/start          student; resumes an open attempt
  POST /quizzes/{quiz_id}/submit         student; scores and closes the attempt
  GET  /quizzes/{quiz_id}/results        owning teacher

Correct answers are stripped from every quiz served to a student.
"""

from __future__ import annotations

from typing import Any
from uuid import UUID

from fastapi import APIRouter, status
from pydantic import BaseModel, Field

from progress_service.api.dependencies import (
    CurrentUser,
    Repos,
    StudentPrincipal,
    TeacherPrincipal,
)
from progress_service.api.progress import ProgressRecordOut
from progress_service.models.quiz import Question, Quiz, QuizAttempt
from progress_service.services import access, quiz_service

router = APIRouter(prefix="/quizzes", tags=["quizzes"])


class QuestionIn(BaseModel):
    id: str
    type: str
    question: str = ""
    options: list[str] = Field(default_factory=list)
    correct_answer: Any = None


class QuizIn(BaseModel):
    course_id: UUID
    title: str
    questions: list[QuestionIn] = Field(default_factory=list)
    module_id: UUID | None = None
    lesson_id: UUID | None = None
    description: str | None = None
    time_limit_minutes: int | None = None
    passing_score: int = 70
    max_attempts: int = 1
    is_module_exam: bool = False
    is_published: bool = True


class QuestionOut(BaseModel):
    id: str
    type: str
    question: str
    options: list[str]
    correct_answer: Any = None


class QuizOut(BaseModel):
    id: UUID
    course_id: UUID
    module_id: UUID | None
    lesson_id: UUID | None
    title: str
    description: str | None
    time_limit_minutes: int | None
    passing_score: int
    max_attempts: int
    is_module_exam: bool
    is_published: bool
    questions: list[QuestionOut]

    @staticmethod
    def of(quiz: Quiz, *, full_view: bool) -> QuizOut:
        return QuizOut(
            id=quiz.id,
            course_id=quiz.course_id,
            module_id=quiz.module_id,
            lesson_id=quiz.lesson_id,
            title=quiz.title,
            description=quiz.description,
            time_limit_minutes=quiz.time_limit_minutes,
            passing_score=quiz.passing_score,
            max_attempts=quiz.max_attempts,
            is_module_exam=quiz.is_module_exam,
            is_published=quiz.is_published,
            questions=[
                QuestionOut(
                    id=q.id,
                    type=q.type,
                    question=q.prompt,
                    options=list(q.options),
                    correct_answer=q.correct_answer if full_view else None,
                )
                for q in quiz.questions
            ],
        )


class AttemptOut(BaseModel):
    id: UUID
    quiz_id: UUID
    student_email: str
    attempt_number: int
    started_at: int
    completed_at: int | None
    answers: dict[str, Any]
    score: int | None
    passed: bool | None
    time_taken_seconds: int | None

    @staticmethod
    def of(a: QuizAttempt) -> AttemptOut:
        return AttemptOut(
            id=a.id,
            quiz_id=a.quiz_id,
            student_email=a.student_email,
            attempt_number=a.attempt_number,
            started_at=a.started_at,
            completed_at=a.completed_at,
            answers=a.answers,
            score=a.score,
            passed=a.passed,
            time_taken_seconds=a.time_taken_seconds,
        )


class StartOut(BaseModel):
    attempt: AttemptOut
    resumed: bool


class SubmitIn(BaseModel):
    answers: dict[str, Any] = Field(default_factory=dict)
    time_taken_seconds: int | None = None


class SubmitOut(BaseModel):
    attempt: AttemptOut
    score: int
    passed: bool
    module_completed: bool
    progress: ProgressRecordOut


class ExamOut(BaseModel):
    exam: QuizOut | None


class QuizResultsOut(BaseModel):
    quiz: QuizOut
    total_attempts: int
    passed_attempts: int
    pass_rate: int
    average_score: int
    attempts: list[AttemptOut]


@router.post("", response_model=QuizOut, status_code=status.HTTP_201_CREATED)
async def create_quiz(
    body: QuizIn, principal: TeacherPrincipal, repos: Repos
) -> QuizOut:
    course = await access.owned_course(repos, body.course_id, principal.email)
    quiz = await quiz_service.create_quiz(
        repos,
        course,
        title=body.title,
        questions=tuple(
            Question(
                id=q.id,
                type=q.type,
                prompt=q.question,
                options=tuple(q.options),
                correct_answer=q.correct_answer,
            )
            for q in body.questions
        ),
        module_id=body.module_id,
        lesson_id=body.lesson_id,
        description=body.description,
        time_limit_minutes=body.time_limit_minutes,
        passing_score=body.passing_score,
        max_attempts=body.max_attempts,
        is_module_exam=body.is_module_exam,
        is_published=body.is_published,
    )
    return QuizOut.of(quiz, full_view=True)


@router.get("/course/{course_id}", response_model=list[QuizOut])
async def list_course_quizzes(
    course_id: UUID, principal: CurrentUser, repos: Repos
) -> list[QuizOut]:
    quizzes, full_view = await quiz_service.list_course_quizzes(
        repos, principal, course_id
    )
    return [QuizOut.of(q, full_view=full_view) for q in quizzes]


@router.get("/module/{module_id}/exam", response_model=ExamOut)
async def get_module_exam(
    module_id: UUID, principal: CurrentUser, repos: Repos
) -> ExamOut:
    exam, full_view = await quiz_service.get_module_exam(repos, principal, module_id)
    return ExamOut(exam=QuizOut.of(exam, full_view=full_view) if exam else None)


@router.get("/{quiz_id}", response_model=QuizOut)
async def get_quiz(quiz_id: UUID, principal: CurrentUser, repos: Repos) -> QuizOut:
    quiz, full_view = await quiz_service.get_quiz(repos, principal, quiz_id)
    return QuizOut.of(quiz, full_view=full_view)


@router.post("/{quiz_id}/start", response_model=StartOut)
async def start_quiz(
    quiz_id: UUID, principal: StudentPrincipal, repos: Repos
) -> StartOut:
    attempt, resumed = await quiz_service.start_attempt(
        repos, principal.email, quiz_id
    )
    return StartOut(attempt=AttemptOut.of(attempt), resumed=resumed)


@router.post("/{quiz_id}/submit", response_model=SubmitOut)
async def submit_quiz(
    quiz_id: UUID, body: SubmitIn, principal: StudentPrincipal, repos: Repos
) -> SubmitOut:
    result = await quiz_service.submit_attempt(
        repos,
        principal.email,
        quiz_id,
        answers=body.answers,
        time_taken_seconds=body.time_taken_seconds,
    )
    return SubmitOut(
        attempt=AttemptOut.of(result.attempt),
        score=result.attempt.score or 0,
        passed=bool(result.attempt.passed),
        module_completed=result.module_completed,
        progress=ProgressRecordOut.of(result.progress.record),
    )


@router.get("/{quiz_id}/results", response_model=QuizResultsOut)
async def quiz_results(
    quiz_id: UUID, principal: TeacherPrincipal, repos: Repos
) -> QuizResultsOut:
    stats = await quiz_service.quiz_results(repos, principal.email, quiz_id)
    return QuizResultsOut(
        quiz=QuizOut.of(stats["quiz"], full_view=True),
        total_attempts=stats["total_attempts"],
        passed_attempts=stats["passed_attempts"],
        pass_rate=stats["pass_rate"],
        average_score=stats["average_score"],
        attempts=[AttemptOut.of(a) for a in stats["attempts"]],
    )
