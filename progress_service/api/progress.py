"""Progress recording and dashboard endpoints.

Student writes:
  POST /progress/lesson-completed        one-time; a repeat returns the
                                         existing record, "already completed"
  POST /progress/quiz-completed
  POST /progress/assignment-submitted
  POST /progress/discussion-participated
  POST /progress/poll-responded
  POST /progress/poll-participation

Student reads:
  GET /progress/my-progress
  GET /progress/course/{course_id}       read-through cached per (student, course)
  GET /progress/activities

Teacher reads (course ownership resolved by OwnedCourse):
  GET /progress/teacher/dashboard
  GET /progress/teacher/student/{student_email}/course/{course_id}
  GET /progress/teacher/student/{student_email}/engagement
  GET /progress/teacher/course/{course_id}/analytics

Request bodies and the top-level keys of composite responses are
camelCase; progress rows and summary rows keep their snake_case column
names.
"""

from __future__ import annotations

import logging
from typing import Annotated, Any
from uuid import UUID

from fastapi import APIRouter, Query
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from progress_service.api.dependencies import (
    OwnedCourse,
    Repos,
    StudentPrincipal,
    TeacherPrincipal,
)
from progress_service.core.config import SETTINGS
from progress_service.core.metrics import CACHE_OPERATIONS
from progress_service.models.progress import Activity, ProgressRecord
from progress_service.services import progress_queries, recorder
from progress_service.services.cache import cache_service, progress_key
from progress_service.services.events import RecordResult
from progress_service.services.progress_queries import (
    CourseProgress,
    CourseSummary,
    ModuleCompletion,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/progress", tags=["progress"])


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Response rows
# ---------------------------------------------------------------------------


class ProgressRecordOut(BaseModel):
    id: UUID
    student_email: str
    course_id: UUID
    module_id: UUID | None
    lesson_id: UUID | None
    target_id: str | None
    event_type: str
    status: str
    score: int
    time_spent_seconds: int
    metadata: dict[str, Any]
    created_at: int

    @staticmethod
    def of(r: ProgressRecord) -> ProgressRecordOut:
        return ProgressRecordOut(
            id=r.id,
            student_email=r.student_email,
            course_id=r.course_id,
            module_id=r.module_id,
            lesson_id=r.lesson_id,
            target_id=r.target_id,
            event_type=r.event_type,
            status=r.status,
            score=r.score,
            time_spent_seconds=r.time_spent_seconds,
            metadata=r.metadata,
            created_at=r.created_at,
        )


class ActivityOut(BaseModel):
    id: UUID
    student_email: str
    course_id: UUID
    activity_type: str
    description: str
    metadata: dict[str, Any]
    created_at: int

    @staticmethod
    def of(a: Activity) -> ActivityOut:
        return ActivityOut(
            id=a.id,
            student_email=a.student_email,
            course_id=a.course_id,
            activity_type=a.activity_type,
            description=a.description,
            metadata=a.metadata,
            created_at=a.created_at,
        )


class RecordedOut(BaseModel):
    message: str
    progress: ProgressRecordOut


class CourseSummaryOut(BaseModel):
    course_id: UUID
    course_title: str
    student_email: str
    student_name: str
    course_completion_percentage: int
    total_lessons: int
    completed_lessons: int
    total_assignments: int
    completed_assignments: int
    total_quizzes: int
    passed_quizzes: int
    average_grade: int
    started_at: int | None
    completed_at: int | None
    last_activity_at: int | None
    total_activities: int

    @staticmethod
    def of(s: CourseSummary) -> CourseSummaryOut:
        return CourseSummaryOut(
            course_id=s.course_id,
            course_title=s.course_title,
            student_email=s.student_email,
            student_name=s.student_name,
            course_completion_percentage=s.completion_percentage,
            total_lessons=s.total_lessons,
            completed_lessons=s.completed_lessons,
            total_assignments=s.total_assignments,
            completed_assignments=s.submitted_assignments,
            total_quizzes=s.total_quizzes,
            passed_quizzes=s.passed_quizzes,
            average_grade=s.average_score,
            started_at=s.started_at,
            completed_at=s.completed_at,
            last_activity_at=s.last_activity_at,
            total_activities=s.total_activities,
        )


class ModuleCompletionOut(BaseModel):
    module_id: UUID
    module_title: str
    position: int
    total_lessons: int
    completed_lessons: int
    has_exam: bool
    exam_passed: bool
    completed: bool
    completed_at: int | None

    @staticmethod
    def of(m: ModuleCompletion) -> ModuleCompletionOut:
        return ModuleCompletionOut(
            module_id=m.module_id,
            module_title=m.module_title,
            position=m.position,
            total_lessons=m.total_lessons,
            completed_lessons=m.completed_lessons,
            has_exam=m.has_exam,
            exam_passed=m.exam_passed,
            completed=m.completed,
            completed_at=m.completed_at,
        )


class CourseProgressOut(_CamelModel):
    course_completion: CourseSummaryOut
    module_completions: list[ModuleCompletionOut]
    activities: list[ActivityOut]
    detailed_progress: list[ProgressRecordOut]

    @staticmethod
    def of(p: CourseProgress) -> CourseProgressOut:
        return CourseProgressOut(
            course_completion=CourseSummaryOut.of(p.course_completion),
            module_completions=[
                ModuleCompletionOut.of(m) for m in p.module_completions
            ],
            activities=[ActivityOut.of(a) for a in p.activities],
            detailed_progress=[ProgressRecordOut.of(r) for r in p.detailed_progress],
        )


class StudentRef(BaseModel):
    email: str
    name: str


class StudentCourseDetailOut(CourseProgressOut):
    student: StudentRef


class CourseRef(BaseModel):
    id: UUID
    title: str


class AnalyticsOut(_CamelModel):
    total_students: int
    completed_students: int
    in_progress_students: int
    not_started_students: int
    average_completion: int
    completion_rate: int


class CourseAnalyticsOut(_CamelModel):
    course: CourseRef
    analytics: AnalyticsOut
    recent_activities: list[ActivityOut]


class EngagementOut(_CamelModel):
    poll_participation: int
    discussion_participation: int
    total_study_time_minutes: int
    enrolled_courses: int
    period: str


# ---------------------------------------------------------------------------
# Request bodies
# ---------------------------------------------------------------------------


class LessonCompletedIn(_CamelModel):
    course_id: UUID
    lesson_id: UUID
    module_id: UUID | None = None
    lesson_title: str | None = None
    time_spent_seconds: int = 0


class QuizCompletedIn(_CamelModel):
    course_id: UUID
    quiz_id: UUID
    score: int
    passed: bool
    module_id: UUID | None = None
    time_spent_seconds: int = 0


class AssignmentSubmittedIn(_CamelModel):
    course_id: UUID
    assignment_id: UUID
    module_id: UUID | None = None
    time_spent_minutes: int = 0


class DiscussionParticipatedIn(_CamelModel):
    course_id: UUID
    discussion_id: str
    post_id: str | None = None
    module_id: UUID | None = None


class PollRespondedIn(_CamelModel):
    course_id: UUID
    poll_id: str
    response_id: str | None = None
    module_id: UUID | None = None


class PollParticipationIn(_CamelModel):
    course_id: UUID
    lesson_id: UUID
    poll_question: str
    selected_option: str | None = None
    lesson_title: str | None = None
    module_id: UUID | None = None


def _recorded(result: RecordResult, message: str) -> RecordedOut:
    return RecordedOut(message=message, progress=ProgressRecordOut.of(result.record))


# ---------------------------------------------------------------------------
# Student writes
# ---------------------------------------------------------------------------


@router.post("/lesson-completed", response_model=RecordedOut)
async def lesson_completed(
    body: LessonCompletedIn, principal: StudentPrincipal, repos: Repos
) -> RecordedOut:
    result = await recorder.record_lesson_completed(
        repos,
        principal.email,
        course_id=body.course_id,
        lesson_id=body.lesson_id,
        module_id=body.module_id,
        lesson_title=body.lesson_title,
        time_spent_seconds=body.time_spent_seconds,
    )
    if not result.created:
        return _recorded(result, "Lesson already completed")
    return _recorded(result, "Lesson completed successfully")


@router.post("/quiz-completed", response_model=RecordedOut)
async def quiz_completed(
    body: QuizCompletedIn, principal: StudentPrincipal, repos: Repos
) -> RecordedOut:
    result = await recorder.record_quiz_completed(
        repos,
        principal.email,
        course_id=body.course_id,
        quiz_id=body.quiz_id,
        score=body.score,
        passed=body.passed,
        module_id=body.module_id,
        time_spent_seconds=body.time_spent_seconds,
    )
    return _recorded(result, "Quiz completed successfully")


@router.post("/assignment-submitted", response_model=RecordedOut)
async def assignment_submitted(
    body: AssignmentSubmittedIn, principal: StudentPrincipal, repos: Repos
) -> RecordedOut:
    result = await recorder.record_assignment_submitted(
        repos,
        principal.email,
        course_id=body.course_id,
        assignment_id=body.assignment_id,
        module_id=body.module_id,
        time_spent_minutes=body.time_spent_minutes,
    )
    return _recorded(result, "Assignment submission recorded successfully")


@router.post("/discussion-participated", response_model=RecordedOut)
async def discussion_participated(
    body: DiscussionParticipatedIn, principal: StudentPrincipal, repos: Repos
) -> RecordedOut:
    result = await recorder.record_discussion_participation(
        repos,
        principal.email,
        course_id=body.course_id,
        discussion_id=body.discussion_id,
        post_id=body.post_id,
        module_id=body.module_id,
    )
    return _recorded(result, "Discussion participation recorded successfully")


@router.post("/poll-responded", response_model=RecordedOut)
async def poll_responded(
    body: PollRespondedIn, principal: StudentPrincipal, repos: Repos
) -> RecordedOut:
    result = await recorder.record_poll_response(
        repos,
        principal.email,
        course_id=body.course_id,
        poll_id=body.poll_id,
        response_id=body.response_id,
        module_id=body.module_id,
    )
    return _recorded(result, "Poll response recorded successfully")


@router.post("/poll-participation", response_model=RecordedOut)
async def poll_participation(
    body: PollParticipationIn, principal: StudentPrincipal, repos: Repos
) -> RecordedOut:
    result = await recorder.record_poll_participation(
        repos,
        principal.email,
        course_id=body.course_id,
        lesson_id=body.lesson_id,
        poll_question=body.poll_question,
        selected_option=body.selected_option,
        lesson_title=body.lesson_title,
        module_id=body.module_id,
    )
    return _recorded(result, "Poll participation recorded successfully")


# ---------------------------------------------------------------------------
# Student reads
# ---------------------------------------------------------------------------


@router.get("/my-progress", response_model=list[ProgressRecordOut])
async def my_progress(
    principal: StudentPrincipal, repos: Repos
) -> list[ProgressRecordOut]:
    records = await progress_queries.my_progress(repos, principal.email)
    return [ProgressRecordOut.of(r) for r in records]


@router.get("/course/{course_id}", response_model=CourseProgressOut)
async def course_progress(
    course_id: UUID, principal: StudentPrincipal, repos: Repos
) -> CourseProgressOut:
    """Read-through cached; the recorder drops the entry on every event."""
    cache_key = progress_key(principal.email, course_id)

    cached = await cache_service.get(cache_key)
    if cached is not None:
        CACHE_OPERATIONS.labels(operation="hit").inc()
        return CourseProgressOut.model_validate_json(cached)

    CACHE_OPERATIONS.labels(operation="miss").inc()
    progress = await progress_queries.course_progress(repos, principal.email, course_id)
    out = CourseProgressOut.of(progress)
    await cache_service.set(
        cache_key, out.model_dump_json(by_alias=True), SETTINGS.progress_cache_ttl
    )
    return out


@router.get("/activities", response_model=list[ActivityOut])
async def my_activities(
    principal: StudentPrincipal,
    repos: Repos,
    course_id: Annotated[UUID | None, Query(alias="courseId")] = None,
    limit: int = 50,
) -> list[ActivityOut]:
    activities = await progress_queries.my_activities(
        repos, principal.email, course_id=course_id, limit=limit
    )
    return [ActivityOut.of(a) for a in activities]


# ---------------------------------------------------------------------------
# Teacher reads
# ---------------------------------------------------------------------------


@router.get("/teacher/dashboard", response_model=list[CourseSummaryOut])
async def teacher_dashboard(
    principal: TeacherPrincipal,
    repos: Repos,
    course_id: Annotated[UUID | None, Query(alias="courseId")] = None,
) -> list[CourseSummaryOut]:
    rows = await progress_queries.teacher_dashboard(
        repos, principal.email, course_id=course_id
    )
    return [CourseSummaryOut.of(r) for r in rows]


@router.get(
    "/teacher/student/{student_email}/course/{course_id}",
    response_model=StudentCourseDetailOut,
)
async def student_course_detail(
    student_email: str, course: OwnedCourse, repos: Repos
) -> StudentCourseDetailOut:
    progress = await progress_queries.student_course_detail(
        repos, course, student_email
    )
    base = CourseProgressOut.of(progress)
    return StudentCourseDetailOut(
        student=StudentRef(
            email=student_email, name=progress.course_completion.student_name
        ),
        course_completion=base.course_completion,
        module_completions=base.module_completions,
        activities=base.activities,
        detailed_progress=base.detailed_progress,
    )


@router.get(
    "/teacher/student/{student_email}/engagement", response_model=EngagementOut
)
async def student_engagement(
    student_email: str,
    principal: TeacherPrincipal,
    repos: Repos,
    days: int = 30,
) -> EngagementOut:
    e = await progress_queries.student_engagement(
        repos, principal.email, student_email, days=days
    )
    return EngagementOut(
        poll_participation=e.poll_participation,
        discussion_participation=e.discussion_participation,
        total_study_time_minutes=e.total_study_time_minutes,
        enrolled_courses=e.enrolled_courses,
        period=e.period,
    )


@router.get("/teacher/course/{course_id}/analytics", response_model=CourseAnalyticsOut)
async def course_analytics(course: OwnedCourse, repos: Repos) -> CourseAnalyticsOut:
    a = await progress_queries.course_analytics(repos, course)
    return CourseAnalyticsOut(
        course=CourseRef(id=course.id, title=course.title),
        analytics=AnalyticsOut(
            total_students=a.total_students,
            completed_students=a.completed_students,
            in_progress_students=a.in_progress_students,
            not_started_students=a.not_started_students,
            average_completion=a.average_completion,
            completion_rate=a.completion_rate,
        ),
        recent_activities=[ActivityOut.of(x) for x in a.recent_activities],
    )
