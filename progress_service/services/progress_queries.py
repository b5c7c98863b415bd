"""Read-side aggregation over progress records for dashboards.

Pure reads. Students are scoped to their own rows in courses they are
enrolled in, teachers to courses they own; every function resolves that
scope before it touches progress data.
"""

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from progress_service.models.course import Course, Enrollment
from progress_service.models.progress import Activity, ProgressRecord, percentage
from progress_service.repos.bundle import Repositories
from progress_service.services.access import enrolled_course, owned_course
from progress_service.services.errors import NotFoundError, ProgressValidationError
from progress_service.services.events import utcnow

RECENT_COURSE_ACTIVITIES = 10
RECENT_ANALYTICS_ACTIVITIES = 20


@dataclass(frozen=True, slots=True)
class CourseSummary:
    course_id: UUID
    course_title: str
    student_email: str
    student_name: str
    total_lessons: int
    completed_lessons: int
    total_assignments: int
    submitted_assignments: int
    total_quizzes: int
    passed_quizzes: int
    average_score: int
    completion_percentage: int
    started_at: int | None
    completed_at: int | None
    last_activity_at: int | None
    total_activities: int


@dataclass(frozen=True, slots=True)
class ModuleCompletion:
    module_id: UUID
    module_title: str
    position: int
    total_lessons: int
    completed_lessons: int
    has_exam: bool
    exam_passed: bool
    completed: bool
    completed_at: int | None


@dataclass(frozen=True, slots=True)
class CourseProgress:
    course_completion: CourseSummary
    module_completions: list[ModuleCompletion]
    activities: list[Activity]
    detailed_progress: list[ProgressRecord]


@dataclass(frozen=True, slots=True)
class CourseAnalytics:
    course: Course
    total_students: int
    completed_students: int
    in_progress_students: int
    not_started_students: int
    average_completion: int
    completion_rate: int
    recent_activities: list[Activity]


@dataclass(frozen=True, slots=True)
class Engagement:
    poll_participation: int
    discussion_participation: int
    total_study_time_minutes: int
    enrolled_courses: int
    period: str


def _done(records: list[ProgressRecord], event_type: str) -> list[ProgressRecord]:
    return [
        r for r in records if r.event_type == event_type and r.status == "completed"
    ]


async def _summarize(
    repos: Repositories,
    course: Course,
    student_email: str,
    enrollment: Enrollment | None,
    records: list[ProgressRecord],
) -> CourseSummary:
    lesson_ids = {le.id for le in await repos.catalog.list_course_lessons(course.id)}
    completed_lessons = {
        r.lesson_id for r in _done(records, "lesson_completed")
    } & lesson_ids

    assignment_ids = {
        str(a.id) for a in await repos.catalog.list_assignments(course.id)
    }
    submitted = {
        r.target_id for r in records if r.event_type == "assignment_submitted"
    } & assignment_ids

    quiz_ids = {
        q.id
        for q in await repos.quizzes.list_course_quizzes(course.id, published_only=True)
    }
    attempts = await repos.quizzes.list_student_course_attempts(
        student_email, course.id
    )
    scored = [a for a in attempts if not a.in_progress and a.score is not None]
    passed_quizzes = {a.quiz_id for a in scored if a.passed} & quiz_ids
    average_score = (
        int(sum(a.score or 0 for a in scored) / len(scored) + 0.5) if scored else 0
    )

    course_done = _done(records, "course_completed")
    completed_at = course_done[0].created_at if course_done else None
    activities = await repos.activities.list_for_student(
        student_email, course_id=course.id
    )
    profile = await repos.catalog.get_profile(student_email)

    return CourseSummary(
        course_id=course.id,
        course_title=course.title,
        student_email=student_email,
        student_name=profile.display_name if profile else student_email,
        total_lessons=len(lesson_ids),
        completed_lessons=len(completed_lessons),
        total_assignments=len(assignment_ids),
        submitted_assignments=len(submitted),
        total_quizzes=len(quiz_ids),
        passed_quizzes=len(passed_quizzes),
        average_score=average_score,
        completion_percentage=(
            100
            if completed_at is not None
            else percentage(len(completed_lessons), len(lesson_ids))
        ),
        started_at=enrollment.enrolled_at if enrollment else None,
        completed_at=completed_at,
        last_activity_at=activities[0].created_at if activities else None,
        total_activities=len(activities),
    )


async def _module_completions(
    repos: Repositories,
    course: Course,
    student_email: str,
    records: list[ProgressRecord],
) -> list[ModuleCompletion]:
    completed_lessons = {r.lesson_id for r in _done(records, "lesson_completed")}
    module_done = {r.module_id: r for r in _done(records, "module_completed")}
    result = []
    for module in await repos.catalog.list_modules(course.id):
        lesson_ids = {
            le.id for le in await repos.catalog.list_module_lessons(module.id)
        }
        exam = await repos.quizzes.get_module_exam(module.id)
        exam_passed = (
            exam is not None
            and await repos.quizzes.latest_passing_attempt(exam.id, student_email)
            is not None
        )
        done = module_done.get(module.id)
        result.append(
            ModuleCompletion(
                module_id=module.id,
                module_title=module.title,
                position=module.position,
                total_lessons=len(lesson_ids),
                completed_lessons=len(lesson_ids & completed_lessons),
                has_exam=exam is not None,
                exam_passed=exam_passed,
                completed=done is not None,
                completed_at=done.created_at if done else None,
            )
        )
    return result


async def _course_progress(
    repos: Repositories, course: Course, student_email: str
) -> CourseProgress:
    records = await repos.progress.list_for_student_course(student_email, course.id)
    enrollment = await repos.catalog.get_enrollment(course.id, student_email)
    return CourseProgress(
        course_completion=await _summarize(
            repos, course, student_email, enrollment, records
        ),
        module_completions=await _module_completions(
            repos, course, student_email, records
        ),
        activities=await repos.activities.list_for_student(
            student_email, course_id=course.id, limit=RECENT_COURSE_ACTIVITIES
        ),
        detailed_progress=records,
    )


# ---------------------------------------------------------------------------
# Student views
# ---------------------------------------------------------------------------


async def my_progress(repos: Repositories, student_email: str) -> list[ProgressRecord]:
    return await repos.progress.list_for_student(student_email)


async def course_progress(
    repos: Repositories, student_email: str, course_id: UUID
) -> CourseProgress:
    course = await enrolled_course(repos, course_id, student_email)
    return await _course_progress(repos, course, student_email)


async def my_activities(
    repos: Repositories,
    student_email: str,
    *,
    course_id: UUID | None = None,
    limit: int = 50,
) -> list[Activity]:
    if not 1 <= limit <= 500:
        raise ProgressValidationError("limit must be between 1 and 500")
    return await repos.activities.list_for_student(
        student_email, course_id=course_id, limit=limit
    )


# ---------------------------------------------------------------------------
# Teacher views
# ---------------------------------------------------------------------------


async def teacher_dashboard(
    repos: Repositories, teacher_email: str, course_id: UUID | None = None
) -> list[CourseSummary]:
    """One row per (owned course, enrolled student), most recent activity first."""
    if course_id is not None:
        courses = [await owned_course(repos, course_id, teacher_email)]
    else:
        courses = await repos.catalog.list_courses_for_teacher(teacher_email)

    rows = []
    for course in courses:
        for enrollment in await repos.catalog.list_enrollments(course.id):
            records = await repos.progress.list_for_student_course(
                enrollment.student_email, course.id
            )
            rows.append(
                await _summarize(
                    repos, course, enrollment.student_email, enrollment, records
                )
            )
    # newest first, never-active students last
    rows.sort(key=lambda r: (r.last_activity_at is None, -(r.last_activity_at or 0)))
    return rows


async def student_course_detail(
    repos: Repositories, course: Course, student_email: str
) -> CourseProgress:
    """Progress of one student in a course the caller already owns."""
    if await repos.catalog.get_enrollment(course.id, student_email) is None:
        raise NotFoundError("Student is not enrolled in this course")
    return await _course_progress(repos, course, student_email)


async def course_analytics(repos: Repositories, course: Course) -> CourseAnalytics:
    enrollments = await repos.catalog.list_enrollments(course.id)

    percentages = []
    for enrollment in enrollments:
        records = await repos.progress.list_for_student_course(
            enrollment.student_email, course.id
        )
        summary = await _summarize(
            repos, course, enrollment.student_email, enrollment, records
        )
        percentages.append(summary.completion_percentage)

    total = len(percentages)
    completed = sum(1 for p in percentages if p == 100)
    in_progress = sum(1 for p in percentages if 0 < p < 100)
    return CourseAnalytics(
        course=course,
        total_students=total,
        completed_students=completed,
        in_progress_students=in_progress,
        not_started_students=total - completed - in_progress,
        average_completion=int(sum(percentages) / total + 0.5) if total else 0,
        completion_rate=percentage(completed, total),
        recent_activities=await repos.activities.list_for_course(
            course.id, limit=RECENT_ANALYTICS_ACTIVITIES
        ),
    )


async def student_engagement(
    repos: Repositories, teacher_email: str, student_email: str, *, days: int = 30
) -> Engagement:
    """Participation and study time across the teacher's courses."""
    if not 1 <= days <= 365:
        raise ProgressValidationError("days must be between 1 and 365")

    owned = {c.id for c in await repos.catalog.list_courses_for_teacher(teacher_email)}
    enrollments = [
        e
        for e in await repos.catalog.list_student_enrollments(student_email)
        if e.course_id in owned
    ]
    if not enrollments:
        raise NotFoundError("Student not found in your courses")

    since = utcnow() - days * 86400
    course_ids = {e.course_id for e in enrollments}
    activities = [
        a
        for a in await repos.activities.list_for_student(student_email)
        if a.course_id in course_ids and a.created_at >= since
    ]
    records = [
        r
        for r in await repos.progress.list_for_student(student_email)
        if r.course_id in course_ids and r.created_at >= since
    ]
    study_seconds = sum(r.time_spent_seconds for r in records)
    return Engagement(
        poll_participation=sum(
            1 for a in activities if a.activity_type == "poll_participation"
        ),
        discussion_participation=sum(
            1 for a in activities if a.activity_type == "discussion_participation"
        ),
        total_study_time_minutes=int(study_seconds / 60 + 0.5),
        enrolled_courses=len(enrollments),
        period=f"{days} days",
    )
