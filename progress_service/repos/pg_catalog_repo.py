"""PostgreSQL implementation of CatalogRepo (read-only)."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from progress_service.db.tables import (
    AssignmentRow,
    CourseRow,
    EnrollmentRow,
    LessonRow,
    ModuleRow,
    UserProfileRow,
)
from progress_service.models.course import (
    Assignment,
    Course,
    CourseModule,
    Enrollment,
    Lesson,
    UserProfile,
)


class PgCatalogRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_course(self, course_id: UUID) -> Course | None:
        row = await self._session.get(CourseRow, course_id)
        if row is None:
            return None
        return Course(id=row.id, title=row.title, teacher_email=row.teacher_email)

    async def list_courses_for_teacher(self, teacher_email: str) -> list[Course]:
        stmt = select(CourseRow).where(CourseRow.teacher_email == teacher_email)
        rows = (await self._session.execute(stmt)).scalars().all()
        return [
            Course(id=r.id, title=r.title, teacher_email=r.teacher_email) for r in rows
        ]

    async def get_module(self, module_id: UUID) -> CourseModule | None:
        row = await self._session.get(ModuleRow, module_id)
        if row is None:
            return None
        return _row_to_module(row)

    async def list_modules(self, course_id: UUID) -> list[CourseModule]:
        stmt = (
            select(ModuleRow)
            .where(ModuleRow.course_id == course_id)
            .order_by(ModuleRow.position)
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_module(r) for r in rows]

    async def get_lesson(self, lesson_id: UUID) -> Lesson | None:
        row = await self._session.get(LessonRow, lesson_id)
        if row is None:
            return None
        return _row_to_lesson(row)

    async def list_module_lessons(self, module_id: UUID) -> list[Lesson]:
        stmt = (
            select(LessonRow)
            .where(LessonRow.module_id == module_id)
            .order_by(LessonRow.position)
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_lesson(r) for r in rows]

    async def list_course_lessons(self, course_id: UUID) -> list[Lesson]:
        stmt = select(LessonRow).where(LessonRow.course_id == course_id)
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_lesson(r) for r in rows]

    async def list_assignments(self, course_id: UUID) -> list[Assignment]:
        stmt = select(AssignmentRow).where(AssignmentRow.course_id == course_id)
        rows = (await self._session.execute(stmt)).scalars().all()
        return [
            Assignment(
                id=r.id, course_id=r.course_id, title=r.title, module_id=r.module_id
            )
            for r in rows
        ]

    async def get_enrollment(
        self, course_id: UUID, student_email: str
    ) -> Enrollment | None:
        row = await self._session.get(EnrollmentRow, (course_id, student_email))
        if row is None:
            return None
        return _row_to_enrollment(row)

    async def list_enrollments(self, course_id: UUID) -> list[Enrollment]:
        stmt = select(EnrollmentRow).where(EnrollmentRow.course_id == course_id)
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_enrollment(r) for r in rows]

    async def list_student_enrollments(self, student_email: str) -> list[Enrollment]:
        stmt = select(EnrollmentRow).where(
            EnrollmentRow.student_email == student_email
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_enrollment(r) for r in rows]

    async def get_profile(self, email: str) -> UserProfile | None:
        row = await self._session.get(UserProfileRow, email)
        if row is None:
            return None
        return UserProfile(
            email=row.email,
            first_name=row.first_name,
            last_name=row.last_name,
            role=row.role,
        )


def _row_to_module(row: ModuleRow) -> CourseModule:
    return CourseModule(
        id=row.id, course_id=row.course_id, position=row.position, title=row.title
    )


def _row_to_lesson(row: LessonRow) -> Lesson:
    return Lesson(
        id=row.id,
        module_id=row.module_id,
        course_id=row.course_id,
        position=row.position,
        title=row.title,
    )


def _row_to_enrollment(row: EnrollmentRow) -> Enrollment:
    return Enrollment(
        course_id=row.course_id,
        student_email=row.student_email,
        enrolled_at=row.enrolled_at,
    )
