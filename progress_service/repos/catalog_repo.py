"""Read access to the course catalog the progress engine evaluates against.

Course authoring lives elsewhere in the LMS; the in-memory repo exposes
``add_*`` helpers so tests and local dev can seed a catalog.
"""

from __future__ import annotations

from typing import Protocol
from uuid import UUID

from progress_service.models.course import (
    Assignment,
    Course,
    CourseModule,
    Enrollment,
    Lesson,
    UserProfile,
)


class CatalogRepo(Protocol):
    async def get_course(self, course_id: UUID) -> Course | None: ...
    async def list_courses_for_teacher(self, teacher_email: str) -> list[Course]: ...
    async def get_module(self, module_id: UUID) -> CourseModule | None: ...
    async def list_modules(self, course_id: UUID) -> list[CourseModule]: ...
    async def get_lesson(self, lesson_id: UUID) -> Lesson | None: ...
    async def list_module_lessons(self, module_id: UUID) -> list[Lesson]: ...
    async def list_course_lessons(self, course_id: UUID) -> list[Lesson]: ...
    async def list_assignments(self, course_id: UUID) -> list[Assignment]: ...
    async def get_enrollment(
        self, course_id: UUID, student_email: str
    ) -> Enrollment | None: ...
    async def list_enrollments(self, course_id: UUID) -> list[Enrollment]: ...
    async def list_student_enrollments(
        self, student_email: str
    ) -> list[Enrollment]: ...
    async def get_profile(self, email: str) -> UserProfile | None: ...


class InMemoryCatalogRepo:
    def __init__(self) -> None:
        self._courses: dict[UUID, Course] = {}
        self._modules: dict[UUID, CourseModule] = {}
        self._lessons: dict[UUID, Lesson] = {}
        self._assignments: dict[UUID, Assignment] = {}
        self._enrollments: dict[tuple[UUID, str], Enrollment] = {}
        self._profiles: dict[str, UserProfile] = {}

    # --- seeding ---

    def add_course(self, course: Course) -> None:
        self._courses[course.id] = course

    def add_module(self, module: CourseModule) -> None:
        if module.course_id not in self._courses:
            raise KeyError("course not found")
        self._modules[module.id] = module

    def add_lesson(self, lesson: Lesson) -> None:
        if lesson.module_id not in self._modules:
            raise KeyError("module not found")
        self._lessons[lesson.id] = lesson

    def add_assignment(self, assignment: Assignment) -> None:
        self._assignments[assignment.id] = assignment

    def enroll(self, enrollment: Enrollment) -> None:
        key = (enrollment.course_id, enrollment.student_email)
        if key in self._enrollments:
            raise ValueError("already enrolled")
        self._enrollments[key] = enrollment

    def add_profile(self, profile: UserProfile) -> None:
        self._profiles[profile.email] = profile

    def clear(self) -> None:
        self._courses.clear()
        self._modules.clear()
        self._lessons.clear()
        self._assignments.clear()
        self._enrollments.clear()
        self._profiles.clear()

    # --- reads ---

    async def get_course(self, course_id: UUID) -> Course | None:
        return self._courses.get(course_id)

    async def list_courses_for_teacher(self, teacher_email: str) -> list[Course]:
        return [c for c in self._courses.values() if c.teacher_email == teacher_email]

    async def get_module(self, module_id: UUID) -> CourseModule | None:
        return self._modules.get(module_id)

    async def list_modules(self, course_id: UUID) -> list[CourseModule]:
        modules = [m for m in self._modules.values() if m.course_id == course_id]
        return sorted(modules, key=lambda m: m.position)

    async def get_lesson(self, lesson_id: UUID) -> Lesson | None:
        return self._lessons.get(lesson_id)

    async def list_module_lessons(self, module_id: UUID) -> list[Lesson]:
        lessons = [le for le in self._lessons.values() if le.module_id == module_id]
        return sorted(lessons, key=lambda le: le.position)

    async def list_course_lessons(self, course_id: UUID) -> list[Lesson]:
        return [le for le in self._lessons.values() if le.course_id == course_id]

    async def list_assignments(self, course_id: UUID) -> list[Assignment]:
        return [a for a in self._assignments.values() if a.course_id == course_id]

    async def get_enrollment(
        self, course_id: UUID, student_email: str
    ) -> Enrollment | None:
        return self._enrollments.get((course_id, student_email))

    async def list_enrollments(self, course_id: UUID) -> list[Enrollment]:
        return [e for e in self._enrollments.values() if e.course_id == course_id]

    async def list_student_enrollments(self, student_email: str) -> list[Enrollment]:
        return [
            e for e in self._enrollments.values() if e.student_email == student_email
        ]

    async def get_profile(self, email: str) -> UserProfile | None:
        return self._profiles.get(email)
