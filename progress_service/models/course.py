from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID, uuid4


@dataclass(frozen=True, slots=True)
class Course:
    id: UUID
    title: str
    teacher_email: str

    @staticmethod
    def new(*, title: str, teacher_email: str) -> Course:
        return Course(id=uuid4(), title=title, teacher_email=teacher_email)


@dataclass(frozen=True, slots=True)
class CourseModule:
    id: UUID
    course_id: UUID
    position: int
    title: str

    @staticmethod
    def new(*, course_id: UUID, position: int, title: str) -> CourseModule:
        return CourseModule(
            id=uuid4(), course_id=course_id, position=position, title=title
        )


@dataclass(frozen=True, slots=True)
class Lesson:
    id: UUID
    module_id: UUID
    course_id: UUID
    position: int
    title: str

    @staticmethod
    def new(
        *, module_id: UUID, course_id: UUID, position: int, title: str
    ) -> Lesson:
        return Lesson(
            id=uuid4(),
            module_id=module_id,
            course_id=course_id,
            position=position,
            title=title,
        )


@dataclass(frozen=True, slots=True)
class Assignment:
    id: UUID
    course_id: UUID
    title: str
    module_id: UUID | None = None

    @staticmethod
    def new(
        *, course_id: UUID, title: str, module_id: UUID | None = None
    ) -> Assignment:
        return Assignment(
            id=uuid4(), course_id=course_id, title=title, module_id=module_id
        )


@dataclass(frozen=True, slots=True)
class Enrollment:
    course_id: UUID
    student_email: str
    enrolled_at: int


@dataclass(frozen=True, slots=True)
class UserProfile:
    email: str
    first_name: str
    last_name: str
    role: str  # student|teacher

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip() or self.email
