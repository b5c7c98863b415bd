from __future__ import annotations

import asyncio
from dataclasses import dataclass, field

import pytest
from fastapi.testclient import TestClient

from progress_service.main import app
from progress_service.models.course import (
    Assignment,
    Course,
    CourseModule,
    Enrollment,
    Lesson,
    UserProfile,
)
from progress_service.models.principal import STUDENT, TEACHER
from progress_service.models.quiz import Question, Quiz
from progress_service.repos.bundle import (
    IN_MEMORY,
    activity_repo,
    catalog_repo,
    notification_repo,
    progress_repo,
    quiz_repo,
)
from progress_service.services import token_service
from progress_service.services.cache import cache_service
from progress_service.services.task_queue import task_queue

TEACHER_EMAIL = "grace@example.com"
STUDENT_EMAIL = "ada@example.com"
ENROLLED_AT = 1_700_000_000


@pytest.fixture(autouse=True)
def reset_repos() -> None:
    """Clear every in-memory repository between tests."""
    progress_repo._records.clear()
    progress_repo._by_key.clear()
    activity_repo._activities.clear()
    catalog_repo.clear()
    quiz_repo._quizzes.clear()
    quiz_repo._attempts.clear()
    notification_repo._notifications.clear()


@pytest.fixture(autouse=True)
def reset_cache() -> None:
    if hasattr(cache_service, "_store"):
        cache_service._store.clear()  # type: ignore[union-attr]


@pytest.fixture(autouse=True)
def reset_task_queue() -> None:
    if hasattr(task_queue, "_queues"):
        task_queue._queues.clear()  # type: ignore[union-attr]


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


@pytest.fixture
def repos():
    return IN_MEMORY


def mint_token(email: str = STUDENT_EMAIL, role: str | None = STUDENT) -> str:
    """Create a valid ES256 JWT for testing."""
    return token_service.create_access_token(
        sub=email, roles=[role] if role else []
    )


def auth(email: str = STUDENT_EMAIL, role: str | None = STUDENT) -> dict[str, str]:
    return {"Authorization": f"Bearer {mint_token(email, role)}"}


def teacher_auth(email: str = TEACHER_EMAIL) -> dict[str, str]:
    return auth(email, TEACHER)


# ---------------------------------------------------------------------------
# Catalog seeding
# ---------------------------------------------------------------------------


@dataclass
class SeededCourse:
    course: Course
    modules: list[CourseModule]
    lessons: list[list[Lesson]]
    assignments: list[Assignment] = field(default_factory=list)

    @property
    def id(self):
        return self.course.id

    def lesson(self, module_index: int, lesson_index: int) -> Lesson:
        return self.lessons[module_index][lesson_index]


def seed_course(
    *,
    title: str = "Intro to Python",
    teacher: str = TEACHER_EMAIL,
    lessons_per_module: tuple[int, ...] = (2,),
    students: tuple[str, ...] = (STUDENT_EMAIL,),
    assignments: int = 0,
) -> SeededCourse:
    """Build a course in the in-memory catalog and enroll ``students``."""
    course = Course.new(title=title, teacher_email=teacher)
    catalog_repo.add_course(course)

    modules: list[CourseModule] = []
    lessons: list[list[Lesson]] = []
    for position, count in enumerate(lessons_per_module, start=1):
        module = CourseModule.new(
            course_id=course.id, position=position, title=f"Module {position}"
        )
        catalog_repo.add_module(module)
        modules.append(module)
        module_lessons = []
        for n in range(1, count + 1):
            lesson = Lesson.new(
                module_id=module.id,
                course_id=course.id,
                position=n,
                title=f"Lesson {position}.{n}",
            )
            catalog_repo.add_lesson(lesson)
            module_lessons.append(lesson)
        lessons.append(module_lessons)

    seeded_assignments = []
    for n in range(1, assignments + 1):
        assignment = Assignment.new(course_id=course.id, title=f"Assignment {n}")
        catalog_repo.add_assignment(assignment)
        seeded_assignments.append(assignment)

    for student in students:
        catalog_repo.enroll(
            Enrollment(
                course_id=course.id, student_email=student, enrolled_at=ENROLLED_AT
            )
        )

    catalog_repo.add_profile(
        UserProfile(
            email=STUDENT_EMAIL, first_name="Ada", last_name="Lovelace", role=STUDENT
        )
    )
    catalog_repo.add_profile(
        UserProfile(
            email=TEACHER_EMAIL, first_name="Grace", last_name="Hopper", role=TEACHER
        )
    )
    return SeededCourse(
        course=course, modules=modules, lessons=lessons, assignments=seeded_assignments
    )


def seed_quiz(
    seeded: SeededCourse,
    *,
    module_index: int | None = None,
    is_module_exam: bool = False,
    max_attempts: int = 1,
    passing_score: int = 70,
    questions: int = 4,
) -> Quiz:
    """Add a quiz whose questions are all multiple_choice with answer "a"."""
    quiz = Quiz.new(
        course_id=seeded.id,
        title="Checkpoint",
        questions=tuple(
            Question(
                id=f"q{n}",
                type="multiple_choice",
                prompt=f"Question {n}",
                options=("a", "b", "c"),
                correct_answer="a",
            )
            for n in range(1, questions + 1)
        ),
        created_by=seeded.course.teacher_email,
        passing_score=passing_score,
        max_attempts=max_attempts,
        is_module_exam=is_module_exam,
        module_id=(
            seeded.modules[module_index].id if module_index is not None else None
        ),
    )
    asyncio.run(quiz_repo.add_quiz(quiz))
    return quiz


def answers(correct: int, total: int = 4) -> dict[str, str]:
    """Answer ``correct`` of ``total`` questions correctly."""
    return {f"q{n}": ("a" if n <= correct else "b") for n in range(1, total + 1)}


def queued_notifications() -> list[dict]:
    tasks = task_queue._queues.get("notifications", [])  # type: ignore[union-attr]
    return [t.payload for t in tasks]
