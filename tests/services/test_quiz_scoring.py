from __future__ import annotations

import asyncio

import pytest

from progress_service.models.progress import percentage
from progress_service.models.quiz import Question, Quiz
from progress_service.repos.bundle import IN_MEMORY
from progress_service.services import quiz_service
from progress_service.services.errors import (
    BusinessRuleError,
    NotFoundError,
    ProgressValidationError,
)
from tests.conftest import STUDENT_EMAIL, seed_course, seed_quiz


def _quiz(*questions: Question) -> Quiz:
    return Quiz.new(
        course_id=seed_course().id,
        title="Mixed",
        questions=questions,
        created_by="grace@example.com",
    )


def test_percentage_rounds_half_up() -> None:
    assert percentage(1, 8) == 13
    assert percentage(2, 3) == 67
    assert percentage(1, 3) == 33
    assert percentage(3, 4) == 75


def test_percentage_of_nothing_is_zero() -> None:
    assert percentage(0, 0) == 0


def test_score_counts_only_auto_scored_answers() -> None:
    quiz = _quiz(
        Question(id="a", type="multiple_choice", correct_answer="x"),
        Question(id="b", type="true_false", correct_answer=True),
        Question(id="c", type="short_answer", correct_answer="anything"),
    )

    score = quiz_service.score_answers(quiz, {"a": "x", "b": True, "c": "anything"})

    assert score == 67


def test_unanswered_questions_count_as_wrong() -> None:
    quiz = _quiz(
        Question(id="a", type="multiple_choice", correct_answer="x"),
        Question(id="b", type="multiple_choice", correct_answer="y"),
    )
    assert quiz_service.score_answers(quiz, {"a": "x"}) == 50


def test_quiz_without_questions_scores_zero() -> None:
    assert quiz_service.score_answers(_quiz(), {}) == 0


def test_create_quiz_rejects_duplicate_question_ids() -> None:
    seeded = seed_course()
    with pytest.raises(ProgressValidationError):
        asyncio.run(
            quiz_service.create_quiz(
                IN_MEMORY,
                seeded.course,
                title="Dupes",
                questions=(
                    Question(id="q", type="multiple_choice"),
                    Question(id="q", type="true_false"),
                ),
            )
        )


@pytest.mark.parametrize("passing_score", [-1, 101])
def test_create_quiz_rejects_passing_score_out_of_range(passing_score: int) -> None:
    seeded = seed_course()
    with pytest.raises(ProgressValidationError):
        asyncio.run(
            quiz_service.create_quiz(
                IN_MEMORY,
                seeded.course,
                title="Bad",
                questions=(),
                passing_score=passing_score,
            )
        )


def test_create_quiz_rejects_foreign_module() -> None:
    seeded = seed_course()
    other = seed_course(title="Other")
    with pytest.raises(NotFoundError):
        asyncio.run(
            quiz_service.create_quiz(
                IN_MEMORY,
                seeded.course,
                title="Exam",
                questions=(Question(id="q", type="true_false", correct_answer=True),),
                module_id=other.modules[0].id,
                is_module_exam=True,
            )
        )


def test_create_quiz_requires_questions() -> None:
    seeded = seed_course()
    with pytest.raises(ProgressValidationError, match="At least one question"):
        asyncio.run(
            quiz_service.create_quiz(
                IN_MEMORY, seeded.course, title="Empty", questions=()
            )
        )


def test_module_has_at_most_one_exam() -> None:
    seeded = seed_course()
    question = (Question(id="q", type="true_false", correct_answer=True),)

    async def _create_two() -> None:
        await quiz_service.create_quiz(
            IN_MEMORY,
            seeded.course,
            title="Draft exam",
            questions=question,
            module_id=seeded.modules[0].id,
            is_module_exam=True,
            is_published=False,
        )
        await quiz_service.create_quiz(
            IN_MEMORY,
            seeded.course,
            title="Final exam",
            questions=question,
            module_id=seeded.modules[0].id,
            is_module_exam=True,
        )

    with pytest.raises(BusinessRuleError, match="already has an exam"):
        asyncio.run(_create_two())


def test_submit_never_passes_quiz_without_questions() -> None:
    seeded = seed_course()
    quiz = seed_quiz(seeded, passing_score=0, questions=0)

    async def _attempt() -> quiz_service.SubmitResult:
        await quiz_service.start_attempt(IN_MEMORY, STUDENT_EMAIL, quiz.id)
        return await quiz_service.submit_attempt(
            IN_MEMORY, STUDENT_EMAIL, quiz.id, answers={}
        )

    result = asyncio.run(_attempt())
    assert result.attempt.score == 0
    assert result.attempt.passed is False
