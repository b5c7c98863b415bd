"""initial progress schema

Revision ID: 3b1e9c0d7a42
Revises:
Create Date: 2026-10-17 00:00:00.000000

"""

from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3b1e9c0d7a42"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _uuid() -> postgresql.UUID:
    return postgresql.UUID(as_uuid=True)


def upgrade() -> None:
    op.create_table(
        "courses",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("title", sa.String(length=500), nullable=False),
        sa.Column("teacher_email", sa.String(length=320), nullable=False),
    )
    op.create_index("ix_courses_teacher_email", "courses", ["teacher_email"])

    op.create_table(
        "modules",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("course_id", _uuid(), sa.ForeignKey("courses.id"), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(length=500), nullable=False),
    )
    op.create_index("ix_modules_course_id", "modules", ["course_id"])

    op.create_table(
        "lessons",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("module_id", _uuid(), sa.ForeignKey("modules.id"), nullable=False),
        sa.Column("course_id", _uuid(), sa.ForeignKey("courses.id"), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(length=500), nullable=False),
    )
    op.create_index("ix_lessons_module_id", "lessons", ["module_id"])
    op.create_index("ix_lessons_course_id", "lessons", ["course_id"])

    op.create_table(
        "assignments",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("course_id", _uuid(), sa.ForeignKey("courses.id"), nullable=False),
        sa.Column("module_id", _uuid(), sa.ForeignKey("modules.id"), nullable=True),
        sa.Column("title", sa.String(length=500), nullable=False),
    )
    op.create_index("ix_assignments_course_id", "assignments", ["course_id"])

    op.create_table(
        "enrollments",
        sa.Column(
            "course_id", _uuid(), sa.ForeignKey("courses.id"), primary_key=True
        ),
        sa.Column("student_email", sa.String(length=320), primary_key=True),
        sa.Column("enrolled_at", sa.Integer(), nullable=False),
    )

    op.create_table(
        "user_profiles",
        sa.Column("email", sa.String(length=320), primary_key=True),
        sa.Column("first_name", sa.String(length=255), nullable=False),
        sa.Column("last_name", sa.String(length=255), nullable=False),
        sa.Column("role", sa.String(length=32), nullable=False),
    )

    op.create_table(
        "quizzes",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("course_id", _uuid(), sa.ForeignKey("courses.id"), nullable=False),
        sa.Column("module_id", _uuid(), sa.ForeignKey("modules.id"), nullable=True),
        sa.Column("lesson_id", _uuid(), sa.ForeignKey("lessons.id"), nullable=True),
        sa.Column("title", sa.String(length=500), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("questions", postgresql.JSONB(), nullable=False),
        sa.Column("time_limit_minutes", sa.Integer(), nullable=True),
        sa.Column(
            "passing_score", sa.Integer(), nullable=False, server_default="70"
        ),
        sa.Column("max_attempts", sa.Integer(), nullable=False, server_default="1"),
        sa.Column(
            "is_module_exam", sa.Boolean(), nullable=False, server_default="false"
        ),
        sa.Column("is_published", sa.Boolean(), nullable=False, server_default="true"),
        sa.Column("created_by", sa.String(length=320), nullable=False),
    )
    op.create_index("ix_quizzes_course_id", "quizzes", ["course_id"])
    op.create_index("ix_quizzes_module_id", "quizzes", ["module_id"])

    op.create_table(
        "quiz_attempts",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("quiz_id", _uuid(), sa.ForeignKey("quizzes.id"), nullable=False),
        sa.Column("student_email", sa.String(length=320), nullable=False),
        sa.Column("attempt_number", sa.Integer(), nullable=False),
        sa.Column("answers", postgresql.JSONB(), nullable=False),
        sa.Column("score", sa.Integer(), nullable=True),
        sa.Column("passed", sa.Boolean(), nullable=True),
        sa.Column("time_taken_seconds", sa.Integer(), nullable=True),
        sa.Column("started_at", sa.Integer(), nullable=False),
        sa.Column("completed_at", sa.Integer(), nullable=True),
        sa.UniqueConstraint("quiz_id", "student_email", "attempt_number"),
    )
    op.create_index(
        "uq_quiz_attempts_open",
        "quiz_attempts",
        ["quiz_id", "student_email"],
        unique=True,
        postgresql_where=sa.text("completed_at IS NULL"),
    )

    op.create_table(
        "student_progress",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("student_email", sa.String(length=320), nullable=False),
        sa.Column("course_id", _uuid(), sa.ForeignKey("courses.id"), nullable=False),
        sa.Column("module_id", _uuid(), nullable=True),
        sa.Column("lesson_id", _uuid(), nullable=True),
        sa.Column("target_id", sa.String(length=255), nullable=True),
        sa.Column("event_type", sa.String(length=64), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False),
        sa.Column("score", sa.Integer(), nullable=False, server_default="0"),
        sa.Column(
            "time_spent_seconds", sa.Integer(), nullable=False, server_default="0"
        ),
        sa.Column("metadata", postgresql.JSONB(), nullable=False),
        sa.Column("created_at", sa.Integer(), nullable=False),
        sa.Column("dedupe_key", sa.String(length=1024), nullable=True, unique=True),
    )
    op.create_index(
        "ix_student_progress_student_course",
        "student_progress",
        ["student_email", "course_id"],
    )

    op.create_table(
        "student_activities",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("student_email", sa.String(length=320), nullable=False),
        sa.Column("course_id", _uuid(), sa.ForeignKey("courses.id"), nullable=False),
        sa.Column("activity_type", sa.String(length=64), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("metadata", postgresql.JSONB(), nullable=False),
        sa.Column("created_at", sa.Integer(), nullable=False),
    )
    op.create_index(
        "ix_student_activities_course_id", "student_activities", ["course_id"]
    )

    op.create_table(
        "notifications",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("user_email", sa.String(length=320), nullable=False),
        sa.Column("user_type", sa.String(length=32), nullable=False),
        sa.Column("type", sa.String(length=64), nullable=False),
        sa.Column("title", sa.String(length=500), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("data", postgresql.JSONB(), nullable=False),
        sa.Column("read", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("created_at", sa.Integer(), nullable=False),
    )
    op.create_index("ix_notifications_user_email", "notifications", ["user_email"])


def downgrade() -> None:
    op.drop_table("notifications")
    op.drop_table("student_activities")
    op.drop_table("student_progress")
    op.drop_index("uq_quiz_attempts_open", table_name="quiz_attempts")
    op.drop_table("quiz_attempts")
    op.drop_table("quizzes")
    op.drop_table("user_profiles")
    op.drop_table("enrollments")
    op.drop_table("assignments")
    op.drop_table("lessons")
    op.drop_table("modules")
    op.drop_table("courses")
