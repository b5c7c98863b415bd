"""one exam per module

Revision ID: 8d4f2a6c1e90
Revises: 3b1e9c0d7a42
Create Date: 2026-10-17 00:00:00.000000

"""

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "8d4f2a6c1e90"
down_revision: str | Sequence[str] | None = "3b1e9c0d7a42"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_index(
        "uq_quizzes_module_exam",
        "quizzes",
        ["module_id"],
        unique=True,
        postgresql_where=sa.text("is_module_exam"),
    )


def downgrade() -> None:
    op.drop_index("uq_quizzes_module_exam", table_name="quizzes")
