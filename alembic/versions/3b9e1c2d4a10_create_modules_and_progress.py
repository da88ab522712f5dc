"""create modules and module_progress

Revision ID: 3b9e1c2d4a10
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3b9e1c2d4a10"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "modules",
        sa.Column("id", sa.Integer(), autoincrement=False, nullable=False),
        sa.Column("sequence_position", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(length=500), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("sequence_position"),
    )
    op.create_table(
        "module_progress",
        sa.Column("user_id", sa.String(length=320), nullable=False),
        sa.Column("module_id", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False),
        sa.Column("started_at", sa.Integer(), nullable=True),
        sa.Column("completed_at", sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(["module_id"], ["modules.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("user_id", "module_id"),
        sa.CheckConstraint(
            "status IN ('done', 'active', 'locked')", name="ck_module_progress_status"
        ),
        sa.CheckConstraint(
            "status <> 'done' OR completed_at IS NOT NULL",
            name="ck_module_progress_done_has_completed_at",
        ),
    )


def downgrade() -> None:
    op.drop_table("module_progress")
    op.drop_table("modules")
