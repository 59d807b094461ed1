"""add anchor lineage fields"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa

revision = "0003_add_anchor_lineage"
down_revision = "0002_add_recurrence"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.add_column(
        "tasks",
        sa.Column("is_anchor", sa.Boolean(), nullable=False, server_default=sa.text("false")),
    )
    op.add_column("tasks", sa.Column("anchor_source_id", sa.Integer(), nullable=True))
    op.add_column("tasks", sa.Column("anchor_day_count", sa.Integer(), nullable=True))
    op.create_index("ix_tasks_anchor_source_id", "tasks", ["anchor_source_id"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_tasks_anchor_source_id", table_name="tasks")
    op.drop_column("tasks", "anchor_day_count")
    op.drop_column("tasks", "anchor_source_id")
    op.drop_column("tasks", "is_anchor")
