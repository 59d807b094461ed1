"""add recurrence template and instance fields"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa

revision = "0002_add_recurrence"
down_revision = "0001_create_day_logs"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.add_column(
        "tasks",
        sa.Column("is_recurring", sa.Boolean(), nullable=False, server_default=sa.text("false")),
    )
    op.add_column("tasks", sa.Column("recurrence_rule", sa.Text(), nullable=True))
    op.add_column("tasks", sa.Column("recurrence_end_date", sa.Date(), nullable=True))
    op.add_column("tasks", sa.Column("source_template_id", sa.Integer(), nullable=True))
    op.create_index("ix_tasks_is_recurring", "tasks", ["is_recurring"], unique=False)
    op.create_index("ix_tasks_source_template_id", "tasks", ["source_template_id"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_tasks_source_template_id", table_name="tasks")
    op.drop_index("ix_tasks_is_recurring", table_name="tasks")
    op.drop_column("tasks", "source_template_id")
    op.drop_column("tasks", "recurrence_end_date")
    op.drop_column("tasks", "recurrence_rule")
    op.drop_column("tasks", "is_recurring")
