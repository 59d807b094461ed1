"""add run_markers table"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa

revision = "0004_add_run_markers"
down_revision = "0003_add_anchor_lineage"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "run_markers",
        sa.Column("key", sa.String(length=64), primary_key=True),
        sa.Column("value", sa.DateTime(), nullable=False),
    )


def downgrade() -> None:
    op.drop_table("run_markers")
