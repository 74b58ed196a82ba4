"""add location_index to practice rankings

Revision ID: 20261018_0002
Revises: 20261018_0001
Create Date: 2026-10-18 14:00:00
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "20261018_0002"
down_revision = "20261018_0001"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.add_column(
        "practice_rankings",
        sa.Column(
            "location_index",
            sa.Integer(),
            server_default="0",
            nullable=False,
            comment="Position of the location in the triggering request",
        ),
    )
    op.drop_index("ix_practice_rankings_batch_id", table_name="practice_rankings")
    op.create_index(
        "ix_practice_rankings_batch_order",
        "practice_rankings",
        ["batch_id", "location_index"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index("ix_practice_rankings_batch_order", table_name="practice_rankings")
    op.create_index("ix_practice_rankings_batch_id", "practice_rankings", ["batch_id"], unique=False)
    op.drop_column("practice_rankings", "location_index")
