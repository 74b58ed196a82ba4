"""create practice ranking, competitor cache and notification tables

Revision ID: 20261018_0001
Revises:
Create Date: 2026-10-18 09:00:00
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "20261018_0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "practice_rankings",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("batch_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column(
            "account_id",
            sa.Integer(),
            nullable=False,
            comment="Tenant account that owns the analysed locations",
        ),
        sa.Column("domain", sa.String(length=255), nullable=False),
        sa.Column("specialty", sa.String(length=100), nullable=True),
        sa.Column(
            "location",
            sa.String(length=255),
            nullable=True,
            comment="Market location used for competitor discovery, e.g. 'Austin, TX'",
        ),
        sa.Column("gbp_account_id", sa.String(length=255), nullable=True),
        sa.Column("gbp_location_id", sa.String(length=255), nullable=True),
        sa.Column("gbp_location_name", sa.String(length=255), nullable=True),
        sa.Column("status", sa.String(length=32), nullable=False),
        sa.Column("rank_score", sa.Float(), nullable=True),
        sa.Column("rank_position", sa.Integer(), nullable=True),
        sa.Column("total_competitors", sa.Integer(), nullable=True),
        sa.Column(
            "ranking_factors",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=True,
            comment="Per-factor score breakdown",
        ),
        sa.Column(
            "raw_data",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=True,
            comment="Evidence gathered for the ranking: profile, search, competitors, audit",
        ),
        sa.Column(
            "llm_analysis",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=True,
            comment="External analysis result",
        ),
        sa.Column(
            "status_detail",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=True,
            comment="currentStep, message, progress, stepsCompleted, timestamps",
        ),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("observed_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_practice_rankings_batch_id", "practice_rankings", ["batch_id"], unique=False)
    op.create_index("ix_practice_rankings_account_id", "practice_rankings", ["account_id"], unique=False)
    op.create_index("ix_practice_rankings_status", "practice_rankings", ["status"], unique=False)
    op.create_index("ix_practice_rankings_created_at", "practice_rankings", ["created_at"], unique=False)
    op.create_index(
        "ix_practice_rankings_account_location",
        "practice_rankings",
        ["account_id", "gbp_location_id"],
        unique=False,
    )

    op.create_table(
        "competitor_cache",
        sa.Column("id", sa.BigInteger(), autoincrement=True, nullable=False),
        sa.Column(
            "cache_key",
            sa.String(length=512),
            nullable=False,
            comment="normalized '<specialty>:<location>'",
        ),
        sa.Column("specialty", sa.String(length=255), nullable=False),
        sa.Column("location", sa.String(length=255), nullable=False),
        sa.Column(
            "competitors",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=False,
            comment="Ordered list of {placeId, name, address, category}",
        ),
        sa.Column("competitor_count", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("cache_key", name="uq_competitor_cache_cache_key"),
    )
    op.create_index("ix_competitor_cache_expires_at", "competitor_cache", ["expires_at"], unique=False)

    op.create_table(
        "notifications",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("account_id", sa.Integer(), nullable=True),
        sa.Column("domain", sa.String(length=255), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("message", sa.Text(), nullable=True),
        sa.Column("type", sa.String(length=50), nullable=False),
        sa.Column("metadata", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("read", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_notifications_domain", "notifications", ["domain"], unique=False)
    op.create_index("ix_notifications_account_id", "notifications", ["account_id"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_notifications_account_id", table_name="notifications")
    op.drop_index("ix_notifications_domain", table_name="notifications")
    op.drop_table("notifications")

    op.drop_index("ix_competitor_cache_expires_at", table_name="competitor_cache")
    op.drop_table("competitor_cache")

    op.drop_index("ix_practice_rankings_account_location", table_name="practice_rankings")
    op.drop_index("ix_practice_rankings_created_at", table_name="practice_rankings")
    op.drop_index("ix_practice_rankings_status", table_name="practice_rankings")
    op.drop_index("ix_practice_rankings_account_id", table_name="practice_rankings")
    op.drop_index("ix_practice_rankings_batch_id", table_name="practice_rankings")
    op.drop_table("practice_rankings")
