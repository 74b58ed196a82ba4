"""
db/models/practice_ranking.py

Practice ranking run model: one row per location per ranking analysis.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import DateTime, Float, Index, Integer, String, Text, func
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base, TimestampMixin


class PracticeRankingStatus:
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    TERMINAL = frozenset({COMPLETED, FAILED})


class PracticeRanking(Base, TimestampMixin):
    """
    A single location's pass through the ranking pipeline.

    Rows are created in ``pending`` state when a batch is triggered and are
    mutated only by the batch orchestrator as each stage completes.
    ``rank_score`` and ``rank_position`` stay null until ``completed``.
    """

    __tablename__ = "practice_rankings"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    batch_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        nullable=False,
    )
    account_id: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        comment="Tenant account that owns the analysed locations",
    )
    domain: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    specialty: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
    )
    location: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
        comment="Market location used for competitor discovery, e.g. 'Austin, TX'",
    )
    gbp_account_id: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )
    gbp_location_id: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )
    gbp_location_name: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )
    location_index: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        server_default="0",
        comment="Position of the location in the triggering request",
    )
    status: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        default=PracticeRankingStatus.PENDING,
    )
    rank_score: Mapped[float | None] = mapped_column(
        Float,
        nullable=True,
    )
    rank_position: Mapped[int | None] = mapped_column(
        Integer,
        nullable=True,
    )
    total_competitors: Mapped[int | None] = mapped_column(
        Integer,
        nullable=True,
    )
    ranking_factors: Mapped[dict[str, Any] | None] = mapped_column(
        JSONB,
        nullable=True,
        comment="Per-factor score breakdown",
    )
    raw_data: Mapped[dict[str, Any] | None] = mapped_column(
        JSONB,
        nullable=True,
        comment="Evidence gathered for the ranking: profile, search, competitors, audit",
    )
    llm_analysis: Mapped[dict[str, Any] | None] = mapped_column(
        JSONB,
        nullable=True,
        comment="External analysis result",
    )
    status_detail: Mapped[dict[str, Any] | None] = mapped_column(
        JSONB,
        nullable=True,
        comment="currentStep, message, progress, stepsCompleted, timestamps",
    )
    error_message: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )
    observed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    __table_args__ = (
        Index("ix_practice_rankings_batch_order", "batch_id", "location_index"),
        Index("ix_practice_rankings_account_id", "account_id"),
        Index("ix_practice_rankings_status", "status"),
        Index("ix_practice_rankings_created_at", "created_at"),
        Index("ix_practice_rankings_account_location", "account_id", "gbp_location_id"),
    )
