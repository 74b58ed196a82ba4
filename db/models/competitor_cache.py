"""
db/models/competitor_cache.py

Cached competitor sets keyed by normalized specialty + market location.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import BigInteger, DateTime, Index, Integer, String, UniqueConstraint, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base


class CompetitorCacheEntry(Base):
    """
    Which competitors to compare against for one specialty + market.

    Stores competitor identities only; competitor metrics are always fetched
    fresh. Rows past ``expires_at`` are ignored by reads and removed by the
    cleanup job.
    """

    __tablename__ = "competitor_cache"

    id: Mapped[int] = mapped_column(
        BigInteger,
        primary_key=True,
        autoincrement=True,
    )
    cache_key: Mapped[str] = mapped_column(
        String(512),
        nullable=False,
        comment="normalized '<specialty>:<location>'",
    )
    specialty: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    location: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    competitors: Mapped[list[dict[str, Any]]] = mapped_column(
        JSONB,
        nullable=False,
        comment="Ordered list of {placeId, name, address, category}",
    )
    competitor_count: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    __table_args__ = (
        UniqueConstraint("cache_key", name="uq_competitor_cache_cache_key"),
        Index("ix_competitor_cache_expires_at", "expires_at"),
    )
