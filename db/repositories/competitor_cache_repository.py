"""
db/repositories/competitor_cache_repository.py

Persistence layer for cached competitor sets.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import delete, func, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.orm import Session

from db.models.competitor_cache import CompetitorCacheEntry

_UPSERT_CONSTRAINT = "uq_competitor_cache_cache_key"


class CompetitorCacheRepository:
    """
    Data-access layer for ``competitor_cache`` rows.

    Callers own the session lifecycle; this class never commits.
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    def get_active(self, cache_key: str, *, now: datetime) -> CompetitorCacheEntry | None:
        stmt = select(CompetitorCacheEntry).where(
            CompetitorCacheEntry.cache_key == cache_key,
            CompetitorCacheEntry.expires_at > now,
        )
        return self._session.scalars(stmt).first()

    def upsert(
        self,
        *,
        cache_key: str,
        specialty: str,
        location: str,
        competitors: list[dict[str, Any]],
        created_at: datetime,
        expires_at: datetime,
    ) -> None:
        """
        Insert or replace the entry for ``cache_key`` (last write wins).
        """

        stmt = (
            insert(CompetitorCacheEntry)
            .values(
                cache_key=cache_key,
                specialty=specialty,
                location=location,
                competitors=competitors,
                competitor_count=len(competitors),
                created_at=created_at,
                expires_at=expires_at,
            )
            .on_conflict_do_update(
                constraint=_UPSERT_CONSTRAINT,
                set_={
                    "specialty": specialty,
                    "location": location,
                    "competitors": competitors,
                    "competitor_count": len(competitors),
                    "created_at": created_at,
                    "expires_at": expires_at,
                },
            )
        )
        self._session.execute(stmt)

    def delete_key(self, cache_key: str) -> int:
        result = self._session.execute(
            delete(CompetitorCacheEntry).where(CompetitorCacheEntry.cache_key == cache_key)
        )
        return result.rowcount or 0

    def delete_expired(self, *, now: datetime) -> int:
        result = self._session.execute(
            delete(CompetitorCacheEntry).where(CompetitorCacheEntry.expires_at < now)
        )
        return result.rowcount or 0

    def stats(self, *, now: datetime) -> dict[str, Any]:
        total = self._session.scalar(select(func.count()).select_from(CompetitorCacheEntry)) or 0
        expired = (
            self._session.scalar(
                select(func.count())
                .select_from(CompetitorCacheEntry)
                .where(CompetitorCacheEntry.expires_at < now)
            )
            or 0
        )
        oldest, newest = self._session.execute(
            select(
                func.min(CompetitorCacheEntry.created_at),
                func.max(CompetitorCacheEntry.created_at),
            )
        ).one()
        return {
            "total_entries": int(total),
            "expired_entries": int(expired),
            "oldest_entry": oldest,
            "newest_entry": newest,
        }
