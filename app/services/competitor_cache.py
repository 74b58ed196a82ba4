"""
app/services/competitor_cache.py

TTL cache of competitor identities per (specialty, market location).

The cache remembers WHICH competitors to compare against so repeated
analyses of the same market use a consistent set; competitor metrics are
always fetched fresh. Storage failures never propagate: reads degrade to a
miss and writes are dropped.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Sequence
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Any

from app.config import get_competitor_cache_settings
from app.domain.practice_ranking import CompetitorIdentity
from app.logging_utils import log_event
from app.storage.base import CompetitorCacheStore

logger = logging.getLogger(__name__)

_WHITESPACE_RE = re.compile(r"\s+")


def _normalize_part(value: str | None) -> str:
    return _WHITESPACE_RE.sub(" ", (value or "").strip().lower())


def generate_cache_key(specialty: str | None, location: str | None) -> str:
    """
    ``"<specialty>:<location>"`` with each part lower-cased, trimmed and
    internal whitespace collapsed.
    """

    return f"{_normalize_part(specialty)}:{_normalize_part(location)}"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class CompetitorCache:
    def __init__(
        self,
        *,
        store: CompetitorCacheStore,
        ttl_hours: int | None = None,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._store = store
        self._ttl = timedelta(
            hours=ttl_hours if ttl_hours is not None else get_competitor_cache_settings().ttl_hours
        )
        self._clock = clock

    def get(self, specialty: str | None, location: str | None) -> list[CompetitorIdentity] | None:
        """
        Return cached competitors, or None on a miss, expiry or storage error.
        """

        cache_key = generate_cache_key(specialty, location)
        try:
            competitors = self._store.get_active(cache_key, now=self._clock())
        except Exception as exc:  # noqa: BLE001
            logger.warning("Competitor cache read failed key=%s error=%s", cache_key, exc)
            return None

        if competitors is None:
            log_event(logger, logging.INFO, "competitor_cache_miss", cache_key=cache_key)
            return None

        try:
            identities = [CompetitorIdentity.from_cache_dict(item) for item in competitors]
        except (AttributeError, TypeError, ValueError) as exc:
            logger.warning("Competitor cache entry unreadable key=%s error=%s", cache_key, exc)
            return None

        log_event(
            logger,
            logging.INFO,
            "competitor_cache_hit",
            cache_key=cache_key,
            competitor_count=len(identities),
        )
        return identities

    def set(
        self,
        specialty: str | None,
        location: str | None,
        competitors: Sequence[CompetitorIdentity],
    ) -> None:
        cache_key = generate_cache_key(specialty, location)
        now = self._clock()
        try:
            self._store.upsert(
                cache_key=cache_key,
                specialty=_normalize_part(specialty),
                location=_normalize_part(location),
                competitors=[competitor.to_cache_dict() for competitor in competitors],
                created_at=now,
                expires_at=now + self._ttl,
            )
        except Exception as exc:  # noqa: BLE001
            logger.warning("Competitor cache write failed key=%s error=%s", cache_key, exc)
            return

        logger.info(
            "Cached competitors key=%s count=%s ttl_hours=%.0f",
            cache_key,
            len(competitors),
            self._ttl.total_seconds() / 3600,
        )

    def invalidate(self, specialty: str | None, location: str | None) -> bool:
        cache_key = generate_cache_key(specialty, location)
        try:
            deleted = self._store.delete_key(cache_key)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Competitor cache invalidate failed key=%s error=%s", cache_key, exc)
            return False
        logger.info("Competitor cache invalidated key=%s found=%s", cache_key, deleted > 0)
        return deleted > 0

    def cleanup_expired(self) -> int:
        try:
            deleted = self._store.delete_expired(now=self._clock())
        except Exception as exc:  # noqa: BLE001
            logger.warning("Competitor cache cleanup failed error=%s", exc)
            return 0
        if deleted:
            logger.info("Competitor cache cleanup removed=%s", deleted)
        return deleted

    def stats(self) -> dict[str, Any]:
        try:
            raw = self._store.stats(now=self._clock())
        except Exception as exc:  # noqa: BLE001
            logger.warning("Competitor cache stats failed error=%s", exc)
            raw = {}

        total = int(raw.get("total_entries") or 0)
        expired = int(raw.get("expired_entries") or 0)
        return {
            "total_entries": total,
            "expired_entries": expired,
            "active_entries": total - expired,
            "oldest_entry": raw.get("oldest_entry"),
            "newest_entry": raw.get("newest_entry"),
        }


@lru_cache(maxsize=1)
def get_competitor_cache() -> CompetitorCache:
    from app.storage.sqlalchemy_store import SQLAlchemyCompetitorCacheStore

    return CompetitorCache(store=SQLAlchemyCompetitorCacheStore())
