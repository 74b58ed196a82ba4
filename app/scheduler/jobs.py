"""
app/scheduler/jobs.py

APScheduler-based maintenance scheduler.

Schedule (all times UTC)
--------------------------
  competitor_cache_cleanup: daily at COMPETITOR_CACHE_CLEANUP_HOUR (default 04:00)

Lifecycle
----------
Call ``build_scheduler()`` once to get a configured ``BackgroundScheduler``.
Start it on app boot; shut it down gracefully on app shutdown.
The scheduler is wired into FastAPI via the ``lifespan`` context in main.py.
"""

from __future__ import annotations

import logging

from apscheduler.schedulers.background import BackgroundScheduler

from app.config import CompetitorCacheSettings, get_competitor_cache_settings
from app.services.competitor_cache import CompetitorCache, get_competitor_cache

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Job: Daily competitor cache cleanup
# ---------------------------------------------------------------------------


def run_competitor_cache_cleanup(cache: CompetitorCache | None = None) -> int:
    """
    Delete expired competitor cache entries. Returns the number removed.
    """
    logger.info("Scheduler: competitor_cache_cleanup starting")
    removed = (cache or get_competitor_cache()).cleanup_expired()
    logger.info("Scheduler: competitor_cache_cleanup complete removed=%s", removed)
    return removed


# ---------------------------------------------------------------------------
# Scheduler factory
# ---------------------------------------------------------------------------


def build_scheduler(settings: CompetitorCacheSettings | None = None) -> BackgroundScheduler:
    """
    Build and register all periodic jobs.

    Returns a configured but *not yet started* ``BackgroundScheduler``.
    """
    settings = settings or get_competitor_cache_settings()
    scheduler = BackgroundScheduler(timezone="UTC")

    scheduler.add_job(
        run_competitor_cache_cleanup,
        trigger="cron",
        hour=settings.cleanup_hour_utc,
        minute=0,
        id="competitor_cache_cleanup",
        name="Daily competitor cache cleanup",
        replace_existing=True,
        misfire_grace_time=3600,
    )

    return scheduler
