"""
app/api/dependencies.py

Shared FastAPI dependencies for practice ranking endpoints.
"""

from __future__ import annotations

from app.services.competitor_cache import CompetitorCache, get_competitor_cache
from app.services.ranking_batch_orchestrator import (
    RankingBatchOrchestrator,
    get_ranking_batch_orchestrator,
)


def get_orchestrator() -> RankingBatchOrchestrator:
    """
    Process-wide orchestrator; overridden in tests via ``dependency_overrides``.
    """

    return get_ranking_batch_orchestrator()


def get_cache() -> CompetitorCache:
    return get_competitor_cache()
