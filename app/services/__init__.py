"""
app/services package marker.
"""

from app.services.competitor_cache import CompetitorCache, generate_cache_key, get_competitor_cache
from app.services.ranking_batch_orchestrator import (
    RankingBatchOrchestrator,
    ThreadPoolTaskExecutor,
    get_ranking_batch_orchestrator,
)

__all__ = [
    "CompetitorCache",
    "generate_cache_key",
    "get_competitor_cache",
    "RankingBatchOrchestrator",
    "ThreadPoolTaskExecutor",
    "get_ranking_batch_orchestrator",
]
