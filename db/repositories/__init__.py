"""
Repository layer exports.
"""

from db.repositories.competitor_cache_repository import CompetitorCacheRepository
from db.repositories.notification_repository import NotificationRepository
from db.repositories.practice_ranking_repository import PracticeRankingRepository

__all__ = [
    "PracticeRankingRepository",
    "CompetitorCacheRepository",
    "NotificationRepository",
]
