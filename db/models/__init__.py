"""
Model package exports.

Import all SQLAlchemy models here so metadata registration and Alembic
autogeneration work without extra imports.
"""

from db.models.competitor_cache import CompetitorCacheEntry
from db.models.notification import Notification
from db.models.practice_ranking import PracticeRanking, PracticeRankingStatus

__all__ = [
    "PracticeRanking",
    "PracticeRankingStatus",
    "CompetitorCacheEntry",
    "Notification",
]
