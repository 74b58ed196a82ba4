"""
Storage layer exports.
"""

from app.storage.base import CompetitorCacheStore, RankingRunStore
from app.storage.sqlalchemy_store import SQLAlchemyCompetitorCacheStore, SQLAlchemyRankingRunStore

__all__ = [
    "RankingRunStore",
    "CompetitorCacheStore",
    "SQLAlchemyRankingRunStore",
    "SQLAlchemyCompetitorCacheStore",
]
