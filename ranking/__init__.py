"""
Practice ranking algorithm exports.
"""

from ranking.ranker import calculate_benchmarks, rank_practices, score_benchmarks
from ranking.scoring import (
    FACTOR_WEIGHTS,
    PracticeRankingModel,
    calculate_ranking_score,
    factors_for_storage,
)
from ranking.specialties import normalize_specialty, specialty_keywords
from ranking.types import (
    BenchmarkInput,
    BreakdownEntry,
    FactorScore,
    MarketBenchmarks,
    PracticeData,
    RankedPractice,
    RankingFactors,
    RankingResult,
)

__all__ = [
    "FACTOR_WEIGHTS",
    "PracticeRankingModel",
    "calculate_ranking_score",
    "factors_for_storage",
    "rank_practices",
    "calculate_benchmarks",
    "score_benchmarks",
    "normalize_specialty",
    "specialty_keywords",
    "PracticeData",
    "FactorScore",
    "RankingFactors",
    "RankingResult",
    "BreakdownEntry",
    "RankedPractice",
    "MarketBenchmarks",
    "BenchmarkInput",
]
