"""
ranking/ranker.py

Ranks a set of practices by total score and derives market benchmarks
from competitor data.
"""

from __future__ import annotations

from collections.abc import Sequence

import numpy as np

from ranking.normalizer import RankingNormalizer
from ranking.scoring import calculate_ranking_score
from ranking.types import BenchmarkInput, MarketBenchmarks, PracticeData, RankedPractice

_normalizer = RankingNormalizer()


def rank_practices(
    practices: Sequence[tuple[str, PracticeData]],
    specialty: str,
) -> list[RankedPractice]:
    """Score every practice and assign 1-based rank positions.

    Sorting is stable and descending by total score: practices with equal
    scores keep their input order, and no secondary key is applied.

    Args:
        practices: ``(id, PracticeData)`` pairs in caller order.
        specialty: Target specialty used for category and keyword matching.

    Returns:
        RankedPractice entries ordered by rank position.
    """
    scored = [
        (practice_id, calculate_ranking_score(data, specialty))
        for practice_id, data in practices
    ]
    scored.sort(key=lambda item: item[1].total_score, reverse=True)
    return [
        RankedPractice(id=practice_id, rank_position=index + 1, ranking_result=result)
        for index, (practice_id, result) in enumerate(scored)
    ]


def calculate_benchmarks(competitors: Sequence[BenchmarkInput]) -> MarketBenchmarks:
    """Compute mean/median review count, mean rating, and mean velocity.

    Benchmarks are display context only and never feed back into scoring.
    An empty competitor list yields all-zero benchmarks.
    """
    if not competitors:
        return MarketBenchmarks()

    reviews = np.array([c.total_reviews for c in competitors], dtype=float)
    ratings = np.array([c.average_rating for c in competitors], dtype=float)
    velocity = np.array([c.reviews_last_30d for c in competitors], dtype=float)

    return MarketBenchmarks(
        avg_reviews=int(_normalizer.round_score(float(reviews.mean()), places=0)),
        median_reviews=int(_normalizer.round_score(float(np.median(reviews)), places=0)),
        avg_rating=_normalizer.round_score(float(ratings.mean())),
        avg_reviews_30d=int(_normalizer.round_score(float(velocity.mean()), places=0)),
    )


def score_benchmarks(scores: Sequence[float]) -> tuple[float, float]:
    """Return ``(average, median)`` of competitor total scores.

    The median is the upper-middle element for even-length inputs, which
    matches how scores were reported on the dashboard.
    """
    if not scores:
        return 0.0, 0.0
    ordered = sorted(scores)
    average = _normalizer.round_score(sum(ordered) / len(ordered))
    return average, ordered[len(ordered) // 2]
