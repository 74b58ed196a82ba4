"""
ranking/types.py

Value objects consumed and produced by the ranking algorithm.

Every field has a worst-case default so that partially populated profile
data can always be scored. ``PracticeData.from_mapping`` coerces loosely
typed payloads (None, strings, missing keys) into these defaults instead
of raising.
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any


def _as_float(value: Any, default: float = 0.0) -> float:
    if value is None or isinstance(value, bool):
        return default
    try:
        result = float(value)
    except (TypeError, ValueError):
        return default
    if math.isnan(result) or math.isinf(result):
        return default
    return result


def _as_optional_float(value: Any) -> float | None:
    if value is None:
        return None
    result = _as_float(value, default=math.nan)
    return None if math.isnan(result) else result


def _as_int(value: Any, default: int = 0) -> int:
    return int(_as_float(value, default=float(default)))


def _as_bool(value: Any, default: bool = False) -> bool:
    if value is None:
        return default
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return bool(value)


@dataclass(frozen=True)
class PracticeData:
    """
    Profile signals for one practice.

    ``average_rating`` and ``sentiment_score`` are optional: the sentiment
    factor falls back from an explicit score, to an estimate from the
    rating, to a fixed default.
    """

    name: str = ""
    primary_category: str = ""
    secondary_categories: tuple[str, ...] = ()
    total_reviews: int = 0
    average_rating: float | None = None
    reviews_last_30d: int = 0
    reviews_last_90d: int = 0
    posts_last_90d: int = 0
    has_website: bool = False
    has_phone: bool = False
    has_hours: bool = False
    hours_complete: bool = True
    description_length: int = 0
    photos_count: int = 0
    sentiment_score: float | None = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> "PracticeData":
        """
        Build PracticeData from a snake_case or camelCase mapping.
        """

        source: Mapping[str, Any] = data or {}

        def pick(snake: str, camel: str) -> Any:
            if snake in source:
                return source[snake]
            return source.get(camel)

        secondary = pick("secondary_categories", "secondaryCategories") or ()
        if isinstance(secondary, str):
            secondary = (secondary,)

        return cls(
            name=str(source.get("name") or ""),
            primary_category=str(pick("primary_category", "primaryCategory") or ""),
            secondary_categories=tuple(str(item) for item in secondary if item),
            total_reviews=max(0, _as_int(pick("total_reviews", "totalReviews"))),
            average_rating=_as_optional_float(pick("average_rating", "averageRating")),
            reviews_last_30d=max(0, _as_int(pick("reviews_last_30d", "reviewsLast30d"))),
            reviews_last_90d=max(0, _as_int(pick("reviews_last_90d", "reviewsLast90d"))),
            posts_last_90d=max(0, _as_int(pick("posts_last_90d", "postsLast90d"))),
            has_website=_as_bool(pick("has_website", "hasWebsite")),
            has_phone=_as_bool(pick("has_phone", "hasPhone")),
            has_hours=_as_bool(pick("has_hours", "hasHours")),
            hours_complete=_as_bool(pick("hours_complete", "hoursComplete"), default=True),
            description_length=max(0, _as_int(pick("description_length", "descriptionLength"))),
            photos_count=max(0, _as_int(pick("photos_count", "photosCount"))),
            sentiment_score=_as_optional_float(pick("sentiment_score", "sentimentScore")),
        )


@dataclass(frozen=True)
class FactorScore:
    score: float
    max: float
    details: str


@dataclass(frozen=True)
class RankingFactors:
    category_match: FactorScore
    review_count: FactorScore
    star_rating: FactorScore
    keyword_name: FactorScore
    review_velocity: FactorScore
    nap_consistency: FactorScore
    gbp_activity: FactorScore
    sentiment: FactorScore

    def items(self) -> list[tuple[str, FactorScore]]:
        """Factor name / score pairs in fixed weight order."""
        return [
            ("category_match", self.category_match),
            ("review_count", self.review_count),
            ("star_rating", self.star_rating),
            ("keyword_name", self.keyword_name),
            ("review_velocity", self.review_velocity),
            ("nap_consistency", self.nap_consistency),
            ("gbp_activity", self.gbp_activity),
            ("sentiment", self.sentiment),
        ]


@dataclass(frozen=True)
class BreakdownEntry:
    factor: str
    weight: float
    raw_score: float
    weighted_score: float


@dataclass(frozen=True)
class RankingResult:
    total_score: float
    factors: RankingFactors
    breakdown: tuple[BreakdownEntry, ...] = ()


@dataclass(frozen=True)
class RankedPractice:
    id: str
    rank_position: int
    ranking_result: RankingResult


@dataclass
class MarketBenchmarks:
    """
    Competitor-market averages shown alongside a ranking.

    ``avg_score`` and ``median_score`` are filled in by the caller after the
    competitors have been scored.
    """

    avg_score: float = 0.0
    median_score: float = 0.0
    avg_reviews: int = 0
    median_reviews: int = 0
    avg_rating: float = 0.0
    avg_reviews_30d: int = 0

    def as_dict(self) -> dict[str, float | int]:
        return {
            "avg_score": self.avg_score,
            "median_score": self.median_score,
            "avg_reviews": self.avg_reviews,
            "median_reviews": self.median_reviews,
            "avg_rating": self.avg_rating,
            "avg_reviews_30d": self.avg_reviews_30d,
        }


@dataclass(frozen=True)
class BenchmarkInput:
    total_reviews: int = 0
    average_rating: float = 0.0
    reviews_last_30d: int = 0
