"""
ranking/scoring.py

Practice ranking model implementing BaseRankingModel.
Computes an eight-factor weighted score for one local practice.
"""

from __future__ import annotations

from typing import Any

from ranking.base import BaseRankingModel
from ranking.normalizer import RankingNormalizer
from ranking.specialties import (
    SPECIALTY_CATEGORIES,
    GENERAL_SPECIALTY,
    name_has_keyword,
    specialty_categories,
    specialty_keywords,
)
from ranking.types import BreakdownEntry, FactorScore, PracticeData, RankingFactors, RankingResult

# Scoring weights; must sum to 1.0
FACTOR_WEIGHTS: dict[str, float] = {
    "category_match": 0.25,
    "review_count": 0.20,
    "star_rating": 0.15,
    "keyword_name": 0.10,
    "review_velocity": 0.10,
    "nap_consistency": 0.08,
    "gbp_activity": 0.07,
    "sentiment": 0.05,
}


class PracticeRankingModel(BaseRankingModel):
    """Weighted eight-factor ranking model for local practices.

    Each factor is scored independently on a 0..(weight × 100) scale, so
    the total is simply the sum of factor scores and lies in [0, 100].
    Missing or malformed signals degrade to worst-case scores; the model
    never raises on data problems.
    """

    # Review count benchmarks (lifetime reviews)
    REVIEW_COUNT_AVG: int = 150
    REVIEW_COUNT_EXCELLENT: int = 400
    REVIEW_COUNT_MAX: int = 800

    # Review velocity benchmarks (reviews per 30 days)
    REVIEW_VELOCITY_AVG: int = 8
    REVIEW_VELOCITY_EXCELLENT: int = 20

    # GBP post benchmarks (posts per 90 days)
    GBP_POSTS_AVG: int = 4
    GBP_POSTS_EXCELLENT: int = 12
    GBP_PHOTOS_CAP: int = 50
    GBP_DESCRIPTION_CAP: int = 750

    MARKET_AVERAGE_RATING: float = 4.5
    GENERAL_CATEGORY_CREDIT: float = 0.6
    DEFAULT_SENTIMENT: float = 0.8

    def __init__(self) -> None:
        self._normalizer = RankingNormalizer()

    def compute(self, practice: PracticeData, specialty: str) -> RankingResult:
        """Compute the full ranking result for one practice."""
        factors = RankingFactors(
            category_match=self.category_match(practice.primary_category, specialty),
            review_count=self.review_count(practice.total_reviews),
            star_rating=self.star_rating(practice.average_rating or 0.0),
            keyword_name=self.keyword_name(practice.name, specialty),
            review_velocity=self.review_velocity(practice.reviews_last_30d),
            nap_consistency=self.nap_consistency(
                has_website=practice.has_website,
                has_phone=practice.has_phone,
                has_hours=practice.has_hours,
                hours_complete=practice.hours_complete,
            ),
            gbp_activity=self.gbp_activity(
                posts_last_90d=practice.posts_last_90d,
                photos_count=practice.photos_count,
                description_length=practice.description_length,
            ),
            sentiment=self.sentiment(practice.sentiment_score, practice.average_rating),
        )

        breakdown = tuple(
            BreakdownEntry(
                factor=name,
                weight=FACTOR_WEIGHTS[name],
                raw_score=factor.score,
                weighted_score=factor.score,
            )
            for name, factor in factors.items()
        )
        total = sum(factor.score for _, factor in factors.items())

        return RankingResult(
            total_score=self._normalizer.round_score(
                self._normalizer.clamp(total, 0.0, 100.0)
            ),
            factors=factors,
            breakdown=breakdown,
        )

    # ------------------------------------------------------------------
    # Factors
    # ------------------------------------------------------------------

    def category_match(self, primary_category: str, specialty: str) -> FactorScore:
        """Full credit for a specialty category, partial for general dental."""
        max_score = _max_score("category_match")
        normalized_category = (primary_category or "").lower()

        if _matches_any(normalized_category, specialty_categories(specialty)):
            return FactorScore(
                score=max_score,
                max=max_score,
                details=f'Primary category "{primary_category}" matches specialty "{specialty}"',
            )

        if _matches_any(normalized_category, SPECIALTY_CATEGORIES[GENERAL_SPECIALTY]):
            return FactorScore(
                score=self._normalizer.round_score(max_score * self.GENERAL_CATEGORY_CREDIT),
                max=max_score,
                details=(
                    f'Primary category "{primary_category}" is general dental, '
                    "not specialty-specific"
                ),
            )

        return FactorScore(
            score=0.0,
            max=max_score,
            details=f'Primary category "{primary_category}" does not match specialty "{specialty}"',
        )

    def review_count(self, total_reviews: int, benchmark_max: int | None = None) -> FactorScore:
        """Logarithmic scaling with diminishing returns above the benchmark."""
        max_score = _max_score("review_count")
        ceiling = benchmark_max or self.REVIEW_COUNT_MAX
        normalized = self._normalizer.normalize_log(float(total_reviews), float(ceiling))

        if total_reviews >= self.REVIEW_COUNT_EXCELLENT:
            details = f"Excellent review count: {total_reviews} reviews"
        elif total_reviews >= self.REVIEW_COUNT_AVG:
            details = f"Above average review count: {total_reviews} reviews"
        else:
            details = (
                f"Below average review count: {total_reviews} reviews "
                f"(market avg: {self.REVIEW_COUNT_AVG})"
            )

        return FactorScore(
            score=self._normalizer.round_score(normalized * max_score),
            max=max_score,
            details=details,
        )

    def star_rating(self, average_rating: float) -> FactorScore:
        """Piecewise-linear scaling that favours ratings of 4.5 and above."""
        max_score = _max_score("star_rating")
        rating = average_rating

        if rating >= 4.8:
            normalized = 1.0
        elif rating >= 4.5:
            normalized = 0.85 + ((rating - 4.5) / 0.3) * 0.15
        elif rating >= 4.0:
            normalized = 0.6 + ((rating - 4.0) / 0.5) * 0.25
        elif rating >= 3.5:
            normalized = 0.3 + ((rating - 3.5) / 0.5) * 0.3
        else:
            normalized = (rating / 3.5) * 0.3
        normalized = self._normalizer.clamp(normalized, 0.0, 1.0)

        comparison = "above" if rating >= self.MARKET_AVERAGE_RATING else "below"
        return FactorScore(
            score=self._normalizer.round_score(normalized * max_score),
            max=max_score,
            details=(
                f"{rating:.1f} star rating ({comparison} market avg of "
                f"{self.MARKET_AVERAGE_RATING})"
            ),
        )

    def keyword_name(self, business_name: str, specialty: str) -> FactorScore:
        """Binary: full score when the name contains any specialty keyword."""
        max_score = _max_score("keyword_name")
        if name_has_keyword(business_name, specialty_keywords(specialty)):
            return FactorScore(
                score=max_score,
                max=max_score,
                details=f'Business name "{business_name}" contains specialty keyword',
            )
        return FactorScore(
            score=0.0,
            max=max_score,
            details=f'Business name "{business_name}" does not contain specialty keyword',
        )

    def review_velocity(self, reviews_last_30d: int) -> FactorScore:
        max_score = _max_score("review_velocity")
        normalized = self._normalizer.normalize_positive(
            float(reviews_last_30d), float(self.REVIEW_VELOCITY_EXCELLENT)
        )

        if reviews_last_30d >= self.REVIEW_VELOCITY_EXCELLENT:
            details = f"Excellent review velocity: {reviews_last_30d} new reviews in last 30 days"
        elif reviews_last_30d >= self.REVIEW_VELOCITY_AVG:
            details = f"Good review velocity: {reviews_last_30d} new reviews in last 30 days"
        else:
            details = (
                f"Low review velocity: {reviews_last_30d} new reviews in last 30 days "
                f"(avg: {self.REVIEW_VELOCITY_AVG})"
            )

        return FactorScore(
            score=self._normalizer.round_score(normalized * max_score),
            max=max_score,
            details=details,
        )

    def nap_consistency(
        self,
        *,
        has_website: bool,
        has_phone: bool,
        has_hours: bool,
        hours_complete: bool = True,
    ) -> FactorScore:
        """Weighted completeness: website 30%, phone 30%, hours 40% (30% if incomplete)."""
        max_score = _max_score("nap_consistency")
        completeness = 0.0
        missing: list[str] = []

        if has_website:
            completeness += 0.3
        else:
            missing.append("website")

        if has_phone:
            completeness += 0.3
        else:
            missing.append("phone")

        if has_hours:
            completeness += 0.4 if hours_complete else 0.3
            if not hours_complete:
                missing.append("complete hours")
        else:
            missing.append("hours")

        details = (
            "NAP information is complete and consistent"
            if not missing
            else f"Missing NAP elements: {', '.join(missing)}"
        )
        return FactorScore(
            score=self._normalizer.round_score(completeness * max_score),
            max=max_score,
            details=details,
        )

    def gbp_activity(
        self,
        *,
        posts_last_90d: int,
        photos_count: int = 0,
        description_length: int = 0,
    ) -> FactorScore:
        """Posts 60%, photos 25%, description 15% of the factor."""
        max_score = _max_score("gbp_activity")
        n = self._normalizer

        post_score = n.normalize_positive(float(posts_last_90d), float(self.GBP_POSTS_EXCELLENT)) * 0.6
        photo_score = n.normalize_positive(float(photos_count), float(self.GBP_PHOTOS_CAP)) * 0.25
        description_score = (
            n.normalize_positive(float(description_length), float(self.GBP_DESCRIPTION_CAP)) * 0.15
        )

        if posts_last_90d >= self.GBP_POSTS_EXCELLENT:
            details = f"Excellent GBP activity: {posts_last_90d} posts in last 90 days"
        elif posts_last_90d >= self.GBP_POSTS_AVG:
            details = f"Good GBP activity: {posts_last_90d} posts in last 90 days"
        else:
            details = (
                f"Low GBP activity: {posts_last_90d} posts in last 90 days "
                f"(recommended: {self.GBP_POSTS_EXCELLENT})"
            )

        return FactorScore(
            score=n.round_score((post_score + photo_score + description_score) * max_score),
            max=max_score,
            details=details,
        )

    def sentiment(
        self,
        sentiment_score: float | None = None,
        average_rating: float | None = None,
    ) -> FactorScore:
        """Explicit sentiment, else estimated from rating, else a fixed default."""
        max_score = _max_score("sentiment")
        n = self._normalizer

        if sentiment_score is not None:
            sentiment = n.clamp(sentiment_score, 0.0, 1.0)
        elif average_rating is not None:
            sentiment = n.clamp((average_rating - 3.0) / 2.0, 0.0, 1.0)
        else:
            sentiment = self.DEFAULT_SENTIMENT

        percentage = int(n.round_score(sentiment * 100, places=0))
        if percentage >= 90:
            details = f"Excellent sentiment: {percentage}% positive reviews"
        elif percentage >= 75:
            details = f"Good sentiment: {percentage}% positive reviews"
        else:
            details = f"Mixed sentiment: {percentage}% positive reviews"

        return FactorScore(
            score=n.round_score(sentiment * max_score),
            max=max_score,
            details=details,
        )


def _max_score(factor: str) -> float:
    return FACTOR_WEIGHTS[factor] * 100.0


def _matches_any(normalized_category: str, categories: tuple[str, ...]) -> bool:
    if not normalized_category:
        return False
    return any(category.lower() in normalized_category for category in categories)


_DEFAULT_MODEL = PracticeRankingModel()


def calculate_ranking_score(practice: PracticeData, specialty: str) -> RankingResult:
    """Score one practice with the default model."""
    return _DEFAULT_MODEL.compute(practice, specialty)


def factors_for_storage(result: RankingResult, practice: PracticeData) -> dict[str, dict[str, Any]]:
    """
    Convert a RankingResult into the persisted ``ranking_factors`` structure.

    Each factor carries its 0-1 ratio (``score``), points earned
    (``weighted``), weight, explanation, and the raw input value where one
    exists.
    """

    values: dict[str, Any] = {
        "review_count": practice.total_reviews,
        "star_rating": practice.average_rating or 0.0,
        "review_velocity": practice.reviews_last_30d,
        "gbp_activity": practice.posts_last_90d,
    }

    stored: dict[str, dict[str, Any]] = {}
    for name, factor in result.factors.items():
        entry: dict[str, Any] = {
            "score": factor.score / factor.max if factor.max else 0.0,
            "weighted": factor.score,
            "weight": FACTOR_WEIGHTS[name],
            "details": factor.details,
        }
        if name in values:
            entry["value"] = values[name]
        stored[name] = entry
    return stored
