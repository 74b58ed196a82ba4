"""
app/domain/practice_ranking.py

Domain models for practice ranking batches, runs and collaborator payloads.
"""

from __future__ import annotations

import uuid
from collections.abc import Mapping
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any

from ranking import PracticeData
from ranking.specialties import name_has_keyword

_PERFORMANCE_METRICS = {
    "CALL_CLICKS": "calls",
    "BUSINESS_DIRECTION_REQUESTS": "directions",
    "WEBSITE_CLICKS": "clicks",
}


class BatchStatus:
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class LocationInput:
    """
    One business-profile location to rank.

    ``specialty`` and ``market_location`` fall back to the batch defaults
    when the trigger request leaves them empty.
    """

    location_id: str
    account_ref: str | None = None
    display_name: str | None = None
    specialty: str | None = None
    market_location: str | None = None
    website_url: str | None = None
    search_site_url: str | None = None

    @property
    def label(self) -> str:
        return self.display_name or self.location_id


@dataclass(frozen=True)
class CompetitorIdentity:
    """
    A competitor listing as returned by discovery.

    Only ``place_id``, ``name``, ``address`` and ``category`` survive a
    round-trip through the competitor cache; counts from a cache hit are zero.
    """

    place_id: str
    name: str
    address: str = ""
    category: str = "Unknown"
    total_reviews: int = 0
    average_rating: float = 0.0
    website: str | None = None
    phone: str | None = None

    def to_cache_dict(self) -> dict[str, str]:
        return {
            "placeId": self.place_id,
            "name": self.name,
            "address": self.address,
            "category": self.category,
        }

    @classmethod
    def from_cache_dict(cls, data: Mapping[str, Any]) -> "CompetitorIdentity":
        return cls(
            place_id=str(data.get("placeId") or ""),
            name=str(data.get("name") or ""),
            address=str(data.get("address") or ""),
            category=str(data.get("category") or "Unknown"),
        )


@dataclass(frozen=True)
class CompetitorDetail:
    place_id: str
    name: str
    address: str = ""
    primary_category: str = "Unknown"
    categories: tuple[str, ...] = ()
    total_reviews: int = 0
    average_rating: float = 0.0
    reviews_last_30d: int = 0
    reviews_last_90d: int = 0
    photos_count: int = 0
    posts_last_90d: int = 0
    has_website: bool = False
    has_phone: bool = False
    has_hours: bool = False
    hours_complete: bool = False
    description_length: int = 0
    has_keyword_in_name: bool = False
    website: str | None = None
    phone: str | None = None

    @classmethod
    def from_identity(
        cls,
        identity: CompetitorIdentity,
        keywords: tuple[str, ...] | list[str],
    ) -> "CompetitorDetail":
        """
        Discovery-only fallback used when detail enrichment fails.

        Hours are assumed present and complete; activity counts are zero.
        """

        return cls(
            place_id=identity.place_id,
            name=identity.name,
            address=identity.address,
            primary_category=identity.category,
            categories=(identity.category,),
            total_reviews=identity.total_reviews,
            average_rating=identity.average_rating,
            has_website=bool(identity.website),
            has_phone=bool(identity.phone),
            has_hours=True,
            hours_complete=True,
            has_keyword_in_name=name_has_keyword(identity.name, keywords),
            website=identity.website,
            phone=identity.phone,
        )

    def to_practice_data(self) -> PracticeData:
        return PracticeData(
            name=self.name,
            primary_category=self.primary_category,
            secondary_categories=self.categories,
            total_reviews=self.total_reviews,
            average_rating=self.average_rating,
            reviews_last_30d=self.reviews_last_30d,
            reviews_last_90d=self.reviews_last_90d,
            posts_last_90d=self.posts_last_90d,
            has_website=self.has_website,
            has_phone=self.has_phone,
            has_hours=self.has_hours,
            hours_complete=self.hours_complete,
            description_length=self.description_length,
            photos_count=self.photos_count,
        )


@dataclass(frozen=True)
class WebsiteAuditResult:
    url: str
    lcp: float = 0.0
    fid: float = 0.0
    cls: float = 0.0
    performance_score: int = 0
    accessibility_score: int = 0
    best_practices_score: int = 0
    seo_score: int = 0
    has_local_schema: bool = False
    has_organization_schema: bool = False
    has_review_schema: bool = False
    has_faq_schema: bool = False
    mobile_friendly: bool = False
    https: bool = False

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ProfileData:
    """
    Business-profile payload for the client's locations.

    Shape: ``{"locations": [{"data": {"reviews": ..., "profile": ...,
    "performance": ...}}]}``. Only the first location is scored.
    """

    payload: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any] | None) -> "ProfileData":
        return cls(payload=dict(payload or {}))

    @property
    def location_data(self) -> Mapping[str, Any]:
        locations = self.payload.get("locations") or []
        if not locations or not isinstance(locations[0], Mapping):
            return {}
        return locations[0].get("data") or {}

    @property
    def profile(self) -> Mapping[str, Any]:
        return self.location_data.get("profile") or {}

    def to_practice_data(self, *, display_name: str | None = None, fallback_name: str) -> PracticeData:
        """
        Client practice metrics; the name prefers the location display name
        over the profile title.
        """

        reviews = self.location_data.get("reviews") or {}
        all_time = reviews.get("allTime") or {}
        window = reviews.get("window") or {}
        profile = self.profile
        has_hours = bool(profile.get("hasHours"))

        return PracticeData.from_mapping(
            {
                "name": display_name or profile.get("title") or fallback_name,
                "primary_category": profile.get("primaryCategory") or "Dentist",
                "secondary_categories": profile.get("additionalCategories") or (),
                "total_reviews": all_time.get("totalReviewCount") or 0,
                "average_rating": all_time.get("averageRating") or 0,
                "reviews_last_30d": window.get("newReviews") or 0,
                "posts_last_90d": 0,
                "has_website": bool(profile.get("websiteUri")),
                "has_phone": bool(profile.get("phoneNumber")),
                "has_hours": has_hours,
                "hours_complete": has_hours,
                "description_length": len(profile.get("description") or ""),
                "photos_count": 0,
            }
        )

    def performance_metrics(self) -> dict[str, int]:
        """
        Sum calls, direction requests and website clicks over the window.
        """

        totals = {name: 0 for name in _PERFORMANCE_METRICS.values()}
        performance = self.location_data.get("performance") or {}
        for series in performance.get("series") or []:
            for metric_series in series.get("dailyMetricTimeSeries") or []:
                key = _PERFORMANCE_METRICS.get(metric_series.get("dailyMetric"))
                if key is None:
                    continue
                time_series = metric_series.get("timeSeries") or {}
                for dated_value in time_series.get("datedValues") or []:
                    try:
                        totals[key] += int(dated_value.get("value") or 0)
                    except (TypeError, ValueError):
                        continue
        return totals


@dataclass(frozen=True)
class RankingRunRecord:
    """
    Persisted view of one ranking run, detached from the ORM session.
    """

    id: uuid.UUID
    batch_id: uuid.UUID
    account_id: int
    domain: str
    status: str
    location_index: int = 0
    gbp_location_id: str | None = None
    gbp_location_name: str | None = None
    specialty: str | None = None
    location: str | None = None
    rank_score: float | None = None
    rank_position: int | None = None
    total_competitors: int | None = None
    ranking_factors: dict[str, Any] | None = None
    raw_data: dict[str, Any] | None = None
    llm_analysis: dict[str, Any] | None = None
    status_detail: dict[str, Any] | None = None
    error_message: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass(frozen=True)
class BatchFailure:
    location_id: str
    error: str
    attempt: int


@dataclass
class BatchState:
    """
    In-memory progress of one batch. Lost on process restart.
    """

    batch_id: uuid.UUID
    total_locations: int
    run_ids: list[uuid.UUID]
    started_at: datetime
    status: str = BatchStatus.PROCESSING
    completed_count: int = 0
    failed_count: int = 0
    current_location_index: int = 0
    current_location_name: str | None = None
    errors: list[BatchFailure] = field(default_factory=list)
    completed_at: datetime | None = None


@dataclass(frozen=True)
class BatchStatusView:
    batch_id: uuid.UUID
    status: str
    total_locations: int
    completed_count: int
    failed_count: int
    run_ids: list[uuid.UUID]
    source: str
    current_location_index: int | None = None
    current_location_name: str | None = None
    errors: list[BatchFailure] = field(default_factory=list)
    runs: list[RankingRunRecord] = field(default_factory=list)
    started_at: datetime | None = None
    completed_at: datetime | None = None


@dataclass(frozen=True)
class BatchTriggerResult:
    batch_id: uuid.UUID
    run_ids: list[uuid.UUID]


@dataclass(frozen=True)
class LocationRankingResult:
    run_id: uuid.UUID
    rank_score: float
    rank_position: int
    total_competitors: int
    analysis_included: bool
