from __future__ import annotations

import uuid
from collections.abc import Callable, Sequence
from dataclasses import replace
from datetime import date, datetime, timedelta, timezone
from typing import Any

import pytest

from app.config import RankingPipelineSettings
from app.domain.practice_ranking import (
    CompetitorDetail,
    CompetitorIdentity,
    LocationInput,
    ProfileData,
    RankingRunRecord,
    WebsiteAuditResult,
)
from app.services.competitor_cache import CompetitorCache
from app.services.location_ranking_pipeline import LocationRankingPipeline
from app.services.ranking_status import StatusTracker
from app.storage.base import CompetitorCacheStore, RankingRunStore
from db.models.practice_ranking import PracticeRankingStatus

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, start: datetime = NOW) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now = self.now + timedelta(**kwargs)


class FakeRunStore(RankingRunStore):
    def __init__(self, clock: Callable[[], datetime] | None = None) -> None:
        self.runs: dict[uuid.UUID, RankingRunRecord] = {}
        self.updates: list[tuple[uuid.UUID, dict[str, Any]]] = []
        self._clock = clock or FakeClock()

    def create_pending_runs(
        self,
        *,
        batch_id: uuid.UUID,
        account_id: int,
        domain: str,
        locations: Sequence[LocationInput],
        status_detail: dict[str, Any],
    ) -> list[RankingRunRecord]:
        created = []
        for index, location in enumerate(locations):
            run = RankingRunRecord(
                id=uuid.uuid4(),
                batch_id=batch_id,
                account_id=account_id,
                domain=domain,
                status=PracticeRankingStatus.PENDING,
                location_index=index,
                gbp_location_id=location.location_id,
                gbp_location_name=location.display_name,
                specialty=location.specialty,
                location=location.market_location,
                status_detail=dict(status_detail),
                created_at=self._clock(),
                updated_at=self._clock(),
            )
            self.runs[run.id] = run
            created.append(run)
        return created

    def get_run(self, run_id: uuid.UUID) -> RankingRunRecord | None:
        return self.runs.get(run_id)

    def list_batch_runs(self, batch_id: uuid.UUID) -> list[RankingRunRecord]:
        runs = [run for run in self.runs.values() if run.batch_id == batch_id]
        return sorted(runs, key=lambda run: run.location_index)

    def list_runs(
        self,
        *,
        account_id: int | None = None,
        status: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[RankingRunRecord]:
        runs = [
            run
            for run in self.runs.values()
            if (account_id is None or run.account_id == account_id) and (status is None or run.status == status)
        ]
        return runs[offset : offset + limit]

    def get_latest_completed(
        self,
        *,
        account_id: int,
        gbp_location_id: str | None = None,
    ) -> RankingRunRecord | None:
        completed = [
            run
            for run in self.runs.values()
            if run.account_id == account_id
            and run.status == PracticeRankingStatus.COMPLETED
            and (gbp_location_id is None or run.gbp_location_id == gbp_location_id)
        ]
        return completed[-1] if completed else None

    def update_run(self, run_id: uuid.UUID, values: dict[str, Any], *, only_active: bool = False) -> bool:
        run = self.runs.get(run_id)
        if run is None:
            return False
        if only_active and run.status in PracticeRankingStatus.TERMINAL:
            return False
        self.runs[run_id] = replace(run, updated_at=self._clock(), **values)
        self.updates.append((run_id, dict(values)))
        return True

    def fail_batch_runs(self, batch_id: uuid.UUID, error_message: str) -> int:
        count = 0
        for run in self.list_batch_runs(batch_id):
            self.runs[run.id] = replace(
                run,
                status=PracticeRankingStatus.FAILED,
                error_message=error_message,
                rank_score=None,
                rank_position=None,
                updated_at=self._clock(),
            )
            count += 1
        return count

    def delete_run(self, run_id: uuid.UUID) -> bool:
        return self.runs.pop(run_id, None) is not None

    def progress_history(self, run_id: uuid.UUID) -> list[int]:
        return [
            values["status_detail"]["progress"]
            for updated_id, values in self.updates
            if updated_id == run_id and "status_detail" in values
        ]


class FakeCacheStore(CompetitorCacheStore):
    def __init__(self) -> None:
        self.entries: dict[str, dict[str, Any]] = {}
        self.fail_with: Exception | None = None

    def _check(self) -> None:
        if self.fail_with is not None:
            raise self.fail_with

    def get_active(self, cache_key: str, *, now: datetime) -> list[dict[str, Any]] | None:
        self._check()
        entry = self.entries.get(cache_key)
        if entry is None or entry["expires_at"] <= now:
            return None
        return list(entry["competitors"])

    def upsert(
        self,
        *,
        cache_key: str,
        specialty: str,
        location: str,
        competitors: list[dict[str, Any]],
        created_at: datetime,
        expires_at: datetime,
    ) -> None:
        self._check()
        self.entries[cache_key] = {
            "specialty": specialty,
            "location": location,
            "competitors": list(competitors),
            "created_at": created_at,
            "expires_at": expires_at,
        }

    def delete_key(self, cache_key: str) -> int:
        self._check()
        return 1 if self.entries.pop(cache_key, None) is not None else 0

    def delete_expired(self, *, now: datetime) -> int:
        self._check()
        expired = [key for key, entry in self.entries.items() if entry["expires_at"] < now]
        for key in expired:
            del self.entries[key]
        return len(expired)

    def stats(self, *, now: datetime) -> dict[str, Any]:
        self._check()
        created = [entry["created_at"] for entry in self.entries.values()]
        return {
            "total_entries": len(self.entries),
            "expired_entries": sum(1 for entry in self.entries.values() if entry["expires_at"] < now),
            "oldest_entry": min(created) if created else None,
            "newest_entry": max(created) if created else None,
        }


# ---------------------------------------------------------------------------
# Collaborators
# ---------------------------------------------------------------------------


def profile_payload(
    *,
    title: str = "Bright Smile Orthodontics",
    category: str = "Orthodontist",
    total_reviews: int = 220,
    rating: float = 4.8,
    new_reviews: int = 9,
) -> dict[str, Any]:
    return {
        "locations": [
            {
                "data": {
                    "reviews": {
                        "allTime": {"totalReviewCount": total_reviews, "averageRating": rating},
                        "window": {"newReviews": new_reviews},
                    },
                    "profile": {
                        "title": title,
                        "primaryCategory": category,
                        "websiteUri": "https://brightsmile.example",
                        "phoneNumber": "+1 512 555 0100",
                        "hasHours": True,
                        "description": "Family orthodontics in central Austin.",
                    },
                    "performance": {
                        "series": [
                            {
                                "dailyMetricTimeSeries": [
                                    {
                                        "dailyMetric": "CALL_CLICKS",
                                        "timeSeries": {"datedValues": [{"value": "3"}, {"value": "4"}]},
                                    },
                                    {
                                        "dailyMetric": "WEBSITE_CLICKS",
                                        "timeSeries": {"datedValues": [{"value": "10"}]},
                                    },
                                ]
                            }
                        ]
                    },
                }
            }
        ]
    }


class FakeProfileFetcher:
    def __init__(self, payload: dict[str, Any] | None = None, error: Exception | None = None) -> None:
        self.payload = payload if payload is not None else profile_payload()
        self.error = error
        self.calls: list[tuple[int, list[dict[str, Any]], date, date]] = []

    def fetch(self, account_id: int, location_refs: Sequence[dict[str, Any]], date_from: date, date_to: date) -> ProfileData:
        self.calls.append((account_id, list(location_refs), date_from, date_to))
        if self.error is not None:
            raise self.error
        return ProfileData.from_payload(self.payload)


class FakeSearchFetcher:
    def __init__(self, result: dict[str, Any] | None = None) -> None:
        self.result = result
        self.calls: list[str] = []

    def fetch(self, account_id: int, site_url: str, date_from: date, date_to: date) -> dict[str, Any] | None:
        self.calls.append(site_url)
        return self.result


def competitor(place_id: str, name: str, reviews: int = 50, rating: float = 4.2) -> CompetitorIdentity:
    return CompetitorIdentity(
        place_id=place_id,
        name=name,
        address=f"{place_id} Main St",
        category="Orthodontist",
        total_reviews=reviews,
        average_rating=rating,
        website=f"https://{place_id}.example",
        phone="+1 512 555 0199",
    )


DEFAULT_COMPETITORS = [
    competitor("p1", "Austin Braces Studio", reviews=400, rating=4.9),
    competitor("p2", "Capital Dental", reviews=80, rating=4.1),
    competitor("p3", "Lakeside Orthodontics", reviews=150, rating=4.6),
]


class FakeDiscovery:
    def __init__(
        self,
        competitors: Sequence[CompetitorIdentity] | None = None,
        failures: Sequence[Exception] = (),
    ) -> None:
        self.competitors = list(DEFAULT_COMPETITORS if competitors is None else competitors)
        self.failures = list(failures)
        self.queries: list[tuple[str, int]] = []

    def discover(self, query: str, limit: int) -> list[CompetitorIdentity]:
        self.queries.append((query, limit))
        if self.failures:
            raise self.failures.pop(0)
        return list(self.competitors)


class FakeDetails:
    def __init__(
        self,
        error: Exception | None = None,
        known: Sequence[CompetitorIdentity] | None = None,
    ) -> None:
        self.error = error
        self.known = list(DEFAULT_COMPETITORS if known is None else known)
        self.calls: list[list[str]] = []

    def enrich(self, place_ids: Sequence[str], keywords: Sequence[str]) -> list[CompetitorDetail]:
        self.calls.append(list(place_ids))
        if self.error is not None:
            raise self.error
        by_id = {c.place_id: c for c in self.known}
        details = []
        for place_id in place_ids:
            identity = by_id.get(place_id) or CompetitorIdentity(place_id=place_id, name=place_id)
            details.append(
                replace(
                    CompetitorDetail.from_identity(identity, tuple(keywords)),
                    reviews_last_30d=5,
                    reviews_last_90d=12,
                    photos_count=20,
                )
            )
        return details


class FakeAuditor:
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.urls: list[str] = []

    def audit(self, url: str) -> WebsiteAuditResult:
        self.urls.append(url)
        if self.error is not None:
            raise self.error
        return WebsiteAuditResult(url=url, lcp=2.1, performance_score=78, has_local_schema=True, https=True)


class FakeAnalysis:
    def __init__(
        self,
        *,
        configured: bool = True,
        response: dict[str, Any] | None = None,
        error: Exception | None = None,
    ) -> None:
        self._configured = configured
        self.response = response if response is not None else {"top_recommendations": [{"title": "Post weekly"}]}
        self.error = error
        self.payloads: list[dict[str, Any]] = []

    @property
    def configured(self) -> bool:
        return self._configured

    def analyze(self, payload: dict[str, Any]) -> dict[str, Any]:
        self.payloads.append(payload)
        if self.error is not None:
            raise self.error
        return dict(self.response)


class FakeNotificationSink:
    def __init__(self) -> None:
        self.sent: list[dict[str, Any]] = []

    def notify(
        self,
        tenant: str,
        title: str,
        body: str,
        category: str,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        self.sent.append(
            {"tenant": tenant, "title": title, "body": body, "category": category, "metadata": metadata}
        )


class RecordingExecutor:
    def __init__(self) -> None:
        self.submitted: list[tuple[Callable[..., None], tuple[Any, ...]]] = []

    def submit(self, task: Callable[..., None], *args: Any, **kwargs: Any) -> None:
        self.submitted.append((task, args))

    def run_all(self) -> None:
        while self.submitted:
            task, args = self.submitted.pop(0)
            task(*args)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def run_store(clock: FakeClock) -> FakeRunStore:
    return FakeRunStore(clock)


@pytest.fixture
def cache_store() -> FakeCacheStore:
    return FakeCacheStore()


@pytest.fixture
def cache(cache_store: FakeCacheStore, clock: FakeClock) -> CompetitorCache:
    return CompetitorCache(store=cache_store, ttl_hours=4320, clock=clock)


@pytest.fixture
def tracker(run_store: FakeRunStore, clock: FakeClock) -> StatusTracker:
    return StatusTracker(store=run_store, clock=clock)


@pytest.fixture
def pipeline_settings() -> RankingPipelineSettings:
    return RankingPipelineSettings(max_retries=3, retry_delay_seconds=5.0, competitor_limit=20)


@pytest.fixture
def collaborators() -> dict[str, Any]:
    return {
        "profile_fetcher": FakeProfileFetcher(),
        "search_fetcher": FakeSearchFetcher(),
        "discovery": FakeDiscovery(),
        "details": FakeDetails(),
        "auditor": FakeAuditor(),
        "analysis": FakeAnalysis(),
    }


@pytest.fixture
def make_pipeline(
    run_store: FakeRunStore,
    tracker: StatusTracker,
    cache: CompetitorCache,
    pipeline_settings: RankingPipelineSettings,
    collaborators: dict[str, Any],
    clock: FakeClock,
) -> Callable[..., LocationRankingPipeline]:
    def factory(**overrides: Any) -> LocationRankingPipeline:
        deps = {**collaborators, **overrides}
        return LocationRankingPipeline(
            store=run_store,
            tracker=tracker,
            cache=cache,
            settings=pipeline_settings,
            clock=clock,
            **deps,
        )

    return factory


@pytest.fixture
def location() -> LocationInput:
    return LocationInput(
        location_id="locations/100",
        account_ref="accounts/1",
        display_name="Bright Smile Downtown",
        specialty="orthodontist",
        market_location="Austin, TX",
        website_url="https://brightsmile.example",
    )
