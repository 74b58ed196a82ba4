"""
app/connectors/apify_connector.py

Apify connector for competitor discovery, competitor detail scraping and
Lighthouse website audits.

Every operation starts an actor run, polls it until it reaches a terminal
status, then reads the run's default dataset.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence
from datetime import datetime, timedelta, timezone
from typing import Any

import requests

from app.config import ApifySettings, ExternalHTTPSettings, get_apify_settings
from app.connectors.base import BaseConnector, ConnectorRequestError
from app.domain.practice_ranking import CompetitorDetail, CompetitorIdentity, WebsiteAuditResult
from ranking.specialties import name_has_keyword

logger = logging.getLogger(__name__)

_FAILED_RUN_STATUSES = {"FAILED", "ABORTED", "TIMED-OUT"}
_SUCCEEDED = "SUCCEEDED"
_COMPLETE_WEEK_DAYS = 7


def _as_float(value: Any) -> float:
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        return 0.0


def _as_int(value: Any) -> int:
    return int(_as_float(value))


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ApifyCompetitorClient(BaseConnector):
    def __init__(
        self,
        *,
        settings: ApifySettings | None = None,
        http_settings: ExternalHTTPSettings | None = None,
        session: requests.Session | None = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        super().__init__(source="apify", http_settings=http_settings, session=session, sleep=sleep)
        self._settings = settings or get_apify_settings()
        self._clock = clock

    # ------------------------------------------------------------------
    # Discovery
    # ------------------------------------------------------------------

    def discover(self, query: str, limit: int) -> list[CompetitorIdentity]:
        """
        Search Google Maps for ``query``.

        Results are sorted by review count desc, rating desc, place id asc so
        the same market always yields the same ordering.
        """

        logger.info("Discovering competitors query=%r limit=%s", query, limit)
        items = self._run_actor(
            self._settings.places_actor,
            {
                "searchStringsArray": [query],
                "maxCrawledPlacesPerSearch": limit,
                "language": "en",
                "maxReviews": 0,
                "maxImages": 0,
            },
        )
        competitors = [
            CompetitorIdentity(
                place_id=str(item.get("placeId") or ""),
                name=str(item.get("title") or item.get("name") or ""),
                address=str(item.get("address") or ""),
                category=str(item.get("categoryName") or (item.get("categories") or ["Unknown"])[0]),
                total_reviews=_as_int(item.get("reviewsCount")),
                average_rating=_as_float(item.get("totalScore")),
                website=item.get("website"),
                phone=item.get("phone"),
            )
            for item in items
            if item.get("placeId")
        ]
        competitors.sort(key=lambda c: (-c.total_reviews, -c.average_rating, c.place_id))
        return competitors

    # ------------------------------------------------------------------
    # Details
    # ------------------------------------------------------------------

    def enrich(self, place_ids: Sequence[str], keywords: Sequence[str]) -> list[CompetitorDetail]:
        if not place_ids:
            return []
        logger.info("Fetching competitor details count=%s", len(place_ids))
        items = self._run_actor(
            self._settings.places_actor,
            {
                "startUrls": [
                    {"url": f"https://www.google.com/maps/place/?q=place_id:{place_id}"}
                    for place_id in place_ids
                ],
                "language": "en",
                "maxReviews": 10,
                "maxImages": 1,
                "scrapeImageUrls": False,
            },
        )
        now = self._clock()
        return [self._to_detail(item, keywords, now) for item in items if item.get("placeId")]

    def _to_detail(self, item: dict[str, Any], keywords: Sequence[str], now: datetime) -> CompetitorDetail:
        name = str(item.get("title") or item.get("name") or "")
        reviews_30d, reviews_90d = self._recent_review_counts(item.get("reviews"), now)
        opening_hours = item.get("openingHours")
        categories = [str(c) for c in item.get("categories") or []]
        photos = item.get("imageCount") or item.get("imagesCount") or len(item.get("images") or [])

        return CompetitorDetail(
            place_id=str(item["placeId"]),
            name=name,
            address=str(item.get("address") or ""),
            primary_category=str(item.get("categoryName") or (categories[0] if categories else "Unknown")),
            categories=tuple(categories),
            total_reviews=_as_int(item.get("reviewsCount")),
            average_rating=_as_float(item.get("totalScore")),
            reviews_last_30d=reviews_30d,
            reviews_last_90d=reviews_90d,
            photos_count=_as_int(photos),
            posts_last_90d=0,
            has_website=bool(item.get("website")),
            has_phone=bool(item.get("phone")),
            has_hours=bool(opening_hours),
            hours_complete=bool(opening_hours) and len(opening_hours) >= _COMPLETE_WEEK_DAYS,
            description_length=len(item.get("description") or ""),
            has_keyword_in_name=name_has_keyword(name, list(keywords)),
            website=item.get("website"),
            phone=item.get("phone"),
        )

    def _recent_review_counts(self, reviews: Any, now: datetime) -> tuple[int, int]:
        if not isinstance(reviews, list):
            return 0, 0
        cutoff_30 = now - timedelta(days=30)
        cutoff_90 = now - timedelta(days=90)
        last_30 = last_90 = 0
        for review in reviews:
            published = (review or {}).get("publishedAtDate")
            if not published:
                continue
            try:
                published_at = self.parse_iso_datetime(str(published))
            except ValueError:
                continue
            if published_at >= cutoff_30:
                last_30 += 1
            if published_at >= cutoff_90:
                last_90 += 1
        return last_30, last_90

    # ------------------------------------------------------------------
    # Website audit
    # ------------------------------------------------------------------

    def audit(self, url: str) -> WebsiteAuditResult:
        logger.info("Running Lighthouse audit url=%s", url)
        items = self._run_actor(
            self._settings.lighthouse_actor,
            {"url": url, "device": "mobile", "throttling": "applied"},
        )
        if not items:
            raise ConnectorRequestError(f"{self.source}: no audit results returned for {url}")

        report = items[0]
        categories = report.get("categories") or {}
        audits = report.get("audits") or {}

        def category_score(name: str) -> float:
            return _as_float((categories.get(name) or {}).get("score"))

        def numeric(name: str) -> float:
            return _as_float((audits.get(name) or {}).get("numericValue"))

        structured = ((audits.get("structured-data") or {}).get("details") or {}).get("items") or []
        schema_types = [str((entry or {}).get("type") or "").lower() for entry in structured]

        def has_schema(*fragments: str) -> bool:
            return any(fragment in schema for schema in schema_types for fragment in fragments)

        performance = category_score("performance")
        return WebsiteAuditResult(
            url=url,
            lcp=round(numeric("largest-contentful-paint") / 1000, 2),
            fid=float(round(numeric("max-potential-fid"))),
            cls=round(numeric("cumulative-layout-shift"), 3),
            performance_score=round(performance * 100),
            accessibility_score=round(category_score("accessibility") * 100),
            best_practices_score=round(category_score("best-practices") * 100),
            seo_score=round(category_score("seo") * 100),
            has_local_schema=has_schema("localbusiness"),
            has_organization_schema=has_schema("organization"),
            has_review_schema=has_schema("review", "aggregaterating"),
            has_faq_schema=has_schema("faq"),
            mobile_friendly=performance > 0.5,
            https=url.startswith("https://"),
        )

    # ------------------------------------------------------------------
    # Actor runs
    # ------------------------------------------------------------------

    def _headers(self) -> dict[str, str]:
        if not self._settings.token:
            raise ConnectorRequestError("APIFY_TOKEN is not set.")
        return {"Authorization": f"Bearer {self._settings.token}"}

    def _run_actor(self, actor: str, actor_input: dict[str, Any]) -> list[dict[str, Any]]:
        headers = self._headers()
        started = self._request_json(
            method="POST",
            url=f"{self._settings.base_url}/acts/{actor}/runs",
            headers=headers,
            json_body=actor_input,
        )
        run_id = ((started or {}).get("data") or {}).get("id")
        if not run_id:
            raise ConnectorRequestError(f"{self.source}: actor {actor} did not return a run id.")
        logger.info("Started Apify actor run actor=%s run_id=%s", actor, run_id)

        dataset_id = self._wait_for_run(run_id, headers)
        items = self._request_json(
            method="GET",
            url=f"{self._settings.base_url}/datasets/{dataset_id}/items",
            params={"format": "json"},
            headers=headers,
        )
        if not isinstance(items, list):
            raise ConnectorRequestError(f"{self.source}: dataset {dataset_id} did not return a list.")
        logger.info("Fetched Apify dataset run_id=%s items=%s", run_id, len(items))
        return [item for item in items if isinstance(item, dict)]

    def _wait_for_run(self, run_id: str, headers: dict[str, str]) -> str:
        deadline = self._monotonic() + self._settings.run_timeout_seconds
        while True:
            payload = self._request_json(
                method="GET",
                url=f"{self._settings.base_url}/actor-runs/{run_id}",
                headers=headers,
            )
            run = (payload or {}).get("data") or {}
            status = run.get("status")
            logger.debug("Apify run status run_id=%s status=%s", run_id, status)

            if status == _SUCCEEDED:
                dataset_id = run.get("defaultDatasetId")
                if not dataset_id:
                    raise ConnectorRequestError(f"{self.source}: run {run_id} returned no dataset id.")
                return str(dataset_id)
            if status in _FAILED_RUN_STATUSES:
                raise ConnectorRequestError(f"{self.source}: actor run {run_id} ended with status {status}.")
            if self._monotonic() >= deadline:
                self._abort_run(run_id, headers)
                raise ConnectorRequestError(
                    f"{self.source}: actor run {run_id} timed out after "
                    f"{self._settings.run_timeout_seconds:.0f}s."
                )
            self._sleep(self._settings.poll_interval_seconds)

    def _abort_run(self, run_id: str, headers: dict[str, str]) -> None:
        try:
            self._request(
                method="POST",
                url=f"{self._settings.base_url}/actor-runs/{run_id}/abort",
                headers=headers,
            )
        except ConnectorRequestError as exc:
            logger.warning("Apify run abort failed run_id=%s error=%s", run_id, exc)
            return
        logger.info("Aborted timed out Apify run run_id=%s", run_id)
