"""
app/services/location_ranking_pipeline.py

Per-location ranking pipeline: gather client and competitor evidence, score
the client against its market, persist results and hand off to the external
analysis agent.

Each stage is reported through the StatusTracker. Detail enrichment, the
website audit and the analysis handoff degrade gracefully; every other
failure propagates so the batch orchestrator can retry the location.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

from app.config import RankingPipelineSettings, get_ranking_pipeline_settings
from app.domain.collaborators import (
    AnalysisClient,
    CompetitorDetailProvider,
    CompetitorDiscoveryProvider,
    ProfileDataFetcher,
    SearchDataFetcher,
    WebsiteAuditor,
)
from app.domain.errors import LocationNotFoundError
from app.domain.practice_ranking import (
    CompetitorDetail,
    CompetitorIdentity,
    LocationInput,
    LocationRankingResult,
    ProfileData,
    WebsiteAuditResult,
)
from app.logging_utils import log_event
from app.services.competitor_cache import CompetitorCache
from app.services.ranking_status import RankingStep, StatusDetail, StatusTracker
from app.storage.base import RankingRunStore
from db.models.practice_ranking import PracticeRankingStatus
from ranking import (
    BenchmarkInput,
    PracticeData,
    RankedPractice,
    calculate_benchmarks,
    calculate_ranking_score,
    factors_for_storage,
    rank_practices,
    score_benchmarks,
    specialty_keywords,
)

logger = logging.getLogger(__name__)

CLIENT_PRACTICE_ID = "client"
STORED_COMPETITOR_LIMIT = 20
ANALYSIS_COMPETITOR_LIMIT = 5

PROCESSING = PracticeRankingStatus.PROCESSING


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def is_client_listing(client_name: str | None, competitor_name: str | None) -> bool:
    """
    Heuristic match of a discovered listing against the client's own name.

    Names match when equal (case-insensitive) or when one contains the
    other and the shorter is more than half the length of the longer.
    """

    client = (client_name or "").strip().lower()
    competitor = (competitor_name or "").strip().lower()
    if not client or not competitor:
        return False
    if client == competitor:
        return True
    shorter, longer = sorted((client, competitor), key=len)
    return shorter in longer and len(shorter) / len(longer) > 0.5


def filter_client_listing(
    client_name: str | None,
    competitors: Sequence[CompetitorDetail],
) -> list[CompetitorDetail]:
    return [c for c in competitors if not is_client_listing(client_name, c.name)]


@dataclass(frozen=True)
class _Evidence:
    client: PracticeData
    profile: ProfileData
    search_data: dict[str, Any] | None
    competitors: list[CompetitorDetail]
    from_cache: bool
    website_audit: WebsiteAuditResult | None


class LocationRankingPipeline:
    def __init__(
        self,
        *,
        store: RankingRunStore,
        tracker: StatusTracker,
        cache: CompetitorCache,
        profile_fetcher: ProfileDataFetcher,
        search_fetcher: SearchDataFetcher,
        discovery: CompetitorDiscoveryProvider,
        details: CompetitorDetailProvider,
        auditor: WebsiteAuditor,
        analysis: AnalysisClient,
        settings: RankingPipelineSettings | None = None,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._store = store
        self._tracker = tracker
        self._cache = cache
        self._profile_fetcher = profile_fetcher
        self._search_fetcher = search_fetcher
        self._discovery = discovery
        self._details = details
        self._auditor = auditor
        self._analysis = analysis
        self._settings = settings or get_ranking_pipeline_settings()
        self._clock = clock

    def process(
        self,
        *,
        run_id: uuid.UUID,
        account_id: int,
        domain: str,
        location: LocationInput,
        detail: StatusDetail | None = None,
    ) -> LocationRankingResult:
        run = self._store.get_run(run_id)
        if run is None:
            raise LocationNotFoundError(f"Ranking run not found: {run_id}")

        log_event(
            logger,
            logging.INFO,
            "ranking_run_started",
            run_id=run_id,
            location_id=location.location_id,
            specialty=location.specialty,
            market_location=location.market_location,
        )

        evidence, detail = self._gather(
            run_id=run_id,
            account_id=account_id,
            domain=domain,
            location=location,
            detail=detail,
        )

        detail = self._tracker.transition(
            run_id, PROCESSING, RankingStep.CALCULATING_SCORES, "Calculating ranking scores...", 80, detail
        )
        specialty = location.specialty or ""
        client_result = calculate_ranking_score(evidence.client, specialty)
        ranked = rank_practices(
            [(CLIENT_PRACTICE_ID, evidence.client)]
            + [(c.place_id, c.to_practice_data()) for c in evidence.competitors],
            specialty,
        )
        client_ranked = next(p for p in ranked if p.id == CLIENT_PRACTICE_ID)
        stored_competitors = self._competitors_for_storage(ranked, evidence.competitors)
        benchmarks = self._benchmarks(ranked, evidence.competitors)
        ranking_factors = factors_for_storage(client_result, evidence.client)
        total_competitors = len(evidence.competitors) + 1

        raw_data = {
            "client_gbp": {
                "totalReviewCount": evidence.client.total_reviews,
                "averageRating": evidence.client.average_rating,
                "primaryCategory": evidence.client.primary_category,
                "reviewsLast30d": evidence.client.reviews_last_30d,
                "postsLast90d": evidence.client.posts_last_90d,
                "photosCount": evidence.client.photos_count,
                "hasWebsite": evidence.client.has_website,
                "hasPhone": evidence.client.has_phone,
                "hasHours": evidence.client.has_hours,
                "performance": evidence.profile.performance_metrics(),
                "_raw": dict(evidence.profile.payload),
            },
            "client_gsc": evidence.search_data,
            "competitors": stored_competitors,
            "competitors_discovered": len(evidence.competitors),
            "competitors_from_cache": evidence.from_cache,
            "website_audit": evidence.website_audit.as_dict() if evidence.website_audit else None,
            "benchmarks": benchmarks,
        }
        self._store.update_run(
            run_id,
            {"ranking_factors": ranking_factors, "raw_data": raw_data},
            only_active=True,
        )
        logger.info(
            "Client ranked run_id=%s position=%s/%s score=%s",
            run_id,
            client_ranked.rank_position,
            total_competitors,
            client_result.total_score,
        )

        detail = self._tracker.transition(
            run_id,
            PROCESSING,
            RankingStep.AWAITING_EXTERNAL_ANALYSIS,
            "Sending to AI for gap analysis...",
            90,
            detail,
        )
        analysis, message = self._request_analysis(
            run_id=run_id,
            batch_id=run.batch_id,
            domain=domain,
            location=location,
            evidence=evidence,
            client_score=client_result.total_score,
            client_position=client_ranked.rank_position,
            ranking_factors=ranking_factors,
            stored_competitors=stored_competitors,
            benchmarks=benchmarks,
        )

        final_values: dict[str, Any] = {
            "rank_score": client_ranked.ranking_result.total_score,
            "rank_position": client_ranked.rank_position,
            "total_competitors": total_competitors,
            "error_message": None,
        }
        if analysis is not None:
            final_values["llm_analysis"] = analysis
        self._tracker.complete(run_id, message, detail, extra=final_values)

        log_event(
            logger,
            logging.INFO,
            "ranking_run_completed",
            run_id=run_id,
            rank_score=client_ranked.ranking_result.total_score,
            rank_position=client_ranked.rank_position,
            total_competitors=total_competitors,
            analysis_included=analysis is not None,
        )
        return LocationRankingResult(
            run_id=run_id,
            rank_score=client_ranked.ranking_result.total_score,
            rank_position=client_ranked.rank_position,
            total_competitors=total_competitors,
            analysis_included=analysis is not None,
        )

    # ------------------------------------------------------------------
    # Evidence gathering
    # ------------------------------------------------------------------

    def _gather(
        self,
        *,
        run_id: uuid.UUID,
        account_id: int,
        domain: str,
        location: LocationInput,
        detail: StatusDetail | None,
    ) -> tuple[_Evidence, StatusDetail]:
        date_to = self._clock().date()
        date_from = date_to - timedelta(days=self._settings.date_window_days)

        detail = self._tracker.transition(
            run_id, PROCESSING, RankingStep.FETCHING_CLIENT_PROFILE, "Fetching business profile data...", 10, detail
        )
        profile = self._profile_fetcher.fetch(
            account_id,
            [{"accountId": location.account_ref, "locationId": location.location_id}],
            date_from,
            date_to,
        )
        client = profile.to_practice_data(display_name=location.display_name, fallback_name=domain)

        detail = self._tracker.transition(
            run_id, PROCESSING, RankingStep.FETCHING_SEARCH_CONSOLE, "Fetching search performance data...", 20, detail
        )
        search_data = None
        if location.search_site_url:
            search_data = self._search_fetcher.fetch(account_id, location.search_site_url, date_from, date_to)

        identities, from_cache, detail = self._resolve_competitors(run_id=run_id, location=location, detail=detail)

        detail = self._tracker.transition(
            run_id,
            PROCESSING,
            RankingStep.SCRAPING_COMPETITORS,
            f"Scraping {len(identities)} competitors...",
            50,
            detail,
        )
        competitors = self._enrich(run_id=run_id, identities=identities, specialty=location.specialty)
        filtered = filter_client_listing(client.name, competitors)
        if len(filtered) != len(competitors):
            logger.info(
                "Removed client listing from competitors run_id=%s removed=%s",
                run_id,
                len(competitors) - len(filtered),
            )

        detail = self._tracker.transition(
            run_id, PROCESSING, RankingStep.AUDITING_WEBSITE, "Auditing client website...", 60, detail
        )
        website_audit = self._audit(run_id=run_id, url=location.website_url or f"https://{domain}")

        evidence = _Evidence(
            client=client,
            profile=profile,
            search_data=search_data,
            competitors=filtered,
            from_cache=from_cache,
            website_audit=website_audit,
        )
        return evidence, detail

    def _resolve_competitors(
        self,
        *,
        run_id: uuid.UUID,
        location: LocationInput,
        detail: StatusDetail,
    ) -> tuple[list[CompetitorIdentity], bool, StatusDetail]:
        detail = self._tracker.transition(
            run_id, PROCESSING, RankingStep.DISCOVERING_COMPETITORS, "Checking competitor cache...", 30, detail
        )
        cached = self._cache.get(location.specialty, location.market_location)
        if cached:
            detail = self._tracker.transition(
                run_id,
                PROCESSING,
                RankingStep.DISCOVERING_COMPETITORS,
                f"Using {len(cached)} cached competitors",
                35,
                detail,
            )
            return cached, True, detail

        detail = self._tracker.transition(
            run_id, PROCESSING, RankingStep.DISCOVERING_COMPETITORS, "Discovering local competitors...", 30, detail
        )
        query = f"{location.specialty} {location.market_location}"
        discovered = self._discovery.discover(query, self._settings.competitor_limit)
        logger.info("Discovered competitors run_id=%s query=%r count=%s", run_id, query, len(discovered))
        if discovered:
            self._cache.set(location.specialty, location.market_location, discovered)
        return discovered, False, detail

    def _enrich(
        self,
        *,
        run_id: uuid.UUID,
        identities: Sequence[CompetitorIdentity],
        specialty: str | None,
    ) -> list[CompetitorDetail]:
        if not identities:
            return []
        keywords = specialty_keywords(specialty)
        try:
            details = self._details.enrich([c.place_id for c in identities], keywords)
            logger.info("Enriched competitors run_id=%s count=%s", run_id, len(details))
            return list(details)
        except Exception as exc:  # noqa: BLE001
            logger.warning(
                "Competitor detail enrichment failed, using discovery data run_id=%s error=%s",
                run_id,
                exc,
            )
            return [CompetitorDetail.from_identity(identity, keywords) for identity in identities]

    def _audit(self, *, run_id: uuid.UUID, url: str) -> WebsiteAuditResult | None:
        try:
            audit = self._auditor.audit(url)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Website audit failed run_id=%s url=%s error=%s", run_id, url, exc)
            return None
        logger.info("Website audit complete run_id=%s performance=%s", run_id, audit.performance_score)
        return audit

    # ------------------------------------------------------------------
    # Scoring helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _competitors_for_storage(
        ranked: Sequence[RankedPractice],
        competitors: Sequence[CompetitorDetail],
    ) -> list[dict[str, Any]]:
        by_place_id = {c.place_id: c for c in competitors}
        stored: list[dict[str, Any]] = []
        for practice in ranked:
            if practice.id == CLIENT_PRACTICE_ID:
                continue
            details = by_place_id.get(practice.id)
            stored.append(
                {
                    "name": details.name if details else "Unknown",
                    "placeId": practice.id,
                    "rankScore": practice.ranking_result.total_score,
                    "rankPosition": practice.rank_position,
                    "totalReviews": details.total_reviews if details else 0,
                    "averageRating": details.average_rating if details else 0,
                    "reviewsLast30d": details.reviews_last_30d if details else 0,
                    "primaryCategory": details.primary_category if details else "Unknown",
                    "hasKeywordInName": details.has_keyword_in_name if details else False,
                    "photosCount": details.photos_count if details else 0,
                    "postsLast90d": details.posts_last_90d if details else 0,
                }
            )
            if len(stored) >= STORED_COMPETITOR_LIMIT:
                break
        return stored

    @staticmethod
    def _benchmarks(
        ranked: Sequence[RankedPractice],
        competitors: Sequence[CompetitorDetail],
    ) -> dict[str, float | int]:
        benchmarks = calculate_benchmarks(
            [
                BenchmarkInput(
                    total_reviews=c.total_reviews,
                    average_rating=c.average_rating,
                    reviews_last_30d=c.reviews_last_30d,
                )
                for c in competitors
            ]
        )
        scores = [p.ranking_result.total_score for p in ranked if p.id != CLIENT_PRACTICE_ID]
        benchmarks.avg_score, benchmarks.median_score = score_benchmarks(scores)
        return benchmarks.as_dict()

    # ------------------------------------------------------------------
    # External analysis
    # ------------------------------------------------------------------

    def _request_analysis(
        self,
        *,
        run_id: uuid.UUID,
        batch_id: uuid.UUID,
        domain: str,
        location: LocationInput,
        evidence: _Evidence,
        client_score: float,
        client_position: int,
        ranking_factors: dict[str, Any],
        stored_competitors: list[dict[str, Any]],
        benchmarks: dict[str, float | int],
    ) -> tuple[dict[str, Any] | None, str]:
        if not self._analysis.configured:
            logger.info("Analysis webhook not configured, skipping run_id=%s", run_id)
            return None, "Analysis complete"

        payload = self._analysis_payload(
            run_id=run_id,
            batch_id=batch_id,
            domain=domain,
            location=location,
            evidence=evidence,
            client_score=client_score,
            client_position=client_position,
            ranking_factors=ranking_factors,
            stored_competitors=stored_competitors,
            benchmarks=benchmarks,
        )
        try:
            analysis = self._analysis.analyze(payload)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Analysis webhook failed run_id=%s error=%s", run_id, exc)
            return None, "Analysis complete (without AI insights)"

        recommendations = analysis.get("top_recommendations")
        if isinstance(recommendations, list):
            logger.info(
                "Analysis returned recommendations run_id=%s count=%s",
                run_id,
                len(recommendations),
            )
        return analysis, "Analysis complete with AI insights"

    @staticmethod
    def _analysis_payload(
        *,
        run_id: uuid.UUID,
        batch_id: uuid.UUID,
        domain: str,
        location: LocationInput,
        evidence: _Evidence,
        client_score: float,
        client_position: int,
        ranking_factors: dict[str, Any],
        stored_competitors: list[dict[str, Any]],
        benchmarks: dict[str, float | int],
    ) -> dict[str, Any]:
        client = evidence.client
        search = evidence.search_data
        audit = evidence.website_audit
        totals = (search or {}).get("totals") or {}
        top_performer = stored_competitors[0] if stored_competitors else None

        return {
            "additional_data": {
                "practice_ranking_id": str(run_id),
                "batch_id": str(batch_id),
                "client": {
                    "domain": domain,
                    "practice_name": client.name,
                    "specialty": location.specialty,
                    "location": location.market_location,
                    "gbp_location_id": location.location_id,
                    "gbp_account_id": location.account_ref,
                    "rank_score": client_score,
                    "rank_position": client_position,
                    "total_competitors": len(evidence.competitors),
                    "factors": ranking_factors,
                    "gbp_data": {
                        "business_name": client.name,
                        "total_reviews": client.total_reviews,
                        "average_rating": client.average_rating,
                        "reviews_last_30d": client.reviews_last_30d,
                        "primary_category": client.primary_category,
                        "photos_count": client.photos_count,
                        "posts_last_90d": client.posts_last_90d,
                    },
                    "gsc_data": (
                        {
                            "top_queries": list(search.get("topQueries") or [])[:10],
                            "total_impressions": totals.get("impressions") or 0,
                            "total_clicks": totals.get("clicks") or 0,
                            "avg_position": totals.get("avgPosition") or 0,
                        }
                        if search
                        else None
                    ),
                    "website_audit": (
                        {
                            "lcp": audit.lcp,
                            "performance_score": audit.performance_score,
                            "has_local_schema": audit.has_local_schema,
                            "has_review_schema": audit.has_review_schema,
                        }
                        if audit
                        else None
                    ),
                },
                "competitors": stored_competitors[:ANALYSIS_COMPETITOR_LIMIT],
                "benchmarks": {
                    "avg_score": benchmarks.get("avg_score", 0),
                    "avg_reviews": benchmarks.get("avg_reviews", 0),
                    "avg_rating": benchmarks.get("avg_rating", 0),
                    "top_performer": (
                        {"name": top_performer["name"], "score": top_performer["rankScore"]}
                        if top_performer
                        else None
                    ),
                },
            }
        }
