"""
app/services/ranking_batch_orchestrator.py

Batch orchestrator for practice ranking.

A batch ranks every location of one tenant account. Locations run strictly
one after another inside a single worker task; each location is retried as a
unit with a fixed delay, and a location that exhausts its attempts fails the
whole batch: every run in the batch, including already completed ones, is
overwritten to ``failed``.
"""

from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from functools import lru_cache
from typing import Any, Protocol

from app.config import RankingPipelineSettings, get_ranking_pipeline_settings
from app.domain.errors import BatchValidationError, RetryExhaustedError
from app.domain.practice_ranking import (
    BatchFailure,
    BatchStatusView,
    BatchTriggerResult,
    LocationInput,
    RankingRunRecord,
)
from app.logging_utils import log_event
from app.services.batch_state import BatchStateRegistry, view_from_runs, view_from_state
from app.services.location_ranking_pipeline import LocationRankingPipeline
from app.services.notification_service import RankingNotifier
from app.services.ranking_status import RankingStep, StatusDetail, StatusTracker
from app.services.retry_policy import RetryPolicy
from app.storage.base import RankingRunStore
from db.models.practice_ranking import PracticeRankingStatus

logger = logging.getLogger(__name__)


class RankingTaskExecutor(Protocol):
    def submit(self, task: Callable[..., None], *args: Any, **kwargs: Any) -> Any:
        ...


class RankingBatchOrchestrator:
    """
    Coordinates run creation, sequential location processing and batch status.
    """

    def __init__(
        self,
        *,
        store: RankingRunStore,
        pipeline: LocationRankingPipeline,
        tracker: StatusTracker,
        executor: RankingTaskExecutor,
        registry: BatchStateRegistry | None = None,
        notifier: RankingNotifier | None = None,
        retry_policy: RetryPolicy | None = None,
        settings: RankingPipelineSettings | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._store = store
        self._pipeline = pipeline
        self._tracker = tracker
        self._executor = executor
        self._registry = registry or BatchStateRegistry()
        self._notifier = notifier
        self._retry_policy = retry_policy or RetryPolicy.for_batch_locations(
            settings or get_ranking_pipeline_settings()
        )
        self._sleep = sleep

    # ------------------------------------------------------------------
    # Trigger
    # ------------------------------------------------------------------

    def trigger_batch(
        self,
        *,
        account_id: int,
        domain: str,
        locations: Sequence[LocationInput],
        specialty: str | None = None,
        market_location: str | None = None,
    ) -> BatchTriggerResult:
        """
        Create one pending run per location and schedule the batch.

        Returns as soon as the runs are persisted; processing happens on the
        executor.
        """

        resolved = self._resolve_locations(
            domain=domain,
            locations=locations,
            specialty=specialty,
            market_location=market_location,
        )
        batch_id = uuid.uuid4()
        run_ids = self._create_runs(batch_id=batch_id, account_id=account_id, domain=domain, locations=resolved)

        try:
            self._executor.submit(self.run_batch, batch_id, account_id, resolved, domain, run_ids)
        except Exception as exc:
            self._fail_batch(batch_id, f"Failed to schedule ranking batch: {type(exc).__name__}: {exc}")
            raise

        log_event(
            logger,
            logging.INFO,
            "ranking_batch_triggered",
            batch_id=batch_id,
            account_id=account_id,
            locations=len(run_ids),
        )
        return BatchTriggerResult(batch_id=batch_id, run_ids=run_ids)

    def _resolve_locations(
        self,
        *,
        domain: str,
        locations: Sequence[LocationInput],
        specialty: str | None,
        market_location: str | None,
    ) -> list[LocationInput]:
        if not (domain or "").strip():
            raise BatchValidationError("domain is required")
        if not locations:
            raise BatchValidationError("at least one location is required")

        resolved: list[LocationInput] = []
        seen: set[str] = set()
        for index, location in enumerate(locations):
            if not (location.location_id or "").strip():
                raise BatchValidationError(f"locations[{index}].location_id is required")
            if location.location_id in seen:
                raise BatchValidationError(f"duplicate location_id: {location.location_id}")
            seen.add(location.location_id)

            location = replace(
                location,
                specialty=location.specialty or specialty,
                market_location=location.market_location or market_location,
            )
            if not (location.specialty or "").strip():
                raise BatchValidationError(f"locations[{index}]: specialty is required")
            if not (location.market_location or "").strip():
                raise BatchValidationError(f"locations[{index}]: market location is required")
            resolved.append(location)
        return resolved

    def _create_runs(
        self,
        *,
        batch_id: uuid.UUID,
        account_id: int,
        domain: str,
        locations: Sequence[LocationInput],
    ) -> list[uuid.UUID]:
        runs = self._store.create_pending_runs(
            batch_id=batch_id,
            account_id=account_id,
            domain=domain,
            locations=locations,
            status_detail=self._tracker.initial_detail().as_dict(),
        )
        run_ids = [run.id for run in runs]
        self._registry.register(batch_id, run_ids)
        return run_ids

    # ------------------------------------------------------------------
    # Worker
    # ------------------------------------------------------------------

    def run_batch(
        self,
        batch_id: uuid.UUID,
        account_id: int,
        locations: Sequence[LocationInput],
        domain: str,
        run_ids: Sequence[uuid.UUID] | None = None,
    ) -> None:
        """
        Process every location in order. Never raises.
        """

        try:
            if run_ids is None:
                run_ids = self._create_runs(
                    batch_id=batch_id,
                    account_id=account_id,
                    domain=domain,
                    locations=locations,
                )
            elif self._registry.get(batch_id) is None:
                self._registry.register(batch_id, run_ids)

            for index, (location, run_id) in enumerate(zip(locations, run_ids)):
                self._registry.set_current(batch_id, index, location.label)
                logger.info(
                    "Processing location batch_id=%s index=%s/%s location=%s",
                    batch_id,
                    index + 1,
                    len(run_ids),
                    location.label,
                )
                try:
                    self._process_location(
                        batch_id=batch_id,
                        account_id=account_id,
                        domain=domain,
                        location=location,
                        run_id=run_id,
                    )
                except RetryExhaustedError as exc:
                    error_message = (
                        f"Location {location.label} failed after {exc.attempts} attempts: "
                        f"{type(exc.last_error).__name__}: {exc.last_error}"
                    )
                    self._fail_batch(batch_id, error_message)
                    return
                self._registry.record_location_completed(batch_id)

            self._registry.mark_completed(batch_id)
            log_event(
                logger,
                logging.INFO,
                "ranking_batch_completed",
                batch_id=batch_id,
                account_id=account_id,
                locations=len(run_ids),
            )
            self._notify_completed(batch_id=batch_id, account_id=account_id, domain=domain, count=len(run_ids))
        except Exception as exc:
            logger.exception("Ranking batch crashed batch_id=%s", batch_id)
            self._fail_batch(batch_id, f"{type(exc).__name__}: {exc}")

    def _process_location(
        self,
        *,
        batch_id: uuid.UUID,
        account_id: int,
        domain: str,
        location: LocationInput,
        run_id: uuid.UUID,
    ) -> None:
        self._tracker.transition(
            run_id,
            PracticeRankingStatus.PROCESSING,
            RankingStep.QUEUED,
            "Starting analysis...",
            0,
            self._persisted_detail(run_id),
        )

        def attempt_location(attempt: int) -> None:
            # progress must not regress across attempts
            detail = self._persisted_detail(run_id)
            self._pipeline.process(
                run_id=run_id,
                account_id=account_id,
                domain=domain,
                location=location,
                detail=detail,
            )

        def record_failure(attempt: int, exc: Exception) -> None:
            error = f"{type(exc).__name__}: {exc}"
            self._registry.record_attempt_error(
                batch_id,
                BatchFailure(location_id=location.location_id, error=error, attempt=attempt),
            )
            logger.warning(
                "Location attempt failed batch_id=%s run_id=%s attempt=%s/%s error=%s",
                batch_id,
                run_id,
                attempt,
                self._retry_policy.max_attempts,
                error,
            )

        self._retry_policy.run(attempt_location, on_failure=record_failure, sleep=self._sleep)

    def _persisted_detail(self, run_id: uuid.UUID) -> StatusDetail | None:
        run = self._store.get_run(run_id)
        if run is None or not run.status_detail:
            return None
        return StatusDetail.from_dict(run.status_detail)

    def _fail_batch(self, batch_id: uuid.UUID, error_message: str) -> None:
        self._registry.mark_failed(batch_id)
        log_event(logger, logging.ERROR, "ranking_batch_failed", batch_id=batch_id, error=error_message)
        try:
            for run in self._store.list_batch_runs(batch_id):
                if run.status in PracticeRankingStatus.TERMINAL:
                    continue
                previous = StatusDetail.from_dict(run.status_detail) if run.status_detail else None
                self._tracker.fail(run.id, error_message, previous)
            # completed runs of a failed batch are failed too
            updated = self._store.fail_batch_runs(batch_id, error_message[:2000])
            logger.info("Marked batch runs failed batch_id=%s runs=%s", batch_id, updated)
        except Exception:
            logger.exception("Failed to persist failed batch state batch_id=%s", batch_id)

    def _notify_completed(self, *, batch_id: uuid.UUID, account_id: int, domain: str, count: int) -> None:
        if self._notifier is None:
            return
        try:
            self._notifier.batch_completed(
                batch_id=batch_id,
                account_id=account_id,
                domain=domain,
                location_count=count,
            )
        except Exception as exc:  # noqa: BLE001
            logger.warning("Batch completion notification failed batch_id=%s error=%s", batch_id, exc)

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    def get_batch_status(self, batch_id: uuid.UUID) -> BatchStatusView | None:
        """
        Live in-memory progress when this process owns the batch, otherwise
        an aggregate of the persisted runs.
        """

        state = self._registry.get(batch_id)
        runs = self._store.list_batch_runs(batch_id)
        if state is not None:
            return view_from_state(state, runs)
        return view_from_runs(batch_id, runs)

    def get_run(self, run_id: uuid.UUID) -> RankingRunRecord | None:
        return self._store.get_run(run_id)

    def list_runs(
        self,
        *,
        account_id: int | None = None,
        status: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[RankingRunRecord]:
        return self._store.list_runs(account_id=account_id, status=status, limit=limit, offset=offset)

    def get_latest_run(self, *, account_id: int, gbp_location_id: str | None = None) -> RankingRunRecord | None:
        return self._store.get_latest_completed(account_id=account_id, gbp_location_id=gbp_location_id)

    def delete_run(self, run_id: uuid.UUID) -> bool:
        deleted = self._store.delete_run(run_id)
        if deleted:
            logger.info("Deleted ranking run run_id=%s", run_id)
        return deleted

    def shutdown(self, wait: bool = True) -> None:
        shutdown = getattr(self._executor, "shutdown", None)
        if callable(shutdown):
            shutdown(wait=wait)


class ThreadPoolTaskExecutor:
    """
    Bounded worker pool; each submitted batch occupies one worker.
    """

    def __init__(self, max_workers: int) -> None:
        self._pool = ThreadPoolExecutor(max_workers=max(1, max_workers), thread_name_prefix="ranking-batch")

    def submit(self, task: Callable[..., None], *args: Any, **kwargs: Any) -> Any:
        return self._pool.submit(task, *args, **kwargs)

    def shutdown(self, wait: bool = True) -> None:
        self._pool.shutdown(wait=wait)


@lru_cache(maxsize=1)
def get_ranking_batch_orchestrator() -> RankingBatchOrchestrator:
    from app.connectors.analysis_webhook_connector import AnalysisWebhookClient
    from app.connectors.apify_connector import ApifyCompetitorClient
    from app.connectors.profile_data_connector import HTTPProfileDataClient, HTTPSearchDataClient
    from app.services.competitor_cache import get_competitor_cache
    from app.services.notification_service import DatabaseNotificationSink
    from app.storage.sqlalchemy_store import SQLAlchemyRankingRunStore

    settings = get_ranking_pipeline_settings()
    store = SQLAlchemyRankingRunStore()
    tracker = StatusTracker(store=store)
    apify = ApifyCompetitorClient()
    pipeline = LocationRankingPipeline(
        store=store,
        tracker=tracker,
        cache=get_competitor_cache(),
        profile_fetcher=HTTPProfileDataClient(),
        search_fetcher=HTTPSearchDataClient(),
        discovery=apify,
        details=apify,
        auditor=apify,
        analysis=AnalysisWebhookClient(),
        settings=settings,
    )
    return RankingBatchOrchestrator(
        store=store,
        pipeline=pipeline,
        tracker=tracker,
        executor=ThreadPoolTaskExecutor(settings.max_concurrent_batches),
        notifier=RankingNotifier(sink=DatabaseNotificationSink()),
        settings=settings,
    )
