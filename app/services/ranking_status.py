"""
app/services/ranking_status.py

Per-run status state machine for the practice ranking pipeline.

Each transition writes the whole status snapshot (current step, message,
progress, completed steps, timestamps) together with the run status in a
single update. Runs whose persisted status is terminal are never modified.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from app.storage.base import RankingRunStore
from db.models.practice_ranking import PracticeRankingStatus

logger = logging.getLogger(__name__)


class RankingStep:
    QUEUED = "queued"
    FETCHING_CLIENT_PROFILE = "fetching_client_profile"
    FETCHING_SEARCH_CONSOLE = "fetching_search_console"
    DISCOVERING_COMPETITORS = "discovering_competitors"
    SCRAPING_COMPETITORS = "scraping_competitors"
    AUDITING_WEBSITE = "auditing_website"
    CALCULATING_SCORES = "calculating_scores"
    AWAITING_EXTERNAL_ANALYSIS = "awaiting_external_analysis"
    DONE = "done"


RANKING_STEPS: tuple[str, ...] = (
    RankingStep.QUEUED,
    RankingStep.FETCHING_CLIENT_PROFILE,
    RankingStep.FETCHING_SEARCH_CONSOLE,
    RankingStep.DISCOVERING_COMPETITORS,
    RankingStep.SCRAPING_COMPETITORS,
    RankingStep.AUDITING_WEBSITE,
    RankingStep.CALCULATING_SCORES,
    RankingStep.AWAITING_EXTERNAL_ANALYSIS,
    RankingStep.DONE,
)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def steps_before(step: str) -> list[str]:
    if step not in RANKING_STEPS:
        return []
    return list(RANKING_STEPS[: RANKING_STEPS.index(step)])


@dataclass(frozen=True)
class StatusDetail:
    current_step: str
    message: str
    progress: int
    steps_completed: list[str] = field(default_factory=list)
    timestamps: dict[str, str] = field(default_factory=dict)

    def as_dict(self) -> dict[str, Any]:
        return {
            "currentStep": self.current_step,
            "message": self.message,
            "progress": self.progress,
            "stepsCompleted": list(self.steps_completed),
            "timestamps": dict(self.timestamps),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> "StatusDetail":
        source = data or {}
        return cls(
            current_step=str(source.get("currentStep") or RankingStep.QUEUED),
            message=str(source.get("message") or ""),
            progress=int(source.get("progress") or 0),
            steps_completed=list(source.get("stepsCompleted") or []),
            timestamps=dict(source.get("timestamps") or {}),
        )


class StatusTracker:
    def __init__(
        self,
        *,
        store: RankingRunStore,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._store = store
        self._clock = clock

    def initial_detail(self, message: str = "Analysis queued") -> StatusDetail:
        return StatusDetail(
            current_step=RankingStep.QUEUED,
            message=message,
            progress=0,
            timestamps={"started_at": self._clock().isoformat()},
        )

    def build_detail(
        self,
        step: str,
        message: str,
        progress: int,
        previous: StatusDetail | None,
    ) -> StatusDetail:
        """
        Compute the next snapshot without persisting it.

        Progress is clamped to the previous maximum so it never goes backwards.
        """

        base = previous or self.initial_detail()
        effective_progress = max(base.progress, max(0, min(100, int(progress))))
        steps_completed = steps_before(step) if effective_progress > 0 else list(base.steps_completed)
        timestamps = dict(base.timestamps)
        timestamps[f"{step}_at"] = self._clock().isoformat()
        return StatusDetail(
            current_step=step,
            message=message,
            progress=effective_progress,
            steps_completed=steps_completed,
            timestamps=timestamps,
        )

    def transition(
        self,
        run_id: uuid.UUID,
        status: str,
        step: str,
        message: str,
        progress: int,
        previous_detail: StatusDetail | None = None,
        *,
        extra: dict[str, Any] | None = None,
    ) -> StatusDetail:
        """
        Persist one status transition and return the new snapshot.

        ``extra`` columns are written in the same update. When the run is
        missing or already terminal nothing is written and the previous
        snapshot is returned.
        """

        detail = self.build_detail(step, message, progress, previous_detail)
        values: dict[str, Any] = {"status": status, "status_detail": detail.as_dict()}
        if extra:
            values.update(extra)

        applied = self._store.update_run(run_id, values, only_active=True)
        if not applied:
            logger.warning(
                "Ignored status transition for missing or terminal run run_id=%s status=%s step=%s",
                run_id,
                status,
                step,
            )
            return previous_detail or detail

        logger.info(
            "Ranking run status run_id=%s status=%s step=%s progress=%s message=%s",
            run_id,
            status,
            step,
            detail.progress,
            message,
        )
        return detail

    def complete(
        self,
        run_id: uuid.UUID,
        message: str,
        previous_detail: StatusDetail | None = None,
        *,
        extra: dict[str, Any] | None = None,
    ) -> StatusDetail:
        return self.transition(
            run_id,
            PracticeRankingStatus.COMPLETED,
            RankingStep.DONE,
            message,
            100,
            previous_detail,
            extra=extra,
        )

    def fail(
        self,
        run_id: uuid.UUID,
        error_message: str,
        previous_detail: StatusDetail | None = None,
    ) -> StatusDetail:
        previous = previous_detail or self.initial_detail()
        return self.transition(
            run_id,
            PracticeRankingStatus.FAILED,
            previous.current_step,
            f"Analysis failed: {error_message}",
            previous.progress,
            previous,
            extra={
                "error_message": error_message[:2000],
                "rank_score": None,
                "rank_position": None,
            },
        )
