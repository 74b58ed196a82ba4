"""
app/services/batch_state.py

In-memory registry of live batch progress.

Persisted ranking runs remain the authority; this registry only provides
low-latency progress (current location, attempt errors) while the owning
process is alive.
"""

from __future__ import annotations

import threading
import uuid
from collections.abc import Callable, Sequence
from dataclasses import replace
from datetime import datetime, timedelta, timezone

from app.domain.practice_ranking import (
    BatchFailure,
    BatchState,
    BatchStatus,
    BatchStatusView,
    RankingRunRecord,
)
from db.models.practice_ranking import PracticeRankingStatus


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class BatchStateRegistry:
    """
    Thread-safe map of batch id to BatchState.

    Finished batches are pruned after ``retention``.
    """

    def __init__(
        self,
        *,
        retention: timedelta = timedelta(hours=24),
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._states: dict[uuid.UUID, BatchState] = {}
        self._lock = threading.Lock()
        self._retention = retention
        self._clock = clock

    def register(self, batch_id: uuid.UUID, run_ids: Sequence[uuid.UUID]) -> BatchState:
        with self._lock:
            self._prune_locked()
            state = BatchState(
                batch_id=batch_id,
                total_locations=len(run_ids),
                run_ids=list(run_ids),
                started_at=self._clock(),
            )
            self._states[batch_id] = state
            return self._snapshot(state)

    def get(self, batch_id: uuid.UUID) -> BatchState | None:
        with self._lock:
            state = self._states.get(batch_id)
            return self._snapshot(state) if state is not None else None

    def set_current(self, batch_id: uuid.UUID, index: int, location_name: str | None) -> None:
        with self._lock:
            state = self._states.get(batch_id)
            if state is None:
                return
            state.current_location_index = index
            state.current_location_name = location_name

    def record_attempt_error(self, batch_id: uuid.UUID, failure: BatchFailure) -> None:
        with self._lock:
            state = self._states.get(batch_id)
            if state is not None:
                state.errors.append(failure)

    def record_location_completed(self, batch_id: uuid.UUID) -> None:
        with self._lock:
            state = self._states.get(batch_id)
            if state is None or state.status != BatchStatus.PROCESSING:
                return
            state.completed_count = min(state.total_locations, state.completed_count + 1)

    def mark_completed(self, batch_id: uuid.UUID) -> None:
        with self._lock:
            state = self._states.get(batch_id)
            if state is None or state.status != BatchStatus.PROCESSING:
                return
            state.status = BatchStatus.COMPLETED
            state.completed_at = self._clock()

    def mark_failed(self, batch_id: uuid.UUID) -> None:
        """
        Fail the batch. Every location that did not complete counts as failed.
        """

        with self._lock:
            state = self._states.get(batch_id)
            if state is None or state.status == BatchStatus.FAILED:
                return
            state.status = BatchStatus.FAILED
            state.failed_count = state.total_locations - state.completed_count
            state.completed_at = self._clock()

    def _prune_locked(self) -> None:
        cutoff = self._clock() - self._retention
        stale = [
            batch_id
            for batch_id, state in self._states.items()
            if state.completed_at is not None and state.completed_at < cutoff
        ]
        for batch_id in stale:
            del self._states[batch_id]

    @staticmethod
    def _snapshot(state: BatchState) -> BatchState:
        return replace(state, run_ids=list(state.run_ids), errors=list(state.errors))


def view_from_state(state: BatchState, runs: Sequence[RankingRunRecord] = ()) -> BatchStatusView:
    return BatchStatusView(
        batch_id=state.batch_id,
        status=state.status,
        total_locations=state.total_locations,
        completed_count=state.completed_count,
        failed_count=state.failed_count,
        run_ids=list(state.run_ids),
        source="memory",
        current_location_index=state.current_location_index,
        current_location_name=state.current_location_name,
        errors=list(state.errors),
        runs=list(runs),
        started_at=state.started_at,
        completed_at=state.completed_at,
    )


def view_from_runs(batch_id: uuid.UUID, runs: Sequence[RankingRunRecord]) -> BatchStatusView | None:
    """
    Aggregate persisted runs into a batch status.

    Any failed run fails the batch; all completed completes it; anything
    else is still processing.
    """

    if not runs:
        return None

    runs = sorted(runs, key=lambda run: run.location_index)
    statuses = [run.status for run in runs]
    completed = statuses.count(PracticeRankingStatus.COMPLETED)
    failed = statuses.count(PracticeRankingStatus.FAILED)
    if failed:
        status = BatchStatus.FAILED
    elif completed == len(runs):
        status = BatchStatus.COMPLETED
    else:
        status = BatchStatus.PROCESSING

    timestamps = [run.created_at for run in runs if run.created_at is not None]
    finished = [run.updated_at for run in runs if run.updated_at is not None]
    return BatchStatusView(
        batch_id=batch_id,
        status=status,
        total_locations=len(runs),
        completed_count=completed,
        failed_count=failed,
        run_ids=[run.id for run in runs],
        source="database",
        runs=list(runs),
        started_at=min(timestamps) if timestamps else None,
        completed_at=max(finished) if finished and status != BatchStatus.PROCESSING else None,
    )
