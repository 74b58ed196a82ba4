"""
Repository for practice ranking run persistence and lookup.
"""

from __future__ import annotations

import uuid
from collections.abc import Sequence
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import Select, delete, select, update
from sqlalchemy.orm import Session

from db.models.practice_ranking import PracticeRanking, PracticeRankingStatus


class PracticeRankingRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def create_pending_runs(
        self,
        *,
        batch_id: uuid.UUID,
        account_id: int,
        domain: str,
        rows: Sequence[dict[str, Any]],
    ) -> list[PracticeRanking]:
        """
        Insert one pending run per row. ``rows`` carry the per-location
        columns (gbp ids, location name, specialty, market location,
        status_detail); each run records its row position as
        ``location_index``.
        """

        runs: list[PracticeRanking] = []
        for index, row in enumerate(rows):
            run = PracticeRanking(
                id=uuid.uuid4(),
                batch_id=batch_id,
                location_index=index,
                account_id=account_id,
                domain=domain,
                status=PracticeRankingStatus.PENDING,
                **row,
            )
            self._session.add(run)
            runs.append(run)
        self._session.flush()
        return runs

    def get_run(self, run_id: uuid.UUID) -> PracticeRanking | None:
        return self._session.get(PracticeRanking, run_id)

    def list_batch_runs(self, batch_id: uuid.UUID) -> list[PracticeRanking]:
        stmt = (
            select(PracticeRanking)
            .where(PracticeRanking.batch_id == batch_id)
            .order_by(PracticeRanking.location_index.asc(), PracticeRanking.created_at.asc())
        )
        return list(self._session.scalars(stmt).all())

    def list_runs(
        self,
        *,
        account_id: int | None = None,
        status: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[PracticeRanking]:
        stmt: Select[tuple[PracticeRanking]] = select(PracticeRanking)

        if account_id is not None:
            stmt = stmt.where(PracticeRanking.account_id == account_id)
        if status:
            stmt = stmt.where(PracticeRanking.status == status)

        stmt = (
            stmt.order_by(PracticeRanking.created_at.desc())
            .offset(max(0, offset))
            .limit(max(1, limit))
        )
        return list(self._session.scalars(stmt).all())

    def get_latest_completed(
        self,
        *,
        account_id: int,
        gbp_location_id: str | None = None,
    ) -> PracticeRanking | None:
        stmt = select(PracticeRanking).where(
            PracticeRanking.account_id == account_id,
            PracticeRanking.status == PracticeRankingStatus.COMPLETED,
        )
        if gbp_location_id:
            stmt = stmt.where(PracticeRanking.gbp_location_id == gbp_location_id)
        stmt = stmt.order_by(PracticeRanking.created_at.desc()).limit(1)
        return self._session.scalars(stmt).first()

    def update_run(
        self,
        *,
        run_id: uuid.UUID,
        values: dict[str, Any],
        exclude_statuses: frozenset[str] | None = None,
    ) -> bool:
        """
        Apply ``values`` to an existing run in a single UPDATE.

        Rows whose current status is in ``exclude_statuses`` are left
        untouched. Returns False when nothing was updated.
        """

        stmt = update(PracticeRanking).where(PracticeRanking.id == run_id)
        if exclude_statuses:
            stmt = stmt.where(PracticeRanking.status.notin_(exclude_statuses))
        stmt = stmt.values(**values, updated_at=datetime.now(timezone.utc))
        result = self._session.execute(stmt)
        return (result.rowcount or 0) > 0

    def fail_batch_runs(self, *, batch_id: uuid.UUID, error_message: str) -> int:
        stmt = (
            update(PracticeRanking)
            .where(PracticeRanking.batch_id == batch_id)
            .values(
                status=PracticeRankingStatus.FAILED,
                error_message=error_message,
                rank_score=None,
                rank_position=None,
                updated_at=datetime.now(timezone.utc),
            )
        )
        result = self._session.execute(stmt)
        return result.rowcount or 0

    def delete_run(self, run_id: uuid.UUID) -> bool:
        result = self._session.execute(
            delete(PracticeRanking).where(PracticeRanking.id == run_id)
        )
        return (result.rowcount or 0) > 0
