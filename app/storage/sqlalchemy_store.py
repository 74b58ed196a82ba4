"""
SQLAlchemy-backed storage implementations for ranking runs and the
competitor cache.
"""

from __future__ import annotations

import uuid
from collections.abc import Callable, Iterator, Sequence
from contextlib import contextmanager
from datetime import datetime
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.domain.practice_ranking import LocationInput, RankingRunRecord
from app.storage.base import CompetitorCacheStore, RankingRunStore
from db.models.practice_ranking import PracticeRanking, PracticeRankingStatus
from db.repositories.competitor_cache_repository import CompetitorCacheRepository
from db.repositories.practice_ranking_repository import PracticeRankingRepository

SessionFactory = Callable[[], Session]


def _default_session_factory() -> Session:
    from db.session import SessionLocal

    return SessionLocal()


def to_record(row: PracticeRanking) -> RankingRunRecord:
    return RankingRunRecord(
        id=row.id,
        batch_id=row.batch_id,
        account_id=row.account_id,
        domain=row.domain,
        status=row.status,
        location_index=row.location_index,
        gbp_location_id=row.gbp_location_id,
        gbp_location_name=row.gbp_location_name,
        specialty=row.specialty,
        location=row.location,
        rank_score=row.rank_score,
        rank_position=row.rank_position,
        total_competitors=row.total_competitors,
        ranking_factors=row.ranking_factors,
        raw_data=row.raw_data,
        llm_analysis=row.llm_analysis,
        status_detail=row.status_detail,
        error_message=row.error_message,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


class _SessionScope:
    def __init__(self, *, session_factory: SessionFactory | None = None) -> None:
        self._session_factory = session_factory or _default_session_factory

    @contextmanager
    def _read(self) -> Iterator[Session]:
        session = self._session_factory()
        try:
            yield session
        finally:
            session.close()

    @contextmanager
    def _write(self) -> Iterator[Session]:
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except SQLAlchemyError:
            session.rollback()
            raise
        finally:
            session.close()


class SQLAlchemyRankingRunStore(_SessionScope, RankingRunStore):
    """
    Persist ranking runs through the repository, one session per call.
    """

    def create_pending_runs(
        self,
        *,
        batch_id: uuid.UUID,
        account_id: int,
        domain: str,
        locations: Sequence[LocationInput],
        status_detail: dict[str, Any],
    ) -> list[RankingRunRecord]:
        rows = [
            {
                "gbp_account_id": location.account_ref,
                "gbp_location_id": location.location_id,
                "gbp_location_name": location.display_name,
                "specialty": location.specialty,
                "location": location.market_location,
                "status_detail": dict(status_detail),
            }
            for location in locations
        ]
        with self._write() as session:
            runs = PracticeRankingRepository(session).create_pending_runs(
                batch_id=batch_id,
                account_id=account_id,
                domain=domain,
                rows=rows,
            )
            records = [to_record(run) for run in runs]
        return records

    def get_run(self, run_id: uuid.UUID) -> RankingRunRecord | None:
        with self._read() as session:
            run = PracticeRankingRepository(session).get_run(run_id)
            return to_record(run) if run is not None else None

    def list_batch_runs(self, batch_id: uuid.UUID) -> list[RankingRunRecord]:
        with self._read() as session:
            return [to_record(run) for run in PracticeRankingRepository(session).list_batch_runs(batch_id)]

    def list_runs(
        self,
        *,
        account_id: int | None = None,
        status: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[RankingRunRecord]:
        with self._read() as session:
            runs = PracticeRankingRepository(session).list_runs(
                account_id=account_id,
                status=status,
                limit=limit,
                offset=offset,
            )
            return [to_record(run) for run in runs]

    def get_latest_completed(
        self,
        *,
        account_id: int,
        gbp_location_id: str | None = None,
    ) -> RankingRunRecord | None:
        with self._read() as session:
            run = PracticeRankingRepository(session).get_latest_completed(
                account_id=account_id,
                gbp_location_id=gbp_location_id,
            )
            return to_record(run) if run is not None else None

    def update_run(
        self,
        run_id: uuid.UUID,
        values: dict[str, Any],
        *,
        only_active: bool = False,
    ) -> bool:
        exclude = PracticeRankingStatus.TERMINAL if only_active else None
        with self._write() as session:
            return PracticeRankingRepository(session).update_run(
                run_id=run_id,
                values=values,
                exclude_statuses=exclude,
            )

    def fail_batch_runs(self, batch_id: uuid.UUID, error_message: str) -> int:
        with self._write() as session:
            return PracticeRankingRepository(session).fail_batch_runs(
                batch_id=batch_id,
                error_message=error_message,
            )

    def delete_run(self, run_id: uuid.UUID) -> bool:
        with self._write() as session:
            return PracticeRankingRepository(session).delete_run(run_id)


class SQLAlchemyCompetitorCacheStore(_SessionScope, CompetitorCacheStore):
    def get_active(self, cache_key: str, *, now: datetime) -> list[dict[str, Any]] | None:
        with self._read() as session:
            entry = CompetitorCacheRepository(session).get_active(cache_key, now=now)
            return list(entry.competitors) if entry is not None else None

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
        with self._write() as session:
            CompetitorCacheRepository(session).upsert(
                cache_key=cache_key,
                specialty=specialty,
                location=location,
                competitors=competitors,
                created_at=created_at,
                expires_at=expires_at,
            )

    def delete_key(self, cache_key: str) -> int:
        with self._write() as session:
            return CompetitorCacheRepository(session).delete_key(cache_key)

    def delete_expired(self, *, now: datetime) -> int:
        with self._write() as session:
            return CompetitorCacheRepository(session).delete_expired(now=now)

    def stats(self, *, now: datetime) -> dict[str, Any]:
        with self._read() as session:
            return CompetitorCacheRepository(session).stats(now=now)
