"""
Storage layer interfaces for ranking runs and the competitor cache.
"""

from __future__ import annotations

import uuid
from abc import ABC, abstractmethod
from collections.abc import Sequence
from datetime import datetime
from typing import Any

from app.domain.practice_ranking import LocationInput, RankingRunRecord


class RankingRunStore(ABC):
    """
    Persistence abstraction for ranking runs.

    Every write is committed before the method returns.
    """

    @abstractmethod
    def create_pending_runs(
        self,
        *,
        batch_id: uuid.UUID,
        account_id: int,
        domain: str,
        locations: Sequence[LocationInput],
        status_detail: dict[str, Any],
    ) -> list[RankingRunRecord]:
        """
        Insert one pending run per location in a single transaction.
        """

    @abstractmethod
    def get_run(self, run_id: uuid.UUID) -> RankingRunRecord | None:
        ...

    @abstractmethod
    def list_batch_runs(self, batch_id: uuid.UUID) -> list[RankingRunRecord]:
        ...

    @abstractmethod
    def list_runs(
        self,
        *,
        account_id: int | None = None,
        status: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[RankingRunRecord]:
        ...

    @abstractmethod
    def get_latest_completed(
        self,
        *,
        account_id: int,
        gbp_location_id: str | None = None,
    ) -> RankingRunRecord | None:
        ...

    @abstractmethod
    def update_run(
        self,
        run_id: uuid.UUID,
        values: dict[str, Any],
        *,
        only_active: bool = False,
    ) -> bool:
        """
        Apply ``values`` atomically if the run exists.

        With ``only_active`` the update is skipped when the persisted status
        is terminal. Returns whether a row was updated.
        """

    @abstractmethod
    def fail_batch_runs(self, batch_id: uuid.UUID, error_message: str) -> int:
        """
        Overwrite every run in the batch to failed. Returns rows updated.
        """

    @abstractmethod
    def delete_run(self, run_id: uuid.UUID) -> bool:
        ...


class CompetitorCacheStore(ABC):
    """
    Persistence abstraction for cached competitor identities.
    """

    @abstractmethod
    def get_active(self, cache_key: str, *, now: datetime) -> list[dict[str, Any]] | None:
        """
        Return the cached competitor list when an unexpired entry exists.
        """

    @abstractmethod
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
        ...

    @abstractmethod
    def delete_key(self, cache_key: str) -> int:
        ...

    @abstractmethod
    def delete_expired(self, *, now: datetime) -> int:
        ...

    @abstractmethod
    def stats(self, *, now: datetime) -> dict[str, Any]:
        ...
