"""
app/domain/collaborators.py

Contracts for the external services the ranking pipeline depends on.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date
from typing import Any, Mapping, Protocol

from app.domain.practice_ranking import (
    CompetitorDetail,
    CompetitorIdentity,
    ProfileData,
    WebsiteAuditResult,
)


class ProfileDataFetcher(Protocol):
    def fetch(
        self,
        account_id: int,
        location_refs: Sequence[Mapping[str, Any]],
        date_from: date,
        date_to: date,
    ) -> ProfileData:
        ...


class SearchDataFetcher(Protocol):
    def fetch(
        self,
        account_id: int,
        site_url: str,
        date_from: date,
        date_to: date,
    ) -> dict[str, Any] | None:
        ...


class CompetitorDiscoveryProvider(Protocol):
    def discover(self, query: str, limit: int) -> list[CompetitorIdentity]:
        ...


class CompetitorDetailProvider(Protocol):
    def enrich(self, place_ids: Sequence[str], keywords: Sequence[str]) -> list[CompetitorDetail]:
        ...


class WebsiteAuditor(Protocol):
    def audit(self, url: str) -> WebsiteAuditResult:
        ...


class AnalysisClient(Protocol):
    @property
    def configured(self) -> bool:
        ...

    def analyze(self, payload: dict[str, Any]) -> dict[str, Any]:
        ...


class NotificationSink(Protocol):
    def notify(
        self,
        tenant: str,
        title: str,
        body: str,
        category: str,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        ...
