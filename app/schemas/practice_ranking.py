"""
app/schemas/practice_ranking.py

Request and response schemas for practice ranking endpoints.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field

from app.domain.practice_ranking import BatchStatusView, LocationInput, RankingRunRecord


class LocationRequest(BaseModel):
    location_id: str = Field(..., min_length=1)
    account_ref: str | None = None
    display_name: str | None = None
    specialty: str | None = None
    market_location: str | None = None
    website_url: str | None = None
    search_site_url: str | None = None

    def to_domain(self) -> LocationInput:
        return LocationInput(
            location_id=self.location_id,
            account_ref=self.account_ref,
            display_name=self.display_name,
            specialty=self.specialty,
            market_location=self.market_location,
            website_url=self.website_url,
            search_site_url=self.search_site_url,
        )


class BatchTriggerRequest(BaseModel):
    """
    Trigger payload. Batch-level ``specialty`` and ``market_location`` apply
    to locations that do not set their own.
    """

    account_id: int
    domain: str = Field(..., min_length=1)
    specialty: str | None = None
    market_location: str | None = None
    locations: list[LocationRequest] = Field(default_factory=list)


class BatchAcceptedResponse(BaseModel):
    batch_id: UUID
    run_ids: list[UUID]
    total_locations: int
    status: str = "processing"


class RunStatusResponse(BaseModel):
    run_id: UUID
    batch_id: UUID
    status: str
    status_detail: dict[str, Any] | None = None
    gbp_location_id: str | None = None
    gbp_location_name: str | None = None
    rank_score: float | None = None
    rank_position: int | None = None
    total_competitors: int | None = None
    error_message: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_record(cls, run: RankingRunRecord) -> "RunStatusResponse":
        return cls(
            run_id=run.id,
            batch_id=run.batch_id,
            status=run.status,
            status_detail=run.status_detail,
            gbp_location_id=run.gbp_location_id,
            gbp_location_name=run.gbp_location_name,
            rank_score=run.rank_score,
            rank_position=run.rank_position,
            total_competitors=run.total_competitors,
            error_message=run.error_message,
            created_at=run.created_at,
            updated_at=run.updated_at,
        )


class RunResultResponse(RunStatusResponse):
    account_id: int
    domain: str
    specialty: str | None = None
    location: str | None = None
    ranking_factors: dict[str, Any] | None = None
    raw_data: dict[str, Any] | None = None
    llm_analysis: dict[str, Any] | None = None

    @classmethod
    def from_record(cls, run: RankingRunRecord) -> "RunResultResponse":
        return cls(
            **RunStatusResponse.from_record(run).model_dump(),
            account_id=run.account_id,
            domain=run.domain,
            specialty=run.specialty,
            location=run.location,
            ranking_factors=run.ranking_factors,
            raw_data=run.raw_data,
            llm_analysis=run.llm_analysis,
        )


class RunListResponse(BaseModel):
    runs: list[RunStatusResponse] = Field(default_factory=list)


class BatchErrorResponse(BaseModel):
    location_id: str
    error: str
    attempt: int


class BatchStatusResponse(BaseModel):
    batch_id: UUID
    status: str
    total_locations: int
    completed_count: int
    failed_count: int
    source: str
    current_location_index: int | None = None
    current_location_name: str | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    errors: list[BatchErrorResponse] = Field(default_factory=list)
    runs: list[RunStatusResponse] = Field(default_factory=list)

    @classmethod
    def from_view(cls, view: BatchStatusView) -> "BatchStatusResponse":
        return cls(
            batch_id=view.batch_id,
            status=view.status,
            total_locations=view.total_locations,
            completed_count=view.completed_count,
            failed_count=view.failed_count,
            source=view.source,
            current_location_index=view.current_location_index,
            current_location_name=view.current_location_name,
            started_at=view.started_at,
            completed_at=view.completed_at,
            errors=[
                BatchErrorResponse(location_id=e.location_id, error=e.error, attempt=e.attempt)
                for e in view.errors
            ],
            runs=[RunStatusResponse.from_record(run) for run in view.runs],
        )


class CacheRefreshRequest(BaseModel):
    specialty: str = Field(..., min_length=1)
    market_location: str = Field(..., min_length=1)


class CacheRefreshResponse(BaseModel):
    cache_key: str
    invalidated: bool


class CacheStatsResponse(BaseModel):
    total_entries: int = Field(..., ge=0)
    expired_entries: int = Field(..., ge=0)
    active_entries: int
    oldest_entry: datetime | None = None
    newest_entry: datetime | None = None
