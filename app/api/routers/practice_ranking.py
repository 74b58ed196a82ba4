"""
app/api/routers/practice_ranking.py

Practice ranking batch trigger, status and result endpoints.
"""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.api.dependencies import get_cache, get_orchestrator
from app.domain.errors import BatchValidationError
from app.domain.practice_ranking import RankingRunRecord
from app.schemas.practice_ranking import (
    BatchAcceptedResponse,
    BatchStatusResponse,
    BatchTriggerRequest,
    CacheRefreshRequest,
    CacheRefreshResponse,
    CacheStatsResponse,
    RunListResponse,
    RunResultResponse,
    RunStatusResponse,
)
from app.services.competitor_cache import CompetitorCache, generate_cache_key
from app.services.ranking_batch_orchestrator import RankingBatchOrchestrator

router = APIRouter(prefix="/practice-ranking", tags=["practice-ranking"])


@router.post(
    "/batches",
    status_code=status.HTTP_202_ACCEPTED,
    response_model=BatchAcceptedResponse,
)
def trigger_batch(
    request: BatchTriggerRequest,
    orchestrator: RankingBatchOrchestrator = Depends(get_orchestrator),
) -> BatchAcceptedResponse:
    """
    Create one pending run per location and start the batch in the background.
    """

    try:
        result = orchestrator.trigger_batch(
            account_id=request.account_id,
            domain=request.domain,
            locations=[location.to_domain() for location in request.locations],
            specialty=request.specialty,
            market_location=request.market_location,
        )
    except BatchValidationError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    return BatchAcceptedResponse(
        batch_id=result.batch_id,
        run_ids=result.run_ids,
        total_locations=len(result.run_ids),
    )


@router.get("/batches/{batch_id}", response_model=BatchStatusResponse)
def get_batch_status(
    batch_id: UUID,
    orchestrator: RankingBatchOrchestrator = Depends(get_orchestrator),
) -> BatchStatusResponse:
    view = orchestrator.get_batch_status(batch_id)
    if view is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Ranking batch not found: {batch_id}",
        )
    return BatchStatusResponse.from_view(view)


@router.get("/runs/{run_id}/status", response_model=RunStatusResponse)
def get_run_status(
    run_id: UUID,
    orchestrator: RankingBatchOrchestrator = Depends(get_orchestrator),
) -> RunStatusResponse:
    return RunStatusResponse.from_record(_require_run(orchestrator, run_id))


@router.get("/runs/{run_id}", response_model=RunResultResponse)
def get_run(
    run_id: UUID,
    orchestrator: RankingBatchOrchestrator = Depends(get_orchestrator),
) -> RunResultResponse:
    return RunResultResponse.from_record(_require_run(orchestrator, run_id))


@router.get("/runs", response_model=RunListResponse)
def list_runs(
    account_id: int | None = Query(default=None, description="Optional tenant account filter"),
    status_filter: str | None = Query(default=None, alias="status", description="Optional status filter"),
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    orchestrator: RankingBatchOrchestrator = Depends(get_orchestrator),
) -> RunListResponse:
    runs = orchestrator.list_runs(account_id=account_id, status=status_filter, limit=limit, offset=offset)
    return RunListResponse(runs=[RunStatusResponse.from_record(run) for run in runs])


@router.get("/latest", response_model=RunResultResponse)
def get_latest_run(
    account_id: int = Query(..., description="Tenant account id"),
    gbp_location_id: str | None = Query(default=None, description="Optional location filter"),
    orchestrator: RankingBatchOrchestrator = Depends(get_orchestrator),
) -> RunResultResponse:
    run = orchestrator.get_latest_run(account_id=account_id, gbp_location_id=gbp_location_id)
    if run is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No completed ranking for account {account_id}",
        )
    return RunResultResponse.from_record(run)


@router.delete("/runs/{run_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_run(
    run_id: UUID,
    orchestrator: RankingBatchOrchestrator = Depends(get_orchestrator),
) -> None:
    if not orchestrator.delete_run(run_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Ranking run not found: {run_id}",
        )


@router.post("/competitor-cache/refresh", response_model=CacheRefreshResponse)
def refresh_competitor_cache(
    request: CacheRefreshRequest,
    cache: CompetitorCache = Depends(get_cache),
) -> CacheRefreshResponse:
    """
    Drop the cached competitor list so the next run rediscovers competitors.
    """

    invalidated = cache.invalidate(request.specialty, request.market_location)
    return CacheRefreshResponse(
        cache_key=generate_cache_key(request.specialty, request.market_location),
        invalidated=invalidated,
    )


@router.get("/competitor-cache/stats", response_model=CacheStatsResponse)
def get_competitor_cache_stats(cache: CompetitorCache = Depends(get_cache)) -> CacheStatsResponse:
    return CacheStatsResponse(**cache.stats())


def _require_run(orchestrator: RankingBatchOrchestrator, run_id: UUID) -> RankingRunRecord:
    run = orchestrator.get_run(run_id)
    if run is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Ranking run not found: {run_id}",
        )
    return run
