"""
app/schemas package marker.
"""

from app.schemas.practice_ranking import (
    BatchAcceptedResponse,
    BatchStatusResponse,
    BatchTriggerRequest,
    CacheRefreshRequest,
    CacheRefreshResponse,
    CacheStatsResponse,
    LocationRequest,
    RunListResponse,
    RunResultResponse,
    RunStatusResponse,
)

__all__ = [
    "BatchAcceptedResponse",
    "BatchStatusResponse",
    "BatchTriggerRequest",
    "CacheRefreshRequest",
    "CacheRefreshResponse",
    "CacheStatsResponse",
    "LocationRequest",
    "RunListResponse",
    "RunResultResponse",
    "RunStatusResponse",
]
