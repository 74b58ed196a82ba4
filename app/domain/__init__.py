"""
app/domain package marker.
"""

from app.domain.errors import (
    BatchValidationError,
    CollaboratorError,
    LocationNotFoundError,
    RankingPipelineError,
    RetryExhaustedError,
)
from app.domain.practice_ranking import (
    BatchStatus,
    BatchStatusView,
    BatchTriggerResult,
    CompetitorDetail,
    CompetitorIdentity,
    LocationInput,
    LocationRankingResult,
    ProfileData,
    RankingRunRecord,
    WebsiteAuditResult,
)

__all__ = [
    "BatchStatus",
    "BatchStatusView",
    "BatchTriggerResult",
    "BatchValidationError",
    "CollaboratorError",
    "CompetitorDetail",
    "CompetitorIdentity",
    "LocationInput",
    "LocationNotFoundError",
    "LocationRankingResult",
    "ProfileData",
    "RankingPipelineError",
    "RankingRunRecord",
    "RetryExhaustedError",
    "WebsiteAuditResult",
]
