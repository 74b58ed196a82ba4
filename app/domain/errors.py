"""
Exceptions raised by the practice ranking pipeline.
"""

from __future__ import annotations


class RankingPipelineError(Exception):
    """Base exception for practice ranking failures."""


class BatchValidationError(RankingPipelineError):
    """Raised when a batch trigger request is malformed."""


class LocationNotFoundError(RankingPipelineError):
    """Raised when a ranking run or its location cannot be found."""


class CollaboratorError(RankingPipelineError):
    """Raised when an external collaborator call fails."""


class RetryExhaustedError(RankingPipelineError):
    """Raised when every attempt permitted by a retry policy has failed."""

    def __init__(self, attempts: int, last_error: BaseException) -> None:
        super().__init__(f"failed after {attempts} attempt(s): {type(last_error).__name__}: {last_error}")
        self.attempts = attempts
        self.last_error = last_error
