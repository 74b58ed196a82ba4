"""
app/services/retry_policy.py

One retry abstraction shared by the batch loop and the HTTP connectors.

The batch orchestrator retries a whole location pipeline with a fixed delay,
connectors retry individual requests with exponential backoff, and the
analysis webhook is configured for a single attempt.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import TypeVar

from app.config import ExternalHTTPSettings, RankingPipelineSettings
from app.domain.errors import RetryExhaustedError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class BackoffStrategy:
    FIXED = "fixed"
    EXPONENTIAL = "exponential"


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    initial_delay_seconds: float = 5.0
    backoff: str = BackoffStrategy.FIXED
    multiplier: float = 2.0
    max_delay_seconds: float | None = None

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.initial_delay_seconds < 0:
            raise ValueError("initial_delay_seconds must be non-negative")
        if self.backoff not in (BackoffStrategy.FIXED, BackoffStrategy.EXPONENTIAL):
            raise ValueError(f"Unknown backoff strategy: {self.backoff}")

    @classmethod
    def fixed(cls, *, max_attempts: int, delay_seconds: float) -> "RetryPolicy":
        return cls(
            max_attempts=max_attempts,
            initial_delay_seconds=delay_seconds,
            backoff=BackoffStrategy.FIXED,
        )

    @classmethod
    def exponential(
        cls,
        *,
        max_attempts: int,
        initial_delay_seconds: float,
        multiplier: float = 2.0,
        max_delay_seconds: float | None = None,
    ) -> "RetryPolicy":
        return cls(
            max_attempts=max_attempts,
            initial_delay_seconds=initial_delay_seconds,
            backoff=BackoffStrategy.EXPONENTIAL,
            multiplier=multiplier,
            max_delay_seconds=max_delay_seconds,
        )

    @classmethod
    def single_attempt(cls) -> "RetryPolicy":
        return cls(max_attempts=1, initial_delay_seconds=0.0)

    @classmethod
    def for_batch_locations(cls, settings: RankingPipelineSettings) -> "RetryPolicy":
        return cls.fixed(
            max_attempts=settings.max_retries,
            delay_seconds=settings.retry_delay_seconds,
        )

    @classmethod
    def for_http(cls, settings: ExternalHTTPSettings) -> "RetryPolicy":
        return cls.exponential(
            max_attempts=settings.max_retries + 1,
            initial_delay_seconds=settings.backoff_initial_seconds,
            multiplier=settings.backoff_multiplier,
        )

    def delay_after(self, attempt: int) -> float:
        """
        Seconds to wait after the given 1-based failed attempt.
        """

        if self.backoff == BackoffStrategy.FIXED:
            delay = self.initial_delay_seconds
        else:
            delay = self.initial_delay_seconds * (self.multiplier ** max(0, attempt - 1))
        if self.max_delay_seconds is not None:
            delay = min(delay, self.max_delay_seconds)
        return delay

    def run(
        self,
        operation: Callable[[int], T],
        *,
        retry_on: tuple[type[Exception], ...] = (Exception,),
        on_failure: Callable[[int, Exception], None] | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> T:
        """
        Call ``operation(attempt)`` until it succeeds or attempts run out.

        Exceptions outside ``retry_on`` propagate immediately. After the last
        failed attempt ``RetryExhaustedError`` is raised with the final error.
        """

        last_error: Exception | None = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                return operation(attempt)
            except retry_on as exc:
                last_error = exc
                if on_failure is not None:
                    on_failure(attempt, exc)

            if attempt >= self.max_attempts:
                break

            delay = self.delay_after(attempt)
            logger.debug(
                "Retrying attempt=%s/%s wait_seconds=%.2f error=%s",
                attempt,
                self.max_attempts,
                delay,
                last_error,
            )
            if delay > 0:
                sleep(delay)

        assert last_error is not None
        raise RetryExhaustedError(self.max_attempts, last_error)
