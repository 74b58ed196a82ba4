"""
app/connectors/base.py

Base connector and shared HTTP mechanics for external collaborators.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

import requests

from app.config import ExternalHTTPSettings, get_external_http_settings
from app.domain.errors import CollaboratorError, RetryExhaustedError
from app.services.retry_policy import RetryPolicy

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}


class ConnectorRequestError(CollaboratorError):
    """
    Raised when a connector cannot complete a request after retries.
    """


class _RetryableRequestError(Exception):
    pass


class BaseConnector:
    """
    Shared request handling: rate limiting, timeouts, retry with backoff.
    """

    source: str

    def __init__(
        self,
        *,
        source: str,
        http_settings: ExternalHTTPSettings | None = None,
        session: requests.Session | None = None,
        retry_policy: RetryPolicy | None = None,
        timeout_seconds: float | None = None,
        sleep: Callable[[float], None] = time.sleep,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        settings = http_settings or get_external_http_settings()
        self.source = source
        self._shared_session = session
        self._thread_local = threading.local()
        self._timeout_seconds = timeout_seconds if timeout_seconds is not None else settings.timeout_seconds
        self._retry_policy = retry_policy or RetryPolicy.for_http(settings)
        self._sleep = sleep
        self._min_request_interval_seconds = (
            1.0 / settings.rate_limit_per_second if settings.rate_limit_per_second > 0 else 0.0
        )
        self._monotonic = monotonic
        self._last_request_monotonic: float = 0.0
        self._rate_lock = threading.Lock()

    def _session(self) -> requests.Session:
        """
        The injected session, or one ``requests.Session`` per calling thread.
        """

        if self._shared_session is not None:
            return self._shared_session
        session = getattr(self._thread_local, "session", None)
        if session is None:
            session = requests.Session()
            self._thread_local.session = session
        return session

    def _request_json(
        self,
        *,
        method: str,
        url: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        json_body: Any = None,
    ) -> Any:
        """
        Execute an HTTP request and return parsed JSON with retry support.
        """

        response = self._request(method=method, url=url, params=params, headers=headers, json_body=json_body)
        try:
            return response.json()
        except ValueError as exc:
            raise ConnectorRequestError(f"{self.source}: response was not valid JSON.") from exc

    def _request(
        self,
        *,
        method: str,
        url: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        json_body: Any = None,
    ) -> requests.Response:
        """
        Execute an HTTP request with rate limiting and the connector retry policy.
        """

        def send(attempt: int) -> requests.Response:
            self._apply_rate_limit()
            try:
                response = self._session().request(
                    method=method,
                    url=url,
                    params=params,
                    headers=headers,
                    json=json_body,
                    timeout=self._timeout_seconds,
                )
            except (requests.Timeout, requests.ConnectionError) as exc:
                raise _RetryableRequestError(f"{type(exc).__name__}: {exc}") from exc

            if response.status_code in RETRYABLE_STATUS_CODES:
                raise _RetryableRequestError(f"Retryable HTTP status code: {response.status_code}")
            try:
                response.raise_for_status()
            except requests.HTTPError as exc:
                logger.error(
                    "Connector request failed source=%s status=%s url=%s error=%s",
                    self.source,
                    response.status_code,
                    url,
                    exc,
                )
                raise ConnectorRequestError(f"{self.source}: non-retryable request failure.") from exc
            return response

        def log_retry(attempt: int, exc: Exception) -> None:
            if attempt < self._retry_policy.max_attempts:
                logger.warning(
                    "Connector request retry source=%s attempt=%s/%s wait_seconds=%.2f url=%s error=%s",
                    self.source,
                    attempt,
                    self._retry_policy.max_attempts,
                    self._retry_policy.delay_after(attempt),
                    url,
                    exc,
                )

        try:
            return self._retry_policy.run(
                send,
                retry_on=(_RetryableRequestError,),
                on_failure=log_retry,
                sleep=self._sleep,
            )
        except RetryExhaustedError as exc:
            logger.error(
                "Connector request exhausted retries source=%s url=%s error=%s",
                self.source,
                url,
                exc.last_error,
            )
            raise ConnectorRequestError(f"{self.source}: request failed after retries.") from exc.last_error

    def _apply_rate_limit(self) -> None:
        """
        Enforce minimum interval between outbound requests.

        Callers on other threads wait their turn; the interval holds across
        every thread sharing this connector.
        """

        if self._min_request_interval_seconds <= 0:
            return

        with self._rate_lock:
            elapsed = self._monotonic() - self._last_request_monotonic
            remaining = self._min_request_interval_seconds - elapsed
            if remaining > 0:
                self._sleep(remaining)
            self._last_request_monotonic = self._monotonic()

    @staticmethod
    def parse_iso_datetime(value: str) -> datetime:
        """
        Parse an ISO datetime string into a timezone-aware datetime.
        """

        normalized = value[:-1] + "+00:00" if value.endswith("Z") else value
        parsed = datetime.fromisoformat(normalized)
        if parsed.tzinfo is None:
            return parsed.replace(tzinfo=timezone.utc)
        return parsed
