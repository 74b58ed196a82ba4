"""
app/config.py

Application-level configuration helpers.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

from db.config import load_env_files


@lru_cache(maxsize=1)
def _load_env_once() -> None:
    """
    Ensure project `.env` files are loaded once before reading app settings.
    """

    load_env_files()


def _get_int_env(name: str, default: int) -> int:
    """
    Read an integer from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    try:
        return int(raw_value)
    except ValueError:
        return default


def _get_float_env(name: str, default: float) -> float:
    """
    Read a float from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    try:
        return float(raw_value)
    except ValueError:
        return default


def _get_str_env(name: str, default: str) -> str:
    """
    Read a string from environment variables with fallback.
    """

    _load_env_once()
    value = os.getenv(name)
    if value is None:
        return default
    stripped = value.strip()
    return stripped if stripped else default


def _get_optional_str_env(name: str) -> str | None:
    """
    Read an optional string value from environment variables.
    """

    _load_env_once()
    value = os.getenv(name)
    if value is None:
        return None
    stripped = value.strip()
    return stripped if stripped else None


@dataclass(frozen=True)
class ExternalHTTPSettings:
    """
    Shared HTTP behavior settings for external connectors.
    """

    timeout_seconds: float = 15.0
    max_retries: int = 3
    backoff_initial_seconds: float = 0.5
    backoff_multiplier: float = 2.0
    rate_limit_per_second: float = 5.0


@dataclass(frozen=True)
class RankingPipelineSettings:
    """
    Batch orchestration and per-location pipeline settings.
    """

    max_retries: int = 3
    retry_delay_seconds: float = 5.0
    max_concurrent_batches: int = 4
    competitor_limit: int = 50
    date_window_days: int = 30


@dataclass(frozen=True)
class CompetitorCacheSettings:
    """
    Competitor cache lifetime and cleanup schedule.
    """

    ttl_hours: int = 4320
    cleanup_hour_utc: int = 4


@dataclass(frozen=True)
class AnalysisWebhookSettings:
    """
    External analysis agent settings. A missing URL disables the handoff.
    """

    url: str | None = None
    timeout_seconds: float = 120.0


@dataclass(frozen=True)
class ApifySettings:
    """
    Apify actor settings for competitor discovery, details and audits.
    """

    token: str | None = None
    base_url: str = "https://api.apify.com/v2"
    places_actor: str = "compass~crawler-google-places"
    lighthouse_actor: str = "apify~lighthouse"
    poll_interval_seconds: float = 5.0
    run_timeout_seconds: float = 120.0


@dataclass(frozen=True)
class ProfileDataSettings:
    """
    Internal data-aggregator endpoints for profile and search data.
    """

    profile_url: str | None = None
    search_url: str | None = None
    api_key: str | None = None


@lru_cache(maxsize=1)
def get_external_http_settings() -> ExternalHTTPSettings:
    """
    Return shared connector HTTP settings from environment variables.
    """

    return ExternalHTTPSettings(
        timeout_seconds=max(1.0, _get_float_env("EXTERNAL_HTTP_TIMEOUT_SECONDS", 15.0)),
        max_retries=max(0, _get_int_env("EXTERNAL_HTTP_MAX_RETRIES", 3)),
        backoff_initial_seconds=max(0.1, _get_float_env("EXTERNAL_HTTP_BACKOFF_INITIAL_SECONDS", 0.5)),
        backoff_multiplier=max(1.0, _get_float_env("EXTERNAL_HTTP_BACKOFF_MULTIPLIER", 2.0)),
        rate_limit_per_second=max(0.1, _get_float_env("EXTERNAL_HTTP_RATE_LIMIT_PER_SECOND", 5.0)),
    )


@lru_cache(maxsize=1)
def get_ranking_pipeline_settings() -> RankingPipelineSettings:
    """
    Return ranking pipeline settings from environment variables.
    """

    return RankingPipelineSettings(
        max_retries=max(1, _get_int_env("RANKING_MAX_RETRIES", 3)),
        retry_delay_seconds=max(0.0, _get_float_env("RANKING_RETRY_DELAY_SECONDS", 5.0)),
        max_concurrent_batches=max(1, _get_int_env("RANKING_MAX_CONCURRENT_BATCHES", 4)),
        competitor_limit=max(1, _get_int_env("RANKING_COMPETITOR_LIMIT", 50)),
        date_window_days=max(1, _get_int_env("RANKING_DATE_WINDOW_DAYS", 30)),
    )


@lru_cache(maxsize=1)
def get_competitor_cache_settings() -> CompetitorCacheSettings:
    """
    Return competitor cache settings from environment variables.
    """

    return CompetitorCacheSettings(
        ttl_hours=max(1, _get_int_env("COMPETITOR_CACHE_TTL_HOURS", 4320)),
        cleanup_hour_utc=min(23, max(0, _get_int_env("COMPETITOR_CACHE_CLEANUP_HOUR", 4))),
    )


@lru_cache(maxsize=1)
def get_analysis_webhook_settings() -> AnalysisWebhookSettings:
    return AnalysisWebhookSettings(
        url=_get_optional_str_env("PRACTICE_RANKING_ANALYSIS_AGENT_WEBHOOK"),
        timeout_seconds=max(1.0, _get_float_env("ANALYSIS_WEBHOOK_TIMEOUT_SECONDS", 120.0)),
    )


@lru_cache(maxsize=1)
def get_apify_settings() -> ApifySettings:
    return ApifySettings(
        token=_get_optional_str_env("APIFY_TOKEN"),
        base_url=_get_str_env("APIFY_API_BASE", "https://api.apify.com/v2").rstrip("/"),
        places_actor=_get_str_env("APIFY_PLACES_ACTOR", "compass~crawler-google-places"),
        lighthouse_actor=_get_str_env("APIFY_LIGHTHOUSE_ACTOR", "apify~lighthouse"),
        poll_interval_seconds=max(0.5, _get_float_env("APIFY_POLL_INTERVAL_SECONDS", 5.0)),
        run_timeout_seconds=max(10.0, _get_float_env("APIFY_RUN_TIMEOUT_SECONDS", 120.0)),
    )


@lru_cache(maxsize=1)
def get_profile_data_settings() -> ProfileDataSettings:
    return ProfileDataSettings(
        profile_url=_get_optional_str_env("PROFILE_DATA_SERVICE_URL"),
        search_url=_get_optional_str_env("SEARCH_DATA_SERVICE_URL"),
        api_key=_get_optional_str_env("DATA_SERVICE_API_KEY"),
    )
