"""
app/main.py

FastAPI entry point for the practice ranking service.
"""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from collections.abc import AsyncIterator

from fastapi import FastAPI


def _validate_env() -> None:
    """
    Validate all required environment variables at startup.

    Runs before any service or database connection is initialised.
    Raises RuntimeError listing every missing or invalid variable so the
    operator can fix all problems in one restart cycle.

    Rules:
    - A PostgreSQL database URL is required.
    - Numeric pipeline settings must parse when set.
    - Collaborator endpoints are optional; their absence is logged at boot.
    """

    from db.config import database_url_configured

    errors: list[str] = []

    # --- Database URL ---------------------------------------------------
    if not database_url_configured():
        errors.append(
            "No database URL configured. Set DATABASE_URL, CLOUD_DATABASE_URL or LOCAL_DATABASE_URL."
        )

    # --- Numeric settings -----------------------------------------------
    for name in (
        "RANKING_MAX_RETRIES",
        "RANKING_RETRY_DELAY_SECONDS",
        "RANKING_MAX_CONCURRENT_BATCHES",
        "COMPETITOR_CACHE_TTL_HOURS",
        "COMPETITOR_CACHE_CLEANUP_HOUR",
    ):
        raw = os.getenv(name, "").strip()
        if not raw:
            continue
        try:
            float(raw)
        except ValueError:
            errors.append(f"{name}='{raw}' is not a number.")

    if errors:
        raise RuntimeError(
            "Startup validation failed. Missing or invalid environment variables:\n"
            + "\n".join(f"  - {e}" for e in errors)
        )


def _configure_logging() -> None:
    """
    Configure root logging once for the API process.
    """

    log_level = os.getenv("LOG_LEVEL", "INFO").strip().upper()
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def _log_optional_collaborators() -> None:
    from app.config import get_analysis_webhook_settings, get_apify_settings, get_profile_data_settings

    log = logging.getLogger(__name__)
    if not get_apify_settings().token:
        log.warning("APIFY_TOKEN is not set; competitor discovery will fail until it is configured.")
    if not get_analysis_webhook_settings().url:
        log.info("PRACTICE_RANKING_ANALYSIS_AGENT_WEBHOOK is not set; runs complete without AI insights.")
    profile_settings = get_profile_data_settings()
    if not profile_settings.profile_url:
        log.info("PROFILE_DATA_SERVICE_URL is not set; client profile data will be empty.")
    if not profile_settings.search_url:
        log.info("SEARCH_DATA_SERVICE_URL is not set; search data stage is skipped.")


def _check_db() -> None:
    """Open a session and run SELECT 1. Raises RuntimeError if the DB is unreachable."""
    from sqlalchemy import text

    from db.session import SessionLocal

    try:
        db = SessionLocal()
        try:
            db.execute(text("SELECT 1"))
        finally:
            db.close()
    except Exception as exc:
        raise RuntimeError("Database unavailable.") from exc


def _check_schema() -> None:
    """
    Every table registered on Base.metadata must exist in the database.

    Does NOT auto-migrate.
    """
    from sqlalchemy import inspect as sa_inspect

    import db.models  # noqa: F401
    from db.base import Base
    from db.session import get_engine

    inspector = sa_inspect(get_engine())
    actual: set[str] = set(inspector.get_table_names())
    expected: set[str] = set(Base.metadata.tables.keys())
    missing = expected - actual

    if missing:
        log = logging.getLogger(__name__)
        log.critical(
            "Schema mismatch: %d table(s) defined in ORM metadata are absent from "
            "the database: %s. Run 'alembic upgrade head' and restart.",
            len(missing),
            ", ".join(sorted(missing)),
        )
        raise RuntimeError(
            f"Schema mismatch: {len(missing)} table(s) missing from the database "
            f"({', '.join(sorted(missing))}). Run migrations and restart."
        )


@asynccontextmanager
async def _lifespan(application: FastAPI) -> AsyncIterator[None]:
    """Validate DB connectivity and schema, start the scheduler on boot; drain workers on exit."""
    _check_db()
    logging.getLogger(__name__).info("Database connectivity confirmed")
    _check_schema()
    logging.getLogger(__name__).info("Database schema validated")
    _log_optional_collaborators()

    from app.scheduler.jobs import build_scheduler
    from app.services.ranking_batch_orchestrator import get_ranking_batch_orchestrator

    scheduler = build_scheduler()
    scheduler.start()
    logging.getLogger(__name__).info("Scheduler started with %d jobs", len(scheduler.get_jobs()))
    try:
        yield
    finally:
        scheduler.shutdown(wait=True)
        logging.getLogger(__name__).info("Scheduler shut down")
        get_ranking_batch_orchestrator().shutdown(wait=False)
        logging.getLogger(__name__).info("Ranking batch workers released")


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.
    """

    _validate_env()
    _configure_logging()

    application = FastAPI(
        title="Practice Ranking API",
        version="1.0.0",
        lifespan=_lifespan,
    )

    from app.api.routers import practice_ranking_router

    application.include_router(practice_ranking_router)

    @application.get("/health")
    def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    return application


app = create_app()
