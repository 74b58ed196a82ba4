"""
Tenant notifications for finished ranking batches.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.domain.collaborators import NotificationSink
from db.repositories.notification_repository import NotificationRepository

logger = logging.getLogger(__name__)

RANKING_NOTIFICATION_TYPE = "ranking"


class DatabaseNotificationSink:
    """
    Write notifications to the ``notifications`` table.
    """

    def __init__(self, *, session_factory: Callable[[], Session] | None = None) -> None:
        if session_factory is None:
            from db.session import SessionLocal

            self._session_factory = SessionLocal
        else:
            self._session_factory = session_factory

    def notify(
        self,
        tenant: str,
        title: str,
        body: str,
        category: str,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        with self._session_factory() as db:
            try:
                NotificationRepository(db).create(
                    domain=tenant,
                    title=title,
                    message=body,
                    type=category,
                    metadata=metadata,
                    account_id=(metadata or {}).get("account_id"),
                )
                db.commit()
            except SQLAlchemyError:
                db.rollback()
                raise


class RankingNotifier:
    def __init__(self, *, sink: NotificationSink) -> None:
        self._sink = sink

    def batch_completed(
        self,
        *,
        batch_id: uuid.UUID,
        account_id: int,
        domain: str,
        location_count: int,
    ) -> None:
        noun = "location" if location_count == 1 else "locations"
        self._sink.notify(
            domain,
            "Practice ranking analysis complete",
            f"Your practice ranking analysis for {location_count} {noun} is ready to view.",
            RANKING_NOTIFICATION_TYPE,
            {
                "batch_id": str(batch_id),
                "account_id": account_id,
                "location_count": location_count,
            },
        )
        logger.info("Ranking notification sent batch_id=%s domain=%s", batch_id, domain)
