"""
Repository for tenant notifications.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy.orm import Session

from db.models.notification import Notification


class NotificationRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def create(
        self,
        *,
        domain: str,
        title: str,
        message: str | None,
        type: str,
        metadata: dict[str, Any] | None = None,
        account_id: int | None = None,
    ) -> Notification:
        notification = Notification(
            account_id=account_id,
            domain=domain,
            title=title,
            message=message,
            type=type,
            notification_metadata=metadata,
            read=False,
        )
        self._session.add(notification)
        self._session.flush()
        return notification
