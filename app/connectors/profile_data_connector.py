"""
app/connectors/profile_data_connector.py

Clients for the internal data service that serves business-profile and
search-console data for a tenant account.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import date
from typing import Any

import requests

from app.config import ExternalHTTPSettings, ProfileDataSettings, get_profile_data_settings
from app.connectors.base import BaseConnector
from app.domain.practice_ranking import ProfileData

logger = logging.getLogger(__name__)


class _DataServiceConnector(BaseConnector):
    def __init__(
        self,
        *,
        source: str,
        settings: ProfileDataSettings | None = None,
        http_settings: ExternalHTTPSettings | None = None,
        session: requests.Session | None = None,
    ) -> None:
        super().__init__(source=source, http_settings=http_settings, session=session)
        self._settings = settings or get_profile_data_settings()

    def _headers(self) -> dict[str, str]:
        if not self._settings.api_key:
            return {}
        return {"X-Api-Key": self._settings.api_key}


class HTTPProfileDataClient(_DataServiceConnector):
    """
    Fetch business-profile reviews, profile fields and performance series.

    Returns an empty ``ProfileData`` when no service URL is configured, so
    the client is scored from the location's display name alone.
    """

    def __init__(
        self,
        *,
        settings: ProfileDataSettings | None = None,
        http_settings: ExternalHTTPSettings | None = None,
        session: requests.Session | None = None,
    ) -> None:
        super().__init__(source="profile_data", settings=settings, http_settings=http_settings, session=session)

    def fetch(
        self,
        account_id: int,
        location_refs: Sequence[dict[str, Any]],
        date_from: date,
        date_to: date,
    ) -> ProfileData:
        if not self._settings.profile_url:
            logger.warning("PROFILE_DATA_SERVICE_URL is not set; continuing without profile data.")
            return ProfileData()

        payload = self._request_json(
            method="POST",
            url=self._settings.profile_url,
            headers=self._headers(),
            json_body={
                "accountId": account_id,
                "locations": list(location_refs),
                "startDate": date_from.isoformat(),
                "endDate": date_to.isoformat(),
            },
        )
        return ProfileData.from_payload(payload if isinstance(payload, dict) else None)


class HTTPSearchDataClient(_DataServiceConnector):
    def __init__(
        self,
        *,
        settings: ProfileDataSettings | None = None,
        http_settings: ExternalHTTPSettings | None = None,
        session: requests.Session | None = None,
    ) -> None:
        super().__init__(source="search_data", settings=settings, http_settings=http_settings, session=session)

    def fetch(self, account_id: int, site_url: str, date_from: date, date_to: date) -> dict[str, Any] | None:
        if not self._settings.search_url:
            logger.info("SEARCH_DATA_SERVICE_URL is not set; skipping search data.")
            return None

        payload = self._request_json(
            method="POST",
            url=self._settings.search_url,
            headers=self._headers(),
            json_body={
                "accountId": account_id,
                "siteUrl": site_url,
                "startDate": date_from.isoformat(),
                "endDate": date_to.isoformat(),
            },
        )
        return payload if isinstance(payload, dict) else None
