"""
app/connectors/analysis_webhook_connector.py

Webhook client for the external gap-analysis agent.
"""

from __future__ import annotations

import logging
from typing import Any

import requests

from app.config import AnalysisWebhookSettings, ExternalHTTPSettings, get_analysis_webhook_settings
from app.connectors.base import BaseConnector, ConnectorRequestError
from app.services.retry_policy import RetryPolicy

logger = logging.getLogger(__name__)


class AnalysisWebhookClient(BaseConnector):
    """
    Post a ranking summary to the analysis agent and return its analysis.

    The agent may answer with a single object or a one-element list. The
    echoed ``practice_ranking_id`` is dropped from the stored analysis.
    """

    def __init__(
        self,
        *,
        settings: AnalysisWebhookSettings | None = None,
        http_settings: ExternalHTTPSettings | None = None,
        session: requests.Session | None = None,
    ) -> None:
        self._settings = settings or get_analysis_webhook_settings()
        super().__init__(
            source="analysis_webhook",
            http_settings=http_settings,
            session=session,
            retry_policy=RetryPolicy.single_attempt(),
            timeout_seconds=self._settings.timeout_seconds,
        )

    @property
    def configured(self) -> bool:
        return bool(self._settings.url)

    def analyze(self, payload: dict[str, Any]) -> dict[str, Any]:
        if not self._settings.url:
            raise ConnectorRequestError("PRACTICE_RANKING_ANALYSIS_AGENT_WEBHOOK is not set.")

        response = self._request_json(method="POST", url=self._settings.url, json_body=payload)
        if isinstance(response, list):
            response = response[0] if response else None
        if not isinstance(response, dict):
            raise ConnectorRequestError(f"{self.source}: unexpected response shape.")

        analysis = {key: value for key, value in response.items() if key != "practice_ranking_id"}
        logger.info("Analysis webhook responded keys=%s", sorted(analysis))
        return analysis
