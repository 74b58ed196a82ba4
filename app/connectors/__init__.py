from app.connectors.analysis_webhook_connector import AnalysisWebhookClient
from app.connectors.apify_connector import ApifyCompetitorClient
from app.connectors.base import BaseConnector, ConnectorRequestError
from app.connectors.profile_data_connector import HTTPProfileDataClient, HTTPSearchDataClient

__all__ = [
    "AnalysisWebhookClient",
    "ApifyCompetitorClient",
    "BaseConnector",
    "ConnectorRequestError",
    "HTTPProfileDataClient",
    "HTTPSearchDataClient",
]
