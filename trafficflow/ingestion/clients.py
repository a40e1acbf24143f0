"""
Backend Client Factory

Turns a stored service-account key into BigQuery / GA4 sources.
"""

from typing import Any, Dict, Optional, Sequence

from google.oauth2 import service_account

from trafficflow.config import get_settings
from trafficflow.exceptions import ConfigurationError
from .bigquery_source import BigQuerySource
from .ga4_source import GA4Source


class GoogleBackendFactory:
    """Builds per-request backend sources from a service-account key"""

    def __init__(self, scopes: Optional[Sequence[str]] = None, bigquery_location: Optional[str] = None):
        settings = get_settings()
        self.scopes = list(scopes or settings.google.scopes)
        self.bigquery_location = bigquery_location or settings.google.bigquery_location

    def credentials(self, key: Dict[str, Any]) -> service_account.Credentials:
        """
        Build signing credentials from a key.

        Raises:
            ConfigurationError: the key cannot be loaded (e.g. malformed private_key)
        """
        try:
            return service_account.Credentials.from_service_account_info(key, scopes=self.scopes)
        except Exception as e:
            raise ConfigurationError(f"Invalid Service Account Key format: {e}") from e

    def ga4(self, key: Dict[str, Any]) -> GA4Source:
        return GA4Source(self.credentials(key))

    def bigquery(self, key: Dict[str, Any]) -> BigQuerySource:
        return BigQuerySource(
            self.credentials(key),
            project_id=key["project_id"],
            location=self.bigquery_location,
        )
