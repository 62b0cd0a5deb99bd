"""
DFP Authentication Manager

Handles OAuth refresh-token and service account credentials for DFP API access.
"""

import json
import logging
from typing import Any

import google.oauth2.service_account
from googleads import oauth2

from .utils.constants import DFP_SCOPES
from .utils.error_handler import DfpConfigurationError

logger = logging.getLogger(__name__)


class DfpAuthManager:
    """Manages authentication credentials for the DFP API."""

    def __init__(self, config: dict[str, Any]):
        """Initialize authentication manager with configuration.

        Args:
            config: Dictionary containing authentication configuration:
                - client_id / client_secret: OAuth application credentials
                - refresh_token: OAuth refresh token to resume a session
                - service_account_json: Service account credentials as JSON string
                - service_account_key_file: Path to service account JSON file
        """
        self.config = config
        self.client_id = config.get("client_id")
        self.client_secret = config.get("client_secret")
        self.refresh_token = config.get("refresh_token")
        self.service_account_json = config.get("service_account_json")
        self.key_file = config.get("service_account_key_file")

        if not self.refresh_token and not self.service_account_json and not self.key_file:
            raise DfpConfigurationError(
                "DFP config requires either 'refresh_token', 'service_account_json', or 'service_account_key_file'"
            )

    def get_credentials(self):
        """Get authenticated credentials for the DFP API.

        Raises:
            DfpConfigurationError: If authentication configuration is invalid
        """
        if self.refresh_token:
            return self._get_oauth_credentials()
        return self._get_service_account_credentials()

    def _get_oauth_credentials(self):
        if not self.client_id or not self.client_secret:
            raise DfpConfigurationError("OAuth refresh token given without client_id and client_secret")

        return oauth2.GoogleRefreshTokenClient(
            client_id=self.client_id, client_secret=self.client_secret, refresh_token=self.refresh_token
        )

    def _get_service_account_credentials(self):
        """Get service account credentials from JSON string or file."""
        if self.service_account_json:
            try:
                key_data = json.loads(self.service_account_json)
            except json.JSONDecodeError as e:
                raise DfpConfigurationError(f"Invalid service account JSON: {e}") from e
            credentials = google.oauth2.service_account.Credentials.from_service_account_info(
                key_data, scopes=DFP_SCOPES
            )
            logger.info("Using service account credentials from JSON string")
        else:
            credentials = google.oauth2.service_account.Credentials.from_service_account_file(
                self.key_file, scopes=DFP_SCOPES
            )
            logger.info(f"Using service account credentials from file: {self.key_file}")

        return oauth2.GoogleCredentialsClient(credentials)

    def get_auth_method(self) -> str:
        """Get the current authentication method name."""
        if self.refresh_token:
            return "oauth"
        return "service_account"
