"""
DFP Client Manager

Defines the RemoteClient contract the resolver and batch submission depend on,
and its googleads-backed implementation.

The client makes exactly one SOAP call per ``invoke``. Retries, backoff and
rate limiting are not handled here.
"""

import asyncio
import logging
import threading
from typing import Any, Protocol

from googleads import ad_manager
from zeep.helpers import serialize_object

from src.core.config import DfpSettings

from .auth import DfpAuthManager
from .utils.error_handler import DfpConfigurationError, map_dfp_exception
from .utils.logging import log_configuration

logger = logging.getLogger(__name__)


class RemoteClient(Protocol):
    """Executes one named operation against the remote ad server."""

    async def invoke(self, service: str, operation: str, payload: dict[str, Any]) -> Any:
        """Call ``service.operation`` with ``payload`` as keyword arguments.

        Returns the structured response (a dict with ``results`` for queries,
        a list of created/updated entities for mutations).
        """
        ...


class DfpClientManager:
    """Manages the googleads AdManagerClient and executes remote operations."""

    def __init__(self, settings: DfpSettings, auth_manager: DfpAuthManager | None = None):
        """Initialize client manager.

        Args:
            settings: DFP configuration (network code, app name, credentials)
            auth_manager: Optional pre-built auth manager
        """
        self.settings = settings
        self.network_code = settings.network_code
        self._auth_manager = auth_manager
        self._client: ad_manager.AdManagerClient | None = None
        self._client_lock = threading.Lock()

    @property
    def auth_manager(self) -> DfpAuthManager:
        if self._auth_manager is None:
            self._auth_manager = DfpAuthManager(self.settings.auth_config())
        return self._auth_manager

    def get_client(self) -> ad_manager.AdManagerClient:
        """Get or create the DFP API client."""
        if self._client is None:
            with self._client_lock:
                if self._client is None:
                    self._client = self._init_client()
        return self._client

    def _init_client(self) -> ad_manager.AdManagerClient:
        if not self.network_code:
            raise DfpConfigurationError("Network code is required for DFP client initialization")

        log_configuration(
            self.auth_manager.get_auth_method(),
            {
                "network_code": self.network_code,
                "application_name": self.settings.application_name,
                "api_version": self.settings.api_version,
                **self.settings.auth_config(),
            },
        )
        credentials = self.auth_manager.get_credentials()
        client = ad_manager.AdManagerClient(
            credentials, self.settings.application_name, network_code=self.network_code
        )
        logger.info(
            f"DFP client initialized for network {self.network_code} using {self.auth_manager.get_auth_method()}"
        )
        return client

    def get_service(self, service_name: str):
        """Get a specific DFP API service (e.g. 'OrderService')."""
        return self.get_client().GetService(service_name, version=self.settings.api_version)

    def _invoke_sync(self, service: str, operation: str, payload: dict[str, Any]) -> Any:
        method = getattr(self.get_service(service), operation)
        response = method(**payload)
        return serialize_object(response)

    async def invoke(self, service: str, operation: str, payload: dict[str, Any]) -> Any:
        """Run one SOAP call in a worker thread.

        Raises:
            DfpRemoteCallError: Transport, authentication or API failure
        """
        logger.debug(f"DFP call: {service}.{operation}")
        try:
            return await asyncio.to_thread(self._invoke_sync, service, operation, payload)
        except DfpConfigurationError:
            raise
        except Exception as e:
            error = map_dfp_exception(e)
            logger.error(f"DFP call {service}.{operation} failed: {error}")
            raise error from e

    def reset_client(self) -> None:
        """Force re-initialization on next access."""
        self._client = None
        logger.info("DFP client reset - will re-initialize on next access")

    @classmethod
    def from_existing_client(cls, client: ad_manager.AdManagerClient, settings: DfpSettings) -> "DfpClientManager":
        """Wrap an already initialized AdManagerClient."""
        manager = cls(settings)
        manager._client = client
        manager.network_code = getattr(client, "network_code", settings.network_code)
        return manager
