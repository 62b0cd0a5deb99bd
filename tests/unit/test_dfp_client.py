"""Unit tests for DFP authentication and the googleads-backed RemoteClient."""

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from unittest.mock import MagicMock, patch

import pytest

from src.adapters.dfp.auth import DfpAuthManager
from src.adapters.dfp.client import DfpClientManager
from src.adapters.dfp.utils.error_handler import (
    DfpAuthenticationError,
    DfpConfigurationError,
    DfpRemoteCallError,
)
from src.core.config import DfpSettings


class TestDfpAuthManager:
    def test_requires_some_credentials(self):
        with pytest.raises(DfpConfigurationError):
            DfpAuthManager({"client_id": "abc", "client_secret": "secret"})

    def test_oauth_credentials(self):
        manager = DfpAuthManager({"client_id": "abc", "client_secret": "secret", "refresh_token": "1//token"})

        with patch("src.adapters.dfp.auth.oauth2.GoogleRefreshTokenClient") as refresh_client:
            credentials = manager.get_credentials()

        refresh_client.assert_called_once_with(client_id="abc", client_secret="secret", refresh_token="1//token")
        assert credentials is refresh_client.return_value
        assert manager.get_auth_method() == "oauth"

    def test_oauth_needs_client_credentials(self):
        manager = DfpAuthManager({"refresh_token": "1//token"})

        with pytest.raises(DfpConfigurationError):
            manager.get_credentials()

    def test_service_account_json(self):
        manager = DfpAuthManager({"service_account_json": '{"type": "service_account"}'})

        with (
            patch("google.oauth2.service_account.Credentials.from_service_account_info") as from_info,
            patch("src.adapters.dfp.auth.oauth2.GoogleCredentialsClient") as credentials_client,
        ):
            credentials = manager.get_credentials()

        assert from_info.call_args.args[0] == {"type": "service_account"}
        credentials_client.assert_called_once_with(from_info.return_value)
        assert credentials is credentials_client.return_value
        assert manager.get_auth_method() == "service_account"

    def test_invalid_service_account_json(self):
        manager = DfpAuthManager({"service_account_json": "{not json"})

        with pytest.raises(DfpConfigurationError):
            manager.get_credentials()


@pytest.fixture
def dfp_settings(tmp_path):
    return DfpSettings(network_code="21661848", cache_dir=tmp_path)


@pytest.fixture
def ad_manager_client():
    client = MagicMock()
    client.network_code = "21661848"
    return client


class TestDfpClientManager:
    @pytest.mark.asyncio
    async def test_invoke_calls_service_method_with_payload(self, dfp_settings, ad_manager_client):
        service = MagicMock()
        service.getAdUnitsByStatement.return_value = {"results": [{"id": 21661848134, "name": "TV2no"}]}
        ad_manager_client.GetService.return_value = service
        manager = DfpClientManager.from_existing_client(ad_manager_client, dfp_settings)

        response = await manager.invoke("InventoryService", "getAdUnitsByStatement", {"filterStatement": {"query": ""}})

        ad_manager_client.GetService.assert_called_once_with("InventoryService", version="v202411")
        service.getAdUnitsByStatement.assert_called_once_with(filterStatement={"query": ""})
        assert response == {"results": [{"id": 21661848134, "name": "TV2no"}]}

    @pytest.mark.asyncio
    async def test_failures_are_mapped(self, dfp_settings, ad_manager_client):
        service = MagicMock()
        service.createLineItems.side_effect = Exception("[AuthenticationError.GOOGLE_ACCOUNT_ALREADY_ASSOCIATED]")
        ad_manager_client.GetService.return_value = service
        manager = DfpClientManager.from_existing_client(ad_manager_client, dfp_settings)

        with pytest.raises(DfpAuthenticationError) as exc_info:
            await manager.invoke("LineItemService", "createLineItems", {"lineItems": []})
        assert isinstance(exc_info.value, DfpRemoteCallError)
        assert exc_info.value.__cause__ is not None

    @pytest.mark.asyncio
    async def test_one_call_per_invoke(self, dfp_settings, ad_manager_client):
        service = MagicMock()
        service.createOrders.side_effect = ConnectionError("connection reset")
        ad_manager_client.GetService.return_value = service
        manager = DfpClientManager.from_existing_client(ad_manager_client, dfp_settings)

        with pytest.raises(DfpRemoteCallError):
            await manager.invoke("OrderService", "createOrders", {"orders": []})
        assert service.createOrders.call_count == 1

    def test_network_code_required(self, tmp_path):
        manager = DfpClientManager(DfpSettings(cache_dir=tmp_path), auth_manager=MagicMock())

        with pytest.raises(DfpConfigurationError):
            manager.get_client()

    def test_client_is_built_once(self, dfp_settings):
        auth_manager = MagicMock()
        auth_manager.get_auth_method.return_value = "oauth"
        manager = DfpClientManager(dfp_settings, auth_manager=auth_manager)

        with patch("src.adapters.dfp.client.ad_manager.AdManagerClient") as client_class:
            first = manager.get_client()
            second = manager.get_client()

        client_class.assert_called_once_with(
            auth_manager.get_credentials.return_value, dfp_settings.application_name, network_code="21661848"
        )
        assert first is second

        manager.reset_client()
        assert manager._client is None

    def test_concurrent_first_use_builds_one_client(self, dfp_settings):
        auth_manager = MagicMock()
        auth_manager.get_auth_method.return_value = "oauth"
        manager = DfpClientManager(dfp_settings, auth_manager=auth_manager)

        def slow_client(*args, **kwargs):
            time.sleep(0.05)
            return MagicMock()

        with (
            patch("src.adapters.dfp.client.ad_manager.AdManagerClient", side_effect=slow_client) as client_class,
            ThreadPoolExecutor(max_workers=4) as pool,
        ):
            clients = list(pool.map(lambda _: manager.get_client(), range(4)))

        assert client_class.call_count == 1
        assert all(client is clients[0] for client in clients)

    def test_init_logs_configuration_without_secrets(self, tmp_path, caplog):
        settings = DfpSettings(
            network_code="21661848",
            cache_dir=tmp_path,
            client_id="abc.apps.googleusercontent.com",
            client_secret="s",
            refresh_token="1//t",
        )
        auth_manager = MagicMock()
        auth_manager.get_auth_method.return_value = "oauth"
        manager = DfpClientManager(settings, auth_manager=auth_manager)

        with (
            caplog.at_level(logging.INFO, logger="src.adapters.dfp.utils.logging"),
            patch("src.adapters.dfp.client.ad_manager.AdManagerClient"),
        ):
            manager.get_client()

        record = next(r for r in caplog.records if r.getMessage() == "DFP configuration loaded: oauth")
        assert record.config["network_code"] == "21661848"
        assert record.config["client_id"] == "abc.apps.googleusercontent.com"
        assert "refresh_token" not in record.config
        assert "client_secret" not in record.config
