"""
Unit test specific fixtures.

These fixtures are only available to unit tests.
"""

import pytest

from src.adapters.dfp.cache import LookupCacheRegistry
from src.adapters.dfp.resolver import EntityResolver
from src.adapters.dfp.utils.logging import get_metrics
from src.core.config import DfpSettings
from tests.unit.helpers.dfp_mock_factory import FakeRemoteClient, lookup_handler


@pytest.fixture(autouse=True)
def reset_dfp_metrics():
    """Start each test with empty operation metrics."""
    get_metrics().reset()
    yield
    get_metrics().reset()


@pytest.fixture
def cache_dir(tmp_path):
    return tmp_path / "local"


@pytest.fixture
def settings(cache_dir):
    """Settings pointing the lookup stores at a temporary directory."""
    return DfpSettings(network_code="123456", cache_dir=cache_dir)


@pytest.fixture
def lookup_table():
    """Names known to the fake ad server, per lookup method."""
    return {
        "getOrdersByStatement": {"Order A": "111", "Order B": "222"},
        "getAdUnitsByStatement": {"TV2no": "21661848134", "Dagbladet": "21661848999"},
        "getCustomTargetingKeysByStatement": {"hb_pb": "12345", "hb_bidder": "12346"},
        "getCustomTargetingValuesByStatement": {
            "12345:0.50": "67890",
            "12345:1.00": "67891",
            "12346:appnexus": "77001",
        },
        "getCompaniesByStatement": {"Partner AS": "5001"},
        "getLabelsByStatement": {"Header bidding": "9001"},
    }


@pytest.fixture
def fake_client(lookup_table):
    return FakeRemoteClient(handler=lookup_handler(lookup_table))


@pytest.fixture
def caches(cache_dir):
    registry = LookupCacheRegistry(cache_dir)
    yield registry
    registry.close()


@pytest.fixture
def resolver(fake_client, caches, settings):
    return EntityResolver(fake_client, caches, settings)
