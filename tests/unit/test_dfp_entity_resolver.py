"""Unit tests for cache-first entity resolution."""

import asyncio

import pytest

from src.adapters.dfp.cache import LookupCache, LookupCacheRegistry
from src.adapters.dfp.resolver import AD_UNIT, ADVERTISER, CRITERIA_VALUE, ORDER, EntityResolver, ResolvedCriteria
from src.adapters.dfp.utils.constants import CacheNamespace
from src.adapters.dfp.utils.error_handler import (
    DfpAmbiguousResultError,
    DfpCacheWriteError,
    DfpNetworkError,
    DfpQueryBuildError,
    DfpResourceNotFoundError,
)
from src.core.config import DfpSettings
from tests.unit.helpers.dfp_mock_factory import FakeRemoteClient, bound_values, lookup_handler


class TestResolve:
    @pytest.mark.asyncio
    async def test_second_lookup_is_served_from_cache(self, resolver, fake_client):
        first = await resolver.lookup_ad_unit("TV2no")
        second = await resolver.lookup_ad_unit("TV2no")

        assert first == second == "21661848134"
        assert fake_client.call_count == 1
        assert resolver.stats.cache_hits == 1
        assert resolver.stats.remote_calls == 1

    @pytest.mark.asyncio
    async def test_lookup_queries_inventory_service_by_name(self, resolver, fake_client):
        await resolver.lookup_ad_unit("TV2no")

        call = fake_client.calls[0]
        assert call.service == "InventoryService"
        assert call.operation == "getAdUnitsByStatement"
        assert bound_values(call.payload) == {"name": "TV2no"}

    @pytest.mark.asyncio
    async def test_resolved_ids_persist_across_resolvers(self, fake_client, cache_dir, settings):
        first_caches = LookupCacheRegistry(cache_dir)
        await EntityResolver(fake_client, first_caches, settings).lookup_order("Order A")
        first_caches.close()

        second = EntityResolver(fake_client, LookupCacheRegistry(cache_dir), settings)
        assert await second.lookup_order("Order A") == "111"
        assert fake_client.call_count == 1

    @pytest.mark.asyncio
    async def test_prepopulated_cache_avoids_remote_call(self, resolver, fake_client, caches):
        caches.get(CacheNamespace.ORDER).put_sync("Order Z", "999")

        assert await resolver.lookup_order("Order Z") == "999"
        assert fake_client.call_count == 0

    @pytest.mark.asyncio
    async def test_criteria_values_are_cached_per_key(self, resolver, fake_client, caches):
        assert await resolver.lookup_criteria_value("0.50", "12345") == "67890"

        assert caches.get(CacheNamespace.CRITERIA_VALUE).get_sync("12345:0.50") == "67890"
        assert bound_values(fake_client.calls[0].payload) == {"customTargetingKeyId": 12345, "name": "0.50"}

    @pytest.mark.asyncio
    async def test_not_found_is_not_cached(self, resolver, fake_client, caches):
        with pytest.raises(DfpResourceNotFoundError, match="No order found"):
            await resolver.lookup_order("Missing order")
        with pytest.raises(DfpResourceNotFoundError):
            await resolver.lookup_order("Missing order")

        assert fake_client.call_count == 2
        assert caches.get(CacheNamespace.ORDER).get_sync("Missing order") is None

    @pytest.mark.asyncio
    async def test_several_matches_take_first(self, caches, settings, lookup_table):
        lookup_table["getOrdersByStatement"]["Order A"] = ["111", "112"]
        resolver = EntityResolver(FakeRemoteClient(handler=lookup_handler(lookup_table)), caches, settings)

        assert await resolver.lookup_order("Order A") == "111"

    @pytest.mark.asyncio
    async def test_several_matches_fail_when_strict(self, caches, cache_dir, lookup_table):
        lookup_table["getOrdersByStatement"]["Order A"] = ["111", "112"]
        strict = DfpSettings(cache_dir=cache_dir, strict_lookups=True)
        resolver = EntityResolver(FakeRemoteClient(handler=lookup_handler(lookup_table)), caches, strict)

        with pytest.raises(DfpAmbiguousResultError):
            await resolver.lookup_order("Order A")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("name", [None, ""])
    async def test_empty_name_is_refused_without_remote_call(self, resolver, fake_client, name):
        with pytest.raises(DfpQueryBuildError):
            await resolver.resolve(ORDER, name)
        assert fake_client.call_count == 0

    @pytest.mark.asyncio
    async def test_criteria_value_needs_key_id(self, resolver, fake_client):
        with pytest.raises(DfpQueryBuildError):
            await resolver.resolve(CRITERIA_VALUE, "0.50")
        assert fake_client.call_count == 0

    @pytest.mark.asyncio
    async def test_advertisers_are_not_cached(self, resolver, fake_client):
        assert await resolver.lookup_advertiser("Partner AS") == "5001"
        assert await resolver.resolve(ADVERTISER, "Partner AS") == "5001"

        assert fake_client.call_count == 2

    @pytest.mark.asyncio
    async def test_cache_write_failure_still_returns_id(self, resolver, fake_client, monkeypatch):
        async def failing_put(self, key, identifier):
            raise DfpCacheWriteError("disk full")

        monkeypatch.setattr(LookupCache, "put", failing_put)

        assert await resolver.lookup_label("Header bidding") == "9001"
        assert resolver.stats.cache_write_failures == 1

    @pytest.mark.asyncio
    async def test_remote_failure_propagates(self, caches, settings):
        client = FakeRemoteClient(responses={("InventoryService", "getAdUnitsByStatement"): DfpNetworkError("reset")})
        resolver = EntityResolver(client, caches, settings)

        with pytest.raises(DfpNetworkError):
            await resolver.resolve(AD_UNIT, "TV2no")

    @pytest.mark.asyncio
    async def test_concurrent_lookups_of_one_name_call_remote_once(self, caches, settings, lookup_table):
        client = FakeRemoteClient(handler=lookup_handler(lookup_table), delay=0.01)
        resolver = EntityResolver(client, caches, settings)

        results = await asyncio.gather(*(resolver.lookup_ad_unit("TV2no") for _ in range(3)))

        assert results == ["21661848134"] * 3
        assert client.call_count == 1

    @pytest.mark.asyncio
    async def test_lookup_concurrency_is_bounded(self, caches, cache_dir):
        table = {"getOrdersByStatement": {f"Order {i}": str(100 + i) for i in range(8)}}
        client = FakeRemoteClient(handler=lookup_handler(table), delay=0.01)
        resolver = EntityResolver(client, caches, DfpSettings(cache_dir=cache_dir, lookup_concurrency=2))

        await asyncio.gather(*(resolver.lookup_order(f"Order {i}") for i in range(8)))

        assert client.call_count == 8
        assert client.peak_in_flight <= 2


class TestResolveCriteria:
    @pytest.mark.asyncio
    async def test_single_pair(self, caches, settings):
        table = {
            "getCustomTargetingKeysByStatement": {"hb_pb": "K1"},
            "getCustomTargetingValuesByStatement": {"K1:0.50": "V1"},
        }
        resolver = EntityResolver(FakeRemoteClient(handler=lookup_handler(table)), caches, settings)

        criteria = await resolver.resolve_criteria({"hb_pb": "0.50"})

        assert criteria == [ResolvedCriteria(key_id="K1", value_ids=("V1",))]
        assert [entry.to_dict() for entry in criteria] == [{"keyId": "K1", "valueIds": ["V1"]}]

    @pytest.mark.asyncio
    async def test_results_follow_input_order(self, resolver):
        criteria = await resolver.resolve_criteria({"hb_bidder": "appnexus", "hb_pb": "1.00"}, concurrency=2)

        assert [entry.key_id for entry in criteria] == ["12346", "12345"]
        assert [entry.value_ids for entry in criteria] == [("77001",), ("67891",)]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("pairs", [None, {}])
    async def test_no_pairs(self, resolver, fake_client, pairs):
        assert await resolver.resolve_criteria(pairs) == []
        assert fake_client.call_count == 0

    @pytest.mark.asyncio
    async def test_zero_concurrency_is_rejected(self, resolver):
        with pytest.raises(ValueError):
            await resolver.resolve_criteria({"hb_pb": "0.50"}, concurrency=0)

    @pytest.mark.asyncio
    async def test_unknown_value_fails(self, resolver):
        with pytest.raises(DfpResourceNotFoundError):
            await resolver.resolve_criteria({"hb_pb": "99.99"})

    def test_custom_criteria_node(self):
        node = ResolvedCriteria("12345", ("67890",)).to_custom_criteria()

        assert node == {
            "xsi_type": "CustomCriteria",
            "keyId": "12345",
            "valueIds": ["67890"],
            "operator": "IS",
        }
