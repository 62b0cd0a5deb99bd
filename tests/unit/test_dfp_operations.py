"""Unit tests for DFP submission operations."""

import pytest

from src.adapters.dfp import operations
from src.adapters.dfp.utils.constants import DomainKind
from src.adapters.dfp.utils.error_handler import DfpQueryBuildError, DfpRemoteCallError
from src.adapters.dfp.utils.logging import get_metrics
from tests.unit.helpers.dfp_mock_factory import FakeRemoteClient, bound_values


@pytest.fixture
def client():
    return FakeRemoteClient(
        responses={
            ("LineItemService", "getLineItemsByStatement"): {"results": [{"id": 1}, {"id": 2}]},
            ("CreativeService", "getCreativesByStatement"): {"results": [{"id": 10, "name": "gen_300x250"}]},
            ("LineItemCreativeAssociationService", "getLineItemCreativeAssociationsByStatement"): {"results": None},
            ("LineItemCreativeAssociationService", "performLineItemCreativeAssociationAction"): {"numChanges": 4},
        }
    )


class TestCreateAndUpdate:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "function,service,method,argument",
        [
            (operations.create_line_items, "LineItemService", "createLineItems", "lineItems"),
            (operations.create_orders, "OrderService", "createOrders", "orders"),
            (operations.create_creatives, "CreativeService", "createCreatives", "creatives"),
            (
                operations.create_associations,
                "LineItemCreativeAssociationService",
                "createLineItemCreativeAssociations",
                "lineItemCreativeAssociations",
            ),
            (operations.update_line_items, "LineItemService", "updateLineItems", "lineItems"),
            (operations.update_creatives, "CreativeService", "updateCreatives", "creatives"),
            (
                operations.update_associations,
                "LineItemCreativeAssociationService",
                "updateLineItemCreativeAssociations",
                "lineItemCreativeAssociations",
            ),
        ],
    )
    async def test_one_call_with_entities(self, client, function, service, method, argument):
        entities = [{"name": "a"}, {"name": "b"}]

        await function(client, entities)

        assert client.call_count == 1
        call = client.calls[0]
        assert (call.service, call.operation) == (service, method)
        assert call.payload == {argument: entities}

    def test_submission_operations_cover_every_kind(self):
        assert set(operations.SUBMISSION_OPERATIONS) == set(DomainKind)
        assert operations.SUBMISSION_OPERATIONS[DomainKind.LINE_ITEM] is operations.create_line_items


class TestQueries:
    @pytest.mark.asyncio
    async def test_get_line_items_by_order(self, client):
        results = await operations.get_line_items(client, {"orderId": "2172772969"})

        assert results == [{"id": 1}, {"id": 2}]
        statement = client.calls[0].payload["filterStatement"]
        assert "orderId = :orderId" in statement["query"]
        assert bound_values(client.calls[0].payload) == {"orderId": 2172772969}

    @pytest.mark.asyncio
    async def test_get_creatives_for_advertiser(self, client):
        results = await operations.get_creatives_for_advertiser(client, "5001", name_prefix="gen_")

        assert results == [{"id": 10, "name": "gen_300x250"}]
        assert bound_values(client.calls[0].payload) == {"advertiserId": 5001, "name": "gen_%"}

    @pytest.mark.asyncio
    async def test_empty_results(self, client):
        assert await operations.get_associations(client, {"lineItemId": "1"}) == []


class TestDeactivateAssociations:
    @pytest.mark.asyncio
    async def test_deactivates_matching_associations(self, client):
        response = await operations.deactivate_associations(client, {"lineItemId": "1", "creativeId": "10"})

        assert response == {"numChanges": 4}
        payload = client.calls[0].payload
        assert payload["lineItemCreativeAssociationAction"] == {
            "xsi_type": "DeactivateLineItemCreativeAssociations"
        }
        assert bound_values(payload) == {"lineItemId": 1, "creativeId": 10}

    @pytest.mark.asyncio
    async def test_refuses_empty_filter(self, client):
        with pytest.raises(DfpQueryBuildError):
            await operations.deactivate_associations(client, {})
        assert client.call_count == 0

    @pytest.mark.asyncio
    async def test_deactivation_is_recorded_as_operation(self, client):
        await operations.deactivate_associations(client, {"lineItemId": "1"})

        metrics = get_metrics().get_metrics()
        assert metrics["operations"]["deactivate_associations"] == {"success": 1, "failure": 0}
        assert metrics["api_calls"] == {
            "LineItemCreativeAssociationService.performLineItemCreativeAssociationAction": 1
        }

    @pytest.mark.asyncio
    async def test_failed_deactivation_is_recorded(self):
        client = FakeRemoteClient(
            responses={
                ("LineItemCreativeAssociationService", "performLineItemCreativeAssociationAction"): DfpRemoteCallError(
                    "quota exceeded"
                )
            }
        )

        with pytest.raises(DfpRemoteCallError):
            await operations.deactivate_associations(client, {"lineItemId": "1"})

        assert get_metrics().get_metrics()["operations"]["deactivate_associations"] == {"success": 0, "failure": 1}
