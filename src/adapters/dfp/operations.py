"""
DFP Submission Operations

Thin async wrappers over the create, update, query and action calls of the
line item, order, creative and line item creative association services.
Each wrapper makes exactly one remote call through a RemoteClient.
"""

import logging
from collections.abc import Awaitable, Callable, Mapping
from typing import Any

from .client import RemoteClient
from .query import ASSOCIATION_FIELDS, CREATIVE_FIELDS, LINE_ITEM_FIELDS, build_query
from .utils.constants import FILTER_STATEMENT_ARG, DfpService, DomainKind
from .utils.error_handler import DfpQueryBuildError
from .utils.logging import DfpOperation, log_dfp_operation

logger = logging.getLogger(__name__)

# Id fields compared with "=" in query operations
ID_FIELDS = ("id", "orderId", "advertiserId", "lineItemId", "creativeId")

DEACTIVATE_ASSOCIATIONS_ACTION = "DeactivateLineItemCreativeAssociations"


def _results(response: Any) -> list[Any]:
    if response is None:
        return []
    if isinstance(response, Mapping):
        return list(response.get("results") or [])
    if isinstance(response, list):
        return response
    return list(getattr(response, "results", None) or [])


async def _query(client: RemoteClient, service: str, method: str, conditions: Mapping[str, Any], fields) -> list:
    query = build_query(conditions, fields, ID_FIELDS)
    logger.info(f"Querying {service}.{method}: {query.describe()}")
    response = await client.invoke(service, method, {FILTER_STATEMENT_ARG: query.to_statement()})
    return _results(response)


# Create


async def create_line_items(client: RemoteClient, line_items: list[dict[str, Any]]) -> Any:
    return await client.invoke(DfpService.LINE_ITEM, "createLineItems", {"lineItems": line_items})


async def create_orders(client: RemoteClient, orders: list[dict[str, Any]]) -> Any:
    return await client.invoke(DfpService.ORDER, "createOrders", {"orders": orders})


async def create_creatives(client: RemoteClient, creatives: list[dict[str, Any]]) -> Any:
    return await client.invoke(DfpService.CREATIVE, "createCreatives", {"creatives": creatives})


async def create_associations(client: RemoteClient, associations: list[dict[str, Any]]) -> Any:
    return await client.invoke(
        DfpService.ASSOCIATION,
        "createLineItemCreativeAssociations",
        {"lineItemCreativeAssociations": associations},
    )


# Update


async def update_line_items(client: RemoteClient, line_items: list[dict[str, Any]]) -> Any:
    return await client.invoke(DfpService.LINE_ITEM, "updateLineItems", {"lineItems": line_items})


async def update_creatives(client: RemoteClient, creatives: list[dict[str, Any]]) -> Any:
    return await client.invoke(DfpService.CREATIVE, "updateCreatives", {"creatives": creatives})


async def update_associations(client: RemoteClient, associations: list[dict[str, Any]]) -> Any:
    return await client.invoke(
        DfpService.ASSOCIATION,
        "updateLineItemCreativeAssociations",
        {"lineItemCreativeAssociations": associations},
    )


# Query


async def get_line_items(client: RemoteClient, conditions: Mapping[str, Any]) -> list[Any]:
    """Line items matching ``conditions`` (e.g. ``{"orderId": "123"}``)."""
    return await _query(client, DfpService.LINE_ITEM, "getLineItemsByStatement", conditions, LINE_ITEM_FIELDS)


async def get_creatives(client: RemoteClient, conditions: Mapping[str, Any]) -> list[Any]:
    return await _query(client, DfpService.CREATIVE, "getCreativesByStatement", conditions, CREATIVE_FIELDS)


async def get_creatives_for_advertiser(
    client: RemoteClient, advertiser_id: str, name_prefix: str | None = None
) -> list[Any]:
    """Creatives owned by one advertiser, optionally only those whose name starts with ``name_prefix``."""
    conditions: dict[str, Any] = {"advertiserId": advertiser_id}
    if name_prefix:
        conditions["name"] = f"{name_prefix}%"
    return await get_creatives(client, conditions)


async def get_associations(client: RemoteClient, conditions: Mapping[str, Any]) -> list[Any]:
    return await _query(
        client,
        DfpService.ASSOCIATION,
        "getLineItemCreativeAssociationsByStatement",
        conditions,
        ASSOCIATION_FIELDS,
    )


# Actions


async def deactivate_associations(client: RemoteClient, conditions: Mapping[str, Any]) -> Any:
    """Deactivate the associations matching ``conditions``.

    An empty condition set would deactivate every association in the
    network, so it is refused.
    """
    query = build_query(conditions, ASSOCIATION_FIELDS, ID_FIELDS)
    if query.is_empty:
        raise DfpQueryBuildError("Refusing to deactivate associations without a filter")

    with log_dfp_operation(DfpOperation.DEACTIVATE_ASSOCIATIONS, {"filter": query.describe()}) as ctx:
        response = await client.invoke(
            DfpService.ASSOCIATION,
            "performLineItemCreativeAssociationAction",
            {
                "lineItemCreativeAssociationAction": {"xsi_type": DEACTIVATE_ASSOCIATIONS_ACTION},
                FILTER_STATEMENT_ARG: query.to_statement(),
            },
        )
        ctx.add_api_call(DfpService.ASSOCIATION, "performLineItemCreativeAssociationAction")
    return response


SubmissionOperation = Callable[[RemoteClient, list[dict[str, Any]]], Awaitable[Any]]

SUBMISSION_OPERATIONS: dict[DomainKind, SubmissionOperation] = {
    DomainKind.LINE_ITEM: create_line_items,
    DomainKind.ORDER: create_orders,
    DomainKind.CREATIVE: create_creatives,
    DomainKind.ASSOCIATION: create_associations,
}
