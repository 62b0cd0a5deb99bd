"""
DFP Preparation Pipeline

Turns domain objects produced by the formatting scripts into objects ready to
submit. Each step swaps one kind of named reference for the id DFP assigned
to it.

Steps are plain async functions ``step(item, resolver, settings) -> item``.
A step never modifies its input; it returns a deep copy carrying its change.
The step sequence per object kind is fixed:

    line item:    replace_start_date -> replace_order_name
                  -> replace_ad_unit_name -> add_criteria
    order:        replace_partner_name
    creative:     replace_partner_name
    association:  (none)
"""

import asyncio
import copy
import logging
from collections.abc import Awaitable, Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from src.core.config import DfpSettings

from .resolver import EntityResolver
from .utils.constants import (
    AD_UNIT_NAME_FIELD,
    CRITERIA_PAIRS_FIELD,
    DATE_FIELD,
    ORDER_NAME_FIELD,
    PARTNER_FIELD,
    DomainKind,
)
from .utils.error_handler import DfpError, DfpMissingReferenceError, DfpPreparationError
from .utils.formatters import format_start_date_time
from .utils.logging import DfpOperation, log_dfp_operation

logger = logging.getLogger(__name__)

Step = Callable[[dict[str, Any], EntityResolver, DfpSettings], Awaitable[dict[str, Any]]]


def item_name(item: Mapping[str, Any]) -> str:
    """Best identifying name of a domain object, for error reports."""
    if item.get("name"):
        return str(item["name"])
    if "lineItemId" in item or "creativeId" in item:
        return f"{item.get('lineItemId')}:{item.get('creativeId')}"
    return "<unnamed>"


def _require(item: Mapping[str, Any], field: str, step: str) -> Any:
    value = item.get(field)
    if value is None or value == "":
        raise DfpMissingReferenceError(field, item_name(item), step)
    return value


def _child_dict(parent: dict[str, Any], key: str) -> dict[str, Any]:
    child = parent.get(key)
    if not isinstance(child, dict):
        child = {}
        parent[key] = child
    return child


def _criteria_set_children(targeting: dict[str, Any]) -> list[dict[str, Any]]:
    custom = targeting.get("customTargeting")
    if not isinstance(custom, dict) or not custom.get("children"):
        custom = {
            "xsi_type": "CustomCriteriaSet",
            "logicalOperator": "OR",
            "children": [
                {"xsi_type": "CustomCriteriaSet", "logicalOperator": "AND", "children": []}
            ],
        }
        targeting["customTargeting"] = custom
    criteria_set = custom["children"][0]
    return criteria_set.setdefault("children", [])


async def replace_start_date(item: dict[str, Any], resolver: EntityResolver, settings: DfpSettings) -> dict[str, Any]:
    """Replace ``date`` with a structured ``startDateTime``."""
    date = _require(item, DATE_FIELD, "replace_start_date")

    prepared = copy.deepcopy(item)
    prepared["startDateTime"] = format_start_date_time(date, settings.time_zone, settings.date_format)
    del prepared[DATE_FIELD]
    return prepared


async def replace_order_name(item: dict[str, Any], resolver: EntityResolver, settings: DfpSettings) -> dict[str, Any]:
    """Replace ``orderName`` with the resolved ``orderId``."""
    order_name = _require(item, ORDER_NAME_FIELD, "replace_order_name")
    order_id = await resolver.lookup_order(order_name)

    prepared = copy.deepcopy(item)
    prepared["orderId"] = order_id
    del prepared[ORDER_NAME_FIELD]
    return prepared


async def replace_ad_unit_name(
    item: dict[str, Any], resolver: EntityResolver, settings: DfpSettings
) -> dict[str, Any]:
    """Replace ``adUnitName`` with the resolved ad unit in the inventory targeting."""
    ad_unit_name = _require(item, AD_UNIT_NAME_FIELD, "replace_ad_unit_name")
    ad_unit_id = await resolver.lookup_ad_unit(ad_unit_name)

    prepared = copy.deepcopy(item)
    targeting = _child_dict(prepared, "targeting")
    inventory = _child_dict(targeting, "inventoryTargeting")
    inventory["targetedAdUnits"] = [{"adUnitId": ad_unit_id, "includeDescendants": True}]
    del prepared[AD_UNIT_NAME_FIELD]
    return prepared


async def add_criteria(item: dict[str, Any], resolver: EntityResolver, settings: DfpSettings) -> dict[str, Any]:
    """Replace ``customCriteriaKVPairs`` with resolved criteria in the custom targeting."""
    pairs = item.get(CRITERIA_PAIRS_FIELD) or {}
    if not isinstance(pairs, Mapping):
        raise DfpPreparationError(
            f"'{CRITERIA_PAIRS_FIELD}' of '{item_name(item)}' must be a mapping of key names to value names",
            item_name=item_name(item),
            step="add_criteria",
        )
    criteria = await resolver.resolve_criteria(pairs)

    prepared = copy.deepcopy(item)
    if criteria:
        children = _criteria_set_children(_child_dict(prepared, "targeting"))
        children.extend(entry.to_custom_criteria() for entry in criteria)
    prepared.pop(CRITERIA_PAIRS_FIELD, None)
    return prepared


async def replace_partner_name(
    item: dict[str, Any], resolver: EntityResolver, settings: DfpSettings
) -> dict[str, Any]:
    """Replace ``partner`` with the resolved ``advertiserId``."""
    partner = _require(item, PARTNER_FIELD, "replace_partner_name")
    advertiser_id = await resolver.lookup_advertiser(partner)

    prepared = copy.deepcopy(item)
    prepared["advertiserId"] = advertiser_id
    del prepared[PARTNER_FIELD]
    return prepared


LINE_ITEM_STEPS: tuple[Step, ...] = (replace_start_date, replace_order_name, replace_ad_unit_name, add_criteria)
ORDER_STEPS: tuple[Step, ...] = (replace_partner_name,)
CREATIVE_STEPS: tuple[Step, ...] = (replace_partner_name,)
ASSOCIATION_STEPS: tuple[Step, ...] = ()

PIPELINES: dict[DomainKind, tuple[Step, ...]] = {
    DomainKind.LINE_ITEM: LINE_ITEM_STEPS,
    DomainKind.ORDER: ORDER_STEPS,
    DomainKind.CREATIVE: CREATIVE_STEPS,
    DomainKind.ASSOCIATION: ASSOCIATION_STEPS,
}

_PREPARE_OPERATIONS = {
    DomainKind.LINE_ITEM: DfpOperation.PREPARE_LINE_ITEMS,
    DomainKind.ORDER: DfpOperation.PREPARE_ORDERS,
    DomainKind.CREATIVE: DfpOperation.PREPARE_CREATIVES,
    DomainKind.ASSOCIATION: DfpOperation.PREPARE_ASSOCIATIONS,
}


@dataclass
class PreparedItem:
    """Outcome of preparing one domain object."""

    index: int
    source: Mapping[str, Any]
    prepared: dict[str, Any] | None = None
    error: DfpError | None = None

    @property
    def succeeded(self) -> bool:
        return self.error is None


class PreparationPipeline:
    """Runs the fixed step sequence for each kind of domain object."""

    def __init__(self, resolver: EntityResolver, settings: DfpSettings):
        self.resolver = resolver
        self.settings = settings

    async def prepare(self, item: Mapping[str, Any], kind: DomainKind) -> dict[str, Any]:
        """Return a submission-ready copy of ``item``.

        Raises:
            DfpMissingReferenceError: If a required named reference is absent
            DfpPreparationError: If any step fails; carries the item name and step
        """
        if not isinstance(item, Mapping):
            raise DfpPreparationError(f"Expected a {kind.value} mapping, got {type(item).__name__}")

        name = item_name(item)
        steps = PIPELINES[kind]
        if not steps:
            return copy.deepcopy(dict(item))

        current: dict[str, Any] = dict(item)
        for step in steps:
            try:
                current = await step(current, self.resolver, self.settings)
            except DfpPreparationError:
                raise
            except Exception as e:
                raise DfpPreparationError(
                    f"Preparing {kind.value} '{name}' failed in {step.__name__}: {e}",
                    item_name=name,
                    step=step.__name__,
                    details={"cause_type": type(e).__name__},
                ) from e
        return current

    async def prepare_line_item(self, line_item: Mapping[str, Any]) -> dict[str, Any]:
        return await self.prepare(line_item, DomainKind.LINE_ITEM)

    async def prepare_order(self, order: Mapping[str, Any]) -> dict[str, Any]:
        return await self.prepare(order, DomainKind.ORDER)

    async def prepare_creative(self, creative: Mapping[str, Any]) -> dict[str, Any]:
        return await self.prepare(creative, DomainKind.CREATIVE)

    async def prepare_association(self, association: Mapping[str, Any]) -> dict[str, Any]:
        return await self.prepare(association, DomainKind.ASSOCIATION)

    async def prepare_many(
        self,
        items: Sequence[Mapping[str, Any]],
        kind: DomainKind,
        concurrency: int | None = None,
        on_progress: Callable[[PreparedItem], None] | None = None,
    ) -> list[PreparedItem]:
        """Prepare several objects; a failing object does not stop its siblings.

        Args:
            items: Domain objects of one kind
            kind: Their kind
            concurrency: Objects prepared at once (defaults to settings.preparation_concurrency)
            on_progress: Called once per finished object

        Returns:
            One PreparedItem per input, in input order
        """
        if concurrency is None:
            concurrency = self.settings.preparation_concurrency
        if concurrency < 1:
            raise ValueError(f"concurrency must be at least 1, got {concurrency}")
        semaphore = asyncio.Semaphore(concurrency)

        async def prepare_one(index: int, item: Mapping[str, Any]) -> PreparedItem:
            async with semaphore:
                try:
                    outcome = PreparedItem(index, item, prepared=await self.prepare(item, kind))
                except DfpError as e:
                    logger.error(f"Could not prepare {kind.value} #{index}: {e}")
                    outcome = PreparedItem(index, item, error=e)
            if on_progress is not None:
                on_progress(outcome)
            return outcome

        with log_dfp_operation(_PREPARE_OPERATIONS[kind], {"items": len(items)}) as ctx:
            outcomes = list(await asyncio.gather(*(prepare_one(i, item) for i, item in enumerate(items))))
            ctx.metadata["failed"] = sum(1 for outcome in outcomes if not outcome.succeeded)
        return outcomes
