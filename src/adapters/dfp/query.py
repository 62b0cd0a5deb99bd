"""
DFP Query Builder

Turns a mapping of field -> expected value into a PQL filter statement.
Values are matched with LIKE and combined with AND. Fields that are not
queryable for the entity, or that have no value, are left out.
"""

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from googleads import ad_manager

from .utils.error_handler import DfpQueryBuildError

logger = logging.getLogger(__name__)

LINE_ITEM_FIELDS = (
    "costType",
    "creationDateTime",
    "deliveryRateType",
    "endDateTime",
    "externalId",
    "id",
    "isMissingCreatives",
    "isSetTopBoxEnabled",
    "lastModifiedDateTime",
    "lineItemType",
    "name",
    "orderId",
    "startDateTime",
    "status",
    "targeting",
    "unitsBought",
)

CRITERIA_VALUE_FIELDS = (
    "id",
    "customTargetingKeyId",
    "name",
    "displayName",
    "matchType",
)

CRITERIA_KEY_FIELDS = (
    "id",
    "name",
    "displayName",
    "type",
)

AD_UNIT_FIELDS = (
    "adUnitCode",
    "id",
    "name",
    "parentId",
    "status",
    "lastModifiedDateTime",
)

ORDER_FIELDS = (
    "advertiserId",
    "endDateTime",
    "id",
    "name",
    "salespersonId",
    "startDateTime",
    "status",
    "traffickerId",
    "lastModifiedDateTime",
)

ADVERTISER_FIELDS = (
    "id",
    "name",
    "type",
    "lastModifiedDateTime",
)

LABEL_FIELDS = (
    "id",
    "type",
    "name",
    "description",
    "isActive",
)

CREATIVE_FIELDS = (
    "id",
    "name",
    "advertiserId",
    "width",
    "height",
    "lastModifiedDateTime",
)

ASSOCIATION_FIELDS = (
    "creativeId",
    "manualCreativeRotationWeight",
    "destinationUrl",
    "lineItemId",
    "status",
    "lastModifiedDateTime",
)


@dataclass(frozen=True)
class QueryClause:
    field: str
    operator: str
    value: Any


@dataclass(frozen=True)
class DfpQuery:
    """An AND-combined PQL filter. An empty query matches everything."""

    clauses: tuple[QueryClause, ...] = field(default_factory=tuple)

    @property
    def is_empty(self) -> bool:
        return not self.clauses

    @property
    def where_clause(self) -> str:
        """Filter with bind-variable placeholders, e.g. ``name LIKE :name``."""
        return " AND ".join(f"{c.field} {c.operator} :{c.field}" for c in self.clauses)

    @property
    def bind_variables(self) -> dict[str, Any]:
        return {c.field: c.value for c in self.clauses}

    def describe(self) -> str:
        """Filter with literal values, for log lines."""
        if self.is_empty:
            return "<match all>"
        return " AND ".join(f"{c.field} {c.operator} '{c.value}'" for c in self.clauses)

    def to_statement(self) -> dict[str, Any]:
        """Build the googleads filter statement."""
        statement_builder = ad_manager.StatementBuilder()
        if self.clauses:
            statement_builder.Where(self.where_clause)
            for name, value in self.bind_variables.items():
                statement_builder.WithBindVariable(name, value)
        return statement_builder.ToStatement()


def as_pql_id(value: Any) -> Any:
    """Digit-only id strings are bound as numbers."""
    if isinstance(value, str) and value.isdigit():
        return int(value)
    return value


def _has_value(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return value != ""
    if isinstance(value, (list, tuple, dict, set)):
        return len(value) > 0
    return True


def build_query(
    conditions: Mapping[str, Any],
    allowed_fields: Iterable[str],
    exact_fields: Iterable[str] = (),
) -> DfpQuery:
    """Build a filter from the conditions whose field is queryable.

    Args:
        conditions: Field names mapped to the values they should match
        allowed_fields: Queryable fields for the entity, in the order clauses are emitted
        exact_fields: Fields compared with ``=`` instead of ``LIKE``; digit strings bind as numbers

    Returns:
        DfpQuery; empty when no allowed field has a value

    Raises:
        DfpQueryBuildError: If conditions is not a mapping
    """
    if not isinstance(conditions, Mapping):
        raise DfpQueryBuildError(
            f"Query conditions must be a mapping, got {type(conditions).__name__}",
            {"conditions": repr(conditions)[:200]},
        )

    exact = set(exact_fields)
    clauses = []
    for name in allowed_fields:
        value = conditions.get(name)
        if not _has_value(value):
            continue
        if name in exact:
            clauses.append(QueryClause(name, "=", as_pql_id(value)))
        else:
            clauses.append(QueryClause(name, "LIKE", value))

    query = DfpQuery(tuple(clauses))
    if query.is_empty:
        logger.debug(f"No queryable conditions in {sorted(conditions)}; query matches everything")
    return query
