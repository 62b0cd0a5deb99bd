"""
Constants and enums for the DFP bulk trafficking adapter.

This module centralizes:
- API version and OAuth scope
- Remote service and method names
- Cache namespaces
- Domain object kinds and their named-reference fields
"""

from enum import Enum

from src.core.config import (  # noqa: F401
    DFP_API_VERSION,
    DFP_DEFAULT_APPLICATION_NAME,
    DFP_DEFAULT_DATE_FORMAT,
    DFP_DEFAULT_TIME_ZONE,
)

DFP_SCOPES = ["https://www.googleapis.com/auth/dfp"]


class CacheNamespace(Enum):
    """Lookup cache namespaces, one on-disk store each."""

    CRITERIA_KEY = "criteria-key"
    CRITERIA_VALUE = "criteria-value"
    AD_UNIT = "ad-unit"
    ORDER = "order"
    LABEL = "label"

    @property
    def store_name(self) -> str:
        """Directory name of the namespace's store (e.g. ``criteriaKeyStore``)."""
        head, *tail = self.value.split("-")
        return head + "".join(part.capitalize() for part in tail) + "Store"


class DomainKind(Enum):
    """Kinds of domain objects the preparation pipeline accepts."""

    LINE_ITEM = "line_item"
    ORDER = "order"
    CREATIVE = "creative"
    ASSOCIATION = "association"


class DfpService:
    """Remote service names."""

    LINE_ITEM = "LineItemService"
    ORDER = "OrderService"
    CREATIVE = "CreativeService"
    ASSOCIATION = "LineItemCreativeAssociationService"
    CUSTOM_TARGETING = "CustomTargetingService"
    INVENTORY = "InventoryService"
    COMPANY = "CompanyService"
    LABEL = "LabelService"


# Named references on domain objects
ORDER_NAME_FIELD = "orderName"
AD_UNIT_NAME_FIELD = "adUnitName"
CRITERIA_PAIRS_FIELD = "customCriteriaKVPairs"
DATE_FIELD = "date"
PARTNER_FIELD = "partner"

# SOAP argument names
FILTER_STATEMENT_ARG = "filterStatement"
