"""
DFP Entity Resolver

Translates human-readable names (orders, ad units, custom targeting keys and
values, labels, advertisers) into DFP system-assigned ids.

Resolution is cache-first: a name found in its namespace's LookupCache is
returned without a network call. On a miss the remote platform is queried,
the first result in server order is taken, and the id is written back to the
cache on a best-effort basis.
"""

import asyncio
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from src.core.config import DfpSettings

from .cache import LookupCacheRegistry
from .client import RemoteClient
from .query import (
    AD_UNIT_FIELDS,
    ADVERTISER_FIELDS,
    CRITERIA_KEY_FIELDS,
    CRITERIA_VALUE_FIELDS,
    LABEL_FIELDS,
    ORDER_FIELDS,
    build_query,
)
from .utils.constants import FILTER_STATEMENT_ARG, CacheNamespace, DfpService
from .utils.error_handler import (
    DfpAmbiguousResultError,
    DfpCacheWriteError,
    DfpQueryBuildError,
    DfpResourceNotFoundError,
    extract_first_id,
    extract_results,
)
from .utils.formatters import format_custom_criteria

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LookupKind:
    """Where and how to look up one type of entity."""

    label: str
    service: str
    method: str
    fields: tuple[str, ...]
    namespace: CacheNamespace | None
    exact_fields: tuple[str, ...] = ()


CRITERIA_KEY = LookupKind(
    "criteria key",
    DfpService.CUSTOM_TARGETING,
    "getCustomTargetingKeysByStatement",
    CRITERIA_KEY_FIELDS,
    CacheNamespace.CRITERIA_KEY,
)
CRITERIA_VALUE = LookupKind(
    "criteria value",
    DfpService.CUSTOM_TARGETING,
    "getCustomTargetingValuesByStatement",
    CRITERIA_VALUE_FIELDS,
    CacheNamespace.CRITERIA_VALUE,
    exact_fields=("customTargetingKeyId",),
)
AD_UNIT = LookupKind("ad unit", DfpService.INVENTORY, "getAdUnitsByStatement", AD_UNIT_FIELDS, CacheNamespace.AD_UNIT)
ORDER = LookupKind("order", DfpService.ORDER, "getOrdersByStatement", ORDER_FIELDS, CacheNamespace.ORDER)
LABEL = LookupKind("label", DfpService.LABEL, "getLabelsByStatement", LABEL_FIELDS, CacheNamespace.LABEL)
# Advertisers are looked up on every call
ADVERTISER = LookupKind("advertiser", DfpService.COMPANY, "getCompaniesByStatement", ADVERTISER_FIELDS, None)


@dataclass(frozen=True)
class ResolvedCriteria:
    """One custom targeting key/value pair in id form."""

    key_id: str
    value_ids: tuple[str, ...]

    def to_dict(self) -> dict[str, Any]:
        return {"keyId": self.key_id, "valueIds": list(self.value_ids)}

    def to_custom_criteria(self) -> dict[str, Any]:
        return format_custom_criteria(self.key_id, list(self.value_ids))


@dataclass
class ResolverStats:
    cache_hits: int = 0
    cache_misses: int = 0
    remote_calls: int = 0
    cache_write_failures: int = 0
    by_kind: dict[str, int] = field(default_factory=dict)


class EntityResolver:
    """Cache-first name to id resolution against DFP."""

    def __init__(self, client: RemoteClient, caches: LookupCacheRegistry, settings: DfpSettings):
        """Initialize resolver.

        Args:
            client: RemoteClient used on cache misses
            caches: Registry of per-namespace lookup caches
            settings: Configuration (lookup and criteria concurrency, strict lookups)
        """
        self.client = client
        self.caches = caches
        self.settings = settings
        self.stats = ResolverStats()
        self._lookup_semaphore = asyncio.Semaphore(settings.lookup_concurrency)

    @staticmethod
    def cache_key(kind: LookupKind, name: str, key_id: str | None = None) -> str:
        if kind is CRITERIA_VALUE:
            return f"{key_id}:{name}"
        return name

    async def resolve(self, kind: LookupKind, name: str, key_id: str | None = None) -> str:
        """Resolve ``name`` to the id of the matching ``kind`` entity.

        Args:
            kind: Entity type to look up
            name: Human-readable name of the entity
            key_id: Custom targeting key id; required for criteria values

        Raises:
            DfpQueryBuildError: If no usable filter can be built
            DfpResourceNotFoundError: If nothing matches
            DfpAmbiguousResultError: If several entities match and strict lookups are on
            DfpRemoteCallError: If the remote call fails
        """
        if name is None or str(name) == "":
            raise DfpQueryBuildError(f"Cannot look up a {kind.label} without a name")
        name = str(name)
        if kind is CRITERIA_VALUE and not key_id:
            raise DfpQueryBuildError(f"Criteria value '{name}' needs a key id to be looked up")

        cache = self.caches.get(kind.namespace) if kind.namespace else None
        cache_key = self.cache_key(kind, name, key_id)

        if cache is not None:
            cached = await cache.get(cache_key)
            if cached is not None:
                self.stats.cache_hits += 1
                return cached
            self.stats.cache_misses += 1

        async with self._lookup_semaphore:
            # A concurrent resolution of the same name may have filled the cache meanwhile
            if cache is not None:
                cached = await cache.get(cache_key)
                if cached is not None:
                    return cached
            identifier = await self._fetch_id(kind, name, key_id)

            if cache is not None:
                try:
                    await cache.put(cache_key, identifier)
                except DfpCacheWriteError as e:
                    self.stats.cache_write_failures += 1
                    logger.warning(f"{e}; continuing with freshly fetched id {identifier}")

        return identifier

    async def _fetch_id(self, kind: LookupKind, name: str, key_id: str | None) -> str:
        conditions: dict[str, Any] = {"name": name}
        if key_id is not None:
            conditions["customTargetingKeyId"] = str(key_id)

        query = build_query(conditions, kind.fields, kind.exact_fields)
        if query.is_empty:
            raise DfpQueryBuildError(
                f"Refusing to look up {kind.label} '{name}' with an empty filter", {"conditions": conditions}
            )

        details = {"kind": kind.label, "name": name, "query": query.describe()}
        logger.info(f"Looking up {kind.label} in DFP: {query.describe()}")

        self.stats.remote_calls += 1
        self.stats.by_kind[kind.label] = self.stats.by_kind.get(kind.label, 0) + 1
        response = await self.client.invoke(kind.service, kind.method, {FILTER_STATEMENT_ARG: query.to_statement()})

        try:
            results = extract_results(response, details)
        except DfpResourceNotFoundError as e:
            raise DfpResourceNotFoundError(f"No {kind.label} found matching {query.describe()}", details) from e

        if len(results) > 1:
            if self.settings.strict_lookups:
                raise DfpAmbiguousResultError(
                    f"{len(results)} {kind.label} entities match {query.describe()}",
                    {**details, "result_count": len(results)},
                )
            logger.warning(f"{len(results)} {kind.label} entities match {query.describe()}; using the first")

        return extract_first_id(results, details)

    async def lookup_criteria_key(self, name: str) -> str:
        return await self.resolve(CRITERIA_KEY, name)

    async def lookup_criteria_value(self, value: str, key_id: str) -> str:
        return await self.resolve(CRITERIA_VALUE, value, key_id=key_id)

    async def lookup_ad_unit(self, name: str) -> str:
        return await self.resolve(AD_UNIT, name)

    async def lookup_order(self, name: str) -> str:
        return await self.resolve(ORDER, name)

    async def lookup_label(self, name: str) -> str:
        return await self.resolve(LABEL, name)

    async def lookup_advertiser(self, name: str) -> str:
        return await self.resolve(ADVERTISER, name)

    async def resolve_criteria(
        self, pairs: Mapping[str, Any] | None, concurrency: int | None = None
    ) -> list[ResolvedCriteria]:
        """Resolve custom targeting key-name -> value-name pairs to ids.

        Each key is resolved first, then its value scoped by the key id.
        Results follow the input order.

        Args:
            pairs: Key names mapped to value names
            concurrency: Pairs resolved at once (defaults to settings.criteria_concurrency)
        """
        if not pairs:
            return []

        if concurrency is None:
            concurrency = self.settings.criteria_concurrency
        if concurrency < 1:
            raise ValueError(f"concurrency must be at least 1, got {concurrency}")
        semaphore = asyncio.Semaphore(concurrency)

        async def resolve_pair(key_name: str, value_name: Any) -> ResolvedCriteria:
            async with semaphore:
                key_id = await self.lookup_criteria_key(key_name)
                value_id = await self.lookup_criteria_value(str(value_name), key_id)
                return ResolvedCriteria(key_id=key_id, value_ids=(value_id,))

        return list(await asyncio.gather(*(resolve_pair(k, v) for k, v in pairs.items())))
