"""
DFP Bulk Uploader

Drives one bulk upload end to end: prepare every domain object, split the
prepared ones into batches, and submit the batches with the create call for
their kind.
"""

import logging
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from src.core.config import DfpSettings

from .batching import BatchCoordinator, BatchResult
from .client import RemoteClient
from .operations import SUBMISSION_OPERATIONS
from .preparation import PreparationPipeline, PreparedItem
from .resolver import EntityResolver
from .utils.constants import DfpService, DomainKind
from .utils.logging import DfpOperation, log_dfp_operation

logger = logging.getLogger(__name__)

_CREATE_OPERATIONS = {
    DomainKind.LINE_ITEM: DfpOperation.CREATE_LINE_ITEMS,
    DomainKind.ORDER: DfpOperation.CREATE_ORDERS,
    DomainKind.CREATIVE: DfpOperation.CREATE_CREATIVES,
    DomainKind.ASSOCIATION: DfpOperation.CREATE_ASSOCIATIONS,
}

_SERVICES = {
    DomainKind.LINE_ITEM: DfpService.LINE_ITEM,
    DomainKind.ORDER: DfpService.ORDER,
    DomainKind.CREATIVE: DfpService.CREATIVE,
    DomainKind.ASSOCIATION: DfpService.ASSOCIATION,
}


@dataclass
class BulkUploadReport:
    """Preparation failures and per-batch outcomes of one upload."""

    kind: DomainKind
    total: int
    preparation_failures: list[PreparedItem] = field(default_factory=list)
    batches: list[BatchResult] = field(default_factory=list)

    @property
    def prepared_count(self) -> int:
        return self.total - len(self.preparation_failures)

    @property
    def submitted_count(self) -> int:
        return sum(len(batch.items) for batch in self.batches if batch.succeeded)

    @property
    def failed_batches(self) -> list[BatchResult]:
        return [batch for batch in self.batches if not batch.succeeded]

    @property
    def succeeded(self) -> bool:
        return not self.preparation_failures and not self.failed_batches

    def created(self) -> list[Any]:
        """Entities returned by the successful create calls, in batch order."""
        entities: list[Any] = []
        for batch in self.batches:
            if not batch.succeeded or batch.response is None:
                continue
            if isinstance(batch.response, list):
                entities.extend(batch.response)
            else:
                entities.append(batch.response)
        return entities

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "total": self.total,
            "prepared": self.prepared_count,
            "submitted": self.submitted_count,
            "preparation_failures": [
                {"index": failure.index, "error": str(failure.error)} for failure in self.preparation_failures
            ],
            "batches": [batch.to_dict() for batch in self.batches],
        }


class DfpBulkUploader:
    """Prepares and submits domain objects of one kind in batches."""

    def __init__(self, client: RemoteClient, resolver: EntityResolver, settings: DfpSettings):
        self.client = client
        self.resolver = resolver
        self.settings = settings
        self.pipeline = PreparationPipeline(resolver, settings)
        self.coordinator = BatchCoordinator(settings)

    async def upload(
        self,
        items: Sequence[Mapping[str, Any]],
        kind: DomainKind,
        on_progress: Callable[[BatchResult], None] | None = None,
    ) -> BulkUploadReport:
        """Prepare ``items`` and create them in DFP.

        Objects that fail preparation are reported and left out of the
        batches. A failing batch does not stop the others.
        """
        operation = SUBMISSION_OPERATIONS[kind]
        service = _SERVICES[kind]

        with log_dfp_operation(_CREATE_OPERATIONS[kind], {"items": len(items)}) as ctx:
            prepared = await self.pipeline.prepare_many(items, kind)
            failures = [outcome for outcome in prepared if not outcome.succeeded]
            ready = [outcome.prepared for outcome in prepared if outcome.succeeded]
            batches = self.coordinator.split(ready)

            logger.info(
                f"Submitting {len(ready)} prepared {kind.value} objects in {len(batches)} batches "
                f"({len(failures)} failed preparation)"
            )

            async def submit(batch: list[dict[str, Any]]) -> Any:
                try:
                    response = await operation(self.client, batch)
                except Exception:
                    ctx.add_api_call(service, operation.__name__, item_count=len(batch), success=False)
                    raise
                ctx.add_api_call(service, operation.__name__, item_count=len(batch))
                return response

            results = await self.coordinator.process(batches, submit, on_progress)
            report = BulkUploadReport(kind, len(items), failures, results)
            ctx.metadata.update(submitted=report.submitted_count, failed_batches=len(report.failed_batches))

        return report


def build_associations(
    line_item_ids: Iterable[Any],
    creative_ids: Iterable[Any],
    sizes: Iterable[str] | None = None,
) -> list[dict[str, Any]]:
    """Associate every line item with every creative.

    Args:
        line_item_ids: Line item ids
        creative_ids: Creative ids
        sizes: Optional creative sizes such as ``"300x250"``, attached to each association

    Returns:
        One association per (line item, creative) pair, line items outermost
    """
    size_objects = None
    if sizes:
        size_objects = []
        for size in sizes:
            width, _, height = str(size).partition("x")
            size_objects.append({"width": int(width), "height": int(height), "isAspectRatio": False})

    creative_ids = list(creative_ids)
    associations = []
    for line_item_id in line_item_ids:
        for creative_id in creative_ids:
            association: dict[str, Any] = {"lineItemId": line_item_id, "creativeId": creative_id}
            if size_objects is not None:
                association["sizes"] = [dict(size) for size in size_objects]
            associations.append(association)
    return associations
