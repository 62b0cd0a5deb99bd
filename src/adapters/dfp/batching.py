"""
DFP Batch Coordinator

Splits prepared objects into size-bounded batches and runs a submission
action over them with bounded concurrency. A failing batch is recorded on its
own BatchResult and never aborts its siblings.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import Any, TypeVar

from src.core.config import DfpSettings

logger = logging.getLogger(__name__)

T = TypeVar("T")

BatchAction = Callable[[list[Any]], Awaitable[Any]]


@dataclass
class BatchResult:
    """Outcome of submitting one batch."""

    index: int
    items: list[Any]
    response: Any = None
    error: Exception | None = None

    @property
    def succeeded(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict[str, Any]:
        return {
            "index": self.index,
            "size": len(self.items),
            "succeeded": self.succeeded,
            "error": str(self.error) if self.error else None,
        }


def split(items: Sequence[T], max_batch_size: int) -> list[list[T]]:
    """Split ``items`` into consecutive batches of at most ``max_batch_size``.

    Every batch but the last holds exactly ``max_batch_size`` items.

    Raises:
        ValueError: If max_batch_size is smaller than 1
    """
    if max_batch_size < 1:
        raise ValueError(f"max_batch_size must be at least 1, got {max_batch_size}")
    items = list(items)
    return [items[start : start + max_batch_size] for start in range(0, len(items), max_batch_size)]


async def process(
    batches: Sequence[list[Any]],
    concurrency_limit: int,
    action: BatchAction,
    on_progress: Callable[[BatchResult], None] | None = None,
) -> list[BatchResult]:
    """Run ``action`` once per batch, at most ``concurrency_limit`` at a time.

    Args:
        batches: Batches to submit
        concurrency_limit: Maximum number of actions in flight
        action: Async callable receiving one batch
        on_progress: Called once per finished batch, failed or not

    Returns:
        One BatchResult per batch, in input order
    """
    if concurrency_limit < 1:
        raise ValueError(f"concurrency_limit must be at least 1, got {concurrency_limit}")

    semaphore = asyncio.Semaphore(concurrency_limit)

    async def run(index: int, batch: list[Any]) -> BatchResult:
        async with semaphore:
            try:
                result = BatchResult(index, batch, response=await action(batch))
            except Exception as e:
                logger.error(f"Batch {index + 1}/{len(batches)} of {len(batch)} items failed: {e}")
                result = BatchResult(index, batch, error=e)
        if on_progress is not None:
            on_progress(result)
        return result

    return list(await asyncio.gather(*(run(i, batch) for i, batch in enumerate(batches))))


class BatchCoordinator:
    """Holds the configured batch size and concurrency for split/process."""

    def __init__(self, settings: DfpSettings):
        self.max_batch_size = settings.max_batch_size
        self.concurrency_limit = settings.batch_concurrency

    def split(self, items: Sequence[T], max_batch_size: int | None = None) -> list[list[T]]:
        if max_batch_size is None:
            max_batch_size = self.max_batch_size
        return split(items, max_batch_size)

    async def process(
        self,
        batches: Sequence[list[Any]],
        action: BatchAction,
        on_progress: Callable[[BatchResult], None] | None = None,
        concurrency_limit: int | None = None,
    ) -> list[BatchResult]:
        if concurrency_limit is None:
            concurrency_limit = self.concurrency_limit
        return await process(batches, concurrency_limit, action, on_progress)
