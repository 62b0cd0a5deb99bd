"""
Structured logging for DFP bulk operations.

This module provides:
- Operation tracking with correlation IDs
- Per-operation API call and duration accounting
- A running metrics summary
"""

import logging
import time
import uuid
from contextlib import contextmanager
from datetime import datetime
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)


class DfpOperation(Enum):
    """Enumeration of DFP operations for consistent logging."""

    PREPARE_LINE_ITEMS = "prepare_line_items"
    PREPARE_ORDERS = "prepare_orders"
    PREPARE_CREATIVES = "prepare_creatives"
    PREPARE_ASSOCIATIONS = "prepare_associations"
    CREATE_LINE_ITEMS = "create_line_items"
    CREATE_ORDERS = "create_orders"
    CREATE_CREATIVES = "create_creatives"
    CREATE_ASSOCIATIONS = "create_associations"
    DEACTIVATE_ASSOCIATIONS = "deactivate_associations"


class DfpLogContext:
    """Context for structured logging of one DFP operation."""

    def __init__(self, operation: DfpOperation, metadata: dict[str, Any] | None = None):
        self.operation = operation
        self.correlation_id = str(uuid.uuid4())
        self.metadata = metadata or {}
        self.start_time: float | None = None
        self.end_time: float | None = None
        self.success = False
        self.error: Exception | None = None
        self.api_calls: list[dict[str, Any]] = []

    def add_api_call(self, service: str, method: str, item_count: int | None = None, success: bool = True):
        """Record an API call made during this operation."""
        self.api_calls.append(
            {
                "service": service,
                "method": method,
                "item_count": item_count,
                "success": success,
                "timestamp": datetime.now().isoformat(),
            }
        )

    @property
    def duration_ms(self) -> float | None:
        if self.start_time is None or self.end_time is None:
            return None
        return (self.end_time - self.start_time) * 1000

    def to_dict(self) -> dict[str, Any]:
        """Convert context to dictionary for logging."""
        return {
            "correlation_id": self.correlation_id,
            "operation": self.operation.value,
            "success": self.success,
            "duration_ms": self.duration_ms,
            "api_call_count": len(self.api_calls),
            "metadata": self.metadata,
            "error": str(self.error) if self.error else None,
        }


class DfpMetrics:
    """Collect counts and durations of DFP operations."""

    def __init__(self):
        self.operation_counts: dict[str, dict[str, int]] = {}
        self.api_call_counts: dict[str, int] = {}
        self.operation_durations: dict[str, list[float]] = {}

    def record_operation(self, context: DfpLogContext):
        op_name = context.operation.value
        counts = self.operation_counts.setdefault(op_name, {"success": 0, "failure": 0})
        counts["success" if context.success else "failure"] += 1

        if context.duration_ms is not None:
            self.operation_durations.setdefault(op_name, []).append(context.duration_ms)

        for api_call in context.api_calls:
            key = f"{api_call['service']}.{api_call['method']}"
            self.api_call_counts[key] = self.api_call_counts.get(key, 0) + 1

    def get_metrics(self) -> dict[str, Any]:
        """Get current metrics summary."""
        durations = {}
        for op_name, values in self.operation_durations.items():
            if values:
                durations[op_name] = {
                    "count": len(values),
                    "mean": sum(values) / len(values),
                    "max": max(values),
                }
        return {"operations": self.operation_counts, "api_calls": self.api_call_counts, "durations": durations}

    def reset(self):
        self.__init__()


_metrics = DfpMetrics()


def get_metrics() -> DfpMetrics:
    """Get the process-wide metrics collector."""
    return _metrics


@contextmanager
def log_dfp_operation(operation: DfpOperation, metadata: dict[str, Any] | None = None):
    """
    Context manager for logging DFP operations.

    Usage:
        with log_dfp_operation(DfpOperation.CREATE_LINE_ITEMS, {"items": 250}) as ctx:
            ...
            ctx.add_api_call("LineItemService", "createLineItems", item_count=100)
    """
    context = DfpLogContext(operation, metadata)
    context.start_time = time.time()

    logger.info(
        f"DFP operation started: {operation.value}",
        extra={"correlation_id": context.correlation_id, "operation": operation.value},
    )

    try:
        yield context
        context.success = True

    except Exception as e:
        context.error = e
        logger.error(
            f"DFP operation failed: {operation.value}",
            extra={"correlation_id": context.correlation_id, "error": str(e), "error_type": type(e).__name__},
            exc_info=True,
        )
        raise

    finally:
        context.end_time = time.time()
        _metrics.record_operation(context)

        if context.success:
            logger.info(f"DFP operation completed: {operation.value}", extra=context.to_dict())


def log_configuration(config_type: str, config: dict[str, Any]):
    """Log configuration details safely."""
    hidden = {"refresh_token", "client_secret", "service_account_json", "service_account_key_file"}
    safe_config = {k: v for k, v in config.items() if k not in hidden}

    logger.info(f"DFP configuration loaded: {config_type}", extra={"config_type": config_type, "config": safe_config})
