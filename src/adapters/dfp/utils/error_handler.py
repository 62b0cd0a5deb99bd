"""
Error handling for the DFP bulk trafficking adapter.

This module provides:
- Structured exception hierarchy for lookups, preparation and submission
- Mapping of transport exceptions to that hierarchy
- Response validation helpers used by entity resolution
"""

import logging
import traceback
from datetime import datetime
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)


class DfpErrorType(Enum):
    """Categorized error types for DFP operations."""

    QUERY_BUILD = "query_build_error"
    REMOTE_CALL = "remote_call_error"
    AUTHENTICATION = "authentication_error"
    PERMISSION = "permission_error"
    QUOTA_EXCEEDED = "quota_exceeded"
    NETWORK = "network_error"
    TIMEOUT = "timeout_error"
    RESOURCE_NOT_FOUND = "resource_not_found"
    AMBIGUOUS_RESULT = "ambiguous_result"
    CACHE_WRITE = "cache_write_error"
    PREPARATION = "preparation_error"
    MISSING_REFERENCE = "missing_reference"
    CONFIGURATION = "configuration_error"
    UNKNOWN = "unknown_error"


class DfpError(Exception):
    """Base exception for all DFP adapter errors."""

    def __init__(
        self,
        message: str,
        error_type: DfpErrorType = DfpErrorType.UNKNOWN,
        details: dict[str, Any] | None = None,
        recoverable: bool = True,
    ):
        super().__init__(message)
        self.error_type = error_type
        self.details = details or {}
        self.recoverable = recoverable
        self.timestamp = datetime.now()

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/monitoring."""
        return {
            "error_type": self.error_type.value,
            "message": str(self),
            "details": self.details,
            "recoverable": self.recoverable,
            "timestamp": self.timestamp.isoformat(),
        }


class DfpQueryBuildError(DfpError):
    """Raised when a condition set cannot be turned into a usable filter."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, DfpErrorType.QUERY_BUILD, details, recoverable=False)


class DfpRemoteCallError(DfpError):
    """Raised when a call to the remote platform fails in transport."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        error_type: DfpErrorType = DfpErrorType.REMOTE_CALL,
        recoverable: bool = True,
    ):
        super().__init__(message, error_type, details, recoverable=recoverable)


class DfpAuthenticationError(DfpRemoteCallError):
    """Raised when authentication with DFP fails."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, details, DfpErrorType.AUTHENTICATION, recoverable=False)


class DfpPermissionError(DfpRemoteCallError):
    """Raised when operation is not permitted."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, details, DfpErrorType.PERMISSION, recoverable=False)


class DfpQuotaError(DfpRemoteCallError):
    """Raised when API quota is exceeded."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, details, DfpErrorType.QUOTA_EXCEEDED, recoverable=True)


class DfpNetworkError(DfpRemoteCallError):
    """Raised for network-related issues."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, details, DfpErrorType.NETWORK, recoverable=True)


class DfpTimeoutError(DfpRemoteCallError):
    """Raised when operation times out."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, details, DfpErrorType.TIMEOUT, recoverable=True)


class DfpResourceNotFoundError(DfpError):
    """Raised when a lookup that expects one result returns none."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, DfpErrorType.RESOURCE_NOT_FOUND, details, recoverable=False)


class DfpAmbiguousResultError(DfpError):
    """Raised when a lookup returns several results and strict lookups are enabled."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, DfpErrorType.AMBIGUOUS_RESULT, details, recoverable=False)


class DfpCacheWriteError(DfpError):
    """Raised when a resolved identifier cannot be stored in the lookup cache."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, DfpErrorType.CACHE_WRITE, details, recoverable=True)


class DfpPreparationError(DfpError):
    """Raised when a domain object cannot be prepared for submission.

    Carries the item's name and the failing step so a batch-level caller can
    report which item failed.
    """

    def __init__(
        self,
        message: str,
        item_name: str | None = None,
        step: str | None = None,
        details: dict[str, Any] | None = None,
        error_type: DfpErrorType = DfpErrorType.PREPARATION,
    ):
        details = dict(details or {})
        details.setdefault("item_name", item_name)
        details.setdefault("step", step)
        super().__init__(message, error_type, details, recoverable=False)
        self.item_name = item_name
        self.step = step


class DfpMissingReferenceError(DfpPreparationError):
    """Raised when a domain object lacks a named reference its pipeline requires."""

    def __init__(self, field: str, item_name: str | None = None, step: str | None = None):
        super().__init__(
            f"Item '{item_name or '<unnamed>'}' is missing required field '{field}'",
            item_name=item_name,
            step=step,
            details={"field": field},
            error_type=DfpErrorType.MISSING_REFERENCE,
        )
        self.field = field


class DfpConfigurationError(DfpError):
    """Raised for configuration issues."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, DfpErrorType.CONFIGURATION, details, recoverable=False)


def map_dfp_exception(exception: Exception) -> DfpRemoteCallError:
    """
    Map transport exceptions to our structured error types.

    Args:
        exception: The original exception raised by the googleads/zeep stack

    Returns:
        Appropriate DfpRemoteCallError subclass
    """
    if isinstance(exception, DfpRemoteCallError):
        return exception

    error_message = str(exception)
    type_name = type(exception).__name__
    error_details = {"original_type": type_name, "traceback": traceback.format_exc()}
    lowered = error_message.lower()

    if "AuthenticationError" in error_message or "AuthError" in type_name or "authentication" in lowered:
        return DfpAuthenticationError(f"DFP authentication failed: {error_message}", error_details)

    elif "PermissionError" in error_message or "PermissionError" in type_name or "permission" in lowered:
        return DfpPermissionError(f"DFP permission denied: {error_message}", error_details)

    elif "QuotaError" in error_message or "QuotaError" in type_name or "quota" in lowered:
        return DfpQuotaError(f"DFP quota exceeded: {error_message}", error_details)

    elif "TimeoutError" in type_name or "timed out" in lowered or "timeout" in lowered:
        return DfpTimeoutError(f"DFP operation timed out: {error_message}", error_details)

    elif isinstance(exception, ConnectionError) or "NetworkError" in type_name or "network" in lowered:
        return DfpNetworkError(f"DFP network error: {error_message}", error_details)

    return DfpRemoteCallError(f"DFP call failed: {error_message}", error_details)


def _get_field(obj: Any, name: str) -> Any:
    if isinstance(obj, dict):
        return obj.get(name)
    return getattr(obj, name, None)


def extract_results(response: Any, context: dict[str, Any] | None = None) -> list[Any]:
    """
    Pull the result list out of a DFP query response.

    Args:
        response: A dict or zeep object carrying a ``results`` field
        context: Extra details attached to the error on failure

    Returns:
        The non-empty results list

    Raises:
        DfpResourceNotFoundError: If the response has no results
    """
    results = _get_field(response, "results") if response is not None else None
    if not results:
        raise DfpResourceNotFoundError("Expected to find results, but there were none", context)
    return list(results)


def extract_first_id(results: list[Any], context: dict[str, Any] | None = None) -> str:
    """
    Return the id of the first result in server order.

    Raises:
        DfpResourceNotFoundError: If the first result carries no id
    """
    first = results[0] if results else None
    identifier = _get_field(first, "id") if first is not None else None
    if identifier is None or identifier == "":
        raise DfpResourceNotFoundError("Expected to find an id, but didn't", context)
    return str(identifier)
