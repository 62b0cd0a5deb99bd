"""
DFP Utilities Module

This module provides utilities for DFP bulk trafficking including:
- Error handling for lookup, preparation and transport failures
- Logging utilities for structured operation tracking
- Formatters for dates and custom criteria
- Constants for services, cache namespaces and domain kinds
"""

from .constants import (
    DFP_API_VERSION,
    DFP_SCOPES,
    CacheNamespace,
    DfpService,
    DomainKind,
)
from .error_handler import (
    DfpAmbiguousResultError,
    DfpAuthenticationError,
    DfpCacheWriteError,
    DfpConfigurationError,
    DfpError,
    DfpErrorType,
    DfpMissingReferenceError,
    DfpNetworkError,
    DfpPermissionError,
    DfpPreparationError,
    DfpQueryBuildError,
    DfpQuotaError,
    DfpRemoteCallError,
    DfpResourceNotFoundError,
    DfpTimeoutError,
    extract_first_id,
    extract_results,
    map_dfp_exception,
)
from .formatters import format_custom_criteria, format_start_date_time, parse_human_date
from .logging import DfpLogContext, DfpMetrics, DfpOperation, get_metrics, log_configuration, log_dfp_operation

__all__ = [
    # Constants
    "DFP_API_VERSION",
    "DFP_SCOPES",
    "CacheNamespace",
    "DfpService",
    "DomainKind",
    # Error handling
    "DfpError",
    "DfpErrorType",
    "DfpQueryBuildError",
    "DfpRemoteCallError",
    "DfpAuthenticationError",
    "DfpPermissionError",
    "DfpQuotaError",
    "DfpNetworkError",
    "DfpTimeoutError",
    "DfpResourceNotFoundError",
    "DfpAmbiguousResultError",
    "DfpCacheWriteError",
    "DfpPreparationError",
    "DfpMissingReferenceError",
    "DfpConfigurationError",
    "map_dfp_exception",
    "extract_results",
    "extract_first_id",
    # Formatters
    "format_start_date_time",
    "format_custom_criteria",
    "parse_human_date",
    # Logging
    "DfpOperation",
    "DfpLogContext",
    "DfpMetrics",
    "get_metrics",
    "log_dfp_operation",
    "log_configuration",
]
