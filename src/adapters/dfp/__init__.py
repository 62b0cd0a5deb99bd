"""
DFP (DoubleClick for Publishers) Bulk Trafficking Modules

This package contains the components used to traffic orders, line items,
creatives and line item creative associations in bulk:

- query: PQL filter building
- cache: Persistent name -> id lookup stores
- resolver: Cache-first entity resolution
- preparation: Step pipelines replacing names with ids
- batching: Batch splitting and bounded-concurrency submission
- auth / client: Credentials and the googleads-backed RemoteClient
- operations / bulk: Submission calls and the end-to-end uploader
- utils: Shared utilities and helpers
"""

from src.core.config import DfpSettings

from .auth import DfpAuthManager
from .batching import BatchCoordinator, BatchResult, process, split
from .bulk import BulkUploadReport, DfpBulkUploader, build_associations
from .cache import LookupCache, LookupCacheRegistry
from .client import DfpClientManager, RemoteClient
from .preparation import PreparationPipeline, PreparedItem
from .progress import BatchProgress, upload_with_progress
from .query import DfpQuery, build_query
from .resolver import EntityResolver, ResolvedCriteria


def build_uploader(settings: DfpSettings, client: RemoteClient | None = None) -> DfpBulkUploader:
    """Wire a DfpBulkUploader from settings.

    Args:
        settings: DFP configuration
        client: Optional RemoteClient; a DfpClientManager is built when omitted

    Returns:
        Uploader whose resolver caches live under settings.cache_dir
    """
    remote = client if client is not None else DfpClientManager(settings)
    resolver = EntityResolver(remote, LookupCacheRegistry(settings.cache_dir), settings)
    return DfpBulkUploader(remote, resolver, settings)


__all__ = [
    "BatchCoordinator",
    "BatchProgress",
    "BatchResult",
    "BulkUploadReport",
    "DfpAuthManager",
    "DfpBulkUploader",
    "DfpClientManager",
    "DfpQuery",
    "EntityResolver",
    "LookupCache",
    "LookupCacheRegistry",
    "PreparationPipeline",
    "PreparedItem",
    "RemoteClient",
    "ResolvedCriteria",
    "build_associations",
    "build_query",
    "build_uploader",
    "process",
    "split",
    "upload_with_progress",
]
