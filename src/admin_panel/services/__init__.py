"""
Services package for resource behavior.

This package contains the service classes that implement querying,
capabilities (caching, trash, export, versioning, observers, nesting, bulk
operations) and the controller orchestration behind the resource endpoints.
"""

from .bulk_operation_service import BulkOperationService
from .cache_service import ResourceCacheService, resource_cache
from .export_service import ExportService
from .nesting_service import NestingService
from .observer_service import ObserverRegistry, ResourceObserver, observer_registry
from .resource_query_service import ResourceQueryService
from .resource_service import ResourceService
from .trash_service import TrashService
from .version_service import VersionService

__all__ = [
    "BulkOperationService",
    "ResourceCacheService",
    "resource_cache",
    "ExportService",
    "NestingService",
    "ObserverRegistry",
    "ResourceObserver",
    "observer_registry",
    "ResourceQueryService",
    "ResourceService",
    "TrashService",
    "VersionService",
]
