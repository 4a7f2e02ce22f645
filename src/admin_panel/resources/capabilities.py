"""
Optional resource capabilities.

A resource opts into caching, soft deletes, export, versioning, observers,
bulk operations or nesting by mixing in the matching class. Each capability carries an immutable
config; the behavior lives in the corresponding service, which receives the
config explicitly.

Example:
    class ProductResource(Cacheable, Versionable, Resource):
        model = Product
        caching = CachingConfig(ttl=600)
        versioning = VersioningConfig(max_versions=10)
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Tuple

from admin_panel.core.config import CACHE_DEFAULT_TTL_SECONDS
from admin_panel.core.constants import (
    BULK_OPERATIONS,
    DEFAULT_BULK_BATCH_SIZE,
    DEFAULT_EXPORT_EXCLUSIONS,
    DEFAULT_EXPORT_FORMAT,
    DEFAULT_MAX_EXPORT_RECORDS,
    DEFAULT_MAX_VERSIONS,
    DEFAULT_NESTING_MAX_DEPTH,
    DEFAULT_TRASH_RETENTION_DAYS,
    DEFAULT_VERSION_EXCLUSIONS,
    EXPORT_FORMATS,
)


@dataclass(frozen=True)
class CachingConfig:
    enabled: bool = True
    ttl: int = CACHE_DEFAULT_TTL_SECONDS
    tags: Tuple[str, ...] = ()
    cache_index: bool = True
    cache_resources: bool = True
    cache_fields: bool = True
    cache_relationships: bool = True


@dataclass(frozen=True)
class SoftDeleteConfig:
    show_trashed_by_default: bool = False
    include_trashed_in_search: bool = True
    show_restore_action: bool = True
    show_force_delete_action: bool = True
    retention_days: int = DEFAULT_TRASH_RETENTION_DAYS


@dataclass(frozen=True)
class ExportConfig:
    enabled: bool = True
    formats: Tuple[str, ...] = tuple(EXPORT_FORMATS)
    default_format: str = DEFAULT_EXPORT_FORMAT
    max_records: int = DEFAULT_MAX_EXPORT_RECORDS
    include_timestamps: bool = True
    include_trashed: bool = False
    exclude: Tuple[str, ...] = DEFAULT_EXPORT_EXCLUSIONS
    # column -> fn(value, row) applied to each exported row
    transformations: Dict[str, Callable[[Any, Dict[str, Any]], Any]] = field(default_factory=dict)


@dataclass(frozen=True)
class VersioningConfig:
    enabled: bool = True
    max_versions: int = DEFAULT_MAX_VERSIONS
    version_all_fields: bool = True
    versioned_fields: Tuple[str, ...] = ()
    excluded_fields: Tuple[str, ...] = DEFAULT_VERSION_EXCLUSIONS
    auto_version: bool = True
    compress: bool = False


@dataclass(frozen=True)
class ObserverConfig:
    enabled: bool = True
    # Observer classes or dotted import paths, in dispatch order
    observers: Tuple[Any, ...] = ()
    guess: bool = True


@dataclass(frozen=True)
class BulkOperationsConfig:
    enabled: bool = True
    batch_size: int = DEFAULT_BULK_BATCH_SIZE
    # False stops after the first batch that had a failure
    continue_on_error: bool = True
    # operation key -> label
    operations: Dict[str, str] = field(default_factory=lambda: dict(BULK_OPERATIONS))


@dataclass(frozen=True)
class NestingConfig:
    # Resource class of the parent; None means the resource nests under itself
    parent_resource: Optional[type] = None
    parent_key: str = "parent_id"
    parent_relationship: str = "parent"
    children_relationship: str = "children"
    show_parent_in_breadcrumbs: bool = True
    show_children_in_detail: bool = True
    max_depth: int = DEFAULT_NESTING_MAX_DEPTH


class Cacheable:
    caching: CachingConfig = CachingConfig()


class SoftDeletable:
    soft_deletes: SoftDeleteConfig = SoftDeleteConfig()


class Exportable:
    exporting: ExportConfig = ExportConfig()


class Versionable:
    versioning: VersioningConfig = VersioningConfig()


class Observable:
    observing: ObserverConfig = ObserverConfig()


class BulkOperable:
    bulk_operations: BulkOperationsConfig = BulkOperationsConfig()


class Nestable:
    nesting: NestingConfig = NestingConfig()


def capability_config(resource_cls: type, capability: type) -> Optional[Any]:
    """Config of a capability for a resource class, or None when it lacks the capability."""
    attribute = {
        Cacheable: "caching",
        SoftDeletable: "soft_deletes",
        Exportable: "exporting",
        Versionable: "versioning",
        Observable: "observing",
        BulkOperable: "bulk_operations",
        Nestable: "nesting",
    }[capability]
    if not issubclass(resource_cls, capability):
        return None
    return getattr(resource_cls, attribute)
