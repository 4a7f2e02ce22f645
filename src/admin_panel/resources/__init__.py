"""
Resource definitions: the Resource base class, capabilities, filters,
actions and the panel registry.
"""

from admin_panel.resources.actions import Action
from admin_panel.resources.capabilities import (
    BulkOperable,
    BulkOperationsConfig,
    Cacheable,
    CachingConfig,
    Exportable,
    ExportConfig,
    Nestable,
    NestingConfig,
    Observable,
    ObserverConfig,
    SoftDeletable,
    SoftDeleteConfig,
    Versionable,
    VersioningConfig,
)
from admin_panel.resources.filters import BooleanFilter, DateRangeFilter, Filter, SelectFilter
from admin_panel.resources.request import AdminRequest
from admin_panel.resources.resource import Resource

__all__ = [
    "Action",
    "AdminRequest",
    "BooleanFilter",
    "BulkOperable",
    "BulkOperationsConfig",
    "Cacheable",
    "CachingConfig",
    "DateRangeFilter",
    "Exportable",
    "ExportConfig",
    "Filter",
    "Nestable",
    "NestingConfig",
    "Observable",
    "ObserverConfig",
    "Resource",
    "SelectFilter",
    "SoftDeletable",
    "SoftDeleteConfig",
    "Versionable",
    "VersioningConfig",
]
