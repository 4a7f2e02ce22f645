"""
Response models for the resource endpoints.

Index, detail and schema payloads are shaped by the resources' own fields,
so those endpoints return plain dictionaries; the fixed-shape responses of
write operations are declared here.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel


class ResourceWriteResponse(BaseModel):
    """Response model for store and update."""
    message: str
    id: Any
    resource: Dict[str, Any]
    redirect: str


class ResourceDeleteResponse(BaseModel):
    """Response model for destroy."""
    message: str
    trashed: bool
    redirect: str


class TrashOperationResponse(BaseModel):
    """Response model for single-entity restore, force delete and move."""
    success: bool
    message: str


class BulkOperationResponse(BaseModel):
    """Response model for bulk trash operations."""
    message: str
    count: int


class BulkOperationResult(BaseModel):
    """Response model for batched bulk operations."""
    success: bool
    message: str
    processed: int
    failed: int
    errors: List[str]
    details: List[Dict[str, Any]]
    export: Optional[Dict[str, Any]] = None


class RelationshipResponse(BaseModel):
    """Response model for attach and detach."""
    message: str
    count: int


class NavigationGroup(BaseModel):
    """One group of the resource navigation."""
    group: str
    resources: List[Dict[str, Any]]


class NavigationResponse(BaseModel):
    """Response model for the resource navigation."""
    groups: List[NavigationGroup]
