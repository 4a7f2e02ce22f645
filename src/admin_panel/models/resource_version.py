"""
ResourceVersion model storing the version history of versionable resources.

Each row is an immutable snapshot of one entity at one point in time.
Version numbers increase monotonically per (resource_type, resource_id).
"""

from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import JSON, TIMESTAMP, Boolean, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from admin_panel.core.database import Base


class ResourceVersion(Base):
    """A stored snapshot of a resource entity."""

    __tablename__ = "admin_resource_versions"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    """Unique identifier for the version row."""

    resource_type: Mapped[str] = mapped_column(String(255), index=True)
    """URI key of the resource type the snapshot belongs to (e.g. "blog-posts")."""

    resource_id: Mapped[str] = mapped_column(String(255), index=True)
    """Primary key of the snapshotted entity, stored as a string."""

    version_number: Mapped[int] = mapped_column(Integer)
    """Monotonic version number, starting at 1."""

    data: Mapped[Any] = mapped_column(JSON)
    """Snapshot payload: a JSON object, or a base64 zlib string when compressed."""

    compressed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    """True when data holds a compressed payload."""

    checksum: Mapped[str] = mapped_column(String(64))
    """SHA-256 of the canonical JSON of the uncompressed snapshot."""

    reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    """Optional human-readable reason for the version."""

    meta: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON, nullable=True)
    """Caller-provided metadata."""

    user_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    """Identifier of the user who caused the version, if known."""

    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    """Timestamp when the version was recorded."""

    __table_args__ = (
        UniqueConstraint('resource_type', 'resource_id', 'version_number', name='uq_resource_version_number'),
    )
