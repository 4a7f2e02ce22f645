"""
Version history service for Versionable resources.

Snapshots are the entity's mapped column values (minus exclusions, or an
allow-list), normalized to JSON. Each version carries a SHA-256 checksum of
the canonical JSON of the uncompressed snapshot; compressed versions store
zlib + base64 text. History is capped at max_versions after every create.
"""

import base64
import hashlib
import json
import logging
import zlib
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import func, inspect
from sqlalchemy.orm import Session

from admin_panel.models.resource_version import ResourceVersion
from admin_panel.resources.capabilities import Versionable, VersioningConfig
from admin_panel.utils.datetime_utils import ensure_utc
from admin_panel.utils.serialization import entity_to_dict

logger = logging.getLogger(__name__)


def _python_type(column: Any) -> Optional[type]:
    try:
        return column.type.python_type
    except NotImplementedError:
        return None


def _from_json(column: Any, value: Any) -> Any:
    """Convert a snapshot value back to the column's Python type."""
    if value is None:
        return None
    python_type = _python_type(column)
    if python_type is datetime and isinstance(value, str):
        return ensure_utc(datetime.fromisoformat(value))
    if python_type is date and isinstance(value, str):
        return date.fromisoformat(value)
    if python_type is Decimal and not isinstance(value, Decimal):
        return Decimal(str(value))
    return value


def canonical_json(data: Dict[str, Any]) -> str:
    return json.dumps(data, sort_keys=True, separators=(",", ":"), default=str)


def calculate_checksum(data: Dict[str, Any]) -> str:
    return hashlib.sha256(canonical_json(data).encode("utf-8")).hexdigest()


def compress_data(data: Dict[str, Any]) -> str:
    return base64.b64encode(zlib.compress(canonical_json(data).encode("utf-8"))).decode("ascii")


def decompress_data(payload: str) -> Dict[str, Any]:
    return json.loads(zlib.decompress(base64.b64decode(payload)).decode("utf-8"))


def _change_type(old: Any, new: Any) -> str:
    if old is None and new is not None:
        return "added"
    if old is not None and new is None:
        return "removed"
    return "modified"


class VersionService:
    """Service for creating, listing, diffing and restoring entity versions."""

    @staticmethod
    def config(resource: Any) -> VersioningConfig:
        if isinstance(resource, Versionable):
            return resource.versioning
        return VersioningConfig(enabled=False)

    @staticmethod
    def is_versionable_field(config: VersioningConfig, name: str) -> bool:
        if config.version_all_fields:
            return name not in config.excluded_fields
        return name in config.versioned_fields

    @staticmethod
    def versionable_data(resource: Any) -> Dict[str, Any]:
        """Current snapshot of the wrapped entity."""
        config = VersionService.config(resource)
        return {
            name: value
            for name, value in entity_to_dict(resource.resource).items()
            if VersionService.is_versionable_field(config, name)
        }

    @staticmethod
    def _history(db: Session, resource: Any):
        return db.query(ResourceVersion).filter(
            ResourceVersion.resource_type == resource.uri_key(),
            ResourceVersion.resource_id == str(resource.get_key()),
        )

    @staticmethod
    def _to_dict(version: ResourceVersion) -> Dict[str, Any]:
        data = decompress_data(version.data) if version.compressed else version.data
        return {
            "id": version.id,
            "resource_type": version.resource_type,
            "resource_id": version.resource_id,
            "version_number": version.version_number,
            "data": data,
            "compressed": version.compressed,
            "checksum": version.checksum,
            "reason": version.reason,
            "metadata": version.meta or {},
            "user_id": version.user_id,
            "created_at": ensure_utc(version.created_at).isoformat() if version.created_at else None,
        }

    @staticmethod
    def create_version(
        db: Session,
        resource: Any,
        reason: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
        user_id: Optional[str] = None,
    ) -> Optional[Dict[str, Any]]:
        """
        Record a snapshot of the wrapped entity as the next version.

        Args:
            db: Database session
            resource: Resource instance wrapping a persisted entity
            reason: Optional human-readable reason
            metadata: Optional caller metadata
            user_id: Identifier of the acting user

        Returns:
            The stored version, or None when versioning is disabled
        """
        config = VersionService.config(resource)
        if not config.enabled:
            return None

        data = VersionService.versionable_data(resource)
        latest = VersionService._history(db, resource).with_entities(
            func.max(ResourceVersion.version_number)
        ).scalar()
        version = ResourceVersion(
            resource_type=resource.uri_key(),
            resource_id=str(resource.get_key()),
            version_number=(latest or 0) + 1,
            data=compress_data(data) if config.compress else data,
            compressed=config.compress,
            checksum=calculate_checksum(data),
            reason=reason,
            meta=dict(metadata or {}),
            user_id=str(user_id) if user_id is not None else None,
        )
        db.add(version)
        db.flush()
        logger.debug(f"Created version {version.version_number} of {resource.uri_key()}:{version.resource_id}")

        VersionService.cleanup_old_versions(db, resource)
        return VersionService._to_dict(version)

    @staticmethod
    def get_versions(db: Session, resource: Any) -> List[Dict[str, Any]]:
        """All stored versions, oldest first."""
        rows = VersionService._history(db, resource).order_by(ResourceVersion.version_number.asc()).all()
        return [VersionService._to_dict(row) for row in rows]

    @staticmethod
    def get_version(db: Session, resource: Any, version_number: int) -> Optional[Dict[str, Any]]:
        row = VersionService._history(db, resource).filter(
            ResourceVersion.version_number == version_number
        ).first()
        return VersionService._to_dict(row) if row else None

    @staticmethod
    def get_latest_version(db: Session, resource: Any) -> Optional[Dict[str, Any]]:
        row = VersionService._history(db, resource).order_by(ResourceVersion.version_number.desc()).first()
        return VersionService._to_dict(row) if row else None

    @staticmethod
    def restore_to_version(
        db: Session,
        resource: Any,
        version_number: int,
        reason: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> bool:
        """
        Copy a version's snapshot back onto the entity.

        The current state is recorded as a new version first, so it is never
        lost. Primary key columns are not overwritten.

        Returns:
            False when versioning is disabled or the version does not exist
        """
        config = VersionService.config(resource)
        if not config.enabled:
            return False
        version = VersionService.get_version(db, resource, version_number)
        if version is None:
            return False

        VersionService.create_version(
            db, resource, reason or f"Restored to version {version_number}", user_id=user_id
        )

        entity = resource.resource
        mapper = inspect(type(entity))
        primary_keys = {mapper.get_property_by_column(column).key for column in mapper.primary_key}
        columns = {prop.key: prop.columns[0] for prop in mapper.column_attrs}
        for name, value in version["data"].items():
            if name in primary_keys or name not in columns:
                continue
            if VersionService.is_versionable_field(config, name):
                setattr(entity, name, _from_json(columns[name], value))
        db.flush()
        logger.info(f"Restored {resource.uri_key()}:{resource.get_key()} to version {version_number}")
        return True

    @staticmethod
    def compare_versions(db: Session, resource: Any, from_version: int, to_version: int) -> Dict[str, Any]:
        """Field-by-field diff; empty when either version is missing."""
        if not VersionService.config(resource).enabled:
            return {}
        old = VersionService.get_version(db, resource, from_version)
        new = VersionService.get_version(db, resource, to_version)
        if old is None or new is None:
            return {}

        changes: Dict[str, Dict[str, Any]] = {}
        for name in list(dict.fromkeys([*old["data"], *new["data"]])):
            old_value = old["data"].get(name)
            new_value = new["data"].get(name)
            if old_value != new_value:
                changes[name] = {"old": old_value, "new": new_value, "type": _change_type(old_value, new_value)}
        return {
            "from_version": from_version,
            "to_version": to_version,
            "changes": changes,
            "total_changes": len(changes),
        }

    @staticmethod
    def cleanup_old_versions(db: Session, resource: Any) -> int:
        """Keep the newest max_versions versions; returns how many were deleted."""
        max_versions = VersionService.config(resource).max_versions
        if max_versions <= 0:
            return 0
        stale = VersionService._history(db, resource).order_by(
            ResourceVersion.version_number.desc()
        ).offset(max_versions).all()
        for version in stale:
            db.delete(version)
        if stale:
            db.flush()
            logger.debug(f"Deleted {len(stale)} old version(s) of {resource.uri_key()}:{resource.get_key()}")
        return len(stale)

    @staticmethod
    def version_stats(db: Session, resource: Any) -> Dict[str, Any]:
        config = VersionService.config(resource)
        if not config.enabled:
            return {"enabled": False, "total_versions": 0}
        versions = VersionService.get_versions(db, resource)
        sizes = [len(canonical_json(version["data"])) for version in versions]
        numbers = [version["version_number"] for version in versions]
        return {
            "enabled": True,
            "total_versions": len(versions),
            "latest_version": max(numbers, default=0),
            "oldest_version": min(numbers, default=0),
            "total_size": sum(sizes),
            "average_size": sum(sizes) / len(sizes) if sizes else 0,
            "compression_enabled": config.compress,
            "auto_versioning": config.auto_version,
            "max_versions": config.max_versions,
        }

    @staticmethod
    def verify_checksum(version: Dict[str, Any]) -> bool:
        return calculate_checksum(version["data"]) == version["checksum"]
