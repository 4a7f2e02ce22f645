"""
Soft-delete (trash) service.

Entity states: Active -> Trashed -> Active (restore) or permanently deleted
(force delete). A model supports soft deletes when it subclasses
SoftDeleteMixin; the resource's SoftDeleteConfig (or the defaults) supplies
retention and action visibility.

Methods flush but never commit; callers own the transaction.
"""

import logging
from datetime import timedelta
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy.orm import Query, Session

from admin_panel.resources.capabilities import SoftDeletable, SoftDeleteConfig
from admin_panel.resources.request import AdminRequest
from admin_panel.services.observer_service import observers_for
from admin_panel.utils.datetime_utils import ensure_utc, format_datetime_string, utc_now

logger = logging.getLogger(__name__)

TRASHED_WITH = "with"
TRASHED_ONLY = "only"


class TrashService:
    """Service for moving entities to and from the trash."""

    @staticmethod
    def config(resource_cls: type) -> SoftDeleteConfig:
        if issubclass(resource_cls, SoftDeletable):
            return resource_cls.soft_deletes
        return SoftDeleteConfig()

    @staticmethod
    def uses_soft_deletes(resource_cls: type) -> bool:
        return resource_cls.supports_soft_deletes()

    # ===== Queries =====

    @staticmethod
    def apply_scope(resource_cls: type, query: Query, mode: Optional[str] = None) -> Query:
        """
        Apply the trash scope to a query.

        mode None excludes trashed rows (or includes them when the resource
        shows trashed by default), "with" includes them, "only" returns only
        trashed rows. Queries of models without soft deletes pass through.
        """
        if not TrashService.uses_soft_deletes(resource_cls):
            return query
        column = resource_cls.model.deleted_at
        if mode == TRASHED_ONLY:
            return query.filter(column.isnot(None))
        if mode == TRASHED_WITH:
            return query
        if mode is None and TrashService.config(resource_cls).show_trashed_by_default:
            return query
        return query.filter(column.is_(None))

    @staticmethod
    def _trashed_query(db: Session, resource_cls: type) -> Query:
        return db.query(resource_cls.model).filter(resource_cls.model.deleted_at.isnot(None))

    @staticmethod
    def _retention_cutoff(resource_cls: type):
        return utc_now() - timedelta(days=TrashService.config(resource_cls).retention_days)

    # ===== Entity state =====

    @staticmethod
    def is_trashed(entity: Any) -> bool:
        return getattr(entity, "deleted_at", None) is not None

    @staticmethod
    def get_deleted_at(entity: Any) -> Optional[str]:
        return format_datetime_string(ensure_utc(getattr(entity, "deleted_at", None)))

    @staticmethod
    def days_since_deletion(entity: Any) -> Optional[int]:
        deleted_at = ensure_utc(getattr(entity, "deleted_at", None))
        if deleted_at is None:
            return None
        return (utc_now() - deleted_at).days

    @staticmethod
    def is_permanently_deletable(resource_cls: type, entity: Any) -> bool:
        days = TrashService.days_since_deletion(entity)
        return days is not None and days >= TrashService.config(resource_cls).retention_days

    # ===== Transitions =====

    @staticmethod
    def soft_delete(db: Session, resource_cls: type, entity: Any) -> bool:
        """
        Move an active entity to the trash.

        Returns:
            False when the model has no soft deletes or the entity is already trashed
        """
        if not TrashService.uses_soft_deletes(resource_cls) or TrashService.is_trashed(entity):
            return False
        entity.deleted_at = utc_now()
        db.flush()
        observers_for(resource_cls).trigger(resource_cls, "trashed", entity)
        logger.info(f"Moved {resource_cls.__name__} {resource_cls(entity).get_key()} to trash")
        return True

    @staticmethod
    def restore(db: Session, resource_cls: type, entity: Any) -> bool:
        """
        Bring a trashed entity back.

        Returns:
            False (no-op) when soft deletes are unsupported, the entity is not
            trashed, or a restoring observer halted the restore
        """
        if not TrashService.uses_soft_deletes(resource_cls) or not TrashService.is_trashed(entity):
            return False
        observers = observers_for(resource_cls)
        if not observers.trigger(resource_cls, "restoring", entity):
            return False
        entity.deleted_at = None
        db.flush()
        observers.trigger(resource_cls, "restored", entity)
        logger.info(f"Restored {resource_cls.__name__} {resource_cls(entity).get_key()}")
        return True

    @staticmethod
    def force_delete(db: Session, resource_cls: type, entity: Any) -> bool:
        """
        Permanently delete an entity, trashed or not.

        Returns:
            False (no-op) when soft deletes are unsupported or a
            force_deleting observer halted the delete
        """
        if not TrashService.uses_soft_deletes(resource_cls):
            return False
        observers = observers_for(resource_cls)
        if not observers.trigger(resource_cls, "force_deleting", entity):
            return False
        key = resource_cls(entity).get_key()
        db.delete(entity)
        db.flush()
        observers.trigger(resource_cls, "force_deleted", entity)
        logger.info(f"Permanently deleted {resource_cls.__name__} {key}")
        return True

    @staticmethod
    def _trashed_by_ids(db: Session, resource_cls: type, ids: Sequence[Any]) -> List[Any]:
        if not ids:
            return []
        key_column = getattr(resource_cls.model, resource_cls.key_name())
        return TrashService._trashed_query(db, resource_cls).filter(key_column.in_(list(ids))).all()

    @staticmethod
    def bulk_restore(db: Session, resource_cls: type, ids: Sequence[Any]) -> int:
        """Restore the trashed entities among ids; returns how many were restored."""
        if not TrashService.uses_soft_deletes(resource_cls):
            return 0
        return sum(
            1 for entity in TrashService._trashed_by_ids(db, resource_cls, ids)
            if TrashService.restore(db, resource_cls, entity)
        )

    @staticmethod
    def bulk_force_delete(db: Session, resource_cls: type, ids: Sequence[Any]) -> int:
        """Permanently delete the trashed entities among ids."""
        if not TrashService.uses_soft_deletes(resource_cls):
            return 0
        return sum(
            1 for entity in TrashService._trashed_by_ids(db, resource_cls, ids)
            if TrashService.force_delete(db, resource_cls, entity)
        )

    @staticmethod
    def cleanup_old_trashed(db: Session, resource_cls: type) -> int:
        """Permanently delete entities trashed at least retention_days ago."""
        if not TrashService.uses_soft_deletes(resource_cls):
            return 0
        expired = TrashService._trashed_query(db, resource_cls).filter(
            resource_cls.model.deleted_at <= TrashService._retention_cutoff(resource_cls)
        ).all()
        count = sum(1 for entity in expired if TrashService.force_delete(db, resource_cls, entity))
        if count:
            logger.info(f"Cleaned up {count} old trashed {resource_cls.label()}")
        return count

    # ===== Reporting =====

    @staticmethod
    def trash_stats(db: Session, resource_cls: type) -> Dict[str, Any]:
        retention_days = TrashService.config(resource_cls).retention_days
        if not TrashService.uses_soft_deletes(resource_cls):
            return {
                "total_trashed": 0,
                "permanently_deletable": 0,
                "retention_days": retention_days,
                "uses_soft_deletes": False,
            }
        trashed = TrashService._trashed_query(db, resource_cls)
        deletable = trashed.filter(
            resource_cls.model.deleted_at <= TrashService._retention_cutoff(resource_cls)
        )
        return {
            "total_trashed": trashed.count(),
            "permanently_deletable": deletable.count(),
            "retention_days": retention_days,
            "uses_soft_deletes": True,
        }

    @staticmethod
    def trash_status_info(resource_cls: type, entity: Any) -> Dict[str, Any]:
        if not TrashService.uses_soft_deletes(resource_cls):
            return {"is_trashed": False, "uses_soft_deletes": False}
        return {
            "is_trashed": TrashService.is_trashed(entity),
            "deleted_at": TrashService.get_deleted_at(entity),
            "days_since_deletion": TrashService.days_since_deletion(entity),
            "is_permanently_deletable": TrashService.is_permanently_deletable(resource_cls, entity),
            "retention_days": TrashService.config(resource_cls).retention_days,
            "uses_soft_deletes": True,
        }

    @staticmethod
    def soft_delete_actions(resource: Any, request: AdminRequest) -> List[Dict[str, Any]]:
        """Trash-related actions available on one wrapped entity."""
        resource_cls = type(resource)
        if not TrashService.uses_soft_deletes(resource_cls):
            return []

        config = TrashService.config(resource_cls)
        actions: List[Dict[str, Any]] = []
        if TrashService.is_trashed(resource.resource):
            if config.show_restore_action and resource.authorized_to_restore(request):
                actions.append({
                    "name": "restore",
                    "label": "Restore",
                    "icon": "arrow-path",
                    "type": "success",
                    "confirmation": "Are you sure you want to restore this item?",
                })
            if config.show_force_delete_action and resource.authorized_to_force_delete(request):
                actions.append({
                    "name": "force-delete",
                    "label": "Delete Permanently",
                    "icon": "trash",
                    "type": "danger",
                    "confirmation": "Are you sure you want to permanently delete this item? This action cannot be undone.",
                })
        elif resource.authorized_to_delete(request):
            actions.append({
                "name": "soft-delete",
                "label": "Move to Trash",
                "icon": "archive-box",
                "type": "warning",
                "confirmation": "Are you sure you want to move this item to trash?",
            })
        return actions
