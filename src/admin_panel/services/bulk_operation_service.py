"""
Bulk operations on selected entities of a BulkOperable resource.

Selected keys are processed in batches of BulkOperationsConfig.batch_size.
Every item is authorized on its own and written in its own transaction, so
one rejected or failing item is reported in the result without undoing the
others. With continue_on_error disabled, processing stops after the first
batch that had a failure.

Built-in operations are "delete", "update" (the same data applied to every
item through its update fields) and "export". Any other configured
operation key is dispatched to a bulk_<key>(db, request, data) method on
the resource instance.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy.orm import Session

from admin_panel.core.constants import BULK_MAX_BATCHES
from admin_panel.core.database import transaction
from admin_panel.core.exceptions import AuthorizationError, ResourceNotFoundError, ValidationFailed
from admin_panel.fields.base import UPDATE
from admin_panel.resources.capabilities import BulkOperable, BulkOperationsConfig, Exportable, capability_config
from admin_panel.resources.request import AdminRequest
from admin_panel.services.export_service import ExportService
from admin_panel.services.resource_query_service import ResourceQueryService
from admin_panel.services.resource_service import ResourceService
from admin_panel.services.trash_service import TrashService
from admin_panel.utils.naming import snake

logger = logging.getLogger(__name__)

CONFIRMED_OPERATIONS = ("delete",)
DATA_OPERATIONS = ("update",)


class BulkItemFailed(Exception):
    """One selected item could not be processed."""
    pass


def _chunks(items: Sequence[Any], size: int) -> List[List[Any]]:
    size = max(1, size)
    return [list(items[start:start + size]) for start in range(0, len(items), size)]


class BulkOperationService:
    """Batched delete, update, export and custom operations."""

    @staticmethod
    def config(resource_cls: type) -> Optional[BulkOperationsConfig]:
        return capability_config(resource_cls, BulkOperable)

    @staticmethod
    def can_perform(resource_cls: type, request: AdminRequest, operation: str) -> bool:
        """Type-level check; delete, update and custom operations are authorized per item."""
        if request is None or request.user is None:
            return False
        if operation == "export":
            return issubclass(resource_cls, Exportable) and resource_cls.authorized_to_export(request)
        return True

    @staticmethod
    def available_operations(resource_cls: type, request: AdminRequest) -> List[Dict[str, Any]]:
        config = BulkOperationService.config(resource_cls)
        if config is None or not config.enabled:
            return []
        return [
            {
                "key": key,
                "label": label,
                "requires_confirmation": key in CONFIRMED_OPERATIONS,
                "requires_data": key in DATA_OPERATIONS,
            }
            for key, label in config.operations.items()
            if BulkOperationService.can_perform(resource_cls, request, key)
        ]

    @staticmethod
    def validate_operation(config: BulkOperationsConfig, operation: str, ids: Sequence[Any], data: Dict[str, Any]) -> None:
        """Raises ValidationFailed for an empty or oversized selection, or missing update data."""
        errors: Dict[str, List[str]] = {}
        limit = config.batch_size * BULK_MAX_BATCHES
        if not ids:
            errors.setdefault("ids", []).append("No items selected for bulk operation.")
        elif len(ids) > limit:
            errors.setdefault("ids", []).append(f"Too many items selected. Maximum allowed: {limit}")
        if operation in DATA_OPERATIONS and not data:
            errors.setdefault("data", []).append(f"Operation '{operation}' requires additional data.")
        if errors:
            raise ValidationFailed(errors)

    @staticmethod
    def stats(resource_cls: type) -> Dict[str, Any]:
        config = BulkOperationService.config(resource_cls) or BulkOperationsConfig(enabled=False)
        return {
            "enabled": config.enabled,
            "batch_size": config.batch_size,
            "continue_on_error": config.continue_on_error,
            "available_operations": list(config.operations),
            "total_operations": len(config.operations),
        }

    # ===== Entry point =====

    @staticmethod
    def execute(
        db: Session,
        resource_cls: type,
        request: AdminRequest,
        operation: str,
        ids: Sequence[Any],
        data: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Run a bulk operation over the selected keys.

        Raises:
            ResourceNotFoundError: the resource has no bulk operations, or not this one
            AuthorizationError: the user may not run the operation at all
            ValidationFailed: empty or oversized selection, or update without data

        Returns:
            {success, message, processed, failed, errors, details}; export
            adds the export result under "export"
        """
        config = BulkOperationService.config(resource_cls)
        if config is None or not config.enabled:
            raise ResourceNotFoundError(f"{resource_cls.label()} do not support bulk operations.", resource_cls.uri_key())
        if operation not in config.operations:
            raise ResourceNotFoundError(f"Bulk operation [{operation}] not found.", resource_cls.uri_key())
        if not BulkOperationService.can_perform(resource_cls, request, operation):
            raise AuthorizationError(operation)
        data = dict(data or {})
        ids = list(ids)
        BulkOperationService.validate_operation(config, operation, ids, data)

        if operation == "export":
            return BulkOperationService.export(db, resource_cls, request, ids, data)

        result: Dict[str, Any] = {
            "success": True,
            "message": "",
            "processed": 0,
            "failed": 0,
            "errors": [],
            "details": [],
        }
        batches = _chunks(ids, config.batch_size)
        for index, batch in enumerate(batches):
            processed, errors = BulkOperationService.process_batch(db, resource_cls, request, operation, batch, data)
            result["processed"] += processed
            result["failed"] += len(errors)
            result["errors"].extend(errors)
            result["details"].append({
                "batch": index + 1,
                "total_batches": len(batches),
                "processed": processed,
                "failed": len(errors),
                "progress": round((index + 1) / len(batches) * 100, 2),
            })
            if errors and not config.continue_on_error:
                result["success"] = False
                result["message"] = "Bulk operation stopped due to errors."
                break

        if result["processed"]:
            ResourceService.forget_cached(resource_cls)
        if result["message"]:
            pass
        elif result["failed"]:
            result["success"] = result["processed"] > 0
            result["message"] = (
                f"Bulk operation completed with {result['processed']} successes and {result['failed']} failures."
            )
        else:
            result["message"] = f"Bulk operation completed successfully. Processed {result['processed']} items."
        logger.info(
            f"Bulk {operation} on {resource_cls.uri_key()}: {result['processed']} processed, {result['failed']} failed"
        )
        return result

    @staticmethod
    def process_batch(
        db: Session,
        resource_cls: type,
        request: AdminRequest,
        operation: str,
        keys: Sequence[Any],
        data: Dict[str, Any],
    ) -> "tuple[int, List[str]]":
        """Process one batch; returns the processed count and one message per failed item."""
        processed = 0
        errors: List[str] = []
        for key in keys:
            try:
                BulkOperationService.process_item(db, resource_cls, request, operation, key, data)
                processed += 1
            except BulkItemFailed as e:
                errors.append(f"Failed to process item {key}: {e}")
            except ValidationFailed as e:
                messages = "; ".join(message for found in e.errors.values() for message in found)
                errors.append(f"Failed to process item {key}: {messages}")
            except Exception as e:
                logger.warning(f"Bulk {operation} of {resource_cls.uri_key()}:{key} failed: {e}")
                errors.append(f"Error processing item {key}: {e}")
        return processed, errors

    @staticmethod
    def process_item(
        db: Session,
        resource_cls: type,
        request: AdminRequest,
        operation: str,
        key: Any,
        data: Dict[str, Any],
    ) -> None:
        try:
            entity = ResourceQueryService.find_entity(db, resource_cls, request, key, detail=False)
        except ResourceNotFoundError:
            raise BulkItemFailed("not found")
        resource = resource_cls(entity)

        if operation == "delete":
            BulkOperationService.delete_item(db, resource, request)
        elif operation == "update":
            BulkOperationService.update_item(db, resource, request, data)
        else:
            handler = getattr(resource, f"bulk_{snake(operation)}", None)
            if not callable(handler):
                raise BulkItemFailed(f"{resource_cls.singular_label()} cannot handle '{operation}'")
            with transaction(db):
                if handler(db, request, data) is False:
                    raise BulkItemFailed(f"'{operation}' was refused")

    @staticmethod
    def delete_item(db: Session, resource: Any, request: AdminRequest) -> None:
        resource_cls = type(resource)
        if not resource.authorized_to_delete(request):
            raise BulkItemFailed("unauthorized")
        with transaction(db):
            if TrashService.uses_soft_deletes(resource_cls):
                if not TrashService.soft_delete(db, resource_cls, resource.resource):
                    raise BulkItemFailed("already trashed")
            else:
                db.delete(resource.resource)
                db.flush()

    @staticmethod
    def update_item(db: Session, resource: Any, request: AdminRequest, data: Dict[str, Any]) -> None:
        """Apply the shared data through the update fields it names."""
        if not resource.authorized_to_update(request):
            raise BulkItemFailed("unauthorized")
        item_request = AdminRequest(user=request.user, query=request.query, data=data)
        fields = [field for field in resource.update_fields(item_request) if field.attribute in data]
        if not fields:
            raise BulkItemFailed("no updatable fields in data")
        ResourceService.validate_request(item_request, fields, UPDATE)
        with transaction(db):
            resource.fill(item_request, fields)
            db.flush()
        ResourceService.after_write(db, resource, item_request, "Bulk updated")

    @staticmethod
    def export(
        db: Session,
        resource_cls: type,
        request: AdminRequest,
        ids: Sequence[Any],
        data: Dict[str, Any],
    ) -> Dict[str, Any]:
        """Export the selected entities the user may view."""
        allowed: List[Any] = []
        errors: List[str] = []
        for key in ids:
            try:
                entity = ResourceQueryService.find_entity(db, resource_cls, request, key, detail=False)
            except ResourceNotFoundError:
                errors.append(f"Failed to process item {key}: not found")
                continue
            resource = resource_cls(entity)
            if resource.authorized_to_view(request):
                allowed.append(resource.get_key())
            else:
                errors.append(f"Failed to process item {key}: unauthorized")

        exported = ExportService.export_resources(
            db, resource_cls, request, data.get("format"), {"fields": data.get("fields")}, keys=allowed
        )
        processed = exported.get("count", 0) if exported.get("success") else 0
        return {
            "success": bool(exported.get("success")),
            "message": exported.get("message", ""),
            "processed": processed,
            "failed": len(errors),
            "errors": errors,
            "details": [],
            "export": exported,
        }
