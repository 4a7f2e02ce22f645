# pyright: reportMissingTypeStubs=false
"""
Resource API endpoints.

Generic CRUD, trash, export, version, action, bulk, relationship and nesting
endpoints for every resource registered with the admin panel, addressed by
URI key. Domain exceptions raised by the services are translated here:
unknown resource or entity -> 404, denied ability -> 403, rejected input -> 422.
"""

import logging
from typing import Any, Dict, NoReturn, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse, Response
from sqlalchemy.orm import Session

from admin_panel.api.responses import (
    BulkOperationResponse,
    BulkOperationResult,
    NavigationResponse,
    RelationshipResponse,
    ResourceDeleteResponse,
    ResourceWriteResponse,
    TrashOperationResponse,
)
from admin_panel.auth.dependencies import UserContext, get_current_user
from admin_panel.core.config import ADMIN_PANEL_PATH
from admin_panel.core.constants import EXPORT_FORMATS
from admin_panel.core.database import get_db
from admin_panel.core.exceptions import AuthorizationError, ResourceNotFoundError, ValidationFailed
from admin_panel.fields.relationships import RelationshipField
from admin_panel.resources.registry import AdminPanel, get_admin_panel
from admin_panel.resources.request import AdminRequest
from admin_panel.services.bulk_operation_service import BulkOperationService
from admin_panel.services.export_service import ExportService
from admin_panel.services.resource_service import ResourceService

logger = logging.getLogger(__name__)

router = APIRouter()


async def get_admin_request(
    request: Request,
    current_user: UserContext = Depends(get_current_user),
) -> AdminRequest:
    """Build the request context from the query string and JSON body."""
    data: Dict[str, Any] = {}
    if request.method in ("POST", "PUT", "PATCH", "DELETE"):
        body = await request.body()
        if body:
            try:
                decoded = await request.json()
            except ValueError:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="Request body must be valid JSON"
                )
            if isinstance(decoded, dict):
                data = decoded
            else:
                logger.warning(f"Ignoring non-object JSON body on {request.url.path}")
    return AdminRequest(user=current_user, query=dict(request.query_params), data=data)


def resource_url(uri_key: str, key: Any = None) -> str:
    """Panel URL of a resource index, or of one entity's detail page."""
    url = f"{ADMIN_PANEL_PATH}/resources/{uri_key}"
    return url if key is None else f"{url}/{key}"


def _find_resource(panel: AdminPanel, uri_key: str) -> type:
    resource_cls = panel.find_resource(uri_key)
    if resource_cls is None:
        raise ResourceNotFoundError(f"Resource [{uri_key}] not found.", uri_key)
    return resource_cls


def _related_resource(panel: AdminPanel, resource_cls: type, request: AdminRequest, name: str) -> Optional[type]:
    """The panel-bound class of a relationship field's related resource, when registered."""
    for field in resource_cls().available_fields(request):
        if isinstance(field, RelationshipField) and field.attribute == name and field.resource_class is not None:
            return panel.resource(field.resource_class)
    return None


def _raise_http(e: Exception, db: Session, context: str) -> NoReturn:
    """Translate a service exception into an HTTPException, rolling back on unexpected errors."""
    if isinstance(e, ResourceNotFoundError):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    if isinstance(e, AuthorizationError):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    logger.exception(f"Error {context}: {e}")
    db.rollback()
    raise HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"Error {context}"
    )


def _validation_response(e: ValidationFailed) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, content=e.to_dict())


@router.get("", summary="List navigable resources", response_model=NavigationResponse)
async def list_resources(
    admin_request: AdminRequest = Depends(get_admin_request),
    panel: AdminPanel = Depends(get_admin_panel),
) -> NavigationResponse:
    """Registered resources the user may view, grouped for navigation."""
    return NavigationResponse(groups=panel.navigation(admin_request))


@router.get("/{resource}", summary="List resource entities")
async def index(
    resource: str,
    admin_request: AdminRequest = Depends(get_admin_request),
    db: Session = Depends(get_db),
    panel: AdminPanel = Depends(get_admin_panel),
) -> Dict[str, Any]:
    """
    Paginated index of a resource.

    Query parameters: search, filters (JSON object or filters[key]=value),
    sort_field, sort_direction (asc|desc), per_page (capped), page and
    trashed (with|only) for soft-deletable resources.
    """
    try:
        resource_cls = _find_resource(panel, resource)
        return ResourceService.index(db, resource_cls, admin_request)
    except HTTPException:
        raise
    except Exception as e:
        _raise_http(e, db, f"listing {resource}")


@router.get("/{resource}/create", summary="Creation form schema")
async def create(
    resource: str,
    admin_request: AdminRequest = Depends(get_admin_request),
    db: Session = Depends(get_db),
    panel: AdminPanel = Depends(get_admin_panel),
) -> Dict[str, Any]:
    try:
        resource_cls = _find_resource(panel, resource)
        return ResourceService.creation_schema(resource_cls, admin_request)
    except HTTPException:
        raise
    except Exception as e:
        _raise_http(e, db, f"building the {resource} creation form")


@router.post("/{resource}", summary="Store a new entity", status_code=status.HTTP_201_CREATED)
async def store(
    resource: str,
    admin_request: AdminRequest = Depends(get_admin_request),
    db: Session = Depends(get_db),
    panel: AdminPanel = Depends(get_admin_panel),
):
    """Validate and persist a new entity; responds with the detail URL in Location."""
    try:
        resource_cls = _find_resource(panel, resource)
        created = ResourceService.store(db, resource_cls, admin_request)
        redirect = resource_url(resource, created.get_key())
        body = ResourceWriteResponse(
            message=f"{resource_cls.singular_label()} created successfully.",
            id=created.get_key(),
            resource=created.serialize_for_detail(admin_request),
            redirect=redirect,
        )
        return JSONResponse(
            status_code=status.HTTP_201_CREATED,
            content=body.model_dump(mode="json"),
            headers={"Location": redirect},
        )
    except ValidationFailed as e:
        return _validation_response(e)
    except HTTPException:
        raise
    except Exception as e:
        _raise_http(e, db, f"creating {resource}")


@router.get("/{resource}/trash/stats", summary="Trash statistics")
async def trash_stats(
    resource: str,
    admin_request: AdminRequest = Depends(get_admin_request),
    db: Session = Depends(get_db),
    panel: AdminPanel = Depends(get_admin_panel),
) -> Dict[str, Any]:
    try:
        resource_cls = _find_resource(panel, resource)
        return ResourceService.trash_stats(db, resource_cls, admin_request)
    except HTTPException:
        raise
    except Exception as e:
        _raise_http(e, db, f"reading {resource} trash statistics")


@router.get("/{resource}/export", summary="Export resource entities")
async def export(
    resource: str,
    format: Optional[str] = Query(None, description="csv, xlsx, json, xml or pdf; defaults to the resource default"),
    admin_request: AdminRequest = Depends(get_admin_request),
    db: Session = Depends(get_db),
    panel: AdminPanel = Depends(get_admin_panel),
) -> Response:
    """
    Export the filtered and sorted entities as a file download.

    Accepts the index search and filter parameters plus limit (capped at the
    resource's max records), fields (comma separated) and filename.
    """
    try:
        resource_cls = _find_resource(panel, resource)
        if not resource_cls.authorized_to_export(admin_request):
            raise AuthorizationError("export")

        options: Dict[str, Any] = {}
        if admin_request.get("fields"):
            options["fields"] = [name.strip() for name in str(admin_request.get("fields")).split(",") if name.strip()]
        if admin_request.get("filename"):
            options["filename"] = str(admin_request.get("filename"))

        result = ExportService.export_resources(db, resource_cls, admin_request, format, options)
        if not result["success"]:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=result["message"])

        return Response(
            content=result["data"],
            media_type=EXPORT_FORMATS[result["format"]][1],
            headers={
                "Content-Disposition": f'attachment; filename="{result["filename"]}"',
                "X-Export-Count": str(result["count"]),
            },
        )
    except HTTPException:
        raise
    except Exception as e:
        _raise_http(e, db, f"exporting {resource}")


@router.post("/{resource}/actions/{action}", summary="Run an action")
async def run_action(
    resource: str,
    action: str,
    admin_request: AdminRequest = Depends(get_admin_request),
    db: Session = Depends(get_db),
    panel: AdminPanel = Depends(get_admin_panel),
) -> Dict[str, Any]:
    """Run an action against the entity keys listed in the "resources" body value."""
    try:
        resource_cls = _find_resource(panel, resource)
        ids = admin_request.input("resources") or []
        if not isinstance(ids, list):
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="resources must be a list of keys")
        return ResourceService.run_action(db, resource_cls, admin_request, action, ids)
    except HTTPException:
        raise
    except Exception as e:
        _raise_http(e, db, f"running {action} on {resource}")


@router.post("/{resource}/restore", summary="Restore trashed entities", response_model=BulkOperationResponse)
async def bulk_restore(
    resource: str,
    admin_request: AdminRequest = Depends(get_admin_request),
    db: Session = Depends(get_db),
    panel: AdminPanel = Depends(get_admin_panel),
) -> BulkOperationResponse:
    try:
        resource_cls = _find_resource(panel, resource)
        count = ResourceService.bulk_restore(db, resource_cls, admin_request, admin_request.input("ids") or [])
        return BulkOperationResponse(message=f"{count} {resource_cls.label()} restored.", count=count)
    except HTTPException:
        raise
    except Exception as e:
        _raise_http(e, db, f"restoring {resource}")


@router.delete("/{resource}/force", summary="Permanently delete trashed entities", response_model=BulkOperationResponse)
async def bulk_force_delete(
    resource: str,
    admin_request: AdminRequest = Depends(get_admin_request),
    db: Session = Depends(get_db),
    panel: AdminPanel = Depends(get_admin_panel),
) -> BulkOperationResponse:
    try:
        resource_cls = _find_resource(panel, resource)
        count = ResourceService.bulk_force_delete(db, resource_cls, admin_request, admin_request.input("ids") or [])
        return BulkOperationResponse(message=f"{count} {resource_cls.label()} permanently deleted.", count=count)
    except HTTPException:
        raise
    except Exception as e:
        _raise_http(e, db, f"permanently deleting {resource}")


@router.get("/{resource}/bulk", summary="Available bulk operations")
async def bulk_operations(
    resource: str,
    admin_request: AdminRequest = Depends(get_admin_request),
    db: Session = Depends(get_db),
    panel: AdminPanel = Depends(get_admin_panel),
) -> Dict[str, Any]:
    try:
        resource_cls = _find_resource(panel, resource)
        if not resource_cls.authorized_to_view_any(admin_request):
            raise AuthorizationError("viewAny")
        return {
            "operations": BulkOperationService.available_operations(resource_cls, admin_request),
            "stats": BulkOperationService.stats(resource_cls),
        }
    except HTTPException:
        raise
    except Exception as e:
        _raise_http(e, db, f"listing bulk operations of {resource}")


@router.post("/{resource}/bulk/{operation}", summary="Run a bulk operation")
async def run_bulk_operation(
    resource: str,
    operation: str,
    admin_request: AdminRequest = Depends(get_admin_request),
    db: Session = Depends(get_db),
    panel: AdminPanel = Depends(get_admin_panel),
):
    """
    Run a bulk operation over the keys listed in the "ids" body value.

    "data" carries the values applied by update, or format and fields for
    export. A successful export responds with the file download.
    """
    try:
        resource_cls = _find_resource(panel, resource)
        ids = admin_request.input("ids") or []
        data = admin_request.input("data") or {}
        if not isinstance(ids, list):
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="ids must be a list of keys")
        if not isinstance(data, dict):
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="data must be an object")

        result = BulkOperationService.execute(db, resource_cls, admin_request, operation, ids, data)
        exported = result.pop("export", None)
        if exported is not None and exported["success"]:
            return Response(
                content=exported["data"],
                media_type=EXPORT_FORMATS[exported["format"]][1],
                headers={
                    "Content-Disposition": f'attachment; filename="{exported["filename"]}"',
                    "X-Export-Count": str(exported["count"]),
                },
            )
        return BulkOperationResult(**result)
    except ValidationFailed as e:
        return _validation_response(e)
    except HTTPException:
        raise
    except Exception as e:
        _raise_http(e, db, f"running bulk {operation} on {resource}")


@router.get("/{resource}/relatable/{field}", summary="Relatable options of a relationship field")
async def relatable(
    resource: str,
    field: str,
    admin_request: AdminRequest = Depends(get_admin_request),
    db: Session = Depends(get_db),
    panel: AdminPanel = Depends(get_admin_panel),
) -> Dict[str, Any]:
    """Options for a relationship select; accepts search and per_page."""
    try:
        resource_cls = _find_resource(panel, resource)
        return ResourceService.relatable(
            db, resource_cls, admin_request, field, related_cls=_related_resource(panel, resource_cls, admin_request, field)
        )
    except HTTPException:
        raise
    except Exception as e:
        _raise_http(e, db, f"listing relatable {field} of {resource}")


@router.get("/{resource}/{resource_id}", summary="Show an entity")
async def show(
    resource: str,
    resource_id: str,
    admin_request: AdminRequest = Depends(get_admin_request),
    db: Session = Depends(get_db),
    panel: AdminPanel = Depends(get_admin_panel),
) -> Dict[str, Any]:
    try:
        resource_cls = _find_resource(panel, resource)
        return ResourceService.show(db, resource_cls, admin_request, resource_id)
    except HTTPException:
        raise
    except Exception as e:
        _raise_http(e, db, f"showing {resource} {resource_id}")


@router.get("/{resource}/{resource_id}/edit", summary="Update form schema")
async def edit(
    resource: str,
    resource_id: str,
    admin_request: AdminRequest = Depends(get_admin_request),
    db: Session = Depends(get_db),
    panel: AdminPanel = Depends(get_admin_panel),
) -> Dict[str, Any]:
    try:
        resource_cls = _find_resource(panel, resource)
        return ResourceService.edit_schema(db, resource_cls, admin_request, resource_id)
    except HTTPException:
        raise
    except Exception as e:
        _raise_http(e, db, f"building the {resource} {resource_id} update form")


@router.api_route("/{resource}/{resource_id}", methods=["PUT", "PATCH"], summary="Update an entity")
async def update(
    resource: str,
    resource_id: str,
    admin_request: AdminRequest = Depends(get_admin_request),
    db: Session = Depends(get_db),
    panel: AdminPanel = Depends(get_admin_panel),
):
    try:
        resource_cls = _find_resource(panel, resource)
        updated = ResourceService.update(db, resource_cls, admin_request, resource_id)
        redirect = resource_url(resource, updated.get_key())
        body = ResourceWriteResponse(
            message=f"{resource_cls.singular_label()} updated successfully.",
            id=updated.get_key(),
            resource=updated.serialize_for_detail(admin_request),
            redirect=redirect,
        )
        return JSONResponse(content=body.model_dump(mode="json"), headers={"Location": redirect})
    except ValidationFailed as e:
        return _validation_response(e)
    except HTTPException:
        raise
    except Exception as e:
        _raise_http(e, db, f"updating {resource} {resource_id}")


@router.delete("/{resource}/{resource_id}", summary="Delete an entity")
async def destroy(
    resource: str,
    resource_id: str,
    admin_request: AdminRequest = Depends(get_admin_request),
    db: Session = Depends(get_db),
    panel: AdminPanel = Depends(get_admin_panel),
):
    """Delete an entity; soft-deletable resources move it to the trash."""
    try:
        resource_cls = _find_resource(panel, resource)
        trashed = ResourceService.destroy(db, resource_cls, admin_request, resource_id)
        redirect = resource_url(resource)
        body = ResourceDeleteResponse(
            message=f"{resource_cls.singular_label()} {'moved to trash' if trashed else 'deleted'}.",
            trashed=trashed,
            redirect=redirect,
        )
        return JSONResponse(content=body.model_dump(mode="json"), headers={"Location": redirect})
    except HTTPException:
        raise
    except Exception as e:
        _raise_http(e, db, f"deleting {resource} {resource_id}")


@router.post("/{resource}/{resource_id}/restore", summary="Restore a trashed entity", response_model=TrashOperationResponse)
async def restore(
    resource: str,
    resource_id: str,
    admin_request: AdminRequest = Depends(get_admin_request),
    db: Session = Depends(get_db),
    panel: AdminPanel = Depends(get_admin_panel),
) -> TrashOperationResponse:
    try:
        resource_cls = _find_resource(panel, resource)
        restored = ResourceService.restore(db, resource_cls, admin_request, resource_id)
        message = "restored" if restored else "was not restored"
        return TrashOperationResponse(success=restored, message=f"{resource_cls.singular_label()} {message}.")
    except HTTPException:
        raise
    except Exception as e:
        _raise_http(e, db, f"restoring {resource} {resource_id}")


@router.delete("/{resource}/{resource_id}/force", summary="Permanently delete an entity", response_model=TrashOperationResponse)
async def force_delete(
    resource: str,
    resource_id: str,
    admin_request: AdminRequest = Depends(get_admin_request),
    db: Session = Depends(get_db),
    panel: AdminPanel = Depends(get_admin_panel),
) -> TrashOperationResponse:
    try:
        resource_cls = _find_resource(panel, resource)
        deleted = ResourceService.force_delete(db, resource_cls, admin_request, resource_id)
        message = "permanently deleted" if deleted else "was not deleted"
        return TrashOperationResponse(success=deleted, message=f"{resource_cls.singular_label()} {message}.")
    except HTTPException:
        raise
    except Exception as e:
        _raise_http(e, db, f"permanently deleting {resource} {resource_id}")


@router.get("/{resource}/{resource_id}/related/{field}", summary="Members of a relationship")
async def related(
    resource: str,
    resource_id: str,
    field: str,
    admin_request: AdminRequest = Depends(get_admin_request),
    db: Session = Depends(get_db),
    panel: AdminPanel = Depends(get_admin_panel),
) -> Dict[str, Any]:
    try:
        resource_cls = _find_resource(panel, resource)
        return ResourceService.related(
            db, resource_cls, admin_request, resource_id, field,
            related_cls=_related_resource(panel, resource_cls, admin_request, field),
        )
    except HTTPException:
        raise
    except Exception as e:
        _raise_http(e, db, f"listing {field} of {resource} {resource_id}")


@router.get("/{resource}/{resource_id}/attachable/{field}", summary="Attachable options of a relationship")
async def attachable(
    resource: str,
    resource_id: str,
    field: str,
    admin_request: AdminRequest = Depends(get_admin_request),
    db: Session = Depends(get_db),
    panel: AdminPanel = Depends(get_admin_panel),
) -> Dict[str, Any]:
    try:
        resource_cls = _find_resource(panel, resource)
        return ResourceService.attachable(
            db, resource_cls, admin_request, resource_id, field,
            related_cls=_related_resource(panel, resource_cls, admin_request, field),
        )
    except HTTPException:
        raise
    except Exception as e:
        _raise_http(e, db, f"listing attachable {field} of {resource} {resource_id}")


@router.post("/{resource}/{resource_id}/attach/{field}", summary="Attach related entities", response_model=RelationshipResponse)
async def attach(
    resource: str,
    resource_id: str,
    field: str,
    admin_request: AdminRequest = Depends(get_admin_request),
    db: Session = Depends(get_db),
    panel: AdminPanel = Depends(get_admin_panel),
):
    try:
        resource_cls = _find_resource(panel, resource)
        ids = admin_request.input("ids") or []
        if not isinstance(ids, list):
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="ids must be a list of keys")
        count = ResourceService.attach(db, resource_cls, admin_request, resource_id, field, ids)
        return RelationshipResponse(message=f"{count} attached.", count=count)
    except ValidationFailed as e:
        return _validation_response(e)
    except HTTPException:
        raise
    except Exception as e:
        _raise_http(e, db, f"attaching {field} to {resource} {resource_id}")


@router.post("/{resource}/{resource_id}/detach/{field}", summary="Detach related entities", response_model=RelationshipResponse)
async def detach(
    resource: str,
    resource_id: str,
    field: str,
    admin_request: AdminRequest = Depends(get_admin_request),
    db: Session = Depends(get_db),
    panel: AdminPanel = Depends(get_admin_panel),
) -> RelationshipResponse:
    try:
        resource_cls = _find_resource(panel, resource)
        ids = admin_request.input("ids") or []
        if not isinstance(ids, list):
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="ids must be a list of keys")
        count = ResourceService.detach(db, resource_cls, admin_request, resource_id, field, ids)
        return RelationshipResponse(message=f"{count} detached.", count=count)
    except HTTPException:
        raise
    except Exception as e:
        _raise_http(e, db, f"detaching {field} from {resource} {resource_id}")


@router.get("/{resource}/{resource_id}/tree", summary="Subtree of a nested entity")
async def tree(
    resource: str,
    resource_id: str,
    admin_request: AdminRequest = Depends(get_admin_request),
    db: Session = Depends(get_db),
    panel: AdminPanel = Depends(get_admin_panel),
) -> Dict[str, Any]:
    try:
        resource_cls = _find_resource(panel, resource)
        return ResourceService.tree(db, resource_cls, admin_request, resource_id)
    except HTTPException:
        raise
    except Exception as e:
        _raise_http(e, db, f"building the tree of {resource} {resource_id}")


@router.post("/{resource}/{resource_id}/move", summary="Move a nested entity", response_model=TrashOperationResponse)
async def move(
    resource: str,
    resource_id: str,
    admin_request: AdminRequest = Depends(get_admin_request),
    db: Session = Depends(get_db),
    panel: AdminPanel = Depends(get_admin_panel),
):
    """Move under the entity keyed by the "parent" body value, or to the root when it is null."""
    try:
        resource_cls = _find_resource(panel, resource)
        ResourceService.move(db, resource_cls, admin_request, resource_id, admin_request.input("parent"))
        return TrashOperationResponse(success=True, message=f"{resource_cls.singular_label()} moved.")
    except ValidationFailed as e:
        return _validation_response(e)
    except HTTPException:
        raise
    except Exception as e:
        _raise_http(e, db, f"moving {resource} {resource_id}")


@router.get("/{resource}/{resource_id}/versions", summary="Version history")
async def versions(
    resource: str,
    resource_id: str,
    admin_request: AdminRequest = Depends(get_admin_request),
    db: Session = Depends(get_db),
    panel: AdminPanel = Depends(get_admin_panel),
) -> Dict[str, Any]:
    try:
        resource_cls = _find_resource(panel, resource)
        return ResourceService.versions(db, resource_cls, admin_request, resource_id)
    except HTTPException:
        raise
    except Exception as e:
        _raise_http(e, db, f"listing versions of {resource} {resource_id}")


@router.get("/{resource}/{resource_id}/versions/compare", summary="Compare two versions")
async def compare_versions(
    resource: str,
    resource_id: str,
    from_version: int = Query(..., alias="from", ge=1),
    to_version: int = Query(..., alias="to", ge=1),
    admin_request: AdminRequest = Depends(get_admin_request),
    db: Session = Depends(get_db),
    panel: AdminPanel = Depends(get_admin_panel),
) -> Dict[str, Any]:
    try:
        resource_cls = _find_resource(panel, resource)
        return ResourceService.compare_versions(
            db, resource_cls, admin_request, resource_id, from_version, to_version
        )
    except HTTPException:
        raise
    except Exception as e:
        _raise_http(e, db, f"comparing versions of {resource} {resource_id}")


@router.post("/{resource}/{resource_id}/versions/{version}/restore", summary="Restore a version", response_model=TrashOperationResponse)
async def restore_version(
    resource: str,
    resource_id: str,
    version: int,
    admin_request: AdminRequest = Depends(get_admin_request),
    db: Session = Depends(get_db),
    panel: AdminPanel = Depends(get_admin_panel),
) -> TrashOperationResponse:
    try:
        resource_cls = _find_resource(panel, resource)
        restored = ResourceService.restore_version(
            db, resource_cls, admin_request, resource_id, version, admin_request.input("reason")
        )
        if not restored:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Version {version} not found.")
        return TrashOperationResponse(success=True, message=f"Restored to version {version}.")
    except HTTPException:
        raise
    except Exception as e:
        _raise_http(e, db, f"restoring version {version} of {resource} {resource_id}")
