"""
Resource controller orchestration.

Each operation follows the same order: locate the resource type and entity
(404), authorize (403), validate (422), then mutate inside a transaction.
Cache invalidation and automatic versioning run after the commit and are
best-effort: their failures are logged and never fail the request.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy.orm import Session

from admin_panel.core.database import transaction
from admin_panel.core.exceptions import AuthorizationError, ResourceNotFoundError, ValidationFailed
from admin_panel.fields.base import CREATION, UPDATE, Field
from admin_panel.fields.relationships import BelongsToMany, HasMany, RelationshipField
from admin_panel.resources.actions import find_action
from admin_panel.resources.capabilities import Cacheable, Nestable, SoftDeletable, Versionable
from admin_panel.resources.request import AdminRequest
from admin_panel.services.cache_service import ResourceCacheService, resource_cache
from admin_panel.services.nesting_service import NestingService
from admin_panel.services.resource_query_service import ResourceQueryService
from admin_panel.services.trash_service import TRASHED_WITH, TrashService
from admin_panel.services.version_service import VersionService
from admin_panel.utils.naming import snake
from admin_panel.validation import RuleSet, validate

logger = logging.getLogger(__name__)


def _serialize_card(card: Any) -> Any:
    serialize = getattr(card, "json_serialize", None)
    return serialize() if callable(serialize) else card


def _field_schema(fields: List[Field], entity: Any = None) -> List[Dict[str, Any]]:
    """Field descriptors, with each field's value resolved against the entity when given."""
    schema = []
    for field in fields:
        if entity is not None:
            field.value = field.resolve_value(entity)
        schema.append(field.json_serialize())
    return schema


class ResourceService:
    """Service behind the resource endpoints."""

    @staticmethod
    def cache_for(resource_cls: type) -> ResourceCacheService:
        return getattr(resource_cls, "cache_service", None) or resource_cache

    @staticmethod
    def _authorize(allowed: bool, ability: str) -> None:
        if not allowed:
            raise AuthorizationError(ability)

    # ===== Validation =====

    @staticmethod
    def validation_rules(fields: List[Field], context: str) -> Dict[str, RuleSet]:
        """Attribute -> effective rules of every field that has any."""
        rules: Dict[str, RuleSet] = {}
        for field in fields:
            effective = field.effective_rules(context)
            if effective:
                rules[field.attribute] = effective
        return rules

    @staticmethod
    def validate_request(request: AdminRequest, fields: List[Field], context: str) -> Dict[str, Any]:
        """Raises ValidationFailed before anything is written."""
        return validate(request.data, ResourceService.validation_rules(fields, context))

    # ===== Side effects after a write =====

    @staticmethod
    def forget_cached(resource_cls: type, key: Any = None) -> None:
        """Clear one entity's cache entries, or the whole type's when key is None."""
        if not issubclass(resource_cls, Cacheable):
            return
        cache = ResourceService.cache_for(resource_cls)
        try:
            if key is None:
                cache.clear_cache(resource_cls)
            else:
                cache.clear_resource_cache(resource_cls, key)
        except Exception as e:
            logger.warning(f"Cache invalidation for {resource_cls.uri_key()} failed: {e}")

    @staticmethod
    def after_write(db: Session, resource: Any, request: AdminRequest, reason: str) -> None:
        resource_cls = type(resource)
        ResourceService.forget_cached(resource_cls, resource.get_key())
        if isinstance(resource, Versionable) and resource.versioning.enabled and resource.versioning.auto_version:
            try:
                with transaction(db):
                    VersionService.create_version(db, resource, reason, user_id=request.user_key())
            except Exception as e:
                logger.warning(f"Automatic version of {resource_cls.uri_key()}:{resource.get_key()} failed: {e}")

    # ===== Index =====

    @staticmethod
    def index(db: Session, resource_cls: type, request: AdminRequest) -> Dict[str, Any]:
        """
        Paginated index payload.

        Args:
            db: Database session
            resource_cls: Registered resource class
            request: Request carrying search, filters, sort, per_page, page and trashed

        Returns:
            Metadata, rows, pagination meta, field schema, cards, filters,
            actions and the echo of the applied query shape
        """
        ResourceService._authorize(resource_cls.authorized_to_view_any(request), "viewAny")

        def build() -> Dict[str, Any]:
            return ResourceService.build_index(db, resource_cls, request)

        if issubclass(resource_cls, Cacheable):
            return ResourceService.cache_for(resource_cls).remember_index(resource_cls, request, build)
        return build()

    @staticmethod
    def build_index(db: Session, resource_cls: type, request: AdminRequest) -> Dict[str, Any]:
        query, state = ResourceQueryService.build_index_query(db, resource_cls, request)
        page = ResourceQueryService.paginate(query, state.page, state.per_page)
        template = resource_cls()

        payload: Dict[str, Any] = {
            "resource": resource_cls.metadata(request),
            "data": [resource_cls(entity).serialize_for_index(request) for entity in page.items],
            "meta": page.meta(),
            "fields": _field_schema(template.index_fields(request)),
            "cards": [_serialize_card(card) for card in template.cards(request)],
            "filters": [item.json_serialize(request) for item in template.filters(request)],
            "actions": [action.json_serialize() for action in template.actions(request) if action.authorize(request)],
            "search": state.search,
            "applied_filters": state.filters,
            "sort": {"field": state.sort_field, "direction": state.sort_direction},
            "per_page": state.per_page,
        }
        if TrashService.uses_soft_deletes(resource_cls):
            payload["trashed"] = state.trashed
            payload["trash"] = TrashService.trash_stats(db, resource_cls)
        return payload

    # ===== Create / store =====

    @staticmethod
    def creation_schema(resource_cls: type, request: AdminRequest) -> Dict[str, Any]:
        ResourceService._authorize(resource_cls.authorized_to_create(request), "create")
        resource = resource_cls()
        fields = resource.creation_fields(request)
        for field in fields:
            field.value = field.default
        return {"resource": resource_cls.metadata(request), "fields": _field_schema(fields)}

    @staticmethod
    def store(db: Session, resource_cls: type, request: AdminRequest) -> Any:
        """
        Validate, fill and persist a new entity.

        Returns:
            The resource wrapping the stored entity
        """
        ResourceService._authorize(resource_cls.authorized_to_create(request), "create")
        resource = resource_cls()
        fields = resource.creation_fields(request)
        ResourceService.validate_request(request, fields, CREATION)

        with transaction(db):
            entity = resource.fill(request, fields)
            db.add(entity)
            db.flush()
        logger.info(f"Created {resource_cls.singular_label()} {resource.get_key()}")

        ResourceService.after_write(db, resource, request, "Created")
        return resource

    # ===== Show / edit / update =====

    @staticmethod
    def show(db: Session, resource_cls: type, request: AdminRequest, key: Any) -> Dict[str, Any]:
        entity = ResourceQueryService.find_entity(db, resource_cls, request, key)
        resource = resource_cls(entity)
        ResourceService._authorize(resource.authorized_to_view(request), "view")
        return ResourceService.detail_payload(db, resource, request)

    @staticmethod
    def detail_payload(db: Session, resource: Any, request: AdminRequest) -> Dict[str, Any]:
        resource_cls = type(resource)
        payload: Dict[str, Any] = {
            "resource": resource_cls.metadata(request),
            "id": resource.get_key(),
            "title": resource.title_value(),
            "subtitle": resource.subtitle(),
            "data": resource.serialize_for_detail(request),
            "fields": _field_schema(resource.detail_fields(request), resource.resource),
            "cards": [_serialize_card(card) for card in resource.cards(request)],
            "actions": [action.json_serialize() for action in resource.actions(request) if action.authorize(request)],
            "authorizations": resource.authorizations(request),
        }
        if TrashService.uses_soft_deletes(resource_cls):
            payload["trash"] = TrashService.trash_status_info(resource_cls, resource.resource)
            payload["soft_delete_actions"] = TrashService.soft_delete_actions(resource, request)
        if isinstance(resource, Versionable):
            payload["versions"] = VersionService.version_stats(db, resource)
        if isinstance(resource, Nestable):
            payload["nesting"] = NestingService.tree_info(resource, request)
        return payload

    @staticmethod
    def edit_schema(db: Session, resource_cls: type, request: AdminRequest, key: Any) -> Dict[str, Any]:
        entity = ResourceQueryService.find_entity(db, resource_cls, request, key)
        resource = resource_cls(entity)
        ResourceService._authorize(resource.authorized_to_update(request), "update")
        return {
            "resource": resource_cls.metadata(request),
            "id": resource.get_key(),
            "title": resource.title_value(),
            "fields": _field_schema(resource.update_fields(request), entity),
        }

    @staticmethod
    def update(db: Session, resource_cls: type, request: AdminRequest, key: Any) -> Any:
        """Validate, fill and persist changes to an existing entity."""
        entity = ResourceQueryService.find_entity(db, resource_cls, request, key)
        resource = resource_cls(entity)
        ResourceService._authorize(resource.authorized_to_update(request), "update")
        fields = resource.update_fields(request)
        ResourceService.validate_request(request, fields, UPDATE)

        with transaction(db):
            resource.fill(request, fields)
            db.flush()
        logger.info(f"Updated {resource_cls.singular_label()} {resource.get_key()}")

        ResourceService.after_write(db, resource, request, "Updated")
        return resource

    # ===== Delete =====

    @staticmethod
    def destroy(db: Session, resource_cls: type, request: AdminRequest, key: Any) -> bool:
        """
        Delete an entity; soft-deletable models are moved to the trash.

        Returns:
            True when the entity was trashed, False when it was removed
        """
        entity = ResourceQueryService.find_entity(db, resource_cls, request, key)
        resource = resource_cls(entity)
        ResourceService._authorize(resource.authorized_to_delete(request), "delete")
        key = resource.get_key()

        with transaction(db):
            if TrashService.uses_soft_deletes(resource_cls):
                trashed = TrashService.soft_delete(db, resource_cls, entity)
            else:
                db.delete(entity)
                db.flush()
                trashed = False
        logger.info(f"{'Trashed' if trashed else 'Deleted'} {resource_cls.singular_label()} {key}")

        ResourceService.forget_cached(resource_cls, key)
        return trashed

    @staticmethod
    def restore(db: Session, resource_cls: type, request: AdminRequest, key: Any) -> bool:
        entity = ResourceQueryService.find_entity(db, resource_cls, request, key, trashed=TRASHED_WITH)
        resource = resource_cls(entity)
        ResourceService._authorize(resource.authorized_to_restore(request), "restore")
        with transaction(db):
            restored = TrashService.restore(db, resource_cls, entity)
        if restored:
            ResourceService.forget_cached(resource_cls, resource.get_key())
        return restored

    @staticmethod
    def force_delete(db: Session, resource_cls: type, request: AdminRequest, key: Any) -> bool:
        entity = ResourceQueryService.find_entity(db, resource_cls, request, key, trashed=TRASHED_WITH)
        resource = resource_cls(entity)
        ResourceService._authorize(resource.authorized_to_force_delete(request), "forceDelete")
        key = resource.get_key()
        with transaction(db):
            deleted = TrashService.force_delete(db, resource_cls, entity)
        if deleted:
            ResourceService.forget_cached(resource_cls, key)
        return deleted

    @staticmethod
    def _authorized_ids(
        db: Session,
        resource_cls: type,
        request: AdminRequest,
        ids: Sequence[Any],
        ability: str,
    ) -> List[Any]:
        """
        Keys among ids the user holds the ability for; unknown keys are skipped.

        Each entity is checked through the resource's authorized_to_<ability>
        method, so overrides of those methods apply to bulk operations too.
        """
        allowed = []
        for key in ids:
            try:
                entity = ResourceQueryService.find_entity(
                    db, resource_cls, request, key, detail=False, trashed=TRASHED_WITH
                )
            except ResourceNotFoundError:
                continue
            resource = resource_cls(entity)
            if getattr(resource, f"authorized_to_{snake(ability)}")(request):
                allowed.append(resource.get_key())
        return allowed

    @staticmethod
    def bulk_restore(db: Session, resource_cls: type, request: AdminRequest, ids: Sequence[Any]) -> int:
        allowed = ResourceService._authorized_ids(db, resource_cls, request, ids, "restore")
        with transaction(db):
            count = TrashService.bulk_restore(db, resource_cls, allowed)
        if count:
            ResourceService.forget_cached(resource_cls)
        return count

    @staticmethod
    def bulk_force_delete(db: Session, resource_cls: type, request: AdminRequest, ids: Sequence[Any]) -> int:
        allowed = ResourceService._authorized_ids(db, resource_cls, request, ids, "forceDelete")
        with transaction(db):
            count = TrashService.bulk_force_delete(db, resource_cls, allowed)
        if count:
            ResourceService.forget_cached(resource_cls)
        return count

    @staticmethod
    def trash_stats(db: Session, resource_cls: type, request: AdminRequest) -> Dict[str, Any]:
        ResourceService._authorize(resource_cls.authorized_to_view_any(request), "viewAny")
        stats = TrashService.trash_stats(db, resource_cls)
        if issubclass(resource_cls, SoftDeletable):
            stats["show_trashed_by_default"] = resource_cls.soft_deletes.show_trashed_by_default
        return stats

    # ===== Relationships =====

    @staticmethod
    def _relationship_field(resource: Any, request: AdminRequest, name: str, kind: type = RelationshipField) -> Any:
        for field in resource.available_fields(request):
            if isinstance(field, kind) and field.attribute == name:
                return field
        raise ResourceNotFoundError(
            f"Relationship [{name}] not found on {type(resource).label()}.", type(resource).uri_key()
        )

    @staticmethod
    def relatable(
        db: Session,
        resource_cls: type,
        request: AdminRequest,
        name: str,
        related_cls: Optional[type] = None,
    ) -> Dict[str, Any]:
        """Selectable options for a relationship field, narrowed by the search parameter."""
        field = ResourceService._relationship_field(resource_cls(), request, name)
        related = related_cls or field.related_resource()
        ResourceService._authorize(related.authorized_to_view_any(request), "viewAny")
        return ResourceService._options(field, related, request, field.relatable_query(db, request))

    @staticmethod
    def attachable(
        db: Session,
        resource_cls: type,
        request: AdminRequest,
        key: Any,
        name: str,
        related_cls: Optional[type] = None,
    ) -> Dict[str, Any]:
        """Options for a many-to-many relationship of one entity, without those already attached."""
        resource = resource_cls(ResourceQueryService.find_entity(db, resource_cls, request, key))
        ResourceService._authorize(resource.authorized_to_update(request), "update")
        field = ResourceService._relationship_field(resource, request, name, BelongsToMany)
        related = related_cls or field.related_resource()
        return ResourceService._options(field, related, request, field.attachable_query(db, request, resource.resource))

    @staticmethod
    def _options(field: Any, related: type, request: AdminRequest, query: Any) -> Dict[str, Any]:
        search = request.get("search")
        if search:
            query = ResourceQueryService.apply_search(related, request, query, str(search))
        limit = ResourceQueryService.clamp_per_page(request.get("per_page", 100))
        options = [
            {"value": option["id"], "display": option["title"]}
            for option in (field.summarize(entity) for entity in query.limit(limit).all())
        ]
        return {"resource": related.uri_key(), "options": options}

    @staticmethod
    def related(
        db: Session,
        resource_cls: type,
        request: AdminRequest,
        key: Any,
        name: str,
        related_cls: Optional[type] = None,
    ) -> Dict[str, Any]:
        """Paginated members of a to-many relationship of one entity."""
        resource = resource_cls(ResourceQueryService.find_entity(db, resource_cls, request, key))
        ResourceService._authorize(resource.authorized_to_view(request), "view")
        field = ResourceService._relationship_field(resource, request, name, HasMany)
        related = related_cls or field.related_resource()
        per_page = ResourceQueryService.clamp_per_page(request.get("per_page", resource_cls.per_page_via_relationship))
        page = ResourceQueryService.paginate(
            field.related_query(db, request, resource.resource),
            ResourceQueryService.clamp_page(request.get("page", 1)),
            per_page,
        )
        return {
            "resource": related.metadata(request),
            "relationship": name,
            "data": [related(entity).serialize_for_index(request) for entity in page.items],
            "meta": page.meta(),
        }

    @staticmethod
    def attach(
        db: Session,
        resource_cls: type,
        request: AdminRequest,
        key: Any,
        name: str,
        ids: Sequence[Any],
    ) -> int:
        """
        Attach relatable entities to a many-to-many relationship.

        Raises:
            ValidationFailed: when none of the ids is relatable
            AuthorizationError: when attaching any of them is denied
        """
        resource = resource_cls(ResourceQueryService.find_entity(db, resource_cls, request, key))
        field = ResourceService._relationship_field(resource, request, name, BelongsToMany)
        members = field.find_related(db, request, ids)
        if not members:
            raise ValidationFailed({"ids": [f"Select at least one {field.related_resource().singular_label()} to attach."]})
        for member in members:
            ResourceService._authorize(resource.authorized_to_attach(request, member), "attach")

        with transaction(db):
            count = field.attach(resource.resource, members)
            db.flush()
        logger.info(f"Attached {count} {name} to {resource_cls.singular_label()} {resource.get_key()}")

        ResourceService.forget_cached(resource_cls, resource.get_key())
        return count

    @staticmethod
    def detach(
        db: Session,
        resource_cls: type,
        request: AdminRequest,
        key: Any,
        name: str,
        ids: Sequence[Any],
    ) -> int:
        """Detach attached entities by key; keys that are not attached are skipped."""
        resource = resource_cls(ResourceQueryService.find_entity(db, resource_cls, request, key))
        field = ResourceService._relationship_field(resource, request, name, BelongsToMany)
        related = field.related_resource()
        wanted = {str(member_key) for member_key in ids}
        members = [
            member for member in getattr(resource.resource, field.attribute)
            if str(getattr(member, related.key_name())) in wanted
        ]
        for member in members:
            ResourceService._authorize(resource.authorized_to_detach(request, member), "detach")

        with transaction(db):
            count = field.detach(resource.resource, members)
            db.flush()
        logger.info(f"Detached {count} {name} from {resource_cls.singular_label()} {resource.get_key()}")

        if count:
            ResourceService.forget_cached(resource_cls, resource.get_key())
        return count

    # ===== Nesting =====

    @staticmethod
    def _nestable(db: Session, resource_cls: type, request: AdminRequest, key: Any) -> Any:
        if not issubclass(resource_cls, Nestable):
            raise ResourceNotFoundError(f"{resource_cls.label()} are not nested.", resource_cls.uri_key())
        return resource_cls(ResourceQueryService.find_entity(db, resource_cls, request, key))

    @staticmethod
    def tree(db: Session, resource_cls: type, request: AdminRequest, key: Any) -> Dict[str, Any]:
        resource = ResourceService._nestable(db, resource_cls, request, key)
        ResourceService._authorize(resource.authorized_to_view(request), "view")
        return NestingService.tree(resource)

    @staticmethod
    def move(db: Session, resource_cls: type, request: AdminRequest, key: Any, parent_key: Any) -> Any:
        """
        Move an entity under another parent, or to the root when parent_key is None.

        Raises:
            ValidationFailed: when the new parent is the entity or one of its descendants
        """
        resource = ResourceService._nestable(db, resource_cls, request, key)
        ResourceService._authorize(resource.authorized_to_update(request), "update")
        config = NestingService.config(resource_cls)
        new_parent = None
        if parent_key is not None and parent_key != "":
            parent_cls = config.parent_resource or resource_cls
            new_parent = parent_cls(ResourceQueryService.find_entity(db, parent_cls, request, parent_key, detail=False))
        if not NestingService.can_move_to(resource, new_parent):
            raise ValidationFailed({config.parent_key: [f"{resource_cls.singular_label()} cannot be moved under itself or a descendant."]})

        with transaction(db):
            NestingService.move_to(resource, new_parent)
            db.flush()
        logger.info(f"Moved {resource_cls.singular_label()} {resource.get_key()} under {parent_key}")

        ResourceService.after_write(db, resource, request, "Moved")
        return resource

    # ===== Actions =====

    @staticmethod
    def run_action(
        db: Session,
        resource_cls: type,
        request: AdminRequest,
        action_key: str,
        ids: Sequence[Any],
    ) -> Dict[str, Any]:
        """Run a registered action against the selected entities the user may act on."""
        action = find_action(resource_cls().actions(request), action_key)
        if action is None or not action.authorize(request):
            raise ResourceNotFoundError(f"Action [{action_key}] not found.", resource_cls.uri_key())
        ResourceService._authorize(resource_cls().authorized_to_run_action(request, action), "runAction")

        entities = []
        for key in ids:
            try:
                entities.append(ResourceQueryService.find_entity(db, resource_cls, request, key, detail=False))
            except ResourceNotFoundError:
                logger.debug(f"Skipping missing {resource_cls.uri_key()}:{key} for action {action_key}")

        with transaction(db):
            result = action.handle(db, request, entities) or {}
        logger.info(f"Ran action {action_key} on {len(entities)} {resource_cls.label()}")

        ResourceService.forget_cached(resource_cls)
        return result

    # ===== Versions =====

    @staticmethod
    def _versionable(db: Session, resource_cls: type, request: AdminRequest, key: Any, ability: str) -> Any:
        if not issubclass(resource_cls, Versionable):
            raise ResourceNotFoundError(f"{resource_cls.label()} are not versioned.", resource_cls.uri_key())
        resource = resource_cls(ResourceQueryService.find_entity(db, resource_cls, request, key))
        allowed = resource.authorized_to_view(request) if ability == "view" else resource.authorized_to_update(request)
        ResourceService._authorize(allowed, ability)
        return resource

    @staticmethod
    def versions(db: Session, resource_cls: type, request: AdminRequest, key: Any) -> Dict[str, Any]:
        resource = ResourceService._versionable(db, resource_cls, request, key, "view")
        return {
            "versions": VersionService.get_versions(db, resource),
            "stats": VersionService.version_stats(db, resource),
        }

    @staticmethod
    def compare_versions(
        db: Session,
        resource_cls: type,
        request: AdminRequest,
        key: Any,
        from_version: int,
        to_version: int,
    ) -> Dict[str, Any]:
        resource = ResourceService._versionable(db, resource_cls, request, key, "view")
        return VersionService.compare_versions(db, resource, from_version, to_version)

    @staticmethod
    def restore_version(
        db: Session,
        resource_cls: type,
        request: AdminRequest,
        key: Any,
        version_number: int,
        reason: Optional[str] = None,
    ) -> bool:
        resource = ResourceService._versionable(db, resource_cls, request, key, "update")
        with transaction(db):
            restored = VersionService.restore_to_version(
                db, resource, version_number, reason, user_id=request.user_key()
            )
        if restored:
            ResourceService.forget_cached(resource_cls, resource.get_key())
        return restored
