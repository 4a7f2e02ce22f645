"""
Relationship fields.

BelongsTo edits the foreign key of a many-to-one relationship. HasMany lists
the members of a one-to-many relationship on the detail view, and
BelongsToMany adds attach and detach on top of that for many-to-many
collections. Each field names the Resource class of the related entities;
candidates for selection come from that resource's relatable_query.
"""

import logging
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Sequence

from sqlalchemy import inspect
from sqlalchemy.orm import Query, RelationshipProperty, Session, with_parent

from admin_panel.fields.base import Field

if TYPE_CHECKING:
    from admin_panel.resources.request import AdminRequest

logger = logging.getLogger(__name__)

RelatableQueryCallback = Callable[["AdminRequest", Query], Query]


def mapped_relationship(model: type, name: str) -> RelationshipProperty:
    """
    The mapped relationship of a model by attribute name.

    Raises:
        ValueError: when the model maps no relationship under that name
    """
    relationships = inspect(model).relationships
    if name not in relationships:
        raise ValueError(f"{model.__name__} has no relationship named '{name}'")
    return relationships[name]


def coerce_related_key(model: type, value: Any) -> Any:
    """Convert request input to the type of the model's primary key column."""
    if value is None or value == "":
        return None
    column = inspect(model).primary_key[0]
    try:
        python_type = column.type.python_type
    except NotImplementedError:
        return value
    if python_type is int and not isinstance(value, bool):
        try:
            return int(value)
        except (TypeError, ValueError):
            return value
    return value


class RelationshipField(Field):
    """Base of fields that point at entities of another resource."""

    def __init__(
        self,
        name: str,
        attribute: Optional[str] = None,
        resource: Optional[type] = None,
        **kwargs: Any,
    ):
        super().__init__(name, attribute, **kwargs)
        self.resource_class = resource
        self.relatable_query_callback: Optional[RelatableQueryCallback] = None

    def relatable_query_using(self, callback: RelatableQueryCallback) -> "RelationshipField":
        self.relatable_query_callback = callback
        return self

    def related_resource(self) -> type:
        if self.resource_class is None:
            raise ValueError(f"{type(self).__name__} field '{self.attribute}' has no related resource")
        return self.resource_class

    def relatable_query(self, db: Session, request: "AdminRequest") -> Query:
        """Entities that may be selected for this relationship."""
        related = self.related_resource()
        query = related.relatable_query(request, related.new_query(db))
        if self.relatable_query_callback is not None:
            query = self.relatable_query_callback(request, query)
        return query

    def find_related(self, db: Session, request: "AdminRequest", keys: Sequence[Any]) -> List[Any]:
        """Relatable entities among the given keys; unknown keys are skipped."""
        related = self.related_resource()
        coerced = [coerce_related_key(related.model, key) for key in keys]
        coerced = [key for key in coerced if key is not None]
        if not coerced:
            return []
        key_attribute = getattr(related.model, related.key_name())
        return self.relatable_query(db, request).filter(key_attribute.in_(coerced)).all()

    def summarize(self, entity: Any) -> Optional[Dict[str, Any]]:
        """{id, title} of a related entity."""
        if entity is None:
            return None
        resource = self.related_resource()(entity)
        return {"id": resource.get_key(), "title": resource.title_value()}

    def json_serialize(self) -> Dict[str, Any]:
        payload = super().json_serialize()
        payload["resource"] = self.resource_class.uri_key() if self.resource_class is not None else None
        payload["relationship"] = self.attribute
        return payload


class BelongsTo(RelationshipField):
    """Many-to-one relationship edited through its foreign key."""

    component = "belongs-to-field"

    def foreign_key(self, model: type) -> str:
        """Mapped attribute name of the relationship's local foreign key column."""
        relationship = mapped_relationship(model, self.attribute)
        column = next(iter(relationship.local_columns))
        return inspect(model).get_property_by_column(column).key

    def resolve(self, entity: Any, attribute: Optional[str] = None) -> None:
        related = getattr(entity, attribute or self.attribute, None)
        if self.resolve_callback is not None:
            self.value = self.resolve_callback(related, entity)
        else:
            self.value = self.summarize(related)

    def fill(self, request: "AdminRequest", entity: Any) -> None:
        if self.fill_callback is not None:
            self.fill_callback(request, entity, self.attribute)
            return
        if self.readonly or not request.has(self.attribute):
            return
        key = coerce_related_key(self.related_resource().model, request.input(self.attribute))
        setattr(entity, self.foreign_key(type(entity)), key)


class HasMany(RelationshipField):
    """One-to-many relationship listed on the detail view."""

    component = "has-many-field"

    def __init__(self, *args: Any, **kwargs: Any):
        super().__init__(*args, **kwargs)
        self.only_on_detail()

    def resolve(self, entity: Any, attribute: Optional[str] = None) -> None:
        members = getattr(entity, attribute or self.attribute, None) or []
        self.value = {
            "count": len(members),
            "resource": self.resource_class.uri_key() if self.resource_class is not None else None,
        }

    def fill(self, request: "AdminRequest", entity: Any) -> None:
        # Members are managed from their own resource, or through attach/detach
        if self.fill_callback is not None:
            self.fill_callback(request, entity, self.attribute)

    def related_query(self, db: Session, request: "AdminRequest", entity: Any) -> Query:
        """Members of the relationship for one parent entity, ordered by key."""
        related = self.related_resource()
        relationship = getattr(type(entity), self.attribute)
        query = related.new_query(db).filter(with_parent(entity, relationship))
        if self.relatable_query_callback is not None:
            query = self.relatable_query_callback(request, query)
        return query.order_by(getattr(related.model, related.key_name()).asc())


class BelongsToMany(HasMany):
    """Many-to-many collection with attach and detach."""

    component = "belongs-to-many-field"

    def __init__(self, *args: Any, allow_duplicate_relations: bool = False, **kwargs: Any):
        super().__init__(*args, **kwargs)
        self.allow_duplicate_relations = allow_duplicate_relations

    def attachable_query(self, db: Session, request: "AdminRequest", entity: Any) -> Query:
        """Relatable entities, without those already attached unless duplicates are allowed."""
        query = self.relatable_query(db, request)
        if self.allow_duplicate_relations:
            return query
        related = self.related_resource()
        key_name = related.key_name()
        attached = [getattr(member, key_name) for member in getattr(entity, self.attribute)]
        if attached:
            query = query.filter(getattr(related.model, key_name).not_in(attached))
        return query

    def attach(self, entity: Any, members: Sequence[Any]) -> int:
        """Append members to the collection; returns how many were added."""
        collection = getattr(entity, self.attribute)
        added = 0
        for member in members:
            if self.allow_duplicate_relations or member not in collection:
                collection.append(member)
                added += 1
        return added

    def detach(self, entity: Any, members: Sequence[Any]) -> int:
        collection = getattr(entity, self.attribute)
        removed = 0
        for member in members:
            if member in collection:
                collection.remove(member)
                removed += 1
        return removed

    def json_serialize(self) -> Dict[str, Any]:
        payload = super().json_serialize()
        payload["allow_duplicate_relations"] = self.allow_duplicate_relations
        return payload
