"""
Resource base class.

A Resource is the declarative admin definition of one entity type: which
model it wraps, which fields it exposes, how it is searched and queried,
and who may do what with it. A Resource instance wraps exactly one entity
for its lifetime; type-level behavior (naming, query hooks, view-any and
create authorization) lives on class methods.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence, Type

from sqlalchemy import inspect
from sqlalchemy.orm import Query, Session, selectinload

from admin_panel.auth.policies import PolicyRegistry, call_policy, default_policy_registry
from admin_panel.core import config
from admin_panel.fields.base import Field
from admin_panel.models.mixins import SoftDeleteMixin
from admin_panel.resources.request import AdminRequest
from admin_panel.utils.naming import kebab, plural, strip_suffix, title as title_case

logger = logging.getLogger(__name__)


def primary_key_name(model: type) -> str:
    """Mapped attribute name of a model's (first) primary key column."""
    mapper = inspect(model)
    column = mapper.primary_key[0]
    return mapper.get_property_by_column(column).key


def column_names(model: type) -> List[str]:
    """Mapped column attribute names of a model, in declaration order."""
    return [prop.key for prop in inspect(model).column_attrs]


class Resource:
    """
    Base class for admin panel resources.

    Subclasses set ``model`` and implement ``fields(request)``.
    """

    model: Optional[type] = None
    title: str = "id"
    search: Sequence[str] = ()
    group: str = "Other"
    policy: Optional[type] = None
    per_page_via_relationship: int = 5
    globally_searchable: bool = True
    display_in_navigation: bool = True
    icon: Optional[str] = None
    with_: Sequence[str] = ()

    # Set only on the panel-bound subclasses AdminPanel.register() creates;
    # declared classes fall back to the module-level registries
    policy_registry: Optional[PolicyRegistry] = None
    observer_registry: Optional[Any] = None
    cache_service: Optional[Any] = None

    def __init__(self, entity: Any = None):
        self._entity = entity if entity is not None else self.new_model()

    @property
    def resource(self) -> Any:
        """The wrapped entity."""
        return self._entity

    @classmethod
    def declared_class(cls) -> type:
        """The class a panel-bound subclass was created from, or the class itself."""
        return cls.__dict__.get("_declared_class") or cls

    def __repr__(self) -> str:
        return f"{type(self).__name__}(key={self.get_key()!r})"

    # ===== Naming =====

    @classmethod
    def base_name(cls) -> str:
        return strip_suffix(cls.__name__, "Resource")

    @classmethod
    def label(cls) -> str:
        return title_case(plural(cls.base_name()))

    @classmethod
    def singular_label(cls) -> str:
        return title_case(cls.base_name())

    @classmethod
    def uri_key(cls) -> str:
        return kebab(plural(cls.base_name()))

    # ===== Model and query hooks =====

    @classmethod
    def new_model(cls) -> Any:
        if cls.model is None:
            raise TypeError(f"{cls.__name__} does not define a model")
        return cls.model()

    @classmethod
    def new_query(cls, db: Session) -> Query:
        query = db.query(cls.model)
        if cls.with_:
            for relationship in cls.with_:
                query = query.options(selectinload(getattr(cls.model, relationship)))
        return query

    @classmethod
    def index_query(cls, request: AdminRequest, query: Query) -> Query:
        return query

    @classmethod
    def detail_query(cls, request: AdminRequest, query: Query) -> Query:
        return query

    @classmethod
    def relatable_query(cls, request: AdminRequest, query: Query) -> Query:
        return query

    @classmethod
    def key_name(cls) -> str:
        return primary_key_name(cls.model)

    @classmethod
    def supports_soft_deletes(cls) -> bool:
        return cls.model is not None and issubclass(cls.model, SoftDeleteMixin)

    # ===== Definition =====

    def fields(self, request: AdminRequest) -> List[Field]:
        raise NotImplementedError(f"{type(self).__name__} must implement fields()")

    def cards(self, request: AdminRequest) -> List[Any]:
        return []

    def filters(self, request: AdminRequest) -> List[Any]:
        return []

    def actions(self, request: AdminRequest) -> List[Any]:
        return []

    def metrics(self, request: AdminRequest) -> List[Any]:
        return []

    def available_fields(self, request: AdminRequest) -> List[Field]:
        """Fields whose can_see callback allows the request."""
        return [field for field in self.fields(request) if field.authorize(request)]

    def index_fields(self, request: AdminRequest) -> List[Field]:
        return [field for field in self.available_fields(request) if field.show_on_index]

    def detail_fields(self, request: AdminRequest) -> List[Field]:
        return [field for field in self.available_fields(request) if field.show_on_detail]

    def creation_fields(self, request: AdminRequest) -> List[Field]:
        return [field for field in self.available_fields(request) if field.show_on_creation]

    def update_fields(self, request: AdminRequest) -> List[Field]:
        return [field for field in self.available_fields(request) if field.show_on_update]

    def resolve_fields(self, request: AdminRequest, fields: Optional[List[Field]] = None) -> List[Field]:
        """Resolve the given fields (default: available fields) against the wrapped entity."""
        fields = fields if fields is not None else self.available_fields(request)
        for field in fields:
            field.resolve(self._entity)
        return fields

    def exists(self) -> bool:
        """True once the wrapped entity has been persisted."""
        state = inspect(self._entity, raiseerr=False)
        if state is not None:
            return state.persistent or state.detached
        return self.get_key() is not None

    def fill(self, request: AdminRequest, fields: Optional[List[Field]] = None) -> Any:
        """
        Write request input into the wrapped entity through each field's fill.

        Without explicit fields, a persisted entity is filled from its update
        fields and a new one from its creation fields.
        """
        if fields is None:
            fields = self.update_fields(request) if self.exists() else self.creation_fields(request)
        for field in fields:
            field.fill(request, self._entity)
        return self._entity

    @classmethod
    def searchable_columns(cls, request: Optional[AdminRequest] = None) -> List[str]:
        """Declared search columns plus searchable fields, falling back to the title attribute."""
        columns: List[str] = list(cls.search)
        for field in cls().fields(request or AdminRequest()):
            if field.searchable and field.attribute not in columns:
                columns.append(field.attribute)
        return columns or [cls.title]

    # ===== Authorization =====

    @classmethod
    def resolve_policy(cls) -> Optional[Any]:
        registry = cls.policy_registry or default_policy_registry
        return registry.resolve(cls)

    @classmethod
    def check_policy(cls, request: AdminRequest, ability: str, *args: Any) -> bool:
        """
        Ask the bound policy whether the request's user may perform an ability.

        No user denies. No policy allows. A policy without the ability method
        answers with POLICY_ALLOW_MISSING_ABILITIES.
        """
        if request is None or request.user is None:
            return False
        policy = cls.resolve_policy()
        if policy is None:
            return True
        return call_policy(
            policy,
            ability,
            request.user,
            *args,
            allow_missing=config.POLICY_ALLOW_MISSING_ABILITIES,
        )

    @classmethod
    def authorized_to_view_any(cls, request: AdminRequest) -> bool:
        return cls.check_policy(request, "viewAny")

    @classmethod
    def authorized_to_create(cls, request: AdminRequest) -> bool:
        return cls.check_policy(request, "create")

    @classmethod
    def authorized_to_export(cls, request: AdminRequest) -> bool:
        return cls.check_policy(request, "export")

    @classmethod
    def authorized_to_import(cls, request: AdminRequest) -> bool:
        return cls.check_policy(request, "import")

    @classmethod
    def available_for_navigation(cls, request: AdminRequest) -> bool:
        return cls.display_in_navigation and cls.authorized_to_view_any(request)

    def authorized_to_view(self, request: AdminRequest) -> bool:
        return self.check_policy(request, "view", self._entity)

    def authorized_to_update(self, request: AdminRequest) -> bool:
        return self.check_policy(request, "update", self._entity)

    def authorized_to_delete(self, request: AdminRequest) -> bool:
        return self.check_policy(request, "delete", self._entity)

    def authorized_to_restore(self, request: AdminRequest) -> bool:
        return self.check_policy(request, "restore", self._entity)

    def authorized_to_force_delete(self, request: AdminRequest) -> bool:
        return self.check_policy(request, "forceDelete", self._entity)

    def authorized_to_attach(self, request: AdminRequest, related: Any = None) -> bool:
        return self.check_policy(request, "attach", self._entity, related)

    def authorized_to_detach(self, request: AdminRequest, related: Any = None) -> bool:
        return self.check_policy(request, "detach", self._entity, related)

    def authorized_to_run_action(self, request: AdminRequest, action: Any) -> bool:
        return self.check_policy(request, "runAction", action)

    # ===== Serialization =====

    def get_key(self) -> Any:
        if self.model is None:
            return None
        return getattr(self._entity, self.key_name(), None)

    def title_value(self) -> str:
        value = getattr(self._entity, self.title, None)
        return "" if value is None else str(value)

    def subtitle(self) -> Optional[str]:
        return None

    def serialize_row(self, request: AdminRequest, fields: List[Field]) -> Dict[str, Any]:
        row: Dict[str, Any] = {"id": self.get_key()}
        for field in fields:
            row[field.attribute] = field.resolve_value(self._entity)
        return row

    def serialize_for_index(self, request: AdminRequest) -> Dict[str, Any]:
        """Index row: entity key plus display value per index field."""
        return self.serialize_row(request, self.index_fields(request))

    def serialize_for_detail(self, request: AdminRequest) -> Dict[str, Any]:
        return self.serialize_row(request, self.detail_fields(request))

    def authorizations(self, request: AdminRequest) -> Dict[str, bool]:
        """Per-entity ability flags sent alongside detail and edit payloads."""
        abilities = {
            "authorized_to_view": self.authorized_to_view(request),
            "authorized_to_update": self.authorized_to_update(request),
            "authorized_to_delete": self.authorized_to_delete(request),
        }
        if self.supports_soft_deletes():
            abilities["authorized_to_restore"] = self.authorized_to_restore(request)
            abilities["authorized_to_force_delete"] = self.authorized_to_force_delete(request)
        return abilities

    @classmethod
    def metadata(cls, request: AdminRequest) -> Dict[str, Any]:
        return {
            "uri_key": cls.uri_key(),
            "label": cls.label(),
            "singular_label": cls.singular_label(),
            "group": cls.group,
            "icon": cls.icon,
            "title": cls.title,
            "globally_searchable": cls.globally_searchable,
            "per_page_via_relationship": cls.per_page_via_relationship,
            "soft_deletes": cls.supports_soft_deletes(),
            "authorized_to_create": cls.authorized_to_create(request),
        }


ResourceClass = Type[Resource]
