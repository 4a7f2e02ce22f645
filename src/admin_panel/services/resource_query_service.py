"""
Query pipeline for resource index and detail lookups.

Index order: new_query -> index_query -> trash scope -> search -> filters
-> sort -> paginate. Every step only narrows or orders the query built by
the previous one.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import String, cast, inspect, or_
from sqlalchemy.orm import Query, Session

from admin_panel.core import config
from admin_panel.core.exceptions import ResourceNotFoundError
from admin_panel.resources.filters import find_filter
from admin_panel.resources.request import AdminRequest
from admin_panel.resources.resource import column_names
from admin_panel.services.trash_service import TRASHED_ONLY, TRASHED_WITH, TrashService

logger = logging.getLogger(__name__)

SORT_DIRECTIONS = ("asc", "desc")


@dataclass
class IndexState:
    """Echo of the query shape that produced an index page."""

    search: Optional[str] = None
    filters: Dict[str, Any] = field(default_factory=dict)
    sort_field: Optional[str] = None
    sort_direction: str = "desc"
    per_page: int = 25
    page: int = 1
    trashed: Optional[str] = None


@dataclass
class Page:
    items: List[Any]
    total: int
    page: int
    per_page: int

    @property
    def last_page(self) -> int:
        return max(1, math.ceil(self.total / self.per_page))

    def meta(self) -> Dict[str, Any]:
        first = (self.page - 1) * self.per_page + 1 if self.items else None
        return {
            "current_page": self.page,
            "per_page": self.per_page,
            "total": self.total,
            "last_page": self.last_page,
            "from": first,
            "to": first + len(self.items) - 1 if first is not None else None,
        }


def _is_string_column(attribute: Any) -> bool:
    try:
        return attribute.property.columns[0].type.python_type is str
    except (AttributeError, NotImplementedError):
        return False


class ResourceQueryService:
    """Builds, narrows and paginates resource queries."""

    @staticmethod
    def clamp_per_page(value: Any) -> int:
        """Requested page size bounded to [1, RESOURCES_MAX_PER_PAGE]."""
        try:
            per_page = int(value) if value not in (None, "") else config.RESOURCES_PER_PAGE
        except (TypeError, ValueError):
            per_page = config.RESOURCES_PER_PAGE
        return max(1, min(per_page, config.RESOURCES_MAX_PER_PAGE))

    @staticmethod
    def clamp_page(value: Any) -> int:
        try:
            return max(1, int(value))
        except (TypeError, ValueError):
            return 1

    @staticmethod
    def trashed_mode(request: AdminRequest) -> Optional[str]:
        mode = request.get("trashed")
        return mode if mode in (TRASHED_WITH, TRASHED_ONLY) else None

    @staticmethod
    def apply_search(resource_cls: type, request: AdminRequest, query: Query, term: str) -> Query:
        """OR together a LIKE match of the term over every searchable column."""
        model = resource_cls.model
        mapped = set(column_names(model))
        pattern = f"%{term}%"
        conditions = []
        for name in resource_cls.searchable_columns(request):
            if name not in mapped:
                logger.debug(f"Skipping unmapped search column {name} on {resource_cls.__name__}")
                continue
            attribute = getattr(model, name)
            if _is_string_column(attribute):
                conditions.append(attribute.ilike(pattern))
            else:
                conditions.append(cast(attribute, String).ilike(pattern))
        if not conditions:
            return query
        return query.filter(or_(*conditions))

    @staticmethod
    def applied_filters(resource_cls: type, request: AdminRequest, filters: Dict[str, Any]) -> Dict[str, Any]:
        """The subset of requested filters that match a registered filter and carry a value."""
        if not filters:
            return {}
        available = resource_cls().filters(request)
        return {
            key: value
            for key, value in filters.items()
            if value is not None and value != "" and find_filter(available, key) is not None
        }

    @staticmethod
    def apply_filters(
        resource_cls: type,
        request: AdminRequest,
        query: Query,
        filters: Dict[str, Any],
    ) -> Query:
        """Apply registered filters only; None and "" values are ignored."""
        if not filters:
            return query
        available = resource_cls().filters(request)
        for key, value in filters.items():
            if value is None or value == "":
                continue
            matched = find_filter(available, key)
            if matched is None:
                logger.debug(f"Ignoring unknown filter {key} for {resource_cls.__name__}")
                continue
            query = matched.apply(request, query, value)
        return query

    @staticmethod
    def apply_sort(
        resource_cls: type,
        query: Query,
        sort_field: Optional[str],
        sort_direction: Optional[str],
    ) -> Tuple[Query, Optional[str], str]:
        """
        Order by a mapped column, or newest first by default.

        Returns:
            The ordered query, the applied sort field (None for the default)
            and the applied direction
        """
        model = resource_cls.model
        columns = column_names(model)
        key_attribute = getattr(model, resource_cls.key_name())
        direction = (sort_direction or "asc").lower()

        if sort_field and sort_field in columns and direction in SORT_DIRECTIONS:
            attribute = getattr(model, sort_field)
            ordered = query.order_by(attribute.asc() if direction == "asc" else attribute.desc())
            if sort_field != resource_cls.key_name():
                ordered = ordered.order_by(key_attribute.asc() if direction == "asc" else key_attribute.desc())
            return ordered, sort_field, direction

        if sort_field:
            logger.debug(f"Ignoring sort on {sort_field} {direction} for {resource_cls.__name__}")
        if "created_at" in columns:
            query = query.order_by(model.created_at.desc())
        return query.order_by(key_attribute.desc()), None, "desc"

    @staticmethod
    def build_index_query(db: Session, resource_cls: type, request: AdminRequest) -> Tuple[Query, IndexState]:
        state = IndexState(
            search=(request.get("search") or None),
            per_page=ResourceQueryService.clamp_per_page(request.get("per_page")),
            page=ResourceQueryService.clamp_page(request.get("page")),
            trashed=ResourceQueryService.trashed_mode(request),
        )
        state.filters = ResourceQueryService.applied_filters(resource_cls, request, request.filters())

        query = resource_cls.index_query(request, resource_cls.new_query(db))
        query = TrashService.apply_scope(resource_cls, query, state.trashed)
        if state.search:
            query = ResourceQueryService.apply_search(resource_cls, request, query, str(state.search))
        query = ResourceQueryService.apply_filters(resource_cls, request, query, state.filters)
        query, state.sort_field, state.sort_direction = ResourceQueryService.apply_sort(
            resource_cls, query, request.get("sort_field"), request.get("sort_direction")
        )
        return query, state

    @staticmethod
    def paginate(query: Query, page: int, per_page: int) -> Page:
        total = query.order_by(None).count()
        items = query.offset((page - 1) * per_page).limit(per_page).all()
        return Page(items=items, total=total, page=page, per_page=per_page)

    @staticmethod
    def coerce_key(resource_cls: type, key: Any) -> Any:
        """Convert a path key to the primary key column's Python type."""
        column = inspect(resource_cls.model).primary_key[0]
        try:
            python_type = column.type.python_type
        except NotImplementedError:
            return key
        if python_type is int:
            try:
                return int(key)
            except (TypeError, ValueError):
                raise ResourceNotFoundError(f"{resource_cls.singular_label()} [{key}] not found.", resource_cls.uri_key())
        return key

    @staticmethod
    def find_entity(
        db: Session,
        resource_cls: type,
        request: AdminRequest,
        key: Any,
        detail: bool = True,
        trashed: Optional[str] = None,
    ) -> Any:
        """
        Locate one entity by primary key.

        Raises:
            ResourceNotFoundError: when no entity matches
        """
        query = resource_cls.new_query(db)
        if detail:
            query = resource_cls.detail_query(request, query)
        query = TrashService.apply_scope(resource_cls, query, trashed)
        key_attribute = getattr(resource_cls.model, resource_cls.key_name())
        entity = query.filter(key_attribute == ResourceQueryService.coerce_key(resource_cls, key)).first()
        if entity is None:
            raise ResourceNotFoundError(f"{resource_cls.singular_label()} [{key}] not found.", resource_cls.uri_key())
        return entity
