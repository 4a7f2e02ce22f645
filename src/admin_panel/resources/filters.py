"""
Index filters.

A filter narrows the index query from one request value, keyed by the
filter's key. Only filters returned by Resource.filters() are applied.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy.orm import Query

from admin_panel.resources.request import AdminRequest
from admin_panel.utils.datetime_utils import ensure_utc
from admin_panel.utils.naming import kebab, strip_suffix, title

logger = logging.getLogger(__name__)


class Filter:
    """Base filter; subclasses implement apply() and usually options()."""

    name: Optional[str] = None
    key: Optional[str] = None
    component = "select-filter"

    def __init__(self, name: Optional[str] = None, key: Optional[str] = None):
        base = strip_suffix(type(self).__name__, "Filter") or type(self).__name__
        self.name = name or self.name or title(base)
        self.key = key or self.key or kebab(type(self).__name__)

    def apply(self, request: AdminRequest, query: Query, value: Any) -> Query:
        raise NotImplementedError

    def options(self, request: AdminRequest) -> Dict[str, Any]:
        """Label -> value map shown to the user."""
        return {}

    def default(self) -> Any:
        return None

    def json_serialize(self, request: Optional[AdminRequest] = None) -> Dict[str, Any]:
        options = self.options(request or AdminRequest())
        return {
            "key": self.key,
            "name": self.name,
            "component": self.component,
            "options": [{"label": label, "value": value} for label, value in options.items()],
            "current_value": self.default(),
        }


class SelectFilter(Filter):
    """Equality on one column."""

    def __init__(
        self,
        column: str,
        options: Optional[Mapping[str, Any]] = None,
        name: Optional[str] = None,
        key: Optional[str] = None,
    ):
        super().__init__(name=name or title(column), key=key or kebab(column))
        self.column = column
        self._options = dict(options or {})

    def apply(self, request: AdminRequest, query: Query, value: Any) -> Query:
        model = query.column_descriptions[0]["entity"]
        return query.filter(getattr(model, self.column) == value)

    def options(self, request: AdminRequest) -> Dict[str, Any]:
        return dict(self._options)


class BooleanFilter(Filter):
    """
    Checkbox group: value is a map of option value -> bool.

    Each checked option adds an equality condition; the conditions are OR-ed.
    """

    component = "boolean-filter"

    def __init__(
        self,
        column: str,
        options: Optional[Mapping[str, Any]] = None,
        name: Optional[str] = None,
        key: Optional[str] = None,
    ):
        super().__init__(name=name or title(column), key=key or kebab(column))
        self.column = column
        self._options = dict(options or {})

    def apply(self, request: AdminRequest, query: Query, value: Any) -> Query:
        if not isinstance(value, Mapping):
            logger.debug(f"Ignoring non-mapping value for boolean filter {self.key}")
            return query
        # Keys arrive as strings; map them back to the declared option values
        declared = {str(option): option for option in self._options.values()}
        checked = [declared.get(str(option), option) for option, enabled in value.items() if _truthy(enabled)]
        if not checked:
            return query
        model = query.column_descriptions[0]["entity"]
        return query.filter(getattr(model, self.column).in_(checked))

    def options(self, request: AdminRequest) -> Dict[str, Any]:
        return dict(self._options)

    def default(self) -> Dict[str, bool]:
        return {str(value): False for value in self._options.values()}


class DateRangeFilter(Filter):
    """Value {"from": iso, "to": iso}; either bound may be omitted."""

    component = "date-range-filter"

    def __init__(self, column: str, name: Optional[str] = None, key: Optional[str] = None):
        super().__init__(name=name or title(column), key=key or kebab(column))
        self.column = column

    def apply(self, request: AdminRequest, query: Query, value: Any) -> Query:
        if not isinstance(value, Mapping):
            return query
        model = query.column_descriptions[0]["entity"]
        column = getattr(model, self.column)
        start = _parse_bound(value.get("from"))
        end = _parse_bound(value.get("to"))
        if start is not None:
            query = query.filter(column >= start)
        if end is not None:
            query = query.filter(column <= end)
        return query


def _truthy(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "on", "yes")
    return bool(value)


def _parse_bound(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        return ensure_utc(value)
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        return ensure_utc(datetime.fromisoformat(value.strip().replace("Z", "+00:00")))
    except ValueError:
        logger.warning(f"Ignoring unparseable date bound: {value!r}")
        return None


def find_filter(filters: List[Filter], key: str) -> Optional[Filter]:
    for candidate in filters:
        if candidate.key == key:
            return candidate
    return None
