"""
Conversion of entity column values into JSON-safe values.
"""

import enum
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict

from sqlalchemy import inspect

from admin_panel.utils.datetime_utils import ensure_utc


def to_json_value(value: Any) -> Any:
    """Datetimes become ISO-8601 (UTC), decimals strings, enums their value."""
    if isinstance(value, datetime):
        return ensure_utc(value).isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, (dict, list, str, int, float, bool)) or value is None:
        return value
    return str(value)


def entity_to_dict(entity: Any) -> Dict[str, Any]:
    """Mapped column values of an entity keyed by attribute name, JSON-safe."""
    return {
        prop.key: to_json_value(getattr(entity, prop.key))
        for prop in inspect(type(entity)).column_attrs
    }
