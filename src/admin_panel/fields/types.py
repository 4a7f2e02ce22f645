"""
Concrete field types.

Each type sets its frontend component and adjusts how values are cast on
fill and formatted on resolve.
"""

import json
import logging
import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

import bcrypt

from admin_panel.fields.base import Field
from admin_panel.utils.datetime_utils import ensure_utc
from admin_panel.utils.naming import snake

if TYPE_CHECKING:
    from admin_panel.resources.request import AdminRequest

logger = logging.getLogger(__name__)

_TRUE_STRINGS = {"1", "true", "on", "yes"}


class ID(Field):
    """Primary key display; never shown on forms."""

    component = "id-field"

    def __init__(self, name: str = "ID", attribute: Optional[str] = "id", *args: Any, **kwargs: Any):
        kwargs.setdefault("sortable", True)
        kwargs.setdefault("readonly", True)
        super().__init__(name, attribute, *args, **kwargs)
        self.show_on_creation = False
        self.show_on_update = False


class Text(Field):
    component = "text-field"

    def cast_input(self, value: Any) -> Any:
        if value is None or isinstance(value, str):
            return value
        return str(value)


class Textarea(Text):
    component = "textarea-field"

    def __init__(self, *args: Any, rows: int = 5, **kwargs: Any):
        super().__init__(*args, **kwargs)
        self.rows = rows
        # Long text is noisy on the index
        self.show_on_index = False

    def json_serialize(self) -> Dict[str, Any]:
        payload = super().json_serialize()
        payload["rows"] = self.rows
        return payload


class Email(Text):
    component = "email-field"

    def cast_input(self, value: Any) -> Any:
        value = super().cast_input(value)
        return value.strip() if isinstance(value, str) else value


class Slug(Text):
    """Lower-case, dash separated identifier generated from input."""

    component = "slug-field"

    def __init__(self, *args: Any, source: Optional[str] = None, separator: str = "-", **kwargs: Any):
        super().__init__(*args, **kwargs)
        self.source = source
        self.separator = separator

    def slugify(self, value: str) -> str:
        cleaned = re.sub(r"[^A-Za-z0-9\s_-]", "", value)
        return snake(cleaned.strip(), self.separator)

    def fill(self, request: "AdminRequest", entity: Any) -> None:
        if self.fill_callback is None and not self.readonly and not request.has(self.attribute):
            if self.source and request.has(self.source) and not getattr(entity, self.attribute, None):
                setattr(entity, self.attribute, self.slugify(str(request.input(self.source) or "")))
            return
        super().fill(request, entity)

    def cast_input(self, value: Any) -> Any:
        if value is None or value == "":
            return value
        return self.slugify(str(value))

    def json_serialize(self) -> Dict[str, Any]:
        payload = super().json_serialize()
        payload["source"] = self.source
        return payload


class Hidden(Field):
    component = "hidden-field"

    def __init__(self, *args: Any, **kwargs: Any):
        super().__init__(*args, **kwargs)
        self.show_on_index = False
        self.show_on_detail = False


class Number(Field):
    component = "number-field"

    def __init__(
        self,
        *args: Any,
        min_value: Optional[float] = None,
        max_value: Optional[float] = None,
        step: Optional[float] = None,
        **kwargs: Any,
    ):
        super().__init__(*args, **kwargs)
        self.min_value = min_value
        self.max_value = max_value
        self.step = step

    def cast_input(self, value: Any) -> Any:
        if value is None or value == "" or isinstance(value, bool):
            return None if value == "" else value
        if isinstance(value, (int, float, Decimal)):
            return value
        try:
            number = float(value)
        except (TypeError, ValueError):
            # Left as-is; validation reports non-numeric input
            return value
        return int(number) if number.is_integer() and "." not in str(value) else number

    def format_value(self, value: Any) -> Any:
        if isinstance(value, Decimal):
            return float(value)
        return value

    def json_serialize(self) -> Dict[str, Any]:
        payload = super().json_serialize()
        payload.update({"min": self.min_value, "max": self.max_value, "step": self.step})
        return payload


class Currency(Number):
    component = "currency-field"

    def __init__(self, *args: Any, currency: str = "USD", **kwargs: Any):
        kwargs.setdefault("step", 0.01)
        super().__init__(*args, **kwargs)
        self.currency = currency

    def cast_input(self, value: Any) -> Any:
        if isinstance(value, str) and value.strip():
            try:
                return Decimal(value.strip())
            except InvalidOperation:
                return value
        return super().cast_input(value)

    def json_serialize(self) -> Dict[str, Any]:
        payload = super().json_serialize()
        payload["currency"] = self.currency
        return payload


class Boolean(Field):
    component = "boolean-field"

    def __init__(self, *args: Any, true_value: Any = True, false_value: Any = False, **kwargs: Any):
        super().__init__(*args, **kwargs)
        self.true_value = true_value
        self.false_value = false_value

    def cast_input(self, value: Any) -> Any:
        if value is None:
            return None
        if isinstance(value, str):
            truthy = value.strip().lower() in _TRUE_STRINGS
        else:
            truthy = bool(value)
        return self.true_value if truthy else self.false_value

    def format_value(self, value: Any) -> Any:
        if value is None:
            return None
        return value == self.true_value or value is True


class Password(Field):
    """Write-only field storing a bcrypt hash."""

    component = "password-field"

    def __init__(self, name: str = "Password", attribute: Optional[str] = "password", *args: Any, **kwargs: Any):
        super().__init__(name, attribute, *args, **kwargs)
        self.show_on_index = False
        self.show_on_detail = False

    def resolve(self, entity: Any, attribute: Optional[str] = None) -> None:
        self.value = None

    def fill(self, request: "AdminRequest", entity: Any) -> None:
        if self.fill_callback is not None:
            super().fill(request, entity)
            return
        value = request.input(self.attribute)
        if self.readonly or not request.has(self.attribute) or not value:
            return
        self.fill_attribute(entity, self.hash_password(str(value)))

    @staticmethod
    def hash_password(password: str) -> str:
        return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")

    @staticmethod
    def check_password(password: str, hashed: str) -> bool:
        return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))


OptionsInput = Union[Mapping[Any, str], Sequence[Union[str, Tuple[Any, str]]]]


class Select(Field):
    component = "select-field"

    def __init__(self, *args: Any, options: Optional[OptionsInput] = None, display_labels: bool = False, **kwargs: Any):
        super().__init__(*args, **kwargs)
        self.options: List[Dict[str, Any]] = self._normalize_options(options or {})
        self.display_labels = display_labels

    @staticmethod
    def _normalize_options(options: OptionsInput) -> List[Dict[str, Any]]:
        if isinstance(options, Mapping):
            return [{"value": value, "label": label} for value, label in options.items()]
        normalized = []
        for option in options:
            if isinstance(option, tuple):
                normalized.append({"value": option[0], "label": option[1]})
            else:
                normalized.append({"value": option, "label": option})
        return normalized

    def option_values(self) -> List[Any]:
        return [option["value"] for option in self.options]

    def label_for(self, value: Any) -> Any:
        for option in self.options:
            if option["value"] == value or str(option["value"]) == str(value):
                return option["label"]
        return value

    def format_value(self, value: Any) -> Any:
        if self.display_labels and value is not None:
            return self.label_for(value)
        return value

    def json_serialize(self) -> Dict[str, Any]:
        payload = super().json_serialize()
        payload["options"] = self.options
        return payload


def _parse_datetime(value: str) -> Optional[datetime]:
    try:
        return datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return None


class Date(Field):
    component = "date-field"

    def cast_input(self, value: Any) -> Any:
        if isinstance(value, str) and value.strip():
            parsed = _parse_datetime(value)
            return parsed.date() if parsed is not None else value
        return value or None

    def format_value(self, value: Any) -> Any:
        if isinstance(value, datetime):
            return value.date().isoformat()
        if isinstance(value, date):
            return value.isoformat()
        return value


class DateTime(Field):
    component = "date-time-field"

    def cast_input(self, value: Any) -> Any:
        if isinstance(value, str) and value.strip():
            parsed = _parse_datetime(value)
            return ensure_utc(parsed) if parsed is not None else value
        return value or None

    def format_value(self, value: Any) -> Any:
        if isinstance(value, datetime):
            return ensure_utc(value).isoformat()
        return value


class Code(Field):
    """JSON document edited as text."""

    component = "code-field"

    def __init__(self, *args: Any, language: str = "json", **kwargs: Any):
        super().__init__(*args, **kwargs)
        self.language = language
        self.show_on_index = False

    def cast_input(self, value: Any) -> Any:
        if self.language == "json" and isinstance(value, str) and value.strip():
            try:
                return json.loads(value)
            except ValueError:
                logger.debug(f"Keeping non-JSON input for {self.attribute} as text")
                return value
        return value

    def json_serialize(self) -> Dict[str, Any]:
        payload = super().json_serialize()
        payload["language"] = self.language
        return payload


class KeyValue(Code):
    component = "key-value-field"

    def cast_input(self, value: Any) -> Any:
        value = super().cast_input(value)
        if isinstance(value, list):
            # [{"key": ..., "value": ...}] rows from the editor
            return {row.get("key"): row.get("value") for row in value if isinstance(row, dict) and row.get("key")}
        return value
