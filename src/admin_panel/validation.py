"""
Rule-based validation of resource input.

Rules use the familiar pipe syntax ("required|numeric|min:0") or lists
(["required", "numeric", "min:0"]), and may include callables with the
signature fn(attribute, value, data) -> Optional[str] returning an error
message or None. Rules whose argument contains "|" (regex) must be given
in list form.
"""

import logging
import re
from datetime import date, datetime
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from admin_panel.core.exceptions import ValidationFailed

logger = logging.getLogger(__name__)

Rule = Union[str, Callable[[str, Any, Mapping[str, Any]], Optional[str]]]
RuleSet = Union[str, Sequence[Rule]]

_EMAIL = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_URL = re.compile(r"^https?://[^\s/$.?#].[^\s]*$", re.IGNORECASE)
_INTEGER = re.compile(r"^[+-]?\d+$")

# Rules that still run when the value is absent or empty
_IMPLICIT_RULES = {"required", "present", "filled", "accepted"}
_NUMERIC_RULES = {"numeric", "integer"}
_TRUE_VALUES = (True, 1, "1", "true", "on", "yes")
_FALSE_VALUES = (False, 0, "0", "false", "off", "no")


def normalize_rules(rules: Optional[RuleSet]) -> List[Rule]:
    """Flatten a pipe string or a list (which may itself contain pipe strings) into a rule list."""
    if not rules:
        return []
    if isinstance(rules, str):
        return [part for part in rules.split("|") if part]
    normalized: List[Rule] = []
    for rule in rules:
        if isinstance(rule, str) and "|" in rule and not rule.startswith("regex:"):
            normalized.extend(part for part in rule.split("|") if part)
        elif rule:
            normalized.append(rule)
    return normalized


def merge_rules(*rule_sets: Optional[RuleSet]) -> List[Rule]:
    """Union of several rule sets, keeping first-seen order and dropping duplicates."""
    merged: List[Rule] = []
    for rule_set in rule_sets:
        for rule in normalize_rules(rule_set):
            if rule not in merged:
                merged.append(rule)
    return merged


def parse_rule(rule: str) -> Tuple[str, List[str]]:
    """Split "min:3" into ("min", ["3"]); regex keeps its pattern intact."""
    name, _, raw = rule.partition(":")
    name = name.strip().lower()
    if not raw:
        return name, []
    if name in ("regex", "not_regex"):
        return name, [raw]
    return name, [part.strip() for part in raw.split(",")]


def is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str) and value.strip() == "":
        return True
    if isinstance(value, (list, tuple, dict, set)) and len(value) == 0:
        return True
    return False


def _is_numeric(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, (int, float)):
        return True
    if isinstance(value, str):
        try:
            float(value)
        except ValueError:
            return False
        return True
    return False


def _is_integer(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return True
    if isinstance(value, float):
        return value.is_integer()
    return isinstance(value, str) and bool(_INTEGER.match(value.strip()))


def _is_date(value: Any) -> bool:
    if isinstance(value, (date, datetime)):
        return True
    if not isinstance(value, str):
        return False
    candidate = value.strip().replace("Z", "+00:00")
    try:
        datetime.fromisoformat(candidate)
    except ValueError:
        return False
    return True


def _size(value: Any, numeric: bool) -> Optional[float]:
    if numeric and _is_numeric(value):
        return float(value)
    if isinstance(value, str):
        return float(len(value))
    if isinstance(value, (list, tuple, dict, set)):
        return float(len(value))
    if _is_numeric(value):
        return float(value)
    return None


def _label(attribute: str) -> str:
    return attribute.replace("_", " ")


def _size_unit(value: Any, numeric: bool) -> str:
    if numeric and _is_numeric(value):
        return ""
    if isinstance(value, str):
        return " characters"
    if isinstance(value, (list, tuple, dict, set)):
        return " items"
    return ""


class Validator:
    """Validates a data mapping against an attribute -> rules map."""

    def __init__(self, data: Mapping[str, Any], rules: Mapping[str, RuleSet]):
        self.data = dict(data)
        self.rules = {attribute: normalize_rules(rule_set) for attribute, rule_set in rules.items()}
        self.errors: Dict[str, List[str]] = {}

    def fails(self) -> bool:
        self.errors = {}
        for attribute, rule_list in self.rules.items():
            self._validate_attribute(attribute, rule_list)
        return bool(self.errors)

    def validate(self) -> Dict[str, Any]:
        """Return the validated subset of the data or raise ValidationFailed."""
        if self.fails():
            raise ValidationFailed(self.errors)
        return {attribute: self.data[attribute] for attribute in self.rules if attribute in self.data}

    def _add_error(self, attribute: str, message: str) -> None:
        self.errors.setdefault(attribute, []).append(message)

    def _validate_attribute(self, attribute: str, rule_list: List[Rule]) -> None:
        names = {parse_rule(rule)[0] for rule in rule_list if isinstance(rule, str)}
        present = attribute in self.data
        value = self.data.get(attribute)

        if "sometimes" in names and not present:
            return
        if "nullable" in names and value is None:
            return

        numeric = bool(names & _NUMERIC_RULES)
        for rule in rule_list:
            if callable(rule):
                if is_empty(value):
                    continue
                message = rule(attribute, value, self.data)
                if message:
                    self._add_error(attribute, message)
                continue

            name, args = parse_rule(rule)
            if name in ("sometimes", "nullable", "bail"):
                continue
            if is_empty(value) and name not in _IMPLICIT_RULES and name != "confirmed":
                continue

            message = self._check(name, args, attribute, value, present, numeric)
            if message:
                self._add_error(attribute, message)
                if name == "required" or "bail" in names:
                    return

    def _check(
        self,
        name: str,
        args: List[str],
        attribute: str,
        value: Any,
        present: bool,
        numeric: bool,
    ) -> Optional[str]:
        label = _label(attribute)

        if name == "required":
            return None if present and not is_empty(value) else f"The {label} field is required."
        if name == "present":
            return None if present else f"The {label} field must be present."
        if name == "filled":
            return None if not present or not is_empty(value) else f"The {label} field must have a value."
        if name == "accepted":
            return None if value in _TRUE_VALUES else f"The {label} field must be accepted."
        if name == "string":
            return None if isinstance(value, str) else f"The {label} field must be a string."
        if name == "numeric":
            return None if _is_numeric(value) else f"The {label} field must be a number."
        if name == "integer":
            return None if _is_integer(value) else f"The {label} field must be an integer."
        if name == "boolean":
            return None if value in _TRUE_VALUES or value in _FALSE_VALUES else f"The {label} field must be true or false."
        if name == "email":
            return None if isinstance(value, str) and _EMAIL.match(value) else f"The {label} field must be a valid email address."
        if name == "url":
            return None if isinstance(value, str) and _URL.match(value) else f"The {label} field must be a valid URL."
        if name == "date":
            return None if _is_date(value) else f"The {label} field must be a valid date."
        if name == "array":
            return None if isinstance(value, (list, dict)) else f"The {label} field must be an array."
        if name in ("min", "max", "size", "between"):
            return self._check_size(name, args, label, value, numeric)
        if name == "in":
            return None if str(value) in args else f"The selected {label} is invalid."
        if name == "not_in":
            return None if str(value) not in args else f"The selected {label} is invalid."
        if name == "regex":
            return None if isinstance(value, str) and re.search(_strip_delimiters(args[0]), value) else f"The {label} field format is invalid."
        if name == "not_regex":
            return None if isinstance(value, str) and not re.search(_strip_delimiters(args[0]), value) else f"The {label} field format is invalid."
        if name == "confirmed":
            return None if self.data.get(f"{attribute}_confirmation") == value else f"The {label} field confirmation does not match."
        if name == "same":
            return None if self.data.get(args[0]) == value else f"The {label} field must match {_label(args[0])}."
        if name == "different":
            return None if self.data.get(args[0]) != value else f"The {label} field and {_label(args[0])} must be different."
        raise ValueError(f"Unknown validation rule: {name}")

    def _check_size(self, name: str, args: List[str], label: str, value: Any, numeric: bool) -> Optional[str]:
        size = _size(value, numeric)
        if size is None:
            return f"The {label} field has an invalid size."
        unit = _size_unit(value, numeric)
        if name == "min" and size < float(args[0]):
            return f"The {label} field must be at least {args[0]}{unit}."
        if name == "max" and size > float(args[0]):
            return f"The {label} field must not be greater than {args[0]}{unit}."
        if name == "size" and size != float(args[0]):
            return f"The {label} field must be {args[0]}{unit}."
        if name == "between" and not (float(args[0]) <= size <= float(args[1])):
            return f"The {label} field must be between {args[0]} and {args[1]}{unit}."
        return None


def _strip_delimiters(pattern: str) -> str:
    """Accept "/^abc$/" style patterns as well as bare ones."""
    if len(pattern) >= 2 and pattern[0] == "/" and pattern.rfind("/") > 0:
        return pattern[1:pattern.rfind("/")]
    return pattern


def validate(data: Mapping[str, Any], rules: Mapping[str, RuleSet]) -> Dict[str, Any]:
    """Validate data against rules; raises ValidationFailed with field-keyed messages."""
    return Validator(data, rules).validate()


def rule_names(rules: Iterable[Rule]) -> List[str]:
    return [parse_rule(rule)[0] for rule in rules if isinstance(rule, str)]
