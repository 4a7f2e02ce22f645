"""
Field base class.

A Field is a declarative descriptor of one entity attribute: how it is
displayed (visibility per view), validated (rule sets per context),
resolved for display, and filled from request input. Field instances are
created fresh on every Resource.fields() call and hold one mutable slot,
the resolved value.
"""

import logging
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional

from admin_panel.validation import Rule, RuleSet, merge_rules, normalize_rules

if TYPE_CHECKING:
    from admin_panel.resources.request import AdminRequest

logger = logging.getLogger(__name__)

ResolveCallback = Callable[[Any, Any], Any]
FillCallback = Callable[["AdminRequest", Any, str], None]
DisplayCallback = Callable[[Any, Any], Any]
SeeCallback = Callable[["AdminRequest"], bool]

CREATION = "creation"
UPDATE = "update"


def data_get(target: Any, path: str, default: Any = None) -> Any:
    """Read a dotted path ("author.name") through attributes and mapping keys."""
    current = target
    for segment in path.split("."):
        if current is None:
            return default
        if isinstance(current, dict):
            current = current.get(segment, default)
        else:
            current = getattr(current, segment, default)
    return current


class Field:
    """Declarative descriptor of one displayable/editable attribute."""

    component = "text-field"

    def __init__(
        self,
        name: str,
        attribute: Optional[str] = None,
        resolve_callback: Optional[ResolveCallback] = None,
        *,
        rules: Optional[RuleSet] = None,
        creation_rules: Optional[RuleSet] = None,
        update_rules: Optional[RuleSet] = None,
        sortable: bool = False,
        searchable: bool = False,
        nullable: bool = False,
        readonly: bool = False,
        help_text: Optional[str] = None,
        placeholder: Optional[str] = None,
        default: Any = None,
        meta: Optional[Dict[str, Any]] = None,
    ):
        self.name = name
        self.attribute = attribute or name.lower().replace(" ", "_")
        self.resolve_callback = resolve_callback
        self.fill_callback: Optional[FillCallback] = None
        self.display_callback: Optional[DisplayCallback] = None
        self.see_callback: Optional[SeeCallback] = None

        self.rules: List[Rule] = normalize_rules(rules)
        self.creation_rules: List[Rule] = normalize_rules(creation_rules)
        self.update_rules: List[Rule] = normalize_rules(update_rules)

        # Visibility flags are independent of each other
        self.show_on_index = True
        self.show_on_detail = True
        self.show_on_creation = True
        self.show_on_update = True

        self.sortable = sortable
        self.searchable = searchable
        self.nullable = nullable
        self.readonly = readonly
        self.help_text = help_text
        self.placeholder = placeholder
        self.default = default
        self.meta: Dict[str, Any] = dict(meta or {})

        self.value: Any = None

    @classmethod
    def make(cls, *args: Any, **kwargs: Any) -> "Field":
        return cls(*args, **kwargs)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, attribute={self.attribute!r})"

    # ===== Visibility =====

    def hide_from_index(self, hide: bool = True) -> "Field":
        self.show_on_index = not hide
        return self

    def hide_from_detail(self, hide: bool = True) -> "Field":
        self.show_on_detail = not hide
        return self

    def hide_when_creating(self, hide: bool = True) -> "Field":
        self.show_on_creation = not hide
        return self

    def hide_when_updating(self, hide: bool = True) -> "Field":
        self.show_on_update = not hide
        return self

    def show_on_creating(self, show: bool = True) -> "Field":
        self.show_on_creation = show
        return self

    def show_on_updating(self, show: bool = True) -> "Field":
        self.show_on_update = show
        return self

    def only_on_index(self) -> "Field":
        return self._set_visibility(index=True, detail=False, creation=False, update=False)

    def only_on_detail(self) -> "Field":
        return self._set_visibility(index=False, detail=True, creation=False, update=False)

    def only_on_forms(self) -> "Field":
        return self._set_visibility(index=False, detail=False, creation=True, update=True)

    def except_on_forms(self) -> "Field":
        return self._set_visibility(index=True, detail=True, creation=False, update=False)

    def _set_visibility(self, index: bool, detail: bool, creation: bool, update: bool) -> "Field":
        self.show_on_index = index
        self.show_on_detail = detail
        self.show_on_creation = creation
        self.show_on_update = update
        return self

    def is_shown_on_forms(self) -> bool:
        return self.show_on_creation or self.show_on_update

    # ===== Callbacks =====

    def resolve_using(self, callback: ResolveCallback) -> "Field":
        self.resolve_callback = callback
        return self

    def fill_using(self, callback: FillCallback) -> "Field":
        self.fill_callback = callback
        return self

    def display_using(self, callback: DisplayCallback) -> "Field":
        self.display_callback = callback
        return self

    def can_see(self, callback: SeeCallback) -> "Field":
        self.see_callback = callback
        return self

    def with_meta(self, meta: Dict[str, Any]) -> "Field":
        self.meta.update(meta)
        return self

    def required(self, required: bool = True) -> "Field":
        """Add or remove the "required" base rule."""
        if required:
            if "required" not in self.rules:
                self.rules.append("required")
        else:
            self.rules = [rule for rule in self.rules if rule != "required"]
        return self

    # ===== Pipeline =====

    def authorize(self, request: "AdminRequest") -> bool:
        if self.see_callback is None:
            return True
        return bool(self.see_callback(request))

    def resolve(self, entity: Any, attribute: Optional[str] = None) -> None:
        """Store the display value for the entity in the field's value slot."""
        attribute = attribute or self.attribute
        raw = data_get(entity, attribute)
        if self.resolve_callback is not None:
            self.value = self.resolve_callback(raw, entity)
        else:
            self.value = self.format_value(raw)

    def resolve_value(self, entity: Any) -> Any:
        """Resolve, fall back to the default, then apply the display callback."""
        self.resolve(entity)
        value = self.value if self.value is not None else self.default
        if self.display_callback is not None:
            value = self.display_callback(value, entity)
        return value

    def fill(self, request: "AdminRequest", entity: Any) -> None:
        """Hydrate the entity attribute from the request."""
        if self.fill_callback is not None:
            self.fill_callback(request, entity, self.attribute)
            return
        if self.readonly or not request.has(self.attribute):
            return
        self.fill_attribute(entity, self.cast_input(request.input(self.attribute)))

    def fill_attribute(self, entity: Any, value: Any) -> None:
        setattr(entity, self.attribute, value)

    def cast_input(self, value: Any) -> Any:
        """Convert raw request input into the value written to the entity."""
        return value

    def format_value(self, value: Any) -> Any:
        """Convert a raw entity value into its serializable display form."""
        return value

    def effective_rules(self, context: str) -> List[Rule]:
        """
        Rules used to validate this field in a context.

        Creation merges base and creation rules; update uses the update
        rules alone when any are set, otherwise the base rules.
        """
        if context == CREATION:
            return merge_rules(self.rules, self.creation_rules)
        if context == UPDATE:
            return list(self.update_rules) if self.update_rules else list(self.rules)
        raise ValueError(f"Unknown validation context: {context}")

    def json_serialize(self) -> Dict[str, Any]:
        payload = {
            "component": self.component,
            "name": self.name,
            "attribute": self.attribute,
            "value": self.value,
            "sortable": self.sortable,
            "searchable": self.searchable,
            "nullable": self.nullable,
            "readonly": self.readonly,
            "help_text": self.help_text,
            "placeholder": self.placeholder,
            "default": self.default,
            "rules": [rule for rule in self.rules if isinstance(rule, str)],
            "show_on_index": self.show_on_index,
            "show_on_detail": self.show_on_detail,
            "show_on_creation": self.show_on_creation,
            "show_on_update": self.show_on_update,
        }
        payload.update(self.meta)
        return payload
