from admin_panel.fields.base import CREATION, UPDATE, Field, data_get
from admin_panel.fields.relationships import BelongsTo, BelongsToMany, HasMany, RelationshipField
from admin_panel.fields.types import (
    ID,
    Boolean,
    Code,
    Currency,
    Date,
    DateTime,
    Email,
    Hidden,
    KeyValue,
    Number,
    Password,
    Select,
    Slug,
    Text,
    Textarea,
)

__all__ = [
    "CREATION",
    "UPDATE",
    "Field",
    "data_get",
    "BelongsTo",
    "BelongsToMany",
    "HasMany",
    "RelationshipField",
    "ID",
    "Boolean",
    "Code",
    "Currency",
    "Date",
    "DateTime",
    "Email",
    "Hidden",
    "KeyValue",
    "Number",
    "Password",
    "Select",
    "Slug",
    "Text",
    "Textarea",
]
