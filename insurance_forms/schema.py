"""Data models for runtime-delivered application forms.

Dataclasses for forms, nested field groups, visibility rules and dynamic
option descriptors. The wire format is camelCase JSON; every model parses
it with ``from_dict`` and writes it back with ``to_dict``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterator


class FormsError(Exception):
    """Base class for all form engine errors."""


class SchemaError(FormsError):
    """Raised when a schema document cannot be interpreted."""


class FieldType(str, Enum):
    GROUP = "group"
    TEXT = "text"
    DATE = "date"
    SELECT = "select"
    RADIO = "radio"


class Condition(str, Enum):
    EQUALS = "equals"
    NOT_EQUALS = "notEquals"
    GREATER_THAN = "greaterThan"
    LESS_THAN = "lessThan"
    GREATER_THAN_OR_EQUAL = "greaterThanOrEqual"
    LESS_THAN_OR_EQUAL = "lessThanOrEqual"
    CONTAINS = "contains"
    NOT_CONTAINS = "notContains"
    EXISTS = "exists"
    NOT_EXISTS = "notExists"


@dataclass(frozen=True)
class Rule:
    """Visibility condition over another field's current answer."""

    depends_on: str
    condition: str             # kept raw so unknown operators fail closed
    value: str | int | float | bool | None = None

    def to_dict(self) -> dict:
        d: dict[str, Any] = {"dependsOn": self.depends_on, "condition": self.condition}
        if self.value is not None:
            d["value"] = self.value
        return d

    @classmethod
    def from_dict(cls, d: Any) -> Rule:
        if not isinstance(d, dict):
            # Unparseable rules never match
            return cls(depends_on="", condition="")
        return cls(
            depends_on=str(d.get("dependsOn") or ""),
            condition=str(d.get("condition") or ""),
            value=d.get("value"),
        )


@dataclass(frozen=True)
class DynamicOptions:
    """Remote option list keyed off another field's value."""

    depends_on: str
    endpoint: str
    method: str = "get"

    def to_dict(self) -> dict:
        return {"dependsOn": self.depends_on, "endpoint": self.endpoint, "method": self.method}

    @classmethod
    def from_dict(cls, d: Any) -> DynamicOptions:
        if not isinstance(d, dict):
            raise SchemaError(f"dynamicOptions must be an object, got {type(d).__name__}")
        if not d.get("dependsOn") or not d.get("endpoint"):
            raise SchemaError("dynamicOptions requires 'dependsOn' and 'endpoint'")
        return cls(
            depends_on=str(d["dependsOn"]),
            endpoint=str(d["endpoint"]),
            method=str(d.get("method") or "get").lower(),
        )


@dataclass
class Field:
    """Common attributes of every schema field."""

    id: str
    label: str = ""
    required: bool = False
    visibility: Rule | None = None

    type = FieldType.TEXT

    def to_dict(self) -> dict:
        d: dict[str, Any] = {"id": self.id, "type": self.type.value, "label": self.label}
        if self.required:
            d["required"] = True
        if self.visibility is not None:
            d["visibility"] = self.visibility.to_dict()
        return d

    @classmethod
    def from_dict(cls, d: dict) -> Field:
        """Parse any field variant, dispatching on its ``type`` tag."""
        if not isinstance(d, dict):
            raise SchemaError(f"Field must be an object, got {type(d).__name__}")
        if not d.get("id"):
            raise SchemaError("Field is missing 'id'")
        try:
            field_type = FieldType(d.get("type"))
        except ValueError:
            raise SchemaError(f"Field {d['id']!r} has unknown type {d.get('type')!r}") from None

        field_cls = FIELD_CLASSES[field_type]
        visibility = d.get("visibility")
        common = {
            "id": str(d["id"]),
            "label": d.get("label", ""),
            "required": bool(d.get("required", False)),
            "visibility": Rule.from_dict(visibility) if visibility else None,
        }
        return field_cls._from_dict(d, common)

    @classmethod
    def _from_dict(cls, d: dict, common: dict) -> Field:
        if d.get("fields") is not None:
            raise SchemaError(f"Field {d['id']!r} of type {cls.type.value!r} cannot contain fields")
        return cls(**common)



def _parse_fields(d: dict, owner) -> list[Field]:
    children = d.get("fields") or []
    if not isinstance(children, list):
        raise SchemaError(f"{owner!r} fields must be a list, got {type(children).__name__}")
    return [Field.from_dict(f) for f in children]


@dataclass
class GroupField(Field):
    fields: list[Field] = field(default_factory=list)

    type = FieldType.GROUP

    def to_dict(self) -> dict:
        d = super().to_dict()
        d["fields"] = [f.to_dict() for f in self.fields]
        return d

    @classmethod
    def _from_dict(cls, d: dict, common: dict) -> GroupField:
        if d.get("options") is not None or d.get("dynamicOptions") is not None:
            raise SchemaError(f"Group {d['id']!r} cannot define options")
        return cls(**common, fields=_parse_fields(d, d["id"]))


@dataclass
class TextField(Field):
    type = FieldType.TEXT


@dataclass
class DateField(Field):
    type = FieldType.DATE


@dataclass
class ChoiceField(Field):
    """A field answered by picking one of a list of options."""

    options: list[str] = field(default_factory=list)
    dynamic_options: DynamicOptions | None = None

    @property
    def is_dynamic(self) -> bool:
        return self.dynamic_options is not None

    def to_dict(self) -> dict:
        d = super().to_dict()
        if self.options:
            d["options"] = list(self.options)
        if self.dynamic_options is not None:
            d["dynamicOptions"] = self.dynamic_options.to_dict()
        return d

    @classmethod
    def _from_dict(cls, d: dict, common: dict) -> ChoiceField:
        if d.get("fields") is not None:
            raise SchemaError(f"Field {d['id']!r} of type {cls.type.value!r} cannot contain fields")
        options = d.get("options") or []
        if not isinstance(options, list):
            raise SchemaError(f"Field {d['id']!r} options must be a list, got {type(options).__name__}")
        dynamic = d.get("dynamicOptions")
        return cls(
            **common,
            options=[str(o) for o in options],
            dynamic_options=DynamicOptions.from_dict(dynamic) if dynamic else None,
        )


@dataclass
class SelectField(ChoiceField):
    type = FieldType.SELECT


@dataclass
class RadioField(ChoiceField):
    type = FieldType.RADIO


FIELD_CLASSES: dict[FieldType, type[Field]] = {
    FieldType.GROUP: GroupField,
    FieldType.TEXT: TextField,
    FieldType.DATE: DateField,
    FieldType.SELECT: SelectField,
    FieldType.RADIO: RadioField,
}


@dataclass
class Form:
    """A complete form: a titled, ordered list of top-level fields."""

    form_id: str
    title: str = ""
    fields: list[Field] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "formId": self.form_id,
            "title": self.title,
            "fields": [f.to_dict() for f in self.fields],
        }

    @classmethod
    def from_dict(cls, d: dict) -> Form:
        if not isinstance(d, dict):
            raise SchemaError(f"Form must be an object, got {type(d).__name__}")
        return cls(
            form_id=str(d.get("formId", "")),
            title=d.get("title", ""),
            fields=_parse_fields(d, d.get("formId", "")),
        )


def parse_forms(payload: Any) -> list[Form]:
    """Parse a schema payload: a list of forms, or a single form object."""
    if isinstance(payload, dict):
        payload = [payload]
    if not isinstance(payload, list):
        raise SchemaError(f"Schema must be a list of forms, got {type(payload).__name__}")
    return [Form.from_dict(f) for f in payload]


def _walk(fields: list[Field]) -> Iterator[Field]:
    for f in fields:
        yield f
        if isinstance(f, GroupField):
            yield from _walk(f.fields)


def iter_fields(forms: list[Form]) -> Iterator[Field]:
    """Yield every field of every form, depth-first in schema order."""
    for form in forms:
        yield from _walk(form.fields)


def extract_dynamic_fields(forms: list[Form]) -> list[ChoiceField]:
    """Return all choice fields whose options come from a remote lookup."""
    return [f for f in iter_fields(forms) if isinstance(f, ChoiceField) and f.is_dynamic]


def find_field(forms: list[Form], field_id: str) -> Field | None:
    for f in iter_fields(forms):
        if f.id == field_id:
            return f
    return None
