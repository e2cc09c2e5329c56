"""Option lists for select and radio fields.

Static options come straight from the schema. Dynamic options come from
an ``OptionCache`` that the session fills after each remote lookup; the
resolver itself never does I/O. Every resolved list starts with the
"Select an option" placeholder.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping

from insurance_forms.schema import ChoiceField, Field


@dataclass(frozen=True)
class Option:
    value: str
    label: str

    def to_dict(self) -> dict:
        return {"value": self.value, "label": self.label}


SENTINEL = Option(value="", label="Select an option")


@dataclass(frozen=True)
class CachedOptions:
    """Options fetched for one particular controlling value."""

    controlling_value: str
    options: tuple[str, ...] = ()


@dataclass
class OptionCache:
    """Last fetched option list per dynamic field, tagged with the value it was fetched for."""

    entries: dict[str, CachedOptions] = field(default_factory=dict)

    def store(self, field_id: str, controlling_value: str, options: list[str]) -> None:
        self.entries[field_id] = CachedOptions(controlling_value, tuple(options))

    def get(self, field_id: str) -> CachedOptions | None:
        return self.entries.get(field_id)

    def invalidate(self, field_id: str) -> None:
        self.entries.pop(field_id, None)

    def clear(self) -> None:
        self.entries.clear()

    def __contains__(self, field_id: str) -> bool:
        return field_id in self.entries

    def __len__(self) -> int:
        return len(self.entries)


def _to_options(values) -> list[Option]:
    return [Option(value=v, label=v) for v in values]


def resolve_options(
    field_def: Field,
    answers: Mapping[str, str],
    cache: OptionCache,
) -> list[Option]:
    """Return the sentinel followed by the options currently available for *field_def*.

    Dynamic fields only show cached options fetched for the controlling
    field's current value. Anything else (unset controlling value, fetch
    pending or failed, cache entry for an older value) yields just the
    sentinel.
    """
    resolved = [SENTINEL]
    if not isinstance(field_def, ChoiceField):
        return resolved

    if field_def.dynamic_options is None:
        resolved.extend(_to_options(field_def.options))
        return resolved

    controlling = answers.get(field_def.dynamic_options.depends_on)
    if not controlling:
        return resolved

    cached = cache.get(field_def.id)
    if cached is not None and cached.controlling_value == controlling:
        resolved.extend(_to_options(cached.options))
    return resolved
