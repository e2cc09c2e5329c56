"""Walk a form schema and produce a flat list of render instructions.

The walk is depth-first and pre-order. Hidden nodes are dropped together
with everything under them, groups are bracketed by start/end markers,
and every visible leaf becomes one ``FIELD`` instruction. Output order is
schema declaration order at every level.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Mapping

from insurance_forms.conditions import is_visible
from insurance_forms.options import Option, OptionCache, resolve_options
from insurance_forms.schema import ChoiceField, Field, FieldType, Form, GroupField


class InstructionKind(str, Enum):
    FORM_START = "form_start"
    FORM_END = "form_end"
    GROUP_START = "group_start"
    GROUP_END = "group_end"
    FIELD = "field"


@dataclass(frozen=True)
class RenderInstruction:
    kind: InstructionKind
    id: str
    label: str
    depth: int = 0
    field_type: FieldType | None = None
    required: bool = False
    value: str = ""
    options: tuple[Option, ...] = ()

    def to_dict(self) -> dict:
        d = {
            "kind": self.kind.value,
            "id": self.id,
            "label": self.label,
            "depth": self.depth,
        }
        if self.kind is InstructionKind.FIELD:
            d["type"] = self.field_type.value
            d["required"] = self.required
            d["value"] = self.value
            if self.field_type in (FieldType.SELECT, FieldType.RADIO):
                d["options"] = [o.to_dict() for o in self.options]
        return d


# -- Per-type handlers --------------------------------------------------------

_Handler = Callable[[Field, Mapping[str, str], OptionCache, int], list[RenderInstruction]]


def _render_group(node: GroupField, answers, cache, depth) -> list[RenderInstruction]:
    out = [RenderInstruction(InstructionKind.GROUP_START, node.id, node.label, depth)]
    for child in node.fields:
        out.extend(_render_node(child, answers, cache, depth + 1))
    out.append(RenderInstruction(InstructionKind.GROUP_END, node.id, node.label, depth))
    return out


def _render_input(node: Field, answers, cache, depth) -> list[RenderInstruction]:
    return [
        RenderInstruction(
            InstructionKind.FIELD,
            node.id,
            node.label,
            depth,
            field_type=node.type,
            required=node.required,
            value=answers.get(node.id) or "",
        )
    ]


def _render_choice(node: ChoiceField, answers, cache, depth) -> list[RenderInstruction]:
    return [
        RenderInstruction(
            InstructionKind.FIELD,
            node.id,
            node.label,
            depth,
            field_type=node.type,
            required=node.required,
            value=answers.get(node.id) or "",
            options=tuple(resolve_options(node, answers, cache)),
        )
    ]


HANDLERS: dict[FieldType, _Handler] = {
    FieldType.GROUP: _render_group,
    FieldType.TEXT: _render_input,
    FieldType.DATE: _render_input,
    FieldType.SELECT: _render_choice,
    FieldType.RADIO: _render_choice,
}


def _render_node(node: Field, answers, cache, depth: int) -> list[RenderInstruction]:
    if not is_visible(node, answers):
        return []
    handler = HANDLERS.get(node.type)
    if handler is None:
        raise TypeError(f"No renderer registered for field type {node.type!r}")
    return handler(node, answers, cache, depth)


# -- Public API ---------------------------------------------------------------

def render(
    node: Field,
    answers: Mapping[str, str],
    cache: OptionCache | None = None,
) -> list[RenderInstruction]:
    """Render a single field subtree. Returns an empty list if it is hidden."""
    return _render_node(node, answers, cache if cache is not None else OptionCache(), 0)


def render_form(
    form: Form,
    answers: Mapping[str, str],
    cache: OptionCache | None = None,
) -> list[RenderInstruction]:
    cache = cache if cache is not None else OptionCache()
    out = [RenderInstruction(InstructionKind.FORM_START, form.form_id, form.title, 0)]
    for f in form.fields:
        out.extend(_render_node(f, answers, cache, 1))
    out.append(RenderInstruction(InstructionKind.FORM_END, form.form_id, form.title, 0))
    return out


def render_forms(
    forms: list[Form],
    answers: Mapping[str, str],
    cache: OptionCache | None = None,
) -> list[RenderInstruction]:
    """Render every form in order, each bracketed by form start/end markers."""
    cache = cache if cache is not None else OptionCache()
    out: list[RenderInstruction] = []
    for form in forms:
        out.extend(render_form(form, answers, cache))
    return out


def visible_field_ids(forms: list[Form], answers: Mapping[str, str]) -> list[str]:
    """Ids of all leaf fields that would currently be rendered."""
    return [
        i.id for i in render_forms(forms, answers)
        if i.kind is InstructionKind.FIELD
    ]


def missing_required_fields(
    forms: list[Form],
    answers: Mapping[str, str],
) -> list[str]:
    """Ids of visible required leaf fields that have no answer yet."""
    return [
        i.id for i in render_forms(forms, answers)
        if i.kind is InstructionKind.FIELD and i.required and not i.value
    ]
