"""Insurance Application -- Streamlit dashboard.

Draws the render list produced by the form engine and reports edits,
submit and reset back to a ``FormController`` kept in session state. A
second tab lists previously submitted applications.

Session state consumed:
    controller   -- FormController for the open form
    flash        -- one-shot (level, message) shown after submit
    field_<id>   -- widget values, one per rendered field
"""

from __future__ import annotations

from datetime import date

import streamlit as st

from insurance_forms.config import configure_logging
from insurance_forms.controller import FormController
from insurance_forms.renderer import InstructionKind, RenderInstruction
from insurance_forms.schema import FieldType
from insurance_forms.session import RequiredFieldsMissingError, SessionBusyError
from insurance_forms.sources import SubmissionsUnavailableError, project_rows

_KEY_PREFIX = "field_"


# ============================================================================
# Private helpers
# ============================================================================

def _controller() -> FormController:
    if "controller" not in st.session_state:
        configure_logging()
        controller = FormController()
        controller.load()
        st.session_state.controller = controller
    return st.session_state.controller


def _clear_widgets() -> None:
    for key in [k for k in st.session_state.keys() if str(k).startswith(_KEY_PREFIX)]:
        del st.session_state[key]


def _on_edit(field_id: str) -> None:
    raw = st.session_state.get(_KEY_PREFIX + field_id)
    if isinstance(raw, date):
        value = raw.isoformat()
    elif raw is None:
        value = ""
    else:
        value = str(raw)
    _controller().edit(field_id, value)


def _parse_date(value: str) -> date | None:
    try:
        return date.fromisoformat(value) if value else None
    except ValueError:
        return None


def _render_field(inst: RenderInstruction) -> None:
    key = _KEY_PREFIX + inst.id
    label = f"{inst.label} *" if inst.required else inst.label
    common = {"key": key, "on_change": _on_edit, "args": (inst.id,)}

    if inst.field_type is FieldType.TEXT:
        st.text_input(label, value=inst.value, **common)
    elif inst.field_type is FieldType.DATE:
        st.date_input(label, value=_parse_date(inst.value), **common)
    elif inst.field_type in (FieldType.SELECT, FieldType.RADIO):
        values = [o.value for o in inst.options]
        labels = {o.value: o.label for o in inst.options}
        index = values.index(inst.value) if inst.value in values else 0
        widget = st.selectbox if inst.field_type is FieldType.SELECT else st.radio
        widget(label, values, index=index, format_func=labels.get, **common)
    else:
        st.error(f"Unsupported field type: {inst.field_type}")


def _render_instructions(instructions: list[RenderInstruction]) -> None:
    for inst in instructions:
        if inst.kind is InstructionKind.FORM_START:
            st.header(inst.label or inst.id)
        elif inst.kind is InstructionKind.GROUP_START:
            st.markdown(f"{'#' * min(inst.depth + 2, 6)} {inst.label}")
        elif inst.kind is InstructionKind.FIELD:
            _render_field(inst)
        elif inst.kind is InstructionKind.GROUP_END:
            st.divider()


def _handle_submit(controller: FormController) -> None:
    try:
        ok = controller.submit()
    except RequiredFieldsMissingError as e:
        labels = _field_labels(controller)
        missing = ", ".join(labels.get(f, f) for f in e.field_ids)
        st.session_state.flash = ("error", f"Please fill in the required fields: {missing}")
        return
    except SessionBusyError:
        st.session_state.flash = ("warning", "A submission is already in progress.")
        return
    if ok:
        _clear_widgets()
        st.session_state.flash = ("success", "Application submitted.")
    else:
        st.session_state.flash = ("error", "Submission failed. Your answers were kept, please try again.")


def _field_labels(controller: FormController) -> dict[str, str]:
    return {
        i.id: i.label or i.id
        for i in controller.render()
        if i.kind is InstructionKind.FIELD
    }


def _handle_reset(controller: FormController) -> None:
    controller.reset()
    _clear_widgets()


def _render_apply(controller: FormController) -> None:
    if not controller.schema_available:
        st.warning("No form schema available. The forms service may be unreachable.")
        if controller.load_error:
            st.caption(controller.load_error)
        if st.button("Retry"):
            controller.load()
            st.rerun()
        return

    flash = st.session_state.pop("flash", None)
    if flash:
        level, message = flash
        getattr(st, level)(message)

    _render_instructions(controller.render())

    col_submit, col_reset = st.columns(2)
    with col_submit:
        st.button("Submit Application", type="primary", on_click=_handle_submit, args=(controller,))
    with col_reset:
        st.button("Reset", on_click=_handle_reset, args=(controller,))


def _render_submissions(controller: FormController) -> None:
    columns = list(controller.settings.submission_columns)
    try:
        rows = controller.client.fetch_submissions()
    except SubmissionsUnavailableError as e:
        st.warning("Could not load submitted applications.")
        st.caption(str(e))
        return

    if not rows:
        st.info("No applications submitted yet.")
        return
    st.dataframe(project_rows(rows, columns), column_order=columns, use_container_width=True, hide_index=True)
    st.caption(f"{len(rows)} application(s)")


# ============================================================================
# Page
# ============================================================================

st.set_page_config(page_title="Apply for Insurance", layout="centered")

controller = _controller()

tab_apply, tab_submissions = st.tabs(["Apply for Insurance", "Submitted Applications"])

with tab_apply:
    _render_apply(controller)

with tab_submissions:
    _render_submissions(controller)
