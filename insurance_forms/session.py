"""Per-form session state: answers, dynamic option cache, submit lifecycle.

One ``FormSession`` is created when a form is opened and discarded when it
is closed. It never performs I/O itself. Edits return the option lookups
the caller should run; lookup results and submit outcomes are fed back in
through ``apply_options`` / ``fail_options`` / ``complete_submit``.

State machine::

    IDLE -> EDITING -> SUBMITTING -> SUBMIT_SUCCEEDED -> IDLE
                                  -> SUBMIT_FAILED    -> EDITING
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from insurance_forms.dependencies import DependencyTracker
from insurance_forms.options import OptionCache
from insurance_forms.renderer import RenderInstruction, missing_required_fields, render_forms
from insurance_forms.schema import (
    ChoiceField,
    Form,
    FormsError,
    GroupField,
    extract_dynamic_fields,
    find_field,
)

log = logging.getLogger(__name__)


class SessionBusyError(FormsError):
    """Raised when an operation is attempted while a submit is in flight."""


class InvalidTransitionError(FormsError):
    """Raised when a state transition is not allowed from the current state."""


class UnknownFieldError(FormsError, KeyError):
    """Raised when an edit names a field the schema does not define."""


class RequiredFieldsMissingError(FormsError):
    """Raised when a submit is attempted with visible required fields left empty."""

    def __init__(self, field_ids: list[str]):
        super().__init__(f"Required fields missing: {', '.join(field_ids)}")
        self.field_ids = field_ids


class SessionState(str, Enum):
    IDLE = "idle"
    EDITING = "editing"
    SUBMITTING = "submitting"
    SUBMIT_SUCCEEDED = "submit_succeeded"
    SUBMIT_FAILED = "submit_failed"


@dataclass(frozen=True)
class FetchRequest:
    """A pending option lookup, tagged with the controlling value that triggered it."""

    field_id: str
    endpoint: str
    method: str
    depends_on: str
    value: str


class FormSession:
    def __init__(self, forms: list[Form]):
        self.forms = forms
        self.answers: dict[str, str] = {}
        self.cache = OptionCache()
        self.state = SessionState.IDLE
        self.last_outcome: SessionState | None = None
        self._dynamic: dict[str, ChoiceField] = {
            f.id: f for f in extract_dynamic_fields(forms)
        }
        self._tracker = DependencyTracker(self._dynamic.values())

    # -- Editing --------------------------------------------------------------

    def edit(self, field_id: str, value: str) -> list[FetchRequest]:
        """Record an answer and return the option lookups it makes necessary."""
        if self.state is SessionState.SUBMITTING:
            raise SessionBusyError("Cannot edit answers while a submission is in progress")
        target = find_field(self.forms, field_id)
        if target is None or isinstance(target, GroupField):
            raise UnknownFieldError(field_id)

        self.answers[field_id] = value
        self.state = SessionState.EDITING
        return self._check_dependencies()

    def _check_dependencies(self) -> list[FetchRequest]:
        refresh, invalidated = self._tracker.check(self.answers)
        for field_id in invalidated:
            self.cache.invalidate(field_id)

        requests: list[FetchRequest] = []
        for field_id in sorted(refresh):
            dyn = self._dynamic[field_id].dynamic_options
            requests.append(
                FetchRequest(
                    field_id=field_id,
                    endpoint=dyn.endpoint,
                    method=dyn.method,
                    depends_on=dyn.depends_on,
                    value=self.answers[dyn.depends_on],
                )
            )
        return requests

    def pending_requests(self) -> list[FetchRequest]:
        """Lookups for dynamic fields whose controlling value is set but not yet cached."""
        requests: list[FetchRequest] = []
        for field_id, f in self._dynamic.items():
            dyn = f.dynamic_options
            value = self.answers.get(dyn.depends_on)
            cached = self.cache.get(field_id)
            if value and (cached is None or cached.controlling_value != value):
                requests.append(FetchRequest(field_id, dyn.endpoint, dyn.method, dyn.depends_on, value))
        return requests

    def apply_options(self, request: FetchRequest, options: list[str]) -> bool:
        """Store fetched options unless the controlling value moved on meanwhile."""
        current = self.answers.get(request.depends_on)
        if current != request.value:
            log.warning(
                "Discarding stale options for %s (fetched for %s=%r, now %r)",
                request.field_id, request.depends_on, request.value, current,
            )
            return False
        self.cache.store(request.field_id, request.value, options)
        log.debug("Cached %d options for %s", len(options), request.field_id)
        return True

    def fail_options(self, request: FetchRequest, error: Exception) -> None:
        log.warning("Option lookup for %s failed: %s", request.field_id, error)

    # -- Submit ---------------------------------------------------------------

    def missing_required(self) -> list[str]:
        """Visible required fields without an answer. Hidden fields never block a submit."""
        return missing_required_fields(self.forms, self.answers)

    def begin_submit(self) -> dict[str, str]:
        """Enter SUBMITTING and return the payload (a copy of all answers)."""
        if self.state is SessionState.SUBMITTING:
            raise SessionBusyError("A submission is already in progress")
        missing = self.missing_required()
        if missing:
            raise RequiredFieldsMissingError(missing)
        self.state = SessionState.SUBMITTING
        return dict(self.answers)

    def complete_submit(self, succeeded: bool) -> None:
        if self.state is not SessionState.SUBMITTING:
            raise InvalidTransitionError(f"Cannot complete a submit from state {self.state.value}")
        if succeeded:
            self.last_outcome = SessionState.SUBMIT_SUCCEEDED
            self._clear()
            self.state = SessionState.IDLE
            log.info("Submission succeeded, answers cleared")
        else:
            self.last_outcome = SessionState.SUBMIT_FAILED
            self.state = SessionState.EDITING
            log.warning("Submission failed, keeping %d answers", len(self.answers))

    def reset(self) -> None:
        if self.state is SessionState.SUBMITTING:
            raise SessionBusyError("Cannot reset while a submission is in progress")
        self._clear()
        self.state = SessionState.IDLE
        self.last_outcome = None

    def _clear(self) -> None:
        self.answers = {}
        self.cache.clear()
        self._tracker.reset()

    # -- Rendering ------------------------------------------------------------

    def render(self) -> list[RenderInstruction]:
        return render_forms(self.forms, self.answers, self.cache)
