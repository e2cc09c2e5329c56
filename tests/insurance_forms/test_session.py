"""Tests for insurance_forms/session.py — answers, option cache, submit lifecycle."""

from __future__ import annotations

import pytest

from insurance_forms.options import SENTINEL, Option
from insurance_forms.session import (
    FetchRequest,
    FormSession,
    InvalidTransitionError,
    RequiredFieldsMissingError,
    SessionBusyError,
    SessionState,
    UnknownFieldError,
)


def _state_options(session):
    inst = next(i for i in session.render() if i.id == "state")
    return list(inst.options)


@pytest.fixture()
def session(country_state_forms):
    return FormSession(country_state_forms)


# ── Editing ──────────────────────────────────────────────────────────────


class TestEdit:
    def test_starts_idle_and_empty(self, session):
        assert session.state is SessionState.IDLE
        assert session.answers == {}

    def test_edit_moves_to_editing(self, session):
        session.edit("country", "US")
        assert session.state is SessionState.EDITING
        assert session.answers == {"country": "US"}

    def test_unknown_field(self, session):
        with pytest.raises(UnknownFieldError):
            session.edit("nope", "x")

    def test_group_not_editable(self, health_forms):
        with pytest.raises(UnknownFieldError):
            FormSession(health_forms).edit("address", "x")

    def test_controlling_edit_returns_fetch(self, session):
        requests = session.edit("country", "US")
        assert requests == [FetchRequest("state", "/states", "get", "country", "US")]

    def test_unrelated_edit_returns_nothing(self, session):
        session.edit("country", "US")
        assert session.edit("state", "CA") == []

    def test_same_value_again_returns_nothing(self, session):
        session.edit("country", "US")
        assert session.edit("country", "US") == []

    def test_clearing_controlling_value(self, session):
        (request,) = session.edit("country", "US")
        session.apply_options(request, ["CA", "NY"])
        assert session.edit("country", "") == []
        assert "state" not in session.cache
        assert _state_options(session) == [SENTINEL]


# ── Scenario A: country -> state ─────────────────────────────────────────


class TestDynamicOptionFlow:
    def test_scenario_country_state(self, session):
        requests = session.edit("country", "US")
        assert len(requests) == 1
        assert requests[0].endpoint == "/states"
        assert requests[0].depends_on == "country"
        assert requests[0].value == "US"

        # Before the lookup completes only the placeholder is offered
        assert _state_options(session) == [SENTINEL]

        assert session.apply_options(requests[0], ["CA", "NY"]) is True
        assert _state_options(session) == [SENTINEL, Option("CA", "CA"), Option("NY", "NY")]

    def test_change_invalidates_previous_options(self, session):
        (us,) = session.edit("country", "US")
        session.apply_options(us, ["CA", "NY"])
        (india,) = session.edit("country", "IN")
        assert india.value == "IN"
        assert _state_options(session) == [SENTINEL]

    def test_stale_response_discarded(self, session):
        (us,) = session.edit("country", "US")
        (india,) = session.edit("country", "IN")
        assert session.apply_options(us, ["CA", "NY"]) is False
        assert _state_options(session) == [SENTINEL]
        assert session.apply_options(india, ["Goa"]) is True
        assert [o.value for o in _state_options(session)] == ["", "Goa"]

    def test_failed_fetch_keeps_sentinel(self, session):
        (request,) = session.edit("country", "US")
        session.fail_options(request, RuntimeError("timeout"))
        assert _state_options(session) == [SENTINEL]

    def test_pending_requests(self, session):
        assert session.pending_requests() == []
        (request,) = session.edit("country", "US")
        assert session.pending_requests() == [request]
        session.apply_options(request, ["CA"])
        assert session.pending_requests() == []


# ── Submit (Scenarios C and D) ───────────────────────────────────────────


@pytest.fixture()
def filled(health_forms):
    session = FormSession(health_forms)
    session.edit("name", "Jane")
    session.edit("age", "30")
    return session


class TestSubmit:
    def test_payload_is_full_answers(self, filled):
        payload = filled.begin_submit()
        assert payload == {"name": "Jane", "age": "30"}
        assert filled.state is SessionState.SUBMITTING

    def test_payload_is_a_copy(self, filled):
        payload = filled.begin_submit()
        payload["name"] = "changed"
        assert filled.answers["name"] == "Jane"

    def test_success_resets(self, filled):
        filled.begin_submit()
        filled.complete_submit(succeeded=True)
        assert filled.answers == {}
        assert filled.state is SessionState.IDLE
        assert filled.last_outcome is SessionState.SUBMIT_SUCCEEDED

    def test_failure_keeps_answers(self, filled):
        filled.begin_submit()
        filled.complete_submit(succeeded=False)
        assert filled.answers == {"name": "Jane", "age": "30"}
        assert filled.state is SessionState.EDITING
        assert filled.last_outcome is SessionState.SUBMIT_FAILED

    def test_second_submit_rejected(self, filled):
        filled.begin_submit()
        with pytest.raises(SessionBusyError):
            filled.begin_submit()

    def test_edit_rejected_while_submitting(self, filled):
        filled.begin_submit()
        with pytest.raises(SessionBusyError):
            filled.edit("name", "Joan")

    def test_reset_rejected_while_submitting(self, filled):
        filled.begin_submit()
        with pytest.raises(SessionBusyError):
            filled.reset()

    def test_complete_without_begin(self, filled):
        with pytest.raises(InvalidTransitionError):
            filled.complete_submit(succeeded=True)

    def test_retry_after_failure(self, filled):
        filled.begin_submit()
        filled.complete_submit(succeeded=False)
        assert filled.begin_submit() == {"name": "Jane", "age": "30"}

    def test_hidden_answers_still_submitted(self, health_forms):
        session = FormSession(health_forms)
        session.edit("name", "Jane")
        session.edit("smoker", "Yes")
        session.edit("packs_per_day", "2")
        session.edit("smoker", "No")
        assert session.begin_submit() == {"name": "Jane", "smoker": "No", "packs_per_day": "2"}

    def test_success_clears_option_baseline(self, session):
        (request,) = session.edit("country", "US")
        session.apply_options(request, ["CA"])
        session.begin_submit()
        session.complete_submit(succeeded=True)
        assert len(session.cache) == 0
        # Same value after a reset must trigger a new lookup
        assert len(session.edit("country", "US")) == 1


class TestRequiredFields:
    def test_visible_empty_required_field_blocks_submit(self, health_forms):
        session = FormSession(health_forms)
        session.edit("age", "30")
        with pytest.raises(RequiredFieldsMissingError) as exc:
            session.begin_submit()
        assert exc.value.field_ids == ["name"]
        assert session.state is SessionState.EDITING

    def test_blank_answer_counts_as_missing(self, health_forms):
        session = FormSession(health_forms)
        session.edit("name", "")
        assert session.missing_required() == ["name"]

    def test_hidden_required_field_does_not_block(self, health_forms):
        session = FormSession(health_forms)
        session.edit("name", "Jane")
        session.edit("smoker", "No")
        assert session.missing_required() == []
        assert session.begin_submit() == {"name": "Jane", "smoker": "No"}

    def test_revealed_required_field_blocks(self, health_forms):
        session = FormSession(health_forms)
        session.edit("name", "Jane")
        session.edit("smoker", "Yes")
        assert session.missing_required() == ["packs_per_day"]
        with pytest.raises(RequiredFieldsMissingError):
            session.begin_submit()

        session.edit("packs_per_day", "1")
        assert session.begin_submit()["packs_per_day"] == "1"


class TestReset:
    def test_reset(self, filled):
        filled.reset()
        assert filled.answers == {}
        assert filled.state is SessionState.IDLE
        assert filled.last_outcome is None
