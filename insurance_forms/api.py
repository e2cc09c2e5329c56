"""FastAPI backend for the insurance application form engine.

Exposes form sessions to a presentation layer: open a session (loads the
schema), report field edits, read the current render list, submit, and
reset. Option lookups, submission and the submissions listing are
forwarded to the remote forms backend configured in
``insurance_forms.config``.
"""

from __future__ import annotations

import logging
import threading
import uuid
from collections import OrderedDict
from typing import Any

from fastapi import Depends, FastAPI, HTTPException
from pydantic import BaseModel

from insurance_forms.config import configure_logging, get_settings
from insurance_forms.controller import FormController
from insurance_forms.session import (
    RequiredFieldsMissingError,
    SessionBusyError,
    UnknownFieldError,
)
from insurance_forms.sources import FormClient, SubmissionsUnavailableError, project_rows

configure_logging()
log = logging.getLogger(__name__)

app = FastAPI(title="Insurance Forms API")

# Open sessions, least recently used first
_CONTROLLERS: OrderedDict[str, FormController] = OrderedDict()
_REGISTRY_LOCK = threading.Lock()


def get_client() -> FormClient:
    return FormClient(get_settings())


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------

class EditRequest(BaseModel):
    """Payload for a single field edit."""

    value: str = ""


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _register(controller: FormController) -> str:
    session_id = uuid.uuid4().hex[:12]
    limit = max(1, get_settings().max_sessions)
    with _REGISTRY_LOCK:
        _CONTROLLERS[session_id] = controller
        while len(_CONTROLLERS) > limit:
            evicted, _ = _CONTROLLERS.popitem(last=False)
            log.info("Session limit %d reached, dropped session %s", limit, evicted)
    return session_id


def _get_controller(session_id: str) -> FormController:
    with _REGISTRY_LOCK:
        controller = _CONTROLLERS.get(session_id)
        if controller is not None:
            _CONTROLLERS.move_to_end(session_id)
    if controller is None:
        raise HTTPException(status_code=404, detail=f"Session not found: {session_id}")
    return controller


def _session_view(session_id: str, controller: FormController) -> dict[str, Any]:
    return {"session_id": session_id, **controller.snapshot()}


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@app.post("/api/sessions", status_code=201)
def open_session(client: FormClient = Depends(get_client)) -> dict[str, Any]:
    """Load the form schema and open a new session."""
    controller = FormController(client, get_settings())
    if not controller.load():
        raise HTTPException(status_code=503, detail="No schema available")
    session_id = _register(controller)
    return _session_view(session_id, controller)


@app.get("/api/sessions/{session_id}")
def get_session(session_id: str) -> dict[str, Any]:
    """Current state, answers and render list for a session."""
    return _session_view(session_id, _get_controller(session_id))


@app.put("/api/sessions/{session_id}/answers/{field_id}")
def edit_answer(session_id: str, field_id: str, request: EditRequest) -> dict[str, Any]:
    """Record an answer, refresh any dependent option lists, and re-render."""
    controller = _get_controller(session_id)
    try:
        controller.edit(field_id, request.value)
    except UnknownFieldError:
        raise HTTPException(status_code=404, detail=f"Unknown field: {field_id}")
    except SessionBusyError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return _session_view(session_id, controller)


@app.post("/api/sessions/{session_id}/options/refresh")
def refresh_options(session_id: str) -> dict[str, Any]:
    """Retry option lookups that have not produced options yet."""
    controller = _get_controller(session_id)
    controller.refresh_options()
    return _session_view(session_id, controller)


@app.post("/api/sessions/{session_id}/submit")
def submit_session(session_id: str) -> dict[str, Any]:
    """Submit the session's answers to the backend.

    Visible required fields must be answered first (422). On success
    answers are cleared; on failure they are kept and a 502 is returned so
    the user can retry.
    """
    controller = _get_controller(session_id)
    try:
        ok = controller.submit()
    except SessionBusyError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except RequiredFieldsMissingError as e:
        raise HTTPException(status_code=422, detail={"message": str(e), "missing": e.field_ids})
    if not ok:
        raise HTTPException(status_code=502, detail="Submission failed; answers kept")
    return _session_view(session_id, controller)


@app.post("/api/sessions/{session_id}/reset")
def reset_session(session_id: str) -> dict[str, Any]:
    controller = _get_controller(session_id)
    try:
        controller.reset()
    except SessionBusyError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return _session_view(session_id, controller)


@app.delete("/api/sessions/{session_id}")
def close_session(session_id: str) -> dict[str, str]:
    """Discard a session."""
    with _REGISTRY_LOCK:
        closed = _CONTROLLERS.pop(session_id, None)
    if closed is None:
        raise HTTPException(status_code=404, detail=f"Session not found: {session_id}")
    return {"status": "closed", "session_id": session_id}


# ---------------------------------------------------------------------------
# Submissions
# ---------------------------------------------------------------------------

@app.get("/api/submissions")
def list_submissions(client: FormClient = Depends(get_client)) -> dict[str, Any]:
    """Previously submitted applications, reduced to the configured columns."""
    columns = list(get_settings().submission_columns)
    try:
        rows = client.fetch_submissions()
    except SubmissionsUnavailableError as e:
        raise HTTPException(status_code=502, detail=str(e))
    return {"columns": columns, "rows": project_rows(rows, columns)}
