"""Drives a ``FormSession`` against the remote backend.

The controller is the only place that performs I/O. Option lookups for a
single edit run concurrently on a thread pool, but their results are
applied to the session from the calling thread, one at a time, so the
session is never mutated concurrently.

Every public method holds the controller's lock while it touches the
session, so callers on different threads (e.g. API worker threads sharing
one session) are serialized. The lock is released while a submission is
in flight; a second submit or an edit during that window sees
``SUBMITTING`` and is rejected with ``SessionBusyError``.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed

from insurance_forms.config import Settings, get_settings
from insurance_forms.renderer import RenderInstruction
from insurance_forms.session import FetchRequest, FormSession, SessionState
from insurance_forms.sources import (
    FormClient,
    OptionsFetchError,
    SchemaUnavailableError,
    SubmitError,
)

log = logging.getLogger(__name__)


class FormController:
    def __init__(self, client: FormClient | None = None, settings: Settings | None = None):
        self.settings = settings or get_settings()
        self.client = client or FormClient(self.settings)
        self.session: FormSession | None = None
        self.load_error: str = ""
        self._lock = threading.RLock()

    @property
    def schema_available(self) -> bool:
        return self.session is not None

    def load(self) -> bool:
        """Fetch the schema and open a fresh session. Safe to call again after a failure."""
        with self._lock:
            try:
                forms = self.client.fetch_forms()
            except SchemaUnavailableError as e:
                log.warning("No schema available: %s", e)
                self.load_error = str(e)
                return False
            self.session = FormSession(forms)
            self.load_error = ""
            return True

    def _require_session(self) -> FormSession:
        if self.session is None:
            raise SchemaUnavailableError("No schema available")
        return self.session

    def edit(self, field_id: str, value: str) -> list[RenderInstruction]:
        """Apply an edit, run any option lookups it triggers, and re-render."""
        with self._lock:
            session = self._require_session()
            requests = session.edit(field_id, value)
            self._run_fetches(session, requests)
            return session.render()

    def refresh_options(self) -> list[RenderInstruction]:
        """Retry lookups for dynamic fields that still have no options for their current value."""
        with self._lock:
            session = self._require_session()
            self._run_fetches(session, session.pending_requests())
            return session.render()

    def run_fetches(self, requests: list[FetchRequest]) -> None:
        with self._lock:
            self._run_fetches(self._require_session(), requests)

    def _run_fetches(self, session: FormSession, requests: list[FetchRequest]) -> None:
        if not requests:
            return
        workers = max(1, min(self.settings.max_concurrent_fetches, len(requests)))
        with ThreadPoolExecutor(max_workers=workers) as pool:
            futures = {pool.submit(self.client.fetch_options, r): r for r in requests}
            for future in as_completed(futures):
                request = futures[future]
                try:
                    options = future.result()
                except OptionsFetchError as e:
                    session.fail_options(request, e)
                    continue
                session.apply_options(request, options)

    def submit(self) -> bool:
        """Submit the current answers. Returns True if the backend accepted them.

        Raises ``SessionBusyError`` if a submission is already in flight and
        ``RequiredFieldsMissingError`` if visible required fields are empty.
        """
        with self._lock:
            session = self._require_session()
            payload = session.begin_submit()

        succeeded = False
        try:
            self.client.submit(payload)
            succeeded = True
        except SubmitError as e:
            log.warning("%s", e)
        finally:
            with self._lock:
                session.complete_submit(succeeded=succeeded)
        return succeeded

    def reset(self) -> None:
        with self._lock:
            self._require_session().reset()

    def render(self) -> list[RenderInstruction]:
        with self._lock:
            if self.session is None:
                return []
            return self.session.render()

    def snapshot(self) -> dict:
        """Consistent view of state, answers and render list for one session."""
        with self._lock:
            session = self._require_session()
            return {
                "state": session.state.value,
                "last_outcome": session.last_outcome.value if session.last_outcome else None,
                "answers": dict(session.answers),
                "missing_required": session.missing_required(),
                "render": [i.to_dict() for i in session.render()],
            }

    @property
    def state(self) -> SessionState | None:
        with self._lock:
            return self.session.state if self.session is not None else None
