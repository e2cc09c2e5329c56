"""HTTP client for the forms backend.

Wraps the remote operations the engine depends on: loading the form
schema, looking up dynamic options, submitting answers, and listing past
submissions. Every request carries a timeout; any transport, HTTP or
payload problem is raised as one of the engine's error types so callers
never see raw ``requests`` exceptions.
"""

from __future__ import annotations

import logging
from typing import Any

import requests

from insurance_forms.config import Settings, get_settings
from insurance_forms.schema import Form, FormsError, SchemaError, parse_forms
from insurance_forms.session import FetchRequest

log = logging.getLogger(__name__)


class SchemaUnavailableError(FormsError):
    """The form schema could not be loaded."""


class OptionsFetchError(FormsError):
    """A dynamic option lookup failed."""


class SubmitError(FormsError):
    """The submission was not accepted."""


class SubmissionsUnavailableError(FormsError):
    """The list of past submissions could not be loaded."""


def extract_option_list(payload: Any, options_key: str = "states") -> list[str]:
    """Pull the option strings out of a lookup response.

    Accepts a bare JSON list, an object holding the list under
    *options_key*, or failing that an object with exactly one list value.
    """
    if isinstance(payload, list):
        values = payload
    elif isinstance(payload, dict):
        values = payload.get(options_key)
        if values is None:
            lists = [v for v in payload.values() if isinstance(v, list)]
            values = lists[0] if len(lists) == 1 else None
    else:
        values = None

    if not isinstance(values, list):
        raise OptionsFetchError(f"No option list found in response (expected key {options_key!r})")
    return [str(v) for v in values]


class FormClient:
    def __init__(self, settings: Settings | None = None, session: requests.Session | None = None):
        self.settings = settings or get_settings()
        self.http = session or requests.Session()

    def _url(self, path: str) -> str:
        if path.startswith(("http://", "https://")):
            return path
        return f"{self.settings.api_base_url.rstrip('/')}/{path.lstrip('/')}"

    def fetch_forms(self) -> list[Form]:
        """GET the schema and parse it into forms."""
        url = self._url(self.settings.schema_path)
        try:
            resp = self.http.get(url, timeout=self.settings.request_timeout)
            resp.raise_for_status()
            forms = parse_forms(resp.json())
        except (requests.RequestException, ValueError, SchemaError) as e:
            raise SchemaUnavailableError(f"Could not load form schema from {url}: {e}") from e
        log.info("Loaded %d form(s) from %s", len(forms), url)
        return forms

    def fetch_options(self, request: FetchRequest) -> list[str]:
        """Look up the options for one dynamic field."""
        url = self._url(request.endpoint)
        params = {request.depends_on: request.value}
        method = request.method.lower()
        try:
            if method == "get":
                resp = self.http.get(url, params=params, timeout=self.settings.request_timeout)
            else:
                resp = self.http.request(
                    method.upper(), url, json=params, timeout=self.settings.request_timeout
                )
            resp.raise_for_status()
            payload = resp.json()
        except (requests.RequestException, ValueError) as e:
            raise OptionsFetchError(f"Option lookup {method.upper()} {url} failed: {e}") from e
        return extract_option_list(payload, self.settings.options_key)

    def submit(self, answers: dict[str, str]) -> None:
        """POST the full answers map. Raises SubmitError unless the backend accepts it."""
        url = self._url(self.settings.submit_path)
        try:
            resp = self.http.post(url, json=answers, timeout=self.settings.request_timeout)
            resp.raise_for_status()
        except requests.RequestException as e:
            raise SubmitError(f"Submission to {url} failed: {e}") from e

    def fetch_submissions(self) -> list[dict[str, Any]]:
        """GET previously submitted applications.

        The backend wraps the rows in a ``data`` envelope; a bare list is
        accepted too. Rows that are not objects are dropped.
        """
        url = self._url(self.settings.submissions_path)
        try:
            resp = self.http.get(url, timeout=self.settings.request_timeout)
            resp.raise_for_status()
            payload = resp.json()
        except (requests.RequestException, ValueError) as e:
            raise SubmissionsUnavailableError(f"Could not load submissions from {url}: {e}") from e

        rows = payload.get("data") if isinstance(payload, dict) else payload
        if not isinstance(rows, list):
            raise SubmissionsUnavailableError(f"No submission list found in response from {url}")
        log.info("Loaded %d submission(s) from %s", len(rows), url)
        return [r for r in rows if isinstance(r, dict)]


def project_rows(rows: list[dict[str, Any]], columns: list[str]) -> list[dict[str, Any]]:
    """Keep only *columns* of each row, in column order. Missing cells become ``None``."""
    return [{col: row.get(col) for col in columns} for row in rows]
