"""
Komodo client — the destination side of the sync.

Komodo exposes an RPC-style API: every call is a POST to ``/read`` or
``/write`` carrying ``{"type": <Operation>, "params": {...}}``. Failures
come back as ``{"error": ..., "trace": [...]}``.

Komodo reports a missing variable inconsistently — sometimes as a 404,
sometimes as an error envelope whose message says "no variable found".
``is_not_found`` is the one place that decides.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Optional

import requests
from pydantic import TypeAdapter, ValidationError

from .errors import (
    APIError,
    AuthError,
    ConflictError,
    ConnectivityError,
    DecodeError,
)
from .models import (
    CreateVariable,
    DeleteVariable,
    GetVariable,
    KomodoErrorResponse,
    KomodoRequest,
    KomodoVariable,
    ListVariables,
    UpdateVariableValue,
)
from .naming import redact_name

DEFAULT_TIMEOUT = 60.0

NOT_FOUND_PATTERNS = ("no variable found", "not found")
CONFLICT_PATTERNS = ("already exists",)

_VARIABLE_LIST = TypeAdapter(list[KomodoVariable])


def _is_success(status_code: int) -> bool:
    return 200 <= status_code < 300


def parse_error_envelope(body: Optional[str]) -> Optional[KomodoErrorResponse]:
    """Decode a ``{error, trace}`` envelope, if that is what the body is.

    Args:
        body: Raw response body.

    Returns:
        The envelope, or None when the body is not a JSON object
        with an ``error`` key.
    """
    if not body:
        return None
    try:
        data = json.loads(body)
    except ValueError:
        return None
    if not isinstance(data, dict) or "error" not in data:
        return None
    try:
        return KomodoErrorResponse.model_validate(data)
    except ValidationError:
        return KomodoErrorResponse(error=str(data.get("error")))


def is_not_found(status_code: int, body: Optional[str]) -> bool:
    """Decide whether a Komodo response means "no such variable".

    Never true for 401/403, whatever the message says. Otherwise
    true for a 404, or for an error message containing
    "no variable found" / "not found" (case-insensitive). The message
    is taken from the ``error`` envelope; for non-2xx responses whose
    body is not an envelope, from the raw body text.

    Args:
        status_code: HTTP status of the response.
        body: Raw response body.

    Returns:
        True if the response signals absence.
    """
    if status_code in (401, 403):
        return False
    if status_code == 404:
        return True

    envelope = parse_error_envelope(body)
    if envelope is not None:
        message = envelope.error
    elif _is_success(status_code):
        return False
    else:
        message = body or ""

    message = message.lower()
    return any(pattern in message for pattern in NOT_FOUND_PATTERNS)


class KomodoClient:
    """Read and write Komodo variables.

    Args:
        host: Komodo core base URL, scheme included, no trailing slash.
        api_key: Value for the ``X-Api-Key`` header.
        api_secret: Value for the ``X-Api-Secret`` header.
        timeout: Per-request timeout in seconds.
        session: Optional pre-built requests session.
        logger: Logger for request diagnostics.
    """

    def __init__(
        self,
        host: str,
        api_key: str,
        api_secret: str,
        timeout: float = DEFAULT_TIMEOUT,
        session: Optional[requests.Session] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._host = host.rstrip("/")
        self._timeout = timeout
        self._log = logger or logging.getLogger(__name__)
        self._session = session or requests.Session()
        self._headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "X-Api-Key": api_key,
            "X-Api-Secret": api_secret,
        }

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _post(self, request: KomodoRequest) -> requests.Response:
        """Send one operation and return the raw response.

        Params are never logged: create and update carry secret values.

        Raises:
            ConnectivityError: Transport failure or timeout.
        """
        url = f"{self._host}{request.endpoint}"
        op = type(request).__name__
        self._log.debug("Komodo request: POST %s (%s)", url, op)

        try:
            resp = self._session.request(
                "POST",
                url,
                headers=self._headers,
                json=request.envelope(),
                timeout=self._timeout,
            )
        except requests.RequestException as exc:
            raise ConnectivityError(
                f"Komodo {op} request to {url} failed: {exc}"
            ) from exc

        self._log.debug("Komodo response: %s -> %d", op, resp.status_code)
        return resp

    def _check(self, resp: requests.Response, action: str) -> None:
        """Raise the matching ClientError unless the response is a success.

        A 2xx response carrying an error envelope is a failure too.
        """
        status = resp.status_code
        body = resp.text
        envelope = parse_error_envelope(body)

        if _is_success(status) and envelope is None:
            return

        self._log.debug("Komodo error response body: %s", body)
        if envelope is not None:
            detail = envelope.error
            if envelope.trace:
                detail += f" (trace: {'; '.join(envelope.trace)})"
        else:
            detail = body or "no response body"

        message = f"Komodo {action} failed with status {status}: {detail}"
        lowered = detail.lower()
        if status in (401, 403):
            raise AuthError(message, status_code=status, body=body)
        if status == 409 or any(p in lowered for p in CONFLICT_PATTERNS):
            raise ConflictError(message, status_code=status, body=body)
        raise APIError(message, status_code=status, body=body)

    @staticmethod
    def _decode(resp: requests.Response, action: str) -> Any:
        try:
            return resp.json()
        except ValueError as exc:
            raise DecodeError(
                f"Failed to decode Komodo {action} response: {exc}",
                status_code=resp.status_code,
                body=resp.text,
            ) from exc

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def get_variable(self, name: str) -> tuple[Optional[KomodoVariable], bool]:
        """Look up a variable by name.

        Args:
            name: Variable name.

        Returns:
            ``(variable, True)`` when it exists, ``(None, False)`` when
            Komodo reports it missing.
        """
        resp = self._post(GetVariable(name=name))
        if is_not_found(resp.status_code, resp.text):
            self._log.debug(
                "Variable '%s' not found (status %d)",
                redact_name(name), resp.status_code,
            )
            return None, False

        self._check(resp, f"GetVariable '{redact_name(name)}'")
        data = self._decode(resp, "GetVariable")
        try:
            variable = KomodoVariable.model_validate(data)
        except ValidationError as exc:
            raise DecodeError(
                f"Unexpected GetVariable response shape for '{redact_name(name)}': {exc}",
                status_code=resp.status_code,
                body=resp.text,
            ) from exc
        return variable, True

    def create_variable(self, name: str, value: str, description: str) -> None:
        """Create a secret variable.

        Raises:
            ConflictError: A variable with this name already exists.
        """
        resp = self._post(
            CreateVariable(name=name, value=value, description=description)
        )
        self._check(resp, f"CreateVariable '{redact_name(name)}'")
        self._log.info("    Created Komodo secret: %s", redact_name(name))

    def update_variable_value(self, name: str, value: str) -> None:
        """Set the value of an existing variable. Does not create."""
        resp = self._post(UpdateVariableValue(name=name, value=value))
        self._check(resp, f"UpdateVariableValue '{redact_name(name)}'")
        self._log.info("    Updated Komodo secret: %s", redact_name(name))

    def delete_variable(self, name: str) -> None:
        """Delete a variable. Deleting a missing variable succeeds."""
        resp = self._post(DeleteVariable(name=name))
        if is_not_found(resp.status_code, resp.text):
            self._log.debug(
                "Variable '%s' was already gone (status %d)",
                redact_name(name), resp.status_code,
            )
            return

        self._check(resp, f"DeleteVariable '{redact_name(name)}'")
        self._log.info("    Deleted Komodo secret: %s", redact_name(name))

    def list_variables(self) -> dict[str, KomodoVariable]:
        """Snapshot every variable in Komodo.

        Returns:
            Mapping of variable name to record.
        """
        resp = self._post(ListVariables())
        self._check(resp, "ListVariables")
        data = self._decode(resp, "ListVariables")
        try:
            variables = _VARIABLE_LIST.validate_python(data or [])
        except ValidationError as exc:
            raise DecodeError(
                f"Unexpected ListVariables response shape: {exc}",
                status_code=resp.status_code,
                body=resp.text,
            ) from exc

        by_name = {v.name: v for v in variables}
        self._log.info("Listed %d variables from Komodo", len(by_name))
        return by_name

    def close(self) -> None:
        self._session.close()
