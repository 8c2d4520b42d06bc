"""Error taxonomy shared by the 1Password and Komodo clients."""

from __future__ import annotations

from typing import Optional


class ClientError(Exception):
    """Base class for failures talking to a remote API.

    Attributes:
        status_code: HTTP status of the failed response, if one arrived.
        body: Raw response body, verbatim, for diagnostics.
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        body: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class ConnectivityError(ClientError):
    """The request never got a response (DNS, refused, timeout)."""


class AuthError(ClientError):
    """The API rejected our credentials."""


class DecodeError(ClientError):
    """A successful response carried a body we could not decode."""


class ConflictError(ClientError):
    """Komodo refused a create because the name already exists."""


class APIError(ClientError):
    """Any other non-2xx response."""


class ConfigError(Exception):
    """Raised when required configuration is missing or invalid."""
