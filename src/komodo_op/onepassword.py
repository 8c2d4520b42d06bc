"""
1Password Connect client — the read-only source side of the sync.

Only two calls are needed: list the items of one vault and fetch
the full details (fields) of a single item.

Prerequisites:
- OP_CONNECT_HOST pointing at a 1Password Connect server
- OP_SERVICE_ACCOUNT_TOKEN with read access to OP_VAULT
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import requests
from pydantic import TypeAdapter, ValidationError

from .errors import APIError, AuthError, ConnectivityError, DecodeError
from .models import VaultItem, VaultItemSummary

DEFAULT_TIMEOUT = 60.0

_ITEM_LIST = TypeAdapter(list[VaultItemSummary])


class OnePasswordClient:
    """Read items and fields from a 1Password Connect vault.

    Args:
        host: Connect server base URL, scheme included, no trailing slash.
        token: Service account / Connect token (sent as a bearer token).
        vault_id: UUID of the vault to read.
        timeout: Per-request timeout in seconds.
        session: Optional pre-built requests session.
        logger: Logger for request diagnostics.
    """

    def __init__(
        self,
        host: str,
        token: str,
        vault_id: str,
        timeout: float = DEFAULT_TIMEOUT,
        session: Optional[requests.Session] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._host = host.rstrip("/")
        self._vault_id = vault_id
        self._timeout = timeout
        self._log = logger or logging.getLogger(__name__)
        self._session = session or requests.Session()
        self._headers = {
            "Authorization": f"Bearer {token}",
            "Accept": "application/json",
        }

    @property
    def vault_id(self) -> str:
        return self._vault_id

    def _get(self, path: str) -> tuple[Any, requests.Response]:
        """GET a vault-scoped path and decode the JSON body.

        Args:
            path: Path below ``/v1/vaults/<vault>``, leading slash included.

        Returns:
            Parsed JSON payload and the response it came from.

        Raises:
            ConnectivityError: Transport failure or timeout.
            AuthError: 401/403 from Connect.
            APIError: Any other non-2xx response.
            DecodeError: The body is not JSON.
        """
        url = f"{self._host}/v1/vaults/{self._vault_id}{path}"
        self._log.debug("1Password request: GET %s", url)

        try:
            resp = self._session.request(
                "GET", url, headers=self._headers, timeout=self._timeout,
            )
        except requests.RequestException as exc:
            raise ConnectivityError(
                f"1Password request to {url} failed: {exc}"
            ) from exc

        body = resp.text
        if resp.status_code in (401, 403):
            raise AuthError(
                f"1Password rejected credentials for {url} "
                f"(status {resp.status_code}): {body}",
                status_code=resp.status_code,
                body=body,
            )
        if not 200 <= resp.status_code < 300:
            self._log.debug("1Password error response body: %s", body)
            raise APIError(
                f"1Password API request to {url} failed with status "
                f"{resp.status_code}: {body}",
                status_code=resp.status_code,
                body=body,
            )

        try:
            return resp.json(), resp
        except ValueError as exc:
            self._log.debug("Failed decoding 1Password response body: %s", body)
            raise DecodeError(
                f"Failed to decode 1Password response from {url}: {exc}",
                status_code=resp.status_code,
                body=body,
            ) from exc

    def list_items(self) -> list[VaultItemSummary]:
        """List item summaries in the configured vault.

        Returns:
            Item id/title pairs, in the order Connect returns them.
        """
        payload, resp = self._get("/items")
        if payload is None:
            payload = []
        try:
            items = _ITEM_LIST.validate_python(payload)
        except ValidationError as exc:
            raise DecodeError(
                f"Unexpected item listing shape from vault '{self._vault_id}': {exc}",
                status_code=resp.status_code,
                body=resp.text,
            ) from exc
        self._log.info("Found %d items in vault '%s'", len(items), self._vault_id)
        return items

    def get_item_details(self, item_id: str) -> VaultItem:
        """Fetch one item with all of its fields.

        Args:
            item_id: 1Password item UUID.

        Returns:
            The decoded item.
        """
        payload, resp = self._get(f"/items/{item_id}")
        try:
            return VaultItem.model_validate(payload)
        except ValidationError as exc:
            raise DecodeError(
                f"Unexpected item shape for {item_id} in vault '{self._vault_id}': {exc}",
                status_code=resp.status_code,
                body=resp.text,
            ) from exc

    def close(self) -> None:
        self._session.close()
