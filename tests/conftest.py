"""Shared test fixtures for komodo-op.

The fake sessions below stand in for ``requests.Session`` and emulate
just enough of the 1Password Connect and Komodo APIs to drive the
real clients end to end.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Optional
from unittest.mock import MagicMock

import pytest
import requests

from komodo_op.komodo import KomodoClient
from komodo_op.onepassword import OnePasswordClient
from komodo_op.synchronizer import Synchronizer

VAULT_ID = "vault-uuid-1"
OP_HOST = "http://op.test:8080"
KOMODO_HOST = "http://komodo.test:9120"


def make_response(status: int = 200, payload: Any = None, text: Optional[str] = None) -> MagicMock:
    """Build a mock ``requests.Response``.

    ``text`` wins over ``payload``; ``json()`` parses whatever ``text`` is
    and raises ValueError on garbage, like the real thing.
    """
    resp = MagicMock()
    resp.status_code = status
    if text is None:
        text = "" if payload is None else json.dumps(payload)
    resp.text = text
    resp.json.side_effect = lambda: json.loads(resp.text)
    return resp


class FakeVaultSession:
    """In-memory 1Password Connect server behind a session interface."""

    def __init__(self, vault_id: str = VAULT_ID) -> None:
        self.vault_id = vault_id
        self.items: dict[str, dict] = {}
        self.broken_items: set[str] = set()
        self.list_status = 200
        self.calls: list[tuple[str, str]] = []
        self.closed = False

    def add_item(self, item_id: str, title: str, fields: Optional[dict[str, str]] = None) -> None:
        self.items[item_id] = {
            "id": item_id,
            "title": title,
            "fields": [
                {"id": f"{item_id}-f{i}", "label": label, "value": value, "type": "CONCEALED"}
                for i, (label, value) in enumerate((fields or {}).items())
            ],
        }

    def request(self, method, url, headers=None, timeout=None, **kwargs):
        self.calls.append((method, url))
        prefix = f"{OP_HOST}/v1/vaults/{self.vault_id}/items"
        if url == prefix:
            if self.list_status != 200:
                return make_response(self.list_status, text="listing unavailable")
            summaries = [{"id": i["id"], "title": i["title"]} for i in self.items.values()]
            return make_response(200, summaries)

        item_id = url[len(prefix) + 1:]
        if item_id in self.broken_items:
            return make_response(500, text="internal error")
        if item_id not in self.items:
            return make_response(404, {"status": 404, "message": "item not found"})
        return make_response(200, self.items[item_id])

    def close(self) -> None:
        self.closed = True


class FakeKomodoSession:
    """In-memory Komodo core behind a session interface.

    ``not_found_style`` picks how a missing variable is reported:
    ``"envelope"`` (500 + "no variable found" error) or ``"status"`` (404).
    """

    def __init__(self, not_found_style: str = "envelope") -> None:
        self.variables: dict[str, dict] = {}
        self.not_found_style = not_found_style
        self.failing_writes: set[str] = set()
        self.failing_deletes: set[str] = set()
        self.list_fails = False
        self.operations: list[tuple[str, dict]] = []
        self.closed = False

    def add_variable(self, name: str, value: str = "v", description: str = "", is_secret: bool = True) -> None:
        self.variables[name] = {
            "name": name,
            "value": value,
            "description": description,
            "is_secret": is_secret,
        }

    def _missing(self, name: str):
        if self.not_found_style == "status":
            return make_response(404, text="")
        return make_response(
            500, {"error": f"no variable found with name {name}", "trace": ["db lookup"]}
        )

    def request(self, method, url, headers=None, json=None, timeout=None, **kwargs):
        op = json["type"]
        params = json["params"]
        self.operations.append((op, params))
        name = params.get("name")

        if op == "ListVariables":
            if self.list_fails:
                return make_response(500, {"error": "database unavailable"})
            return make_response(200, list(self.variables.values()))

        if op == "GetVariable":
            if name not in self.variables:
                return self._missing(name)
            return make_response(200, self.variables[name])

        if op == "CreateVariable":
            if name in self.failing_writes:
                return make_response(500, {"error": "write rejected"})
            if name in self.variables:
                return make_response(409, {"error": f"variable {name} already exists"})
            self.add_variable(name, params["value"], params["description"], params["is_secret"])
            return make_response(200, self.variables[name])

        if op == "UpdateVariableValue":
            if name in self.failing_writes:
                return make_response(500, {"error": "write rejected"})
            if name not in self.variables:
                return self._missing(name)
            self.variables[name]["value"] = params["value"]
            return make_response(200, self.variables[name])

        if op == "DeleteVariable":
            if name in self.failing_deletes:
                return make_response(500, {"error": "delete rejected"})
            if name not in self.variables:
                return self._missing(name)
            return make_response(200, self.variables.pop(name))

        return make_response(400, {"error": f"unknown operation {op}"})

    def ops(self, op: str) -> list[dict]:
        """Params of every recorded call to one operation."""
        return [params for name, params in self.operations if name == op]

    def close(self) -> None:
        self.closed = True


@pytest.fixture(autouse=True)
def reset_package_logger():
    """Undo configure_logging between tests so caplog keeps working."""
    log = logging.getLogger("komodo_op")
    yield
    for handler in list(log.handlers):
        log.removeHandler(handler)
    log.setLevel(logging.NOTSET)
    log.propagate = True


@pytest.fixture
def vault() -> FakeVaultSession:
    return FakeVaultSession()


@pytest.fixture
def komodo() -> FakeKomodoSession:
    return FakeKomodoSession()


@pytest.fixture
def op_client(vault) -> OnePasswordClient:
    return OnePasswordClient(OP_HOST, "op-token", VAULT_ID, session=vault)


@pytest.fixture
def komodo_client(komodo) -> KomodoClient:
    return KomodoClient(KOMODO_HOST, "key-123", "secret-456", session=komodo)


@pytest.fixture
def synchronizer(op_client, komodo_client) -> Synchronizer:
    return Synchronizer(op_client, komodo_client, VAULT_ID)


@pytest.fixture
def env() -> dict[str, str]:
    """A complete, valid environment."""
    return {
        "OP_CONNECT_HOST": "op.test:8080",
        "OP_VAULT": VAULT_ID,
        "OP_SERVICE_ACCOUNT_TOKEN": "  op-token\n",
        "KOMODO_HOST": "http://komodo.test:9120/",
        "KOMODO_API_KEY": "key-123456",
        "KOMODO_API_SECRET": "secret-456",
    }


@pytest.fixture
def failing_session() -> MagicMock:
    """A session whose every request fails at the transport level."""
    session = MagicMock()
    session.request.side_effect = requests.ConnectionError("connection refused")
    return session
