"""Tests for the Komodo client and not-found detection."""

from __future__ import annotations

import logging
from unittest.mock import MagicMock

import pytest

from komodo_op.errors import APIError, AuthError, ConflictError, ConnectivityError, DecodeError
from komodo_op.komodo import KomodoClient, is_not_found, parse_error_envelope

from conftest import KOMODO_HOST, make_response


@pytest.fixture()
def session() -> MagicMock:
    return MagicMock()


@pytest.fixture()
def client(session) -> KomodoClient:
    return KomodoClient(KOMODO_HOST, "key-123", "secret-456", timeout=7, session=session)


# ---------------------------------------------------------------------------
# is_not_found / parse_error_envelope
# ---------------------------------------------------------------------------


class TestIsNotFound:
    """Both ways Komodo reports a missing variable."""

    def test_status_404(self):
        assert is_not_found(404, "")

    def test_envelope_message(self):
        assert is_not_found(500, '{"error": "No variable found with name X", "trace": []}')

    def test_envelope_on_2xx(self):
        assert is_not_found(200, '{"error": "resource not found"}')

    def test_raw_body_on_error_status(self):
        assert is_not_found(400, "Variable NOT FOUND")

    def test_other_errors(self):
        assert not is_not_found(500, '{"error": "database unavailable"}')
        assert not is_not_found(401, "unauthorized")

    def test_auth_rejection_is_never_absence(self):
        assert not is_not_found(401, '{"error": "api key not found"}')
        assert not is_not_found(403, "user not found")

    def test_successful_record(self):
        assert not is_not_found(200, '{"name": "not found in description", "value": "x"}')

    def test_parse_envelope_requires_error_key(self):
        assert parse_error_envelope('{"name": "x"}') is None
        assert parse_error_envelope("not json") is None
        assert parse_error_envelope('{"error": "e", "trace": ["a", "b"]}').trace == ["a", "b"]


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


class TestRequests:
    """Wire format of outgoing calls."""

    def test_get_variable_request(self, client, session):
        session.request.return_value = make_response(200, {"name": "A__B", "value": "x"})
        client.get_variable("A__B")

        args, kwargs = session.request.call_args
        assert args == ("POST", f"{KOMODO_HOST}/read")
        assert kwargs["json"] == {"type": "GetVariable", "params": {"name": "A__B"}}
        assert kwargs["headers"]["X-Api-Key"] == "key-123"
        assert kwargs["headers"]["X-Api-Secret"] == "secret-456"
        assert kwargs["headers"]["Content-Type"] == "application/json"
        assert kwargs["timeout"] == 7

    def test_create_request(self, client, session):
        session.request.return_value = make_response(200, {"name": "A__B"})
        client.create_variable("A__B", "s3cret", "1Password-Sync: test")

        args, kwargs = session.request.call_args
        assert args[1] == f"{KOMODO_HOST}/write"
        assert kwargs["json"]["type"] == "CreateVariable"
        assert kwargs["json"]["params"]["is_secret"] is True

    def test_update_request(self, client, session):
        session.request.return_value = make_response(200, {"name": "A__B"})
        client.update_variable_value("A__B", "new")

        kwargs = session.request.call_args[1]
        assert kwargs["json"] == {
            "type": "UpdateVariableValue",
            "params": {"name": "A__B", "value": "new"},
        }

    def test_secret_values_never_logged(self, client, session, caplog):
        session.request.return_value = make_response(200, {"name": "A__PASSWORD"})
        with caplog.at_level(logging.DEBUG):
            client.create_variable("A__PASSWORD", "hunter2", "d")
            client.update_variable_value("A__PASSWORD", "hunter3")
        assert "hunter2" not in caplog.text
        assert "hunter3" not in caplog.text
        assert "A__PASSWORD" not in caplog.text


# ---------------------------------------------------------------------------
# Operations
# ---------------------------------------------------------------------------


class TestGetVariable:
    """Tests for get_variable."""

    def test_found(self, client, session):
        session.request.return_value = make_response(
            200, {"name": "A__B", "value": "x", "description": "d", "is_secret": True}
        )
        variable, found = client.get_variable("A__B")
        assert found
        assert variable.description == "d"

    @pytest.mark.parametrize(
        "resp",
        [
            make_response(404, text=""),
            make_response(500, {"error": "no variable found with name A__B"}),
        ],
    )
    def test_not_found_is_not_an_error(self, client, session, resp):
        session.request.return_value = resp
        assert client.get_variable("A__B") == (None, False)

    def test_server_error_raises(self, client, session):
        session.request.return_value = make_response(500, {"error": "db down", "trace": ["x"]})
        with pytest.raises(APIError) as exc_info:
            client.get_variable("A__B")
        assert "db down" in str(exc_info.value)
        assert exc_info.value.status_code == 500

    def test_auth_error(self, client, session):
        session.request.return_value = make_response(401, {"error": "bad api key"})
        with pytest.raises(AuthError):
            client.get_variable("A__B")

    def test_get_auth_rejection_not_read_as_missing(self, client, session):
        session.request.return_value = make_response(403, {"error": "user not found"})
        with pytest.raises(AuthError):
            client.get_variable("A__B")

    def test_undecodable_body(self, client, session):
        session.request.return_value = make_response(200, text="<html>oops</html>")
        with pytest.raises(DecodeError):
            client.get_variable("A__B")

    def test_transport_failure(self, failing_session):
        client = KomodoClient(KOMODO_HOST, "k", "s", session=failing_session)
        with pytest.raises(ConnectivityError):
            client.get_variable("A__B")


class TestWrites:
    """Tests for create, update and delete."""

    def test_create_conflict_by_status(self, client, session):
        session.request.return_value = make_response(409, text="conflict")
        with pytest.raises(ConflictError):
            client.create_variable("A__B", "v", "d")

    def test_create_conflict_by_message(self, client, session):
        session.request.return_value = make_response(500, {"error": "Variable already exists"})
        with pytest.raises(ConflictError):
            client.create_variable("A__B", "v", "d")

    def test_error_envelope_on_2xx_is_failure(self, client, session):
        session.request.return_value = make_response(200, {"error": "write rejected"})
        with pytest.raises(APIError):
            client.update_variable_value("A__B", "v")

    def test_update_empty_body_ok(self, client, session):
        session.request.return_value = make_response(200, text="")
        client.update_variable_value("A__B", "v")

    @pytest.mark.parametrize(
        "resp",
        [
            make_response(404, text=""),
            make_response(500, {"error": "no variable found with name A__B"}),
        ],
    )
    def test_delete_missing_is_success(self, client, session, resp):
        session.request.return_value = resp
        client.delete_variable("A__B")

    def test_delete_auth_rejection_not_swallowed(self, client, session):
        session.request.return_value = make_response(401, {"error": "api key not found"})
        with pytest.raises(AuthError):
            client.delete_variable("A__B")

    def test_delete_failure(self, client, session):
        session.request.return_value = make_response(500, {"error": "locked"})
        with pytest.raises(APIError):
            client.delete_variable("A__B")


class TestListVariables:
    """Tests for list_variables."""

    def test_keyed_by_name(self, client, session):
        session.request.return_value = make_response(
            200,
            [
                {"name": "A__B", "value": "1", "description": "1Password-Sync: x"},
                {"name": "OTHER", "value": "2", "description": ""},
            ],
        )
        variables = client.list_variables()

        assert set(variables) == {"A__B", "OTHER"}
        assert variables["A__B"].description.startswith("1Password-Sync:")
        assert session.request.call_args[1]["json"] == {"type": "ListVariables", "params": {}}

    def test_empty(self, client, session):
        session.request.return_value = make_response(200, [])
        assert client.list_variables() == {}

    def test_failure(self, client, session):
        session.request.return_value = make_response(500, {"error": "boom"})
        with pytest.raises(APIError):
            client.list_variables()

    def test_wrong_shape(self, client, session):
        session.request.return_value = make_response(200, {"variables": []})
        with pytest.raises(DecodeError):
            client.list_variables()
