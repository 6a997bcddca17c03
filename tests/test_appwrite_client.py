"""Tests for baas/ -- the Appwrite REST clients and the query/id helpers.

The module-level requests.Session is replaced with a MagicMock so no network
calls are made. Assertions are on what goes over the wire (method, URL,
headers, params, body) and on how answers are mapped to ProviderError.
"""

from __future__ import annotations

import json
import re
from unittest.mock import MagicMock, patch

import pytest
import requests

from baas.appwrite import AdminClient, SessionClient, create_admin_client, create_session_client
from baas.base import ProviderError, equal, unique_id


def _response(status: int = 200, payload=None, reason: str = "OK", content: bytes = b"x") -> MagicMock:
    resp = MagicMock()
    resp.status_code = status
    resp.reason = reason
    resp.content = content if payload is None else json.dumps(payload).encode()
    if payload is None:
        resp.json.side_effect = ValueError("no json")
    else:
        resp.json.return_value = payload
    return resp


@pytest.fixture
def session():
    with patch("baas.appwrite._session") as mock_session:
        yield mock_session


def _admin() -> AdminClient:
    return AdminClient("https://appwrite.test/v1/", "proj", "key-123", timeout=5.0)


# ---------------------------------------------------------------------------
# Request shape
# ---------------------------------------------------------------------------


class TestRequestShape:
    def test_list_documents_sends_queries_as_repeated_param(self, session):
        session.request.return_value = _response(payload={"total": 0, "documents": []})

        result = _admin().list_documents("main", "users", [equal("email", ["ada@example.com"])])

        assert result == {"total": 0, "documents": []}
        method, url = session.request.call_args.args
        kwargs = session.request.call_args.kwargs
        assert method == "GET"
        assert url == "https://appwrite.test/v1/databases/main/collections/users/documents"
        assert kwargs["params"] == {"queries[]": ['{"method":"equal","attribute":"email","values":["ada@example.com"]}']}
        assert kwargs["json"] is None
        assert kwargs["timeout"] == 5.0

    def test_create_document_wraps_data(self, session):
        session.request.return_value = _response(payload={"$id": "doc1", "email": "ada@example.com"})

        _admin().create_document("main", "users", "doc1", {"email": "ada@example.com"})

        method, url = session.request.call_args.args
        assert method == "POST"
        assert url.endswith("/databases/main/collections/users/documents")
        assert session.request.call_args.kwargs["json"] == {"documentId": "doc1", "data": {"email": "ada@example.com"}}

    def test_email_token_and_session_endpoints(self, session):
        session.request.return_value = _response(payload={"userId": "acc1"})
        client = _admin()

        client.create_email_token("acc1", "ada@example.com")
        assert session.request.call_args.args == ("POST", "https://appwrite.test/v1/account/tokens/email")
        assert session.request.call_args.kwargs["json"] == {"userId": "acc1", "email": "ada@example.com"}

        client.create_session("acc1", "123456")
        assert session.request.call_args.args == ("POST", "https://appwrite.test/v1/account/sessions/token")
        assert session.request.call_args.kwargs["json"] == {"userId": "acc1", "secret": "123456"}

    def test_admin_headers(self, session):
        session.request.return_value = _response(payload={})
        _admin().get_account()
        headers = session.request.call_args.kwargs["headers"]
        assert headers["X-Appwrite-Project"] == "proj"
        assert headers["X-Appwrite-Key"] == "key-123"
        assert "X-Appwrite-Session" not in headers

    def test_session_headers(self, session):
        session.request.return_value = _response(payload={"$id": "acc1"})
        SessionClient("https://appwrite.test/v1", "proj", "s3cret").get_account()
        headers = session.request.call_args.kwargs["headers"]
        assert headers["X-Appwrite-Session"] == "s3cret"
        assert "X-Appwrite-Key" not in headers

    def test_delete_current_session(self, session):
        session.request.return_value = _response(status=204, content=b"")
        assert SessionClient("https://appwrite.test/v1", "proj", "s3cret").delete_session() is None
        assert session.request.call_args.args == ("DELETE", "https://appwrite.test/v1/account/sessions/current")


# ---------------------------------------------------------------------------
# Error mapping
# ---------------------------------------------------------------------------


class TestErrorMapping:
    def test_platform_error_body(self, session):
        session.request.return_value = _response(
            status=401,
            reason="Unauthorized",
            payload={"message": "Invalid token passed in the request.", "code": 401, "type": "user_invalid_token"},
        )
        with pytest.raises(ProviderError) as exc_info:
            _admin().create_session("acc1", "000000")
        assert exc_info.value.status_code == 401
        assert exc_info.value.error_type == "user_invalid_token"
        assert exc_info.value.message == "Invalid token passed in the request."

    def test_non_json_error_falls_back_to_reason(self, session):
        session.request.return_value = _response(status=503, reason="Service Unavailable")
        with pytest.raises(ProviderError) as exc_info:
            _admin().get_account()
        assert exc_info.value.status_code == 503
        assert exc_info.value.message == "Service Unavailable"
        assert exc_info.value.error_type is None

    def test_transport_error_has_no_status(self, session):
        session.request.side_effect = requests.ConnectionError("connection refused")
        with pytest.raises(ProviderError) as exc_info:
            _admin().get_account()
        assert exc_info.value.status_code is None

    def test_timeout_has_no_status(self, session):
        session.request.side_effect = requests.Timeout("read timed out")
        with pytest.raises(ProviderError) as exc_info:
            _admin().list_documents("main", "users", [])
        assert exc_info.value.status_code is None

    def test_non_json_success_body(self, session):
        session.request.return_value = _response(status=200, content=b"<html>")
        with pytest.raises(ProviderError):
            _admin().get_account()

    @pytest.mark.parametrize("body, payload", [(b"[]", []), (b"null", None), (b'"ok"', "ok")])
    def test_non_object_success_body(self, session, body, payload):
        resp = _response(status=200, content=body)
        resp.json.side_effect = None
        resp.json.return_value = payload
        session.request.return_value = resp
        with pytest.raises(ProviderError) as exc_info:
            _admin().get_account()
        assert exc_info.value.status_code == 200


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------


class TestFactories:
    def test_admin_client_from_settings(self, settings):
        client = create_admin_client(settings)
        assert client.endpoint == "https://appwrite.test/v1"
        assert client.headers["X-Appwrite-Key"] == "test-key"
        assert client.timeout == settings.appwrite_timeout_seconds

    def test_session_client_from_settings(self, settings):
        client = create_session_client(settings, "s3cret")
        assert client.headers["X-Appwrite-Session"] == "s3cret"

    @pytest.mark.parametrize("secret", [None, ""])
    def test_session_client_without_secret(self, settings, secret):
        with pytest.raises(ProviderError) as exc_info:
            create_session_client(settings, secret)
        assert exc_info.value.error_type == "no_session"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class TestHelpers:
    def test_equal_query_json(self):
        assert json.loads(equal("accountId", ["a1", "a2"])) == {
            "method": "equal",
            "attribute": "accountId",
            "values": ["a1", "a2"],
        }

    def test_unique_id_format(self):
        value = unique_id()
        assert re.fullmatch(r"[0-9a-f]{20}", value)

    def test_unique_ids_differ(self):
        assert len({unique_id() for _ in range(50)}) == 50
