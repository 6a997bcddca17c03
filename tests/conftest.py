"""
tests/conftest.py -- Shared test fixtures for OTPGate tests.

This module provides:
  - FakePlatform: an in-memory stand-in for the Appwrite project that
    implements both DocumentStore and IdentityProvider, with per-method
    failure injection
  - settings / platform / gateway: unit-test fixtures for AuthGateway
  - client: TestClient on the real ASGI app (API + web) with the lifespan
    patched to wire a gateway built on FakePlatform

Design: the client uses base_url="https://localhost". "localhost" passes
TrustedHostMiddleware, and the https scheme lets the test client's cookie jar
store and replay the Secure session cookie like a browser would.

DEBUG must be set before any core/auth import so Settings() accepts the
missing Appwrite connection fields. OTP_RATE_LIMIT and VERIFY_RATE_LIMIT are
raised so the whole suite never trips the per-IP limits.
"""

from __future__ import annotations

import json
import os
from collections.abc import Generator
from contextlib import asynccontextmanager
from typing import Any, Optional

# CRITICAL: Set before any auth/core import so get_settings() boots in dev mode.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("OTP_RATE_LIMIT", "1000/minute")
os.environ.setdefault("VERIFY_RATE_LIMIT", "1000/minute")

import pytest
from fastapi.testclient import TestClient

from asgi import app
from auth.gateway import AuthGateway
from baas.base import ProviderError, unique_id
from core.config import Settings

DATABASE_ID = "main"
USERS_COLLECTION_ID = "users"
PLACEHOLDER_AVATAR = "https://example.com/avatar.png"


# ---------------------------------------------------------------------------
# Fake platform
# ---------------------------------------------------------------------------


class FakePlatform:
    """In-memory Appwrite project: one documents store plus an identity service.

    Mirrors the platform behaviours the gateway relies on:
      - create_email_token() for an email that already has an account returns
        that account's id, not the requested one
      - a passcode is single-use; a wrong one answers 401 user_invalid_token
      - session-scoped calls need a live session secret
    """

    def __init__(self) -> None:
        self.documents: dict[tuple[str, str], list[dict[str, Any]]] = {}
        self.accounts: dict[str, str] = {}  # email -> account id
        self.passcodes: dict[str, str] = {}  # account id -> pending passcode
        self.sessions: dict[str, dict[str, str]] = {}  # secret -> {"$id", "userId"}
        self.sent: list[tuple[str, str]] = []  # (account id, email) per OTP email
        self.failures: dict[str, ProviderError] = {}

    # -- test helpers ------------------------------------------------------

    def fail(self, method: str, error: Optional[ProviderError] = None) -> None:
        """Make every later call to `method` raise `error` (default: connection failure)."""
        self.failures[method] = error or ProviderError("Appwrite request failed: connection refused")

    def users(self) -> list[dict[str, Any]]:
        return self.documents.get((DATABASE_ID, USERS_COLLECTION_ID), [])

    def seed_user(self, full_name: str, email: str) -> str:
        """Register an account and its user document directly. Returns the account id."""
        account_id = self.accounts.setdefault(email, unique_id())
        self.documents.setdefault((DATABASE_ID, USERS_COLLECTION_ID), []).append(
            {
                "$id": unique_id(),
                "fullName": full_name,
                "email": email,
                "avatar": PLACEHOLDER_AVATAR,
                "accountId": account_id,
            }
        )
        return account_id

    def seed_session(self, account_id: str) -> str:
        """Open a session for the account directly. Returns the session secret."""
        secret = f"secret-{unique_id()}"
        self.sessions[secret] = {"$id": unique_id(), "userId": account_id}
        return secret

    # -- client handles ----------------------------------------------------

    def admin(self) -> "FakeClient":
        return FakeClient(self, None)

    def session(self, secret: Optional[str]) -> "FakeClient":
        if not secret:
            raise ProviderError("No session", error_type="no_session")
        return FakeClient(self, secret)


class FakeClient:
    """One client handle; admin when session_secret is None."""

    def __init__(self, platform: FakePlatform, session_secret: Optional[str]) -> None:
        self._platform = platform
        self._secret = session_secret

    def _check(self, method: str) -> None:
        error = self._platform.failures.get(method)
        if error is not None:
            raise error

    def _current_session(self) -> dict[str, str]:
        session = self._platform.sessions.get(self._secret or "")
        if session is None:
            raise ProviderError("User (role: guests) missing scope (account)", 401, "general_unauthorized_scope")
        return session

    def list_documents(self, database_id: str, collection_id: str, queries: list[str]) -> dict[str, Any]:
        self._check("list_documents")
        docs = self._platform.documents.get((database_id, collection_id), [])
        for raw in queries:
            q = json.loads(raw)
            assert q["method"] == "equal"
            docs = [d for d in docs if d.get(q["attribute"]) in q["values"]]
        return {"total": len(docs), "documents": [dict(d) for d in docs]}

    def create_document(
        self, database_id: str, collection_id: str, document_id: str, data: dict[str, Any]
    ) -> dict[str, Any]:
        self._check("create_document")
        doc = {"$id": document_id, **data}
        self._platform.documents.setdefault((database_id, collection_id), []).append(doc)
        return dict(doc)

    def create_email_token(self, user_id: str, email: str) -> dict[str, Any]:
        self._check("create_email_token")
        account_id = self._platform.accounts.setdefault(email, user_id)
        self._platform.passcodes[account_id] = f"{len(self._platform.sent) + 100000}"
        self._platform.sent.append((account_id, email))
        return {"$id": unique_id(), "userId": account_id, "secret": "", "expire": "2030-01-01T00:15:00.000+00:00"}

    def create_session(self, user_id: str, secret: str) -> dict[str, Any]:
        self._check("create_session")
        if self._platform.passcodes.get(user_id) != secret:
            raise ProviderError("Invalid token passed in the request.", 401, "user_invalid_token")
        del self._platform.passcodes[user_id]
        session_secret = f"secret-{unique_id()}"
        session = {"$id": unique_id(), "userId": user_id}
        self._platform.sessions[session_secret] = session
        return {**session, "secret": session_secret, "expire": "2030-01-01T00:00:00.000+00:00"}

    def get_account(self) -> dict[str, Any]:
        self._check("get_account")
        session = self._current_session()
        return {"$id": session["userId"]}

    def delete_session(self, session_id: str = "current") -> None:
        self._check("delete_session")
        self._current_session()
        del self._platform.sessions[self._secret]


# ---------------------------------------------------------------------------
# Unit fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def settings() -> Settings:
    return Settings(
        debug=True,
        appwrite_endpoint="https://appwrite.test/v1",
        appwrite_project_id="otpgate-test",
        appwrite_api_key="test-key",
        appwrite_database_id=DATABASE_ID,
        appwrite_users_collection_id=USERS_COLLECTION_ID,
        avatar_placeholder_url=PLACEHOLDER_AVATAR,
    )


@pytest.fixture
def platform() -> FakePlatform:
    return FakePlatform()


@pytest.fixture
def gateway(settings: Settings, platform: FakePlatform) -> AuthGateway:
    return AuthGateway(settings, admin_factory=platform.admin, session_factory=platform.session)


# ---------------------------------------------------------------------------
# Integration fixture
# ---------------------------------------------------------------------------


def _patch_lifespan(gateway: AuthGateway):
    """Return an async context manager that replaces the real lifespan.

    Wires the fake-backed gateway into app.state so TestClient routes never
    build real Appwrite clients.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.gateway = gateway
        yield

    return test_lifespan


@pytest.fixture
def client(gateway: AuthGateway, platform: FakePlatform) -> Generator[tuple[TestClient, FakePlatform], None, None]:
    """Yield (client, platform) for API and web integration tests.

    follow_redirects=False is essential: tests assert on redirect *locations*
    and on the Set-Cookie headers carried by the redirect itself.
    """
    app.router.lifespan_context = _patch_lifespan(gateway)

    with TestClient(
        app,
        base_url="https://localhost",
        follow_redirects=False,
        raise_server_exceptions=True,
    ) as test_client:
        yield test_client, platform
