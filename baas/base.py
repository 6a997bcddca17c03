"""
baas/base.py -- Capability interfaces for the backend-as-a-service platform.

The gateway depends on these protocols, never on a concrete client. Two
capability sets cover everything the auth flow needs:

  DocumentStore    -- list and create documents in a collection.
  IdentityProvider -- email OTP tokens, session exchange, account lookup,
                      session deletion.

A concrete client (baas/appwrite.py) implements both; the privilege level is
decided by the credentials it was built with, not by the interface.

Layer rule: baas/ imports only stdlib, third-party libraries and core/.
"""

from __future__ import annotations

import json
import secrets
import time
from typing import Any, Optional, Protocol


class ProviderError(Exception):
    """A platform call failed.

    status_code is the HTTP status the platform answered with, or None when
    the request never got an answer (DNS, TLS, timeout, connection reset).
    error_type is the platform's machine-readable error type when it sent one
    (e.g. "user_invalid_token").
    """

    def __init__(self, message: str, status_code: Optional[int] = None, error_type: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.error_type = error_type

    def __repr__(self) -> str:
        return f"ProviderError({self.message!r}, status_code={self.status_code!r}, error_type={self.error_type!r})"


class DocumentStore(Protocol):
    """Document collection access."""

    def list_documents(self, database_id: str, collection_id: str, queries: list[str]) -> dict[str, Any]:
        """Return {"total": int, "documents": [dict, ...]} for documents matching every query."""

    def create_document(
        self, database_id: str, collection_id: str, document_id: str, data: dict[str, Any]
    ) -> dict[str, Any]:
        """Create a document and return it, including its "$id"."""


class IdentityProvider(Protocol):
    """Account and session operations of the platform's identity service."""

    def create_email_token(self, user_id: str, email: str) -> dict[str, Any]:
        """Email a one-time passcode. Returns the token; token["userId"] is the account id."""

    def create_session(self, user_id: str, secret: str) -> dict[str, Any]:
        """Exchange a passcode for a session. Returns {"$id", "secret", "expire", ...}."""

    def get_account(self) -> dict[str, Any]:
        """Return the account the current credentials belong to."""

    def delete_session(self, session_id: str = "current") -> None:
        """Delete a session. "current" means the session the client is bound to."""


class PlatformClient(DocumentStore, IdentityProvider, Protocol):
    """Both capability sets on one handle (what the Appwrite clients provide)."""


# ---------------------------------------------------------------------------
# Query and id helpers
# ---------------------------------------------------------------------------


def equal(attribute: str, values: list[Any]) -> str:
    """Build an equality filter in the platform's JSON query syntax.

    The value is always a list; a document matches when the attribute equals
    any element.
    """
    return json.dumps({"method": "equal", "attribute": attribute, "values": list(values)}, separators=(",", ":"))


def unique_id(padding: int = 7) -> str:
    """Generate a time-ordered document/account id.

    8 hex chars of epoch seconds + 5 hex chars of microseconds + random hex
    padding. Always starts with a hex digit and stays well under the
    platform's 36-char id limit.
    """
    now = time.time()
    seconds = int(now)
    micros = int((now - seconds) * 1_000_000)
    return f"{seconds:08x}{micros:05x}{secrets.token_hex(padding)[:padding]}"
