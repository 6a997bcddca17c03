"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic beyond mapping). The
gateway does the work; these types carry its inputs and outputs.

Result types: every gateway boundary returns Ok(value) or Failure(kind, message)
instead of raising or silently returning None. Callers branch on
isinstance(result, Failure) and decide per surface (HTTP status, redirect,
CLI exit code) what a failure means.

Layer rule: no imports from api/, web/, or baas/.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, Optional, TypeVar, Union

T = TypeVar("T")

# ---------------------------------------------------------------------------
# Domain constants
# ---------------------------------------------------------------------------

# Deliberately loose: one "@", no whitespace, a dot in the domain. The platform
# does the authoritative validation when it sends the email. api/, web/ and the
# CLI all validate against this one pattern.
EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


@dataclass
class UserRecord:
    """A user document in the platform's users collection.

    account_id is the identity key issued by the platform's identity service;
    email is the secondary unique lookup key. Stored attribute names follow
    the collection schema (fullName, email, avatar, accountId).
    """

    full_name: str
    email: str
    avatar_url: str
    account_id: str
    document_id: Optional[str] = None

    @classmethod
    def from_document(cls, doc: dict[str, Any]) -> "UserRecord":
        return cls(
            full_name=doc.get("fullName", ""),
            email=doc.get("email", ""),
            avatar_url=doc.get("avatar", ""),
            account_id=doc.get("accountId", ""),
            document_id=doc.get("$id"),
        )

    def to_document(self) -> dict[str, Any]:
        return {
            "fullName": self.full_name,
            "email": self.email,
            "avatar": self.avatar_url,
            "accountId": self.account_id,
        }


@dataclass
class SessionGrant:
    """A session issued after a successful OTP exchange.

    secret is what goes into the session cookie. It is never returned to API
    clients -- only session_id is.
    """

    session_id: str
    secret: str
    expire: Optional[str] = None  # ISO 8601, as reported by the platform


@dataclass
class AccountRef:
    """The answer to sign-up / sign-in: which account the OTP was issued for.

    account_id is None (and error set) when sign-in found no user record.
    """

    account_id: Optional[str]
    error: Optional[str] = None


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


class FailureKind(str, Enum):
    provider_unavailable = "provider_unavailable"  # no answer: network, DNS, timeout
    unauthorized = "unauthorized"  # platform said 401/403
    not_found = "not_found"  # platform said 404
    rejected = "rejected"  # any other platform error
    no_session = "no_session"  # request carried no session cookie


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T


@dataclass(frozen=True)
class Failure:
    kind: FailureKind
    message: str


Result = Union[Ok[T], Failure]
