"""
auth/gateway.py -- AuthGateway: email-OTP authentication over the platform.

Pattern: Facade. Seven operations, each opening one or two platform client
handles, making one or two remote calls, and returning. No state lives on the
gateway beyond its settings and client factories, so one instance serves every
request.

  lookup_user_by_email  admin   list users where email == E
  send_otp              admin   create email token for a fresh account id
  create_account        admin   lookup -> send_otp -> create record if absent
  verify_otp            admin   exchange passcode for session, set cookie
  get_current_user      session get account -> list users where accountId == id
  sign_out              session delete current session, clear cookie, redirect
  sign_in               admin   lookup -> send_otp if the user exists

Error policy (decided per operation, not by where a try happens to sit):
  - lookup/send/create/verify/sign_in return Failure; the caller decides what
    a failure means for its surface.
  - get_current_user returns None on any failure. "Not signed in" and "could
    not tell" look the same to a page guard. resolve_current_user keeps the
    failure kind for callers that care.
  - sign_out cannot fail from the caller's side: the cookie is cleared and the
    redirect returned whatever the platform said, or whatever went wrong
    before it could answer.

Concurrency note: create_account is lookup-then-create, not atomic. Two
concurrent sign-ups for the same new email can both miss the lookup; only a
unique index on the collection's email attribute prevents the duplicate.

Layer rule: no imports from api/ or web/.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional

from fastapi.responses import RedirectResponse

from auth.cookies import clear_session_cookie, set_session_cookie
from auth.models import AccountRef, Failure, FailureKind, Ok, Result, SessionGrant, UserRecord
from baas.appwrite import create_admin_client, create_session_client
from baas.base import PlatformClient, ProviderError, equal, unique_id
from core.config import Settings

logger = logging.getLogger("otpgate.auth")

USER_NOT_FOUND = "User not found"


class AuthGateway:
    """Stateless facade over the platform's admin and session clients.

    Usage:
        gateway = AuthGateway.from_settings(get_settings())
        result = gateway.sign_in("ada@example.com")
        if isinstance(result, Failure): ...
    """

    def __init__(
        self,
        settings: Settings,
        admin_factory: Callable[[], PlatformClient],
        session_factory: Callable[[Optional[str]], PlatformClient],
    ) -> None:
        self._settings = settings
        self._admin = admin_factory
        self._session = session_factory

    @classmethod
    def from_settings(cls, settings: Settings) -> "AuthGateway":
        """Build a gateway wired to the Appwrite REST clients."""
        return cls(
            settings,
            admin_factory=lambda: create_admin_client(settings),
            session_factory=lambda secret: create_session_client(settings, secret),
        )

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def lookup_user_by_email(self, email: str) -> Result[Optional[UserRecord]]:
        """Return the first user record whose email matches exactly, or Ok(None)."""
        try:
            result = self._admin().list_documents(
                self._settings.appwrite_database_id,
                self._settings.appwrite_users_collection_id,
                [equal("email", [email])],
            )
        except ProviderError as e:
            return _failure(e, "Failed to look up user by email")
        return Ok(_first_record(result))

    # ------------------------------------------------------------------
    # OTP
    # ------------------------------------------------------------------

    def send_otp(self, email: str) -> Result[str]:
        """Ask the platform to email a one-time passcode.

        The token is requested for a freshly generated account id; the
        platform answers with the account the token was actually bound to
        (an existing account keeps its id). That id is what the caller later
        passes to verify_otp().
        """
        try:
            token = self._admin().create_email_token(unique_id(), email)
        except ProviderError as e:
            return _failure(e, "Failed to send email OTP")
        account_id = token.get("userId")
        if not account_id:
            logger.warning("Email token response carried no userId")
            return Failure(FailureKind.rejected, "Failed to send an OTP")
        logger.info("OTP issued for account %s", account_id)
        return Ok(account_id)

    def create_account(self, full_name: str, email: str) -> Result[AccountRef]:
        """Send an OTP and create the user record if this email has none.

        The OTP goes out even when the record already exists, so a repeated
        sign-up doubles as a re-challenge. The record is created at most once
        per email and never updated here.
        """
        existing = self.lookup_user_by_email(email)
        if isinstance(existing, Failure):
            return existing

        otp = self.send_otp(email)
        if isinstance(otp, Failure):
            return otp
        account_id = otp.value

        if existing.value is None:
            record = UserRecord(
                full_name=full_name,
                email=email,
                avatar_url=self._settings.avatar_placeholder_url,
                account_id=account_id,
            )
            try:
                self._admin().create_document(
                    self._settings.appwrite_database_id,
                    self._settings.appwrite_users_collection_id,
                    unique_id(),
                    record.to_document(),
                )
            except ProviderError as e:
                return _failure(e, "Failed to create user record")
            logger.info("User record created for account %s", account_id)

        return Ok(AccountRef(account_id=account_id))

    def verify_otp(self, account_id: str, password: str, response) -> Result[SessionGrant]:
        """Exchange the emailed passcode for a session.

        On success the session cookie is written to `response`; on any failure
        the response is left untouched.
        """
        try:
            session = self._admin().create_session(account_id, password)
        except ProviderError as e:
            return _failure(e, "Failed to verify OTP")

        session_id = session.get("$id")
        secret = session.get("secret")
        if not session_id or not secret:
            # The platform only returns the secret to API-key callers.
            logger.warning("Session for account %s came back without id or secret", account_id)
            return Failure(FailureKind.rejected, "Failed to create session")

        expire = session.get("expire")
        set_session_cookie(response, secret, expire)
        logger.info("Session %s created for account %s", session_id, account_id)
        return Ok(SessionGrant(session_id=session_id, secret=secret, expire=expire))

    # ------------------------------------------------------------------
    # Current user
    # ------------------------------------------------------------------

    def resolve_current_user(self, session_secret: Optional[str]) -> Result[Optional[UserRecord]]:
        """Resolve the session to its user record, keeping the failure kind."""
        if not session_secret:
            return Failure(FailureKind.no_session, "No session")
        try:
            client = self._session(session_secret)
            account = client.get_account()
            account_id = account.get("$id")
            if not account_id:
                return Failure(FailureKind.rejected, "Account response carried no id")
            result = client.list_documents(
                self._settings.appwrite_database_id,
                self._settings.appwrite_users_collection_id,
                [equal("accountId", [account_id])],
            )
        except ProviderError as e:
            return _failure(e, "Failed to resolve current user")
        return Ok(_first_record(result))

    def get_current_user(self, session_secret: Optional[str]) -> Optional[UserRecord]:
        """Return the signed-in user's record, or None. Never raises for provider errors."""
        result = self.resolve_current_user(session_secret)
        if isinstance(result, Failure):
            return None
        return result.value

    # ------------------------------------------------------------------
    # Sign in / out
    # ------------------------------------------------------------------

    def sign_out(self, session_secret: Optional[str]) -> RedirectResponse:
        """Delete the current session and send the caller to the sign-in page.

        The redirect is returned even when the session could not be deleted
        (no cookie, expired session, platform down, a client bug); the cookie
        is cleared in every case.
        """
        response = RedirectResponse(self._settings.sign_in_path, status_code=303)
        try:
            self._session(session_secret).delete_session("current")
        except ProviderError as e:
            logger.warning("Failed to sign out user: %s", e)
        except Exception:
            # Not a platform answer; keep the traceback but still sign the caller out.
            logger.exception("Unexpected error while deleting the session")
        finally:
            clear_session_cookie(response)
        return response

    def sign_in(self, email: str) -> Result[AccountRef]:
        """Send a fresh OTP to an existing user.

        Unknown emails are not an error: the result is
        Ok(AccountRef(None, "User not found")) and no OTP is sent.
        """
        existing = self.lookup_user_by_email(email)
        if isinstance(existing, Failure):
            return existing
        if existing.value is None:
            logger.info("Sign-in requested for an unregistered email")
            return Ok(AccountRef(account_id=None, error=USER_NOT_FOUND))

        otp = self.send_otp(email)
        if isinstance(otp, Failure):
            return otp
        return Ok(AccountRef(account_id=existing.value.account_id))


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _first_record(result: dict[str, Any]) -> Optional[UserRecord]:
    documents = result.get("documents") or []
    if result.get("total", len(documents)) <= 0 or not documents:
        return None
    return UserRecord.from_document(documents[0])


def _kind_for(exc: ProviderError) -> FailureKind:
    if exc.error_type == "no_session":
        return FailureKind.no_session
    if exc.status_code is None:
        return FailureKind.provider_unavailable
    if exc.status_code in (401, 403):
        return FailureKind.unauthorized
    if exc.status_code == 404:
        return FailureKind.not_found
    return FailureKind.rejected


def _failure(exc: ProviderError, message: str) -> Failure:
    """Log a provider error and turn it into a Failure carrying `message`."""
    logger.warning("%s: %r", message, exc)
    return Failure(_kind_for(exc), message)
