"""
baas/appwrite.py -- Appwrite REST clients.

Two privilege levels over the same REST surface:

  AdminClient   -- authenticates with the server API key (X-Appwrite-Key).
                   Used for every write, for user lookups, and for the OTP /
                   session exchange.
  SessionClient -- authenticates with the caller's session secret
                   (X-Appwrite-Session). Sees only what that user may see.

Both talk to the platform through a module-level requests.Session shared
across all clients for connection pooling. Clients themselves are cheap header
bundles -- build one per request via create_admin_client() /
create_session_client().

Every failure -- transport error, timeout, non-2xx answer, undecodable body --
is raised as baas.base.ProviderError. Nothing else leaves this module.

Security:
  The API key and session secrets are sent as headers only and never logged.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import requests

from baas.base import ProviderError
from core.config import Settings

logger = logging.getLogger("otpgate.baas")

# Module-level session shared across all clients for connection pooling.
# The platform API never redirects; 3 hops is generous and keeps a
# misconfigured endpoint from bouncing credentials around.
_session = requests.Session()
_session.max_redirects = 3


class AppwriteClient:
    """Base REST client: endpoint, project header, error mapping."""

    def __init__(self, endpoint: str, project_id: str, timeout: float = 10.0) -> None:
        self.endpoint = endpoint.rstrip("/")
        self.timeout = timeout
        self.headers: dict[str, str] = {
            "Content-Type": "application/json",
            "X-Appwrite-Project": project_id,
        }

    def _call(
        self,
        method: str,
        path: str,
        params: Optional[dict[str, Any]] = None,
        body: Optional[dict[str, Any]] = None,
    ) -> dict[str, Any]:
        """Issue one REST call and return the decoded JSON body ({} for 204)."""
        url = f"{self.endpoint}{path}"
        try:
            resp = _session.request(method, url, params=params, json=body, headers=self.headers, timeout=self.timeout)
        except requests.RequestException as e:
            logger.warning("Appwrite %s %s failed: %s", method, path, e)
            raise ProviderError(f"Appwrite request failed: {e}") from e

        if resp.status_code >= 400:
            raise _error_from_response(resp)
        if resp.status_code == 204 or not resp.content:
            return {}
        try:
            payload = resp.json()
        except ValueError as e:
            raise ProviderError("Appwrite returned a non-JSON body", status_code=resp.status_code) from e
        # Every Appwrite answer is an object; anything else came from something in front of it.
        if not isinstance(payload, dict):
            logger.warning("Appwrite %s %s answered with a %s body", method, path, type(payload).__name__)
            raise ProviderError("Appwrite returned a non-object body", status_code=resp.status_code)
        return payload

    # ------------------------------------------------------------------
    # Databases
    # ------------------------------------------------------------------

    def list_documents(self, database_id: str, collection_id: str, queries: list[str]) -> dict[str, Any]:
        return self._call(
            "GET",
            f"/databases/{database_id}/collections/{collection_id}/documents",
            params={"queries[]": list(queries)},
        )

    def create_document(
        self, database_id: str, collection_id: str, document_id: str, data: dict[str, Any]
    ) -> dict[str, Any]:
        return self._call(
            "POST",
            f"/databases/{database_id}/collections/{collection_id}/documents",
            body={"documentId": document_id, "data": data},
        )

    # ------------------------------------------------------------------
    # Account
    # ------------------------------------------------------------------

    def create_email_token(self, user_id: str, email: str) -> dict[str, Any]:
        return self._call("POST", "/account/tokens/email", body={"userId": user_id, "email": email})

    def create_session(self, user_id: str, secret: str) -> dict[str, Any]:
        return self._call("POST", "/account/sessions/token", body={"userId": user_id, "secret": secret})

    def get_account(self) -> dict[str, Any]:
        return self._call("GET", "/account")

    def delete_session(self, session_id: str = "current") -> None:
        self._call("DELETE", f"/account/sessions/{session_id}")


class AdminClient(AppwriteClient):
    """Elevated client authenticated with the server API key."""

    def __init__(self, endpoint: str, project_id: str, api_key: str, timeout: float = 10.0) -> None:
        super().__init__(endpoint, project_id, timeout)
        self.headers["X-Appwrite-Key"] = api_key


class SessionClient(AppwriteClient):
    """Caller-scoped client bound to one session secret."""

    def __init__(self, endpoint: str, project_id: str, session_secret: str, timeout: float = 10.0) -> None:
        super().__init__(endpoint, project_id, timeout)
        self.headers["X-Appwrite-Session"] = session_secret


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------


def create_admin_client(settings: Settings) -> AdminClient:
    return AdminClient(
        settings.appwrite_endpoint,
        settings.appwrite_project_id,
        settings.appwrite_api_key,
        timeout=settings.appwrite_timeout_seconds,
    )


def create_session_client(settings: Settings, session_secret: Optional[str]) -> SessionClient:
    """Build a client bound to the caller's session.

    Raises ProviderError("No session", error_type="no_session") when the
    request carried no session cookie -- there is nothing to authenticate as.
    """
    if not session_secret:
        raise ProviderError("No session", error_type="no_session")
    return SessionClient(
        settings.appwrite_endpoint,
        settings.appwrite_project_id,
        session_secret,
        timeout=settings.appwrite_timeout_seconds,
    )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _error_from_response(resp: requests.Response) -> ProviderError:
    """Map a non-2xx Appwrite answer to ProviderError.

    Appwrite error bodies look like {"message": ..., "code": 401, "type": "user_invalid_token"}.
    Falls back to the HTTP reason when the body is not JSON.
    """
    message = resp.reason or f"HTTP {resp.status_code}"
    error_type = None
    try:
        payload = resp.json()
    except ValueError:
        payload = None
    if isinstance(payload, dict):
        message = payload.get("message") or message
        error_type = payload.get("type")
    return ProviderError(message, status_code=resp.status_code, error_type=error_type)
