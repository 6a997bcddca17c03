"""
auth/dependencies.py -- Request-scoped lookups for route handlers.

The session cookie ("appwrite-session") is the only credential. These helpers
read it off the request and ask the gateway on app.state who it belongs to.

  get_gateway           the AuthGateway the lifespan built
  try_get_current_user  UserRecord or None, for pages that redirect
  get_current_user      UserRecord or HTTP 401, for JSON routes

Layer rule: imports fastapi and auth/ only; never api/ or web/.
"""

from __future__ import annotations

from typing import Optional

from fastapi import HTTPException, Request

from auth.cookies import read_session_secret
from auth.gateway import AuthGateway
from auth.models import UserRecord


def get_gateway(request: Request) -> AuthGateway:
    """Return the process-wide AuthGateway from app.state."""
    return request.app.state.gateway


def try_get_current_user(request: Request) -> Optional[UserRecord]:
    """Resolve the request's session cookie to a user record.

    Returns None when there is no cookie, the session is invalid or expired,
    the platform is unreachable, or no user record matches the account.
    """
    gateway = get_gateway(request)
    return gateway.get_current_user(read_session_secret(request))


def get_current_user(request: Request) -> UserRecord:
    """Return the signed-in user or raise 401 with the structured error detail.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(user: UserRecord = Depends(get_current_user)): ...
    """
    user = try_get_current_user(request)
    if user is None:
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "Authentication required."},
        )
    return user
