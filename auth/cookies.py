"""
auth/cookies.py -- Session cookie helpers.

The session secret issued by the platform lives in one cookie:

  name:     appwrite-session
  httponly: JS cannot read the cookie (XSS mitigation).
  samesite: "strict" -- never sent on cross-site requests, including top-level
            navigations. CSRF mitigation for every state-changing form.
  secure:   always; the cookie is only sent over HTTPS.
  path:     "/" so both the API and the web pages see it.
  expires:  the platform's session expiry when known, so the browser drops
            the cookie when the session dies.

Writers take the response explicitly; readers take the request. Nothing here
reaches for ambient request state.

Layer rule: no imports from api/, web/, or baas/.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

logger = logging.getLogger("otpgate.auth")

SESSION_COOKIE = "appwrite-session"

_COOKIE_ATTRS = {"path": "/", "httponly": True, "samesite": "strict", "secure": True}


def set_session_cookie(response, secret: str, expire: Optional[str] = None) -> None:
    """Write the session secret as the session cookie on the response.

    Args:
        response: FastAPI/Starlette response object.
        secret:   Session secret returned by the platform.
        expire:   ISO 8601 session expiry. When unparseable or missing the
                  cookie is a browser-session cookie.
    """
    expires = _parse_expire(expire)
    if expires is not None:
        response.set_cookie(SESSION_COOKIE, value=secret, expires=expires, **_COOKIE_ATTRS)
    else:
        response.set_cookie(SESSION_COOKIE, value=secret, **_COOKIE_ATTRS)


def clear_session_cookie(response) -> None:
    """Delete the session cookie. Attributes must match the ones it was set with."""
    response.delete_cookie(SESSION_COOKIE, **_COOKIE_ATTRS)


def read_session_secret(request) -> Optional[str]:
    """Return the session secret from the request cookies, or None."""
    return request.cookies.get(SESSION_COOKIE) or None


def _parse_expire(expire: Optional[str]) -> Optional[datetime]:
    if not expire:
        return None
    try:
        parsed = datetime.fromisoformat(expire.replace("Z", "+00:00"))
    except ValueError:
        logger.warning("Ignoring unparseable session expiry %r", expire)
        return None
    # Cookie dates are written in GMT; Starlette rejects non-UTC datetimes.
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)
