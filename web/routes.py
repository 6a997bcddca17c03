"""
web/routes.py -- Jinja2 template routes for the OTPGate web UI.

These routes serve server-rendered HTML. They share app.state.gateway with the
API routes but return HTML and redirects instead of JSON.

Flow:
  /sign-up or /sign-in  --(email sent)-->  /verify?accountId=...&email=...
  /verify               --(cookie set)-->  /
  /sign-out             --(cookie gone)--> /sign-in

Routes:
  GET  /          -- signed-in home page (auth required, else 302 /sign-in)
  GET  /sign-in   -- email form
  POST /sign-in   -- send passcode to an existing user, redirect /verify
  GET  /sign-up   -- name + email form
  POST /sign-up   -- send passcode, create record if new, redirect /verify
  GET  /verify    -- passcode form
  POST /verify    -- exchange passcode for session, redirect /
  POST /sign-out  -- delete session, clear cookie, redirect /sign-in
"""

import logging
import re
from pathlib import Path
from typing import Optional
from urllib.parse import urlencode

from fastapi import APIRouter, Form, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.templating import Jinja2Templates

from api.limiter import limiter, otp_rate_limit, verify_rate_limit
from auth.cookies import read_session_secret
from auth.dependencies import get_gateway, try_get_current_user
from auth.models import EMAIL_PATTERN, Failure, FailureKind

logger = logging.getLogger("otpgate.web")

templates = Jinja2Templates(directory=str(Path(__file__).parent / "templates"))
router = APIRouter()

_EMAIL_RE = re.compile(EMAIL_PATTERN)

# ---------------------------------------------------------------------------
# Auth helpers
# ---------------------------------------------------------------------------

# Whitelist mapping for ?error= query params. The raw query param is NEVER
# passed to templates -- only the message from this dict is. Prevents
# reflected XSS via crafted error query strings.
_ERROR_MESSAGES: dict[str, str] = {
    "user_not_found": "User not found. Check the address or create an account.",
    "invalid_email": "Enter a valid email address.",
    "invalid_name": "Enter your full name.",
    "send_failed": "We could not send a passcode. Please try again.",
    "invalid_otp": "That passcode is invalid or has expired.",
    "provider_unavailable": "The sign-in service is unavailable. Please try again shortly.",
}


def _error_key(failure: Failure, default: str) -> str:
    if failure.kind is FailureKind.provider_unavailable:
        return "provider_unavailable"
    return default


def _error_msg(request: Request) -> Optional[str]:
    return _ERROR_MESSAGES.get(request.query_params.get("error", ""))


def _verify_url(account_id: str, email: str) -> str:
    return "/verify?" + urlencode({"accountId": account_id, "email": email})


# ---------------------------------------------------------------------------
# GET / -- home
# ---------------------------------------------------------------------------


@router.get("/", response_class=HTMLResponse)
def home(request: Request) -> HTMLResponse:
    """Signed-in landing page. Anyone the gateway cannot resolve goes to /sign-in."""
    user = try_get_current_user(request)
    if user is None:
        return RedirectResponse("/sign-in", status_code=302)
    return templates.TemplateResponse(request, "home.html", {"user": user})


# ---------------------------------------------------------------------------
# Sign in
# ---------------------------------------------------------------------------


@router.get("/sign-in", response_class=HTMLResponse)
def sign_in_form(request: Request) -> HTMLResponse:
    """Render the sign-in form. Already signed-in users go straight home."""
    if try_get_current_user(request) is not None:
        return RedirectResponse("/", status_code=302)
    return templates.TemplateResponse(request, "sign_in.html", {"error_msg": _error_msg(request)})


@router.post("/sign-in", response_class=HTMLResponse)
@limiter.limit(otp_rate_limit)
def sign_in_post(request: Request, email: str = Form(...)) -> RedirectResponse:
    """Send a passcode to an existing user and move on to the passcode form."""
    email = email.strip()
    if not _EMAIL_RE.match(email):
        return RedirectResponse("/sign-in?error=invalid_email", status_code=303)

    result = get_gateway(request).sign_in(email)
    if isinstance(result, Failure):
        return RedirectResponse(f"/sign-in?error={_error_key(result, 'send_failed')}", status_code=303)
    if result.value.account_id is None:
        return RedirectResponse("/sign-in?error=user_not_found", status_code=303)
    return RedirectResponse(_verify_url(result.value.account_id, email), status_code=303)


# ---------------------------------------------------------------------------
# Sign up
# ---------------------------------------------------------------------------


@router.get("/sign-up", response_class=HTMLResponse)
def sign_up_form(request: Request) -> HTMLResponse:
    if try_get_current_user(request) is not None:
        return RedirectResponse("/", status_code=302)
    return templates.TemplateResponse(request, "sign_up.html", {"error_msg": _error_msg(request)})


@router.post("/sign-up", response_class=HTMLResponse)
@limiter.limit(otp_rate_limit)
def sign_up_post(
    request: Request,
    full_name: str = Form(...),
    email: str = Form(...),
) -> RedirectResponse:
    """Send a passcode and create the user record if the email is new."""
    full_name = full_name.strip()
    email = email.strip()
    if not full_name or len(full_name) > 128:
        return RedirectResponse("/sign-up?error=invalid_name", status_code=303)
    if not _EMAIL_RE.match(email):
        return RedirectResponse("/sign-up?error=invalid_email", status_code=303)

    result = get_gateway(request).create_account(full_name, email)
    if isinstance(result, Failure):
        return RedirectResponse(f"/sign-up?error={_error_key(result, 'send_failed')}", status_code=303)
    return RedirectResponse(_verify_url(result.value.account_id, email), status_code=303)


# ---------------------------------------------------------------------------
# Verify
# ---------------------------------------------------------------------------


@router.get("/verify", response_class=HTMLResponse)
def verify_form(request: Request) -> HTMLResponse:
    """Render the passcode form for the account the passcode was sent to."""
    account_id = request.query_params.get("accountId", "")
    if not account_id:
        return RedirectResponse("/sign-in", status_code=302)
    return templates.TemplateResponse(
        request,
        "verify.html",
        {
            "account_id": account_id,
            "email": request.query_params.get("email", ""),
            "error_msg": _error_msg(request),
        },
    )


@router.post("/verify", response_class=HTMLResponse)
@limiter.limit(verify_rate_limit)
def verify_post(
    request: Request,
    account_id: str = Form(...),
    password: str = Form(...),
    email: str = Form(default=""),
) -> RedirectResponse:
    """Exchange the passcode for a session; the cookie rides on the redirect home."""
    resp = RedirectResponse("/", status_code=303)
    resp.headers["Cache-Control"] = "no-store"
    result = get_gateway(request).verify_otp(account_id, password.strip(), resp)
    if isinstance(result, Failure):
        logger.info("Passcode rejected for account %s (%s)", account_id, result.kind.value)
        error = _error_key(result, "invalid_otp")
        return RedirectResponse(
            f"{_verify_url(account_id, email)}&error={error}",
            status_code=303,
        )
    return resp


# ---------------------------------------------------------------------------
# Sign out
# ---------------------------------------------------------------------------


@router.post("/sign-out")
def sign_out(request: Request) -> RedirectResponse:
    """Delete the session, clear the cookie, and redirect to /sign-in."""
    return get_gateway(request).sign_out(read_session_secret(request))
