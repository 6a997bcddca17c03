"""
api/routes/v1/auth.py -- Email-OTP authentication REST endpoints.

Routes:
  POST /api/v1/auth/otp        -- email a passcode; {accountId}
  POST /api/v1/auth/sign-up    -- passcode + create user record if new; {accountId}
  POST /api/v1/auth/sign-in    -- passcode for an existing user; {accountId} or
                                  {accountId: null, error: "User not found"}
  POST /api/v1/auth/verify     -- exchange passcode for session; sets cookie; {sessionId}
  GET  /api/v1/auth/me         -- current user record (requires session)
  POST /api/v1/auth/sign-out   -- delete session, clear cookie, 303 to sign-in

Security:
  Routes that make the platform send an email are rate-limited per IP
  (OTP_RATE_LIMIT, default 5/minute) so the service cannot be used to flood
  an inbox. /verify is limited separately (VERIFY_RATE_LIMIT, default
  10/minute) so a 6-digit passcode cannot be brute-forced through the API key.
  Only fields that were set are serialized: success bodies carry no "error".
  Cache-Control: no-store on the verify response, which carries Set-Cookie.
  The session secret is never put in a response body -- only in the cookie.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from fastapi.responses import RedirectResponse

from api.limiter import limiter, otp_rate_limit, verify_rate_limit
from api.models import (
    AccountResponse,
    EmailRequest,
    SessionResponse,
    SignUpRequest,
    UserResponse,
    VerifyRequest,
)
from auth.cookies import read_session_secret
from auth.dependencies import get_current_user, get_gateway
from auth.gateway import AuthGateway
from auth.models import Failure, FailureKind, UserRecord

# Auth policy:
# - POST /api/v1/auth/otp:       public, rate-limited -- starts the OTP flow
# - POST /api/v1/auth/sign-up:   public, rate-limited
# - POST /api/v1/auth/sign-in:   public, rate-limited
# - POST /api/v1/auth/verify:    public, rate-limited -- the passcode is the credential
# - GET  /api/v1/auth/me:        requires session (get_current_user)
# - POST /api/v1/auth/sign-out:  public -- clearing a cookie needs no prior auth
#
# @router goes ABOVE @limiter.limit: slowapi checks route limits inside the
# wrapper it returns, so the wrapper is what FastAPI must register.
router = APIRouter()

# Failure kind -> (HTTP status, error code)
_FAILURE_STATUS: dict[FailureKind, tuple[int, str]] = {
    FailureKind.provider_unavailable: (502, "provider_unavailable"),
    FailureKind.unauthorized: (401, "unauthorized"),
    FailureKind.not_found: (404, "not_found"),
    FailureKind.rejected: (400, "rejected"),
    FailureKind.no_session: (401, "unauthorized"),
}


# ---------------------------------------------------------------------------
# OTP issuing endpoints
# ---------------------------------------------------------------------------


@router.post("/auth/otp", response_model=AccountResponse, response_model_exclude_unset=True)
@limiter.limit(otp_rate_limit)
def send_otp(
    request: Request,
    body: EmailRequest,
    gateway: AuthGateway = Depends(get_gateway),
) -> AccountResponse:
    """Email a one-time passcode and return the account id it is bound to."""
    result = gateway.send_otp(body.email)
    if isinstance(result, Failure):
        _raise_for(result)
    return AccountResponse(account_id=result.value)


@router.post("/auth/sign-up", response_model=AccountResponse, response_model_exclude_unset=True)
@limiter.limit(otp_rate_limit)
def sign_up(
    request: Request,
    body: SignUpRequest,
    gateway: AuthGateway = Depends(get_gateway),
) -> AccountResponse:
    """Send a passcode and create the user record if the email is new.

    Signing up again with a registered email is not an error: no second
    record is created, but a new passcode is still sent.
    """
    result = gateway.create_account(body.full_name, body.email)
    if isinstance(result, Failure):
        _raise_for(result)
    return AccountResponse(account_id=result.value.account_id)


@router.post("/auth/sign-in", response_model=AccountResponse, response_model_exclude_unset=True)
@limiter.limit(otp_rate_limit)
def sign_in(
    request: Request,
    body: EmailRequest,
    gateway: AuthGateway = Depends(get_gateway),
) -> AccountResponse:
    """Send a passcode to a registered user.

    An unknown email answers 200 with accountId null and error "User not
    found" -- the sign-in form shows that message inline.
    """
    result = gateway.sign_in(body.email)
    if isinstance(result, Failure):
        _raise_for(result)
    if result.value.error:
        return AccountResponse(account_id=None, error=result.value.error)
    return AccountResponse(account_id=result.value.account_id)


# ---------------------------------------------------------------------------
# Session endpoints
# ---------------------------------------------------------------------------


@router.post("/auth/verify", response_model=SessionResponse)
@limiter.limit(verify_rate_limit)
def verify(
    request: Request,
    body: VerifyRequest,
    response: Response,
    gateway: AuthGateway = Depends(get_gateway),
) -> SessionResponse:
    """Exchange the passcode for a session and set the session cookie."""
    response.headers["Cache-Control"] = "no-store"
    result = gateway.verify_otp(body.account_id, body.password, response)
    if isinstance(result, Failure):
        _raise_for(result)
    return SessionResponse(session_id=result.value.session_id)


@router.get("/auth/me", response_model=UserResponse)
def me(current_user: UserRecord = Depends(get_current_user)) -> UserResponse:
    """Return the record of the currently signed-in user."""
    return UserResponse.from_record(current_user)


@router.post("/auth/sign-out")
def sign_out(request: Request, gateway: AuthGateway = Depends(get_gateway)) -> RedirectResponse:
    """Delete the session and redirect to the sign-in page, whatever the platform says."""
    return gateway.sign_out(read_session_secret(request))


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _raise_for(failure: Failure) -> None:
    status_code, code = _FAILURE_STATUS.get(failure.kind, (400, "rejected"))
    raise HTTPException(status_code=status_code, detail={"code": code, "message": failure.message})
