"""
api/models.py -- Wire models for the /api/v1 routes.

These are the JSON shapes only. The domain dataclasses in auth/models.py stay
free of pydantic; from_record() and the route handlers convert between them.

JSON keys are camelCase (fullName, accountId, sessionId), matching the users
collection attributes. Python attributes are snake_case via aliases, and
populate_by_name lets handlers construct models with either.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from auth.models import EMAIL_PATTERN, UserRecord

# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class EmailRequest(BaseModel):
    """Request body for POST /api/v1/auth/otp and POST /api/v1/auth/sign-in."""

    model_config = ConfigDict(str_strip_whitespace=True)

    email: str = Field(max_length=254, pattern=EMAIL_PATTERN)


class SignUpRequest(BaseModel):
    """Request body for POST /api/v1/auth/sign-up."""

    model_config = ConfigDict(str_strip_whitespace=True, populate_by_name=True)

    full_name: str = Field(alias="fullName", min_length=1, max_length=128)
    email: str = Field(max_length=254, pattern=EMAIL_PATTERN)


class VerifyRequest(BaseModel):
    """Request body for POST /api/v1/auth/verify.

    password is the emailed one-time passcode, not a long-lived password.
    """

    model_config = ConfigDict(str_strip_whitespace=True, populate_by_name=True)

    account_id: str = Field(alias="accountId", min_length=1, max_length=36)
    password: str = Field(min_length=1, max_length=256)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class AccountResponse(BaseModel):
    """Response for OTP-issuing routes.

    account_id is null (and error set) when sign-in found no user for the email.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    account_id: Optional[str] = Field(alias="accountId")
    error: Optional[str] = None


class SessionResponse(BaseModel):
    """Response for POST /api/v1/auth/verify. The session secret travels only in the cookie."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    session_id: str = Field(alias="sessionId")


class UserResponse(BaseModel):
    """The signed-in user's record."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    full_name: str = Field(alias="fullName")
    email: str
    avatar_url: str = Field(alias="avatarUrl")
    account_id: str = Field(alias="accountId")

    @classmethod
    def from_record(cls, user: UserRecord) -> "UserResponse":
        """Factory Method -- the mapping lives with the output model, not in route handlers."""
        return cls(
            full_name=user.full_name,
            email=user.email,
            avatar_url=user.avatar_url,
            account_id=user.account_id,
        )


class ErrorDetail(BaseModel):
    """code is stable and machine-readable; message is for people."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Body of every 4xx/5xx answer."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str] = Field(default_factory=dict)
