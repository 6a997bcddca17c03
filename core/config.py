"""
core/config.py -- OTPGate settings.

Every environment read goes through Settings (pydantic-settings): field names
are the lowercased env var names, and a .env file in the working directory is
read too. Modules take settings from get_settings(), cached after the first
call; tests build Settings(...) directly with explicit values.

The after-validator is the Appwrite connection policy: a production process
with no project, key, database or collection id stops at startup instead of
failing on its first request. DEBUG=true downgrades that to a warning.

Layer rule: core/ imports nothing from api/, web/, auth/ or baas/.
"""

import logging
from functools import lru_cache

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("otpgate.config")

# Fields that must be set before the service can talk to Appwrite.
_REQUIRED_APPWRITE_FIELDS = (
    "appwrite_project_id",
    "appwrite_api_key",
    "appwrite_database_id",
    "appwrite_users_collection_id",
)


class Settings(BaseSettings):
    """OTPGate configuration. Every field has a default; see validate_appwrite for what must be set."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    debug: bool = False

    # ------------------------------------------------------------------
    # Appwrite
    # ------------------------------------------------------------------

    appwrite_endpoint: str = "https://cloud.appwrite.io/v1"
    appwrite_project_id: str = ""
    # Server API key. Grants the elevated AdminClient privileges.
    appwrite_api_key: str = ""
    appwrite_database_id: str = ""
    appwrite_users_collection_id: str = ""
    appwrite_timeout_seconds: float = 10.0

    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------

    avatar_placeholder_url: str = (
        "https://img.freepik.com/free-psd/3d-illustration-person-with-sunglasses_23-2149436188.jpg"
    )
    sign_in_path: str = "/sign-in"

    # ------------------------------------------------------------------
    # Rate limiting
    # ------------------------------------------------------------------

    # Applied to every route that makes the provider send an email.
    otp_rate_limit: str = "5/minute"
    # Passcode exchange. Guessing a 6-digit code must not be cheap.
    verify_rate_limit: str = "10/minute"

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_appwrite(self) -> "Settings":
        """Enforce the Appwrite connection policy.

        Dev mode (DEBUG=true): missing connection fields only log a warning so
            the app and its tests can boot against a fake platform.

        Production mode (DEBUG=false or not set): refuse to start if any
            connection field is missing. Every request would otherwise fail
            at the first provider call.

        Both modes: the endpoint must be an http(s) URL. A trailing slash is
            stripped so path joins never produce "//".
        """
        if not self.appwrite_endpoint.startswith(("http://", "https://")):
            raise ValueError("APPWRITE_ENDPOINT must be an http:// or https:// URL.")
        self.appwrite_endpoint = self.appwrite_endpoint.rstrip("/")

        missing = [name.upper() for name in _REQUIRED_APPWRITE_FIELDS if not getattr(self, name)]
        if missing:
            if self.debug:
                logger.warning("WARNING: Appwrite is not fully configured (missing %s).", ", ".join(missing))
            else:
                raise ValueError(
                    f"{', '.join(missing)} required in production mode. "
                    "Set them in your environment or .env file. "
                    "To run in development mode, set DEBUG=true."
                )
        if self.appwrite_timeout_seconds <= 0:
            raise ValueError("APPWRITE_TIMEOUT_SECONDS must be positive.")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide Settings. Clear with get_settings.cache_clear() after changing env."""
    return Settings()
