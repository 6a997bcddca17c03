"""
api/limiter.py -- The one slowapi Limiter for the whole app.

api/main.py mounts it; api/routes/v1/auth.py and web/routes.py decorate the
routes that send an email or exchange a passcode. Counters live in this instance's
memory storage, so every limited route must import it from here.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from core.config import get_settings

limiter = Limiter(key_func=get_remote_address, storage_uri="memory://")


def otp_rate_limit() -> str:
    """OTP_RATE_LIMIT, read at request time (e.g. "5/minute")."""
    return get_settings().otp_rate_limit


def verify_rate_limit() -> str:
    """VERIFY_RATE_LIMIT, for the routes that exchange a passcode for a session."""
    return get_settings().verify_rate_limit
