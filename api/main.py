"""
api/main.py -- OTPGate FastAPI application.

Serves the AuthGateway as JSON under /api/v1. asgi.py adds the HTML pages
from web/ on top of this app; nothing here imports web/.

Run with:      uvicorn asgi:app --reload

Request path through the middleware, outermost first:
  TrustedHost  -> only localhost Host headers are served
  CORS         -> credentialed requests from the local front-end origins
  SlowAPI      -> per-IP limits declared on the OTP routes
  access_log   -> one log line per request, no cookies or bodies

The gateway is built once in the lifespan and parked on app.state. It opens
platform clients per call, so shutdown has nothing to close.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from api.limiter import limiter
from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.v1.auth import router as auth_router
from auth.gateway import AuthGateway
from core.config import get_settings

__version__ = "0.1.0"

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("otpgate.api")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    settings = get_settings()
    app.state.gateway = AuthGateway.from_settings(settings)
    logger.info(
        "OTPGate %s up (appwrite=%s, project=%s)",
        __version__,
        settings.appwrite_endpoint,
        settings.appwrite_project_id or "<unset>",
    )
    yield
    logger.info("OTPGate shutting down")


app = FastAPI(
    title="OTPGate API",
    description="Email one-time-passcode sign-up, sign-in and sessions backed by Appwrite.",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(TrustedHostMiddleware, allowed_hosts=["localhost", "127.0.0.1", "*.localhost"])
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost", "http://localhost:3000", "http://127.0.0.1"],
    # The session cookie has to travel with cross-origin fetches from the front-end.
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["Content-Type"],
    max_age=3600,
)
app.add_middleware(SlowAPIMiddleware)
app.state.limiter = limiter  # SlowAPIMiddleware reads it from here


@app.middleware("http")
async def access_log(request: Request, call_next):
    """Log method, path, status, latency and client. Cookies and bodies carry secrets and stay out."""
    started = time.perf_counter()
    response = await call_next(request)
    logger.info(
        "%s %s %d %.1fms %s",
        request.method,
        request.url.path,
        response.status_code,
        (time.perf_counter() - started) * 1000,
        request.client.host if request.client else "-",
    )
    return response


app.include_router(auth_router, prefix="/api/v1", tags=["Auth"])


# ---------------------------------------------------------------------------
# Error envelope
#
# Every error body is {"error": {"code", "message", "detail"?}} whatever
# raised it, so clients parse one shape.
# ---------------------------------------------------------------------------


def _error_response(
    status_code: int,
    code: str,
    message: str,
    detail: Optional[str] = None,
) -> JSONResponse:
    envelope = ErrorResponse(error=ErrorDetail(code=code, message=message, detail=detail))
    return JSONResponse(status_code=status_code, content=envelope.model_dump(exclude_none=True))


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    response = _error_response(429, "rate_limited", "Too many requests.", detail=str(exc))
    response.headers["Retry-After"] = str(int(getattr(exc, "retry_after", 60)))
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return _error_response(422, "validation_error", "Request validation failed.", detail=str(exc.errors()))


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Routes raise HTTPException(detail={"code", "message"}); that dict is the error as-is."""
    if isinstance(exc.detail, dict):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail}, headers=exc.headers)
    return _error_response(exc.status_code, f"http_{exc.status_code}", str(exc.detail))


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    # Traceback goes to the log only.
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return _error_response(500, "internal_error", "An unexpected error occurred.")


@app.get("/api/v1/health", tags=["Health"])
async def health() -> HealthResponse:
    """Liveness plus whether the Appwrite connection settings are complete.

    The platform itself is not called, so a slow provider cannot fail liveness.
    """
    settings = get_settings()
    connection = (
        settings.appwrite_project_id,
        settings.appwrite_api_key,
        settings.appwrite_database_id,
        settings.appwrite_users_collection_id,
    )
    return HealthResponse(
        version=__version__,
        components={"app": "ok", "appwrite": "configured" if all(connection) else "unconfigured"},
    )
