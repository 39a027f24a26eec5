"""
Rate limiting for the credential endpoints (slowapi, keyed by client IP).

slowapi binds limits at decoration time, so one ``Limiter`` serves every app
in the process.  Per-app settings are therefore never written onto it:
``RATE_LIMIT_ENABLED`` is read from the serving app through ``exempt_when``,
and ``AUTH_RATE_LIMIT`` is bound per request by ``bind_rate_limit_settings``
(a router dependency) before the limit provider runs.  Hit counters live in
the limiter's shared in-memory storage.
"""

from __future__ import annotations

from contextvars import ContextVar

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from ticketing.core.config import Settings

limiter = Limiter(key_func=get_remote_address)

DEFAULT_AUTH_RATE_LIMIT: str = Settings.model_fields["AUTH_RATE_LIMIT"].default

_request_auth_limit: ContextVar[str | None] = ContextVar("request_auth_limit", default=None)


def _app_settings(request: Request) -> Settings:
    return request.app.state.context.settings


async def bind_rate_limit_settings(request: Request) -> None:
    """Expose the serving app's auth limit to ``auth_rate_limit``."""
    _request_auth_limit.set(_app_settings(request).AUTH_RATE_LIMIT)


def auth_rate_limit() -> str:
    """Limit string for login/register, resolved on every request."""
    return _request_auth_limit.get() or DEFAULT_AUTH_RATE_LIMIT


def rate_limit_exempt(request: Request) -> bool:
    return not _app_settings(request).RATE_LIMIT_ENABLED


async def _rate_limit_exceeded_handler(_request: Request, exc: RateLimitExceeded) -> JSONResponse:
    return JSONResponse(
        status_code=429,
        content={"error": "Too many requests", "message": f"Rate limit exceeded: {exc.detail}"},
    )


def configure_rate_limiting(app: FastAPI) -> None:
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)  # type: ignore[arg-type]
