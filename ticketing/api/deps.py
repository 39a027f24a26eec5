"""
FastAPI dependencies — application context, database session and the auth gates.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator, Awaitable, Callable
from typing import Any

from fastapi import BackgroundTasks, Depends, Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ticketing.core.context import AppContext
from ticketing.core.exceptions import (AuthenticationError,
                                       AuthorizationError, InternalError,
                                       NotFoundError)
from ticketing.models.user import User
from ticketing.schemas.token import Identity
from ticketing.services.ledger import SessionLedger, touch_session


# ── Context & database session ──────────────────────────────────────
def get_context(request: Request) -> AppContext:
    return request.app.state.context


async def get_db(
    context: AppContext = Depends(get_context),
) -> AsyncGenerator[AsyncSession, None]:
    async with context.session_factory() as session:
        yield session


# ── Authentication gate ─────────────────────────────────────────────
def extract_bearer_token(header: str | None, allow_bare: bool = False) -> str:
    """Pull the raw token out of an ``Authorization`` header value.

    ``Bearer <token>`` with a case-insensitive scheme is always accepted.
    A lone value without a scheme is taken as the token only when
    *allow_bare* is set.
    """
    if header is None or not header.strip():
        raise AuthenticationError("No token provided")

    parts = header.split()
    if len(parts) == 2 and parts[0].lower() == "bearer":
        return parts[1]
    if allow_bare and len(parts) == 1 and parts[0].lower() != "bearer":
        return parts[0]
    raise AuthenticationError("Invalid token format")


async def get_current_identity(
    request: Request,
    background_tasks: BackgroundTasks,
    context: AppContext = Depends(get_context),
) -> Identity:
    """Verify the bearer token, then confirm the ledger still honours it."""
    raw_token = extract_bearer_token(
        request.headers.get("Authorization"),
        allow_bare=context.settings.AUTH_ALLOW_BARE_TOKEN,
    )
    identity = context.tokens.verify(raw_token)

    try:
        async with context.session_factory() as db:
            valid = await SessionLedger(db).is_valid(raw_token)
    except SQLAlchemyError as exc:
        raise InternalError("Token verification failed") from exc

    if not valid:
        raise AuthenticationError("Token has been revoked")

    request.state.identity = identity
    request.state.raw_token = raw_token
    background_tasks.add_task(touch_session, context.session_factory, raw_token)
    return identity


async def get_current_token(
    request: Request,
    _identity: Identity = Depends(get_current_identity),
) -> str:
    """The raw token the current request was admitted with."""
    return request.state.raw_token


async def get_current_user(
    identity: Identity = Depends(get_current_identity),
    db: AsyncSession = Depends(get_db),
) -> User:
    user = await db.get(User, identity.user_id)
    if user is None:
        raise NotFoundError("User not found")
    return user


# ── Authorization gate ──────────────────────────────────────────────
def ensure_role(identity: Identity | None, roles: tuple[str, ...]) -> Identity:
    if identity is None:
        raise AuthenticationError("Authentication required")
    if identity.role not in roles:
        raise AuthorizationError("Insufficient permissions")
    return identity


def require_roles(*roles: str) -> Callable[..., Awaitable[Identity]]:
    """Dependency factory admitting only identities whose role is in *roles*."""

    async def _require(identity: Identity = Depends(get_current_identity)) -> Identity:
        return ensure_role(identity, roles)

    return _require


require_admin = require_roles("admin")


def ensure_self_or_admin(identity: Identity, user_id: int, action: str = "view") -> None:
    if not identity.is_admin and identity.user_id != user_id:
        raise AuthorizationError(f"You can only {action} your own profile")


def ensure_no_privileged_changes(identity: Identity, changes: dict[str, Any]) -> None:
    """Non-admins may not touch ``role`` or ``is_active``, not even on themselves."""
    if identity.is_admin:
        return
    if "role" in changes:
        raise AuthorizationError("Only admins can change user roles")
    if "is_active" in changes:
        raise AuthorizationError("Only admins can change user active status")


# ── Client metadata ─────────────────────────────────────────────────
def get_client_info(request: Request) -> tuple[str | None, str | None]:
    """``(device_info, ip_address)`` for a new ledger row."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        ip = forwarded.split(",")[0].strip()
    else:
        ip = request.headers.get("X-Real-IP") or (request.client.host if request.client else None)
    return request.headers.get("User-Agent"), (ip[:45] if ip else None)
