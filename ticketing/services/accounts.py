"""
Credential store operations — account creation, login checks, profile edits.

bcrypt is CPU-bound, so hashing and verification run in the threadpool
instead of on the event loop.
"""

from __future__ import annotations

import logging
from typing import Any

from passlib.context import CryptContext
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.concurrency import run_in_threadpool

from ticketing.core.context import AppContext
from ticketing.core.exceptions import AuthenticationError, ConflictError
from ticketing.models.user import User
from ticketing.services.ledger import SessionLedger

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid email or password"


async def hash_password(passwords: CryptContext, plain: str) -> str:
    return await run_in_threadpool(passwords.hash, plain)


async def get_user_by_email(db: AsyncSession, email: str) -> User | None:
    result = await db.execute(select(User).where(User.email == email))
    return result.scalar_one_or_none()


async def create_user(
    db: AsyncSession,
    passwords: CryptContext,
    *,
    email: str,
    password: str,
    first_name: str | None = None,
    last_name: str | None = None,
    role: str = "user",
    is_active: bool = True,
) -> User:
    """Insert a new account (flushed, not committed). *email* must already be normalised."""
    if await get_user_by_email(db, email) is not None:
        raise ConflictError("User with this email already exists")

    user = User(
        email=email,
        password_hash=await hash_password(passwords, password),
        first_name=first_name,
        last_name=last_name,
        role=role,
        is_active=is_active,
    )
    db.add(user)
    await db.flush()
    return user


async def authenticate(
    db: AsyncSession, passwords: CryptContext, email: str, password: str
) -> User:
    """Return the user for valid credentials.

    Unknown email and wrong password produce the same error and take the
    same time; the inactive check only happens after the password matched.
    """
    user = await get_user_by_email(db, email)
    if user is None:
        await run_in_threadpool(passwords.dummy_verify)
        raise AuthenticationError(INVALID_CREDENTIALS)

    if not await run_in_threadpool(passwords.verify, password, user.password_hash):
        raise AuthenticationError(INVALID_CREDENTIALS)

    if not user.is_active:
        raise AuthenticationError("User account is inactive")
    return user


async def update_user(
    db: AsyncSession,
    passwords: CryptContext,
    user: User,
    changes: dict[str, Any],
) -> User:
    """Apply *changes* to *user*.

    Deactivation or a role change revokes every session of the account, so no
    token keeps carrying the old role claim.
    """
    changes = dict(changes)

    email = changes.get("email")
    if email is not None and email != user.email:
        existing = await get_user_by_email(db, email)
        if existing is not None and existing.id != user.id:
            raise ConflictError("Email already taken by another user")

    password = changes.pop("password", None)
    if password is not None:
        user.password_hash = await hash_password(passwords, password)

    deactivating = user.is_active and changes.get("is_active") is False
    role_changing = changes.get("role") is not None and changes["role"] != user.role

    for field, value in changes.items():
        setattr(user, field, value)
    await db.flush()

    if deactivating or role_changing:
        revoked = await SessionLedger(db).revoke_all(user.id)
        reason = "deactivated" if deactivating else f"role changed to {user.role}"
        logger.info("User %s %s, %d session(s) revoked", user.id, reason, revoked)
    return user


async def seed_first_admin(context: AppContext) -> None:
    """Create the configured bootstrap admin if it does not exist yet."""
    settings = context.settings
    if not settings.FIRST_ADMIN_EMAIL or not settings.FIRST_ADMIN_PASSWORD:
        return

    email = settings.FIRST_ADMIN_EMAIL.strip().lower()
    async with context.session_factory() as db:
        if await get_user_by_email(db, email) is not None:
            return
        await create_user(
            db,
            context.passwords,
            email=email,
            password=settings.FIRST_ADMIN_PASSWORD,
            first_name="System",
            last_name="Administrator",
            role="admin",
        )
        await db.commit()
    logger.info("Default admin created: %s (password: <redacted>)", email)
