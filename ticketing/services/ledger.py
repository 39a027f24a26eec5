"""
Session ledger — the source of truth for whether a bearer token is still honoured.

A token's signature proves it was minted by us; the ledger decides whether
it may still be used.  Rows are keyed by the SHA-256 of the raw token, so
revocation works on individual tokens without ever storing one.

Ledger methods flush but never commit; the caller owns the transaction.
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy import and_, delete, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ticketing.models.session import UserSession

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SessionLedger:
    def __init__(self, db: AsyncSession, retention: timedelta = timedelta(days=30)) -> None:
        self.db = db
        self.retention = retention

    @staticmethod
    def hash_token(raw_token: str) -> str:
        return hashlib.sha256(raw_token.encode("utf-8")).hexdigest()

    async def record_session(
        self,
        user_id: int,
        raw_token: str,
        expires_at: datetime,
        device_info: str | None = None,
        ip_address: str | None = None,
    ) -> UserSession:
        now = _utcnow()
        row = UserSession(
            user_id=user_id,
            token_hash=self.hash_token(raw_token),
            expires_at=expires_at,
            device_info=device_info,
            ip_address=ip_address,
            created_at=now,
            last_used_at=now,
        )
        self.db.add(row)
        await self.db.flush()
        return row

    async def is_valid(self, raw_token: str) -> bool:
        """True only if a row exists, is not revoked and has not expired."""
        result = await self.db.execute(
            select(UserSession.id)
            .where(
                UserSession.token_hash == self.hash_token(raw_token),
                UserSession.is_revoked.is_(False),
                UserSession.expires_at > _utcnow(),
            )
            .limit(1)
        )
        return result.first() is not None

    async def touch(self, raw_token: str) -> None:
        await self.db.execute(
            update(UserSession)
            .where(
                UserSession.token_hash == self.hash_token(raw_token),
                UserSession.is_revoked.is_(False),
            )
            .values(last_used_at=_utcnow())
            .execution_options(synchronize_session=False)
        )

    async def revoke(self, raw_token: str) -> bool:
        """Revoke one token. Returns False if it was unknown or already revoked."""
        result = await self.db.execute(
            update(UserSession)
            .where(
                UserSession.token_hash == self.hash_token(raw_token),
                UserSession.is_revoked.is_(False),
            )
            .values(is_revoked=True, revoked_at=_utcnow())
            .execution_options(synchronize_session=False)
        )
        return result.rowcount > 0

    async def revoke_all(self, user_id: int) -> int:
        result = await self.db.execute(
            update(UserSession)
            .where(UserSession.user_id == user_id, UserSession.is_revoked.is_(False))
            .values(is_revoked=True, revoked_at=_utcnow())
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0

    async def cleanup(self, now: datetime | None = None) -> int:
        """Delete expired rows and revoked rows older than the retention window."""
        now = now or _utcnow()
        result = await self.db.execute(
            delete(UserSession)
            .where(
                or_(
                    UserSession.expires_at < now,
                    and_(
                        UserSession.is_revoked.is_(True),
                        UserSession.revoked_at < now - self.retention,
                    ),
                )
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0

    async def list_active(self, user_id: int) -> list[UserSession]:
        result = await self.db.execute(
            select(UserSession)
            .where(
                UserSession.user_id == user_id,
                UserSession.is_revoked.is_(False),
                UserSession.expires_at > _utcnow(),
            )
            .order_by(UserSession.last_used_at.desc(), UserSession.id.desc())
        )
        return list(result.scalars().all())


# ── Out-of-request helpers ──────────────────────────────────────────
async def touch_session(session_factory: async_sessionmaker[AsyncSession], raw_token: str) -> None:
    """Best-effort ``last_used_at`` update, run after the response is sent."""
    try:
        async with session_factory() as db:
            await SessionLedger(db).touch(raw_token)
            await db.commit()
    except SQLAlchemyError as exc:
        logger.warning("Could not update session last_used_at: %s", exc)


async def cleanup_sessions(
    session_factory: async_sessionmaker[AsyncSession], retention: timedelta
) -> int:
    async with session_factory() as db:
        deleted = await SessionLedger(db, retention=retention).cleanup()
        await db.commit()
    if deleted > 0:
        logger.info("Cleaned up %d expired sessions", deleted)
    return deleted


async def run_cleanup_forever(
    session_factory: async_sessionmaker[AsyncSession],
    retention: timedelta,
    interval_seconds: float,
) -> None:
    """Periodic ledger cleanup; runs once immediately, then every *interval_seconds*."""
    while True:
        try:
            await cleanup_sessions(session_factory, retention)
        except Exception:
            # Connection errors surface as OSError subclasses, not SQLAlchemyError.
            logger.exception("Error cleaning up expired sessions")
        await asyncio.sleep(interval_seconds)
