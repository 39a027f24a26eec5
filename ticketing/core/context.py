"""
Application context — the per-app bundle of settings and long-lived resources.

Built once by :func:`ticketing.main.create_app` and stored on
``app.state.context``; request dependencies read it from there instead of
importing module-level singletons, so tests can run several apps side by side.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta

from passlib.context import CryptContext
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from ticketing.core.config import Settings
from ticketing.core.security import TokenIssuer, build_password_context
from ticketing.db.session import build_engine, build_session_factory


@dataclass
class AppContext:
    settings: Settings
    engine: AsyncEngine
    session_factory: async_sessionmaker[AsyncSession]
    tokens: TokenIssuer
    passwords: CryptContext

    @classmethod
    def from_settings(cls, settings: Settings) -> AppContext:
        # TokenIssuer first: a missing secret must fail before any engine exists
        tokens = TokenIssuer.from_settings(settings)
        engine = build_engine(settings)
        return cls(
            settings=settings,
            engine=engine,
            session_factory=build_session_factory(engine),
            tokens=tokens,
            passwords=build_password_context(settings.BCRYPT_ROUNDS),
        )

    @property
    def session_retention(self) -> timedelta:
        return timedelta(days=self.settings.SESSION_RETENTION_DAYS)

    async def dispose(self) -> None:
        await self.engine.dispose()
