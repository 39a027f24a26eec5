"""
Async SQLAlchemy engine & session factory (asyncpg driver).

Both are built per application from :class:`Settings`; there is no
module-level engine.
"""

from __future__ import annotations

from sqlalchemy.ext.asyncio import (AsyncEngine, AsyncSession,
                                    async_sessionmaker, create_async_engine)
from sqlalchemy.pool import StaticPool

from ticketing.core.config import Settings


def build_engine(settings: Settings) -> AsyncEngine:
    engine_args: dict = {
        "echo": False,
        "pool_pre_ping": True,
    }

    if settings.is_sqlite:
        engine_args["connect_args"] = {"check_same_thread": False}
        if ":memory:" in settings.DATABASE_URL:
            # One shared connection, otherwise every checkout sees an empty database
            engine_args["poolclass"] = StaticPool
    else:
        engine_args.update(
            {
                "pool_size": settings.DB_POOL_SIZE,
                "max_overflow": settings.DB_MAX_OVERFLOW,
                "pool_timeout": settings.DB_POOL_TIMEOUT,
                "pool_recycle": 300,
                "connect_args": {"timeout": settings.DB_CONNECT_TIMEOUT},
            }
        )

    return create_async_engine(settings.DATABASE_URL, **engine_args)


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
