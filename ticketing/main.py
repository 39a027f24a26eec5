"""
Ticketing API — application entry point.

This is the **only** file that assembles the app.  Business logic lives in
the ``api/``, ``services/``, ``models/`` and ``core/`` packages.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ticketing.api.endpoints import health
from ticketing.api.router import api_router
from ticketing.core.config import Settings
from ticketing.core.context import AppContext
from ticketing.core.exceptions import register_exception_handlers
from ticketing.core.rate_limit import configure_rate_limiting
from ticketing.db.base import Base
# Ensure all models are imported so metadata.create_all can see them
from ticketing.models.event import Event  # noqa: F401
from ticketing.models.session import UserSession  # noqa: F401
from ticketing.models.ticket import Ticket  # noqa: F401
from ticketing.models.user import User  # noqa: F401
from ticketing.services.accounts import seed_first_admin
from ticketing.services.ledger import run_cleanup_forever

logger = logging.getLogger(__name__)


async def init_database(context: AppContext) -> None:
    async with context.engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables initialised")


# ── Lifespan ────────────────────────────────────────────────────────
@asynccontextmanager
async def lifespan(app: FastAPI):
    context: AppContext = app.state.context
    settings = context.settings

    await init_database(context)
    await seed_first_admin(context)

    cleanup_task: asyncio.Task | None = None
    if settings.SESSION_CLEANUP_ENABLED:
        cleanup_task = asyncio.create_task(
            run_cleanup_forever(
                context.session_factory,
                context.session_retention,
                settings.SESSION_CLEANUP_INTERVAL_SECONDS,
            )
        )
        logger.info(
            "Session cleanup scheduled every %ds", settings.SESSION_CLEANUP_INTERVAL_SECONDS
        )

    logger.info("%s v%s started", settings.PROJECT_NAME, settings.VERSION)
    yield

    if cleanup_task is not None:
        cleanup_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await cleanup_task
    await context.dispose()
    logger.info("Shutdown complete")


# ── App factory ─────────────────────────────────────────────────────
def create_app(settings: Settings | None = None) -> FastAPI:
    """Build a fully wired app; raises ``ConfigurationError`` without a JWT secret."""
    settings = settings or Settings()
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    )

    context = AppContext.from_settings(settings)

    application = FastAPI(
        title=settings.PROJECT_NAME,
        description="Event ticketing with revocable sessions",
        version=settings.VERSION,
        openapi_url=f"{settings.API_PREFIX}/openapi.json",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    application.state.context = context

    # CORS
    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Global exception handlers (prevent stack-trace leakage)
    register_exception_handlers(application)
    configure_rate_limiting(application)

    application.include_router(health.router)
    application.include_router(api_router, prefix=settings.API_PREFIX)

    return application


def get_app() -> FastAPI:
    """Factory target for ``uvicorn --factory ticketing.main:get_app``."""
    return create_app()
