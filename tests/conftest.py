"""
Shared test fixtures for the ticketing API test suite.

Every test gets a freshly built app on its own in-memory aiosqlite database
(``StaticPool``), so no state leaks between tests.
"""

import os
import sys
from typing import AsyncGenerator

import pytest

# Ensure project root is importable
ROOT_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT_DIR not in sys.path:
    sys.path.insert(0, ROOT_DIR)

from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from ticketing.core.config import Settings
from ticketing.core.context import AppContext
from ticketing.main import create_app, init_database
from ticketing.services.accounts import create_user

TEST_JWT_SECRET = "test-secret-key-do-not-use-in-production"
DEFAULT_PASSWORD = "password123"


def make_settings(**overrides) -> Settings:
    """Test settings: in-memory DB, cheap bcrypt, no background jobs, no rate limits."""
    values = {
        "DATABASE_URL": "sqlite+aiosqlite:///:memory:",
        "JWT_SECRET": TEST_JWT_SECRET,
        "BCRYPT_ROUNDS": 4,
        "RATE_LIMIT_ENABLED": False,
        "SESSION_CLEANUP_ENABLED": False,
        "LOG_LEVEL": "WARNING",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


def auth_headers(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
async def app(settings: Settings) -> AsyncGenerator[FastAPI, None]:
    """App with tables created; ASGITransport does not run the lifespan."""
    application = create_app(settings)
    await init_database(application.state.context)
    yield application
    await application.state.context.dispose()


@pytest.fixture
def context(app: FastAPI) -> AppContext:
    return app.state.context


@pytest.fixture
async def async_client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """Return a httpx AsyncClient wired to the app."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
async def db_session(context: AppContext) -> AsyncGenerator[AsyncSession, None]:
    """Return a raw database session for direct queries in tests."""
    async with context.session_factory() as session:
        yield session


# ── Account helpers ─────────────────────────────────────────────────
@pytest.fixture
def register(async_client: AsyncClient):
    """``await register(email)`` -> (token, user dict) via the public endpoint."""

    async def _register(email: str, password: str = DEFAULT_PASSWORD) -> tuple[str, dict]:
        resp = await async_client.post(
            "/api/auth/register",
            json={
                "email": email,
                "password": password,
                "first_name": "Test",
                "last_name": "User",
            },
        )
        assert resp.status_code == 201, resp.text
        body = resp.json()
        return body["token"], body["data"]

    return _register


@pytest.fixture
def login(async_client: AsyncClient):
    async def _login(email: str, password: str = DEFAULT_PASSWORD) -> str:
        resp = await async_client.post(
            "/api/auth/login", json={"email": email, "password": password}
        )
        assert resp.status_code == 200, resp.text
        return resp.json()["token"]

    return _login


@pytest.fixture
async def admin_token(context: AppContext, login) -> str:
    async with context.session_factory() as db:
        await create_user(
            db,
            context.passwords,
            email="admin@example.com",
            password=DEFAULT_PASSWORD,
            first_name="Ada",
            last_name="Admin",
            role="admin",
        )
        await db.commit()
    return await login("admin@example.com")


@pytest.fixture
async def user_token(register) -> str:
    token, _user = await register("alice@example.com")
    return token


@pytest.fixture
def create_event(async_client: AsyncClient, admin_token: str):
    """``await create_event(total_tickets=5, **fields)`` -> event dict."""

    async def _create_event(**fields) -> dict:
        payload = {
            "title": "Concert",
            "venue": "Main Hall",
            "event_date": "2030-06-01T19:00:00Z",
            "total_tickets": 5,
            "price": "50.00",
        }
        payload.update(fields)
        resp = await async_client.post(
            "/api/events", json=payload, headers=auth_headers(admin_token)
        )
        assert resp.status_code == 201, resp.text
        return resp.json()["data"]

    return _create_event
