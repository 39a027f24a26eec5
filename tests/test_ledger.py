"""Tests for the session ledger."""

import asyncio
import contextlib
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import select, update

from ticketing.core.context import AppContext
from ticketing.models.session import UserSession
from ticketing.models.user import User
from ticketing.services import ledger as ledger_module
from ticketing.services.ledger import (SessionLedger, cleanup_sessions,
                                       run_cleanup_forever, touch_session)


def _now() -> datetime:
    return datetime.now(timezone.utc)


@pytest.fixture
async def user_id(db_session) -> int:
    user = User(email="ledger@example.com", password_hash="x", role="user")
    db_session.add(user)
    await db_session.commit()
    return user.id


def test_hash_is_deterministic_hex():
    first = SessionLedger.hash_token("abc.def.ghi")
    assert first == SessionLedger.hash_token("abc.def.ghi")
    assert len(first) == 64
    assert first != SessionLedger.hash_token("abc.def.ghj")


@pytest.mark.asyncio
async def test_record_then_valid(db_session, user_id):
    ledger = SessionLedger(db_session)
    row = await ledger.record_session(
        user_id, "token-1", _now() + timedelta(days=1), device_info="pytest", ip_address="10.0.0.1"
    )
    await db_session.commit()

    assert row.token_hash == SessionLedger.hash_token("token-1")
    assert row.is_revoked is False
    assert await ledger.is_valid("token-1") is True
    assert await ledger.is_valid("unknown-token") is False


@pytest.mark.asyncio
async def test_expired_row_is_invalid(db_session, user_id):
    ledger = SessionLedger(db_session)
    await ledger.record_session(user_id, "old-token", _now() - timedelta(seconds=1))
    await db_session.commit()
    assert await ledger.is_valid("old-token") is False


@pytest.mark.asyncio
async def test_revoke_is_idempotent(db_session, user_id):
    ledger = SessionLedger(db_session)
    await ledger.record_session(user_id, "token-1", _now() + timedelta(days=1))
    await db_session.commit()

    assert await ledger.revoke("token-1") is True
    assert await ledger.revoke("token-1") is False
    await db_session.commit()
    assert await ledger.is_valid("token-1") is False


@pytest.mark.asyncio
async def test_revoke_unknown_token_returns_false(db_session):
    assert await SessionLedger(db_session).revoke("never-issued") is False


@pytest.mark.asyncio
async def test_revoke_all_counts_only_live_rows(db_session, user_id):
    ledger = SessionLedger(db_session)
    for n in range(3):
        await ledger.record_session(user_id, f"token-{n}", _now() + timedelta(days=1))
    await ledger.revoke("token-0")
    await db_session.commit()

    assert await ledger.revoke_all(user_id) == 2
    assert await ledger.revoke_all(user_id) == 0
    await db_session.commit()
    assert await ledger.list_active(user_id) == []


@pytest.mark.asyncio
async def test_list_active_excludes_revoked_and_expired(db_session, user_id):
    ledger = SessionLedger(db_session)
    await ledger.record_session(user_id, "live-a", _now() + timedelta(days=1))
    await ledger.record_session(user_id, "live-b", _now() + timedelta(days=1))
    await ledger.record_session(user_id, "expired", _now() - timedelta(minutes=1))
    await ledger.record_session(user_id, "revoked", _now() + timedelta(days=1))
    await ledger.revoke("revoked")
    await db_session.commit()

    active = await ledger.list_active(user_id)
    hashes = {row.token_hash for row in active}
    assert hashes == {SessionLedger.hash_token("live-a"), SessionLedger.hash_token("live-b")}


@pytest.mark.asyncio
async def test_cleanup_deletes_expired_and_stale_revoked(db_session, user_id):
    ledger = SessionLedger(db_session, retention=timedelta(days=30))
    await ledger.record_session(user_id, "live", _now() + timedelta(days=1))
    await ledger.record_session(user_id, "expired", _now() - timedelta(hours=1))
    await ledger.record_session(user_id, "revoked-recent", _now() + timedelta(days=1))
    await ledger.record_session(user_id, "revoked-stale", _now() + timedelta(days=1))
    await ledger.revoke("revoked-recent")
    await ledger.revoke("revoked-stale")
    await db_session.execute(
        update(UserSession)
        .where(UserSession.token_hash == SessionLedger.hash_token("revoked-stale"))
        .values(revoked_at=_now() - timedelta(days=31))
    )
    await db_session.commit()

    assert await ledger.cleanup() == 2
    await db_session.commit()

    result = await db_session.execute(select(UserSession.token_hash))
    remaining = set(result.scalars().all())
    assert remaining == {
        SessionLedger.hash_token("live"),
        SessionLedger.hash_token("revoked-recent"),
    }


@pytest.mark.asyncio
async def test_cleanup_sessions_helper(context: AppContext, db_session, user_id):
    await SessionLedger(db_session).record_session(
        user_id, "expired", _now() - timedelta(hours=1)
    )
    await db_session.commit()

    assert await cleanup_sessions(context.session_factory, context.session_retention) == 1
    assert await cleanup_sessions(context.session_factory, context.session_retention) == 0


@pytest.mark.asyncio
async def test_touch_session_updates_last_used(context: AppContext, db_session, user_id):
    stale = _now() - timedelta(days=2)
    await SessionLedger(db_session).record_session(user_id, "token-1", _now() + timedelta(days=1))
    await db_session.execute(update(UserSession).values(last_used_at=stale))
    await db_session.commit()

    await touch_session(context.session_factory, "token-1")

    result = await db_session.execute(select(UserSession.last_used_at))
    last_used = result.scalar_one()
    assert last_used.replace(tzinfo=None) > stale.replace(tzinfo=None)


@pytest.mark.asyncio
async def test_cleanup_loop_survives_connection_errors(context: AppContext, monkeypatch):
    calls = 0
    recovered = asyncio.Event()

    async def flaky_cleanup(session_factory, retention):
        nonlocal calls
        calls += 1
        if calls == 1:
            raise ConnectionRefusedError("database unreachable")
        if calls >= 3:
            recovered.set()
        return 0

    monkeypatch.setattr(ledger_module, "cleanup_sessions", flaky_cleanup)
    task = asyncio.create_task(
        run_cleanup_forever(context.session_factory, context.session_retention, 0.01)
    )
    try:
        await asyncio.wait_for(recovered.wait(), timeout=2)
        assert not task.done()
    finally:
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
    assert calls >= 3
