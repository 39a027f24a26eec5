"""Tests for ticket views and admin cancellation."""

import pytest
from httpx import AsyncClient

from conftest import auth_headers


@pytest.fixture
def buy(async_client: AsyncClient):
    async def _buy(token: str, event_id: int, quantity: int = 1) -> None:
        resp = await async_client.post(
            f"/api/events/{event_id}/purchase",
            json={"quantity": quantity},
            headers=auth_headers(token),
        )
        assert resp.status_code == 200, resp.text

    return _buy


@pytest.mark.asyncio
async def test_users_see_only_their_tickets(
    async_client: AsyncClient, register, admin_token, create_event, buy
):
    alice, _ = await register("alice@example.com")
    bob, _ = await register("bob@example.com")
    event = await create_event(total_tickets=10)
    await buy(alice, event["id"], 2)
    await buy(bob, event["id"], 1)

    mine = await async_client.get("/api/tickets", headers=auth_headers(alice))
    assert mine.json()["meta"]["total"] == 2

    everyone = await async_client.get("/api/tickets", headers=auth_headers(admin_token))
    assert everyone.json()["meta"]["total"] == 3


@pytest.mark.asyncio
async def test_ticket_filters(async_client: AsyncClient, user_token, create_event, buy):
    first = await create_event(title="First")
    second = await create_event(title="Second")
    await buy(user_token, first["id"], 2)
    await buy(user_token, second["id"], 1)

    resp = await async_client.get(
        f"/api/tickets?event_id={second['id']}", headers=auth_headers(user_token)
    )
    assert [t["title"] for t in resp.json()["data"]] == ["Second - Ticket 1"]

    cancelled = await async_client.get("/api/tickets?status=cancelled", headers=auth_headers(user_token))
    assert cancelled.json()["data"] == []


@pytest.mark.asyncio
async def test_ticket_access_is_owner_or_admin(
    async_client: AsyncClient, register, admin_token, create_event, buy
):
    alice, _ = await register("alice@example.com")
    bob, _ = await register("bob@example.com")
    event = await create_event()
    await buy(alice, event["id"])
    ticket_id = (await async_client.get("/api/tickets", headers=auth_headers(alice))).json()["data"][0]["id"]

    own = await async_client.get(f"/api/tickets/{ticket_id}", headers=auth_headers(alice))
    assert own.status_code == 200

    other = await async_client.get(f"/api/tickets/{ticket_id}", headers=auth_headers(bob))
    assert other.status_code == 403

    admin = await async_client.get(f"/api/tickets/{ticket_id}", headers=auth_headers(admin_token))
    assert admin.status_code == 200

    missing = await async_client.get("/api/tickets/9999", headers=auth_headers(admin_token))
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_cancel_releases_seat(
    async_client: AsyncClient, user_token, admin_token, create_event, buy
):
    event = await create_event(total_tickets=3)
    await buy(user_token, event["id"], 3)
    tickets = (await async_client.get("/api/tickets", headers=auth_headers(user_token))).json()["data"]

    resp = await async_client.post(
        f"/api/tickets/{tickets[0]['id']}/cancel", headers=auth_headers(admin_token)
    )
    assert resp.status_code == 200
    assert resp.json()["data"]["status"] == "cancelled"

    current = await async_client.get(f"/api/events/{event['id']}")
    assert current.json()["data"]["available_tickets"] == 1

    again = await async_client.post(
        f"/api/tickets/{tickets[0]['id']}/cancel", headers=auth_headers(admin_token)
    )
    assert again.status_code == 409
    assert again.json()["message"] == "Ticket is already cancelled"

    current = await async_client.get(f"/api/events/{event['id']}")
    assert current.json()["data"]["available_tickets"] == 1


@pytest.mark.asyncio
async def test_cancel_requires_admin(async_client: AsyncClient, user_token, create_event, buy):
    event = await create_event()
    await buy(user_token, event["id"])
    ticket_id = (await async_client.get("/api/tickets", headers=auth_headers(user_token))).json()["data"][0]["id"]

    resp = await async_client.post(f"/api/tickets/{ticket_id}/cancel", headers=auth_headers(user_token))
    assert resp.status_code == 403
