"""
Ticket inventory — every write to ``events.available_tickets`` lives here.

Each operation opens its own transaction and takes the event row lock
(``SELECT ... FOR UPDATE``) before reading the counters, so purchases, admin
capacity edits and cancellations for the same event are serialised by the
database instead of racing on read-check-write.  Leaving the ``begin()``
block through an exception rolls the whole transaction back.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ticketing.core.exceptions import (CapacityError, ConflictError,
                                       EventStatusError, NotFoundError,
                                       ValidationError)
from ticketing.models.event import PURCHASABLE_STATUSES, Event
from ticketing.models.ticket import Ticket

logger = logging.getLogger(__name__)


async def lock_event(db: AsyncSession, event_id: int) -> Event:
    """Load *event_id* holding a row-level write lock until the transaction ends."""
    result = await db.execute(select(Event).where(Event.id == event_id).with_for_update())
    event = result.scalar_one_or_none()
    if event is None:
        raise NotFoundError("Event not found")
    return event


async def purchase_tickets(
    session_factory: async_sessionmaker[AsyncSession],
    event_id: int,
    quantity: int,
    user_id: int,
) -> Event:
    """Convert *quantity* units of inventory into one ``purchased`` ticket row per unit."""
    if quantity < 1:
        raise ValidationError("Quantity must be at least 1")

    async with session_factory() as db:
        async with db.begin():
            event = await lock_event(db, event_id)

            if event.available_tickets < quantity:
                raise CapacityError(available=event.available_tickets, requested=quantity)
            if event.status not in PURCHASABLE_STATUSES:
                raise EventStatusError(event.status)

            event.available_tickets = event.available_tickets - quantity

            purchased_at = datetime.now(timezone.utc)
            db.add_all(
                [
                    Ticket(
                        event_id=event.id,
                        user_id=user_id,
                        title=f"{event.title} - Ticket {n}",
                        status="purchased",
                        quantity=1,
                        purchase_price=event.price,
                        purchase_date=purchased_at,
                    )
                    for n in range(1, quantity + 1)
                ]
            )

    logger.info(
        "User %s purchased %d ticket(s) for event %s (%d left)",
        user_id,
        quantity,
        event_id,
        event.available_tickets,
    )
    return event


async def update_event(
    session_factory: async_sessionmaker[AsyncSession],
    event_id: int,
    changes: dict[str, Any],
) -> Event:
    """Apply an admin edit under the row lock.

    A new ``total_tickets`` shifts ``available_tickets`` by the same delta
    (never below zero); an explicit ``available_tickets`` must fit in the
    resulting total.
    """
    changes = dict(changes)
    new_total = changes.pop("total_tickets", None)
    new_available = changes.pop("available_tickets", None)

    async with session_factory() as db:
        async with db.begin():
            event = await lock_event(db, event_id)

            for field, value in changes.items():
                setattr(event, field, value)

            if new_total is not None:
                adjustment = new_total - event.total_tickets
                event.total_tickets = new_total
                event.available_tickets = max(0, event.available_tickets + adjustment)

            if new_available is not None:
                if new_available > event.total_tickets:
                    raise ValidationError("Available tickets cannot exceed total tickets")
                event.available_tickets = new_available

    return event


async def cancel_ticket(
    session_factory: async_sessionmaker[AsyncSession],
    ticket_id: int,
) -> Ticket:
    """Cancel one ticket unit and release its seat back to the event."""
    async with session_factory() as db:
        async with db.begin():
            result = await db.execute(
                select(Ticket).where(Ticket.id == ticket_id).with_for_update()
            )
            ticket = result.scalar_one_or_none()
            if ticket is None:
                raise NotFoundError("Ticket not found")
            if ticket.status == "cancelled":
                raise ConflictError("Ticket is already cancelled")

            if ticket.event_id is not None:
                event = await lock_event(db, ticket.event_id)
                event.available_tickets = min(
                    event.total_tickets, event.available_tickets + ticket.quantity
                )
            ticket.status = "cancelled"

    logger.info("Ticket %s cancelled", ticket_id)
    return ticket
