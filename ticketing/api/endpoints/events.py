"""
Event catalogue — public browsing, admin CRUD and ticket purchase.
"""

from __future__ import annotations

import logging
from datetime import datetime

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ticketing.api.deps import (get_context, get_current_identity, get_db,
                                require_admin)
from ticketing.core.context import AppContext
from ticketing.core.exceptions import NotFoundError
from ticketing.models.event import Event
from ticketing.schemas.common import MessageResponse, PageMeta
from ticketing.schemas.event import (EventCreate, EventListResponse,
                                     EventRead, EventResponse, EventUpdate,
                                     PurchaseRequest)
from ticketing.schemas.token import Identity
from ticketing.services.inventory import purchase_tickets, update_event

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/events", tags=["events"])


# ── Public ──────────────────────────────────────────────────────────
@router.get("", response_model=EventListResponse)
async def list_events(
    status: str | None = Query(default=None),
    venue: str | None = Query(default=None),
    from_date: datetime | None = Query(default=None),
    to_date: datetime | None = Query(default=None),
    limit: int = Query(default=50, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    db: AsyncSession = Depends(get_db),
) -> EventListResponse:
    query = select(Event)
    if status is not None:
        query = query.where(Event.status == status)
    if venue:
        query = query.where(Event.venue.ilike(f"%{venue}%"))
    if from_date is not None:
        query = query.where(Event.event_date >= from_date)
    if to_date is not None:
        query = query.where(Event.event_date <= to_date)

    total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar_one()
    result = await db.execute(
        query.order_by(Event.event_date, Event.id).limit(limit).offset(offset)
    )
    return EventListResponse(
        message="Events retrieved successfully",
        data=[EventRead.model_validate(e) for e in result.scalars().all()],
        meta=PageMeta(total=total, limit=limit, offset=offset),
    )


@router.get("/{event_id}", response_model=EventResponse)
async def get_event(event_id: int, db: AsyncSession = Depends(get_db)) -> EventResponse:
    event = await db.get(Event, event_id)
    if event is None:
        raise NotFoundError("Event not found")
    return EventResponse(message="Event retrieved successfully", data=EventRead.model_validate(event))


# ── Admin ───────────────────────────────────────────────────────────
@router.post("", response_model=EventResponse, status_code=201)
async def create_event(
    body: EventCreate,
    db: AsyncSession = Depends(get_db),
    admin: Identity = Depends(require_admin),
) -> EventResponse:
    event = Event(
        **body.model_dump(),
        available_tickets=body.total_tickets,
        created_by=admin.user_id,
    )
    db.add(event)
    await db.commit()
    logger.info("Admin %s created event %s (%d tickets)", admin.user_id, event.id, event.total_tickets)
    return EventResponse(message="Event created successfully", data=EventRead.model_validate(event))


@router.put("/{event_id}", response_model=EventResponse)
async def update_event_endpoint(
    event_id: int,
    body: EventUpdate,
    context: AppContext = Depends(get_context),
    _admin: Identity = Depends(require_admin),
) -> EventResponse:
    """Edit an event; capacity changes go through the locked inventory path."""
    event = await update_event(
        context.session_factory, event_id, body.model_dump(exclude_none=True)
    )
    return EventResponse(message="Event updated successfully", data=EventRead.model_validate(event))


@router.delete("/{event_id}", response_model=MessageResponse)
async def delete_event(
    event_id: int,
    db: AsyncSession = Depends(get_db),
    admin: Identity = Depends(require_admin),
) -> MessageResponse:
    event = await db.get(Event, event_id)
    if event is None:
        raise NotFoundError("Event not found")
    await db.delete(event)
    await db.commit()
    logger.info("Admin %s deleted event %s", admin.user_id, event_id)
    return MessageResponse(message="Event deleted successfully")


# ── Purchase ────────────────────────────────────────────────────────
@router.post("/{event_id}/purchase", response_model=EventResponse)
async def purchase(
    event_id: int,
    body: PurchaseRequest,
    context: AppContext = Depends(get_context),
    identity: Identity = Depends(get_current_identity),
) -> EventResponse:
    event = await purchase_tickets(
        context.session_factory, event_id, body.quantity, identity.user_id
    )
    return EventResponse(
        message=f"Successfully purchased {body.quantity} ticket(s)",
        data=EventRead.model_validate(event),
    )
