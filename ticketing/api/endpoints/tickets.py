"""
Ticket views — own tickets for users, every ticket for admins.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ticketing.api.deps import (get_context, get_current_identity, get_db,
                                require_admin)
from ticketing.core.context import AppContext
from ticketing.core.exceptions import AuthorizationError, NotFoundError
from ticketing.models.ticket import Ticket
from ticketing.schemas.common import PageMeta
from ticketing.schemas.ticket import (TicketListResponse, TicketRead,
                                      TicketResponse)
from ticketing.schemas.token import Identity
from ticketing.services.inventory import cancel_ticket

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tickets", tags=["tickets"])


@router.get("", response_model=TicketListResponse)
async def list_tickets(
    status: str | None = Query(default=None),
    event_id: int | None = Query(default=None),
    limit: int = Query(default=50, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    db: AsyncSession = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
) -> TicketListResponse:
    query = select(Ticket)
    if not identity.is_admin:
        query = query.where(Ticket.user_id == identity.user_id)
    if status is not None:
        query = query.where(Ticket.status == status)
    if event_id is not None:
        query = query.where(Ticket.event_id == event_id)

    total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar_one()
    result = await db.execute(query.order_by(Ticket.id.desc()).limit(limit).offset(offset))
    return TicketListResponse(
        message="Tickets retrieved successfully",
        data=[TicketRead.model_validate(t) for t in result.scalars().all()],
        meta=PageMeta(total=total, limit=limit, offset=offset),
    )


@router.get("/{ticket_id}", response_model=TicketResponse)
async def get_ticket(
    ticket_id: int,
    db: AsyncSession = Depends(get_db),
    identity: Identity = Depends(get_current_identity),
) -> TicketResponse:
    ticket = await db.get(Ticket, ticket_id)
    if ticket is None:
        raise NotFoundError("Ticket not found")
    if not identity.is_admin and ticket.user_id != identity.user_id:
        raise AuthorizationError("You can only view your own tickets")
    return TicketResponse(message="Ticket retrieved successfully", data=TicketRead.model_validate(ticket))


@router.post("/{ticket_id}/cancel", response_model=TicketResponse)
async def cancel(
    ticket_id: int,
    context: AppContext = Depends(get_context),
    admin: Identity = Depends(require_admin),
) -> TicketResponse:
    """Cancel one ticket unit and return its seat to the event."""
    ticket = await cancel_ticket(context.session_factory, ticket_id)
    logger.info("Admin %s cancelled ticket %s", admin.user_id, ticket_id)
    return TicketResponse(message="Ticket cancelled successfully", data=TicketRead.model_validate(ticket))
