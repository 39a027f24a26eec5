"""Pydantic schemas for purchased tickets."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel

from ticketing.schemas.common import PageMeta


class TicketRead(BaseModel):
    id: int
    event_id: int | None
    user_id: int | None
    title: str
    status: str
    quantity: int
    purchase_price: float | None
    purchase_date: datetime | None
    created_at: datetime | None
    updated_at: datetime | None

    model_config = {"from_attributes": True}


class TicketResponse(BaseModel):
    message: str
    data: TicketRead


class TicketListResponse(BaseModel):
    message: str
    data: list[TicketRead]
    meta: PageMeta
