"""Pydantic schemas for the event catalogue and ticket purchase."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, field_validator

from ticketing.models.event import EVENT_STATUSES
from ticketing.schemas.common import PageMeta


def _check_status(value: str) -> str:
    if value not in EVENT_STATUSES:
        raise ValueError(f"Status must be one of: {', '.join(EVENT_STATUSES)}")
    return value


def _check_title(value: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError("Title is required")
    if len(value) > 255:
        raise ValueError("Title must be at most 255 characters")
    return value


class EventCreate(BaseModel):
    title: str
    description: str | None = None
    venue: str | None = None
    event_date: datetime
    total_tickets: int
    price: Decimal
    image_url: str | None = None
    status: str = "upcoming"

    @field_validator("title")
    @classmethod
    def _validate_title(cls, v: str) -> str:
        return _check_title(v)

    @field_validator("total_tickets")
    @classmethod
    def _validate_total(cls, v: int) -> int:
        if v < 1:
            raise ValueError("Total tickets must be at least 1")
        return v

    @field_validator("price")
    @classmethod
    def _validate_price(cls, v: Decimal) -> Decimal:
        if v < 0:
            raise ValueError("Price must be a non-negative number")
        return v

    @field_validator("status")
    @classmethod
    def _validate_status(cls, v: str) -> str:
        return _check_status(v)


class EventUpdate(BaseModel):
    title: str | None = None
    description: str | None = None
    venue: str | None = None
    event_date: datetime | None = None
    total_tickets: int | None = None
    available_tickets: int | None = None
    price: Decimal | None = None
    image_url: str | None = None
    status: str | None = None

    @field_validator("title")
    @classmethod
    def _validate_title(cls, v: str | None) -> str | None:
        return _check_title(v) if v is not None else v

    @field_validator("total_tickets", "available_tickets")
    @classmethod
    def _validate_counts(cls, v: int | None) -> int | None:
        if v is not None and v < 0:
            raise ValueError("Ticket counts must be non-negative")
        return v

    @field_validator("price")
    @classmethod
    def _validate_price(cls, v: Decimal | None) -> Decimal | None:
        if v is not None and v < 0:
            raise ValueError("Price must be a non-negative number")
        return v

    @field_validator("status")
    @classmethod
    def _validate_status(cls, v: str | None) -> str | None:
        return _check_status(v) if v is not None else v


class EventRead(BaseModel):
    id: int
    title: str
    description: str | None
    venue: str | None
    event_date: datetime
    total_tickets: int
    available_tickets: int
    price: float
    image_url: str | None
    status: str
    created_by: int | None
    created_at: datetime | None
    updated_at: datetime | None

    model_config = {"from_attributes": True}


class EventResponse(BaseModel):
    message: str
    data: EventRead


class EventListResponse(BaseModel):
    message: str
    data: list[EventRead]
    meta: PageMeta


class PurchaseRequest(BaseModel):
    quantity: int = 1

    @field_validator("quantity")
    @classmethod
    def _validate_quantity(cls, v: int) -> int:
        if v < 1:
            raise ValueError("Quantity must be at least 1")
        return v
