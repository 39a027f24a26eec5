"""
Event model — ticket inventory.

``available_tickets`` is only ever written while holding the row lock taken
by :func:`ticketing.services.inventory.lock_event`.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import (CheckConstraint, Column, DateTime, ForeignKey, Integer,
                        Numeric, String, Text)
from sqlalchemy.orm import relationship

from ticketing.db.base import Base

EVENT_STATUSES = ("upcoming", "live", "completed", "cancelled")
PURCHASABLE_STATUSES = ("upcoming", "live")


class Event(Base):
    __tablename__ = "events"
    __table_args__ = (
        CheckConstraint("total_tickets >= 0", name="ck_events_total_tickets"),
        CheckConstraint("available_tickets >= 0", name="ck_events_available_tickets"),
        CheckConstraint("available_tickets <= total_tickets", name="ck_events_available_le_total"),
        CheckConstraint("price >= 0", name="ck_events_price"),
        CheckConstraint(
            "status IN ('upcoming', 'live', 'completed', 'cancelled')",
            name="ck_events_status",
        ),
    )

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    title: str = Column(String(255), nullable=False)  # type: ignore[assignment]
    description: str | None = Column(Text, nullable=True)  # type: ignore[assignment]
    venue: str | None = Column(String(255), nullable=True)  # type: ignore[assignment]
    event_date: datetime = Column(DateTime(timezone=True), nullable=False, index=True)  # type: ignore[assignment]
    total_tickets: int = Column(Integer, nullable=False)  # type: ignore[assignment]
    available_tickets: int = Column(Integer, nullable=False)  # type: ignore[assignment]
    price: Decimal = Column(Numeric(10, 2), nullable=False)  # type: ignore[assignment]
    image_url: str | None = Column(String(500), nullable=True)  # type: ignore[assignment]
    status: str = Column(  # type: ignore[assignment]
        String(20),
        nullable=False,
        default="upcoming",
        server_default="upcoming",
        index=True,
    )  # upcoming | live | completed | cancelled
    created_by: int | None = Column(  # type: ignore[assignment]
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    created_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    tickets = relationship(
        "Ticket",
        back_populates="event",
        cascade="all, delete-orphan",
    )
