"""
Ticket model — one row per purchased unit.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import (CheckConstraint, Column, DateTime, ForeignKey, Integer,
                        Numeric, String)
from sqlalchemy.orm import relationship

from ticketing.db.base import Base

TICKET_STATUSES = ("purchased", "cancelled")


class Ticket(Base):
    __tablename__ = "tickets"
    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_tickets_quantity"),
        CheckConstraint("status IN ('purchased', 'cancelled')", name="ck_tickets_status"),
    )

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    event_id: int | None = Column(  # type: ignore[assignment]
        Integer, ForeignKey("events.id", ondelete="CASCADE"), nullable=True, index=True
    )
    user_id: int | None = Column(  # type: ignore[assignment]
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True
    )
    title: str = Column(String(255), nullable=False)  # type: ignore[assignment]
    status: str = Column(  # type: ignore[assignment]
        String(20),
        nullable=False,
        default="purchased",
        server_default="purchased",
        index=True,
    )  # purchased | cancelled
    quantity: int = Column(Integer, nullable=False, default=1, server_default="1")  # type: ignore[assignment]
    purchase_price: Decimal | None = Column(Numeric(10, 2), nullable=True)  # type: ignore[assignment]
    purchase_date: datetime | None = Column(DateTime(timezone=True), nullable=True)  # type: ignore[assignment]
    created_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    event = relationship("Event", back_populates="tickets")
    user = relationship("User", back_populates="tickets")
