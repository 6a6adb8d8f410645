from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from sqlalchemy import BigInteger, Boolean, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from eventhub.core.db import Base
from eventhub.core.time_utils import utcnow
from eventhub.models.promotion import Promotion
from eventhub.models.ticket import Ticket


class Event(Base):
    __tablename__ = "events"

    id: Mapped[int] = mapped_column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True)

    organizer_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("users.id"),
        nullable=False,
        index=True,
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    location: Mapped[str] = mapped_column(String(255), nullable=False)
    category: Mapped[str] = mapped_column(String(64), nullable=False)
    capacity: Mapped[int] = mapped_column(Integer, nullable=False)
    is_free_event: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)

    organizer = relationship("User", lazy="selectin")

    tickets: Mapped[List["Ticket"]] = relationship(
        "Ticket",
        back_populates="event",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="Ticket.id",
    )
    promotions: Mapped[List["Promotion"]] = relationship(
        "Promotion",
        back_populates="event",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="Promotion.id",
    )
