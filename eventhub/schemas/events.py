from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import Field, model_validator

from eventhub.schemas.common import CamelModel


class TicketIn(CamelModel):
    type: str = Field(..., min_length=1, max_length=64)
    price: int = Field(..., ge=0)
    quantity: int = Field(..., ge=0)
    description: Optional[str] = None


class PromotionIn(CamelModel):
    discount_percent: int = Field(..., ge=0, le=100)
    start_date: datetime
    end_date: datetime

    @model_validator(mode="after")
    def _check_range(self):
        if self.end_date <= self.start_date:
            raise ValueError("promotion endDate must be after startDate")
        return self


class EventCreateIn(CamelModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    date: datetime
    location: str = Field(..., min_length=1, max_length=255)
    category: str = Field(..., min_length=1, max_length=64)
    is_free_event: bool = False
    capacity: int = Field(..., ge=1)
    tickets: List[TicketIn] = Field(default_factory=list)
    promotion: Optional[PromotionIn] = None


class TicketOut(CamelModel):
    id: int
    event_id: int
    type: str
    price: int
    quantity: int
    description: Optional[str] = None


class PromotionOut(CamelModel):
    id: int
    discount_percent: int
    start_date: datetime
    end_date: datetime


class EventOut(CamelModel):
    id: int
    organizer_id: int
    name: str
    description: Optional[str] = None
    date: datetime
    location: str
    category: str
    capacity: int
    is_free_event: bool
    created_at: datetime


class EventCreateOut(CamelModel):
    message: str = "Event created successfully"
    event: EventOut


class EventDetailOut(EventOut):
    organizer: str
    tickets: List[TicketOut] = Field(default_factory=list)
    active_promotion: Optional[PromotionOut] = None


class EventListItemOut(CamelModel):
    id: int
    name: str
    date: datetime
    organizer: str
    price: str
    category: str
    promotion: Optional[PromotionOut] = None
