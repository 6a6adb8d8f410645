from __future__ import annotations

from datetime import datetime
from typing import List

from pydantic import Field

from eventhub.models.transaction import TransactionStatus
from eventhub.schemas.common import CamelModel


class DashboardEventOut(CamelModel):
    id: int
    name: str
    date: datetime
    location: str
    capacity: int
    is_free_event: bool
    attendee_count: int
    transaction_count: int
    revenue: int


class RegistrationOut(CamelModel):
    registration_id: int
    event_id: int
    event_name: str
    event_date: datetime
    event_location: str
    attendee_id: int
    attendee_name: str
    attendee_email: str
    registration_date: datetime


class TransactionTicketOut(CamelModel):
    type: str
    price: int
    quantity: int


class DashboardTransactionOut(CamelModel):
    transaction_id: int
    event_id: int
    event_name: str
    user_id: int
    user_name: str
    user_email: str
    amount: int
    discount_applied: int
    final_amount: int
    status: TransactionStatus
    used_referral_code: str | None = None
    transaction_date: datetime
    tickets: List[TransactionTicketOut] = Field(default_factory=list)


class ChartPointOut(CamelModel):
    name: str
    date: datetime
    attendees: int
    revenue: int
