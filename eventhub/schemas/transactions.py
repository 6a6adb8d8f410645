from __future__ import annotations

from datetime import datetime

from pydantic import Field

from eventhub.models.transaction import TransactionStatus
from eventhub.schemas.common import CamelModel


class PurchaseIn(CamelModel):
    event_id: int
    ticket_id: int
    quantity: int = Field(..., ge=1)
    coupon_code: str | None = Field(default=None, max_length=16)


class QuoteOut(CamelModel):
    event_id: int
    ticket_id: int
    quantity: int
    amount: int
    discount_applied: int
    final_amount: int
    promotion_id: int | None = None
    coupon_applied: bool = False


class TransactionOut(CamelModel):
    id: int
    event_id: int
    user_id: int
    ticket_id: int | None
    quantity: int
    amount: int
    discount_applied: int
    final_amount: int
    status: TransactionStatus
    used_referral_code: str | None
    created_at: datetime


class PurchaseOut(CamelModel):
    message: str = "Transaction completed successfully"
    transaction: TransactionOut
    updated_ticket_quantity: int
