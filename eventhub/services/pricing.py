from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional

from eventhub.core.time_utils import utcnow
from eventhub.models.discount_coupon import DiscountCoupon
from eventhub.models.event import Event
from eventhub.models.promotion import Promotion
from eventhub.models.ticket import Ticket


@dataclass(frozen=True)
class PriceQuote:
    amount: int
    discount_applied: int
    final_amount: int
    promotion_id: Optional[int] = None
    coupon_applied: bool = False


FREE_QUOTE = PriceQuote(amount=0, discount_applied=0, final_amount=0)


def first_active_promotion(promotions: Iterable[Promotion], now: datetime) -> Optional[Promotion]:
    """Only one promotion is honoured per purchase: the lowest id among the active ones."""
    active = [p for p in promotions if p.is_active(now)]
    if not active:
        return None
    return min(active, key=lambda p: p.id)


def coupon_is_valid(coupon: DiscountCoupon, *, buyer_id: int | None, now: datetime) -> bool:
    if coupon.is_used:
        return False
    if buyer_id is not None and int(coupon.user_id) != int(buyer_id):
        return False
    return coupon.expires_at > now


def promotion_discount(amount: int, discount_percent: int) -> int:
    # floor(amount * p / 100); amounts are whole currency units
    return (int(amount) * int(discount_percent)) // 100


def price_tickets(
    ticket: Ticket,
    event: Event,
    quantity: int,
    *,
    promotion: Optional[Promotion] = None,
    coupon: Optional[DiscountCoupon] = None,
    buyer_id: int | None = None,
    now: datetime | None = None,
) -> PriceQuote:
    """
    Quote a ticket purchase. No I/O and no side effects.

    Free events always price at zero and never consume a coupon. Otherwise the
    active promotion (percent, floored) and a valid coupon (flat) are stacked,
    and the final amount never drops below zero.
    """
    if event.is_free_event:
        return FREE_QUOTE

    now = now or utcnow()
    amount = int(ticket.price) * int(quantity)
    discount_applied = 0
    promotion_id = None
    coupon_applied = False

    if promotion is not None and promotion.is_active(now):
        discount_applied += promotion_discount(amount, promotion.discount_percent)
        promotion_id = promotion.id

    if coupon is not None and coupon_is_valid(coupon, buyer_id=buyer_id, now=now):
        discount_applied += int(coupon.discount)
        coupon_applied = True

    final_amount = max(amount - discount_applied, 0)

    return PriceQuote(
        amount=amount,
        discount_applied=discount_applied,
        final_amount=final_amount,
        promotion_id=promotion_id,
        coupon_applied=coupon_applied,
    )
