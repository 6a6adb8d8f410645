from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from loguru import logger
from sqlalchemy import select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

from eventhub.core.errors import (
    InsufficientInventory,
    MarketplaceError,
    NotFound,
    StorageFailure,
    ValidationError,
)
from eventhub.core.time_utils import utcnow
from eventhub.models.discount_coupon import DiscountCoupon
from eventhub.models.event import Event
from eventhub.models.event_attendee import EventAttendee
from eventhub.models.promotion import Promotion
from eventhub.models.ticket import Ticket
from eventhub.models.transaction import Transaction, TransactionStatus
from eventhub.models.user import User
from eventhub.services.coupons import consume_coupon, find_redeemable_coupon
from eventhub.services.pricing import PriceQuote, price_tickets


class SettlementState(str, enum.Enum):
    RECEIVED = "RECEIVED"
    VALIDATED = "VALIDATED"
    PRICED = "PRICED"
    COMMITTED = "COMMITTED"
    FAILED = "FAILED"


@dataclass
class _PricedPurchase:
    ticket: Ticket
    quote: PriceQuote
    coupon: Optional[DiscountCoupon]


async def _get_ticket(db: AsyncSession, ticket_id: int) -> Ticket:
    res = await db.execute(select(Ticket).where(Ticket.id == ticket_id))
    ticket = res.scalar_one_or_none()
    if ticket is None:
        raise NotFound("Ticket not found")
    return ticket


async def _load_active_promotion(db: AsyncSession, event_id: int, now: datetime) -> Promotion | None:
    res = await db.execute(
        select(Promotion)
        .where(
            Promotion.event_id == event_id,
            Promotion.start_date <= now,
            Promotion.end_date > now,
        )
        .order_by(Promotion.id.asc())
        .limit(1)
    )
    return res.scalar_one_or_none()


async def _validate(
    db: AsyncSession,
    *,
    event_id: int,
    ticket_id: int,
    quantity: int,
) -> tuple[Ticket, Event]:
    """Fail fast, no mutation."""
    if quantity is None or int(quantity) < 1:
        raise ValidationError("quantity must be >= 1")

    ticket = await _get_ticket(db, ticket_id)

    if int(ticket.event_id) != int(event_id):
        raise ValidationError(f"Ticket {ticket_id} does not belong to event {event_id}")

    if ticket.quantity < quantity:
        raise InsufficientInventory(
            f"Only {ticket.quantity} tickets left, {quantity} requested"
        )

    event = await db.get(Event, ticket.event_id)
    if event is None:
        raise NotFound("Event not found")

    return ticket, event


async def _price(
    db: AsyncSession,
    ticket: Ticket,
    event: Event,
    buyer_id: int,
    *,
    quantity: int,
    coupon_code: str | None,
    lock_coupon: bool,
) -> _PricedPurchase:
    now = utcnow()

    promotion = await _load_active_promotion(db, event.id, now)

    coupon = None
    if coupon_code and not event.is_free_event:
        coupon = await find_redeemable_coupon(
            db,
            code=coupon_code,
            user_id=buyer_id,
            now=now,
            lock=lock_coupon,
        )
        if coupon is None:
            logger.info("Coupon not redeemable, pricing without it", code=coupon_code, user_id=buyer_id)

    quote = price_tickets(
        ticket,
        event,
        quantity,
        promotion=promotion,
        coupon=coupon,
        buyer_id=buyer_id,
        now=now,
    )
    return _PricedPurchase(ticket=ticket, quote=quote, coupon=coupon if quote.coupon_applied else None)


async def _decrement_inventory(db: AsyncSession, ticket: Ticket, quantity: int) -> int | None:
    """
    Guarded decrement: re-checks availability in the same statement that mutates it,
    so two settlements racing for the last units cannot both pass.
    Returns the remaining quantity, or None when not enough is left.
    """
    res = await db.execute(
        update(Ticket)
        .where(Ticket.id == ticket.id, Ticket.quantity >= quantity)
        .values(quantity=Ticket.quantity - quantity)
        .returning(Ticket.quantity)
        .execution_options(synchronize_session=False)
    )
    remaining = res.scalar_one_or_none()
    if remaining is None:
        return None

    set_committed_value(ticket, "quantity", int(remaining))
    return int(remaining)


async def _register_attendee(db: AsyncSession, event_id: int, attendee_id: int) -> None:
    """Insert (event, attendee) unless it already exists; never raises on a duplicate."""
    values = {"event_id": event_id, "attendee_id": attendee_id, "created_at": utcnow()}
    dialect = db.get_bind().dialect.name

    if dialect == "postgresql":
        stmt = postgresql.insert(EventAttendee).values(**values)
    elif dialect == "sqlite":
        stmt = sqlite.insert(EventAttendee).values(**values)
    else:
        res = await db.execute(
            select(EventAttendee.id).where(
                EventAttendee.event_id == event_id,
                EventAttendee.attendee_id == attendee_id,
            )
        )
        if res.scalar_one_or_none() is None:
            db.add(EventAttendee(**values))
        return

    await db.execute(stmt.on_conflict_do_nothing(index_elements=["event_id", "attendee_id"]))


async def quote_purchase(
    db: AsyncSession,
    buyer: User,
    *,
    event_id: int,
    ticket_id: int,
    quantity: int,
    coupon_code: str | None = None,
) -> dict:
    """Price a purchase exactly as settlement would, without touching any state."""
    buyer_id = int(buyer.id)

    try:
        ticket, event = await _validate(db, event_id=event_id, ticket_id=ticket_id, quantity=quantity)
        priced = await _price(
            db,
            ticket,
            event,
            buyer_id,
            quantity=quantity,
            coupon_code=coupon_code,
            lock_coupon=False,
        )
    except SQLAlchemyError as e:
        await db.rollback()
        logger.exception("Quote storage failure", user_id=buyer_id, ticket_id=ticket_id)
        raise StorageFailure(f"Failed to price purchase: {e.__class__.__name__}") from e

    quote = priced.quote
    return {
        "event_id": int(priced.ticket.event_id),
        "ticket_id": int(priced.ticket.id),
        "quantity": int(quantity),
        "amount": quote.amount,
        "discount_applied": quote.discount_applied,
        "final_amount": quote.final_amount,
        "promotion_id": quote.promotion_id,
        "coupon_applied": quote.coupon_applied,
    }


async def purchase_tickets(
    db: AsyncSession,
    buyer: User,
    *,
    event_id: int,
    ticket_id: int,
    quantity: int,
    coupon_code: str | None = None,
) -> dict:
    """
    Settle a ticket purchase.

    RECEIVED -> VALIDATED -> PRICED -> COMMITTED, or FAILED from any step.

    Single commit (atomic):
      - consume the coupon (if one was applied)
      - insert one COMPLETED transaction covering the whole quantity
      - decrement ticket inventory (guarded)
      - register the buyer as attendee (idempotent)

    Any failure rolls back all of the above.
    """
    buyer_id = int(buyer.id)
    log = logger.bind(user_id=buyer_id, event_id=event_id, ticket_id=ticket_id, quantity=quantity)
    state = SettlementState.RECEIVED

    try:
        ticket, event = await _validate(db, event_id=event_id, ticket_id=ticket_id, quantity=quantity)
        state = SettlementState.VALIDATED

        priced = await _price(
            db,
            ticket,
            event,
            buyer_id,
            quantity=quantity,
            coupon_code=coupon_code,
            lock_coupon=True,
        )
        state = SettlementState.PRICED
        quote, coupon = priced.quote, priced.coupon

        if coupon is not None and not await consume_coupon(db, coupon):
            raise ValidationError("Coupon has already been used")

        transaction = Transaction(
            event_id=int(ticket.event_id),
            user_id=buyer_id,
            ticket_id=int(ticket.id),
            quantity=int(quantity),
            amount=quote.amount,
            discount_applied=quote.discount_applied,
            final_amount=quote.final_amount,
            status=TransactionStatus.COMPLETED,
            used_referral_code=coupon.code if coupon is not None else None,
        )
        db.add(transaction)

        remaining = await _decrement_inventory(db, ticket, int(quantity))
        if remaining is None:
            raise InsufficientInventory("Not enough tickets available")

        await _register_attendee(db, int(ticket.event_id), buyer_id)

        await db.flush()  # assigns transaction.id
        await db.commit()
        state = SettlementState.COMMITTED

    except MarketplaceError as e:
        await db.rollback()
        log.warning("Settlement failed", state=SettlementState.FAILED.value, failed_after=state.value, reason=str(e))
        raise
    except SQLAlchemyError as e:
        await db.rollback()
        log.exception("Settlement storage failure", state=SettlementState.FAILED.value, failed_after=state.value)
        raise StorageFailure(f"Failed to create transaction: {e.__class__.__name__}") from e

    log.info(
        "Settlement committed",
        state=state.value,
        transaction_id=transaction.id,
        final_amount=transaction.final_amount,
        remaining=remaining,
    )

    return {
        "transaction": transaction,
        "updated_ticket_quantity": remaining,
    }
