from __future__ import annotations

from datetime import datetime, timedelta

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from eventhub.core.time_utils import utcnow
from eventhub.models.event import Event
from eventhub.models.event_attendee import EventAttendee
from eventhub.models.transaction import Transaction, TransactionStatus

RECENT_LIMIT = 50


def resolve_range_start(range_: str | None, now: datetime | None = None) -> datetime:
    """
    1y | 30d | 7d | 1d (since midnight UTC). Unknown values fall back to 1y.
    Output is UTC-naive, like every timestamp column.
    """
    now = now or utcnow()
    key = (range_ or "1y").strip().lower()

    if key == "30d":
        return now - timedelta(days=30)
    if key == "7d":
        return now - timedelta(days=7)
    if key == "1d":
        return now.replace(hour=0, minute=0, second=0, microsecond=0)
    # "1y" and anything unrecognised
    try:
        return now.replace(year=now.year - 1)
    except ValueError:
        # Feb 29
        return now.replace(year=now.year - 1, day=28)


def _attendee_counts():
    return (
        select(EventAttendee.event_id, func.count(EventAttendee.id).label("attendees"))
        .group_by(EventAttendee.event_id)
        .subquery()
    )


def _transaction_totals():
    return (
        select(
            Transaction.event_id,
            func.count(Transaction.id).label("transactions"),
            func.coalesce(func.sum(Transaction.final_amount), 0).label("revenue"),
        )
        .where(Transaction.status == TransactionStatus.COMPLETED)
        .group_by(Transaction.event_id)
        .subquery()
    )


async def organizer_events(db: AsyncSession, *, organizer_id: int) -> list[dict]:
    att = _attendee_counts()
    tx = _transaction_totals()

    stmt = (
        select(
            Event.id,
            Event.name,
            Event.date,
            Event.location,
            Event.capacity,
            Event.is_free_event,
            func.coalesce(att.c.attendees, 0),
            func.coalesce(tx.c.transactions, 0),
            func.coalesce(tx.c.revenue, 0),
        )
        .outerjoin(att, att.c.event_id == Event.id)
        .outerjoin(tx, tx.c.event_id == Event.id)
        .where(Event.organizer_id == organizer_id)
        .order_by(Event.date.desc(), Event.id.desc())
    )

    res = await db.execute(stmt)
    return [
        {
            "id": int(r[0]),
            "name": r[1],
            "date": r[2],
            "location": r[3],
            "capacity": int(r[4]),
            "is_free_event": bool(r[5]),
            "attendee_count": int(r[6]),
            "transaction_count": int(r[7]),
            "revenue": int(r[8]),
        }
        for r in res.all()
    ]


async def recent_registrations(db: AsyncSession, *, organizer_id: int, limit: int = RECENT_LIMIT) -> list[dict]:
    stmt = (
        select(EventAttendee)
        .join(Event, Event.id == EventAttendee.event_id)
        .where(Event.organizer_id == organizer_id)
        .order_by(EventAttendee.created_at.desc(), EventAttendee.id.desc())
        .limit(int(limit))
    )
    res = await db.execute(stmt)

    items: list[dict] = []
    for reg in res.scalars().all():
        items.append(
            {
                "registration_id": reg.id,
                "event_id": reg.event_id,
                "event_name": reg.event.name,
                "event_date": reg.event.date,
                "event_location": reg.event.location,
                "attendee_id": reg.attendee_id,
                "attendee_name": reg.attendee.name,
                "attendee_email": reg.attendee.email,
                "registration_date": reg.created_at,
            }
        )
    return items


async def recent_transactions(db: AsyncSession, *, organizer_id: int, limit: int = RECENT_LIMIT) -> list[dict]:
    stmt = (
        select(Transaction)
        .join(Event, Event.id == Transaction.event_id)
        .where(Event.organizer_id == organizer_id)
        .order_by(Transaction.created_at.desc(), Transaction.id.desc())
        .limit(int(limit))
    )
    res = await db.execute(stmt)

    items: list[dict] = []
    for t in res.scalars().all():
        tickets = []
        if t.ticket is not None:
            tickets.append({"type": t.ticket.type, "price": t.ticket.price, "quantity": t.quantity})

        items.append(
            {
                "transaction_id": t.id,
                "event_id": t.event_id,
                "event_name": t.event.name,
                "user_id": t.user_id,
                "user_name": t.user.name,
                "user_email": t.user.email,
                "amount": t.amount,
                "discount_applied": t.discount_applied,
                "final_amount": t.final_amount,
                "status": t.status,
                "used_referral_code": t.used_referral_code,
                "transaction_date": t.created_at,
                "tickets": tickets,
            }
        )
    return items


async def statistics(db: AsyncSession, *, organizer_id: int, range_: str | None) -> list[dict]:
    """Per-event attendee count and revenue for the organizer's events dated since the range start."""
    start = resolve_range_start(range_)
    att = _attendee_counts()
    tx = _transaction_totals()

    stmt = (
        select(
            Event.name,
            Event.date,
            func.coalesce(att.c.attendees, 0),
            func.coalesce(tx.c.revenue, 0),
        )
        .outerjoin(att, att.c.event_id == Event.id)
        .outerjoin(tx, tx.c.event_id == Event.id)
        .where(Event.organizer_id == organizer_id, Event.date >= start)
        .order_by(Event.date.asc(), Event.id.asc())
    )

    res = await db.execute(stmt)
    return [
        {"name": r[0], "date": r[1], "attendees": int(r[2]), "revenue": int(r[3])}
        for r in res.all()
    ]
