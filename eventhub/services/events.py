from __future__ import annotations

from loguru import logger
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from eventhub.core.errors import Forbidden, NotFound, StorageFailure, ValidationError
from eventhub.core.time_utils import to_utc_naive, utcnow
from eventhub.models.event import Event
from eventhub.models.promotion import Promotion
from eventhub.models.ticket import Ticket
from eventhub.models.user import User, UserRole
from eventhub.schemas.events import EventCreateIn
from eventhub.services.pricing import first_active_promotion


async def create_event(db: AsyncSession, organizer: User, payload: EventCreateIn) -> Event:
    """Event + its tickets + optional promotion, one commit."""
    if organizer.role != UserRole.ORGANIZER:
        raise Forbidden("Only organizers can create events")

    if not payload.is_free_event and not payload.tickets:
        raise ValidationError("Paid events need at least one ticket type")

    organizer_id = int(organizer.id)

    event = Event(
        organizer_id=organizer_id,
        name=payload.name.strip(),
        description=payload.description,
        date=to_utc_naive(payload.date),
        location=payload.location.strip(),
        category=payload.category.strip(),
        capacity=payload.capacity,
        is_free_event=payload.is_free_event,
        tickets=[
            Ticket(
                type=t.type,
                price=0 if payload.is_free_event else t.price,
                quantity=t.quantity,
                description=t.description,
            )
            for t in payload.tickets
        ],
        promotions=[],
    )

    if payload.promotion is not None:
        event.promotions.append(
            Promotion(
                discount_percent=payload.promotion.discount_percent,
                start_date=to_utc_naive(payload.promotion.start_date),
                end_date=to_utc_naive(payload.promotion.end_date),
            )
        )

    try:
        db.add(event)
        await db.commit()
        await db.refresh(event)
    except SQLAlchemyError as e:
        await db.rollback()
        logger.exception("Event creation failed", organizer_id=organizer_id)
        raise StorageFailure("Failed to create event") from e

    logger.info("Event created", event_id=event.id, organizer_id=organizer_id, tickets=len(payload.tickets))
    return event


def _price_label(event: Event) -> str:
    if event.is_free_event:
        return "FREE"
    if not event.tickets:
        return "-"
    return str(min(t.price for t in event.tickets))


async def list_events(db: AsyncSession) -> list[dict]:
    res = await db.execute(select(Event).order_by(Event.date.asc(), Event.id.asc()))
    events = res.scalars().all()

    items: list[dict] = []
    for ev in events:
        items.append(
            {
                "id": ev.id,
                "name": ev.name,
                "date": ev.date,
                "organizer": ev.organizer.name if ev.organizer is not None else "",
                "price": _price_label(ev),
                "category": ev.category,
                "promotion": ev.promotions[0] if ev.promotions else None,
            }
        )
    return items


async def get_event(db: AsyncSession, event_id: int) -> dict:
    res = await db.execute(select(Event).where(Event.id == event_id))
    ev = res.scalar_one_or_none()
    if ev is None:
        raise NotFound("Event not found")

    return {
        "id": ev.id,
        "organizer_id": ev.organizer_id,
        "name": ev.name,
        "description": ev.description,
        "date": ev.date,
        "location": ev.location,
        "category": ev.category,
        "capacity": ev.capacity,
        "is_free_event": ev.is_free_event,
        "created_at": ev.created_at,
        "organizer": ev.organizer.name if ev.organizer is not None else "",
        "tickets": list(ev.tickets),
        "active_promotion": first_active_promotion(ev.promotions, utcnow()),
    }
