from __future__ import annotations

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from eventhub.core.db import get_db
from eventhub.core.deps import require_organizer
from eventhub.models.user import User
from eventhub.schemas.events import EventCreateIn, EventCreateOut, EventDetailOut, EventListItemOut, EventOut
from eventhub.services.events import create_event, get_event, list_events

router = APIRouter(tags=["Events"])


@router.post("/create-event", response_model=EventCreateOut, status_code=status.HTTP_201_CREATED)
async def create_new_event(
    payload: EventCreateIn,
    db: AsyncSession = Depends(get_db),
    organizer: User = Depends(require_organizer),
) -> EventCreateOut:
    event = await create_event(db, organizer, payload)
    return EventCreateOut(event=EventOut.model_validate(event))


@router.get("/get-events", response_model=list[EventListItemOut])
async def all_events(db: AsyncSession = Depends(get_db)):
    return await list_events(db)


@router.get("/events/{event_id}", response_model=EventDetailOut)
async def event_detail(event_id: int, db: AsyncSession = Depends(get_db)):
    return await get_event(db, event_id)
