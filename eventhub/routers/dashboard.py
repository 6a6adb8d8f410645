from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from eventhub.core.db import get_db
from eventhub.core.deps import require_organizer
from eventhub.models.user import User
from eventhub.schemas.dashboard import (
    ChartPointOut,
    DashboardEventOut,
    DashboardTransactionOut,
    RegistrationOut,
)
from eventhub.services.dashboard import (
    RECENT_LIMIT,
    organizer_events,
    recent_registrations,
    recent_transactions,
    statistics,
)

router = APIRouter(prefix="/dashboard", tags=["Organizer Dashboard"])


@router.get("/events", response_model=list[DashboardEventOut])
async def dashboard_events(
    db: AsyncSession = Depends(get_db),
    organizer: User = Depends(require_organizer),
):
    return await organizer_events(db, organizer_id=int(organizer.id))


@router.get("/attendees", response_model=list[RegistrationOut])
async def dashboard_attendees(
    limit: int = Query(default=RECENT_LIMIT, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
    organizer: User = Depends(require_organizer),
):
    return await recent_registrations(db, organizer_id=int(organizer.id), limit=limit)


@router.get("/transactions", response_model=list[DashboardTransactionOut])
async def dashboard_transactions(
    limit: int = Query(default=RECENT_LIMIT, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
    organizer: User = Depends(require_organizer),
):
    return await recent_transactions(db, organizer_id=int(organizer.id), limit=limit)


@router.get("/statistics", response_model=list[ChartPointOut])
async def dashboard_statistics(
    range_: Optional[str] = Query(default="1y", alias="range"),
    db: AsyncSession = Depends(get_db),
    organizer: User = Depends(require_organizer),
):
    return await statistics(db, organizer_id=int(organizer.id), range_=range_)
