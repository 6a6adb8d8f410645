from __future__ import annotations

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from eventhub.core.db import get_db
from eventhub.core.deps import get_current_user
from eventhub.models.user import User
from eventhub.schemas.common import ErrorOut
from eventhub.schemas.transactions import PurchaseIn, PurchaseOut, QuoteOut, TransactionOut
from eventhub.services.transactions import purchase_tickets, quote_purchase

router = APIRouter(prefix="/transaction", tags=["Transactions"])

ERROR_RESPONSES = {
    400: {"model": ErrorOut},
    401: {"model": ErrorOut},
    404: {"model": ErrorOut},
    409: {"model": ErrorOut, "description": "Not enough tickets available"},
}


@router.post(
    "/create",
    response_model=PurchaseOut,
    status_code=status.HTTP_201_CREATED,
    responses=ERROR_RESPONSES,
)
async def create_transaction(
    payload: PurchaseIn,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> PurchaseOut:
    result = await purchase_tickets(
        db,
        current_user,
        event_id=payload.event_id,
        ticket_id=payload.ticket_id,
        quantity=payload.quantity,
        coupon_code=payload.coupon_code,
    )
    return PurchaseOut(
        transaction=TransactionOut.model_validate(result["transaction"]),
        updated_ticket_quantity=result["updated_ticket_quantity"],
    )


@router.post("/quote", response_model=QuoteOut, responses=ERROR_RESPONSES)
async def quote_transaction(
    payload: PurchaseIn,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> QuoteOut:
    data = await quote_purchase(
        db,
        current_user,
        event_id=payload.event_id,
        ticket_id=payload.ticket_id,
        quantity=payload.quantity,
        coupon_code=payload.coupon_code,
    )
    return QuoteOut(**data)
