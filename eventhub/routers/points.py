from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from eventhub.core.db import get_db
from eventhub.core.deps import get_current_user
from eventhub.models.user import User
from eventhub.schemas.common import ErrorOut
from eventhub.schemas.points import PointBalanceOut, RedeemPointsIn, RedeemPointsOut
from eventhub.services.points import get_point_balance, redeem_points

router = APIRouter(prefix="/point", tags=["Points"])


@router.post(
    "/redeem",
    response_model=RedeemPointsOut,
    responses={400: {"model": ErrorOut}, 401: {"model": ErrorOut}, 404: {"model": ErrorOut}},
)
async def redeem_points_for_ticket(
    payload: RedeemPointsIn,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> RedeemPointsOut:
    result = await redeem_points(db, int(current_user.id), payload.ticket_price)
    message = (
        f"Successfully redeemed {result['points_redeemed']} points for a discount of "
        f"{result['points_redeemed']}. Final ticket price: {result['final_price']}."
    )
    return RedeemPointsOut(**result, message=message)


@router.get("/balance", response_model=PointBalanceOut)
async def my_point_balance(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> PointBalanceOut:
    data = await get_point_balance(db, int(current_user.id))
    return PointBalanceOut(**data)
