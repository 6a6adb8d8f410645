from __future__ import annotations

from datetime import datetime
from typing import List

from pydantic import Field

from eventhub.schemas.common import CamelModel


class RedeemPointsIn(CamelModel):
    # no string coercion: "8000" is rejected like any other non-number
    ticket_price: int = Field(..., gt=0, strict=True)


class RedeemPointsOut(CamelModel):
    original_price: int
    points_redeemed: int
    final_price: int
    message: str


class ExpiringGrantOut(CamelModel):
    points: int
    expires_at: datetime


class PointBalanceOut(CamelModel):
    user_id: int
    points: int
    expiring: List[ExpiringGrantOut] = Field(default_factory=list)
