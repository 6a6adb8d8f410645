from __future__ import annotations

from datetime import datetime
from typing import List

from pydantic import Field

from eventhub.models.user import UserRole
from eventhub.schemas.common import CamelModel


class UserOut(CamelModel):
    id: int
    email: str
    name: str
    role: UserRole
    points: int
    referral_code: str
    is_verified: bool


class CouponOut(CamelModel):
    id: int
    code: str
    discount: int
    expires_at: datetime
    is_used: bool


class ProfileOut(UserOut):
    discount_coupons: List[CouponOut] = Field(default_factory=list)


class ProfileUpdateIn(CamelModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    email: str | None = Field(default=None, min_length=3, max_length=255, pattern=r"^[^@\s]+@[^@\s]+$")
    current_password: str | None = None
    new_password: str | None = Field(default=None, min_length=6)
