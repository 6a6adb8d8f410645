from __future__ import annotations

from pydantic import Field

from eventhub.models.user import UserRole
from eventhub.schemas.common import CamelModel
from eventhub.schemas.users import UserOut


class RegisterIn(CamelModel):
    email: str = Field(..., min_length=3, max_length=255, pattern=r"^[^@\s]+@[^@\s]+$")
    password: str = Field(..., min_length=6)
    name: str = Field(..., min_length=1, max_length=255)
    role: UserRole = UserRole.CUSTOMER
    referral_code: str | None = Field(default=None, max_length=16)


class LoginIn(CamelModel):
    email: str
    password: str


class AuthOut(CamelModel):
    user: UserOut
    token: str
    token_type: str = "bearer"


class VerifyOut(CamelModel):
    user_id: int
    is_verified: bool
    message: str
