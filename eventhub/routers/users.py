from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from eventhub.core.db import get_db
from eventhub.core.deps import get_current_user
from eventhub.models.user import User
from eventhub.schemas.users import ProfileOut, ProfileUpdateIn, UserOut
from eventhub.services.users import get_profile, update_profile

router = APIRouter(prefix="/user", tags=["User"])


@router.get("/profile", response_model=ProfileOut)
async def my_profile(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> ProfileOut:
    data = await get_profile(db, current_user)
    return ProfileOut(**data)


@router.put("/profile", response_model=UserOut)
async def update_my_profile(
    payload: ProfileUpdateIn,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> UserOut:
    user = await update_profile(
        db,
        current_user,
        name=payload.name,
        email=payload.email,
        current_password=payload.current_password,
        new_password=payload.new_password,
    )
    return UserOut.model_validate(user)
