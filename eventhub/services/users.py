from __future__ import annotations

from loguru import logger
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from eventhub.core.errors import Conflict, StorageFailure, Unauthorized, ValidationError
from eventhub.core.security import hash_password, verify_password
from eventhub.core.time_utils import utcnow
from eventhub.models.user import User
from eventhub.services.coupons import list_user_coupons
from eventhub.services.points import valid_point_balance


async def get_profile(db: AsyncSession, user: User) -> dict:
    user_id = int(user.id)
    coupons = await list_user_coupons(db, user_id)
    # read from the ledger so expired grants never show up here
    points = max(await valid_point_balance(db, user_id, utcnow()), 0)
    return {
        "id": user.id,
        "email": user.email,
        "name": user.name,
        "role": user.role,
        "points": points,
        "referral_code": user.referral_code,
        "is_verified": user.is_verified,
        "discount_coupons": coupons,
    }


async def update_profile(
    db: AsyncSession,
    user: User,
    *,
    name: str | None = None,
    email: str | None = None,
    current_password: str | None = None,
    new_password: str | None = None,
) -> User:
    user_id = int(user.id)

    if not name and not email and not new_password:
        raise ValidationError(
            "At least one field (name, email, or newPassword) must be provided for update"
        )

    if new_password:
        if not current_password or not verify_password(current_password, user.password_hash):
            raise Unauthorized("Current password is incorrect")

    if email:
        clean_email = email.strip().lower()
        if clean_email != user.email:
            res = await db.execute(select(User.id).where(User.email == clean_email))
            if res.scalar_one_or_none() is not None:
                raise Conflict("Email already in use")
            user.email = clean_email

    if name:
        user.name = name.strip()

    if new_password:
        user.password_hash = hash_password(new_password)

    try:
        await db.commit()
        await db.refresh(user)
    except IntegrityError as e:
        await db.rollback()
        raise Conflict("Email already in use") from e
    except SQLAlchemyError as e:
        await db.rollback()
        logger.exception("Profile update failed", user_id=user_id)
        raise StorageFailure("Error updating user") from e

    return user
