# eventhub/services/coupons.py
from __future__ import annotations

import secrets
import string
from datetime import datetime

from loguru import logger
from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

from eventhub.core.config import settings
from eventhub.core.errors import MarketplaceError, NotFound, StorageFailure
from eventhub.core.time_utils import add_months, utcnow
from eventhub.models.discount_coupon import DiscountCoupon
from eventhub.models.user import User

_CODE_ALPHABET = string.ascii_uppercase + string.digits
CODE_LENGTH = 6


def generate_code(length: int = CODE_LENGTH) -> str:
    return "".join(secrets.choice(_CODE_ALPHABET) for _ in range(length))


async def generate_unique_code(db: AsyncSession, column, *, attempts: int = 20) -> str:
    """
    Pick a random code not yet present in `column`.
    Pre-checks collisions so the caller's transaction never has to roll back on a unique violation.
    """
    for _attempt in range(attempts):
        candidate = generate_code()
        exists = await db.execute(select(column).where(column == candidate))
        if exists.scalar_one_or_none() is None:
            return candidate
    raise StorageFailure("Failed to generate unique code.")


async def issue_referral_coupon(db: AsyncSession, user_id: int) -> DiscountCoupon:
    """
    Single-use flat discount for a newly referred user, valid for
    REWARD_VALIDITY_MONTHS. Commits on its own.
    """
    now = utcnow()

    try:
        res = await db.execute(select(User.id).where(User.id == user_id))
        if res.scalar_one_or_none() is None:
            raise NotFound(f"User {user_id} not found")

        coupon = DiscountCoupon(
            user_id=user_id,
            code=await generate_unique_code(db, DiscountCoupon.code),
            discount=int(settings.REFERRAL_COUPON_DISCOUNT),
            expires_at=add_months(now, settings.REWARD_VALIDITY_MONTHS),
            is_used=False,
        )
        db.add(coupon)

        await db.commit()
        await db.refresh(coupon)

    except MarketplaceError:
        await db.rollback()
        raise
    except SQLAlchemyError as e:
        await db.rollback()
        logger.exception("Coupon issue failed", user_id=user_id)
        raise StorageFailure("Failed to create discount coupon") from e

    logger.info("Issued discount coupon", user_id=user_id, code=coupon.code, discount=coupon.discount)
    return coupon


async def list_user_coupons(db: AsyncSession, user_id: int) -> list[DiscountCoupon]:
    res = await db.execute(
        select(DiscountCoupon)
        .where(DiscountCoupon.user_id == user_id)
        .order_by(DiscountCoupon.created_at.desc(), DiscountCoupon.id.desc())
    )
    return list(res.scalars().all())


async def find_redeemable_coupon(
    db: AsyncSession,
    *,
    code: str,
    user_id: int,
    now: datetime,
    lock: bool = False,
) -> DiscountCoupon | None:
    """Coupon matching code + owner that is unused and unexpired, else None."""
    stmt = select(DiscountCoupon).where(
        DiscountCoupon.code == code,
        DiscountCoupon.user_id == user_id,
        DiscountCoupon.is_used.is_(False),
        DiscountCoupon.expires_at > now,
    )
    if lock:
        stmt = stmt.with_for_update()
    res = await db.execute(stmt)
    return res.scalar_one_or_none()


async def consume_coupon(db: AsyncSession, coupon: DiscountCoupon) -> bool:
    """
    Flip is_used false -> true inside the caller's transaction.
    Returns False when another settlement got there first.
    """
    res = await db.execute(
        update(DiscountCoupon)
        .where(DiscountCoupon.id == coupon.id, DiscountCoupon.is_used.is_(False))
        .values(is_used=True)
        .execution_options(synchronize_session=False)
    )
    if res.rowcount != 1:
        return False

    set_committed_value(coupon, "is_used", True)
    return True
