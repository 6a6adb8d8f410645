from __future__ import annotations

from datetime import datetime, timedelta

from loguru import logger
from sqlalchemy import func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from eventhub.core.config import settings
from eventhub.core.errors import MarketplaceError, NotFound, StorageFailure, Unauthorized, ValidationError
from eventhub.core.time_utils import add_months, utcnow
from eventhub.models.point_transaction import PointTransaction
from eventhub.models.user import User


async def _get_user(db: AsyncSession, user_id: int, *, lock: bool = False) -> User:
    stmt = select(User).where(User.id == user_id)
    if lock:
        stmt = stmt.with_for_update()
    res = await db.execute(stmt)
    user = res.scalar_one_or_none()
    if user is None:
        raise NotFound(f"User {user_id} not found")
    return user


async def valid_point_balance(db: AsyncSession, user_id: int, now: datetime) -> int:
    """Sum of every ledger row that has not expired yet (grants and redemptions alike)."""
    res = await db.execute(
        select(func.coalesce(func.sum(PointTransaction.points), 0)).where(
            PointTransaction.user_id == user_id,
            PointTransaction.expires_at > now,
        )
    )
    return int(res.scalar_one())


async def _reconcile_cached_points(db: AsyncSession, user_id: int, now: datetime) -> int:
    """
    Rewrite users.points from the ledger. Must run inside the caller's transaction,
    after the ledger row for the current operation has been flushed.
    """
    balance = max(await valid_point_balance(db, user_id, now), 0)
    await db.execute(update(User).where(User.id == user_id).values(points=balance))
    return balance


async def grant_referral_points(db: AsyncSession, user_id: int) -> PointTransaction:
    """
    Award the fixed referral grant to `user_id` (the referrer).

    Atomic: ledger insert + cached counter update. The caller guarantees a single
    invocation per referral; nothing here deduplicates.
    """
    now = utcnow()
    points = int(settings.REFERRAL_POINTS)

    try:
        await _get_user(db, user_id, lock=True)

        entry = PointTransaction(
            user_id=user_id,
            points=points,
            expires_at=add_months(now, settings.REWARD_VALIDITY_MONTHS),
        )
        db.add(entry)
        await db.flush()

        balance = await _reconcile_cached_points(db, user_id, now)

        await db.commit()
        await db.refresh(entry)

    except MarketplaceError:
        await db.rollback()
        raise
    except SQLAlchemyError as e:
        await db.rollback()
        logger.exception("Referral point grant failed", user_id=user_id)
        raise StorageFailure("Failed to grant referral points") from e

    logger.info("Granted referral points", user_id=user_id, points=points, balance=balance)
    return entry


async def redeem_points(db: AsyncSession, user_id: int | None, ticket_price: int) -> dict:
    """
    Spend non-expired points against a ticket price.

    points_redeemed = min(valid balance, ticket_price), so final_price is never negative.
    The debit row gets its own forward expiry; it is stored for compatibility only.
    """
    if user_id is None:
        raise Unauthorized("User not authenticated")

    if isinstance(ticket_price, bool) or not isinstance(ticket_price, int) or ticket_price <= 0:
        raise ValidationError("Invalid ticket price")

    now = utcnow()

    try:
        user = await _get_user(db, user_id, lock=True)

        valid_points = await valid_point_balance(db, user.id, now)
        points_to_redeem = min(max(valid_points, 0), ticket_price)
        final_price = ticket_price - points_to_redeem

        if points_to_redeem > 0:
            db.add(
                PointTransaction(
                    user_id=user.id,
                    points=-points_to_redeem,
                    expires_at=now + timedelta(days=settings.REDEMPTION_EXPIRY_DAYS),
                )
            )
            await db.flush()

        balance = await _reconcile_cached_points(db, user.id, now)

        await db.commit()

    except MarketplaceError:
        await db.rollback()
        raise
    except SQLAlchemyError as e:
        await db.rollback()
        logger.exception("Point redemption failed", user_id=user_id, ticket_price=ticket_price)
        raise StorageFailure("Error redeeming points for ticket") from e

    logger.info(
        "Redeemed points",
        user_id=user_id,
        ticket_price=ticket_price,
        points_redeemed=points_to_redeem,
        balance=balance,
    )

    return {
        "original_price": ticket_price,
        "points_redeemed": points_to_redeem,
        "final_price": final_price,
    }


async def get_point_balance(db: AsyncSession, user_id: int) -> dict:
    """Consistency checkpoint: reconcile the cached counter and list grants still alive."""
    now = utcnow()

    try:
        await _get_user(db, user_id, lock=True)
        balance = await _reconcile_cached_points(db, user_id, now)

        res = await db.execute(
            select(PointTransaction)
            .where(
                PointTransaction.user_id == user_id,
                PointTransaction.points > 0,
                PointTransaction.expires_at > now,
            )
            .order_by(PointTransaction.expires_at.asc(), PointTransaction.id.asc())
        )
        grants = list(res.scalars().all())

        await db.commit()

    except MarketplaceError:
        await db.rollback()
        raise
    except SQLAlchemyError as e:
        await db.rollback()
        logger.exception("Point balance lookup failed", user_id=user_id)
        raise StorageFailure("Error reading point balance") from e

    return {
        "user_id": user_id,
        "points": balance,
        "expiring": [{"points": g.points, "expires_at": g.expires_at} for g in grants],
    }
