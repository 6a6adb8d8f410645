from __future__ import annotations

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from eventhub.core.errors import MarketplaceError
from eventhub.services.coupons import issue_referral_coupon
from eventhub.services.points import grant_referral_points


async def complete_referral(
    sessionmaker: async_sessionmaker[AsyncSession],
    *,
    referrer_id: int,
    referee_id: int,
) -> dict:
    """
    Best-effort referral rewards, run after the registration / verification commit:
      - referrer gets the referral point grant
      - referee gets a single-use discount coupon

    Each reward runs in its own session and transaction. Failures are logged and
    never propagated, so the triggering request is unaffected.
    """
    outcome = {"points_granted": False, "coupon_code": None}

    async with sessionmaker() as db:
        try:
            await grant_referral_points(db, referrer_id)
            outcome["points_granted"] = True
        except MarketplaceError:
            logger.exception("Error adding referral points", referrer_id=referrer_id, referee_id=referee_id)

    async with sessionmaker() as db:
        try:
            coupon = await issue_referral_coupon(db, referee_id)
            outcome["coupon_code"] = coupon.code
        except MarketplaceError:
            logger.exception("Error creating discount coupon", referrer_id=referrer_id, referee_id=referee_id)

    logger.info("Referral completed", referrer_id=referrer_id, referee_id=referee_id, **outcome)
    return outcome
