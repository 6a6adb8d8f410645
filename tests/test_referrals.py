import re

import pytest
from sqlalchemy import select

from eventhub.core.config import settings
from eventhub.core.errors import NotFound
from eventhub.core.time_utils import utcnow
from eventhub.models import DiscountCoupon, User
from eventhub.services.coupons import consume_coupon, issue_referral_coupon, list_user_coupons
from eventhub.services.referrals import complete_referral

from factories import create_user


async def test_issue_referral_coupon(db, customer):
    coupon = await issue_referral_coupon(db, customer.id)

    assert re.fullmatch(r"[A-Z0-9]{6}", coupon.code)
    assert coupon.discount == settings.REFERRAL_COUPON_DISCOUNT
    assert coupon.is_used is False
    assert coupon.expires_at > utcnow()
    assert [c.id for c in await list_user_coupons(db, customer.id)] == [coupon.id]


async def test_issue_coupon_for_unknown_user(db):
    with pytest.raises(NotFound):
        await issue_referral_coupon(db, 424242)


async def test_consume_coupon_only_once(db, customer):
    coupon = await issue_referral_coupon(db, customer.id)

    assert await consume_coupon(db, coupon) is True
    assert coupon.is_used is True
    assert await consume_coupon(db, coupon) is False
    await db.commit()


async def test_complete_referral_rewards_both_sides(db, sessionmaker):
    referrer = await create_user(db)
    referee = await create_user(db, referred_by_id=referrer.id)

    outcome = await complete_referral(sessionmaker, referrer_id=referrer.id, referee_id=referee.id)

    assert outcome["points_granted"] is True
    assert outcome["coupon_code"]
    assert await db.scalar(select(User.points).where(User.id == referrer.id)) == settings.REFERRAL_POINTS
    owner = await db.scalar(select(DiscountCoupon.user_id).where(DiscountCoupon.code == outcome["coupon_code"]))
    assert owner == referee.id


async def test_complete_referral_is_best_effort(db, sessionmaker):
    referee = await create_user(db)

    outcome = await complete_referral(sessionmaker, referrer_id=424242, referee_id=referee.id)

    assert outcome["points_granted"] is False
    assert outcome["coupon_code"] is not None
