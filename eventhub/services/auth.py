from __future__ import annotations

from loguru import logger
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from eventhub.core.config import settings
from eventhub.core.errors import Conflict, MarketplaceError, NotFound, StorageFailure, ValidationError
from eventhub.core.security import (
    VERIFY_TOKEN,
    TokenError,
    create_verify_token,
    decode_token,
    hash_password,
    verify_password,
)
from eventhub.models.user import User, UserRole
from eventhub.services.coupons import generate_unique_code


def _normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def pending_referral(user: User, *, trigger: str) -> int | None:
    """
    Referrer id whose reward should fire now, given which event just happened
    ("registration" or "verification") and the configured REFERRAL_TRIGGER.
    """
    if user.referred_by_id is None:
        return None
    if settings.REFERRAL_TRIGGER != trigger:
        return None
    return int(user.referred_by_id)


async def register_user(
    db: AsyncSession,
    *,
    email: str,
    password: str,
    name: str,
    role: UserRole,
    referral_code: str | None = None,
) -> User:
    clean_email = _normalize_email(email)

    res = await db.execute(select(User.id).where(User.email == clean_email))
    if res.scalar_one_or_none() is not None:
        raise Conflict("User already exists")

    referred_by_id = None
    if referral_code:
        res = await db.execute(select(User.id).where(User.referral_code == referral_code.strip().upper()))
        referred_by_id = res.scalar_one_or_none()
        if referred_by_id is None:
            logger.info("No referrer found for referral code", referral_code=referral_code)

    try:
        user = User(
            email=clean_email,
            password_hash=hash_password(password),
            name=name.strip(),
            role=role,
            points=0,
            referral_code=await generate_unique_code(db, User.referral_code),
            referred_by_id=referred_by_id,
            is_verified=False,
        )
        db.add(user)

        await db.commit()
        await db.refresh(user)

    except MarketplaceError:
        await db.rollback()
        raise
    except IntegrityError as e:
        await db.rollback()
        raise Conflict("User already exists") from e
    except SQLAlchemyError as e:
        await db.rollback()
        logger.exception("Registration failed", email=clean_email)
        raise StorageFailure("Error registering user") from e

    # No mail transport here; the link token goes to the log for the mailer to pick up.
    logger.info(
        "User registered",
        user_id=user.id,
        role=user.role.value,
        referred_by_id=referred_by_id,
        verification_token=create_verify_token(user_id=user.id),
    )
    return user


async def authenticate(db: AsyncSession, *, email: str, password: str) -> User:
    res = await db.execute(select(User).where(User.email == _normalize_email(email)))
    user = res.scalar_one_or_none()

    if user is None or not verify_password(password, user.password_hash):
        raise ValidationError("Invalid credentials")

    return user


async def verify_email(db: AsyncSession, token: str) -> tuple[User, bool]:
    """
    Mark the token's user as verified.
    Returns (user, newly_verified); repeating the call is harmless.
    """
    try:
        payload = decode_token(token, expected_type=VERIFY_TOKEN)
        user_id = int(payload["sub"])
    except (TokenError, KeyError, ValueError) as e:
        raise ValidationError("Invalid or expired verification token") from e

    res = await db.execute(select(User).where(User.id == user_id).with_for_update())
    user = res.scalar_one_or_none()
    if user is None:
        raise NotFound("User not found")

    if user.is_verified:
        return user, False

    try:
        user.is_verified = True
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.exception("Email verification failed", user_id=user_id)
        raise StorageFailure("Error verifying email") from e

    logger.info("Email verified", user_id=user_id)
    return user, True
