from __future__ import annotations

from datetime import datetime, timedelta, timezone

import bcrypt
import jwt

from eventhub.core.config import settings

ACCESS_TOKEN = "access"
VERIFY_TOKEN = "verify"


class TokenError(Exception):
    pass


# -------------------------
# Password hashing (bcrypt)
# -------------------------
def hash_password(password: str) -> str:
    hashed = bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=settings.BCRYPT_ROUNDS))
    return hashed.decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # malformed stored hash
        return False


# -------------------------
# JWT tokens
# -------------------------
def _issue(token_type: str, user_id: int, ttl: timedelta, **claims) -> str:
    issued = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "type": token_type,
        "iat": int(issued.timestamp()),
        "exp": int((issued + ttl).timestamp()),
        **claims,
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALG)


def create_access_token(*, user_id: int, role: str) -> str:
    return _issue(ACCESS_TOKEN, user_id, timedelta(minutes=settings.JWT_ACCESS_MINUTES), role=role)


def create_verify_token(*, user_id: int) -> str:
    """Single-purpose token carried by the email verification link."""
    return _issue(VERIFY_TOKEN, user_id, timedelta(hours=settings.JWT_VERIFY_HOURS))


def decode_token(token: str, *, expected_type: str | None = None) -> dict:
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALG])
    except jwt.ExpiredSignatureError as e:
        raise TokenError("Token expired") from e
    except jwt.InvalidTokenError as e:
        raise TokenError("Invalid token") from e

    if expected_type is not None and payload.get("type") != expected_type:
        raise TokenError(f"Expected a {expected_type} token")
    return payload
