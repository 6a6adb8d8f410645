from __future__ import annotations

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession

from eventhub.core.db import get_db
from eventhub.core.security import ACCESS_TOKEN, TokenError, decode_token
from eventhub.models.user import User, UserRole

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/token")


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Bearer access token -> User row. Every failure is a 401."""
    try:
        claims = decode_token(token, expected_type=ACCESS_TOKEN)
        user_id = int(claims["sub"])
    except TokenError as e:
        raise _unauthorized(str(e))
    except (KeyError, TypeError, ValueError):
        raise _unauthorized("Token carries no usable user id")

    user = await db.get(User, user_id)
    if user is None:
        raise _unauthorized("User not found")

    return user


def require_role(role: UserRole):
    def _check(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role != role:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=f"{role.value.title()} only")
        return current_user

    return _check


require_organizer = require_role(UserRole.ORGANIZER)
