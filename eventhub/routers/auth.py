from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from eventhub.core.db import get_db, get_sessionmaker
from eventhub.core.errors import ValidationError
from eventhub.core.security import create_access_token
from eventhub.schemas.auth import AuthOut, LoginIn, RegisterIn, VerifyOut
from eventhub.schemas.users import UserOut
from eventhub.services.auth import authenticate, pending_referral, register_user, verify_email
from eventhub.services.referrals import complete_referral

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register", response_model=AuthOut, status_code=status.HTTP_201_CREATED)
async def register(
    payload: RegisterIn,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    sessionmaker: async_sessionmaker = Depends(get_sessionmaker),
) -> AuthOut:
    user = await register_user(
        db,
        email=payload.email,
        password=payload.password,
        name=payload.name,
        role=payload.role,
        referral_code=payload.referral_code,
    )

    referrer_id = pending_referral(user, trigger="registration")
    if referrer_id is not None:
        # runs after the response is sent; failures are logged only
        background_tasks.add_task(
            complete_referral,
            sessionmaker,
            referrer_id=referrer_id,
            referee_id=int(user.id),
        )

    token = create_access_token(user_id=int(user.id), role=user.role.value)
    return AuthOut(user=UserOut.model_validate(user), token=token)


@router.post("/login", response_model=AuthOut)
async def login(
    payload: LoginIn,
    db: AsyncSession = Depends(get_db),
) -> AuthOut:
    user = await authenticate(db, email=payload.email, password=payload.password)
    token = create_access_token(user_id=int(user.id), role=user.role.value)
    return AuthOut(user=UserOut.model_validate(user), token=token)


@router.post("/token")
async def login_form(
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: AsyncSession = Depends(get_db),
):
    # OAuth2 password flow for the interactive docs; "username" carries the email
    try:
        user = await authenticate(db, email=form_data.username, password=form_data.password)
    except ValidationError:
        raise HTTPException(status_code=401, detail="Invalid email or password")

    return {
        "access_token": create_access_token(user_id=int(user.id), role=user.role.value),
        "token_type": "bearer",
    }


@router.post("/verify/{token}", response_model=VerifyOut)
async def verify(
    token: str,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    sessionmaker: async_sessionmaker = Depends(get_sessionmaker),
) -> VerifyOut:
    user, newly_verified = await verify_email(db, token)

    if newly_verified:
        referrer_id = pending_referral(user, trigger="verification")
        if referrer_id is not None:
            background_tasks.add_task(
                complete_referral,
                sessionmaker,
                referrer_id=referrer_id,
                referee_id=int(user.id),
            )

    return VerifyOut(
        user_id=int(user.id),
        is_verified=True,
        message="Email verified" if newly_verified else "Email already verified",
    )
