"""Auth API router: register, login, refresh, me."""

import logging
import uuid

from fastapi import APIRouter, Depends, HTTPException, status
from jose import JWTError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from rxautos.auth.dependencies import get_current_active_user
from rxautos.auth.jwt import REFRESH, create_token_pair, decode_token
from rxautos.auth.passwords import hash_password, verify_password
from rxautos.config import settings
from rxautos.database import get_db
from rxautos.models.profile import Profile
from rxautos.schemas.auth import (
    AuthResponse,
    LoginRequest,
    RefreshRequest,
    RegisterRequest,
    TokenResponse,
    UserResponse,
)
from rxautos.services.trial_service import create_trial_period
from rxautos.utils.documents import only_digits, validate_phone

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/auth", tags=["auth"])


def _invalid_refresh(detail: str = "Invalid or expired refresh token") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


# ---------------------------------------------------------------------------
# POST /register
# ---------------------------------------------------------------------------


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def register(body: RegisterRequest, db: AsyncSession = Depends(get_db)) -> AuthResponse:
    """Create an account; new accounts start on the base plan with a free trial."""
    if body.phone and not validate_phone(body.phone):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"message": "Invalid phone number", "field": "phone"},
        )

    result = await db.execute(select(Profile).where(Profile.email == body.email))
    if result.scalar_one_or_none() is not None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Email already registered",
        )

    user = Profile(
        email=body.email,
        hashed_password=hash_password(body.password),
        full_name=body.full_name,
        phone=only_digits(body.phone) if body.phone else None,
        account_type=body.account_type,
        plan=settings.auto_trial_plan,
    )
    db.add(user)
    await db.flush()

    if settings.auto_trial_on_signup:
        await create_trial_period(db, user.id, settings.auto_trial_plan)

    await db.refresh(user)
    logger.info("Registered profile %s (%s)", user.id, user.account_type)

    return AuthResponse(
        user=UserResponse.model_validate(user),
        tokens=TokenResponse(**create_token_pair(str(user.id))),
    )


# ---------------------------------------------------------------------------
# POST /login
# ---------------------------------------------------------------------------


@router.post("/login", response_model=AuthResponse)
async def login(body: LoginRequest, db: AsyncSession = Depends(get_db)) -> AuthResponse:
    result = await db.execute(select(Profile).where(Profile.email == body.email))
    user = result.scalar_one_or_none()

    if user is None or not verify_password(body.password, user.hashed_password):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is inactive",
        )

    return AuthResponse(
        user=UserResponse.model_validate(user),
        tokens=TokenResponse(**create_token_pair(str(user.id))),
    )


# ---------------------------------------------------------------------------
# POST /refresh
# ---------------------------------------------------------------------------


@router.post("/refresh", response_model=TokenResponse)
async def refresh(body: RefreshRequest, db: AsyncSession = Depends(get_db)) -> TokenResponse:
    """Exchange a valid refresh token for a new token pair."""
    try:
        payload = decode_token(body.refresh_token)
    except JWTError:
        raise _invalid_refresh() from None

    if payload.get("type") != REFRESH:
        raise _invalid_refresh("Invalid token type")

    try:
        user_id = uuid.UUID(payload.get("sub") or "")
    except ValueError:
        raise _invalid_refresh("Invalid token payload") from None

    user = await db.get(Profile, user_id)
    if user is None or not user.is_active:
        raise _invalid_refresh("User not found or inactive")

    return TokenResponse(**create_token_pair(str(user.id)))


# ---------------------------------------------------------------------------
# GET /me
# ---------------------------------------------------------------------------


@router.get("/me", response_model=UserResponse)
async def me(current_user: Profile = Depends(get_current_active_user)) -> UserResponse:
    return UserResponse.model_validate(current_user)
