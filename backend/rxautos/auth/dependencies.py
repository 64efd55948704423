"""FastAPI authentication dependencies for route protection."""

import uuid

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from sqlalchemy.ext.asyncio import AsyncSession

from rxautos.auth.jwt import ACCESS, decode_token
from rxautos.database import get_db
from rxautos.models.profile import Profile

# Strict bearer: FastAPI rejects requests without a token
_bearer_scheme = HTTPBearer()


def _unauthorized(detail: str = "Could not validate credentials") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(_bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> Profile:
    """Validate the Bearer access token and return the profile it names.

    Raises:
        HTTPException 401: Invalid/expired token, refresh token, unknown profile.
    """
    try:
        payload = decode_token(credentials.credentials)
    except JWTError:
        raise _unauthorized() from None

    if payload.get("type") != ACCESS:
        raise _unauthorized("Invalid token type")

    try:
        profile_id = uuid.UUID(payload.get("sub") or "")
    except ValueError:
        raise _unauthorized() from None

    profile = await db.get(Profile, profile_id)
    if profile is None:
        raise _unauthorized()
    return profile


async def get_current_active_user(user: Profile = Depends(get_current_user)) -> Profile:
    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is inactive",
        )
    return user


async def get_current_admin(user: Profile = Depends(get_current_active_user)) -> Profile:
    if user.role != "admin":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return user
