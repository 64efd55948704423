"""JWT access/refresh tokens for RX Autos accounts."""

from datetime import datetime, timedelta, timezone

from jose import jwt

from rxautos.config import settings

ACCESS = "access"
REFRESH = "refresh"


def _encode(data: dict, token_type: str, lifetime: timedelta) -> str:
    now = datetime.now(timezone.utc)
    claims = {**data, "iat": now, "exp": now + lifetime, "iss": settings.jwt_issuer, "type": token_type}
    return jwt.encode(claims, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def create_access_token(data: dict, expires_delta: timedelta | None = None) -> str:
    """Short-lived token for API calls. ``data`` must carry ``sub`` (profile id)."""
    return _encode(data, ACCESS, expires_delta or timedelta(minutes=settings.jwt_access_token_expire_minutes))


def create_refresh_token(data: dict, expires_delta: timedelta | None = None) -> str:
    """Long-lived token accepted only by ``/auth/refresh``."""
    return _encode(data, REFRESH, expires_delta or timedelta(days=settings.jwt_refresh_token_expire_days))


def decode_token(token: str) -> dict:
    """Verify signature, expiry and issuer.

    Raises:
        jose.JWTError: If the token is invalid, expired, or from another issuer.
    """
    return jwt.decode(
        token,
        settings.jwt_secret_key,
        algorithms=[settings.jwt_algorithm],
        issuer=settings.jwt_issuer,
    )


def create_token_pair(profile_id: str) -> dict[str, str]:
    payload = {"sub": profile_id}
    return {
        "access_token": create_access_token(payload),
        "refresh_token": create_refresh_token(payload),
        "token_type": "bearer",
    }
