"""Password hashing and JWT helpers."""

from datetime import timedelta
from typing import Any

import bcrypt
import jwt

from school_erp.core.config import settings
from school_erp.core.database import utcnow


def get_password_hash(password: str) -> str:
    """Hash a password with bcrypt."""
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain_password: str, password_hash: str) -> bool:
    """Check a plain password against a stored bcrypt hash."""
    try:
        return bcrypt.checkpw(plain_password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


def _encode(data: dict[str, Any], expires_delta: timedelta, token_type: str) -> str:
    now = utcnow()
    payload = {
        **data,
        "type": token_type,
        "iat": int(now.timestamp()),
        "exp": int((now + expires_delta).timestamp()),
    }
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def create_access_token(data: dict[str, Any], expires_delta: timedelta | None = None) -> str:
    """Create a signed access token carrying the given claims."""
    return _encode(
        data,
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
        "access",
    )


def create_refresh_token(data: dict[str, Any]) -> str:
    """Create a long-lived refresh token."""
    return _encode(data, timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS), "refresh")


def decode_access_token(token: str) -> dict[str, Any] | None:
    """Decode a token. Returns None when it is expired or invalid."""
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except jwt.ExpiredSignatureError:
        return None
    except jwt.InvalidTokenError:
        return None


def token_claims(user) -> dict[str, Any]:
    """Claims embedded in every token issued for a user."""
    return {
        "sub": str(user.id),
        "userId": str(user.id),
        "role": user.role,
        "schoolId": str(user.school_id) if user.school_id else None,
    }
