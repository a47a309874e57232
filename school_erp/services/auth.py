"""Authentication service."""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from school_erp.core.security import verify_password
from school_erp.models.user import User


async def get_user_by_login(
    db: AsyncSession,
    *,
    email: str | None = None,
    mobile: str | None = None,
) -> User | None:
    """Find a user by email, falling back to mobile."""
    if email:
        result = await db.execute(select(User).where(User.email == email))
        return result.scalar_one_or_none()
    if mobile:
        result = await db.execute(select(User).where(User.mobile == mobile))
        return result.scalar_one_or_none()
    return None


async def authenticate_user(
    db: AsyncSession,
    password: str,
    *,
    email: str | None = None,
    mobile: str | None = None,
) -> User | None:
    """Authenticate user with email or mobile and password."""
    user = await get_user_by_login(db, email=email, mobile=mobile)

    if not user:
        return None

    if not verify_password(password, user.password_hash):
        return None

    return user
