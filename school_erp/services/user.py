"""User service."""

from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from school_erp.core.database import utcnow
from school_erp.core.errors import ConflictError
from school_erp.core.permissions import Role
from school_erp.core.security import get_password_hash, verify_password
from school_erp.models.user import User, UserStatus
from school_erp.schemas.user import UserCreate, UserUpdate


async def get_user_by_id(
    db: AsyncSession,
    user_id: UUID,
    school_id: UUID | None = None,
) -> User | None:
    """Get user by ID, optionally restricted to one school."""
    query = select(User).where(User.id == user_id)
    if school_id is not None:
        query = query.where(User.school_id == school_id)
    result = await db.execute(query)
    return result.scalar_one_or_none()


async def ensure_identifiers_free(
    db: AsyncSession,
    *,
    email: str | None,
    mobile: str | None,
    exclude_id: UUID | None = None,
) -> None:
    """Raise ConflictError if the email or mobile already belongs to someone."""
    conditions = []
    if email:
        conditions.append(User.email == email)
    if mobile:
        conditions.append(User.mobile == mobile)
    if not conditions:
        return

    query = select(User).where(or_(*conditions))
    if exclude_id is not None:
        query = query.where(User.id != exclude_id)
    existing = (await db.execute(query)).scalars().first()
    if existing is None:
        return
    if email and existing.email == email:
        raise ConflictError("A user with this email already exists")
    raise ConflictError("A user with this mobile number already exists")


def build_user(
    *,
    name: str,
    password: str,
    role: Role,
    school_id: UUID | None,
    email: str | None = None,
    mobile: str | None = None,
) -> User:
    """Construct an unsaved user with a hashed password."""
    return User(
        name=name,
        email=email,
        mobile=mobile,
        password_hash=get_password_hash(password),
        role=role,
        school_id=school_id,
        status=UserStatus.ACTIVE,
    )


async def get_users(
    db: AsyncSession,
    *,
    school_id: UUID | None = None,
    role: Role | None = None,
    status: UserStatus | None = None,
    search: str | None = None,
    skip: int = 0,
    limit: int = 20,
) -> tuple[list[User], int]:
    """Get list of users with optional filters."""
    query = select(User)

    if school_id is not None:
        query = query.where(User.school_id == school_id)
    if role is not None:
        query = query.where(User.role == role)
    if status is not None:
        query = query.where(User.status == status)
    if search:
        query = query.where(
            User.name.ilike(f"%{search}%")
            | User.email.ilike(f"%{search}%")
            | User.mobile.ilike(f"%{search}%")
        )

    total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar() or 0

    query = query.order_by(User.created_at.desc()).offset(skip).limit(limit)
    result = await db.execute(query)
    return list(result.scalars().all()), total


async def create_user(db: AsyncSession, user_data: UserCreate, school_id: UUID | None) -> User:
    """Create a new user."""
    await ensure_identifiers_free(db, email=user_data.email, mobile=user_data.mobile)

    user = build_user(
        name=user_data.name,
        email=user_data.email,
        mobile=user_data.mobile,
        password=user_data.password,
        role=user_data.role,
        school_id=school_id,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


async def update_user(db: AsyncSession, user: User, user_data: UserUpdate) -> User:
    """Update a user."""
    update_data = user_data.model_dump(exclude_unset=True)

    await ensure_identifiers_free(
        db,
        email=update_data.get("email"),
        mobile=update_data.get("mobile"),
        exclude_id=user.id,
    )

    for field, value in update_data.items():
        setattr(user, field, value)

    await db.commit()
    await db.refresh(user)
    return user


async def set_user_status(
    db: AsyncSession,
    user: User,
    status: UserStatus,
    changed_by: User,
) -> User:
    """Activate or deactivate a user."""
    user.status = status
    if status == UserStatus.INACTIVE:
        user.deactivated_at = utcnow()
        user.deactivated_by_id = changed_by.id
    else:
        user.deactivated_at = None
        user.deactivated_by_id = None
    await db.commit()
    await db.refresh(user)
    return user


async def change_password(
    db: AsyncSession,
    user: User,
    current_password: str,
    new_password: str,
) -> bool:
    """Change a user's password. Returns False if the current one is wrong."""
    if not verify_password(current_password, user.password_hash):
        return False

    user.password_hash = get_password_hash(new_password)
    await db.commit()
    return True
