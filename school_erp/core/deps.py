"""Dependencies for FastAPI routes."""

import json
from typing import Annotated
from uuid import UUID

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from school_erp.core.config import settings
from school_erp.core.database import get_db
from school_erp.core.permissions import Role, has_min_role
from school_erp.core.security import decode_access_token
from school_erp.models.user import User

oauth2_scheme = OAuth2PasswordBearer(tokenUrl=f"{settings.API_PREFIX}/auth/login/form")

CROSS_SCHOOL_DETAIL = "Access denied. Cannot access other school's data."


async def get_current_user(
    token: Annotated[str, Depends(oauth2_scheme)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> User:
    """Get current authenticated user from JWT token."""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    payload = decode_access_token(token)
    if payload is None or payload.get("type") != "access":
        raise credentials_exception

    user_id: str | None = payload.get("sub")
    if user_id is None:
        raise credentials_exception

    try:
        uuid_id = UUID(user_id)
    except ValueError:
        raise credentials_exception

    result = await db.execute(select(User).where(User.id == uuid_id))
    user = result.scalar_one_or_none()

    if user is None:
        raise credentials_exception

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is inactive",
        )

    return user


def require_roles(*roles: Role):
    """Dependency factory to check if user has one of the specified roles."""

    async def role_checker(
        current_user: Annotated[User, Depends(get_current_user)],
    ) -> User:
        if current_user.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Not enough permissions",
            )
        return current_user

    return role_checker


def require_min_role(minimum: Role):
    """Dependency factory to check the user's role level is at least `minimum`."""

    async def level_checker(
        current_user: Annotated[User, Depends(get_current_user)],
    ) -> User:
        if not has_min_role(current_user.role, minimum):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Not enough permissions",
            )
        return current_user

    return level_checker


async def _requested_school_ids(request: Request) -> list[str]:
    """Every school_id the client named in path, query or JSON body."""
    found = []
    for source in (request.path_params, request.query_params):
        value = source.get("school_id")
        if value:
            found.append(str(value))

    if request.method in ("POST", "PUT", "PATCH") and "json" in request.headers.get("content-type", ""):
        body = await request.body()
        if body:
            try:
                data = json.loads(body)
            except ValueError:
                data = None
            if isinstance(data, dict) and data.get("school_id"):
                found.append(str(data["school_id"]))
    return found


async def enforce_school_isolation(
    request: Request,
    current_user: Annotated[User, Depends(get_current_user)],
) -> User:
    """Reject requests that name a school other than the caller's own."""
    if current_user.is_super_admin:
        return current_user

    if current_user.school_id is None:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User is not assigned to any school",
        )

    own = str(current_user.school_id)
    for requested in await _requested_school_ids(request):
        if requested != own:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=CROSS_SCHOOL_DETAIL,
            )
    return current_user


def resolve_school_id(user: User, requested: UUID | None = None) -> UUID:
    """The school a request operates on.

    Super admins must name one; everyone else is pinned to their own.
    """
    if user.is_super_admin:
        if requested is None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="school_id is required",
            )
        return requested

    if requested is not None and requested != user.school_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=CROSS_SCHOOL_DETAIL,
        )
    return user.school_id


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


# Common dependency aliases
CurrentUser = Annotated[User, Depends(get_current_user)]
SchoolUser = Annotated[User, Depends(enforce_school_isolation)]
