"""User management routes."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from school_erp.core.database import get_db
from school_erp.core.deps import SchoolUser, client_ip, resolve_school_id
from school_erp.core.gating import check_maintenance_mode, require_active_subscription
from school_erp.core.permissions import Role, can_assign_role
from school_erp.models.audit import AuditAction, EntityType
from school_erp.models.school import School
from school_erp.models.user import UserStatus
from school_erp.schemas.user import UserCreate, UserListResponse, UserResponse, UserUpdate
from school_erp.services import audit as audit_service
from school_erp.services import user as user_service

router = APIRouter(
    prefix="/users",
    tags=["Users"],
    dependencies=[
        Depends(check_maintenance_mode),
        Depends(require_active_subscription(allow_read_only=True)),
    ],
)


class UserStatusUpdate(BaseModel):
    status: UserStatus


# ============== Helper Functions ==============


def can_manage_users(user) -> bool:
    """Check if user has permission to manage other users."""
    return user.role in (Role.SUPER_ADMIN, Role.PRINCIPAL, Role.OPERATOR)


def ensure_can_manage(user) -> None:
    if not can_manage_users(user):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not enough permissions",
        )


def ensure_can_assign(actor, role: Role) -> None:
    if not can_assign_role(actor.role, role):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"You cannot assign the {role.value} role",
        )


# ============== Endpoints ==============


@router.get("", response_model=UserListResponse)
async def list_users(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: SchoolUser,
    school_id: UUID | None = Query(None, description="Filter by school ID (super admin)"),
    role: Role | None = Query(None, description="Filter by role"),
    user_status: UserStatus | None = Query(None, alias="status", description="Filter by status"),
    search: str | None = Query(None, description="Search by name, email or mobile"),
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
) -> UserListResponse:
    """
    List users.

    - SUPER_ADMIN: all users, optionally filtered by school_id
    - PRINCIPAL/OPERATOR: users of their own school
    """
    ensure_can_manage(current_user)

    if not current_user.is_super_admin:
        school_id = current_user.school_id

    users, total = await user_service.get_users(
        db,
        school_id=school_id,
        role=role,
        status=user_status,
        search=search,
        skip=skip,
        limit=limit,
    )
    return UserListResponse(
        items=[UserResponse.model_validate(u) for u in users],
        total=total,
        skip=skip,
        limit=limit,
    )


@router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
    user_data: UserCreate,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: SchoolUser,
) -> UserResponse:
    """
    Create a user in a school.

    The new user's role must rank strictly below the creator's.
    """
    ensure_can_manage(current_user)
    ensure_can_assign(current_user, user_data.role)

    if user_data.role == Role.SUPER_ADMIN:
        school_id = None
    else:
        school_id = resolve_school_id(current_user, user_data.school_id)
        if await db.get(School, school_id) is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="School not found",
            )

    user = await user_service.create_user(db, user_data, school_id)
    await audit_service.record(
        db,
        user=current_user,
        action=AuditAction.USER_CREATED,
        entity_type=EntityType.USER,
        entity_id=user.id,
        school_id=school_id,
        description=f"Created {user.role} user {user.name}",
        ip_address=client_ip(request),
    )
    return UserResponse.model_validate(user)


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: SchoolUser,
) -> UserResponse:
    """Get a user from the caller's school."""
    ensure_can_manage(current_user)

    scope = None if current_user.is_super_admin else current_user.school_id
    user = await user_service.get_user_by_id(db, user_id, school_id=scope)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found",
        )
    return UserResponse.model_validate(user)


@router.patch("/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: UUID,
    user_data: UserUpdate,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: SchoolUser,
) -> UserResponse:
    """Update a user's details or role."""
    ensure_can_manage(current_user)

    scope = None if current_user.is_super_admin else current_user.school_id
    user = await user_service.get_user_by_id(db, user_id, school_id=scope)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found",
        )

    # Can only edit users below you, and only hand out roles below you
    ensure_can_assign(current_user, Role(user.role))
    if user_data.role is not None:
        ensure_can_assign(current_user, user_data.role)

    old_role = user.role
    user = await user_service.update_user(db, user, user_data)

    action = AuditAction.ROLE_CHANGED if user.role != old_role else AuditAction.USER_UPDATED
    await audit_service.record(
        db,
        user=current_user,
        action=action,
        entity_type=EntityType.USER,
        entity_id=user.id,
        school_id=user.school_id,
        description=f"Updated user {user.name}",
        ip_address=client_ip(request),
    )
    return UserResponse.model_validate(user)


@router.patch("/{user_id}/status", response_model=UserResponse)
async def update_user_status(
    user_id: UUID,
    status_data: UserStatusUpdate,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: SchoolUser,
) -> UserResponse:
    """Deactivate or reactivate a user."""
    ensure_can_manage(current_user)

    if user_id == current_user.id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="You cannot change your own status",
        )

    scope = None if current_user.is_super_admin else current_user.school_id
    user = await user_service.get_user_by_id(db, user_id, school_id=scope)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found",
        )
    ensure_can_assign(current_user, Role(user.role))

    user = await user_service.set_user_status(db, user, status_data.status, current_user)
    await audit_service.record(
        db,
        user=current_user,
        action=AuditAction.USER_DEACTIVATED
        if status_data.status == UserStatus.INACTIVE
        else AuditAction.USER_UPDATED,
        entity_type=EntityType.USER,
        entity_id=user.id,
        school_id=user.school_id,
        description=f"Set user {user.name} {status_data.status.value}",
        ip_address=client_ip(request),
    )
    return UserResponse.model_validate(user)
