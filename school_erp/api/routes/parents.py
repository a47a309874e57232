"""Parent routes."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from school_erp.core.database import get_db
from school_erp.core.deps import client_ip, enforce_school_isolation, require_roles
from school_erp.core.gating import check_maintenance_mode, require_active_subscription
from school_erp.core.permissions import Role
from school_erp.models.audit import AuditAction, EntityType
from school_erp.models.user import User
from school_erp.schemas.student import (
    ParentCreate,
    ParentListResponse,
    ParentResponse,
    StudentResponse,
)
from school_erp.services import audit as audit_service
from school_erp.services import student as student_service

router = APIRouter(
    prefix="/parents",
    tags=["Parents"],
    dependencies=[
        Depends(enforce_school_isolation),
        Depends(check_maintenance_mode),
        Depends(require_active_subscription(allow_read_only=True)),
    ],
)

OfficeUser = Annotated[User, Depends(require_roles(Role.PRINCIPAL, Role.OPERATOR))]


@router.get("/me/children", response_model=list[StudentResponse])
async def get_my_children(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_roles(Role.PARENT))],
) -> list[StudentResponse]:
    """Students linked to the calling parent."""
    parent = await student_service.get_parent_by_user(db, current_user.id)
    if not parent:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Parent profile not found",
        )
    children = await student_service.get_children(db, parent)
    return [StudentResponse.model_validate(c) for c in children]


@router.get("", response_model=ParentListResponse)
async def list_parents(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: OfficeUser,
    search: str | None = Query(None, description="Search by name, email or mobile"),
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
) -> ParentListResponse:
    parents, total = await student_service.get_parents(
        db,
        school_id=current_user.school_id,
        search=search,
        skip=skip,
        limit=limit,
    )
    return ParentListResponse(
        items=[ParentResponse.model_validate(p) for p in parents],
        total=total,
        skip=skip,
        limit=limit,
    )


@router.post("", response_model=ParentResponse, status_code=status.HTTP_201_CREATED)
async def create_parent(
    parent_data: ParentCreate,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: OfficeUser,
) -> ParentResponse:
    """Create a parent login and profile in the caller's school."""
    parent = await student_service.create_parent(db, current_user.school_id, parent_data)
    await audit_service.record(
        db,
        user=current_user,
        action=AuditAction.PARENT_CREATED,
        entity_type=EntityType.PARENT,
        entity_id=parent.id,
        description=f"Created parent {parent_data.name}",
        ip_address=client_ip(request),
    )
    return ParentResponse.model_validate(parent)


@router.get("/{parent_id}", response_model=ParentResponse)
async def get_parent(
    parent_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: OfficeUser,
) -> ParentResponse:
    parent = await student_service.get_parent_by_id(db, parent_id, current_user.school_id)
    if not parent:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Parent not found",
        )
    return ParentResponse.model_validate(parent)


@router.get("/{parent_id}/children", response_model=list[StudentResponse])
async def get_parent_children(
    parent_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: OfficeUser,
) -> list[StudentResponse]:
    parent = await student_service.get_parent_by_id(db, parent_id, current_user.school_id)
    if not parent:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Parent not found",
        )
    children = await student_service.get_children(db, parent)
    return [StudentResponse.model_validate(c) for c in children]
