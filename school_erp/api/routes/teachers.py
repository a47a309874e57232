"""Teacher routes."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from school_erp.core.database import get_db
from school_erp.core.deps import client_ip, enforce_school_isolation, require_roles
from school_erp.core.gating import (
    check_maintenance_mode,
    require_active_subscription,
    require_teacher_capacity,
)
from school_erp.core.permissions import Role
from school_erp.models.audit import AuditAction, EntityType
from school_erp.models.student import Teacher
from school_erp.models.user import User
from school_erp.schemas.student import (
    TeacherAssignmentUpdate,
    TeacherCreate,
    TeacherListResponse,
    TeacherResponse,
)
from school_erp.services import audit as audit_service
from school_erp.services import student as student_service

router = APIRouter(
    prefix="/teachers",
    tags=["Teachers"],
    dependencies=[
        Depends(enforce_school_isolation),
        Depends(check_maintenance_mode),
        Depends(require_active_subscription(allow_read_only=True)),
    ],
)

OfficeUser = Annotated[User, Depends(require_roles(Role.PRINCIPAL, Role.OPERATOR))]


async def get_teacher_or_404(db: AsyncSession, teacher_id: UUID, user: User) -> Teacher:
    teacher = await student_service.get_teacher_by_id(db, teacher_id, user.school_id)
    if not teacher:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Teacher not found",
        )
    return teacher


@router.get("", response_model=TeacherListResponse)
async def list_teachers(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: OfficeUser,
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
) -> TeacherListResponse:
    teachers, total = await student_service.get_teachers(
        db,
        school_id=current_user.school_id,
        skip=skip,
        limit=limit,
    )
    return TeacherListResponse(
        items=[TeacherResponse.model_validate(t) for t in teachers],
        total=total,
        skip=skip,
        limit=limit,
    )


@router.get("/me", response_model=TeacherResponse)
async def get_my_profile(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_roles(Role.TEACHER))],
) -> TeacherResponse:
    teacher = await student_service.get_teacher_by_user(db, current_user.id)
    if not teacher:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Teacher profile not found",
        )
    return TeacherResponse.model_validate(teacher)


@router.post(
    "",
    response_model=TeacherResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_teacher_capacity)],
)
async def create_teacher(
    teacher_data: TeacherCreate,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: OfficeUser,
) -> TeacherResponse:
    """Create a teacher login and profile. Counts against the plan's teacher limit."""
    teacher = await student_service.create_teacher(db, current_user.school_id, teacher_data)
    await audit_service.record(
        db,
        user=current_user,
        action=AuditAction.TEACHER_CREATED,
        entity_type=EntityType.TEACHER,
        entity_id=teacher.id,
        description=f"Created teacher {teacher_data.name}",
        ip_address=client_ip(request),
    )
    return TeacherResponse.model_validate(teacher)


@router.get("/{teacher_id}", response_model=TeacherResponse)
async def get_teacher(
    teacher_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: OfficeUser,
) -> TeacherResponse:
    teacher = await get_teacher_or_404(db, teacher_id, current_user)
    return TeacherResponse.model_validate(teacher)


@router.put("/{teacher_id}/assignments", response_model=TeacherResponse)
async def update_assignments(
    teacher_id: UUID,
    assignment_data: TeacherAssignmentUpdate,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: OfficeUser,
) -> TeacherResponse:
    """Replace the classes and/or subjects a teacher is assigned to."""
    teacher = await get_teacher_or_404(db, teacher_id, current_user)
    teacher = await student_service.update_assignments(db, teacher, assignment_data)
    await audit_service.record(
        db,
        user=current_user,
        action=AuditAction.TEACHER_UPDATED,
        entity_type=EntityType.TEACHER,
        entity_id=teacher.id,
        description=f"Updated assignments for {teacher.name}",
        ip_address=client_ip(request),
    )
    return TeacherResponse.model_validate(teacher)
