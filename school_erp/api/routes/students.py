"""Student routes."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from school_erp.core.database import get_db
from school_erp.core.deps import SchoolUser, client_ip, enforce_school_isolation, require_roles
from school_erp.core.gating import (
    check_maintenance_mode,
    require_active_subscription,
    require_student_capacity,
)
from school_erp.core.permissions import OFFICE_ROLES, Role
from school_erp.models.audit import AuditAction, EntityType
from school_erp.models.student import Student, StudentStatus
from school_erp.models.user import User
from school_erp.schemas.student import (
    StudentCreate,
    StudentListResponse,
    StudentResponse,
    StudentStatusUpdate,
    StudentUpdate,
)
from school_erp.services import audit as audit_service
from school_erp.services import student as student_service

router = APIRouter(
    prefix="/students",
    tags=["Students"],
    dependencies=[
        Depends(enforce_school_isolation),
        Depends(check_maintenance_mode),
        Depends(require_active_subscription(allow_read_only=True)),
    ],
)

OfficeUser = Annotated[User, Depends(require_roles(Role.PRINCIPAL, Role.OPERATOR))]


# ============== Helper Functions ==============


async def get_student_or_404(db: AsyncSession, student_id: UUID, user: User) -> Student:
    student = await student_service.get_student_by_id(db, student_id, user.school_id)
    if not student:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Student not found",
        )
    return student


async def ensure_can_view(db: AsyncSession, user: User, student: Student) -> None:
    """Staff see every student of their school; parents only their children."""
    if user.role in (*OFFICE_ROLES, Role.TEACHER):
        return
    if user.role == Role.PARENT:
        parent = await student_service.get_parent_by_user(db, user.id)
        if parent is not None and parent.id == student.parent_id:
            return
    if user.role == Role.STUDENT and student.user_id == user.id:
        return
    raise HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail="Not enough permissions",
    )


async def audit_student(db, request: Request, user: User, student: Student, action: AuditAction, description: str):
    await audit_service.record(
        db,
        user=user,
        action=action,
        entity_type=EntityType.STUDENT,
        entity_id=student.id,
        session_id=student.session_id,
        description=description,
        ip_address=client_ip(request),
    )


# ============== Endpoints ==============


@router.get("", response_model=StudentListResponse)
async def list_students(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[
        User, Depends(require_roles(Role.PRINCIPAL, Role.OPERATOR, Role.TEACHER))
    ],
    session_id: UUID | None = Query(None, description="Filter by academic session"),
    class_id: UUID | None = Query(None, description="Filter by class"),
    section_id: UUID | None = Query(None, description="Filter by section"),
    student_status: StudentStatus | None = Query(None, alias="status"),
    search: str | None = Query(None, description="Search by name or roll number"),
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
) -> StudentListResponse:
    """List students of the caller's school."""
    students, total = await student_service.get_students(
        db,
        school_id=current_user.school_id,
        session_id=session_id,
        class_id=class_id,
        section_id=section_id,
        status=student_status,
        search=search,
        skip=skip,
        limit=limit,
    )
    return StudentListResponse(
        items=[StudentResponse.model_validate(s) for s in students],
        total=total,
        skip=skip,
        limit=limit,
    )


@router.post(
    "",
    response_model=StudentResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_student_capacity)],
)
async def create_student(
    student_data: StudentCreate,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: OfficeUser,
) -> StudentResponse:
    """
    Admit a student.

    The active session is used when no session_id is given. Roll numbers
    are unique per class within a session.
    """
    student = await student_service.create_student(db, current_user.school_id, student_data)
    await audit_student(
        db, request, current_user, student, AuditAction.STUDENT_CREATED, f"Admitted student {student.name}"
    )
    return StudentResponse.model_validate(student)


@router.get("/{student_id}", response_model=StudentResponse)
async def get_student(
    student_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: SchoolUser,
) -> StudentResponse:
    student = await get_student_or_404(db, student_id, current_user)
    await ensure_can_view(db, current_user, student)
    return StudentResponse.model_validate(student)


@router.patch("/{student_id}", response_model=StudentResponse)
async def update_student(
    student_id: UUID,
    student_data: StudentUpdate,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: OfficeUser,
) -> StudentResponse:
    student = await get_student_or_404(db, student_id, current_user)
    student = await student_service.update_student(db, student, student_data)
    await audit_student(
        db, request, current_user, student, AuditAction.STUDENT_UPDATED, f"Updated student {student.name}"
    )
    return StudentResponse.model_validate(student)


@router.patch("/{student_id}/status", response_model=StudentResponse)
async def update_student_status(
    student_id: UUID,
    status_data: StudentStatusUpdate,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: OfficeUser,
) -> StudentResponse:
    """Change a student's status. Students are never deleted."""
    student = await get_student_or_404(db, student_id, current_user)
    student = await student_service.set_student_status(db, student, status_data.status)
    await audit_student(
        db,
        request,
        current_user,
        student,
        AuditAction.STUDENT_UPDATED,
        f"Set student {student.name} {status_data.status.value}",
    )
    return StudentResponse.model_validate(student)
