"""Academic history routes."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from school_erp.core.database import get_db
from school_erp.core.deps import SchoolUser, enforce_school_isolation
from school_erp.core.gating import check_maintenance_mode, require_active_subscription, require_module
from school_erp.core.permissions import OFFICE_ROLES, Role
from school_erp.core.plans import SchoolModule
from school_erp.schemas.record import AcademicHistoryResponse
from school_erp.services import record as record_service
from school_erp.services import student as student_service

router = APIRouter(
    prefix="/academic-history",
    tags=["Academic History"],
    dependencies=[
        Depends(enforce_school_isolation),
        Depends(check_maintenance_mode),
        Depends(require_active_subscription(allow_read_only=True)),
        Depends(require_module(SchoolModule.ACADEMIC_HISTORY)),
    ],
)


@router.get("/students/{student_id}", response_model=list[AcademicHistoryResponse])
async def get_student_history(
    student_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: SchoolUser,
) -> list[AcademicHistoryResponse]:
    """A student's history across sessions. Parents and students see only their own."""
    if current_user.role not in (*OFFICE_ROLES, Role.TEACHER):
        if student_id not in await student_service.own_student_ids(db, current_user):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Access denied",
            )
    history = await record_service.get_history(db, current_user.school_id, student_id)
    return [AcademicHistoryResponse.model_validate(h) for h in history]
