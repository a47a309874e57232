"""Homework routes."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from school_erp.core.database import get_db
from school_erp.core.deps import enforce_school_isolation, require_roles
from school_erp.core.gating import ActiveSession, check_maintenance_mode, require_active_subscription, require_module
from school_erp.core.permissions import Role
from school_erp.core.plans import SchoolModule
from school_erp.models.user import User
from school_erp.schemas.expense import HomeworkCreate, HomeworkResponse
from school_erp.services import expense as expense_service
from school_erp.services import student as student_service

router = APIRouter(
    prefix="/homework",
    tags=["Homework"],
    dependencies=[
        Depends(enforce_school_isolation),
        Depends(check_maintenance_mode),
        Depends(require_active_subscription(allow_read_only=True)),
        Depends(require_module(SchoolModule.HOMEWORK)),
    ],
)

Marker = Annotated[User, Depends(require_roles(Role.PRINCIPAL, Role.OPERATOR, Role.TEACHER))]
FamilyUser = Annotated[User, Depends(require_roles(Role.PARENT, Role.STUDENT))]


@router.post("", response_model=HomeworkResponse, status_code=status.HTTP_201_CREATED)
async def create_homework(
    homework_data: HomeworkCreate,
    session: ActiveSession,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Marker,
) -> HomeworkResponse:
    homework = await expense_service.create_homework(db, session, current_user, homework_data)
    return HomeworkResponse.model_validate(homework)


@router.get("/me", response_model=list[HomeworkResponse])
async def my_homework(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: FamilyUser,
) -> list[HomeworkResponse]:
    """Homework for the caller's children, or for the student themselves."""
    student_ids = await student_service.own_student_ids(db, current_user)
    items = await expense_service.get_homework_for_students(db, current_user.school_id, student_ids)
    return [HomeworkResponse.model_validate(h) for h in items]


@router.get("/classes/{class_id}", response_model=list[HomeworkResponse])
async def class_homework(
    class_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Marker,
    section_id: UUID | None = None,
    subject_id: UUID | None = None,
) -> list[HomeworkResponse]:
    items = await expense_service.get_homework(db, current_user.school_id, class_id, section_id, subject_id)
    return [HomeworkResponse.model_validate(h) for h in items]
