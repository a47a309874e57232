"""Attendance routes."""

from datetime import date
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from school_erp.core.database import get_db
from school_erp.core.deps import SchoolUser, enforce_school_isolation, require_roles
from school_erp.core.gating import (
    ActiveSession,
    check_maintenance_mode,
    require_active_subscription,
    require_module,
)
from school_erp.core.permissions import Role
from school_erp.core.plans import SchoolModule
from school_erp.models.user import User
from school_erp.schemas.attendance import (
    AttendanceSummary,
    DailyAttendanceMark,
    DailyAttendanceResponse,
    SubjectAttendanceMark,
    SubjectAttendanceResponse,
    TeacherAttendanceMark,
    TeacherAttendanceResponse,
)
from school_erp.services import attendance as attendance_service
from school_erp.services import student as student_service

router = APIRouter(
    prefix="/attendance",
    tags=["Attendance"],
    dependencies=[
        Depends(enforce_school_isolation),
        Depends(check_maintenance_mode),
        Depends(require_active_subscription(allow_read_only=True)),
        Depends(require_module(SchoolModule.ATTENDANCE)),
    ],
)

Marker = Annotated[User, Depends(require_roles(Role.PRINCIPAL, Role.OPERATOR, Role.TEACHER))]
OfficeUser = Annotated[User, Depends(require_roles(Role.PRINCIPAL, Role.OPERATOR))]


# ============== Students ==============


@router.post("/daily", response_model=list[DailyAttendanceResponse])
async def mark_daily_attendance(
    mark_data: DailyAttendanceMark,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Marker,
    session: ActiveSession,
) -> list[DailyAttendanceResponse]:
    """Mark a class present/absent for a day. Existing marks are overwritten."""
    rows = await attendance_service.mark_daily(
        db,
        school_id=current_user.school_id,
        session_id=session.id,
        marked_by=current_user,
        mark_data=mark_data,
    )
    return [DailyAttendanceResponse.model_validate(r) for r in rows]


@router.get("/daily", response_model=list[DailyAttendanceResponse])
async def get_daily_attendance(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Marker,
    class_id: UUID = Query(..., description="Class ID"),
    attendance_date: date = Query(..., alias="date", description="Attendance date"),
) -> list[DailyAttendanceResponse]:
    rows = await attendance_service.get_daily(db, current_user.school_id, class_id, attendance_date)
    return [DailyAttendanceResponse.model_validate(r) for r in rows]


@router.post("/subject", response_model=list[SubjectAttendanceResponse])
async def mark_subject_attendance(
    mark_data: SubjectAttendanceMark,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Marker,
    session: ActiveSession,
) -> list[SubjectAttendanceResponse]:
    rows = await attendance_service.mark_subject(
        db,
        school_id=current_user.school_id,
        session_id=session.id,
        marked_by=current_user,
        mark_data=mark_data,
    )
    return [SubjectAttendanceResponse.model_validate(r) for r in rows]


@router.get("/subject", response_model=list[SubjectAttendanceResponse])
async def get_subject_attendance(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Marker,
    subject_id: UUID = Query(..., description="Subject ID"),
    attendance_date: date = Query(..., alias="date", description="Attendance date"),
) -> list[SubjectAttendanceResponse]:
    rows = await attendance_service.get_subject(db, current_user.school_id, subject_id, attendance_date)
    return [SubjectAttendanceResponse.model_validate(r) for r in rows]


@router.get("/students/{student_id}/summary", response_model=AttendanceSummary)
async def get_student_summary(
    student_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: SchoolUser,
    session_id: UUID | None = Query(None, description="Limit to one session"),
) -> AttendanceSummary:
    """Present/absent totals for a student. Parents may view their own children."""
    student = await student_service.get_student_by_id(db, student_id, current_user.school_id)
    if not student:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Student not found",
        )
    if current_user.role == Role.PARENT:
        parent = await student_service.get_parent_by_user(db, current_user.id)
        if parent is None or parent.id != student.parent_id:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Not enough permissions",
            )
    elif current_user.role not in (Role.PRINCIPAL, Role.OPERATOR, Role.TEACHER):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not enough permissions",
        )

    summary = await attendance_service.student_summary(db, current_user.school_id, student.id, session_id)
    return AttendanceSummary(**summary)


# ============== Staff ==============


@router.post("/teachers", response_model=list[TeacherAttendanceResponse])
async def mark_teacher_attendance(
    mark_data: TeacherAttendanceMark,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: OfficeUser,
) -> list[TeacherAttendanceResponse]:
    """Mark staff attendance. Present days feed the payroll calculation."""
    rows = await attendance_service.mark_teachers(
        db,
        school_id=current_user.school_id,
        marked_by=current_user,
        mark_data=mark_data,
    )
    return [TeacherAttendanceResponse.model_validate(r) for r in rows]


@router.get("/teachers", response_model=list[TeacherAttendanceResponse])
async def get_teacher_attendance(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: OfficeUser,
    attendance_date: date | None = Query(None, alias="date"),
    teacher_id: UUID | None = Query(None),
    date_from: date | None = Query(None),
    date_to: date | None = Query(None),
) -> list[TeacherAttendanceResponse]:
    rows = await attendance_service.get_teacher_attendance(
        db,
        current_user.school_id,
        attendance_date=attendance_date,
        teacher_id=teacher_id,
        date_from=date_from,
        date_to=date_to,
    )
    return [TeacherAttendanceResponse.model_validate(r) for r in rows]
