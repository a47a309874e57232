"""Reporting and dashboard routes."""

from datetime import date
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession

from school_erp.core.database import get_db
from school_erp.core.deps import CurrentUser, enforce_school_isolation, require_roles, resolve_school_id
from school_erp.core.gating import check_maintenance_mode, require_active_subscription, require_module
from school_erp.core.permissions import Role
from school_erp.core.plans import SchoolModule
from school_erp.models.record import HistoryStatus
from school_erp.models.user import User
from school_erp.schemas.report import (
    AttendanceReport,
    DashboardResponse,
    FeeCollectionReport,
    ProfitLossReport,
    RetentionReport,
    StatusCounts,
    StudentHistoryRow,
    TCReport,
)
from school_erp.services import excel as excel_service
from school_erp.services import report as report_service

router = APIRouter(
    prefix="/reports",
    tags=["Reports"],
    dependencies=[
        Depends(enforce_school_isolation),
        Depends(check_maintenance_mode),
        Depends(require_active_subscription(allow_read_only=True)),
        Depends(require_module(SchoolModule.REPORTS)),
    ],
)

dashboard_router = APIRouter(
    prefix="/dashboard",
    tags=["Dashboard"],
    dependencies=[Depends(enforce_school_isolation), Depends(check_maintenance_mode)],
)

ReportUser = Annotated[User, Depends(require_roles(Role.SUPER_ADMIN, Role.PRINCIPAL, Role.OPERATOR))]

HISTORY_HEADERS = ["Student", "Class", "Roll Number", "Status", "Percentage"]


@router.get("/fee-collection", response_model=FeeCollectionReport)
async def fee_collection(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: ReportUser,
    school_id: UUID | None = None,
    session_id: UUID | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
) -> FeeCollectionReport:
    target = resolve_school_id(current_user, school_id)
    return await report_service.fee_collection(db, target, session_id, date_from, date_to)


@router.get("/profit-loss", response_model=ProfitLossReport)
async def profit_and_loss(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: ReportUser,
    school_id: UUID | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
) -> ProfitLossReport:
    """Income (fees and exam fees) against expenses and salaries paid."""
    target = resolve_school_id(current_user, school_id)
    return await report_service.profit_and_loss(db, target, date_from, date_to)


@router.get("/attendance", response_model=AttendanceReport)
async def attendance(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: ReportUser,
    school_id: UUID | None = None,
    session_id: UUID | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
) -> AttendanceReport:
    target = resolve_school_id(current_user, school_id)
    return await report_service.attendance_summary(db, target, session_id, date_from, date_to)


@router.get("/promotion", response_model=StatusCounts)
async def promotion(
    session_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: ReportUser,
    school_id: UUID | None = None,
) -> StatusCounts:
    target = resolve_school_id(current_user, school_id)
    return await report_service.promotion_report(db, target, session_id)


@router.get("/retention", response_model=RetentionReport)
async def retention(
    session_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: ReportUser,
    school_id: UUID | None = None,
) -> RetentionReport:
    target = resolve_school_id(current_user, school_id)
    return await report_service.retention_report(db, target, session_id)


@router.get("/tc", response_model=TCReport)
async def transfer_certificates(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: ReportUser,
    school_id: UUID | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
) -> TCReport:
    target = resolve_school_id(current_user, school_id)
    return await report_service.tc_report(db, target, date_from, date_to)


@router.get("/history", response_model=list[StudentHistoryRow])
async def history(
    session_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: ReportUser,
    school_id: UUID | None = None,
    class_id: UUID | None = None,
    history_status: HistoryStatus | None = None,
) -> list[StudentHistoryRow]:
    """Year-end outcome of every student in a session."""
    target = resolve_school_id(current_user, school_id)
    return await report_service.history_rows(db, target, session_id, history_status, class_id)


@router.get("/history/export")
async def export_history(
    session_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: ReportUser,
    school_id: UUID | None = None,
    class_id: UUID | None = None,
    history_status: HistoryStatus | None = None,
) -> StreamingResponse:
    target = resolve_school_id(current_user, school_id)
    rows = await report_service.history_rows(db, target, session_id, history_status, class_id)
    buffer = excel_service.table_workbook(
        "History",
        HISTORY_HEADERS,
        [
            [r.student_name, r.class_name, r.roll_number or "", r.status.value, float(r.percentage or 0)]
            for r in rows
        ],
    )
    return StreamingResponse(
        buffer,
        media_type=excel_service.XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="history_{session_id}.xlsx"'},
    )


@dashboard_router.get("", response_model=DashboardResponse)
async def dashboard(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: CurrentUser,
) -> DashboardResponse:
    """Headline counts for the caller's role."""
    return await report_service.dashboard(db, current_user)
