"""Expense routes."""

from datetime import date
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from school_erp.core.database import get_db
from school_erp.core.deps import client_ip, enforce_school_isolation, require_roles
from school_erp.core.gating import ActiveSession, check_maintenance_mode, require_active_subscription
from school_erp.core.permissions import Role
from school_erp.models.audit import AuditAction, EntityType
from school_erp.models.expense import ExpenseCategory
from school_erp.models.user import User
from school_erp.schemas.expense import ExpenseCreate, ExpenseListResponse, ExpenseResponse, ExpenseSummary
from school_erp.services import audit as audit_service
from school_erp.services import expense as expense_service

router = APIRouter(
    prefix="/expenses",
    tags=["Expenses"],
    dependencies=[
        Depends(enforce_school_isolation),
        Depends(check_maintenance_mode),
        Depends(require_active_subscription(allow_read_only=True)),
    ],
)

OfficeUser = Annotated[User, Depends(require_roles(Role.PRINCIPAL, Role.OPERATOR))]


@router.get("/summary", response_model=ExpenseSummary)
async def expense_summary(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: OfficeUser,
    date_from: date | None = None,
    date_to: date | None = None,
) -> ExpenseSummary:
    """Spending per category."""
    return await expense_service.expense_summary(db, current_user.school_id, date_from, date_to)


@router.get("", response_model=ExpenseListResponse)
async def list_expenses(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: OfficeUser,
    category: ExpenseCategory | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
    skip: Annotated[int, Query(ge=0)] = 0,
    limit: Annotated[int, Query(ge=1, le=100)] = 50,
) -> ExpenseListResponse:
    expenses, total = await expense_service.get_expenses(
        db,
        school_id=current_user.school_id,
        category=category,
        date_from=date_from,
        date_to=date_to,
        skip=skip,
        limit=limit,
    )
    return ExpenseListResponse(
        items=[ExpenseResponse.model_validate(e) for e in expenses],
        total=total,
        skip=skip,
        limit=limit,
    )


@router.post("", response_model=ExpenseResponse, status_code=status.HTTP_201_CREATED)
async def create_expense(
    expense_data: ExpenseCreate,
    request: Request,
    session: ActiveSession,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: OfficeUser,
) -> ExpenseResponse:
    """Record an expense against the active session."""
    expense = await expense_service.create_expense(db, session, current_user, expense_data)
    await audit_service.record(
        db,
        user=current_user,
        action=AuditAction.EXPENSE_CREATED,
        entity_type=EntityType.EXPENSE,
        entity_id=expense.id,
        session_id=session.id,
        description=f"Recorded {expense.category} expense of {expense.amount}",
        ip_address=client_ip(request),
    )
    return ExpenseResponse.model_validate(expense)
