"""Payroll routes."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession

from school_erp.core.database import get_db
from school_erp.core.deps import SchoolUser, client_ip, enforce_school_isolation, require_roles
from school_erp.core.gating import check_maintenance_mode, require_active_subscription, require_module
from school_erp.core.permissions import OFFICE_ROLES, STAFF_ROLES, Role
from school_erp.core.plans import SchoolModule
from school_erp.models.audit import AuditAction, EntityType
from school_erp.models.salary import SalaryCalculation, SalaryPayment
from school_erp.models.school import School
from school_erp.models.user import User
from school_erp.schemas.salary import (
    SalaryCalculate,
    SalaryCalculationResponse,
    SalaryPay,
    SalaryPaymentResponse,
    SalaryProfileCreate,
    SalaryProfileResponse,
    SalaryProfileUpdate,
    SalarySlip,
)
from school_erp.schemas.validators import Month
from school_erp.services import audit as audit_service
from school_erp.services import pdf as pdf_service
from school_erp.services import salary as salary_service

router = APIRouter(
    prefix="/salary",
    tags=["Salary"],
    dependencies=[
        Depends(enforce_school_isolation),
        Depends(check_maintenance_mode),
        Depends(require_active_subscription(allow_read_only=True)),
        Depends(require_module(SchoolModule.SALARY)),
    ],
)

OfficeUser = Annotated[User, Depends(require_roles(Role.PRINCIPAL, Role.OPERATOR))]


# ============== Helper Functions ==============


async def load_slip(
    db: AsyncSession,
    current_user: User,
    month: str,
    staff_id: UUID | None,
) -> tuple[SalaryCalculation, SalaryPayment | None, User]:
    """Staff read their own slip; the office may read anyone's."""
    if staff_id is None or staff_id == current_user.id:
        if current_user.role not in STAFF_ROLES:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Only staff members have salary slips",
            )
        staff = current_user
    else:
        if current_user.role not in OFFICE_ROLES:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="You can only view your own salary slip",
            )
        staff = await db.get(User, staff_id)
        if not staff or staff.school_id != current_user.school_id:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Staff not found",
            )

    calculation, payment = await salary_service.get_slip(db, current_user.school_id, staff.id, month)
    return calculation, payment, staff


# ============== Profiles ==============


@router.post("/profiles", response_model=SalaryProfileResponse, status_code=status.HTTP_201_CREATED)
async def create_profile(
    profile_data: SalaryProfileCreate,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: OfficeUser,
) -> SalaryProfileResponse:
    profile = await salary_service.create_profile(db, current_user.school_id, profile_data)
    await audit_service.record(
        db,
        user=current_user,
        action=AuditAction.SALARY_PROFILE_CREATED,
        entity_type=EntityType.SALARY_PROFILE,
        entity_id=profile.id,
        description=f"Created salary profile for staff {profile.user_id}",
        ip_address=client_ip(request),
    )
    return SalaryProfileResponse.model_validate(profile)


@router.get("/profiles", response_model=list[SalaryProfileResponse])
async def list_profiles(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: OfficeUser,
) -> list[SalaryProfileResponse]:
    profiles = await salary_service.get_profiles(db, current_user.school_id)
    return [SalaryProfileResponse.model_validate(p) for p in profiles]


@router.get("/profiles/{user_id}", response_model=SalaryProfileResponse)
async def get_profile(
    user_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: OfficeUser,
) -> SalaryProfileResponse:
    profile = await salary_service.get_profile_by_user(db, current_user.school_id, user_id)
    if not profile:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Salary profile not found",
        )
    return SalaryProfileResponse.model_validate(profile)


@router.patch("/profiles/{user_id}", response_model=SalaryProfileResponse)
async def update_profile(
    user_id: UUID,
    profile_data: SalaryProfileUpdate,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: OfficeUser,
) -> SalaryProfileResponse:
    profile = await salary_service.get_profile_by_user(db, current_user.school_id, user_id)
    if not profile:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Salary profile not found",
        )
    profile = await salary_service.update_profile(db, profile, profile_data)
    return SalaryProfileResponse.model_validate(profile)


# ============== Calculation & Payment ==============


@router.post("/calculate", response_model=SalaryCalculationResponse, status_code=status.HTTP_201_CREATED)
async def calculate_salary(
    calc_data: SalaryCalculate,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: OfficeUser,
) -> SalaryCalculationResponse:
    """
    Calculate a month's salary for one staff member.

    Base salary is pro-rated by days present; deductions never take the
    net below zero.
    """
    calculation = await salary_service.calculate_salary(db, current_user.school_id, calc_data)
    await audit_service.record(
        db,
        user=current_user,
        action=AuditAction.SALARY_CALCULATED,
        entity_type=EntityType.SALARY_CALCULATION,
        entity_id=calculation.id,
        description=f"Calculated {calculation.month} salary for staff {calculation.staff_id}",
        ip_address=client_ip(request),
    )
    return SalaryCalculationResponse.model_validate(calculation)


@router.get("/calculations", response_model=list[SalaryCalculationResponse])
async def list_calculations(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: OfficeUser,
    month: Annotated[Month | None, Query()] = None,
    staff_id: UUID | None = None,
) -> list[SalaryCalculationResponse]:
    calculations = await salary_service.get_calculations(db, current_user.school_id, month, staff_id)
    return [SalaryCalculationResponse.model_validate(c) for c in calculations]


@router.post("/pay", response_model=SalaryPaymentResponse, status_code=status.HTTP_201_CREATED)
async def pay_salary(
    pay_data: SalaryPay,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: OfficeUser,
) -> SalaryPaymentResponse:
    calculation = await salary_service.get_calculation_by_id(
        db, pay_data.salary_calculation_id, current_user.school_id
    )
    if not calculation:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Salary calculation not found",
        )

    payment = await salary_service.pay_salary(db, calculation, pay_data.payment_mode, current_user)
    await audit_service.record(
        db,
        user=current_user,
        action=AuditAction.SALARY_PAYMENT_PROCESSED,
        entity_type=EntityType.SALARY_PAYMENT,
        entity_id=payment.id,
        description=f"Paid {payment.amount_paid} to staff {payment.staff_id} for {payment.month}",
        ip_address=client_ip(request),
    )
    return SalaryPaymentResponse.model_validate(payment)


# ============== Slips ==============


@router.get("/slip/{month}", response_model=SalarySlip)
async def get_slip(
    month: Month,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: SchoolUser,
    staff_id: UUID | None = None,
) -> SalarySlip:
    calculation, payment, _ = await load_slip(db, current_user, month, staff_id)
    return SalarySlip(
        calculation=SalaryCalculationResponse.model_validate(calculation),
        payment=SalaryPaymentResponse.model_validate(payment) if payment else None,
    )


@router.get("/slip/{month}/pdf")
async def download_slip(
    month: Month,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: SchoolUser,
    staff_id: UUID | None = None,
) -> StreamingResponse:
    calculation, payment, staff = await load_slip(db, current_user, month, staff_id)
    school = await db.get(School, current_user.school_id)

    buffer = pdf_service.salary_slip_pdf(school, staff, calculation, payment)
    return StreamingResponse(
        buffer,
        media_type=pdf_service.PDF_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="salary_slip_{month}.pdf"'},
    )
