"""Payroll service: salary profiles, monthly calculation and payment."""

import calendar
import logging
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from school_erp.core.database import utcnow
from school_erp.core.errors import ConflictError, NotFoundError, ValidationError
from school_erp.core.permissions import STAFF_ROLES
from school_erp.models.salary import (
    SalaryCalculation,
    SalaryPayment,
    SalaryPaymentMode,
    SalaryProfile,
    SalaryStatus,
)
from school_erp.models.user import User
from school_erp.schemas.salary import SalaryCalculate, SalaryProfileCreate, SalaryProfileUpdate
from school_erp.services import attendance as attendance_service

logger = logging.getLogger(__name__)

TWO_PLACES = Decimal("0.01")


def month_bounds(month: str) -> tuple[date, date, int]:
    """First day, last day and number of days of a YYYY-MM month."""
    year, month_number = (int(part) for part in month.split("-"))
    days = calendar.monthrange(year, month_number)[1]
    return date(year, month_number, 1), date(year, month_number, days), days


def compute_salary(
    base_salary: Decimal,
    working_days: int,
    attendance_days: int,
    allowances: Decimal,
    deductions: Decimal,
) -> tuple[Decimal, Decimal]:
    """(gross, net): base pro-rated by attendance plus allowances; net never negative."""
    earned = Decimal(base_salary) / working_days * attendance_days if working_days else Decimal("0")
    gross = (earned + allowances).quantize(TWO_PLACES, ROUND_HALF_UP)
    net = max(Decimal("0"), gross - deductions).quantize(TWO_PLACES, ROUND_HALF_UP)
    return gross, net


async def _get_staff(db: AsyncSession, school_id: UUID, user_id: UUID) -> User:
    staff = await db.get(User, user_id)
    if staff is None or staff.school_id != school_id:
        raise NotFoundError("Staff")
    if staff.role not in STAFF_ROLES:
        raise ValidationError("User is not a staff member")
    return staff


# ============== Profiles ==============


async def get_profile_by_user(db: AsyncSession, school_id: UUID, user_id: UUID) -> SalaryProfile | None:
    result = await db.execute(
        select(SalaryProfile).where(SalaryProfile.school_id == school_id, SalaryProfile.user_id == user_id)
    )
    return result.scalar_one_or_none()


async def get_profiles(db: AsyncSession, school_id: UUID) -> list[SalaryProfile]:
    result = await db.execute(
        select(SalaryProfile).where(SalaryProfile.school_id == school_id).order_by(SalaryProfile.created_at)
    )
    return list(result.scalars().all())


async def create_profile(db: AsyncSession, school_id: UUID, profile_data: SalaryProfileCreate) -> SalaryProfile:
    staff = await _get_staff(db, school_id, profile_data.user_id)
    if await get_profile_by_user(db, school_id, staff.id) is not None:
        raise ConflictError("Salary profile already exists for this staff member")

    profile = SalaryProfile(
        school_id=school_id,
        user_id=staff.id,
        base_salary=profile_data.base_salary,
        allowances=[item.model_dump(mode="json") for item in profile_data.allowances],
        deductions=[item.model_dump(mode="json") for item in profile_data.deductions],
    )
    db.add(profile)
    await db.commit()
    await db.refresh(profile)
    return profile


async def update_profile(
    db: AsyncSession,
    profile: SalaryProfile,
    profile_data: SalaryProfileUpdate,
) -> SalaryProfile:
    """Changes apply to later calculations; existing ones keep their snapshot."""
    if profile_data.base_salary is not None:
        profile.base_salary = profile_data.base_salary
    if profile_data.allowances is not None:
        profile.allowances = [item.model_dump(mode="json") for item in profile_data.allowances]
    if profile_data.deductions is not None:
        profile.deductions = [item.model_dump(mode="json") for item in profile_data.deductions]

    await db.commit()
    await db.refresh(profile)
    return profile


# ============== Calculations ==============


async def get_calculation_by_id(db: AsyncSession, calculation_id: UUID, school_id: UUID) -> SalaryCalculation | None:
    result = await db.execute(
        select(SalaryCalculation).where(
            SalaryCalculation.id == calculation_id,
            SalaryCalculation.school_id == school_id,
        )
    )
    return result.scalar_one_or_none()


async def get_calculations(
    db: AsyncSession,
    school_id: UUID,
    month: str | None = None,
    staff_id: UUID | None = None,
) -> list[SalaryCalculation]:
    query = select(SalaryCalculation).where(SalaryCalculation.school_id == school_id)
    if month is not None:
        query = query.where(SalaryCalculation.month == month)
    if staff_id is not None:
        query = query.where(SalaryCalculation.staff_id == staff_id)
    result = await db.execute(query.order_by(SalaryCalculation.month.desc()))
    return list(result.scalars().all())


async def calculate_salary(db: AsyncSession, school_id: UUID, calc_data: SalaryCalculate) -> SalaryCalculation:
    """
    Calculate a staff member's pay for a month.

    Working days are the days in the month; attendance days are the
    PRESENT staff attendance marks within it.
    """
    staff = await _get_staff(db, school_id, calc_data.staff_id)
    profile = await get_profile_by_user(db, school_id, staff.id)
    if profile is None:
        raise NotFoundError("Salary profile")

    existing = await db.execute(
        select(SalaryCalculation.id).where(
            SalaryCalculation.school_id == school_id,
            SalaryCalculation.staff_id == staff.id,
            SalaryCalculation.month == calc_data.month,
        )
    )
    if existing.first() is not None:
        raise ConflictError("Salary calculation already exists for this staff and month")

    first_day, last_day, working_days = month_bounds(calc_data.month)
    attendance_days = await attendance_service.count_present_days(db, school_id, staff.id, first_day, last_day)

    allowances = profile.total_allowances
    deductions = profile.total_deductions
    gross, net = compute_salary(profile.base_salary, working_days, attendance_days, allowances, deductions)

    calculation = SalaryCalculation(
        school_id=school_id,
        staff_id=staff.id,
        month=calc_data.month,
        base_salary=profile.base_salary,
        working_days=working_days,
        attendance_days=attendance_days,
        leave_days=0,
        allowances=allowances,
        gross_salary=gross,
        deductions=deductions,
        net_payable=net,
        status=SalaryStatus.CALCULATED,
    )
    db.add(calculation)
    await db.commit()
    await db.refresh(calculation)
    logger.info("Calculated salary for %s %s: net %s", staff.id, calc_data.month, net)
    return calculation


# ============== Payments ==============


async def get_payment_for(db: AsyncSession, calculation: SalaryCalculation) -> SalaryPayment | None:
    result = await db.execute(
        select(SalaryPayment).where(SalaryPayment.salary_calculation_id == calculation.id)
    )
    return result.scalar_one_or_none()


async def pay_salary(
    db: AsyncSession,
    calculation: SalaryCalculation,
    payment_mode: SalaryPaymentMode,
    paid_by: User,
) -> SalaryPayment:
    if calculation.status == SalaryStatus.PAID or await get_payment_for(db, calculation) is not None:
        raise ConflictError("Salary has already been paid")

    payment = SalaryPayment(
        school_id=calculation.school_id,
        salary_calculation_id=calculation.id,
        staff_id=calculation.staff_id,
        month=calculation.month,
        amount_paid=calculation.net_payable,
        payment_mode=payment_mode,
        payment_date=utcnow(),
        paid_by_id=paid_by.id,
    )
    db.add(payment)
    calculation.status = SalaryStatus.PAID

    await db.commit()
    await db.refresh(payment)
    return payment


async def get_slip(
    db: AsyncSession,
    school_id: UUID,
    staff_id: UUID,
    month: str,
) -> tuple[SalaryCalculation, SalaryPayment | None]:
    result = await db.execute(
        select(SalaryCalculation).where(
            SalaryCalculation.school_id == school_id,
            SalaryCalculation.staff_id == staff_id,
            SalaryCalculation.month == month,
        )
    )
    calculation = result.scalar_one_or_none()
    if calculation is None:
        raise NotFoundError("Salary slip")
    return calculation, await get_payment_for(db, calculation)
