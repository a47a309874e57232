"""School service: onboarding, plans, modules, limits and subscriptions."""

import logging
from datetime import date, timedelta
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from school_erp.core.config import settings
from school_erp.core.database import as_utc, utcnow
from school_erp.core.errors import ConflictError, ValidationError
from school_erp.core.permissions import Role
from school_erp.core.plans import Plan, SchoolModule, is_downgrade, plan_limits, plan_modules
from school_erp.models.academic import AcademicSession
from school_erp.models.school import School, SchoolStatus
from school_erp.models.user import User
from school_erp.schemas.school import LimitsUpdate, SchoolCreate, SchoolUpdate
from school_erp.services import user as user_service

logger = logging.getLogger(__name__)

DAYS_PER_MONTH = 30


def default_session_window(today: date | None = None) -> tuple[str, date, date]:
    """The school year containing `today`, running April 1 to March 31."""
    today = today or date.today()
    start_year = today.year if today.month >= 4 else today.year - 1
    name = f"{start_year}-{start_year + 1}"
    return name, date(start_year, 4, 1), date(start_year + 1, 3, 31)


async def get_school_by_id(db: AsyncSession, school_id: UUID) -> School | None:
    """Get school by ID."""
    result = await db.execute(select(School).where(School.id == school_id))
    return result.scalar_one_or_none()


async def get_school_by_code(db: AsyncSession, code: str) -> School | None:
    result = await db.execute(select(School).where(School.code == code.upper()))
    return result.scalar_one_or_none()


async def get_schools(
    db: AsyncSession,
    *,
    status: SchoolStatus | None = None,
    search: str | None = None,
    skip: int = 0,
    limit: int = 20,
) -> tuple[list[School], int]:
    """Get list of schools."""
    query = select(School)
    if status is not None:
        query = query.where(School.status == status)
    if search:
        query = query.where(School.name.ilike(f"%{search}%") | School.code.ilike(f"%{search}%"))

    total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar() or 0

    query = query.order_by(School.created_at.desc()).offset(skip).limit(limit)
    result = await db.execute(query)
    return list(result.scalars().all()), total


async def create_school(
    db: AsyncSession,
    school_data: SchoolCreate,
) -> tuple[School, User, AcademicSession]:
    """Create a school, its principal and a default active session in one transaction."""
    if await get_school_by_code(db, school_data.code):
        raise ConflictError(f"School code '{school_data.code}' already exists")

    principal_data = school_data.principal
    if not principal_data.email and not principal_data.mobile:
        raise ValidationError("Principal needs an email or a mobile number")
    await user_service.ensure_identifiers_free(
        db,
        email=principal_data.email,
        mobile=principal_data.mobile,
    )

    now = utcnow()
    school = School(
        name=school_data.name,
        code=school_data.code,
        address=school_data.address,
        phone=school_data.phone,
        email=school_data.email,
        status=SchoolStatus.ACTIVE,
        plan=school_data.plan,
        modules=plan_modules(school_data.plan),
        limits=plan_limits(school_data.plan),
        subscription_start_date=now,
        subscription_end_date=now + timedelta(days=settings.TRIAL_PERIOD_DAYS),
        grace_period_days=settings.DEFAULT_GRACE_PERIOD_DAYS,
        subscription_is_expired=False,
    )
    db.add(school)
    await db.flush()

    principal = user_service.build_user(
        name=principal_data.name,
        email=principal_data.email,
        mobile=principal_data.mobile,
        password=principal_data.password,
        role=Role.PRINCIPAL,
        school_id=school.id,
    )
    name, start, end = default_session_window()
    session = AcademicSession(
        school_id=school.id,
        name=name,
        start_date=start,
        end_date=end,
        is_active=True,
    )
    db.add_all([principal, session])

    try:
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    await db.refresh(school)
    await db.refresh(principal)
    await db.refresh(session)
    logger.info("Created school %s (%s) with principal %s", school.code, school.id, principal.id)
    return school, principal, session


async def update_school(db: AsyncSession, school: School, school_data: SchoolUpdate) -> School:
    """Update a school."""
    update_data = school_data.model_dump(exclude_unset=True)

    for field, value in update_data.items():
        setattr(school, field, value)

    await db.commit()
    await db.refresh(school)
    return school


async def set_school_status(db: AsyncSession, school: School, status: SchoolStatus) -> School:
    school.status = status
    await db.commit()
    await db.refresh(school)
    return school


async def change_plan(db: AsyncSession, school: School, plan: Plan, confirmed: bool) -> School:
    """Switch plan, rewriting modules and limits wholesale."""
    if Plan(school.plan) == plan:
        raise ValidationError(f"School is already on the {plan.value} plan")
    if is_downgrade(school.plan, plan) and not confirmed:
        raise ValidationError(
            "Downgrading disables modules and lowers limits. Resend with confirmed=true.",
            extra={"requires_confirmation": True},
        )

    previous = school.plan
    school.plan = plan
    school.modules = plan_modules(plan)
    school.limits = plan_limits(plan)
    await db.commit()
    await db.refresh(school)
    logger.info("School %s plan changed %s -> %s", school.id, previous, plan.value)
    return school


async def update_modules(db: AsyncSession, school: School, modules: dict[str, bool]) -> School:
    """Override individual module flags."""
    valid = {m.value for m in SchoolModule}
    unknown = sorted(set(modules) - valid)
    if unknown:
        raise ValidationError(f"Unknown modules: {', '.join(unknown)}")

    school.modules = {**(school.modules or {}), **modules}
    await db.commit()
    await db.refresh(school)
    return school


async def update_limits(db: AsyncSession, school: School, limits_data: LimitsUpdate) -> School:
    school.limits = {**(school.limits or {}), **limits_data.model_dump(exclude_none=True)}
    await db.commit()
    await db.refresh(school)
    return school


async def renew_subscription(db: AsyncSession, school: School, duration_months: int) -> School:
    """Extend the subscription from whichever is later: its end date or now."""
    now = utcnow()
    current_end = as_utc(school.subscription_end_date) if school.subscription_end_date else now
    base = max(current_end, now)

    school.subscription_end_date = base + timedelta(days=duration_months * DAYS_PER_MONTH)
    school.last_renewal_date = now
    school.subscription_is_expired = False
    if school.subscription_start_date is None:
        school.subscription_start_date = now

    await db.commit()
    await db.refresh(school)
    return school


async def set_online_payments(db: AsyncSession, school: School, enabled: bool) -> School:
    school.online_payments_enabled = enabled
    await db.commit()
    await db.refresh(school)
    return school
