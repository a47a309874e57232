"""School routes."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from school_erp.core.database import get_db
from school_erp.core.deps import CurrentUser, SchoolUser, client_ip, require_roles
from school_erp.core.permissions import Role
from school_erp.models.audit import AuditAction, EntityType
from school_erp.models.school import School, SchoolStatus
from school_erp.models.user import User
from school_erp.schemas.academic import AcademicSessionResponse
from school_erp.schemas.school import (
    LimitsUpdate,
    ModulesUpdate,
    OnlinePaymentsToggle,
    PlanChange,
    SchoolCreate,
    SchoolCreatedResponse,
    SchoolListResponse,
    SchoolResponse,
    SchoolStatusUpdate,
    SchoolUpdate,
    SubscriptionRenew,
    SubscriptionStatus,
)
from school_erp.schemas.user import UserResponse
from school_erp.services import audit as audit_service
from school_erp.services import school as school_service

router = APIRouter(prefix="/schools", tags=["Schools"])

SuperAdmin = Annotated[User, Depends(require_roles(Role.SUPER_ADMIN))]


# ============== Helper Functions ==============


async def get_school_or_404(db: AsyncSession, school_id: UUID) -> School:
    school = await school_service.get_school_by_id(db, school_id)
    if not school:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="School not found",
        )
    return school


async def get_own_school(db: AsyncSession, user: User) -> School:
    if user.school_id is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User is not assigned to any school",
        )
    return await get_school_or_404(db, user.school_id)


def subscription_status(school: School) -> SubscriptionStatus:
    state = school.subscription_state()
    return SubscriptionStatus(
        plan=school.plan,
        end_date=state["end_date"],
        grace_end_date=state["grace_end_date"],
        grace_period_days=school.grace_period_days,
        is_expired=state["is_expired"],
        in_grace_period=state["in_grace_period"],
        days_remaining=state["days_remaining"],
    )


async def audit_school(db, request: Request, user: User, school: School, action: AuditAction, description: str):
    await audit_service.record(
        db,
        user=user,
        action=action,
        entity_type=EntityType.SCHOOL,
        entity_id=school.id,
        school_id=school.id,
        description=description,
        ip_address=client_ip(request),
    )


# ============== Own School Endpoints ==============


@router.get("/me", response_model=SchoolResponse)
async def get_my_school(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: CurrentUser,
) -> SchoolResponse:
    """Get the current user's school."""
    school = await get_own_school(db, current_user)
    return SchoolResponse.model_validate(school)


@router.get("/me/subscription", response_model=SubscriptionStatus)
async def get_my_subscription(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: CurrentUser,
) -> SubscriptionStatus:
    """Subscription window and grace state of the current user's school."""
    school = await get_own_school(db, current_user)
    return subscription_status(school)


@router.get("/me/modules", response_model=dict[str, bool])
async def get_my_modules(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: CurrentUser,
) -> dict[str, bool]:
    """Feature modules enabled for the current user's school."""
    school = await get_own_school(db, current_user)
    return school.modules or {}


@router.patch("/me/online-payments", response_model=SchoolResponse)
async def toggle_online_payments(
    toggle: OnlinePaymentsToggle,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_roles(Role.PRINCIPAL))],
) -> SchoolResponse:
    """Principal switches online fee payments on or off for their school."""
    school = await get_own_school(db, current_user)
    school = await school_service.set_online_payments(db, school, toggle.enabled)
    return SchoolResponse.model_validate(school)


# ============== Platform Endpoints ==============


@router.post("", response_model=SchoolCreatedResponse, status_code=status.HTTP_201_CREATED)
async def create_school(
    school_data: SchoolCreate,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: SuperAdmin,
) -> SchoolCreatedResponse:
    """
    Onboard a school.

    Creates the school on a trial subscription, its principal account and
    a default active academic session in a single transaction.
    """
    school, principal, session = await school_service.create_school(db, school_data)
    await audit_school(db, request, current_user, school, AuditAction.SCHOOL_CREATED, f"Created school {school.code}")
    return SchoolCreatedResponse(
        school=SchoolResponse.model_validate(school),
        principal=UserResponse.model_validate(principal),
        session=AcademicSessionResponse.model_validate(session),
    )


@router.get("", response_model=SchoolListResponse)
async def list_schools(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: SuperAdmin,
    school_status: SchoolStatus | None = Query(None, alias="status"),
    search: str | None = Query(None, description="Search by name or code"),
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
) -> SchoolListResponse:
    """List all schools (super admin only)."""
    schools, total = await school_service.get_schools(
        db,
        status=school_status,
        search=search,
        skip=skip,
        limit=limit,
    )
    return SchoolListResponse(
        items=[SchoolResponse.model_validate(s) for s in schools],
        total=total,
        skip=skip,
        limit=limit,
    )


@router.get("/{school_id}", response_model=SchoolResponse)
async def get_school(
    school_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: SchoolUser,
) -> SchoolResponse:
    """Get a school. Non super admins can only read their own."""
    school = await get_school_or_404(db, school_id)
    return SchoolResponse.model_validate(school)


@router.patch("/{school_id}", response_model=SchoolResponse)
async def update_school(
    school_id: UUID,
    school_data: SchoolUpdate,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: SuperAdmin,
) -> SchoolResponse:
    school = await get_school_or_404(db, school_id)
    school = await school_service.update_school(db, school, school_data)
    await audit_school(db, request, current_user, school, AuditAction.SCHOOL_UPDATED, "Updated school details")
    return SchoolResponse.model_validate(school)


@router.patch("/{school_id}/status", response_model=SchoolResponse)
async def update_school_status(
    school_id: UUID,
    status_data: SchoolStatusUpdate,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: SuperAdmin,
) -> SchoolResponse:
    """Deactivate or reactivate a school. Users of an inactive school cannot log in."""
    school = await get_school_or_404(db, school_id)
    school = await school_service.set_school_status(db, school, status_data.status)
    await audit_school(
        db, request, current_user, school, AuditAction.SCHOOL_UPDATED, f"Set school {status_data.status.value}"
    )
    return SchoolResponse.model_validate(school)


@router.put("/{school_id}/plan", response_model=SchoolResponse)
async def change_plan(
    school_id: UUID,
    plan_data: PlanChange,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: SuperAdmin,
) -> SchoolResponse:
    """Move a school to another plan. Downgrades need confirmed=true."""
    school = await get_school_or_404(db, school_id)
    school = await school_service.change_plan(db, school, plan_data.plan, plan_data.confirmed)
    await audit_school(db, request, current_user, school, AuditAction.PLAN_CHANGED, f"Plan set to {plan_data.plan.value}")
    return SchoolResponse.model_validate(school)


@router.put("/{school_id}/modules", response_model=SchoolResponse)
async def update_modules(
    school_id: UUID,
    modules_data: ModulesUpdate,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: SuperAdmin,
) -> SchoolResponse:
    school = await get_school_or_404(db, school_id)
    school = await school_service.update_modules(db, school, modules_data.modules)
    return SchoolResponse.model_validate(school)


@router.put("/{school_id}/limits", response_model=SchoolResponse)
async def update_limits(
    school_id: UUID,
    limits_data: LimitsUpdate,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: SuperAdmin,
) -> SchoolResponse:
    school = await get_school_or_404(db, school_id)
    school = await school_service.update_limits(db, school, limits_data)
    return SchoolResponse.model_validate(school)


@router.get("/{school_id}/subscription", response_model=SubscriptionStatus)
async def get_subscription(
    school_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: SchoolUser,
) -> SubscriptionStatus:
    school = await get_school_or_404(db, school_id)
    return subscription_status(school)


@router.post("/{school_id}/subscription/renew", response_model=SchoolResponse)
async def renew_subscription(
    school_id: UUID,
    renew_data: SubscriptionRenew,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: SuperAdmin,
) -> SchoolResponse:
    """Extend a subscription by whole months of 30 days."""
    school = await get_school_or_404(db, school_id)
    school = await school_service.renew_subscription(db, school, renew_data.duration_months)
    await audit_school(
        db,
        request,
        current_user,
        school,
        AuditAction.SUBSCRIPTION_RENEWED,
        f"Renewed for {renew_data.duration_months} month(s)",
    )
    return SchoolResponse.model_validate(school)
