"""Per-school gates: subscription, feature modules, plan limits, maintenance."""

import logging
from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from school_erp.core.database import get_db
from school_erp.core.deps import get_current_user
from school_erp.core.errors import (
    MaintenanceError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from school_erp.core.permissions import Role
from school_erp.core.plans import SchoolModule, is_module_enabled, next_plan
from school_erp.models.academic import AcademicSession
from school_erp.models.school import School
from school_erp.models.student import Student, StudentStatus
from school_erp.models.system import SystemSettings
from school_erp.models.user import User, UserStatus

logger = logging.getLogger(__name__)


async def _load_school(db: AsyncSession, user: User) -> School:
    if user.school_id is None:
        raise PermissionDeniedError("User is not assigned to any school")
    school = await db.get(School, user.school_id)
    if school is None:
        raise NotFoundError("School")
    return school


def require_active_subscription(allow_read_only: bool = False):
    """Dependency factory blocking schools whose subscription and grace period ran out.

    With allow_read_only, GET requests still go through after expiry.
    """

    async def subscription_checker(
        request: Request,
        current_user: Annotated[User, Depends(get_current_user)],
        db: Annotated[AsyncSession, Depends(get_db)],
    ) -> None:
        if current_user.role in (Role.SUPER_ADMIN, Role.PARENT):
            return
        if current_user.school_id is None:
            if request.method == "GET":
                return
            raise PermissionDeniedError("School information not found")

        school = await _load_school(db, current_user)
        state = school.subscription_state()

        if state["is_expired"] != school.subscription_is_expired:
            school.subscription_is_expired = state["is_expired"]
            await db.commit()

        request.state.subscription = state

        if not state["is_expired"]:
            return
        if allow_read_only and request.method == "GET":
            return

        logger.info("Blocked %s %s: subscription expired for school %s", request.method, request.url.path, school.id)
        raise PermissionDeniedError(
            "Subscription expired. Please renew your subscription to continue.",
            extra={
                "subscription_expired": True,
                "end_date": state["end_date"].isoformat(),
                "grace_end_date": state["grace_end_date"].isoformat(),
            },
        )

    return subscription_checker


def require_module(module: SchoolModule):
    """Dependency factory rejecting requests for modules the school has disabled."""

    async def module_checker(
        current_user: Annotated[User, Depends(get_current_user)],
        db: Annotated[AsyncSession, Depends(get_db)],
    ) -> None:
        if current_user.is_super_admin:
            return
        # Parents always see their children's fees
        if current_user.role == Role.PARENT and module == SchoolModule.FEES:
            return

        school = await _load_school(db, current_user)
        if not is_module_enabled(school.modules, module):
            raise PermissionDeniedError(
                f"{module.value} module is not enabled for your school",
                extra={"module": module.value, "module_disabled": True},
            )

    return module_checker


async def require_online_payments(
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> None:
    """Online payments need both the plan module and the school's own toggle."""
    if current_user.is_super_admin:
        return
    school = await _load_school(db, current_user)
    if not is_module_enabled(school.modules, SchoolModule.ONLINE_PAYMENTS):
        raise PermissionDeniedError("Online payments are not available on your plan")
    if not school.online_payments_enabled:
        raise PermissionDeniedError("Online payments are disabled for this school")


def _limit_exceeded(school: School, kind: str, current: int, limit: int) -> PermissionDeniedError:
    upgrade = next_plan(school.plan)
    suggestion = (
        f"Upgrade to {upgrade.value} to add more {kind}s"
        if upgrade
        else "Contact support to raise your limits"
    )
    return PermissionDeniedError(
        f"{kind.capitalize()} limit reached for your plan ({current}/{limit})",
        extra={
            "code": "LIMIT_EXCEEDED",
            "current": current,
            "limit": limit,
            "plan": school.plan,
            "suggestion": suggestion,
        },
    )


async def require_student_capacity(
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> None:
    if current_user.is_super_admin:
        return
    school = await _load_school(db, current_user)
    limit = (school.limits or {}).get("student_limit")
    if limit is None:
        return
    result = await db.execute(
        select(func.count())
        .select_from(Student)
        .where(Student.school_id == school.id, Student.status == StudentStatus.ACTIVE)
    )
    current = result.scalar() or 0
    if current >= limit:
        raise _limit_exceeded(school, "student", current, limit)


async def require_teacher_capacity(
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> None:
    if current_user.is_super_admin:
        return
    school = await _load_school(db, current_user)
    limit = (school.limits or {}).get("teacher_limit")
    if limit is None:
        return
    result = await db.execute(
        select(func.count())
        .select_from(User)
        .where(
            User.school_id == school.id,
            User.role == Role.TEACHER,
            User.status == UserStatus.ACTIVE,
        )
    )
    current = result.scalar() or 0
    if current >= limit:
        raise _limit_exceeded(school, "teacher", current, limit)


async def check_maintenance_mode(
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> None:
    """Everyone but super admins gets 503 while maintenance mode is on."""
    if current_user.is_super_admin:
        return
    result = await db.execute(select(SystemSettings).limit(1))
    system_settings = result.scalar_one_or_none()
    if system_settings is not None and system_settings.maintenance_mode:
        raise MaintenanceError(
            system_settings.maintenance_message,
            extra={"maintenance_mode": True},
        )


async def get_active_session(
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> AcademicSession:
    """The caller's school's active academic session."""
    if current_user.school_id is None:
        raise ValidationError("User is not assigned to any school")
    result = await db.execute(
        select(AcademicSession).where(
            AcademicSession.school_id == current_user.school_id,
            AcademicSession.is_active.is_(True),
        )
    )
    session = result.scalar_one_or_none()
    if session is None:
        raise ValidationError("No active academic session found for this school")
    return session


ActiveSession = Annotated[AcademicSession, Depends(get_active_session)]
