"""Promotion routes."""

from typing import Annotated

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from school_erp.core.database import get_db
from school_erp.core.deps import client_ip, enforce_school_isolation, require_roles
from school_erp.core.gating import check_maintenance_mode, require_active_subscription, require_module
from school_erp.core.permissions import Role
from school_erp.core.plans import SchoolModule
from school_erp.models.audit import AuditAction, EntityType
from school_erp.models.user import User
from school_erp.schemas.record import (
    PromotionExecute,
    PromotionPreview,
    PromotionRequest,
    PromotionSummary,
)
from school_erp.services import audit as audit_service
from school_erp.services import record as record_service

router = APIRouter(
    prefix="/promotion",
    tags=["Promotion"],
    dependencies=[
        Depends(enforce_school_isolation),
        Depends(check_maintenance_mode),
        Depends(require_active_subscription()),
        Depends(require_module(SchoolModule.PROMOTION)),
    ],
)

OfficeUser = Annotated[User, Depends(require_roles(Role.PRINCIPAL, Role.OPERATOR))]


@router.post("/preview", response_model=PromotionPreview)
async def preview_promotion(
    request_data: PromotionRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: OfficeUser,
) -> PromotionPreview:
    """Show what a promotion would do, without changing anything."""
    return await record_service.preview_promotion(db, current_user.school_id, request_data)


@router.post("/execute", response_model=PromotionSummary)
async def execute_promotion(
    request_data: PromotionExecute,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: OfficeUser,
) -> PromotionSummary:
    """
    Promote a class into the target session.

    Students follow the preview's suggestion unless overridden.
    """
    counts = await record_service.execute_promotion(db, current_user.school_id, request_data)
    await audit_service.record(
        db,
        user=current_user,
        action=AuditAction.STUDENTS_PROMOTED,
        entity_type=EntityType.CLASS,
        entity_id=request_data.class_id,
        session_id=request_data.to_session_id,
        description=(
            f"Promoted {counts['promoted']}, retained {counts['retained']}, "
            f"completed {counts['completed']} students"
        ),
        ip_address=client_ip(request),
    )
    return PromotionSummary(**counts)
