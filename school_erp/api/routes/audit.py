"""Audit log routes."""

from datetime import datetime
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from school_erp.core.database import get_db
from school_erp.core.deps import require_roles
from school_erp.core.permissions import Role
from school_erp.models.audit import AuditAction, EntityType
from school_erp.models.user import User
from school_erp.schemas.system import AuditLogListResponse, AuditLogResponse, AuditStats
from school_erp.services import audit as audit_service

router = APIRouter(prefix="/audit-logs", tags=["Audit Logs"])

AuditReader = Annotated[User, Depends(require_roles(Role.SUPER_ADMIN, Role.PRINCIPAL))]


def _scope(current_user: User, school_id: UUID | None) -> UUID | None:
    """Super admins may look at any school or all of them; principals only their own."""
    if current_user.is_super_admin:
        return school_id
    return current_user.school_id


@router.get("", response_model=AuditLogListResponse)
async def list_audit_logs(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: AuditReader,
    school_id: UUID | None = None,
    user_id: UUID | None = None,
    action: AuditAction | None = None,
    entity_type: EntityType | None = None,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
    skip: Annotated[int, Query(ge=0)] = 0,
    limit: Annotated[int, Query(ge=1, le=200)] = 50,
) -> AuditLogListResponse:
    logs, total = await audit_service.get_logs(
        db,
        school_id=_scope(current_user, school_id),
        user_id=user_id,
        action=action,
        entity_type=entity_type,
        date_from=date_from,
        date_to=date_to,
        skip=skip,
        limit=limit,
    )
    return AuditLogListResponse(
        items=[AuditLogResponse.model_validate(log) for log in logs],
        total=total,
        skip=skip,
        limit=limit,
    )


@router.get("/stats", response_model=AuditStats)
async def audit_stats(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: AuditReader,
    school_id: UUID | None = None,
) -> AuditStats:
    stats = await audit_service.get_stats(db, _scope(current_user, school_id))
    return AuditStats(**stats)
