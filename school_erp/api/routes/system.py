"""System administration routes."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from school_erp.core.database import get_db
from school_erp.core.deps import CurrentUser, client_ip, require_roles
from school_erp.core.permissions import Role
from school_erp.models.audit import AuditAction, EntityType
from school_erp.models.user import User
from school_erp.schemas.system import (
    AnnouncementCreate,
    AnnouncementResponse,
    MaintenanceStatus,
    MaintenanceUpdate,
    PlatformStats,
)
from school_erp.services import audit as audit_service
from school_erp.services import system as system_service

router = APIRouter(prefix="/system", tags=["System"])

SuperAdmin = Annotated[User, Depends(require_roles(Role.SUPER_ADMIN))]


@router.get("/maintenance", response_model=MaintenanceStatus)
async def get_maintenance(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: SuperAdmin,
) -> MaintenanceStatus:
    system_settings = await system_service.get_settings(db)
    return MaintenanceStatus(
        maintenance_mode=system_settings.maintenance_mode,
        maintenance_message=system_settings.maintenance_message,
        updated_at=system_settings.updated_at,
    )


@router.put("/maintenance", response_model=MaintenanceStatus)
async def set_maintenance(
    update: MaintenanceUpdate,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: SuperAdmin,
) -> MaintenanceStatus:
    """Turn maintenance mode on or off. Everyone but super admins gets 503 while it is on."""
    system_settings = await system_service.set_maintenance(db, update, current_user)
    await audit_service.record(
        db,
        user=current_user,
        action=AuditAction.MAINTENANCE_TOGGLED,
        entity_type=EntityType.SYSTEM,
        entity_id=system_settings.id,
        description=f"Maintenance mode {'enabled' if system_settings.maintenance_mode else 'disabled'}",
        ip_address=client_ip(request),
    )
    return MaintenanceStatus(
        maintenance_mode=system_settings.maintenance_mode,
        maintenance_message=system_settings.maintenance_message,
        updated_at=system_settings.updated_at,
    )


@router.get("/stats", response_model=PlatformStats)
async def platform_stats(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: SuperAdmin,
) -> PlatformStats:
    return await system_service.platform_stats(db)


# ============== Announcements ==============


@router.post("/announcements", response_model=AnnouncementResponse, status_code=status.HTTP_201_CREATED)
async def create_announcement(
    data: AnnouncementCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: SuperAdmin,
) -> AnnouncementResponse:
    announcement = await system_service.create_announcement(db, data, current_user)
    return AnnouncementResponse.model_validate(announcement)


@router.get("/announcements", response_model=list[AnnouncementResponse])
async def list_announcements(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: SuperAdmin,
) -> list[AnnouncementResponse]:
    announcements = await system_service.get_announcements(db)
    return [AnnouncementResponse.model_validate(a) for a in announcements]


@router.get("/announcements/active", response_model=list[AnnouncementResponse])
async def active_announcements(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: CurrentUser,
) -> list[AnnouncementResponse]:
    """Announcements for the caller's role."""
    announcements = await system_service.get_active_announcements(db, current_user)
    return [AnnouncementResponse.model_validate(a) for a in announcements]


@router.post("/announcements/{announcement_id}/deactivate", response_model=AnnouncementResponse)
async def deactivate_announcement(
    announcement_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: SuperAdmin,
) -> AnnouncementResponse:
    announcement = await system_service.deactivate_announcement(db, announcement_id)
    return AnnouncementResponse.model_validate(announcement)
