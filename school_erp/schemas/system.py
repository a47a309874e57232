"""Audit log and system administration schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from school_erp.core.permissions import Role
from school_erp.models.audit import AuditAction, EntityType
from school_erp.models.system import AnnouncementPriority


class AuditLogResponse(BaseModel):
    id: UUID
    user_id: UUID
    role: str
    action: AuditAction
    entity_type: EntityType
    entity_id: UUID | None = None
    description: str
    ip_address: str
    school_id: UUID | None = None
    session_id: UUID | None = None
    created_at: datetime

    model_config = {"from_attributes": True}


class AuditLogListResponse(BaseModel):
    items: list[AuditLogResponse]
    total: int
    skip: int
    limit: int


class AuditStats(BaseModel):
    total: int
    by_action: dict[str, int]
    by_role: dict[str, int]


class MaintenanceStatus(BaseModel):
    maintenance_mode: bool
    maintenance_message: str
    updated_at: datetime | None = None


class MaintenanceUpdate(BaseModel):
    maintenance_mode: bool
    maintenance_message: str | None = Field(None, min_length=1, max_length=1000)


class AnnouncementCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    message: str = Field(..., min_length=1)
    priority: AnnouncementPriority = AnnouncementPriority.MEDIUM
    target_roles: list[Role] = Field(default_factory=list)
    expires_at: datetime | None = None


class AnnouncementResponse(BaseModel):
    id: UUID
    title: str
    message: str
    priority: AnnouncementPriority
    target_roles: list[Role]
    is_active: bool
    expires_at: datetime | None = None
    created_at: datetime

    model_config = {"from_attributes": True}


class PlatformStats(BaseModel):
    schools: int
    active_schools: int
    expired_subscriptions: int
    schools_by_plan: dict[str, int]
    users_by_role: dict[str, int]
    students: int
