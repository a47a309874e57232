"""Platform-wide settings and announcements."""

from datetime import datetime
from enum import Enum
from uuid import UUID

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from school_erp.core.database import BaseModel

DEFAULT_MAINTENANCE_MESSAGE = "System is currently under maintenance. Please try again later."


class AnnouncementPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class SystemSettings(BaseModel):
    """Singleton row; the service always reads and writes the first one."""

    __tablename__ = "system_settings"

    maintenance_mode: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    maintenance_message: Mapped[str] = mapped_column(
        Text,
        default=DEFAULT_MAINTENANCE_MESSAGE,
        nullable=False,
    )
    last_updated_by_id: Mapped[UUID | None] = mapped_column(Uuid, ForeignKey("users.id"))


class SystemAnnouncement(BaseModel):
    __tablename__ = "system_announcements"

    title: Mapped[str] = mapped_column(String(200), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    priority: Mapped[AnnouncementPriority] = mapped_column(
        String(10),
        default=AnnouncementPriority.MEDIUM,
        nullable=False,
    )
    target_roles: Mapped[list] = mapped_column(JSON, default=list, nullable=False)  # empty = everyone
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_by_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("users.id"), nullable=False)
