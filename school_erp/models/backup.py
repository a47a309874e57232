"""Backup metadata and restore archive models."""

from datetime import datetime
from enum import Enum
from uuid import UUID

from sqlalchemy import JSON, BigInteger, DateTime, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from school_erp.core.database import BaseModel, utcnow


class BackupType(str, Enum):
    FULL = "FULL"
    INCREMENTAL = "INCREMENTAL"


class BackupStatus(str, Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class Backup(BaseModel):
    __tablename__ = "backups"

    school_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("schools.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    filename: Mapped[str] = mapped_column(String(255), nullable=False)
    filepath: Mapped[str] = mapped_column(String(500), nullable=False)
    size: Mapped[int] = mapped_column(BigInteger, default=0)
    checksum: Mapped[str | None] = mapped_column(String(64))
    backup_type: Mapped[BackupType] = mapped_column(String(20), default=BackupType.FULL)
    status: Mapped[BackupStatus] = mapped_column(String(20), default=BackupStatus.PENDING)
    error: Mapped[str | None] = mapped_column(Text)
    created_by_id: Mapped[UUID | None] = mapped_column(Uuid)  # None for scheduled runs


class ArchivedRecord(BaseModel):
    """A row that a restore replaced, kept so the restore can be audited."""

    __tablename__ = "archived_records"

    school_id: Mapped[UUID] = mapped_column(Uuid, nullable=False, index=True)
    table_name: Mapped[str] = mapped_column(String(100), nullable=False)
    record_id: Mapped[str] = mapped_column(String(64), nullable=False)
    restore_version: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    payload: Mapped[dict] = mapped_column(JSON, nullable=False)
    archived_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    archived_by_id: Mapped[UUID] = mapped_column(Uuid, nullable=False)
