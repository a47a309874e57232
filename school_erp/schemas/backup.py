"""Backup and restore schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from school_erp.models.backup import BackupStatus, BackupType


class BackupResponse(BaseModel):
    id: UUID
    school_id: UUID
    filename: str
    size: int
    checksum: str | None = None
    backup_type: BackupType
    status: BackupStatus
    error: str | None = None
    created_by_id: UUID | None = None
    created_at: datetime

    model_config = {"from_attributes": True}


class BackupRunSummary(BaseModel):
    schools: int
    completed: int
    failed: int
    removed: int


class BackupEnvelope(BaseModel):
    """The JSON stored in a .enc backup file."""

    version: str
    school_id: UUID = Field(..., alias="schoolId")
    encrypted: str
    iv: str
    auth_tag: str = Field(..., alias="authTag")
    checksum: str
    timestamp: str

    model_config = {"populate_by_name": True}


class RestoreRequest(BaseModel):
    """Name a stored backup, or upload its envelope directly."""

    backup_id: UUID | None = None
    backup: BackupEnvelope | None = None
    confirm_restore: bool = False

    @model_validator(mode="after")
    def check_source(self) -> "RestoreRequest":
        if (self.backup_id is None) == (self.backup is None):
            raise ValueError("Provide exactly one of backup_id or backup")
        return self


class RestorePreview(BaseModel):
    school_id: UUID
    school_name: str
    timestamp: str
    tables: dict[str, int]
    total_records: int


class RestoreResult(BaseModel):
    school_id: UUID
    restore_version: str
    restored: dict[str, int]
    archived: int
