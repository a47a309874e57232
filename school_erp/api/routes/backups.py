"""Backup and restore routes."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from school_erp.core.database import get_db
from school_erp.core.deps import client_ip, require_roles
from school_erp.core.errors import RestoreError
from school_erp.core.permissions import Role
from school_erp.core.rate_limit import BACKUP_LIMIT, rate_limit
from school_erp.models.audit import AuditAction, EntityType
from school_erp.models.backup import BackupStatus
from school_erp.models.school import School
from school_erp.models.user import User
from school_erp.schemas.backup import (
    BackupEnvelope,
    BackupResponse,
    BackupRunSummary,
    RestorePreview,
    RestoreRequest,
    RestoreResult,
)
from school_erp.services import audit as audit_service
from school_erp.services import backup as backup_service
from school_erp.services import restore as restore_service

router = APIRouter(prefix="/backups", tags=["Backups"])

SuperAdmin = Annotated[User, Depends(require_roles(Role.SUPER_ADMIN))]
Principal = Annotated[User, Depends(require_roles(Role.PRINCIPAL))]
BackupReader = Annotated[User, Depends(require_roles(Role.SUPER_ADMIN, Role.PRINCIPAL))]


# ============== Helper Functions ==============


async def resolve_envelope(db: AsyncSession, restore_request: RestoreRequest) -> BackupEnvelope:
    if restore_request.backup is not None:
        return restore_request.backup
    return await restore_service.load_stored_backup(db, restore_request.backup_id)


# ============== Backups ==============


@router.get("", response_model=list[BackupResponse])
async def list_backups(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: BackupReader,
    school_id: UUID | None = None,
) -> list[BackupResponse]:
    """Backup status. Principals see only their own school's backups."""
    if not current_user.is_super_admin:
        school_id = current_user.school_id
    backups = await backup_service.get_backups(db, school_id)
    return [BackupResponse.model_validate(b) for b in backups]


@router.get("/download", dependencies=[Depends(rate_limit(BACKUP_LIMIT))])
async def download_backup(
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Principal,
) -> Response:
    """Build an encrypted backup of the principal's school and return it as a file."""
    envelope = await backup_service.build_backup(db, current_user.school_id)
    await audit_service.record(
        db,
        user=current_user,
        action=AuditAction.BACKUP_DOWNLOADED,
        entity_type=EntityType.BACKUP,
        entity_id=current_user.school_id,
        description="Downloaded school backup",
        ip_address=client_ip(request),
    )
    filename = backup_service.backup_filename(current_user.school_id)
    return Response(
        content=backup_service.envelope_bytes(envelope),
        media_type="application/octet-stream",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post(
    "/run",
    response_model=BackupRunSummary,
    dependencies=[Depends(rate_limit(BACKUP_LIMIT))],
)
async def run_backups(
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: SuperAdmin,
) -> BackupRunSummary:
    """Back up every school now, outside the daily schedule."""
    summary = await backup_service.run_all_backups(current_user)
    await audit_service.record(
        db,
        user=current_user,
        action=AuditAction.BACKUP_CREATED,
        entity_type=EntityType.BACKUP,
        description=f"Manual backup run: {summary['completed']} completed, {summary['failed']} failed",
        ip_address=client_ip(request),
    )
    return BackupRunSummary(**summary)


@router.post(
    "/schools/{school_id}",
    response_model=BackupResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(rate_limit(BACKUP_LIMIT))],
)
async def backup_school(
    school_id: UUID,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: SuperAdmin,
) -> BackupResponse:
    school = await db.get(School, school_id)
    if not school:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="School not found",
        )

    backup = await backup_service.create_backup(db, school.id, current_user)
    failed = backup.status == BackupStatus.FAILED
    await audit_service.record(
        db,
        user=current_user,
        action=AuditAction.BACKUP_FAILED if failed else AuditAction.BACKUP_CREATED,
        entity_type=EntityType.BACKUP,
        entity_id=backup.id,
        school_id=school.id,
        description=f"Backup {backup.filename} {'failed' if failed else 'created'}",
        ip_address=client_ip(request),
    )
    return BackupResponse.model_validate(backup)


# ============== Restore ==============


@router.post("/restore/preview", response_model=RestorePreview)
async def preview_restore(
    restore_request: RestoreRequest,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: SuperAdmin,
) -> RestorePreview:
    """Decrypt and check a backup, and show what it contains."""
    envelope = await resolve_envelope(db, restore_request)
    preview = restore_service.preview_restore(envelope)
    await audit_service.record(
        db,
        user=current_user,
        action=AuditAction.RESTORE_PREVIEW,
        entity_type=EntityType.BACKUP,
        entity_id=preview.school_id,
        school_id=preview.school_id,
        description=f"Previewed restore of {preview.school_name} ({preview.total_records} records)",
        ip_address=client_ip(request),
    )
    return preview


@router.post(
    "/restore/execute",
    response_model=RestoreResult,
    dependencies=[Depends(rate_limit(BACKUP_LIMIT))],
)
async def execute_restore(
    restore_request: RestoreRequest,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: SuperAdmin,
) -> RestoreResult:
    """
    Replace a school's data with a backup.

    Requires confirm_restore. Current rows are archived first and the whole
    restore runs in one transaction.
    """
    if not restore_request.confirm_restore:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Restore must be confirmed with confirm_restore: true",
        )

    envelope = await resolve_envelope(db, restore_request)
    school_id = envelope.school_id
    try:
        result = await restore_service.execute_restore(db, envelope, current_user)
    except RestoreError as exc:
        await audit_service.record(
            db,
            user=current_user,
            action=AuditAction.RESTORE_EXECUTION_FAILED,
            entity_type=EntityType.BACKUP,
            entity_id=school_id,
            school_id=school_id,
            description=exc.message,
            ip_address=client_ip(request),
        )
        raise

    await audit_service.record(
        db,
        user=current_user,
        action=AuditAction.RESTORE_EXECUTED,
        entity_type=EntityType.BACKUP,
        entity_id=school_id,
        school_id=school_id,
        description=f"Restored school from backup ({result.restore_version}), archived {result.archived} rows",
        ip_address=client_ip(request),
    )
    return result
