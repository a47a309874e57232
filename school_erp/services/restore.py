"""Restore a school from an encrypted backup.

Execution happens in one transaction: each table's current rows are
archived, deleted and replaced by the backup's rows. Any failure rolls
back everything.
"""

import json
import logging
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path
from uuid import UUID

from sqlalchemy import Date, DateTime, Float, Numeric, Uuid, delete, insert, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from school_erp.core.database import utcnow
from school_erp.core.encryption import BackupCryptoError, checksum, decrypt_payload
from school_erp.core.errors import NotFoundError, RestoreError, ValidationError
from school_erp.models.backup import ArchivedRecord, Backup
from school_erp.models.school import School
from school_erp.models.user import User
from school_erp.schemas.backup import BackupEnvelope, RestorePreview, RestoreResult
from school_erp.services.backup import BACKUP_MODELS, BACKUP_TABLES, row_to_dict, school_filter

logger = logging.getLogger(__name__)


def from_json_value(column, value):
    if value is None:
        return None
    column_type = column.type
    if isinstance(column_type, Uuid):
        return UUID(value)
    if isinstance(column_type, DateTime):
        return datetime.fromisoformat(value)
    if isinstance(column_type, Date):
        return date.fromisoformat(value)
    if isinstance(column_type, Numeric) and not isinstance(column_type, Float):
        return Decimal(value)
    return value


def row_from_dict(table, data: dict) -> dict:
    return {column.key: from_json_value(column, data.get(column.key)) for column in table.columns}


def validate_payload(payload, school_id: str) -> None:
    if not isinstance(payload, dict):
        raise ValidationError("Backup payload must be an object")
    if payload.get("schoolId") != school_id:
        raise ValidationError("Backup school does not match its envelope")
    if not isinstance(payload.get("timestamp"), str):
        raise ValidationError("Backup timestamp is missing")

    tables = payload.get("tables")
    if not isinstance(tables, dict):
        raise ValidationError("Backup tables are missing")
    unknown = sorted(set(tables) - set(BACKUP_TABLES))
    if unknown:
        raise ValidationError(f"Backup contains unknown tables: {', '.join(unknown)}")
    for name, rows in tables.items():
        if not isinstance(rows, list) or not all(isinstance(row, dict) for row in rows):
            raise ValidationError(f"Backup table '{name}' must be a list of records")

    schools = tables.get("schools") or []
    if len(schools) != 1 or schools[0].get("id") != school_id:
        raise ValidationError("Backup must contain exactly its own school record")


def open_backup(envelope: BackupEnvelope, key: str | bytes | None = None) -> dict:
    """Decrypt, verify the checksum and validate the shape of a backup."""
    try:
        plaintext = decrypt_payload(envelope.encrypted, envelope.iv, envelope.auth_tag, key)
    except BackupCryptoError as exc:
        raise ValidationError(str(exc)) from exc

    if checksum(plaintext) != envelope.checksum:
        raise ValidationError("Backup checksum mismatch")

    try:
        payload = json.loads(plaintext)
    except ValueError as exc:
        raise ValidationError("Backup payload is not valid JSON") from exc

    validate_payload(payload, str(envelope.school_id))
    return payload


async def load_stored_backup(db: AsyncSession, backup_id: UUID) -> BackupEnvelope:
    backup = await db.get(Backup, backup_id)
    if backup is None:
        raise NotFoundError("Backup")
    path = Path(backup.filepath)
    if not path.is_file():
        raise NotFoundError("Backup file")
    try:
        return BackupEnvelope.model_validate_json(path.read_bytes())
    except ValueError as exc:
        raise ValidationError("Backup file is not a valid backup envelope") from exc


def preview_restore(envelope: BackupEnvelope) -> RestorePreview:
    payload = open_backup(envelope)
    tables = {name: len(payload["tables"].get(name, [])) for name in BACKUP_TABLES}
    return RestorePreview(
        school_id=UUID(payload["schoolId"]),
        school_name=payload["tables"]["schools"][0].get("name", ""),
        timestamp=payload["timestamp"],
        tables=tables,
        total_records=sum(tables.values()),
    )


async def _archive_and_clear(
    db: AsyncSession,
    model,
    school_id: UUID,
    restore_version: str,
    archived_by: User,
) -> int:
    table = model.__table__
    rows = (await db.execute(select(table).where(school_filter(model, school_id)))).mappings().all()
    for row in rows:
        db.add(
            ArchivedRecord(
                school_id=school_id,
                table_name=table.name,
                record_id=str(row["id"]),
                restore_version=restore_version,
                payload=row_to_dict(table, row),
                archived_by_id=archived_by.id,
            )
        )
    await db.flush()
    # The school row is updated in place so nothing cascades from it.
    if model is not School:
        await db.execute(delete(table).where(school_filter(model, school_id)))
    return len(rows)


async def _write_rows(db: AsyncSession, model, school_id: UUID, records: list[dict], school_exists: bool) -> int:
    table = model.__table__
    rows = [row_from_dict(table, record) for record in records]
    if model is School:
        values = dict(rows[0])
        if school_exists:
            values.pop("id")
            await db.execute(update(table).where(table.c.id == school_id).values(**values))
        else:
            await db.execute(insert(table).values(**values))
    elif rows:
        await db.execute(insert(table), rows)
    return len(rows)


async def execute_restore(db: AsyncSession, envelope: BackupEnvelope, restored_by: User) -> RestoreResult:
    """Replace a school's data with the backup's. Audit logs are left untouched."""
    payload = open_backup(envelope)
    school_id = UUID(payload["schoolId"])
    restore_version = f"{school_id}_{utcnow().strftime('%Y%m%dT%H%M%S%fZ')}"

    archived = 0
    restored: dict[str, int] = {}
    current_table = None
    try:
        school_exists = (await db.execute(select(School.id).where(School.id == school_id))).first() is not None

        for model in reversed(BACKUP_MODELS):
            current_table = model.__tablename__
            archived += await _archive_and_clear(db, model, school_id, restore_version, restored_by)

        for model in BACKUP_MODELS:
            current_table = model.__tablename__
            records = payload["tables"].get(current_table, [])
            restored[current_table] = await _write_rows(db, model, school_id, records, school_exists)

        await db.commit()
    except (SQLAlchemyError, ValueError, KeyError, TypeError) as exc:
        await db.rollback()
        logger.exception("Restore of school %s failed at table %s", school_id, current_table)
        raise RestoreError(
            f"Restore failed at table '{current_table}'; no changes were applied",
            extra={"table": current_table},
        ) from exc

    logger.warning("School %s restored from backup (%s), %d rows archived", school_id, restore_version, archived)
    return RestoreResult(
        school_id=school_id,
        restore_version=restore_version,
        restored=restored,
        archived=archived,
    )
