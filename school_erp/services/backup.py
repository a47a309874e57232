"""Encrypted per-school backups.

A backup is every row the school owns, table by table, serialized to
deterministic JSON and sealed with AES-256-GCM. Files on disk hold a
small JSON envelope around the ciphertext.
"""

import asyncio
import json
import logging
import os
from datetime import date, datetime, timedelta
from decimal import Decimal
from pathlib import Path
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from school_erp.core.config import settings
from school_erp.core.database import async_session_maker, utcnow
from school_erp.core.encryption import encrypt_payload
from school_erp.models.academic import AcademicSession, SchoolClass, Section, Subject
from school_erp.models.attendance import StudentDailyAttendance, StudentSubjectAttendance, TeacherAttendance
from school_erp.models.backup import Backup, BackupStatus, BackupType
from school_erp.models.exam import AdmitCard, Exam, ExamForm, ExamPayment, ExamSubject, Result
from school_erp.models.expense import Expense, Homework, InventoryItem
from school_erp.models.fee import FeePayment, FeeStructure, OnlinePayment, StudentFee
from school_erp.models.hostel import Hostel, HostelLeave, Room, StudentHostel
from school_erp.models.record import AcademicHistory, TransferCertificate
from school_erp.models.salary import SalaryCalculation, SalaryPayment, SalaryProfile
from school_erp.models.school import School
from school_erp.models.student import Parent, Student, Teacher
from school_erp.models.transport import StudentTransport, TransportRoute, Vehicle
from school_erp.models.user import User

logger = logging.getLogger(__name__)

BACKUP_VERSION = "1.0"
FILE_PREFIX = "backup_"
FILE_SUFFIX = ".enc"

# Parents before children, so restoring in this order satisfies foreign keys
# and deleting in reverse order does too. Audit logs are never backed up.
BACKUP_MODELS = [
    School,
    User,
    AcademicSession,
    SchoolClass,
    Section,
    Subject,
    Parent,
    Student,
    Teacher,
    StudentDailyAttendance,
    StudentSubjectAttendance,
    TeacherAttendance,
    FeeStructure,
    StudentFee,
    FeePayment,
    OnlinePayment,
    Exam,
    ExamSubject,
    ExamForm,
    ExamPayment,
    Result,
    AdmitCard,
    AcademicHistory,
    TransferCertificate,
    SalaryProfile,
    SalaryCalculation,
    SalaryPayment,
    Hostel,
    Room,
    StudentHostel,
    HostelLeave,
    Vehicle,
    TransportRoute,
    StudentTransport,
    Expense,
    InventoryItem,
    Homework,
]

BACKUP_TABLES = [model.__tablename__ for model in BACKUP_MODELS]


def to_json_value(value):
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    return value


def row_to_dict(table, row) -> dict:
    return {column.key: to_json_value(row[column.key]) for column in table.columns}


def school_filter(model, school_id: UUID):
    if model is School:
        return School.id == school_id
    return model.school_id == school_id


async def collect_tables(db: AsyncSession, school_id: UUID) -> dict[str, list[dict]]:
    """Every backed-up table's rows for one school, ordered by id."""
    tables = {}
    for model in BACKUP_MODELS:
        table = model.__table__
        result = await db.execute(
            select(table).where(school_filter(model, school_id)).order_by(table.c.id)
        )
        tables[table.name] = [row_to_dict(table, row) for row in result.mappings().all()]
    return tables


def serialize_payload(school_id: UUID, timestamp: str, tables: dict[str, list[dict]]) -> bytes:
    """Deterministic JSON: same data in, same bytes out."""
    payload = {"schoolId": str(school_id), "timestamp": timestamp, "tables": tables}
    return json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


async def build_backup(db: AsyncSession, school_id: UUID) -> dict:
    """Collect, serialize and encrypt a school's data into a backup envelope."""
    timestamp = utcnow().isoformat()
    tables = await collect_tables(db, school_id)
    plaintext = serialize_payload(school_id, timestamp, tables)
    sealed = encrypt_payload(plaintext)
    return {
        "version": BACKUP_VERSION,
        "schoolId": str(school_id),
        "encrypted": sealed["encrypted"],
        "iv": sealed["iv"],
        "authTag": sealed["authTag"],
        "checksum": sealed["checksum"],
        "timestamp": timestamp,
    }


def envelope_bytes(envelope: dict) -> bytes:
    return json.dumps(envelope, indent=2).encode("utf-8")


def backup_filename(school_id: UUID, now: datetime | None = None) -> str:
    stamp = (now or utcnow()).strftime("%Y%m%dT%H%M%S%fZ")
    return f"{FILE_PREFIX}{school_id}_{stamp}{FILE_SUFFIX}"


async def create_backup(
    db: AsyncSession,
    school_id: UUID,
    created_by: User | None = None,
    directory: str | None = None,
) -> Backup:
    """Write a school's backup to disk and record it. Failures are recorded, not raised."""
    directory = directory or settings.BACKUP_DIR
    filename = backup_filename(school_id)
    filepath = os.path.join(directory, filename)
    backup = Backup(
        school_id=school_id,
        filename=filename,
        filepath=filepath,
        backup_type=BackupType.FULL,
        status=BackupStatus.PENDING,
        created_by_id=created_by.id if created_by else None,
    )

    try:
        envelope = await build_backup(db, school_id)
        data = envelope_bytes(envelope)
        Path(directory).mkdir(parents=True, exist_ok=True)
        Path(filepath).write_bytes(data)
        backup.size = len(data)
        backup.checksum = envelope["checksum"]
        backup.status = BackupStatus.COMPLETED
        logger.info("Backup written for school %s: %s", school_id, filename)
    except Exception as exc:
        logger.exception("Backup failed for school %s", school_id)
        await db.rollback()
        backup.status = BackupStatus.FAILED
        backup.error = str(exc)[:1000]

    db.add(backup)
    await db.commit()
    await db.refresh(backup)
    return backup


async def get_backups(db: AsyncSession, school_id: UUID | None = None, limit: int = 50) -> list[Backup]:
    query = select(Backup)
    if school_id is not None:
        query = query.where(Backup.school_id == school_id)
    result = await db.execute(query.order_by(Backup.created_at.desc()).limit(limit))
    return list(result.scalars().all())


def cleanup_old_backups(
    directory: str | None = None,
    retention_days: int | None = None,
    now: datetime | None = None,
) -> list[str]:
    """Delete backup files older than the retention window. Returns removed names."""
    folder = Path(directory or settings.BACKUP_DIR)
    if not folder.is_dir():
        return []
    days = settings.BACKUP_RETENTION_DAYS if retention_days is None else retention_days
    cutoff = ((now or utcnow()) - timedelta(days=days)).timestamp()

    removed = []
    for path in folder.glob(f"{FILE_PREFIX}*{FILE_SUFFIX}"):
        if path.stat().st_mtime < cutoff:
            path.unlink()
            removed.append(path.name)
    if removed:
        logger.info("Removed %d expired backup files", len(removed))
    return removed


async def run_all_backups(
    created_by: User | None = None,
    session_factory=None,
    directory: str | None = None,
) -> dict[str, int]:
    """Back up every school, each in its own session, then apply retention."""
    session_factory = session_factory or async_session_maker
    async with session_factory() as db:
        school_ids = list((await db.execute(select(School.id).order_by(School.created_at))).scalars().all())

    completed = failed = 0
    for school_id in school_ids:
        async with session_factory() as db:
            backup = await create_backup(db, school_id, created_by, directory)
        if backup.status == BackupStatus.COMPLETED:
            completed += 1
        else:
            failed += 1

    removed = cleanup_old_backups(directory)
    logger.info("Backup run finished: %d completed, %d failed", completed, failed)
    return {"schools": len(school_ids), "completed": completed, "failed": failed, "removed": len(removed)}


def seconds_until_next_run(hour: int, now: datetime | None = None) -> float:
    now = now or utcnow()
    next_run = now.replace(hour=hour, minute=0, second=0, microsecond=0)
    if next_run <= now:
        next_run += timedelta(days=1)
    return (next_run - now).total_seconds()


async def backup_scheduler() -> None:
    """Run the backup job daily at BACKUP_SCHEDULE_HOUR (UTC) until cancelled."""
    while True:
        delay = seconds_until_next_run(settings.BACKUP_SCHEDULE_HOUR)
        logger.info("Next scheduled backup in %.0f seconds", delay)
        await asyncio.sleep(delay)
        try:
            await run_all_backups()
        except Exception:
            logger.exception("Scheduled backup run failed")
