"""Audit log service."""

import logging
from datetime import datetime
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from school_erp.models.audit import AuditAction, AuditLog, EntityType
from school_erp.models.user import User

logger = logging.getLogger(__name__)


async def record(
    db: AsyncSession,
    *,
    user: User,
    action: AuditAction,
    entity_type: EntityType,
    description: str,
    ip_address: str = "unknown",
    entity_id: UUID | None = None,
    school_id: UUID | None = None,
    session_id: UUID | None = None,
) -> None:
    """Write an audit entry. Failures are logged and never reach the caller.

    Call after the audited change has been committed: a failure here
    rolls back the session.
    """
    entry = AuditLog(
        user_id=user.id,
        role=user.role,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        description=description,
        ip_address=ip_address,
        school_id=school_id if school_id is not None else user.school_id,
        session_id=session_id,
    )
    try:
        db.add(entry)
        await db.commit()
    except SQLAlchemyError:
        logger.exception("Failed to write audit log for %s by %s", action, user.id)
        await db.rollback()


async def get_logs(
    db: AsyncSession,
    *,
    school_id: UUID | None = None,
    user_id: UUID | None = None,
    action: AuditAction | None = None,
    entity_type: EntityType | None = None,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
    skip: int = 0,
    limit: int = 50,
) -> tuple[list[AuditLog], int]:
    """Get audit logs with optional filters, newest first."""
    query = select(AuditLog)

    if school_id is not None:
        query = query.where(AuditLog.school_id == school_id)
    if user_id is not None:
        query = query.where(AuditLog.user_id == user_id)
    if action is not None:
        query = query.where(AuditLog.action == action)
    if entity_type is not None:
        query = query.where(AuditLog.entity_type == entity_type)
    if date_from is not None:
        query = query.where(AuditLog.created_at >= date_from)
    if date_to is not None:
        query = query.where(AuditLog.created_at <= date_to)

    count_query = select(func.count()).select_from(query.subquery())
    total = (await db.execute(count_query)).scalar() or 0

    query = query.order_by(AuditLog.created_at.desc()).offset(skip).limit(limit)
    result = await db.execute(query)
    return list(result.scalars().all()), total


async def get_stats(db: AsyncSession, school_id: UUID | None = None) -> dict:
    """Counts of logged actions, grouped by action and by role."""
    by_action_query = select(AuditLog.action, func.count()).group_by(AuditLog.action)
    by_role_query = select(AuditLog.role, func.count()).group_by(AuditLog.role)
    if school_id is not None:
        by_action_query = by_action_query.where(AuditLog.school_id == school_id)
        by_role_query = by_role_query.where(AuditLog.school_id == school_id)

    by_action = {row[0]: row[1] for row in (await db.execute(by_action_query)).all()}
    by_role = {row[0]: row[1] for row in (await db.execute(by_role_query)).all()}
    return {
        "total": sum(by_action.values()),
        "by_action": by_action,
        "by_role": by_role,
    }
