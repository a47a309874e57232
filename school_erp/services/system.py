"""Platform settings, announcements and statistics."""

import logging

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from school_erp.core.database import as_utc, utcnow
from school_erp.core.errors import NotFoundError
from school_erp.models.school import School, SchoolStatus
from school_erp.models.student import Student, StudentStatus
from school_erp.models.system import DEFAULT_MAINTENANCE_MESSAGE, SystemAnnouncement, SystemSettings
from school_erp.models.user import User, UserStatus
from school_erp.schemas.system import AnnouncementCreate, MaintenanceUpdate, PlatformStats

logger = logging.getLogger(__name__)


async def get_settings(db: AsyncSession) -> SystemSettings:
    """The singleton settings row, created on first use."""
    result = await db.execute(select(SystemSettings).order_by(SystemSettings.created_at).limit(1))
    system_settings = result.scalar_one_or_none()
    if system_settings is None:
        system_settings = SystemSettings(
            maintenance_mode=False,
            maintenance_message=DEFAULT_MAINTENANCE_MESSAGE,
        )
        db.add(system_settings)
        await db.commit()
        await db.refresh(system_settings)
    return system_settings


async def set_maintenance(db: AsyncSession, update: MaintenanceUpdate, updated_by: User) -> SystemSettings:
    system_settings = await get_settings(db)
    system_settings.maintenance_mode = update.maintenance_mode
    if update.maintenance_message is not None:
        system_settings.maintenance_message = update.maintenance_message
    system_settings.last_updated_by_id = updated_by.id

    await db.commit()
    await db.refresh(system_settings)
    logger.warning("Maintenance mode %s by %s", "enabled" if update.maintenance_mode else "disabled", updated_by.id)
    return system_settings


# ============== Announcements ==============


async def create_announcement(db: AsyncSession, data: AnnouncementCreate, created_by: User) -> SystemAnnouncement:
    announcement = SystemAnnouncement(
        title=data.title,
        message=data.message,
        priority=data.priority,
        target_roles=[role.value for role in data.target_roles],
        expires_at=data.expires_at,
        is_active=True,
        created_by_id=created_by.id,
    )
    db.add(announcement)
    await db.commit()
    await db.refresh(announcement)
    return announcement


async def get_announcements(db: AsyncSession) -> list[SystemAnnouncement]:
    result = await db.execute(select(SystemAnnouncement).order_by(SystemAnnouncement.created_at.desc()))
    return list(result.scalars().all())


async def get_active_announcements(db: AsyncSession, user: User) -> list[SystemAnnouncement]:
    """Active, unexpired announcements aimed at everyone or at the user's role."""
    now = utcnow()
    result = await db.execute(
        select(SystemAnnouncement)
        .where(
            SystemAnnouncement.is_active.is_(True),
            or_(SystemAnnouncement.expires_at.is_(None), SystemAnnouncement.expires_at > now),
        )
        .order_by(SystemAnnouncement.created_at.desc())
    )
    return [
        a
        for a in result.scalars().all()
        if (not a.target_roles or user.role in a.target_roles)
        and (a.expires_at is None or as_utc(a.expires_at) > now)
    ]


async def deactivate_announcement(db: AsyncSession, announcement_id) -> SystemAnnouncement:
    announcement = await db.get(SystemAnnouncement, announcement_id)
    if announcement is None:
        raise NotFoundError("Announcement")
    announcement.is_active = False
    await db.commit()
    await db.refresh(announcement)
    return announcement


# ============== Stats ==============


async def platform_stats(db: AsyncSession) -> PlatformStats:
    schools = (await db.execute(select(func.count()).select_from(School))).scalar() or 0
    active = (
        await db.execute(select(func.count()).select_from(School).where(School.status == SchoolStatus.ACTIVE))
    ).scalar() or 0
    expired = (
        await db.execute(
            select(func.count()).select_from(School).where(School.subscription_is_expired.is_(True))
        )
    ).scalar() or 0
    by_plan = dict((await db.execute(select(School.plan, func.count()).group_by(School.plan))).all())
    by_role = dict(
        (
            await db.execute(
                select(User.role, func.count()).where(User.status == UserStatus.ACTIVE).group_by(User.role)
            )
        ).all()
    )
    students = (
        await db.execute(
            select(func.count()).select_from(Student).where(Student.status == StudentStatus.ACTIVE)
        )
    ).scalar() or 0

    return PlatformStats(
        schools=schools,
        active_schools=active,
        expired_subscriptions=expired,
        schools_by_plan=by_plan,
        users_by_role=by_role,
        students=students,
    )
