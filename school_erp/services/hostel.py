"""Hostel service: hostels, rooms, bed allocation and leaves."""

import logging
from datetime import date
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from school_erp.core.errors import ConflictError, NotFoundError, ValidationError
from school_erp.models.hostel import AllocationStatus, Hostel, HostelLeave, LeaveStatus, Room, StudentHostel
from school_erp.models.student import Student, StudentStatus
from school_erp.models.user import User
from school_erp.schemas.hostel import AllocationCreate, HostelCreate, LeaveCreate, RoomCreate

logger = logging.getLogger(__name__)


async def _active_student(db: AsyncSession, school_id: UUID, student_id: UUID) -> Student:
    student = await db.get(Student, student_id)
    if student is None or student.school_id != school_id:
        raise NotFoundError("Student")
    if student.status != StudentStatus.ACTIVE:
        raise ValidationError("Student is not active")
    return student


# ============== Hostels & Rooms ==============


async def get_hostel_by_id(db: AsyncSession, hostel_id: UUID, school_id: UUID) -> Hostel | None:
    result = await db.execute(select(Hostel).where(Hostel.id == hostel_id, Hostel.school_id == school_id))
    return result.scalar_one_or_none()


async def get_hostels(db: AsyncSession, school_id: UUID) -> list[Hostel]:
    result = await db.execute(select(Hostel).where(Hostel.school_id == school_id).order_by(Hostel.name))
    return list(result.scalars().all())


async def create_hostel(db: AsyncSession, school_id: UUID, created_by: User, hostel_data: HostelCreate) -> Hostel:
    existing = await db.execute(
        select(Hostel.id).where(Hostel.school_id == school_id, Hostel.name == hostel_data.name)
    )
    if existing.first() is not None:
        raise ConflictError("Hostel with this name already exists")

    hostel = Hostel(
        school_id=school_id,
        name=hostel_data.name,
        capacity=hostel_data.capacity,
        created_by_id=created_by.id,
    )
    db.add(hostel)
    await db.commit()
    await db.refresh(hostel)
    return hostel


async def get_rooms(db: AsyncSession, hostel: Hostel) -> list[Room]:
    result = await db.execute(select(Room).where(Room.hostel_id == hostel.id).order_by(Room.room_number))
    return list(result.scalars().all())


async def create_room(db: AsyncSession, hostel: Hostel, created_by: User, room_data: RoomCreate) -> Room:
    existing = await db.execute(
        select(Room.id).where(Room.hostel_id == hostel.id, Room.room_number == room_data.room_number)
    )
    if existing.first() is not None:
        raise ConflictError("Room number already exists in this hostel")

    room = Room(
        school_id=hostel.school_id,
        hostel_id=hostel.id,
        room_number=room_data.room_number,
        total_beds=room_data.total_beds,
        available_beds=room_data.total_beds,
        created_by_id=created_by.id,
    )
    db.add(room)
    await db.commit()
    await db.refresh(room)
    return room


# ============== Allocations ==============


async def get_allocations(
    db: AsyncSession,
    school_id: UUID,
    hostel_id: UUID | None = None,
    active_only: bool = True,
) -> list[StudentHostel]:
    query = select(StudentHostel).where(StudentHostel.school_id == school_id)
    if hostel_id is not None:
        query = query.where(StudentHostel.hostel_id == hostel_id)
    if active_only:
        query = query.where(StudentHostel.status == AllocationStatus.ACTIVE)
    result = await db.execute(query.order_by(StudentHostel.entry_date))
    return list(result.scalars().all())


async def allocate_bed(db: AsyncSession, school_id: UUID, allocation_data: AllocationCreate) -> StudentHostel:
    """
    Give a student the lowest free bed in a room.

    The room row is locked while its available beds are decremented.
    """
    student = await _active_student(db, school_id, allocation_data.student_id)

    current = await db.execute(
        select(StudentHostel.id).where(
            StudentHostel.student_id == student.id,
            StudentHostel.status == AllocationStatus.ACTIVE,
        )
    )
    if current.first() is not None:
        raise ConflictError("Student already has a hostel allocation")

    result = await db.execute(
        select(Room)
        .where(Room.id == allocation_data.room_id, Room.school_id == school_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    room = result.scalar_one_or_none()
    if room is None:
        raise NotFoundError("Room")
    if room.available_beds <= 0:
        raise ValidationError("No beds available in this room")

    taken = await db.execute(
        select(StudentHostel.bed_number).where(
            StudentHostel.room_id == room.id,
            StudentHostel.status == AllocationStatus.ACTIVE,
        )
    )
    used = set(taken.scalars().all())
    bed_number = next(n for n in range(1, room.total_beds + 1) if n not in used)

    allocation = StudentHostel(
        school_id=school_id,
        student_id=student.id,
        hostel_id=room.hostel_id,
        room_id=room.id,
        bed_number=bed_number,
        entry_date=allocation_data.entry_date or date.today(),
        status=AllocationStatus.ACTIVE,
    )
    db.add(allocation)
    room.available_beds -= 1

    await db.commit()
    await db.refresh(allocation)
    logger.info("Allocated bed %s in room %s to student %s", bed_number, room.id, student.id)
    return allocation


async def release_bed(db: AsyncSession, school_id: UUID, allocation_id: UUID) -> StudentHostel:
    result = await db.execute(
        select(StudentHostel).where(StudentHostel.id == allocation_id, StudentHostel.school_id == school_id)
    )
    allocation = result.scalar_one_or_none()
    if allocation is None:
        raise NotFoundError("Allocation")
    if allocation.status != AllocationStatus.ACTIVE:
        raise ValidationError("Allocation is already released")

    room_result = await db.execute(
        select(Room).where(Room.id == allocation.room_id).with_for_update().execution_options(populate_existing=True)
    )
    room = room_result.scalar_one()
    allocation.status = AllocationStatus.INACTIVE
    room.available_beds = min(room.total_beds, room.available_beds + 1)

    await db.commit()
    await db.refresh(allocation)
    return allocation


# ============== Leaves ==============


async def get_leaves(
    db: AsyncSession,
    school_id: UUID,
    student_ids: list[UUID] | None = None,
    status: LeaveStatus | None = None,
) -> list[HostelLeave]:
    query = select(HostelLeave).where(HostelLeave.school_id == school_id)
    if student_ids is not None:
        query = query.where(HostelLeave.student_id.in_(student_ids))
    if status is not None:
        query = query.where(HostelLeave.status == status)
    result = await db.execute(query.order_by(HostelLeave.from_date.desc()))
    return list(result.scalars().all())


async def apply_leave(db: AsyncSession, school_id: UUID, created_by: User, leave_data: LeaveCreate) -> HostelLeave:
    student = await _active_student(db, school_id, leave_data.student_id)
    allocation = await db.execute(
        select(StudentHostel.id).where(
            StudentHostel.student_id == student.id,
            StudentHostel.status == AllocationStatus.ACTIVE,
        )
    )
    if allocation.first() is None:
        raise ValidationError("Student is not allocated to a hostel")

    leave = HostelLeave(
        school_id=school_id,
        student_id=student.id,
        from_date=leave_data.from_date,
        to_date=leave_data.to_date,
        reason=leave_data.reason,
        status=LeaveStatus.PENDING,
        created_by_id=created_by.id,
    )
    db.add(leave)
    await db.commit()
    await db.refresh(leave)
    return leave


async def decide_leave(
    db: AsyncSession,
    school_id: UUID,
    leave_id: UUID,
    decision: LeaveStatus,
    decided_by: User,
) -> HostelLeave:
    result = await db.execute(
        select(HostelLeave).where(HostelLeave.id == leave_id, HostelLeave.school_id == school_id)
    )
    leave = result.scalar_one_or_none()
    if leave is None:
        raise NotFoundError("Leave")
    if leave.status != LeaveStatus.PENDING:
        raise ValidationError("Leave has already been decided")

    leave.status = decision
    leave.approved_by_id = decided_by.id
    await db.commit()
    await db.refresh(leave)
    return leave
