"""Attendance service. Every mark is an upsert on its natural key."""

from datetime import date
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from school_erp.core.errors import NotFoundError, ValidationError
from school_erp.core.permissions import STAFF_ROLES
from school_erp.models.academic import SchoolClass, Subject
from school_erp.models.attendance import (
    AttendanceStatus,
    StudentDailyAttendance,
    StudentSubjectAttendance,
    TeacherAttendance,
)
from school_erp.models.student import Student, StudentStatus
from school_erp.models.user import User
from school_erp.schemas.attendance import (
    DailyAttendanceMark,
    SubjectAttendanceMark,
    TeacherAttendanceMark,
)


async def _class_students(db: AsyncSession, school_id: UUID, class_id: UUID, student_ids: list[UUID]) -> set[UUID]:
    """Ids among `student_ids` that are active students of the class."""
    result = await db.execute(
        select(Student.id).where(
            Student.school_id == school_id,
            Student.class_id == class_id,
            Student.status == StudentStatus.ACTIVE,
            Student.id.in_(student_ids),
        )
    )
    return set(result.scalars().all())


async def mark_daily(
    db: AsyncSession,
    *,
    school_id: UUID,
    session_id: UUID,
    marked_by: User,
    mark_data: DailyAttendanceMark,
) -> list[StudentDailyAttendance]:
    """Record daily attendance for a class."""
    school_class = await db.get(SchoolClass, mark_data.class_id)
    if school_class is None or school_class.school_id != school_id:
        raise NotFoundError("Class")

    student_ids = [r.student_id for r in mark_data.records]
    valid = await _class_students(db, school_id, school_class.id, student_ids)
    invalid = [str(i) for i in student_ids if i not in valid]
    if invalid:
        raise ValidationError(f"Students not active in this class: {', '.join(invalid)}")

    existing_result = await db.execute(
        select(StudentDailyAttendance).where(
            StudentDailyAttendance.school_id == school_id,
            StudentDailyAttendance.attendance_date == mark_data.attendance_date,
            StudentDailyAttendance.student_id.in_(student_ids),
        )
    )
    existing = {row.student_id: row for row in existing_result.scalars().all()}

    rows = []
    for record in mark_data.records:
        row = existing.get(record.student_id)
        if row is None:
            row = StudentDailyAttendance(
                school_id=school_id,
                session_id=session_id,
                student_id=record.student_id,
                class_id=school_class.id,
                attendance_date=mark_data.attendance_date,
            )
            db.add(row)
            existing[record.student_id] = row
        row.status = record.status
        row.marked_by_id = marked_by.id
        rows.append(row)

    await db.commit()
    return rows


async def get_daily(
    db: AsyncSession,
    school_id: UUID,
    class_id: UUID,
    attendance_date: date,
) -> list[StudentDailyAttendance]:
    result = await db.execute(
        select(StudentDailyAttendance).where(
            StudentDailyAttendance.school_id == school_id,
            StudentDailyAttendance.class_id == class_id,
            StudentDailyAttendance.attendance_date == attendance_date,
        )
    )
    return list(result.scalars().all())


async def mark_subject(
    db: AsyncSession,
    *,
    school_id: UUID,
    session_id: UUID,
    marked_by: User,
    mark_data: SubjectAttendanceMark,
) -> list[StudentSubjectAttendance]:
    """Record attendance for one subject period."""
    subject = await db.get(Subject, mark_data.subject_id)
    if subject is None or subject.school_id != school_id:
        raise NotFoundError("Subject")

    student_ids = [r.student_id for r in mark_data.records]
    valid = await _class_students(db, school_id, subject.class_id, student_ids)
    invalid = [str(i) for i in student_ids if i not in valid]
    if invalid:
        raise ValidationError(f"Students not active in this class: {', '.join(invalid)}")

    existing_result = await db.execute(
        select(StudentSubjectAttendance).where(
            StudentSubjectAttendance.subject_id == subject.id,
            StudentSubjectAttendance.attendance_date == mark_data.attendance_date,
            StudentSubjectAttendance.period == mark_data.period,
            StudentSubjectAttendance.student_id.in_(student_ids),
        )
    )
    existing = {row.student_id: row for row in existing_result.scalars().all()}

    rows = []
    for record in mark_data.records:
        row = existing.get(record.student_id)
        if row is None:
            row = StudentSubjectAttendance(
                school_id=school_id,
                session_id=session_id,
                student_id=record.student_id,
                subject_id=subject.id,
                attendance_date=mark_data.attendance_date,
                period=mark_data.period,
            )
            db.add(row)
            existing[record.student_id] = row
        row.status = record.status
        row.marked_by_id = marked_by.id
        rows.append(row)

    await db.commit()
    return rows


async def get_subject(
    db: AsyncSession,
    school_id: UUID,
    subject_id: UUID,
    attendance_date: date,
) -> list[StudentSubjectAttendance]:
    result = await db.execute(
        select(StudentSubjectAttendance)
        .where(
            StudentSubjectAttendance.school_id == school_id,
            StudentSubjectAttendance.subject_id == subject_id,
            StudentSubjectAttendance.attendance_date == attendance_date,
        )
        .order_by(StudentSubjectAttendance.period)
    )
    return list(result.scalars().all())


async def mark_teachers(
    db: AsyncSession,
    *,
    school_id: UUID,
    marked_by: User,
    mark_data: TeacherAttendanceMark,
) -> list[TeacherAttendance]:
    """Record staff attendance for a day."""
    staff_ids = [r.teacher_id for r in mark_data.records]
    result = await db.execute(
        select(User.id).where(
            User.id.in_(staff_ids),
            User.school_id == school_id,
            User.role.in_(STAFF_ROLES),
        )
    )
    valid = set(result.scalars().all())
    invalid = [str(i) for i in staff_ids if i not in valid]
    if invalid:
        raise ValidationError(f"Not staff of this school: {', '.join(invalid)}")

    existing_result = await db.execute(
        select(TeacherAttendance).where(
            TeacherAttendance.attendance_date == mark_data.attendance_date,
            TeacherAttendance.teacher_id.in_(staff_ids),
        )
    )
    existing = {row.teacher_id: row for row in existing_result.scalars().all()}

    rows = []
    for record in mark_data.records:
        row = existing.get(record.teacher_id)
        if row is None:
            row = TeacherAttendance(
                school_id=school_id,
                teacher_id=record.teacher_id,
                attendance_date=mark_data.attendance_date,
            )
            db.add(row)
            existing[record.teacher_id] = row
        row.status = record.status
        row.check_in = record.check_in
        row.check_out = record.check_out
        row.marked_by_id = marked_by.id
        rows.append(row)

    await db.commit()
    return rows


async def get_teacher_attendance(
    db: AsyncSession,
    school_id: UUID,
    *,
    attendance_date: date | None = None,
    teacher_id: UUID | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
) -> list[TeacherAttendance]:
    query = select(TeacherAttendance).where(TeacherAttendance.school_id == school_id)
    if attendance_date is not None:
        query = query.where(TeacherAttendance.attendance_date == attendance_date)
    if teacher_id is not None:
        query = query.where(TeacherAttendance.teacher_id == teacher_id)
    if date_from is not None:
        query = query.where(TeacherAttendance.attendance_date >= date_from)
    if date_to is not None:
        query = query.where(TeacherAttendance.attendance_date <= date_to)

    result = await db.execute(query.order_by(TeacherAttendance.attendance_date))
    return list(result.scalars().all())


async def count_present_days(
    db: AsyncSession,
    school_id: UUID,
    staff_id: UUID,
    date_from: date,
    date_to: date,
) -> int:
    """PRESENT staff attendance rows in an inclusive date range."""
    result = await db.execute(
        select(func.count())
        .select_from(TeacherAttendance)
        .where(
            TeacherAttendance.school_id == school_id,
            TeacherAttendance.teacher_id == staff_id,
            TeacherAttendance.status == AttendanceStatus.PRESENT,
            TeacherAttendance.attendance_date >= date_from,
            TeacherAttendance.attendance_date <= date_to,
        )
    )
    return result.scalar() or 0


async def student_summary(
    db: AsyncSession,
    school_id: UUID,
    student_id: UUID,
    session_id: UUID | None = None,
) -> dict:
    """Present and absent day counts for a student."""
    query = (
        select(StudentDailyAttendance.status, func.count())
        .where(
            StudentDailyAttendance.school_id == school_id,
            StudentDailyAttendance.student_id == student_id,
        )
        .group_by(StudentDailyAttendance.status)
    )
    if session_id is not None:
        query = query.where(StudentDailyAttendance.session_id == session_id)

    counts = {row[0]: row[1] for row in (await db.execute(query)).all()}
    present = counts.get(AttendanceStatus.PRESENT.value, 0)
    absent = counts.get(AttendanceStatus.ABSENT.value, 0)
    total = present + absent
    return {
        "student_id": student_id,
        "total_days": total,
        "present_days": present,
        "absent_days": absent,
        "percentage": round(present / total * 100, 2) if total else 0.0,
    }
