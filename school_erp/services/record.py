"""Promotion, transfer certificates and academic history."""

import logging
from datetime import date
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from school_erp.core.errors import ConflictError, NotFoundError, ValidationError
from school_erp.models.academic import AcademicSession, SchoolClass, Section
from school_erp.models.exam import Result, ResultStatus
from school_erp.models.record import AcademicHistory, HistoryStatus, TransferCertificate
from school_erp.models.school import School
from school_erp.models.student import Student, StudentStatus
from school_erp.models.user import User
from school_erp.schemas.record import (
    PromotionAction,
    PromotionExecute,
    PromotionPreview,
    PromotionPreviewItem,
    PromotionRequest,
    TCCreate,
)
from school_erp.services import attendance as attendance_service

logger = logging.getLogger(__name__)


# ============== Academic history ==============


async def get_history(db: AsyncSession, school_id: UUID, student_id: UUID) -> list[AcademicHistory]:
    result = await db.execute(
        select(AcademicHistory)
        .where(AcademicHistory.school_id == school_id, AcademicHistory.student_id == student_id)
        .order_by(AcademicHistory.created_at)
    )
    return list(result.scalars().all())


async def _latest_result(db: AsyncSession, student: Student) -> Result | None:
    result = await db.execute(
        select(Result)
        .where(
            Result.student_id == student.id,
            Result.session_id == student.session_id,
            Result.status == ResultStatus.PUBLISHED,
        )
        .order_by(Result.published_at.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


def _result_summary(result: Result | None) -> dict | None:
    if result is None:
        return None
    return {
        "exam_id": str(result.exam_id),
        "percentage": float(result.percentage),
        "grade": result.grade,
        "overall_status": result.overall_status,
    }


async def record_history(db: AsyncSession, student: Student, status: HistoryStatus) -> AcademicHistory:
    """Write (or overwrite) the student's history entry for their current session. Caller commits."""
    attendance = await attendance_service.student_summary(db, student.school_id, student.id, student.session_id)
    attendance.pop("student_id")
    latest = await _latest_result(db, student)

    existing = await db.execute(
        select(AcademicHistory).where(
            AcademicHistory.student_id == student.id,
            AcademicHistory.session_id == student.session_id,
        )
    )
    history = existing.scalar_one_or_none()
    if history is None:
        history = AcademicHistory(
            school_id=student.school_id,
            session_id=student.session_id,
            student_id=student.id,
        )
        db.add(history)

    history.class_id = student.class_id
    history.section_id = student.section_id
    history.roll_number = student.roll_number
    history.result_summary = _result_summary(latest)
    history.attendance_summary = attendance
    history.status = status
    return history


# ============== Promotion ==============


async def _target_class(
    db: AsyncSession,
    school_id: UUID,
    current: SchoolClass,
    to_session: AcademicSession,
    target_class_id: UUID | None,
) -> SchoolClass | None:
    """Explicit target if given, else the class one order above in the target session."""
    if target_class_id is not None:
        target = await db.get(SchoolClass, target_class_id)
        if target is None or target.school_id != school_id:
            raise NotFoundError("Target class")
        if target.session_id != to_session.id:
            raise ValidationError("Target class does not belong to the target session")
        return target

    result = await db.execute(
        select(SchoolClass).where(
            SchoolClass.school_id == school_id,
            SchoolClass.session_id == to_session.id,
            SchoolClass.order == current.order + 1,
        )
    )
    return result.scalars().first()


async def _load_promotion(db: AsyncSession, school_id: UUID, request: PromotionRequest):
    current = await db.get(SchoolClass, request.class_id)
    if current is None or current.school_id != school_id:
        raise NotFoundError("Class")
    if current.session_id == request.to_session_id:
        raise ValidationError("Sessions must be different")

    to_session = await db.get(AcademicSession, request.to_session_id)
    if to_session is None or to_session.school_id != school_id:
        raise NotFoundError("Target session")

    target = await _target_class(db, school_id, current, to_session, request.target_class_id)

    processed = select(AcademicHistory.student_id).where(AcademicHistory.session_id == current.session_id)
    result = await db.execute(
        select(Student)
        .where(
            Student.school_id == school_id,
            Student.class_id == current.id,
            Student.session_id == current.session_id,
            Student.status == StudentStatus.ACTIVE,
            Student.id.not_in(processed),
        )
        .order_by(Student.roll_number)
    )
    students = list(result.scalars().all())
    return current, to_session, target, students


async def preview_promotion(db: AsyncSession, school_id: UUID, request: PromotionRequest) -> PromotionPreview:
    """Suggested action per student: PROMOTE when the latest published result is ELIGIBLE."""
    current, to_session, target, students = await _load_promotion(db, school_id, request)

    items = []
    for student in students:
        latest = await _latest_result(db, student)
        promotion_status = latest.promotion_status if latest and latest.promotion_status else "NOT_ELIGIBLE"
        promote = promotion_status == "ELIGIBLE"
        if not promote:
            next_class_id = current.id
        else:
            # eligible in the final class: completes the school
            next_class_id = target.id if target else None
        items.append(
            PromotionPreviewItem(
                student_id=student.id,
                name=student.name,
                roll_number=student.roll_number,
                current_class_id=current.id,
                target_class_id=next_class_id,
                promotion_status=promotion_status,
                action=PromotionAction.PROMOTE if promote else PromotionAction.RETAIN,
            )
        )

    return PromotionPreview(
        class_id=current.id,
        from_session_id=current.session_id,
        to_session_id=to_session.id,
        target_class_id=target.id if target else None,
        items=items,
    )


async def _target_section(db: AsyncSession, target: SchoolClass, current_section_id: UUID) -> Section:
    """Section of the same name in the target class, else its first section."""
    current_section = await db.get(Section, current_section_id)
    result = await db.execute(select(Section).where(Section.class_id == target.id).order_by(Section.name))
    sections = list(result.scalars().all())
    if not sections:
        raise ValidationError(f"Class '{target.name}' has no sections")
    for section in sections:
        if current_section is not None and section.name == current_section.name:
            return section
    return sections[0]


async def execute_promotion(db: AsyncSession, school_id: UUID, request: PromotionExecute) -> dict:
    """
    Apply a promotion in one transaction.

    Promoted students get a new ACTIVE row in the target session and
    their old row becomes PROMOTED. Eligible students of a final class
    are recorded as Completed; everyone else is Retained.
    """
    preview = await preview_promotion(db, school_id, request)
    overrides = {o.student_id: o.action for o in request.overrides}
    target = await db.get(SchoolClass, preview.target_class_id) if preview.target_class_id else None

    counts = {"promoted": 0, "retained": 0, "completed": 0}
    for item in preview.items:
        student = await db.get(Student, item.student_id)
        action = overrides.get(student.id, item.action)

        if action == PromotionAction.PROMOTE and target is None:
            await record_history(db, student, HistoryStatus.COMPLETED)
            counts["completed"] += 1
            continue
        if action == PromotionAction.RETAIN:
            await record_history(db, student, HistoryStatus.RETAINED)
            counts["retained"] += 1
            continue

        section = await _target_section(db, target, student.section_id)
        await record_history(db, student, HistoryStatus.PROMOTED)
        student.status = StudentStatus.PROMOTED
        db.add(
            Student(
                school_id=school_id,
                session_id=target.session_id,
                class_id=target.id,
                section_id=section.id,
                parent_id=student.parent_id,
                user_id=student.user_id,
                name=student.name,
                roll_number=student.roll_number,
                status=StudentStatus.ACTIVE,
                date_of_birth=student.date_of_birth,
                gender=student.gender,
                address=student.address,
            )
        )
        counts["promoted"] += 1

    await db.commit()
    logger.info("Promotion for class %s: %s", preview.class_id, counts)
    return counts


# ============== Transfer certificates ==============


async def get_tc_for_student(db: AsyncSession, school_id: UUID, student_id: UUID) -> TransferCertificate | None:
    result = await db.execute(
        select(TransferCertificate).where(
            TransferCertificate.school_id == school_id,
            TransferCertificate.student_id == student_id,
        )
    )
    return result.scalar_one_or_none()


async def get_tcs(db: AsyncSession, school_id: UUID) -> list[TransferCertificate]:
    result = await db.execute(
        select(TransferCertificate)
        .where(TransferCertificate.school_id == school_id)
        .order_by(TransferCertificate.issue_date.desc())
    )
    return list(result.scalars().all())


async def next_tc_number(db: AsyncSession, school: School) -> str:
    count = (
        await db.execute(
            select(func.count()).select_from(TransferCertificate).where(TransferCertificate.school_id == school.id)
        )
    ).scalar() or 0
    return f"TC-{school.code}-{count + 1}"


async def issue_tc(db: AsyncSession, school: School, issued_by: User, tc_data: TCCreate) -> TransferCertificate:
    """
    Issue a transfer certificate.

    The student must be ACTIVE; afterwards they are LEFT and their
    history for the session reads Left.
    """
    result = await db.execute(
        select(Student).where(Student.id == tc_data.student_id, Student.school_id == school.id)
    )
    student = result.scalar_one_or_none()
    if student is None:
        raise NotFoundError("Student")
    if student.status != StudentStatus.ACTIVE:
        raise ValidationError("Student is not active")
    if await get_tc_for_student(db, school.id, student.id) is not None:
        raise ConflictError("Transfer certificate already issued for this student")

    certificate = TransferCertificate(
        school_id=school.id,
        session_id=student.session_id,
        student_id=student.id,
        last_class_id=student.class_id,
        tc_number=await next_tc_number(db, school),
        reason=tc_data.reason,
        issue_date=tc_data.issue_date or date.today(),
        issued_by_id=issued_by.id,
    )
    db.add(certificate)
    await record_history(db, student, HistoryStatus.LEFT)
    student.status = StudentStatus.LEFT

    await db.commit()
    await db.refresh(certificate)
    logger.info("Issued %s to student %s", certificate.tc_number, student.id)
    return certificate
