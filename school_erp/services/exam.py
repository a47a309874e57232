"""Exam service: exams, papers, forms, exam fees, results and admit cards."""

import logging
import random
import time
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from school_erp.core.database import utcnow
from school_erp.core.errors import ConflictError, NotFoundError, PermissionDeniedError, ValidationError
from school_erp.core.permissions import Role
from school_erp.models.academic import SchoolClass, Subject
from school_erp.models.exam import (
    AdmitCard,
    Exam,
    ExamForm,
    ExamFormStatus,
    ExamPayment,
    ExamPaymentMode,
    ExamPaymentStatus,
    ExamStatus,
    ExamSubject,
    Result,
    ResultStatus,
)
from school_erp.models.student import Student, StudentStatus
from school_erp.models.user import User, UserStatus
from school_erp.schemas.exam import (
    AdmitCardCreate,
    ExamCreate,
    ExamFormCreate,
    ExamSubjectCreate,
    ExamUpdate,
    ResultEntry,
)

logger = logging.getLogger(__name__)

# Allowed forward moves of an exam's status
EXAM_TRANSITIONS = {
    ExamStatus.DRAFT: {ExamStatus.PUBLISHED},
    ExamStatus.PUBLISHED: {ExamStatus.CLOSED},
    ExamStatus.CLOSED: set(),
}

GRADE_BANDS = [(90, "A"), (80, "B"), (70, "C"), (60, "D")]

TWO_PLACES = Decimal("0.01")


def grade_for(percentage: Decimal) -> str:
    for threshold, grade in GRADE_BANDS:
        if percentage >= threshold:
            return grade
    return "F"


def summarize_marks(marks: list[dict]) -> dict:
    """Totals, percentage, grade and pass state for a list of mark entries."""
    obtained = sum((Decimal(str(m["marks_obtained"])) for m in marks), Decimal("0"))
    maximum = sum((Decimal(m["max_marks"]) for m in marks), Decimal("0"))
    percentage = (obtained / maximum * 100).quantize(TWO_PLACES, ROUND_HALF_UP) if maximum else Decimal("0")
    passed = all(m["is_pass"] for m in marks)
    return {
        "total_marks": obtained,
        "max_total": maximum,
        "percentage": percentage,
        "grade": grade_for(percentage),
        "overall_status": "PASS" if passed else "FAIL",
        "promotion_status": "ELIGIBLE" if passed else "NOT_ELIGIBLE",
    }


# ============== Exams ==============


async def get_exam_by_id(db: AsyncSession, exam_id: UUID, school_id: UUID) -> Exam | None:
    result = await db.execute(select(Exam).where(Exam.id == exam_id, Exam.school_id == school_id))
    return result.scalar_one_or_none()


async def get_exams(
    db: AsyncSession,
    *,
    school_id: UUID,
    session_id: UUID | None = None,
    class_id: UUID | None = None,
    status: ExamStatus | None = None,
) -> list[Exam]:
    query = select(Exam).where(Exam.school_id == school_id)
    if session_id is not None:
        query = query.where(Exam.session_id == session_id)
    if class_id is not None:
        query = query.where(Exam.class_id == class_id)
    if status is not None:
        query = query.where(Exam.status == status)

    result = await db.execute(query.order_by(Exam.start_date))
    return list(result.scalars().all())


async def create_exam(
    db: AsyncSession,
    *,
    school_id: UUID,
    session_id: UUID,
    created_by: User,
    exam_data: ExamCreate,
) -> Exam:
    school_class = await db.get(SchoolClass, exam_data.class_id)
    if school_class is None or school_class.school_id != school_id:
        raise NotFoundError("Class")

    existing = await db.execute(
        select(Exam.id).where(
            Exam.school_id == school_id,
            Exam.session_id == session_id,
            Exam.class_id == school_class.id,
            Exam.name == exam_data.name,
        )
    )
    if existing.first() is not None:
        raise ConflictError(f"Exam '{exam_data.name}' already exists for this class")

    exam = Exam(
        school_id=school_id,
        session_id=session_id,
        class_id=school_class.id,
        name=exam_data.name,
        start_date=exam_data.start_date,
        end_date=exam_data.end_date,
        status=ExamStatus.DRAFT,
        created_by_id=created_by.id,
    )
    db.add(exam)
    await db.commit()
    await db.refresh(exam)
    return exam


async def update_exam(db: AsyncSession, exam: Exam, exam_data: ExamUpdate) -> Exam:
    """Only draft exams can be edited."""
    if exam.status != ExamStatus.DRAFT:
        raise ValidationError("Cannot update published exam")

    update_data = exam_data.model_dump(exclude_unset=True)
    start = update_data.get("start_date", exam.start_date)
    end = update_data.get("end_date", exam.end_date)
    if end < start:
        raise ValidationError("end_date cannot be before start_date")

    for field, value in update_data.items():
        setattr(exam, field, value)

    await db.commit()
    await db.refresh(exam)
    return exam


async def set_exam_status(db: AsyncSession, exam: Exam, new_status: ExamStatus) -> Exam:
    current = ExamStatus(exam.status)
    if new_status not in EXAM_TRANSITIONS[current]:
        raise ValidationError(f"Cannot move exam from {current.value} to {new_status.value}")

    exam.status = new_status
    await db.commit()
    await db.refresh(exam)
    logger.info("Exam %s moved to %s", exam.id, new_status.value)
    return exam


async def get_exam_subjects(db: AsyncSession, exam: Exam) -> list[ExamSubject]:
    result = await db.execute(select(ExamSubject).where(ExamSubject.exam_id == exam.id))
    return list(result.scalars().all())


async def add_exam_subject(db: AsyncSession, exam: Exam, subject_data: ExamSubjectCreate) -> ExamSubject:
    """Attach a subject paper. The exam must still be a draft."""
    if exam.status != ExamStatus.DRAFT:
        raise ValidationError("Cannot add subjects after exam is published")

    subject = await db.get(Subject, subject_data.subject_id)
    if subject is None or subject.school_id != exam.school_id:
        raise NotFoundError("Subject")
    if subject.class_id != exam.class_id:
        raise ValidationError("Subject does not belong to the exam's class")

    teacher = await db.get(User, subject_data.teacher_id)
    if (
        teacher is None
        or teacher.school_id != exam.school_id
        or teacher.role != Role.TEACHER
        or teacher.status != UserStatus.ACTIVE
    ):
        raise ValidationError("Teacher must be an active teacher of this school")

    existing = await db.execute(
        select(ExamSubject.id).where(ExamSubject.exam_id == exam.id, ExamSubject.subject_id == subject.id)
    )
    if existing.first() is not None:
        raise ConflictError("Subject already assigned to this exam")

    exam_subject = ExamSubject(
        school_id=exam.school_id,
        session_id=exam.session_id,
        exam_id=exam.id,
        subject_id=subject.id,
        teacher_id=teacher.id,
        max_marks=subject_data.max_marks,
        pass_marks=subject_data.pass_marks,
    )
    db.add(exam_subject)
    await db.commit()
    await db.refresh(exam_subject)
    return exam_subject


# ============== Forms ==============


async def close_expired_forms(db: AsyncSession, school_id: UUID, today: date | None = None) -> None:
    today = today or date.today()
    await db.execute(
        update(ExamForm)
        .where(
            ExamForm.school_id == school_id,
            ExamForm.status == ExamFormStatus.ACTIVE,
            ExamForm.end_date < today,
        )
        .values(status=ExamFormStatus.CLOSED)
    )
    await db.commit()


async def get_exam_form_by_id(db: AsyncSession, form_id: UUID, school_id: UUID) -> ExamForm | None:
    result = await db.execute(select(ExamForm).where(ExamForm.id == form_id, ExamForm.school_id == school_id))
    return result.scalar_one_or_none()


async def get_form_for_exam(db: AsyncSession, exam: Exam) -> ExamForm | None:
    result = await db.execute(
        select(ExamForm).where(ExamForm.exam_id == exam.id, ExamForm.school_id == exam.school_id)
    )
    return result.scalar_one_or_none()


async def get_active_forms(
    db: AsyncSession,
    school_id: UUID,
    session_id: UUID,
    class_id: UUID | None = None,
) -> list[ExamForm]:
    """Open exam forms. Forms past their end date are closed first."""
    await close_expired_forms(db, school_id)

    query = select(ExamForm).where(
        ExamForm.school_id == school_id,
        ExamForm.session_id == session_id,
        ExamForm.status == ExamFormStatus.ACTIVE,
    )
    if class_id is not None:
        query = query.where(ExamForm.class_id == class_id)

    result = await db.execute(query.order_by(ExamForm.end_date))
    return list(result.scalars().all())


async def create_exam_form(
    db: AsyncSession,
    exam: Exam,
    created_by: User,
    form_data: ExamFormCreate,
) -> ExamForm:
    if await get_form_for_exam(db, exam) is not None:
        raise ConflictError("Exam form already exists for this exam")

    form = ExamForm(
        school_id=exam.school_id,
        session_id=exam.session_id,
        exam_id=exam.id,
        class_id=exam.class_id,
        fee_amount=form_data.fee_amount,
        end_date=form_data.end_date,
        is_payment_required=form_data.is_payment_required,
        status=ExamFormStatus.ACTIVE,
        created_by_id=created_by.id,
    )
    db.add(form)
    await db.commit()
    await db.refresh(form)
    return form


# ============== Exam fees ==============


def generate_exam_receipt() -> str:
    return f"EXAM-{int(time.time() * 1000)}-{random.randint(0, 9999):04d}"


async def record_exam_payment(
    db: AsyncSession,
    form: ExamForm,
    student: Student,
    *,
    payment_mode: ExamPaymentMode,
    created_by: User,
) -> ExamPayment:
    """Mark a student's exam fee as paid."""
    if form.status != ExamFormStatus.ACTIVE or form.end_date < date.today():
        raise ValidationError("Exam form is closed")
    if student.class_id != form.class_id or student.session_id != form.session_id:
        raise ValidationError("Student is not in the exam's class")

    existing = await db.execute(
        select(ExamPayment.id).where(ExamPayment.student_id == student.id, ExamPayment.exam_form_id == form.id)
    )
    if existing.first() is not None:
        raise ConflictError("Payment already exists for this student and exam form")

    payment = ExamPayment(
        school_id=form.school_id,
        session_id=form.session_id,
        student_id=student.id,
        exam_form_id=form.id,
        amount=form.fee_amount,
        payment_mode=payment_mode,
        status=ExamPaymentStatus.PAID,
        receipt_number=generate_exam_receipt(),
        created_by_id=created_by.id,
    )
    db.add(payment)
    await db.commit()
    await db.refresh(payment)
    return payment


async def get_exam_payments(db: AsyncSession, school_id: UUID, student_ids: list[UUID]) -> list[ExamPayment]:
    result = await db.execute(
        select(ExamPayment)
        .where(ExamPayment.school_id == school_id, ExamPayment.student_id.in_(student_ids))
        .order_by(ExamPayment.created_at.desc())
    )
    return list(result.scalars().all())


# ============== Results ==============


async def _exam_student(db: AsyncSession, exam: Exam, student_id: UUID) -> Student:
    student = await db.get(Student, student_id)
    if student is None or student.school_id != exam.school_id:
        raise NotFoundError("Student")
    if student.class_id != exam.class_id or student.session_id != exam.session_id:
        raise ValidationError("Student is not in the exam's class")
    if student.status != StudentStatus.ACTIVE:
        raise ValidationError("Student is not active")
    return student


async def get_result(db: AsyncSession, exam_id: UUID, student_id: UUID) -> Result | None:
    result = await db.execute(select(Result).where(Result.exam_id == exam_id, Result.student_id == student_id))
    return result.scalar_one_or_none()


async def enter_result(db: AsyncSession, exam: Exam, entered_by: User, entry: ResultEntry) -> Result:
    """
    Enter marks for one student.

    Teachers may only enter marks for papers assigned to them. Marks
    for a subject entered earlier are replaced; a published result is
    never changed.
    """
    if exam.status != ExamStatus.PUBLISHED:
        raise ValidationError("Results can only be entered after exam is published")

    student = await _exam_student(db, exam, entry.student_id)

    result = await get_result(db, exam.id, student.id)
    if result is not None and result.status == ResultStatus.PUBLISHED:
        raise ValidationError("Result is already published and cannot be updated")

    papers = {es.subject_id: es for es in await get_exam_subjects(db, exam)}

    entered = {}
    for mark in entry.marks:
        paper = papers.get(mark.subject_id)
        if paper is None:
            raise ValidationError(f"Subject {mark.subject_id} is not part of this exam")
        if entered_by.role == Role.TEACHER and paper.teacher_id != entered_by.id:
            raise PermissionDeniedError("You are not authorized to enter marks for this subject")
        if mark.marks_obtained > paper.max_marks:
            raise ValidationError(
                f"Marks obtained ({mark.marks_obtained}) cannot exceed maximum marks "
                f"({paper.max_marks}) for subject {mark.subject_id}"
            )
        entered[str(paper.subject_id)] = {
            "subject_id": str(paper.subject_id),
            "marks_obtained": float(mark.marks_obtained),
            "max_marks": paper.max_marks,
            "pass_marks": paper.pass_marks,
            "is_pass": mark.marks_obtained >= paper.pass_marks,
        }

    if result is None:
        result = Result(
            school_id=exam.school_id,
            session_id=exam.session_id,
            student_id=student.id,
            exam_id=exam.id,
            marks=[],
            status=ResultStatus.DRAFT,
            created_by_id=entered_by.id,
        )
        db.add(result)

    merged = {m["subject_id"]: m for m in result.marks or []}
    merged.update(entered)
    result.marks = list(merged.values())
    for field, value in summarize_marks(result.marks).items():
        setattr(result, field, value)

    await db.commit()
    await db.refresh(result)
    return result


async def get_results(db: AsyncSession, exam: Exam, published_only: bool = False) -> list[Result]:
    query = select(Result).where(Result.exam_id == exam.id, Result.school_id == exam.school_id)
    if published_only:
        query = query.where(Result.status == ResultStatus.PUBLISHED)
    result = await db.execute(query.order_by(Result.percentage.desc()))
    return list(result.scalars().all())


async def get_student_results(
    db: AsyncSession,
    school_id: UUID,
    student_ids: list[UUID],
    exam_id: UUID | None = None,
) -> list[Result]:
    """Published results for the given students."""
    query = select(Result).where(
        Result.school_id == school_id,
        Result.student_id.in_(student_ids),
        Result.status == ResultStatus.PUBLISHED,
    )
    if exam_id is not None:
        query = query.where(Result.exam_id == exam_id)
    result = await db.execute(query.order_by(Result.created_at.desc()))
    return list(result.scalars().all())


async def _rank_results(db: AsyncSession, exam: Exam) -> None:
    """Competition ranking by percentage over published results."""
    published = await get_results(db, exam, published_only=True)
    previous = None
    rank = 0
    for position, result in enumerate(published, start=1):
        if result.percentage != previous:
            rank = position
            previous = result.percentage
        result.rank = rank


async def publish_result(db: AsyncSession, result: Result, exam: Exam) -> Result:
    if result.status == ResultStatus.PUBLISHED:
        raise ValidationError("Result is already published")

    result.status = ResultStatus.PUBLISHED
    result.published_at = utcnow()
    await db.flush()
    await _rank_results(db, exam)
    await db.commit()
    await db.refresh(result)
    return result


async def publish_exam_results(db: AsyncSession, exam: Exam) -> int:
    """Publish every draft result of an exam. Returns how many were published."""
    drafts = [r for r in await get_results(db, exam) if r.status == ResultStatus.DRAFT]
    now = utcnow()
    for result in drafts:
        result.status = ResultStatus.PUBLISHED
        result.published_at = now
    await db.flush()
    await _rank_results(db, exam)
    await db.commit()
    logger.info("Published %s results for exam %s", len(drafts), exam.id)
    return len(drafts)


# ============== Admit cards ==============


async def generate_admit_card(
    db: AsyncSession,
    exam: Exam,
    created_by: User,
    card_data: AdmitCardCreate,
) -> AdmitCard:
    """Issue an admit card. A paid exam fee is needed when the exam form requires one."""
    student = await _exam_student(db, exam, card_data.student_id)

    form = await get_form_for_exam(db, exam)
    if form is not None and form.is_payment_required:
        paid = await db.execute(
            select(ExamPayment.id).where(
                ExamPayment.student_id == student.id,
                ExamPayment.exam_form_id == form.id,
                ExamPayment.status == ExamPaymentStatus.PAID,
            )
        )
        if paid.first() is None:
            raise PermissionDeniedError("Exam fee not paid")

    existing = await db.execute(
        select(AdmitCard.id).where(AdmitCard.student_id == student.id, AdmitCard.exam_id == exam.id)
    )
    if existing.first() is not None:
        raise ConflictError("Admit card already exists for this student and exam")

    admit_card = AdmitCard(
        school_id=exam.school_id,
        session_id=exam.session_id,
        student_id=student.id,
        exam_id=exam.id,
        roll_number=card_data.roll_number or student.roll_number,
        exam_center=card_data.exam_center,
        generated_at=utcnow(),
        created_by_id=created_by.id,
    )
    db.add(admit_card)
    await db.commit()
    await db.refresh(admit_card)
    return admit_card


async def get_admit_card_by_id(db: AsyncSession, card_id: UUID, school_id: UUID) -> AdmitCard | None:
    result = await db.execute(select(AdmitCard).where(AdmitCard.id == card_id, AdmitCard.school_id == school_id))
    return result.scalar_one_or_none()


async def get_admit_cards(
    db: AsyncSession,
    school_id: UUID,
    student_ids: list[UUID],
    exam_id: UUID | None = None,
) -> list[AdmitCard]:
    query = select(AdmitCard).where(AdmitCard.school_id == school_id, AdmitCard.student_id.in_(student_ids))
    if exam_id is not None:
        query = query.where(AdmitCard.exam_id == exam_id)
    result = await db.execute(query.order_by(AdmitCard.generated_at.desc()))
    return list(result.scalars().all())
