"""Fee service: structures, assignments, manual and online payments.

Every change to a student fee's paid/due amounts goes through
``apply_payment`` so the Due/Partial/Paid status is derived in one place.
"""

import logging
import random
import secrets
import time
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from school_erp.core.database import utcnow
from school_erp.core.errors import ConflictError, NotFoundError, PermissionDeniedError, ValidationError
from school_erp.models.academic import SchoolClass
from school_erp.models.fee import (
    FeePayment,
    FeeStatus,
    FeeStructure,
    OnlinePayment,
    OnlinePaymentStatus,
    PaymentMode,
    StudentFee,
)
from school_erp.models.student import Parent, Student, StudentStatus
from school_erp.models.user import User
from school_erp.schemas.fee import (
    FeeStructureCreate,
    FeeStructureUpdate,
    OnlinePaymentInitiate,
    OnlinePaymentVerify,
)

logger = logging.getLogger(__name__)

RECEIPT_ATTEMPTS = 5


# ============== Structures ==============


async def get_fee_structure_by_id(
    db: AsyncSession,
    structure_id: UUID,
    school_id: UUID,
) -> FeeStructure | None:
    result = await db.execute(
        select(FeeStructure).where(FeeStructure.id == structure_id, FeeStructure.school_id == school_id)
    )
    return result.scalar_one_or_none()


async def get_fee_structures(
    db: AsyncSession,
    *,
    school_id: UUID,
    session_id: UUID | None = None,
    class_id: UUID | None = None,
    is_active: bool | None = None,
) -> list[FeeStructure]:
    query = select(FeeStructure).where(FeeStructure.school_id == school_id)
    if session_id is not None:
        query = query.where(FeeStructure.session_id == session_id)
    if class_id is not None:
        query = query.where(FeeStructure.class_id == class_id)
    if is_active is not None:
        query = query.where(FeeStructure.is_active.is_(is_active))

    result = await db.execute(query.order_by(FeeStructure.created_at))
    return list(result.scalars().all())


async def create_fee_structure(
    db: AsyncSession,
    *,
    school_id: UUID,
    session_id: UUID,
    created_by: User,
    structure_data: FeeStructureCreate,
) -> FeeStructure:
    school_class = await db.get(SchoolClass, structure_data.class_id)
    if school_class is None or school_class.school_id != school_id:
        raise NotFoundError("Class")

    structure = FeeStructure(
        school_id=school_id,
        session_id=session_id,
        class_id=school_class.id,
        name=structure_data.name,
        amount=structure_data.amount,
        frequency=structure_data.frequency,
        is_optional=structure_data.is_optional,
        is_active=True,
        created_by_id=created_by.id,
    )
    db.add(structure)
    await db.commit()
    await db.refresh(structure)
    return structure


async def update_fee_structure(
    db: AsyncSession,
    structure: FeeStructure,
    structure_data: FeeStructureUpdate,
) -> FeeStructure:
    """Update a structure. Fees already assigned keep their amounts."""
    update_data = structure_data.model_dump(exclude_unset=True)
    for field, value in update_data.items():
        setattr(structure, field, value)

    await db.commit()
    await db.refresh(structure)
    return structure


# ============== Student fees ==============


async def assign_fee(
    db: AsyncSession,
    structure: FeeStructure,
    student_ids: list[UUID] | None = None,
) -> tuple[list[StudentFee], int]:
    """Create student fees for a structure. Returns (created, skipped count)."""
    if not structure.is_active:
        raise ValidationError("Fee structure is inactive")

    query = select(Student).where(
        Student.school_id == structure.school_id,
        Student.session_id == structure.session_id,
        Student.class_id == structure.class_id,
        Student.status == StudentStatus.ACTIVE,
    )
    if student_ids is not None:
        query = query.where(Student.id.in_(student_ids))
    students = list((await db.execute(query)).scalars().all())

    if student_ids is not None:
        found = {s.id for s in students}
        missing = [str(i) for i in student_ids if i not in found]
        if missing:
            raise ValidationError(f"Students not active in this class: {', '.join(missing)}")

    assigned_result = await db.execute(
        select(StudentFee.student_id).where(StudentFee.fee_structure_id == structure.id)
    )
    already = set(assigned_result.scalars().all())

    created = []
    for student in students:
        if student.id in already:
            continue
        student_fee = StudentFee(
            school_id=structure.school_id,
            session_id=structure.session_id,
            student_id=student.id,
            fee_structure_id=structure.id,
            total_amount=structure.amount,
            paid_amount=Decimal("0"),
            due_amount=structure.amount,
            status=FeeStatus.DUE,
        )
        db.add(student_fee)
        created.append(student_fee)

    await db.commit()
    return created, len(students) - len(created)


async def get_student_fees(db: AsyncSession, school_id: UUID, student_id: UUID) -> list[StudentFee]:
    result = await db.execute(
        select(StudentFee)
        .where(StudentFee.school_id == school_id, StudentFee.student_id == student_id)
        .order_by(StudentFee.created_at)
    )
    return list(result.scalars().all())


async def get_student_fee_by_id(db: AsyncSession, student_fee_id: UUID, school_id: UUID) -> StudentFee | None:
    result = await db.execute(
        select(StudentFee).where(StudentFee.id == student_fee_id, StudentFee.school_id == school_id)
    )
    return result.scalar_one_or_none()


async def _lock_student_fee(db: AsyncSession, student_fee_id: UUID, school_id: UUID) -> StudentFee:
    """Load a student fee with a row lock held until commit."""
    result = await db.execute(
        select(StudentFee)
        .where(StudentFee.id == student_fee_id, StudentFee.school_id == school_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    student_fee = result.scalar_one_or_none()
    if student_fee is None:
        raise NotFoundError("Student fee")
    return student_fee


def validate_amount(student_fee: StudentFee, amount: Decimal) -> None:
    if amount <= 0:
        raise ValidationError("Payment amount must be positive")
    if amount > Decimal(student_fee.due_amount):
        raise ValidationError("Payment amount cannot exceed due amount")


def generate_receipt_number(school_id: UUID) -> str:
    timestamp = int(time.time() * 1000)
    return f"RCP-{school_id}-{timestamp}-{random.randint(0, 9999):04d}"


def generate_gateway_reference() -> str:
    timestamp = int(time.time() * 1000)
    return f"PAY-{timestamp}-{secrets.token_hex(4).upper()}"


async def _unique_receipt_number(db: AsyncSession, school_id: UUID) -> str:
    for _ in range(RECEIPT_ATTEMPTS):
        receipt_number = generate_receipt_number(school_id)
        taken = await db.execute(select(FeePayment.id).where(FeePayment.receipt_number == receipt_number))
        if taken.first() is None:
            return receipt_number
    raise ConflictError("Failed to generate unique receipt number")


async def apply_payment(
    db: AsyncSession,
    student_fee: StudentFee,
    *,
    amount: Decimal,
    payment_mode: PaymentMode,
    collected_by_id: UUID,
    remarks: str | None = None,
) -> FeePayment:
    """Record a payment against a locked student fee. The caller commits."""
    validate_amount(student_fee, amount)

    payment = FeePayment(
        school_id=student_fee.school_id,
        session_id=student_fee.session_id,
        student_id=student_fee.student_id,
        student_fee_id=student_fee.id,
        amount=amount,
        payment_mode=payment_mode,
        receipt_number=await _unique_receipt_number(db, student_fee.school_id),
        paid_at=utcnow(),
        collected_by_id=collected_by_id,
        remarks=remarks,
    )
    student_fee.apply_payment(amount)
    db.add(payment)
    return payment


async def pay_manual(
    db: AsyncSession,
    *,
    school_id: UUID,
    student_fee_id: UUID,
    amount: Decimal,
    payment_mode: PaymentMode,
    collected_by: User,
    remarks: str | None = None,
) -> tuple[FeePayment, StudentFee]:
    """Cash or bank payment collected at the office."""
    student_fee = await _lock_student_fee(db, student_fee_id, school_id)
    payment = await apply_payment(
        db,
        student_fee,
        amount=amount,
        payment_mode=payment_mode,
        collected_by_id=collected_by.id,
        remarks=remarks,
    )
    await db.commit()
    await db.refresh(payment)
    await db.refresh(student_fee)
    logger.info("Fee payment %s of %s recorded for student fee %s", payment.receipt_number, amount, student_fee.id)
    return payment, student_fee


async def get_payments(
    db: AsyncSession,
    *,
    school_id: UUID,
    student_id: UUID | None = None,
    student_ids: list[UUID] | None = None,
    skip: int = 0,
    limit: int = 50,
) -> tuple[list[FeePayment], int]:
    query = select(FeePayment).where(FeePayment.school_id == school_id)
    if student_id is not None:
        query = query.where(FeePayment.student_id == student_id)
    if student_ids is not None:
        query = query.where(FeePayment.student_id.in_(student_ids))

    total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar() or 0

    query = query.order_by(FeePayment.paid_at.desc()).offset(skip).limit(limit)
    result = await db.execute(query)
    return list(result.scalars().all()), total


async def get_payment_by_receipt(db: AsyncSession, receipt_number: str, school_id: UUID) -> FeePayment | None:
    result = await db.execute(
        select(FeePayment).where(
            FeePayment.receipt_number == receipt_number,
            FeePayment.school_id == school_id,
        )
    )
    return result.scalar_one_or_none()


# ============== Online payments ==============


async def initiate_online_payment(
    db: AsyncSession,
    parent_user: User,
    payment_data: OnlinePaymentInitiate,
) -> OnlinePayment:
    """A parent starts a gateway payment for one of their children's fees."""
    parent = (await db.execute(select(Parent).where(Parent.user_id == parent_user.id))).scalar_one_or_none()
    if parent is None:
        raise ValidationError("Parent profile not found")

    student_fee = await get_student_fee_by_id(db, payment_data.student_fee_id, parent_user.school_id)
    if student_fee is None:
        raise NotFoundError("Student fee")
    student = await db.get(Student, student_fee.student_id)
    if student is None or student.parent_id != parent.id:
        raise PermissionDeniedError("You can only pay fees for your own children")

    validate_amount(student_fee, payment_data.amount)

    online_payment = OnlinePayment(
        school_id=student_fee.school_id,
        student_id=student_fee.student_id,
        student_fee_id=student_fee.id,
        amount=payment_data.amount,
        status=OnlinePaymentStatus.PENDING,
        gateway_reference=generate_gateway_reference(),
        initiated_by_id=parent_user.id,
    )
    db.add(online_payment)
    await db.commit()
    await db.refresh(online_payment)
    return online_payment


async def verify_online_payment(
    db: AsyncSession,
    *,
    school_id: UUID,
    verified_by: User,
    verify_data: OnlinePaymentVerify,
) -> tuple[OnlinePayment, StudentFee | None]:
    """Settle a pending payment. Only a successful one is applied to the fee."""
    result = await db.execute(
        select(OnlinePayment)
        .where(
            OnlinePayment.gateway_reference == verify_data.gateway_reference,
            OnlinePayment.school_id == school_id,
        )
        .with_for_update()
    )
    online_payment = result.scalar_one_or_none()
    if online_payment is None:
        raise NotFoundError("Online payment")
    if online_payment.status != OnlinePaymentStatus.PENDING:
        raise ValidationError("Payment already processed")

    online_payment.verified_by_id = verified_by.id
    online_payment.verified_at = utcnow()

    student_fee = None
    if verify_data.status == OnlinePaymentStatus.SUCCESS:
        student_fee = await _lock_student_fee(db, online_payment.student_fee_id, school_id)
        payment = await apply_payment(
            db,
            student_fee,
            amount=Decimal(online_payment.amount),
            payment_mode=PaymentMode.ONLINE,
            collected_by_id=verified_by.id,
            remarks=f"Online payment {online_payment.gateway_reference}",
        )
        await db.flush()
        online_payment.fee_payment_id = payment.id
        online_payment.status = OnlinePaymentStatus.SUCCESS
    else:
        online_payment.status = OnlinePaymentStatus.FAILED
        online_payment.failure_reason = verify_data.failure_reason

    await db.commit()
    await db.refresh(online_payment)
    if student_fee is not None:
        await db.refresh(student_fee)
    logger.info("Online payment %s marked %s", online_payment.gateway_reference, online_payment.status)
    return online_payment, student_fee
