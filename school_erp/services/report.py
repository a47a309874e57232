"""Read-only reporting queries. Every query is scoped to one school."""

from datetime import date, datetime, time, timezone
from decimal import ROUND_HALF_UP, Decimal
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from school_erp.core.permissions import Role
from school_erp.models.academic import SchoolClass
from school_erp.models.attendance import AttendanceStatus, StudentDailyAttendance
from school_erp.models.exam import ExamPayment, ExamPaymentStatus
from school_erp.models.expense import Expense
from school_erp.models.fee import FeePayment, StudentFee
from school_erp.models.record import AcademicHistory, HistoryStatus, TransferCertificate
from school_erp.models.salary import SalaryPayment
from school_erp.models.school import School, SchoolStatus
from school_erp.models.student import Parent, Student, StudentStatus, Teacher
from school_erp.models.user import User, UserStatus
from school_erp.schemas.report import (
    AttendanceReport,
    ClassAttendance,
    DashboardResponse,
    FeeCollectionReport,
    ProfitLossReport,
    RetentionReport,
    StatusCounts,
    StudentHistoryRow,
    TCReport,
    TCReportRow,
)
from school_erp.services import student as student_service

ZERO = Decimal("0")


def _money(value) -> Decimal:
    return Decimal(str(value or 0)).quantize(Decimal("0.01"), ROUND_HALF_UP)


def _percent(part: int, whole: int) -> Decimal:
    if not whole:
        return Decimal("0.00")
    return (Decimal(part) * 100 / whole).quantize(Decimal("0.01"), ROUND_HALF_UP)


def _day_bounds(date_from: date | None, date_to: date | None) -> tuple[datetime | None, datetime | None]:
    start = datetime.combine(date_from, time.min, tzinfo=timezone.utc) if date_from else None
    end = datetime.combine(date_to, time.max, tzinfo=timezone.utc) if date_to else None
    return start, end


def _in_range(query, column, start, end):
    if start is not None:
        query = query.where(column >= start)
    if end is not None:
        query = query.where(column <= end)
    return query


async def _scalar(db: AsyncSession, query):
    return (await db.execute(query)).scalar()


# ============== Finance ==============


async def fee_collection(
    db: AsyncSession,
    school_id: UUID,
    session_id: UUID | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
) -> FeeCollectionReport:
    """Assigned, collected and outstanding fees, plus payments in the period."""
    fees = select(
        func.sum(StudentFee.total_amount),
        func.sum(StudentFee.paid_amount),
        func.sum(StudentFee.due_amount),
    ).where(StudentFee.school_id == school_id)
    statuses = select(StudentFee.status, func.count()).where(StudentFee.school_id == school_id)
    if session_id is not None:
        fees = fees.where(StudentFee.session_id == session_id)
        statuses = statuses.where(StudentFee.session_id == session_id)
    assigned, collected, due = (await db.execute(fees)).one()
    by_status = {row[0]: row[1] for row in (await db.execute(statuses.group_by(StudentFee.status))).all()}

    start, end = _day_bounds(date_from, date_to)
    payments = select(FeePayment.payment_mode, func.sum(FeePayment.amount), func.count()).where(
        FeePayment.school_id == school_id
    )
    if session_id is not None:
        payments = payments.where(FeePayment.session_id == session_id)
    payments = _in_range(payments, FeePayment.paid_at, start, end).group_by(FeePayment.payment_mode)
    rows = (await db.execute(payments)).all()

    return FeeCollectionReport(
        date_from=date_from,
        date_to=date_to,
        total_assigned=_money(assigned),
        total_collected=_money(collected),
        total_due=_money(due),
        collected_in_period=_money(sum((_money(r[1]) for r in rows), ZERO)),
        by_payment_mode={r[0]: _money(r[1]) for r in rows},
        by_status=by_status,
        payment_count=sum(r[2] for r in rows),
    )


async def profit_and_loss(
    db: AsyncSession,
    school_id: UUID,
    date_from: date | None = None,
    date_to: date | None = None,
) -> ProfitLossReport:
    """Fee and exam-fee income against expenses and salaries paid."""
    start, end = _day_bounds(date_from, date_to)

    fee_income = await _scalar(
        db,
        _in_range(
            select(func.sum(FeePayment.amount)).where(FeePayment.school_id == school_id),
            FeePayment.paid_at,
            start,
            end,
        ),
    )
    exam_income = await _scalar(
        db,
        _in_range(
            select(func.sum(ExamPayment.amount)).where(
                ExamPayment.school_id == school_id,
                ExamPayment.status == ExamPaymentStatus.PAID,
            ),
            ExamPayment.created_at,
            start,
            end,
        ),
    )
    expenses = await _scalar(
        db,
        _in_range(
            select(func.sum(Expense.amount)).where(Expense.school_id == school_id),
            Expense.expense_date,
            date_from,
            date_to,
        ),
    )
    salaries = await _scalar(
        db,
        _in_range(
            select(func.sum(SalaryPayment.amount_paid)).where(SalaryPayment.school_id == school_id),
            SalaryPayment.payment_date,
            start,
            end,
        ),
    )

    total_income = _money(fee_income) + _money(exam_income)
    total_outgoing = _money(expenses) + _money(salaries)
    return ProfitLossReport(
        date_from=date_from,
        date_to=date_to,
        fee_income=_money(fee_income),
        exam_fee_income=_money(exam_income),
        total_income=total_income,
        expenses=_money(expenses),
        salaries_paid=_money(salaries),
        total_outgoing=total_outgoing,
        net=total_income - total_outgoing,
    )


# ============== Attendance ==============


async def attendance_summary(
    db: AsyncSession,
    school_id: UUID,
    session_id: UUID | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
) -> AttendanceReport:
    query = (
        select(
            StudentDailyAttendance.class_id,
            SchoolClass.name,
            StudentDailyAttendance.status,
            func.count(),
        )
        .join(SchoolClass, SchoolClass.id == StudentDailyAttendance.class_id)
        .where(StudentDailyAttendance.school_id == school_id)
    )
    if session_id is not None:
        query = query.where(StudentDailyAttendance.session_id == session_id)
    query = _in_range(query, StudentDailyAttendance.attendance_date, date_from, date_to)
    query = query.group_by(StudentDailyAttendance.class_id, SchoolClass.name, StudentDailyAttendance.status)

    per_class: dict[UUID, dict] = {}
    for class_id, class_name, mark, count in (await db.execute(query)).all():
        entry = per_class.setdefault(class_id, {"name": class_name, "present": 0, "absent": 0})
        if mark == AttendanceStatus.PRESENT.value:
            entry["present"] += count
        else:
            entry["absent"] += count

    classes = [
        ClassAttendance(
            class_id=class_id,
            class_name=entry["name"],
            present=entry["present"],
            absent=entry["absent"],
            percentage=_percent(entry["present"], entry["present"] + entry["absent"]),
        )
        for class_id, entry in per_class.items()
    ]
    classes.sort(key=lambda c: c.class_name)
    present = sum(c.present for c in classes)
    absent = sum(c.absent for c in classes)
    return AttendanceReport(
        date_from=date_from,
        date_to=date_to,
        present=present,
        absent=absent,
        percentage=_percent(present, present + absent),
        classes=classes,
    )


# ============== Records ==============


async def promotion_report(db: AsyncSession, school_id: UUID, session_id: UUID) -> StatusCounts:
    """How a session's students ended up: promoted, retained, completed or left."""
    result = await db.execute(
        select(AcademicHistory.status, func.count())
        .where(AcademicHistory.school_id == school_id, AcademicHistory.session_id == session_id)
        .group_by(AcademicHistory.status)
    )
    counts = {status.value: 0 for status in HistoryStatus}
    counts.update({row[0]: row[1] for row in result.all()})
    return StatusCounts(session_id=session_id, counts=counts, total=sum(counts.values()))


async def history_rows(
    db: AsyncSession,
    school_id: UUID,
    session_id: UUID,
    status: HistoryStatus | None = None,
    class_id: UUID | None = None,
) -> list[StudentHistoryRow]:
    query = (
        select(AcademicHistory, Student.name, SchoolClass.name)
        .join(Student, Student.id == AcademicHistory.student_id)
        .join(SchoolClass, SchoolClass.id == AcademicHistory.class_id)
        .where(AcademicHistory.school_id == school_id, AcademicHistory.session_id == session_id)
    )
    if status is not None:
        query = query.where(AcademicHistory.status == status)
    if class_id is not None:
        query = query.where(AcademicHistory.class_id == class_id)
    query = query.order_by(SchoolClass.order, Student.name)

    rows = []
    for history, student_name, class_name in (await db.execute(query)).all():
        summary = history.result_summary or {}
        percentage = summary.get("percentage")
        rows.append(
            StudentHistoryRow(
                student_id=history.student_id,
                student_name=student_name,
                class_id=history.class_id,
                class_name=class_name,
                roll_number=history.roll_number,
                status=history.status,
                percentage=_money(percentage) if percentage is not None else None,
            )
        )
    return rows


async def retention_report(db: AsyncSession, school_id: UUID, session_id: UUID) -> RetentionReport:
    students = await history_rows(db, school_id, session_id, HistoryStatus.RETAINED)
    return RetentionReport(session_id=session_id, total=len(students), students=students)


async def tc_report(
    db: AsyncSession,
    school_id: UUID,
    date_from: date | None = None,
    date_to: date | None = None,
) -> TCReport:
    query = (
        select(TransferCertificate, Student.name, SchoolClass.name)
        .join(Student, Student.id == TransferCertificate.student_id)
        .join(SchoolClass, SchoolClass.id == TransferCertificate.last_class_id)
        .where(TransferCertificate.school_id == school_id)
    )
    query = _in_range(query, TransferCertificate.issue_date, date_from, date_to)
    query = query.order_by(TransferCertificate.issue_date.desc())

    certificates = [
        TCReportRow(
            tc_number=certificate.tc_number,
            student_id=certificate.student_id,
            student_name=student_name,
            last_class_name=class_name,
            issue_date=certificate.issue_date,
            reason=certificate.reason,
        )
        for certificate, student_name, class_name in (await db.execute(query)).all()
    ]
    return TCReport(date_from=date_from, date_to=date_to, total=len(certificates), certificates=certificates)


# ============== Dashboards ==============


async def _count(db: AsyncSession, model, *criteria) -> int:
    return await _scalar(db, select(func.count()).select_from(model).where(*criteria)) or 0


async def dashboard(db: AsyncSession, user: User) -> DashboardResponse:
    """Headline numbers for the caller's role."""
    if user.role == Role.SUPER_ADMIN:
        counts = {
            "schools": await _count(db, School),
            "active_schools": await _count(db, School, School.status == SchoolStatus.ACTIVE),
            "expired_subscriptions": await _count(db, School, School.subscription_is_expired.is_(True)),
            "users": await _count(db, User, User.status == UserStatus.ACTIVE),
        }
        return DashboardResponse(role=user.role, counts=counts)

    school_id = user.school_id
    if user.role in (Role.PRINCIPAL, Role.OPERATOR):
        counts = {
            "students": await _count(
                db, Student, Student.school_id == school_id, Student.status == StudentStatus.ACTIVE
            ),
            "teachers": await _count(
                db, User, User.school_id == school_id, User.role == Role.TEACHER, User.status == UserStatus.ACTIVE
            ),
            "parents": await _count(db, Parent, Parent.school_id == school_id),
            "classes": await _count(db, SchoolClass, SchoolClass.school_id == school_id),
        }
        collected, due = (
            await db.execute(
                select(func.sum(StudentFee.paid_amount), func.sum(StudentFee.due_amount)).where(
                    StudentFee.school_id == school_id
                )
            )
        ).one()
        return DashboardResponse(
            role=user.role,
            counts=counts,
            amounts={"fees_collected": _money(collected), "fees_due": _money(due)},
        )

    if user.role == Role.TEACHER:
        teacher = await db.scalar(select(Teacher).where(Teacher.user_id == user.id))
        class_ids = [UUID(i) for i in teacher.assigned_class_ids] if teacher else []
        students = 0
        if class_ids:
            students = await _count(
                db,
                Student,
                Student.school_id == school_id,
                Student.class_id.in_(class_ids),
                Student.status == StudentStatus.ACTIVE,
            )
        counts = {
            "assigned_classes": len(class_ids),
            "assigned_subjects": len(teacher.assigned_subject_ids) if teacher else 0,
            "students": students,
        }
        return DashboardResponse(role=user.role, counts=counts)

    student_ids = await student_service.own_student_ids(db, user)
    due = ZERO
    pending = 0
    if student_ids:
        due, pending = (
            await db.execute(
                select(func.sum(StudentFee.due_amount), func.count()).where(
                    StudentFee.school_id == school_id,
                    StudentFee.student_id.in_(student_ids),
                    StudentFee.due_amount > 0,
                )
            )
        ).one()
    return DashboardResponse(
        role=user.role,
        counts={"students": len(student_ids), "pending_fees": pending or 0},
        amounts={"fees_due": _money(due)},
    )
