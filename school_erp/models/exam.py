"""Exam, exam form, result and admit card models."""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from school_erp.core.database import BaseModel, utcnow


class ExamStatus(str, Enum):
    DRAFT = "Draft"
    PUBLISHED = "Published"
    CLOSED = "Closed"


class ExamFormStatus(str, Enum):
    ACTIVE = "ACTIVE"
    CLOSED = "CLOSED"


class ExamPaymentMode(str, Enum):
    ONLINE = "Online"
    MANUAL = "Manual"


class ExamPaymentStatus(str, Enum):
    PENDING = "Pending"
    PAID = "Paid"


class ResultStatus(str, Enum):
    DRAFT = "Draft"
    PUBLISHED = "Published"


class Exam(BaseModel):
    __tablename__ = "exams"
    __table_args__ = (
        UniqueConstraint("name", "class_id", "session_id", "school_id", name="uq_exam_name"),
    )

    school_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("schools.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    session_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("academic_sessions.id", ondelete="CASCADE"),
        nullable=False,
    )
    class_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("school_classes.id", ondelete="CASCADE"),
        nullable=False,
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[ExamStatus] = mapped_column(String(20), default=ExamStatus.DRAFT, nullable=False)
    created_by_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("users.id"), nullable=False)


class ExamSubject(BaseModel):
    """A subject paper within an exam, with its marking scheme and teacher."""

    __tablename__ = "exam_subjects"
    __table_args__ = (
        UniqueConstraint("exam_id", "subject_id", name="uq_exam_subject"),
    )

    school_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("schools.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    session_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("academic_sessions.id", ondelete="CASCADE"),
        nullable=False,
    )
    exam_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("exams.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    subject_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("subjects.id", ondelete="CASCADE"),
        nullable=False,
    )
    teacher_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id"),
        nullable=False,
    )
    max_marks: Mapped[int] = mapped_column(Integer, nullable=False)
    pass_marks: Mapped[int] = mapped_column(Integer, nullable=False)


class ExamForm(BaseModel):
    """Registration window for an exam, optionally behind a fee."""

    __tablename__ = "exam_forms"
    __table_args__ = (
        UniqueConstraint("exam_id", "class_id", "session_id", "school_id", name="uq_exam_form"),
    )

    school_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("schools.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    session_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("academic_sessions.id", ondelete="CASCADE"),
        nullable=False,
    )
    exam_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("exams.id", ondelete="CASCADE"),
        nullable=False,
    )
    class_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("school_classes.id", ondelete="CASCADE"),
        nullable=False,
    )
    fee_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    is_payment_required: Mapped[bool] = mapped_column(Boolean, default=True)
    status: Mapped[ExamFormStatus] = mapped_column(
        String(20),
        default=ExamFormStatus.ACTIVE,
        nullable=False,
    )
    created_by_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("users.id"), nullable=False)


class ExamPayment(BaseModel):
    __tablename__ = "exam_payments"
    __table_args__ = (
        UniqueConstraint("student_id", "exam_form_id", name="uq_exam_payment"),
    )

    school_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("schools.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    session_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("academic_sessions.id", ondelete="CASCADE"),
        nullable=False,
    )
    student_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("students.id", ondelete="CASCADE"),
        nullable=False,
    )
    exam_form_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("exam_forms.id", ondelete="CASCADE"),
        nullable=False,
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    payment_mode: Mapped[ExamPaymentMode] = mapped_column(String(20), nullable=False)
    status: Mapped[ExamPaymentStatus] = mapped_column(
        String(20),
        default=ExamPaymentStatus.PENDING,
        nullable=False,
    )
    receipt_number: Mapped[str | None] = mapped_column(String(100), unique=True)
    created_by_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("users.id"), nullable=False)


class Result(BaseModel):
    """A student's marks for one exam.

    marks holds one entry per exam subject:
    {"subject_id", "marks_obtained", "max_marks", "pass_marks"}.
    """

    __tablename__ = "results"
    __table_args__ = (
        UniqueConstraint("student_id", "exam_id", name="uq_result"),
    )

    school_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("schools.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    session_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("academic_sessions.id", ondelete="CASCADE"),
        nullable=False,
    )
    student_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("students.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    exam_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("exams.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    marks: Mapped[list] = mapped_column(JSON, default=list, nullable=False)
    total_marks: Mapped[Decimal] = mapped_column(Numeric(8, 2), default=Decimal("0"))
    max_total: Mapped[Decimal] = mapped_column(Numeric(8, 2), default=Decimal("0"))
    percentage: Mapped[Decimal] = mapped_column(Numeric(5, 2), default=Decimal("0"))
    grade: Mapped[str | None] = mapped_column(String(2))
    overall_status: Mapped[str | None] = mapped_column(String(10))  # PASS / FAIL
    promotion_status: Mapped[str | None] = mapped_column(String(20))  # ELIGIBLE / NOT_ELIGIBLE
    rank: Mapped[int | None] = mapped_column(Integer)
    status: Mapped[ResultStatus] = mapped_column(String(20), default=ResultStatus.DRAFT, nullable=False)
    published_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_by_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("users.id"), nullable=False)


class AdmitCard(BaseModel):
    __tablename__ = "admit_cards"
    __table_args__ = (
        UniqueConstraint("student_id", "exam_id", name="uq_admit_card"),
    )

    school_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("schools.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    session_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("academic_sessions.id", ondelete="CASCADE"),
        nullable=False,
    )
    student_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("students.id", ondelete="CASCADE"),
        nullable=False,
    )
    exam_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("exams.id", ondelete="CASCADE"),
        nullable=False,
    )
    roll_number: Mapped[str] = mapped_column(String(50), nullable=False)
    exam_center: Mapped[str | None] = mapped_column(String(200))
    generated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    created_by_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("users.id"), nullable=False)
