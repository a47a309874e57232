"""Fee structure, student fee and payment models."""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from school_erp.core.database import BaseModel, utcnow


class FeeFrequency(str, Enum):
    MONTHLY = "Monthly"
    QUARTERLY = "Quarterly"
    ONE_TIME = "One-time"


class FeeStatus(str, Enum):
    """Student fee status, derived from paid vs total."""

    DUE = "Due"
    PARTIAL = "Partial"
    PAID = "Paid"


class PaymentMode(str, Enum):
    CASH = "Cash"
    BANK = "Bank"
    ONLINE = "Online"


class OnlinePaymentStatus(str, Enum):
    PENDING = "Pending"
    SUCCESS = "Success"
    FAILED = "Failed"


def fee_status_for(paid_amount: Decimal, due_amount: Decimal) -> FeeStatus:
    """Paid when nothing is due, Partial when something was paid, else Due."""
    if due_amount <= 0:
        return FeeStatus.PAID
    if paid_amount > 0:
        return FeeStatus.PARTIAL
    return FeeStatus.DUE


class FeeStructure(BaseModel):
    """A named fee charged to a class in a session."""

    __tablename__ = "fee_structures"

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
        index=True,
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    frequency: Mapped[FeeFrequency] = mapped_column(String(20), nullable=False)
    is_optional: Mapped[bool] = mapped_column(Boolean, default=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_by_id: Mapped[UUID | None] = mapped_column(Uuid, ForeignKey("users.id"))


class StudentFee(BaseModel):
    """A fee structure assigned to a student. paid + due always equals total."""

    __tablename__ = "student_fees"
    __table_args__ = (
        UniqueConstraint(
            "student_id",
            "fee_structure_id",
            "session_id",
            name="uq_student_fee",
        ),
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
    fee_structure_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("fee_structures.id", ondelete="CASCADE"),
        nullable=False,
    )
    total_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    paid_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0"), nullable=False)
    due_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    status: Mapped[FeeStatus] = mapped_column(String(20), default=FeeStatus.DUE, nullable=False)

    def apply_payment(self, amount: Decimal) -> None:
        """Move amount from due to paid and recompute the status.

        Callers validate the amount first; this keeps the invariant only.
        """
        self.paid_amount = Decimal(self.paid_amount) + amount
        self.due_amount = Decimal(self.total_amount) - self.paid_amount
        self.status = fee_status_for(self.paid_amount, self.due_amount)

    def __repr__(self) -> str:
        return f"<StudentFee(id={self.id}, paid={self.paid_amount}, due={self.due_amount})>"


class FeePayment(BaseModel):
    """A payment received against a student fee."""

    __tablename__ = "fee_payments"

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
    student_fee_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("student_fees.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    payment_mode: Mapped[PaymentMode] = mapped_column(String(20), nullable=False)
    receipt_number: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    paid_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    collected_by_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("users.id"), nullable=False)
    remarks: Mapped[str | None] = mapped_column(Text)


class OnlinePayment(BaseModel):
    """A gateway payment initiated by a parent; applied to the fee once verified."""

    __tablename__ = "online_payments"

    school_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("schools.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    student_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("students.id", ondelete="CASCADE"),
        nullable=False,
    )
    student_fee_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("student_fees.id", ondelete="CASCADE"),
        nullable=False,
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    status: Mapped[OnlinePaymentStatus] = mapped_column(
        String(20),
        default=OnlinePaymentStatus.PENDING,
        nullable=False,
    )
    gateway_reference: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    initiated_by_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("users.id"), nullable=False)
    verified_by_id: Mapped[UUID | None] = mapped_column(Uuid, ForeignKey("users.id"))
    verified_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    fee_payment_id: Mapped[UUID | None] = mapped_column(
        Uuid,
        ForeignKey("fee_payments.id", ondelete="SET NULL"),
    )
    failure_reason: Mapped[str | None] = mapped_column(String(500))
