"""Payroll models."""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import (
    JSON,
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


class SalaryStatus(str, Enum):
    CALCULATED = "Calculated"
    PAID = "Paid"


class SalaryPaymentMode(str, Enum):
    CASH = "Cash"
    BANK = "Bank"


class SalaryProfile(BaseModel):
    """Monthly pay terms for a staff member.

    allowances and deductions are lists of {"name", "amount"} line items.
    """

    __tablename__ = "salary_profiles"
    __table_args__ = (
        UniqueConstraint("user_id", "school_id", name="uq_salary_profile_user"),
    )

    school_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("schools.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    base_salary: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    allowances: Mapped[list] = mapped_column(JSON, default=list, nullable=False)
    deductions: Mapped[list] = mapped_column(JSON, default=list, nullable=False)

    @property
    def total_allowances(self) -> Decimal:
        return sum((Decimal(str(item["amount"])) for item in self.allowances), Decimal("0"))

    @property
    def total_deductions(self) -> Decimal:
        return sum((Decimal(str(item["amount"])) for item in self.deductions), Decimal("0"))


class SalaryCalculation(BaseModel):
    """Snapshot of one staff member's pay for one month."""

    __tablename__ = "salary_calculations"
    __table_args__ = (
        UniqueConstraint("staff_id", "month", "school_id", name="uq_salary_calculation_month"),
    )

    school_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("schools.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    staff_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    month: Mapped[str] = mapped_column(String(7), nullable=False)  # YYYY-MM
    base_salary: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    working_days: Mapped[int] = mapped_column(Integer, nullable=False)
    attendance_days: Mapped[int] = mapped_column(Integer, nullable=False)
    leave_days: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    allowances: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0"))
    gross_salary: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    deductions: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0"))
    net_payable: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    status: Mapped[SalaryStatus] = mapped_column(
        String(20),
        default=SalaryStatus.CALCULATED,
        nullable=False,
    )


class SalaryPayment(BaseModel):
    __tablename__ = "salary_payments"

    school_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("schools.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    salary_calculation_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("salary_calculations.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
    staff_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    month: Mapped[str] = mapped_column(String(7), nullable=False)
    amount_paid: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    payment_mode: Mapped[SalaryPaymentMode] = mapped_column(String(20), nullable=False)
    payment_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    paid_by_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("users.id"), nullable=False)
