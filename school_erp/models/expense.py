"""Expense, inventory and homework models."""

from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import JSON, Date, ForeignKey, Index, Integer, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from school_erp.core.database import BaseModel


class ExpenseCategory(str, Enum):
    ELECTRICITY = "Electricity"
    SALARY = "Salary"
    REPAIR = "Repair"
    HOSTEL = "Hostel"
    TRANSPORT = "Transport"
    MISC = "Misc"


class ExpensePaymentMode(str, Enum):
    CASH = "Cash"
    BANK = "Bank"


class ItemCondition(str, Enum):
    EXCELLENT = "Excellent"
    GOOD = "Good"
    FAIR = "Fair"
    POOR = "Poor"
    DAMAGED = "Damaged"


class Expense(BaseModel):
    """Money spent by the school."""

    __tablename__ = "expenses"
    __table_args__ = (
        Index("ix_expenses_school_date", "school_id", "expense_date"),
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
    category: Mapped[ExpenseCategory] = mapped_column(String(20), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    expense_date: Mapped[date] = mapped_column(Date, nullable=False)
    payment_mode: Mapped[ExpensePaymentMode] = mapped_column(String(10), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    bill_attachment: Mapped[str | None] = mapped_column(String(500))
    created_by_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("users.id"), nullable=False)


class InventoryItem(BaseModel):
    __tablename__ = "inventory_items"
    __table_args__ = (
        Index("ix_inventory_school_code", "school_id", "code"),
    )

    school_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("schools.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    code: Mapped[str] = mapped_column(String(50), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    category: Mapped[str] = mapped_column(String(100), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    assigned_to: Mapped[str | None] = mapped_column(String(200))
    condition: Mapped[ItemCondition] = mapped_column(String(20), default=ItemCondition.GOOD)
    purchase_date: Mapped[date] = mapped_column(Date, nullable=False)
    cost: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    remarks: Mapped[str | None] = mapped_column(Text)


class Homework(BaseModel):
    __tablename__ = "homework"
    __table_args__ = (
        Index("ix_homework_class_session", "class_id", "session_id", "school_id"),
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
    section_id: Mapped[UUID | None] = mapped_column(Uuid, ForeignKey("sections.id", ondelete="SET NULL"))
    subject_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("subjects.id", ondelete="CASCADE"),
        nullable=False,
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    due_date: Mapped[date] = mapped_column(Date, nullable=False)
    attachments: Mapped[list] = mapped_column(JSON, default=list, nullable=False)
    created_by_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("users.id"), nullable=False)
