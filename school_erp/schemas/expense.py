"""Expense, inventory and homework schemas."""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, Field

from school_erp.models.expense import ExpenseCategory, ExpensePaymentMode, ItemCondition


# ============== Expenses ==============


class ExpenseCreate(BaseModel):
    category: ExpenseCategory
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    expense_date: date
    payment_mode: ExpensePaymentMode
    description: str = Field(..., min_length=1, max_length=1000)
    bill_attachment: str | None = Field(None, max_length=500)


class ExpenseResponse(BaseModel):
    id: UUID
    session_id: UUID
    category: ExpenseCategory
    amount: Decimal
    expense_date: date
    payment_mode: ExpensePaymentMode
    description: str
    bill_attachment: str | None = None
    created_by_id: UUID
    created_at: datetime

    model_config = {"from_attributes": True}


class ExpenseListResponse(BaseModel):
    items: list[ExpenseResponse]
    total: int
    skip: int
    limit: int


class CategoryTotal(BaseModel):
    category: ExpenseCategory
    total: Decimal
    count: int


class ExpenseSummary(BaseModel):
    categories: list[CategoryTotal]
    grand_total: Decimal


# ============== Inventory ==============


class InventoryItemCreate(BaseModel):
    code: str = Field(..., min_length=1, max_length=50)
    name: str = Field(..., min_length=1, max_length=200)
    category: str = Field(..., min_length=1, max_length=100)
    quantity: int = Field(..., ge=0)
    assigned_to: str | None = Field(None, max_length=200)
    condition: ItemCondition = ItemCondition.GOOD
    purchase_date: date
    cost: Decimal = Field(..., ge=0, decimal_places=2)
    remarks: str | None = None


class InventoryItemUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=200)
    category: str | None = Field(None, min_length=1, max_length=100)
    quantity: int | None = Field(None, ge=0)
    assigned_to: str | None = Field(None, max_length=200)
    condition: ItemCondition | None = None
    remarks: str | None = None


class InventoryItemResponse(BaseModel):
    id: UUID
    code: str
    name: str
    category: str
    quantity: int
    assigned_to: str | None = None
    condition: ItemCondition
    purchase_date: date
    cost: Decimal
    remarks: str | None = None

    model_config = {"from_attributes": True}


# ============== Homework ==============


class HomeworkCreate(BaseModel):
    class_id: UUID
    section_id: UUID | None = None
    subject_id: UUID
    title: str = Field(..., min_length=1, max_length=200)
    description: str | None = None
    due_date: date
    attachments: list[str] = Field(default_factory=list)


class HomeworkResponse(BaseModel):
    id: UUID
    session_id: UUID
    class_id: UUID
    section_id: UUID | None = None
    subject_id: UUID
    title: str
    description: str | None = None
    due_date: date
    attachments: list[str]
    created_by_id: UUID
    created_at: datetime

    model_config = {"from_attributes": True}
