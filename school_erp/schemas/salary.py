"""Payroll schemas."""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, Field

from school_erp.models.salary import SalaryPaymentMode, SalaryStatus
from school_erp.schemas.validators import Month


class LineItem(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    amount: Decimal = Field(..., ge=0, decimal_places=2)


class SalaryProfileCreate(BaseModel):
    user_id: UUID
    base_salary: Decimal = Field(..., ge=0, decimal_places=2)
    allowances: list[LineItem] = Field(default_factory=list)
    deductions: list[LineItem] = Field(default_factory=list)


class SalaryProfileUpdate(BaseModel):
    base_salary: Decimal | None = Field(None, ge=0, decimal_places=2)
    allowances: list[LineItem] | None = None
    deductions: list[LineItem] | None = None


class SalaryProfileResponse(BaseModel):
    id: UUID
    user_id: UUID
    base_salary: Decimal
    allowances: list[LineItem]
    deductions: list[LineItem]
    total_allowances: Decimal
    total_deductions: Decimal

    model_config = {"from_attributes": True}


class SalaryCalculate(BaseModel):
    staff_id: UUID
    month: Month


class SalaryCalculationResponse(BaseModel):
    id: UUID
    staff_id: UUID
    month: str
    base_salary: Decimal
    working_days: int
    attendance_days: int
    leave_days: int
    allowances: Decimal
    gross_salary: Decimal
    deductions: Decimal
    net_payable: Decimal
    status: SalaryStatus
    created_at: datetime

    model_config = {"from_attributes": True}


class SalaryPay(BaseModel):
    salary_calculation_id: UUID
    payment_mode: SalaryPaymentMode


class SalaryPaymentResponse(BaseModel):
    id: UUID
    salary_calculation_id: UUID
    staff_id: UUID
    month: str
    amount_paid: Decimal
    payment_mode: SalaryPaymentMode
    payment_date: datetime
    paid_by_id: UUID

    model_config = {"from_attributes": True}


class SalarySlip(BaseModel):
    calculation: SalaryCalculationResponse
    payment: SalaryPaymentResponse | None = None
