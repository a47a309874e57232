"""Fee schemas."""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from school_erp.models.fee import FeeFrequency, FeeStatus, OnlinePaymentStatus, PaymentMode


class FeeStructureCreate(BaseModel):
    """Schema for creating a fee structure in the active session."""

    class_id: UUID
    name: str = Field(..., min_length=1, max_length=200)
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    frequency: FeeFrequency
    is_optional: bool = False


class FeeStructureUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=200)
    amount: Decimal | None = Field(None, gt=0, decimal_places=2)
    frequency: FeeFrequency | None = None
    is_optional: bool | None = None
    is_active: bool | None = None


class FeeStructureResponse(BaseModel):
    id: UUID
    school_id: UUID
    session_id: UUID
    class_id: UUID
    name: str
    amount: Decimal
    frequency: FeeFrequency
    is_optional: bool
    is_active: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class FeeAssign(BaseModel):
    """Assign a fee structure to students. Without student_ids, to the whole class."""

    fee_structure_id: UUID
    student_ids: list[UUID] | None = None


class StudentFeeResponse(BaseModel):
    id: UUID
    school_id: UUID
    session_id: UUID
    student_id: UUID
    fee_structure_id: UUID
    total_amount: Decimal
    paid_amount: Decimal
    due_amount: Decimal
    status: FeeStatus

    model_config = {"from_attributes": True}


class FeeAssignResult(BaseModel):
    assigned: int
    skipped: int
    items: list[StudentFeeResponse]


class FeePaymentCreate(BaseModel):
    """A payment collected at the office."""

    student_fee_id: UUID
    amount: Decimal = Field(..., decimal_places=2)
    payment_mode: PaymentMode
    remarks: str | None = Field(None, max_length=500)


class FeePaymentResponse(BaseModel):
    id: UUID
    student_id: UUID
    student_fee_id: UUID
    amount: Decimal
    payment_mode: PaymentMode
    receipt_number: str
    paid_at: datetime
    collected_by_id: UUID
    remarks: str | None

    model_config = {"from_attributes": True}


class FeePaymentResult(BaseModel):
    payment: FeePaymentResponse
    student_fee: StudentFeeResponse


class FeePaymentListResponse(BaseModel):
    items: list[FeePaymentResponse]
    total: int
    skip: int
    limit: int


class OnlinePaymentInitiate(BaseModel):
    student_fee_id: UUID
    amount: Decimal = Field(..., decimal_places=2)


class OnlinePaymentVerify(BaseModel):
    """Gateway outcome for a pending payment."""

    gateway_reference: str
    status: OnlinePaymentStatus
    failure_reason: str | None = Field(None, max_length=500)

    @field_validator("status")
    @classmethod
    def check_final(cls, value: OnlinePaymentStatus) -> OnlinePaymentStatus:
        if value == OnlinePaymentStatus.PENDING:
            raise ValueError("status must be Success or Failed")
        return value


class OnlinePaymentResponse(BaseModel):
    id: UUID
    student_id: UUID
    student_fee_id: UUID
    amount: Decimal
    status: OnlinePaymentStatus
    gateway_reference: str
    initiated_by_id: UUID
    verified_by_id: UUID | None
    verified_at: datetime | None
    fee_payment_id: UUID | None
    failure_reason: str | None
    created_at: datetime

    model_config = {"from_attributes": True}
