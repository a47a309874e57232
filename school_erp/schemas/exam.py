"""Exam, result and admit card schemas."""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from school_erp.models.exam import (
    ExamFormStatus,
    ExamPaymentMode,
    ExamPaymentStatus,
    ExamStatus,
    ResultStatus,
)


# ============== Exams ==============


class ExamCreate(BaseModel):
    """Schema for creating an exam in the active session."""

    class_id: UUID
    name: str = Field(..., min_length=1, max_length=200)
    start_date: date
    end_date: date

    @model_validator(mode="after")
    def check_dates(self) -> "ExamCreate":
        if self.end_date < self.start_date:
            raise ValueError("end_date cannot be before start_date")
        return self


class ExamUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=200)
    start_date: date | None = None
    end_date: date | None = None


class ExamStatusUpdate(BaseModel):
    status: ExamStatus


class ExamResponse(BaseModel):
    id: UUID
    school_id: UUID
    session_id: UUID
    class_id: UUID
    name: str
    start_date: date
    end_date: date
    status: ExamStatus
    created_at: datetime

    model_config = {"from_attributes": True}


class ExamSubjectCreate(BaseModel):
    subject_id: UUID
    teacher_id: UUID = Field(..., description="User id of the teacher who enters the marks")
    max_marks: int = Field(..., gt=0)
    pass_marks: int = Field(..., ge=0)

    @model_validator(mode="after")
    def check_marks(self) -> "ExamSubjectCreate":
        if self.pass_marks > self.max_marks:
            raise ValueError("Pass marks cannot be greater than max marks")
        return self


class ExamSubjectResponse(BaseModel):
    id: UUID
    exam_id: UUID
    subject_id: UUID
    teacher_id: UUID
    max_marks: int
    pass_marks: int

    model_config = {"from_attributes": True}


# ============== Forms and payments ==============


class ExamFormCreate(BaseModel):
    exam_id: UUID
    fee_amount: Decimal = Field(Decimal("0"), ge=0, decimal_places=2)
    end_date: date
    is_payment_required: bool = True


class ExamFormResponse(BaseModel):
    id: UUID
    exam_id: UUID
    class_id: UUID
    fee_amount: Decimal
    end_date: date
    is_payment_required: bool
    status: ExamFormStatus

    model_config = {"from_attributes": True}


class ExamPaymentCreate(BaseModel):
    """Exam fee collected by staff. Parents pay online for their children."""

    student_id: UUID
    exam_form_id: UUID


class ExamPaymentResponse(BaseModel):
    id: UUID
    student_id: UUID
    exam_form_id: UUID
    amount: Decimal
    payment_mode: ExamPaymentMode
    status: ExamPaymentStatus
    receipt_number: str | None
    created_at: datetime

    model_config = {"from_attributes": True}


# ============== Results ==============


class SubjectMark(BaseModel):
    subject_id: UUID
    marks_obtained: Decimal = Field(..., ge=0)


class ResultEntry(BaseModel):
    """Marks for one student. Entering marks again replaces those subjects only."""

    student_id: UUID
    marks: list[SubjectMark] = Field(..., min_length=1)


class MarkDetail(BaseModel):
    subject_id: UUID
    marks_obtained: float
    max_marks: int
    pass_marks: int
    is_pass: bool


class ResultResponse(BaseModel):
    id: UUID
    student_id: UUID
    exam_id: UUID
    marks: list[MarkDetail]
    total_marks: Decimal
    max_total: Decimal
    percentage: Decimal
    grade: str | None
    overall_status: str | None
    promotion_status: str | None
    rank: int | None
    status: ResultStatus
    published_at: datetime | None

    model_config = {"from_attributes": True}


class PublishSummary(BaseModel):
    exam_id: UUID
    published: int


# ============== Admit cards ==============


class AdmitCardCreate(BaseModel):
    student_id: UUID
    exam_center: str | None = Field(None, max_length=200)
    roll_number: str | None = Field(None, max_length=50, description="Defaults to the student's roll number")


class AdmitCardResponse(BaseModel):
    id: UUID
    student_id: UUID
    exam_id: UUID
    roll_number: str
    exam_center: str | None
    generated_at: datetime

    model_config = {"from_attributes": True}
