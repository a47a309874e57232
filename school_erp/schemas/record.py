"""Promotion, transfer certificate and academic history schemas."""

from datetime import date, datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field

from school_erp.models.record import HistoryStatus


class PromotionAction(str, Enum):
    PROMOTE = "PROMOTE"
    RETAIN = "RETAIN"


class PromotionRequest(BaseModel):
    """Promote the active students of a class into another session."""

    class_id: UUID
    to_session_id: UUID
    target_class_id: UUID | None = Field(None, description="Defaults to the class with the next order")


class PromotionOverride(BaseModel):
    student_id: UUID
    action: PromotionAction


class PromotionExecute(PromotionRequest):
    overrides: list[PromotionOverride] = Field(default_factory=list)


class PromotionPreviewItem(BaseModel):
    student_id: UUID
    name: str
    roll_number: str
    current_class_id: UUID
    target_class_id: UUID | None
    promotion_status: str
    action: PromotionAction


class PromotionPreview(BaseModel):
    class_id: UUID
    from_session_id: UUID
    to_session_id: UUID
    target_class_id: UUID | None
    items: list[PromotionPreviewItem]


class PromotionSummary(BaseModel):
    promoted: int
    retained: int
    completed: int


class TCCreate(BaseModel):
    student_id: UUID
    reason: str = Field(..., min_length=1, max_length=1000)
    issue_date: date | None = None


class TCResponse(BaseModel):
    id: UUID
    student_id: UUID
    session_id: UUID
    last_class_id: UUID
    tc_number: str
    reason: str
    issue_date: date
    issued_by_id: UUID
    created_at: datetime

    model_config = {"from_attributes": True}


class AcademicHistoryResponse(BaseModel):
    id: UUID
    student_id: UUID
    session_id: UUID
    class_id: UUID
    section_id: UUID | None
    roll_number: str | None
    result_summary: dict | None
    attendance_summary: dict | None
    status: HistoryStatus
    created_at: datetime

    model_config = {"from_attributes": True}
