"""Hostel schemas."""

from datetime import date, datetime
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from school_erp.models.hostel import AllocationStatus, LeaveStatus


class HostelCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    capacity: int = Field(..., gt=0)


class HostelResponse(BaseModel):
    id: UUID
    name: str
    capacity: int
    created_at: datetime

    model_config = {"from_attributes": True}


class RoomCreate(BaseModel):
    room_number: str = Field(..., min_length=1, max_length=20)
    total_beds: int = Field(..., gt=0)


class RoomResponse(BaseModel):
    id: UUID
    hostel_id: UUID
    room_number: str
    total_beds: int
    available_beds: int

    model_config = {"from_attributes": True}


class AllocationCreate(BaseModel):
    student_id: UUID
    room_id: UUID
    entry_date: date | None = None


class AllocationResponse(BaseModel):
    id: UUID
    student_id: UUID
    hostel_id: UUID
    room_id: UUID
    bed_number: int
    entry_date: date
    status: AllocationStatus

    model_config = {"from_attributes": True}


class LeaveCreate(BaseModel):
    student_id: UUID
    from_date: date
    to_date: date
    reason: str = Field(..., min_length=1, max_length=1000)

    @model_validator(mode="after")
    def check_dates(self) -> "LeaveCreate":
        if self.to_date < self.from_date:
            raise ValueError("to_date cannot be before from_date")
        return self


class LeaveDecision(BaseModel):
    status: LeaveStatus

    @model_validator(mode="after")
    def check_status(self) -> "LeaveDecision":
        if self.status == LeaveStatus.PENDING:
            raise ValueError("A leave can only be approved or rejected")
        return self


class LeaveResponse(BaseModel):
    id: UUID
    student_id: UUID
    from_date: date
    to_date: date
    reason: str
    status: LeaveStatus
    approved_by_id: UUID | None = None
    created_at: datetime

    model_config = {"from_attributes": True}
