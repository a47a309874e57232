"""Academic session, class, section and subject schemas."""

from datetime import date, datetime
from uuid import UUID

from pydantic import BaseModel, Field, model_validator


class AcademicSessionCreate(BaseModel):
    """Schema for creating an academic session."""

    name: str = Field(..., min_length=1, max_length=50)
    start_date: date
    end_date: date
    is_active: bool = False
    school_id: UUID | None = None

    @model_validator(mode="after")
    def check_dates(self) -> "AcademicSessionCreate":
        if self.end_date <= self.start_date:
            raise ValueError("end_date must be after start_date")
        return self


class AcademicSessionUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=50)
    start_date: date | None = None
    end_date: date | None = None


class AcademicSessionResponse(BaseModel):
    id: UUID
    school_id: UUID
    name: str
    start_date: date
    end_date: date
    is_active: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class SchoolClassCreate(BaseModel):
    """Schema for creating a class in the active session."""

    name: str = Field(..., min_length=1, max_length=50)
    order: int = Field(1, ge=1, le=20)


class SchoolClassUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=50)
    order: int | None = Field(None, ge=1, le=20)


class SchoolClassResponse(BaseModel):
    id: UUID
    school_id: UUID
    session_id: UUID
    name: str
    order: int
    created_at: datetime

    model_config = {"from_attributes": True}


class SectionCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=20)
    capacity: int | None = Field(None, ge=1)


class SectionResponse(BaseModel):
    id: UUID
    school_id: UUID
    session_id: UUID
    class_id: UUID
    name: str
    capacity: int | None

    model_config = {"from_attributes": True}


class SubjectCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    code: str | None = Field(None, max_length=20)


class SubjectResponse(BaseModel):
    id: UUID
    school_id: UUID
    session_id: UUID
    class_id: UUID
    name: str
    code: str | None

    model_config = {"from_attributes": True}
