"""Student, parent and teacher schemas."""

from datetime import date, datetime
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from school_erp.models.student import Gender, ProfileStatus, StudentStatus
from school_erp.schemas.validators import Email, MobileNumber


# ============== Students ==============


class StudentCreate(BaseModel):
    """Schema for admitting a student."""

    name: str = Field(..., min_length=1, max_length=200)
    roll_number: str = Field(..., min_length=1, max_length=50)
    class_id: UUID
    section_id: UUID
    parent_id: UUID
    session_id: UUID | None = None  # defaults to the active session
    user_id: UUID | None = None
    date_of_birth: date | None = None
    gender: Gender | None = None
    address: str | None = Field(None, max_length=500)


class StudentUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=200)
    roll_number: str | None = Field(None, min_length=1, max_length=50)
    section_id: UUID | None = None
    date_of_birth: date | None = None
    gender: Gender | None = None
    address: str | None = Field(None, max_length=500)


class StudentStatusUpdate(BaseModel):
    status: StudentStatus


class StudentResponse(BaseModel):
    id: UUID
    school_id: UUID
    session_id: UUID
    class_id: UUID
    section_id: UUID
    parent_id: UUID
    user_id: UUID | None
    name: str
    roll_number: str
    status: StudentStatus
    date_of_birth: date | None
    gender: Gender | None
    address: str | None
    created_at: datetime

    model_config = {"from_attributes": True}


class StudentListResponse(BaseModel):
    """Paginated list of students."""

    items: list[StudentResponse]
    total: int
    skip: int
    limit: int


# ============== Parents ==============


class ParentCreate(BaseModel):
    """A parent login plus profile."""

    name: str = Field(..., min_length=1, max_length=200)
    email: Email | None = None
    mobile: MobileNumber | None = None
    password: str = Field(..., min_length=6)

    @model_validator(mode="after")
    def check_identifier(self) -> "ParentCreate":
        if not self.email and not self.mobile:
            raise ValueError("Either email or mobile is required")
        return self


class ParentResponse(BaseModel):
    id: UUID
    user_id: UUID
    school_id: UUID
    status: ProfileStatus
    name: str
    email: str | None
    mobile: str | None
    created_at: datetime

    model_config = {"from_attributes": True}


class ParentListResponse(BaseModel):
    items: list[ParentResponse]
    total: int
    skip: int
    limit: int


# ============== Teachers ==============


class TeacherCreate(BaseModel):
    """A teacher login plus profile with optional assignments."""

    name: str = Field(..., min_length=1, max_length=200)
    email: Email | None = None
    mobile: MobileNumber | None = None
    password: str = Field(..., min_length=6)
    assigned_class_ids: list[UUID] = Field(default_factory=list)
    assigned_subject_ids: list[UUID] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_identifier(self) -> "TeacherCreate":
        if not self.email and not self.mobile:
            raise ValueError("Either email or mobile is required")
        return self


class TeacherAssignmentUpdate(BaseModel):
    assigned_class_ids: list[UUID] | None = None
    assigned_subject_ids: list[UUID] | None = None


class TeacherResponse(BaseModel):
    id: UUID
    user_id: UUID
    school_id: UUID
    status: ProfileStatus
    name: str
    email: str | None
    mobile: str | None
    assigned_class_ids: list[UUID]
    assigned_subject_ids: list[UUID]
    created_at: datetime

    model_config = {"from_attributes": True}


class TeacherListResponse(BaseModel):
    items: list[TeacherResponse]
    total: int
    skip: int
    limit: int
