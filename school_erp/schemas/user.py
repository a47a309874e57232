"""User schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from school_erp.core.permissions import Role
from school_erp.models.user import UserStatus
from school_erp.schemas.validators import Email, MobileNumber


class UserCreate(BaseModel):
    """Schema for creating a new user."""

    name: str = Field(..., min_length=1, max_length=200)
    email: Email | None = None
    mobile: MobileNumber | None = None
    password: str = Field(..., min_length=6)
    role: Role
    school_id: UUID | None = None  # Required when a super admin creates a school user

    @model_validator(mode="after")
    def check_identifier(self) -> "UserCreate":
        if not self.email and not self.mobile:
            raise ValueError("Either email or mobile is required")
        return self


class UserUpdate(BaseModel):
    """Schema for updating a user."""

    name: str | None = Field(None, min_length=1, max_length=200)
    email: Email | None = None
    mobile: MobileNumber | None = None
    role: Role | None = None


class UserResponse(BaseModel):
    """User response schema."""

    id: UUID
    name: str
    email: str | None
    mobile: str | None
    role: Role
    school_id: UUID | None
    status: UserStatus
    created_at: datetime

    model_config = {"from_attributes": True}


class UserListResponse(BaseModel):
    """Paginated list of users."""

    items: list[UserResponse]
    total: int
    skip: int
    limit: int
