"""School schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from school_erp.core.plans import Plan
from school_erp.models.school import SchoolStatus
from school_erp.schemas.academic import AcademicSessionResponse
from school_erp.schemas.user import UserResponse
from school_erp.schemas.validators import Email, MobileNumber


class PrincipalCreate(BaseModel):
    """Principal account created together with a school."""

    name: str = Field(..., min_length=1, max_length=200)
    email: Email | None = None
    mobile: MobileNumber | None = None
    password: str = Field(..., min_length=6)


class SchoolCreate(BaseModel):
    """Schema for creating a new school."""

    name: str = Field(..., min_length=1, max_length=255)
    code: str = Field(..., min_length=2, max_length=50)
    address: str | None = Field(None, max_length=500)
    phone: MobileNumber | None = None
    email: Email | None = None
    plan: Plan = Plan.BASIC
    principal: PrincipalCreate

    @field_validator("code")
    @classmethod
    def normalize_code(cls, value: str) -> str:
        return value.strip().upper()


class SchoolUpdate(BaseModel):
    """Schema for updating school details."""

    name: str | None = Field(None, min_length=1, max_length=255)
    address: str | None = Field(None, max_length=500)
    phone: MobileNumber | None = None
    email: Email | None = None


class SchoolStatusUpdate(BaseModel):
    status: SchoolStatus


class PlanChange(BaseModel):
    plan: Plan
    confirmed: bool = False  # required for downgrades


class ModulesUpdate(BaseModel):
    modules: dict[str, bool]


class LimitsUpdate(BaseModel):
    student_limit: int | None = Field(None, ge=0)
    teacher_limit: int | None = Field(None, ge=0)
    storage_limit_gb: int | None = Field(None, ge=0)


class SubscriptionRenew(BaseModel):
    duration_months: int = Field(..., ge=1, le=36)


class OnlinePaymentsToggle(BaseModel):
    enabled: bool


class SchoolResponse(BaseModel):
    """School response schema."""

    id: UUID
    name: str
    code: str
    status: SchoolStatus
    address: str | None
    phone: str | None
    email: str | None
    plan: Plan
    modules: dict
    limits: dict
    online_payments_enabled: bool
    subscription_start_date: datetime | None
    subscription_end_date: datetime | None
    grace_period_days: int
    subscription_is_expired: bool
    last_renewal_date: datetime | None
    created_at: datetime

    model_config = {"from_attributes": True}


class SchoolListResponse(BaseModel):
    """Paginated list of schools."""

    items: list[SchoolResponse]
    total: int
    skip: int
    limit: int


class SchoolCreatedResponse(BaseModel):
    """Everything created when onboarding a school."""

    school: SchoolResponse
    principal: UserResponse
    session: AcademicSessionResponse


class SubscriptionStatus(BaseModel):
    plan: Plan
    end_date: datetime | None
    grace_end_date: datetime | None
    grace_period_days: int
    is_expired: bool
    in_grace_period: bool
    days_remaining: int | None
