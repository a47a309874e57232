"""Authentication schemas."""

from pydantic import BaseModel, Field, model_validator

from school_erp.schemas.user import UserResponse
from school_erp.schemas.validators import Email, MobileNumber


class Token(BaseModel):
    """JWT token response."""

    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class LoginResponse(Token):
    """Tokens plus the logged-in user."""

    user: UserResponse


class RefreshRequest(BaseModel):
    """Refresh token request."""

    refresh_token: str


class LoginRequest(BaseModel):
    """Login with either an email or a mobile number."""

    email: Email | None = None
    mobile: MobileNumber | None = None
    password: str = Field(..., min_length=6)

    @model_validator(mode="after")
    def check_identifier(self) -> "LoginRequest":
        if not self.email and not self.mobile:
            raise ValueError("Either email or mobile is required")
        return self


class ChangePasswordRequest(BaseModel):
    current_password: str
    new_password: str = Field(..., min_length=6)
