"""Authentication routes."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.ext.asyncio import AsyncSession

from school_erp.core.database import get_db
from school_erp.core.deps import CurrentUser, client_ip
from school_erp.core.rate_limit import AUTH_LIMIT, rate_limit
from school_erp.core.security import (
    create_access_token,
    create_refresh_token,
    decode_access_token,
    token_claims,
)
from school_erp.models.audit import AuditAction, EntityType
from school_erp.models.school import School
from school_erp.models.user import User
from school_erp.schemas.auth import (
    ChangePasswordRequest,
    LoginRequest,
    LoginResponse,
    RefreshRequest,
    Token,
)
from school_erp.schemas.user import UserResponse
from school_erp.services import audit as audit_service
from school_erp.services import user as user_service
from school_erp.services.auth import authenticate_user

router = APIRouter(prefix="/auth", tags=["Authentication"])


# ============== Helper Functions ==============


async def check_can_login(db: AsyncSession, user: User | None) -> User:
    """Reject unknown credentials, inactive users and users of inactive schools."""
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is inactive",
        )

    if user.school_id is not None:
        school = await db.get(School, user.school_id)
        if school is None or not school.is_active:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="School is inactive",
            )

    return user


def issue_tokens(user: User) -> dict[str, str]:
    claims = token_claims(user)
    return {
        "access_token": create_access_token(data=claims),
        "refresh_token": create_refresh_token(data=claims),
    }


# ============== Endpoints ==============


@router.post(
    "/login",
    response_model=LoginResponse,
    dependencies=[Depends(rate_limit(AUTH_LIMIT))],
)
async def login(
    login_data: LoginRequest,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> LoginResponse:
    """Login with email or mobile number and password."""
    user = await authenticate_user(
        db,
        login_data.password,
        email=login_data.email,
        mobile=login_data.mobile,
    )
    user = await check_can_login(db, user)

    response = LoginResponse(**issue_tokens(user), user=UserResponse.model_validate(user))
    await audit_service.record(
        db,
        user=user,
        action=AuditAction.LOGIN,
        entity_type=EntityType.USER,
        entity_id=user.id,
        description=f"{user.name} logged in",
        ip_address=client_ip(request),
    )
    return response


@router.post(
    "/login/form",
    response_model=Token,
    dependencies=[Depends(rate_limit(AUTH_LIMIT))],
)
async def login_form(
    form_data: Annotated[OAuth2PasswordRequestForm, Depends()],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Token:
    """Login with OAuth2 form (for Swagger UI). Username = email or mobile."""
    username = form_data.username.strip()
    if "@" in username:
        user = await authenticate_user(db, form_data.password, email=username.lower())
    else:
        user = await authenticate_user(db, form_data.password, mobile=username)
    user = await check_can_login(db, user)
    return Token(**issue_tokens(user))


@router.post("/refresh", response_model=Token)
async def refresh_tokens(
    refresh_data: RefreshRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Token:
    """Get new access and refresh tokens using a valid refresh token."""
    payload = decode_access_token(refresh_data.refresh_token)

    if payload is None or payload.get("type") != "refresh" or payload.get("sub") is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid refresh token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        user_id = UUID(payload["sub"])
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid refresh token",
        )

    user = await user_service.get_user_by_id(db, user_id)
    if user is None or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found or inactive",
        )

    return Token(**issue_tokens(user))


@router.get("/me", response_model=UserResponse)
async def get_me(current_user: CurrentUser) -> UserResponse:
    """Get the current user's profile."""
    return UserResponse.model_validate(current_user)


@router.post("/change-password", status_code=status.HTTP_204_NO_CONTENT)
async def change_password(
    password_data: ChangePasswordRequest,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: CurrentUser,
) -> None:
    """Change the current user's password."""
    changed = await user_service.change_password(
        db,
        current_user,
        password_data.current_password,
        password_data.new_password,
    )
    if not changed:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Current password is incorrect",
        )

    await audit_service.record(
        db,
        user=current_user,
        action=AuditAction.PASSWORD_CHANGED,
        entity_type=EntityType.USER,
        entity_id=current_user.id,
        description="Password changed",
        ip_address=client_ip(request),
    )
