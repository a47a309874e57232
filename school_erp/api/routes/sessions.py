"""Academic session routes."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from school_erp.core.database import get_db
from school_erp.core.deps import SchoolUser, client_ip, enforce_school_isolation, require_roles, resolve_school_id
from school_erp.core.gating import ActiveSession, check_maintenance_mode, require_active_subscription
from school_erp.core.permissions import Role
from school_erp.models.academic import AcademicSession
from school_erp.models.audit import AuditAction, EntityType
from school_erp.models.user import User
from school_erp.schemas.academic import (
    AcademicSessionCreate,
    AcademicSessionResponse,
    AcademicSessionUpdate,
)
from school_erp.services import academic as academic_service
from school_erp.services import audit as audit_service

router = APIRouter(
    prefix="/sessions",
    tags=["Academic Sessions"],
    dependencies=[
        Depends(enforce_school_isolation),
        Depends(check_maintenance_mode),
        Depends(require_active_subscription(allow_read_only=True)),
    ],
)

SessionManager = Annotated[User, Depends(require_roles(Role.SUPER_ADMIN, Role.PRINCIPAL))]


# ============== Helper Functions ==============


async def get_session_or_404(db: AsyncSession, session_id: UUID, user: User) -> AcademicSession:
    session = await db.get(AcademicSession, session_id)
    if session is None or (not user.is_super_admin and session.school_id != user.school_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Academic session not found",
        )
    return session


# ============== Endpoints ==============


@router.get("", response_model=list[AcademicSessionResponse])
async def list_sessions(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: SchoolUser,
    school_id: UUID | None = Query(None, description="School ID (super admin)"),
) -> list[AcademicSessionResponse]:
    """List a school's sessions, newest first."""
    school_id = resolve_school_id(current_user, school_id)
    sessions = await academic_service.get_sessions(db, school_id)
    return [AcademicSessionResponse.model_validate(s) for s in sessions]


@router.get("/active", response_model=AcademicSessionResponse)
async def get_current_session(session: ActiveSession) -> AcademicSessionResponse:
    return AcademicSessionResponse.model_validate(session)


@router.post("", response_model=AcademicSessionResponse, status_code=status.HTTP_201_CREATED)
async def create_session(
    session_data: AcademicSessionCreate,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: SessionManager,
) -> AcademicSessionResponse:
    """
    Create an academic session.

    Creating it with is_active=true deactivates every other session of the school.
    """
    school_id = resolve_school_id(current_user, session_data.school_id)
    session = await academic_service.create_session(db, school_id, session_data)
    await audit_service.record(
        db,
        user=current_user,
        action=AuditAction.SESSION_CREATED,
        entity_type=EntityType.SESSION,
        entity_id=session.id,
        school_id=school_id,
        session_id=session.id,
        description=f"Created session {session.name}",
        ip_address=client_ip(request),
    )
    return AcademicSessionResponse.model_validate(session)


@router.post("/{session_id}/activate", response_model=AcademicSessionResponse)
async def activate_session(
    session_id: UUID,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: SessionManager,
) -> AcademicSessionResponse:
    """Make this the school's only active session."""
    session = await get_session_or_404(db, session_id, current_user)
    session = await academic_service.activate_session(db, session)
    await audit_service.record(
        db,
        user=current_user,
        action=AuditAction.SESSION_ACTIVATED,
        entity_type=EntityType.SESSION,
        entity_id=session.id,
        school_id=session.school_id,
        session_id=session.id,
        description=f"Activated session {session.name}",
        ip_address=client_ip(request),
    )
    return AcademicSessionResponse.model_validate(session)


@router.patch("/{session_id}", response_model=AcademicSessionResponse)
async def update_session(
    session_id: UUID,
    session_data: AcademicSessionUpdate,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: SessionManager,
) -> AcademicSessionResponse:
    session = await get_session_or_404(db, session_id, current_user)
    session = await academic_service.update_session(db, session, session_data)
    await audit_service.record(
        db,
        user=current_user,
        action=AuditAction.SESSION_UPDATED,
        entity_type=EntityType.SESSION,
        entity_id=session.id,
        school_id=session.school_id,
        session_id=session.id,
        description=f"Updated session {session.name}",
        ip_address=client_ip(request),
    )
    return AcademicSessionResponse.model_validate(session)
