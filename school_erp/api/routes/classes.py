"""Class, section and subject routes."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from school_erp.core.database import get_db
from school_erp.core.deps import SchoolUser, client_ip, enforce_school_isolation, require_roles
from school_erp.core.gating import ActiveSession, check_maintenance_mode, require_active_subscription
from school_erp.core.permissions import Role
from school_erp.models.academic import SchoolClass
from school_erp.models.audit import AuditAction, EntityType
from school_erp.models.user import User
from school_erp.schemas.academic import (
    SchoolClassCreate,
    SchoolClassResponse,
    SchoolClassUpdate,
    SectionCreate,
    SectionResponse,
    SubjectCreate,
    SubjectResponse,
)
from school_erp.services import academic as academic_service
from school_erp.services import audit as audit_service

router = APIRouter(
    prefix="/classes",
    tags=["Classes"],
    dependencies=[
        Depends(enforce_school_isolation),
        Depends(check_maintenance_mode),
        Depends(require_active_subscription(allow_read_only=True)),
    ],
)

ClassManager = Annotated[User, Depends(require_roles(Role.PRINCIPAL, Role.OPERATOR))]


# ============== Helper Functions ==============


async def get_class_or_404(db: AsyncSession, class_id: UUID, user: User) -> SchoolClass:
    school_class = await academic_service.get_class_by_id(db, class_id, user.school_id)
    if not school_class:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Class not found",
        )
    return school_class


# ============== Classes ==============


@router.get("", response_model=list[SchoolClassResponse])
async def list_classes(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: SchoolUser,
    session: ActiveSession,
) -> list[SchoolClassResponse]:
    """List classes of the active session in promotion order."""
    classes = await academic_service.get_classes(db, current_user.school_id, session.id)
    return [SchoolClassResponse.model_validate(c) for c in classes]


@router.post("", response_model=SchoolClassResponse, status_code=status.HTTP_201_CREATED)
async def create_class(
    class_data: SchoolClassCreate,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: ClassManager,
    session: ActiveSession,
) -> SchoolClassResponse:
    """Create a class in the active session."""
    school_class = await academic_service.create_class(db, current_user.school_id, session.id, class_data)
    await audit_service.record(
        db,
        user=current_user,
        action=AuditAction.CLASS_CREATED,
        entity_type=EntityType.CLASS,
        entity_id=school_class.id,
        session_id=session.id,
        description=f"Created class {school_class.name}",
        ip_address=client_ip(request),
    )
    return SchoolClassResponse.model_validate(school_class)


@router.get("/{class_id}", response_model=SchoolClassResponse)
async def get_class(
    class_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: SchoolUser,
) -> SchoolClassResponse:
    school_class = await get_class_or_404(db, class_id, current_user)
    return SchoolClassResponse.model_validate(school_class)


@router.patch("/{class_id}", response_model=SchoolClassResponse)
async def update_class(
    class_id: UUID,
    class_data: SchoolClassUpdate,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: ClassManager,
) -> SchoolClassResponse:
    school_class = await get_class_or_404(db, class_id, current_user)
    school_class = await academic_service.update_class(db, school_class, class_data)
    return SchoolClassResponse.model_validate(school_class)


# ============== Sections ==============


@router.get("/{class_id}/sections", response_model=list[SectionResponse])
async def list_sections(
    class_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: SchoolUser,
) -> list[SectionResponse]:
    school_class = await get_class_or_404(db, class_id, current_user)
    sections = await academic_service.get_sections(db, school_class)
    return [SectionResponse.model_validate(s) for s in sections]


@router.post(
    "/{class_id}/sections",
    response_model=SectionResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_section(
    class_id: UUID,
    section_data: SectionCreate,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: ClassManager,
) -> SectionResponse:
    school_class = await get_class_or_404(db, class_id, current_user)
    section = await academic_service.create_section(db, school_class, section_data)
    await audit_service.record(
        db,
        user=current_user,
        action=AuditAction.SECTION_CREATED,
        entity_type=EntityType.SECTION,
        entity_id=section.id,
        session_id=section.session_id,
        description=f"Created section {section.name} in {school_class.name}",
        ip_address=client_ip(request),
    )
    return SectionResponse.model_validate(section)


# ============== Subjects ==============


@router.get("/{class_id}/subjects", response_model=list[SubjectResponse])
async def list_subjects(
    class_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: SchoolUser,
) -> list[SubjectResponse]:
    school_class = await get_class_or_404(db, class_id, current_user)
    subjects = await academic_service.get_subjects(db, school_class)
    return [SubjectResponse.model_validate(s) for s in subjects]


@router.post(
    "/{class_id}/subjects",
    response_model=SubjectResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_subject(
    class_id: UUID,
    subject_data: SubjectCreate,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: ClassManager,
) -> SubjectResponse:
    school_class = await get_class_or_404(db, class_id, current_user)
    subject = await academic_service.create_subject(db, school_class, subject_data)
    await audit_service.record(
        db,
        user=current_user,
        action=AuditAction.SUBJECT_CREATED,
        entity_type=EntityType.SUBJECT,
        entity_id=subject.id,
        session_id=subject.session_id,
        description=f"Created subject {subject.name} in {school_class.name}",
        ip_address=client_ip(request),
    )
    return SubjectResponse.model_validate(subject)
