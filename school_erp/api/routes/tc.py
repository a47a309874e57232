"""Transfer certificate routes."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession

from school_erp.core.database import get_db
from school_erp.core.deps import SchoolUser, client_ip, enforce_school_isolation, require_roles
from school_erp.core.gating import check_maintenance_mode, require_active_subscription, require_module
from school_erp.core.permissions import OFFICE_ROLES, Role
from school_erp.core.plans import SchoolModule
from school_erp.models.academic import SchoolClass
from school_erp.models.audit import AuditAction, EntityType
from school_erp.models.record import TransferCertificate
from school_erp.models.school import School
from school_erp.models.user import User
from school_erp.schemas.record import TCCreate, TCResponse
from school_erp.services import audit as audit_service
from school_erp.services import pdf as pdf_service
from school_erp.services import record as record_service
from school_erp.services import student as student_service

router = APIRouter(
    prefix="/tc",
    tags=["Transfer Certificates"],
    dependencies=[
        Depends(enforce_school_isolation),
        Depends(check_maintenance_mode),
        Depends(require_active_subscription(allow_read_only=True)),
        Depends(require_module(SchoolModule.TC)),
    ],
)

OfficeUser = Annotated[User, Depends(require_roles(Role.PRINCIPAL, Role.OPERATOR))]


# ============== Helper Functions ==============


async def get_tc_or_404(db: AsyncSession, student_id: UUID, user: User) -> TransferCertificate:
    if user.role not in OFFICE_ROLES:
        if student_id not in await student_service.own_student_ids(db, user):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Access denied",
            )
    certificate = await record_service.get_tc_for_student(db, user.school_id, student_id)
    if not certificate:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="TC not found",
        )
    return certificate


# ============== Endpoints ==============


@router.post("", response_model=TCResponse, status_code=status.HTTP_201_CREATED)
async def issue_tc(
    tc_data: TCCreate,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: OfficeUser,
) -> TCResponse:
    """
    Issue a transfer certificate.

    Only ACTIVE students qualify. The student is marked LEFT.
    """
    school = await db.get(School, current_user.school_id)
    certificate = await record_service.issue_tc(db, school, current_user, tc_data)
    await audit_service.record(
        db,
        user=current_user,
        action=AuditAction.TC_ISSUED,
        entity_type=EntityType.TC,
        entity_id=certificate.id,
        session_id=certificate.session_id,
        description=f"Issued {certificate.tc_number} to student {certificate.student_id}",
        ip_address=client_ip(request),
    )
    return TCResponse.model_validate(certificate)


@router.get("", response_model=list[TCResponse])
async def list_tcs(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: OfficeUser,
) -> list[TCResponse]:
    certificates = await record_service.get_tcs(db, current_user.school_id)
    return [TCResponse.model_validate(c) for c in certificates]


@router.get("/students/{student_id}", response_model=TCResponse)
async def get_student_tc(
    student_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: SchoolUser,
) -> TCResponse:
    certificate = await get_tc_or_404(db, student_id, current_user)
    return TCResponse.model_validate(certificate)


@router.get("/students/{student_id}/pdf")
async def download_tc(
    student_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: SchoolUser,
) -> StreamingResponse:
    certificate = await get_tc_or_404(db, student_id, current_user)
    student = await student_service.get_student_by_id(db, student_id, current_user.school_id)
    school = await db.get(School, current_user.school_id)
    last_class = await db.get(SchoolClass, certificate.last_class_id)

    buffer = pdf_service.transfer_certificate_pdf(school, student, certificate, last_class.name)
    return StreamingResponse(
        buffer,
        media_type=pdf_service.PDF_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{certificate.tc_number}.pdf"'},
    )
