"""Fee routes: structures, assignment, payments and receipts."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession

from school_erp.core.database import get_db
from school_erp.core.deps import SchoolUser, client_ip, enforce_school_isolation, require_roles
from school_erp.core.gating import (
    ActiveSession,
    check_maintenance_mode,
    require_active_subscription,
    require_module,
    require_online_payments,
)
from school_erp.core.permissions import OFFICE_ROLES, Role
from school_erp.core.plans import SchoolModule
from school_erp.core.rate_limit import PAYMENT_LIMIT, rate_limit
from school_erp.models.audit import AuditAction, EntityType
from school_erp.models.fee import FeeStructure, PaymentMode
from school_erp.models.school import School
from school_erp.models.student import Student
from school_erp.models.user import User
from school_erp.schemas.fee import (
    FeeAssign,
    FeeAssignResult,
    FeePaymentCreate,
    FeePaymentListResponse,
    FeePaymentResponse,
    FeePaymentResult,
    FeeStructureCreate,
    FeeStructureResponse,
    FeeStructureUpdate,
    OnlinePaymentInitiate,
    OnlinePaymentResponse,
    OnlinePaymentVerify,
    StudentFeeResponse,
)
from school_erp.services import audit as audit_service
from school_erp.services import fee as fee_service
from school_erp.services import pdf as pdf_service
from school_erp.services import student as student_service

router = APIRouter(
    prefix="/fees",
    tags=["Fees"],
    dependencies=[
        Depends(enforce_school_isolation),
        Depends(check_maintenance_mode),
        Depends(require_active_subscription(allow_read_only=True)),
        Depends(require_module(SchoolModule.FEES)),
    ],
)

OfficeUser = Annotated[User, Depends(require_roles(Role.PRINCIPAL, Role.OPERATOR))]
ParentUser = Annotated[User, Depends(require_roles(Role.PARENT))]


# ============== Helper Functions ==============


async def get_structure_or_404(db: AsyncSession, structure_id: UUID, user: User) -> FeeStructure:
    structure = await fee_service.get_fee_structure_by_id(db, structure_id, user.school_id)
    if not structure:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Fee structure not found",
        )
    return structure


async def ensure_can_view_student(db: AsyncSession, user: User, student_id: UUID) -> Student:
    """Office staff see every student; parents their children; students themselves."""
    student = await student_service.get_student_by_id(db, student_id, user.school_id)
    if not student:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Student not found",
        )
    if user.role in OFFICE_ROLES:
        return student
    if user.role == Role.PARENT:
        parent = await student_service.get_parent_by_user(db, user.id)
        if parent is not None and parent.id == student.parent_id:
            return student
    if user.role == Role.STUDENT and student.user_id == user.id:
        return student
    raise HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail="Not enough permissions",
    )


# ============== Structures ==============


@router.get("/structures", response_model=list[FeeStructureResponse])
async def list_fee_structures(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: OfficeUser,
    session_id: UUID | None = Query(None),
    class_id: UUID | None = Query(None),
    is_active: bool | None = Query(None),
) -> list[FeeStructureResponse]:
    structures = await fee_service.get_fee_structures(
        db,
        school_id=current_user.school_id,
        session_id=session_id,
        class_id=class_id,
        is_active=is_active,
    )
    return [FeeStructureResponse.model_validate(s) for s in structures]


@router.post("/structures", response_model=FeeStructureResponse, status_code=status.HTTP_201_CREATED)
async def create_fee_structure(
    structure_data: FeeStructureCreate,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: OfficeUser,
    session: ActiveSession,
) -> FeeStructureResponse:
    """Create a fee structure for a class in the active session."""
    structure = await fee_service.create_fee_structure(
        db,
        school_id=current_user.school_id,
        session_id=session.id,
        created_by=current_user,
        structure_data=structure_data,
    )
    await audit_service.record(
        db,
        user=current_user,
        action=AuditAction.FEE_STRUCTURE_CREATED,
        entity_type=EntityType.FEE_STRUCTURE,
        entity_id=structure.id,
        session_id=session.id,
        description=f"Created fee structure {structure.name} ({structure.amount})",
        ip_address=client_ip(request),
    )
    return FeeStructureResponse.model_validate(structure)


@router.get("/structures/{structure_id}", response_model=FeeStructureResponse)
async def get_fee_structure(
    structure_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: OfficeUser,
) -> FeeStructureResponse:
    structure = await get_structure_or_404(db, structure_id, current_user)
    return FeeStructureResponse.model_validate(structure)


@router.patch("/structures/{structure_id}", response_model=FeeStructureResponse)
async def update_fee_structure(
    structure_id: UUID,
    structure_data: FeeStructureUpdate,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: OfficeUser,
) -> FeeStructureResponse:
    structure = await get_structure_or_404(db, structure_id, current_user)
    structure = await fee_service.update_fee_structure(db, structure, structure_data)
    await audit_service.record(
        db,
        user=current_user,
        action=AuditAction.FEE_STRUCTURE_UPDATED,
        entity_type=EntityType.FEE_STRUCTURE,
        entity_id=structure.id,
        session_id=structure.session_id,
        description=f"Updated fee structure {structure.name}",
        ip_address=client_ip(request),
    )
    return FeeStructureResponse.model_validate(structure)


# ============== Student fees ==============


@router.post("/assign", response_model=FeeAssignResult)
async def assign_fee(
    assign_data: FeeAssign,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: OfficeUser,
) -> FeeAssignResult:
    """Assign a structure to its class, or to selected students. Existing assignments are skipped."""
    structure = await get_structure_or_404(db, assign_data.fee_structure_id, current_user)
    created, skipped = await fee_service.assign_fee(db, structure, assign_data.student_ids)
    return FeeAssignResult(
        assigned=len(created),
        skipped=skipped,
        items=[StudentFeeResponse.model_validate(f) for f in created],
    )


@router.get("/students/{student_id}", response_model=list[StudentFeeResponse])
async def get_student_fees(
    student_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: SchoolUser,
) -> list[StudentFeeResponse]:
    student = await ensure_can_view_student(db, current_user, student_id)
    fees = await fee_service.get_student_fees(db, current_user.school_id, student.id)
    return [StudentFeeResponse.model_validate(f) for f in fees]


# ============== Payments ==============


@router.post(
    "/pay/manual",
    response_model=FeePaymentResult,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(rate_limit(PAYMENT_LIMIT))],
)
async def pay_manual(
    payment_data: FeePaymentCreate,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: OfficeUser,
) -> FeePaymentResult:
    """
    Record a cash or bank payment.

    The amount must be positive and no more than the fee's due amount.
    """
    if payment_data.payment_mode == PaymentMode.ONLINE:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Online payments must go through the payment gateway",
        )
    payment, student_fee = await fee_service.pay_manual(
        db,
        school_id=current_user.school_id,
        student_fee_id=payment_data.student_fee_id,
        amount=payment_data.amount,
        payment_mode=payment_data.payment_mode,
        collected_by=current_user,
        remarks=payment_data.remarks,
    )
    await audit_service.record(
        db,
        user=current_user,
        action=AuditAction.FEE_PAYMENT_PROCESSED,
        entity_type=EntityType.FEE_PAYMENT,
        entity_id=payment.id,
        session_id=payment.session_id,
        description=f"Collected {payment.amount} ({payment.payment_mode}) receipt {payment.receipt_number}",
        ip_address=client_ip(request),
    )
    return FeePaymentResult(
        payment=FeePaymentResponse.model_validate(payment),
        student_fee=StudentFeeResponse.model_validate(student_fee),
    )


@router.post(
    "/pay/online/init",
    response_model=OnlinePaymentResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_online_payments), Depends(rate_limit(PAYMENT_LIMIT))],
)
async def initiate_online_payment(
    payment_data: OnlinePaymentInitiate,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: ParentUser,
) -> OnlinePaymentResponse:
    """Start a gateway payment for one of the caller's children."""
    online_payment = await fee_service.initiate_online_payment(db, current_user, payment_data)
    return OnlinePaymentResponse.model_validate(online_payment)


@router.post(
    "/pay/online/verify",
    response_model=OnlinePaymentResponse,
    dependencies=[Depends(require_online_payments), Depends(rate_limit(PAYMENT_LIMIT))],
)
async def verify_online_payment(
    verify_data: OnlinePaymentVerify,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: OfficeUser,
) -> OnlinePaymentResponse:
    """Record the gateway outcome. A successful payment is applied to the fee."""
    online_payment, _ = await fee_service.verify_online_payment(
        db,
        school_id=current_user.school_id,
        verified_by=current_user,
        verify_data=verify_data,
    )
    await audit_service.record(
        db,
        user=current_user,
        action=AuditAction.ONLINE_PAYMENT_VERIFIED,
        entity_type=EntityType.FEE_PAYMENT,
        entity_id=online_payment.fee_payment_id,
        description=f"Online payment {online_payment.gateway_reference} marked {online_payment.status}",
        ip_address=client_ip(request),
    )
    return OnlinePaymentResponse.model_validate(online_payment)


@router.get("/payments/me", response_model=FeePaymentListResponse)
async def get_my_payments(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_roles(Role.PARENT, Role.STUDENT))],
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=100),
) -> FeePaymentListResponse:
    """Payments for the caller's children, or the calling student's own."""
    student_ids = await student_service.own_student_ids(db, current_user)

    payments, total = await fee_service.get_payments(
        db,
        school_id=current_user.school_id,
        student_ids=student_ids,
        skip=skip,
        limit=limit,
    )
    return FeePaymentListResponse(
        items=[FeePaymentResponse.model_validate(p) for p in payments],
        total=total,
        skip=skip,
        limit=limit,
    )


@router.get("/payments/student/{student_id}", response_model=FeePaymentListResponse)
async def get_student_payments(
    student_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: SchoolUser,
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=100),
) -> FeePaymentListResponse:
    student = await ensure_can_view_student(db, current_user, student_id)
    payments, total = await fee_service.get_payments(
        db,
        school_id=current_user.school_id,
        student_id=student.id,
        skip=skip,
        limit=limit,
    )
    return FeePaymentListResponse(
        items=[FeePaymentResponse.model_validate(p) for p in payments],
        total=total,
        skip=skip,
        limit=limit,
    )


@router.get("/receipt/{receipt_number}")
async def download_receipt(
    receipt_number: str,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: SchoolUser,
) -> StreamingResponse:
    """Download a fee receipt as PDF."""
    payment = await fee_service.get_payment_by_receipt(db, receipt_number, current_user.school_id)
    if not payment:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Receipt not found",
        )
    student = await ensure_can_view_student(db, current_user, payment.student_id)

    student_fee = await fee_service.get_student_fee_by_id(db, payment.student_fee_id, current_user.school_id)
    structure = await db.get(FeeStructure, student_fee.fee_structure_id)
    school = await db.get(School, current_user.school_id)

    buffer = pdf_service.fee_receipt_pdf(school, student, structure, payment, student_fee)
    return StreamingResponse(
        buffer,
        media_type=pdf_service.PDF_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="receipt_{receipt_number}.pdf"'},
    )
