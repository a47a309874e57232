"""Exam routes: exams, papers, forms, exam fees, results and admit cards."""

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
from school_erp.models.academic import SchoolClass
from school_erp.models.audit import AuditAction, EntityType
from school_erp.models.exam import Exam, ExamPaymentMode, ExamStatus
from school_erp.models.school import School
from school_erp.models.user import User
from school_erp.schemas.exam import (
    AdmitCardCreate,
    AdmitCardResponse,
    ExamCreate,
    ExamFormCreate,
    ExamFormResponse,
    ExamPaymentCreate,
    ExamPaymentResponse,
    ExamResponse,
    ExamStatusUpdate,
    ExamSubjectCreate,
    ExamSubjectResponse,
    ExamUpdate,
    PublishSummary,
    ResultEntry,
    ResultResponse,
)
from school_erp.services import academic as academic_service
from school_erp.services import audit as audit_service
from school_erp.services import exam as exam_service
from school_erp.services import pdf as pdf_service
from school_erp.services import student as student_service

router = APIRouter(
    prefix="/exams",
    tags=["Exams"],
    dependencies=[
        Depends(enforce_school_isolation),
        Depends(check_maintenance_mode),
        Depends(require_active_subscription(allow_read_only=True)),
        Depends(require_module(SchoolModule.EXAM)),
    ],
)

OfficeUser = Annotated[User, Depends(require_roles(Role.PRINCIPAL, Role.OPERATOR))]
Marker = Annotated[User, Depends(require_roles(Role.PRINCIPAL, Role.OPERATOR, Role.TEACHER))]
FamilyUser = Annotated[User, Depends(require_roles(Role.PARENT, Role.STUDENT))]


# ============== Helper Functions ==============


async def get_exam_or_404(db: AsyncSession, exam_id: UUID, user: User) -> Exam:
    exam = await exam_service.get_exam_by_id(db, exam_id, user.school_id)
    if not exam:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Exam not found",
        )
    return exam


async def get_student_or_404(db: AsyncSession, student_id: UUID, user: User):
    student = await student_service.get_student_by_id(db, student_id, user.school_id)
    if not student:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Student not found",
        )
    return student


async def audit_exam(db, request: Request, user: User, exam: Exam, action: AuditAction, entity_type: EntityType,
                     entity_id: UUID, description: str):
    await audit_service.record(
        db,
        user=user,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        session_id=exam.session_id,
        description=description,
        ip_address=client_ip(request),
    )


# ============== Forms and exam fees ==============


@router.post("/forms", response_model=ExamFormResponse, status_code=status.HTTP_201_CREATED)
async def create_exam_form(
    form_data: ExamFormCreate,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: OfficeUser,
) -> ExamFormResponse:
    """Open registration for an exam, optionally behind a fee."""
    exam = await get_exam_or_404(db, form_data.exam_id, current_user)
    form = await exam_service.create_exam_form(db, exam, current_user, form_data)
    await audit_exam(
        db, request, current_user, exam, AuditAction.EXAM_FORM_CREATED, EntityType.EXAM_FORM, form.id,
        f"Opened exam form for {exam.name} (fee {form.fee_amount})",
    )
    return ExamFormResponse.model_validate(form)


@router.get("/forms/active", response_model=list[ExamFormResponse])
async def list_active_forms(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: SchoolUser,
    session: ActiveSession,
    class_id: UUID | None = Query(None),
) -> list[ExamFormResponse]:
    forms = await exam_service.get_active_forms(db, current_user.school_id, session.id, class_id)
    return [ExamFormResponse.model_validate(f) for f in forms]


@router.post("/payments/manual", response_model=ExamPaymentResponse, status_code=status.HTTP_201_CREATED)
async def pay_exam_fee_manual(
    payment_data: ExamPaymentCreate,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: OfficeUser,
) -> ExamPaymentResponse:
    """Record an exam fee collected at the office."""
    form = await exam_service.get_exam_form_by_id(db, payment_data.exam_form_id, current_user.school_id)
    if not form:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Exam form not found",
        )
    student = await get_student_or_404(db, payment_data.student_id, current_user)
    payment = await exam_service.record_exam_payment(
        db, form, student, payment_mode=ExamPaymentMode.MANUAL, created_by=current_user
    )
    await audit_service.record(
        db,
        user=current_user,
        action=AuditAction.EXAM_PAYMENT_PROCESSED,
        entity_type=EntityType.EXAM_PAYMENT,
        entity_id=payment.id,
        session_id=payment.session_id,
        description=f"Collected exam fee {payment.amount} for {student.name}",
        ip_address=client_ip(request),
    )
    return ExamPaymentResponse.model_validate(payment)


@router.post(
    "/payments/online",
    response_model=ExamPaymentResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_online_payments)],
)
async def pay_exam_fee_online(
    payment_data: ExamPaymentCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(require_roles(Role.PARENT))],
) -> ExamPaymentResponse:
    """A parent pays a child's exam fee online."""
    if payment_data.student_id not in await student_service.own_student_ids(db, current_user):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You can only pay fees for your own children",
        )
    form = await exam_service.get_exam_form_by_id(db, payment_data.exam_form_id, current_user.school_id)
    if not form:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Exam form not found",
        )
    student = await get_student_or_404(db, payment_data.student_id, current_user)
    payment = await exam_service.record_exam_payment(
        db, form, student, payment_mode=ExamPaymentMode.ONLINE, created_by=current_user
    )
    return ExamPaymentResponse.model_validate(payment)


@router.get("/payments/me", response_model=list[ExamPaymentResponse])
async def get_my_exam_payments(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: FamilyUser,
) -> list[ExamPaymentResponse]:
    student_ids = await student_service.own_student_ids(db, current_user)
    payments = await exam_service.get_exam_payments(db, current_user.school_id, student_ids)
    return [ExamPaymentResponse.model_validate(p) for p in payments]


# ============== Own results and admit cards ==============


@router.get("/results/me", response_model=list[ResultResponse])
async def get_my_results(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: FamilyUser,
    exam_id: UUID | None = Query(None),
) -> list[ResultResponse]:
    """Published results for the caller's children, or the calling student."""
    student_ids = await student_service.own_student_ids(db, current_user)
    results = await exam_service.get_student_results(db, current_user.school_id, student_ids, exam_id)
    return [ResultResponse.model_validate(r) for r in results]


@router.get("/admit-cards/me", response_model=list[AdmitCardResponse])
async def get_my_admit_cards(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: FamilyUser,
    exam_id: UUID | None = Query(None),
) -> list[AdmitCardResponse]:
    student_ids = await student_service.own_student_ids(db, current_user)
    cards = await exam_service.get_admit_cards(db, current_user.school_id, student_ids, exam_id)
    return [AdmitCardResponse.model_validate(c) for c in cards]


@router.get("/admit-cards/{card_id}/pdf")
async def download_admit_card(
    card_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: SchoolUser,
) -> StreamingResponse:
    admit_card = await exam_service.get_admit_card_by_id(db, card_id, current_user.school_id)
    if not admit_card:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Admit card not found",
        )
    if current_user.role not in (*OFFICE_ROLES, Role.TEACHER):
        if admit_card.student_id not in await student_service.own_student_ids(db, current_user):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Not enough permissions",
            )

    exam = await get_exam_or_404(db, admit_card.exam_id, current_user)
    student = await get_student_or_404(db, admit_card.student_id, current_user)
    school = await db.get(School, current_user.school_id)
    school_class = await db.get(SchoolClass, exam.class_id)
    papers = await exam_service.get_exam_subjects(db, exam)
    subject_names = {s.id: s.name for s in await academic_service.get_subjects(db, school_class)}
    subjects = [(subject_names.get(p.subject_id, "-"), str(p.max_marks)) for p in papers]

    buffer = pdf_service.admit_card_pdf(school, student, exam, admit_card, school_class.name, subjects)
    return StreamingResponse(
        buffer,
        media_type=pdf_service.PDF_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="admit_card_{admit_card.roll_number}.pdf"'},
    )


# ============== Exams ==============


@router.get("", response_model=list[ExamResponse])
async def list_exams(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: SchoolUser,
    session_id: UUID | None = Query(None, description="Defaults to every session"),
    class_id: UUID | None = Query(None),
    exam_status: ExamStatus | None = Query(None, alias="status"),
) -> list[ExamResponse]:
    exams = await exam_service.get_exams(
        db,
        school_id=current_user.school_id,
        session_id=session_id,
        class_id=class_id,
        status=exam_status,
    )
    return [ExamResponse.model_validate(e) for e in exams]


@router.post("", response_model=ExamResponse, status_code=status.HTTP_201_CREATED)
async def create_exam(
    exam_data: ExamCreate,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: OfficeUser,
    session: ActiveSession,
) -> ExamResponse:
    """Create a draft exam for a class in the active session."""
    exam = await exam_service.create_exam(
        db,
        school_id=current_user.school_id,
        session_id=session.id,
        created_by=current_user,
        exam_data=exam_data,
    )
    await audit_exam(
        db, request, current_user, exam, AuditAction.EXAM_CREATED, EntityType.EXAM, exam.id,
        f"Created exam {exam.name}",
    )
    return ExamResponse.model_validate(exam)


@router.get("/{exam_id}", response_model=ExamResponse)
async def get_exam(
    exam_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: SchoolUser,
) -> ExamResponse:
    exam = await get_exam_or_404(db, exam_id, current_user)
    return ExamResponse.model_validate(exam)


@router.patch("/{exam_id}", response_model=ExamResponse)
async def update_exam(
    exam_id: UUID,
    exam_data: ExamUpdate,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: OfficeUser,
) -> ExamResponse:
    exam = await get_exam_or_404(db, exam_id, current_user)
    exam = await exam_service.update_exam(db, exam, exam_data)
    await audit_exam(
        db, request, current_user, exam, AuditAction.EXAM_UPDATED, EntityType.EXAM, exam.id,
        f"Updated exam {exam.name}",
    )
    return ExamResponse.model_validate(exam)


@router.patch("/{exam_id}/status", response_model=ExamResponse)
async def update_exam_status(
    exam_id: UUID,
    status_data: ExamStatusUpdate,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: OfficeUser,
) -> ExamResponse:
    """Move an exam Draft -> Published -> Closed."""
    exam = await get_exam_or_404(db, exam_id, current_user)
    exam = await exam_service.set_exam_status(db, exam, status_data.status)
    await audit_exam(
        db, request, current_user, exam, AuditAction.EXAM_UPDATED, EntityType.EXAM, exam.id,
        f"Exam {exam.name} is now {status_data.status.value}",
    )
    return ExamResponse.model_validate(exam)


@router.get("/{exam_id}/subjects", response_model=list[ExamSubjectResponse])
async def list_exam_subjects(
    exam_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: SchoolUser,
) -> list[ExamSubjectResponse]:
    exam = await get_exam_or_404(db, exam_id, current_user)
    papers = await exam_service.get_exam_subjects(db, exam)
    return [ExamSubjectResponse.model_validate(p) for p in papers]


@router.post("/{exam_id}/subjects", response_model=ExamSubjectResponse, status_code=status.HTTP_201_CREATED)
async def add_exam_subject(
    exam_id: UUID,
    subject_data: ExamSubjectCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: OfficeUser,
) -> ExamSubjectResponse:
    exam = await get_exam_or_404(db, exam_id, current_user)
    paper = await exam_service.add_exam_subject(db, exam, subject_data)
    return ExamSubjectResponse.model_validate(paper)


# ============== Results ==============


@router.post("/{exam_id}/results", response_model=ResultResponse)
async def enter_result(
    exam_id: UUID,
    entry: ResultEntry,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Marker,
) -> ResultResponse:
    """
    Enter marks for a student.

    Teachers may only mark the papers assigned to them. Published
    results cannot be changed.
    """
    exam = await get_exam_or_404(db, exam_id, current_user)
    result = await exam_service.enter_result(db, exam, current_user, entry)
    await audit_exam(
        db, request, current_user, exam, AuditAction.RESULT_ENTERED, EntityType.RESULT, result.id,
        f"Entered marks for student {entry.student_id} in {exam.name}",
    )
    return ResultResponse.model_validate(result)


@router.get("/{exam_id}/results", response_model=list[ResultResponse])
async def list_results(
    exam_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Marker,
) -> list[ResultResponse]:
    exam = await get_exam_or_404(db, exam_id, current_user)
    results = await exam_service.get_results(db, exam)
    return [ResultResponse.model_validate(r) for r in results]


@router.post("/{exam_id}/results/publish", response_model=PublishSummary)
async def publish_results(
    exam_id: UUID,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: OfficeUser,
) -> PublishSummary:
    """Publish every draft result of the exam and recompute ranks."""
    exam = await get_exam_or_404(db, exam_id, current_user)
    published = await exam_service.publish_exam_results(db, exam)
    await audit_exam(
        db, request, current_user, exam, AuditAction.RESULT_PUBLISHED, EntityType.EXAM, exam.id,
        f"Published {published} results for {exam.name}",
    )
    return PublishSummary(exam_id=exam.id, published=published)


@router.post("/{exam_id}/results/{student_id}/publish", response_model=ResultResponse)
async def publish_student_result(
    exam_id: UUID,
    student_id: UUID,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: OfficeUser,
) -> ResultResponse:
    exam = await get_exam_or_404(db, exam_id, current_user)
    result = await exam_service.get_result(db, exam.id, student_id)
    if not result:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Result not found",
        )
    result = await exam_service.publish_result(db, result, exam)
    await audit_exam(
        db, request, current_user, exam, AuditAction.RESULT_PUBLISHED, EntityType.RESULT, result.id,
        f"Published result of student {student_id} for {exam.name}",
    )
    return ResultResponse.model_validate(result)


# ============== Admit cards ==============


@router.post("/{exam_id}/admit-cards", response_model=AdmitCardResponse, status_code=status.HTTP_201_CREATED)
async def generate_admit_card(
    exam_id: UUID,
    card_data: AdmitCardCreate,
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: OfficeUser,
) -> AdmitCardResponse:
    """Issue an admit card. Requires a paid exam fee when the exam form asks for one."""
    exam = await get_exam_or_404(db, exam_id, current_user)
    admit_card = await exam_service.generate_admit_card(db, exam, current_user, card_data)
    await audit_exam(
        db, request, current_user, exam, AuditAction.ADMIT_CARD_GENERATED, EntityType.ADMIT_CARD, admit_card.id,
        f"Generated admit card {admit_card.roll_number} for {exam.name}",
    )
    return AdmitCardResponse.model_validate(admit_card)
