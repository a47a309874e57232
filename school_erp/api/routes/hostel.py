"""Hostel routes."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from school_erp.core.database import get_db
from school_erp.core.deps import SchoolUser, enforce_school_isolation, require_roles
from school_erp.core.gating import check_maintenance_mode, require_active_subscription, require_module
from school_erp.core.permissions import OFFICE_ROLES, Role
from school_erp.core.plans import SchoolModule
from school_erp.models.hostel import Hostel, LeaveStatus
from school_erp.models.user import User
from school_erp.schemas.hostel import (
    AllocationCreate,
    AllocationResponse,
    HostelCreate,
    HostelResponse,
    LeaveCreate,
    LeaveDecision,
    LeaveResponse,
    RoomCreate,
    RoomResponse,
)
from school_erp.services import hostel as hostel_service
from school_erp.services import student as student_service

router = APIRouter(
    prefix="/hostels",
    tags=["Hostel"],
    dependencies=[
        Depends(enforce_school_isolation),
        Depends(check_maintenance_mode),
        Depends(require_active_subscription(allow_read_only=True)),
        Depends(require_module(SchoolModule.HOSTEL)),
    ],
)

OfficeUser = Annotated[User, Depends(require_roles(Role.PRINCIPAL, Role.OPERATOR))]


# ============== Helper Functions ==============


async def get_hostel_or_404(db: AsyncSession, hostel_id: UUID, school_id: UUID) -> Hostel:
    hostel = await hostel_service.get_hostel_by_id(db, hostel_id, school_id)
    if not hostel:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Hostel not found",
        )
    return hostel


# ============== Allocations & Leaves ==============


@router.get("/allocations", response_model=list[AllocationResponse])
async def list_allocations(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: OfficeUser,
    hostel_id: UUID | None = None,
    active_only: bool = True,
) -> list[AllocationResponse]:
    allocations = await hostel_service.get_allocations(db, current_user.school_id, hostel_id, active_only)
    return [AllocationResponse.model_validate(a) for a in allocations]


@router.post("/allocations", response_model=AllocationResponse, status_code=status.HTTP_201_CREATED)
async def allocate_bed(
    allocation_data: AllocationCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: OfficeUser,
) -> AllocationResponse:
    """Allocate a bed. Fails with 400 when the room is full."""
    allocation = await hostel_service.allocate_bed(db, current_user.school_id, allocation_data)
    return AllocationResponse.model_validate(allocation)


@router.post("/allocations/{allocation_id}/release", response_model=AllocationResponse)
async def release_bed(
    allocation_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: OfficeUser,
) -> AllocationResponse:
    allocation = await hostel_service.release_bed(db, current_user.school_id, allocation_id)
    return AllocationResponse.model_validate(allocation)


@router.get("/leaves", response_model=list[LeaveResponse])
async def list_leaves(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: SchoolUser,
    leave_status: LeaveStatus | None = None,
) -> list[LeaveResponse]:
    """Office staff see every leave; parents and students their own."""
    student_ids = None
    if current_user.role not in OFFICE_ROLES:
        student_ids = await student_service.own_student_ids(db, current_user)
    leaves = await hostel_service.get_leaves(db, current_user.school_id, student_ids, leave_status)
    return [LeaveResponse.model_validate(leave) for leave in leaves]


@router.post("/leaves", response_model=LeaveResponse, status_code=status.HTTP_201_CREATED)
async def apply_leave(
    leave_data: LeaveCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: SchoolUser,
) -> LeaveResponse:
    if current_user.role not in OFFICE_ROLES:
        if leave_data.student_id not in await student_service.own_student_ids(db, current_user):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Access denied",
            )
    leave = await hostel_service.apply_leave(db, current_user.school_id, current_user, leave_data)
    return LeaveResponse.model_validate(leave)


@router.patch("/leaves/{leave_id}", response_model=LeaveResponse)
async def decide_leave(
    leave_id: UUID,
    decision: LeaveDecision,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: OfficeUser,
) -> LeaveResponse:
    leave = await hostel_service.decide_leave(db, current_user.school_id, leave_id, decision.status, current_user)
    return LeaveResponse.model_validate(leave)


# ============== Hostels & Rooms ==============


@router.get("", response_model=list[HostelResponse])
async def list_hostels(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: SchoolUser,
) -> list[HostelResponse]:
    hostels = await hostel_service.get_hostels(db, current_user.school_id)
    return [HostelResponse.model_validate(h) for h in hostels]


@router.post("", response_model=HostelResponse, status_code=status.HTTP_201_CREATED)
async def create_hostel(
    hostel_data: HostelCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: OfficeUser,
) -> HostelResponse:
    hostel = await hostel_service.create_hostel(db, current_user.school_id, current_user, hostel_data)
    return HostelResponse.model_validate(hostel)


@router.get("/{hostel_id}/rooms", response_model=list[RoomResponse])
async def list_rooms(
    hostel_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: SchoolUser,
) -> list[RoomResponse]:
    hostel = await get_hostel_or_404(db, hostel_id, current_user.school_id)
    rooms = await hostel_service.get_rooms(db, hostel)
    return [RoomResponse.model_validate(r) for r in rooms]


@router.post("/{hostel_id}/rooms", response_model=RoomResponse, status_code=status.HTTP_201_CREATED)
async def create_room(
    hostel_id: UUID,
    room_data: RoomCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: OfficeUser,
) -> RoomResponse:
    hostel = await get_hostel_or_404(db, hostel_id, current_user.school_id)
    room = await hostel_service.create_room(db, hostel, current_user, room_data)
    return RoomResponse.model_validate(room)
