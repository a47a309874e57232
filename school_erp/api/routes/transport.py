"""Transport routes."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from school_erp.core.database import get_db
from school_erp.core.deps import SchoolUser, enforce_school_isolation, require_roles
from school_erp.core.gating import check_maintenance_mode, require_active_subscription, require_module
from school_erp.core.permissions import OFFICE_ROLES, Role
from school_erp.core.plans import SchoolModule
from school_erp.models.user import User
from school_erp.schemas.transport import (
    RouteCreate,
    RouteResponse,
    StudentTransportCreate,
    StudentTransportResponse,
    VehicleCreate,
    VehicleResponse,
    VehicleUpdate,
)
from school_erp.services import student as student_service
from school_erp.services import transport as transport_service

router = APIRouter(
    prefix="/transport",
    tags=["Transport"],
    dependencies=[
        Depends(enforce_school_isolation),
        Depends(check_maintenance_mode),
        Depends(require_active_subscription(allow_read_only=True)),
        Depends(require_module(SchoolModule.TRANSPORT)),
    ],
)

OfficeUser = Annotated[User, Depends(require_roles(Role.PRINCIPAL, Role.OPERATOR))]


# ============== Vehicles ==============


@router.get("/vehicles", response_model=list[VehicleResponse])
async def list_vehicles(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: OfficeUser,
) -> list[VehicleResponse]:
    vehicles = await transport_service.get_vehicles(db, current_user.school_id)
    return [VehicleResponse.model_validate(v) for v in vehicles]


@router.post("/vehicles", response_model=VehicleResponse, status_code=status.HTTP_201_CREATED)
async def create_vehicle(
    vehicle_data: VehicleCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: OfficeUser,
) -> VehicleResponse:
    vehicle = await transport_service.create_vehicle(db, current_user.school_id, current_user, vehicle_data)
    return VehicleResponse.model_validate(vehicle)


@router.patch("/vehicles/{vehicle_id}", response_model=VehicleResponse)
async def update_vehicle(
    vehicle_id: UUID,
    vehicle_data: VehicleUpdate,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: OfficeUser,
) -> VehicleResponse:
    vehicle = await transport_service.get_vehicle_by_id(db, vehicle_id, current_user.school_id)
    if not vehicle:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Vehicle not found",
        )
    vehicle = await transport_service.update_vehicle(db, vehicle, vehicle_data)
    return VehicleResponse.model_validate(vehicle)


# ============== Routes ==============


@router.get("/routes", response_model=list[RouteResponse])
async def list_routes(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: SchoolUser,
) -> list[RouteResponse]:
    routes = await transport_service.get_routes(db, current_user.school_id)
    return [RouteResponse.model_validate(r) for r in routes]


@router.post("/routes", response_model=RouteResponse, status_code=status.HTTP_201_CREATED)
async def create_route(
    route_data: RouteCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: OfficeUser,
) -> RouteResponse:
    route = await transport_service.create_route(db, current_user.school_id, current_user, route_data)
    return RouteResponse.model_validate(route)


# ============== Student Assignments ==============


@router.get("/students", response_model=list[StudentTransportResponse])
async def list_assignments(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: SchoolUser,
    route_id: UUID | None = None,
) -> list[StudentTransportResponse]:
    """Office staff see all assignments; parents and students their own."""
    student_ids = None
    if current_user.role not in OFFICE_ROLES:
        student_ids = await student_service.own_student_ids(db, current_user)
    assignments = await transport_service.get_assignments(db, current_user.school_id, route_id, student_ids)
    return [StudentTransportResponse.model_validate(a) for a in assignments]


@router.post("/students", response_model=StudentTransportResponse, status_code=status.HTTP_201_CREATED)
async def assign_student(
    assignment_data: StudentTransportCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: OfficeUser,
) -> StudentTransportResponse:
    assignment = await transport_service.assign_student(db, current_user.school_id, assignment_data)
    return StudentTransportResponse.model_validate(assignment)


@router.delete("/students/{assignment_id}", response_model=StudentTransportResponse)
async def end_assignment(
    assignment_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: OfficeUser,
) -> StudentTransportResponse:
    assignment = await transport_service.end_assignment(db, current_user.school_id, assignment_id)
    return StudentTransportResponse.model_validate(assignment)
