"""Transport service: vehicles, routes and student assignments."""

from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from school_erp.core.errors import ConflictError, NotFoundError, ValidationError
from school_erp.models.hostel import AllocationStatus
from school_erp.models.student import Student, StudentStatus
from school_erp.models.transport import StudentTransport, TransportRoute, Vehicle
from school_erp.models.user import User
from school_erp.schemas.transport import RouteCreate, StudentTransportCreate, VehicleCreate, VehicleUpdate


async def get_vehicle_by_id(db: AsyncSession, vehicle_id: UUID, school_id: UUID) -> Vehicle | None:
    result = await db.execute(select(Vehicle).where(Vehicle.id == vehicle_id, Vehicle.school_id == school_id))
    return result.scalar_one_or_none()


async def get_vehicles(db: AsyncSession, school_id: UUID) -> list[Vehicle]:
    result = await db.execute(
        select(Vehicle).where(Vehicle.school_id == school_id).order_by(Vehicle.vehicle_number)
    )
    return list(result.scalars().all())


async def create_vehicle(db: AsyncSession, school_id: UUID, created_by: User, vehicle_data: VehicleCreate) -> Vehicle:
    existing = await db.execute(
        select(Vehicle.id).where(
            Vehicle.school_id == school_id,
            Vehicle.vehicle_number == vehicle_data.vehicle_number,
        )
    )
    if existing.first() is not None:
        raise ConflictError("Vehicle with this number already exists")

    vehicle = Vehicle(school_id=school_id, created_by_id=created_by.id, **vehicle_data.model_dump())
    db.add(vehicle)
    await db.commit()
    await db.refresh(vehicle)
    return vehicle


async def update_vehicle(db: AsyncSession, vehicle: Vehicle, vehicle_data: VehicleUpdate) -> Vehicle:
    update_data = vehicle_data.model_dump(exclude_unset=True)
    for field, value in update_data.items():
        setattr(vehicle, field, value)

    await db.commit()
    await db.refresh(vehicle)
    return vehicle


async def get_route_by_id(db: AsyncSession, route_id: UUID, school_id: UUID) -> TransportRoute | None:
    result = await db.execute(
        select(TransportRoute).where(TransportRoute.id == route_id, TransportRoute.school_id == school_id)
    )
    return result.scalar_one_or_none()


async def get_routes(db: AsyncSession, school_id: UUID) -> list[TransportRoute]:
    result = await db.execute(
        select(TransportRoute).where(TransportRoute.school_id == school_id).order_by(TransportRoute.name)
    )
    return list(result.scalars().all())


async def create_route(db: AsyncSession, school_id: UUID, created_by: User, route_data: RouteCreate) -> TransportRoute:
    vehicle = await get_vehicle_by_id(db, route_data.vehicle_id, school_id)
    if vehicle is None:
        raise NotFoundError("Vehicle")

    route = TransportRoute(
        school_id=school_id,
        vehicle_id=vehicle.id,
        name=route_data.name,
        stops=[stop.model_dump() for stop in route_data.stops],
        created_by_id=created_by.id,
    )
    db.add(route)
    await db.commit()
    await db.refresh(route)
    return route


async def get_assignments(
    db: AsyncSession,
    school_id: UUID,
    route_id: UUID | None = None,
    student_ids: list[UUID] | None = None,
) -> list[StudentTransport]:
    query = select(StudentTransport).where(
        StudentTransport.school_id == school_id,
        StudentTransport.status == AllocationStatus.ACTIVE,
    )
    if route_id is not None:
        query = query.where(StudentTransport.route_id == route_id)
    if student_ids is not None:
        query = query.where(StudentTransport.student_id.in_(student_ids))
    result = await db.execute(query.order_by(StudentTransport.created_at))
    return list(result.scalars().all())


async def assign_student(
    db: AsyncSession,
    school_id: UUID,
    assignment_data: StudentTransportCreate,
) -> StudentTransport:
    """Put a student on a route. The route's vehicle must have a free seat."""
    student = await db.get(Student, assignment_data.student_id)
    if student is None or student.school_id != school_id:
        raise NotFoundError("Student")
    if student.status != StudentStatus.ACTIVE:
        raise ValidationError("Student is not active")

    route = await get_route_by_id(db, assignment_data.route_id, school_id)
    if route is None:
        raise NotFoundError("Route")

    current = await db.execute(
        select(StudentTransport.id).where(
            StudentTransport.student_id == student.id,
            StudentTransport.status == AllocationStatus.ACTIVE,
        )
    )
    if current.first() is not None:
        raise ConflictError("Student is already assigned to a route")

    vehicle = await db.get(Vehicle, route.vehicle_id)
    riders = await db.execute(
        select(func.count()).select_from(StudentTransport).where(
            StudentTransport.vehicle_id == vehicle.id,
            StudentTransport.status == AllocationStatus.ACTIVE,
        )
    )
    if riders.scalar_one() >= vehicle.capacity:
        raise ValidationError("Vehicle is at full capacity")

    assignment = StudentTransport(
        school_id=school_id,
        student_id=student.id,
        route_id=route.id,
        vehicle_id=vehicle.id,
        status=AllocationStatus.ACTIVE,
    )
    db.add(assignment)
    await db.commit()
    await db.refresh(assignment)
    return assignment


async def end_assignment(db: AsyncSession, school_id: UUID, assignment_id: UUID) -> StudentTransport:
    result = await db.execute(
        select(StudentTransport).where(
            StudentTransport.id == assignment_id,
            StudentTransport.school_id == school_id,
        )
    )
    assignment = result.scalar_one_or_none()
    if assignment is None:
        raise NotFoundError("Transport assignment")

    assignment.status = AllocationStatus.INACTIVE
    await db.commit()
    await db.refresh(assignment)
    return assignment
