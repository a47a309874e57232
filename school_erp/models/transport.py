"""Transport models."""

from uuid import UUID

from sqlalchemy import JSON, ForeignKey, Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from school_erp.core.database import BaseModel
from school_erp.models.hostel import AllocationStatus


class Vehicle(BaseModel):
    __tablename__ = "vehicles"

    school_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("schools.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    vehicle_number: Mapped[str] = mapped_column(String(50), nullable=False)
    driver_name: Mapped[str] = mapped_column(String(200), nullable=False)
    driver_contact: Mapped[str] = mapped_column(String(20), nullable=False)
    capacity: Mapped[int] = mapped_column(Integer, nullable=False)
    created_by_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("users.id"), nullable=False)


class TransportRoute(BaseModel):
    __tablename__ = "transport_routes"

    school_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("schools.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    vehicle_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("vehicles.id", ondelete="CASCADE"),
        nullable=False,
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    stops: Mapped[list] = mapped_column(JSON, default=list, nullable=False)
    created_by_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("users.id"), nullable=False)


class StudentTransport(BaseModel):
    __tablename__ = "student_transports"

    school_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("schools.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    student_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("students.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    route_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("transport_routes.id", ondelete="CASCADE"),
        nullable=False,
    )
    vehicle_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("vehicles.id", ondelete="CASCADE"),
        nullable=False,
    )
    status: Mapped[AllocationStatus] = mapped_column(
        String(20),
        default=AllocationStatus.ACTIVE,
        nullable=False,
    )
