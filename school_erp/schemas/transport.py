"""Transport schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from school_erp.models.hostel import AllocationStatus
from school_erp.schemas.validators import MobileNumber


class VehicleCreate(BaseModel):
    vehicle_number: str = Field(..., min_length=1, max_length=50)
    driver_name: str = Field(..., min_length=1, max_length=200)
    driver_contact: MobileNumber
    capacity: int = Field(..., gt=0)


class VehicleUpdate(BaseModel):
    driver_name: str | None = Field(None, min_length=1, max_length=200)
    driver_contact: MobileNumber | None = None
    capacity: int | None = Field(None, gt=0)


class VehicleResponse(BaseModel):
    id: UUID
    vehicle_number: str
    driver_name: str
    driver_contact: str
    capacity: int
    created_at: datetime

    model_config = {"from_attributes": True}


class Stop(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    pickup_time: str | None = Field(None, max_length=10)


class RouteCreate(BaseModel):
    vehicle_id: UUID
    name: str = Field(..., min_length=1, max_length=200)
    stops: list[Stop] = Field(default_factory=list)


class RouteResponse(BaseModel):
    id: UUID
    vehicle_id: UUID
    name: str
    stops: list[Stop]

    model_config = {"from_attributes": True}


class StudentTransportCreate(BaseModel):
    student_id: UUID
    route_id: UUID


class StudentTransportResponse(BaseModel):
    id: UUID
    student_id: UUID
    route_id: UUID
    vehicle_id: UUID
    status: AllocationStatus

    model_config = {"from_attributes": True}
