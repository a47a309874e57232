"""Tests for hostel allocation, leaves and school transport."""

import pytest_asyncio
from httpx import AsyncClient

from school_erp.schemas.student import StudentCreate
from school_erp.services import student as student_service
from tests.conftest import auth_header


@pytest_asyncio.fixture
async def classmate(db, school, school_class, section, parent):
    return await student_service.create_student(
        db,
        school.id,
        StudentCreate(
            name="Kabir Sharma",
            roll_number="2",
            class_id=school_class.id,
            section_id=section.id,
            parent_id=parent.id,
        ),
    )


@pytest_asyncio.fixture
async def room(client: AsyncClient, principal) -> dict:
    """Room 101 with two beds in the boys' hostel."""
    hostel = await client.post(
        "/api/hostels",
        json={"name": "Boys Hostel", "capacity": 40},
        headers=auth_header(principal),
    )
    assert hostel.status_code == 201

    response = await client.post(
        f"/api/hostels/{hostel.json()['id']}/rooms",
        json={"room_number": "101", "total_beds": 2},
        headers=auth_header(principal),
    )
    assert response.status_code == 201
    return response.json()


@pytest_asyncio.fixture
async def route(client: AsyncClient, principal) -> dict:
    """Route North on a one-seat van."""
    vehicle = await client.post(
        "/api/transport/vehicles",
        json={
            "vehicle_number": "KA-01-1234",
            "driver_name": "Suresh",
            "driver_contact": "+91 98450 00000",
            "capacity": 1,
        },
        headers=auth_header(principal),
    )
    assert vehicle.status_code == 201
    assert vehicle.json()["driver_contact"] == "+919845000000"

    response = await client.post(
        "/api/transport/routes",
        json={
            "vehicle_id": vehicle.json()["id"],
            "name": "North",
            "stops": [{"name": "Market", "pickup_time": "07:15"}, {"name": "Temple"}],
        },
        headers=auth_header(principal),
    )
    assert response.status_code == 201
    return response.json()


async def allocate(client: AsyncClient, user, student_id, room_id):
    return await client.post(
        "/api/hostels/allocations",
        json={"student_id": str(student_id), "room_id": room_id},
        headers=auth_header(user),
    )


class TestHostel:
    async def test_new_room_is_empty(self, room):
        assert room["available_beds"] == 2

    async def test_lowest_free_bed(self, client: AsyncClient, principal, room, student, classmate):
        first = await allocate(client, principal, student.id, room["id"])
        second = await allocate(client, principal, classmate.id, room["id"])

        assert first.json()["bed_number"] == 1
        assert second.json()["bed_number"] == 2

        released = await client.post(
            f"/api/hostels/allocations/{first.json()['id']}/release",
            headers=auth_header(principal),
        )
        assert released.status_code == 200
        assert released.json()["status"] == "INACTIVE"

        again = await allocate(client, principal, student.id, room["id"])
        assert again.json()["bed_number"] == 1

    async def test_room_full(
        self, client: AsyncClient, db, principal, room, student, classmate, school, school_class, section, parent
    ):
        third = await student_service.create_student(
            db,
            school.id,
            StudentCreate(
                name="Isha Sharma",
                roll_number="3",
                class_id=school_class.id,
                section_id=section.id,
                parent_id=parent.id,
            ),
        )
        await allocate(client, principal, student.id, room["id"])
        await allocate(client, principal, classmate.id, room["id"])

        response = await allocate(client, principal, third.id, room["id"])

        assert response.status_code == 400
        assert response.json()["detail"] == "No beds available in this room"

    async def test_one_allocation_per_student(self, client: AsyncClient, principal, room, student):
        await allocate(client, principal, student.id, room["id"])

        response = await allocate(client, principal, student.id, room["id"])

        assert response.status_code == 409

    async def test_leave_flow(self, client: AsyncClient, principal, parent_user, room, student):
        await allocate(client, principal, student.id, room["id"])

        applied = await client.post(
            "/api/hostels/leaves",
            json={
                "student_id": str(student.id),
                "from_date": "2030-10-01",
                "to_date": "2030-10-05",
                "reason": "Festival at home",
            },
            headers=auth_header(parent_user),
        )
        assert applied.status_code == 201
        assert applied.json()["status"] == "PENDING"

        decided = await client.patch(
            f"/api/hostels/leaves/{applied.json()['id']}",
            json={"status": "APPROVED"},
            headers=auth_header(principal),
        )
        assert decided.status_code == 200
        assert decided.json()["approved_by_id"] == str(principal.id)

        twice = await client.patch(
            f"/api/hostels/leaves/{applied.json()['id']}",
            json={"status": "REJECTED"},
            headers=auth_header(principal),
        )
        assert twice.status_code == 400

    async def test_leave_needs_allocation(self, client: AsyncClient, principal, student, room):
        response = await client.post(
            "/api/hostels/leaves",
            json={
                "student_id": str(student.id),
                "from_date": "2030-10-01",
                "to_date": "2030-10-05",
                "reason": "Festival at home",
            },
            headers=auth_header(principal),
        )

        assert response.status_code == 400


class TestTransport:
    async def test_assign_and_capacity(self, client: AsyncClient, principal, route, student, classmate):
        first = await client.post(
            "/api/transport/students",
            json={"student_id": str(student.id), "route_id": route["id"]},
            headers=auth_header(principal),
        )
        assert first.status_code == 201
        assert first.json()["vehicle_id"] == route["vehicle_id"]

        full = await client.post(
            "/api/transport/students",
            json={"student_id": str(classmate.id), "route_id": route["id"]},
            headers=auth_header(principal),
        )
        assert full.status_code == 400
        assert full.json()["detail"] == "Vehicle is at full capacity"

        ended = await client.delete(f"/api/transport/students/{first.json()['id']}", headers=auth_header(principal))
        assert ended.json()["status"] == "INACTIVE"

        seat_freed = await client.post(
            "/api/transport/students",
            json={"student_id": str(classmate.id), "route_id": route["id"]},
            headers=auth_header(principal),
        )
        assert seat_freed.status_code == 201

    async def test_parent_sees_own_assignments(self, client: AsyncClient, principal, parent_user, route, student):
        await client.post(
            "/api/transport/students",
            json={"student_id": str(student.id), "route_id": route["id"]},
            headers=auth_header(principal),
        )

        response = await client.get("/api/transport/students", headers=auth_header(parent_user))

        assert response.status_code == 200
        assert [a["student_id"] for a in response.json()] == [str(student.id)]

    async def test_duplicate_vehicle_number(self, client: AsyncClient, principal, route):
        response = await client.post(
            "/api/transport/vehicles",
            json={
                "vehicle_number": "KA-01-1234",
                "driver_name": "Other",
                "driver_contact": "9845000001",
                "capacity": 10,
            },
            headers=auth_header(principal),
        )

        assert response.status_code == 409

    async def test_transport_module_disabled(self, client: AsyncClient, db, principal, school):
        school.modules = {**school.modules, "transport": False}
        await db.commit()

        response = await client.get("/api/transport/vehicles", headers=auth_header(principal))

        assert response.status_code == 403
