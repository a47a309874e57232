"""Tests for salary profiles, payroll calculation and slips."""

from decimal import Decimal

import pytest_asyncio
from httpx import AsyncClient

from school_erp.services.salary import compute_salary, month_bounds
from tests.conftest import auth_header


@pytest_asyncio.fixture
async def salary_profile(client: AsyncClient, principal, teacher_user) -> dict:
    response = await client.post(
        "/api/salary/profiles",
        json={
            "user_id": str(teacher_user.id),
            "base_salary": "30000.00",
            "allowances": [{"name": "HRA", "amount": "3000.00"}],
            "deductions": [{"name": "PF", "amount": "1800.00"}],
        },
        headers=auth_header(principal),
    )
    assert response.status_code == 201
    return response.json()


async def mark_present(client: AsyncClient, principal, staff_id, days: list[str]):
    for day in days:
        response = await client.post(
            "/api/attendance/teachers",
            json={"attendance_date": day, "records": [{"teacher_id": str(staff_id), "status": "PRESENT"}]},
            headers=auth_header(principal),
        )
        assert response.status_code == 200


class TestComputation:
    def test_month_bounds(self):
        first, last, days = month_bounds("2032-02")

        assert (first.day, last.day, days) == (1, 29, 29)

    def test_pro_rated_salary(self):
        gross, net = compute_salary(Decimal("30000"), 30, 15, Decimal("3000"), Decimal("1800"))

        assert gross == Decimal("18000.00")
        assert net == Decimal("16200.00")

    def test_net_never_negative(self):
        gross, net = compute_salary(Decimal("30000"), 30, 0, Decimal("0"), Decimal("500"))

        assert gross == Decimal("0.00")
        assert net == Decimal("0.00")


class TestProfiles:
    async def test_totals(self, salary_profile):
        assert Decimal(salary_profile["total_allowances"]) == Decimal("3000")
        assert Decimal(salary_profile["total_deductions"]) == Decimal("1800")

    async def test_one_profile_per_staff(self, client: AsyncClient, principal, teacher_user, salary_profile):
        response = await client.post(
            "/api/salary/profiles",
            json={"user_id": str(teacher_user.id), "base_salary": "1000.00"},
            headers=auth_header(principal),
        )

        assert response.status_code == 409

    async def test_parent_has_no_profile(self, client: AsyncClient, principal, parent_user):
        response = await client.post(
            "/api/salary/profiles",
            json={"user_id": str(parent_user.id), "base_salary": "1000.00"},
            headers=auth_header(principal),
        )

        assert response.status_code == 400

    async def test_module_disabled_on_basic(self, client: AsyncClient, super_admin, principal, school):
        await client.put(
            f"/api/schools/{school.id}/plan",
            json={"plan": "BASIC", "confirmed": True},
            headers=auth_header(super_admin),
        )

        response = await client.get("/api/salary/profiles", headers=auth_header(principal))

        assert response.status_code == 403
        assert response.json()["module"] == "salary"


class TestPayroll:
    async def test_calculate_and_pay(self, client: AsyncClient, principal, teacher_user, salary_profile):
        await mark_present(client, principal, teacher_user.id, ["2030-06-03", "2030-06-04", "2030-06-05"])

        calculated = await client.post(
            "/api/salary/calculate",
            json={"staff_id": str(teacher_user.id), "month": "2030-06"},
            headers=auth_header(principal),
        )
        assert calculated.status_code == 201
        data = calculated.json()
        assert data["working_days"] == 30
        assert data["attendance_days"] == 3
        assert Decimal(data["gross_salary"]) == Decimal("6000.00")
        assert Decimal(data["net_payable"]) == Decimal("4200.00")
        assert data["status"] == "Calculated"

        paid = await client.post(
            "/api/salary/pay",
            json={"salary_calculation_id": data["id"], "payment_mode": "Bank"},
            headers=auth_header(principal),
        )
        assert paid.status_code == 201
        assert Decimal(paid.json()["amount_paid"]) == Decimal("4200.00")

        again = await client.post(
            "/api/salary/pay",
            json={"salary_calculation_id": data["id"], "payment_mode": "Cash"},
            headers=auth_header(principal),
        )
        assert again.status_code == 409

    async def test_one_calculation_per_month(self, client: AsyncClient, principal, teacher_user, salary_profile):
        body = {"staff_id": str(teacher_user.id), "month": "2030-06"}
        await client.post("/api/salary/calculate", json=body, headers=auth_header(principal))

        response = await client.post("/api/salary/calculate", json=body, headers=auth_header(principal))

        assert response.status_code == 409

    async def test_bad_month(self, client: AsyncClient, principal, teacher_user, salary_profile):
        response = await client.post(
            "/api/salary/calculate",
            json={"staff_id": str(teacher_user.id), "month": "2030-13"},
            headers=auth_header(principal),
        )

        assert response.status_code == 422


class TestSlips:
    async def calculate(self, client: AsyncClient, principal, staff_id):
        response = await client.post(
            "/api/salary/calculate",
            json={"staff_id": str(staff_id), "month": "2030-06"},
            headers=auth_header(principal),
        )
        assert response.status_code == 201

    async def test_teacher_reads_own_slip(self, client: AsyncClient, principal, teacher_user, salary_profile):
        await self.calculate(client, principal, teacher_user.id)

        response = await client.get("/api/salary/slip/2030-06", headers=auth_header(teacher_user))

        assert response.status_code == 200
        assert response.json()["calculation"]["staff_id"] == str(teacher_user.id)
        assert response.json()["payment"] is None

        pdf = await client.get("/api/salary/slip/2030-06/pdf", headers=auth_header(teacher_user))
        assert pdf.status_code == 200
        assert pdf.content.startswith(b"%PDF")

    async def test_teacher_cannot_read_others(
        self, client: AsyncClient, principal, operator, teacher_user, salary_profile
    ):
        await self.calculate(client, principal, teacher_user.id)

        response = await client.get(
            "/api/salary/slip/2030-06",
            params={"staff_id": str(teacher_user.id)},
            headers=auth_header(operator),
        )
        assert response.status_code == 200

        response = await client.get(
            "/api/salary/slip/2030-06",
            params={"staff_id": str(operator.id)},
            headers=auth_header(teacher_user),
        )
        assert response.status_code == 403

    async def test_parent_has_no_slip(self, client: AsyncClient, parent_user):
        response = await client.get("/api/salary/slip/2030-06", headers=auth_header(parent_user))

        assert response.status_code == 403
