"""Tests for reports and role dashboards."""

from decimal import Decimal
from io import BytesIO

import pytest_asyncio
from httpx import AsyncClient
from openpyxl import load_workbook

from tests.conftest import auth_header


@pytest_asyncio.fixture
async def collected_fee(client: AsyncClient, principal, school_class, student) -> dict:
    """A 1000.00 fee with 400.00 paid in cash."""
    structure = await client.post(
        "/api/fees/structures",
        json={"class_id": str(school_class.id), "name": "Annual", "amount": "1000.00", "frequency": "One-time"},
        headers=auth_header(principal),
    )
    assigned = await client.post(
        "/api/fees/assign",
        json={"fee_structure_id": structure.json()["id"]},
        headers=auth_header(principal),
    )
    student_fee = assigned.json()["items"][0]
    paid = await client.post(
        "/api/fees/pay/manual",
        json={"student_fee_id": student_fee["id"], "amount": "400.00", "payment_mode": "Cash"},
        headers=auth_header(principal),
    )
    assert paid.status_code == 201
    return student_fee


class TestFinanceReports:
    async def test_fee_collection(self, client: AsyncClient, principal, collected_fee):
        response = await client.get("/api/reports/fee-collection", headers=auth_header(principal))

        assert response.status_code == 200
        data = response.json()
        assert Decimal(data["total_assigned"]) == Decimal("1000.00")
        assert Decimal(data["total_collected"]) == Decimal("400.00")
        assert Decimal(data["total_due"]) == Decimal("600.00")
        assert Decimal(data["by_payment_mode"]["Cash"]) == Decimal("400.00")
        assert data["by_status"] == {"Partial": 1}
        assert data["payment_count"] == 1

    async def test_profit_and_loss(self, client: AsyncClient, principal, collected_fee):
        await client.post(
            "/api/expenses",
            json={
                "category": "Repair",
                "amount": "150.00",
                "expense_date": "2030-06-10",
                "payment_mode": "Cash",
                "description": "Broken window",
            },
            headers=auth_header(principal),
        )

        response = await client.get("/api/reports/profit-loss", headers=auth_header(principal))

        data = response.json()
        assert Decimal(data["fee_income"]) == Decimal("400.00")
        assert Decimal(data["expenses"]) == Decimal("150.00")
        assert Decimal(data["net"]) == Decimal("250.00")

    async def test_super_admin_names_school(self, client: AsyncClient, super_admin, school, collected_fee):
        missing = await client.get("/api/reports/fee-collection", headers=auth_header(super_admin))
        assert missing.status_code == 400

        response = await client.get(
            "/api/reports/fee-collection",
            params={"school_id": str(school.id)},
            headers=auth_header(super_admin),
        )
        assert response.status_code == 200
        assert Decimal(response.json()["total_collected"]) == Decimal("400.00")

    async def test_teacher_has_no_reports(self, client: AsyncClient, teacher_user):
        response = await client.get("/api/reports/fee-collection", headers=auth_header(teacher_user))

        assert response.status_code == 403


class TestRecordReports:
    async def test_tc_and_promotion_counts(self, client: AsyncClient, principal, student, active_session):
        await client.post(
            "/api/tc",
            json={"student_id": str(student.id), "reason": "Moving abroad"},
            headers=auth_header(principal),
        )

        tc = await client.get("/api/reports/tc", headers=auth_header(principal))
        assert tc.json()["total"] == 1
        assert tc.json()["certificates"][0]["last_class_name"] == "Class 1"

        counts = await client.get(
            "/api/reports/promotion",
            params={"session_id": str(active_session.id)},
            headers=auth_header(principal),
        )
        assert counts.json()["counts"]["Left"] == 1
        assert counts.json()["total"] == 1

    async def test_history_export(self, client: AsyncClient, principal, student, active_session):
        await client.post(
            "/api/tc",
            json={"student_id": str(student.id), "reason": "Moving abroad"},
            headers=auth_header(principal),
        )

        response = await client.get(
            "/api/reports/history/export",
            params={"session_id": str(active_session.id)},
            headers=auth_header(principal),
        )

        assert response.status_code == 200
        sheet = load_workbook(BytesIO(response.content)).active
        assert [c.value for c in sheet[2]][:4] == ["Meera Sharma", "Class 1", "1", "Left"]

    async def test_attendance_report(self, client: AsyncClient, principal, school_class, student):
        for day, status in (("2030-06-02", "PRESENT"), ("2030-06-03", "ABSENT")):
            await client.post(
                "/api/attendance/daily",
                json={
                    "class_id": str(school_class.id),
                    "attendance_date": day,
                    "records": [{"student_id": str(student.id), "status": status}],
                },
                headers=auth_header(principal),
            )

        response = await client.get("/api/reports/attendance", headers=auth_header(principal))

        data = response.json()
        assert (data["present"], data["absent"]) == (1, 1)
        assert Decimal(data["percentage"]) == Decimal("50.00")


class TestDashboard:
    async def test_principal(self, client: AsyncClient, principal, student, teacher, collected_fee):
        response = await client.get("/api/dashboard", headers=auth_header(principal))

        data = response.json()
        assert data["role"] == "PRINCIPAL"
        assert data["counts"]["students"] == 1
        assert data["counts"]["teachers"] == 1
        assert Decimal(data["amounts"]["fees_due"]) == Decimal("600.00")

    async def test_super_admin(self, client: AsyncClient, super_admin, school, other_school):
        response = await client.get("/api/dashboard", headers=auth_header(super_admin))

        assert response.json()["counts"]["schools"] == 2

    async def test_teacher(self, client: AsyncClient, teacher_user, student):
        response = await client.get("/api/dashboard", headers=auth_header(teacher_user))

        assert response.json()["counts"] == {"assigned_classes": 1, "assigned_subjects": 1, "students": 1}

    async def test_parent(self, client: AsyncClient, parent_user, collected_fee):
        response = await client.get("/api/dashboard", headers=auth_header(parent_user))

        data = response.json()
        assert data["counts"] == {"students": 1, "pending_fees": 1}
        assert Decimal(data["amounts"]["fees_due"]) == Decimal("600.00")
