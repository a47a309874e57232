"""Tests for expenses, inventory and homework."""

from decimal import Decimal
from io import BytesIO

from httpx import AsyncClient
from openpyxl import load_workbook

from school_erp.schemas.academic import SubjectCreate
from school_erp.services import academic as academic_service
from tests.conftest import auth_header


async def add_expense(client: AsyncClient, user, category: str, amount: str, day: str = "2030-06-10"):
    return await client.post(
        "/api/expenses",
        json={
            "category": category,
            "amount": amount,
            "expense_date": day,
            "payment_mode": "Bank",
            "description": f"{category} bill",
        },
        headers=auth_header(user),
    )


class TestExpenses:
    async def test_create_in_active_session(self, client: AsyncClient, operator, active_session):
        response = await add_expense(client, operator, "Electricity", "4200.50")

        assert response.status_code == 201
        assert response.json()["session_id"] == str(active_session.id)
        assert response.json()["created_by_id"] == str(operator.id)

    async def test_amount_must_be_positive(self, client: AsyncClient, principal, active_session):
        response = await add_expense(client, principal, "Repair", "0")

        assert response.status_code == 422

    async def test_filters_and_summary(self, client: AsyncClient, principal, active_session):
        await add_expense(client, principal, "Electricity", "1000.00", "2030-06-01")
        await add_expense(client, principal, "Electricity", "500.00", "2030-07-01")
        await add_expense(client, principal, "Repair", "250.00", "2030-06-15")

        june = await client.get(
            "/api/expenses",
            params={"date_from": "2030-06-01", "date_to": "2030-06-30"},
            headers=auth_header(principal),
        )
        assert june.json()["total"] == 2

        electricity = await client.get(
            "/api/expenses",
            params={"category": "Electricity"},
            headers=auth_header(principal),
        )
        assert electricity.json()["total"] == 2

        summary = await client.get("/api/expenses/summary", headers=auth_header(principal))
        data = summary.json()
        assert Decimal(data["grand_total"]) == Decimal("1750.00")
        totals = {c["category"]: (Decimal(c["total"]), c["count"]) for c in data["categories"]}
        assert totals["Electricity"] == (Decimal("1500.00"), 2)
        assert totals["Repair"] == (Decimal("250.00"), 1)

    async def test_teacher_cannot_record(self, client: AsyncClient, teacher_user, active_session):
        response = await add_expense(client, teacher_user, "Misc", "10.00")

        assert response.status_code == 403


class TestInventory:
    async def add_item(self, client: AsyncClient, user, code: str = "LAB-001"):
        return await client.post(
            "/api/inventory",
            json={
                "code": code,
                "name": "Microscope",
                "category": "Lab",
                "quantity": 4,
                "purchase_date": "2029-11-20",
                "cost": "18000.00",
            },
            headers=auth_header(user),
        )

    async def test_create_and_update(self, client: AsyncClient, principal):
        created = await self.add_item(client, principal)
        assert created.status_code == 201
        assert created.json()["condition"] == "Good"

        updated = await client.patch(
            f"/api/inventory/{created.json()['id']}",
            json={"quantity": 3, "condition": "Damaged"},
            headers=auth_header(principal),
        )
        assert updated.json()["quantity"] == 3
        assert updated.json()["condition"] == "Damaged"

    async def test_code_unique_per_school(self, client: AsyncClient, principal):
        await self.add_item(client, principal)

        response = await self.add_item(client, principal)

        assert response.status_code == 409

    async def test_delete(self, client: AsyncClient, principal):
        created = await self.add_item(client, principal)

        response = await client.delete(f"/api/inventory/{created.json()['id']}", headers=auth_header(principal))
        assert response.status_code == 204

        missing = await client.patch(
            f"/api/inventory/{created.json()['id']}",
            json={"quantity": 1},
            headers=auth_header(principal),
        )
        assert missing.status_code == 404

    async def test_export_workbook(self, client: AsyncClient, principal):
        await self.add_item(client, principal, "LAB-001")
        await self.add_item(client, principal, "LAB-002")

        response = await client.get("/api/inventory/export", headers=auth_header(principal))

        assert response.status_code == 200
        sheet = load_workbook(BytesIO(response.content)).active
        assert sheet.title == "Inventory"
        assert sheet["A1"].value == "Code"
        assert sheet.max_row == 3


class TestHomework:
    async def post_homework(self, client: AsyncClient, user, school_class, subject, section_id=None):
        return await client.post(
            "/api/homework",
            json={
                "class_id": str(school_class.id),
                "section_id": str(section_id) if section_id else None,
                "subject_id": str(subject.id),
                "title": "Fractions worksheet",
                "due_date": "2030-06-20",
            },
            headers=auth_header(user),
        )

    async def test_assigned_teacher_posts(self, client: AsyncClient, teacher_user, school_class, subject):
        response = await self.post_homework(client, teacher_user, school_class, subject)

        assert response.status_code == 201
        assert response.json()["attachments"] == []

    async def test_unassigned_teacher_rejected(self, client: AsyncClient, db, teacher_user, next_class):
        science = await academic_service.create_subject(db, next_class, SubjectCreate(name="Science", code="SCI"))

        response = await self.post_homework(client, teacher_user, next_class, science)

        assert response.status_code == 403
        assert response.json()["detail"] == "You are not assigned to this class"

    async def test_parent_sees_class_homework(
        self, client: AsyncClient, principal, parent_user, school_class, section, subject, student
    ):
        await self.post_homework(client, principal, school_class, subject)
        await self.post_homework(client, principal, school_class, subject, section_id=section.id)

        response = await client.get("/api/homework/me", headers=auth_header(parent_user))

        assert response.status_code == 200
        assert len(response.json()) == 2
