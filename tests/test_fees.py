"""Tests for fee structures, manual and online payments, and receipts."""

from decimal import Decimal

import pytest
import pytest_asyncio
from httpx import AsyncClient

from tests.conftest import auth_header


@pytest_asyncio.fixture
async def student_fee(client: AsyncClient, principal, school_class, student) -> dict:
    """A 500.00 monthly fee assigned to the student."""
    structure = await client.post(
        "/api/fees/structures",
        json={
            "class_id": str(school_class.id),
            "name": "Tuition",
            "amount": "500.00",
            "frequency": "Monthly",
        },
        headers=auth_header(principal),
    )
    assert structure.status_code == 201

    assigned = await client.post(
        "/api/fees/assign",
        json={"fee_structure_id": structure.json()["id"]},
        headers=auth_header(principal),
    )
    assert assigned.status_code == 200
    return assigned.json()["items"][0]


async def pay(client: AsyncClient, user, student_fee_id: str, amount: str, mode: str = "Cash"):
    return await client.post(
        "/api/fees/pay/manual",
        json={"student_fee_id": student_fee_id, "amount": amount, "payment_mode": mode},
        headers=auth_header(user),
    )


class TestAssignment:
    async def test_assign_to_class(self, student_fee, student):
        assert student_fee["student_id"] == str(student.id)
        assert student_fee["status"] == "Due"
        assert Decimal(student_fee["due_amount"]) == Decimal("500")

    async def test_assign_skips_existing(self, client: AsyncClient, principal, student_fee):
        response = await client.post(
            "/api/fees/assign",
            json={"fee_structure_id": student_fee["fee_structure_id"]},
            headers=auth_header(principal),
        )

        assert response.json()["assigned"] == 0
        assert response.json()["skipped"] == 1

    async def test_non_positive_amount_rejected(self, client: AsyncClient, principal, school_class):
        response = await client.post(
            "/api/fees/structures",
            json={"class_id": str(school_class.id), "name": "Free", "amount": "0", "frequency": "Monthly"},
            headers=auth_header(principal),
        )

        assert response.status_code == 422


class TestManualPayment:
    async def test_partial_then_full(self, client: AsyncClient, operator, student_fee):
        first = await pay(client, operator, student_fee["id"], "200.00")
        assert first.status_code == 201
        data = first.json()
        assert data["student_fee"]["status"] == "Partial"
        assert Decimal(data["student_fee"]["paid_amount"]) == Decimal("200")
        assert Decimal(data["student_fee"]["due_amount"]) == Decimal("300")
        assert data["payment"]["receipt_number"].startswith("RCP-")

        second = await pay(client, operator, student_fee["id"], "300.00", mode="Bank")
        assert second.status_code == 201
        assert second.json()["student_fee"]["status"] == "Paid"
        assert Decimal(second.json()["student_fee"]["due_amount"]) == Decimal("0")

    async def test_overpayment_rejected(self, client: AsyncClient, principal, student_fee):
        response = await pay(client, principal, student_fee["id"], "500.01")

        assert response.status_code == 400
        assert response.json()["detail"] == "Payment amount cannot exceed due amount"

    @pytest.mark.parametrize("amount", ["0", "-10.00"])
    async def test_non_positive_payment_rejected(self, client: AsyncClient, principal, student_fee, amount):
        response = await pay(client, principal, student_fee["id"], amount)

        assert response.status_code == 400
        assert response.json()["detail"] == "Payment amount must be positive"

    async def test_online_mode_not_allowed(self, client: AsyncClient, principal, student_fee):
        response = await pay(client, principal, student_fee["id"], "100.00", mode="Online")

        assert response.status_code == 400

    async def test_teacher_cannot_collect(self, client: AsyncClient, teacher_user, student_fee):
        response = await pay(client, teacher_user, student_fee["id"], "100.00")

        assert response.status_code == 403

    async def test_payment_rate_limit(self, client: AsyncClient, principal, student_fee):
        for _ in range(10):
            response = await pay(client, principal, student_fee["id"], "1.00")
            assert response.status_code == 201

        response = await pay(client, principal, student_fee["id"], "1.00")
        assert response.status_code == 429

    async def test_receipt_pdf(self, client: AsyncClient, principal, parent_user, student_fee):
        paid = await pay(client, principal, student_fee["id"], "100.00")
        receipt_number = paid.json()["payment"]["receipt_number"]

        response = await client.get(f"/api/fees/receipt/{receipt_number}", headers=auth_header(parent_user))

        assert response.status_code == 200
        assert response.headers["content-type"] == "application/pdf"
        assert response.content.startswith(b"%PDF")

    async def test_parent_sees_payments(self, client: AsyncClient, principal, parent_user, student_fee):
        await pay(client, principal, student_fee["id"], "100.00")

        response = await client.get("/api/fees/payments/me", headers=auth_header(parent_user))

        assert response.status_code == 200
        assert response.json()["total"] == 1


class TestOnlinePayment:
    async def enable_online_payments(self, client: AsyncClient, principal):
        response = await client.patch(
            "/api/schools/me/online-payments",
            json={"enabled": True},
            headers=auth_header(principal),
        )
        assert response.status_code == 200

    async def test_disabled_by_default(self, client: AsyncClient, parent_user, student_fee):
        response = await client.post(
            "/api/fees/pay/online/init",
            json={"student_fee_id": student_fee["id"], "amount": "100.00"},
            headers=auth_header(parent_user),
        )

        assert response.status_code == 403
        assert response.json()["detail"] == "Online payments are disabled for this school"

    async def test_success_applies_payment(self, client: AsyncClient, principal, parent_user, student_fee):
        await self.enable_online_payments(client, principal)

        initiated = await client.post(
            "/api/fees/pay/online/init",
            json={"student_fee_id": student_fee["id"], "amount": "500.00"},
            headers=auth_header(parent_user),
        )
        assert initiated.status_code == 201
        assert initiated.json()["status"] == "Pending"
        reference = initiated.json()["gateway_reference"]

        verified = await client.post(
            "/api/fees/pay/online/verify",
            json={"gateway_reference": reference, "status": "Success"},
            headers=auth_header(principal),
        )
        assert verified.status_code == 200
        assert verified.json()["status"] == "Success"
        assert verified.json()["fee_payment_id"] is not None

        fees = await client.get(f"/api/fees/students/{student_fee['student_id']}", headers=auth_header(parent_user))
        assert fees.json()[0]["status"] == "Paid"

        again = await client.post(
            "/api/fees/pay/online/verify",
            json={"gateway_reference": reference, "status": "Success"},
            headers=auth_header(principal),
        )
        assert again.status_code == 400
        assert again.json()["detail"] == "Payment already processed"

    async def test_failure_leaves_fee_untouched(self, client: AsyncClient, principal, parent_user, student_fee):
        await self.enable_online_payments(client, principal)
        initiated = await client.post(
            "/api/fees/pay/online/init",
            json={"student_fee_id": student_fee["id"], "amount": "100.00"},
            headers=auth_header(parent_user),
        )

        verified = await client.post(
            "/api/fees/pay/online/verify",
            json={
                "gateway_reference": initiated.json()["gateway_reference"],
                "status": "Failed",
                "failure_reason": "Card declined",
            },
            headers=auth_header(principal),
        )

        assert verified.json()["status"] == "Failed"
        assert verified.json()["fee_payment_id"] is None
        fees = await client.get(f"/api/fees/students/{student_fee['student_id']}", headers=auth_header(principal))
        assert fees.json()[0]["status"] == "Due"

    async def test_pending_is_not_a_valid_outcome(self, client: AsyncClient, principal, student_fee):
        await self.enable_online_payments(client, principal)

        response = await client.post(
            "/api/fees/pay/online/verify",
            json={"gateway_reference": "PAY-1", "status": "Pending"},
            headers=auth_header(principal),
        )

        assert response.status_code == 422
