"""Tests for school onboarding, plans, modules and subscriptions."""

from datetime import timedelta

from httpx import AsyncClient

from school_erp.core.database import utcnow
from school_erp.core.plans import Plan
from tests.conftest import PASSWORD, auth_header, onboard_school


class TestOnboarding:
    async def test_create_school(self, client: AsyncClient, super_admin):
        """Onboarding creates the school, its principal and an active session."""
        response = await client.post(
            "/api/schools",
            json={
                "name": "Sunrise Academy",
                "code": "sra",
                "plan": "STANDARD",
                "principal": {
                    "name": "Kavita Rao",
                    "email": "kavita@sunrise.test",
                    "password": PASSWORD,
                },
            },
            headers=auth_header(super_admin),
        )

        assert response.status_code == 201
        data = response.json()
        assert data["school"]["code"] == "SRA"
        assert data["school"]["plan"] == "STANDARD"
        assert data["school"]["modules"]["hostel"] is False
        assert data["school"]["limits"]["student_limit"] == 2000
        assert data["principal"]["role"] == "PRINCIPAL"
        assert data["principal"]["school_id"] == data["school"]["id"]
        assert data["session"]["is_active"] is True

    async def test_duplicate_code(self, client: AsyncClient, super_admin, school):
        response = await client.post(
            "/api/schools",
            json={
                "name": "Copy",
                "code": "GVS",
                "principal": {"name": "X", "email": "x@copy.test", "password": PASSWORD},
            },
            headers=auth_header(super_admin),
        )

        assert response.status_code == 409

    async def test_principal_cannot_create_school(self, client: AsyncClient, principal):
        response = await client.post(
            "/api/schools",
            json={
                "name": "Nope",
                "code": "NOPE",
                "principal": {"name": "X", "email": "x@nope.test", "password": PASSWORD},
            },
            headers=auth_header(principal),
        )

        assert response.status_code == 403


class TestIsolation:
    async def test_principal_reads_own_school(self, client: AsyncClient, principal, school):
        response = await client.get(f"/api/schools/{school.id}", headers=auth_header(principal))

        assert response.status_code == 200
        assert response.json()["id"] == str(school.id)

    async def test_principal_cannot_read_other_school(self, client: AsyncClient, principal, other_school):
        response = await client.get(f"/api/schools/{other_school[0].id}", headers=auth_header(principal))

        assert response.status_code == 403
        assert response.json()["detail"] == "Access denied. Cannot access other school's data."

    async def test_school_id_in_query_is_checked(self, client: AsyncClient, principal, other_school):
        response = await client.get(
            "/api/sessions",
            params={"school_id": str(other_school[0].id)},
            headers=auth_header(principal),
        )

        assert response.status_code == 403

    async def test_school_id_in_body_is_checked(self, client: AsyncClient, principal, other_school):
        response = await client.post(
            "/api/sessions",
            json={
                "name": "2031-2032",
                "start_date": "2031-04-01",
                "end_date": "2032-03-31",
                "school_id": str(other_school[0].id),
            },
            headers=auth_header(principal),
        )

        assert response.status_code == 403


class TestPlans:
    async def test_upgrade(self, client: AsyncClient, super_admin, db):
        school, _, _ = await onboard_school(db, "BAS", plan=Plan.BASIC)

        response = await client.put(
            f"/api/schools/{school.id}/plan",
            json={"plan": "PREMIUM"},
            headers=auth_header(super_admin),
        )

        assert response.status_code == 200
        data = response.json()
        assert data["plan"] == "PREMIUM"
        assert data["modules"]["hostel"] is True
        assert data["limits"]["student_limit"] == 10000

    async def test_downgrade_needs_confirmation(self, client: AsyncClient, super_admin, school):
        response = await client.put(
            f"/api/schools/{school.id}/plan",
            json={"plan": "BASIC"},
            headers=auth_header(super_admin),
        )

        assert response.status_code == 400
        assert response.json()["requires_confirmation"] is True

        response = await client.put(
            f"/api/schools/{school.id}/plan",
            json={"plan": "BASIC", "confirmed": True},
            headers=auth_header(super_admin),
        )
        assert response.status_code == 200
        assert response.json()["modules"]["exam"] is False

    async def test_same_plan_rejected(self, client: AsyncClient, super_admin, school):
        response = await client.put(
            f"/api/schools/{school.id}/plan",
            json={"plan": "PREMIUM"},
            headers=auth_header(super_admin),
        )

        assert response.status_code == 400

    async def test_unknown_module_rejected(self, client: AsyncClient, super_admin, school):
        response = await client.put(
            f"/api/schools/{school.id}/modules",
            json={"modules": {"teleportation": True}},
            headers=auth_header(super_admin),
        )

        assert response.status_code == 400


class TestModuleGating:
    async def test_disabled_module_blocks_routes(self, client: AsyncClient, super_admin, principal, school):
        await client.put(
            f"/api/schools/{school.id}/modules",
            json={"modules": {"hostel": False}},
            headers=auth_header(super_admin),
        )

        response = await client.get("/api/hostels", headers=auth_header(principal))

        assert response.status_code == 403
        data = response.json()
        assert data["module"] == "hostel"
        assert data["module_disabled"] is True

    async def test_enabled_module_allows_routes(self, client: AsyncClient, principal, school):
        response = await client.get("/api/hostels", headers=auth_header(principal))

        assert response.status_code == 200


class TestSubscription:
    async def test_trial_subscription(self, client: AsyncClient, principal):
        response = await client.get("/api/schools/me/subscription", headers=auth_header(principal))

        assert response.status_code == 200
        data = response.json()
        assert data["is_expired"] is False
        assert data["days_remaining"] == 14

    async def test_expired_school_is_read_only(self, client: AsyncClient, db, principal, school):
        school.subscription_end_date = utcnow() - timedelta(days=40)
        school.grace_period_days = 30
        await db.commit()

        read = await client.get("/api/classes", headers=auth_header(principal))
        assert read.status_code == 200

        write = await client.post(
            "/api/classes",
            json={"name": "Class 9", "order": 9},
            headers=auth_header(principal),
        )
        assert write.status_code == 403
        data = write.json()
        assert data["subscription_expired"] is True
        assert "grace_end_date" in data

    async def test_expired_school_cannot_add_people(self, client: AsyncClient, db, principal, school):
        school.subscription_end_date = utcnow() - timedelta(days=40)
        school.grace_period_days = 30
        await db.commit()

        parent = await client.post(
            "/api/parents",
            json={"name": "Late Parent", "mobile": "+919800000099", "password": PASSWORD},
            headers=auth_header(principal),
        )
        assert parent.status_code == 403
        assert parent.json()["subscription_expired"] is True

        user = await client.post(
            "/api/users",
            json={"name": "Late Operator", "email": "late@gvs.test", "password": PASSWORD, "role": "OPERATOR"},
            headers=auth_header(principal),
        )
        assert user.status_code == 403

        assert (await client.get("/api/parents", headers=auth_header(principal))).status_code == 200
        assert (await client.get("/api/users", headers=auth_header(principal))).status_code == 200

    async def test_grace_period_still_allows_writes(self, client: AsyncClient, db, principal, school):
        school.subscription_end_date = utcnow() - timedelta(days=5)
        school.grace_period_days = 30
        await db.commit()

        response = await client.post(
            "/api/classes",
            json={"name": "Class 9", "order": 9},
            headers=auth_header(principal),
        )

        assert response.status_code == 201

    async def test_renew_extends_from_now_when_lapsed(self, client: AsyncClient, db, super_admin, school):
        school.subscription_end_date = utcnow() - timedelta(days=100)
        await db.commit()

        response = await client.post(
            f"/api/schools/{school.id}/subscription/renew",
            json={"duration_months": 2},
            headers=auth_header(super_admin),
        )

        assert response.status_code == 200
        data = response.json()
        assert data["subscription_is_expired"] is False

        status_response = await client.get(
            f"/api/schools/{school.id}/subscription",
            headers=auth_header(super_admin),
        )
        assert status_response.json()["days_remaining"] in (59, 60)
