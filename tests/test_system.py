"""Tests for maintenance mode, announcements and the audit trail."""

import pytest
from httpx import AsyncClient
from sqlalchemy import select

from school_erp.models.audit import AuditAction, AuditLog, AuditLogImmutableError, EntityType
from school_erp.services import audit as audit_service
from tests.conftest import auth_header


async def set_maintenance(client: AsyncClient, super_admin, enabled: bool, message: str | None = None):
    body = {"maintenance_mode": enabled}
    if message is not None:
        body["maintenance_message"] = message
    return await client.put("/api/system/maintenance", json=body, headers=auth_header(super_admin))


class TestMaintenance:
    async def test_defaults_off(self, client: AsyncClient, super_admin):
        response = await client.get("/api/system/maintenance", headers=auth_header(super_admin))

        assert response.status_code == 200
        assert response.json()["maintenance_mode"] is False

    async def test_blocks_school_users(self, client: AsyncClient, super_admin, principal, school_class):
        toggled = await set_maintenance(client, super_admin, True, "Upgrading the database")
        assert toggled.status_code == 200
        assert toggled.json()["maintenance_message"] == "Upgrading the database"

        response = await client.get("/api/classes", headers=auth_header(principal))

        assert response.status_code == 503
        assert response.json() == {"detail": "Upgrading the database", "maintenance_mode": True}

    async def test_super_admin_unaffected(self, client: AsyncClient, super_admin):
        await set_maintenance(client, super_admin, True)

        response = await client.get("/api/users", headers=auth_header(super_admin))

        assert response.status_code == 200

    async def test_turning_off_restores_access(self, client: AsyncClient, super_admin, principal, school_class):
        await set_maintenance(client, super_admin, True)
        await set_maintenance(client, super_admin, False)

        response = await client.get("/api/classes", headers=auth_header(principal))

        assert response.status_code == 200

    async def test_principal_cannot_toggle(self, client: AsyncClient, principal):
        response = await client.put(
            "/api/system/maintenance",
            json={"maintenance_mode": True},
            headers=auth_header(principal),
        )

        assert response.status_code == 403

    async def test_toggle_is_audited(self, client: AsyncClient, db, super_admin):
        await set_maintenance(client, super_admin, True)

        result = await db.execute(select(AuditLog).where(AuditLog.action == AuditAction.MAINTENANCE_TOGGLED))
        entry = result.scalar_one()
        assert entry.user_id == super_admin.id
        assert entry.description == "Maintenance mode enabled"


class TestAnnouncements:
    async def announce(self, client: AsyncClient, super_admin, title: str, target_roles: list[str]):
        return await client.post(
            "/api/system/announcements",
            json={"title": title, "message": f"{title} details", "target_roles": target_roles},
            headers=auth_header(super_admin),
        )

    async def test_targeted_by_role(self, client: AsyncClient, super_admin, principal, parent_user):
        everyone = await self.announce(client, super_admin, "Holiday", [])
        assert everyone.status_code == 201
        assert everyone.json()["priority"] == "medium"
        await self.announce(client, super_admin, "Fee portal update", ["PRINCIPAL", "OPERATOR"])

        for_principal = await client.get("/api/system/announcements/active", headers=auth_header(principal))
        for_parent = await client.get("/api/system/announcements/active", headers=auth_header(parent_user))

        assert sorted(a["title"] for a in for_principal.json()) == ["Fee portal update", "Holiday"]
        assert [a["title"] for a in for_parent.json()] == ["Holiday"]

    async def test_deactivate(self, client: AsyncClient, super_admin, principal):
        created = await self.announce(client, super_admin, "Holiday", [])

        response = await client.post(
            f"/api/system/announcements/{created.json()['id']}/deactivate",
            headers=auth_header(super_admin),
        )
        assert response.json()["is_active"] is False

        active = await client.get("/api/system/announcements/active", headers=auth_header(principal))
        assert active.json() == []

        everything = await client.get("/api/system/announcements", headers=auth_header(super_admin))
        assert len(everything.json()) == 1

    async def test_expired_hidden(self, client: AsyncClient, super_admin, principal):
        await client.post(
            "/api/system/announcements",
            json={"title": "Old", "message": "Gone", "expires_at": "2000-01-01T00:00:00Z"},
            headers=auth_header(super_admin),
        )

        response = await client.get("/api/system/announcements/active", headers=auth_header(principal))

        assert response.json() == []

    async def test_only_super_admin_creates(self, client: AsyncClient, principal):
        response = await self.announce(client, principal, "Holiday", [])

        assert response.status_code == 403


class TestPlatformStats:
    async def test_counts(self, client: AsyncClient, super_admin, school, other_school, student):
        response = await client.get("/api/system/stats", headers=auth_header(super_admin))

        data = response.json()
        assert data["schools"] == 2
        assert data["active_schools"] == 2
        assert data["schools_by_plan"] == {"PREMIUM": 2}
        assert data["students"] == 1
        assert data["users_by_role"]["PRINCIPAL"] == 2


class TestAuditLogs:
    async def log(self, db, user, action: AuditAction, school_id=None):
        await audit_service.record(
            db,
            user=user,
            action=action,
            entity_type=EntityType.SCHOOL,
            description=f"{action.value} by {user.name}",
            school_id=school_id,
        )

    async def test_principal_sees_own_school(self, client: AsyncClient, db, principal, other_school):
        other_principal = other_school[1]
        await self.log(db, principal, AuditAction.SCHOOL_UPDATED)
        await self.log(db, other_principal, AuditAction.SCHOOL_UPDATED)

        response = await client.get(
            "/api/audit-logs",
            params={"school_id": str(other_principal.school_id)},
            headers=auth_header(principal),
        )

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 1
        assert data["items"][0]["user_id"] == str(principal.id)

    async def test_super_admin_filters(self, client: AsyncClient, db, super_admin, principal, other_school):
        await self.log(db, principal, AuditAction.SCHOOL_UPDATED)
        await self.log(db, principal, AuditAction.PLAN_CHANGED)
        await self.log(db, other_school[1], AuditAction.PLAN_CHANGED)

        everything = await client.get("/api/audit-logs", headers=auth_header(super_admin))
        assert everything.json()["total"] == 3

        plan_changes = await client.get(
            "/api/audit-logs",
            params={"action": "PLAN_CHANGED", "school_id": str(principal.school_id)},
            headers=auth_header(super_admin),
        )
        assert plan_changes.json()["total"] == 1

    async def test_stats(self, client: AsyncClient, db, principal, operator):
        await self.log(db, principal, AuditAction.SCHOOL_UPDATED)
        await self.log(db, principal, AuditAction.PLAN_CHANGED)
        await self.log(db, operator, AuditAction.PLAN_CHANGED)

        response = await client.get("/api/audit-logs/stats", headers=auth_header(principal))

        assert response.json() == {
            "total": 3,
            "by_action": {"SCHOOL_UPDATED": 1, "PLAN_CHANGED": 2},
            "by_role": {"PRINCIPAL": 2, "OPERATOR": 1},
        }

    async def test_teacher_cannot_read(self, client: AsyncClient, teacher_user):
        response = await client.get("/api/audit-logs", headers=auth_header(teacher_user))

        assert response.status_code == 403

    async def test_entries_are_immutable(self, db, principal):
        await self.log(db, principal, AuditAction.SCHOOL_UPDATED)
        entry = (await db.execute(select(AuditLog))).scalar_one()

        entry.description = "rewritten"
        with pytest.raises(AuditLogImmutableError):
            await db.flush()
        await db.rollback()

        entry = (await db.execute(select(AuditLog))).scalar_one()
        await db.delete(entry)
        with pytest.raises(AuditLogImmutableError):
            await db.flush()
