"""Tests for authentication endpoints."""

from httpx import AsyncClient
from sqlalchemy import select

from school_erp.models.audit import AuditAction, AuditLog
from school_erp.models.school import SchoolStatus
from school_erp.models.user import UserStatus
from tests.conftest import PASSWORD, auth_header


class TestLogin:
    """Tests for login endpoints."""

    async def test_login_with_email(self, client: AsyncClient, principal):
        response = await client.post(
            "/api/auth/login",
            json={"email": "principal@gvs.test", "password": PASSWORD},
        )

        assert response.status_code == 200
        data = response.json()
        assert "access_token" in data
        assert "refresh_token" in data
        assert data["token_type"] == "bearer"
        assert data["user"]["role"] == "PRINCIPAL"

    async def test_login_with_mobile(self, client: AsyncClient, parent):
        """Mobile numbers are normalized before lookup."""
        response = await client.post(
            "/api/auth/login",
            json={"mobile": "+91 98000 00001", "password": PASSWORD},
        )

        assert response.status_code == 200
        assert response.json()["user"]["role"] == "PARENT"

    async def test_login_wrong_password(self, client: AsyncClient, principal):
        response = await client.post(
            "/api/auth/login",
            json={"email": "principal@gvs.test", "password": "wrongpassword"},
        )

        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid credentials"

    async def test_login_unknown_user(self, client: AsyncClient, setup_database):
        response = await client.post(
            "/api/auth/login",
            json={"email": "nobody@gvs.test", "password": PASSWORD},
        )

        assert response.status_code == 401

    async def test_login_requires_identifier(self, client: AsyncClient, setup_database):
        response = await client.post("/api/auth/login", json={"password": PASSWORD})

        assert response.status_code == 422

    async def test_login_inactive_user(self, client: AsyncClient, db, principal):
        principal.status = UserStatus.INACTIVE
        await db.commit()

        response = await client.post(
            "/api/auth/login",
            json={"email": "principal@gvs.test", "password": PASSWORD},
        )

        assert response.status_code == 403
        assert response.json()["detail"] == "User account is inactive"

    async def test_login_inactive_school(self, client: AsyncClient, db, school, principal):
        school.status = SchoolStatus.INACTIVE
        await db.commit()

        response = await client.post(
            "/api/auth/login",
            json={"email": "principal@gvs.test", "password": PASSWORD},
        )

        assert response.status_code == 403
        assert response.json()["detail"] == "School is inactive"

    async def test_login_is_audited(self, client: AsyncClient, db, principal):
        await client.post(
            "/api/auth/login",
            json={"email": "principal@gvs.test", "password": PASSWORD},
        )

        result = await db.execute(select(AuditLog).where(AuditLog.action == AuditAction.LOGIN))
        entry = result.scalar_one()
        assert entry.user_id == principal.id
        assert entry.school_id == principal.school_id

    async def test_login_rate_limited(self, client: AsyncClient, principal):
        """Five attempts per window, then 429 with rate limit headers."""
        for _ in range(5):
            response = await client.post(
                "/api/auth/login",
                json={"email": "principal@gvs.test", "password": "wrongpassword"},
            )
            assert response.status_code == 401

        response = await client.post(
            "/api/auth/login",
            json={"email": "principal@gvs.test", "password": PASSWORD},
        )

        assert response.status_code == 429
        assert response.headers["X-RateLimit-Remaining"] == "0"
        assert "Retry-After" in response.headers

    async def test_rate_limit_per_forwarded_client(self, client: AsyncClient, principal):
        """Clients behind a proxy are counted by their X-Forwarded-For address."""
        for _ in range(5):
            await client.post(
                "/api/auth/login",
                json={"email": "principal@gvs.test", "password": "wrongpassword"},
                headers={"X-Forwarded-For": "203.0.113.7"},
            )

        blocked = await client.post(
            "/api/auth/login",
            json={"email": "principal@gvs.test", "password": PASSWORD},
            headers={"X-Forwarded-For": "203.0.113.7"},
        )
        other = await client.post(
            "/api/auth/login",
            json={"email": "principal@gvs.test", "password": PASSWORD},
            headers={"X-Forwarded-For": "198.51.100.20, 10.0.0.1"},
        )

        assert blocked.status_code == 429
        assert other.status_code == 200


class TestRefresh:
    """Tests for token refresh endpoint."""

    async def test_refresh_success(self, client: AsyncClient, principal):
        login_response = await client.post(
            "/api/auth/login",
            json={"email": "principal@gvs.test", "password": PASSWORD},
        )
        refresh_token = login_response.json()["refresh_token"]

        response = await client.post("/api/auth/refresh", json={"refresh_token": refresh_token})

        assert response.status_code == 200
        assert "access_token" in response.json()

    async def test_refresh_invalid_token(self, client: AsyncClient, setup_database):
        response = await client.post("/api/auth/refresh", json={"refresh_token": "invalid-token"})

        assert response.status_code == 401

    async def test_refresh_with_access_token(self, client: AsyncClient, principal):
        """An access token cannot be used for refresh."""
        access_token = auth_header(principal)["Authorization"].split(" ", 1)[1]

        response = await client.post("/api/auth/refresh", json={"refresh_token": access_token})

        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid refresh token"


class TestMe:
    async def test_me(self, client: AsyncClient, principal):
        response = await client.get("/api/auth/me", headers=auth_header(principal))

        assert response.status_code == 200
        assert response.json()["email"] == "principal@gvs.test"

    async def test_me_without_token(self, client: AsyncClient, setup_database):
        response = await client.get("/api/auth/me")

        assert response.status_code == 401

    async def test_change_password(self, client: AsyncClient, principal):
        response = await client.post(
            "/api/auth/change-password",
            json={"current_password": PASSWORD, "new_password": "newpassword1"},
            headers=auth_header(principal),
        )
        assert response.status_code == 204

        login = await client.post(
            "/api/auth/login",
            json={"email": "principal@gvs.test", "password": "newpassword1"},
        )
        assert login.status_code == 200

    async def test_change_password_wrong_current(self, client: AsyncClient, principal):
        response = await client.post(
            "/api/auth/change-password",
            json={"current_password": "notmypassword", "new_password": "newpassword1"},
            headers=auth_header(principal),
        )

        assert response.status_code == 400
