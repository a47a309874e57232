"""Tests for sessions, classes, admissions and parent access."""

from httpx import AsyncClient
from sqlalchemy import select

from school_erp.core.permissions import Role
from school_erp.models.academic import AcademicSession
from school_erp.models.user import User
from school_erp.schemas.student import ParentCreate
from school_erp.services import student as student_service
from tests.conftest import PASSWORD, add_user, auth_header


class TestSessions:
    async def test_only_one_active_session(self, client: AsyncClient, db, principal, school, active_session):
        response = await client.post(
            "/api/sessions",
            json={
                "name": "2030-2031",
                "start_date": "2030-04-01",
                "end_date": "2031-03-31",
                "is_active": True,
            },
            headers=auth_header(principal),
        )
        assert response.status_code == 201

        result = await db.execute(
            select(AcademicSession).where(
                AcademicSession.school_id == school.id,
                AcademicSession.is_active.is_(True),
            )
        )
        active = result.scalars().all()
        assert [s.name for s in active] == ["2030-2031"]

    async def test_activate_session(self, client: AsyncClient, principal, active_session):
        created = await client.post(
            "/api/sessions",
            json={"name": "2030-2031", "start_date": "2030-04-01", "end_date": "2031-03-31"},
            headers=auth_header(principal),
        )
        assert created.json()["is_active"] is False

        response = await client.post(
            f"/api/sessions/{created.json()['id']}/activate",
            headers=auth_header(principal),
        )
        assert response.status_code == 200

        current = await client.get("/api/sessions/active", headers=auth_header(principal))
        assert current.json()["name"] == "2030-2031"

    async def test_end_before_start_rejected(self, client: AsyncClient, principal):
        response = await client.post(
            "/api/sessions",
            json={"name": "Bad", "start_date": "2030-04-01", "end_date": "2030-03-31"},
            headers=auth_header(principal),
        )

        assert response.status_code == 422

    async def test_operator_cannot_create_session(self, client: AsyncClient, operator):
        response = await client.post(
            "/api/sessions",
            json={"name": "2030-2031", "start_date": "2030-04-01", "end_date": "2031-03-31"},
            headers=auth_header(operator),
        )

        assert response.status_code == 403


class TestAdmissions:
    async def test_admit_student(self, client: AsyncClient, principal, school_class, section, parent, active_session):
        response = await client.post(
            "/api/students",
            json={
                "name": "Arjun Verma",
                "roll_number": "7",
                "class_id": str(school_class.id),
                "section_id": str(section.id),
                "parent_id": str(parent.id),
                "gender": "Male",
            },
            headers=auth_header(principal),
        )

        assert response.status_code == 201
        data = response.json()
        assert data["session_id"] == str(active_session.id)
        assert data["status"] == "ACTIVE"

    async def test_roll_number_unique_per_class(self, client: AsyncClient, principal, student, school_class, section, parent):
        response = await client.post(
            "/api/students",
            json={
                "name": "Second Student",
                "roll_number": student.roll_number,
                "class_id": str(school_class.id),
                "section_id": str(section.id),
                "parent_id": str(parent.id),
            },
            headers=auth_header(principal),
        )

        assert response.status_code == 400
        assert "already exists" in response.json()["detail"]

    async def test_student_limit(self, client: AsyncClient, db, principal, school, student, school_class, section, parent):
        school.limits = {**school.limits, "student_limit": 1}
        await db.commit()

        response = await client.post(
            "/api/students",
            json={
                "name": "Over Limit",
                "roll_number": "99",
                "class_id": str(school_class.id),
                "section_id": str(section.id),
                "parent_id": str(parent.id),
            },
            headers=auth_header(principal),
        )

        assert response.status_code == 403
        data = response.json()
        assert data["code"] == "LIMIT_EXCEEDED"
        assert data["current"] == 1
        assert data["limit"] == 1
        assert "suggestion" in data

    async def test_parent_from_other_school(self, client: AsyncClient, principal, school_class, section, other_school, db):
        outsider = await student_service.create_parent(
            db,
            other_school[0].id,
            ParentCreate(name="Outsider", mobile="+919811111111", password=PASSWORD),
        )

        response = await client.post(
            "/api/students",
            json={
                "name": "Mixed Up",
                "roll_number": "12",
                "class_id": str(school_class.id),
                "section_id": str(section.id),
                "parent_id": str(outsider.id),
            },
            headers=auth_header(principal),
        )

        assert response.status_code == 404
        assert response.json()["detail"] == "Parent not found"

    async def test_concurrent_duplicate_roll_number(
        self, client: AsyncClient, monkeypatch, principal, student, school_class, section, parent
    ):
        """A duplicate that slips past the pre-check is caught by the unique index."""

        async def not_taken(*args, **kwargs):
            return False

        monkeypatch.setattr(student_service, "roll_number_taken", not_taken)

        response = await client.post(
            "/api/students",
            json={
                "name": "Racing Student",
                "roll_number": student.roll_number,
                "class_id": str(school_class.id),
                "section_id": str(section.id),
                "parent_id": str(parent.id),
            },
            headers=auth_header(principal),
        )

        assert response.status_code == 409
        assert response.json()["detail"] == "Duplicate entry or conflicting reference"

    async def test_student_login_from_other_school(
        self, client: AsyncClient, db, principal, school, school_class, section, parent, other_school
    ):
        outsider = await add_user(db, Role.STUDENT, other_school[0].id, "Outsider Student", "kid@oth.test")
        staff = await add_user(db, Role.OPERATOR, school.id, "Office Operator", "operator@gvs.test")

        for user in (outsider, staff):
            response = await client.post(
                "/api/students",
                json={
                    "name": "Mixed Up",
                    "roll_number": "12",
                    "class_id": str(school_class.id),
                    "section_id": str(section.id),
                    "parent_id": str(parent.id),
                    "user_id": str(user.id),
                },
                headers=auth_header(principal),
            )

            assert response.status_code == 404
            assert response.json()["detail"] == "User not found"

    async def test_student_login_linked(self, client: AsyncClient, db, principal, school, school_class, section, parent):
        login = await add_user(db, Role.STUDENT, school.id, "Meera Login", "meera@gvs.test")

        response = await client.post(
            "/api/students",
            json={
                "name": "Meera Sharma",
                "roll_number": "12",
                "class_id": str(school_class.id),
                "section_id": str(section.id),
                "parent_id": str(parent.id),
                "user_id": str(login.id),
            },
            headers=auth_header(principal),
        )

        assert response.status_code == 201
        assert response.json()["user_id"] == str(login.id)

    async def test_status_change(self, client: AsyncClient, principal, student):
        response = await client.patch(
            f"/api/students/{student.id}/status",
            json={"status": "LEFT"},
            headers=auth_header(principal),
        )

        assert response.status_code == 200
        assert response.json()["status"] == "LEFT"


class TestParentAccess:
    async def test_parent_lists_children(self, client: AsyncClient, parent_user, student):
        response = await client.get("/api/parents/me/children", headers=auth_header(parent_user))

        assert response.status_code == 200
        assert [c["id"] for c in response.json()] == [str(student.id)]

    async def test_parent_reads_own_child(self, client: AsyncClient, parent_user, student):
        response = await client.get(f"/api/students/{student.id}", headers=auth_header(parent_user))

        assert response.status_code == 200

    async def test_parent_cannot_read_other_child(
        self, client: AsyncClient, db, school, student, school_class, section
    ):
        stranger = await student_service.create_parent(
            db,
            school.id,
            ParentCreate(name="Stranger", mobile="+919822222222", password=PASSWORD),
        )
        stranger_user = await db.get(User, stranger.user_id)

        response = await client.get(f"/api/students/{student.id}", headers=auth_header(stranger_user))

        assert response.status_code == 403

    async def test_parent_cannot_list_students(self, client: AsyncClient, parent_user, student):
        response = await client.get("/api/students", headers=auth_header(parent_user))

        assert response.status_code == 403
