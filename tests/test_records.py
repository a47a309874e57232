"""Tests for promotion, transfer certificates and academic history."""

from datetime import date

import pytest_asyncio
from httpx import AsyncClient
from sqlalchemy import select

from school_erp.models.student import Student
from school_erp.models.user import User
from school_erp.schemas.academic import AcademicSessionCreate, SchoolClassCreate, SectionCreate
from school_erp.schemas.student import ParentCreate
from school_erp.services import academic as academic_service
from school_erp.services import student as student_service
from tests.conftest import PASSWORD, auth_header


@pytest_asyncio.fixture
async def next_session(db, school):
    return await academic_service.create_session(
        db,
        school.id,
        AcademicSessionCreate(name="2031-2032", start_date=date(2031, 4, 1), end_date=date(2032, 3, 31)),
    )


@pytest_asyncio.fixture
async def promoted_class(db, school, next_session):
    """Class 2 of the next session, with a section A."""
    school_class = await academic_service.create_class(
        db, school.id, next_session.id, SchoolClassCreate(name="Class 2", order=2)
    )
    await academic_service.create_section(db, school_class, SectionCreate(name="A"))
    return school_class


class TestPromotion:
    async def test_preview_without_results_retains(
        self, client: AsyncClient, principal, student, school_class, next_session, promoted_class
    ):
        response = await client.post(
            "/api/promotion/preview",
            json={"class_id": str(school_class.id), "to_session_id": str(next_session.id)},
            headers=auth_header(principal),
        )

        assert response.status_code == 200
        data = response.json()
        assert data["target_class_id"] == str(promoted_class.id)
        item = data["items"][0]
        assert item["student_id"] == str(student.id)
        assert item["promotion_status"] == "NOT_ELIGIBLE"
        assert item["action"] == "RETAIN"

    async def test_same_session_rejected(self, client: AsyncClient, principal, school_class, active_session):
        response = await client.post(
            "/api/promotion/preview",
            json={"class_id": str(school_class.id), "to_session_id": str(active_session.id)},
            headers=auth_header(principal),
        )

        assert response.status_code == 400

    async def test_execute_with_override(
        self, client: AsyncClient, db, principal, student, school_class, next_session, promoted_class
    ):
        response = await client.post(
            "/api/promotion/execute",
            json={
                "class_id": str(school_class.id),
                "to_session_id": str(next_session.id),
                "overrides": [{"student_id": str(student.id), "action": "PROMOTE"}],
            },
            headers=auth_header(principal),
        )

        assert response.status_code == 200
        assert response.json() == {"promoted": 1, "retained": 0, "completed": 0}

        rows = await db.execute(
            select(Student).where(Student.name == student.name).execution_options(populate_existing=True)
        )
        by_session = {s.session_id: s for s in rows.scalars().all()}
        assert by_session[student.session_id].status == "PROMOTED"
        assert by_session[next_session.id].status == "ACTIVE"
        assert by_session[next_session.id].class_id == promoted_class.id

        history = await client.get(
            f"/api/academic-history/students/{student.id}",
            headers=auth_header(principal),
        )
        assert [h["status"] for h in history.json()] == ["Promoted"]

    async def test_promotion_runs_once_per_student(
        self, client: AsyncClient, principal, student, school_class, next_session, promoted_class
    ):
        body = {"class_id": str(school_class.id), "to_session_id": str(next_session.id)}
        first = await client.post("/api/promotion/execute", json=body, headers=auth_header(principal))
        assert first.json()["retained"] == 1

        second = await client.post("/api/promotion/execute", json=body, headers=auth_header(principal))
        assert second.json() == {"promoted": 0, "retained": 0, "completed": 0}

    async def test_final_class_completes(self, client: AsyncClient, principal, student, school_class, next_session):
        """With no higher class in the target session, promotion means completion."""
        response = await client.post(
            "/api/promotion/execute",
            json={
                "class_id": str(school_class.id),
                "to_session_id": str(next_session.id),
                "overrides": [{"student_id": str(student.id), "action": "PROMOTE"}],
            },
            headers=auth_header(principal),
        )

        assert response.json()["completed"] == 1

    async def test_teacher_cannot_promote(self, client: AsyncClient, teacher_user, school_class, next_session):
        response = await client.post(
            "/api/promotion/preview",
            json={"class_id": str(school_class.id), "to_session_id": str(next_session.id)},
            headers=auth_header(teacher_user),
        )

        assert response.status_code == 403


class TestTransferCertificate:
    async def issue(self, client: AsyncClient, user, student_id):
        return await client.post(
            "/api/tc",
            json={"student_id": str(student_id), "reason": "Family relocating"},
            headers=auth_header(user),
        )

    async def test_issue_marks_student_left(self, client: AsyncClient, principal, student):
        response = await self.issue(client, principal, student.id)

        assert response.status_code == 201
        assert response.json()["tc_number"] == "TC-GVS-1"

        current = await client.get(f"/api/students/{student.id}", headers=auth_header(principal))
        assert current.json()["status"] == "LEFT"

        history = await client.get(
            f"/api/academic-history/students/{student.id}",
            headers=auth_header(principal),
        )
        assert history.json()[0]["status"] == "Left"

    async def test_only_active_students(self, client: AsyncClient, principal, student):
        await self.issue(client, principal, student.id)

        response = await self.issue(client, principal, student.id)

        assert response.status_code == 400
        assert response.json()["detail"] == "Student is not active"

    async def test_parent_downloads_pdf(self, client: AsyncClient, principal, parent_user, student):
        await self.issue(client, principal, student.id)

        response = await client.get(f"/api/tc/students/{student.id}/pdf", headers=auth_header(parent_user))

        assert response.status_code == 200
        assert response.headers["content-type"] == "application/pdf"
        assert response.content.startswith(b"%PDF")

    async def test_missing_tc(self, client: AsyncClient, principal, student):
        response = await client.get(f"/api/tc/students/{student.id}", headers=auth_header(principal))

        assert response.status_code == 404
        assert response.json()["detail"] == "TC not found"


class TestAcademicHistory:
    async def test_parent_sees_own_child(self, client: AsyncClient, parent_user, student):
        response = await client.get(f"/api/academic-history/students/{student.id}", headers=auth_header(parent_user))

        assert response.status_code == 200
        assert response.json() == []

    async def test_other_parent_denied(self, client: AsyncClient, db, school, student):
        stranger = await student_service.create_parent(
            db,
            school.id,
            ParentCreate(name="Stranger", mobile="+919833333333", password=PASSWORD),
        )
        stranger_user = await db.get(User, stranger.user_id)

        response = await client.get(f"/api/academic-history/students/{student.id}", headers=auth_header(stranger_user))

        assert response.status_code == 403
