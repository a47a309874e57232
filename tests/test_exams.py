"""Tests for exams, marks entry, result publishing and admit cards."""

from decimal import Decimal

import pytest
import pytest_asyncio
from httpx import AsyncClient

from school_erp.core.permissions import Role
from school_erp.schemas.academic import SubjectCreate
from school_erp.schemas.student import StudentCreate
from school_erp.services import academic as academic_service
from school_erp.services import exam as exam_service
from school_erp.services import student as student_service
from tests.conftest import add_user, auth_header


@pytest_asyncio.fixture
async def exam(client: AsyncClient, principal, school_class) -> dict:
    response = await client.post(
        "/api/exams",
        json={
            "class_id": str(school_class.id),
            "name": "Half Yearly",
            "start_date": "2030-09-10",
            "end_date": "2030-09-20",
        },
        headers=auth_header(principal),
    )
    assert response.status_code == 201
    return response.json()


@pytest_asyncio.fixture
async def exam_paper(client: AsyncClient, principal, exam, subject, teacher_user) -> dict:
    """Mathematics, out of 100 with 33 to pass, marked by the class teacher."""
    response = await client.post(
        f"/api/exams/{exam['id']}/subjects",
        json={
            "subject_id": str(subject.id),
            "teacher_id": str(teacher_user.id),
            "max_marks": 100,
            "pass_marks": 33,
        },
        headers=auth_header(principal),
    )
    assert response.status_code == 201
    return response.json()


async def publish_exam(client: AsyncClient, user, exam: dict):
    return await client.patch(
        f"/api/exams/{exam['id']}/status",
        json={"status": "Published"},
        headers=auth_header(user),
    )


async def enter_marks(client: AsyncClient, user, exam: dict, student_id, subject_id, marks: str):
    return await client.post(
        f"/api/exams/{exam['id']}/results",
        json={
            "student_id": str(student_id),
            "marks": [{"subject_id": str(subject_id), "marks_obtained": marks}],
        },
        headers=auth_header(user),
    )


class TestGrading:
    @pytest.mark.parametrize(
        "percentage,grade",
        [("95", "A"), ("90", "A"), ("89.99", "B"), ("70", "C"), ("60", "D"), ("59.5", "F")],
    )
    def test_grade_bands(self, percentage, grade):
        assert exam_service.grade_for(Decimal(percentage)) == grade

    def test_failing_one_paper_fails_the_result(self):
        summary = exam_service.summarize_marks(
            [
                {"marks_obtained": 90, "max_marks": 100, "is_pass": True},
                {"marks_obtained": 20, "max_marks": 100, "is_pass": False},
            ]
        )

        assert summary["percentage"] == Decimal("55.00")
        assert summary["grade"] == "F"
        assert summary["overall_status"] == "FAIL"
        assert summary["promotion_status"] == "NOT_ELIGIBLE"


class TestExamLifecycle:
    async def test_create_exam_in_draft(self, exam, active_session):
        assert exam["status"] == "Draft"
        assert exam["session_id"] == str(active_session.id)

    async def test_duplicate_exam_name(self, client: AsyncClient, principal, exam, school_class):
        response = await client.post(
            "/api/exams",
            json={
                "class_id": str(school_class.id),
                "name": "Half Yearly",
                "start_date": "2030-10-10",
                "end_date": "2030-10-20",
            },
            headers=auth_header(principal),
        )

        assert response.status_code == 409

    async def test_status_moves_forward_only(self, client: AsyncClient, principal, exam):
        published = await publish_exam(client, principal, exam)
        assert published.status_code == 200
        assert published.json()["status"] == "Published"

        back = await client.patch(
            f"/api/exams/{exam['id']}/status",
            json={"status": "Draft"},
            headers=auth_header(principal),
        )
        assert back.status_code == 400

    async def test_no_subjects_after_publish(self, client: AsyncClient, principal, exam, subject, teacher_user):
        await publish_exam(client, principal, exam)

        response = await client.post(
            f"/api/exams/{exam['id']}/subjects",
            json={
                "subject_id": str(subject.id),
                "teacher_id": str(teacher_user.id),
                "max_marks": 100,
                "pass_marks": 33,
            },
            headers=auth_header(principal),
        )

        assert response.status_code == 400
        assert response.json()["detail"] == "Cannot add subjects after exam is published"

    async def test_paper_needs_a_teacher(self, client: AsyncClient, principal, exam, subject, operator):
        response = await client.post(
            f"/api/exams/{exam['id']}/subjects",
            json={
                "subject_id": str(subject.id),
                "teacher_id": str(operator.id),
                "max_marks": 100,
                "pass_marks": 33,
            },
            headers=auth_header(principal),
        )

        assert response.status_code == 400

    async def test_pass_marks_above_max(self, client: AsyncClient, principal, exam, subject, teacher_user):
        response = await client.post(
            f"/api/exams/{exam['id']}/subjects",
            json={
                "subject_id": str(subject.id),
                "teacher_id": str(teacher_user.id),
                "max_marks": 50,
                "pass_marks": 60,
            },
            headers=auth_header(principal),
        )

        assert response.status_code == 422


class TestResults:
    async def test_marks_need_published_exam(
        self, client: AsyncClient, teacher_user, exam, exam_paper, student, subject
    ):
        response = await enter_marks(client, teacher_user, exam, student.id, subject.id, "75")

        assert response.status_code == 400
        assert response.json()["detail"] == "Results can only be entered after exam is published"

    async def test_teacher_enters_marks(
        self, client: AsyncClient, principal, teacher_user, exam, exam_paper, student, subject
    ):
        await publish_exam(client, principal, exam)

        response = await enter_marks(client, teacher_user, exam, student.id, subject.id, "85")

        assert response.status_code == 200
        data = response.json()
        assert Decimal(data["percentage"]) == Decimal("85")
        assert data["grade"] == "B"
        assert data["overall_status"] == "PASS"
        assert data["promotion_status"] == "ELIGIBLE"
        assert data["status"] == "Draft"

    async def test_marks_above_max(
        self, client: AsyncClient, principal, teacher_user, exam, exam_paper, student, subject
    ):
        await publish_exam(client, principal, exam)

        response = await enter_marks(client, teacher_user, exam, student.id, subject.id, "101")

        assert response.status_code == 400

    async def test_teacher_limited_to_own_paper(
        self, client: AsyncClient, db, principal, teacher_user, exam, exam_paper, school, school_class, student
    ):
        science = await academic_service.create_subject(db, school_class, SubjectCreate(name="Science", code="SCI"))
        science_teacher = await add_user(db, Role.TEACHER, school.id, "Science Teacher", "science@gvs.test")
        await client.post(
            f"/api/exams/{exam['id']}/subjects",
            json={
                "subject_id": str(science.id),
                "teacher_id": str(science_teacher.id),
                "max_marks": 100,
                "pass_marks": 33,
            },
            headers=auth_header(principal),
        )
        await publish_exam(client, principal, exam)

        response = await enter_marks(client, teacher_user, exam, student.id, science.id, "50")

        assert response.status_code == 403
        assert response.json()["detail"] == "You are not authorized to enter marks for this subject"

        allowed = await enter_marks(client, science_teacher, exam, student.id, science.id, "50")
        assert allowed.status_code == 200

    async def test_published_result_is_locked(
        self, client: AsyncClient, principal, teacher_user, exam, exam_paper, student, subject
    ):
        await publish_exam(client, principal, exam)
        await enter_marks(client, teacher_user, exam, student.id, subject.id, "70")

        published = await client.post(
            f"/api/exams/{exam['id']}/results/{student.id}/publish",
            headers=auth_header(principal),
        )
        assert published.status_code == 200
        assert published.json()["rank"] == 1

        again = await enter_marks(client, teacher_user, exam, student.id, subject.id, "95")
        assert again.status_code == 400

        twice = await client.post(
            f"/api/exams/{exam['id']}/results/{student.id}/publish",
            headers=auth_header(principal),
        )
        assert twice.status_code == 400
        assert twice.json()["detail"] == "Result is already published"

    async def test_competition_ranking(
        self, client: AsyncClient, db, principal, teacher_user, exam, exam_paper,
        school, student, school_class, section, parent, subject,
    ):
        """Equal percentages share a rank and the next rank is skipped."""
        others = []
        for roll, name in (("2", "Kabir"), ("3", "Isha")):
            others.append(
                await student_service.create_student(
                    db,
                    school.id,
                    StudentCreate(
                        name=name,
                        roll_number=roll,
                        class_id=school_class.id,
                        section_id=section.id,
                        parent_id=parent.id,
                    ),
                )
            )
        await publish_exam(client, principal, exam)
        await enter_marks(client, teacher_user, exam, student.id, subject.id, "90")
        await enter_marks(client, teacher_user, exam, others[0].id, subject.id, "90")
        await enter_marks(client, teacher_user, exam, others[1].id, subject.id, "40")

        summary = await client.post(f"/api/exams/{exam['id']}/results/publish", headers=auth_header(principal))
        assert summary.json()["published"] == 3

        results = await client.get(f"/api/exams/{exam['id']}/results", headers=auth_header(principal))
        ranks = {r["student_id"]: r["rank"] for r in results.json()}
        assert ranks[str(student.id)] == 1
        assert ranks[str(others[0].id)] == 1
        assert ranks[str(others[1].id)] == 3

    async def test_parent_sees_only_published(
        self, client: AsyncClient, principal, teacher_user, parent_user, exam, exam_paper, student, subject
    ):
        await publish_exam(client, principal, exam)
        await enter_marks(client, teacher_user, exam, student.id, subject.id, "60")

        before = await client.get("/api/exams/results/me", headers=auth_header(parent_user))
        assert before.json() == []

        await client.post(f"/api/exams/{exam['id']}/results/publish", headers=auth_header(principal))
        after = await client.get("/api/exams/results/me", headers=auth_header(parent_user))
        assert len(after.json()) == 1
        assert after.json()[0]["grade"] == "D"


class TestExamFees:
    async def open_form(self, client: AsyncClient, principal, exam: dict, required: bool = True) -> dict:
        response = await client.post(
            "/api/exams/forms",
            json={
                "exam_id": exam["id"],
                "fee_amount": "250.00",
                "end_date": "2099-12-31",
                "is_payment_required": required,
            },
            headers=auth_header(principal),
        )
        assert response.status_code == 201
        return response.json()

    async def test_admit_card_requires_paid_fee(self, client: AsyncClient, principal, exam, student):
        form = await self.open_form(client, principal, exam)

        blocked = await client.post(
            f"/api/exams/{exam['id']}/admit-cards",
            json={"student_id": str(student.id), "exam_center": "Main Hall"},
            headers=auth_header(principal),
        )
        assert blocked.status_code == 403
        assert blocked.json()["detail"] == "Exam fee not paid"

        paid = await client.post(
            "/api/exams/payments/manual",
            json={"student_id": str(student.id), "exam_form_id": form["id"]},
            headers=auth_header(principal),
        )
        assert paid.status_code == 201
        assert paid.json()["status"] == "Paid"
        assert Decimal(paid.json()["amount"]) == Decimal("250")

        card = await client.post(
            f"/api/exams/{exam['id']}/admit-cards",
            json={"student_id": str(student.id), "exam_center": "Main Hall"},
            headers=auth_header(principal),
        )
        assert card.status_code == 201
        assert card.json()["roll_number"] == student.roll_number

    async def test_duplicate_exam_payment(self, client: AsyncClient, principal, exam, student):
        form = await self.open_form(client, principal, exam)
        body = {"student_id": str(student.id), "exam_form_id": form["id"]}

        await client.post("/api/exams/payments/manual", json=body, headers=auth_header(principal))
        response = await client.post("/api/exams/payments/manual", json=body, headers=auth_header(principal))

        assert response.status_code == 409

    async def test_admit_card_without_fee(self, client: AsyncClient, principal, parent_user, exam, student):
        await self.open_form(client, principal, exam, required=False)

        card = await client.post(
            f"/api/exams/{exam['id']}/admit-cards",
            json={"student_id": str(student.id)},
            headers=auth_header(principal),
        )
        assert card.status_code == 201

        duplicate = await client.post(
            f"/api/exams/{exam['id']}/admit-cards",
            json={"student_id": str(student.id)},
            headers=auth_header(principal),
        )
        assert duplicate.status_code == 409

        pdf = await client.get(
            f"/api/exams/admit-cards/{card.json()['id']}/pdf",
            headers=auth_header(parent_user),
        )
        assert pdf.status_code == 200
        assert pdf.content.startswith(b"%PDF")

    async def test_exam_module_disabled(self, client: AsyncClient, super_admin, principal, school):
        await client.put(
            f"/api/schools/{school.id}/modules",
            json={"modules": {"exam": False}},
            headers=auth_header(super_admin),
        )

        response = await client.get("/api/exams", headers=auth_header(principal))

        assert response.status_code == 403
        assert response.json()["module"] == "exam"
