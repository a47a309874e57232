"""Tests for student and staff attendance."""

from httpx import AsyncClient

from tests.conftest import auth_header


async def mark_daily(client: AsyncClient, user, class_id, student_id, day: str, status: str):
    return await client.post(
        "/api/attendance/daily",
        json={
            "class_id": str(class_id),
            "attendance_date": day,
            "records": [{"student_id": str(student_id), "status": status}],
        },
        headers=auth_header(user),
    )


class TestDailyAttendance:
    async def test_teacher_marks_class(self, client: AsyncClient, teacher_user, school_class, student):
        response = await mark_daily(client, teacher_user, school_class.id, student.id, "2030-06-02", "PRESENT")

        assert response.status_code == 200
        assert response.json()[0]["status"] == "PRESENT"
        assert response.json()[0]["marked_by_id"] == str(teacher_user.id)

    async def test_remarking_overwrites(self, client: AsyncClient, principal, school_class, student):
        await mark_daily(client, principal, school_class.id, student.id, "2030-06-02", "PRESENT")
        await mark_daily(client, principal, school_class.id, student.id, "2030-06-02", "ABSENT")

        response = await client.get(
            "/api/attendance/daily",
            params={"class_id": str(school_class.id), "date": "2030-06-02"},
            headers=auth_header(principal),
        )

        assert len(response.json()) == 1
        assert response.json()[0]["status"] == "ABSENT"

    async def test_student_of_other_class_rejected(
        self, client: AsyncClient, principal, next_class, student
    ):
        response = await mark_daily(client, principal, next_class.id, student.id, "2030-06-02", "PRESENT")

        assert response.status_code == 400

    async def test_parent_cannot_mark(self, client: AsyncClient, parent_user, school_class, student):
        response = await mark_daily(client, parent_user, school_class.id, student.id, "2030-06-02", "PRESENT")

        assert response.status_code == 403

    async def test_summary(self, client: AsyncClient, principal, parent_user, school_class, student):
        for day, status in (("2030-06-02", "PRESENT"), ("2030-06-03", "PRESENT"), ("2030-06-04", "ABSENT"),
                            ("2030-06-05", "PRESENT")):
            await mark_daily(client, principal, school_class.id, student.id, day, status)

        response = await client.get(
            f"/api/attendance/students/{student.id}/summary",
            headers=auth_header(parent_user),
        )

        assert response.status_code == 200
        assert response.json() == {
            "student_id": str(student.id),
            "total_days": 4,
            "present_days": 3,
            "absent_days": 1,
            "percentage": 75.0,
        }


class TestSubjectAttendance:
    async def test_mark_period(self, client: AsyncClient, teacher_user, subject, student):
        response = await client.post(
            "/api/attendance/subject",
            json={
                "subject_id": str(subject.id),
                "attendance_date": "2030-06-02",
                "period": 3,
                "records": [{"student_id": str(student.id), "status": "ABSENT"}],
            },
            headers=auth_header(teacher_user),
        )

        assert response.status_code == 200
        assert response.json()[0]["period"] == 3

        listed = await client.get(
            "/api/attendance/subject",
            params={"subject_id": str(subject.id), "date": "2030-06-02"},
            headers=auth_header(teacher_user),
        )
        assert len(listed.json()) == 1


class TestStaffAttendance:
    async def test_mark_teacher(self, client: AsyncClient, principal, teacher_user):
        response = await client.post(
            "/api/attendance/teachers",
            json={
                "attendance_date": "2030-06-02",
                "records": [{"teacher_id": str(teacher_user.id), "status": "PRESENT"}],
            },
            headers=auth_header(principal),
        )

        assert response.status_code == 200

        listed = await client.get(
            "/api/attendance/teachers",
            params={"teacher_id": str(teacher_user.id)},
            headers=auth_header(principal),
        )
        assert [r["attendance_date"] for r in listed.json()] == ["2030-06-02"]

    async def test_parent_is_not_staff(self, client: AsyncClient, principal, parent_user):
        response = await client.post(
            "/api/attendance/teachers",
            json={
                "attendance_date": "2030-06-02",
                "records": [{"teacher_id": str(parent_user.id), "status": "PRESENT"}],
            },
            headers=auth_header(principal),
        )

        assert response.status_code == 400

    async def test_teacher_cannot_mark_staff(self, client: AsyncClient, teacher_user):
        response = await client.post(
            "/api/attendance/teachers",
            json={
                "attendance_date": "2030-06-02",
                "records": [{"teacher_id": str(teacher_user.id), "status": "PRESENT"}],
            },
            headers=auth_header(teacher_user),
        )

        assert response.status_code == 403
