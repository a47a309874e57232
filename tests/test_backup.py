"""Tests for backup encryption, backup files and restore."""

import json
import os
from datetime import datetime, timedelta, timezone

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select

from school_erp.core.encryption import BackupCryptoError, checksum, decrypt_payload, encrypt_payload
from school_erp.models.backup import ArchivedRecord
from school_erp.models.student import Student
from school_erp.schemas.student import StudentCreate
from school_erp.services import backup as backup_service
from school_erp.services import student as student_service
from tests.conftest import auth_header

KEY = b"k" * 32


class TestEncryption:
    def test_round_trip(self):
        sealed = encrypt_payload(b'{"tables":{}}', KEY)

        assert sealed["checksum"] == checksum(b'{"tables":{}}')
        assert len(bytes.fromhex(sealed["iv"])) == 12
        assert len(bytes.fromhex(sealed["authTag"])) == 16
        assert decrypt_payload(sealed["encrypted"], sealed["iv"], sealed["authTag"], KEY) == b'{"tables":{}}'

    def test_fresh_iv_each_time(self):
        assert encrypt_payload(b"same", KEY)["encrypted"] != encrypt_payload(b"same", KEY)["encrypted"]

    def test_wrong_key(self):
        sealed = encrypt_payload(b"secret", KEY)

        with pytest.raises(BackupCryptoError):
            decrypt_payload(sealed["encrypted"], sealed["iv"], sealed["authTag"], b"x" * 32)

    def test_tampered_tag(self):
        sealed = encrypt_payload(b"secret", KEY)
        tag = ("0" if sealed["authTag"][0] != "0" else "1") + sealed["authTag"][1:]

        with pytest.raises(BackupCryptoError):
            decrypt_payload(sealed["encrypted"], sealed["iv"], tag, KEY)

    def test_key_must_be_32_bytes(self):
        with pytest.raises(BackupCryptoError):
            encrypt_payload(b"secret", b"short")


class TestBackupFiles:
    def test_filename(self):
        school_id = "6f1c2a9e-0000-4000-8000-000000000001"
        name = backup_service.backup_filename(school_id, datetime(2030, 6, 1, 2, 0, 5, 123, tzinfo=timezone.utc))

        assert name == f"backup_{school_id}_20300601T020005000123Z.enc"

    def test_cleanup_removes_expired_files(self, tmp_path):
        now = datetime.now(timezone.utc)
        old = tmp_path / "backup_a_old.enc"
        recent = tmp_path / "backup_a_new.enc"
        unrelated = tmp_path / "notes.txt"
        for path in (old, recent, unrelated):
            path.write_text("x")
        stale = (now - timedelta(days=40)).timestamp()
        os.utime(old, (stale, stale))
        os.utime(unrelated, (stale, stale))

        removed = backup_service.cleanup_old_backups(str(tmp_path), retention_days=30, now=now)

        assert removed == ["backup_a_old.enc"]
        assert recent.exists()
        assert unrelated.exists()

    def test_cleanup_missing_directory(self, tmp_path):
        assert backup_service.cleanup_old_backups(str(tmp_path / "nothing")) == []

    @pytest.mark.parametrize(
        "now,expected",
        [
            (datetime(2030, 6, 1, 1, 30, tzinfo=timezone.utc), 1800.0),
            (datetime(2030, 6, 1, 2, 0, tzinfo=timezone.utc), 86400.0),
            (datetime(2030, 6, 1, 3, 0, tzinfo=timezone.utc), 82800.0),
        ],
    )
    def test_next_run(self, now, expected):
        assert backup_service.seconds_until_next_run(2, now) == expected

    async def test_create_backup(self, client: AsyncClient, super_admin, school, student, backup_dir):
        response = await client.post(f"/api/backups/schools/{school.id}", headers=auth_header(super_admin))

        assert response.status_code == 201
        data = response.json()
        assert data["status"] == "COMPLETED"
        envelope = json.loads((backup_dir / data["filename"]).read_text())
        assert envelope["schoolId"] == str(school.id)
        assert envelope["version"] == "1.0"
        assert envelope["checksum"] == data["checksum"]

    async def test_payload_is_deterministic(self, db, school, student):
        first = await backup_service.collect_tables(db, school.id)
        second = await backup_service.collect_tables(db, school.id)

        assert backup_service.serialize_payload(school.id, "t", first) == backup_service.serialize_payload(
            school.id, "t", second
        )
        assert len(first["students"]) == 1
        assert "audit_logs" not in first

    async def test_principal_sees_own_backups(self, client: AsyncClient, super_admin, principal, school, other_school):
        await client.post(f"/api/backups/schools/{school.id}", headers=auth_header(super_admin))
        await client.post(f"/api/backups/schools/{other_school[0].id}", headers=auth_header(super_admin))

        response = await client.get("/api/backups", headers=auth_header(principal))

        assert [b["school_id"] for b in response.json()] == [str(school.id)]

    async def test_rate_limited(self, client: AsyncClient, super_admin, school):
        for _ in range(3):
            response = await client.post(f"/api/backups/schools/{school.id}", headers=auth_header(super_admin))
            assert response.status_code == 201

        response = await client.post(f"/api/backups/schools/{school.id}", headers=auth_header(super_admin))

        assert response.status_code == 429
        assert "Retry-After" in response.headers

    async def test_principal_cannot_back_up_others(self, client: AsyncClient, principal, other_school):
        response = await client.post(f"/api/backups/schools/{other_school[0].id}", headers=auth_header(principal))

        assert response.status_code == 403


class TestRestore:
    async def download(self, client: AsyncClient, principal) -> dict:
        response = await client.get("/api/backups/download", headers=auth_header(principal))
        assert response.status_code == 200
        return response.json()

    async def test_preview(self, client: AsyncClient, super_admin, principal, student):
        envelope = await self.download(client, principal)

        response = await client.post(
            "/api/backups/restore/preview",
            json={"backup": envelope},
            headers=auth_header(super_admin),
        )

        assert response.status_code == 200
        data = response.json()
        assert data["school_name"] == "Gvs Public School"
        assert data["tables"]["students"] == 1
        assert data["tables"]["schools"] == 1

    async def test_tampered_backup_rejected(self, client: AsyncClient, super_admin, principal, student):
        envelope = await self.download(client, principal)
        first = envelope["encrypted"][0]
        envelope["encrypted"] = ("0" if first != "0" else "1") + envelope["encrypted"][1:]

        response = await client.post(
            "/api/backups/restore/preview",
            json={"backup": envelope},
            headers=auth_header(super_admin),
        )

        assert response.status_code == 400

    async def test_execute_needs_confirmation(self, client: AsyncClient, super_admin, principal):
        envelope = await self.download(client, principal)

        response = await client.post(
            "/api/backups/restore/execute",
            json={"backup": envelope},
            headers=auth_header(super_admin),
        )

        assert response.status_code == 400

    async def test_execute_replaces_school_data(
        self, client: AsyncClient, db, super_admin, school, school_class, section, parent, student
    ):
        created = await client.post(f"/api/backups/schools/{school.id}", headers=auth_header(super_admin))
        await student_service.create_student(
            db,
            school.id,
            StudentCreate(
                name="Late Admission",
                roll_number="9",
                class_id=school_class.id,
                section_id=section.id,
                parent_id=parent.id,
            ),
        )

        response = await client.post(
            "/api/backups/restore/execute",
            json={"backup_id": created.json()["id"], "confirm_restore": True},
            headers=auth_header(super_admin),
        )

        assert response.status_code == 200
        data = response.json()
        assert data["restored"]["students"] == 1
        assert data["restore_version"].startswith(str(school.id))

        names = (await db.execute(select(Student.name).where(Student.school_id == school.id))).scalars().all()
        assert names == ["Meera Sharma"]

        archived = await db.execute(
            select(func.count())
            .select_from(ArchivedRecord)
            .where(ArchivedRecord.table_name == "students", ArchivedRecord.restore_version == data["restore_version"])
        )
        assert archived.scalar() == 2

    async def test_other_school_untouched(
        self, client: AsyncClient, db, super_admin, principal, student, other_school
    ):
        envelope = await self.download(client, principal)
        other_principal_id = other_school[1].id

        response = await client.post(
            "/api/backups/restore/execute",
            json={"backup": envelope, "confirm_restore": True},
            headers=auth_header(super_admin),
        )

        assert response.status_code == 200
        from_other = await client.get("/api/auth/me", headers=auth_header(other_school[1]))
        assert from_other.json()["id"] == str(other_principal_id)

    async def test_principal_cannot_restore(self, client: AsyncClient, principal):
        envelope = await self.download(client, principal)

        response = await client.post(
            "/api/backups/restore/execute",
            json={"backup": envelope, "confirm_restore": True},
            headers=auth_header(principal),
        )

        assert response.status_code == 403
