"""Attendance schemas."""

from datetime import date, datetime
from uuid import UUID

from pydantic import BaseModel, Field

from school_erp.models.attendance import AttendanceStatus


class StudentMark(BaseModel):
    student_id: UUID
    status: AttendanceStatus


class DailyAttendanceMark(BaseModel):
    """Mark a whole class for one day. Re-marking overwrites."""

    class_id: UUID
    attendance_date: date
    records: list[StudentMark] = Field(..., min_length=1)


class SubjectAttendanceMark(BaseModel):
    subject_id: UUID
    attendance_date: date
    period: int = Field(1, ge=1, le=12)
    records: list[StudentMark] = Field(..., min_length=1)


class TeacherMark(BaseModel):
    teacher_id: UUID  # the staff member's user id
    status: AttendanceStatus
    check_in: datetime | None = None
    check_out: datetime | None = None


class TeacherAttendanceMark(BaseModel):
    attendance_date: date
    records: list[TeacherMark] = Field(..., min_length=1)


class DailyAttendanceResponse(BaseModel):
    id: UUID
    student_id: UUID
    class_id: UUID
    attendance_date: date
    status: AttendanceStatus
    marked_by_id: UUID

    model_config = {"from_attributes": True}


class SubjectAttendanceResponse(BaseModel):
    id: UUID
    student_id: UUID
    subject_id: UUID
    attendance_date: date
    period: int
    status: AttendanceStatus
    marked_by_id: UUID

    model_config = {"from_attributes": True}


class TeacherAttendanceResponse(BaseModel):
    id: UUID
    teacher_id: UUID
    attendance_date: date
    status: AttendanceStatus
    check_in: datetime | None
    check_out: datetime | None
    marked_by_id: UUID

    model_config = {"from_attributes": True}


class AttendanceSummary(BaseModel):
    student_id: UUID
    total_days: int
    present_days: int
    absent_days: int
    percentage: float
