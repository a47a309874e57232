"""Report schemas."""

from datetime import date
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel

from school_erp.models.record import HistoryStatus


class FeeCollectionReport(BaseModel):
    date_from: date | None = None
    date_to: date | None = None
    total_assigned: Decimal
    total_collected: Decimal
    total_due: Decimal
    collected_in_period: Decimal
    by_payment_mode: dict[str, Decimal]
    by_status: dict[str, int]
    payment_count: int


class ProfitLossReport(BaseModel):
    date_from: date | None = None
    date_to: date | None = None
    fee_income: Decimal
    exam_fee_income: Decimal
    total_income: Decimal
    expenses: Decimal
    salaries_paid: Decimal
    total_outgoing: Decimal
    net: Decimal


class ClassAttendance(BaseModel):
    class_id: UUID
    class_name: str
    present: int
    absent: int
    percentage: Decimal


class AttendanceReport(BaseModel):
    date_from: date | None = None
    date_to: date | None = None
    present: int
    absent: int
    percentage: Decimal
    classes: list[ClassAttendance]


class StatusCounts(BaseModel):
    session_id: UUID
    counts: dict[str, int]
    total: int


class StudentHistoryRow(BaseModel):
    student_id: UUID
    student_name: str
    class_id: UUID
    class_name: str
    roll_number: str | None = None
    status: HistoryStatus
    percentage: Decimal | None = None


class RetentionReport(BaseModel):
    session_id: UUID
    total: int
    students: list[StudentHistoryRow]


class TCReportRow(BaseModel):
    tc_number: str
    student_id: UUID
    student_name: str
    last_class_name: str
    issue_date: date
    reason: str


class TCReport(BaseModel):
    date_from: date | None = None
    date_to: date | None = None
    total: int
    certificates: list[TCReportRow]


class DashboardResponse(BaseModel):
    role: str
    counts: dict[str, int]
    amounts: dict[str, Decimal] = {}
