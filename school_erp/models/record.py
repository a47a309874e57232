"""Academic history and transfer certificate models."""

from datetime import date
from enum import Enum
from uuid import UUID

from sqlalchemy import JSON, Date, ForeignKey, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from school_erp.core.database import BaseModel


class HistoryStatus(str, Enum):
    COMPLETED = "Completed"
    PROMOTED = "Promoted"
    RETAINED = "Retained"
    LEFT = "Left"


class AcademicHistory(BaseModel):
    """Where a student ended up at the close of one session."""

    __tablename__ = "academic_history"
    __table_args__ = (
        UniqueConstraint("student_id", "session_id", "school_id", name="uq_history_student_session"),
    )

    school_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("schools.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    session_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("academic_sessions.id", ondelete="CASCADE"),
        nullable=False,
    )
    student_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("students.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    class_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("school_classes.id", ondelete="CASCADE"),
        nullable=False,
    )
    section_id: Mapped[UUID | None] = mapped_column(Uuid, ForeignKey("sections.id", ondelete="SET NULL"))
    roll_number: Mapped[str | None] = mapped_column(String(50))
    result_summary: Mapped[dict | None] = mapped_column(JSON)
    attendance_summary: Mapped[dict | None] = mapped_column(JSON)
    status: Mapped[HistoryStatus] = mapped_column(String(20), nullable=False)


class TransferCertificate(BaseModel):
    """Issued once when a student leaves the school."""

    __tablename__ = "transfer_certificates"
    __table_args__ = (
        UniqueConstraint("student_id", "school_id", name="uq_tc_student"),
    )

    school_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("schools.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    session_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("academic_sessions.id", ondelete="CASCADE"),
        nullable=False,
    )
    student_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("students.id", ondelete="CASCADE"),
        nullable=False,
    )
    last_class_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("school_classes.id", ondelete="CASCADE"),
        nullable=False,
    )
    tc_number: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    issue_date: Mapped[date] = mapped_column(Date, nullable=False)
    issued_by_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("users.id"), nullable=False)
