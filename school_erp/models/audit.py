"""Audit log model. Rows are append-only."""

from enum import Enum
from uuid import UUID

from sqlalchemy import Index, String, Text, Uuid, event
from sqlalchemy.orm import Mapped, mapped_column

from school_erp.core.database import BaseModel


class AuditAction(str, Enum):
    LOGIN = "LOGIN"
    LOGOUT = "LOGOUT"
    PASSWORD_CHANGED = "PASSWORD_CHANGED"
    USER_CREATED = "USER_CREATED"
    USER_UPDATED = "USER_UPDATED"
    USER_DEACTIVATED = "USER_DEACTIVATED"
    ROLE_CHANGED = "ROLE_CHANGED"
    SCHOOL_CREATED = "SCHOOL_CREATED"
    SCHOOL_UPDATED = "SCHOOL_UPDATED"
    PLAN_CHANGED = "PLAN_CHANGED"
    SUBSCRIPTION_RENEWED = "SUBSCRIPTION_RENEWED"
    SESSION_CREATED = "SESSION_CREATED"
    SESSION_ACTIVATED = "SESSION_ACTIVATED"
    SESSION_UPDATED = "SESSION_UPDATED"
    CLASS_CREATED = "CLASS_CREATED"
    SECTION_CREATED = "SECTION_CREATED"
    SUBJECT_CREATED = "SUBJECT_CREATED"
    TEACHER_CREATED = "TEACHER_CREATED"
    TEACHER_UPDATED = "TEACHER_UPDATED"
    STUDENT_CREATED = "STUDENT_CREATED"
    STUDENT_UPDATED = "STUDENT_UPDATED"
    PARENT_CREATED = "PARENT_CREATED"
    EXAM_CREATED = "EXAM_CREATED"
    EXAM_UPDATED = "EXAM_UPDATED"
    EXAM_FORM_CREATED = "EXAM_FORM_CREATED"
    EXAM_PAYMENT_PROCESSED = "EXAM_PAYMENT_PROCESSED"
    RESULT_ENTERED = "RESULT_ENTERED"
    RESULT_PUBLISHED = "RESULT_PUBLISHED"
    ADMIT_CARD_GENERATED = "ADMIT_CARD_GENERATED"
    FEE_STRUCTURE_CREATED = "FEE_STRUCTURE_CREATED"
    FEE_STRUCTURE_UPDATED = "FEE_STRUCTURE_UPDATED"
    FEE_PAYMENT_PROCESSED = "FEE_PAYMENT_PROCESSED"
    ONLINE_PAYMENT_VERIFIED = "ONLINE_PAYMENT_VERIFIED"
    STUDENTS_PROMOTED = "STUDENTS_PROMOTED"
    TC_ISSUED = "TC_ISSUED"
    SALARY_PROFILE_CREATED = "SALARY_PROFILE_CREATED"
    SALARY_CALCULATED = "SALARY_CALCULATED"
    SALARY_PAYMENT_PROCESSED = "SALARY_PAYMENT_PROCESSED"
    EXPENSE_CREATED = "EXPENSE_CREATED"
    MAINTENANCE_TOGGLED = "MAINTENANCE_TOGGLED"
    BACKUP_CREATED = "BACKUP_CREATED"
    BACKUP_DOWNLOADED = "BACKUP_DOWNLOADED"
    BACKUP_FAILED = "BACKUP_FAILED"
    RESTORE_PREVIEW = "RESTORE_PREVIEW"
    RESTORE_EXECUTED = "RESTORE_EXECUTED"
    RESTORE_EXECUTION_FAILED = "RESTORE_EXECUTION_FAILED"


class EntityType(str, Enum):
    USER = "USER"
    SCHOOL = "SCHOOL"
    SESSION = "SESSION"
    CLASS = "CLASS"
    SECTION = "SECTION"
    SUBJECT = "SUBJECT"
    TEACHER = "TEACHER"
    STUDENT = "STUDENT"
    PARENT = "PARENT"
    EXAM = "EXAM"
    EXAM_FORM = "EXAM_FORM"
    EXAM_PAYMENT = "EXAM_PAYMENT"
    RESULT = "RESULT"
    ADMIT_CARD = "ADMIT_CARD"
    FEE_STRUCTURE = "FEE_STRUCTURE"
    FEE_PAYMENT = "FEE_PAYMENT"
    TC = "TC"
    SALARY_PROFILE = "SALARY_PROFILE"
    SALARY_CALCULATION = "SALARY_CALCULATION"
    SALARY_PAYMENT = "SALARY_PAYMENT"
    EXPENSE = "EXPENSE"
    BACKUP = "BACKUP"
    SYSTEM = "SYSTEM"


class AuditLogImmutableError(Exception):
    """Raised when something tries to change or remove an audit log row."""


class AuditLog(BaseModel):
    """A sensitive action, who did it and where from.

    Referenced ids are stored without foreign keys so a log row outlives
    the records it points at.
    """

    __tablename__ = "audit_logs"
    __table_args__ = (
        Index("ix_audit_logs_school_created", "school_id", "created_at"),
        Index("ix_audit_logs_action_created", "action", "created_at"),
        Index("ix_audit_logs_entity", "entity_type", "entity_id"),
    )

    user_id: Mapped[UUID] = mapped_column(Uuid, nullable=False, index=True)
    role: Mapped[str] = mapped_column(String(20), nullable=False)
    action: Mapped[AuditAction] = mapped_column(String(50), nullable=False)
    entity_type: Mapped[EntityType] = mapped_column(String(30), nullable=False)
    entity_id: Mapped[UUID | None] = mapped_column(Uuid)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    ip_address: Mapped[str] = mapped_column(String(64), nullable=False)
    school_id: Mapped[UUID | None] = mapped_column(Uuid)
    session_id: Mapped[UUID | None] = mapped_column(Uuid)


@event.listens_for(AuditLog, "before_update")
def _reject_update(mapper, connection, target) -> None:
    raise AuditLogImmutableError("Audit logs cannot be modified")


@event.listens_for(AuditLog, "before_delete")
def _reject_delete(mapper, connection, target) -> None:
    raise AuditLogImmutableError("Audit logs cannot be deleted")
