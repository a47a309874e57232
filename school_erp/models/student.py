"""Student, parent and teacher models."""

from datetime import date
from enum import Enum
from uuid import UUID

from sqlalchemy import JSON, Date, ForeignKey, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from school_erp.core.database import BaseModel


class StudentStatus(str, Enum):
    ACTIVE = "ACTIVE"
    PROMOTED = "PROMOTED"
    LEFT = "LEFT"


class Gender(str, Enum):
    MALE = "Male"
    FEMALE = "Female"
    OTHER = "Other"


class ProfileStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class Parent(BaseModel):
    """Parent profile linked to a PARENT user."""

    __tablename__ = "parents"

    user_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
    school_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("schools.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    status: Mapped[ProfileStatus] = mapped_column(String(20), default=ProfileStatus.ACTIVE)

    user: Mapped["User"] = relationship("User", lazy="joined")
    children: Mapped[list["Student"]] = relationship("Student", back_populates="parent")

    @property
    def name(self) -> str:
        return self.user.name

    @property
    def email(self) -> str | None:
        return self.user.email

    @property
    def mobile(self) -> str | None:
        return self.user.mobile


class Student(BaseModel):
    """Student enrolled in a class for one academic session."""

    __tablename__ = "students"
    __table_args__ = (
        UniqueConstraint(
            "roll_number",
            "class_id",
            "school_id",
            "session_id",
            name="uq_student_roll_number",
        ),
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
        index=True,
    )
    class_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("school_classes.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    section_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("sections.id", ondelete="CASCADE"),
        nullable=False,
    )
    parent_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("parents.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[UUID | None] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="SET NULL"),
        index=True,
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    roll_number: Mapped[str] = mapped_column(String(50), nullable=False)
    status: Mapped[StudentStatus] = mapped_column(
        String(20),
        default=StudentStatus.ACTIVE,
        nullable=False,
    )
    date_of_birth: Mapped[date | None] = mapped_column(Date)
    gender: Mapped[Gender | None] = mapped_column(String(10))
    address: Mapped[str | None] = mapped_column(String(500))

    parent: Mapped["Parent"] = relationship("Parent", back_populates="children")

    @property
    def is_active(self) -> bool:
        return self.status == StudentStatus.ACTIVE

    def __repr__(self) -> str:
        return f"<Student(id={self.id}, roll={self.roll_number}, status={self.status})>"


class Teacher(BaseModel):
    """Teacher profile linked to a TEACHER user."""

    __tablename__ = "teachers"

    user_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
    school_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("schools.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    assigned_class_ids: Mapped[list] = mapped_column(JSON, default=list, nullable=False)
    assigned_subject_ids: Mapped[list] = mapped_column(JSON, default=list, nullable=False)
    status: Mapped[ProfileStatus] = mapped_column(String(20), default=ProfileStatus.ACTIVE)

    user: Mapped["User"] = relationship("User", lazy="joined")

    @property
    def name(self) -> str:
        return self.user.name

    @property
    def email(self) -> str | None:
        return self.user.email

    @property
    def mobile(self) -> str | None:
        return self.user.mobile
