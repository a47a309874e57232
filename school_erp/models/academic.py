"""Academic structure models: sessions, classes, sections, subjects."""

from datetime import date
from uuid import UUID

from sqlalchemy import (
    Boolean,
    Date,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
    Uuid,
    event,
    text,
    update,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from school_erp.core.database import BaseModel


class AcademicSession(BaseModel):
    """A school year. At most one session per school is active."""

    __tablename__ = "academic_sessions"
    __table_args__ = (
        UniqueConstraint("school_id", "name", name="uq_session_school_name"),
        Index(
            "uq_session_one_active",
            "school_id",
            unique=True,
            postgresql_where=text("is_active"),
            sqlite_where=text("is_active"),
        ),
    )

    school_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("schools.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(50), nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    def __repr__(self) -> str:
        return f"<AcademicSession(id={self.id}, name={self.name}, active={self.is_active})>"


def _deactivate_siblings(mapper, connection, target: AcademicSession) -> None:
    if not target.is_active:
        return
    stmt = (
        update(AcademicSession.__table__)
        .where(AcademicSession.__table__.c.school_id == target.school_id)
        .where(AcademicSession.__table__.c.is_active.is_(True))
        .values(is_active=False)
    )
    if target.id is not None:
        stmt = stmt.where(AcademicSession.__table__.c.id != target.id)
    connection.execute(stmt)


event.listen(AcademicSession, "before_insert", _deactivate_siblings)
event.listen(AcademicSession, "before_update", _deactivate_siblings)


class SchoolClass(BaseModel):
    """Class (grade) within a school session."""

    __tablename__ = "school_classes"
    __table_args__ = (
        UniqueConstraint("school_id", "session_id", "name", name="uq_class_school_session_name"),
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
    name: Mapped[str] = mapped_column(String(50), nullable=False)
    order: Mapped[int] = mapped_column(Integer, default=1, nullable=False)  # promotion target is order + 1

    sections: Mapped[list["Section"]] = relationship("Section", back_populates="school_class")

    def __repr__(self) -> str:
        return f"<SchoolClass(id={self.id}, name={self.name})>"


class Section(BaseModel):
    __tablename__ = "sections"
    __table_args__ = (
        UniqueConstraint("class_id", "session_id", "name", name="uq_section_class_session_name"),
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
    class_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("school_classes.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(20), nullable=False)
    capacity: Mapped[int | None] = mapped_column(Integer)

    school_class: Mapped["SchoolClass"] = relationship("SchoolClass", back_populates="sections")


class Subject(BaseModel):
    __tablename__ = "subjects"
    __table_args__ = (
        UniqueConstraint("class_id", "session_id", "name", name="uq_subject_class_session_name"),
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
    class_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("school_classes.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    code: Mapped[str | None] = mapped_column(String(20))
