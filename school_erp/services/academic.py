"""Academic structure service: sessions, classes, sections, subjects."""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from school_erp.core.errors import ConflictError, ValidationError
from school_erp.models.academic import AcademicSession, SchoolClass, Section, Subject
from school_erp.schemas.academic import (
    AcademicSessionCreate,
    AcademicSessionUpdate,
    SchoolClassCreate,
    SchoolClassUpdate,
    SectionCreate,
    SubjectCreate,
)


# ============== Sessions ==============


async def get_sessions(db: AsyncSession, school_id: UUID) -> list[AcademicSession]:
    result = await db.execute(
        select(AcademicSession)
        .where(AcademicSession.school_id == school_id)
        .order_by(AcademicSession.start_date.desc())
    )
    return list(result.scalars().all())


async def get_session_by_id(
    db: AsyncSession,
    session_id: UUID,
    school_id: UUID,
) -> AcademicSession | None:
    result = await db.execute(
        select(AcademicSession).where(
            AcademicSession.id == session_id,
            AcademicSession.school_id == school_id,
        )
    )
    return result.scalar_one_or_none()


async def create_session(
    db: AsyncSession,
    school_id: UUID,
    session_data: AcademicSessionCreate,
) -> AcademicSession:
    """Create a session. Saving it active deactivates the school's other sessions."""
    existing = await db.execute(
        select(AcademicSession.id).where(
            AcademicSession.school_id == school_id,
            AcademicSession.name == session_data.name,
        )
    )
    if existing.scalar_one_or_none() is not None:
        raise ConflictError(f"Session '{session_data.name}' already exists")

    session = AcademicSession(
        school_id=school_id,
        name=session_data.name,
        start_date=session_data.start_date,
        end_date=session_data.end_date,
        is_active=session_data.is_active,
    )
    db.add(session)
    await db.commit()
    await db.refresh(session)
    return session


async def activate_session(db: AsyncSession, session: AcademicSession) -> AcademicSession:
    session.is_active = True
    await db.commit()
    await db.refresh(session)
    return session


async def update_session(
    db: AsyncSession,
    session: AcademicSession,
    session_data: AcademicSessionUpdate,
) -> AcademicSession:
    update_data = session_data.model_dump(exclude_unset=True)
    for field, value in update_data.items():
        setattr(session, field, value)

    if session.end_date <= session.start_date:
        raise ValidationError("end_date must be after start_date")

    await db.commit()
    await db.refresh(session)
    return session


# ============== Classes ==============


async def get_classes(db: AsyncSession, school_id: UUID, session_id: UUID) -> list[SchoolClass]:
    result = await db.execute(
        select(SchoolClass)
        .where(SchoolClass.school_id == school_id, SchoolClass.session_id == session_id)
        .order_by(SchoolClass.order, SchoolClass.name)
    )
    return list(result.scalars().all())


async def get_class_by_id(db: AsyncSession, class_id: UUID, school_id: UUID) -> SchoolClass | None:
    """Get a class, restricted to one school."""
    result = await db.execute(
        select(SchoolClass).where(SchoolClass.id == class_id, SchoolClass.school_id == school_id)
    )
    return result.scalar_one_or_none()


async def get_class_by_order(
    db: AsyncSession,
    school_id: UUID,
    session_id: UUID,
    order: int,
) -> SchoolClass | None:
    result = await db.execute(
        select(SchoolClass).where(
            SchoolClass.school_id == school_id,
            SchoolClass.session_id == session_id,
            SchoolClass.order == order,
        )
    )
    return result.scalars().first()


async def create_class(
    db: AsyncSession,
    school_id: UUID,
    session_id: UUID,
    class_data: SchoolClassCreate,
) -> SchoolClass:
    existing = await db.execute(
        select(SchoolClass.id).where(
            SchoolClass.school_id == school_id,
            SchoolClass.session_id == session_id,
            SchoolClass.name == class_data.name,
        )
    )
    if existing.scalar_one_or_none() is not None:
        raise ConflictError(f"Class '{class_data.name}' already exists in this session")

    school_class = SchoolClass(
        school_id=school_id,
        session_id=session_id,
        name=class_data.name,
        order=class_data.order,
    )
    db.add(school_class)
    await db.commit()
    await db.refresh(school_class)
    return school_class


async def update_class(
    db: AsyncSession,
    school_class: SchoolClass,
    class_data: SchoolClassUpdate,
) -> SchoolClass:
    update_data = class_data.model_dump(exclude_unset=True)
    for field, value in update_data.items():
        setattr(school_class, field, value)

    await db.commit()
    await db.refresh(school_class)
    return school_class


# ============== Sections & Subjects ==============


async def get_sections(db: AsyncSession, school_class: SchoolClass) -> list[Section]:
    result = await db.execute(
        select(Section).where(Section.class_id == school_class.id).order_by(Section.name)
    )
    return list(result.scalars().all())


async def get_section_by_id(db: AsyncSession, section_id: UUID, school_id: UUID) -> Section | None:
    result = await db.execute(
        select(Section).where(Section.id == section_id, Section.school_id == school_id)
    )
    return result.scalar_one_or_none()


async def create_section(
    db: AsyncSession,
    school_class: SchoolClass,
    section_data: SectionCreate,
) -> Section:
    section = Section(
        school_id=school_class.school_id,
        session_id=school_class.session_id,
        class_id=school_class.id,
        name=section_data.name,
        capacity=section_data.capacity,
    )
    db.add(section)
    await db.commit()
    await db.refresh(section)
    return section


async def get_subjects(db: AsyncSession, school_class: SchoolClass) -> list[Subject]:
    result = await db.execute(
        select(Subject).where(Subject.class_id == school_class.id).order_by(Subject.name)
    )
    return list(result.scalars().all())


async def get_subject_by_id(db: AsyncSession, subject_id: UUID, school_id: UUID) -> Subject | None:
    result = await db.execute(
        select(Subject).where(Subject.id == subject_id, Subject.school_id == school_id)
    )
    return result.scalar_one_or_none()


async def create_subject(
    db: AsyncSession,
    school_class: SchoolClass,
    subject_data: SubjectCreate,
) -> Subject:
    subject = Subject(
        school_id=school_class.school_id,
        session_id=school_class.session_id,
        class_id=school_class.id,
        name=subject_data.name,
        code=subject_data.code,
    )
    db.add(subject)
    await db.commit()
    await db.refresh(subject)
    return subject
