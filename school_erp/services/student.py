"""Student, parent and teacher service."""

import logging
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from school_erp.core.errors import NotFoundError, ValidationError
from school_erp.core.permissions import Role
from school_erp.models.academic import AcademicSession, SchoolClass, Section, Subject
from school_erp.models.student import Parent, Student, StudentStatus, Teacher
from school_erp.models.user import User
from school_erp.schemas.student import (
    ParentCreate,
    StudentCreate,
    StudentUpdate,
    TeacherAssignmentUpdate,
    TeacherCreate,
)
from school_erp.services import user as user_service

logger = logging.getLogger(__name__)


# ============== Students ==============


async def get_student_by_id(db: AsyncSession, student_id: UUID, school_id: UUID) -> Student | None:
    """Get student by ID within one school."""
    result = await db.execute(
        select(Student).where(Student.id == student_id, Student.school_id == school_id)
    )
    return result.scalar_one_or_none()


async def get_students(
    db: AsyncSession,
    *,
    school_id: UUID,
    session_id: UUID | None = None,
    class_id: UUID | None = None,
    section_id: UUID | None = None,
    parent_id: UUID | None = None,
    status: StudentStatus | None = None,
    search: str | None = None,
    skip: int = 0,
    limit: int = 20,
) -> tuple[list[Student], int]:
    """Get list of students with optional filters."""
    query = select(Student).where(Student.school_id == school_id)

    if session_id is not None:
        query = query.where(Student.session_id == session_id)
    if class_id is not None:
        query = query.where(Student.class_id == class_id)
    if section_id is not None:
        query = query.where(Student.section_id == section_id)
    if parent_id is not None:
        query = query.where(Student.parent_id == parent_id)
    if status is not None:
        query = query.where(Student.status == status)
    if search:
        query = query.where(
            Student.name.ilike(f"%{search}%") | Student.roll_number.ilike(f"%{search}%")
        )

    total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar() or 0

    query = query.order_by(Student.class_id, Student.roll_number).offset(skip).limit(limit)
    result = await db.execute(query)
    return list(result.scalars().all()), total


async def roll_number_taken(
    db: AsyncSession,
    *,
    school_id: UUID,
    session_id: UUID,
    class_id: UUID,
    roll_number: str,
    exclude_id: UUID | None = None,
) -> bool:
    query = select(Student.id).where(
        Student.school_id == school_id,
        Student.session_id == session_id,
        Student.class_id == class_id,
        Student.roll_number == roll_number,
    )
    if exclude_id is not None:
        query = query.where(Student.id != exclude_id)
    return (await db.execute(query)).first() is not None


async def _resolve_session(db: AsyncSession, school_id: UUID, session_id: UUID | None) -> AcademicSession:
    query = select(AcademicSession).where(AcademicSession.school_id == school_id)
    if session_id is not None:
        query = query.where(AcademicSession.id == session_id)
    else:
        query = query.where(AcademicSession.is_active.is_(True))

    session = (await db.execute(query)).scalar_one_or_none()
    if session is None:
        if session_id is not None:
            raise NotFoundError("Academic session")
        raise ValidationError("No active academic session found for this school")
    return session


async def create_student(db: AsyncSession, school_id: UUID, student_data: StudentCreate) -> Student:
    """Admit a student.

    Class, section and parent must all belong to the school. The unique
    index on roll number still guards against concurrent admissions.
    """
    session = await _resolve_session(db, school_id, student_data.session_id)

    school_class = await db.get(SchoolClass, student_data.class_id)
    if school_class is None or school_class.school_id != school_id:
        raise NotFoundError("Class")
    section = await db.get(Section, student_data.section_id)
    if section is None or section.school_id != school_id:
        raise NotFoundError("Section")
    if section.class_id != school_class.id:
        raise ValidationError("Section does not belong to this class")
    parent = await db.get(Parent, student_data.parent_id)
    if parent is None or parent.school_id != school_id:
        raise NotFoundError("Parent")
    if student_data.user_id is not None:
        student_user = await db.get(User, student_data.user_id)
        if student_user is None or student_user.school_id != school_id or student_user.role != Role.STUDENT:
            raise NotFoundError("User")

    if await roll_number_taken(
        db,
        school_id=school_id,
        session_id=session.id,
        class_id=school_class.id,
        roll_number=student_data.roll_number,
    ):
        raise ValidationError(f"Roll number '{student_data.roll_number}' already exists in this class")

    student = Student(
        school_id=school_id,
        session_id=session.id,
        class_id=school_class.id,
        section_id=section.id,
        parent_id=parent.id,
        user_id=student_data.user_id,
        name=student_data.name,
        roll_number=student_data.roll_number,
        status=StudentStatus.ACTIVE,
        date_of_birth=student_data.date_of_birth,
        gender=student_data.gender,
        address=student_data.address,
    )
    db.add(student)
    await db.commit()
    await db.refresh(student)
    return student


async def update_student(db: AsyncSession, student: Student, student_data: StudentUpdate) -> Student:
    """Update a student."""
    update_data = student_data.model_dump(exclude_unset=True)

    if "section_id" in update_data:
        section = await db.get(Section, update_data["section_id"])
        if section is None or section.school_id != student.school_id:
            raise NotFoundError("Section")
        if section.class_id != student.class_id:
            raise ValidationError("Section does not belong to this class")

    roll_number = update_data.get("roll_number")
    if roll_number and roll_number != student.roll_number:
        if await roll_number_taken(
            db,
            school_id=student.school_id,
            session_id=student.session_id,
            class_id=student.class_id,
            roll_number=roll_number,
            exclude_id=student.id,
        ):
            raise ValidationError(f"Roll number '{roll_number}' already exists in this class")

    for field, value in update_data.items():
        setattr(student, field, value)

    await db.commit()
    await db.refresh(student)
    return student


async def set_student_status(db: AsyncSession, student: Student, status: StudentStatus) -> Student:
    """Students are never deleted, only moved between statuses."""
    student.status = status
    await db.commit()
    await db.refresh(student)
    return student


# ============== Parents ==============


async def get_parent_by_id(db: AsyncSession, parent_id: UUID, school_id: UUID) -> Parent | None:
    result = await db.execute(
        select(Parent).where(Parent.id == parent_id, Parent.school_id == school_id)
    )
    return result.scalar_one_or_none()


async def get_parent_by_user(db: AsyncSession, user_id: UUID) -> Parent | None:
    result = await db.execute(select(Parent).where(Parent.user_id == user_id))
    return result.scalar_one_or_none()


async def get_parents(
    db: AsyncSession,
    *,
    school_id: UUID,
    search: str | None = None,
    skip: int = 0,
    limit: int = 20,
) -> tuple[list[Parent], int]:
    query = select(Parent).join(User, Parent.user_id == User.id).where(Parent.school_id == school_id)
    if search:
        query = query.where(
            User.name.ilike(f"%{search}%")
            | User.email.ilike(f"%{search}%")
            | User.mobile.ilike(f"%{search}%")
        )

    total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar() or 0

    query = query.order_by(User.name).offset(skip).limit(limit)
    result = await db.execute(query)
    return list(result.scalars().unique().all()), total


async def create_parent(db: AsyncSession, school_id: UUID, parent_data: ParentCreate) -> Parent:
    """Create the PARENT login and its profile together."""
    await user_service.ensure_identifiers_free(db, email=parent_data.email, mobile=parent_data.mobile)

    user = user_service.build_user(
        name=parent_data.name,
        email=parent_data.email,
        mobile=parent_data.mobile,
        password=parent_data.password,
        role=Role.PARENT,
        school_id=school_id,
    )
    db.add(user)
    await db.flush()

    parent = Parent(user_id=user.id, school_id=school_id)
    db.add(parent)
    await db.commit()
    await db.refresh(parent)
    return parent


async def get_children(db: AsyncSession, parent: Parent) -> list[Student]:
    result = await db.execute(
        select(Student).where(Student.parent_id == parent.id).order_by(Student.name)
    )
    return list(result.scalars().all())


async def own_student_ids(db: AsyncSession, user: User) -> list[UUID]:
    """Students a parent or student account may see: children, or the student themself."""
    if user.role == Role.PARENT:
        result = await db.execute(
            select(Student.id).join(Parent, Student.parent_id == Parent.id).where(Parent.user_id == user.id)
        )
    elif user.role == Role.STUDENT:
        result = await db.execute(select(Student.id).where(Student.user_id == user.id))
    else:
        return []
    return list(result.scalars().all())


# ============== Teachers ==============


async def get_teacher_by_id(db: AsyncSession, teacher_id: UUID, school_id: UUID) -> Teacher | None:
    result = await db.execute(
        select(Teacher).where(Teacher.id == teacher_id, Teacher.school_id == school_id)
    )
    return result.scalar_one_or_none()


async def get_teacher_by_user(db: AsyncSession, user_id: UUID) -> Teacher | None:
    result = await db.execute(select(Teacher).where(Teacher.user_id == user_id))
    return result.scalar_one_or_none()


async def get_teachers(
    db: AsyncSession,
    *,
    school_id: UUID,
    skip: int = 0,
    limit: int = 20,
) -> tuple[list[Teacher], int]:
    query = select(Teacher).where(Teacher.school_id == school_id)
    total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar() or 0

    query = query.order_by(Teacher.created_at.desc()).offset(skip).limit(limit)
    result = await db.execute(query)
    return list(result.scalars().unique().all()), total


async def _check_assignments(
    db: AsyncSession,
    school_id: UUID,
    class_ids: list[UUID],
    subject_ids: list[UUID],
) -> None:
    """Every assigned class and subject must belong to the school."""
    if class_ids:
        found = await db.execute(
            select(func.count()).select_from(SchoolClass).where(
                SchoolClass.id.in_(class_ids),
                SchoolClass.school_id == school_id,
            )
        )
        if found.scalar() != len(set(class_ids)):
            raise ValidationError("One or more classes do not belong to this school")
    if subject_ids:
        found = await db.execute(
            select(func.count()).select_from(Subject).where(
                Subject.id.in_(subject_ids),
                Subject.school_id == school_id,
            )
        )
        if found.scalar() != len(set(subject_ids)):
            raise ValidationError("One or more subjects do not belong to this school")


async def create_teacher(db: AsyncSession, school_id: UUID, teacher_data: TeacherCreate) -> Teacher:
    """Create the TEACHER login and its profile together."""
    await user_service.ensure_identifiers_free(db, email=teacher_data.email, mobile=teacher_data.mobile)
    await _check_assignments(
        db,
        school_id,
        teacher_data.assigned_class_ids,
        teacher_data.assigned_subject_ids,
    )

    user = user_service.build_user(
        name=teacher_data.name,
        email=teacher_data.email,
        mobile=teacher_data.mobile,
        password=teacher_data.password,
        role=Role.TEACHER,
        school_id=school_id,
    )
    db.add(user)
    await db.flush()

    teacher = Teacher(
        user_id=user.id,
        school_id=school_id,
        assigned_class_ids=[str(i) for i in dict.fromkeys(teacher_data.assigned_class_ids)],
        assigned_subject_ids=[str(i) for i in dict.fromkeys(teacher_data.assigned_subject_ids)],
    )
    db.add(teacher)
    await db.commit()
    await db.refresh(teacher)
    logger.info("Created teacher %s in school %s", teacher.id, school_id)
    return teacher


async def update_assignments(
    db: AsyncSession,
    teacher: Teacher,
    assignment_data: TeacherAssignmentUpdate,
) -> Teacher:
    class_ids = assignment_data.assigned_class_ids
    subject_ids = assignment_data.assigned_subject_ids
    await _check_assignments(db, teacher.school_id, class_ids or [], subject_ids or [])

    if class_ids is not None:
        teacher.assigned_class_ids = [str(i) for i in dict.fromkeys(class_ids)]
    if subject_ids is not None:
        teacher.assigned_subject_ids = [str(i) for i in dict.fromkeys(subject_ids)]

    await db.commit()
    await db.refresh(teacher)
    return teacher
