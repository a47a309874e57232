"""Expenses, inventory and homework."""

import logging
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from school_erp.core.errors import ConflictError, NotFoundError, PermissionDeniedError, ValidationError
from school_erp.core.permissions import Role
from school_erp.models.academic import AcademicSession, SchoolClass, Section, Subject
from school_erp.models.expense import Expense, ExpenseCategory, Homework, InventoryItem
from school_erp.models.student import Student
from school_erp.models.user import User
from school_erp.schemas.expense import (
    CategoryTotal,
    ExpenseCreate,
    ExpenseSummary,
    HomeworkCreate,
    InventoryItemCreate,
    InventoryItemUpdate,
)
from school_erp.services import student as student_service

logger = logging.getLogger(__name__)


# ============== Expenses ==============


def _expense_filters(query, school_id, category, date_from, date_to):
    query = query.where(Expense.school_id == school_id)
    if category is not None:
        query = query.where(Expense.category == category)
    if date_from is not None:
        query = query.where(Expense.expense_date >= date_from)
    if date_to is not None:
        query = query.where(Expense.expense_date <= date_to)
    return query


async def get_expenses(
    db: AsyncSession,
    *,
    school_id: UUID,
    category: ExpenseCategory | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
    skip: int = 0,
    limit: int = 100,
) -> tuple[list[Expense], int]:
    query = _expense_filters(select(Expense), school_id, category, date_from, date_to)

    count_query = select(func.count()).select_from(query.subquery())
    total = (await db.execute(count_query)).scalar()

    query = query.order_by(Expense.expense_date.desc()).offset(skip).limit(limit)
    result = await db.execute(query)
    return list(result.scalars().all()), total


async def create_expense(
    db: AsyncSession,
    session: AcademicSession,
    created_by: User,
    expense_data: ExpenseCreate,
) -> Expense:
    expense = Expense(
        school_id=session.school_id,
        session_id=session.id,
        created_by_id=created_by.id,
        **expense_data.model_dump(),
    )
    db.add(expense)
    await db.commit()
    await db.refresh(expense)
    return expense


async def expense_summary(
    db: AsyncSession,
    school_id: UUID,
    date_from: date | None = None,
    date_to: date | None = None,
) -> ExpenseSummary:
    """Totals per category, largest first."""
    query = _expense_filters(
        select(Expense.category, func.sum(Expense.amount), func.count(Expense.id)),
        school_id,
        None,
        date_from,
        date_to,
    ).group_by(Expense.category)
    rows = (await db.execute(query)).all()

    categories = sorted(
        (
            CategoryTotal(category=category, total=Decimal(str(total or 0)), count=count)
            for category, total, count in rows
        ),
        key=lambda c: c.total,
        reverse=True,
    )
    return ExpenseSummary(
        categories=categories,
        grand_total=sum((c.total for c in categories), Decimal("0")),
    )


# ============== Inventory ==============


async def get_item_by_id(db: AsyncSession, item_id: UUID, school_id: UUID) -> InventoryItem | None:
    result = await db.execute(
        select(InventoryItem).where(InventoryItem.id == item_id, InventoryItem.school_id == school_id)
    )
    return result.scalar_one_or_none()


async def get_items(
    db: AsyncSession,
    school_id: UUID,
    category: str | None = None,
) -> list[InventoryItem]:
    query = select(InventoryItem).where(InventoryItem.school_id == school_id)
    if category is not None:
        query = query.where(InventoryItem.category == category)
    result = await db.execute(query.order_by(InventoryItem.code))
    return list(result.scalars().all())


async def create_item(db: AsyncSession, school_id: UUID, item_data: InventoryItemCreate) -> InventoryItem:
    existing = await db.execute(
        select(InventoryItem.id).where(InventoryItem.school_id == school_id, InventoryItem.code == item_data.code)
    )
    if existing.first() is not None:
        raise ConflictError("Inventory item with this code already exists")

    item = InventoryItem(school_id=school_id, **item_data.model_dump())
    db.add(item)
    await db.commit()
    await db.refresh(item)
    return item


async def update_item(db: AsyncSession, item: InventoryItem, item_data: InventoryItemUpdate) -> InventoryItem:
    update_data = item_data.model_dump(exclude_unset=True)
    for field, value in update_data.items():
        setattr(item, field, value)

    await db.commit()
    await db.refresh(item)
    return item


async def delete_item(db: AsyncSession, item: InventoryItem) -> None:
    await db.delete(item)
    await db.commit()


# ============== Homework ==============


async def create_homework(
    db: AsyncSession,
    session: AcademicSession,
    created_by: User,
    homework_data: HomeworkCreate,
) -> Homework:
    """
    Post homework for a class and subject in the active session.

    Teachers may only post for classes assigned to them.
    """
    school_class = await db.get(SchoolClass, homework_data.class_id)
    if school_class is None or school_class.school_id != session.school_id:
        raise NotFoundError("Class")
    if school_class.session_id != session.id:
        raise ValidationError("Class does not belong to the active session")

    subject = await db.get(Subject, homework_data.subject_id)
    if subject is None or subject.class_id != school_class.id:
        raise ValidationError("Subject does not belong to this class")

    if homework_data.section_id is not None:
        section = await db.get(Section, homework_data.section_id)
        if section is None or section.class_id != school_class.id:
            raise ValidationError("Section does not belong to this class")

    if created_by.role == Role.TEACHER:
        teacher = await student_service.get_teacher_by_user(db, created_by.id)
        if teacher is None or str(school_class.id) not in teacher.assigned_class_ids:
            raise PermissionDeniedError("You are not assigned to this class")

    homework = Homework(
        school_id=session.school_id,
        session_id=session.id,
        created_by_id=created_by.id,
        **homework_data.model_dump(),
    )
    db.add(homework)
    await db.commit()
    await db.refresh(homework)
    return homework


async def get_homework(
    db: AsyncSession,
    school_id: UUID,
    class_id: UUID,
    section_id: UUID | None = None,
    subject_id: UUID | None = None,
) -> list[Homework]:
    """Homework for a class. With a section, class-wide items are included too."""
    query = select(Homework).where(Homework.school_id == school_id, Homework.class_id == class_id)
    if section_id is not None:
        query = query.where((Homework.section_id == section_id) | Homework.section_id.is_(None))
    if subject_id is not None:
        query = query.where(Homework.subject_id == subject_id)
    result = await db.execute(query.order_by(Homework.due_date.desc()))
    return list(result.scalars().all())


async def get_homework_for_students(db: AsyncSession, school_id: UUID, student_ids: list[UUID]) -> list[Homework]:
    if not student_ids:
        return []
    result = await db.execute(
        select(Student.class_id, Student.section_id).where(
            Student.id.in_(student_ids),
            Student.school_id == school_id,
        )
    )
    items: dict[UUID, Homework] = {}
    for class_id, section_id in result.all():
        for homework in await get_homework(db, school_id, class_id, section_id):
            items[homework.id] = homework
    return sorted(items.values(), key=lambda h: h.due_date, reverse=True)
