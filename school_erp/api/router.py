"""API router aggregating all route modules."""

from fastapi import APIRouter, Depends

from school_erp.api.routes import (
    academic_history,
    attendance,
    audit,
    auth,
    backups,
    classes,
    exams,
    expenses,
    fees,
    homework,
    hostel,
    inventory,
    parents,
    promotion,
    reports,
    salary,
    schools,
    sessions,
    students,
    system,
    tc,
    teachers,
    transport,
    users,
)
from school_erp.core.rate_limit import GENERAL_LIMIT, rate_limit

# Every endpoint also counts against the general per-client limit
api_router = APIRouter(dependencies=[Depends(rate_limit(GENERAL_LIMIT))])

api_router.include_router(auth.router)
api_router.include_router(users.router)
api_router.include_router(schools.router)
api_router.include_router(sessions.router)
api_router.include_router(classes.router)
api_router.include_router(students.router)
api_router.include_router(parents.router)
api_router.include_router(teachers.router)
api_router.include_router(attendance.router)
api_router.include_router(fees.router)
api_router.include_router(exams.router)
api_router.include_router(promotion.router)
api_router.include_router(tc.router)
api_router.include_router(academic_history.router)
api_router.include_router(salary.router)
api_router.include_router(hostel.router)
api_router.include_router(transport.router)
api_router.include_router(expenses.router)
api_router.include_router(inventory.router)
api_router.include_router(homework.router)
api_router.include_router(reports.router)
api_router.include_router(reports.dashboard_router)
api_router.include_router(audit.router)
api_router.include_router(system.router)
api_router.include_router(backups.router)
