"""Subscription plans, feature modules and usage limits."""

from enum import Enum


class SchoolModule(str, Enum):
    """Feature modules a school can have switched on or off."""

    ATTENDANCE = "attendance"
    EXAM = "exam"
    FEES = "fees"
    TRANSPORT = "transport"
    HOSTEL = "hostel"
    ACADEMIC_HISTORY = "academic_history"
    PROMOTION = "promotion"
    TC = "tc"
    HOMEWORK = "homework"
    NOTICES = "notices"
    VIDEOS = "videos"
    REPORTS = "reports"
    SALARY = "salary"
    ONLINE_PAYMENTS = "online_payments"


class Plan(str, Enum):
    BASIC = "BASIC"
    STANDARD = "STANDARD"
    PREMIUM = "PREMIUM"


PLAN_ORDER = [Plan.BASIC, Plan.STANDARD, Plan.PREMIUM]

_ALL_ON = {module.value: True for module in SchoolModule}

PLAN_CONFIGS = {
    Plan.BASIC: {
        "modules": {
            **_ALL_ON,
            SchoolModule.EXAM.value: False,
            SchoolModule.TRANSPORT.value: False,
            SchoolModule.HOSTEL.value: False,
            SchoolModule.VIDEOS.value: False,
            SchoolModule.SALARY.value: False,
            SchoolModule.ONLINE_PAYMENTS.value: False,
        },
        "limits": {"student_limit": 500, "teacher_limit": 50, "storage_limit_gb": 5},
    },
    Plan.STANDARD: {
        "modules": {**_ALL_ON, SchoolModule.HOSTEL.value: False},
        "limits": {"student_limit": 2000, "teacher_limit": 150, "storage_limit_gb": 10},
    },
    Plan.PREMIUM: {
        "modules": dict(_ALL_ON),
        "limits": {"student_limit": 10000, "teacher_limit": 500, "storage_limit_gb": 50},
    },
}


def plan_modules(plan: Plan | str) -> dict[str, bool]:
    return dict(PLAN_CONFIGS[Plan(plan)]["modules"])


def plan_limits(plan: Plan | str) -> dict[str, int]:
    return dict(PLAN_CONFIGS[Plan(plan)]["limits"])


def is_downgrade(current: Plan | str, new: Plan | str) -> bool:
    return PLAN_ORDER.index(Plan(new)) < PLAN_ORDER.index(Plan(current))


def next_plan(current: Plan | str) -> Plan | None:
    """The plan to suggest when a limit is hit, or None on the top tier."""
    index = PLAN_ORDER.index(Plan(current))
    if index + 1 < len(PLAN_ORDER):
        return PLAN_ORDER[index + 1]
    return None


def is_module_enabled(modules: dict | None, module: SchoolModule | str) -> bool:
    """Modules missing from the map are treated as enabled."""
    return bool((modules or {}).get(SchoolModule(module).value, True))
