"""User roles and the role hierarchy."""

from enum import Enum


class Role(str, Enum):
    """User roles in the system."""

    SUPER_ADMIN = "SUPER_ADMIN"  # Platform admin, access to all schools
    PRINCIPAL = "PRINCIPAL"  # Full access to their school
    OPERATOR = "OPERATOR"  # Office staff: admissions, fees, records
    TEACHER = "TEACHER"
    STUDENT = "STUDENT"
    PARENT = "PARENT"


ROLE_LEVELS = {
    Role.SUPER_ADMIN: 6,
    Role.PRINCIPAL: 5,
    Role.OPERATOR: 4,
    Role.TEACHER: 3,
    Role.STUDENT: 2,
    Role.PARENT: 1,
}

# Roles that can hold a salary profile
STAFF_ROLES = (Role.PRINCIPAL, Role.OPERATOR, Role.TEACHER)

# Roles allowed to run the school office (fees, admissions, records)
OFFICE_ROLES = (Role.SUPER_ADMIN, Role.PRINCIPAL, Role.OPERATOR)


def role_level(role: Role | str) -> int:
    """Numeric level of a role; unknown roles rank lowest."""
    try:
        return ROLE_LEVELS[Role(role)]
    except ValueError:
        return 0


def has_min_role(role: Role | str, minimum: Role) -> bool:
    """Check if a role is at or above the given minimum."""
    return role_level(role) >= ROLE_LEVELS[minimum]


def can_assign_role(actor_role: Role | str, target_role: Role | str) -> bool:
    """A user may only create or promote users strictly below their own level."""
    return role_level(actor_role) > role_level(target_role)
