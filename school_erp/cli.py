"""CLI commands for management tasks."""

import asyncio
import sys

from sqlalchemy import or_, select

from school_erp.core.database import async_session_maker
from school_erp.core.logging import setup_logging
from school_erp.core.permissions import Role
from school_erp.core.security import get_password_hash
from school_erp.models.user import User
from school_erp.schemas.validators import validate_mobile_number
from school_erp.services import backup as backup_service

USAGE = """Usage: python -m school_erp.cli <command>
Commands:
  create-super-admin <mobile> <password> <name>
  run-backup"""


async def create_super_admin(mobile: str, password: str, name: str) -> None:
    """Create the platform super admin."""
    try:
        mobile = validate_mobile_number(mobile)
    except ValueError as exc:
        print(f"Error: {exc}")
        sys.exit(1)

    async with async_session_maker() as db:
        result = await db.execute(
            select(User).where(or_(User.role == Role.SUPER_ADMIN, User.mobile == mobile))
        )
        existing = result.scalars().first()
        if existing is not None:
            if existing.role == Role.SUPER_ADMIN:
                print(f"Error: A super admin already exists ({existing.name})")
            else:
                print(f"Error: Mobile number {mobile} is already registered!")
            sys.exit(1)

        admin = User(
            name=name,
            mobile=mobile,
            password_hash=get_password_hash(password),
            role=Role.SUPER_ADMIN,
            school_id=None,
        )
        db.add(admin)
        await db.commit()
        await db.refresh(admin)

        print("Super admin created")
        print(f"  ID: {admin.id}")
        print(f"  Name: {admin.name}")
        print(f"  Mobile: {admin.mobile}")


async def run_backup() -> None:
    """Back up every school once, as the scheduler would."""
    summary = await backup_service.run_all_backups()
    print(
        f"Backed up {summary['completed']} of {summary['schools']} schools "
        f"({summary['failed']} failed, {summary['removed']} old files removed)"
    )
    if summary["failed"]:
        sys.exit(1)


def main() -> None:
    """CLI entry point."""
    setup_logging()
    if len(sys.argv) < 2:
        print(USAGE)
        sys.exit(1)

    command = sys.argv[1]

    if command == "create-super-admin":
        if len(sys.argv) != 5:
            print("Usage: python -m school_erp.cli create-super-admin <mobile> <password> <name>")
            sys.exit(1)
        _, _, mobile, password, name = sys.argv
        asyncio.run(create_super_admin(mobile, password, name))
    elif command == "run-backup":
        asyncio.run(run_backup())
    else:
        print(f"Unknown command: {command}")
        sys.exit(1)


if __name__ == "__main__":
    main()
