"""Test configuration and fixtures."""

import os
from collections.abc import AsyncGenerator

# Point the application at the test database before anything imports settings
TEST_DATABASE_URL = os.environ.get("TEST_DATABASE_URL", "sqlite+aiosqlite:///./test_school_erp.db")
os.environ["DATABASE_URL"] = TEST_DATABASE_URL
os.environ["BACKUP_SCHEDULER_ENABLED"] = "false"

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from main import app
from school_erp.core.config import settings
from school_erp.core.database import Base, get_db
from school_erp.core.permissions import Role
from school_erp.core.plans import Plan
from school_erp.core.rate_limit import rate_limiter
from school_erp.core.security import create_access_token, token_claims
from school_erp.models.academic import AcademicSession, SchoolClass, Section, Subject
from school_erp.models.school import School
from school_erp.models.student import Parent, Student, Teacher
from school_erp.models.user import User
from school_erp.schemas.academic import SchoolClassCreate, SectionCreate, SubjectCreate
from school_erp.schemas.school import PrincipalCreate, SchoolCreate
from school_erp.schemas.student import ParentCreate, StudentCreate, TeacherCreate
from school_erp.services import academic as academic_service
from school_erp.services import school as school_service
from school_erp.services import student as student_service
from school_erp.services import user as user_service

PASSWORD = "password123"

# Create test engine with NullPool to avoid connection issues
test_engine = create_async_engine(
    TEST_DATABASE_URL,
    echo=False,
    poolclass=NullPool,
)
test_session_maker = async_sessionmaker(
    test_engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
    """Override database dependency for tests."""
    async with test_session_maker() as session:
        yield session


@pytest.fixture(autouse=True)
def reset_rate_limits():
    """Every test starts with empty rate limit windows."""
    rate_limiter.reset()
    yield
    rate_limiter.reset()


@pytest.fixture(autouse=True)
def backup_dir(tmp_path, monkeypatch):
    """Write backup files into a per-test directory."""
    directory = tmp_path / "backups"
    monkeypatch.setattr(settings, "BACKUP_DIR", str(directory))
    return directory


@pytest_asyncio.fixture(scope="function")
async def setup_database() -> AsyncGenerator[None, None]:
    """Create test database tables before each test that needs it."""
    app.dependency_overrides[get_db] = override_get_db

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    app.dependency_overrides.pop(get_db, None)


@pytest_asyncio.fixture
async def db(setup_database: None) -> AsyncGenerator[AsyncSession, None]:
    """Get database session for tests."""
    async with test_session_maker() as session:
        yield session


@pytest_asyncio.fixture
async def client(setup_database: None) -> AsyncGenerator[AsyncClient, None]:
    """Get async HTTP client."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


def auth_header(user_or_token) -> dict[str, str]:
    """Create authorization header from a user or a raw token."""
    token = user_or_token
    if isinstance(user_or_token, User):
        token = create_access_token(token_claims(user_or_token))
    return {"Authorization": f"Bearer {token}"}


async def add_user(db: AsyncSession, role: Role, school_id, name: str, email: str) -> User:
    user = user_service.build_user(
        name=name,
        email=email,
        password=PASSWORD,
        role=role,
        school_id=school_id,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


async def onboard_school(db: AsyncSession, code: str, plan: Plan = Plan.PREMIUM):
    """Create a school with its principal and active session."""
    return await school_service.create_school(
        db,
        SchoolCreate(
            name=f"{code.title()} Public School",
            code=code,
            plan=plan,
            principal=PrincipalCreate(
                name=f"{code.title()} Principal",
                email=f"principal@{code.lower()}.test",
                password=PASSWORD,
            ),
        ),
    )


# ============== Platform ==============


@pytest_asyncio.fixture
async def super_admin(db: AsyncSession) -> User:
    """Create the platform super admin."""
    return await add_user(db, Role.SUPER_ADMIN, None, "Platform Admin", "admin@platform.test")


# ============== School ==============


@pytest_asyncio.fixture
async def onboarded(db: AsyncSession) -> tuple[School, User, AcademicSession]:
    return await onboard_school(db, "GVS")


@pytest_asyncio.fixture
async def school(onboarded) -> School:
    return onboarded[0]


@pytest_asyncio.fixture
async def principal(onboarded) -> User:
    return onboarded[1]


@pytest_asyncio.fixture
async def active_session(onboarded) -> AcademicSession:
    return onboarded[2]


@pytest_asyncio.fixture
async def operator(db: AsyncSession, school: School) -> User:
    return await add_user(db, Role.OPERATOR, school.id, "Office Operator", "operator@gvs.test")


@pytest_asyncio.fixture
async def other_school(db: AsyncSession) -> tuple[School, User, AcademicSession]:
    """A second tenant, for isolation checks."""
    return await onboard_school(db, "OTH")


# ============== Academic Structure ==============


@pytest_asyncio.fixture
async def school_class(db: AsyncSession, school: School, active_session: AcademicSession) -> SchoolClass:
    return await academic_service.create_class(
        db, school.id, active_session.id, SchoolClassCreate(name="Class 1", order=1)
    )


@pytest_asyncio.fixture
async def next_class(db: AsyncSession, school: School, active_session: AcademicSession) -> SchoolClass:
    return await academic_service.create_class(
        db, school.id, active_session.id, SchoolClassCreate(name="Class 2", order=2)
    )


@pytest_asyncio.fixture
async def section(db: AsyncSession, school_class: SchoolClass) -> Section:
    return await academic_service.create_section(db, school_class, SectionCreate(name="A"))


@pytest_asyncio.fixture
async def subject(db: AsyncSession, school_class: SchoolClass) -> Subject:
    return await academic_service.create_subject(db, school_class, SubjectCreate(name="Mathematics", code="MATH"))


# ============== People ==============


@pytest_asyncio.fixture
async def parent(db: AsyncSession, school: School) -> Parent:
    return await student_service.create_parent(
        db,
        school.id,
        ParentCreate(name="Ravi Parent", mobile="+919800000001", password=PASSWORD),
    )


@pytest_asyncio.fixture
async def parent_user(db: AsyncSession, parent: Parent) -> User:
    return await db.get(User, parent.user_id)


@pytest_asyncio.fixture
async def student(
    db: AsyncSession,
    school: School,
    school_class: SchoolClass,
    section: Section,
    parent: Parent,
) -> Student:
    return await student_service.create_student(
        db,
        school.id,
        StudentCreate(
            name="Meera Sharma",
            roll_number="1",
            class_id=school_class.id,
            section_id=section.id,
            parent_id=parent.id,
        ),
    )


@pytest_asyncio.fixture
async def teacher(db: AsyncSession, school: School, school_class: SchoolClass, subject: Subject) -> Teacher:
    return await student_service.create_teacher(
        db,
        school.id,
        TeacherCreate(
            name="Anita Teacher",
            email="teacher@gvs.test",
            password=PASSWORD,
            assigned_class_ids=[school_class.id],
            assigned_subject_ids=[subject.id],
        ),
    )


@pytest_asyncio.fixture
async def teacher_user(db: AsyncSession, teacher: Teacher) -> User:
    return await db.get(User, teacher.user_id)
