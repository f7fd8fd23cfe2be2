"""Shared test fixtures: async DB, client, auth helpers, factories.

Uses SQLite + aiosqlite for fast isolated tests without PostgreSQL.
"""

from __future__ import annotations

import os

# Set test JWT_SECRET before any other import touches pydantic-settings
os.environ.setdefault("JWT_SECRET", "test-secret-for-ci-do-not-use-in-production")

import uuid
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from typing import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient
from jose import jwt
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from hrops.common.constants import (
    ANNUAL_LEAVE,
    COMPASSIONATE_LEAVE,
    DEFAULT_WORKING_DAYS,
    HAJJ_LEAVE,
    MATERNITY_LEAVE,
    PARENTAL_LEAVE,
    SICK_LEAVE,
    STUDY_LEAVE,
    EmploymentStatus,
    UserRole,
)
from hrops.config import settings
from hrops.database import Base, get_db
from hrops.main import create_app

# Import ALL model modules so SQLAlchemy can resolve cross-module relationships
import hrops.common.audit  # noqa: F401
import hrops.core_hr.models  # noqa: F401
import hrops.attendance.models  # noqa: F401
import hrops.leave.models  # noqa: F401

from hrops.attendance.models import WorkSchedule
from hrops.core_hr.models import Employee
from hrops.leave.models import LeaveType

# ── SQLite compat: compile PG-specific types to TEXT/CHAR ───────────

from sqlalchemy.dialects.postgresql import JSONB, UUID as PG_UUID
from sqlalchemy.ext.compiler import compiles


@compiles(JSONB, "sqlite")
def _jsonb_sqlite(element, compiler, **kw):
    return "TEXT"


@compiles(PG_UUID, "sqlite")
def _uuid_sqlite(element, compiler, **kw):
    return "CHAR(36)"


# ── Test database (SQLite in-memory) ────────────────────────────────

TEST_DATABASE_URL = "sqlite+aiosqlite://"

engine = create_async_engine(
    TEST_DATABASE_URL,
    echo=False,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


@event.listens_for(engine.sync_engine, "connect")
def _register_sqlite_functions(dbapi_conn, connection_record):
    """Register NOW() as a SQLite custom function."""
    dbapi_conn.create_function(
        "NOW", 0, lambda: datetime.now(timezone.utc).isoformat(),
    )


TestSessionFactory = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False,
)


@pytest.fixture(autouse=True)
async def _setup_db():
    """Create all tables before each test, drop after."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture(autouse=True)
def _reset_rate_limiter():
    """Reset rate limiter storage between tests to prevent cross-test interference."""
    from hrops.common.rate_limit import limiter

    limiter.reset()
    yield


async def _override_get_db() -> AsyncGenerator[AsyncSession, None]:
    async with TestSessionFactory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


# ── FastAPI test client ─────────────────────────────────────────────

@pytest.fixture
async def app():
    """Create a fresh app instance with DB dependency overridden."""
    application = create_app()
    application.dependency_overrides[get_db] = _override_get_db
    yield application
    application.dependency_overrides.clear()


@pytest.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client wired to the test app."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


# ── Database session (for direct DB operations in tests) ────────────

@pytest.fixture
async def db() -> AsyncGenerator[AsyncSession, None]:
    async with TestSessionFactory() as session:
        yield session
        await session.commit()


# ── Model factories ─────────────────────────────────────────────────

def _make_employee(
    *,
    full_name: str = "Test User",
    email: str | None = None,
    hire_date: date | None = date(2020, 1, 15),
    probation_end_date: date | None = None,
    status: EmploymentStatus = EmploymentStatus.active,
    role: UserRole = UserRole.employee,
) -> dict:
    code = uuid.uuid4().hex[:6].upper()
    return dict(
        id=uuid.uuid4(),
        employee_code=f"HR-{code}",
        full_name=full_name,
        email=email or f"user.{code.lower()}@hrops.test",
        hire_date=hire_date,
        probation_end_date=probation_end_date,
        status=status,
        role=role,
        created_at=datetime.now(timezone.utc),
        updated_at=datetime.now(timezone.utc),
    )


def _make_schedule(
    employee_id: uuid.UUID,
    *,
    start: time = time(9, 0),
    end: time = time(17, 0),
    minimum_hours: Decimal = Decimal("8.00"),
    working_days: list[str] | None = None,
) -> dict:
    return dict(
        id=uuid.uuid4(),
        employee_id=employee_id,
        start_time=start,
        end_time=end,
        minimum_daily_hours=minimum_hours,
        working_days=list(DEFAULT_WORKING_DAYS) if working_days is None else working_days,
        is_active=True,
    )


async def create_employee(db: AsyncSession, **kwargs) -> Employee:
    emp = Employee(**_make_employee(**kwargs))
    db.add(emp)
    await db.flush()
    return emp


async def create_schedule(db: AsyncSession, employee_id: uuid.UUID, **kwargs) -> WorkSchedule:
    schedule = WorkSchedule(**_make_schedule(employee_id, **kwargs))
    db.add(schedule)
    await db.flush()
    return schedule


ALL_LEAVE_TYPES = (
    ANNUAL_LEAVE,
    SICK_LEAVE,
    MATERNITY_LEAVE,
    PARENTAL_LEAVE,
    COMPASSIONATE_LEAVE,
    STUDY_LEAVE,
    HAJJ_LEAVE,
)


@pytest.fixture
async def leave_types(db) -> dict[str, LeaveType]:
    """Seed the standard leave types; keyed by name."""
    types = {name: LeaveType(id=uuid.uuid4(), name=name) for name in ALL_LEAVE_TYPES}
    db.add_all(types.values())
    await db.flush()
    return types


@pytest.fixture
async def test_employee(db) -> Employee:
    """Active employee hired 2020-01-15 with the default schedule."""
    emp = await create_employee(db, full_name="Aisha Rahman")
    await create_schedule(db, emp.id)
    await db.commit()
    return emp


@pytest.fixture
async def admin_employee(db) -> Employee:
    emp = await create_employee(db, full_name="HR Admin", role=UserRole.admin)
    await db.commit()
    return emp


# ── Auth helpers ────────────────────────────────────────────────────

def create_access_token(
    employee_id: uuid.UUID,
    role: UserRole = UserRole.employee,
    expired: bool = False,
) -> str:
    """Generate a JWT access token for testing."""
    if expired:
        exp = datetime.now(timezone.utc) - timedelta(hours=1)
    else:
        exp = datetime.now(timezone.utc) + timedelta(hours=1)
    payload = {
        "sub": str(employee_id),
        "role": role.value,
        "exp": exp,
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def auth_headers_for(employee: Employee) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(employee.id, employee.role)}"}


@pytest.fixture
def auth_headers(test_employee) -> dict[str, str]:
    return auth_headers_for(test_employee)


@pytest.fixture
def admin_headers(admin_employee) -> dict[str, str]:
    return auth_headers_for(admin_employee)
