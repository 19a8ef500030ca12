"""
HURE Core - Test Configuration

Pytest fixtures and configuration. Engine tests run against the in-memory
repositories and collaborator stubs in tests/fixtures. Repository tests run
against a separate PostgreSQL test database (TEST_DATABASE_URL) and are
skipped when it is unreachable.
"""

import os
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import AsyncGenerator, Dict, List

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

import hurecore.models  # noqa: F401
from hurecore.config import settings
from hurecore.database import Base
from hurecore.dependencies import get_payroll_service, get_statutory_rules_service
from hurecore.integrations.collaborators import AttendanceRecord, StaffProfile
from hurecore.services.payroll.entry_generator import PayrollEntryGenerator
from hurecore.services.payroll.payroll_service import PayrollService
from hurecore.services.payroll.period_lifecycle import PeriodLifecycleManager
from hurecore.services.statutory.deduction_calculator import DeductionCalculator
from hurecore.services.statutory.rules import DEFAULT_KENYA_RULES
from hurecore.services.statutory.rules_service import StatutoryRulesService
from main import app
from tests.fixtures.in_memory import (
    InMemoryPayrollRepository,
    InMemoryStatutoryRuleRepository,
    RecordingAuditSink,
    StubAttendanceProvider,
    StubStaffProvider,
)


ORG_ID = "org-nairobi-clinic"
FIXED_NOW = datetime(2026, 10, 1, 9, 0, tzinfo=timezone.utc)

# Test database URL (use separate test database)
TEST_DATABASE_URL = os.environ.get(
    "TEST_DATABASE_URL",
    settings.database_url_async.rsplit("/", 1)[0] + "/hurecore_test",
)


def attendance_days(start: date, count: int, status: str = "Present", hours=None) -> List[AttendanceRecord]:
    """``count`` consecutive days of attendance starting at ``start``."""
    return [
        AttendanceRecord(
            date=date(start.year, start.month, start.day + i),
            status=status,
            total_hours=Decimal(str(hours)) if hours is not None else None,
        )
        for i in range(count)
    ]


@pytest.fixture
def staff_members() -> List[StaffProfile]:
    return [
        StaffProfile(
            id="s-001", full_name="Alice Wanjiru", pay_method="Fixed",
            monthly_salary_cents=5_000_000, email="alice@clinic.co.ke", job_title="Nurse",
        ),
        StaffProfile(
            id="s-002", full_name="Brian Otieno", pay_method="Hourly",
            hourly_rate_cents=50_000, job_title="Locum",
        ),
        StaffProfile(
            id="s-003", full_name="Carol Njeri", pay_method="Prorated",
            monthly_salary_cents=6_000_000, job_title="Pharmacist",
        ),
        StaffProfile(
            id="s-004", full_name="David Kamau", pay_method="Per Shift",
            daily_rate_cents=240_000, job_title="Security",
        ),
        StaffProfile(
            id="s-005", full_name="Esther Achieng", pay_method="Fixed",
            monthly_salary_cents=4_000_000, staff_status="Inactive",
        ),
    ]


@pytest.fixture
def attendance_records() -> Dict[str, List[AttendanceRecord]]:
    return {
        # 10 days x 8h = 80 hours
        "s-002": attendance_days(date(2026, 9, 1), 10, "Present", 8),
        # 15 days with no recorded hours = 120 hours
        "s-003": attendance_days(date(2026, 9, 1), 15, "Worked"),
        # 5 shifts of 8h, one leave day, one absence
        "s-004": (
            attendance_days(date(2026, 9, 1), 5, "Worked", 8)
            + attendance_days(date(2026, 9, 6), 1, "On Leave")
            + attendance_days(date(2026, 9, 7), 1, "Absent")
        ),
    }


@pytest.fixture
def rule_repository() -> InMemoryStatutoryRuleRepository:
    return InMemoryStatutoryRuleRepository([DEFAULT_KENYA_RULES])


@pytest.fixture
def rules_service(rule_repository) -> StatutoryRulesService:
    return StatutoryRulesService(rule_repository, DeductionCalculator())


@pytest.fixture
def payroll_repository() -> InMemoryPayrollRepository:
    return InMemoryPayrollRepository()


@pytest.fixture
def staff_provider(staff_members) -> StubStaffProvider:
    return StubStaffProvider(staff_members)


@pytest.fixture
def attendance_provider(attendance_records) -> StubAttendanceProvider:
    return StubAttendanceProvider(attendance_records)


@pytest.fixture
def audit_sink() -> RecordingAuditSink:
    return RecordingAuditSink()


@pytest.fixture
def generator(payroll_repository, staff_provider, attendance_provider, rules_service) -> PayrollEntryGenerator:
    return PayrollEntryGenerator(
        repository=payroll_repository,
        staff_provider=staff_provider,
        attendance_provider=attendance_provider,
        rules_service=rules_service,
        max_concurrency=2,
    )


@pytest.fixture
def lifecycle(payroll_repository, audit_sink) -> PeriodLifecycleManager:
    return PeriodLifecycleManager(payroll_repository, audit_sink, clock=lambda: FIXED_NOW)


@pytest.fixture
def payroll_service(payroll_repository, generator, lifecycle) -> PayrollService:
    return PayrollService(payroll_repository, generator, lifecycle, clock=lambda: FIXED_NOW)


@pytest_asyncio.fixture
async def september_period(payroll_service):
    """A 30-day draft period."""
    return await payroll_service.create_period(
        ORG_ID, "September 2026", date(2026, 9, 1), date(2026, 9, 30)
    )


@pytest_asyncio.fixture
async def client(payroll_service, rules_service) -> AsyncGenerator[AsyncClient, None]:
    """Test client with the services wired to in-memory storage."""
    app.dependency_overrides[get_payroll_service] = lambda: payroll_service
    app.dependency_overrides[get_statutory_rules_service] = lambda: rules_service

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


# ===========================================
# DATABASE FIXTURES
# ===========================================

@pytest_asyncio.fixture
async def db_session_factory() -> AsyncGenerator[async_sessionmaker, None]:
    """Session factory over a freshly created schema in the test database."""
    engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=NullPool)
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        await engine.dispose()
        pytest.skip(f"Test database unavailable: {e}")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()
