"""
HURE Core - FastAPI Dependencies

Dependency injection for:
1. Repositories bound to the shared session factory
2. Collaborator clients (staff, attendance, audit)
3. Payroll and statutory rule services
4. The acting user id
"""

from typing import Optional

from fastapi import Depends, Header

from hurecore.config import settings
from hurecore.database import async_session_maker
from hurecore.integrations.collaborators import (
    AttendanceProvider,
    AuditSink,
    LoggingAuditSink,
    StaffProvider,
)
from hurecore.integrations.http_collaborators import (
    HttpAttendanceProvider,
    HttpAuditSink,
    HttpStaffProvider,
)
from hurecore.repositories.payroll_repository import PayrollRepository, SqlAlchemyPayrollRepository
from hurecore.repositories.statutory_repository import (
    SqlAlchemyStatutoryRuleRepository,
    StatutoryRuleRepository,
)
from hurecore.services.payroll.entry_generator import PayrollEntryGenerator
from hurecore.services.payroll.payable_base import PayableBaseResolver
from hurecore.services.payroll.payroll_service import PayrollService
from hurecore.services.payroll.period_lifecycle import PeriodLifecycleManager
from hurecore.services.statutory.rules_service import StatutoryRulesService


def _client_options() -> dict:
    return {
        "api_key": settings.collaborator_api_key,
        "timeout_seconds": settings.collaborator_timeout_seconds,
        "max_retries": settings.collaborator_max_retries,
        "backoff_seconds": settings.collaborator_retry_backoff_seconds,
    }


# ===========================================
# REPOSITORIES
# ===========================================

def get_payroll_repository() -> PayrollRepository:
    return SqlAlchemyPayrollRepository(async_session_maker)


def get_statutory_repository() -> StatutoryRuleRepository:
    return SqlAlchemyStatutoryRuleRepository(async_session_maker)


# ===========================================
# COLLABORATORS
# ===========================================

def get_staff_provider() -> StaffProvider:
    return HttpStaffProvider(settings.staff_service_url, **_client_options())


def get_attendance_provider() -> AttendanceProvider:
    return HttpAttendanceProvider(settings.attendance_service_url, **_client_options())


def get_audit_sink() -> AuditSink:
    """HTTP audit sink when an audit service is configured, otherwise the log."""
    if settings.audit_service_url:
        return HttpAuditSink(settings.audit_service_url, **_client_options())
    return LoggingAuditSink()


# ===========================================
# SERVICES
# ===========================================

def get_statutory_rules_service(
    repository: StatutoryRuleRepository = Depends(get_statutory_repository),
) -> StatutoryRulesService:
    return StatutoryRulesService(repository)


def get_payroll_service(
    repository: PayrollRepository = Depends(get_payroll_repository),
    staff_provider: StaffProvider = Depends(get_staff_provider),
    attendance_provider: AttendanceProvider = Depends(get_attendance_provider),
    audit_sink: AuditSink = Depends(get_audit_sink),
    rules_service: StatutoryRulesService = Depends(get_statutory_rules_service),
) -> PayrollService:
    generator = PayrollEntryGenerator(
        repository=repository,
        staff_provider=staff_provider,
        attendance_provider=attendance_provider,
        rules_service=rules_service,
        resolver=PayableBaseResolver(settings.nominal_workday_hours),
        max_concurrency=settings.payroll_generation_concurrency,
        jurisdiction=settings.default_jurisdiction,
    )
    lifecycle = PeriodLifecycleManager(repository, audit_sink)
    return PayrollService(repository, generator, lifecycle)


# ===========================================
# ACTOR
# ===========================================

async def get_actor_id(x_actor_id: Optional[str] = Header(None, max_length=100)) -> Optional[str]:
    """
    Id of the user performing the request.

    Authentication happens upstream; the gateway forwards the user id in the
    X-Actor-Id header.
    """
    return x_actor_id
