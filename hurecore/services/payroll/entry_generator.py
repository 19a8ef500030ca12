"""
HURE Core - Payroll Entry Generator

Builds payroll entries for a draft period:

1. Load the period (must be a draft)
2. Resolve one statutory rule set for the whole run
3. For each active staff member without an entry: fetch attendance,
   resolve the payable base, calculate deductions, insert the entry

Staff are processed concurrently under a bounded semaphore. Every staff
member ends with an outcome (created, skipped or failed); one failure never
aborts the rest of the batch.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from hurecore.integrations.collaborators import AttendanceProvider, StaffProfile, StaffProvider
from hurecore.models.payroll import PayMethod, PayrollEntry, PayrollPeriod, PeriodState
from hurecore.repositories.payroll_repository import PayrollRepository
from hurecore.services.payroll.payable_base import (
    AttendanceSummary,
    PayableBaseResolver,
)
from hurecore.services.statutory.deduction_calculator import DeductionCalculator
from hurecore.services.statutory.rules import DEFAULT_JURISDICTION, RuleSet
from hurecore.services.statutory.rules_service import StatutoryRulesService
from hurecore.utils.error_handling import (
    AppException,
    DuplicateEntryException,
    PayrollEntryNotFoundException,
    PayrollPeriodNotFoundException,
    PeriodArchivedException,
    PeriodFinalizedException,
    StaffNotFoundException,
    validate_cents,
)

logger = logging.getLogger(__name__)

ACTIVE_STATUS = "Active"


class OutcomeStatus(str, Enum):
    CREATED = "created"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class StaffOutcome:
    staff_id: str
    status: OutcomeStatus
    entry: Optional[PayrollEntry] = None
    error: Optional[str] = None


@dataclass
class GenerationReport:
    """Per-staff outcomes of one generation run."""
    period_id: uuid.UUID
    rule_set_version: int
    outcomes: List[StaffOutcome] = field(default_factory=list)

    @property
    def created(self) -> List[StaffOutcome]:
        return [o for o in self.outcomes if o.status == OutcomeStatus.CREATED]

    @property
    def skipped(self) -> List[StaffOutcome]:
        return [o for o in self.outcomes if o.status == OutcomeStatus.SKIPPED]

    @property
    def failed(self) -> List[StaffOutcome]:
        return [o for o in self.outcomes if o.status == OutcomeStatus.FAILED]


def ensure_draft(period: PayrollPeriod, operation: str) -> None:
    """Raise unless the period is still a draft."""
    if period.state == PeriodState.ARCHIVED:
        raise PeriodArchivedException(period.id, operation)
    if period.state == PeriodState.FINALIZED:
        raise PeriodFinalizedException(period.id, operation)


class PayrollEntryGenerator:
    """Creates and recalculates payroll entries."""

    def __init__(
        self,
        repository: PayrollRepository,
        staff_provider: StaffProvider,
        attendance_provider: AttendanceProvider,
        rules_service: StatutoryRulesService,
        resolver: Optional[PayableBaseResolver] = None,
        calculator: Optional[DeductionCalculator] = None,
        max_concurrency: int = 8,
        jurisdiction: str = DEFAULT_JURISDICTION,
    ):
        self.repository = repository
        self.staff_provider = staff_provider
        self.attendance_provider = attendance_provider
        self.rules_service = rules_service
        self.resolver = resolver or PayableBaseResolver()
        self.calculator = calculator or DeductionCalculator()
        self.max_concurrency = max(1, max_concurrency)
        self.jurisdiction = jurisdiction

    async def _load_draft_period(self, organization_id: str, period_id: uuid.UUID, operation: str) -> PayrollPeriod:
        period = await self.repository.get_period(organization_id, period_id)
        if period is None:
            raise PayrollPeriodNotFoundException(period_id)
        ensure_draft(period, operation)
        return period

    async def generate_entries(self, organization_id: str, period_id: uuid.UUID) -> GenerationReport:
        """
        Generate entries for every active staff member not yet on the period.

        Safe to re-run: staff that already have an entry are skipped.

        Raises:
            PayrollPeriodNotFoundException: If the period does not exist
            PeriodFinalizedException: If the period is not a draft
        """
        period = await self._load_draft_period(organization_id, period_id, "entry generation")
        rule_set = await self.rules_service.get_active_rules(self.jurisdiction)

        staff_members = [
            staff for staff in await self.staff_provider.get_active_staff(organization_id)
            if staff.staff_status == ACTIVE_STATUS
        ]
        existing = await self.repository.existing_staff_ids(organization_id, period_id)

        report = GenerationReport(period_id=period.id, rule_set_version=rule_set.version)
        pending = []
        for staff in staff_members:
            if staff.id in existing:
                report.outcomes.append(StaffOutcome(staff.id, OutcomeStatus.SKIPPED, error="Entry already exists"))
            else:
                pending.append(staff)

        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def process(staff: StaffProfile) -> StaffOutcome:
            async with semaphore:
                return await self._generate_for_staff(organization_id, period, staff, rule_set)

        report.outcomes.extend(await asyncio.gather(*(process(staff) for staff in pending)))

        logger.info(
            f"Generated payroll for period {period.id}: created={len(report.created)} "
            f"skipped={len(report.skipped)} failed={len(report.failed)} "
            f"rule_set_version={rule_set.version}"
        )
        return report

    async def _generate_for_staff(
        self,
        organization_id: str,
        period: PayrollPeriod,
        staff: StaffProfile,
        rule_set: RuleSet,
    ) -> StaffOutcome:
        try:
            entry = await self._create_entry(organization_id, period, staff, rule_set)
            return StaffOutcome(staff.id, OutcomeStatus.CREATED, entry=entry)
        except DuplicateEntryException:
            return StaffOutcome(staff.id, OutcomeStatus.SKIPPED, error="Entry already exists")
        except AppException as e:
            logger.error(f"Payroll generation failed for staff {staff.id} in period {period.id}: {e.message}")
            return StaffOutcome(staff.id, OutcomeStatus.FAILED, error=e.message)
        except Exception as e:
            logger.exception(f"Payroll generation failed for staff {staff.id} in period {period.id}")
            return StaffOutcome(staff.id, OutcomeStatus.FAILED, error=str(e) or type(e).__name__)

    async def _create_entry(
        self,
        organization_id: str,
        period: PayrollPeriod,
        staff: StaffProfile,
        rule_set: RuleSet,
    ) -> PayrollEntry:
        records = await self.attendance_provider.get_records(
            organization_id, staff.id, period.start_date, period.end_date
        )
        summary = AttendanceSummary.from_records(records, self.resolver.nominal_workday_hours)
        base = self.resolver.resolve(staff, summary, period.total_days)
        breakdown = self.calculator.calculate(base.payable_base_cents, rule_set, allowances_cents=0)

        entry = PayrollEntry(
            id=uuid.uuid4(),
            payroll_period_id=period.id,
            organization_id=organization_id,
            staff_id=staff.id,
            staff_name=staff.full_name,
            staff_email=staff.email,
            job_title=staff.job_title,
            pay_method=base.pay_method,
            base_salary_cents=base.base_salary_cents,
            rate_cents=base.rate_cents,
            worked_units=summary.worked_units,
            paid_leave_units=summary.paid_leave_units,
            unpaid_leave_units=summary.unpaid_leave_units,
            absent_units=summary.absent_units,
            payable_base_cents=base.payable_base_cents,
            allowances_total_cents=0,
            gross_pay_cents=breakdown.gross_pay_cents,
            deductions_total_cents=breakdown.total_deductions_cents,
            net_pay_cents=breakdown.net_pay_cents,
            deduction_details=breakdown.to_details(),
            rule_set_version=rule_set.version,
            validation_errors=list(breakdown.validation.errors),
            is_paid=False,
            paid_at=None,
            paid_by=None,
            payment_reference=None,
        )
        return await self.repository.add_entry(entry)

    async def add_staff_to_payroll(
        self, organization_id: str, period_id: uuid.UUID, staff_id: str
    ) -> PayrollEntry:
        """
        Add one staff member to a draft period.

        Raises:
            PayrollPeriodNotFoundException: If the period does not exist
            PeriodFinalizedException: If the period is not a draft
            StaffNotFoundException: If the staff member is unknown or inactive
            DuplicateEntryException: If the staff member already has an entry
        """
        period = await self._load_draft_period(organization_id, period_id, "adding staff")
        staff = await self.staff_provider.get_staff(organization_id, staff_id)
        if staff is None or staff.staff_status != ACTIVE_STATUS:
            raise StaffNotFoundException(staff_id)

        if await self.repository.get_entry_for_staff(organization_id, period_id, staff_id) is not None:
            raise DuplicateEntryException("Payroll entry", "staff_id", staff_id)

        rule_set = await self.rules_service.get_active_rules(self.jurisdiction)
        entry = await self._create_entry(organization_id, period, staff, rule_set)
        logger.info(f"Added staff {staff_id} to payroll period {period_id}")
        return entry

    async def recalculate_entry(
        self,
        organization_id: str,
        entry_id: uuid.UUID,
        pay_method: Optional[PayMethod] = None,
        allowances_cents: Optional[int] = None,
    ) -> PayrollEntry:
        """
        Recompute an entry after a pay method or allowance change.

        Uses the attendance units stored on the entry, current staff rates and
        the rule set now in effect. Only allowed while the period is a draft.

        Raises:
            PayrollEntryNotFoundException: If the entry does not exist
            PeriodFinalizedException: If the period is not a draft
            ValidationException: If allowances are negative
        """
        entry = await self.repository.get_entry(organization_id, entry_id)
        if entry is None:
            raise PayrollEntryNotFoundException(entry_id)
        period = await self._load_draft_period(organization_id, entry.payroll_period_id, "entry recalculation")

        allowances = entry.allowances_total_cents if allowances_cents is None else allowances_cents
        validate_cents(allowances, "allowances_cents")

        staff = await self.staff_provider.get_staff(organization_id, entry.staff_id)
        if staff is None:
            raise StaffNotFoundException(entry.staff_id)

        summary = AttendanceSummary(
            worked_units=entry.worked_units,
            paid_leave_units=entry.paid_leave_units,
            unpaid_leave_units=entry.unpaid_leave_units,
            absent_units=entry.absent_units,
        )
        base = self.resolver.resolve(staff, summary, period.total_days, pay_method=pay_method or entry.pay_method)
        rule_set = await self.rules_service.get_active_rules(self.jurisdiction)
        breakdown = self.calculator.calculate(base.payable_base_cents, rule_set, allowances_cents=allowances)

        changes = {
            "pay_method": base.pay_method,
            "base_salary_cents": base.base_salary_cents,
            "rate_cents": base.rate_cents,
            "payable_base_cents": base.payable_base_cents,
            "allowances_total_cents": allowances,
            "gross_pay_cents": breakdown.gross_pay_cents,
            "deductions_total_cents": breakdown.total_deductions_cents,
            "net_pay_cents": breakdown.net_pay_cents,
            "deduction_details": breakdown.to_details(),
            "rule_set_version": rule_set.version,
            "validation_errors": list(breakdown.validation.errors),
        }
        updated = await self.repository.update_entry(
            organization_id, entry_id, changes, allowed_states=[PeriodState.DRAFT]
        )
        if updated is None:
            raise PeriodFinalizedException(period.id, "entry recalculation")

        logger.info(
            f"Recalculated payroll entry {entry_id}: method={base.pay_method.value} "
            f"allowances={allowances} net={breakdown.net_pay_cents}"
        )
        return updated
