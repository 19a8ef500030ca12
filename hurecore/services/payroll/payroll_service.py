"""
HURE Core - Payroll Service

Entry point for payroll operations: period management, entry generation,
payment status, lifecycle transitions, summaries and export.

Mutation rules:
- Entries are created and recalculated only while the period is a draft
- Payment status may change while the period is a draft or finalized
- Archived periods are read-only
"""

import logging
import uuid
from datetime import date, datetime, timezone
from typing import Callable, List, Optional, Tuple

from hurecore.models.payroll import PayMethod, PayrollEntry, PayrollPeriod, PeriodState
from hurecore.repositories.payroll_repository import PayrollRepository, PeriodTotals
from hurecore.services.payroll.entry_generator import GenerationReport, PayrollEntryGenerator
from hurecore.services.payroll.export import build_payroll_csv, sort_entries
from hurecore.services.payroll.period_lifecycle import PeriodLifecycleManager
from hurecore.utils.error_handling import (
    ConcurrencyConflictException,
    InvalidDateRangeException,
    PayrollEntryNotFoundException,
    PayrollPeriodNotFoundException,
    PeriodArchivedException,
    ValidationException,
)

logger = logging.getLogger(__name__)

PAYMENT_STATES = (PeriodState.DRAFT, PeriodState.FINALIZED)


class PayrollService:
    """Service for payroll periods and entries."""

    def __init__(
        self,
        repository: PayrollRepository,
        generator: PayrollEntryGenerator,
        lifecycle: PeriodLifecycleManager,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.repository = repository
        self.generator = generator
        self.lifecycle = lifecycle
        self.clock = clock

    # ===========================================
    # PERIODS
    # ===========================================

    async def create_period(
        self,
        organization_id: str,
        name: str,
        start_date: date,
        end_date: date,
    ) -> PayrollPeriod:
        """Create a draft payroll period; total_days is the inclusive day count."""
        name = (name or "").strip()
        if not name:
            raise ValidationException("Period name is required", field="name")
        if end_date < start_date:
            raise InvalidDateRangeException(start_date.isoformat(), end_date.isoformat())

        period = PayrollPeriod(
            id=uuid.uuid4(),
            organization_id=organization_id,
            name=name,
            start_date=start_date,
            end_date=end_date,
            total_days=(end_date - start_date).days + 1,
            is_finalized=False,
            finalized_at=None,
            finalized_by=None,
            is_archived=False,
            archived_at=None,
            archived_by=None,
        )
        period = await self.repository.add_period(period)
        logger.info(f"Created payroll period {period.id} '{name}' for org {organization_id}")
        return period

    async def get_period(self, organization_id: str, period_id: uuid.UUID) -> PayrollPeriod:
        period = await self.repository.get_period(organization_id, period_id)
        if period is None:
            raise PayrollPeriodNotFoundException(period_id)
        return period

    async def list_periods(self, organization_id: str, include_archived: bool = True) -> List[PayrollPeriod]:
        return await self.repository.list_periods(organization_id, include_archived)

    # ===========================================
    # ENTRIES
    # ===========================================

    async def generate_entries(self, organization_id: str, period_id: uuid.UUID) -> GenerationReport:
        return await self.generator.generate_entries(organization_id, period_id)

    async def add_staff_to_payroll(self, organization_id: str, period_id: uuid.UUID, staff_id: str) -> PayrollEntry:
        return await self.generator.add_staff_to_payroll(organization_id, period_id, staff_id)

    async def recalculate_entry(
        self,
        organization_id: str,
        entry_id: uuid.UUID,
        pay_method: Optional[PayMethod] = None,
        allowances_cents: Optional[int] = None,
    ) -> PayrollEntry:
        return await self.generator.recalculate_entry(organization_id, entry_id, pay_method, allowances_cents)

    async def get_entries(self, organization_id: str, period_id: uuid.UUID) -> List[PayrollEntry]:
        await self.get_period(organization_id, period_id)
        return sort_entries(await self.repository.list_entries(organization_id, period_id))

    async def get_entry_for_staff(self, organization_id: str, period_id: uuid.UUID, staff_id: str) -> PayrollEntry:
        """The staff member's entry in this period (matched on both ids)."""
        entry = await self.repository.get_entry_for_staff(organization_id, period_id, staff_id)
        if entry is None:
            raise PayrollEntryNotFoundException(
                message=f"No payroll entry for staff '{staff_id}' in period '{period_id}'"
            )
        return entry

    # ===========================================
    # PAYMENTS
    # ===========================================

    async def mark_as_paid(
        self,
        organization_id: str,
        entry_id: uuid.UUID,
        actor_id: Optional[str] = None,
        payment_reference: Optional[str] = None,
    ) -> PayrollEntry:
        entry = await self._set_payment(organization_id, entry_id, {
            "is_paid": True,
            "paid_at": self.clock(),
            "paid_by": actor_id,
            "payment_reference": payment_reference,
        }, "mark as paid")
        logger.info(f"Payroll entry {entry_id} marked as paid by {actor_id}")
        return entry

    async def unmark_as_paid(
        self,
        organization_id: str,
        entry_id: uuid.UUID,
        actor_id: Optional[str] = None,
    ) -> PayrollEntry:
        entry = await self._set_payment(organization_id, entry_id, {
            "is_paid": False,
            "paid_at": None,
            "paid_by": None,
            "payment_reference": None,
        }, "unmark as paid")
        logger.info(f"Payroll entry {entry_id} unmarked as paid by {actor_id}")
        return entry

    async def _set_payment(self, organization_id: str, entry_id: uuid.UUID, changes: dict, operation: str) -> PayrollEntry:
        entry = await self.repository.get_entry(organization_id, entry_id)
        if entry is None:
            raise PayrollEntryNotFoundException(entry_id)
        period = await self.get_period(organization_id, entry.payroll_period_id)
        if period.state == PeriodState.ARCHIVED:
            raise PeriodArchivedException(period.id, operation)

        updated = await self.repository.update_entry(
            organization_id, entry_id, changes, allowed_states=PAYMENT_STATES
        )
        if updated is None:
            # The period was archived between the check and the update
            raise ConcurrencyConflictException("Payroll entry", entry_id, operation)
        return updated

    async def mark_all_as_paid(
        self,
        organization_id: str,
        period_id: uuid.UUID,
        actor_id: Optional[str] = None,
    ) -> int:
        """Mark every unpaid entry of the period as paid; returns how many changed."""
        period = await self.get_period(organization_id, period_id)
        if period.state == PeriodState.ARCHIVED:
            raise PeriodArchivedException(period.id, "mark all as paid")

        count = await self.repository.update_unpaid_entries(
            organization_id,
            period_id,
            {"is_paid": True, "paid_at": self.clock(), "paid_by": actor_id},
            allowed_states=PAYMENT_STATES,
        )
        logger.info(f"Marked {count} payroll entries as paid in period {period_id} by {actor_id}")
        return count

    # ===========================================
    # LIFECYCLE
    # ===========================================

    async def finalize_period(self, organization_id: str, period_id: uuid.UUID, actor_id: Optional[str] = None) -> PayrollPeriod:
        return await self.lifecycle.finalize_period(organization_id, period_id, actor_id)

    async def unfinalize_period(self, organization_id: str, period_id: uuid.UUID, actor_id: Optional[str] = None) -> PayrollPeriod:
        return await self.lifecycle.unfinalize_period(organization_id, period_id, actor_id)

    async def archive_period(self, organization_id: str, period_id: uuid.UUID, actor_id: Optional[str] = None) -> PayrollPeriod:
        return await self.lifecycle.archive_period(organization_id, period_id, actor_id)

    async def unarchive_period(self, organization_id: str, period_id: uuid.UUID, actor_id: Optional[str] = None) -> PayrollPeriod:
        return await self.lifecycle.unarchive_period(organization_id, period_id, actor_id)

    # ===========================================
    # REPORTING
    # ===========================================

    async def get_period_summary(self, organization_id: str, period_id: uuid.UUID) -> PeriodTotals:
        await self.get_period(organization_id, period_id)
        return await self.repository.summarize(organization_id, period_id)

    async def export_entries_csv(self, organization_id: str, period_id: uuid.UUID) -> Tuple[str, str]:
        """Returns (csv content, filename)."""
        period = await self.get_period(organization_id, period_id)
        entries = await self.repository.list_entries(organization_id, period_id)
        return build_payroll_csv(period, entries)
