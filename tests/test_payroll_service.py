"""
HURE Core - Payroll Service Tests

Periods, payment status, summaries and CSV export.
"""

import uuid
from datetime import date

import pytest

from hurecore.models.payroll import PeriodState
from hurecore.utils.error_handling import (
    InvalidDateRangeException,
    PayrollEntryNotFoundException,
    PayrollPeriodNotFoundException,
    PeriodArchivedException,
    ValidationException,
)
from tests.conftest import FIXED_NOW, ORG_ID


async def generated_entries(payroll_service, period):
    await payroll_service.generate_entries(ORG_ID, period.id)
    return {e.staff_id: e for e in await payroll_service.get_entries(ORG_ID, period.id)}


class TestPeriods:
    """create_period / get_period / list_periods"""

    @pytest.mark.asyncio
    async def test_create_period(self, september_period):
        assert september_period.name == "September 2026"
        assert september_period.total_days == 30
        assert september_period.state == PeriodState.DRAFT

    @pytest.mark.asyncio
    async def test_single_day_period(self, payroll_service):
        period = await payroll_service.create_period(ORG_ID, "Bonus run", date(2026, 9, 15), date(2026, 9, 15))

        assert period.total_days == 1

    @pytest.mark.asyncio
    async def test_end_before_start_rejected(self, payroll_service):
        with pytest.raises(InvalidDateRangeException):
            await payroll_service.create_period(ORG_ID, "Bad", date(2026, 9, 30), date(2026, 9, 1))

    @pytest.mark.asyncio
    async def test_blank_name_rejected(self, payroll_service):
        with pytest.raises(ValidationException):
            await payroll_service.create_period(ORG_ID, "   ", date(2026, 9, 1), date(2026, 9, 30))

    @pytest.mark.asyncio
    async def test_period_scoped_to_organization(self, payroll_service, september_period):
        with pytest.raises(PayrollPeriodNotFoundException):
            await payroll_service.get_period("org-other", september_period.id)

    @pytest.mark.asyncio
    async def test_list_excludes_archived_on_request(self, payroll_service, september_period):
        october = await payroll_service.create_period(ORG_ID, "October 2026", date(2026, 10, 1), date(2026, 10, 31))
        await payroll_service.finalize_period(ORG_ID, september_period.id)
        await payroll_service.archive_period(ORG_ID, september_period.id)

        everything = await payroll_service.list_periods(ORG_ID)
        current = await payroll_service.list_periods(ORG_ID, include_archived=False)

        assert [p.id for p in everything] == [october.id, september_period.id]
        assert [p.id for p in current] == [october.id]


class TestEntries:

    @pytest.mark.asyncio
    async def test_entries_sorted_by_name(self, payroll_service, september_period):
        await payroll_service.generate_entries(ORG_ID, september_period.id)

        entries = await payroll_service.get_entries(ORG_ID, september_period.id)

        assert [e.staff_name for e in entries] == [
            "Alice Wanjiru", "Brian Otieno", "Carol Njeri", "David Kamau",
        ]

    @pytest.mark.asyncio
    async def test_entry_for_staff(self, payroll_service, september_period):
        await payroll_service.generate_entries(ORG_ID, september_period.id)

        entry = await payroll_service.get_entry_for_staff(ORG_ID, september_period.id, "s-002")

        assert entry.staff_name == "Brian Otieno"

    @pytest.mark.asyncio
    async def test_entry_for_staff_matches_period(self, payroll_service, september_period):
        await payroll_service.generate_entries(ORG_ID, september_period.id)
        october = await payroll_service.create_period(ORG_ID, "October 2026", date(2026, 10, 1), date(2026, 10, 31))

        with pytest.raises(PayrollEntryNotFoundException):
            await payroll_service.get_entry_for_staff(ORG_ID, october.id, "s-002")


class TestPayments:
    """mark_as_paid / unmark_as_paid / mark_all_as_paid"""

    @pytest.mark.asyncio
    async def test_mark_as_paid(self, payroll_service, september_period):
        entries = await generated_entries(payroll_service, september_period)

        entry = await payroll_service.mark_as_paid(
            ORG_ID, entries["s-001"].id, actor_id="admin-1", payment_reference="MPESA-QX12"
        )

        assert entry.is_paid
        assert entry.paid_at == FIXED_NOW
        assert entry.paid_by == "admin-1"
        assert entry.payment_reference == "MPESA-QX12"

    @pytest.mark.asyncio
    async def test_unmark_restores_unpaid_state(self, payroll_service, september_period):
        entries = await generated_entries(payroll_service, september_period)
        entry_id = entries["s-001"].id
        await payroll_service.mark_as_paid(ORG_ID, entry_id, actor_id="admin-1", payment_reference="REF-1")

        entry = await payroll_service.unmark_as_paid(ORG_ID, entry_id, actor_id="admin-1")

        assert entry.is_paid is False
        assert entry.paid_at is None
        assert entry.paid_by is None
        assert entry.payment_reference is None

    @pytest.mark.asyncio
    async def test_payment_allowed_when_finalized(self, payroll_service, september_period):
        entries = await generated_entries(payroll_service, september_period)
        await payroll_service.finalize_period(ORG_ID, september_period.id)

        entry = await payroll_service.mark_as_paid(ORG_ID, entries["s-002"].id, actor_id="admin-1")

        assert entry.is_paid

    @pytest.mark.asyncio
    async def test_payment_rejected_when_archived(self, payroll_service, september_period):
        entries = await generated_entries(payroll_service, september_period)
        await payroll_service.finalize_period(ORG_ID, september_period.id)
        await payroll_service.archive_period(ORG_ID, september_period.id)

        with pytest.raises(PeriodArchivedException):
            await payroll_service.mark_as_paid(ORG_ID, entries["s-002"].id)
        with pytest.raises(PeriodArchivedException):
            await payroll_service.mark_all_as_paid(ORG_ID, september_period.id)
        assert entries["s-002"].is_paid is False

    @pytest.mark.asyncio
    async def test_unknown_entry(self, payroll_service):
        with pytest.raises(PayrollEntryNotFoundException):
            await payroll_service.mark_as_paid(ORG_ID, uuid.uuid4())

    @pytest.mark.asyncio
    async def test_mark_all_touches_only_unpaid(self, payroll_service, september_period):
        entries = await generated_entries(payroll_service, september_period)
        await payroll_service.mark_as_paid(ORG_ID, entries["s-001"].id, actor_id="admin-1", payment_reference="REF-1")

        count = await payroll_service.mark_all_as_paid(ORG_ID, september_period.id, actor_id="admin-2")

        assert count == 3
        assert entries["s-001"].paid_by == "admin-1"
        assert entries["s-001"].payment_reference == "REF-1"
        assert entries["s-004"].paid_by == "admin-2"
        assert await payroll_service.mark_all_as_paid(ORG_ID, september_period.id) == 0


class TestSummary:

    @pytest.mark.asyncio
    async def test_period_totals(self, payroll_service, september_period):
        entries = await generated_entries(payroll_service, september_period)
        await payroll_service.mark_as_paid(ORG_ID, entries["s-001"].id)

        totals = await payroll_service.get_period_summary(ORG_ID, september_period.id)

        assert totals.total_entries == 4
        assert totals.total_gross_cents == 13_200_000
        assert totals.total_net_cents == 11_008_130
        assert totals.total_net_cents + totals.total_deductions_cents == totals.total_gross_cents
        assert totals.paid_count == 1
        assert totals.pending_count == 3
        assert totals.flagged_count == 0

    @pytest.mark.asyncio
    async def test_empty_period(self, payroll_service, september_period):
        totals = await payroll_service.get_period_summary(ORG_ID, september_period.id)

        assert totals.total_entries == 0
        assert totals.total_gross_cents == 0


class TestCsvExport:
    """export_entries_csv"""

    @pytest.mark.asyncio
    async def test_layout(self, payroll_service, september_period):
        await payroll_service.generate_entries(ORG_ID, september_period.id)

        content, filename = await payroll_service.export_entries_csv(ORG_ID, september_period.id)
        lines = content.split("\n")

        assert filename == "payroll_September_2026_20260901.csv"
        assert lines[0] == "Payroll Export - September 2026"
        assert lines[1] == "Period: 2026-09-01 to 2026-09-30"
        assert lines[2] == ""
        assert lines[3].startswith("Employee Name,Staff ID,Email,Job Title,Pay Method")
        assert lines[4] == (
            "Alice Wanjiru,s-001,alice@clinic.co.ke,Nurse,Fixed,50000.00,"
            "0.00,0.00,0.00,50000.00,10264.35,39735.65,Pending"
        )
        assert lines[7].startswith("David Kamau,s-004,,Security,Per Shift,")
        assert ",40.00,1.00,1.00,12000.00," in lines[7]
        assert len([line for line in lines if line]) == 8

    @pytest.mark.asyncio
    async def test_export_is_reproducible(self, payroll_service, september_period):
        await payroll_service.generate_entries(ORG_ID, september_period.id)

        first, _ = await payroll_service.export_entries_csv(ORG_ID, september_period.id)
        second, _ = await payroll_service.export_entries_csv(ORG_ID, september_period.id)

        assert first == second

    @pytest.mark.asyncio
    async def test_status_column_follows_payment(self, payroll_service, september_period):
        entries = await generated_entries(payroll_service, september_period)
        await payroll_service.mark_as_paid(ORG_ID, entries["s-001"].id)

        content, _ = await payroll_service.export_entries_csv(ORG_ID, september_period.id)

        assert content.split("\n")[4].endswith(",Paid")
        assert content.split("\n")[5].endswith(",Pending")
