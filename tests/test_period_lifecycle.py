"""
HURE Core - Payroll Period Lifecycle Tests

Draft -> Finalized -> Archived and back, with audit events.
"""

import asyncio
import uuid

import pytest

from hurecore.models.payroll import PeriodState
from hurecore.services.payroll.period_lifecycle import PeriodLifecycleManager
from hurecore.utils.error_handling import (
    ConcurrencyConflictException,
    InvalidPeriodTransitionException,
    NotFinalizedException,
    PayrollPeriodNotFoundException,
    PeriodFinalizedException,
)
from tests.conftest import FIXED_NOW, ORG_ID
from tests.fixtures.in_memory import FailingAuditSink


class TestTransitions:
    """Allowed edges of the state machine."""

    @pytest.mark.asyncio
    async def test_finalize(self, lifecycle, september_period):
        period = await lifecycle.finalize_period(ORG_ID, september_period.id, "admin-1")

        assert period.state == PeriodState.FINALIZED
        assert period.finalized_at == FIXED_NOW
        assert period.finalized_by == "admin-1"

    @pytest.mark.asyncio
    async def test_unfinalize_clears_stamps(self, lifecycle, september_period):
        await lifecycle.finalize_period(ORG_ID, september_period.id, "admin-1")

        period = await lifecycle.unfinalize_period(ORG_ID, september_period.id, "admin-2")

        assert period.state == PeriodState.DRAFT
        assert period.finalized_at is None
        assert period.finalized_by is None

    @pytest.mark.asyncio
    async def test_archive_and_unarchive(self, lifecycle, september_period):
        await lifecycle.finalize_period(ORG_ID, september_period.id, "admin-1")

        archived = await lifecycle.archive_period(ORG_ID, september_period.id, "admin-1")
        assert archived.state == PeriodState.ARCHIVED
        assert archived.archived_by == "admin-1"
        assert archived.is_finalized

        restored = await lifecycle.unarchive_period(ORG_ID, september_period.id, "admin-1")
        assert restored.state == PeriodState.FINALIZED
        assert restored.archived_at is None
        assert restored.finalized_by == "admin-1"


class TestRejectedTransitions:
    """Edges the state machine does not have."""

    @pytest.mark.asyncio
    async def test_finalize_twice(self, lifecycle, september_period):
        await lifecycle.finalize_period(ORG_ID, september_period.id)

        with pytest.raises(PeriodFinalizedException):
            await lifecycle.finalize_period(ORG_ID, september_period.id)

    @pytest.mark.asyncio
    async def test_unfinalize_draft(self, lifecycle, september_period):
        with pytest.raises(NotFinalizedException):
            await lifecycle.unfinalize_period(ORG_ID, september_period.id)

    @pytest.mark.asyncio
    async def test_draft_cannot_be_archived(self, lifecycle, september_period):
        with pytest.raises(NotFinalizedException):
            await lifecycle.archive_period(ORG_ID, september_period.id)

        assert september_period.state == PeriodState.DRAFT

    @pytest.mark.asyncio
    async def test_archived_cannot_be_unfinalized(self, lifecycle, september_period):
        await lifecycle.finalize_period(ORG_ID, september_period.id)
        await lifecycle.archive_period(ORG_ID, september_period.id)

        with pytest.raises(InvalidPeriodTransitionException):
            await lifecycle.unfinalize_period(ORG_ID, september_period.id)

    @pytest.mark.asyncio
    async def test_archive_twice(self, lifecycle, september_period):
        await lifecycle.finalize_period(ORG_ID, september_period.id)
        await lifecycle.archive_period(ORG_ID, september_period.id)

        with pytest.raises(InvalidPeriodTransitionException):
            await lifecycle.archive_period(ORG_ID, september_period.id)

    @pytest.mark.asyncio
    async def test_unarchive_not_archived(self, lifecycle, september_period):
        with pytest.raises(InvalidPeriodTransitionException):
            await lifecycle.unarchive_period(ORG_ID, september_period.id)

    @pytest.mark.asyncio
    async def test_unknown_period(self, lifecycle):
        with pytest.raises(PayrollPeriodNotFoundException):
            await lifecycle.finalize_period(ORG_ID, uuid.uuid4())

    @pytest.mark.asyncio
    async def test_concurrent_finalize_only_one_wins(self, lifecycle, september_period):
        results = await asyncio.gather(
            lifecycle.finalize_period(ORG_ID, september_period.id, "admin-1"),
            lifecycle.finalize_period(ORG_ID, september_period.id, "admin-2"),
            return_exceptions=True,
        )

        errors = [r for r in results if isinstance(r, Exception)]
        assert len(errors) == 1
        assert isinstance(errors[0], (PeriodFinalizedException, ConcurrencyConflictException))


class TestAuditEvents:
    """Every transition is recorded with before/after snapshots."""

    @pytest.mark.asyncio
    async def test_finalize_event(self, lifecycle, audit_sink, september_period):
        await lifecycle.finalize_period(ORG_ID, september_period.id, "admin-1")

        assert len(audit_sink.events) == 1
        event = audit_sink.events[0]
        assert event["organization_id"] == ORG_ID
        assert event["type"] == "Payroll Finalized"
        assert event["payload"]["actor_id"] == "admin-1"
        assert event["payload"]["period_id"] == str(september_period.id)
        assert event["payload"]["before"]["state"] == "Draft"
        assert event["payload"]["after"]["state"] == "Finalized"
        assert event["payload"]["after"]["finalized_at"] == FIXED_NOW.isoformat()

    @pytest.mark.asyncio
    async def test_full_cycle_event_types(self, lifecycle, audit_sink, september_period):
        await lifecycle.finalize_period(ORG_ID, september_period.id)
        await lifecycle.archive_period(ORG_ID, september_period.id)
        await lifecycle.unarchive_period(ORG_ID, september_period.id)
        await lifecycle.unfinalize_period(ORG_ID, september_period.id)

        assert [e["type"] for e in audit_sink.events] == [
            "Payroll Finalized",
            "Payroll Archived",
            "Payroll Unarchived",
            "Payroll Unfinalized",
        ]

    @pytest.mark.asyncio
    async def test_rejected_transition_records_nothing(self, lifecycle, audit_sink, september_period):
        with pytest.raises(NotFinalizedException):
            await lifecycle.archive_period(ORG_ID, september_period.id)

        assert audit_sink.events == []

    @pytest.mark.asyncio
    async def test_audit_failure_does_not_undo_transition(self, payroll_repository, september_period):
        sink = FailingAuditSink()
        lifecycle = PeriodLifecycleManager(payroll_repository, sink, clock=lambda: FIXED_NOW)

        period = await lifecycle.finalize_period(ORG_ID, september_period.id, "admin-1")

        assert sink.attempts == 1
        assert period.state == PeriodState.FINALIZED
