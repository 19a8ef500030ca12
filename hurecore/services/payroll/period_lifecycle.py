"""
HURE Core - Payroll Period Lifecycle

State machine for payroll periods:

    Draft --finalize--> Finalized --archive--> Archived
    Draft <-unfinalize- Finalized <-unarchive- Archived

There is no Draft -> Archived edge. Each transition is a conditional update
on the expected state and emits an audit event with before/after snapshots.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from hurecore.integrations.collaborators import AuditSink
from hurecore.models.payroll import PayrollPeriod, PeriodState
from hurecore.repositories.payroll_repository import PayrollRepository
from hurecore.utils.error_handling import (
    AppException,
    ConcurrencyConflictException,
    InvalidPeriodTransitionException,
    NotFinalizedException,
    PayrollPeriodNotFoundException,
    PeriodFinalizedException,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Transition:
    operation: str
    source: PeriodState
    target: PeriodState
    audit_event: str
    # Builds the column changes from (actor, now)
    changes: Callable[[Optional[str], datetime], Dict[str, Any]]
    # Raised when the period is in the given (wrong) state
    rejections: Dict[PeriodState, Callable[[uuid.UUID, PeriodState], AppException]]


def _finalized_error(operation: str):
    return lambda period_id, state: PeriodFinalizedException(
        period_id, operation, current_state=state.value.lower()
    )


def _not_finalized_error(operation: str):
    return lambda period_id, state: NotFinalizedException(period_id, operation)


def _invalid_transition(operation: str):
    return lambda period_id, state: InvalidPeriodTransitionException(
        period_id, state.value.lower(), operation
    )


TRANSITIONS: Dict[str, Transition] = {
    "finalize": Transition(
        operation="finalize",
        source=PeriodState.DRAFT,
        target=PeriodState.FINALIZED,
        audit_event="Payroll Finalized",
        changes=lambda actor, now: {"is_finalized": True, "finalized_at": now, "finalized_by": actor},
        rejections={
            PeriodState.FINALIZED: _finalized_error("finalize"),
            PeriodState.ARCHIVED: _finalized_error("finalize"),
        },
    ),
    "unfinalize": Transition(
        operation="unfinalize",
        source=PeriodState.FINALIZED,
        target=PeriodState.DRAFT,
        audit_event="Payroll Unfinalized",
        changes=lambda actor, now: {"is_finalized": False, "finalized_at": None, "finalized_by": None},
        rejections={
            PeriodState.DRAFT: _not_finalized_error("unfinalize"),
            PeriodState.ARCHIVED: _invalid_transition("unfinalize"),
        },
    ),
    "archive": Transition(
        operation="archive",
        source=PeriodState.FINALIZED,
        target=PeriodState.ARCHIVED,
        audit_event="Payroll Archived",
        changes=lambda actor, now: {"is_archived": True, "archived_at": now, "archived_by": actor},
        rejections={
            PeriodState.DRAFT: _not_finalized_error("archive"),
            PeriodState.ARCHIVED: _invalid_transition("archive"),
        },
    ),
    "unarchive": Transition(
        operation="unarchive",
        source=PeriodState.ARCHIVED,
        target=PeriodState.FINALIZED,
        audit_event="Payroll Unarchived",
        changes=lambda actor, now: {"is_archived": False, "archived_at": None, "archived_by": None},
        rejections={
            PeriodState.DRAFT: _invalid_transition("unarchive"),
            PeriodState.FINALIZED: _invalid_transition("unarchive"),
        },
    ),
}


class PeriodLifecycleManager:
    """Applies lifecycle transitions to payroll periods."""

    def __init__(
        self,
        repository: PayrollRepository,
        audit_sink: AuditSink,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.repository = repository
        self.audit_sink = audit_sink
        self.clock = clock

    async def finalize_period(self, organization_id: str, period_id: uuid.UUID,
                              actor_id: Optional[str] = None) -> PayrollPeriod:
        return await self._apply("finalize", organization_id, period_id, actor_id)

    async def unfinalize_period(self, organization_id: str, period_id: uuid.UUID,
                                actor_id: Optional[str] = None) -> PayrollPeriod:
        return await self._apply("unfinalize", organization_id, period_id, actor_id)

    async def archive_period(self, organization_id: str, period_id: uuid.UUID,
                             actor_id: Optional[str] = None) -> PayrollPeriod:
        return await self._apply("archive", organization_id, period_id, actor_id)

    async def unarchive_period(self, organization_id: str, period_id: uuid.UUID,
                               actor_id: Optional[str] = None) -> PayrollPeriod:
        return await self._apply("unarchive", organization_id, period_id, actor_id)

    async def _apply(
        self,
        operation: str,
        organization_id: str,
        period_id: uuid.UUID,
        actor_id: Optional[str],
    ) -> PayrollPeriod:
        transition = TRANSITIONS[operation]

        period = await self.repository.get_period(organization_id, period_id)
        if period is None:
            raise PayrollPeriodNotFoundException(period_id)

        state = period.state
        if state != transition.source:
            raise transition.rejections[state](period.id, state)

        before = period.to_snapshot()
        updated = await self.repository.transition_period(
            organization_id,
            period_id,
            expected_state=transition.source,
            changes=transition.changes(actor_id, self.clock()),
        )
        if updated is None:
            raise ConcurrencyConflictException("Payroll period", period_id, operation)

        logger.info(
            f"Payroll period {period_id} {state.value} -> {updated.state.value} by {actor_id}"
        )
        await self._emit_audit(organization_id, transition.audit_event, {
            "period_id": str(period_id),
            "actor_id": actor_id,
            "before": before,
            "after": updated.to_snapshot(),
        })
        return updated

    async def _emit_audit(self, organization_id: str, event_type: str, payload: Dict[str, Any]) -> None:
        """Record an audit event; a failing sink never undoes the transition."""
        try:
            await self.audit_sink.record(organization_id, event_type, payload)
        except Exception as e:
            logger.warning(
                f"Failed to record audit event '{event_type}' for org {organization_id}: {e}",
                exc_info=True,
            )
