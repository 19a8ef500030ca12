"""
HURE Core - Payroll Repository

Persistence for payroll periods and entries.

Period state changes and entry mutations are conditional UPDATEs on the
expected period state, so a writer that loses a race changes nothing.
Entry inserts hold a shared lock on the period row, which a concurrent
finalize (an exclusive row update) has to wait for.
"""

import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Set

from sqlalchemy import and_, case, exists, func, not_, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from hurecore.models.payroll import PayrollEntry, PayrollPeriod, PeriodState
from hurecore.utils.error_handling import (
    DuplicateEntryException,
    PayrollPeriodNotFoundException,
    PeriodArchivedException,
    PeriodFinalizedException,
)


@dataclass(frozen=True)
class PeriodTotals:
    """Aggregates over a period's entries."""
    total_entries: int = 0
    total_gross_cents: int = 0
    total_net_cents: int = 0
    total_deductions_cents: int = 0
    paid_count: int = 0
    pending_count: int = 0
    flagged_count: int = 0


class PayrollRepository(ABC):
    """Storage for payroll periods and entries."""

    # ----- periods -----

    @abstractmethod
    async def add_period(self, period: PayrollPeriod) -> PayrollPeriod:
        pass

    @abstractmethod
    async def get_period(self, organization_id: str, period_id: uuid.UUID) -> Optional[PayrollPeriod]:
        pass

    @abstractmethod
    async def list_periods(self, organization_id: str, include_archived: bool = True) -> List[PayrollPeriod]:
        """Periods newest first."""
        pass

    @abstractmethod
    async def transition_period(
        self,
        organization_id: str,
        period_id: uuid.UUID,
        expected_state: PeriodState,
        changes: Dict[str, Any],
    ) -> Optional[PayrollPeriod]:
        """Apply ``changes`` only if the period is still in ``expected_state``; None otherwise."""
        pass

    # ----- entries -----

    @abstractmethod
    async def add_entry(self, entry: PayrollEntry) -> PayrollEntry:
        """
        Insert an entry into a draft period.

        Raises:
            PayrollPeriodNotFoundException: If the period does not exist
            PeriodFinalizedException: If the period is no longer a draft
            DuplicateEntryException: If the staff member already has an entry
        """
        pass

    @abstractmethod
    async def get_entry(self, organization_id: str, entry_id: uuid.UUID) -> Optional[PayrollEntry]:
        pass

    @abstractmethod
    async def get_entry_for_staff(
        self, organization_id: str, period_id: uuid.UUID, staff_id: str
    ) -> Optional[PayrollEntry]:
        pass

    @abstractmethod
    async def list_entries(self, organization_id: str, period_id: uuid.UUID) -> List[PayrollEntry]:
        pass

    @abstractmethod
    async def existing_staff_ids(self, organization_id: str, period_id: uuid.UUID) -> Set[str]:
        pass

    @abstractmethod
    async def update_entry(
        self,
        organization_id: str,
        entry_id: uuid.UUID,
        changes: Dict[str, Any],
        allowed_states: Iterable[PeriodState],
    ) -> Optional[PayrollEntry]:
        """Apply ``changes`` only while the entry's period is in one of ``allowed_states``."""
        pass

    @abstractmethod
    async def update_unpaid_entries(
        self,
        organization_id: str,
        period_id: uuid.UUID,
        changes: Dict[str, Any],
        allowed_states: Iterable[PeriodState],
    ) -> int:
        """Apply ``changes`` to every unpaid entry of a period in an allowed state; returns the count."""
        pass

    @abstractmethod
    async def summarize(self, organization_id: str, period_id: uuid.UUID) -> PeriodTotals:
        pass


def period_state_clause(state: PeriodState):
    """SQL condition matching periods in ``state``."""
    if state == PeriodState.DRAFT:
        return PayrollPeriod.is_finalized.is_(False)
    if state == PeriodState.FINALIZED:
        return and_(PayrollPeriod.is_finalized.is_(True), PayrollPeriod.is_archived.is_(False))
    return and_(PayrollPeriod.is_finalized.is_(True), PayrollPeriod.is_archived.is_(True))


class SqlAlchemyPayrollRepository(PayrollRepository):
    """PostgreSQL-backed payroll storage."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def add_period(self, period: PayrollPeriod) -> PayrollPeriod:
        async with self.session_factory() as session:
            async with session.begin():
                session.add(period)
                await session.flush()
                await session.refresh(period)
            return period

    async def get_period(self, organization_id: str, period_id: uuid.UUID) -> Optional[PayrollPeriod]:
        query = select(PayrollPeriod).where(
            PayrollPeriod.id == period_id,
            PayrollPeriod.organization_id == organization_id,
        )
        async with self.session_factory() as session:
            result = await session.execute(query)
            return result.scalar_one_or_none()

    async def list_periods(self, organization_id: str, include_archived: bool = True) -> List[PayrollPeriod]:
        query = select(PayrollPeriod).where(PayrollPeriod.organization_id == organization_id)
        if not include_archived:
            query = query.where(PayrollPeriod.is_archived.is_(False))
        query = query.order_by(PayrollPeriod.start_date.desc(), PayrollPeriod.created_at.desc())
        async with self.session_factory() as session:
            result = await session.execute(query)
            return list(result.scalars().all())

    async def transition_period(
        self,
        organization_id: str,
        period_id: uuid.UUID,
        expected_state: PeriodState,
        changes: Dict[str, Any],
    ) -> Optional[PayrollPeriod]:
        stmt = (
            update(PayrollPeriod)
            .where(
                PayrollPeriod.id == period_id,
                PayrollPeriod.organization_id == organization_id,
                period_state_clause(expected_state),
            )
            .values(**changes)
            .returning(PayrollPeriod)
            .execution_options(synchronize_session=False)
        )
        async with self.session_factory() as session:
            async with session.begin():
                result = await session.execute(stmt)
                return result.scalar_one_or_none()

    async def add_entry(self, entry: PayrollEntry) -> PayrollEntry:
        lock_period = (
            select(PayrollPeriod)
            .where(
                PayrollPeriod.id == entry.payroll_period_id,
                PayrollPeriod.organization_id == entry.organization_id,
            )
            .with_for_update(read=True)
        )
        async with self.session_factory() as session:
            try:
                async with session.begin():
                    result = await session.execute(lock_period)
                    period = result.scalar_one_or_none()
                    if period is None:
                        raise PayrollPeriodNotFoundException(entry.payroll_period_id)
                    if period.is_archived:
                        raise PeriodArchivedException(period.id, "entry creation")
                    if period.is_finalized:
                        raise PeriodFinalizedException(period.id, "entry creation")

                    session.add(entry)
                    await session.flush()
                    await session.refresh(entry)
            except IntegrityError as e:
                raise DuplicateEntryException("Payroll entry", "staff_id", entry.staff_id) from e
            return entry

    async def get_entry(self, organization_id: str, entry_id: uuid.UUID) -> Optional[PayrollEntry]:
        query = select(PayrollEntry).where(
            PayrollEntry.id == entry_id,
            PayrollEntry.organization_id == organization_id,
        )
        async with self.session_factory() as session:
            result = await session.execute(query)
            return result.scalar_one_or_none()

    async def get_entry_for_staff(
        self, organization_id: str, period_id: uuid.UUID, staff_id: str
    ) -> Optional[PayrollEntry]:
        query = select(PayrollEntry).where(
            PayrollEntry.organization_id == organization_id,
            PayrollEntry.payroll_period_id == period_id,
            PayrollEntry.staff_id == staff_id,
        )
        async with self.session_factory() as session:
            result = await session.execute(query)
            return result.scalar_one_or_none()

    async def list_entries(self, organization_id: str, period_id: uuid.UUID) -> List[PayrollEntry]:
        query = (
            select(PayrollEntry)
            .where(
                PayrollEntry.organization_id == organization_id,
                PayrollEntry.payroll_period_id == period_id,
            )
            .order_by(PayrollEntry.staff_name, PayrollEntry.staff_id)
        )
        async with self.session_factory() as session:
            result = await session.execute(query)
            return list(result.scalars().all())

    async def existing_staff_ids(self, organization_id: str, period_id: uuid.UUID) -> Set[str]:
        query = select(PayrollEntry.staff_id).where(
            PayrollEntry.organization_id == organization_id,
            PayrollEntry.payroll_period_id == period_id,
        )
        async with self.session_factory() as session:
            result = await session.execute(query)
            return set(result.scalars().all())

    def _period_in_states(self, allowed_states: Iterable[PeriodState]):
        return exists(
            select(PayrollPeriod.id).where(
                PayrollPeriod.id == PayrollEntry.payroll_period_id,
                or_(*[period_state_clause(state) for state in allowed_states]),
            )
        )

    async def update_entry(
        self,
        organization_id: str,
        entry_id: uuid.UUID,
        changes: Dict[str, Any],
        allowed_states: Iterable[PeriodState],
    ) -> Optional[PayrollEntry]:
        stmt = (
            update(PayrollEntry)
            .where(
                PayrollEntry.id == entry_id,
                PayrollEntry.organization_id == organization_id,
                self._period_in_states(allowed_states),
            )
            .values(**changes)
            .returning(PayrollEntry)
            .execution_options(synchronize_session=False)
        )
        async with self.session_factory() as session:
            async with session.begin():
                result = await session.execute(stmt)
                return result.scalar_one_or_none()

    async def update_unpaid_entries(
        self,
        organization_id: str,
        period_id: uuid.UUID,
        changes: Dict[str, Any],
        allowed_states: Iterable[PeriodState],
    ) -> int:
        stmt = (
            update(PayrollEntry)
            .where(
                PayrollEntry.organization_id == organization_id,
                PayrollEntry.payroll_period_id == period_id,
                PayrollEntry.is_paid.is_(False),
                self._period_in_states(allowed_states),
            )
            .values(**changes)
            .execution_options(synchronize_session=False)
        )
        async with self.session_factory() as session:
            async with session.begin():
                result = await session.execute(stmt)
                return result.rowcount or 0

    async def summarize(self, organization_id: str, period_id: uuid.UUID) -> PeriodTotals:
        query = select(
            func.count(PayrollEntry.id),
            func.coalesce(func.sum(PayrollEntry.gross_pay_cents), 0),
            func.coalesce(func.sum(PayrollEntry.net_pay_cents), 0),
            func.coalesce(func.sum(PayrollEntry.deductions_total_cents), 0),
            func.coalesce(func.sum(case((PayrollEntry.is_paid.is_(True), 1), else_=0)), 0),
            func.coalesce(func.sum(case((not_(PayrollEntry.is_paid), 1), else_=0)), 0),
            func.coalesce(
                func.sum(case((func.json_array_length(PayrollEntry.validation_errors) > 0, 1), else_=0)),
                0,
            ),
        ).where(
            PayrollEntry.organization_id == organization_id,
            PayrollEntry.payroll_period_id == period_id,
        )
        async with self.session_factory() as session:
            result = await session.execute(query)
            row = result.one()
            return PeriodTotals(
                total_entries=int(row[0]),
                total_gross_cents=int(row[1]),
                total_net_cents=int(row[2]),
                total_deductions_cents=int(row[3]),
                paid_count=int(row[4]),
                pending_count=int(row[5]),
                flagged_count=int(row[6]),
            )
