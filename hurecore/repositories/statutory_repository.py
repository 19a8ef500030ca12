"""
HURE Core - Statutory Rule Repository

Persistence for versioned statutory rule sets. Each operation opens its own
session from the shared session factory.
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional

from sqlalchemy import func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from hurecore.models.statutory import StatutoryRuleSetRecord
from hurecore.services.statutory.rules import RuleSet
from hurecore.utils.error_handling import ConcurrencyConflictException, DuplicateEntryException

logger = logging.getLogger(__name__)


class StatutoryRuleRepository(ABC):
    """Storage for statutory rule set versions."""

    @abstractmethod
    async def get_active(self, jurisdiction: str, as_of: datetime) -> Optional[RuleSet]:
        """The active version in effect at ``as_of``, if any."""
        pass

    @abstractmethod
    async def list_versions(self, jurisdiction: str) -> List[RuleSet]:
        """All versions, newest first."""
        pass

    @abstractmethod
    async def count(self, jurisdiction: str) -> int:
        pass

    @abstractmethod
    async def insert(self, rule_set: RuleSet) -> RuleSet:
        """
        Insert a new version.

        Raises:
            DuplicateEntryException: If the version, or a second active version, exists
        """
        pass

    @abstractmethod
    async def supersede(self, current: RuleSet, successor: RuleSet, archived_at: datetime) -> RuleSet:
        """
        Archive ``current`` and insert ``successor`` in one transaction.

        The archive only applies while ``current`` is still active.

        Raises:
            ConcurrencyConflictException: If another writer archived ``current`` first
        """
        pass


class SqlAlchemyStatutoryRuleRepository(StatutoryRuleRepository):
    """PostgreSQL-backed rule set storage."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def get_active(self, jurisdiction: str, as_of: datetime) -> Optional[RuleSet]:
        query = (
            select(StatutoryRuleSetRecord)
            .where(
                StatutoryRuleSetRecord.jurisdiction == jurisdiction,
                StatutoryRuleSetRecord.is_active.is_(True),
                StatutoryRuleSetRecord.effective_from <= as_of,
                or_(
                    StatutoryRuleSetRecord.effective_until.is_(None),
                    StatutoryRuleSetRecord.effective_until > as_of,
                ),
            )
            .order_by(StatutoryRuleSetRecord.version.desc())
            .limit(1)
        )
        async with self.session_factory() as session:
            result = await session.execute(query)
            record = result.scalar_one_or_none()
            return record.to_rule_set() if record else None

    async def list_versions(self, jurisdiction: str) -> List[RuleSet]:
        query = (
            select(StatutoryRuleSetRecord)
            .where(StatutoryRuleSetRecord.jurisdiction == jurisdiction)
            .order_by(StatutoryRuleSetRecord.version.desc())
        )
        async with self.session_factory() as session:
            result = await session.execute(query)
            return [record.to_rule_set() for record in result.scalars().all()]

    async def count(self, jurisdiction: str) -> int:
        query = select(func.count(StatutoryRuleSetRecord.id)).where(
            StatutoryRuleSetRecord.jurisdiction == jurisdiction
        )
        async with self.session_factory() as session:
            result = await session.execute(query)
            return result.scalar() or 0

    async def insert(self, rule_set: RuleSet) -> RuleSet:
        async with self.session_factory() as session:
            try:
                async with session.begin():
                    record = await self._add(session, rule_set)
            except IntegrityError as e:
                raise DuplicateEntryException(
                    "Statutory rule set", "version", f"{rule_set.jurisdiction} v{rule_set.version}"
                ) from e
            return record.to_rule_set()

    async def supersede(self, current: RuleSet, successor: RuleSet, archived_at: datetime) -> RuleSet:
        archive = (
            update(StatutoryRuleSetRecord)
            .where(
                StatutoryRuleSetRecord.id == current.id,
                StatutoryRuleSetRecord.is_active.is_(True),
            )
            .values(is_active=False, effective_until=archived_at)
            .execution_options(synchronize_session=False)
        )
        async with self.session_factory() as session:
            try:
                async with session.begin():
                    result = await session.execute(archive)
                    if result.rowcount != 1:
                        raise ConcurrencyConflictException(
                            "Statutory rule set", current.id, "rule update"
                        )
                    record = await self._add(session, successor)
            except IntegrityError as e:
                raise ConcurrencyConflictException("Statutory rule set", current.id, "rule update") from e

        logger.info(
            f"Superseded {current.jurisdiction} rules v{current.version} with v{successor.version}"
        )
        return record.to_rule_set()

    async def _add(self, session: AsyncSession, rule_set: RuleSet) -> StatutoryRuleSetRecord:
        record = StatutoryRuleSetRecord.from_rule_set(rule_set)
        session.add(record)
        await session.flush()
        await session.refresh(record)
        return record
