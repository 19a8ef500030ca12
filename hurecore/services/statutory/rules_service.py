"""
HURE Core - Statutory Rules Service

Resolves the statutory rule set in effect and manages its version history.

Versioning:
- Published versions are never edited
- An update archives the active version (is_active=False, effective_until=now)
  and inserts version N+1 in the same transaction
- The archive is conditional on the version still being active, so of two
  concurrent updates only one can publish
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from hurecore.repositories.statutory_repository import StatutoryRuleRepository
from hurecore.services.statutory.deduction_calculator import DeductionBreakdown, DeductionCalculator
from hurecore.services.statutory.rules import DEFAULT_JURISDICTION, RuleSet, default_rule_set
from hurecore.utils.error_handling import (
    DuplicateEntryException,
    RuleSetNotFoundException,
    ValidationException,
)

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class StatutoryRulesService:
    """Service for statutory rule resolution and versioning."""

    def __init__(
        self,
        repository: StatutoryRuleRepository,
        calculator: Optional[DeductionCalculator] = None,
    ):
        self.repository = repository
        self.calculator = calculator or DeductionCalculator()

    async def get_active_rules(
        self,
        jurisdiction: str = DEFAULT_JURISDICTION,
        as_of: Optional[datetime] = None,
    ) -> RuleSet:
        """
        Get the rule set in effect at ``as_of`` (default: now).

        A jurisdiction with no rule sets at all is seeded once with the
        default Kenya rules. A jurisdiction whose versions have all been
        archived does not fall back to the default.

        Raises:
            RuleSetNotFoundException: If no version is in effect at ``as_of``
        """
        as_of = as_of or utcnow()
        rule_set = await self.repository.get_active(jurisdiction, as_of)
        if rule_set is not None:
            return rule_set

        if await self.repository.count(jurisdiction) == 0:
            rule_set = await self._seed_defaults(jurisdiction)
            if rule_set.covers(as_of):
                return rule_set

        raise RuleSetNotFoundException(jurisdiction, as_of)

    async def _seed_defaults(self, jurisdiction: str) -> RuleSet:
        try:
            rule_set = await self.repository.insert(default_rule_set(jurisdiction))
            logger.info(f"Seeded default statutory rules for {jurisdiction}")
            return rule_set
        except DuplicateEntryException:
            # Another request seeded first
            versions = await self.repository.list_versions(jurisdiction)
            for rule_set in versions:
                if rule_set.is_active:
                    return rule_set
            raise RuleSetNotFoundException(jurisdiction)

    async def get_rules_history(self, jurisdiction: str = DEFAULT_JURISDICTION) -> List[RuleSet]:
        """All versions for a jurisdiction, newest first."""
        return await self.repository.list_versions(jurisdiction)

    async def update_rules(
        self,
        changes: Dict[str, Any],
        updated_by: Optional[str] = None,
        jurisdiction: str = DEFAULT_JURISDICTION,
        effective_from: Optional[datetime] = None,
        notes: Optional[str] = None,
    ) -> RuleSet:
        """
        Publish a new rule set version with ``changes`` applied.

        Raises:
            ValidationException: If the changes produce an invalid rule set
            ConcurrencyConflictException: If another update published first
        """
        if not changes:
            raise ValidationException("No rule changes supplied", field="changes")

        now = utcnow()
        if effective_from is not None and effective_from > now:
            # The current version is archived immediately, so a future start would leave a gap
            raise ValidationException(
                "effective_from must not be in the future", field="effective_from"
            )
        current = await self.get_active_rules(jurisdiction, now)
        successor = current.successor(
            changes,
            effective_from=effective_from or now,
            updated_by=updated_by,
            notes=notes,
        )
        published = await self.repository.supersede(current, successor, archived_at=now)
        logger.info(
            f"Statutory rules for {jurisdiction} updated to v{published.version} by {updated_by}"
        )
        return published

    async def revert_to_defaults(
        self,
        updated_by: Optional[str] = None,
        jurisdiction: str = DEFAULT_JURISDICTION,
    ) -> RuleSet:
        """Publish the default rules as a new version."""
        now = utcnow()
        current = await self.get_active_rules(jurisdiction, now)
        defaults = default_rule_set(
            jurisdiction,
            version=current.version + 1,
            effective_from=now,
            updated_by=updated_by,
            notes="Reverted to default statutory rules",
        )
        published = await self.repository.supersede(current, defaults, archived_at=now)
        logger.info(f"Statutory rules for {jurisdiction} reverted to defaults as v{published.version}")
        return published

    async def preview_deductions(
        self,
        basic_pay_cents: int,
        allowances_cents: int = 0,
        jurisdiction: str = DEFAULT_JURISDICTION,
    ) -> DeductionBreakdown:
        """Calculate deductions against the current rules without persisting anything."""
        rule_set = await self.get_active_rules(jurisdiction)
        return self.calculator.calculate(basic_pay_cents, rule_set, allowances_cents)
