"""
HURE Core - Statutory Rule Set Model

Versioned statutory deduction rules. Rows are never updated in place except
to archive them (is_active=False, effective_until set); each change inserts a
new version.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    BigInteger, Boolean, DateTime, Index, Integer, JSON, Numeric, String, Text,
    UniqueConstraint, text,
)
from sqlalchemy.orm import Mapped, mapped_column

from hurecore.models.base import BaseModel
from hurecore.services.statutory.rules import PayeBand, RuleSet


class StatutoryRuleSetRecord(BaseModel):
    """Persisted statutory rule set version."""

    __tablename__ = "statutory_rule_sets"
    __table_args__ = (
        UniqueConstraint("jurisdiction", "version", name="uq_statutory_rule_sets_jurisdiction_version"),
        # At most one active version per jurisdiction
        Index(
            "uq_statutory_rule_sets_active_jurisdiction",
            "jurisdiction",
            unique=True,
            postgresql_where=text("is_active"),
        ),
    )

    jurisdiction: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    effective_from: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    effective_until: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    paye_bands: Mapped[list] = mapped_column(JSON, nullable=False)
    personal_relief_cents: Mapped[int] = mapped_column(BigInteger, nullable=False)
    nssf_tier_one_cap_cents: Mapped[int] = mapped_column(BigInteger, nullable=False)
    nssf_tier_two_cap_cents: Mapped[int] = mapped_column(BigInteger, nullable=False)
    nssf_rate: Mapped[Decimal] = mapped_column(Numeric(7, 6), nullable=False)
    nssf_tier_two_rate: Mapped[Optional[Decimal]] = mapped_column(Numeric(7, 6), nullable=True)
    nssf_tier_one_fixed_cents: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    health_levy_rate: Mapped[Decimal] = mapped_column(Numeric(7, 6), nullable=False)
    housing_levy_rate: Mapped[Decimal] = mapped_column(Numeric(7, 6), nullable=False)

    updated_by: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    def to_rule_set(self) -> RuleSet:
        return RuleSet(
            id=self.id,
            jurisdiction=self.jurisdiction,
            version=self.version,
            effective_from=self.effective_from,
            effective_until=self.effective_until,
            is_active=self.is_active,
            paye_bands=tuple(PayeBand.from_dict(band) for band in self.paye_bands),
            personal_relief_cents=self.personal_relief_cents,
            nssf_tier_one_cap_cents=self.nssf_tier_one_cap_cents,
            nssf_tier_two_cap_cents=self.nssf_tier_two_cap_cents,
            nssf_rate=Decimal(self.nssf_rate),
            nssf_tier_two_rate=Decimal(self.nssf_tier_two_rate) if self.nssf_tier_two_rate is not None else None,
            nssf_tier_one_fixed_cents=self.nssf_tier_one_fixed_cents,
            health_levy_rate=Decimal(self.health_levy_rate),
            housing_levy_rate=Decimal(self.housing_levy_rate),
            updated_by=self.updated_by,
            notes=self.notes,
            created_at=self.created_at,
        )

    @classmethod
    def from_rule_set(cls, rule_set: RuleSet) -> "StatutoryRuleSetRecord":
        record = cls(
            jurisdiction=rule_set.jurisdiction,
            version=rule_set.version,
            effective_from=rule_set.effective_from,
            effective_until=rule_set.effective_until,
            is_active=rule_set.is_active,
            paye_bands=[band.to_dict() for band in rule_set.paye_bands],
            personal_relief_cents=rule_set.personal_relief_cents,
            nssf_tier_one_cap_cents=rule_set.nssf_tier_one_cap_cents,
            nssf_tier_two_cap_cents=rule_set.nssf_tier_two_cap_cents,
            nssf_rate=rule_set.nssf_rate,
            nssf_tier_two_rate=rule_set.nssf_tier_two_rate,
            nssf_tier_one_fixed_cents=rule_set.nssf_tier_one_fixed_cents,
            health_levy_rate=rule_set.health_levy_rate,
            housing_levy_rate=rule_set.housing_levy_rate,
            updated_by=rule_set.updated_by,
            notes=rule_set.notes,
        )
        if rule_set.id is not None:
            record.id = rule_set.id
        return record
