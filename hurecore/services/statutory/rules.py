"""
HURE Core - Statutory Rule Sets

Kenya statutory deduction rules expressed as immutable, versioned values.

Monthly PAYE Bands (KES):
- 0 - 24,000: 10%
- 24,001 - 32,333: 25%
- 32,334 - 500,000: 30%
- 500,001 - 800,000: 32.5%
- Above 800,000: 35%

Other deductions:
- Personal relief: KES 2,400 per month
- NSSF: 6% of pensionable pay, tier I up to KES 6,000, tier II up to KES 18,000
- SHIF (Social Health Insurance Fund): 2.75% of gross
- Affordable Housing Levy: 1.5% of gross

All amounts are stored as integer cents.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple
import uuid

from hurecore.utils.error_handling import InvalidRuleSetException


DEFAULT_JURISDICTION = "Kenya"

# Rates are stored as NUMERIC(7, 6)
RATE_PLACES = 6
RATE_QUANTUM = Decimal("0.000001")


@dataclass(frozen=True)
class PayeBand:
    """
    One PAYE bracket.

    ``width_cents`` is the size of the bracket, not its upper bound; bands are
    applied in order, each consuming up to its width of the remaining taxable
    pay. ``None`` marks the unbounded top band.
    """
    rate: Decimal
    width_cents: Optional[int] = None
    label: str = ""

    @property
    def is_unbounded(self) -> bool:
        return self.width_cents is None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rate": str(self.rate),
            "width_cents": self.width_cents,
            "label": self.label,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PayeBand":
        width = data.get("width_cents")
        return cls(
            rate=Decimal(str(data["rate"])),
            width_cents=int(width) if width is not None else None,
            label=data.get("label") or "",
        )


@dataclass(frozen=True)
class RuleSet:
    """An immutable version of a jurisdiction's statutory deduction rules."""

    jurisdiction: str
    version: int
    effective_from: datetime
    paye_bands: Tuple[PayeBand, ...]
    personal_relief_cents: int
    nssf_tier_one_cap_cents: int
    nssf_tier_two_cap_cents: int
    nssf_rate: Decimal
    health_levy_rate: Decimal
    housing_levy_rate: Decimal
    nssf_tier_two_rate: Optional[Decimal] = None
    nssf_tier_one_fixed_cents: Optional[int] = None
    effective_until: Optional[datetime] = None
    is_active: bool = True
    id: Optional[uuid.UUID] = None
    updated_by: Optional[str] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = field(default=None, compare=False)

    def __post_init__(self):
        object.__setattr__(self, "paye_bands", tuple(self.paye_bands))
        self._validate()

    def _validate(self) -> None:
        if self.version < 1:
            raise InvalidRuleSetException("Rule set version must be a positive integer", field="version")

        if not self.paye_bands:
            raise InvalidRuleSetException("At least one PAYE band is required", field="paye_bands")

        last_index = len(self.paye_bands) - 1
        for index, band in enumerate(self.paye_bands):
            if band.is_unbounded and index != last_index:
                raise InvalidRuleSetException(
                    "Only the final PAYE band may be unbounded", field="paye_bands"
                )
            if not band.is_unbounded and band.width_cents <= 0:
                raise InvalidRuleSetException(
                    f"PAYE band {index + 1} must have a positive width", field="paye_bands"
                )
            _check_rate(band.rate, "paye_bands")
        if not self.paye_bands[last_index].is_unbounded:
            raise InvalidRuleSetException("The final PAYE band must be unbounded", field="paye_bands")

        for name in ("personal_relief_cents", "nssf_tier_one_cap_cents", "nssf_tier_two_cap_cents"):
            if getattr(self, name) < 0:
                raise InvalidRuleSetException(f"{name} must not be negative", field=name)
        if self.nssf_tier_two_cap_cents < self.nssf_tier_one_cap_cents:
            raise InvalidRuleSetException(
                "NSSF tier II cap must not be below the tier I cap", field="nssf_tier_two_cap_cents"
            )
        if self.nssf_tier_one_fixed_cents is not None and self.nssf_tier_one_fixed_cents < 0:
            raise InvalidRuleSetException(
                "nssf_tier_one_fixed_cents must not be negative", field="nssf_tier_one_fixed_cents"
            )

        _check_rate(self.nssf_rate, "nssf_rate")
        _check_rate(self.health_levy_rate, "health_levy_rate")
        _check_rate(self.housing_levy_rate, "housing_levy_rate")
        if self.nssf_tier_two_rate is not None:
            _check_rate(self.nssf_tier_two_rate, "nssf_tier_two_rate")

        if self.effective_until is not None and self.effective_until < self.effective_from:
            raise InvalidRuleSetException(
                "effective_until must not precede effective_from", field="effective_until"
            )

    @property
    def effective_nssf_tier_two_rate(self) -> Decimal:
        return self.nssf_tier_two_rate if self.nssf_tier_two_rate is not None else self.nssf_rate

    @property
    def max_nssf_cents(self) -> Decimal:
        """Largest NSSF contribution the caps allow, before rounding."""
        tier_one = (
            Decimal(self.nssf_tier_one_fixed_cents)
            if self.nssf_tier_one_fixed_cents is not None
            else Decimal(self.nssf_tier_one_cap_cents) * self.nssf_rate
        )
        tier_two = (
            Decimal(self.nssf_tier_two_cap_cents - self.nssf_tier_one_cap_cents)
            * self.effective_nssf_tier_two_rate
        )
        return tier_one + tier_two

    def covers(self, as_of: datetime) -> bool:
        """True when this version is active and in effect at ``as_of``."""
        if not self.is_active or self.effective_from > as_of:
            return False
        return self.effective_until is None or as_of < self.effective_until

    def successor(self, changes: Dict[str, Any], effective_from: datetime,
                  updated_by: Optional[str], notes: Optional[str] = None) -> "RuleSet":
        """Build version N+1 from this version with ``changes`` applied."""
        unknown = set(changes) - MUTABLE_FIELDS
        if unknown:
            raise InvalidRuleSetException(
                f"Unknown rule fields: {', '.join(sorted(unknown))}", field=sorted(unknown)[0]
            )
        return replace(
            self,
            **changes,
            version=self.version + 1,
            effective_from=effective_from,
            effective_until=None,
            is_active=True,
            id=None,
            updated_by=updated_by,
            notes=notes,
            created_at=None,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "jurisdiction": self.jurisdiction,
            "version": self.version,
            "effective_from": self.effective_from.isoformat(),
            "effective_until": self.effective_until.isoformat() if self.effective_until else None,
            "is_active": self.is_active,
            "paye_bands": [band.to_dict() for band in self.paye_bands],
            "personal_relief_cents": self.personal_relief_cents,
            "nssf_tier_one_cap_cents": self.nssf_tier_one_cap_cents,
            "nssf_tier_two_cap_cents": self.nssf_tier_two_cap_cents,
            "nssf_rate": str(self.nssf_rate),
            "nssf_tier_two_rate": str(self.nssf_tier_two_rate) if self.nssf_tier_two_rate is not None else None,
            "nssf_tier_one_fixed_cents": self.nssf_tier_one_fixed_cents,
            "health_levy_rate": str(self.health_levy_rate),
            "housing_levy_rate": str(self.housing_levy_rate),
            "updated_by": self.updated_by,
            "notes": self.notes,
        }


# Fields a rule update may change; identity and validity window are managed by the service.
MUTABLE_FIELDS = frozenset({
    "paye_bands",
    "personal_relief_cents",
    "nssf_tier_one_cap_cents",
    "nssf_tier_two_cap_cents",
    "nssf_rate",
    "nssf_tier_two_rate",
    "nssf_tier_one_fixed_cents",
    "health_levy_rate",
    "housing_levy_rate",
})


def _check_rate(rate: Decimal, field_name: str) -> None:
    if not isinstance(rate, Decimal):
        raise InvalidRuleSetException(f"{field_name} must be a Decimal", field=field_name)
    if rate < 0 or rate > 1:
        raise InvalidRuleSetException(f"{field_name} must be between 0 and 1", field=field_name)
    if rate != rate.quantize(RATE_QUANTUM):
        raise InvalidRuleSetException(
            f"{field_name} must have at most {RATE_PLACES} decimal places", field=field_name
        )


# Kenya monthly PAYE bands (Finance Act 2023)
KENYA_PAYE_BANDS: List[PayeBand] = [
    PayeBand(Decimal("0.10"), 2_400_000, "First KES 24,000"),
    PayeBand(Decimal("0.25"), 833_300, "Next KES 8,333"),
    PayeBand(Decimal("0.30"), 46_766_700, "Next KES 467,667"),
    PayeBand(Decimal("0.325"), 30_000_000, "Next KES 300,000"),
    PayeBand(Decimal("0.35"), None, "Above KES 800,000"),
]

DEFAULT_EFFECTIVE_FROM = datetime(2024, 1, 1, tzinfo=timezone.utc)


def default_rule_set(jurisdiction: str = DEFAULT_JURISDICTION, version: int = 1,
                     effective_from: datetime = DEFAULT_EFFECTIVE_FROM,
                     updated_by: Optional[str] = None,
                     notes: Optional[str] = "Default Kenya statutory rules") -> RuleSet:
    """The bootstrap Kenya rule set."""
    return RuleSet(
        jurisdiction=jurisdiction,
        version=version,
        effective_from=effective_from,
        paye_bands=tuple(KENYA_PAYE_BANDS),
        personal_relief_cents=240_000,
        nssf_tier_one_cap_cents=600_000,
        nssf_tier_two_cap_cents=1_800_000,
        nssf_rate=Decimal("0.06"),
        health_levy_rate=Decimal("0.0275"),
        housing_levy_rate=Decimal("0.015"),
        updated_by=updated_by,
        notes=notes,
    )


DEFAULT_KENYA_RULES = default_rule_set()
