"""
HURE Core - Statutory Deduction Calculator

Computes employee-side statutory deductions for one month of pay:

1. Gross pay = basic pay + allowances
2. NSSF tier I and tier II (capped)
3. Taxable pay = gross - NSSF
4. PAYE over progressive bands, less personal relief
5. SHIF health levy on gross
6. Affordable Housing Levy on gross
7. Net pay = gross - total deductions

Amounts enter and leave as integer cents. Intermediate values are exact
Decimals and each deduction category is rounded to a whole cent once.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Tuple
import logging

from hurecore.services.statutory.rules import RuleSet
from hurecore.utils.error_handling import validate_cents, ValidationException
from hurecore.utils.money import ZERO, to_cents

logger = logging.getLogger(__name__)

# PAYE above this share of taxable pay is unusual enough to log
PAYE_WARNING_RATIO = Decimal("0.40")


class CalculationWarning(str, Enum):
    """Anomalies recorded on a calculation instead of being raised."""
    NSSF_EXCEEDS_MAX = "NSSF_EXCEEDS_MAX"
    PAYE_EXCEEDS_TAXABLE = "PAYE_EXCEEDS_TAXABLE"
    DEDUCTIONS_EXCEED_GROSS = "DEDUCTIONS_EXCEED_GROSS"
    NEGATIVE_NET_PAY = "NEGATIVE_NET_PAY"


@dataclass(frozen=True)
class NssfContribution:
    tier_one_cents: int
    tier_two_cents: int
    total_cents: int


@dataclass(frozen=True)
class PayeBandTax:
    """Tax charged within one PAYE band."""
    label: str
    rate: Decimal
    taxable_cents: int
    tax: Decimal  # exact, in cents


@dataclass(frozen=True)
class CalculationValidation:
    errors: Tuple[str, ...] = ()
    warnings: Tuple[str, ...] = ()

    @property
    def is_valid(self) -> bool:
        return not self.errors


@dataclass(frozen=True)
class DeductionBreakdown:
    """Result of a deduction calculation."""

    basic_pay_cents: int
    allowances_cents: int
    gross_pay_cents: int
    nssf: NssfContribution
    taxable_pay_cents: int
    paye_gross_tax_cents: int
    personal_relief_cents: int
    paye_cents: int
    health_levy_cents: int
    housing_levy_cents: int
    total_deductions_cents: int
    net_pay_cents: int
    rule_set_version: int
    band_breakdown: Tuple[PayeBandTax, ...] = ()
    validation: CalculationValidation = field(default_factory=CalculationValidation)

    def to_details(self) -> Dict[str, Any]:
        """Itemised breakdown stored on the payroll entry."""
        return {
            "gross_pay_cents": self.gross_pay_cents,
            "nssf": {
                "tier_one_cents": self.nssf.tier_one_cents,
                "tier_two_cents": self.nssf.tier_two_cents,
                "total_cents": self.nssf.total_cents,
            },
            "taxable_pay_cents": self.taxable_pay_cents,
            "paye_gross_tax_cents": self.paye_gross_tax_cents,
            "personal_relief_cents": self.personal_relief_cents,
            "paye_cents": self.paye_cents,
            "health_levy_cents": self.health_levy_cents,
            "housing_levy_cents": self.housing_levy_cents,
            "total_deductions_cents": self.total_deductions_cents,
            "net_pay_cents": self.net_pay_cents,
            "rule_set_version": self.rule_set_version,
            "band_breakdown": [
                {
                    "label": band.label,
                    "rate": str(band.rate),
                    "taxable_cents": band.taxable_cents,
                    "tax_cents": str(band.tax),
                }
                for band in self.band_breakdown
            ],
        }


class DeductionCalculator:
    """
    Kenya statutory deduction calculator.

    Stateless; the rule set is passed per call so that a batch can pin one
    version for all of its entries.
    """

    def calculate(
        self,
        basic_pay_cents: int,
        rule_set: RuleSet,
        allowances_cents: int = 0,
    ) -> DeductionBreakdown:
        """
        Calculate deductions and net pay.

        Args:
            basic_pay_cents: Payable base for the period (cents, >= 0)
            rule_set: Statutory rules to apply
            allowances_cents: Taxable allowances (cents, >= 0)

        Raises:
            ValidationException: If either amount is negative or not an integer
        """
        validate_cents(basic_pay_cents, "basic_pay_cents")
        validate_cents(allowances_cents, "allowances_cents")
        if rule_set is None:
            raise ValidationException("A statutory rule set is required", field="rule_set")

        gross_cents = basic_pay_cents + allowances_cents
        gross = Decimal(gross_cents)

        nssf = self._calculate_nssf(gross, rule_set)

        taxable_cents = max(0, gross_cents - nssf.total_cents)
        gross_tax, band_breakdown = self._calculate_paye_tax(Decimal(taxable_cents), rule_set)
        relief = Decimal(rule_set.personal_relief_cents)
        paye_cents = to_cents(max(ZERO, gross_tax - relief))

        health_cents = to_cents(gross * rule_set.health_levy_rate)
        housing_cents = to_cents(gross * rule_set.housing_levy_rate)

        total_cents = nssf.total_cents + paye_cents + health_cents + housing_cents
        net_cents = gross_cents - total_cents

        errors: List[str] = []
        warnings: List[str] = []

        if nssf.total_cents > to_cents(rule_set.max_nssf_cents):
            errors.append(CalculationWarning.NSSF_EXCEEDS_MAX.value)
        if paye_cents > taxable_cents:
            errors.append(CalculationWarning.PAYE_EXCEEDS_TAXABLE.value)
        if total_cents > gross_cents:
            errors.append(CalculationWarning.DEDUCTIONS_EXCEED_GROSS.value)
        if net_cents < 0:
            errors.append(CalculationWarning.NEGATIVE_NET_PAY.value)
            net_cents = 0

        if taxable_cents > 0 and Decimal(paye_cents) > Decimal(taxable_cents) * PAYE_WARNING_RATIO:
            message = "PAYE exceeds 40% of taxable pay"
            warnings.append(message)
            logger.warning(
                f"{message}: paye={paye_cents} taxable={taxable_cents} "
                f"rule_set_version={rule_set.version}"
            )
        if errors:
            logger.warning(
                f"Deduction validation failed for gross={gross_cents}: {', '.join(errors)}"
            )

        return DeductionBreakdown(
            basic_pay_cents=basic_pay_cents,
            allowances_cents=allowances_cents,
            gross_pay_cents=gross_cents,
            nssf=nssf,
            taxable_pay_cents=taxable_cents,
            paye_gross_tax_cents=to_cents(gross_tax),
            personal_relief_cents=rule_set.personal_relief_cents,
            paye_cents=paye_cents,
            health_levy_cents=health_cents,
            housing_levy_cents=housing_cents,
            total_deductions_cents=total_cents,
            net_pay_cents=net_cents,
            rule_set_version=rule_set.version,
            band_breakdown=tuple(band_breakdown),
            validation=CalculationValidation(errors=tuple(errors), warnings=tuple(warnings)),
        )

    def _calculate_nssf(self, gross: Decimal, rule_set: RuleSet) -> NssfContribution:
        cap_one = Decimal(rule_set.nssf_tier_one_cap_cents)
        cap_two = Decimal(rule_set.nssf_tier_two_cap_cents)

        if rule_set.nssf_tier_one_fixed_cents is not None:
            # Legacy flat tier I contribution, never more than the pay itself
            tier_one = min(Decimal(rule_set.nssf_tier_one_fixed_cents), gross)
        else:
            tier_one = min(gross, cap_one) * rule_set.nssf_rate

        tier_two_base = max(ZERO, min(gross, cap_two) - cap_one)
        tier_two = tier_two_base * rule_set.effective_nssf_tier_two_rate

        total_cents = to_cents(tier_one + tier_two)
        tier_one_cents = min(to_cents(tier_one), total_cents)
        return NssfContribution(
            tier_one_cents=tier_one_cents,
            tier_two_cents=total_cents - tier_one_cents,
            total_cents=total_cents,
        )

    def _calculate_paye_tax(
        self, taxable: Decimal, rule_set: RuleSet
    ) -> Tuple[Decimal, List[PayeBandTax]]:
        """Walk the bands; each consumes up to its width of what remains."""
        remaining = taxable
        total_tax = ZERO
        breakdown: List[PayeBandTax] = []

        for band in rule_set.paye_bands:
            if remaining <= 0:
                break
            portion = remaining if band.is_unbounded else min(remaining, Decimal(band.width_cents))
            tax = portion * band.rate
            breakdown.append(PayeBandTax(
                label=band.label,
                rate=band.rate,
                taxable_cents=int(portion),
                tax=tax,
            ))
            total_tax += tax
            remaining -= portion

        return total_tax, breakdown
