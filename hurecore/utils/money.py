"""
HURE Core - Money Helpers

All monetary values at rest are integer cents (KES minor units).
Intermediate statutory math is done on exact Decimals and converted to
cents exactly once, rounding half away from zero.
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Union

ZERO = Decimal("0")
ONE_CENT = Decimal("1")
CENTS_PER_UNIT = 100
UNITS_QUANTUM = Decimal("0.01")


def to_cents(amount: Decimal) -> int:
    """Round an exact amount of cents to a whole cent (half away from zero)."""
    return int(amount.quantize(ONE_CENT, rounding=ROUND_HALF_UP))


def major_to_cents(amount: Union[int, str, Decimal]) -> int:
    """Convert a major-unit amount (e.g. KES 6,000) to integer cents."""
    return to_cents(Decimal(str(amount)) * CENTS_PER_UNIT)


def format_cents(cents: int) -> str:
    """Render integer cents as a fixed two-decimal string without float math."""
    sign = "-" if cents < 0 else ""
    whole, fraction = divmod(abs(cents), CENTS_PER_UNIT)
    return f"{sign}{whole}.{fraction:02d}"


def to_units(units: Union[int, Decimal]) -> Decimal:
    """Round worked/leave units to the two decimals stored on an entry."""
    return Decimal(units).quantize(UNITS_QUANTUM, rounding=ROUND_HALF_UP)


def format_units(units: Union[int, Decimal]) -> str:
    """Render worked/leave units with two decimals for exports."""
    return f"{to_units(units)}"
