"""
HURE Core - Payable Base Resolution

Turns attendance and a staff member's pay configuration into the payable
base for a period.

Pay methods:
- Fixed: monthly salary, regardless of attendance
- Prorated: monthly salary * worked hours / (total days * 8)
- Hourly: hourly rate * worked hours
- Per Shift: shift rate * worked hours / 8 (daily rate when no shift rate is set)
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Union

from hurecore.integrations.collaborators import AttendanceRecord, StaffProfile
from hurecore.models.payroll import PayMethod
from hurecore.utils.error_handling import ValidationException
from hurecore.utils.money import ZERO, to_cents, to_units

DEFAULT_WORKDAY_HOURS = 8

WORKED_STATUSES = frozenset({"Present", "Worked"})
PAID_LEAVE_STATUSES = frozenset({"On Leave"})
UNPAID_LEAVE_STATUSES = frozenset({"Unpaid Leave"})
ABSENT_STATUSES = frozenset({"Absent", "No-show"})


@dataclass(frozen=True)
class AttendanceSummary:
    """
    Attendance units for a period. Worked units are hours; the rest are days.

    Units are rounded to the two decimals stored on an entry, and pay is
    resolved from the rounded units.
    """
    worked_units: Decimal = ZERO
    paid_leave_units: Decimal = ZERO
    unpaid_leave_units: Decimal = ZERO
    absent_units: Decimal = ZERO

    @classmethod
    def from_records(
        cls,
        records: Iterable[AttendanceRecord],
        workday_hours: int = DEFAULT_WORKDAY_HOURS,
    ) -> "AttendanceSummary":
        worked = paid_leave = unpaid_leave = absent = ZERO
        for record in records:
            if record.status in WORKED_STATUSES:
                # A day with no recorded hours counts as a full workday
                worked += record.total_hours if record.total_hours else Decimal(workday_hours)
            elif record.status in PAID_LEAVE_STATUSES:
                paid_leave += 1
            elif record.status in UNPAID_LEAVE_STATUSES:
                unpaid_leave += 1
            elif record.status in ABSENT_STATUSES:
                absent += 1
        return cls(
            worked_units=to_units(worked),
            paid_leave_units=to_units(paid_leave),
            unpaid_leave_units=to_units(unpaid_leave),
            absent_units=to_units(absent),
        )


@dataclass(frozen=True)
class PayableBase:
    pay_method: PayMethod
    base_salary_cents: int
    rate_cents: int
    payable_base_cents: int


def parse_pay_method(value: Union[str, PayMethod]) -> PayMethod:
    try:
        return PayMethod(value)
    except ValueError:
        raise ValidationException(f"Unknown pay method: {value}", field="pay_method")


class PayableBaseResolver:
    """Computes a staff member's payable base for a period."""

    def __init__(self, nominal_workday_hours: int = DEFAULT_WORKDAY_HOURS):
        if nominal_workday_hours <= 0:
            raise ValidationException("nominal_workday_hours must be positive", field="nominal_workday_hours")
        self.nominal_workday_hours = nominal_workday_hours

    def resolve(
        self,
        staff: StaffProfile,
        summary: AttendanceSummary,
        total_days: int,
        pay_method: Union[str, PayMethod, None] = None,
    ) -> PayableBase:
        """
        Resolve the payable base.

        Args:
            staff: Pay configuration
            summary: Attendance units for the period
            total_days: Inclusive day count of the period
            pay_method: Override for the staff member's configured method

        Raises:
            ValidationException: If total_days is not positive or the pay method is unknown
        """
        if total_days <= 0:
            raise ValidationException("total_days must be positive", field="total_days")

        method = parse_pay_method(pay_method or staff.pay_method)
        worked = to_units(summary.worked_units)
        hours = Decimal(self.nominal_workday_hours)
        monthly = staff.monthly_salary_cents or 0

        if method == PayMethod.FIXED:
            rate = monthly
            payable = monthly
        elif method == PayMethod.PRORATED:
            rate = monthly
            payable = to_cents(Decimal(monthly) * worked / (Decimal(total_days) * hours))
        elif method == PayMethod.HOURLY:
            rate = staff.hourly_rate_cents or 0
            payable = to_cents(Decimal(rate) * worked)
        else:
            rate = staff.shift_rate_cents or staff.daily_rate_cents or 0
            payable = to_cents(Decimal(rate) * worked / hours)

        return PayableBase(
            pay_method=method,
            base_salary_cents=monthly,
            rate_cents=rate,
            payable_base_cents=payable,
        )
