"""
HURE Core - Payable Base Tests

Attendance summarisation and pay method resolution.
"""

from datetime import date
from decimal import Decimal

import pytest

from hurecore.integrations.collaborators import AttendanceRecord, StaffProfile
from hurecore.models.payroll import PayMethod
from hurecore.services.payroll.payable_base import (
    AttendanceSummary,
    PayableBaseResolver,
    parse_pay_method,
)
from hurecore.utils.error_handling import ValidationException
from tests.conftest import attendance_days


@pytest.fixture
def resolver():
    return PayableBaseResolver()


def worked(hours) -> AttendanceSummary:
    return AttendanceSummary(worked_units=Decimal(str(hours)))


class TestAttendanceSummary:
    """AttendanceSummary.from_records"""

    def test_status_buckets(self):
        records = (
            attendance_days(date(2026, 9, 1), 3, "Present", 7.5)
            + attendance_days(date(2026, 9, 4), 2, "On Leave")
            + attendance_days(date(2026, 9, 6), 1, "Unpaid Leave")
            + attendance_days(date(2026, 9, 7), 1, "Absent")
            + attendance_days(date(2026, 9, 8), 1, "No-show")
        )

        summary = AttendanceSummary.from_records(records)

        assert summary.worked_units == Decimal("22.5")
        assert summary.paid_leave_units == 2
        assert summary.unpaid_leave_units == 1
        assert summary.absent_units == 2

    def test_worked_day_without_hours_counts_as_workday(self):
        records = [
            AttendanceRecord(date(2026, 9, 1), "Worked"),
            AttendanceRecord(date(2026, 9, 2), "Worked", Decimal("0")),
        ]

        assert AttendanceSummary.from_records(records).worked_units == 16
        assert AttendanceSummary.from_records(records, workday_hours=10).worked_units == 20

    def test_fractional_hours_rounded_to_stored_precision(self):
        # 3 x 7.333h = 21.999h
        records = attendance_days(date(2026, 9, 1), 3, "Present", 7.333)

        summary = AttendanceSummary.from_records(records)

        assert summary.worked_units == Decimal("22.00")
        assert summary.worked_units.as_tuple().exponent == -2

    def test_unknown_status_is_ignored(self):
        records = [AttendanceRecord(date(2026, 9, 1), "Holiday", Decimal("8"))]

        summary = AttendanceSummary.from_records(records)

        assert summary == AttendanceSummary()


class TestPayMethods:
    """PayableBaseResolver.resolve for each pay method."""

    def test_fixed_ignores_attendance(self, resolver):
        staff = StaffProfile(id="s-1", full_name="A", pay_method="Fixed", monthly_salary_cents=5_000_000)

        base = resolver.resolve(staff, AttendanceSummary(), total_days=30)

        assert base.pay_method == PayMethod.FIXED
        assert base.payable_base_cents == 5_000_000
        assert base.rate_cents == 5_000_000

    def test_prorated(self, resolver):
        staff = StaffProfile(id="s-1", full_name="A", pay_method="Prorated", monthly_salary_cents=6_000_000)

        base = resolver.resolve(staff, worked(120), total_days=30)

        # 60,000 * 120 / (30 * 8)
        assert base.payable_base_cents == 3_000_000
        assert base.base_salary_cents == 6_000_000

    def test_prorated_rounds_half_up(self, resolver):
        staff = StaffProfile(id="s-1", full_name="A", pay_method="Prorated", monthly_salary_cents=100)

        # 100 * 1 / 8 = 12.5
        base = resolver.resolve(staff, worked(1), total_days=1)

        assert base.payable_base_cents == 13

    def test_hourly(self, resolver):
        staff = StaffProfile(id="s-1", full_name="A", pay_method="Hourly", hourly_rate_cents=50_000)

        base = resolver.resolve(staff, worked(80), total_days=30)

        assert base.payable_base_cents == 4_000_000
        assert base.rate_cents == 50_000

    def test_hourly_uses_rounded_units(self, resolver):
        staff = StaffProfile(id="s-1", full_name="A", pay_method="Hourly", hourly_rate_cents=100_000)

        base = resolver.resolve(staff, worked("21.999"), total_days=30)

        assert base.payable_base_cents == 2_200_000

    def test_per_shift_prefers_shift_rate(self, resolver):
        staff = StaffProfile(
            id="s-1", full_name="A", pay_method="Per Shift",
            shift_rate_cents=300_000, daily_rate_cents=240_000,
        )

        base = resolver.resolve(staff, worked(40), total_days=30)

        assert base.rate_cents == 300_000
        assert base.payable_base_cents == 1_500_000

    def test_per_shift_falls_back_to_daily_rate(self, resolver):
        staff = StaffProfile(id="s-1", full_name="A", pay_method="Per Shift", daily_rate_cents=240_000)

        base = resolver.resolve(staff, worked(40), total_days=30)

        assert base.rate_cents == 240_000
        assert base.payable_base_cents == 1_200_000

    def test_override_pay_method(self, resolver):
        staff = StaffProfile(
            id="s-1", full_name="A", pay_method="Fixed",
            monthly_salary_cents=6_000_000, hourly_rate_cents=40_000,
        )

        base = resolver.resolve(staff, worked(10), total_days=30, pay_method=PayMethod.HOURLY)

        assert base.pay_method == PayMethod.HOURLY
        assert base.payable_base_cents == 400_000

    def test_missing_rate_gives_zero(self, resolver):
        staff = StaffProfile(id="s-1", full_name="A", pay_method="Hourly")

        assert resolver.resolve(staff, worked(80), total_days=30).payable_base_cents == 0

    def test_custom_workday(self):
        resolver = PayableBaseResolver(nominal_workday_hours=10)
        staff = StaffProfile(id="s-1", full_name="A", pay_method="Per Shift", shift_rate_cents=300_000)

        assert resolver.resolve(staff, worked(40), total_days=30).payable_base_cents == 1_200_000


class TestInvalidInput:

    def test_unknown_pay_method(self, resolver):
        staff = StaffProfile(id="s-1", full_name="A", pay_method="Commission")

        with pytest.raises(ValidationException):
            resolver.resolve(staff, AttendanceSummary(), total_days=30)

    def test_zero_day_period(self, resolver):
        staff = StaffProfile(id="s-1", full_name="A", monthly_salary_cents=100)

        with pytest.raises(ValidationException):
            resolver.resolve(staff, AttendanceSummary(), total_days=0)

    def test_non_positive_workday(self):
        with pytest.raises(ValidationException):
            PayableBaseResolver(nominal_workday_hours=0)

    def test_parse_pay_method_accepts_display_values(self):
        assert parse_pay_method("Per Shift") == PayMethod.PER_SHIFT
        assert parse_pay_method(PayMethod.PRORATED) == PayMethod.PRORATED
