"""
HURE Core - Payroll CSV Export

Builds the payroll CSV from stored entry fields only, so an export of an
unchanged period is byte-for-byte reproducible.
"""

import csv
import io
import re
from typing import Iterable, List, Tuple

from hurecore.models.payroll import PayrollEntry, PayrollPeriod
from hurecore.utils.money import format_cents, format_units

CSV_HEADERS = [
    "Employee Name",
    "Staff ID",
    "Email",
    "Job Title",
    "Pay Method",
    "Base Salary (KES)",
    "Worked Hours",
    "Absent Days",
    "Leave Days",
    "Gross Pay (KES)",
    "Deductions (KES)",
    "Net Pay (KES)",
    "Status",
]


def sort_entries(entries: Iterable[PayrollEntry]) -> List[PayrollEntry]:
    """Export order: staff name, then staff id."""
    return sorted(entries, key=lambda e: (e.staff_name or "", e.staff_id))


def build_payroll_csv(period: PayrollPeriod, entries: Iterable[PayrollEntry]) -> Tuple[str, str]:
    """
    Render a period's entries as CSV.

    Returns:
        Tuple of (content, filename)
    """
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")

    writer.writerow([f"Payroll Export - {period.name}"])
    writer.writerow([f"Period: {period.start_date.isoformat()} to {period.end_date.isoformat()}"])
    writer.writerow([])

    writer.writerow(CSV_HEADERS)
    for entry in sort_entries(entries):
        pay_method = entry.pay_method.value if hasattr(entry.pay_method, "value") else entry.pay_method
        writer.writerow([
            entry.staff_name,
            entry.staff_id,
            entry.staff_email or "",
            entry.job_title or "",
            pay_method,
            format_cents(entry.base_salary_cents),
            format_units(entry.worked_units),
            format_units(entry.absent_units),
            format_units(entry.paid_leave_units),
            format_cents(entry.gross_pay_cents),
            format_cents(entry.deductions_total_cents),
            format_cents(entry.net_pay_cents),
            "Paid" if entry.is_paid else "Pending",
        ])

    safe_name = re.sub(r"[^A-Za-z0-9]+", "_", period.name).strip("_") or "payroll"
    filename = f"payroll_{safe_name}_{period.start_date.strftime('%Y%m%d')}.csv"
    return buffer.getvalue(), filename
