"""
HURE Core - Payroll Models

Payroll periods and their per-staff entries.

Period lifecycle:
- Draft: entries may be generated, recalculated and marked paid
- Finalized: locked; only payment status may still change
- Archived: read-only

All monetary columns are integer cents (KES).
"""

import uuid
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional

from sqlalchemy import (
    BigInteger, Boolean, Date, DateTime, ForeignKey, Integer, JSON, Numeric, String,
    Enum as SQLEnum, UniqueConstraint, CheckConstraint,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from hurecore.models.base import BaseModel


# ===========================================
# ENUMS
# ===========================================

class PayMethod(str, Enum):
    """How a staff member's payable base is derived."""
    FIXED = "Fixed"
    PRORATED = "Prorated"
    HOURLY = "Hourly"
    PER_SHIFT = "Per Shift"


class PeriodState(str, Enum):
    """Derived lifecycle state of a payroll period."""
    DRAFT = "Draft"
    FINALIZED = "Finalized"
    ARCHIVED = "Archived"


# ===========================================
# MODELS
# ===========================================

class PayrollPeriod(BaseModel):
    """
    A payroll period for one organization.

    total_days is the inclusive day count, fixed at creation.
    """

    __tablename__ = "payroll_periods"
    __table_args__ = (
        CheckConstraint("end_date >= start_date", name="period_dates"),
        CheckConstraint("NOT is_archived OR is_finalized", name="archived_requires_finalized"),
    )

    organization_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    total_days: Mapped[int] = mapped_column(Integer, nullable=False)

    is_finalized: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    finalized_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    finalized_by: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    is_archived: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    archived_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    archived_by: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    @property
    def state(self) -> PeriodState:
        if not self.is_finalized:
            return PeriodState.DRAFT
        if self.is_archived:
            return PeriodState.ARCHIVED
        return PeriodState.FINALIZED

    def to_snapshot(self) -> Dict[str, Any]:
        """Lifecycle fields, as recorded in audit events."""
        return {
            "id": str(self.id),
            "name": self.name,
            "state": self.state.value,
            "is_finalized": self.is_finalized,
            "finalized_at": self.finalized_at.isoformat() if self.finalized_at else None,
            "finalized_by": self.finalized_by,
            "is_archived": self.is_archived,
            "archived_at": self.archived_at.isoformat() if self.archived_at else None,
            "archived_by": self.archived_by,
        }


class PayrollEntry(BaseModel):
    """
    One staff member's payslip within a payroll period.

    Pay rates and attendance units are snapshots taken at generation time so
    the entry can be reproduced without the collaborator services.
    """

    __tablename__ = "payroll_entries"
    __table_args__ = (
        UniqueConstraint("payroll_period_id", "staff_id", name="uq_payroll_entry_period_staff"),
        CheckConstraint("gross_pay_cents >= 0", name="gross_non_negative"),
        CheckConstraint("net_pay_cents >= 0", name="net_non_negative"),
    )

    payroll_period_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("payroll_periods.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    organization_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    staff_id: Mapped[str] = mapped_column(String(64), nullable=False)
    staff_name: Mapped[str] = mapped_column(String(200), nullable=False)
    staff_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    job_title: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)

    # Pay configuration snapshot
    pay_method: Mapped[PayMethod] = mapped_column(SQLEnum(PayMethod, name="pay_method"), nullable=False)
    base_salary_cents: Mapped[int] = mapped_column(BigInteger, nullable=False)
    rate_cents: Mapped[int] = mapped_column(BigInteger, nullable=False)

    # Attendance snapshot
    worked_units: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    paid_leave_units: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    unpaid_leave_units: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    absent_units: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)

    # Amounts
    payable_base_cents: Mapped[int] = mapped_column(BigInteger, nullable=False)
    allowances_total_cents: Mapped[int] = mapped_column(BigInteger, nullable=False)
    gross_pay_cents: Mapped[int] = mapped_column(BigInteger, nullable=False)
    deductions_total_cents: Mapped[int] = mapped_column(BigInteger, nullable=False)
    net_pay_cents: Mapped[int] = mapped_column(BigInteger, nullable=False)
    deduction_details: Mapped[Dict[str, Any]] = mapped_column(JSON, nullable=False)
    rule_set_version: Mapped[int] = mapped_column(Integer, nullable=False)
    validation_errors: Mapped[List[str]] = mapped_column(JSON, nullable=False)

    # Payment
    is_paid: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    paid_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    paid_by: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    payment_reference: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    @property
    def is_flagged(self) -> bool:
        return bool(self.validation_errors)
