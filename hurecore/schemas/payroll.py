"""
HURE Core - Payroll Schemas

Pydantic schemas for payroll requests and responses.
Money fields are integer cents (KES).
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional, List, Dict, Any
from uuid import UUID

from pydantic import BaseModel, Field

from hurecore.models.payroll import PayMethod, PeriodState


# ===========================================
# PAYROLL PERIOD SCHEMAS
# ===========================================

class PayrollPeriodCreate(BaseModel):
    """Create payroll period request."""
    name: str = Field(..., min_length=1, max_length=200)
    start_date: date
    end_date: date


class PayrollPeriodResponse(BaseModel):
    """Payroll period response."""
    id: UUID
    organization_id: str
    name: str
    start_date: date
    end_date: date
    total_days: int
    state: PeriodState
    is_finalized: bool
    finalized_at: Optional[datetime] = None
    finalized_by: Optional[str] = None
    is_archived: bool
    archived_at: Optional[datetime] = None
    archived_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class PayrollPeriodSummaryResponse(BaseModel):
    """Aggregated period totals."""
    period_id: UUID
    total_entries: int
    total_gross_cents: int
    total_net_cents: int
    total_deductions_cents: int
    paid_count: int
    pending_count: int
    flagged_count: int


# ===========================================
# PAYROLL ENTRY SCHEMAS
# ===========================================

class AddStaffRequest(BaseModel):
    """Add a single staff member to a draft period."""
    staff_id: str = Field(..., min_length=1, max_length=64)


class PayrollEntryUpdate(BaseModel):
    """Change an entry's pay method or allowances (draft periods only)."""
    pay_method: Optional[PayMethod] = None
    allowances_cents: Optional[int] = Field(None, ge=0)


class MarkPaidRequest(BaseModel):
    payment_reference: Optional[str] = Field(None, max_length=100)


class PayrollEntryResponse(BaseModel):
    """Payroll entry response."""
    id: UUID
    payroll_period_id: UUID
    organization_id: str
    staff_id: str
    staff_name: str
    staff_email: Optional[str] = None
    job_title: Optional[str] = None

    pay_method: PayMethod
    base_salary_cents: int
    rate_cents: int

    worked_units: Decimal
    paid_leave_units: Decimal
    unpaid_leave_units: Decimal
    absent_units: Decimal

    payable_base_cents: int
    allowances_total_cents: int
    gross_pay_cents: int
    deductions_total_cents: int
    net_pay_cents: int
    deduction_details: Dict[str, Any]
    rule_set_version: int
    validation_errors: List[str] = []

    is_paid: bool
    paid_at: Optional[datetime] = None
    paid_by: Optional[str] = None
    payment_reference: Optional[str] = None

    class Config:
        from_attributes = True


class StaffOutcomeResponse(BaseModel):
    staff_id: str
    status: str
    entry_id: Optional[UUID] = None
    error: Optional[str] = None


class GenerationReportResponse(BaseModel):
    """Result of a generation run."""
    period_id: UUID
    rule_set_version: int
    created_count: int
    skipped_count: int
    failed_count: int
    outcomes: List[StaffOutcomeResponse]


class MarkAllPaidResponse(BaseModel):
    period_id: UUID
    updated_count: int
