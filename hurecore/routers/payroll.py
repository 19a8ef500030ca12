"""
HURE Core - Payroll Router

API endpoints for payroll periods, entries and the period lifecycle.
Mounted under /api/v1/organizations/{organization_id}/payroll.
"""

import uuid
from dataclasses import asdict
from typing import Optional, List

from fastapi import APIRouter, Depends, Query, Path, status
from fastapi.responses import Response

from hurecore.dependencies import get_actor_id, get_payroll_service
from hurecore.services.payroll.entry_generator import GenerationReport
from hurecore.services.payroll.payroll_service import PayrollService
from hurecore.schemas.payroll import (
    AddStaffRequest,
    GenerationReportResponse,
    MarkAllPaidResponse,
    MarkPaidRequest,
    PayrollEntryResponse,
    PayrollEntryUpdate,
    PayrollPeriodCreate,
    PayrollPeriodResponse,
    PayrollPeriodSummaryResponse,
    StaffOutcomeResponse,
)


router = APIRouter()


def _report_response(report: GenerationReport) -> GenerationReportResponse:
    return GenerationReportResponse(
        period_id=report.period_id,
        rule_set_version=report.rule_set_version,
        created_count=len(report.created),
        skipped_count=len(report.skipped),
        failed_count=len(report.failed),
        outcomes=[
            StaffOutcomeResponse(
                staff_id=outcome.staff_id,
                status=outcome.status.value,
                entry_id=outcome.entry.id if outcome.entry else None,
                error=outcome.error,
            )
            for outcome in report.outcomes
        ],
    )


# ===========================================
# PERIOD ENDPOINTS
# ===========================================

@router.post(
    "/periods",
    response_model=PayrollPeriodResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create payroll period",
)
async def create_period(
    data: PayrollPeriodCreate,
    organization_id: str = Path(..., max_length=64),
    service: PayrollService = Depends(get_payroll_service),
):
    """Create a draft payroll period."""
    period = await service.create_period(organization_id, data.name, data.start_date, data.end_date)
    return PayrollPeriodResponse.model_validate(period)


@router.get(
    "/periods",
    response_model=List[PayrollPeriodResponse],
    summary="List payroll periods",
)
async def list_periods(
    organization_id: str = Path(..., max_length=64),
    include_archived: bool = Query(True),
    service: PayrollService = Depends(get_payroll_service),
):
    periods = await service.list_periods(organization_id, include_archived)
    return [PayrollPeriodResponse.model_validate(p) for p in periods]


@router.get(
    "/periods/{period_id}",
    response_model=PayrollPeriodResponse,
    summary="Get payroll period",
)
async def get_period(
    period_id: uuid.UUID,
    organization_id: str = Path(..., max_length=64),
    service: PayrollService = Depends(get_payroll_service),
):
    period = await service.get_period(organization_id, period_id)
    return PayrollPeriodResponse.model_validate(period)


@router.get(
    "/periods/{period_id}/summary",
    response_model=PayrollPeriodSummaryResponse,
    summary="Payroll period totals",
)
async def get_period_summary(
    period_id: uuid.UUID,
    organization_id: str = Path(..., max_length=64),
    service: PayrollService = Depends(get_payroll_service),
):
    totals = await service.get_period_summary(organization_id, period_id)
    return PayrollPeriodSummaryResponse(period_id=period_id, **asdict(totals))


@router.get(
    "/periods/{period_id}/export.csv",
    summary="Export payroll period as CSV",
)
async def export_period_csv(
    period_id: uuid.UUID,
    organization_id: str = Path(..., max_length=64),
    service: PayrollService = Depends(get_payroll_service),
):
    content, filename = await service.export_entries_csv(organization_id, period_id)
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )


# ===========================================
# LIFECYCLE ENDPOINTS
# ===========================================

@router.post("/periods/{period_id}/finalize", response_model=PayrollPeriodResponse, summary="Finalize period")
async def finalize_period(
    period_id: uuid.UUID,
    organization_id: str = Path(..., max_length=64),
    actor_id: Optional[str] = Depends(get_actor_id),
    service: PayrollService = Depends(get_payroll_service),
):
    """Lock a draft period. Payment status can still be corrected afterwards."""
    period = await service.finalize_period(organization_id, period_id, actor_id)
    return PayrollPeriodResponse.model_validate(period)


@router.post("/periods/{period_id}/unfinalize", response_model=PayrollPeriodResponse, summary="Unfinalize period")
async def unfinalize_period(
    period_id: uuid.UUID,
    organization_id: str = Path(..., max_length=64),
    actor_id: Optional[str] = Depends(get_actor_id),
    service: PayrollService = Depends(get_payroll_service),
):
    period = await service.unfinalize_period(organization_id, period_id, actor_id)
    return PayrollPeriodResponse.model_validate(period)


@router.post("/periods/{period_id}/archive", response_model=PayrollPeriodResponse, summary="Archive period")
async def archive_period(
    period_id: uuid.UUID,
    organization_id: str = Path(..., max_length=64),
    actor_id: Optional[str] = Depends(get_actor_id),
    service: PayrollService = Depends(get_payroll_service),
):
    period = await service.archive_period(organization_id, period_id, actor_id)
    return PayrollPeriodResponse.model_validate(period)


@router.post("/periods/{period_id}/unarchive", response_model=PayrollPeriodResponse, summary="Unarchive period")
async def unarchive_period(
    period_id: uuid.UUID,
    organization_id: str = Path(..., max_length=64),
    actor_id: Optional[str] = Depends(get_actor_id),
    service: PayrollService = Depends(get_payroll_service),
):
    period = await service.unarchive_period(organization_id, period_id, actor_id)
    return PayrollPeriodResponse.model_validate(period)


# ===========================================
# ENTRY ENDPOINTS
# ===========================================

@router.post(
    "/periods/{period_id}/generate",
    response_model=GenerationReportResponse,
    summary="Generate payroll entries",
    description="Compute entries for all active staff without one. Safe to re-run.",
)
async def generate_entries(
    period_id: uuid.UUID,
    organization_id: str = Path(..., max_length=64),
    service: PayrollService = Depends(get_payroll_service),
):
    report = await service.generate_entries(organization_id, period_id)
    return _report_response(report)


@router.post(
    "/periods/{period_id}/entries",
    response_model=PayrollEntryResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add a staff member to the period",
)
async def add_staff_to_payroll(
    period_id: uuid.UUID,
    data: AddStaffRequest,
    organization_id: str = Path(..., max_length=64),
    service: PayrollService = Depends(get_payroll_service),
):
    entry = await service.add_staff_to_payroll(organization_id, period_id, data.staff_id)
    return PayrollEntryResponse.model_validate(entry)


@router.get(
    "/periods/{period_id}/entries",
    response_model=List[PayrollEntryResponse],
    summary="List payroll entries",
)
async def get_entries(
    period_id: uuid.UUID,
    organization_id: str = Path(..., max_length=64),
    service: PayrollService = Depends(get_payroll_service),
):
    entries = await service.get_entries(organization_id, period_id)
    return [PayrollEntryResponse.model_validate(e) for e in entries]


@router.get(
    "/periods/{period_id}/entries/staff/{staff_id}",
    response_model=PayrollEntryResponse,
    summary="Get a staff member's entry",
)
async def get_entry_for_staff(
    period_id: uuid.UUID,
    staff_id: str,
    organization_id: str = Path(..., max_length=64),
    service: PayrollService = Depends(get_payroll_service),
):
    entry = await service.get_entry_for_staff(organization_id, period_id, staff_id)
    return PayrollEntryResponse.model_validate(entry)


@router.post(
    "/periods/{period_id}/mark-all-paid",
    response_model=MarkAllPaidResponse,
    summary="Mark all pending entries as paid",
)
async def mark_all_as_paid(
    period_id: uuid.UUID,
    organization_id: str = Path(..., max_length=64),
    actor_id: Optional[str] = Depends(get_actor_id),
    service: PayrollService = Depends(get_payroll_service),
):
    count = await service.mark_all_as_paid(organization_id, period_id, actor_id)
    return MarkAllPaidResponse(period_id=period_id, updated_count=count)


@router.patch(
    "/entries/{entry_id}",
    response_model=PayrollEntryResponse,
    summary="Change pay method or allowances",
)
async def update_entry(
    entry_id: uuid.UUID,
    data: PayrollEntryUpdate,
    organization_id: str = Path(..., max_length=64),
    service: PayrollService = Depends(get_payroll_service),
):
    """Recalculate an entry in a draft period."""
    entry = await service.recalculate_entry(
        organization_id, entry_id, pay_method=data.pay_method, allowances_cents=data.allowances_cents
    )
    return PayrollEntryResponse.model_validate(entry)


@router.post("/entries/{entry_id}/mark-paid", response_model=PayrollEntryResponse, summary="Mark entry as paid")
async def mark_as_paid(
    entry_id: uuid.UUID,
    data: Optional[MarkPaidRequest] = None,
    organization_id: str = Path(..., max_length=64),
    actor_id: Optional[str] = Depends(get_actor_id),
    service: PayrollService = Depends(get_payroll_service),
):
    reference = data.payment_reference if data else None
    entry = await service.mark_as_paid(organization_id, entry_id, actor_id, reference)
    return PayrollEntryResponse.model_validate(entry)


@router.post("/entries/{entry_id}/unmark-paid", response_model=PayrollEntryResponse, summary="Unmark entry as paid")
async def unmark_as_paid(
    entry_id: uuid.UUID,
    organization_id: str = Path(..., max_length=64),
    actor_id: Optional[str] = Depends(get_actor_id),
    service: PayrollService = Depends(get_payroll_service),
):
    entry = await service.unmark_as_paid(organization_id, entry_id, actor_id)
    return PayrollEntryResponse.model_validate(entry)
