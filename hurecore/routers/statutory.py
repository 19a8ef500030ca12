"""
HURE Core - Statutory Rules Router

API endpoints for the statutory deduction rules and a deduction preview.
Mounted under /api/v1/statutory-rules.
"""

from typing import Optional, List

from fastapi import APIRouter, Depends, Query

from hurecore.config import settings
from hurecore.dependencies import get_actor_id, get_statutory_rules_service
from hurecore.schemas.statutory import (
    DeductionPreviewRequest,
    DeductionPreviewResponse,
    RuleSetResponse,
    RuleSetUpdateRequest,
)
from hurecore.services.statutory.rules import PayeBand
from hurecore.services.statutory.rules_service import StatutoryRulesService


router = APIRouter()


@router.get("/current", response_model=RuleSetResponse, summary="Rules currently in effect")
async def get_current_rules(
    jurisdiction: str = Query(settings.default_jurisdiction),
    service: StatutoryRulesService = Depends(get_statutory_rules_service),
):
    rule_set = await service.get_active_rules(jurisdiction)
    return RuleSetResponse.model_validate(rule_set)


@router.get("/history", response_model=List[RuleSetResponse], summary="All rule versions, newest first")
async def get_rules_history(
    jurisdiction: str = Query(settings.default_jurisdiction),
    service: StatutoryRulesService = Depends(get_statutory_rules_service),
):
    versions = await service.get_rules_history(jurisdiction)
    return [RuleSetResponse.model_validate(v) for v in versions]


@router.put(
    "",
    response_model=RuleSetResponse,
    summary="Publish a new rule version",
    description="Archives the current version and publishes a new one with the given changes.",
)
async def update_rules(
    data: RuleSetUpdateRequest,
    jurisdiction: str = Query(settings.default_jurisdiction),
    actor_id: Optional[str] = Depends(get_actor_id),
    service: StatutoryRulesService = Depends(get_statutory_rules_service),
):
    changes = data.model_dump(exclude_unset=True, exclude={"effective_from", "notes"})
    if "paye_bands" in changes:
        changes["paye_bands"] = tuple(PayeBand(**band) for band in changes["paye_bands"])
    rule_set = await service.update_rules(
        changes,
        updated_by=actor_id,
        jurisdiction=jurisdiction,
        effective_from=data.effective_from,
        notes=data.notes,
    )
    return RuleSetResponse.model_validate(rule_set)


@router.post("/revert", response_model=RuleSetResponse, summary="Publish the default rules as a new version")
async def revert_to_defaults(
    jurisdiction: str = Query(settings.default_jurisdiction),
    actor_id: Optional[str] = Depends(get_actor_id),
    service: StatutoryRulesService = Depends(get_statutory_rules_service),
):
    rule_set = await service.revert_to_defaults(updated_by=actor_id, jurisdiction=jurisdiction)
    return RuleSetResponse.model_validate(rule_set)


@router.post("/preview", response_model=DeductionPreviewResponse, summary="Preview deductions")
async def preview_deductions(
    data: DeductionPreviewRequest,
    jurisdiction: str = Query(settings.default_jurisdiction),
    service: StatutoryRulesService = Depends(get_statutory_rules_service),
):
    breakdown = await service.preview_deductions(data.basic_pay_cents, data.allowances_cents, jurisdiction)
    return DeductionPreviewResponse.model_validate(breakdown)
