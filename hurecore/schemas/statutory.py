"""
HURE Core - Statutory Rule Schemas
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional, List
from uuid import UUID

from pydantic import AwareDatetime, BaseModel, Field


class PayeBandSchema(BaseModel):
    """A PAYE band; width_cents is null for the unbounded top band."""
    rate: Decimal = Field(..., ge=0, le=1)
    width_cents: Optional[int] = Field(None, gt=0)
    label: str = ""

    class Config:
        from_attributes = True


class RuleSetResponse(BaseModel):
    """Statutory rule set version."""
    id: Optional[UUID] = None
    jurisdiction: str
    version: int
    effective_from: datetime
    effective_until: Optional[datetime] = None
    is_active: bool
    paye_bands: List[PayeBandSchema]
    personal_relief_cents: int
    nssf_tier_one_cap_cents: int
    nssf_tier_two_cap_cents: int
    nssf_rate: Decimal
    nssf_tier_two_rate: Optional[Decimal] = None
    nssf_tier_one_fixed_cents: Optional[int] = None
    health_levy_rate: Decimal
    housing_levy_rate: Decimal
    updated_by: Optional[str] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class RuleSetUpdateRequest(BaseModel):
    """Fields to change in the next rule set version; omitted fields carry over."""
    paye_bands: Optional[List[PayeBandSchema]] = Field(None, min_length=1)
    personal_relief_cents: Optional[int] = Field(None, ge=0)
    nssf_tier_one_cap_cents: Optional[int] = Field(None, ge=0)
    nssf_tier_two_cap_cents: Optional[int] = Field(None, ge=0)
    nssf_rate: Optional[Decimal] = Field(None, ge=0, le=1)
    nssf_tier_two_rate: Optional[Decimal] = Field(None, ge=0, le=1)
    nssf_tier_one_fixed_cents: Optional[int] = Field(None, ge=0)
    health_levy_rate: Optional[Decimal] = Field(None, ge=0, le=1)
    housing_levy_rate: Optional[Decimal] = Field(None, ge=0, le=1)
    effective_from: Optional[AwareDatetime] = None
    notes: Optional[str] = Field(None, max_length=1000)


class DeductionPreviewRequest(BaseModel):
    basic_pay_cents: int = Field(..., ge=0)
    allowances_cents: int = Field(0, ge=0)


class NssfResponse(BaseModel):
    tier_one_cents: int
    tier_two_cents: int
    total_cents: int

    class Config:
        from_attributes = True


class PayeBandTaxResponse(BaseModel):
    label: str
    rate: Decimal
    taxable_cents: int
    tax: Decimal

    class Config:
        from_attributes = True


class CalculationValidationResponse(BaseModel):
    is_valid: bool
    errors: List[str]
    warnings: List[str]

    class Config:
        from_attributes = True


class DeductionPreviewResponse(BaseModel):
    """Deduction breakdown for a hypothetical pay amount."""
    basic_pay_cents: int
    allowances_cents: int
    gross_pay_cents: int
    nssf: NssfResponse
    taxable_pay_cents: int
    paye_gross_tax_cents: int
    personal_relief_cents: int
    paye_cents: int
    health_levy_cents: int
    housing_levy_cents: int
    total_deductions_cents: int
    net_pay_cents: int
    rule_set_version: int
    band_breakdown: List[PayeBandTaxResponse]
    validation: CalculationValidationResponse

    class Config:
        from_attributes = True
