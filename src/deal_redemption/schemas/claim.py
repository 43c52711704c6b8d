# src/deal_redemption/schemas/claim.py
"""Claim-related Pydantic schemas."""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field


class ClaimResponse(BaseModel):
    """Schema for claim information returned by the API."""

    id: int
    deal_id: int
    customer_id: int
    status: str
    claimed_at: datetime
    verified_at: datetime | None = None
    verified_layer: str | None = None
    bill_amount: Decimal | None = None
    savings_amount: Decimal | None = None

    model_config = ConfigDict(from_attributes=True)


class VerifyClaimRequest(BaseModel):
    """PIN shown by the vendor at the counter."""

    pin: str = Field(..., max_length=32, description="PIN displayed by the vendor")


class BillAmountRequest(BaseModel):
    """Total bill the discount applies to."""

    bill_amount: Decimal = Field(..., description="Bill total before discount")


class SavingsResponse(BaseModel):
    """Savings accumulated over verified claims."""

    verified_claims: int
    total_savings: Decimal
