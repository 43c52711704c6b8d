# src/deal_redemption/schemas/__init__.py
"""
Pydantic schemas for API request/response models.

These schemas define the structure of API data for serialization and validation.
"""

from .claim import BillAmountRequest, ClaimResponse, SavingsResponse, VerifyClaimRequest
from .deal import (
    CurrentPinResponse,
    DealAccessResponse,
    DealRedemptionResponse,
    NearbyDealResponse,
    NearbyDealsRequest,
    NearbyDealsResponse,
)
from .error import ErrorResponse

__all__ = [
    "BillAmountRequest", "ClaimResponse", "SavingsResponse", "VerifyClaimRequest",
    "CurrentPinResponse", "DealAccessResponse", "DealRedemptionResponse",
    "NearbyDealResponse", "NearbyDealsRequest", "NearbyDealsResponse",
    "ErrorResponse",
]
