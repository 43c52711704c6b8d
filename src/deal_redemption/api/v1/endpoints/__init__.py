# src/deal_redemption/api/v1/endpoints/__init__.py
"""API endpoint modules for version 1."""

from .claims import router as claims_router
from .deals import router as deals_router
from .vendors import router as vendors_router

__all__ = [
    "claims_router",
    "deals_router",
    "vendors_router",
]
