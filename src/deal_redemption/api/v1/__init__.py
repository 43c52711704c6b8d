# src/deal_redemption/api/v1/__init__.py
"""Version 1 API endpoints."""

from .endpoints import claims_router, deals_router, vendors_router

__all__ = [
    "claims_router",
    "deals_router",
    "vendors_router",
]
