# src/deal_redemption/services/__init__.py
"""Business logic services for the redemption engine."""

from .audit import AttemptRecord, AuditSink
from .claim_ledger import ClaimLedger
from .pin_verifier import PinVerification, PinVerifier
from .ranking import NearbyDealRanker, RankedDeal, RankedDeals
from .rate_limiter import RateLimitDecision, RateLimiter
from .redemption_counter import RedemptionCounter
from .rotating import RotatingCodeService, RotatingPin

__all__ = [
    "AttemptRecord", "AuditSink",
    "ClaimLedger",
    "PinVerification", "PinVerifier",
    "NearbyDealRanker", "RankedDeal", "RankedDeals",
    "RateLimitDecision", "RateLimiter",
    "RedemptionCounter",
    "RotatingCodeService", "RotatingPin",
]
