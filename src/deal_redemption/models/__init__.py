# src/deal_redemption/models/__init__.py
"""SQLAlchemy models for the deal redemption engine."""

from .claim import DealClaim
from .customer import Customer
from .deal import Deal
from .vendor import Vendor
from .verification_attempt import VerificationAttempt

__all__ = [
    "Customer",
    "Deal",
    "DealClaim",
    "Vendor",
    "VerificationAttempt",
]
