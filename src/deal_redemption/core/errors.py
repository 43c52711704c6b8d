"""Typed failures raised by the redemption engine.

Every precondition failure in the claim and verification flows surfaces as one
of these exceptions. The API layer renders them as
``{"kind": ..., "message": ..., "details": {...}}`` using `kind` and `status_code`.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    """Stable identifiers clients switch on."""

    DEAL_NOT_FOUND = "DealNotFound"
    DEAL_INACTIVE_OR_EXPIRED = "DealInactiveOrExpired"
    DEAL_FULLY_REDEEMED = "DealFullyRedeemed"
    MEMBERSHIP_INSUFFICIENT = "MembershipInsufficient"
    CLAIM_ALREADY_EXISTS = "ClaimAlreadyExists"
    CLAIM_NOT_FOUND = "ClaimNotFound"
    CLAIM_ALREADY_VERIFIED = "ClaimAlreadyVerified"
    CLAIM_NOT_VERIFIED = "ClaimNotVerified"
    PIN_MISMATCH = "PinMismatch"
    RATE_LIMITED = "RateLimited"
    CONCURRENCY_CONFLICT = "ConcurrencyConflict"
    INVALID_BILL_AMOUNT = "InvalidBillAmount"


class RedemptionError(RuntimeError):
    """Base exception for all redemption engine failures."""

    kind: ErrorKind
    status_code: int = 400

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details: dict[str, Any] = details

    def to_payload(self) -> dict[str, Any]:
        """Return the wire representation of the error."""
        return {"kind": self.kind.value, "message": self.message, "details": dict(self.details)}


class DealNotFoundError(RedemptionError):
    kind = ErrorKind.DEAL_NOT_FOUND
    status_code = 404

    def __init__(self, deal_id: int) -> None:
        super().__init__("Deal not found", deal_id=deal_id)


class DealInactiveOrExpiredError(RedemptionError):
    kind = ErrorKind.DEAL_INACTIVE_OR_EXPIRED
    status_code = 409

    def __init__(self, deal_id: int, reason: str) -> None:
        super().__init__("This deal is not currently available", deal_id=deal_id, reason=reason)


class DealFullyRedeemedError(RedemptionError):
    kind = ErrorKind.DEAL_FULLY_REDEEMED
    status_code = 409

    def __init__(self, deal_id: int) -> None:
        super().__init__("This deal has reached its redemption limit", deal_id=deal_id)


class MembershipInsufficientError(RedemptionError):
    """Raised when the caller's tier is below the deal's required tier.

    Carries both tiers so clients can offer the matching upgrade.
    """

    kind = ErrorKind.MEMBERSHIP_INSUFFICIENT
    status_code = 403

    def __init__(self, current_tier: str, required_tier: str) -> None:
        super().__init__(
            "Upgrade membership to claim this deal",
            current_tier=current_tier,
            required_tier=required_tier,
        )
        self.current_tier = current_tier
        self.required_tier = required_tier


class ClaimAlreadyExistsError(RedemptionError):
    kind = ErrorKind.CLAIM_ALREADY_EXISTS
    status_code = 409

    def __init__(self, deal_id: int, claim_id: int | None = None) -> None:
        super().__init__("You have already claimed this deal", deal_id=deal_id, claim_id=claim_id)


class ClaimNotFoundError(RedemptionError):
    kind = ErrorKind.CLAIM_NOT_FOUND
    status_code = 404

    def __init__(self, claim_id: int) -> None:
        super().__init__("Claim not found", claim_id=claim_id)


class ClaimAlreadyVerifiedError(RedemptionError):
    kind = ErrorKind.CLAIM_ALREADY_VERIFIED
    status_code = 409

    def __init__(self, claim_id: int) -> None:
        super().__init__("This claim has already been verified", claim_id=claim_id)


class ClaimNotVerifiedError(RedemptionError):
    kind = ErrorKind.CLAIM_NOT_VERIFIED
    status_code = 409

    def __init__(self, claim_id: int) -> None:
        super().__init__(
            "Verify the store PIN before recording a bill amount", claim_id=claim_id
        )


class PinMismatchError(RedemptionError):
    kind = ErrorKind.PIN_MISMATCH
    status_code = 400

    def __init__(self, claim_id: int) -> None:
        super().__init__("Invalid PIN", claim_id=claim_id)


class RateLimitedError(RedemptionError):
    """Raised when verification attempts exceed the configured ceilings."""

    kind = ErrorKind.RATE_LIMITED
    status_code = 429

    def __init__(self, retry_after: int) -> None:
        super().__init__(
            "Too many PIN attempts. Please wait before trying again.",
            retry_after=retry_after,
        )
        self.retry_after = retry_after


class ConcurrencyConflictError(RedemptionError):
    """Raised when a reservation lost a race; callers should retry."""

    kind = ErrorKind.CONCURRENCY_CONFLICT
    status_code = 503

    def __init__(self, deal_id: int) -> None:
        super().__init__("The deal is busy, please retry", deal_id=deal_id)


class InvalidBillAmountError(RedemptionError):
    kind = ErrorKind.INVALID_BILL_AMOUNT
    status_code = 422

    def __init__(self, bill_amount: object) -> None:
        super().__init__("Bill amount must be a positive number", bill_amount=str(bill_amount))
