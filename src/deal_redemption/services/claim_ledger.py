"""Claim state machine: reserve online, verify in store, settle the bill."""

from __future__ import annotations

import logging
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session

from deal_redemption.core.errors import (
    ClaimAlreadyExistsError,
    ClaimAlreadyVerifiedError,
    ClaimNotFoundError,
    ClaimNotVerifiedError,
    ConcurrencyConflictError,
    DealFullyRedeemedError,
    DealInactiveOrExpiredError,
    DealNotFoundError,
    InvalidBillAmountError,
    MembershipInsufficientError,
    PinMismatchError,
    RateLimitedError,
)
from deal_redemption.core.membership import MembershipTier, can_access
from deal_redemption.core.pin_material import PinLayer
from deal_redemption.core.settings import settings
from deal_redemption.db.time import Clock, as_utc, utcnow
from deal_redemption.models.claim import CLAIM_STATUS_PENDING, CLAIM_STATUS_USED, DealClaim
from deal_redemption.models.customer import Customer
from deal_redemption.models.deal import Deal
from deal_redemption.models.verification_attempt import (
    OUTCOME_MATCHED_HASHED,
    OUTCOME_MATCHED_LEGACY,
    OUTCOME_MATCHED_ROTATING,
    OUTCOME_NO_MATCH,
)
from deal_redemption.repositories.claim_repo import (
    ClaimRepository,
    DealRedemptionCount,
    SavingsTotals,
)
from deal_redemption.repositories.deal_repo import DealRepository
from deal_redemption.services.audit import AttemptRecord, AuditSink
from deal_redemption.services.pin_verifier import PinVerifier, get_pin_verifier
from deal_redemption.services.rate_limiter import RateLimiter, get_rate_limiter
from deal_redemption.services.redemption_counter import RedemptionCounter

logger = logging.getLogger(__name__)

_CENTS = Decimal("0.01")
_OUTCOME_BY_LAYER = {
    PinLayer.ROTATING: OUTCOME_MATCHED_ROTATING,
    PinLayer.HASHED: OUTCOME_MATCHED_HASHED,
    PinLayer.LEGACY: OUTCOME_MATCHED_LEGACY,
}


def ensure_redeemable(deal: Deal, now: datetime) -> None:
    """Raise unless the deal is live, approved and inside its validity window."""
    if not (deal.is_active and deal.is_approved):
        raise DealInactiveOrExpiredError(deal.id, "inactive")
    moment = as_utc(now)
    if moment < as_utc(deal.valid_from):
        raise DealInactiveOrExpiredError(deal.id, "not_started")
    if moment >= as_utc(deal.valid_until):
        raise DealInactiveOrExpiredError(deal.id, "expired")


def compute_savings(bill_amount: Decimal, discount_percentage: int) -> Decimal:
    """Return the discount on `bill_amount`, rounded half-up to cents."""
    return (bill_amount * Decimal(discount_percentage) / Decimal(100)).quantize(
        _CENTS, rounding=ROUND_HALF_UP
    )


class ClaimLedger:
    """Owns every claim state transition.

    A claim is created `pending` together with a capacity reservation, becomes
    `used` only after an in-store PIN match, and only `used` claims count toward
    savings and redemption figures. Refused requests leave no row behind.
    """

    def __init__(
        self,
        session: Session,
        *,
        rate_limiter: RateLimiter | None = None,
        verifier: PinVerifier | None = None,
        audit: AuditSink | None = None,
        clock: Clock = utcnow,
        max_attempts: int | None = None,
    ) -> None:
        self.session = session
        self.deals = DealRepository(session)
        self.claims = ClaimRepository(session)
        self.counter = RedemptionCounter(session, self.deals)
        self.audit = audit or AuditSink(session)
        self.rate_limiter = rate_limiter or get_rate_limiter()
        self.verifier = verifier or get_pin_verifier()
        self.clock = clock
        self.max_attempts = max(1, max_attempts or settings.claim_max_attempts)

    # --- Claim creation -------------------------------------------------------------
    def create_claim(self, customer: Customer, deal_id: int, now: datetime | None = None) -> DealClaim:
        """Create a pending claim and reserve one redemption for it.

        Raises:
            DealNotFoundError, DealInactiveOrExpiredError, MembershipInsufficientError,
            ClaimAlreadyExistsError, DealFullyRedeemedError: precondition failures, in
                that order.
            ConcurrencyConflictError: If every reservation attempt lost a lock race.
        """
        moment = as_utc(now or self.clock())
        attempt = 1
        while True:
            try:
                return self._create_claim_once(customer, deal_id, moment)
            except ConcurrencyConflictError:
                if attempt >= self.max_attempts:
                    raise
                logger.warning(
                    "Claim on deal %s by customer %s hit a conflict (attempt %s of %s); retrying",
                    deal_id,
                    customer.id,
                    attempt,
                    self.max_attempts,
                )
                attempt += 1

    def _create_claim_once(self, customer: Customer, deal_id: int, moment: datetime) -> DealClaim:
        deal = self.deals.get_deal(deal_id)
        if deal is None:
            raise DealNotFoundError(deal_id)
        ensure_redeemable(deal, moment)
        if not can_access(customer.membership_tier, deal.required_tier):
            raise MembershipInsufficientError(
                current_tier=MembershipTier.parse(customer.membership_tier).label,
                required_tier=MembershipTier.parse(deal.required_tier).label,
            )
        existing = self.claims.get_active_claim(customer.id, deal_id)
        if existing is not None:
            raise ClaimAlreadyExistsError(deal_id, existing.id)

        try:
            # Reservation and insert share one savepoint; any failure undoes both.
            with self.session.begin_nested():
                if not self.counter.reserve(deal_id):
                    raise DealFullyRedeemedError(deal_id)
                claim = self.claims.insert_claim(
                    customer_id=customer.id,
                    deal_id=deal_id,
                    claimed_at=moment,
                )
        except IntegrityError as err:
            raise ClaimAlreadyExistsError(deal_id) from err
        except OperationalError as err:
            raise ConcurrencyConflictError(deal_id) from err

        self._commit(deal_id)
        logger.info("Customer %s claimed deal %s (claim %s)", customer.id, deal_id, claim.id)
        return claim

    # --- Verification ---------------------------------------------------------------
    def verify(
        self,
        claim_id: int,
        customer_id: int,
        submitted_code: str,
        source_ip: str,
        now: datetime | None = None,
        *,
        user_agent: str | None = None,
    ) -> DealClaim:
        """Confirm an in-store visit by matching the PIN the vendor shows.

        Raises:
            ClaimNotFoundError: Unknown claim, or one owned by another customer.
            ClaimAlreadyVerifiedError: The claim was already used.
            DealInactiveOrExpiredError: The deal can no longer be redeemed.
            RateLimitedError: Too many recent attempts for this customer or address.
            PinMismatchError: No PIN layer accepted the code.
        """
        moment = as_utc(now or self.clock())
        claim = self._owned_claim(claim_id, customer_id)
        if claim.status != CLAIM_STATUS_PENDING:
            raise ClaimAlreadyVerifiedError(claim_id)
        deal = self.deals.get_deal(claim.deal_id)
        if deal is None:
            raise DealNotFoundError(claim.deal_id)
        ensure_redeemable(deal, moment)

        code = submitted_code if isinstance(submitted_code, str) else ""
        decision = self.rate_limiter.check_and_record(
            customer_id,
            deal.id,
            source_ip,
            moment,
            audit=self.audit,
            claim_id=claim_id,
            submitted_code=code,
            user_agent=user_agent,
        )
        if not decision.allowed:
            self._commit(deal.id)
            raise RateLimitedError(decision.retry_after)

        result = self.verifier.verify(deal, code, moment)
        if not result.matched or result.layer is None:
            self._record_attempt(claim, source_ip, code, OUTCOME_NO_MATCH, moment, user_agent)
            self._commit(deal.id)
            logger.info("PIN mismatch on claim %s for deal %s", claim_id, deal.id)
            raise PinMismatchError(claim_id)

        outcome = _OUTCOME_BY_LAYER[result.layer]
        transitioned = self.claims.update_claim_state(
            claim_id,
            expected_status=CLAIM_STATUS_PENDING,
            new_status=CLAIM_STATUS_USED,
            verified_at=moment,
            verified_layer=result.layer.value,
        )
        if not transitioned:
            # Another request verified the claim first; this submission redeemed nothing.
            self._record_attempt(claim, source_ip, code, OUTCOME_NO_MATCH, moment, user_agent)
            self._commit(deal.id)
            raise ClaimAlreadyVerifiedError(claim_id)
        self._record_attempt(
            claim, source_ip, code, outcome, moment, user_agent, matched_layer=result.layer.value
        )

        self.deals.touch_last_redeemed(deal.id, moment)
        self._commit(deal.id)
        logger.info(
            "Claim %s verified for deal %s via %s PIN", claim_id, deal.id, result.layer.value
        )
        return self._reload(claim)

    # --- Settlement -----------------------------------------------------------------
    def record_bill_amount(self, claim_id: int, customer_id: int, bill_amount: object) -> DealClaim:
        """Store the bill for a verified claim and the savings it earned.

        Re-submitting overwrites the previous amounts.

        Raises:
            ClaimNotFoundError: Unknown claim, or one owned by another customer.
            ClaimNotVerifiedError: The claim is still pending.
            InvalidBillAmountError: The amount is not a positive number.
        """
        claim = self._owned_claim(claim_id, customer_id)
        if claim.status != CLAIM_STATUS_USED:
            raise ClaimNotVerifiedError(claim_id)
        amount = _parse_amount(bill_amount)
        deal = self.deals.get_deal(claim.deal_id)
        if deal is None:
            raise DealNotFoundError(claim.deal_id)

        savings = compute_savings(amount, deal.discount_percentage)
        self.claims.set_bill(claim_id, bill_amount=amount, savings_amount=savings)
        self._commit(deal.id)
        logger.info("Recorded bill on claim %s for deal %s", claim_id, deal.id)
        return self._reload(claim)

    # --- Reads ----------------------------------------------------------------------
    def list_claims(self, customer_id: int) -> list[DealClaim]:
        return self.claims.list_for_customer(customer_id)

    def user_savings(self, customer_id: int) -> SavingsTotals:
        """Return savings over verified claims only."""
        return self.claims.savings_for_customer(customer_id)

    def vendor_redemptions(self, vendor_id: int) -> list[DealRedemptionCount]:
        """Return verified redemption counts for each of the vendor's deals."""
        return self.claims.redemptions_for_vendor(vendor_id)

    # --- Helpers --------------------------------------------------------------------
    def _owned_claim(self, claim_id: int, customer_id: int) -> DealClaim:
        claim = self.claims.get_claim(claim_id)
        if claim is None or claim.customer_id != customer_id:
            raise ClaimNotFoundError(claim_id)
        return claim

    def _record_attempt(
        self,
        claim: DealClaim,
        source_ip: str,
        code: str,
        outcome: str,
        moment: datetime,
        user_agent: str | None,
        *,
        matched_layer: str | None = None,
    ) -> None:
        self.audit.record_verification_attempt(
            AttemptRecord(
                customer_id=claim.customer_id,
                deal_id=claim.deal_id,
                source_ip=source_ip,
                submitted_code=code,
                outcome=outcome,
                attempted_at=moment,
                claim_id=claim.id,
                matched_layer=matched_layer,
                user_agent=user_agent,
            )
        )

    def _commit(self, deal_id: int) -> None:
        try:
            self.session.commit()
        except OperationalError as err:
            raise ConcurrencyConflictError(deal_id) from err

    def _reload(self, claim: DealClaim) -> DealClaim:
        self.session.refresh(claim)
        return claim


def _parse_amount(value: object) -> Decimal:
    if isinstance(value, bool):
        raise InvalidBillAmountError(value)
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError) as err:
        raise InvalidBillAmountError(value) from err
    if not amount.is_finite() or amount <= 0:
        raise InvalidBillAmountError(value)
    return amount.quantize(_CENTS, rounding=ROUND_HALF_UP)
