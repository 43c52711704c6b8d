"""Data access helpers for working with deal claims."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from deal_redemption.models.claim import (
    ACTIVE_CLAIM_STATUSES,
    CLAIM_STATUS_PENDING,
    CLAIM_STATUS_USED,
    DealClaim,
)
from deal_redemption.models.deal import Deal

__all__ = ["ClaimRepository", "DealRedemptionCount", "SavingsTotals"]


@dataclass(frozen=True)
class SavingsTotals:
    """Aggregate savings for one customer over verified claims."""

    verified_claims: int
    total_savings: Decimal


@dataclass(frozen=True)
class DealRedemptionCount:
    """Verified redemptions for one deal."""

    deal_id: int
    title: str
    verified_redemptions: int


class ClaimRepository:
    """Thin wrapper around database access for claim entities."""

    def __init__(self, session: Session) -> None:
        """Initialize the repository with a SQLAlchemy session."""
        self.session = session

    def get_claim(self, claim_id: int) -> DealClaim | None:
        """Return a claim by identifier."""
        return self.session.get(DealClaim, claim_id)

    def get_active_claim(self, customer_id: int, deal_id: int) -> DealClaim | None:
        """Return the customer's pending or used claim on the deal, if any."""
        result = self.session.execute(
            select(DealClaim).where(
                DealClaim.customer_id == customer_id,
                DealClaim.deal_id == deal_id,
                DealClaim.status.in_(ACTIVE_CLAIM_STATUSES),
            )
        )
        return result.scalars().first()

    def insert_claim(self, *, customer_id: int, deal_id: int, claimed_at: datetime) -> DealClaim:
        """Insert a pending claim and flush so constraint violations surface here.

        Raises:
            sqlalchemy.exc.IntegrityError: If the customer already holds a claim on the deal.
        """
        claim = DealClaim(
            customer_id=customer_id,
            deal_id=deal_id,
            status=CLAIM_STATUS_PENDING,
            claimed_at=claimed_at,
        )
        self.session.add(claim)
        self.session.flush()
        return claim

    def update_claim_state(
        self,
        claim_id: int,
        *,
        expected_status: str,
        new_status: str,
        verified_at: datetime | None = None,
        verified_layer: str | None = None,
    ) -> bool:
        """Move a claim between states only if it is still in `expected_status`.

        Returns:
            True if this caller performed the transition.
        """
        values: dict[str, object] = {"status": new_status}
        if verified_at is not None:
            values["verified_at"] = verified_at
        if verified_layer is not None:
            values["verified_layer"] = verified_layer
        result = self.session.execute(
            update(DealClaim)
            .where(DealClaim.id == claim_id, DealClaim.status == expected_status)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        self._expire_cached(claim_id)
        return bool(result.rowcount)

    def set_bill(self, claim_id: int, *, bill_amount: Decimal, savings_amount: Decimal) -> None:
        """Overwrite the bill and savings on a verified claim."""
        self.session.execute(
            update(DealClaim)
            .where(DealClaim.id == claim_id, DealClaim.status == CLAIM_STATUS_USED)
            .values(bill_amount=bill_amount, savings_amount=savings_amount)
            .execution_options(synchronize_session=False)
        )
        self._expire_cached(claim_id)

    def list_for_customer(self, customer_id: int) -> list[DealClaim]:
        """Return the customer's claims, newest first."""
        result = self.session.execute(
            select(DealClaim)
            .where(DealClaim.customer_id == customer_id)
            .order_by(DealClaim.claimed_at.desc(), DealClaim.id.desc())
        )
        return list(result.scalars())

    def savings_for_customer(self, customer_id: int) -> SavingsTotals:
        """Sum savings over the customer's verified claims; pending claims contribute nothing."""
        row = self.session.execute(
            select(
                func.count(DealClaim.id),
                func.coalesce(func.sum(DealClaim.savings_amount), 0),
            ).where(
                DealClaim.customer_id == customer_id,
                DealClaim.status == CLAIM_STATUS_USED,
            )
        ).one()
        return SavingsTotals(verified_claims=int(row[0]), total_savings=Decimal(str(row[1])))

    def redemptions_for_vendor(self, vendor_id: int) -> list[DealRedemptionCount]:
        """Count verified claims per deal for a vendor's deals."""
        verified = func.count(DealClaim.id).filter(DealClaim.status == CLAIM_STATUS_USED)
        result = self.session.execute(
            select(Deal.id, Deal.title, verified)
            .select_from(Deal)
            .outerjoin(DealClaim, DealClaim.deal_id == Deal.id)
            .where(Deal.vendor_id == vendor_id)
            .group_by(Deal.id, Deal.title)
            .order_by(Deal.id)
        )
        return [
            DealRedemptionCount(deal_id=deal_id, title=title, verified_redemptions=int(count))
            for deal_id, title, count in result
        ]

    def _expire_cached(self, claim_id: int) -> None:
        # Bulk UPDATEs bypass the identity map; drop stale values so the next read reloads.
        cached = self.session.identity_map.get(Session.identity_key(DealClaim, claim_id))
        if cached is not None:
            self.session.expire(cached)
