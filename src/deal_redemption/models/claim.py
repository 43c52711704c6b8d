# src/deal_redemption/models/claim.py
"""SQLAlchemy models for customer claims against deals."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from deal_redemption.db.session import Base
from deal_redemption.db.time import utcnow

CLAIM_STATUS_PENDING = "pending"
CLAIM_STATUS_USED = "used"
ACTIVE_CLAIM_STATUSES = (CLAIM_STATUS_PENDING, CLAIM_STATUS_USED)


class DealClaim(Base):
    """A customer's reservation of a deal, pending in-store PIN verification.

    Rows are never deleted and a refused claim is never stored, so every row is
    active. The unique (customer_id, deal_id) constraint is therefore the
    datastore-level guard for one active claim per customer and deal.
    """

    __tablename__ = "deal_claim"
    __table_args__ = (
        UniqueConstraint("customer_id", "deal_id", name="uq_deal_claim_customer_deal"),
        CheckConstraint("status IN ('pending', 'used')", name="ck_deal_claim_status"),
        Index("ix_deal_claim_deal_status", "deal_id", "status"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    deal_id: Mapped[int] = mapped_column(Integer, ForeignKey("deal.id"), nullable=False)
    customer_id: Mapped[int] = mapped_column(Integer, ForeignKey("customer.id"), nullable=False)
    status: Mapped[str] = mapped_column(Text, nullable=False, default=CLAIM_STATUS_PENDING)
    claimed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    verified_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    # rotating, hashed or legacy; set with verified_at.
    verified_layer: Mapped[str | None] = mapped_column(Text, nullable=True)
    bill_amount: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    savings_amount: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)

    @property
    def is_verified(self) -> bool:
        return self.status == CLAIM_STATUS_USED
