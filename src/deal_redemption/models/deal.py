# src/deal_redemption/models/deal.py
"""SQLAlchemy models for merchant deals and their PIN material."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from deal_redemption.db.session import Base
from deal_redemption.db.time import utcnow
from deal_redemption.models.vendor import Vendor


class Deal(Base):
    """Merchant-authored discount offer.

    `current_redemptions` is the reservation counter; it only moves through
    conditional updates issued by the redemption counter.
    """

    __tablename__ = "deal"
    __table_args__ = (
        CheckConstraint("current_redemptions >= 0", name="ck_deal_redemptions_nonnegative"),
        CheckConstraint(
            "max_redemptions IS NULL OR current_redemptions <= max_redemptions",
            name="ck_deal_redemptions_within_cap",
        ),
        CheckConstraint(
            "discount_percentage BETWEEN 0 AND 100",
            name="ck_deal_discount_percentage",
        ),
        Index("ix_deal_vendor_id", "vendor_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    vendor_id: Mapped[int] = mapped_column(Integer, ForeignKey("vendor.id"), nullable=False)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str] = mapped_column(Text, nullable=False, default="general")
    discount_percentage: Mapped[int] = mapped_column(Integer, nullable=False)

    # Redeemable during [valid_from, valid_until).
    valid_from: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    valid_until: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    # NULL max means unlimited.
    max_redemptions: Mapped[int | None] = mapped_column(Integer, nullable=True)
    current_redemptions: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # NULL means open to every tier.
    required_tier: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    is_approved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Falls back to the vendor's coordinates when unset.
    latitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    longitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    last_redeemed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Pre-migration plaintext PIN.
    legacy_pin: Mapped[str | None] = mapped_column(Text, nullable=True)
    # Salted bcrypt static PIN.
    pin_hash: Mapped[str | None] = mapped_column(Text, nullable=True)
    pin_salt: Mapped[str | None] = mapped_column(Text, nullable=True)
    pin_created_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    pin_expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    vendor: Mapped[Vendor] = relationship("Vendor", lazy="joined")

    @property
    def coordinates(self) -> tuple[float, float] | None:
        """Return `(latitude, longitude)` for the deal, else its vendor's, else None."""
        if self.latitude is not None and self.longitude is not None:
            return (self.latitude, self.longitude)
        vendor = self.vendor
        if vendor is not None and vendor.latitude is not None and vendor.longitude is not None:
            return (vendor.latitude, vendor.longitude)
        return None

    @property
    def remaining_redemptions(self) -> int | None:
        """Return spare capacity, or None for unlimited deals."""
        if self.max_redemptions is None:
            return None
        return max(self.max_redemptions - self.current_redemptions, 0)
