# src/deal_redemption/models/customer.py
"""SQLAlchemy models for marketplace members."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from deal_redemption.core.membership import MembershipTier
from deal_redemption.db.session import Base
from deal_redemption.db.time import utcnow


class Customer(Base):
    """A member who claims deals and redeems them in store."""

    __tablename__ = "customer"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    display_name: Mapped[str] = mapped_column(Text, nullable=False)
    # basic, premium, ultimate
    membership_tier: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        default=MembershipTier.BASIC.label,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )

    @property
    def tier(self) -> MembershipTier:
        """Return the member's tier as an ordered enum."""
        return MembershipTier.parse(self.membership_tier)
