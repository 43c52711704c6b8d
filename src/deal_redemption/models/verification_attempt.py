# src/deal_redemption/models/verification_attempt.py
"""Audit log of PIN verification attempts."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, Index, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from deal_redemption.db.session import Base
from deal_redemption.db.time import utcnow

OUTCOME_MATCHED_ROTATING = "matched-rotating"
OUTCOME_MATCHED_HASHED = "matched-hashed"
OUTCOME_MATCHED_LEGACY = "matched-legacy"
OUTCOME_NO_MATCH = "no-match"
OUTCOME_RATE_LIMITED = "rate-limited"


class VerificationAttempt(Base):
    """Insert-only record of one verification call, successful or not.

    No foreign keys: audit rows must be writable even while the referenced
    claim is being rolled back.
    """

    __tablename__ = "verification_attempt"
    __table_args__ = (
        CheckConstraint(
            "outcome IN ('matched-rotating', 'matched-hashed', 'matched-legacy', "
            "'no-match', 'rate-limited')",
            name="ck_verification_attempt_outcome",
        ),
        Index("ix_verification_attempt_user_deal_time", "customer_id", "deal_id", "attempted_at"),
        Index("ix_verification_attempt_ip_time", "source_ip", "attempted_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    claim_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    customer_id: Mapped[int] = mapped_column(Integer, nullable=False)
    deal_id: Mapped[int] = mapped_column(Integer, nullable=False)
    attempted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    source_ip: Mapped[str] = mapped_column(Text, nullable=False)
    user_agent: Mapped[str | None] = mapped_column(Text, nullable=True)
    submitted_code: Mapped[str] = mapped_column(Text, nullable=False)
    outcome: Mapped[str] = mapped_column(Text, nullable=False)
    matched_layer: Mapped[str | None] = mapped_column(Text, nullable=True)
