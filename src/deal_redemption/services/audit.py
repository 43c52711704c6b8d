"""Audit sink for PIN verification attempts."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import delete
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from deal_redemption.models.verification_attempt import VerificationAttempt

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AttemptRecord:
    """Everything known about one verification call."""

    customer_id: int
    deal_id: int
    source_ip: str
    submitted_code: str
    outcome: str
    attempted_at: datetime
    claim_id: int | None = None
    matched_layer: str | None = None
    user_agent: str | None = None


class AuditSink:
    """Writes verification attempts without letting audit failures block callers."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def record_verification_attempt(self, record: AttemptRecord) -> bool:
        """Persist `record` inside a savepoint.

        The savepoint keeps a failed audit insert from poisoning the caller's
        transaction. Failures are logged for follow-up and reported as False.
        """
        try:
            with self.session.begin_nested():
                self.session.add(
                    VerificationAttempt(
                        claim_id=record.claim_id,
                        customer_id=record.customer_id,
                        deal_id=record.deal_id,
                        attempted_at=record.attempted_at,
                        source_ip=record.source_ip,
                        user_agent=record.user_agent,
                        submitted_code=record.submitted_code,
                        outcome=record.outcome,
                        matched_layer=record.matched_layer,
                    )
                )
        except SQLAlchemyError:
            logger.error(
                "Failed to record verification attempt for claim %s deal %s (outcome=%s)",
                record.claim_id,
                record.deal_id,
                record.outcome,
                exc_info=True,
            )
            return False
        return True

    def prune_before(self, cutoff: datetime) -> int:
        """Delete attempts older than `cutoff` and return how many were removed."""
        result = self.session.execute(
            delete(VerificationAttempt).where(VerificationAttempt.attempted_at < cutoff)
        )
        return int(result.rowcount or 0)
