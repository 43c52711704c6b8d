# src/deal_redemption/scripts/prune_attempts.py
"""
Cron job deleting verification attempts past the retention window.

Attempts feed fraud review; rows older than ATTEMPT_RETENTION_DAYS are no
longer needed.
"""

from __future__ import annotations

import argparse
from collections.abc import Sequence
from datetime import datetime, timedelta

from sqlalchemy.orm import Session

from deal_redemption.core.settings import settings
from deal_redemption.db.session import SessionLocal
from deal_redemption.db.time import utcnow
from deal_redemption.services.audit import AuditSink


def prune_attempts(db: Session, *, days: int, now: datetime | None = None) -> int:
    """Delete attempts older than `days` and return how many went.

    Args:
        db: Database session
        days: Retention window in days
        now: Reference time for the cutoff
    """
    if days <= 0:
        raise ValueError("days must be positive")
    cutoff = (now or utcnow()) - timedelta(days=days)
    removed = AuditSink(db).prune_before(cutoff)
    db.commit()
    return removed


def main(argv: Sequence[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Delete old verification attempts")
    parser.add_argument(
        "--days",
        type=int,
        default=settings.attempt_retention_days,
        help="retention window in days",
    )
    args = parser.parse_args(argv)

    with SessionLocal() as db:
        removed = prune_attempts(db, days=args.days)
    print(f"Pruned {removed} verification attempt(s) older than {args.days} days")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
