# src/deal_redemption/scripts/migrate_legacy_pins.py
"""
Convert plaintext deal PINs into salted hashes.

Each migrated deal gets hashed static PIN material valid for the configured
lifetime and loses its plaintext column. Legacy PINs that fail the complexity
rules cannot be hashed; they are reported and left in place so the vendor's
existing PIN keeps working until a new one is issued.
"""

from __future__ import annotations

import argparse
import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy.orm import Session

from deal_redemption.core.security import hash_pin, validate_pin_format
from deal_redemption.db.session import SessionLocal
from deal_redemption.db.time import utcnow
from deal_redemption.repositories.deal_repo import DealRepository, legacy_pin_for

logger = logging.getLogger(__name__)


@dataclass
class MigrationReport:
    """Deals touched by a migration run."""

    migrated: list[int] = field(default_factory=list)
    skipped: list[int] = field(default_factory=list)


def migrate_legacy_pins(
    db: Session,
    *,
    dry_run: bool = False,
    now: datetime | None = None,
) -> MigrationReport:
    """Hash every legacy PIN that passes the format rules.

    Args:
        db: Database session
        dry_run: Report what would change without writing
        now: Creation time stamped on the new material
    """
    moment = now or utcnow()
    deals = DealRepository(db)
    report = MigrationReport()
    for deal in deals.list_with_legacy_pins():
        legacy = legacy_pin_for(deal)
        if legacy is None or not validate_pin_format(legacy.plaintext).is_valid:
            logger.warning("Deal %s has a legacy PIN that cannot be hashed; skipping", deal.id)
            report.skipped.append(deal.id)
            continue
        report.migrated.append(deal.id)
        if dry_run:
            continue
        deals.set_hashed_pin(deal.id, hash_pin(legacy.plaintext, now=moment))
        deals.clear_legacy_pin(deal.id)

    if not dry_run:
        db.commit()
    return report


def main(argv: Sequence[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__.strip().splitlines()[0])
    parser.add_argument("--dry-run", action="store_true", help="report without writing")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO)
    with SessionLocal() as db:
        report = migrate_legacy_pins(db, dry_run=args.dry_run)

    verb = "Would migrate" if args.dry_run else "Migrated"
    print(f"{verb} {len(report.migrated)} deal(s); skipped {len(report.skipped)}")
    for deal_id in report.skipped:
        print(f"  deal {deal_id}: legacy PIN fails complexity rules")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
