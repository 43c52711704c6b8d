# tests/test_scripts.py
"""Tests for maintenance scripts."""

from datetime import timedelta

import pytest

from deal_redemption.core.security import check_hashed_pin
from deal_redemption.repositories.deal_repo import hashed_pin_for
from deal_redemption.scripts import migrate_legacy_pins as migrate_module
from deal_redemption.scripts.migrate_legacy_pins import migrate_legacy_pins
from deal_redemption.scripts.prune_attempts import prune_attempts
from deal_redemption.services.audit import AttemptRecord, AuditSink


def test_migrates_legacy_pins(db_session, make_deal, now) -> None:
    strong = make_deal(legacy_pin="4821")
    weak = make_deal(legacy_pin="1111")

    report = migrate_legacy_pins(db_session, now=now)

    assert report.migrated == [strong.id]
    assert report.skipped == [weak.id]

    db_session.refresh(strong)
    db_session.refresh(weak)
    assert strong.legacy_pin is None
    material = hashed_pin_for(strong)
    assert material is not None
    assert check_hashed_pin("4821", material)
    assert weak.legacy_pin == "1111"
    assert weak.pin_hash is None


def test_dry_run_writes_nothing(db_session, make_deal, now) -> None:
    deal = make_deal(legacy_pin="4821")

    report = migrate_legacy_pins(db_session, dry_run=True, now=now)

    assert report.migrated == [deal.id]
    db_session.refresh(deal)
    assert deal.legacy_pin == "4821"
    assert deal.pin_hash is None


def test_migration_cli_summary(db_session, make_deal, mocker, capsys) -> None:
    make_deal(legacy_pin="4821")
    session_factory = mocker.MagicMock()
    session_factory.return_value.__enter__.return_value = db_session
    mocker.patch.object(migrate_module, "SessionLocal", session_factory)

    assert migrate_module.main(["--dry-run"]) == 0

    assert "Would migrate 1 deal(s); skipped 0" in capsys.readouterr().out


def test_prune_attempts(db_session, customer, deal, now) -> None:
    sink = AuditSink(db_session)
    for age in (365, 181, 5):
        sink.record_verification_attempt(
            AttemptRecord(
                customer_id=customer.id,
                deal_id=deal.id,
                source_ip="198.51.100.4",
                submitted_code="9052",
                outcome="no-match",
                attempted_at=now - timedelta(days=age),
            )
        )

    assert prune_attempts(db_session, days=180, now=now) == 2
    assert prune_attempts(db_session, days=180, now=now) == 0


def test_prune_attempts_rejects_empty_window(db_session) -> None:
    with pytest.raises(ValueError):
        prune_attempts(db_session, days=0)
