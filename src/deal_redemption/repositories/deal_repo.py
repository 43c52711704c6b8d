"""Data access helpers for working with deals."""
from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime

from sqlalchemy import or_, select, update
from sqlalchemy.orm import Session

from deal_redemption.core.pin_material import HashedPin, LegacyPin, PinMaterial, RotatingOnly
from deal_redemption.models.deal import Deal

__all__ = ["DealRepository", "hashed_pin_for", "legacy_pin_for", "pin_material_for"]


def hashed_pin_for(deal: Deal) -> HashedPin | None:
    """Return the deal's hashed static PIN, if it carries complete material."""
    if not (deal.pin_hash and deal.pin_salt and deal.pin_created_at and deal.pin_expires_at):
        return None
    return HashedPin(
        pin_hash=deal.pin_hash,
        salt=deal.pin_salt,
        created_at=deal.pin_created_at,
        expires_at=deal.pin_expires_at,
    )


def legacy_pin_for(deal: Deal) -> LegacyPin | None:
    """Return the deal's pre-migration plaintext PIN, if any."""
    if deal.legacy_pin is None or not deal.legacy_pin.strip():
        return None
    return LegacyPin(plaintext=deal.legacy_pin.strip())


def pin_material_for(deal: Deal) -> list[PinMaterial]:
    """Return every PIN variant the deal carries, in verification priority order."""
    material: list[PinMaterial] = [RotatingOnly(deal_id=deal.id)]
    hashed = hashed_pin_for(deal)
    if hashed is not None:
        material.append(hashed)
    legacy = legacy_pin_for(deal)
    if legacy is not None:
        material.append(legacy)
    return material


class DealRepository:
    """Thin wrapper around database access for deal entities."""

    def __init__(self, session: Session) -> None:
        """Initialize the repository with a SQLAlchemy session."""
        self.session = session

    def get_deal(self, deal_id: int) -> Deal | None:
        """Return a deal by identifier."""
        return self.session.get(Deal, deal_id)

    def list_active(self, now: datetime) -> list[Deal]:
        """Return approved, active deals whose validity window contains `now`."""
        result = self.session.execute(
            select(Deal).where(
                Deal.is_active.is_(True),
                Deal.is_approved.is_(True),
                Deal.valid_from <= now,
                Deal.valid_until > now,
            )
        )
        return list(result.scalars())

    def list_with_legacy_pins(self) -> Sequence[Deal]:
        """Return deals still carrying plaintext PINs."""
        result = self.session.execute(
            select(Deal).where(Deal.legacy_pin.is_not(None)).order_by(Deal.id)
        )
        return list(result.scalars())

    def update_redemption_count(self, deal_id: int, delta: int) -> bool:
        """Atomically move the redemption counter by `delta`.

        Increments are conditional on remaining capacity and decrements never go
        below zero; both are single UPDATE statements so the datastore serializes
        concurrent callers.

        Returns:
            True if a row was updated, False if the condition rejected the change.
        """
        if delta == 0:
            return True
        stmt = update(Deal).where(Deal.id == deal_id)
        if delta > 0:
            stmt = stmt.where(
                or_(
                    Deal.max_redemptions.is_(None),
                    Deal.current_redemptions + delta <= Deal.max_redemptions,
                )
            )
        else:
            stmt = stmt.where(Deal.current_redemptions + delta >= 0)
        stmt = stmt.values(current_redemptions=Deal.current_redemptions + delta)
        result = self.session.execute(stmt.execution_options(synchronize_session=False))
        self._expire_cached(deal_id, "current_redemptions")
        return bool(result.rowcount)

    def get_hashed_pin(self, deal_id: int) -> HashedPin | None:
        deal = self.get_deal(deal_id)
        return hashed_pin_for(deal) if deal is not None else None

    def get_legacy_pin(self, deal_id: int) -> LegacyPin | None:
        deal = self.get_deal(deal_id)
        return legacy_pin_for(deal) if deal is not None else None

    def set_hashed_pin(self, deal_id: int, material: HashedPin) -> None:
        """Replace the deal's static PIN material."""
        self.session.execute(
            update(Deal)
            .where(Deal.id == deal_id)
            .values(
                pin_hash=material.pin_hash,
                pin_salt=material.salt,
                pin_created_at=material.created_at,
                pin_expires_at=material.expires_at,
            )
            .execution_options(synchronize_session=False)
        )
        self._expire_cached(deal_id, "pin_hash", "pin_salt", "pin_created_at", "pin_expires_at")

    def clear_legacy_pin(self, deal_id: int) -> None:
        self.session.execute(
            update(Deal)
            .where(Deal.id == deal_id)
            .values(legacy_pin=None)
            .execution_options(synchronize_session=False)
        )
        self._expire_cached(deal_id, "legacy_pin")

    def touch_last_redeemed(self, deal_id: int, when: datetime) -> None:
        """Stamp the most recent verified redemption time."""
        self.session.execute(
            update(Deal)
            .where(Deal.id == deal_id)
            .values(last_redeemed_at=when)
            .execution_options(synchronize_session=False)
        )
        self._expire_cached(deal_id, "last_redeemed_at")

    def _expire_cached(self, deal_id: int, *attributes: str) -> None:
        # Bulk UPDATEs bypass the identity map; drop stale values so the next read reloads.
        cached = self.session.identity_map.get(Session.identity_key(Deal, deal_id))
        if cached is not None:
            self.session.expire(cached, list(attributes))
