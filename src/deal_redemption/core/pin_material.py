"""PIN material variants a deal can carry.

Deals were created under three successive PIN schemes. During migration a deal
may carry several variants at once; the verifier tries them in the order
`RotatingOnly`, `HashedPin`, `LegacyPin`.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from deal_redemption.db.time import as_utc


class PinLayer(str, Enum):
    """Verification layer that produced a match."""

    ROTATING = "rotating"
    HASHED = "hashed"
    LEGACY = "legacy"


@dataclass(frozen=True)
class RotatingOnly:
    """Marker for the time-windowed code every deal supports."""

    deal_id: int


@dataclass(frozen=True)
class HashedPin:
    """Salted bcrypt hash of a vendor-chosen static PIN."""

    pin_hash: str
    salt: str
    created_at: datetime
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return as_utc(now) >= as_utc(self.expires_at)


@dataclass(frozen=True)
class LegacyPin:
    """Plaintext PIN from deals created before hashing existed."""

    plaintext: str


PinMaterial = RotatingOnly | HashedPin | LegacyPin
