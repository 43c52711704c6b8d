"""Layered PIN verification.

Production deals were created under three successive PIN schemes and all of
them keep verifying until every deal is migrated. Layers are tried in a fixed
order and the first match wins:

1. rotating: the current or grace-period window code derived from the secret;
2. hashed: the salted static PIN, skipped once expired;
3. legacy: the plaintext PIN of pre-migration deals.
"""
from __future__ import annotations

import hmac
from dataclasses import dataclass
from datetime import datetime

from deal_redemption.core.pin_material import (
    HashedPin,
    LegacyPin,
    PinLayer,
    PinMaterial,
    RotatingOnly,
)
from deal_redemption.core.security import check_hashed_pin
from deal_redemption.models.deal import Deal
from deal_redemption.repositories.deal_repo import pin_material_for
from deal_redemption.services.rotating import RotatingCodeService, get_rotating_code_service

__all__ = ["PinVerification", "PinVerifier", "get_pin_verifier"]


@dataclass(frozen=True)
class PinVerification:
    """Result of checking a submitted code against a deal."""

    matched: bool
    layer: PinLayer | None = None


NO_MATCH = PinVerification(matched=False)


class PinVerifier:
    """Checks submitted codes against every PIN variant a deal carries."""

    def __init__(self, rotating: RotatingCodeService | None = None) -> None:
        self._rotating = rotating or get_rotating_code_service()

    def verify(self, deal: Deal, submitted_code: str, now: datetime) -> PinVerification:
        """Return the first layer that accepts `submitted_code`, or a non-match."""
        if not isinstance(submitted_code, str):
            return NO_MATCH
        code = submitted_code.strip()
        if not code:
            return NO_MATCH

        for material in pin_material_for(deal):
            layer = self._match(material, code, now)
            if layer is not None:
                return PinVerification(matched=True, layer=layer)
        return NO_MATCH

    def _match(self, material: PinMaterial, code: str, now: datetime) -> PinLayer | None:
        if isinstance(material, RotatingOnly):
            accepted = self._rotating.accepted_codes(material.deal_id, now)
            if any(hmac.compare_digest(code, candidate) for candidate in accepted):
                return PinLayer.ROTATING
            return None
        if isinstance(material, HashedPin):
            if material.is_expired(now):
                return None
            return PinLayer.HASHED if check_hashed_pin(code, material) else None
        if isinstance(material, LegacyPin):
            return PinLayer.LEGACY if hmac.compare_digest(code, material.plaintext) else None
        raise TypeError(f"Unsupported PIN material: {type(material).__name__}")


def get_pin_verifier() -> PinVerifier:
    """Return a PIN verifier bound to configuration."""
    return PinVerifier()
