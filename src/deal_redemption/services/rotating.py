"""Service binding rotating PIN derivation to the server secret and clock."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from deal_redemption.core import rotating_code
from deal_redemption.core.settings import Settings, settings
from deal_redemption.db.time import Clock, utcnow


class SettingsSecretProvider:
    """Supplies the rotating PIN HMAC key from configuration.

    Rotating the configured secret invalidates every code currently displayed.
    """

    def __init__(self, config: Settings | None = None) -> None:
        self._config = config or settings

    def get_secret(self) -> bytes:
        secret = self._config.rotating_pin_secret or self._config.secret_key
        return secret.encode("utf-8")


@dataclass(frozen=True)
class RotatingPin:
    """Vendor-facing view of a deal's current rotating PIN."""

    deal_id: int
    current_pin: str
    next_rotation_at: datetime
    rotation_interval_minutes: int


class RotatingCodeService:
    """Computes current and grace-period rotating codes for deals."""

    def __init__(
        self,
        secret_provider: SettingsSecretProvider | None = None,
        *,
        clock: Clock = utcnow,
        window_seconds: int | None = None,
        grace_windows: int | None = None,
    ) -> None:
        self._secrets = secret_provider or SettingsSecretProvider()
        self._clock = clock
        self._window_seconds = window_seconds or settings.pin_rotation_seconds
        self._grace_windows = settings.pin_grace_windows if grace_windows is None else grace_windows

    @property
    def window_seconds(self) -> int:
        return self._window_seconds

    def derive(self, deal_id: int, window_start: datetime) -> str:
        """Return the code for `deal_id` in the window containing `window_start`."""
        return rotating_code.derive_rotating_code(
            deal_id, self._secrets.get_secret(), window_start, self._window_seconds
        )

    def accepted_codes(self, deal_id: int, now: datetime | None = None) -> list[str]:
        """Return the current-window code followed by the grace-period codes."""
        return rotating_code.candidate_codes(
            deal_id,
            self._secrets.get_secret(),
            now or self._clock(),
            grace_windows=self._grace_windows,
            window_seconds=self._window_seconds,
        )

    def current_pin(self, deal_id: int, now: datetime | None = None) -> RotatingPin:
        """Return the code a vendor should display right now."""
        moment = now or self._clock()
        return RotatingPin(
            deal_id=deal_id,
            current_pin=self.derive(deal_id, moment),
            next_rotation_at=rotating_code.next_rotation_at(moment, self._window_seconds),
            rotation_interval_minutes=self._window_seconds // 60,
        )


def get_rotating_code_service() -> RotatingCodeService:
    """Return a rotating code service bound to configuration."""
    return RotatingCodeService()
