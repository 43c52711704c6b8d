"""Rotating PIN derivation.

A rotating PIN is a pure function of the deal identifier, a server secret and
the start of a fixed time window. Nothing is stored: any process holding the
secret and a wall clock recomputes the same code.
"""
from __future__ import annotations

import hashlib
import hmac
from datetime import UTC, datetime, timedelta
from typing import Final

from deal_redemption.core.security import validate_pin_format

DEFAULT_WINDOW_SECONDS: Final[int] = 30 * 60
PIN_MODULUS: Final[int] = 10_000
PIN_DIGITS: Final[int] = 4
DIGEST_PREFIX_BYTES: Final[int] = 4
MAX_REDERIVE_OFFSET: Final[int] = 10
_EPOCH: Final[datetime] = datetime(1970, 1, 1, tzinfo=UTC)


def window_index(moment: datetime, window_seconds: int = DEFAULT_WINDOW_SECONDS) -> int:
    """Return the number of whole windows between the epoch and `moment`."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    elapsed = (moment - _EPOCH).total_seconds()
    return int(elapsed // window_seconds)


def window_start_for(moment: datetime, window_seconds: int = DEFAULT_WINDOW_SECONDS) -> datetime:
    """Truncate `moment` to the start of its rotation window."""
    return _EPOCH + timedelta(seconds=window_index(moment, window_seconds) * window_seconds)


def next_rotation_at(moment: datetime, window_seconds: int = DEFAULT_WINDOW_SECONDS) -> datetime:
    """Return the instant the code shown at `moment` is replaced."""
    return window_start_for(moment, window_seconds) + timedelta(seconds=window_seconds)


def _code_from_digest(digest: bytes) -> str:
    value = int.from_bytes(digest[:DIGEST_PREFIX_BYTES], "big", signed=False)
    return str(value % PIN_MODULUS).zfill(PIN_DIGITS)


def derive_rotating_code(
    deal_id: int,
    secret: bytes | str,
    window_start: datetime,
    window_seconds: int = DEFAULT_WINDOW_SECONDS,
) -> str:
    """Derive the 4-digit code for `deal_id` in the window starting at `window_start`.

    Args:
        deal_id: Deal identifier mixed into the MAC input.
        secret: Server-held HMAC key.
        window_start: Any instant inside the target window; it is truncated first.
        window_seconds: Rotation window length.

    Returns:
        A zero-padded 4-digit string. Candidates that fail the PIN complexity
        rules are re-derived with a numeric offset so vendors never display
        codes such as ``1111`` or ``1234``.
    """
    key = secret.encode("utf-8") if isinstance(secret, str) else secret
    index = window_index(window_start, window_seconds)
    seed = f"{deal_id}:{index}"
    code = _code_from_digest(hmac.new(key, seed.encode("ascii"), hashlib.sha256).digest())

    offset = 0
    while not validate_pin_format(code).is_valid and offset < MAX_REDERIVE_OFFSET:
        offset += 1
        payload = f"{seed}:{offset}".encode("ascii")
        code = _code_from_digest(hmac.new(key, payload, hashlib.sha256).digest())
    return code


def candidate_codes(
    deal_id: int,
    secret: bytes | str,
    now: datetime,
    *,
    grace_windows: int = 1,
    window_seconds: int = DEFAULT_WINDOW_SECONDS,
) -> list[str]:
    """Return the codes accepted at `now`: the current window first, then prior windows."""
    current = window_start_for(now, window_seconds)
    return [
        derive_rotating_code(
            deal_id,
            secret,
            current - timedelta(seconds=back * window_seconds),
            window_seconds,
        )
        for back in range(grace_windows + 1)
    ]
