"""PIN hashing, PIN hygiene and access-token helpers."""
from __future__ import annotations

import re
import secrets
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

import bcrypt
from jose import jwt

from deal_redemption.core.pin_material import HashedPin
from deal_redemption.core.settings import settings

PIN_LENGTH = 4
MIN_UNIQUE_DIGITS = 2
SALT_BYTES = 16
MAX_GENERATION_ATTEMPTS = 100

_WEAK_PATTERNS = (
    re.compile(r"(\d)\1{2,}"),
    re.compile(r"1234|4321"),
    re.compile(r"0123|3210"),
)


@dataclass(frozen=True)
class PinValidation:
    """Outcome of a PIN format check."""

    is_valid: bool
    message: str


def validate_pin_format(pin: str) -> PinValidation:
    """Check that `pin` is four digits without repeated or sequential runs."""
    clean = str(pin or "").strip()
    if len(clean) != PIN_LENGTH:
        return PinValidation(False, f"PIN must be exactly {PIN_LENGTH} digits")
    if not clean.isdigit():
        return PinValidation(False, "PIN must contain only numbers")
    if len(set(clean)) < MIN_UNIQUE_DIGITS:
        return PinValidation(False, f"PIN must contain at least {MIN_UNIQUE_DIGITS} different digits")
    for pattern in _WEAK_PATTERNS:
        if pattern.search(clean):
            return PinValidation(False, "PIN cannot contain repeated or sequential patterns")
    return PinValidation(True, "PIN is valid")


def generate_secure_pin() -> str:
    """Return a random PIN that passes `validate_pin_format`."""
    for _ in range(MAX_GENERATION_ATTEMPTS):
        pin = "".join(secrets.choice("0123456789") for _ in range(PIN_LENGTH))
        if validate_pin_format(pin).is_valid:
            return pin
    raise RuntimeError("Unable to generate a PIN meeting complexity rules")


def hash_pin(
    pin: str,
    *,
    now: datetime | None = None,
    rounds: int | None = None,
    ttl_days: int | None = None,
) -> HashedPin:
    """Hash a static PIN for storage.

    Args:
        pin: Plain 4-digit PIN chosen by or generated for the vendor.
        now: Creation instant; defaults to the current UTC time.
        rounds: bcrypt cost factor; defaults to ``PIN_BCRYPT_ROUNDS``.
        ttl_days: Lifetime of the material; defaults to ``STATIC_PIN_TTL_DAYS``.

    Raises:
        ValueError: If the PIN fails the format rules.
    """
    validation = validate_pin_format(pin)
    if not validation.is_valid:
        raise ValueError(validation.message)

    created_at = now or datetime.now(UTC)
    salt = secrets.token_hex(SALT_BYTES)
    salted = (str(pin).strip() + salt).encode("utf-8")
    digest = bcrypt.hashpw(salted, bcrypt.gensalt(rounds or settings.pin_bcrypt_rounds))
    return HashedPin(
        pin_hash=digest.decode("utf-8"),
        salt=salt,
        created_at=created_at,
        expires_at=created_at + timedelta(days=ttl_days or settings.static_pin_ttl_days),
    )


def check_hashed_pin(pin: str, material: HashedPin) -> bool:
    """Return True if `pin` matches the stored hash (constant-time inside bcrypt)."""
    salted = (str(pin).strip() + material.salt).encode("utf-8")
    try:
        return bcrypt.checkpw(salted, material.pin_hash.encode("utf-8"))
    except ValueError:
        # Malformed stored hash
        return False


def create_access_token(subject: int | str, extra_claims: dict[str, str] | None = None) -> str:
    """Create JWT access token for user authentication."""
    to_encode: dict[str, object] = {"sub": str(subject)}
    if extra_claims:
        to_encode.update(extra_claims)
    expire = datetime.now(UTC) + timedelta(minutes=settings.access_token_expire_minutes)
    to_encode["exp"] = expire
    encoded_jwt: str = jwt.encode(
        to_encode,
        settings.secret_key,
        algorithm=settings.jwt_algorithm,
    )
    return encoded_jwt
