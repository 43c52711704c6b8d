# tests/test_rotating_code.py
"""Tests for rotating PIN derivation and the service around it."""

from datetime import UTC, datetime, timedelta

from deal_redemption.core import rotating_code
from deal_redemption.core.security import validate_pin_format
from deal_redemption.services.rotating import RotatingCodeService

SECRET = b"unit-test-secret"
WINDOW = rotating_code.DEFAULT_WINDOW_SECONDS
MOMENT = datetime(2026, 3, 2, 12, 10, 45, tzinfo=UTC)


def test_derivation_is_deterministic() -> None:
    """The same deal, secret and window always give the same code."""
    first = rotating_code.derive_rotating_code(42, SECRET, MOMENT)
    second = rotating_code.derive_rotating_code(42, SECRET, MOMENT)
    assert first == second
    assert len(first) == 4
    assert first.isdigit()


def test_any_instant_in_a_window_gives_the_same_code() -> None:
    start = rotating_code.window_start_for(MOMENT)
    end = start + timedelta(seconds=WINDOW - 1)
    assert rotating_code.derive_rotating_code(7, SECRET, start) == rotating_code.derive_rotating_code(
        7, SECRET, end
    )


def test_string_and_bytes_secrets_agree() -> None:
    assert rotating_code.derive_rotating_code(3, "abc", MOMENT) == rotating_code.derive_rotating_code(
        3, b"abc", MOMENT
    )


def test_naive_moments_are_treated_as_utc() -> None:
    naive = MOMENT.replace(tzinfo=None)
    assert rotating_code.window_index(naive) == rotating_code.window_index(MOMENT)


def test_window_helpers() -> None:
    start = rotating_code.window_start_for(MOMENT)
    assert start == datetime(2026, 3, 2, 12, 0, tzinfo=UTC)
    assert rotating_code.next_rotation_at(MOMENT) == datetime(2026, 3, 2, 12, 30, tzinfo=UTC)
    assert rotating_code.window_index(start) == rotating_code.window_index(MOMENT)
    assert rotating_code.window_index(start - timedelta(seconds=1)) == (
        rotating_code.window_index(MOMENT) - 1
    )


def test_derived_codes_pass_complexity_rules() -> None:
    """Weak candidates are re-derived, so displayed codes are never trivial."""
    for deal_id in range(1, 40):
        for back in range(6):
            code = rotating_code.derive_rotating_code(
                deal_id, SECRET, MOMENT - timedelta(seconds=back * WINDOW)
            )
            assert validate_pin_format(code).is_valid, code


def test_candidate_codes_cover_current_and_previous_window() -> None:
    codes = rotating_code.candidate_codes(11, SECRET, MOMENT)
    assert codes == [
        rotating_code.derive_rotating_code(11, SECRET, MOMENT),
        rotating_code.derive_rotating_code(11, SECRET, MOMENT - timedelta(seconds=WINDOW)),
    ]


def test_candidate_codes_respect_grace_setting() -> None:
    assert len(rotating_code.candidate_codes(11, SECRET, MOMENT, grace_windows=0)) == 1
    assert len(rotating_code.candidate_codes(11, SECRET, MOMENT, grace_windows=2)) == 3


def test_service_current_pin_payload() -> None:
    service = RotatingCodeService(window_seconds=WINDOW, grace_windows=1)
    pin = service.current_pin(5, MOMENT)
    assert pin.deal_id == 5
    assert pin.current_pin == service.derive(5, MOMENT)
    assert pin.next_rotation_at == datetime(2026, 3, 2, 12, 30, tzinfo=UTC)
    assert pin.rotation_interval_minutes == 30


def test_service_uses_injected_clock() -> None:
    service = RotatingCodeService(clock=lambda: MOMENT)
    assert service.accepted_codes(5) == service.accepted_codes(5, MOMENT)
    assert service.current_pin(5).current_pin == service.derive(5, MOMENT)
