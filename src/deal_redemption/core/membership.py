"""Membership tier ordering and the access gate built on it."""
from __future__ import annotations

from enum import IntEnum


class MembershipTier(IntEnum):
    """Subscription tiers, ordered by rank."""

    BASIC = 1
    PREMIUM = 2
    ULTIMATE = 3

    @property
    def label(self) -> str:
        """Return the lowercase name stored on records and shown to clients."""
        return self.name.lower()

    @classmethod
    def parse(cls, value: MembershipTier | str | None) -> MembershipTier:
        """Coerce a stored tier name into a tier; missing or unknown means basic."""
        if isinstance(value, MembershipTier):
            return value
        if not value:
            return cls.BASIC
        try:
            return cls[value.strip().upper()]
        except KeyError:
            return cls.BASIC


def can_access(
    user_tier: MembershipTier | str | None,
    required_tier: MembershipTier | str | None,
) -> bool:
    """Return True if `user_tier` ranks at or above `required_tier`.

    A deal without an explicit required tier is open to every member.
    """
    return MembershipTier.parse(user_tier) >= MembershipTier.parse(required_tier)


def required_upgrade(
    user_tier: MembershipTier | str | None,
    required_tier: MembershipTier | str | None,
) -> MembershipTier | None:
    """Return the tier the user must reach, or None when access is already granted."""
    if can_access(user_tier, required_tier):
        return None
    return MembershipTier.parse(required_tier)
