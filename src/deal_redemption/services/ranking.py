"""Location-based ranking of redeemable deals."""

from __future__ import annotations

import math
from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass
from datetime import datetime

from deal_redemption.core.membership import MembershipTier, can_access
from deal_redemption.core.settings import settings
from deal_redemption.db.time import Clock, as_utc, utcnow
from deal_redemption.models.deal import Deal

EARTH_RADIUS_KM = 6371.0
_COMPASS = (
    "North",
    "Northeast",
    "East",
    "Southeast",
    "South",
    "Southwest",
    "West",
    "Northwest",
)


def haversine_km(origin: tuple[float, float], target: tuple[float, float]) -> float:
    """Great-circle distance in kilometres between two (lat, lon) pairs."""
    lat1, lon1 = origin
    lat2, lon2 = target
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2) ** 2
    )
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def bearing_degrees(origin: tuple[float, float], target: tuple[float, float]) -> float:
    """Initial compass bearing from `origin` to `target`, in [0, 360)."""
    lat1, lon1 = (math.radians(value) for value in origin)
    lat2, lon2 = (math.radians(value) for value in target)
    d_lon = lon2 - lon1
    y = math.sin(d_lon) * math.cos(lat2)
    x = math.cos(lat1) * math.sin(lat2) - math.sin(lat1) * math.cos(lat2) * math.cos(d_lon)
    return (math.degrees(math.atan2(y, x)) + 360) % 360


def compass_direction(bearing: float) -> str:
    return _COMPASS[round(bearing / 45) % 8]


def format_distance(distance_km: float) -> str:
    """Render a distance the way customers read it: ``850m``, ``3.2km``, ``12km``."""
    if distance_km < 1:
        return f"{round(distance_km * 1000)}m"
    if distance_km < 10:
        return f"{distance_km:.1f}km"
    return f"{round(distance_km)}km"


def location_hint(
    origin: tuple[float, float],
    target: tuple[float, float],
    address: str | None = None,
) -> str:
    """Describe where a deal is relative to the customer."""
    distance = haversine_km(origin, target)
    direction = compass_direction(bearing_degrees(origin, target))
    parts = [part.strip() for part in (address or "").split(",") if part.strip()]
    area = parts[0] if len(parts) > 1 else ""
    if distance < 0.5:
        return f"Very close to you near {area}" if area else "Very close to you"
    if distance < 2:
        return f"{direction} of you in {area}" if area else f"{direction} of you"
    text = f"{format_distance(distance)} {direction}"
    return f"{text} in {area}" if area else text


@dataclass(frozen=True)
class RankedDeal:
    """A deal placed relative to the customer, with its relevance score."""

    deal: Deal
    distance_km: float
    relevance_score: float
    distance_text: str
    location_hint: str


class RankedDeals(Iterable[RankedDeal]):
    """Ranked view over a set of deals.

    Nothing is cached: every iteration re-scores the underlying deals, so a
    caller can iterate again after the deals change.
    """

    def __init__(
        self,
        ranker: NearbyDealRanker,
        origin: tuple[float, float],
        deals: Iterable[Deal],
        max_distance_km: float,
        *,
        now: datetime,
        user_tier: MembershipTier | str | None,
        categories: Sequence[str] | None,
        limit: int | None,
    ) -> None:
        self._ranker = ranker
        self._origin = origin
        self._deals = deals if isinstance(deals, Sequence) else list(deals)
        self._max_distance_km = max_distance_km
        self._now = now
        self._user_tier = user_tier
        self._categories = {category.lower() for category in categories or ()}
        self._limit = limit

    def __iter__(self) -> Iterator[RankedDeal]:
        ranked = sorted(self._candidates(), key=lambda item: (-item.relevance_score, item.distance_km))
        if self._limit is not None:
            ranked = ranked[: self._limit]
        return iter(ranked)

    def total(self) -> int:
        """Number of deals within range before the limit is applied."""
        return sum(1 for _ in self._candidates())

    def _candidates(self) -> Iterator[RankedDeal]:
        for deal in self._deals:
            coordinates = deal.coordinates
            if coordinates is None:
                continue
            if self._categories and (deal.category or "").lower() not in self._categories:
                continue
            if self._user_tier is not None and not can_access(self._user_tier, deal.required_tier):
                continue
            distance = haversine_km(self._origin, coordinates)
            if distance > self._max_distance_km:
                continue
            address = deal.vendor.address if deal.vendor is not None else None
            yield RankedDeal(
                deal=deal,
                distance_km=distance,
                relevance_score=self._ranker.score(deal, distance, self._max_distance_km, self._now),
                distance_text=format_distance(distance),
                location_hint=location_hint(self._origin, coordinates, address),
            )


class NearbyDealRanker:
    """Scores deals by proximity, discount depth and recent redemption activity."""

    def __init__(
        self,
        *,
        weights: dict[str, float] | None = None,
        recency_half_life_hours: float | None = None,
        clock: Clock = utcnow,
    ) -> None:
        self.weights = weights or settings.rank_weights
        self.recency_half_life_hours = (
            recency_half_life_hours or settings.rank_recency_half_life_hours
        )
        self.clock = clock

    def rank(
        self,
        user_location: tuple[float, float],
        deals: Iterable[Deal],
        max_distance_km: float,
        *,
        now: datetime | None = None,
        user_tier: MembershipTier | str | None = None,
        categories: Sequence[str] | None = None,
        limit: int | None = None,
    ) -> RankedDeals:
        """Return deals within `max_distance_km` of `user_location`, best first.

        Raises:
            ValueError: If the radius is not positive.
        """
        if max_distance_km <= 0:
            raise ValueError("max_distance_km must be positive")
        return RankedDeals(
            self,
            user_location,
            deals,
            max_distance_km,
            now=as_utc(now or self.clock()),
            user_tier=user_tier,
            categories=categories,
            limit=limit,
        )

    def score(self, deal: Deal, distance_km: float, max_distance_km: float, now: datetime) -> float:
        """Return a relevance score in [0, 100]."""
        proximity = max(0.0, 1.0 - distance_km / max_distance_km)
        discount = min(max(deal.discount_percentage or 0, 0), 100) / 100
        recency = 0.0
        if deal.last_redeemed_at is not None:
            hours = max(0.0, (now - as_utc(deal.last_redeemed_at)).total_seconds() / 3600)
            recency = math.exp(-hours / self.recency_half_life_hours)

        total_weight = sum(self.weights.values()) or 1.0
        blended = (
            self.weights.get("distance", 0.0) * proximity
            + self.weights.get("discount", 0.0) * discount
            + self.weights.get("recency", 0.0) * recency
        ) / total_weight
        return round(min(max(blended, 0.0), 1.0) * 100, 2)


def get_nearby_ranker() -> NearbyDealRanker:
    """Return a ranker configured from settings."""
    return NearbyDealRanker()
