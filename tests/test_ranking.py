# tests/test_ranking.py
"""Tests for location-based deal ranking."""

from datetime import UTC, datetime, timedelta

import pytest

from deal_redemption.models import Deal, Vendor
from deal_redemption.services.ranking import (
    NearbyDealRanker,
    bearing_degrees,
    compass_direction,
    format_distance,
    haversine_km,
    location_hint,
)

MOMENT = datetime(2026, 3, 2, 12, 0, tzinfo=UTC)
ORIGIN = (12.9716, 77.5946)
WEIGHTS = {"distance": 0.5, "discount": 0.3, "recency": 0.2}


def _deal(deal_id: int, lat: float | None, lon: float | None, **fields) -> Deal:
    vendor = Vendor(id=deal_id, owner_customer_id=1, business_name=f"Shop {deal_id}", address=fields.pop("address", None))
    deal = Deal(
        id=deal_id,
        vendor_id=vendor.id,
        title=f"Deal {deal_id}",
        category=fields.pop("category", "food"),
        discount_percentage=fields.pop("discount_percentage", 20),
        valid_from=MOMENT - timedelta(days=1),
        valid_until=MOMENT + timedelta(days=1),
        latitude=lat,
        longitude=lon,
        **fields,
    )
    deal.vendor = vendor
    return deal


def _offset(km_north: float) -> tuple[float, float]:
    """Point `km_north` kilometres due north of the origin."""
    return (ORIGIN[0] + km_north / 111.195, ORIGIN[1])


def _ranker() -> NearbyDealRanker:
    return NearbyDealRanker(weights=WEIGHTS, recency_half_life_hours=72, clock=lambda: MOMENT)


def test_haversine_known_distance() -> None:
    london = (51.5074, -0.1278)
    paris = (48.8566, 2.3522)
    assert haversine_km(london, paris) == pytest.approx(343.5, abs=1.0)
    assert haversine_km(london, london) == 0


@pytest.mark.parametrize(
    ("distance", "text"),
    [(0.85, "850m"), (0.0004, "0m"), (3.24, "3.2km"), (9.96, "10.0km"), (12.4, "12km"), (27.6, "28km")],
)
def test_format_distance(distance: float, text: str) -> None:
    assert format_distance(distance) == text


def test_compass_directions() -> None:
    north = _offset(5)
    assert compass_direction(bearing_degrees(ORIGIN, north)) == "North"
    east = (ORIGIN[0], ORIGIN[1] + 0.05)
    assert compass_direction(bearing_degrees(ORIGIN, east)) == "East"
    assert compass_direction(350) == "North"
    assert compass_direction(225) == "Southwest"


def test_location_hints() -> None:
    assert location_hint(ORIGIN, _offset(0.2), "Indiranagar, Bengaluru") == "Very close to you near Indiranagar"
    assert location_hint(ORIGIN, _offset(1.5)) == "North of you"
    assert location_hint(ORIGIN, _offset(5), "Koramangala, Bengaluru") == "5.0km North in Koramangala"


def test_out_of_range_and_unlocated_deals_are_excluded() -> None:
    near = _deal(1, *_offset(2))
    far = _deal(2, *_offset(25))
    nowhere = _deal(3, None, None)

    ranked = list(_ranker().rank(ORIGIN, [near, far, nowhere], 10))

    assert [item.deal.id for item in ranked] == [1]
    assert ranked[0].distance_km == pytest.approx(2, abs=0.01)
    assert ranked[0].distance_text == "2.0km"


def test_vendor_coordinates_are_the_fallback() -> None:
    deal = _deal(4, None, None)
    deal.vendor.latitude, deal.vendor.longitude = _offset(1)
    ranked = list(_ranker().rank(ORIGIN, [deal], 10))
    assert [item.deal.id for item in ranked] == [4]


def test_closer_and_deeper_discounts_rank_higher() -> None:
    close = _deal(1, *_offset(1), discount_percentage=20)
    distant = _deal(2, *_offset(8), discount_percentage=20)
    generous = _deal(3, *_offset(8), discount_percentage=70)

    order = [item.deal.id for item in _ranker().rank(ORIGIN, [distant, generous, close], 10)]

    assert order.index(1) < order.index(2)
    assert order.index(3) < order.index(2)


def test_recent_redemptions_boost_score() -> None:
    quiet = _deal(1, *_offset(3))
    busy = _deal(2, *_offset(3), last_redeemed_at=MOMENT - timedelta(hours=1))
    stale = _deal(3, *_offset(3), last_redeemed_at=MOMENT - timedelta(days=60))

    scores = {item.deal.id: item.relevance_score for item in _ranker().rank(ORIGIN, [quiet, busy, stale], 10)}

    assert scores[2] > scores[3] >= scores[1]


def test_scores_are_bounded() -> None:
    best = _deal(1, *ORIGIN, discount_percentage=100, last_redeemed_at=MOMENT)
    worst = _deal(2, *_offset(10), discount_percentage=0)
    scores = [item.relevance_score for item in _ranker().rank(ORIGIN, [best, worst], 10)]
    assert scores[0] == pytest.approx(100)
    assert all(0 <= score <= 100 for score in scores)


def test_equal_scores_break_ties_by_distance() -> None:
    ranker = NearbyDealRanker(weights={"distance": 0.0, "discount": 1.0, "recency": 0.0})
    near = _deal(1, *_offset(1))
    far = _deal(2, *_offset(4))
    order = [item.deal.id for item in ranker.rank(ORIGIN, [far, near], 10, now=MOMENT)]
    assert order == [1, 2]


def test_filters_and_limit() -> None:
    deals = [
        _deal(1, *_offset(1), category="food"),
        _deal(2, *_offset(2), category="Fashion"),
        _deal(3, *_offset(3), category="food", required_tier="premium"),
        _deal(4, *_offset(4), category="food"),
    ]
    ranker = _ranker()

    fashion = [item.deal.id for item in ranker.rank(ORIGIN, deals, 10, categories=["fashion"])]
    assert fashion == [2]

    basic = {item.deal.id for item in ranker.rank(ORIGIN, deals, 10, user_tier="basic")}
    assert 3 not in basic
    premium = {item.deal.id for item in ranker.rank(ORIGIN, deals, 10, user_tier="premium")}
    assert 3 in premium

    limited = ranker.rank(ORIGIN, deals, 10, limit=2)
    assert len(list(limited)) == 2
    assert limited.total() == 4


def test_ranking_is_restartable_and_recomputed() -> None:
    deals = [_deal(1, *_offset(1)), _deal(2, *_offset(2))]
    ranked = _ranker().rank(ORIGIN, deals, 10)

    first = [item.deal.id for item in ranked]
    assert first == [item.deal.id for item in ranked]

    deals[1].discount_percentage = 100
    assert [item.deal.id for item in ranked] == [2, 1]


def test_radius_must_be_positive() -> None:
    with pytest.raises(ValueError):
        _ranker().rank(ORIGIN, [], 0)
