"""Deal claim, discovery and access endpoints."""

from fastapi import APIRouter, status

from deal_redemption.core.errors import DealNotFoundError
from deal_redemption.core.membership import MembershipTier, can_access
from deal_redemption.core.settings import settings
from deal_redemption.db.time import utcnow
from deal_redemption.repositories.deal_repo import DealRepository
from deal_redemption.schemas.claim import ClaimResponse
from deal_redemption.schemas.deal import (
    DealAccessResponse,
    NearbyDealResponse,
    NearbyDealsRequest,
    NearbyDealsResponse,
)
from deal_redemption.services.ranking import RankedDeal

from ..dependencies import CurrentUserDep, LedgerDep, RankerDep, SessionDep

router = APIRouter(prefix="/deals", tags=["deals"])


def _nearby_item(item: RankedDeal) -> NearbyDealResponse:
    deal = item.deal
    return NearbyDealResponse(
        id=deal.id,
        title=deal.title,
        category=deal.category,
        discount_percentage=deal.discount_percentage,
        vendor_id=deal.vendor_id,
        business_name=deal.vendor.business_name if deal.vendor is not None else None,
        distance_km=round(item.distance_km, 2),
        distance_text=item.distance_text,
        location_hint=item.location_hint,
        relevance_score=item.relevance_score,
        required_tier=MembershipTier.parse(deal.required_tier).label,
        remaining_redemptions=deal.remaining_redemptions,
    )


@router.post("/nearby", response_model=NearbyDealsResponse)
async def nearby_deals(
    search: NearbyDealsRequest,
    current_user: CurrentUserDep,
    db: SessionDep,
    ranker: RankerDep,
) -> NearbyDealsResponse:
    """Rank redeemable deals around the caller's position."""
    radius = search.max_distance_km or settings.nearby_default_radius_km
    ranked = ranker.rank(
        (search.latitude, search.longitude),
        DealRepository(db).list_active(utcnow()),
        radius,
        user_tier=current_user.membership_tier,
        categories=search.categories,
        limit=search.limit or settings.nearby_default_limit,
    )
    return NearbyDealsResponse(
        deals=[_nearby_item(item) for item in ranked],
        total=ranked.total(),
        search_radius_km=radius,
    )


@router.post("/{deal_id}/claim", response_model=ClaimResponse, status_code=status.HTTP_201_CREATED)
async def claim_deal(
    deal_id: int,
    current_user: CurrentUserDep,
    ledger: LedgerDep,
) -> ClaimResponse:
    """Reserve a deal for an in-store visit."""
    claim = ledger.create_claim(current_user, deal_id)
    return ClaimResponse.model_validate(claim)


@router.get("/{deal_id}/access", response_model=DealAccessResponse)
async def check_deal_access(
    deal_id: int,
    current_user: CurrentUserDep,
    db: SessionDep,
) -> DealAccessResponse:
    """Report whether the caller's membership unlocks the deal."""
    deal = DealRepository(db).get_deal(deal_id)
    if deal is None:
        raise DealNotFoundError(deal_id)
    return DealAccessResponse(
        deal_id=deal.id,
        can_access=can_access(current_user.membership_tier, deal.required_tier),
        current_tier=current_user.tier.label,
        required_tier=MembershipTier.parse(deal.required_tier).label,
    )
