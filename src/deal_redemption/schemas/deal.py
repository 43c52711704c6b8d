# src/deal_redemption/schemas/deal.py
"""Deal discovery, access and vendor-facing schemas."""

from datetime import datetime

from pydantic import BaseModel, Field


class NearbyDealsRequest(BaseModel):
    """Customer position and search filters."""

    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    max_distance_km: float | None = Field(None, gt=0, le=500, description="Search radius")
    categories: list[str] = Field(default_factory=list)
    limit: int | None = Field(None, ge=1, le=100)


class NearbyDealResponse(BaseModel):
    """One ranked deal near the customer."""

    id: int
    title: str
    category: str
    discount_percentage: int
    vendor_id: int
    business_name: str | None = None
    distance_km: float
    distance_text: str
    location_hint: str
    relevance_score: float
    required_tier: str
    remaining_redemptions: int | None = None


class NearbyDealsResponse(BaseModel):
    """Ranked deals plus the search context."""

    deals: list[NearbyDealResponse]
    total: int
    search_radius_km: float


class DealAccessResponse(BaseModel):
    """Whether the caller's tier unlocks the deal."""

    deal_id: int
    can_access: bool
    current_tier: str
    required_tier: str


class CurrentPinResponse(BaseModel):
    """Rotating PIN the vendor displays at the counter."""

    deal_id: int
    current_pin: str
    next_rotation_at: datetime
    rotation_interval_minutes: int


class DealRedemptionResponse(BaseModel):
    """Verified redemptions for one of the vendor's deals."""

    deal_id: int
    title: str
    verified_redemptions: int
