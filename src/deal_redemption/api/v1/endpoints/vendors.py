"""Vendor-facing PIN display and redemption analytics endpoints."""

from fastapi import APIRouter, HTTPException, status
from sqlalchemy import select

from deal_redemption.core.errors import DealNotFoundError
from deal_redemption.models import Vendor
from deal_redemption.repositories.deal_repo import DealRepository
from deal_redemption.schemas.deal import CurrentPinResponse, DealRedemptionResponse

from ..dependencies import CurrentUserDep, LedgerDep, RotatingServiceDep, SessionDep

router = APIRouter(prefix="/vendors", tags=["vendors"])


@router.get("/deals/{deal_id}/current-pin", response_model=CurrentPinResponse)
async def current_pin(
    deal_id: int,
    current_user: CurrentUserDep,
    db: SessionDep,
    rotating: RotatingServiceDep,
) -> CurrentPinResponse:
    """Return the rotating PIN the vendor should display right now."""
    deal = DealRepository(db).get_deal(deal_id)
    if deal is None:
        raise DealNotFoundError(deal_id)
    if deal.vendor is None or deal.vendor.owner_customer_id != current_user.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only the vendor offering this deal can view its PIN",
        )
    pin = rotating.current_pin(deal.id)
    return CurrentPinResponse(
        deal_id=pin.deal_id,
        current_pin=pin.current_pin,
        next_rotation_at=pin.next_rotation_at,
        rotation_interval_minutes=pin.rotation_interval_minutes,
    )


@router.get("/me/redemptions", response_model=list[DealRedemptionResponse])
async def my_redemptions(
    current_user: CurrentUserDep,
    db: SessionDep,
    ledger: LedgerDep,
) -> list[DealRedemptionResponse]:
    """Return verified redemption counts for every deal the caller's storefronts offer."""
    vendor_ids = list(
        db.execute(
            select(Vendor.id).where(Vendor.owner_customer_id == current_user.id).order_by(Vendor.id)
        ).scalars()
    )
    if not vendor_ids:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Vendor account required",
        )
    return [
        DealRedemptionResponse(
            deal_id=row.deal_id,
            title=row.title,
            verified_redemptions=row.verified_redemptions,
        )
        for vendor_id in vendor_ids
        for row in ledger.vendor_redemptions(vendor_id)
    ]
