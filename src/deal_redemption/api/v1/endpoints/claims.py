"""Claim verification, settlement and history endpoints."""

from fastapi import APIRouter, Request

from deal_redemption.schemas.claim import (
    BillAmountRequest,
    ClaimResponse,
    SavingsResponse,
    VerifyClaimRequest,
)

from ..dependencies import CurrentUserDep, LedgerDep, client_ip

router = APIRouter(prefix="/claims", tags=["claims"])


@router.get("/me", response_model=list[ClaimResponse])
async def list_my_claims(current_user: CurrentUserDep, ledger: LedgerDep) -> list[ClaimResponse]:
    """Return the caller's claims, newest first."""
    return [ClaimResponse.model_validate(claim) for claim in ledger.list_claims(current_user.id)]


@router.get("/me/savings", response_model=SavingsResponse)
async def my_savings(current_user: CurrentUserDep, ledger: LedgerDep) -> SavingsResponse:
    """Return savings over the caller's verified claims."""
    totals = ledger.user_savings(current_user.id)
    return SavingsResponse(
        verified_claims=totals.verified_claims,
        total_savings=totals.total_savings,
    )


@router.post("/{claim_id}/verify", response_model=ClaimResponse)
async def verify_claim(
    claim_id: int,
    payload: VerifyClaimRequest,
    request: Request,
    current_user: CurrentUserDep,
    ledger: LedgerDep,
) -> ClaimResponse:
    """Confirm an in-store visit with the PIN shown by the vendor."""
    claim = ledger.verify(
        claim_id,
        current_user.id,
        payload.pin,
        client_ip(request),
        user_agent=request.headers.get("user-agent"),
    )
    return ClaimResponse.model_validate(claim)


@router.post("/{claim_id}/bill", response_model=ClaimResponse)
async def record_bill(
    claim_id: int,
    payload: BillAmountRequest,
    current_user: CurrentUserDep,
    ledger: LedgerDep,
) -> ClaimResponse:
    """Record the bill total on a verified claim and compute the savings."""
    claim = ledger.record_bill_amount(claim_id, current_user.id, payload.bill_amount)
    return ClaimResponse.model_validate(claim)
