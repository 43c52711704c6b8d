"""Shared API dependencies for authentication and service wiring."""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from deal_redemption.core.settings import settings
from deal_redemption.db.session import get_db
from deal_redemption.models import Customer
from deal_redemption.services.claim_ledger import ClaimLedger
from deal_redemption.services.ranking import NearbyDealRanker, get_nearby_ranker
from deal_redemption.services.rate_limiter import RateLimiter, get_rate_limiter
from deal_redemption.services.rotating import RotatingCodeService, get_rotating_code_service

# HTTP Bearer scheme for JWT authentication
bearer_scheme = HTTPBearer()

# Type alias for database session dependency
SessionDep = Annotated[Session, Depends(get_db)]


def _decode_customer_id(subject: str) -> int:
    """Decode the numeric customer id carried in the token subject.

    Raises:
        HTTPException: If the subject is not an integer
    """
    try:
        return int(subject)
    except (TypeError, ValueError) as err:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
        ) from err


def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(bearer_scheme)],
    db: SessionDep,
) -> Customer:
    """Get the current authenticated customer from JWT token.

    Args:
        credentials: HTTP Bearer token credentials
        db: Database session

    Returns:
        Customer record for the authenticated caller

    Raises:
        HTTPException: If token is invalid or customer not found
    """
    try:
        payload = jwt.decode(
            credentials.credentials,
            settings.secret_key,
            algorithms=[settings.jwt_algorithm],
        )
    except JWTError as err:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
        ) from err

    subject = payload.get("sub")
    if subject is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
        )
    customer = db.get(Customer, _decode_customer_id(subject))
    if customer is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
        )
    return customer


# Type alias for current user dependency
CurrentUserDep = Annotated[Customer, Depends(get_current_user)]


def get_rate_limiter_dep() -> RateLimiter:
    """Return the shared verification rate limiter."""
    return get_rate_limiter()


def get_rotating_service_dep() -> RotatingCodeService:
    """Return the rotating PIN service."""
    return get_rotating_code_service()


def get_ranker_dep() -> NearbyDealRanker:
    """Return the nearby deal ranker."""
    return get_nearby_ranker()


RateLimiterDep = Annotated[RateLimiter, Depends(get_rate_limiter_dep)]
RotatingServiceDep = Annotated[RotatingCodeService, Depends(get_rotating_service_dep)]
RankerDep = Annotated[NearbyDealRanker, Depends(get_ranker_dep)]


def get_claim_ledger(db: SessionDep, rate_limiter: RateLimiterDep) -> ClaimLedger:
    """Return a claim ledger bound to the request's session."""
    return ClaimLedger(db, rate_limiter=rate_limiter)


LedgerDep = Annotated[ClaimLedger, Depends(get_claim_ledger)]


def client_ip(request: Request) -> str:
    """Return the caller's address for per-address rate limiting.

    X-Forwarded-For is only read when the socket peer is a trusted proxy. The
    address is then the nearest hop that is not itself a trusted proxy.
    """
    peer = request.client.host if request.client is not None and request.client.host else "unknown"
    trusted = set(settings.trusted_proxies)
    if peer not in trusted:
        return peer
    forwarded = request.headers.get("x-forwarded-for", "")
    hops = [hop.strip() for hop in forwarded.split(",") if hop.strip()]
    for hop in reversed(hops):
        if hop not in trusted:
            return hop
    return hops[0] if hops else peer
