"""Atomic reservation of deal redemption capacity."""

from __future__ import annotations

import logging

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from deal_redemption.core.errors import ConcurrencyConflictError
from deal_redemption.repositories.deal_repo import DealRepository

logger = logging.getLogger(__name__)


class RedemptionCounter:
    """Moves a deal's redemption counter only through conditional updates.

    The counter never exceeds the deal's maximum because the capacity check and
    the increment are the same statement; the datastore serializes racers.
    """

    def __init__(self, session: Session, deals: DealRepository | None = None) -> None:
        self.session = session
        self.deals = deals or DealRepository(session)

    def reserve(self, deal_id: int) -> bool:
        """Take one unit of capacity; False when the deal is fully redeemed.

        Raises:
            ConcurrencyConflictError: If the datastore could not serialize the update.
        """
        try:
            reserved = self.deals.update_redemption_count(deal_id, 1)
        except OperationalError as err:
            logger.warning("Reservation for deal %s hit a lock conflict", deal_id)
            raise ConcurrencyConflictError(deal_id) from err
        logger.debug("Reservation for deal %s %s", deal_id, "taken" if reserved else "refused")
        return reserved

    def release(self, deal_id: int) -> None:
        """Return one unit of capacity; the counter stops at zero."""
        self.deals.update_redemption_count(deal_id, -1)

    def remaining(self, deal_id: int) -> int | None:
        """Return spare capacity, or None for unlimited or unknown deals."""
        deal = self.deals.get_deal(deal_id)
        if deal is None:
            return None
        return deal.remaining_redemptions
