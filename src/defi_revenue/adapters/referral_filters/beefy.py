from __future__ import annotations

from ...clients.beefy import parse_datetime
from ...domain import ReferralEvent
from ...logger import get_logger
from .base import BaseReferralFilter, referral_time

logger = get_logger(__name__)


class BeefyReferralFilter(BaseReferralFilter):
    """Eligible when the investor timeline is non-empty and starts after the referral."""

    @property
    def filter_name(self) -> str:
        return "beefy"

    async def is_eligible(self, event: ReferralEvent) -> bool:
        transactions = await self.services.beefy.fetch_investor_timeline(
            event.user_address
        )
        logger.debug(
            "Beefy timeline — user=%s transactions=%d",
            event.user_address,
            len(transactions),
        )
        if not transactions:
            return False
        registered = referral_time(event)
        return all(parse_datetime(tx["datetime"]) >= registered for tx in transactions)
