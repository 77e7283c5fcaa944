from __future__ import annotations

from typing import TYPE_CHECKING

from ..revenue_adapters.base import validate_address
from ...clients.indexer import Query
from ...domain import ReferralEvent
from ...logger import get_logger
from ...protocols import DromeProtocol
from .base import BaseReferralFilter, first_activity_block, referral_time

if TYPE_CHECKING:
    from ...services import Services

logger = get_logger(__name__)


class DromeReferralFilter(BaseReferralFilter):
    """Eligible when the user's first router transaction is at or after the referral."""

    def __init__(self, services: Services, config: DromeProtocol):
        super().__init__(services)
        self.config = config

    @property
    def filter_name(self) -> str:
        return self.config.protocol.value

    async def is_eligible(self, event: ReferralEvent) -> bool:
        user = validate_address(event.user_address)
        network = self.config.network
        query = Query(
            from_block=0,
            transactions=[
                {
                    "from": [user.lower()],
                    "to": [self.config.router_address.lower()],
                }
            ],
            field_selection={"transaction": ["block_number"]},
        )
        block = await first_activity_block(self.services.indexer(network), query)
        if block is None:
            logger.debug("No router transactions — user=%s", user)
            return False
        first_seen = await self.services.chain.get_block_timestamp(network, block)
        return first_seen >= referral_time(event)
