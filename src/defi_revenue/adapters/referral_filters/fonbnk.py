from __future__ import annotations

from typing import TYPE_CHECKING

from ..revenue_adapters.base import validate_address
from ..revenue_adapters.fonbnk import (
    get_payout_wallets_by_network,
    payout_transfer_query,
)
from ...domain import ReferralEvent
from ...logger import get_logger
from ...settings import Network
from .base import BaseReferralFilter, first_activity_block, referral_time

if TYPE_CHECKING:
    from ...services import Services

logger = get_logger(__name__)


class FonbnkReferralFilter(BaseReferralFilter):
    """Eligible when the user received a payout and never before the referral.

    Payout wallets are scanned one at a time; the first pre-referral transfer
    disqualifies the user without querying the remaining wallets.
    """

    def __init__(self, services: Services):
        super().__init__(services)
        self._wallets_by_network: dict[Network, set[str]] | None = None

    @property
    def filter_name(self) -> str:
        return "fonbnk"

    async def prepare(self) -> None:
        self._wallets_by_network = await get_payout_wallets_by_network(
            self.services.fonbnk
        )
        logger.debug(
            "Fonbnk payout wallets loaded — networks=%d wallets=%d",
            len(self._wallets_by_network),
            sum(len(w) for w in self._wallets_by_network.values()),
        )

    async def is_eligible(self, event: ReferralEvent) -> bool:
        user = validate_address(event.user_address)
        registered = referral_time(event)
        if self._wallets_by_network is None:
            await self.prepare()

        found = False
        for network, wallets in self._wallets_by_network.items():
            indexer = self.services.indexer(network)
            for wallet in sorted(wallets):
                query = payout_transfer_query(wallet, user, ["block_number"])
                block = await first_activity_block(indexer, query)
                if block is None:
                    continue
                first_seen = await self.services.chain.get_block_timestamp(
                    network, block
                )
                if first_seen < registered:
                    logger.debug(
                        "Payout before referral — user=%s wallet=%s network=%s",
                        user,
                        wallet,
                        network.value,
                    )
                    return False
                found = True
        return found
