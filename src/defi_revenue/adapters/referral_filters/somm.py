from __future__ import annotations

from collections import defaultdict
from typing import TYPE_CHECKING

from ..revenue_adapters.base import validate_address
from ..revenue_adapters.somm import SommRevenueAdapter
from ...clients.indexer import Query, pad_address_topic
from ...constants import ERC4626_DEPOSIT_TOPIC
from ...domain import ReferralEvent
from ...protocols import SommProtocol
from ...settings import Network
from .base import BaseReferralFilter, first_activity_block, referral_time

if TYPE_CHECKING:
    from ...services import Services


class SommReferralFilter(BaseReferralFilter):
    """Eligible when the user's first vault deposit (as owner) is after the referral."""

    def __init__(self, services: Services):
        super().__init__(services)
        self._vaults_by_network: dict[Network, list[str]] | None = None

    @property
    def filter_name(self) -> str:
        return "somm"

    async def prepare(self) -> None:
        vaults = await SommRevenueAdapter(self.services, SommProtocol()).get_vaults()
        by_network: dict[Network, list[str]] = defaultdict(list)
        for vault in vaults:
            by_network[vault.network].append(vault.address.lower())
        self._vaults_by_network = dict(by_network)

    async def is_eligible(self, event: ReferralEvent) -> bool:
        user = validate_address(event.user_address)
        registered = referral_time(event)
        if self._vaults_by_network is None:
            await self.prepare()

        found = False
        for network, addresses in self._vaults_by_network.items():
            query = Query(
                from_block=0,
                logs=[
                    {
                        "address": addresses,
                        "topics": [
                            [ERC4626_DEPOSIT_TOPIC],
                            [],
                            [pad_address_topic(user)],
                        ],
                    }
                ],
                field_selection={"log": ["block_number"]},
            )
            block = await first_activity_block(self.services.indexer(network), query)
            if block is None:
                continue
            first_seen = await self.services.chain.get_block_timestamp(network, block)
            if first_seen < registered:
                return False
            found = True
        return found
