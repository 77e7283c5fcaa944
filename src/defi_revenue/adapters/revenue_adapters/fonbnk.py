from __future__ import annotations

import asyncio
from collections import defaultdict
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from ...abi import load_erc20_abi
from ...clients.fonbnk import FonbnkClient
from ...clients.indexer import (
    Query,
    QueryResponse,
    paginate_query,
    pad_address_topic,
    to_int,
)
from ...constants import ERC20_TRANSFER_TOPIC, FONBNK_NETWORKS
from ...domain import TokenAmountEvent, Window
from ...logger import get_logger
from ...processors.volume import token_volume_usd
from ...protocols import FonbnkProtocol
from ...settings import Network
from .base import BaseRevenueAdapter, validate_address

if TYPE_CHECKING:
    from ...services import Services

logger = get_logger(__name__)


async def get_payout_wallets_by_network(client: FonbnkClient) -> dict[Network, set[str]]:
    """Unique Fonbnk payout wallets per supported network."""
    assets = await client.get_assets()
    supported = [a for a in assets if a.network in FONBNK_NETWORKS]
    wallet_lists = await asyncio.gather(
        *(client.get_payout_wallets(a.network, a.asset) for a in supported)
    )
    wallets: dict[Network, set[str]] = defaultdict(set)
    for asset, found in zip(supported, wallet_lists):
        wallets[FONBNK_NETWORKS[asset.network]].update(w.lower() for w in found)
    return dict(wallets)


def payout_transfer_query(
    payout_wallet: str,
    user: str,
    fields: list[str],
    from_block: int = 0,
    to_block: int | None = None,
) -> Query:
    """ERC-20 Transfer logs from ``payout_wallet`` to ``user``."""
    return Query(
        from_block=from_block,
        to_block=to_block,
        logs=[
            {
                "topics": [
                    [ERC20_TRANSFER_TOPIC],
                    [pad_address_topic(payout_wallet)],
                    [pad_address_topic(user)],
                ]
            }
        ],
        field_selection={"log": fields},
    )


class FonbnkRevenueAdapter(BaseRevenueAdapter):
    """USD volume of Fonbnk payouts received by the user."""

    def __init__(self, services: Services, config: FonbnkProtocol):
        super().__init__(services)
        self.config = config

    @property
    def adapter_name(self) -> str:
        return "fonbnk"

    async def get_user_transfers(
        self,
        network: Network,
        payout_wallet: str,
        user: str,
        start: datetime,
        end: datetime,
    ) -> list[TokenAmountEvent]:
        """Transfers from ``payout_wallet`` to ``user`` inside ``[start, end]``."""
        chain = self.services.chain
        start_block, end_block = await chain.get_block_range(network, start, end)
        # the indexer treats to_block as exclusive
        query = payout_transfer_query(
            payout_wallet,
            user,
            ["block_number", "address", "data"],
            from_block=start_block,
            to_block=end_block + 1,
        )
        raw: list[dict] = []

        async def on_page(response: QueryResponse) -> None:
            for log in response.data.logs:
                if log.get("block_number") is None or not log.get("data") or not log.get("address"):
                    logger.warning(
                        "Fonbnk transfer log missing required fields: %s", log
                    )
                    continue
                raw.append(log)

        await paginate_query(self.services.indexer(network), query, on_page)

        timestamps = await asyncio.gather(
            *(chain.get_block_timestamp(network, to_int(log["block_number"])) for log in raw)
        )
        tokens = sorted({log["address"].lower() for log in raw})
        token_decimals = await asyncio.gather(
            *(
                chain.call(chain.contract(network, t, load_erc20_abi()).functions.decimals())
                for t in tokens
            )
        )
        decimals_by_token = dict(zip(tokens, token_decimals))
        return [
            TokenAmountEvent(
                amount=to_int(log["data"]),
                decimals=int(decimals_by_token[log["address"].lower()]),
                token_id=f"{network.value}:{log['address'].lower()}",
                timestamp=ts,
            )
            for log, ts in zip(raw, timestamps)
            if start <= ts <= end
        ]

    async def transfers_volume_usd(
        self,
        transfers: list[TokenAmountEvent],
        start: datetime,
        end: datetime,
    ) -> Decimal:
        by_token: dict[str, list[TokenAmountEvent]] = defaultdict(list)
        for transfer in transfers:
            by_token[transfer.token_id].append(transfer)

        total = Decimal(0)
        for token_id, token_transfers in by_token.items():
            prices = await self.services.prices.fetch_token_prices(token_id, start, end)
            total += token_volume_usd(token_transfers, prices)
        return total

    async def calculate_revenue(
        self, address: str, start: datetime, end: datetime
    ) -> Decimal:
        user = validate_address(address)
        Window(start, end)

        wallets = await get_payout_wallets_by_network(self.services.fonbnk)

        async def _network_revenue(network: Network, payout_wallets: set[str]) -> Decimal:
            transfer_lists = await asyncio.gather(
                *(
                    self.get_user_transfers(network, wallet, user, start, end)
                    for wallet in sorted(payout_wallets)
                )
            )
            transfers = [t for batch in transfer_lists for t in batch]
            if not transfers:
                return Decimal(0)
            return await self.transfers_volume_usd(transfers, start, end)

        revenues = await asyncio.gather(
            *(_network_revenue(n, w) for n, w in wallets.items())
        )
        total = sum(revenues, Decimal(0))
        logger.info(
            "fonbnk revenue — user=%s networks=%d volume_usd=%s", user, len(wallets), total
        )
        return total
