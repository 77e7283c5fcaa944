from __future__ import annotations

import asyncio
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from ...abi import load_drome_pool_abi, load_erc20_abi
from ...domain import TokenAmountEvent, Window
from ...logger import get_logger
from ...processors.volume import apply_fee_rate, token_volume_usd
from ...protocols import DromeProtocol
from .base import BaseRevenueAdapter, validate_address

if TYPE_CHECKING:
    from ...services import Services

logger = get_logger(__name__)


class DromeRevenueAdapter(BaseRevenueAdapter):
    """Swap-fee revenue on Aerodrome (Base) and Velodrome (Optimism) pools.

    For every configured pool, the user's swaps (as recipient) are valued in
    USD through token0's price history and multiplied by the pool fee rate.
    """

    def __init__(self, services: Services, config: DromeProtocol):
        super().__init__(services)
        self.config = config

    @property
    def adapter_name(self) -> str:
        return self.config.protocol.value

    async def calculate_revenue(
        self, address: str, start: datetime, end: datetime
    ) -> Decimal:
        user = validate_address(address)
        Window(start, end)

        revenues = await asyncio.gather(
            *(
                self._pool_revenue(pool, user, start, end)
                for pool in self.config.pool_addresses
            )
        )
        total = sum(revenues, Decimal(0))
        logger.info(
            "%s revenue — user=%s pools=%d revenue=%s",
            self.adapter_name,
            user,
            len(revenues),
            total,
        )
        return total

    async def get_swap_events(
        self, pool_address: str, user: str, start: datetime, end: datetime
    ) -> list[TokenAmountEvent]:
        """Swaps in ``pool_address`` whose recipient is ``user``, oldest first.

        Amounts are the absolute token0 leg of each swap.
        """
        chain = self.services.chain
        network = self.config.network
        pool = chain.contract(network, pool_address, load_drome_pool_abi())

        logs = await chain.fetch_events(network, pool, "Swap", start, end)
        user_logs = [
            log for log in logs if log["args"]["recipient"].lower() == user.lower()
        ]
        if not user_logs:
            return []

        token0 = await chain.call(pool.functions.token0())
        token = chain.contract(network, token0, load_erc20_abi())
        decimals = await chain.call(token.functions.decimals())
        timestamps = await asyncio.gather(
            *(chain.get_block_timestamp(network, log["blockNumber"]) for log in user_logs)
        )

        events = [
            TokenAmountEvent(
                amount=abs(int(log["args"]["amount0"])),
                decimals=int(decimals),
                token_id=f"{network.value}:{token0}",
                timestamp=ts,
            )
            for log, ts in zip(user_logs, timestamps)
        ]
        return sorted(events, key=lambda e: e.timestamp)

    async def _pool_revenue(
        self, pool_address: str, user: str, start: datetime, end: datetime
    ) -> Decimal:
        swaps = await self.get_swap_events(pool_address, user, start, end)
        if not swaps:
            logger.debug("No swaps — pool=%s user=%s", pool_address, user)
            return Decimal(0)

        prices = await self.services.prices.fetch_token_prices(
            swaps[0].token_id, swaps[0].timestamp, swaps[-1].timestamp
        )
        volume = token_volume_usd(swaps, prices)

        chain = self.services.chain
        pool = chain.contract(self.config.network, pool_address, load_drome_pool_abi())
        fee = await chain.call(pool.functions.fee())
        revenue = apply_fee_rate(volume, int(fee), self.config.fee_decimals)
        logger.debug(
            "Pool revenue — pool=%s swaps=%d volume_usd=%s fee=%d revenue=%s",
            pool_address,
            len(swaps),
            volume,
            fee,
            revenue,
        )
        return revenue
