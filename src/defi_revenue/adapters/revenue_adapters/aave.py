from __future__ import annotations

import asyncio
import bisect
from datetime import datetime, timezone
from decimal import Decimal, localcontext
from itertools import pairwise
from typing import TYPE_CHECKING

from eth_abi.abi import decode
from web3 import Web3

from ...abi import (
    load_aave_atoken_abi,
    load_aave_oracle_abi,
    load_aave_pool_abi,
    load_erc20_abi,
)
from ...cache import cached
from ...clients.indexer import Query, QueryResponse, paginate_query, to_int
from ...constants import (
    AAVE_MARKETS,
    AAVE_RAY,
    AAVE_RESERVE_FACTOR_CHANGED_TOPIC,
    AAVE_RESERVE_FACTOR_DECIMALS,
    AaveMarket,
)
from ...domain import BalanceSnapshot, ReserveData, ReserveFactor, Window
from ...logger import get_logger
from ...processors.weighted_average import DECIMAL_PRECISION
from ...protocols import AaveProtocol
from ...settings import Network
from .base import BaseRevenueAdapter, validate_address

if TYPE_CHECKING:
    from ...services import Services

logger = get_logger(__name__)

RESERVE_FACTOR_SCALE = 10**AAVE_RESERVE_FACTOR_DECIMALS

USER_RESERVES_QUERY = """
query getUserReservesHistory(
  $userAddress: String!
  $startTimestamp: Int!
  $endTimestamp: Int!
) {
  userReserves(where: { user: $userAddress }) {
    reserve {
      aToken {
        id
      }
    }
    aTokenBalanceHistory(
      where: { timestamp_gte: $startTimestamp, timestamp_lte: $endTimestamp }
      orderBy: timestamp
      orderDirection: asc
    ) {
      index
      scaledATokenBalance
      timestamp
    }
  }
}
"""


def reserve_factor_from_configuration(configuration: int) -> int:
    """Reserve factor in basis points, stored in bits 64-79 of the reserve configuration."""
    return (configuration >> 64) & 0xFFFF


def reserve_factor_at(
    history: list[ReserveFactor], initial: int, at: datetime
) -> int:
    """Reserve factor in force at ``at`` given the changes since the window start."""
    idx = bisect.bisect_right([rf.timestamp for rf in history], at)
    if idx == 0:
        return initial
    return history[idx - 1].reserve_factor


def reserve_protocol_revenue(
    start_scaled_balance: int,
    start_index: int,
    end_index: int,
    snapshots: list[BalanceSnapshot],
    initial_reserve_factor: int,
    reserve_factor_history: list[ReserveFactor],
    start: datetime,
    end: datetime,
) -> Decimal:
    """Protocol revenue (raw reserve token units) earned from a user's supply.

    Between consecutive balance observations the scaled balance is constant
    and the accrued supply interest is ``scaled * (index_b - index_a) / RAY``.
    Suppliers receive ``1 - RF`` of the interest paid by borrowers while the
    protocol keeps ``RF``, so each segment yields ``interest * RF / (1 - RF)``
    at the reserve factor in force at the segment start.
    """
    points = [(start, start_scaled_balance, start_index)]
    points += [
        (s.timestamp, s.scaled_balance, s.liquidity_index)
        for s in sorted(snapshots, key=lambda s: s.timestamp)
    ]
    points.append((end, 0, end_index))

    total = Decimal(0)
    with localcontext() as ctx:
        ctx.prec = DECIMAL_PRECISION
        for (t, scaled, index), (_, _, next_index) in pairwise(points):
            interest = Decimal(scaled) * (next_index - index) / AAVE_RAY
            if interest <= 0:
                continue
            rf = reserve_factor_at(reserve_factor_history, initial_reserve_factor, t)
            if rf >= RESERVE_FACTOR_SCALE:
                continue
            total += interest * rf / (RESERVE_FACTOR_SCALE - rf)
    return total


class AaveRevenueAdapter(BaseRevenueAdapter):
    """Aave v3 reserve-factor revenue generated by the user's supplied assets, in USD."""

    def __init__(self, services: Services, config: AaveProtocol):
        super().__init__(services)
        self.config = config

    @property
    def adapter_name(self) -> str:
        return "aave"

    async def get_reserve_data(
        self, network: Network, pool_address: str, block_number: int
    ) -> dict[str, ReserveData]:
        """Reserve state keyed by lowercase reserve token; empty before the pool exists."""

        async def _load() -> dict[str, ReserveData]:
            chain = self.services.chain
            if not await chain.is_deployed(network, pool_address, block_number):
                return {}
            pool = chain.contract(network, pool_address, load_aave_pool_abi())
            reserves = await chain.call(
                pool.functions.getReservesList(), block_identifier=block_number
            )
            reserve_data, decimals = await asyncio.gather(
                asyncio.gather(
                    *(
                        chain.call(
                            pool.functions.getReserveData(r),
                            block_identifier=block_number,
                        )
                        for r in reserves
                    )
                ),
                asyncio.gather(
                    *(
                        chain.call(
                            chain.contract(network, r, load_erc20_abi()).functions.decimals()
                        )
                        for r in reserves
                    )
                ),
            )
            result: dict[str, ReserveData] = {}
            for reserve, data, dec in zip(reserves, reserve_data, decimals):
                # getReserveData returns the ReserveDataLegacy tuple
                configuration, liquidity_index = data[0][0], data[1]
                a_token = data[8]
                result[reserve.lower()] = ReserveData(
                    reserve_token_address=reserve.lower(),
                    reserve_token_decimals=int(dec),
                    a_token_address=a_token.lower(),
                    liquidity_index=int(liquidity_index),
                    reserve_factor=reserve_factor_from_configuration(int(configuration)),
                )
            return result

        return await cached(
            self.services.cache,
            ("aave_reserves", network, pool_address.lower(), block_number),
            _load,
        )

    async def get_reserve_factor_history(
        self,
        network: Network,
        configurator_address: str,
        start_block: int,
        end_block: int,
    ) -> dict[str, list[ReserveFactor]]:
        """ReserveFactorChanged events per lowercase reserve token, oldest first."""

        async def _load() -> dict[str, list[ReserveFactor]]:
            query = Query(
                from_block=start_block,
                # the indexer treats to_block as exclusive
                to_block=end_block + 1,
                logs=[
                    {
                        "address": [configurator_address.lower()],
                        "topics": [[AAVE_RESERVE_FACTOR_CHANGED_TOPIC]],
                    }
                ],
                field_selection={
                    "block": ["number", "timestamp"],
                    "log": ["block_number", "data", "topic0", "topic1"],
                },
            )
            history: dict[str, list[ReserveFactor]] = {}

            async def on_page(response: QueryResponse) -> None:
                if not response.data.logs:
                    return
                block_timestamps = {
                    to_int(b["number"]): to_int(b["timestamp"])
                    for b in response.data.blocks
                }
                for log in response.data.logs:
                    asset = "0x" + str(log["topic1"])[-40:].lower()
                    _, new_reserve_factor = decode(
                        ["uint256", "uint256"],
                        bytes.fromhex(str(log["data"]).removeprefix("0x")),
                    )
                    ts = block_timestamps[to_int(log["block_number"])]
                    history.setdefault(asset, []).append(
                        ReserveFactor(
                            reserve_factor=int(new_reserve_factor),
                            timestamp=datetime.fromtimestamp(ts, tz=timezone.utc),
                        )
                    )

            await paginate_query(self.services.indexer(network), query, on_page)
            for changes in history.values():
                changes.sort(key=lambda rf: rf.timestamp)
            return history

        return await cached(
            self.services.cache,
            ("aave_rf_history", network, configurator_address.lower(), start_block, end_block),
            _load,
        )

    async def get_scaled_balances(
        self,
        network: Network,
        user: str,
        a_tokens: list[str],
        block_number: int,
    ) -> dict[str, int]:
        """Scaled aToken balances at ``block_number``; 0 where the aToken did not exist yet."""
        chain = self.services.chain

        async def _balance(a_token: str) -> int:
            if not await chain.is_deployed(network, a_token, block_number):
                return 0
            contract = chain.contract(network, a_token, load_aave_atoken_abi())
            return int(
                await chain.call(
                    contract.functions.scaledBalanceOf(user),
                    block_identifier=block_number,
                )
            )

        balances = await asyncio.gather(*(_balance(t) for t in a_tokens))
        return dict(zip(a_tokens, balances))

    async def get_balance_history(
        self, subgraph_id: str, user: str, start: datetime, end: datetime
    ) -> dict[str, list[BalanceSnapshot]]:
        """aToken balance changes in the window, keyed by lowercase aToken."""
        data = await self.services.subgraph.query(
            subgraph_id,
            USER_RESERVES_QUERY,
            {
                "userAddress": user.lower(),
                "startTimestamp": int(start.timestamp()),
                "endTimestamp": int(end.timestamp()),
            },
        )
        return {
            item["reserve"]["aToken"]["id"].lower(): [
                BalanceSnapshot(
                    scaled_balance=int(h["scaledATokenBalance"]),
                    liquidity_index=int(h["index"]),
                    timestamp=datetime.fromtimestamp(int(h["timestamp"]), tz=timezone.utc),
                )
                for h in item["aTokenBalanceHistory"]
            ]
            for item in data.get("userReserves", [])
        }

    async def get_usd_prices(
        self,
        network: Network,
        oracle_address: str,
        tokens: list[str],
        block_number: int,
    ) -> dict[str, Decimal]:
        """Oracle USD prices; 0 for every token when the oracle did not exist yet."""

        async def _load() -> dict[str, Decimal]:
            chain = self.services.chain
            if not tokens or not await chain.is_deployed(
                network, oracle_address, block_number
            ):
                return {t: Decimal(0) for t in tokens}
            oracle = chain.contract(network, oracle_address, load_aave_oracle_abi())
            base_unit, prices = await asyncio.gather(
                chain.call(
                    oracle.functions.BASE_CURRENCY_UNIT(), block_identifier=block_number
                ),
                chain.call(
                    oracle.functions.getAssetsPrices(
                        [Web3.to_checksum_address(t) for t in tokens]
                    ),
                    block_identifier=block_number,
                ),
            )
            return {
                token: (
                    Decimal(int(price)) / Decimal(int(base_unit))
                    if price and base_unit
                    else Decimal(0)
                )
                for token, price in zip(tokens, prices)
            }

        return await cached(
            self.services.cache,
            ("aave_prices", network, oracle_address.lower(), tuple(tokens), block_number),
            _load,
        )

    async def revenue_in_network(
        self,
        network: Network,
        market: AaveMarket,
        user: str,
        start: datetime,
        end: datetime,
    ) -> Decimal:
        start_block, end_block = await self.services.chain.get_block_range(
            network, start, end
        )
        start_reserves, end_reserves, rf_history = await asyncio.gather(
            self.get_reserve_data(network, market["pool"], start_block),
            self.get_reserve_data(network, market["pool"], end_block),
            self.get_reserve_factor_history(
                network, market["pool_configurator"], start_block, end_block
            ),
        )
        if not end_reserves:
            return Decimal(0)

        # reserves listed at the end block cover every token active in the window
        reserve_tokens = list(end_reserves)
        a_tokens = [r.a_token_address for r in end_reserves.values()]
        start_balances, balance_history, usd_prices = await asyncio.gather(
            self.get_scaled_balances(network, user, a_tokens, start_block),
            self.get_balance_history(market["subgraph_id"], user, start, end),
            self.get_usd_prices(network, market["oracle"], reserve_tokens, end_block),
        )

        total = Decimal(0)
        with localcontext() as ctx:
            ctx.prec = DECIMAL_PRECISION
            for token, end_data in end_reserves.items():
                a_token = end_data.a_token_address
                snapshots = balance_history.get(a_token, [])
                start_scaled = start_balances.get(a_token, 0)
                if start_scaled == 0 and not snapshots:
                    continue
                start_data = start_reserves.get(token)
                revenue = reserve_protocol_revenue(
                    start_scaled_balance=start_scaled,
                    start_index=(start_data or end_data).liquidity_index,
                    end_index=end_data.liquidity_index,
                    snapshots=snapshots,
                    initial_reserve_factor=(start_data or end_data).reserve_factor,
                    reserve_factor_history=rf_history.get(token, []),
                    start=start,
                    end=end,
                )
                usd = (
                    revenue
                    / Decimal(10) ** end_data.reserve_token_decimals
                    * usd_prices.get(token, Decimal(0))
                )
                logger.debug(
                    "Aave reserve — network=%s token=%s snapshots=%d revenue_usd=%s",
                    network.value,
                    token,
                    len(snapshots),
                    usd,
                )
                total += usd
        return total

    async def calculate_revenue(
        self, address: str, start: datetime, end: datetime
    ) -> Decimal:
        user = validate_address(address)
        Window(start, end)
        revenues = await asyncio.gather(
            *(
                self.revenue_in_network(network, market, user, start, end)
                for network, market in AAVE_MARKETS.items()
            )
        )
        total = sum(revenues, Decimal(0))
        logger.info(
            "aave revenue — user=%s markets=%d revenue_usd=%s",
            user,
            len(revenues),
            total,
        )
        return total
