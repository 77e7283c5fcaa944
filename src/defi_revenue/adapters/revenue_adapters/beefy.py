from __future__ import annotations

import asyncio
import bisect
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, localcontext
from typing import TYPE_CHECKING

from web3 import Web3

from ...abi import load_beefy_strategy_abi, load_beefy_vault_abi
from ...cache import cached
from ...clients.beefy import parse_datetime
from ...constants import BEEFY_CHAINS
from ...domain import Window
from ...logger import get_logger
from ...processors.weighted_average import DECIMAL_PRECISION
from ...protocols import BeefyProtocol
from ...settings import Network
from .base import BaseRevenueAdapter, validate_address

if TYPE_CHECKING:
    from ...services import Services

logger = get_logger(__name__)


@dataclass(frozen=True)
class FeeEvent:
    beefy_fee: int  # native token units
    timestamp: datetime


@dataclass
class BeefyVaultInfo:
    """Everything needed to prorate one vault's fees to a user."""

    network: Network
    vault_address: str
    tx_history: list[tuple[datetime, Decimal]]  # (datetime, user usd_balance), ascending
    tvl_history: list[tuple[datetime, Decimal]]  # ascending
    fee_events: list[FeeEvent]


def _value_at(series: list[tuple[datetime, Decimal]], at: datetime) -> Decimal | None:
    """Value of the last point at or before ``at`` in an ascending series."""
    idx = bisect.bisect_right([t for t, _ in series], at)
    if idx == 0:
        return None
    return series[idx - 1][1]


def prorate_fees(vault: BeefyVaultInfo) -> Decimal:
    """Sum each fee weighted by the user's share of vault TVL when it was charged.

    Fees charged before the user's first transaction, or before any TVL
    observation, contribute nothing.
    """
    total = Decimal(0)
    with localcontext() as ctx:
        ctx.prec = DECIMAL_PRECISION
        for fee in vault.fee_events:
            user_balance = _value_at(vault.tx_history, fee.timestamp)
            vault_tvl = _value_at(vault.tvl_history, fee.timestamp)
            if user_balance is None or not vault_tvl:
                continue
            total += Decimal(fee.beefy_fee) * user_balance / vault_tvl
    return total


class BeefyRevenueAdapter(BaseRevenueAdapter):
    """Share of Beefy performance fees charged on vaults the user holds.

    The result is keyed by network, then by ``"<network>:<native token>"``,
    with amounts as integer strings in native token units.
    """

    def __init__(self, services: Services, config: BeefyProtocol):
        super().__init__(services)
        self.config = config

    @property
    def adapter_name(self) -> str:
        return "beefy"

    async def fetch_fee_events(
        self, network: Network, vault_address: str, start: datetime, end: datetime
    ) -> list[FeeEvent]:
        """ChargedFees events emitted by the vault's strategy in the window."""

        async def _load() -> list[FeeEvent]:
            chain = self.services.chain
            vault = chain.contract(network, vault_address, load_beefy_vault_abi())
            strategy_address = await chain.call(vault.functions.strategy())
            strategy = chain.contract(
                network, strategy_address, load_beefy_strategy_abi()
            )
            logs = await chain.fetch_events(network, strategy, "ChargedFees", start, end)
            timestamps = await asyncio.gather(
                *(chain.get_block_timestamp(network, log["blockNumber"]) for log in logs)
            )
            return [
                FeeEvent(beefy_fee=int(log["args"].get("beefyFees") or 0), timestamp=ts)
                for log, ts in zip(logs, timestamps)
            ]

        return await cached(
            self.services.cache,
            ("beefy_fees", network, vault_address.lower(), start, end),
            _load,
        )

    async def get_vaults(
        self, address: str, start: datetime, end: datetime
    ) -> list[BeefyVaultInfo]:
        """Vaults in the user's timeline with TVL history and fee events.

        The timeline is not restricted to the window: a user who already held
        funds but did not transact during it still earns a share of fees.
        """
        timeline = await self.services.beefy.fetch_investor_timeline(address)

        by_product: dict[str, list[dict]] = defaultdict(list)
        for tx in timeline:
            if tx.get("usd_balance") is None:
                continue
            by_product[tx["product_key"]].append(tx)

        async def _build(product_key: str, txs: list[dict]) -> BeefyVaultInfo | None:
            txs.sort(key=lambda tx: parse_datetime(tx["datetime"]))
            beefy_chain = txs[0]["chain"]
            network = BEEFY_CHAINS.get(beefy_chain)
            if network is None:
                logger.warning(
                    "Skipping Beefy vault on unsupported chain — product=%s chain=%s",
                    product_key,
                    beefy_chain,
                )
                return None
            vault_address = Web3.to_checksum_address(product_key.split(":")[-1])
            tvl_history, fee_events = await asyncio.gather(
                self.services.beefy.fetch_vault_tvl_history(
                    beefy_chain, vault_address, start, end
                ),
                self.fetch_fee_events(network, vault_address, start, end),
            )
            return BeefyVaultInfo(
                network=network,
                vault_address=vault_address,
                tx_history=[
                    (parse_datetime(tx["datetime"]), Decimal(str(tx["usd_balance"])))
                    for tx in txs
                ],
                tvl_history=tvl_history,
                fee_events=fee_events,
            )

        vaults = await asyncio.gather(
            *(_build(key, txs) for key, txs in by_product.items())
        )
        return [v for v in vaults if v is not None]

    async def calculate_vault_revenue(self, vault: BeefyVaultInfo) -> tuple[str, Decimal]:
        """Return ``(token_id, revenue)`` for one vault, in native token units."""
        chain = self.services.chain
        vault_contract = chain.contract(
            vault.network, vault.vault_address, load_beefy_vault_abi()
        )
        strategy_address = await chain.call(vault_contract.functions.strategy())
        strategy = chain.contract(
            vault.network, strategy_address, load_beefy_strategy_abi()
        )
        native = await chain.call(strategy.functions.native())
        return f"{vault.network.value}:{native}", prorate_fees(vault)

    async def calculate_revenue(
        self, address: str, start: datetime, end: datetime
    ) -> dict[str, dict[str, str]]:
        user = validate_address(address)
        Window(start, end)

        vaults = await self.get_vaults(user, start, end)
        revenues = await asyncio.gather(
            *(self.calculate_vault_revenue(v) for v in vaults)
        )

        totals: dict[str, dict[str, Decimal]] = defaultdict(lambda: defaultdict(Decimal))
        for vault, (token_id, revenue) in zip(vaults, revenues):
            totals[vault.network.value][token_id] += revenue

        result = {
            network: {token_id: str(int(amount)) for token_id, amount in tokens.items()}
            for network, tokens in totals.items()
        }
        logger.info("beefy revenue — user=%s vaults=%d result=%s", user, len(vaults), result)
        return result
