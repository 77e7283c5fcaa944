from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import TYPE_CHECKING, Callable

from web3 import Web3

from ...abi import load_erc4626_abi
from ...cache import cached
from ...constants import ONE_DAY, SOMM_CHAINS, SOMM_VAULT_SUFFIXES
from ...domain import DailySnapshot, TimestampedEvent, Window
from ...errors import InvalidWindowError
from ...logger import get_logger
from ...processors.integration import mean_value_over_window
from ...processors.weighted_average import (
    calculate_weighted_average,
    validate_daily_snapshots,
)
from ...protocols import SommProtocol
from ...settings import Network
from .base import BaseRevenueAdapter, validate_address

if TYPE_CHECKING:
    from ...services import Services

logger = get_logger(__name__)


@dataclass(frozen=True)
class SommVault:
    network: Network
    address: str


def parse_vault_key(key: str) -> SommVault | None:
    """Parse a Sommelier TVL key such as ``0xabc`` or ``0xabc-arbitrum``.

    Keys with an unsupported network suffix or a malformed address are skipped.
    """
    address, _, suffix = key.partition("-")
    if not Web3.is_address(address):
        return None
    if not suffix:
        return SommVault(Network.ETHEREUM, Web3.to_checksum_address(address))
    network = SOMM_VAULT_SUFFIXES.get(suffix)
    if network is None:
        return None
    return SommVault(network, Web3.to_checksum_address(address))


class SommRevenueAdapter(BaseRevenueAdapter):
    """Time-weighted USD TVL of the user across Sommelier vaults.

    The user's LP balance is read live and walked back through Deposit and
    Withdraw events; every interval is valued with the vault's daily
    ``price_usd / share_price`` snapshots.
    """

    def __init__(
        self,
        services: Services,
        config: SommProtocol,
        *,
        clock: Callable[[], datetime] | None = None,
    ):
        super().__init__(services)
        self.config = config
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._base_url = services.settings.somm_api_url.rstrip("/")

    @property
    def adapter_name(self) -> str:
        return "somm"

    async def get_vaults(self) -> list[SommVault]:
        async def _load() -> list[SommVault]:
            payload = await self.services.http.get_json(f"{self._base_url}/tvl")
            vaults = [
                vault
                for vault in map(parse_vault_key, payload["Response"].keys())
                if vault is not None
            ]
            logger.debug("Sommelier vaults discovered: %d", len(vaults))
            return vaults

        return await cached(self.services.cache, ("somm_vaults",), _load)

    async def get_daily_snapshots(
        self, vault: SommVault, start: datetime, end: datetime
    ) -> list[DailySnapshot]:
        """Daily snapshots covering ``[start, end]``, checked for gaps."""
        # one extra day before start so the snapshot in force at start is included
        start_unix = int((start - ONE_DAY).timestamp())
        end_unix = int(end.timestamp())
        chain = SOMM_CHAINS[vault.network]

        async def _load() -> list[DailySnapshot]:
            payload = await self.services.http.get_json(
                f"{self._base_url}/dailyData/{chain}/{vault.address}/{start_unix}/{end_unix}"
            )
            return [
                DailySnapshot(
                    timestamp=datetime.fromisoformat(
                        item["timestamp"].replace("Z", "+00:00")
                    ),
                    price_usd=Decimal(str(item["price_usd"])),
                    share_price=Decimal(str(item["share_price"])),
                )
                for item in payload
            ]

        snapshots = await cached(
            self.services.cache,
            ("somm_daily", vault, start_unix, end_unix),
            _load,
        )
        return validate_daily_snapshots(snapshots, start, end)

    async def get_tvl_events(
        self, vault: SommVault, user: str, start: datetime, end: datetime
    ) -> list[TimestampedEvent]:
        """Signed LP share changes of ``user`` in ``vault``, newest first."""
        chain = self.services.chain
        contract = chain.contract(vault.network, vault.address, load_erc4626_abi())
        decimals, deposits, withdrawals = await asyncio.gather(
            chain.call(contract.functions.decimals()),
            chain.fetch_events(vault.network, contract, "Deposit", start, end),
            chain.fetch_events(vault.network, contract, "Withdraw", start, end),
        )
        scale = Decimal(10) ** int(decimals)
        owned = [
            (log, sign)
            for logs, sign in ((deposits, 1), (withdrawals, -1))
            for log in logs
            if log["args"]["owner"].lower() == user.lower()
        ]
        timestamps = await asyncio.gather(
            *(
                chain.get_block_timestamp(vault.network, log["blockNumber"])
                for log, _ in owned
            )
        )
        events = [
            TimestampedEvent(
                amount=sign * Decimal(int(log["args"]["shares"])) / scale,
                timestamp=ts,
            )
            for (log, sign), ts in zip(owned, timestamps)
        ]
        return sorted(events, key=lambda e: e.timestamp, reverse=True)

    async def get_mean_tvl_usd(
        self,
        vault: SommVault,
        user: str,
        start: datetime,
        end: datetime,
        now: datetime,
    ) -> Decimal:
        if end > now:
            raise InvalidWindowError("Cannot have an end timestamp in the future")
        Window(start, end)

        chain = self.services.chain
        contract = chain.contract(vault.network, vault.address, load_erc4626_abi())
        balance, decimals, events = await asyncio.gather(
            chain.call(contract.functions.balanceOf(user)),
            chain.call(contract.functions.decimals()),
            self.get_tvl_events(vault, user, start, now),
        )
        if balance == 0 and not events:
            return Decimal(0)

        snapshots = await self.get_daily_snapshots(vault, start, end)
        current = Decimal(int(balance)) / Decimal(10) ** int(decimals)
        mean = mean_value_over_window(
            current,
            events,
            start,
            end,
            now,
            price_weight=lambda lo, hi: calculate_weighted_average(snapshots, lo, hi),
        )
        logger.debug(
            "Sommelier vault TVL — vault=%s network=%s user=%s events=%d mean_usd=%s",
            vault.address,
            vault.network.value,
            user,
            len(events),
            mean,
        )
        return mean

    async def calculate_revenue(
        self, address: str, start: datetime, end: datetime
    ) -> Decimal:
        user = validate_address(address)
        now = self._clock()
        vaults = await self.get_vaults()
        results = await asyncio.gather(
            *(self.get_mean_tvl_usd(v, user, start, end, now) for v in vaults)
        )
        total = sum(results, Decimal(0))
        logger.info(
            "somm revenue — user=%s vaults=%d mean_tvl_usd=%s", user, len(vaults), total
        )
        return total
