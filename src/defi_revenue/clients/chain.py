"""Read-only chain access: contract calls, block timestamps and event logs."""

from __future__ import annotations

import asyncio
import random
from datetime import datetime, timezone
from typing import Any, Callable

import backoff
from eth_typing import URI
from web3 import Web3
from web3.contract import Contract
from web3.exceptions import ProviderConnectionError
from web3.types import EventData

from ..cache import Cache, cached
from ..constants import ALCHEMY_RPC_URLS, PUBLIC_RPC_URLS
from ..logger import get_logger
from ..settings import Network, RevenueSettings
from .block_index import BlockIndexClient

logger = get_logger(__name__)


class ChainReader:
    """Per-network web3 clients behind a shared RPC throttle.

    Blocking web3 calls run in worker threads; at most
    ``rpc_max_concurrent_calls`` are in flight at once.
    """

    def __init__(
        self,
        settings: RevenueSettings,
        cache: Cache,
        block_index: BlockIndexClient,
        *,
        web3_factory: Callable[[str], Web3] | None = None,
    ):
        self._settings = settings
        self._cache = cache
        self._block_index = block_index
        self._web3_factory = web3_factory or (
            lambda url: Web3(Web3.HTTPProvider(URI(url)))
        )
        self._clients: dict[Network, Web3] = {}

        self._rpc_sem = asyncio.Semaphore(settings.rpc_max_concurrent_calls)
        self._rpc_delay = settings.rpc_delay
        self._rpc_jitter = settings.rpc_jitter

    def rpc_url(self, network: Network) -> str:
        """Resolve the RPC endpoint: explicit setting, then Alchemy, then public."""
        if network in self._settings.rpc_urls:
            return self._settings.rpc_urls[network]
        alchemy_key = self._settings.secret_value("alchemy_key")
        if alchemy_key and network in ALCHEMY_RPC_URLS:
            return ALCHEMY_RPC_URLS[network] + alchemy_key
        return PUBLIC_RPC_URLS[network]

    def w3(self, network: Network) -> Web3:
        client = self._clients.get(network)
        if client is None:
            client = self._web3_factory(self.rpc_url(network))
            self._clients[network] = client
        return client

    def contract(self, network: Network, address: str, abi: list[dict]) -> Contract:
        w3 = self.w3(network)
        return w3.eth.contract(address=Web3.to_checksum_address(address), abi=abi)

    @backoff.on_exception(
        backoff.expo,
        (ProviderConnectionError,),
        max_time=30,
        jitter=backoff.full_jitter,
    )
    async def _rpc(self, fn, *args, **kwargs):
        """Throttle + backoff a single RPC."""
        async with self._rpc_sem:
            try:
                return await asyncio.to_thread(fn, *args, **kwargs)
            finally:
                delay = self._rpc_delay + random.random() * self._rpc_jitter
                if delay > 0:
                    await asyncio.sleep(delay)

    async def call(self, fn: Any, *, block_identifier: int | str = "latest") -> Any:
        """Execute a bound contract function, e.g. ``contract.functions.fee()``."""
        return await self._rpc(fn.call, block_identifier=block_identifier)

    async def is_deployed(
        self, network: Network, address: str, block_identifier: int | str = "latest"
    ) -> bool:
        """Return whether contract code exists at ``address`` for the given block."""
        code = await self._rpc(
            self.w3(network).eth.get_code,
            Web3.to_checksum_address(address),
            block_identifier,
        )
        return len(code) > 0

    async def get_block_timestamp(self, network: Network, block_number: int) -> datetime:
        async def _load() -> datetime:
            block = await self._rpc(self.w3(network).eth.get_block, block_number)
            return datetime.fromtimestamp(int(block["timestamp"]), tz=timezone.utc)

        return await cached(
            self._cache, ("block_timestamp", network, block_number), _load
        )

    async def get_block_range(
        self, network: Network, start: datetime, end: datetime
    ) -> tuple[int, int]:
        """Resolve a time window to the nearest (start, end) block heights."""
        start_block, end_block = await asyncio.gather(
            self._block_index.get_nearest_block(network, start),
            self._block_index.get_nearest_block(network, end),
        )
        return start_block, end_block

    async def fetch_events(
        self,
        network: Network,
        contract: Contract,
        event_name: str,
        start: datetime,
        end: datetime,
        argument_filters: dict[str, Any] | None = None,
    ) -> list[EventData]:
        """Fetch ``event_name`` logs emitted by ``contract`` between two instants.

        The window is resolved to block heights through the block index and
        queried in chunks of ``block_chunk_size`` blocks. Results are returned
        in chain order.
        """
        filters = argument_filters or {}
        key = (
            "events",
            network,
            contract.address.lower(),
            event_name,
            start.timestamp(),
            end.timestamp(),
            tuple(sorted((k, str(v).lower()) for k, v in filters.items())),
        )

        async def _load() -> list[EventData]:
            start_block, end_block = await self.get_block_range(network, start, end)
            event = getattr(contract.events, event_name)()
            chunk = self._settings.block_chunk_size

            logs: list[EventData] = []
            current = start_block
            while current <= end_block:
                to_block = min(current + chunk - 1, end_block)
                logs.extend(
                    await self._rpc(
                        event.get_logs,
                        from_block=current,
                        to_block=to_block,
                        argument_filters=filters or None,
                    )
                )
                current = to_block + 1

            logger.debug(
                "Fetched events — network=%s contract=%s event=%s blocks=[%d,%d] found=%d",
                network.value,
                contract.address,
                event_name,
                start_block,
                end_block,
                len(logs),
            )
            return logs

        return await cached(self._cache, key, _load)
