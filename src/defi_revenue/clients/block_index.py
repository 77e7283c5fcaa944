"""Nearest-block lookups against the DefiLlama block-timestamp index."""

from __future__ import annotations

from datetime import datetime

from ..cache import Cache, cached
from ..constants import DEFILLAMA_CHAINS
from ..logger import get_logger
from ..settings import Network
from .http import HttpClient

logger = get_logger(__name__)


class BlockIndexClient:
    def __init__(self, http: HttpClient, base_url: str, cache: Cache):
        self._http = http
        self._base_url = base_url.rstrip("/")
        self._cache = cache

    async def get_nearest_block(self, network: Network, when: datetime) -> int:
        """Return the height of the block nearest to ``when`` on ``network``."""
        chain = DEFILLAMA_CHAINS.get(network)
        if chain is None:
            raise ValueError(f"Block index does not cover network {network.value}")
        unix = int(when.timestamp())

        async def _load() -> int:
            payload = await self._http.get_json(f"{self._base_url}/block/{chain}/{unix}")
            height = int(payload["height"])
            logger.debug(
                "Nearest block — network=%s unix=%d height=%d", network.value, unix, height
            )
            return height

        return await cached(self._cache, ("nearest_block", network, unix), _load)
