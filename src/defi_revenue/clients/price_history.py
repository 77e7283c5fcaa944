"""Historical USD token prices and point-in-time lookup."""

from __future__ import annotations

import bisect
from datetime import datetime, timezone
from decimal import Decimal

from ..cache import Cache, cached
from ..domain import TokenPrice
from ..errors import DataIntegrityError
from ..logger import get_logger
from .http import HttpClient

logger = get_logger(__name__)


class PriceHistoryClient:
    def __init__(self, http: HttpClient, base_url: str, cache: Cache):
        self._http = http
        self._base_url = base_url
        self._cache = cache

    async def fetch_token_prices(
        self, token_id: str, start: datetime, end: datetime
    ) -> list[TokenPrice]:
        """Fetch the price series of ``token_id`` (``"<network>:<address>"``).

        Samples are returned sorted by ``fetched_at`` ascending.
        """
        start_ms = int(start.timestamp() * 1000)
        end_ms = int(end.timestamp() * 1000)

        async def _load() -> list[TokenPrice]:
            payload = await self._http.get_json(
                self._base_url,
                params={
                    "tokenId": token_id,
                    "startTimestamp": str(start_ms),
                    "endTimestamp": str(end_ms),
                },
            )
            prices = sorted(
                (
                    TokenPrice(
                        price_usd=Decimal(str(item["priceUsd"])),
                        fetched_at=datetime.fromtimestamp(
                            int(item["priceFetchedAt"]) / 1000, tz=timezone.utc
                        ),
                    )
                    for item in payload
                ),
                key=lambda p: p.fetched_at,
            )
            logger.debug(
                "Price history — token=%s samples=%d", token_id, len(prices)
            )
            return prices

        return await cached(
            self._cache, ("token_prices", token_id, start_ms, end_ms), _load
        )


def get_token_price(prices: list[TokenPrice], at: datetime) -> Decimal:
    """Return the price of the last sample at or before ``at``.

    When ``at`` precedes every sample the earliest sample is used, so an event
    just before the first observation is still valued. ``prices`` must be
    sorted by ``fetched_at`` ascending.

    Raises:
        DataIntegrityError: If ``prices`` is empty.
    """
    if not prices:
        raise DataIntegrityError("No token prices available")
    idx = bisect.bisect_right([p.fetched_at for p in prices], at)
    if idx == 0:
        return prices[0].price_usd
    return prices[idx - 1].price_usd
