"""Beefy databarn API: investor timelines and vault TVL history."""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from ..cache import Cache, cached
from ..constants import ONE_WEEK
from ..logger import get_logger
from .http import HttpClient

logger = get_logger(__name__)


def parse_datetime(value: str) -> datetime:
    """Parse an ISO-8601 timestamp as returned by the databarn API."""
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _iso(when: datetime) -> str:
    return when.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"


class BeefyClient:
    def __init__(self, http: HttpClient, base_url: str, cache: Cache):
        self._http = http
        self._base_url = base_url.rstrip("/")
        self._cache = cache

    async def fetch_investor_timeline(self, address: str) -> list[dict[str, Any]]:
        """All Beefy transactions of ``address``; an unknown investor yields []."""
        payload = await self._http.get_json(
            f"{self._base_url}/timeline",
            params={"address": address},
            allow_404=True,
        )
        return payload or []

    async def fetch_vault_tvl_history(
        self, beefy_chain: str, vault_address: str, start: datetime, end: datetime
    ) -> list[tuple[datetime, Decimal]]:
        """Vault TVL snapshots (15-minute cadence) over ``[start, end]``.

        The endpoint serves at most one week per call, so the window is split
        into week-long spans.
        """

        async def _load() -> list[tuple[datetime, Decimal]]:
            spans: list[tuple[datetime, datetime]] = []
            section_start = start
            while section_start < end:
                section_end = min(section_start + ONE_WEEK, end)
                spans.append((section_start, section_end))
                section_start = section_end

            history: list[tuple[datetime, Decimal]] = []
            for t1, t2 in spans:
                payload = await self._http.get_json(
                    f"{self._base_url}/product/{beefy_chain}/{vault_address}/tvl",
                    params={"from_date_utc": _iso(t1), "to_date_utc": _iso(t2)},
                )
                history.extend(
                    (parse_datetime(ts), Decimal(str(value))) for ts, value in payload
                )
            logger.debug(
                "Beefy TVL history — vault=%s chain=%s spans=%d points=%d",
                vault_address,
                beefy_chain,
                len(spans),
                len(history),
            )
            return sorted(history, key=lambda point: point[0])

        return await cached(
            self._cache,
            ("beefy_tvl", beefy_chain, vault_address.lower(), start, end),
            _load,
        )
