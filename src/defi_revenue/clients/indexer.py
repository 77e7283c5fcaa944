"""Event/transaction indexer client and the block-range pagination executor.

The indexer speaks the HyperSync JSON query API: a query names a block range,
log and transaction filters, and the fields to return. Each answer carries a
``next_block`` cursor; callers page through a range with :func:`paginate_query`.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Awaitable, Callable, Protocol

from ..constants import CHAIN_IDS
from ..logger import TRACE, get_logger
from ..settings import Network, RevenueSettings
from .http import HttpClient

logger = get_logger(__name__)


@dataclass(frozen=True)
class Query:
    """Indexer query descriptor.

    ``logs`` and ``transactions`` hold selection dicts in the indexer's wire
    shape, e.g. ``{"address": [...], "topics": [[...]]}`` or
    ``{"from": [...], "to": [...]}``.
    ``to_block`` is exclusive, as on the indexer itself.
    """

    from_block: int
    to_block: int | None = None
    logs: list[dict[str, Any]] = field(default_factory=list)
    transactions: list[dict[str, Any]] = field(default_factory=list)
    field_selection: dict[str, list[str]] = field(default_factory=dict)

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"from_block": self.from_block}
        if self.to_block is not None:
            payload["to_block"] = self.to_block
        if self.logs:
            payload["logs"] = self.logs
        if self.transactions:
            payload["transactions"] = self.transactions
        if self.field_selection:
            payload["field_selection"] = self.field_selection
        return payload


@dataclass
class QueryData:
    blocks: list[dict[str, Any]] = field(default_factory=list)
    transactions: list[dict[str, Any]] = field(default_factory=list)
    logs: list[dict[str, Any]] = field(default_factory=list)


@dataclass
class QueryResponse:
    data: QueryData
    next_block: int


class IndexerClient(Protocol):
    """Capability: run one indexer query and return one page."""

    async def get(self, query: Query) -> QueryResponse: ...


PageHandler = Callable[[QueryResponse], Awaitable[bool | None]]


async def paginate_query(
    client: IndexerClient, query: Query, on_page: PageHandler
) -> None:
    """Drive ``client.get`` across the query's block range.

    ``on_page`` is awaited with every response; returning a truthy value stops
    pagination immediately. Otherwise pagination stops when the indexer makes
    no progress (``next_block`` equals the current ``from_block``) or when the
    advanced cursor reaches ``query.to_block``. Backend errors propagate.
    """
    from_block = query.from_block
    pages = 0
    while True:
        response = await client.get(replace(query, from_block=from_block))
        pages += 1
        logger.log(
            TRACE,
            "Indexer page %d — from_block=%d next_block=%d logs=%d txs=%d",
            pages,
            from_block,
            response.next_block,
            len(response.data.logs),
            len(response.data.transactions),
        )

        if await on_page(response):
            return
        if response.next_block == from_block:
            return
        from_block = response.next_block
        if query.to_block is not None and from_block >= query.to_block:
            return


def to_int(value: Any) -> int:
    """Decode an indexer quantity, which may arrive as int, decimal or hex string."""
    if value is None:
        return 0
    if isinstance(value, int):
        return value
    text = str(value)
    if text.startswith(("0x", "0X")):
        return int(text, 16)
    return int(text)


def pad_address_topic(address: str) -> str:
    """Left-pad a 20-byte address to a 32-byte log topic."""
    return "0x" + address.lower().removeprefix("0x").rjust(64, "0")


class HyperSyncClient:
    """Indexer client for one network."""

    def __init__(
        self,
        http: HttpClient,
        url: str,
        *,
        api_token: str | None = None,
    ):
        self._http = http
        self.url = url.rstrip("/")
        self._headers = {"Authorization": f"Bearer {api_token}"} if api_token else None

    async def get(self, query: Query) -> QueryResponse:
        raw = await self._http.post_json(
            f"{self.url}/query", query.to_payload(), headers=self._headers
        )
        return self._parse_response(raw, query.from_block)

    @staticmethod
    def _parse_response(raw: dict[str, Any], from_block: int) -> QueryResponse:
        data = QueryData()
        batches = raw.get("data") or []
        if isinstance(batches, dict):
            batches = [batches]
        for batch in batches:
            data.blocks.extend(batch.get("blocks") or [])
            data.transactions.extend(batch.get("transactions") or [])
            data.logs.extend(batch.get("logs") or [])
        return QueryResponse(
            data=data, next_block=to_int(raw.get("next_block", from_block))
        )


def build_indexer(
    settings: RevenueSettings, http: HttpClient, network: Network
) -> HyperSyncClient:
    """Build the indexer client for ``network`` from settings."""
    url = settings.hypersync_url_template.format(chain_id=CHAIN_IDS[network])
    return HyperSyncClient(
        http, url, api_token=settings.secret_value("hypersync_api_token")
    )

