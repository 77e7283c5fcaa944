from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Iterable

from ...clients.indexer import IndexerClient, Query, QueryResponse, paginate_query, to_int
from ...domain import Window
from ...logger import get_logger
from ...protocols import GasFeeProtocol
from .base import BaseRevenueAdapter, validate_address

if TYPE_CHECKING:
    from ...services import Services

logger = get_logger(__name__)


async def fetch_total_transaction_fees(
    indexer: IndexerClient,
    users: Iterable[str],
    start_block: int = 0,
    end_block: int | None = None,
) -> int:
    """Sum ``gas_used * gas_price`` (wei) over transactions sent by ``users``.

    ``end_block`` is inclusive; ``None`` scans to the chain head.
    """
    query = Query(
        from_block=start_block,
        # the indexer treats to_block as exclusive
        to_block=end_block + 1 if end_block is not None else None,
        transactions=[{"from": [u.lower() for u in users]}],
        field_selection={"transaction": ["gas_used", "gas_price"]},
    )
    total = 0

    async def on_page(response: QueryResponse) -> None:
        nonlocal total
        for tx in response.data.transactions:
            total += to_int(tx.get("gas_used")) * to_int(tx.get("gas_price"))

    await paginate_query(indexer, query, on_page)
    return total


class GasFeeRevenueAdapter(BaseRevenueAdapter):
    """Gas paid by the user's transactions on a chain, in wei."""

    def __init__(self, services: Services, config: GasFeeProtocol):
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
        network = self.config.network

        start_block, end_block = await self.services.chain.get_block_range(
            network, start, end
        )
        total_wei = await fetch_total_transaction_fees(
            self.services.indexer(network), [user], start_block, end_block
        )
        logger.info(
            "%s gas fees — user=%s blocks=[%d,%d] wei=%d",
            self.adapter_name,
            user,
            start_block,
            end_block,
            total_wei,
        )
        return Decimal(total_wei)
