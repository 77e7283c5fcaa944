"""Base class for referral eligibility filters."""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from ...clients.indexer import IndexerClient, Query, QueryResponse, paginate_query, to_int
from ...domain import ReferralEvent
from ...logger import get_logger

if TYPE_CHECKING:
    from ...services import Services

logger = get_logger(__name__)


def referral_time(event: ReferralEvent) -> datetime:
    return datetime.fromtimestamp(event.timestamp, tz=timezone.utc)


async def first_activity_block(indexer: IndexerClient, query: Query) -> int | None:
    """Block number of the earliest log or transaction matched by ``query``.

    Pagination stops at the first page holding a match.
    """
    first: int | None = None

    async def on_page(response: QueryResponse) -> bool:
        nonlocal first
        numbers = [
            to_int(item["block_number"])
            for item in (*response.data.logs, *response.data.transactions)
            if item.get("block_number") is not None
        ]
        if not numbers:
            return False
        first = min(numbers)
        return True

    await paginate_query(indexer, query, on_page)
    return first


class BaseReferralFilter(ABC):
    """Decides whether a registered referral counts.

    A referral is eligible when the user has qualifying activity and none of
    it predates the registration.
    """

    def __init__(self, services: Services):
        self.services = services

    @property
    @abstractmethod
    def filter_name(self) -> str:
        """Return the name of this filter."""
        ...

    async def prepare(self) -> None:
        """Load data shared by every referral (vault lists, payout wallets).

        Awaited once by :meth:`filter_events` before the per-referral checks
        run concurrently.
        """

    @abstractmethod
    async def is_eligible(self, event: ReferralEvent) -> bool:
        """Execute the eligibility check for one referral."""
        ...

    async def filter_events(self, events: list[ReferralEvent]) -> list[ReferralEvent]:
        """Keep the eligible events, preserving input order."""
        await self.prepare()
        verdicts = await asyncio.gather(*(self.is_eligible(e) for e in events))
        kept = [event for event, ok in zip(events, verdicts) if ok]
        logger.info(
            "%s filter kept %d of %d referrals",
            self.filter_name,
            len(kept),
            len(events),
        )
        return kept
