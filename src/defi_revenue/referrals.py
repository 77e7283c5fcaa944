"""Referral registry reads, de-duplication and eligibility filtering."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from .abi import load_registry_abi
from .adapters.referral_filters import build_referral_filter
from .clients.chain import ChainReader
from .domain import ReferralEvent
from .logger import get_logger
from .protocols import Protocol, get_protocol_config
from .settings import Network

if TYPE_CHECKING:
    from .services import Services

logger = get_logger(__name__)


def registry_key(protocol: Protocol) -> str:
    """Protocol identifier as stored in the registry, e.g. ``Beefy``."""
    return protocol.value.capitalize()


def remove_duplicates(events: list[ReferralEvent]) -> list[ReferralEvent]:
    """Keep only the earliest referral per user (addresses compared case-insensitively).

    Output order follows the first appearance of each user in ``events``.
    """
    earliest: dict[str, ReferralEvent] = {}
    for event in events:
        key = event.user_address.lower()
        existing = earliest.get(key)
        if existing is None or event.timestamp < existing.timestamp:
            earliest[key] = event
    return list(earliest.values())


async def fetch_referral_events(
    chain: ChainReader,
    registry_addresses: dict[Network, str],
    networks: list[Network],
    protocol: Protocol,
    referrers: list[str] | None = None,
) -> list[ReferralEvent]:
    """Read every registered referral for ``protocol`` on ``networks``.

    Networks without a configured registry are skipped. With ``referrers``
    only those referrer IDs are read instead of the registry's full list.
    """
    key = registry_key(protocol)

    async def _network_events(network: Network) -> list[ReferralEvent]:
        registry = chain.contract(
            network, registry_addresses[network], load_registry_abi()
        )
        if referrers:
            network_referrers = list(referrers)
        else:
            network_referrers = await chain.call(registry.functions.getReferrers(key))

        async def _referrer_events(referrer: str) -> list[ReferralEvent]:
            users, timestamps = await chain.call(
                registry.functions.getUsers(key, referrer)
            )
            return [
                ReferralEvent(
                    protocol=protocol.value,
                    user_address=user,
                    referrer_id=referrer,
                    timestamp=int(ts),
                )
                for user, ts in zip(users, timestamps)
            ]

        per_referrer = await asyncio.gather(
            *(_referrer_events(r) for r in network_referrers)
        )
        events = [e for batch in per_referrer for e in batch]
        logger.info(
            "Registry %s — network=%s referrers=%d referrals=%d",
            key,
            network.value,
            len(network_referrers),
            len(events),
        )
        return events

    configured = [n for n in networks if n in registry_addresses]
    skipped = [n.value for n in networks if n not in registry_addresses]
    if skipped:
        logger.debug("No registry configured for networks: %s", ", ".join(skipped))

    per_network = await asyncio.gather(*(_network_events(n) for n in configured))
    return [e for batch in per_network for e in batch]


async def filter_events(
    services: Services, protocol: Protocol, events: list[ReferralEvent]
) -> list[ReferralEvent]:
    """Keep the referrals whose user passes the protocol's eligibility filter."""
    referral_filter = build_referral_filter(get_protocol_config(protocol), services)
    return await referral_filter.filter_events(events)


def count_by_referrer(
    events: list[ReferralEvent], referrers: list[str] | None = None
) -> dict[str, int]:
    """Number of referrals per referrer ID.

    IDs in ``referrers`` are listed first, with a zero count when they have no
    referrals; other referrers follow in order of first appearance.
    """
    counts: dict[str, int] = dict.fromkeys(referrers or [], 0)
    for event in events:
        counts[event.referrer_id] = counts.get(event.referrer_id, 0) + 1
    return counts
