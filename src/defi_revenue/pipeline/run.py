"""High-level pipeline orchestration."""

from __future__ import annotations

from datetime import datetime

from ..adapters.revenue_adapters import RevenueResult, build_revenue_adapter
from ..domain import ReferralEvent, Window
from ..protocols import Protocol, get_protocol_config
from ..referrals import (
    count_by_referrer,
    fetch_referral_events,
    filter_events,
    remove_duplicates,
)
from ..services import build_services
from ..settings import Network
from ..state import AppState


async def run_revenue(
    state: AppState,
    protocol: Protocol,
    addresses: list[str],
    start: datetime,
    end: datetime,
) -> list[tuple[str, RevenueResult]]:
    """Compute revenue for every address, one address at a time.

    Each adapter fans out its own remote calls; addresses are processed in
    order so progress can be followed in the log.
    """
    log = state.logger
    Window(start, end)
    services = build_services(state)
    adapter = build_revenue_adapter(get_protocol_config(protocol), services)

    log.info(
        "Starting revenue calculation — protocol=%s addresses=%d window=[%s, %s]",
        adapter.adapter_name,
        len(addresses),
        start.isoformat(),
        end.isoformat(),
    )
    results: list[tuple[str, RevenueResult]] = []
    for i, address in enumerate(addresses, start=1):
        log.info("Calculating revenue for %s (%d/%d)", address, i, len(addresses))
        results.append((address, await adapter.calculate_revenue(address, start, end)))
    log.info("Revenue calculation completed — protocol=%s", adapter.adapter_name)
    return results


async def run_fetch_referrals(
    state: AppState,
    protocol: Protocol,
    networks: list[Network],
    *,
    apply_filter: bool = True,
) -> list[ReferralEvent]:
    """Read, de-duplicate and optionally filter the registry's referrals."""
    services = build_services(state)
    events = await fetch_referral_events(
        services.chain, state.settings.registry_addresses, networks, protocol
    )
    unique = remove_duplicates(events)
    state.logger.info(
        "Fetched %d referrals, %d unique users", len(events), len(unique)
    )
    if not apply_filter:
        return unique
    return await filter_events(services, protocol, unique)


async def run_filter(
    state: AppState, protocol: Protocol, events: list[ReferralEvent]
) -> list[ReferralEvent]:
    """Keep the referrals that pass the protocol's eligibility filter."""
    services = build_services(state)
    return await filter_events(services, protocol, events)


async def run_referrer_user_count(
    state: AppState,
    protocol: Protocol,
    networks: list[Network],
    referrers: list[str] | None = None,
) -> dict[str, int]:
    """Count eligible, de-duplicated referrals per referrer."""
    services = build_services(state)
    events = await fetch_referral_events(
        services.chain,
        state.settings.registry_addresses,
        networks,
        protocol,
        referrers,
    )
    eligible = await filter_events(services, protocol, remove_duplicates(events))
    counts = count_by_referrer(eligible, referrers)
    state.logger.info(
        "Counted %d eligible referrals across %d referrers", len(eligible), len(counts)
    )
    return counts
