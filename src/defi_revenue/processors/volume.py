"""USD valuation of discrete token movements (swaps, transfers)."""

from __future__ import annotations

from decimal import Decimal, localcontext
from typing import Iterable

from ..clients.price_history import get_token_price
from ..domain import TokenAmountEvent, TokenPrice
from .weighted_average import DECIMAL_PRECISION


def token_volume_usd(
    events: Iterable[TokenAmountEvent], prices: list[TokenPrice]
) -> Decimal:
    """Sum of ``amount / 10**decimals * price_at(timestamp)`` over ``events``.

    Raw amounts stay integers until they are scaled by their decimals, so
    18-decimal balances beyond 2**53 keep every digit.
    """
    with localcontext() as ctx:
        ctx.prec = DECIMAL_PRECISION
        total = Decimal(0)
        for event in events:
            price = get_token_price(prices, event.timestamp)
            total += Decimal(event.amount) * price / Decimal(10) ** event.decimals
        return total


def apply_fee_rate(volume_usd: Decimal, fee: int, fee_decimals: int) -> Decimal:
    """Share of ``volume_usd`` taken by a fee of ``fee / 10**fee_decimals``."""
    with localcontext() as ctx:
        ctx.prec = DECIMAL_PRECISION
        return volume_usd * Decimal(fee) / Decimal(10) ** fee_decimals
