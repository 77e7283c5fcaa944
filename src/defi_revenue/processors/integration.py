"""Backward time-integration of a balance reconstructed from its change events.

The balance is known only "now" (read live from chain state). Walking events
from most recent to oldest, each event's amount is undone to recover the
balance that was in force before it, and every interval between consecutive
events is weighted by that balance and its length. The integral over the
requested window divided by the window length is the time-weighted mean.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal, localcontext
from functools import reduce
from typing import Callable, Iterable, NamedTuple

from ..domain import TimestampedEvent, Window, to_microseconds
from ..errors import InvalidWindowError
from ..logger import TRACE, get_logger
from .weighted_average import DECIMAL_PRECISION

logger = get_logger(__name__)

# Value of one unit of the tracked quantity over [lo, hi), e.g. an LP token in USD.
PriceWeight = Callable[[datetime, datetime], Decimal]


class _FoldState(NamedTuple):
    cursor: datetime
    value: Decimal
    accumulated: Decimal


def _interval_contribution(
    lo: datetime,
    hi: datetime,
    value: Decimal,
    price_weight: PriceWeight | None,
) -> Decimal:
    if hi <= lo:
        return Decimal(0)
    contribution = to_microseconds(hi - lo) * value
    if price_weight is not None:
        contribution *= price_weight(lo, hi)
    return contribution


def mean_value_over_window(
    current_value: Decimal,
    events: Iterable[TimestampedEvent],
    start: datetime,
    end: datetime,
    now: datetime,
    price_weight: PriceWeight | None = None,
) -> Decimal:
    """Time-weighted mean of a balance over ``[start, end]``.

    Args:
        current_value: Balance observed at ``now``.
        events: Signed balance changes between ``start`` and ``now``, in any
            order; they are sorted newest first here.
        start: Window start.
        end: Window end, not after ``now``.
        now: Instant at which ``current_value`` was observed.
        price_weight: Optional per-interval multiplier, e.g. the time-weighted
            USD value of one unit of the balance over that interval.

    Raises:
        InvalidWindowError: If ``end`` is after ``now``, ``start`` is after
            ``end`` or the window has zero length.
    """
    if end > now:
        raise InvalidWindowError("Cannot have an end timestamp in the future")
    window = Window(start, end)
    duration = window.duration_us
    if duration == 0:
        raise InvalidWindowError("Cannot average over a zero-length window")

    ordered = sorted(events, key=lambda e: e.timestamp, reverse=True)

    def step(state: _FoldState, event: TimestampedEvent) -> _FoldState:
        contribution = _interval_contribution(
            max(event.timestamp, start),
            min(state.cursor, end),
            state.value,
            price_weight,
        )
        return _FoldState(
            cursor=event.timestamp,
            value=state.value - event.amount,
            accumulated=state.accumulated + contribution,
        )

    with localcontext() as ctx:
        ctx.prec = DECIMAL_PRECISION
        final = reduce(
            step, ordered, _FoldState(now, Decimal(current_value), Decimal(0))
        )
        accumulated = final.accumulated + _interval_contribution(
            start, min(final.cursor, end), final.value, price_weight
        )
        mean = accumulated / duration

    logger.log(
        TRACE,
        "Integrated %d events over [%s, %s] — mean=%s",
        len(ordered),
        start.isoformat(),
        end.isoformat(),
        mean,
    )
    return mean


def reconstruct_balance(
    current_value: Decimal, events: Iterable[TimestampedEvent], at: datetime
) -> Decimal:
    """Balance in force at ``at``: the current balance minus every later change."""
    return current_value - sum(
        (e.amount for e in events if e.timestamp > at), Decimal(0)
    )
