"""Time-weighted averaging of periodic value snapshots."""

from __future__ import annotations

from datetime import datetime, timedelta
from decimal import Decimal, localcontext
from typing import Protocol, Sequence

from ..constants import ONE_DAY
from ..domain import DailySnapshot, to_microseconds
from ..errors import DataIntegrityError, InvalidWindowError

DECIMAL_PRECISION = 50


class ValueSnapshot(Protocol):
    @property
    def timestamp(self) -> datetime: ...

    @property
    def value(self) -> Decimal: ...


def calculate_weighted_average(
    snapshots: Sequence[ValueSnapshot],
    start: datetime,
    end: datetime,
    validity: timedelta = ONE_DAY,
) -> Decimal:
    """Average snapshot values over ``[start, end]`` weighted by overlap time.

    Each snapshot holds its value for ``validity`` after its timestamp. A
    snapshot contributes ``overlap * value`` where overlap is the length of
    the intersection of its validity interval with the window.

    Raises:
        InvalidWindowError: If ``start`` is after ``end``.
        DataIntegrityError: If no snapshots are given or none overlaps the window.
    """
    if start > end:
        raise InvalidWindowError("Invalid timestamps provided: start is after end")
    if not snapshots:
        raise DataIntegrityError("No snapshots provided")

    with localcontext() as ctx:
        ctx.prec = DECIMAL_PRECISION
        weighted_sum = Decimal(0)
        total_weight = 0
        for snapshot in snapshots:
            lo = max(snapshot.timestamp, start)
            hi = min(snapshot.timestamp + validity, end)
            if hi <= lo:
                continue
            weight = to_microseconds(hi - lo)
            weighted_sum += weight * snapshot.value
            total_weight += weight

        if total_weight == 0:
            raise DataIntegrityError("No snapshots in range")
        return weighted_sum / total_weight


def validate_daily_snapshots(
    snapshots: Sequence[DailySnapshot], start: datetime, end: datetime
) -> list[DailySnapshot]:
    """Sort daily snapshots and check they cover ``[start, end]`` without gaps.

    Returns:
        The snapshots sorted by timestamp ascending.

    Raises:
        DataIntegrityError: If the series is empty, starts after ``start``,
            ends more than a day before ``end`` or misses a day.
    """
    if not snapshots:
        raise DataIntegrityError("No snapshots returned")
    ordered = sorted(snapshots, key=lambda s: s.timestamp)
    first, last = ordered[0].timestamp, ordered[-1].timestamp

    if start < first:
        raise DataIntegrityError("Start time is before the first snapshot")
    if end > last + ONE_DAY:
        raise DataIntegrityError("End time is after the last snapshot")

    span = last - first
    if span % ONE_DAY or len(ordered) != span // ONE_DAY + 1:
        raise DataIntegrityError(
            f"Missing snapshots: expected a daily series from {first.isoformat()} "
            f"to {last.isoformat()}, got {len(ordered)} entries"
        )
    return ordered
