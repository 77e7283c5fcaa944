"""Domain models for revenue calculation and referral filtering."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from ..errors import InvalidWindowError


@dataclass(frozen=True, slots=True)
class Window:
    """Closed time window ``[start, end]``."""

    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        if self.start > self.end:
            raise InvalidWindowError(
                f"Window start {self.start.isoformat()} is after end {self.end.isoformat()}"
            )

    @property
    def duration_us(self) -> int:
        return to_microseconds(self.end - self.start)


@dataclass(frozen=True, slots=True)
class TimestampedEvent:
    """A signed step change to a tracked magnitude (shares deposited or withdrawn)."""

    amount: Decimal
    timestamp: datetime


@dataclass(frozen=True, slots=True)
class TokenPrice:
    """USD price sample for a token."""

    price_usd: Decimal
    fetched_at: datetime


@dataclass(frozen=True, slots=True)
class DailySnapshot:
    """One day of vault analytics, valid for 24h after ``timestamp``."""

    timestamp: datetime
    price_usd: Decimal
    share_price: Decimal

    @property
    def value(self) -> Decimal:
        """USD value of one LP token."""
        return self.price_usd / self.share_price


@dataclass(frozen=True, slots=True)
class TokenAmountEvent:
    """A raw token amount moved at an instant (a swap leg or a transfer)."""

    amount: int  # in native units
    decimals: int
    token_id: str  # "<network>:<token address>"
    timestamp: datetime


@dataclass(frozen=True, slots=True)
class ReferralEvent:
    """A user registered in the on-chain referral registry."""

    protocol: str
    user_address: str
    referrer_id: str
    timestamp: int  # unix seconds


@dataclass(frozen=True, slots=True)
class BalanceSnapshot:
    """Scaled aToken balance observed at a liquidity index."""

    scaled_balance: int
    liquidity_index: int
    timestamp: datetime


@dataclass(frozen=True, slots=True)
class ReserveFactor:
    """Reserve factor (basis points) in force from ``timestamp`` onward."""

    reserve_factor: int
    timestamp: datetime


@dataclass(frozen=True, slots=True)
class ReserveData:
    """Aave reserve state at a given block."""

    reserve_token_address: str
    reserve_token_decimals: int
    a_token_address: str
    liquidity_index: int
    reserve_factor: int


def to_microseconds(delta) -> int:
    """Convert a ``timedelta`` into whole microseconds."""
    return (delta.days * 86_400 + delta.seconds) * 1_000_000 + delta.microseconds
