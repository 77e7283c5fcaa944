from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from defi_revenue.domain import TokenAmountEvent, TokenPrice
from defi_revenue.errors import DataIntegrityError
from defi_revenue.processors.volume import apply_fee_rate, token_volume_usd

T0 = datetime(2024, 6, 1, tzinfo=timezone.utc)


def test_volume_uses_price_in_force_at_each_event():
    events = [
        TokenAmountEvent(200_000_000, 8, "base-mainnet:0xtoken", T0 + timedelta(hours=1)),
        TokenAmountEvent(300_000_000, 8, "base-mainnet:0xtoken", T0 + timedelta(hours=3)),
    ]
    prices = [
        TokenPrice(Decimal("3"), T0 + timedelta(minutes=59)),
        TokenPrice(Decimal("5"), T0 + timedelta(hours=2, minutes=59)),
    ]

    assert token_volume_usd(events, prices) == Decimal("21")


def test_large_amounts_keep_precision():
    amount = 123_456_789_012_345_678_901_234_567
    events = [TokenAmountEvent(amount, 18, "t", T0)]
    prices = [TokenPrice(Decimal("1"), T0)]

    assert token_volume_usd(events, prices) == Decimal("123456789.012345678901234567")


def test_no_prices_raises():
    events = [TokenAmountEvent(1, 0, "t", T0)]

    with pytest.raises(DataIntegrityError):
        token_volume_usd(events, [])


def test_apply_fee_rate():
    assert apply_fee_rate(Decimal("21"), 10_000, 6) == Decimal("0.21")
    assert apply_fee_rate(Decimal("100"), 3_000, 6) == Decimal("0.3")
