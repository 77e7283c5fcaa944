from datetime import datetime, timedelta, timezone
from decimal import Decimal
from types import SimpleNamespace

import pytest

from defi_revenue.adapters.revenue_adapters.drome import DromeRevenueAdapter
from defi_revenue.domain import TokenPrice
from defi_revenue.errors import InvalidAddressError, InvalidWindowError
from defi_revenue.protocols import DromeProtocol, Protocol
from defi_revenue.settings import Network

T0 = datetime(2024, 6, 1, tzinfo=timezone.utc)
USER = "0x1111111111111111111111111111111111111111"
OTHER = "0x9999999999999999999999999999999999999999"
POOL = "0x00000000000000000000000000000000000000a1"
TOKEN0 = "0x00000000000000000000000000000000000000b2"


class FakeCall:
    def __init__(self, value):
        self.value = value


class FakeChain:
    def __init__(self, contracts, logs, timestamps):
        self.contracts = contracts
        self.logs = logs
        self.timestamps = timestamps
        self.event_queries = []

    def contract(self, network, address, abi):
        values = self.contracts[address.lower()]
        functions = SimpleNamespace(
            **{name: (lambda *args, _v=v: FakeCall(_v)) for name, v in values.items()}
        )
        return SimpleNamespace(address=address, functions=functions)

    async def call(self, fn, *, block_identifier="latest"):
        return fn.value

    async def fetch_events(self, network, contract, event_name, start, end, argument_filters=None):
        self.event_queries.append((network, contract.address, event_name))
        return self.logs.get(contract.address.lower(), [])

    async def get_block_timestamp(self, network, block_number):
        return self.timestamps[block_number]


class FakePrices:
    def __init__(self, prices):
        self.prices = prices
        self.requests = []

    async def fetch_token_prices(self, token_id, start, end):
        self.requests.append((token_id, start, end))
        return self.prices


def swap(recipient, amount0, block):
    return {
        "args": {"recipient": recipient, "amount0": amount0, "amount1": -amount0},
        "blockNumber": block,
    }


@pytest.fixture
def config():
    return DromeProtocol(
        protocol=Protocol.AERODROME,
        network=Network.BASE,
        pool_addresses=(POOL,),
        router_address="0x6Cb442acF35158D5eDa88fe602221b67B400Be3E",
    )


@pytest.fixture
def services():
    chain = FakeChain(
        contracts={
            POOL: {"token0": TOKEN0, "fee": 10_000},
            TOKEN0: {"decimals": 8},
        },
        logs={
            POOL: [
                swap(USER, -200_000_000, 1),
                swap(OTHER, 999_000_000, 2),
                swap(USER.upper().replace("0X", "0x"), 300_000_000, 3),
            ]
        },
        timestamps={
            1: T0 + timedelta(hours=1),
            2: T0 + timedelta(hours=2),
            3: T0 + timedelta(hours=3),
        },
    )
    prices = FakePrices(
        [
            TokenPrice(Decimal("3"), T0 + timedelta(minutes=59)),
            TokenPrice(Decimal("5"), T0 + timedelta(hours=2, minutes=59)),
        ]
    )
    return SimpleNamespace(chain=chain, prices=prices)


@pytest.mark.asyncio
async def test_swap_events_filtered_to_recipient(config, services):
    adapter = DromeRevenueAdapter(services, config)

    events = await adapter.get_swap_events(POOL, USER, T0, T0 + timedelta(days=1))

    assert [e.amount for e in events] == [200_000_000, 300_000_000]
    assert all(e.decimals == 8 for e in events)
    assert events[0].token_id == f"base-mainnet:{TOKEN0}"
    assert events[0].timestamp < events[1].timestamp


@pytest.mark.asyncio
async def test_revenue_is_volume_times_fee_rate(config, services):
    adapter = DromeRevenueAdapter(services, config)

    revenue = await adapter.calculate_revenue(USER, T0, T0 + timedelta(days=1))

    # 2 tokens at $3 plus 3 tokens at $5, times a 1% fee
    assert revenue == Decimal("0.21")
    token_id, start, end = services.prices.requests[0]
    assert token_id == f"base-mainnet:{TOKEN0}"
    assert (start, end) == (T0 + timedelta(hours=1), T0 + timedelta(hours=3))


@pytest.mark.asyncio
async def test_no_swaps_means_zero_revenue(config, services):
    adapter = DromeRevenueAdapter(services, config)

    revenue = await adapter.calculate_revenue(
        "0x2222222222222222222222222222222222222222", T0, T0 + timedelta(days=1)
    )

    assert revenue == Decimal(0)
    assert services.prices.requests == []


@pytest.mark.asyncio
async def test_invalid_address_rejected(config, services):
    adapter = DromeRevenueAdapter(services, config)

    with pytest.raises(InvalidAddressError):
        await adapter.calculate_revenue("not-an-address", T0, T0 + timedelta(days=1))


@pytest.mark.asyncio
async def test_inverted_window_rejected(config, services):
    adapter = DromeRevenueAdapter(services, config)

    with pytest.raises(InvalidWindowError):
        await adapter.calculate_revenue(USER, T0 + timedelta(days=1), T0)


def test_adapter_name(config, services):
    assert DromeRevenueAdapter(services, config).adapter_name == "aerodrome"
