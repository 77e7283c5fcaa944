from datetime import datetime, timedelta, timezone
from decimal import Decimal
from types import SimpleNamespace

import pytest

from defi_revenue.adapters.revenue_adapters.fonbnk import (
    FonbnkRevenueAdapter,
    get_payout_wallets_by_network,
    payout_transfer_query,
)
from defi_revenue.clients.fonbnk import FonbnkAsset
from defi_revenue.clients.indexer import QueryData, QueryResponse
from defi_revenue.constants import ERC20_TRANSFER_TOPIC
from defi_revenue.domain import TokenPrice
from defi_revenue.protocols import FonbnkProtocol
from defi_revenue.settings import Network

T0 = datetime(2024, 6, 1, tzinfo=timezone.utc)
USER = "0x1111111111111111111111111111111111111111"
WALLET = "0x00000000000000000000000000000000000000aa"
CUSD = "0x765de816845861e75a25fca122bb6898b8b1282a"


class FakeFonbnk:
    async def get_assets(self):
        return [
            FonbnkAsset(network="CELO", asset="CUSD"),
            FonbnkAsset(network="CELO", asset="USDC"),
            FonbnkAsset(network="SOLANA", asset="USDC"),
        ]

    async def get_payout_wallets(self, network, asset):
        return [WALLET.upper().replace("0X", "0x")] if asset == "CUSD" else [WALLET]


class ScriptedIndexer:
    def __init__(self, logs):
        self.logs = logs
        self.queries = []

    async def get(self, query):
        self.queries.append(query)
        return QueryResponse(data=QueryData(logs=self.logs), next_block=query.to_block)


class FakeCall:
    def __init__(self, value):
        self.value = value


class FakeChain:
    def __init__(self):
        self.timestamps = {
            101: T0 + timedelta(hours=1),
            102: T0 + timedelta(hours=2),
            150: T0 + timedelta(days=2),
        }

    async def get_block_range(self, network, start, end):
        return 100, 200

    async def get_block_timestamp(self, network, block_number):
        return self.timestamps[block_number]

    def contract(self, network, address, abi):
        return SimpleNamespace(
            address=address, functions=SimpleNamespace(decimals=lambda: FakeCall(18))
        )

    async def call(self, fn, *, block_identifier="latest"):
        return fn.value


class FakePrices:
    def __init__(self):
        self.requests = []

    async def fetch_token_prices(self, token_id, start, end):
        self.requests.append(token_id)
        return [TokenPrice(Decimal("1.5"), T0)]


def transfer(block, amount, token=CUSD):
    return {"block_number": block, "address": token, "data": hex(amount)}


@pytest.mark.asyncio
async def test_payout_wallets_grouped_by_supported_network():
    wallets = await get_payout_wallets_by_network(FakeFonbnk())

    assert wallets == {Network.CELO: {WALLET}}


def test_transfer_query_filters_sender_and_recipient():
    query = payout_transfer_query(WALLET, USER, ["block_number"], 10, 20)

    topics = query.logs[0]["topics"]
    assert topics[0] == [ERC20_TRANSFER_TOPIC]
    assert topics[1] == ["0x" + "0" * 24 + WALLET[2:]]
    assert topics[2] == ["0x" + "0" * 24 + USER[2:]]
    assert (query.from_block, query.to_block) == (10, 20)


@pytest.mark.asyncio
async def test_revenue_is_usd_volume_of_window_transfers():
    indexer = ScriptedIndexer(
        [
            transfer(101, 2 * 10**18),
            transfer(102, 10**18),
            transfer(150, 5 * 10**18),  # after the window
            {"block_number": 103, "address": CUSD},  # no data
        ]
    )
    services = SimpleNamespace(
        fonbnk=FakeFonbnk(),
        chain=FakeChain(),
        prices=FakePrices(),
        indexer=lambda network: indexer,
    )
    adapter = FonbnkRevenueAdapter(services, FonbnkProtocol())

    revenue = await adapter.calculate_revenue(USER, T0, T0 + timedelta(days=1))

    assert revenue == Decimal("4.5")
    assert services.prices.requests == [f"celo-mainnet:{CUSD}"]
    query = indexer.queries[0]
    assert (query.from_block, query.to_block) == (100, 201)


@pytest.mark.asyncio
async def test_no_transfers_is_zero():
    services = SimpleNamespace(
        fonbnk=FakeFonbnk(),
        chain=FakeChain(),
        prices=FakePrices(),
        indexer=lambda network: ScriptedIndexer([]),
    )
    adapter = FonbnkRevenueAdapter(services, FonbnkProtocol())

    assert await adapter.calculate_revenue(USER, T0, T0 + timedelta(days=1)) == 0
    assert services.prices.requests == []
