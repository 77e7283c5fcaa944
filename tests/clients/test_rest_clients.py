from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from defi_revenue.cache import MemoryCache, NullCache
from defi_revenue.clients.beefy import BeefyClient, parse_datetime
from defi_revenue.clients.block_index import BlockIndexClient
from defi_revenue.clients.subgraph import SubgraphClient
from defi_revenue.errors import UpstreamError
from defi_revenue.settings import Network

T0 = datetime(2024, 6, 1, tzinfo=timezone.utc)


class RecordingHttp:
    def __init__(self, answers):
        self.answers = list(answers)
        self.gets = []
        self.posts = []

    async def get_json(self, url, *, params=None, headers=None, allow_404=False):
        self.gets.append((url, params, allow_404))
        return self.answers.pop(0)

    async def post_json(self, url, payload, *, headers=None):
        self.posts.append((url, payload, headers))
        return self.answers.pop(0)


@pytest.mark.asyncio
async def test_nearest_block_lookup_and_memoization():
    http = RecordingHttp([{"height": 123, "timestamp": 1}])
    client = BlockIndexClient(http, "https://coins.llama.fi/", MemoryCache())

    first = await client.get_nearest_block(Network.ARBITRUM, T0)
    second = await client.get_nearest_block(Network.ARBITRUM, T0)

    assert first == second == 123
    assert http.gets == [
        (f"https://coins.llama.fi/block/arbitrum/{int(T0.timestamp())}", None, False)
    ]


@pytest.mark.asyncio
async def test_beefy_timeline_404_means_no_transactions():
    http = RecordingHttp([None])
    client = BeefyClient(http, "https://databarn.test/api", NullCache())

    assert await client.fetch_investor_timeline("0xabc") == []
    url, params, allow_404 = http.gets[0]
    assert url == "https://databarn.test/api/timeline"
    assert params == {"address": "0xabc"}
    assert allow_404 is True


@pytest.mark.asyncio
async def test_beefy_tvl_history_is_chunked_by_week():
    http = RecordingHttp(
        [
            [["2024-06-08T00:00:00.000Z", "200"], ["2024-06-01T00:00:00.000Z", "100"]],
            [["2024-06-09T00:00:00.000Z", 300]],
        ]
    )
    client = BeefyClient(http, "https://databarn.test/api", NullCache())

    history = await client.fetch_vault_tvl_history(
        "base", "0xVault", T0, T0 + timedelta(days=10)
    )

    assert len(http.gets) == 2
    assert http.gets[0][1] == {
        "from_date_utc": "2024-06-01T00:00:00.000Z",
        "to_date_utc": "2024-06-08T00:00:00.000Z",
    }
    assert http.gets[1][1]["to_date_utc"] == "2024-06-11T00:00:00.000Z"
    assert [v for _, v in history] == [Decimal("100"), Decimal("200"), Decimal("300")]


def test_parse_datetime_handles_zulu_and_naive():
    assert parse_datetime("2024-06-01T00:00:00.000Z") == T0
    assert parse_datetime("2024-06-01T00:00:00") == T0


@pytest.mark.asyncio
async def test_subgraph_query_returns_data():
    http = RecordingHttp([{"data": {"userReserves": []}}])
    client = SubgraphClient(http, "https://gateway.test/subgraphs/id/", "key")

    data = await client.query("SUBGRAPH", "query { x }", {"a": 1})

    assert data == {"userReserves": []}
    url, payload, headers = http.posts[0]
    assert url == "https://gateway.test/subgraphs/id/SUBGRAPH"
    assert payload == {"query": "query { x }", "variables": {"a": 1}}
    assert headers == {"Authorization": "Bearer key"}


@pytest.mark.asyncio
async def test_subgraph_errors_raise():
    http = RecordingHttp([{"errors": [{"message": "bad"}]}])
    client = SubgraphClient(http, "https://gateway.test", None)

    with pytest.raises(UpstreamError, match="bad"):
        await client.query("S", "query { x }")
