"""Construction of the remote-service clients shared by adapters and filters."""

from __future__ import annotations

from dataclasses import dataclass, field
from functools import cached_property

from .cache import Cache
from .clients.beefy import BeefyClient
from .clients.block_index import BlockIndexClient
from .clients.chain import ChainReader
from .clients.fonbnk import FonbnkClient
from .clients.http import HttpClient
from .clients.indexer import IndexerClient, build_indexer
from .clients.price_history import PriceHistoryClient
from .clients.subgraph import SubgraphClient
from .settings import Network, RevenueSettings
from .state import AppState


@dataclass
class Services:
    """Clients for every collaborator, sharing one HTTP session and one cache."""

    settings: RevenueSettings
    cache: Cache
    http: HttpClient
    block_index: BlockIndexClient
    chain: ChainReader
    prices: PriceHistoryClient
    subgraph: SubgraphClient
    beefy: BeefyClient
    _indexers: dict[Network, IndexerClient] = field(default_factory=dict)

    def indexer(self, network: Network) -> IndexerClient:
        client = self._indexers.get(network)
        if client is None:
            client = build_indexer(self.settings, self.http, network)
            self._indexers[network] = client
        return client

    @cached_property
    def fonbnk(self) -> FonbnkClient:
        """Fonbnk client, built on first use since it requires credentials."""
        return FonbnkClient(self.http, self.settings)


def build_services(state: AppState) -> Services:
    s = state.settings
    http = HttpClient(s)
    block_index = BlockIndexClient(http, s.block_index_url, state.cache)
    return Services(
        settings=s,
        cache=state.cache,
        http=http,
        block_index=block_index,
        chain=ChainReader(s, state.cache, block_index),
        prices=PriceHistoryClient(http, s.price_history_url, state.cache),
        subgraph=SubgraphClient(
            http, s.the_graph_gateway_url, s.secret_value("the_graph_api_key")
        ),
        beefy=BeefyClient(http, s.beefy_api_url, state.cache),
    )
