"""GraphQL client for subgraphs served through The Graph gateway."""

from __future__ import annotations

from typing import Any

from ..errors import UpstreamError
from ..logger import get_logger
from .http import HttpClient

logger = get_logger(__name__)


class SubgraphClient:
    def __init__(self, http: HttpClient, gateway_url: str, api_key: str | None):
        self._http = http
        self._gateway_url = gateway_url.rstrip("/")
        self._api_key = api_key

    def url(self, subgraph_id: str) -> str:
        return f"{self._gateway_url}/{subgraph_id}"

    async def query(
        self,
        subgraph_id: str,
        query: str,
        variables: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Run a GraphQL query and return its ``data`` object.

        Raises:
            UpstreamError: If the response carries GraphQL ``errors``.
        """
        headers = (
            {"Authorization": f"Bearer {self._api_key}"} if self._api_key else None
        )
        body = await self._http.post_json(
            self.url(subgraph_id),
            {"query": query, "variables": variables or {}},
            headers=headers,
        )
        if body.get("errors"):
            raise UpstreamError(f"Subgraph {subgraph_id} query failed: {body['errors']}")
        return body.get("data") or {}
