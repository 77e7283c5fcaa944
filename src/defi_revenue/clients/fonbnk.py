"""Authenticated client for the Fonbnk merchant API."""

from __future__ import annotations

import base64
import hashlib
import hmac
import time
from dataclasses import dataclass
from urllib.parse import urlencode

from ..logger import get_logger
from ..settings import RevenueSettings
from .http import HttpClient

logger = get_logger(__name__)

ASSETS_ENDPOINT = "/api/pay-widget-merchant/assets"
PAYOUT_WALLETS_ENDPOINT = "/api/util/payout-wallets"


@dataclass(frozen=True)
class FonbnkAsset:
    network: str
    asset: str


def generate_signature(client_secret: str, timestamp: str, endpoint: str) -> str:
    """Sign ``"{timestamp}:{endpoint}"`` with HMAC-SHA256 keyed by the base64 secret."""
    key = base64.b64decode(client_secret)
    digest = hmac.new(
        key, f"{timestamp}:{endpoint}".encode(), hashlib.sha256
    ).digest()
    return base64.b64encode(digest).decode()


class FonbnkClient:
    def __init__(self, http: HttpClient, settings: RevenueSettings):
        client_id = settings.fonbnk_client_id
        client_secret = settings.secret_value("fonbnk_client_secret")
        if not client_id:
            raise ValueError("fonbnk_client_id is not set")
        if not client_secret:
            raise ValueError("fonbnk_client_secret is not set")

        self._http = http
        self._base_url = settings.fonbnk_api_url.rstrip("/")
        self._client_id = client_id
        self._client_secret = client_secret

    def _headers(self, endpoint: str) -> dict[str, str]:
        timestamp = str(int(time.time() * 1000))
        return {
            "x-client-id": self._client_id,
            "x-timestamp": timestamp,
            "x-signature": generate_signature(
                self._client_secret, timestamp, endpoint
            ),
        }

    async def _get(self, endpoint: str):
        return await self._http.get_json(
            f"{self._base_url}{endpoint}",
            headers=self._headers(endpoint),
            allow_404=True,
        )

    async def get_assets(self) -> list[FonbnkAsset]:
        payload = await self._get(ASSETS_ENDPOINT)
        if payload is None:
            return []
        return [FonbnkAsset(network=a["network"], asset=a["asset"]) for a in payload]

    async def get_payout_wallets(self, network: str, asset: str) -> list[str]:
        """Return the payout wallets Fonbnk uses for ``asset`` on ``network``."""
        endpoint = (
            f"{PAYOUT_WALLETS_ENDPOINT}?{urlencode({'network': network, 'asset': asset})}"
        )
        payload = await self._get(endpoint)
        if payload is None:
            return []
        wallets = payload.get("wallets") or []
        logger.debug(
            "Fonbnk payout wallets — network=%s asset=%s count=%d",
            network,
            asset,
            len(wallets),
        )
        return wallets
