from types import SimpleNamespace

import pytest

from defi_revenue.clients import fonbnk as fonbnk_module
from defi_revenue.clients.fonbnk import FonbnkClient, generate_signature
from defi_revenue.settings import RevenueSettings


class RecordingHttp:
    def __init__(self, answers):
        self.answers = list(answers)
        self.calls = []

    async def get_json(self, url, *, params=None, headers=None, allow_404=False):
        self.calls.append((url, headers, allow_404))
        return self.answers.pop(0)


@pytest.fixture
def settings():
    return RevenueSettings(
        fonbnk_client_id="client-1",
        fonbnk_client_secret="1A2B3C4D5E6F7G8H",
        fonbnk_api_url="https://fonbnk.test/",
    )


def test_signature_matches_known_vector():
    signature = generate_signature(
        "1A2B3C4D5E6F7G8H",
        "12345678",
        "/api/util/payout-wallets?network=CELO&asset=USDC",
    )

    assert signature == "XxL0XlSqT+csoPClf6iIXf9Lu1YWARyNEqlauaKutJE="


def test_missing_credentials_raise():
    with pytest.raises(ValueError, match="fonbnk_client_id"):
        FonbnkClient(RecordingHttp([]), RevenueSettings(fonbnk_client_secret="x"))


@pytest.mark.asyncio
async def test_payout_wallets_request_is_signed(settings, monkeypatch):
    monkeypatch.setattr(fonbnk_module, "time", SimpleNamespace(time=lambda: 12345.0))
    http = RecordingHttp([{"wallets": ["0xW1", "0xW2"]}])
    client = FonbnkClient(http, settings)

    wallets = await client.get_payout_wallets("CELO", "USDC")

    assert wallets == ["0xW1", "0xW2"]
    url, headers, allow_404 = http.calls[0]
    assert url == "https://fonbnk.test/api/util/payout-wallets?network=CELO&asset=USDC"
    assert headers["x-client-id"] == "client-1"
    assert headers["x-timestamp"] == "12345000"
    assert headers["x-signature"] == generate_signature(
        "1A2B3C4D5E6F7G8H",
        "12345000",
        "/api/util/payout-wallets?network=CELO&asset=USDC",
    )
    assert allow_404 is True


@pytest.mark.asyncio
async def test_not_found_yields_empty_lists(settings):
    client = FonbnkClient(RecordingHttp([None, None]), settings)

    assert await client.get_assets() == []
    assert await client.get_payout_wallets("CELO", "USDC") == []


@pytest.mark.asyncio
async def test_assets_are_parsed(settings):
    client = FonbnkClient(
        RecordingHttp([[{"network": "CELO", "asset": "CUSD", "extra": 1}]]), settings
    )

    assets = await client.get_assets()

    assert [(a.network, a.asset) for a in assets] == [("CELO", "CUSD")]
