"""Network identifiers, protocol contract addresses and fixed numeric constants."""

from __future__ import annotations

from datetime import timedelta
from typing import TypedDict

from .settings import Network

CHAIN_IDS: dict[Network, int] = {
    Network.ETHEREUM: 1,
    Network.OPTIMISM: 10,
    Network.POLYGON: 137,
    Network.BASE: 8453,
    Network.CELO: 42220,
    Network.ARBITRUM: 42161,
}

# Chain slugs used by the DefiLlama block index
DEFILLAMA_CHAINS: dict[Network, str] = {
    Network.ETHEREUM: "ethereum",
    Network.ARBITRUM: "arbitrum",
    Network.OPTIMISM: "optimism",
    Network.CELO: "celo",
    Network.POLYGON: "polygon",
    Network.BASE: "base",
}

ALCHEMY_RPC_URLS: dict[Network, str] = {
    Network.ETHEREUM: "https://eth-mainnet.g.alchemy.com/v2/",
    Network.ARBITRUM: "https://arb-mainnet.g.alchemy.com/v2/",
    Network.OPTIMISM: "https://opt-mainnet.g.alchemy.com/v2/",
    Network.POLYGON: "https://polygon-mainnet.g.alchemy.com/v2/",
    Network.BASE: "https://base-mainnet.g.alchemy.com/v2/",
}

PUBLIC_RPC_URLS: dict[Network, str] = {
    Network.ETHEREUM: "https://eth.drpc.org",
    Network.ARBITRUM: "https://arb1.arbitrum.io/rpc",
    Network.OPTIMISM: "https://mainnet.optimism.io",
    Network.POLYGON: "https://polygon-rpc.com",
    Network.BASE: "https://mainnet.base.org",
    Network.CELO: "https://forno.celo.org",
}

ONE_DAY = timedelta(days=1)
ONE_WEEK = timedelta(weeks=1)

# Pool fees are expressed in hundredths of a basis point
DROME_FEE_DECIMALS = 6

AAVE_RAY = 10**27
AAVE_RESERVE_FACTOR_DECIMALS = 4  # basis points

ERC20_TRANSFER_TOPIC = (
    "0xddf252ad1be2c89b69c2b068fc378daa952ba7f163c4a11628f55a4df523b3ef"
)
ERC4626_DEPOSIT_TOPIC = (
    "0xdcbc1c05240f31ff3ad067ef1ee35ce4997762752e3a095284754544f4c709d7"
)
AAVE_RESERVE_FACTOR_CHANGED_TOPIC = (
    "0xb46e2b82b0c2cf3d7d9dece53635e165c53e0eaa7a44f904d61a2b7174826aef"
)

# --- aerodrome / velodrome ---

AERODROME_POOL_ADDRESSES: tuple[str, ...] = (
    "0xb2cc224c1c9feE385f8ad6a55b4d94E92359DC59",  # WETH/USDC
    "0xA44D3Bb767d953711EA4Bce8C0F01f4d7D299aF6",  # cbBTC/LBTC
    "0x4e962BB3889Bf030368F56810A9c96B83CB3E778",  # USDC/cbBTC
    "0x70aCDF2Ad0bf2402C957154f944c19Ef4e1cbAE1",  # WETH/cbBTC
    "0xC200F21EfE67c7F41B81A854c26F9cdA80593065",  # VIRTUAL/WETH
    "0x6446021F4E396dA3df4235C62537431372195D38",  # WETH/superOETHb
)
AERODROME_ROUTER_ADDRESS = "0x6Cb442acF35158D5eDa88fe602221b67B400Be3E"

VELODROME_POOL_ADDRESSES: tuple[str, ...] = (
    "0x478946BcD4a5a22b316470F5486fAfb928C0bA25",  # WETH/USDC
)
VELODROME_ROUTER_ADDRESS = "0xa062aE8A9c5e11aaA026fc2670B0D65cCc8B2858"

# --- beefy / sommelier ---

BEEFY_CHAINS: dict[str, Network] = {
    "ethereum": Network.ETHEREUM,
    "arbitrum": Network.ARBITRUM,
    "optimism": Network.OPTIMISM,
    "polygon": Network.POLYGON,
    "base": Network.BASE,
}

SOMM_CHAINS: dict[Network, str] = {
    Network.ETHEREUM: "ethereum",
    Network.ARBITRUM: "arbitrum",
    Network.OPTIMISM: "optimism",
    Network.POLYGON: "polygon",
    Network.BASE: "base",
}

# Suffixes on Sommelier vault keys that map to a non-mainnet deployment
SOMM_VAULT_SUFFIXES: dict[str, Network] = {
    "arbitrum": Network.ARBITRUM,
    "optimism": Network.OPTIMISM,
}

# --- fonbnk ---

FONBNK_NETWORKS: dict[str, Network] = {
    "CELO": Network.CELO,
    "ETHEREUM": Network.ETHEREUM,
    "ARBITRUM": Network.ARBITRUM,
    "OPTIMISM": Network.OPTIMISM,
    "POLYGON": Network.POLYGON,
    "BASE": Network.BASE,
}

# --- aave v3 ---


class AaveMarket(TypedDict):
    pool: str
    pool_configurator: str
    oracle: str
    subgraph_id: str


AAVE_MARKETS: dict[Network, AaveMarket] = {
    Network.ARBITRUM: {
        "pool": "0x794a61358D6845594F94dc1DB02A252b5b4814aD",
        "pool_configurator": "0x8145eddDf43f50276641b55bd3AD95944510021E",
        "oracle": "0xb56c2F0B653B2e0b10C9b928C8580Ac5Df02C7C7",
        "subgraph_id": "DLuE98kEb5pQNXAcKFQGQgfSQ57Xdou4jnVbAEqMfy3B",
    },
    Network.BASE: {
        "pool": "0xA238Dd80C259a72e81d7e4664a9801593F98d1c5",
        "pool_configurator": "0x5731a04B1E775f0fdd454Bf70f3335886e9A96be",
        "oracle": "0x2Cc0Fc26eD4563A5ce5e8bdcfe1A2878676Ae156",
        "subgraph_id": "GQFbb95cE6d8mV989mL5figjaGaKCQB3xqYrr1bRyXqF",
    },
    Network.ETHEREUM: {
        "pool": "0x87870Bca3F3fD6335C3F4ce8392D69350B4fA4E2",
        "pool_configurator": "0x64b761D848206f447Fe2dd461b0c635Ec39EbB27",
        "oracle": "0x54586bE62E3c3580375aE3723C145253060Ca0C2",
        "subgraph_id": "Cd2gEDVeqnjBn1hSeqFMitw8Q1iiyV9FYUZkLNRcL87g",
    },
    Network.OPTIMISM: {
        "pool": "0x794a61358D6845594F94dc1DB02A252b5b4814aD",
        "pool_configurator": "0x8145eddDf43f50276641b55bd3AD95944510021E",
        "oracle": "0xD81eb3728a631871a7eBBaD631b5f424909f0c77",
        "subgraph_id": "DSfLz8oQBUeU5atALgUFQKMTSYV9mZAVYp4noLSXAfvb",
    },
}
