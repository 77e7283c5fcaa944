"""Closed set of supported protocols and their static configuration."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from .constants import (
    AERODROME_POOL_ADDRESSES,
    AERODROME_ROUTER_ADDRESS,
    DROME_FEE_DECIMALS,
    VELODROME_POOL_ADDRESSES,
    VELODROME_ROUTER_ADDRESS,
)
from .settings import Network


class Protocol(str, Enum):
    AERODROME = "aerodrome"
    VELODROME = "velodrome"
    SOMM = "somm"
    BEEFY = "beefy"
    ARBITRUM = "arbitrum"
    CELO = "celo"
    FONBNK = "fonbnk"
    AAVE = "aave"


@dataclass(frozen=True, slots=True)
class DromeProtocol:
    """Aerodrome-style AMM: revenue is swap volume times the pool fee rate."""

    protocol: Protocol
    network: Network
    pool_addresses: tuple[str, ...]
    router_address: str
    fee_decimals: int = DROME_FEE_DECIMALS


@dataclass(frozen=True, slots=True)
class SommProtocol:
    protocol: Protocol = Protocol.SOMM


@dataclass(frozen=True, slots=True)
class BeefyProtocol:
    protocol: Protocol = Protocol.BEEFY


@dataclass(frozen=True, slots=True)
class GasFeeProtocol:
    """Chain whose revenue is the gas its users paid."""

    protocol: Protocol
    network: Network


@dataclass(frozen=True, slots=True)
class FonbnkProtocol:
    protocol: Protocol = Protocol.FONBNK


@dataclass(frozen=True, slots=True)
class AaveProtocol:
    protocol: Protocol = Protocol.AAVE


ProtocolConfig = (
    DromeProtocol
    | SommProtocol
    | BeefyProtocol
    | GasFeeProtocol
    | FonbnkProtocol
    | AaveProtocol
)

PROTOCOL_CONFIGS: dict[Protocol, ProtocolConfig] = {
    Protocol.AERODROME: DromeProtocol(
        protocol=Protocol.AERODROME,
        network=Network.BASE,
        pool_addresses=AERODROME_POOL_ADDRESSES,
        router_address=AERODROME_ROUTER_ADDRESS,
    ),
    Protocol.VELODROME: DromeProtocol(
        protocol=Protocol.VELODROME,
        network=Network.OPTIMISM,
        pool_addresses=VELODROME_POOL_ADDRESSES,
        router_address=VELODROME_ROUTER_ADDRESS,
    ),
    Protocol.SOMM: SommProtocol(),
    Protocol.BEEFY: BeefyProtocol(),
    Protocol.ARBITRUM: GasFeeProtocol(
        protocol=Protocol.ARBITRUM, network=Network.ARBITRUM
    ),
    Protocol.CELO: GasFeeProtocol(protocol=Protocol.CELO, network=Network.CELO),
    Protocol.FONBNK: FonbnkProtocol(),
    Protocol.AAVE: AaveProtocol(),
}


def get_protocol_config(protocol: Protocol | str) -> ProtocolConfig:
    """Look up the configuration for ``protocol`` (case-insensitive).

    Raises:
        ValueError: If the protocol is not recognized.
    """
    if isinstance(protocol, Protocol):
        return PROTOCOL_CONFIGS[protocol]
    try:
        return PROTOCOL_CONFIGS[Protocol(protocol.lower())]
    except ValueError:
        raise ValueError(
            f"Unknown protocol '{protocol}'. "
            f"Available: {', '.join(p.value for p in Protocol)}"
        ) from None
