from __future__ import annotations

from typing import TYPE_CHECKING, assert_never

from ...protocols import (
    AaveProtocol,
    BeefyProtocol,
    DromeProtocol,
    FonbnkProtocol,
    GasFeeProtocol,
    ProtocolConfig,
    SommProtocol,
)
from .aave import AaveRevenueAdapter
from .base import BaseRevenueAdapter, RevenueResult, validate_address
from .beefy import BeefyRevenueAdapter
from .drome import DromeRevenueAdapter
from .fonbnk import FonbnkRevenueAdapter
from .gas_fees import GasFeeRevenueAdapter
from .somm import SommRevenueAdapter

if TYPE_CHECKING:
    from ...services import Services


def build_revenue_adapter(
    config: ProtocolConfig, services: Services
) -> BaseRevenueAdapter:
    """Instantiate the revenue adapter for a protocol configuration."""
    if isinstance(config, DromeProtocol):
        return DromeRevenueAdapter(services, config)
    if isinstance(config, SommProtocol):
        return SommRevenueAdapter(services, config)
    if isinstance(config, BeefyProtocol):
        return BeefyRevenueAdapter(services, config)
    if isinstance(config, GasFeeProtocol):
        return GasFeeRevenueAdapter(services, config)
    if isinstance(config, FonbnkProtocol):
        return FonbnkRevenueAdapter(services, config)
    if isinstance(config, AaveProtocol):
        return AaveRevenueAdapter(services, config)
    assert_never(config)


__all__ = [
    "AaveRevenueAdapter",
    "BaseRevenueAdapter",
    "BeefyRevenueAdapter",
    "DromeRevenueAdapter",
    "FonbnkRevenueAdapter",
    "GasFeeRevenueAdapter",
    "RevenueResult",
    "SommRevenueAdapter",
    "build_revenue_adapter",
    "validate_address",
]
