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
from .base import BaseReferralFilter
from .beefy import BeefyReferralFilter
from .drome import DromeReferralFilter
from .fonbnk import FonbnkReferralFilter
from .somm import SommReferralFilter

if TYPE_CHECKING:
    from ...services import Services


def build_referral_filter(
    config: ProtocolConfig, services: Services
) -> BaseReferralFilter:
    """Instantiate the eligibility filter for a protocol configuration.

    Raises:
        ValueError: If the protocol has no referral filter.
    """
    if isinstance(config, DromeProtocol):
        return DromeReferralFilter(services, config)
    if isinstance(config, SommProtocol):
        return SommReferralFilter(services)
    if isinstance(config, BeefyProtocol):
        return BeefyReferralFilter(services)
    if isinstance(config, FonbnkProtocol):
        return FonbnkReferralFilter(services)
    if isinstance(config, (GasFeeProtocol, AaveProtocol)):
        raise ValueError(
            f"No referral filter for protocol '{config.protocol.value}'"
        )
    assert_never(config)


__all__ = [
    "BaseReferralFilter",
    "BeefyReferralFilter",
    "DromeReferralFilter",
    "FonbnkReferralFilter",
    "SommReferralFilter",
    "build_referral_filter",
]
