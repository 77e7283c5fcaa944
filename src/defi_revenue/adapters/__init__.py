from __future__ import annotations

from .referral_filters import build_referral_filter
from .revenue_adapters import build_revenue_adapter

__all__ = ["build_referral_filter", "build_revenue_adapter"]
