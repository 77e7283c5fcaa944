"""Application state container."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from .cache import Cache, MemoryCache
from .settings import RevenueSettings


@dataclass
class AppState:
    """Container for application-wide state and dependencies.

    Passed through the pipeline to avoid global state and enable testing.
    One cache lives for the duration of a single top-level invocation.
    """

    settings: RevenueSettings
    logger: logging.Logger
    cache: Cache = field(default_factory=MemoryCache)
