"""Injectable memoization caches.

Historical block, event and price data never changes once final, so entries
are written once and never invalidated. Concurrent misses for the same key
may both reach the upstream service; the last write wins.
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable, Hashable, Protocol, TypeVar

from .logger import TRACE, get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class _Missing:
    def __repr__(self) -> str:  # pragma: no cover - trivial
        return "MISSING"


MISSING: Any = _Missing()


class Cache(Protocol):
    """Capability interface for a key/value memoization store."""

    def get(self, key: Hashable) -> Any:
        """Return the cached value for ``key`` or ``MISSING``."""
        ...

    def put(self, key: Hashable, value: Any) -> None: ...


class MemoryCache:
    """Process-scoped dictionary cache."""

    def __init__(self) -> None:
        self._entries: dict[Hashable, Any] = {}

    def get(self, key: Hashable) -> Any:
        return self._entries.get(key, MISSING)

    def put(self, key: Hashable, value: Any) -> None:
        self._entries[key] = value

    def __len__(self) -> int:
        return len(self._entries)


class NullCache:
    """Cache that never stores anything, used to disable memoization."""

    def get(self, key: Hashable) -> Any:
        return MISSING

    def put(self, key: Hashable, value: Any) -> None:
        return None


async def cached(
    cache: Cache, key: Hashable, loader: Callable[[], Awaitable[T]]
) -> T:
    """Return ``cache[key]``, populating it from ``loader`` on a miss."""
    value = cache.get(key)
    if value is not MISSING:
        logger.log(TRACE, "Cache hit — key=%s", key)
        return value
    value = await loader()
    cache.put(key, value)
    return value
