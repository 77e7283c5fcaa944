"""Exception taxonomy shared by clients, the integration engine and adapters."""

from __future__ import annotations


class RevenueError(Exception):
    """Base class for all errors raised by defi-revenue."""


class InvalidAddressError(RevenueError, ValueError):
    """Raised when a user or contract address is not a valid EVM address."""


class InvalidWindowError(RevenueError, ValueError):
    """Raised when a time window is malformed (start after end, end in the future)."""


class DataIntegrityError(RevenueError):
    """Raised when upstream data cannot support the requested computation.

    Examples are gaps in a daily snapshot series, a window that starts before
    the first snapshot, or an empty price series.
    """


class RateLimitError(RevenueError):
    """Raised when an upstream service answers with HTTP 429."""

    def __init__(self, url: str, retry_after: str | None = None):
        self.url = url
        self.retry_after = retry_after
        super().__init__(f"Rate limited by {url} (retry-after={retry_after})")


class UpstreamError(RevenueError):
    """Raised when an upstream service fails in a way that is not retried."""

    def __init__(self, message: str, *, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)
