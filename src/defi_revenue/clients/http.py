"""JSON-over-HTTP transport shared by every REST and GraphQL collaborator.

Each call is bounded by ``request_timeout``. Rate-limit answers (HTTP 429),
timeouts and dropped connections are retried with exponential backoff and
full jitter, up to ``max_retries`` extra attempts; when retries are exhausted
the last error is re-raised unchanged.
"""

from __future__ import annotations

import asyncio
from typing import Any

import backoff
import requests

from ..errors import RateLimitError, UpstreamError
from ..logger import get_logger
from ..settings import RevenueSettings

logger = get_logger(__name__)

RETRYABLE_ERRORS = (RateLimitError, requests.Timeout, requests.ConnectionError)


class HttpClient:
    """Blocking ``requests`` session driven from asyncio via worker threads."""

    def __init__(
        self,
        settings: RevenueSettings,
        *,
        session: requests.Session | None = None,
    ):
        self._timeout = settings.request_timeout
        self._session = session or requests.Session()

        def _on_backoff(details: Any) -> None:
            logger.warning(
                "HTTP request failed (attempt %d of %d), retrying in %.1fs: %s",
                details["tries"],
                settings.max_retries + 1,
                details["wait"],
                details.get("exception"),
            )

        self._send_with_retry = backoff.on_exception(
            backoff.expo,
            RETRYABLE_ERRORS,
            max_tries=settings.max_retries + 1,
            factor=settings.retry_base_delay,
            jitter=backoff.full_jitter,
            on_backoff=_on_backoff,
        )(self._send)

    async def get_json(
        self,
        url: str,
        *,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        allow_404: bool = False,
    ) -> Any:
        """GET ``url`` and decode the JSON body.

        With ``allow_404`` a 404 answer yields ``None`` instead of raising.
        """
        return await asyncio.to_thread(
            self._send_with_retry,
            "GET",
            url,
            params=params,
            headers=headers,
            allow_404=allow_404,
        )

    async def post_json(
        self,
        url: str,
        payload: Any,
        *,
        headers: dict[str, str] | None = None,
    ) -> Any:
        """POST ``payload`` as JSON to ``url`` and decode the JSON body."""
        return await asyncio.to_thread(
            self._send_with_retry,
            "POST",
            url,
            json=payload,
            headers=headers,
        )

    def _send(
        self,
        method: str,
        url: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
        headers: dict[str, str] | None = None,
        allow_404: bool = False,
    ) -> Any:
        logger.debug("HTTP %s %s params=%s", method, url, params)
        response = self._session.request(
            method,
            url,
            params=params,
            json=json,
            headers=headers,
            timeout=self._timeout,
        )

        if response.status_code == 429:
            raise RateLimitError(url, response.headers.get("Retry-After"))
        if response.status_code == 404 and allow_404:
            return None
        if response.status_code >= 400:
            raise UpstreamError(
                f"{method} {url} failed with HTTP {response.status_code}: "
                f"{response.text[:200]}",
                status_code=response.status_code,
            )

        try:
            return response.json()
        except ValueError as e:
            raise UpstreamError(f"{method} {url} returned a non-JSON body") from e
