"""
HTTP fetch layer for the tournament site: GET with browser-like headers, raw text out.

Non-2xx responses raise httpx.HTTPStatusError; network failures raise
httpx.TransportError. Nothing is retried here (see ingestion.retry).
"""

from __future__ import annotations

import logging
import time
from typing import Any, Mapping, Optional

import httpx

from core.config import Settings, get_settings

logger = logging.getLogger(__name__)

DEFAULT_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/119.0.0.0 Safari/537.36"
    ),
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,*/*;q=0.8",
}


def build_http_client(
    settings: Optional[Settings] = None,
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> httpx.AsyncClient:
    """AsyncClient with the configured timeout. transport is for tests (httpx.MockTransport)."""
    settings = settings or get_settings()
    return httpx.AsyncClient(
        timeout=settings.http_timeout_seconds,
        follow_redirects=True,
        transport=transport,
    )


class HtmlFetcher:
    """Fetch HTML pages as text through a shared AsyncClient."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        headers: Optional[Mapping[str, str]] = None,
    ) -> None:
        self._client = client
        self._headers = dict(headers or DEFAULT_HEADERS)

    async def fetch_text(self, url: str, params: Optional[Mapping[str, Any]] = None) -> str:
        t0 = time.perf_counter()
        response = await self._client.get(url, params=params, headers=self._headers)
        latency_ms = (time.perf_counter() - t0) * 1000
        logger.debug("GET %s -> %s (%.0f ms)", response.request.url, response.status_code, latency_ms)
        response.raise_for_status()
        return response.text
