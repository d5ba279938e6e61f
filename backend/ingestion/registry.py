"""
Client wiring: build external clients from settings.

Each context manager owns one httpx.AsyncClient and closes it on exit, so a
sync run gets a fresh token cache and connection pool. No network calls
happen until a client method is awaited.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import httpx

from core.config import Settings, get_settings

from .connectors.limitless import LimitlessClient
from .connectors.tcgplayer import TcgplayerClient, TokenProvider
from .http import HtmlFetcher, build_http_client


@asynccontextmanager
async def open_limitless_client(
    settings: Optional[Settings] = None,
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> AsyncIterator[LimitlessClient]:
    settings = settings or get_settings()
    async with build_http_client(settings, transport=transport) as http_client:
        yield LimitlessClient(HtmlFetcher(http_client), base_url=settings.limitless_base_url)


@asynccontextmanager
async def open_tcgplayer_client(
    settings: Optional[Settings] = None,
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> AsyncIterator[TcgplayerClient]:
    """TcgplayerClient with its own TokenProvider; credentials are checked on first request."""
    settings = settings or get_settings()
    async with build_http_client(settings, transport=transport) as http_client:
        tokens = TokenProvider(
            http_client,
            public_key=settings.tcgplayer_public_key,
            private_key=settings.tcgplayer_private_key,
        )
        yield TcgplayerClient(
            http_client,
            tokens,
            api_version=settings.tcgplayer_api_version,
        )
