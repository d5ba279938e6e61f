"""Shared helpers for tests: saved HTML fixtures and httpx mock transports."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

import httpx

FIXTURES_DIR = Path(__file__).resolve().parent / "fixtures"
LIMITLESS_BASE = "https://onepiece.limitlesstcg.com"

Route = Union[str, Callable[[httpx.Request], httpx.Response]]


def load_fixture(name: str) -> str:
    return (FIXTURES_DIR / name).read_text(encoding="utf-8")


def html_transport(routes: Dict[str, Route], calls: Optional[List[httpx.Request]] = None) -> httpx.MockTransport:
    """MockTransport serving HTML by URL path; unknown paths answer 404.

    A route value is either HTML text or a handler taking the request.
    Every request is appended to ``calls`` when given.
    """

    def handler(request: httpx.Request) -> httpx.Response:
        if calls is not None:
            calls.append(request)
        route = routes.get(request.url.path)
        if route is None:
            return httpx.Response(404, text="not found")
        if callable(route):
            return route(request)
        return httpx.Response(200, text=route)

    return httpx.MockTransport(handler)


def limitless_listing_routes() -> Dict[str, Route]:
    """Route for the two-page listing fixture; pages past 2 are empty."""
    pages = {
        "1": load_fixture("limitless/tournaments_page_1.html"),
        "2": load_fixture("limitless/tournaments_page_2.html"),
    }

    def tournaments(request: httpx.Request) -> httpx.Response:
        page = request.url.params.get("page", "1")
        if page not in pages:
            return httpx.Response(200, text="<table class='completed-tournaments'><tbody></tbody></table>")
        return httpx.Response(200, text=pages[page])

    return {"/tournaments": tournaments}


def json_response(payload: Any, status_code: int = 200) -> httpx.Response:
    return httpx.Response(status_code, content=json.dumps(payload), headers={"Content-Type": "application/json"})
