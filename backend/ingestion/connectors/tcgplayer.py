"""
TCGplayer catalog and pricing client.

Auth is the OAuth2 client-credentials flow; the token is cached by a
TokenProvider and re-acquired 60 seconds before its stated expiry, so
callers never deal with token lifecycle.

Catalog search is a two-step protocol imposed by the API: the category
search endpoint returns product ids only, and a second call hydrates them
(comma-joined ids, one call per page). The name-filter search tops out at
50 matches upstream; the client returns whatever the API returns.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence

import httpx
from pydantic import ValidationError

from ingestion.schema import PricingEntry, ProductPage, ProductSearchResult, TcgplayerProduct

logger = logging.getLogger(__name__)

TOKEN_ENDPOINT = "https://api.tcgplayer.com/token"
API_ROOT = "https://api.tcgplayer.com"
ONE_PIECE_CATEGORY_ID = 68
TOKEN_SKEW_SECONDS = 60
NAME_SEARCH_MAX_RESULTS = 50
DEFAULT_SORT = "ProductName ASC"

_PRICE_FIELDS = ("market_price", "mid_price", "low_price", "high_price", "direct_low_price")


class TcgplayerConfigError(RuntimeError):
    """Raised when required TCGplayer credentials are not configured."""


class TcgplayerRequestError(Exception):
    """Raised on a non-2xx response or a payload with success=false."""

    def __init__(self, message: str, status_code: Optional[int] = None, body: str = "") -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


@dataclass
class AccessToken:
    access_token: str
    expires_at: float  # epoch seconds as stated by the token endpoint

    def is_valid(self, now: float) -> bool:
        return self.expires_at - TOKEN_SKEW_SECONDS > now


class TokenProvider:
    """Client-credentials token cache. One instance per process or per sync run."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        public_key: Optional[str],
        private_key: Optional[str],
        token_endpoint: str = TOKEN_ENDPOINT,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._client = client
        self._public_key = public_key
        self._private_key = private_key
        self._token_endpoint = token_endpoint
        self._clock = clock
        self._cached: Optional[AccessToken] = None

    def _credentials(self) -> tuple[str, str]:
        if not self._public_key:
            raise TcgplayerConfigError("Missing required environment variable: TCGPLAYER_PUBLIC_KEY")
        if not self._private_key:
            raise TcgplayerConfigError("Missing required environment variable: TCGPLAYER_PRIVATE_KEY")
        return self._public_key, self._private_key

    async def _request_token(self) -> AccessToken:
        client_id, client_secret = self._credentials()
        response = await self._client.post(
            self._token_endpoint,
            data={
                "grant_type": "client_credentials",
                "client_id": client_id,
                "client_secret": client_secret,
            },
            headers={"Content-Type": "application/x-www-form-urlencoded"},
        )
        if response.status_code >= 400:
            raise TcgplayerRequestError(
                f"Failed to fetch TCGplayer token: {response.status_code} {response.text}",
                status_code=response.status_code,
                body=response.text,
            )
        data = response.json()
        token = AccessToken(
            access_token=str(data["access_token"]),
            expires_at=self._clock() + float(data.get("expires_in") or 0),
        )
        logger.info("Acquired TCGplayer access token")
        return token

    async def get_token(self) -> str:
        if self._cached is not None and self._cached.is_valid(self._clock()):
            return self._cached.access_token
        self._cached = await self._request_token()
        return self._cached.access_token


def _unique(ids: Iterable[int]) -> List[int]:
    seen: Dict[int, None] = {}
    for product_id in ids:
        seen.setdefault(int(product_id), None)
    return list(seen)


class TcgplayerClient:
    """Catalog search/hydration and pricing lookups against the TCGplayer API."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        token_provider: TokenProvider,
        api_version: str = "v1.39.0",
        api_root: str = API_ROOT,
    ) -> None:
        self._client = client
        self._tokens = token_provider
        self.api_base_url = f"{api_root.rstrip('/')}/{api_version}" if api_version else api_root.rstrip("/")

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        url = path if path.startswith("http") else f"{self.api_base_url}{path}"
        token = await self._tokens.get_token()
        response = await self._client.request(
            method,
            url,
            params=params,
            json=json,
            headers={"Accept": "application/json", "Authorization": f"bearer {token}"},
        )
        if response.status_code >= 400:
            raise TcgplayerRequestError(
                f"TCGplayer request failed ({response.status_code}): {response.text}",
                status_code=response.status_code,
                body=response.text,
            )
        data = response.json()
        if not isinstance(data, dict):
            raise TcgplayerRequestError(f"TCGplayer returned a non-object payload for {path}")
        return data

    @staticmethod
    def _require_success(data: Dict[str, Any], what: str) -> None:
        if not data.get("success"):
            raise TcgplayerRequestError(f"TCGplayer {what} returned an unsuccessful status")

    async def search_product_ids(
        self,
        category_id: int = ONE_PIECE_CATEGORY_ID,
        *,
        filters: Optional[Sequence[Dict[str, Any]]] = None,
        limit: int = 100,
        offset: int = 0,
        sort: str = DEFAULT_SORT,
    ) -> ProductSearchResult:
        """Step one: category search. Returns product ids and the reported total."""
        try:
            data = await self._request(
                "POST",
                f"/catalog/categories/{category_id}/search",
                json={
                    "sort": sort,
                    "limit": limit,
                    "offset": offset,
                    "filters": list(filters or []),
                },
            )
        except TcgplayerRequestError as exc:
            # The API answers "No products were found" with a 404.
            if exc.status_code == 404:
                return ProductSearchResult(product_ids=[], total=0)
            raise
        self._require_success(data, "product search")
        ids = [int(i) for i in data.get("results") or [] if isinstance(i, int)]
        total = data.get("totalItems", data.get("totalResults"))
        return ProductSearchResult(product_ids=ids, total=int(total) if total is not None else None)

    async def get_products(
        self, product_ids: Sequence[int], include_extended_fields: bool = True
    ) -> List[TcgplayerProduct]:
        """Step two: hydrate ids into products with one comma-joined lookup."""
        ids = _unique(product_ids)
        if not ids:
            return []
        data = await self._request(
            "GET",
            f"/catalog/products/{','.join(str(i) for i in ids)}",
            params={"includeExtendedFields": "true" if include_extended_fields else "false"},
        )
        self._require_success(data, "product lookup")
        products: List[TcgplayerProduct] = []
        for raw in data.get("results") or []:
            if not (isinstance(raw, dict) and isinstance(raw.get("productId"), int)):
                continue
            try:
                products.append(TcgplayerProduct.model_validate(raw))
            except ValidationError as exc:
                logger.warning("Skipping malformed product %s: %s", raw["productId"], exc)
        return products

    async def list_products(
        self,
        category_id: int = ONE_PIECE_CATEGORY_ID,
        *,
        limit: int = 100,
        offset: int = 0,
    ) -> ProductPage:
        """One catalog page: search (ids) then hydrate."""
        search = await self.search_product_ids(category_id, limit=limit, offset=offset)
        products = await self.get_products(search.product_ids)
        return ProductPage(products=products, total=search.total)

    async def search_products_by_name(
        self,
        name: str,
        category_id: int = ONE_PIECE_CATEGORY_ID,
        *,
        limit: int = NAME_SEARCH_MAX_RESULTS,
        offset: int = 0,
    ) -> ProductPage:
        search = await self.search_product_ids(
            category_id,
            filters=[{"name": "ProductName", "values": [name]}],
            limit=limit,
            offset=offset,
        )
        products = await self.get_products(search.product_ids)
        return ProductPage(products=products, total=search.total)

    async def get_product_pricing(self, product_ids: Sequence[int]) -> List[PricingEntry]:
        """All pricing entries (every sub type) for the given products."""
        ids = _unique(product_ids)
        if not ids:
            return []
        data = await self._request("GET", f"/pricing/product/{','.join(str(i) for i in ids)}")
        self._require_success(data, "pricing request")
        entries: List[PricingEntry] = []
        for raw in data.get("results") or []:
            if isinstance(raw, dict) and isinstance(raw.get("productId"), int):
                entries.append(PricingEntry.model_validate(raw))
        return entries


def score_pricing_entry(entry: PricingEntry) -> int:
    """10 per populated price field, +2 for the "Normal" sub type, -1 for any foil."""
    score = sum(10 for field in _PRICE_FIELDS if getattr(entry, field) is not None)
    sub_type = entry.sub_type_name or ""
    if sub_type == "Normal":
        score += 2
    if "foil" in sub_type.lower():
        score -= 1
    return score


def select_best_pricing(entries: Iterable[PricingEntry]) -> Dict[int, PricingEntry]:
    """Best entry per product id; ties go to the entry seen last."""
    best: Dict[int, PricingEntry] = {}
    scores: Dict[int, int] = {}
    for entry in entries:
        score = score_pricing_entry(entry)
        if entry.product_id not in best or score >= scores[entry.product_id]:
            best[entry.product_id] = entry
            scores[entry.product_id] = score
    return best
