"""
TCGplayer catalog mirror: page through the One Piece category and reconcile
it into tcg_catalog_products.

Upserts are keyed by productId and committed every 25 rows. After a full
pass, every product the run did not touch is tombstoned as "removed". Dry
run (the default unless TCG_CATALOG_DRY_RUN=0) fetches and previews pages
without writing anything.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from core.config import Settings, get_settings
from ingestion.connectors.tcgplayer import ONE_PIECE_CATEGORY_ID, TcgplayerClient
from ingestion.reconcile import Reconciler, paginate_offsets
from ingestion.retry import RetryPolicy
from ingestion.schema import TcgplayerProduct
from models.catalog_product import ProductStatus, TcgCatalogProduct
from repositories.catalog_product_repo import CatalogProductRepository

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100
CATALOG_CHUNK_SIZE = 25
PREVIEW_SAMPLE_SIZE = 5
DEFAULT_PRODUCT_LINE = "One Piece Card Game"

SEALED_KEYWORDS = (
    "booster",
    "deck",
    "box",
    "pack",
    "case",
    "starter",
    "campaign",
    "release",
    "promo pack",
    "treasure",
)

LogHook = Callable[[str, Dict[str, Any]], None]


@dataclass
class CatalogSyncResult:
    processed: int
    removed_count: int
    reported_total: Optional[int]
    sync_timestamp: datetime
    dry_run: bool


def _default_log_hook(message: str, meta: Dict[str, Any]) -> None:
    logger.info("%s %s", message, meta)


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    return value.strip() or None


def get_extended_value(product: TcgplayerProduct, key: str) -> Optional[str]:
    """Value of the extendedData entry named key, stringified; None if absent or null."""
    for entry in product.extended_data:
        if entry.name == key:
            return None if entry.value is None else str(entry.value)
    return None


def is_sealed_product(product: TcgplayerProduct) -> bool:
    """Singles carry a CardType extended field; everything else counts as sealed.

    The keyword check does not change the outcome: products with neither a
    CardType nor a sealed keyword are still classified as sealed.
    """
    card_type = get_extended_value(product, "CardType")
    if card_type and card_type.strip():
        return False
    name = (product.name or product.clean_name or "").lower()
    if any(keyword in name for keyword in SEALED_KEYWORDS):
        return True
    return True


def build_catalog_payload(product: TcgplayerProduct, sync_timestamp: datetime) -> Dict[str, Any]:
    """Column values for one product (everything except the productId key)."""
    clean_name = _clean(product.clean_name) or _clean(product.name)
    product_line = (
        _clean(product.product_line_name) or _clean(product.category_name) or DEFAULT_PRODUCT_LINE
    )
    return {
        "name": _clean(product.name) or clean_name or f"Product {product.product_id}",
        "clean_name": clean_name,
        "product_line_name": product_line,
        "group_id": product.group_id,
        "card_type": get_extended_value(product, "CardType"),
        "rarity": get_extended_value(product, "Rarity"),
        "is_sealed": is_sealed_product(product),
        "url": product.url or f"https://www.tcgplayer.com/product/{product.product_id}",
        "sku": product.sku,
        "image_url": product.image_url,
        "product_metadata": product.raw(),
        "last_synced_at": sync_timestamp,
        "product_status": ProductStatus.ACTIVE.value,
    }


def _preview_sample(products: List[TcgplayerProduct]) -> List[Dict[str, Any]]:
    return [
        {
            "product_id": product.product_id,
            "name": product.name,
            "clean_name": product.clean_name,
            "card_type": get_extended_value(product, "CardType"),
            "rarity": get_extended_value(product, "Rarity"),
            "is_sealed": is_sealed_product(product),
            "url": product.url,
        }
        for product in products[:PREVIEW_SAMPLE_SIZE]
    ]


async def sync_tcg_catalog(
    session: AsyncSession,
    *,
    client: TcgplayerClient,
    page_size: int = MAX_PAGE_SIZE,
    offset: int = 0,
    limit: Optional[int] = None,
    delay_ms: Optional[int] = None,
    dry_run: Optional[bool] = None,
    log: Optional[LogHook] = None,
    retry: Optional[RetryPolicy] = None,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    now: Optional[datetime] = None,
    settings: Optional[Settings] = None,
) -> CatalogSyncResult:
    """Mirror the catalog. Any fetch failure aborts the run before the tombstone pass.

    A run started at an offset or capped by limit does not see the whole
    catalog, so it never tombstones.
    """
    settings = settings or get_settings()
    log = log or _default_log_hook
    retry = retry or RetryPolicy.from_settings(settings)
    page_size = max(1, min(MAX_PAGE_SIZE, page_size))
    offset = max(offset, 0)
    delay_ms = settings.tcgplayer_sync_delay_ms if delay_ms is None else delay_ms
    dry_run = settings.tcg_catalog_dry_run if dry_run is None else dry_run
    sync_timestamp = now or datetime.now(timezone.utc)
    reported_total: Optional[int] = None
    started = time.perf_counter()

    log(
        "catalog_sync:start",
        {
            "page_size": page_size,
            "offset": offset,
            "limit": limit,
            "delay_ms": delay_ms,
            "dry_run": dry_run,
        },
    )

    async def fetch_page(page_offset: int, requested: int) -> List[TcgplayerProduct]:
        nonlocal reported_total
        log("catalog_sync:fetch", {"offset": page_offset, "page_size": requested})
        page = await retry.run(
            client.list_products, ONE_PIECE_CATEGORY_ID, limit=requested, offset=page_offset
        )
        total = page.total if page.total is not None else len(page.products)
        reported_total = max(reported_total or 0, total)
        if not page.products:
            log("catalog_sync:empty_page", {"offset": page_offset})
        return page.products

    async def pages():
        async for batch in paginate_offsets(
            fetch_page,
            page_size=page_size,
            offset=offset,
            limit=limit,
            delay_seconds=delay_ms / 1000,
            sleep=sleep,
        ):
            yield batch
            log("catalog_sync:page", {"batch_size": len(batch)})

    products = CatalogProductRepository(session)

    async def create(product_id: int, product: TcgplayerProduct, ts: datetime) -> None:
        await products.create(product_id, build_catalog_payload(product, ts))

    async def update(row: TcgCatalogProduct, product: TcgplayerProduct, ts: datetime) -> None:
        await products.update_fields(row, build_catalog_payload(product, ts))

    def preview(batch: List[TcgplayerProduct]) -> None:
        log(
            "catalog_sync:preview",
            {"sample_size": min(len(batch), PREVIEW_SAMPLE_SIZE), "sample": _preview_sample(batch)},
        )

    reconciler: Reconciler[TcgplayerProduct, int, TcgCatalogProduct] = Reconciler(
        identity=lambda product: product.product_id,
        find=products.get_by_product_id,
        create=create,
        update=update,
        mark_stale=products.mark_removed_before,
        commit=session.commit,
        chunk_size=CATALOG_CHUNK_SIZE,
        dry_run=dry_run,
        preview=preview,
    )
    result = await reconciler.run(
        pages(), sync_timestamp, tombstone=offset == 0 and limit is None
    )

    summary = CatalogSyncResult(
        processed=result.processed,
        removed_count=result.stale_count,
        reported_total=reported_total,
        sync_timestamp=sync_timestamp,
        dry_run=dry_run,
    )
    log(
        "catalog_sync:finished",
        {
            "processed": summary.processed,
            "removed_count": summary.removed_count,
            "reported_total": summary.reported_total,
            "dry_run": summary.dry_run,
            "duration_seconds": round(time.perf_counter() - started, 2),
        },
    )
    return summary
