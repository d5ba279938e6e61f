"""Catalog mirror: upsert by productId, tombstones after a full pass, dry run."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Dict, List

import pytest
from sqlalchemy import select

from core.config import Settings
from core.database import get_database_manager
from ingestion.connectors.tcgplayer import ONE_PIECE_CATEGORY_ID, TcgplayerRequestError
from ingestion.retry import RetryPolicy
from ingestion.schema import ProductPage, TcgplayerProduct
from models.catalog_product import ProductStatus, TcgCatalogProduct
from repositories.catalog_product_repo import CatalogProductRepository
from services.catalog_sync_service import (
    build_catalog_payload,
    get_extended_value,
    is_sealed_product,
    sync_tcg_catalog,
)

T0 = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
SETTINGS = Settings(tcgplayer_sync_delay_ms=0, tcg_catalog_dry_run=False)


def _product(product_id: int, **extra) -> TcgplayerProduct:
    data = {"productId": product_id, "name": f"Product {product_id}", **extra}
    return TcgplayerProduct.model_validate(data)


class FakeCatalog:
    def __init__(self, products: List[TcgplayerProduct], total=None, fail_at_offset=None) -> None:
        self.products = products
        self.total = total
        self.fail_at_offset = fail_at_offset
        self.calls = []

    async def list_products(self, category_id: int = ONE_PIECE_CATEGORY_ID, *, limit: int, offset: int):
        self.calls.append((category_id, limit, offset))
        if offset == self.fail_at_offset:
            raise TcgplayerRequestError("upstream down", status_code=503)
        window = self.products[offset : offset + limit]
        total = self.total if self.total is not None else len(self.products)
        return ProductPage(products=window, total=total)


async def _run(client, **kwargs):
    kwargs.setdefault("settings", SETTINGS)
    kwargs.setdefault("retry", RetryPolicy.no_retry())
    async with get_database_manager().session() as session:
        return await sync_tcg_catalog(session, client=client, **kwargs)


async def _rows() -> Dict[int, TcgCatalogProduct]:
    async with get_database_manager().session() as session:
        rows = (await session.execute(select(TcgCatalogProduct))).scalars().all()
        return {row.product_id: row for row in rows}


@pytest.mark.asyncio
async def test_full_pass_tombstones_missing_products(test_db):
    first = await _run(FakeCatalog([_product(1), _product(2), _product(3)]), now=T0)
    assert first.processed == 3
    assert first.removed_count == 0

    later = T0 + timedelta(hours=1)
    second = await _run(FakeCatalog([_product(1), _product(3)]), now=later)
    assert second.processed == 2
    assert second.removed_count == 1

    rows = await _rows()
    assert rows[2].product_status == ProductStatus.REMOVED.value
    assert rows[1].product_status == ProductStatus.ACTIVE.value
    assert rows[3].product_status == ProductStatus.ACTIVE.value

    async with get_database_manager().session() as session:
        removed = await CatalogProductRepository(session).list_by_status(ProductStatus.REMOVED.value)
    assert [row.product_id for row in removed] == [2]


@pytest.mark.asyncio
async def test_repeat_run_is_idempotent(test_db):
    catalog = [_product(i) for i in range(1, 5)]
    await _run(FakeCatalog(catalog), now=T0)
    await _run(FakeCatalog(catalog), now=T0 + timedelta(minutes=30))

    rows = await _rows()
    assert sorted(rows) == [1, 2, 3, 4]
    assert all(r.product_status == ProductStatus.ACTIVE.value for r in rows.values())


@pytest.mark.asyncio
async def test_removed_product_is_reactivated_when_seen_again(test_db):
    await _run(FakeCatalog([_product(1), _product(2)]), now=T0)
    await _run(FakeCatalog([_product(1)]), now=T0 + timedelta(hours=1))
    result = await _run(FakeCatalog([_product(1), _product(2)]), now=T0 + timedelta(hours=2))

    assert result.removed_count == 0
    assert (await _rows())[2].product_status == ProductStatus.ACTIVE.value


@pytest.mark.asyncio
async def test_dry_run_writes_nothing_and_previews(test_db):
    events = []
    result = await _run(
        FakeCatalog([_product(i) for i in range(1, 8)]),
        page_size=3,
        dry_run=True,
        log=lambda message, meta: events.append((message, meta)),
        now=T0,
    )
    assert result.dry_run is True
    assert result.processed == 7
    assert result.removed_count == 0
    assert await _rows() == {}

    messages = [m for m, _ in events]
    assert messages[0] == "catalog_sync:start"
    assert messages[-1] == "catalog_sync:finished"
    previews = [meta for m, meta in events if m == "catalog_sync:preview"]
    assert [p["sample_size"] for p in previews] == [3, 3, 1]
    assert previews[0]["sample"][0]["product_id"] == 1


@pytest.mark.asyncio
async def test_dry_run_defaults_to_settings(test_db):
    result = await _run(FakeCatalog([_product(1)]), settings=Settings(tcgplayer_sync_delay_ms=0))
    assert result.dry_run is True
    assert await _rows() == {}


@pytest.mark.asyncio
async def test_fetch_failure_aborts_before_tombstones(test_db):
    await _run(FakeCatalog([_product(i) for i in range(1, 6)]), page_size=2, now=T0)

    client = FakeCatalog([_product(i) for i in range(1, 6)], fail_at_offset=2)
    with pytest.raises(TcgplayerRequestError):
        await _run(client, page_size=2, now=T0 + timedelta(hours=1))

    rows = await _rows()
    assert all(r.product_status == ProductStatus.ACTIVE.value for r in rows.values())


@pytest.mark.asyncio
async def test_limited_or_offset_runs_never_tombstone(test_db):
    await _run(FakeCatalog([_product(i) for i in range(1, 6)]), now=T0)

    limited = await _run(FakeCatalog([_product(i) for i in range(1, 6)]), limit=2, now=T0 + timedelta(1))
    assert limited.processed == 2
    assert limited.removed_count == 0

    shifted = await _run(FakeCatalog([_product(i) for i in range(1, 6)]), offset=3, now=T0 + timedelta(2))
    assert shifted.processed == 2
    assert shifted.removed_count == 0

    rows = await _rows()
    assert all(r.product_status == ProductStatus.ACTIVE.value for r in rows.values())


@pytest.mark.asyncio
async def test_page_size_is_clamped_and_total_is_max_reported(test_db):
    client = FakeCatalog([_product(i) for i in range(1, 4)], total=250)
    result = await _run(client, page_size=500, now=T0)
    assert client.calls == [(ONE_PIECE_CATEGORY_ID, 100, 0)]
    assert result.reported_total == 250


def test_payload_fallbacks() -> None:
    bare = _product(42, name=None, cleanName="  ")
    payload = build_catalog_payload(bare, T0)
    assert payload["name"] == "Product 42"
    assert payload["clean_name"] is None
    assert payload["product_line_name"] == "One Piece Card Game"
    assert payload["url"] == "https://www.tcgplayer.com/product/42"
    assert payload["last_synced_at"] == T0
    assert payload["product_status"] == "active"

    named = _product(7, name="Monkey.D.Luffy", categoryName="One Piece", url="https://x/7")
    payload = build_catalog_payload(named, T0)
    assert payload["clean_name"] == "Monkey.D.Luffy"
    assert payload["product_line_name"] == "One Piece"
    assert payload["url"] == "https://x/7"
    assert payload["product_metadata"]["productId"] == 7


def test_extended_fields_and_sealed_classification() -> None:
    single = _product(
        1,
        extendedData=[
            {"name": "CardType", "value": "Leader"},
            {"name": "Rarity", "value": "L"},
            {"name": "Cost", "value": None},
        ],
    )
    assert get_extended_value(single, "CardType") == "Leader"
    assert get_extended_value(single, "Cost") is None
    assert get_extended_value(single, "Power") is None
    assert is_sealed_product(single) is False

    assert is_sealed_product(_product(2, name="Romance Dawn Booster Box")) is True
    # No CardType and no sealed keyword still counts as sealed.
    assert is_sealed_product(_product(3, name="Playmat")) is True
    assert is_sealed_product(_product(4, extendedData=[{"name": "CardType", "value": " "}])) is True
