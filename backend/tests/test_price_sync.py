"""Price sync: change detection, price log, and alert evaluation for synced cards."""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, List

import pytest
from sqlalchemy import select

from core.database import get_database_manager
from ingestion.retry import RetryPolicy
from ingestion.schema import PricingEntry
from models.card import Card
from models.pricing import AdminNotification, AlertThresholdType, CardPriceAlert, CardPriceAlertLog
from repositories.pricing_repo import CardPriceLogRepository
from services.price_sync_service import has_changed, rounded_price, sync_tcgplayer_prices

NOW = datetime(2024, 6, 1, 9, 30, tzinfo=timezone.utc)


class FakePricing:
    def __init__(self, entries: List[dict]) -> None:
        self.entries = [PricingEntry.model_validate(e) for e in entries]
        self.requested: List[List[int]] = []

    async def get_product_pricing(self, product_ids):
        ids = list(product_ids)
        self.requested.append(ids)
        return [e for e in self.entries if e.product_id in ids]


async def _seed_card(**fields) -> int:
    async with get_database_manager().session() as session:
        card = Card(code=fields.pop("code", "OP01-001"), name=fields.pop("name", "Zoro"), **fields)
        session.add(card)
        await session.flush()
        return card.id


async def _sync(client, **kwargs):
    async with get_database_manager().session() as session:
        return await sync_tcgplayer_prices(
            session, client=client, retry=RetryPolicy.no_retry(), now=NOW, **kwargs
        )


async def _logs_by_type(card_id: int) -> Dict[str, Decimal]:
    async with get_database_manager().session() as session:
        rows = await CardPriceLogRepository(session).list_for_card(card_id)
        return {row.price_type: row.price for row in rows}


def test_rounded_price_and_change_detection() -> None:
    assert rounded_price(2.675) == Decimal("2.68")
    assert rounded_price(1) == Decimal("1.00")
    assert rounded_price(None) is None

    assert has_changed(None, None) is False
    assert has_changed(None, Decimal("1.00")) is True
    assert has_changed(Decimal("1.00"), None) is True
    assert has_changed(Decimal("1.00"), Decimal("1.00")) is False
    assert has_changed(Decimal("1.00"), Decimal("1.01")) is True


@pytest.mark.asyncio
async def test_unchanged_price_is_logged_but_card_untouched(test_db):
    card_id = await _seed_card(tcgplayer_product_id=500, market_price=Decimal("12.50"))

    result = await _sync(FakePricing([{"productId": 500, "marketPrice": 12.5, "subTypeName": "Normal"}]))

    assert result.cards_processed == 1
    assert result.cards_updated == 0
    assert result.logs_created == 1
    assert await _logs_by_type(card_id) == {"MARKET": Decimal("12.50")}

    async with get_database_manager().session() as session:
        card = await session.get(Card, card_id)
        assert card.price_updated_at is None
        assert card.price_currency is None


@pytest.mark.asyncio
async def test_changed_prices_update_card_with_fallbacks(test_db):
    card_id = await _seed_card(tcgplayer_product_id=501, market_price=Decimal("3.00"))

    # No market or high price: mid and direct low stand in for them.
    client = FakePricing(
        [{"productId": 501, "midPrice": 4.125, "lowPrice": 3.5, "directLowPrice": 3.9, "subTypeName": "Normal"}]
    )
    result = await _sync(client)

    assert result.cards_updated == 1
    assert result.logs_created == 3
    assert await _logs_by_type(card_id) == {
        "MARKET": Decimal("4.13"),
        "LOW": Decimal("3.50"),
        "HIGH": Decimal("3.90"),
    }

    async with get_database_manager().session() as session:
        card = await session.get(Card, card_id)
        assert card.market_price == Decimal("4.13")
        assert card.low_price == Decimal("3.50")
        assert card.high_price == Decimal("3.90")
        assert card.price_currency == "USD"
        assert card.price_updated_at is not None


@pytest.mark.asyncio
async def test_best_variant_wins_and_unlinked_cards_are_ignored(test_db):
    linked = await _seed_card(tcgplayer_product_id=502)
    await _seed_card(code="OP01-002", name="Unlinked")

    client = FakePricing(
        [
            {"productId": 502, "marketPrice": 9.0, "lowPrice": 7.0, "highPrice": 12.0, "subTypeName": "Foil"},
            {"productId": 502, "marketPrice": 1.0, "subTypeName": "Normal"},
        ]
    )
    result = await _sync(client)

    assert result.cards_processed == 1
    assert client.requested == [[502]]
    assert (await _logs_by_type(linked))["MARKET"] == Decimal("9.00")


@pytest.mark.asyncio
async def test_only_watchlisted_restricts_cards(test_db):
    await _seed_card(tcgplayer_product_id=601)
    watched = await _seed_card(code="OP02-001", tcgplayer_product_id=602, is_watchlisted=True)

    client = FakePricing(
        [
            {"productId": 601, "marketPrice": 1.0},
            {"productId": 602, "marketPrice": 2.0},
        ]
    )
    result = await _sync(client, only_watchlisted=True)

    assert result.cards_processed == 1
    assert client.requested == [[602]]
    assert await _logs_by_type(watched) == {"MARKET": Decimal("2.00")}


@pytest.mark.asyncio
async def test_no_linked_cards_makes_no_requests(test_db):
    client = FakePricing([])
    result = await _sync(client)
    assert result.cards_processed == 0
    assert client.requested == []


@pytest.mark.asyncio
async def test_price_change_triggers_alerts(test_db):
    card_id = await _seed_card(tcgplayer_product_id=700, market_price=Decimal("8.00"))
    async with get_database_manager().session() as session:
        session.add(
            CardPriceAlert(
                card_id=card_id,
                threshold_type=AlertThresholdType.ABOVE_VALUE.value,
                threshold_value=Decimal("10.00"),
            )
        )

    result = await _sync(FakePricing([{"productId": 700, "marketPrice": 12.0}]))

    assert result.alerts_triggered == 1
    async with get_database_manager().session() as session:
        alert_logs = (await session.execute(select(CardPriceAlertLog))).scalars().all()
        assert [(log.card_id, log.price) for log in alert_logs] == [(card_id, Decimal("12.00"))]
        notifications = (await session.execute(select(AdminNotification))).scalars().all()
        assert [n.title for n in notifications] == ["Zoro price alert"]
