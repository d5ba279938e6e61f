"""
TCGplayer price sync for cards linked to a product id.

Pricing is fetched 100 products per request. Card price columns are only
written when a rounded value actually changed, but every fetched price is
appended to card_price_logs. Alerts are evaluated for the logged cards and
everything is committed in one transaction at the end.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from core.config import get_settings
from ingestion.connectors.tcgplayer import TcgplayerClient, select_best_pricing
from ingestion.retry import RetryPolicy
from models.pricing import CardPriceLog, PriceType
from repositories.card_repo import CardRepository
from repositories.pricing_repo import CardPriceLogRepository

from .alert_service import evaluate_price_alerts

logger = logging.getLogger(__name__)

PRICE_BATCH_SIZE = 100
DEFAULT_CURRENCY = "USD"
PRICE_LOG_SOURCE = "TCGplayer"


@dataclass
class PriceSyncResult:
    cards_processed: int = 0
    cards_updated: int = 0
    logs_created: int = 0
    alerts_triggered: int = 0


def rounded_price(value: Optional[float]) -> Optional[Decimal]:
    """Round half-up to cents; None stays None."""
    if value is None:
        return None
    try:
        return Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    except InvalidOperation:
        return None


def has_changed(current: Optional[Decimal], incoming: Optional[Decimal]) -> bool:
    """Both None is no change; None on exactly one side is a change."""
    if current is None:
        return incoming is not None
    if incoming is None:
        return True
    return Decimal(current) != incoming


async def sync_tcgplayer_prices(
    session: AsyncSession,
    *,
    client: TcgplayerClient,
    only_watchlisted: bool = False,
    retry: Optional[RetryPolicy] = None,
    now: Optional[datetime] = None,
) -> PriceSyncResult:
    retry = retry or RetryPolicy.from_settings(get_settings())
    now = now or datetime.now(timezone.utc)

    cards = await CardRepository(session).list_with_product_id(only_watchlisted=only_watchlisted)
    result = PriceSyncResult(cards_processed=len(cards))
    if not cards:
        return result

    logs: List[CardPriceLog] = []

    for start in range(0, len(cards), PRICE_BATCH_SIZE):
        chunk = cards[start : start + PRICE_BATCH_SIZE]
        product_ids = [
            card.tcgplayer_product_id
            for card in chunk
            if card.tcgplayer_product_id is not None and card.tcgplayer_product_id > 0
        ]
        if not product_ids:
            continue

        entries = await retry.run(client.get_product_pricing, product_ids)
        best = select_best_pricing(entries)
        logger.info("Fetched pricing for %d/%d products", len(best), len(product_ids))

        for card in chunk:
            pricing = best.get(card.tcgplayer_product_id)
            if pricing is None:
                continue

            market = rounded_price(
                pricing.market_price if pricing.market_price is not None else pricing.mid_price
            )
            low = rounded_price(pricing.low_price)
            high = rounded_price(
                pricing.high_price if pricing.high_price is not None else pricing.direct_low_price
            )

            changed = False
            for attr, incoming in (("market_price", market), ("low_price", low), ("high_price", high)):
                if has_changed(getattr(card, attr), incoming):
                    setattr(card, attr, incoming)
                    changed = True
            if changed:
                card.price_updated_at = now
                card.price_currency = card.price_currency or DEFAULT_CURRENCY
                result.cards_updated += 1

            for price_type, price in (
                (PriceType.MARKET, market),
                (PriceType.LOW, low),
                (PriceType.HIGH, high),
            ):
                if price is None:
                    continue
                logs.append(
                    CardPriceLog(
                        card_id=card.id,
                        price_type=price_type.value,
                        price=price,
                        collected_at=now,
                        source=PRICE_LOG_SOURCE,
                    )
                )

    if logs:
        await CardPriceLogRepository(session).add_all(logs)
        await session.flush()
    result.logs_created = len(logs)

    alert_card_ids = sorted({log.card_id for log in logs})
    if alert_card_ids:
        alert_result = await evaluate_price_alerts(session, alert_card_ids, now=now)
        result.alerts_triggered = alert_result.alerts_triggered

    await session.commit()
    logger.info(
        "Price sync finished: processed=%d updated=%d logs=%d alerts=%d",
        result.cards_processed,
        result.cards_updated,
        result.logs_created,
        result.alerts_triggered,
    )
    return result
