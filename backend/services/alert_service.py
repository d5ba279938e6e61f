"""
Price alert evaluation against the current market price and the price log.

Each alert row is turned into a typed condition (AboveValue, BelowValue,
PercentChange); rows missing the fields their threshold type needs are
skipped. Triggered alerts produce an alert-log row and, for in-app alerts,
an admin notification. All rows are added in bulk at the end; the caller
commits.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, List, Optional, Sequence, Union

from sqlalchemy.ext.asyncio import AsyncSession

from models.card import Card
from models.pricing import (
    AdminNotification,
    AdminNotificationType,
    AlertNotificationMethod,
    AlertThresholdType,
    CardPriceAlert,
    CardPriceAlertLog,
    PriceType,
)
from repositories.base import BaseRepository
from repositories.pricing_repo import CardPriceAlertRepository, CardPriceLogRepository

logger = logging.getLogger(__name__)

DEFAULT_CURRENCY = "USD"

_MESSAGE_TEMPLATES = (
    "📈 {card} just moved to {price}!",
    "🚨 Price alert: {card} is now {price}",
    "💰 {card} is trading at {price}",
    "🔔 Heads up! {card} hit {price}",
    "⚡ {card} price update: {price}",
)


@dataclass(frozen=True)
class AboveValue:
    threshold: Decimal


@dataclass(frozen=True)
class BelowValue:
    threshold: Decimal


@dataclass(frozen=True)
class PercentChange:
    percent: float
    window_hours: int


AlertCondition = Union[AboveValue, BelowValue, PercentChange]


@dataclass
class TriggeredNotification:
    card_id: int
    message: str
    threshold_type: str


@dataclass
class AlertEvaluationResult:
    alerts_evaluated: int = 0
    alerts_triggered: int = 0
    notifications: List[TriggeredNotification] = field(default_factory=list)


def percent_change(previous: Decimal, current: Decimal) -> float:
    """Signed change in percent, rounded to 2 places.

    A zero baseline reports 0 when the price is still zero and 100 otherwise.
    """
    previous = Decimal(previous)
    current = Decimal(current)
    if previous == 0:
        return 0.0 if current == 0 else 100.0
    change = (current - previous) / previous * 100
    return float(change.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def alert_condition(alert: CardPriceAlert) -> Optional[AlertCondition]:
    """Typed condition for an alert row; None when the row is incomplete for its type."""
    if alert.threshold_type == AlertThresholdType.ABOVE_VALUE.value:
        if alert.threshold_value is None:
            return None
        return AboveValue(Decimal(alert.threshold_value))
    if alert.threshold_type == AlertThresholdType.BELOW_VALUE.value:
        if alert.threshold_value is None:
            return None
        return BelowValue(Decimal(alert.threshold_value))
    if alert.threshold_type == AlertThresholdType.PERCENT_CHANGE.value:
        if not alert.percent_change or not alert.percent_window_hours:
            return None
        return PercentChange(percent=alert.percent_change, window_hours=alert.percent_window_hours)
    return None


def notification_content(card_name: str, price_label: str, rng: Optional[random.Random] = None) -> str:
    """Randomized human-readable alert message."""
    template = (rng or random).choice(_MESSAGE_TEMPLATES)
    return template.format(card=card_name, price=price_label)


async def _should_trigger(
    condition: AlertCondition,
    alert: CardPriceAlert,
    current: Decimal,
    logs: CardPriceLogRepository,
    now: datetime,
) -> bool:
    if isinstance(condition, AboveValue):
        return current > condition.threshold
    if isinstance(condition, BelowValue):
        return current < condition.threshold

    cutoff = now - timedelta(hours=condition.window_hours)
    previous = await logs.latest_at_or_before(alert.card_id, PriceType.MARKET.value, cutoff)
    if previous is None:
        return False
    change = percent_change(previous.price, current)
    return abs(change) >= condition.percent


def _notification_metadata(alert: CardPriceAlert, card: Card) -> Dict[str, Any]:
    return {
        "threshold_type": alert.threshold_type,
        "threshold_value": float(alert.threshold_value) if alert.threshold_value is not None else None,
        "percent_change": alert.percent_change,
        "percent_window_hours": alert.percent_window_hours,
        "price_currency": card.price_currency or DEFAULT_CURRENCY,
    }


async def evaluate_price_alerts(
    session: AsyncSession,
    card_ids: Optional[Sequence[int]] = None,
    *,
    now: Optional[datetime] = None,
    rng: Optional[random.Random] = None,
) -> AlertEvaluationResult:
    """Evaluate active alerts (restricted to card_ids when given). Does not commit."""
    now = now or datetime.now(timezone.utc)
    alerts_repo = CardPriceAlertRepository(session)
    logs_repo = CardPriceLogRepository(session)

    pairs = await alerts_repo.list_active_with_cards(card_ids)
    result = AlertEvaluationResult(alerts_evaluated=len(pairs))
    if not pairs:
        return result

    alert_logs: List[CardPriceAlertLog] = []
    admin_notifications: List[AdminNotification] = []

    for alert, card in pairs:
        current = card.market_price
        if current is None:
            continue
        condition = alert_condition(alert)
        if condition is None:
            logger.warning("Skipping alert %s: incomplete %s threshold", alert.id, alert.threshold_type)
            continue
        if not await _should_trigger(condition, alert, Decimal(current), logs_repo, now):
            continue

        result.alerts_triggered += 1
        alert_logs.append(
            CardPriceAlertLog(
                alert_id=alert.id,
                card_id=alert.card_id,
                price=current,
                price_type=PriceType.MARKET.value,
                triggered_at=now,
            )
        )

        if alert.notification_method == AlertNotificationMethod.IN_APP.value:
            message = notification_content(
                card.name, f"{current} {card.price_currency or DEFAULT_CURRENCY}", rng
            )
            result.notifications.append(
                TriggeredNotification(
                    card_id=alert.card_id,
                    message=message,
                    threshold_type=alert.threshold_type,
                )
            )
            admin_notifications.append(
                AdminNotification(
                    title=f"{card.name} price alert",
                    message=message,
                    type=AdminNotificationType.PRICE_ALERT.value,
                    card_id=alert.card_id,
                    alert_id=alert.id,
                    notification_metadata=_notification_metadata(alert, card),
                    created_at=now,
                )
            )

    if alert_logs:
        await BaseRepository(session).add_all(alert_logs)
        await alerts_repo.touch([log.alert_id for log in alert_logs], now)
    if admin_notifications:
        await BaseRepository(session).add_all(admin_notifications)
    await session.flush()

    logger.info(
        "Evaluated %d alerts, %d triggered",
        result.alerts_evaluated,
        result.alerts_triggered,
    )
    return result
