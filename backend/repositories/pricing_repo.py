from __future__ import annotations

from datetime import datetime
from typing import List, Optional, Sequence, Tuple

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from models.card import Card
from models.pricing import CardPriceAlert, CardPriceLog
from .base import BaseRepository


class CardPriceLogRepository(BaseRepository[CardPriceLog]):
    """Append-only access to the price time series."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)

    async def latest_at_or_before(
        self, card_id: int, price_type: str, cutoff: datetime
    ) -> Optional[CardPriceLog]:
        """Most recent log for (card, price_type) collected at or before cutoff."""
        stmt = (
            select(CardPriceLog)
            .where(CardPriceLog.card_id == card_id)
            .where(CardPriceLog.price_type == price_type)
            .where(CardPriceLog.collected_at <= cutoff)
            .order_by(CardPriceLog.collected_at.desc(), CardPriceLog.id.desc())
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_for_card(self, card_id: int) -> List[CardPriceLog]:
        stmt = (
            select(CardPriceLog)
            .where(CardPriceLog.card_id == card_id)
            .order_by(CardPriceLog.collected_at, CardPriceLog.id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())


class CardPriceAlertRepository(BaseRepository[CardPriceAlert]):
    """Repository for CardPriceAlert entities."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)

    async def list_active_with_cards(
        self, card_ids: Optional[Sequence[int]] = None
    ) -> List[Tuple[CardPriceAlert, Card]]:
        """Active alerts joined with their card, optionally restricted to card_ids."""
        stmt = (
            select(CardPriceAlert, Card)
            .join(Card, Card.id == CardPriceAlert.card_id)
            .where(CardPriceAlert.is_active.is_(True))
            .order_by(CardPriceAlert.id)
        )
        if card_ids:
            stmt = stmt.where(CardPriceAlert.card_id.in_(list(card_ids)))
        result = await self.session.execute(stmt)
        return [(alert, card) for alert, card in result.all()]

    async def touch(self, alert_ids: Sequence[int], now: datetime) -> None:
        """Bump updated_at on triggered alerts in one statement."""
        if not alert_ids:
            return
        stmt = (
            update(CardPriceAlert)
            .where(CardPriceAlert.id.in_(list(alert_ids)))
            .values(updated_at=now)
            .execution_options(synchronize_session=False)
        )
        await self.session.execute(stmt)
