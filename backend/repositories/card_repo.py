from __future__ import annotations

from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from models.card import Card
from .base import BaseRepository


class CardRepository(BaseRepository[Card]):
    """Repository for Card entities."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)

    async def find_id_by_code(self, code: str, base_only: bool = False) -> Optional[int]:
        """Return the id of the first card with this code (lowest id wins).

        base_only restricts the lookup to base printings (no base_card_id).
        """
        stmt = select(Card.id).where(Card.code == code)
        if base_only:
            stmt = stmt.where(Card.base_card_id.is_(None))
        stmt = stmt.order_by(Card.id).limit(1)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_with_product_id(self, only_watchlisted: bool = False) -> List[Card]:
        """Cards linked to a TCGplayer product."""
        stmt = select(Card).where(Card.tcgplayer_product_id.is_not(None))
        if only_watchlisted:
            stmt = stmt.where(Card.is_watchlisted.is_(True))
        stmt = stmt.order_by(Card.id)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
