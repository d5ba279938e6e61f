from __future__ import annotations

from datetime import datetime
from typing import List, Optional, Sequence, Tuple

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from models.deck import Deck, DeckCard
from models.tournament_deck import TournamentDeck
from .base import BaseRepository


class DeckRepository(BaseRepository[Deck]):
    """Repository for Deck and DeckCard entities."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)

    async def get_by_unique_url(self, unique_url: str) -> Optional[Deck]:
        stmt = select(Deck).where(Deck.unique_url == unique_url)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def upsert_by_unique_url(
        self,
        unique_url: str,
        name: str,
        description: Optional[str],
        now: datetime,
    ) -> Deck:
        existing = await self.get_by_unique_url(unique_url)
        if existing:
            existing.name = name
            existing.description = description
            existing.updated_at = now
            return existing
        deck = Deck(
            unique_url=unique_url,
            name=name,
            description=description,
            is_published=False,
            is_shop_deck=False,
            created_at=now,
            updated_at=now,
        )
        await self.add(deck)
        await self.session.flush()
        return deck

    async def replace_cards(
        self, deck_id: int, cards: Sequence[Tuple[int, int]]
    ) -> None:
        """Delete every DeckCard of the deck and insert (card_id, quantity) pairs.

        Caller commits; both statements land in the same transaction.
        """
        await self.session.execute(delete(DeckCard).where(DeckCard.deck_id == deck_id))
        if cards:
            await self.add_all(
                DeckCard(deck_id=deck_id, card_id=card_id, quantity=quantity)
                for card_id, quantity in cards
            )
        await self.session.flush()

    async def list_cards(self, deck_id: int) -> List[DeckCard]:
        stmt = select(DeckCard).where(DeckCard.deck_id == deck_id).order_by(DeckCard.id)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())


class TournamentDeckRepository(BaseRepository[TournamentDeck]):
    """Repository for TournamentDeck entities."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)

    async def get_by_ref(self, source_deck_ref: str) -> Optional[TournamentDeck]:
        stmt = select(TournamentDeck).where(TournamentDeck.source_deck_ref == source_deck_ref)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_for_tournament(self, tournament_id: int) -> List[TournamentDeck]:
        stmt = (
            select(TournamentDeck)
            .where(TournamentDeck.tournament_id == tournament_id)
            .order_by(TournamentDeck.id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
