from __future__ import annotations

from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from models.player import Player
from .base import BaseRepository


class PlayerRepository(BaseRepository[Player]):
    """Repository for Player entities."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)

    async def get_by_source_id(self, source: str, source_player_id: str) -> Optional[Player]:
        stmt = (
            select(Player)
            .where(Player.source == source)
            .where(Player.source_player_id == source_player_id)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def upsert(
        self,
        source: str,
        source_player_id: str,
        name: str,
        player_url: Optional[str],
    ) -> Player:
        """Upsert on (source, source_player_id); display name and URL follow the latest scrape."""
        existing = await self.get_by_source_id(source, source_player_id)
        if existing:
            existing.name = name
            existing.player_url = player_url
            return existing
        player = Player(
            source=source,
            source_player_id=source_player_id,
            name=name,
            player_url=player_url,
        )
        await self.add(player)
        await self.session.flush()
        return player
