from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from models.tournament import Tournament, TournamentSource
from .base import BaseRepository


class TournamentSourceRepository(BaseRepository[TournamentSource]):
    """Repository for TournamentSource entities."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)

    async def get_by_slug(self, slug: str) -> Optional[TournamentSource]:
        stmt = select(TournamentSource).where(TournamentSource.slug == slug)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def upsert(
        self,
        slug: str,
        name: str,
        base_url: Optional[str],
        description: Optional[str],
        last_synced_at: datetime,
    ) -> TournamentSource:
        """Upsert on slug (SELECT + UPDATE/INSERT). Description is only set on create."""
        existing = await self.get_by_slug(slug)
        if existing:
            existing.name = name
            existing.base_url = base_url
            existing.last_synced_at = last_synced_at
            return existing
        source = TournamentSource(
            slug=slug,
            name=name,
            base_url=base_url,
            description=description,
            last_synced_at=last_synced_at,
        )
        await self.add(source)
        await self.session.flush()
        return source


class TournamentRepository(BaseRepository[Tournament]):
    """Repository for Tournament entities."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)

    async def get_by_source_key(
        self, source_id: int, source_tournament_id: str
    ) -> Optional[Tournament]:
        """Get tournament by its (source_id, source_tournament_id) identity."""
        stmt = (
            select(Tournament)
            .where(Tournament.source_id == source_id)
            .where(Tournament.source_tournament_id == source_tournament_id)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_for_source(
        self, source_id: int, limit: Optional[int] = None
    ) -> List[Tournament]:
        """List a source's tournaments, newest event first."""
        stmt = (
            select(Tournament)
            .where(Tournament.source_id == source_id)
            .order_by(Tournament.event_date.desc(), Tournament.id.desc())
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
