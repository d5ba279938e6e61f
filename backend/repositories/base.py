from __future__ import annotations

from typing import Generic, Iterable, List, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession

from models.base import Base

T = TypeVar("T", bound=Base)


class BaseRepository(Generic[T]):
    """Base repository with common write helpers.

    No commits are performed here - commit responsibility is left to the
    sync services.
    """

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with an async session."""
        self.session = session

    async def add(self, entity: T) -> T:
        """Add an entity to the session (not committed)."""
        self.session.add(entity)
        return entity

    async def add_all(self, entities: Iterable[T]) -> List[T]:
        """Add several entities; flushed as one multi-row insert per table."""
        items = list(entities)
        self.session.add_all(items)
        return items
