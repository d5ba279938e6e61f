"""
Card code -> internal card id resolution with a per-run memo.

Construct one CardIdResolver per sync run and pass it down; the cache is
never evicted, so it is only valid while the catalog is stable.
"""

from __future__ import annotations

import logging
from typing import Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from repositories.card_repo import CardRepository

logger = logging.getLogger(__name__)


class CardIdResolver:
    """Resolve scraped card codes, preferring the base printing over alternates."""

    def __init__(self, session: AsyncSession) -> None:
        self._cards = CardRepository(session)
        self._cache: Dict[str, int] = {}

    async def resolve(self, code: Optional[str]) -> Optional[int]:
        """Return the card id for code, or None when the catalog has no such card.

        None means "drop this entry"; misses are logged and not cached so a
        card added mid-run can still be picked up.
        """
        if not code:
            return None
        cached = self._cache.get(code)
        if cached is not None:
            return cached

        card_id = await self._cards.find_id_by_code(code, base_only=True)
        if card_id is None:
            card_id = await self._cards.find_id_by_code(code)

        if card_id is None:
            logger.warning("Could not resolve card code: %s", code)
            return None

        self._cache[code] = card_id
        return card_id

    def cache_size(self) -> int:
        return len(self._cache)
