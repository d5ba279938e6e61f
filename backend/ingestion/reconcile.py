"""
Idempotent upsert-and-mark-stale reconciliation.

A Reconciler consumes pages of external entities, upserts each one by a
pluggable identity key, stamps it with the run timestamp and, after a
complete pass, tombstones every stored record the run did not touch.

Page sources are plain async iterators; ``paginate_offsets`` builds one
for offset/limit APIs (stop on an empty or short page, courtesy delay
between pages). Fetch errors propagate out of ``run`` before the
tombstone step, so an aborted run never marks survivors as removed.
The engine does not retry; wrap the page fetch in a RetryPolicy instead.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import (
    Any,
    AsyncIterable,
    AsyncIterator,
    Awaitable,
    Callable,
    Generic,
    List,
    Optional,
    Sequence,
    TypeVar,
)

logger = logging.getLogger(__name__)

E = TypeVar("E")  # external entity
K = TypeVar("K")  # identity key
R = TypeVar("R")  # stored record


class UpsertOutcome(str, Enum):
    CREATED = "created"
    UPDATED = "updated"


@dataclass
class ReconcileResult:
    timestamp: datetime
    dry_run: bool = False
    processed: int = 0
    created: int = 0
    updated: int = 0
    stale_count: int = 0
    pages: int = 0

    def record(self, outcome: UpsertOutcome) -> None:
        self.processed += 1
        if outcome is UpsertOutcome.CREATED:
            self.created += 1
        else:
            self.updated += 1


async def paginate_offsets(
    fetch_page: Callable[[int, int], Awaitable[Sequence[E]]],
    *,
    page_size: int,
    offset: int = 0,
    limit: Optional[int] = None,
    delay_seconds: float = 0.0,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> AsyncIterator[List[E]]:
    """Yield pages from fetch_page(offset, page_size).

    Stops on an empty page, on a page shorter than requested, or once
    ``limit`` entities have been yielded. The last page of a limited run
    is requested with the remaining count only.
    """
    yielded = 0
    offset = max(offset, 0)
    while True:
        remaining = None if limit is None else limit - yielded
        if remaining is not None and remaining <= 0:
            break
        requested = page_size if remaining is None else min(page_size, remaining)

        items = list(await fetch_page(offset, requested))
        if not items:
            logger.debug("Empty page at offset %d", offset)
            break

        yield items
        yielded += len(items)

        if limit is not None and yielded >= limit:
            logger.debug("Limit of %d entities reached", limit)
            break
        offset += len(items)
        if len(items) < requested:
            logger.debug("Last page reached (%d < %d)", len(items), requested)
            break
        if delay_seconds > 0:
            await sleep(delay_seconds)


@dataclass
class Reconciler(Generic[E, K, R]):
    """Upsert pages of entities keyed by ``identity`` and tombstone the rest.

    ``find`` / ``create`` / ``update`` bind the engine to one table.
    ``update`` must leave creation metadata alone. ``commit`` is awaited
    every ``chunk_size`` upserts and at the end of each page; leave it
    unset to let the caller own the transaction. In dry-run mode pages are
    handed to ``preview`` and nothing is written, tombstones included.
    """

    identity: Callable[[E], K]
    find: Callable[[K], Awaitable[Optional[R]]]
    create: Callable[[K, E, datetime], Awaitable[Any]]
    update: Callable[[R, E, datetime], Awaitable[Any]]
    mark_stale: Optional[Callable[[datetime], Awaitable[int]]] = None
    commit: Optional[Callable[[], Awaitable[None]]] = None
    chunk_size: Optional[int] = None
    dry_run: bool = False
    preview: Optional[Callable[[List[E]], None]] = field(default=None, repr=False)

    async def upsert(self, entity: E, timestamp: datetime) -> UpsertOutcome:
        key = self.identity(entity)
        existing = await self.find(key)
        if existing is not None:
            await self.update(existing, entity, timestamp)
            return UpsertOutcome.UPDATED
        await self.create(key, entity, timestamp)
        return UpsertOutcome.CREATED

    async def _commit(self) -> None:
        if self.commit is not None:
            await self.commit()

    async def run(
        self,
        pages: AsyncIterable[Sequence[E]],
        timestamp: datetime,
        *,
        tombstone: bool = True,
    ) -> ReconcileResult:
        """Reconcile every page; tombstone only when the pass was complete.

        Pass ``tombstone=False`` when the page source was deliberately
        truncated (offset or limit), since untouched rows are then unknown
        rather than gone.
        """
        result = ReconcileResult(timestamp=timestamp, dry_run=self.dry_run)
        pending = 0

        async for page in pages:
            batch = list(page)
            if not batch:
                break
            result.pages += 1

            if self.dry_run:
                if self.preview is not None:
                    self.preview(batch)
                result.processed += len(batch)
                continue

            for entity in batch:
                result.record(await self.upsert(entity, timestamp))
                pending += 1
                if self.chunk_size and pending >= self.chunk_size:
                    await self._commit()
                    pending = 0
            if pending:
                await self._commit()
                pending = 0

        if self.dry_run:
            return result

        if tombstone and self.mark_stale is not None:
            result.stale_count = await self.mark_stale(timestamp)
            await self._commit()
            if result.stale_count:
                logger.info("Marked %d records as removed", result.stale_count)

        return result
