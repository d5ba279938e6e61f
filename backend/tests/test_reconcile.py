"""Reconciler and paginate_offsets against an in-memory store."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

import pytest

from ingestion.reconcile import Reconciler, UpsertOutcome, paginate_offsets

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


@dataclass
class Row:
    key: str
    value: str
    created_at: datetime
    synced_at: datetime
    removed: bool = False


class Store:
    def __init__(self) -> None:
        self.rows: Dict[str, Row] = {}
        self.commits = 0

    async def find(self, key: str) -> Optional[Row]:
        return self.rows.get(key)

    async def create(self, key: str, entity: dict, ts: datetime) -> None:
        self.rows[key] = Row(key, entity["value"], created_at=ts, synced_at=ts)

    async def update(self, row: Row, entity: dict, ts: datetime) -> None:
        row.value = entity["value"]
        row.synced_at = ts
        row.removed = False

    async def mark_stale(self, ts: datetime) -> int:
        stale = [r for r in self.rows.values() if r.synced_at < ts and not r.removed]
        for r in stale:
            r.removed = True
        return len(stale)

    async def commit(self) -> None:
        self.commits += 1

    def reconciler(self, **kwargs) -> Reconciler:
        return Reconciler(
            identity=lambda e: e["id"],
            find=self.find,
            create=self.create,
            update=self.update,
            mark_stale=self.mark_stale,
            commit=self.commit,
            **kwargs,
        )


async def _pages(*pages: List[dict]):
    for page in pages:
        yield page


def _entities(*ids: str) -> List[dict]:
    return [{"id": i, "value": f"v-{i}"} for i in ids]


@pytest.mark.asyncio
async def test_second_identical_run_only_updates() -> None:
    store = Store()
    first = await store.reconciler().run(_pages(_entities("a", "b"), _entities("c")), T0)
    assert (first.processed, first.created, first.updated) == (3, 3, 0)

    later = T0 + timedelta(hours=1)
    second = await store.reconciler().run(_pages(_entities("a", "b"), _entities("c")), later)
    assert (second.processed, second.created, second.updated, second.stale_count) == (3, 0, 3, 0)
    assert len(store.rows) == 3
    # Creation metadata untouched by updates.
    assert all(r.created_at == T0 and r.synced_at == later for r in store.rows.values())


@pytest.mark.asyncio
async def test_untouched_rows_are_tombstoned_after_full_pass() -> None:
    store = Store()
    await store.reconciler().run(_pages(_entities("a", "b", "c")), T0)

    result = await store.reconciler().run(_pages(_entities("a", "c")), T0 + timedelta(minutes=5))

    assert result.stale_count == 1
    assert store.rows["b"].removed is True
    assert not store.rows["a"].removed and not store.rows["c"].removed


@pytest.mark.asyncio
async def test_fetch_failure_aborts_before_tombstones() -> None:
    store = Store()
    await store.reconciler().run(_pages(_entities("a", "b", "c")), T0)

    async def failing_pages():
        yield _entities("a")
        raise RuntimeError("page 2 failed")

    with pytest.raises(RuntimeError):
        await store.reconciler().run(failing_pages(), T0 + timedelta(minutes=5))
    assert not any(r.removed for r in store.rows.values())


@pytest.mark.asyncio
async def test_dry_run_previews_without_writes() -> None:
    store = Store()
    previews = []
    result = await store.reconciler(dry_run=True, preview=previews.append).run(
        _pages(_entities("a", "b"), _entities("c")), T0
    )
    assert result.dry_run is True
    assert result.processed == 3
    assert result.stale_count == 0
    assert store.rows == {}
    assert store.commits == 0
    assert [len(p) for p in previews] == [2, 1]


@pytest.mark.asyncio
async def test_truncated_pass_skips_tombstones() -> None:
    store = Store()
    await store.reconciler().run(_pages(_entities("a", "b")), T0)
    result = await store.reconciler().run(_pages(_entities("a")), T0 + timedelta(1), tombstone=False)
    assert result.stale_count == 0
    assert store.rows["b"].removed is False


@pytest.mark.asyncio
async def test_commits_every_chunk_and_at_page_end() -> None:
    store = Store()
    ids = [str(i) for i in range(60)]
    await store.reconciler(chunk_size=25).run(_pages(_entities(*ids)), T0)
    # 25 + 25 + remaining 10 at page end + tombstone pass.
    assert store.commits == 4


@pytest.mark.asyncio
async def test_upsert_reports_outcome() -> None:
    store = Store()
    reconciler = store.reconciler()
    assert await reconciler.upsert({"id": "x", "value": "1"}, T0) is UpsertOutcome.CREATED
    assert await reconciler.upsert({"id": "x", "value": "2"}, T0) is UpsertOutcome.UPDATED
    assert store.rows["x"].value == "2"


class OffsetSource:
    def __init__(self, total: int) -> None:
        self.total = total
        self.calls = []

    async def __call__(self, offset: int, limit: int) -> List[int]:
        self.calls.append((offset, limit))
        return list(range(offset, min(offset + limit, self.total)))


async def _collect(gen) -> List[List[int]]:
    return [page async for page in gen]


@pytest.mark.asyncio
async def test_paginate_stops_on_short_page_with_delay_between_full_pages() -> None:
    source = OffsetSource(total=250)
    sleeps = []

    async def fake_sleep(seconds: float) -> None:
        sleeps.append(seconds)

    pages = await _collect(
        paginate_offsets(source, page_size=100, delay_seconds=2.0, sleep=fake_sleep)
    )
    assert [len(p) for p in pages] == [100, 100, 50]
    assert source.calls == [(0, 100), (100, 100), (200, 100)]
    assert sleeps == [2.0, 2.0]


@pytest.mark.asyncio
async def test_paginate_stops_on_empty_page() -> None:
    source = OffsetSource(total=200)
    pages = await _collect(paginate_offsets(source, page_size=100))
    assert [len(p) for p in pages] == [100, 100]
    assert source.calls[-1] == (200, 100)


@pytest.mark.asyncio
async def test_paginate_honours_offset_and_limit() -> None:
    source = OffsetSource(total=1000)
    pages = await _collect(paginate_offsets(source, page_size=100, offset=50, limit=130))
    assert [len(p) for p in pages] == [100, 30]
    assert source.calls == [(50, 100), (150, 30)]
