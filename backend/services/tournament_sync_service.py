"""
Limitless tournament sync: tournament listings, then per-tournament placements and decks.

sync_limitless_tournaments reconciles the listing into Tournament rows
(create or update in place, no tombstones). sync_limitless_tournament_decks
walks stored tournaments newest first and records one TournamentDeck per
placement, building the Deck from the scraped list only when the placement
has none yet.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import httpx
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import get_settings
from ingestion.connectors.limitless import (
    LIMITLESS_BASE_URL,
    LIMITLESS_SOURCE,
    LimitlessClient,
    detect_tournament_type,
    extract_player_id,
)
from ingestion.reconcile import Reconciler
from ingestion.resolver import CardIdResolver
from ingestion.retry import RetryPolicy
from ingestion.schema import DeckListData, LimitlessTournamentRow
from models.tournament import Tournament, TournamentStatus
from models.tournament_deck import TournamentDeck
from repositories.deck_repo import DeckRepository, TournamentDeckRepository
from repositories.player_repo import PlayerRepository
from repositories.tournament_repo import TournamentRepository, TournamentSourceRepository

logger = logging.getLogger(__name__)

LIMITLESS_SOURCE_NAME = "Limitless TCG"
LIMITLESS_SOURCE_DESCRIPTION = "Limitless One Piece event listings"


class TournamentSourceNotFoundError(LookupError):
    """Deck sync was invoked before the tournament sync created the source row."""


@dataclass
class TournamentSyncResult:
    source_id: int
    total: int
    created: int
    updated: int


@dataclass
class DeckSyncResult:
    processed: int = 0
    created: int = 0
    updated: int = 0
    skipped: int = 0
    tournaments_processed: int = 0


@dataclass
class DeckBuildResult:
    deck_id: int
    leader_card_id: Optional[int]
    cards_resolved: int
    cards_dropped: int


def normalize_ref_part(value: Optional[str]) -> str:
    """Lowercase, dash-joined, [a-z0-9-] only; "unknown" for empty input."""
    if not value:
        return "unknown"
    normalized = re.sub(r"\s+", "-", value.lower().strip())
    return re.sub(r"[^a-z0-9-]", "", normalized)


def build_source_deck_ref(
    source_tournament_id: str,
    deck_list_id: str,
    player_name: Optional[str],
    standing: Optional[int],
) -> str:
    """Composite idempotency key for one placement.

    Deck-list ids repeat across tournaments, so the tournament id, the
    normalized player name and the standing are all part of the key.
    """
    standing_part = str(standing) if standing is not None else "na"
    return (
        f"{LIMITLESS_SOURCE}-{source_tournament_id}-{deck_list_id}-"
        f"{normalize_ref_part(player_name)}-{standing_part}"
    )


def build_legacy_source_deck_ref(deck_list_id: str) -> str:
    """Single-field key used by earlier imports; checked as a migration fallback."""
    return f"{LIMITLESS_SOURCE}-list-{deck_list_id}"


def _tournament_fields(row: LimitlessTournamentRow) -> Dict[str, Any]:
    tournament_type = detect_tournament_type(row.name)
    return {
        "type": tournament_type.value if tournament_type else None,
        "name": row.name,
        "region": row.region,
        "country": row.country,
        "format": row.format,
        "player_count": row.player_count,
        "is_player_count_approx": row.is_player_count_approx,
        "winner_name": row.winner_name,
        "winner_url": row.winner_url,
        "event_date": row.event_date,
        "tournament_url": row.tournament_url,
        "status": TournamentStatus.COMPLETED.value,
    }


async def sync_limitless_tournaments(
    session: AsyncSession,
    *,
    client: LimitlessClient,
    retry: Optional[RetryPolicy] = None,
    now: Optional[datetime] = None,
) -> TournamentSyncResult:
    """Crawl every listing page and upsert tournaments by (source_id, source_tournament_id)."""
    retry = retry or RetryPolicy.from_settings(get_settings())
    now = now or datetime.now(timezone.utc)

    source = await TournamentSourceRepository(session).upsert(
        slug=LIMITLESS_SOURCE,
        name=LIMITLESS_SOURCE_NAME,
        base_url=client.base_url or LIMITLESS_BASE_URL,
        description=LIMITLESS_SOURCE_DESCRIPTION,
        last_synced_at=now,
    )
    source_id = source.id
    tournaments = TournamentRepository(session)

    async def find(source_tournament_id: str) -> Optional[Tournament]:
        return await tournaments.get_by_source_key(source_id, source_tournament_id)

    async def create(source_tournament_id: str, row: LimitlessTournamentRow, ts: datetime) -> None:
        await tournaments.add(
            Tournament(
                source_id=source_id,
                source_tournament_id=source_tournament_id,
                created_at=ts,
                updated_at=ts,
                **_tournament_fields(row),
            )
        )

    async def update(existing: Tournament, row: LimitlessTournamentRow, ts: datetime) -> None:
        for key, value in _tournament_fields(row).items():
            setattr(existing, key, value)
        existing.updated_at = ts

    reconciler: Reconciler[LimitlessTournamentRow, str, Tournament] = Reconciler(
        identity=lambda row: row.source_tournament_id,
        find=find,
        create=create,
        update=update,
        commit=session.commit,
    )
    # Tournaments are not known to disappear upstream; no tombstone pass.
    result = await reconciler.run(client.iter_tournament_pages(retry), now, tombstone=False)
    await session.commit()

    logger.info(
        "Limitless tournament sync finished: total=%d created=%d updated=%d",
        result.processed,
        result.created,
        result.updated,
    )
    return TournamentSyncResult(
        source_id=source_id,
        total=result.processed,
        created=result.created,
        updated=result.updated,
    )


async def upsert_deck_from_list(
    session: AsyncSession,
    *,
    resolver: CardIdResolver,
    list_id: str,
    deck_name: str,
    deck_list: DeckListData,
    player_name: str,
    tournament_name: str,
    description: Optional[str] = None,
    now: Optional[datetime] = None,
) -> DeckBuildResult:
    """Upsert the Deck for a scraped list and replace its cards.

    Unresolvable card codes are dropped. Does not commit: the card
    delete-then-insert must land in the caller's transaction.
    """
    now = now or datetime.now(timezone.utc)
    card_records = []
    dropped = 0
    for entry in deck_list.cards:
        card_id = await resolver.resolve(entry.code)
        if card_id is None:
            dropped += 1
            continue
        card_records.append((card_id, entry.quantity))

    leader_card_id = await resolver.resolve(deck_list.leader_code) if deck_list.leader_code else None

    decks = DeckRepository(session)
    deck = await decks.upsert_by_unique_url(
        unique_url=f"{LIMITLESS_SOURCE}-{list_id}",
        name=deck_name,
        description=description
        or f"{player_name} • {tournament_name} • imported from Limitless ({list_id})",
        now=now,
    )
    await decks.replace_cards(deck.id, card_records)

    return DeckBuildResult(
        deck_id=deck.id,
        leader_card_id=leader_card_id,
        cards_resolved=len(card_records),
        cards_dropped=dropped,
    )


async def sync_limitless_tournament_decks(
    session: AsyncSession,
    *,
    client: LimitlessClient,
    resolver: Optional[CardIdResolver] = None,
    retry: Optional[RetryPolicy] = None,
    limit: Optional[int] = None,
) -> DeckSyncResult:
    """Import placements for stored tournaments, newest event first.

    Rows without a deck-list link are skipped, as are placements whose deck
    list cannot be fetched. A tournament page failure aborts the run; every
    placement already committed stays.
    """
    source = await TournamentSourceRepository(session).get_by_slug(LIMITLESS_SOURCE)
    if source is None:
        raise TournamentSourceNotFoundError(
            f"Tournament source '{LIMITLESS_SOURCE}' not found. Run base sync first."
        )

    resolver = resolver or CardIdResolver(session)
    retry = retry or RetryPolicy.from_settings(get_settings())
    players = PlayerRepository(session)
    tournament_decks = TournamentDeckRepository(session)

    tournaments = await TournamentRepository(session).list_for_source(source.id, limit=limit)
    result = DeckSyncResult()
    logger.info("Starting deck import for %d tournaments", len(tournaments))

    for tournament in tournaments:
        logger.info(
            "Processing tournament %s - %s (%s)",
            tournament.id,
            tournament.name,
            tournament.tournament_url,
        )
        placements = await retry.run(client.fetch_tournament_result_rows, tournament.tournament_url)
        logger.info(
            "Found %d placements for tournament %s",
            len(placements),
            tournament.source_tournament_id,
        )

        for placement in placements:
            if not placement.deck_list_id or not placement.deck_list_url:
                result.skipped += 1
                continue

            result.processed += 1
            source_deck_ref = build_source_deck_ref(
                tournament.source_tournament_id,
                placement.deck_list_id,
                placement.player_name,
                placement.standing,
            )

            existing = await tournament_decks.get_by_ref(source_deck_ref)
            if existing is None:
                legacy = await tournament_decks.get_by_ref(
                    build_legacy_source_deck_ref(placement.deck_list_id)
                )
                if legacy is not None and legacy.tournament_id == tournament.id:
                    existing = legacy

            deck_id = existing.deck_id if existing is not None else None
            leader_card_id = existing.leader_card_id if existing is not None else None
            now = datetime.now(timezone.utc)

            if deck_id is None:
                logger.info(
                    "Fetching deck list %s for player %s",
                    placement.deck_list_id,
                    placement.player_name,
                )
                try:
                    deck_list = await retry.run(client.fetch_deck_list_cards, placement.deck_list_url)
                except httpx.HTTPError:
                    logger.exception("Failed to build deck for list %s", placement.deck_list_id)
                    result.skipped += 1
                    continue

                if placement.deck_name and placement.player_name:
                    deck_name = f"{placement.deck_name} - {placement.player_name}"
                else:
                    deck_name = placement.deck_name or f"{tournament.name} Deck"
                standing_label = placement.standing if placement.standing is not None else "?"

                build = await upsert_deck_from_list(
                    session,
                    resolver=resolver,
                    list_id=placement.deck_list_id,
                    deck_name=deck_name,
                    deck_list=deck_list,
                    player_name=placement.player_name,
                    tournament_name=tournament.name,
                    description=f"{placement.player_name} • {tournament.name} • Placement: {standing_label}",
                    now=now,
                )
                logger.info(
                    "Built deck %s from list %s: %d cards resolved, %d dropped",
                    build.deck_id,
                    placement.deck_list_id,
                    build.cards_resolved,
                    build.cards_dropped,
                )
                deck_id = build.deck_id
                leader_card_id = build.leader_card_id

            player_id = None
            player_source_id = extract_player_id(placement.player_url)
            if player_source_id:
                player = await players.upsert(
                    source=LIMITLESS_SOURCE,
                    source_player_id=player_source_id,
                    name=placement.player_name,
                    player_url=placement.player_url,
                )
                player_id = player.id

            fields = {
                "tournament_id": tournament.id,
                "deck_id": deck_id,
                "leader_card_id": leader_card_id,
                "player_id": player_id,
                "player_name": placement.player_name,
                "standing": placement.standing,
                "deck_source_url": placement.deck_list_url,
                "archetype_name": placement.deck_name,
                "source_deck_ref": source_deck_ref,
                "updated_at": now,
            }
            if existing is not None:
                for key, value in fields.items():
                    setattr(existing, key, value)
                result.updated += 1
            else:
                await tournament_decks.add(TournamentDeck(created_at=now, **fields))
                result.created += 1

            # One transaction per placement: deck, deck cards, player, placement.
            await session.commit()

        result.tournaments_processed += 1

    logger.info(
        "Deck import finished: processed=%d created=%d updated=%d skipped=%d",
        result.processed,
        result.created,
        result.updated,
        result.skipped,
    )
    return result
