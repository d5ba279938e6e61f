"""Limitless HTML parsing against saved fixtures: listing rows, placements, deck lists."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from ingestion.connectors.limitless import (
    detect_tournament_type,
    extract_player_id,
    parse_deck_list,
    parse_tournament_list_page,
    parse_tournament_results,
    to_integer,
)
from models.tournament import TournamentType
from support import LIMITLESS_BASE, load_fixture


def test_listing_page_one_has_100_rows_and_max_pages() -> None:
    page = parse_tournament_list_page(load_fixture("limitless/tournaments_page_1.html"), 1)
    assert len(page.rows) == 100
    assert page.max_pages == 2

    first = page.rows[0]
    assert first.source_tournament_id == "1001"
    assert first.name == "Store Championship 1"
    assert first.region == "NA"
    assert first.country == "US"
    assert first.format == "OP06"
    assert first.player_count == 33
    assert first.is_player_count_approx is False
    assert first.winner_name == "Player 1"
    assert first.winner_url == f"{LIMITLESS_BASE}/players/501"
    assert first.tournament_url == f"{LIMITLESS_BASE}/tournaments/1001"
    assert first.event_date == datetime(2024, 3, 2, tzinfo=timezone.utc)


def test_listing_page_two_edge_rows() -> None:
    page = parse_tournament_list_page(load_fixture("limitless/tournaments_page_2.html"), 2)
    # The three-cell row is ignored.
    assert len(page.rows) == 3
    treasure, berlin, worlds = page.rows

    # Player count from the cell text when data-players is missing; approx marker present.
    assert treasure.player_count == 1024
    assert treasure.is_player_count_approx is True
    assert treasure.winner_name == "Kenji"

    # Unparseable count and date; winner falls back to data-winner.
    assert berlin.player_count is None
    assert berlin.winner_name == "Bob"
    assert berlin.winner_url is None
    assert berlin.event_date.tzinfo is not None

    # No numeric id in the link: the raw href is the identity; name from the cell.
    assert worlds.source_tournament_id == "/tournaments/special-finals"
    assert worlds.name == "World Championship Finals"
    assert worlds.tournament_url == f"{LIMITLESS_BASE}/tournaments/special-finals"


def test_missing_pagination_widget_stops_at_current_page() -> None:
    html = """
    <table class="completed-tournaments"><tbody>
    <tr data-name="Solo"><td>a</td><td>b</td><td><a href="/tournaments/5">Solo</a></td><td>d</td></tr>
    </tbody></table>
    """
    page = parse_tournament_list_page(html, 3)
    assert page.max_pages == 3
    assert page.rows[0].source_tournament_id == "5"


def test_row_without_link_uses_name_as_identity() -> None:
    html = """
    <table class="completed-tournaments"><tbody>
    <tr data-name="Mystery Event"><td>a</td><td>b</td><td>Mystery Event</td><td>d</td></tr>
    </tbody></table>
    """
    row = parse_tournament_list_page(html, 1).rows[0]
    assert row.source_tournament_id == "Mystery Event"
    assert row.tournament_url == f"{LIMITLESS_BASE}/tournaments"


@pytest.mark.parametrize(
    "name, expected",
    [
        ("Regionals Event 3", TournamentType.REGIONAL),
        ("NA Regional", TournamentType.REGIONAL),
        ("Treasure Cup Tokyo", TournamentType.TREASURE_CUP),
        ("TREASURECUP Osaka", TournamentType.TREASURE_CUP),
        ("World Championships 2024", TournamentType.CHAMPIONSHIP),
        ("Regional Treasure Cup", TournamentType.REGIONAL),
        ("Treasure Cup Championship", TournamentType.TREASURE_CUP),
        ("Weekly Cup", None),
        ("Online Open", None),
        (None, None),
    ],
)
def test_detect_tournament_type(name, expected) -> None:
    assert detect_tournament_type(name) == expected


def test_to_integer_coerces_to_none() -> None:
    assert to_integer("1,024+") == 1024
    assert to_integer("n/a") is None
    assert to_integer(None) is None


def test_tournament_results_rows() -> None:
    rows = parse_tournament_results(load_fixture("limitless/tournament_results.html"))
    # The colspan footer row has fewer than four cells.
    assert len(rows) == 4
    alice, bob, carol, dave = rows

    assert alice.standing == 1
    assert alice.player_name == "Alice Wong"
    assert alice.player_url == f"{LIMITLESS_BASE}/players/501"
    assert alice.deck_name == "Red Zoro"
    assert alice.deck_slug == "42"
    assert alice.deck_list_id == "9001"
    assert alice.deck_list_url == f"{LIMITLESS_BASE}/decks/list/9001"

    assert bob.standing == 2
    assert bob.deck_list_id == "9002"

    assert carol.player_name == "Carol"
    assert carol.player_url is None
    assert carol.deck_list_id is None
    assert carol.deck_list_url is None

    assert dave.standing is None
    assert dave.deck_name is None
    assert dave.deck_list_id == "9004"


def test_extract_player_id() -> None:
    assert extract_player_id(f"{LIMITLESS_BASE}/players/501") == "501"
    assert extract_player_id(f"{LIMITLESS_BASE}/Players/77/decks") == "77"
    assert extract_player_id("https://example.com/people/5") is None
    assert extract_player_id(None) is None


def test_deck_list_sections_and_leader() -> None:
    data = parse_deck_list(load_fixture("limitless/deck_list.html"))
    assert data.leader_code == "OP01-001"
    codes = [(c.code, c.quantity) for c in data.cards]
    # Entry without data-id is dropped; non-numeric count defaults to 1.
    assert codes == [
        ("OP01-001", 1),
        ("OP01-013", 4),
        ("OP01-016", 1),
        ("ZZ99-999", 3),
        ("OP01-029", 2),
    ]
    assert data.cards[0].section == "Leader (1)"
    assert data.cards[1].section == "Character (9)"


def test_deck_list_without_leader_section() -> None:
    html = """
    <div class="decklist-column"><div class="decklist-column-heading">Character</div>
    <div class="decklist-card" data-id="OP02-001"></div></div>
    """
    data = parse_deck_list(html)
    assert data.leader_code is None
    assert data.cards[0].quantity == 1
