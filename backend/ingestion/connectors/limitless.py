"""
Limitless tournament site connector: listing pages, tournament results, deck lists.

Parsing is pure (HTML text in, schema records out) so it can be tested
against saved fixtures; LimitlessClient adds the fetching. The CSS
selectors below are a contract with the live site's markup.
Network and HTTP errors propagate; malformed numbers become None.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from typing import AsyncIterator, List, Optional
from urllib.parse import urljoin

from bs4 import BeautifulSoup, Tag

from ingestion.http import HtmlFetcher
from ingestion.retry import RetryPolicy
from ingestion.schema import (
    DeckListCardEntry,
    DeckListData,
    LimitlessTournamentRow,
    TournamentListPage,
    TournamentResultRow,
)
from models.tournament import TournamentType

logger = logging.getLogger(__name__)

LIMITLESS_BASE_URL = "https://onepiece.limitlesstcg.com"
LIMITLESS_SOURCE = "limitless"
DEFAULT_PAGE_SIZE = 100

_TYPE_RULES = (
    (re.compile(r"\bregionals?\b"), TournamentType.REGIONAL),
    (re.compile(r"treasure\s*cup"), TournamentType.TREASURE_CUP),
    (re.compile(r"\bchampionships?\b"), TournamentType.CHAMPIONSHIP),
)


def to_absolute_url(maybe_url: Optional[str], base_url: str = LIMITLESS_BASE_URL) -> Optional[str]:
    if not maybe_url:
        return None
    return urljoin(base_url + "/", maybe_url.strip())


def to_event_date(value: Optional[str]) -> datetime:
    """Parse a data-date attribute (YYYY-MM-DD) as UTC midnight; fall back to now."""
    if not value:
        return datetime.now(timezone.utc)
    try:
        parsed = datetime.strptime(value.strip(), "%Y-%m-%d")
    except ValueError:
        return datetime.now(timezone.utc)
    return parsed.replace(tzinfo=timezone.utc)


def to_integer(value: Optional[str]) -> Optional[int]:
    """Keep digits only ("1,024+" -> 1024); None when nothing numeric remains."""
    if not value:
        return None
    digits = re.sub(r"[^0-9]", "", value)
    if not digits:
        return None
    return int(digits)


def leading_integer(value: Optional[str]) -> Optional[int]:
    """Leading integer of a cell ("3rd" -> 3); None if the text does not start with digits."""
    if not value:
        return None
    match = re.match(r"\s*(\d+)", value)
    return int(match.group(1)) if match else None


def detect_tournament_type(name: Optional[str]) -> Optional[TournamentType]:
    """Classify by keyword; first matching rule wins, unknown names are None."""
    if not name:
        return None
    normalized = name.lower()
    for pattern, tournament_type in _TYPE_RULES:
        if pattern.search(normalized):
            return tournament_type
    return None


def extract_tournament_id(href: Optional[str]) -> Optional[str]:
    if not href:
        return None
    match = re.search(r"/(\d+)", href)
    return match.group(1) if match else None


def extract_player_id(player_url: Optional[str]) -> Optional[str]:
    if not player_url:
        return None
    match = re.search(r"/players/(\d+)", player_url, re.IGNORECASE)
    return match.group(1) if match else None


def _text(node: Optional[Tag]) -> str:
    if node is None:
        return ""
    return node.get_text(" ", strip=True)


def _attr(node: Tag, name: str) -> Optional[str]:
    value = node.get(name)
    if value is None:
        return None
    if isinstance(value, list):
        value = " ".join(value)
    return str(value)


def _parse_max_pages(soup: BeautifulSoup, page: int) -> int:
    pagination = soup.select_one("ul.pagination")
    raw = _attr(pagination, "data-max") if pagination is not None else None
    try:
        max_pages = int(raw) if raw is not None else 0
    except ValueError:
        max_pages = 0
    return max_pages if max_pages > 0 else page


def parse_tournament_list_page(
    html: str, page: int = 1, base_url: str = LIMITLESS_BASE_URL
) -> TournamentListPage:
    """Extract one row per completed-tournament <tr> with at least 4 cells."""
    soup = BeautifulSoup(html, "html.parser")
    listing_url = f"{base_url.rstrip('/')}/tournaments"
    rows: List[LimitlessTournamentRow] = []

    for tr in soup.select("table.completed-tournaments tbody tr"):
        cells = tr.find_all("td")
        if len(cells) < 4:
            continue

        name_attr = _attr(tr, "data-name")
        players_attr = _attr(tr, "data-players")
        if players_attr is None:
            players_attr = _text(cells[4]) if len(cells) > 4 else None

        link = cells[2].find("a")
        link_href = _attr(link, "href") if link is not None else None
        tournament_url = to_absolute_url(link_href, base_url) or listing_url
        name = name_attr or _text(cells[2])

        # The site is inconsistent about ids: numeric segment, else raw href, else name.
        source_tournament_id = (
            extract_tournament_id(link_href) or link_href or name_attr or tournament_url
        )

        winner_anchor = tr.select_one("td.winner a")
        winner_url = None
        winner_name = None
        if winner_anchor is not None:
            winner_url = to_absolute_url(_attr(winner_anchor, "href"), base_url)
            winner_name = _text(winner_anchor) or None
        winner_name = winner_name or _attr(tr, "data-winner") or None

        rows.append(
            LimitlessTournamentRow(
                source_tournament_id=source_tournament_id,
                name=name,
                region=_attr(tr, "data-region"),
                country=_attr(tr, "data-country"),
                format=_attr(tr, "data-format"),
                player_count=to_integer(players_attr),
                is_player_count_approx=tr.select_one("span.apc") is not None,
                winner_name=winner_name,
                winner_url=winner_url,
                event_date=to_event_date(_attr(tr, "data-date")),
                tournament_url=tournament_url,
            )
        )

    return TournamentListPage(page=page, rows=rows, max_pages=_parse_max_pages(soup, page))


def parse_tournament_results(html: str, base_url: str = LIMITLESS_BASE_URL) -> List[TournamentResultRow]:
    """Extract placements from a tournament detail page."""
    soup = BeautifulSoup(html, "html.parser")
    results: List[TournamentResultRow] = []

    for tr in soup.select("table.tournament-results tbody tr"):
        cells = tr.find_all("td")
        if len(cells) < 4:
            continue

        standing = leading_integer(_text(cells[0]))

        player_cell = cells[1]
        player_anchor = player_cell.find("a")
        player_name = _text(player_anchor) or _text(player_cell)
        player_url = (
            to_absolute_url(_attr(player_anchor, "href"), base_url)
            if player_anchor is not None
            else None
        )

        deck_link = tr.select_one("a.deck-link")
        deck_href = _attr(deck_link, "href") if deck_link is not None else None
        deck_slug_match = re.search(r"decks/(\d+)", deck_href or "", re.IGNORECASE)
        deck_slug = deck_slug_match.group(1) if deck_slug_match else deck_href
        deck_name = re.sub(r"\s+", " ", _text(deck_link)).strip() or None

        list_anchor = cells[3].find("a")
        list_href = _attr(list_anchor, "href") if list_anchor is not None else None
        list_match = re.search(r"decks/list/(\d+)", list_href or "", re.IGNORECASE)

        results.append(
            TournamentResultRow(
                standing=standing,
                player_name=player_name or "Unknown Player",
                player_url=player_url,
                deck_name=deck_name,
                deck_slug=deck_slug,
                deck_list_id=list_match.group(1) if list_match else None,
                deck_list_url=to_absolute_url(list_href, base_url) if list_href else None,
            )
        )

    return results


def _section_heading(card_el: Tag) -> str:
    column = card_el.find_parent(class_="decklist-column")
    if column is None:
        return ""
    heading = column.select_one(".decklist-column-heading")
    return _text(heading)


def parse_deck_list(html: str) -> DeckListData:
    """Extract (code, quantity, section) entries; the Leader section also sets leader_code."""
    soup = BeautifulSoup(html, "html.parser")
    cards: List[DeckListCardEntry] = []
    leader_code: Optional[str] = None

    for card_el in soup.select(".decklist-card"):
        code = (_attr(card_el, "data-id") or "").strip()
        if not code:
            continue
        quantity = leading_integer(_attr(card_el, "data-count")) or 1
        section = _section_heading(card_el)
        if "leader" in section.lower():
            leader_code = code
        cards.append(DeckListCardEntry(code=code, quantity=quantity, section=section))

    return DeckListData(leader_code=leader_code, cards=cards)


class LimitlessClient:
    """Fetches and parses Limitless pages. Stateless apart from the shared fetcher."""

    def __init__(
        self,
        fetcher: HtmlFetcher,
        base_url: str = LIMITLESS_BASE_URL,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> None:
        self._fetcher = fetcher
        self.base_url = base_url.rstrip("/")
        self.page_size = page_size

    @property
    def tournaments_url(self) -> str:
        return f"{self.base_url}/tournaments"

    async def fetch_tournament_page(self, page: int) -> TournamentListPage:
        html = await self._fetcher.fetch_text(
            self.tournaments_url, params={"page": page, "show": self.page_size}
        )
        return parse_tournament_list_page(html, page, self.base_url)

    async def iter_tournament_pages(
        self, retry: Optional[RetryPolicy] = None
    ) -> AsyncIterator[List[LimitlessTournamentRow]]:
        """Yield listing pages from 1 until an empty page or the advertised max page."""
        page = 1
        max_pages = 1
        while page <= max_pages:
            if retry is not None:
                result = await retry.run(self.fetch_tournament_page, page)
            else:
                result = await self.fetch_tournament_page(page)
            if not result.rows:
                break
            if page == 1:
                max_pages = result.max_pages
            logger.info("Limitless page %d processed (%d tournaments)", page, len(result.rows))
            yield result.rows
            page += 1

    async def fetch_tournament_rows(
        self, retry: Optional[RetryPolicy] = None
    ) -> List[LimitlessTournamentRow]:
        aggregated: List[LimitlessTournamentRow] = []
        async for rows in self.iter_tournament_pages(retry):
            aggregated.extend(rows)
        return aggregated

    async def fetch_tournament_result_rows(self, tournament_url: str) -> List[TournamentResultRow]:
        html = await self._fetcher.fetch_text(tournament_url)
        return parse_tournament_results(html, self.base_url)

    async def fetch_deck_list_cards(self, deck_list_url: str) -> DeckListData:
        html = await self._fetcher.fetch_text(deck_list_url)
        return parse_deck_list(html)
