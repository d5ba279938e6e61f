"""Services: sync orchestrators composing clients, resolver, reconciler and repositories."""

from .alert_service import evaluate_price_alerts
from .catalog_sync_service import sync_tcg_catalog
from .price_sync_service import sync_tcgplayer_prices
from .tournament_sync_service import (
    TournamentSourceNotFoundError,
    sync_limitless_tournament_decks,
    sync_limitless_tournaments,
)

__all__ = [
    "TournamentSourceNotFoundError",
    "evaluate_price_alerts",
    "sync_limitless_tournament_decks",
    "sync_limitless_tournaments",
    "sync_tcg_catalog",
    "sync_tcgplayer_prices",
]
