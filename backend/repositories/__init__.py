"""Repository layer for DB access only (CRUD + simple queries).

Repositories operate on the models in backend/models/, accept an
AsyncSession explicitly and never commit; commit boundaries belong to
the sync services.
"""

from .base import BaseRepository
from .card_repo import CardRepository
from .catalog_product_repo import CatalogProductRepository
from .deck_repo import DeckRepository, TournamentDeckRepository
from .player_repo import PlayerRepository
from .pricing_repo import CardPriceAlertRepository, CardPriceLogRepository
from .tournament_repo import TournamentRepository, TournamentSourceRepository

__all__ = [
    "BaseRepository",
    "CardPriceAlertRepository",
    "CardPriceLogRepository",
    "CardRepository",
    "CatalogProductRepository",
    "DeckRepository",
    "PlayerRepository",
    "TournamentDeckRepository",
    "TournamentRepository",
    "TournamentSourceRepository",
]
