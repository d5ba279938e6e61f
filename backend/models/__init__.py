"""SQLAlchemy models for tournaments, decks, the card catalog and pricing.

Importing this package registers every table on ``Base.metadata``.
"""

from .base import Base
from .card import Card
from .catalog_product import ProductStatus, TcgCatalogProduct
from .deck import Deck, DeckCard
from .player import Player
from .pricing import (
    AdminNotification,
    AdminNotificationType,
    AlertNotificationMethod,
    AlertThresholdType,
    CardPriceAlert,
    CardPriceAlertLog,
    CardPriceLog,
    PriceType,
)
from .tournament import Tournament, TournamentSource, TournamentStatus, TournamentType
from .tournament_deck import TournamentDeck

__all__ = [
    "Base",
    "AdminNotification",
    "AdminNotificationType",
    "AlertNotificationMethod",
    "AlertThresholdType",
    "Card",
    "CardPriceAlert",
    "CardPriceAlertLog",
    "CardPriceLog",
    "Deck",
    "DeckCard",
    "Player",
    "PriceType",
    "ProductStatus",
    "TcgCatalogProduct",
    "Tournament",
    "TournamentDeck",
    "TournamentSource",
    "TournamentStatus",
    "TournamentType",
]
