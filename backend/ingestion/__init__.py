"""Ingestion: fetch, parse, resolve and reconcile external tournament and catalog data."""

from .reconcile import Reconciler, ReconcileResult, UpsertOutcome, paginate_offsets
from .retry import RetryPolicy
from .schema import (
    DeckListData,
    LimitlessTournamentRow,
    PricingEntry,
    TcgplayerProduct,
    TournamentResultRow,
)

__all__ = [
    "DeckListData",
    "LimitlessTournamentRow",
    "PricingEntry",
    "ReconcileResult",
    "Reconciler",
    "RetryPolicy",
    "TcgplayerProduct",
    "TournamentResultRow",
    "UpsertOutcome",
    "paginate_offsets",
]
