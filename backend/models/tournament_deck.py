from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, utcnow


class TournamentDeck(Base):
    """One placement (player + deck) within one tournament.

    source_deck_ref is the idempotency token; see
    services.tournament_sync_service.build_source_deck_ref.
    """

    __tablename__ = "tournament_decks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    tournament_id: Mapped[int] = mapped_column(
        ForeignKey("tournaments.id"), nullable=False, index=True
    )
    deck_id: Mapped[Optional[int]] = mapped_column(ForeignKey("decks.id"), nullable=True)
    leader_card_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("cards.id"), nullable=True
    )
    player_id: Mapped[Optional[int]] = mapped_column(ForeignKey("players.id"), nullable=True)
    player_name: Mapped[str] = mapped_column(String(255), nullable=False)
    standing: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    deck_source_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    archetype_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    source_deck_ref: Mapped[str] = mapped_column(String(500), nullable=False, unique=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
