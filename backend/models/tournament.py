from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, utcnow


class TournamentType(str, Enum):
    REGIONAL = "REGIONAL"
    CHAMPIONSHIP = "CHAMPIONSHIP"
    TREASURE_CUP = "TREASURE_CUP"


class TournamentStatus(str, Enum):
    UPCOMING = "UPCOMING"
    ONGOING = "ONGOING"
    COMPLETED = "COMPLETED"


class TournamentSource(Base):
    """External tournament data provider (e.g. limitless)."""

    __tablename__ = "tournament_sources"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    slug: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    base_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    last_synced_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )


class Tournament(Base):
    """One competitive event, unique per (source_id, source_tournament_id)."""

    __tablename__ = "tournaments"
    __table_args__ = (
        UniqueConstraint("source_id", "source_tournament_id", name="uq_tournaments_source_key"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    source_id: Mapped[int] = mapped_column(
        ForeignKey("tournament_sources.id"), nullable=False, index=True
    )
    source_tournament_id: Mapped[str] = mapped_column(String(500), nullable=False)
    type: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    name: Mapped[str] = mapped_column(String(500), nullable=False)
    region: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    country: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    format: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    event_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    player_count: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    is_player_count_approx: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
    winner_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    winner_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    tournament_url: Mapped[str] = mapped_column(String(500), nullable=False)
    status: Mapped[str] = mapped_column(
        String(32), nullable=False, default=TournamentStatus.COMPLETED.value
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
