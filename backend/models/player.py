from __future__ import annotations

from typing import Optional

from sqlalchemy import Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class Player(Base):
    """External participant keyed by (source, source_player_id), not by display name."""

    __tablename__ = "players"
    __table_args__ = (
        UniqueConstraint("source", "source_player_id", name="uq_players_source_player"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    source: Mapped[str] = mapped_column(String(64), nullable=False)
    source_player_id: Mapped[str] = mapped_column(String(64), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    player_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
