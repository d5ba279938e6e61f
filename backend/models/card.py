from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class Card(Base):
    """Catalog card. Alternate printings point at their base printing via base_card_id."""

    __tablename__ = "cards"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    code: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    set_code: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    base_card_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("cards.id"), nullable=True, index=True
    )
    is_watchlisted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Written only by the price sync.
    tcgplayer_product_id: Mapped[Optional[int]] = mapped_column(
        Integer, nullable=True, index=True
    )
    market_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)
    low_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)
    high_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)
    price_currency: Mapped[Optional[str]] = mapped_column(String(8), nullable=True)
    price_updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
