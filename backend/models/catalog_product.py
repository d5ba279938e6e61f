from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from sqlalchemy import JSON, Boolean, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class ProductStatus(str, Enum):
    ACTIVE = "active"
    REMOVED = "removed"


class TcgCatalogProduct(Base):
    """Mirror of one external catalog product; removed products are tombstoned, never deleted."""

    __tablename__ = "tcg_catalog_products"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    product_id: Mapped[int] = mapped_column(Integer, nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(500), nullable=False)
    clean_name: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    product_line_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    group_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    card_type: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    rarity: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    is_sealed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    sku: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    image_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    # "metadata" is reserved on declarative classes.
    product_metadata: Mapped[Optional[Dict[str, Any]]] = mapped_column(
        "metadata", JSON, nullable=True
    )
    last_synced_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, index=True
    )
    product_status: Mapped[str] = mapped_column(
        String(16), nullable=False, default=ProductStatus.ACTIVE.value
    )
