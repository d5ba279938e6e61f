from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, utcnow


class PriceType(str, Enum):
    MARKET = "MARKET"
    LOW = "LOW"
    HIGH = "HIGH"


class AlertThresholdType(str, Enum):
    ABOVE_VALUE = "ABOVE_VALUE"
    BELOW_VALUE = "BELOW_VALUE"
    PERCENT_CHANGE = "PERCENT_CHANGE"


class AlertNotificationMethod(str, Enum):
    IN_APP = "IN_APP"
    EMAIL = "EMAIL"


class AdminNotificationType(str, Enum):
    PRICE_ALERT = "PRICE_ALERT"
    SYSTEM = "SYSTEM"


class CardPriceLog(Base):
    """Append-only price time series; one row per fetched price."""

    __tablename__ = "card_price_logs"
    __table_args__ = (
        Index("ix_card_price_logs_card_type_collected", "card_id", "price_type", "collected_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    card_id: Mapped[int] = mapped_column(ForeignKey("cards.id"), nullable=False)
    price_type: Mapped[str] = mapped_column(String(16), nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    collected_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    source: Mapped[str] = mapped_column(String(64), nullable=False, default="TCGplayer")


class CardPriceAlert(Base):
    """User-defined price threshold on one card."""

    __tablename__ = "card_price_alerts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    card_id: Mapped[int] = mapped_column(ForeignKey("cards.id"), nullable=False, index=True)
    threshold_type: Mapped[str] = mapped_column(String(32), nullable=False)
    threshold_value: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)
    percent_change: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    percent_window_hours: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    notification_method: Mapped[str] = mapped_column(
        String(16), nullable=False, default=AlertNotificationMethod.IN_APP.value
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )


class CardPriceAlertLog(Base):
    __tablename__ = "card_price_alert_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    alert_id: Mapped[int] = mapped_column(
        ForeignKey("card_price_alerts.id"), nullable=False, index=True
    )
    card_id: Mapped[int] = mapped_column(ForeignKey("cards.id"), nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    price_type: Mapped[str] = mapped_column(String(16), nullable=False)
    triggered_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class AdminNotification(Base):
    __tablename__ = "admin_notifications"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    type: Mapped[str] = mapped_column(String(32), nullable=False)
    card_id: Mapped[Optional[int]] = mapped_column(ForeignKey("cards.id"), nullable=True)
    alert_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("card_price_alerts.id"), nullable=True
    )
    notification_metadata: Mapped[Optional[Dict[str, Any]]] = mapped_column(
        "metadata", JSON, nullable=True
    )
    is_read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
