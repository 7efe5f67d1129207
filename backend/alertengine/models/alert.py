from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import uuid4

from sqlalchemy import Boolean, DateTime, Float, Index, Numeric, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from alertengine.db.base import Base


class Alert(Base):
    """One normalized webhook alert. Append-only."""

    __tablename__ = "alerts"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid4())
    )
    ticker: Mapped[str] = mapped_column(String(20), nullable=False)
    timeframe: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)
    indicator: Mapped[str] = mapped_column(String(100), nullable=False)
    trigger: Mapped[str] = mapped_column(String(255), nullable=False)
    weight: Mapped[Optional[Decimal]] = mapped_column(Numeric(6, 2, asdecimal=True), nullable=True)
    price: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    htf: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_test: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Sub-indicators embedded in extreme-zone alerts
    rsi_value: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    rsi_status: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    adx_value: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    adx_strength: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    adx_direction: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    vwap_value: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    htf_status: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    volume_amount: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    volume_change: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    volume_level: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)

    raw_body: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    timestamp: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=func.now(),
        server_default=func.now(),
        nullable=False
    )

    __table_args__ = (
        Index("ix_alerts_ticker_timestamp", "ticker", "timestamp"),
    )
