from datetime import datetime
from typing import Optional
from uuid import uuid4

from sqlalchemy import DateTime, Float, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from alertengine.db.base import Base, TimestampMixin


class TickerIndicator(Base, TimestampMixin):
    """Latest RSI/ADX/VWAP/HTF/volume readings seen for one ticker."""

    __tablename__ = "ticker_indicators"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid4())
    )
    ticker: Mapped[str] = mapped_column(String(20), unique=True, nullable=False)

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

    # Timestamp of the alert that last changed this row
    last_alert_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    __table_args__ = (
        Index("ix_ticker_indicators_updated_at", "updated_at"),
    )
