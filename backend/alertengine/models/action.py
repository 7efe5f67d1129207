from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import uuid4

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Index, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from alertengine.db.base import Base


class Action(Base):
    """A recorded BUY/SELL decision. Immutable once written."""

    __tablename__ = "actions"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid4())
    )
    strategy_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("strategies.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    strategy_name: Mapped[str] = mapped_column(String(100), nullable=False)
    ticker: Mapped[str] = mapped_column(String(20), nullable=False)
    action: Mapped[str] = mapped_column(String(4), nullable=False)
    score: Mapped[Decimal] = mapped_column(Numeric(8, 2, asdecimal=True), nullable=False)
    matched_alerts: Mapped[list] = mapped_column(JSON, default=list, nullable=False)
    missing_alerts: Mapped[list] = mapped_column(JSON, default=list, nullable=False)
    match_signature: Mapped[str] = mapped_column(String(64), nullable=False)
    anchor_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    dedupe_key: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    anchor_fingerprint: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    is_test: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    __table_args__ = (
        Index("ix_actions_strategy_ticker_anchor", "strategy_id", "ticker", "anchor_at"),
        Index("ix_actions_timestamp", "timestamp"),
    )

    strategy: Mapped[Optional["Strategy"]] = relationship("Strategy", back_populates="actions")
