from decimal import Decimal
from typing import Optional
from uuid import uuid4

from sqlalchemy import Boolean, Numeric, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from alertengine.db.base import Base, TimestampMixin


class AvailableAlert(Base, TimestampMixin):
    """Catalogue entry: a known (indicator, trigger) pair and its configured weight."""

    __tablename__ = "available_alerts"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid4())
    )
    indicator: Mapped[str] = mapped_column(String(100), nullable=False)
    trigger: Mapped[str] = mapped_column(String(255), nullable=False)
    weight: Mapped[Decimal] = mapped_column(Numeric(6, 2, asdecimal=True), nullable=False, default=0)
    enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    tooltip: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    __table_args__ = (
        UniqueConstraint("indicator", "trigger", name="uq_available_alerts_indicator_trigger"),
    )
