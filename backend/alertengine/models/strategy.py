from decimal import Decimal
from typing import List
from uuid import uuid4

from sqlalchemy import JSON, Boolean, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from alertengine.db.base import Base, TimestampMixin


class Strategy(Base, TimestampMixin):
    """A named rule tree evaluated against each ticker's recent alerts."""

    __tablename__ = "strategies"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid4())
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    timeframe: Mapped[int] = mapped_column(Integer, nullable=False, default=60)
    threshold: Mapped[Decimal] = mapped_column(Numeric(8, 2, asdecimal=True), nullable=False)
    enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    # [{"operator": "AND", "leaves": [{"indicator", "trigger", "weight"}, ...]}, ...]
    rule_groups: Mapped[list] = mapped_column(JSON, default=list, nullable=False)
    inter_group_operator: Mapped[str] = mapped_column(String(3), default="AND", nullable=False)
    tickers: Mapped[list] = mapped_column(JSON, default=list, nullable=False)

    # Relationships
    actions: Mapped[List["Action"]] = relationship(
        "Action",
        back_populates="strategy",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
