"""
Ticker indicator service for the alert engine.

PURPOSE: Keep one row per ticker holding the most recent RSI/ADX/VWAP/HTF/
volume readings extracted from its alerts, for the dashboard's per-ticker
view. Readings merge field by field: a reading absent from a new alert keeps
its previous value. An alert older than the one that last changed the row
does not overwrite it.

CALLED BY: AlertService.insert, ticker indicator routes
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import desc, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from alertengine.engine.records import SubIndicators
from alertengine.models.ticker_indicator import TickerIndicator
from alertengine.utils.logger import get_logger
from alertengine.utils.time_utils import to_naive_utc


logger = get_logger("services.ticker_indicator")


class TickerIndicatorService:
    """
    Service for the latest per-ticker indicator readings.

    CALLED BY: AlertService, API routes for ticker indicators
    """

    @staticmethod
    async def get(db: AsyncSession, ticker: str) -> Optional[TickerIndicator]:
        result = await db.execute(
            select(TickerIndicator).where(TickerIndicator.ticker == ticker.strip().upper())
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def list_all(db: AsyncSession) -> list[TickerIndicator]:
        """
        Every ticker's readings, most recently updated first.

        CALLED BY: GET /api/ticker-indicators
        """
        result = await db.execute(select(TickerIndicator).order_by(desc(TickerIndicator.updated_at)))
        return list(result.scalars().all())

    @staticmethod
    def _apply(row: TickerIndicator, readings: dict, at: datetime) -> None:
        for name, value in readings.items():
            setattr(row, name, value)
        row.last_alert_at = at

    @staticmethod
    async def upsert(
        db: AsyncSession,
        ticker: str,
        sub_indicators: SubIndicators,
        alert_time: datetime,
    ) -> Optional[TickerIndicator]:
        """
        Merge an alert's readings into the ticker's row, creating it if needed.

        Args:
            db: Async database session
            ticker: Ticker of the alert
            sub_indicators: Readings extracted from the alert
            alert_time: Alert timestamp (aware or naive UTC)

        Returns:
            TickerIndicator row, or None when the alert carried no readings or
            is older than the stored ones
        """
        readings = sub_indicators.as_dict()
        if not readings:
            return None

        ticker = ticker.strip().upper()
        at = to_naive_utc(alert_time)

        row = await TickerIndicatorService.get(db, ticker)
        if row is not None and row.last_alert_at > at:
            logger.debug("ticker_indicators_stale_alert_ignored", ticker=ticker)
            return None

        if row is None:
            row = TickerIndicator(ticker=ticker)
            TickerIndicatorService._apply(row, readings, at)
            db.add(row)
        else:
            TickerIndicatorService._apply(row, readings, at)

        try:
            await db.commit()
        except IntegrityError:
            # Another request created the row first; merge into it instead
            await db.rollback()
            row = await TickerIndicatorService.get(db, ticker)
            if row is None:
                raise
            TickerIndicatorService._apply(row, readings, at)
            await db.commit()

        await db.refresh(row)
        logger.info("ticker_indicators_updated", ticker=ticker, fields=sorted(readings))
        return row
