"""
Alert service for the alert engine.

PURPOSE: Persist normalized alerts and read them back by ticker and time
window. Alerts carrying sub-indicator readings also refresh the ticker's
latest-readings row. Converts between the engine's Alert record and the
ORM row; the database holds naive UTC, the engine aware UTC.

CALLED BY: webhook routes, alert routes, SqlAlertStore, ScoreService
"""

from dataclasses import replace
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import desc, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from alertengine.engine import records
from alertengine.models.alert import Alert
from alertengine.schemas.alert import AlertResponse
from alertengine.services.ticker_indicator_service import TickerIndicatorService
from alertengine.utils.logger import get_logger
from alertengine.utils.time_utils import as_utc, to_naive_utc


logger = get_logger("services.alert")


class AlertService:
    """
    Service for the append-only alert log.

    PURPOSE: Insert alerts and answer window queries for strategy evaluation
    and the dashboard.

    CALLED BY: API routes, engine store adapters
    """

    @staticmethod
    def to_record(row: Alert) -> records.Alert:
        """Convert an ORM row into the engine's immutable Alert."""
        return records.Alert(
            id=row.id,
            ticker=row.ticker,
            indicator=row.indicator,
            trigger=row.trigger,
            timestamp=as_utc(row.timestamp),
            timeframe=row.timeframe or "",
            weight=Decimal(str(row.weight)) if row.weight is not None else None,
            price=row.price,
            htf=row.htf,
            is_test=row.is_test,
            sub_indicators=records.SubIndicators(
                rsi_value=row.rsi_value,
                rsi_status=row.rsi_status,
                adx_value=row.adx_value,
                adx_strength=row.adx_strength,
                adx_direction=row.adx_direction,
                vwap_value=row.vwap_value,
                htf_status=row.htf_status,
                volume_amount=row.volume_amount,
                volume_change=row.volume_change,
                volume_level=row.volume_level,
            ),
            raw_body=row.raw_body,
        )

    @staticmethod
    def to_response(alert: records.Alert) -> AlertResponse:
        return AlertResponse(
            id=alert.id,
            ticker=alert.ticker,
            timeframe=alert.timeframe or None,
            indicator=alert.indicator,
            trigger=alert.trigger,
            weight=float(alert.weight) if alert.weight is not None else None,
            price=alert.price,
            htf=alert.htf,
            is_test=alert.is_test,
            sub_indicators=alert.sub_indicators.as_dict(),
            timestamp=alert.timestamp,
        )

    @staticmethod
    async def insert(db: AsyncSession, alert: records.Alert) -> records.Alert:
        """
        Persist one normalized alert.

        CALLED BY: POST /webhook, POST /webhook/json

        Args:
            db: Async database session
            alert: Normalized alert (ticker already upper-cased)

        Returns:
            records.Alert: The same alert carrying its new id
        """
        subs = alert.sub_indicators
        row = Alert(
            ticker=alert.ticker,
            timeframe=alert.timeframe or None,
            indicator=alert.indicator,
            trigger=alert.trigger,
            weight=alert.weight,
            price=alert.price,
            htf=alert.htf,
            is_test=alert.is_test,
            rsi_value=subs.rsi_value,
            rsi_status=subs.rsi_status,
            adx_value=subs.adx_value,
            adx_strength=subs.adx_strength,
            adx_direction=subs.adx_direction,
            vwap_value=subs.vwap_value,
            htf_status=subs.htf_status,
            volume_amount=subs.volume_amount,
            volume_change=subs.volume_change,
            volume_level=subs.volume_level,
            raw_body=alert.raw_body,
            timestamp=to_naive_utc(alert.timestamp),
        )

        try:
            db.add(row)
            await db.commit()
        except Exception as e:
            await db.rollback()
            logger.error(
                "alert_insert_failed",
                ticker=alert.ticker,
                indicator=alert.indicator,
                error=str(e),
                exception_type=type(e).__name__,
            )
            raise

        logger.info(
            "alert_ingested",
            alert_id=row.id,
            ticker=alert.ticker,
            indicator=alert.indicator,
            trigger=alert.trigger,
            is_test=alert.is_test,
        )

        stored = replace(alert, id=row.id)
        if not subs.is_empty():
            try:
                await TickerIndicatorService.upsert(db, alert.ticker, subs, alert.timestamp)
            except Exception as e:
                await db.rollback()
                logger.warning(
                    "ticker_indicators_update_failed",
                    ticker=alert.ticker,
                    error=str(e),
                    exception_type=type(e).__name__,
                )
        return stored

    @staticmethod
    async def query_window(
        db: AsyncSession,
        ticker: str,
        since: Optional[datetime],
        until: Optional[datetime] = None,
    ) -> list[records.Alert]:
        """
        Alerts for one ticker with since <= timestamp <= until, newest first.

        Args:
            db: Async database session
            ticker: Ticker (compared upper-cased)
            since: Inclusive lower bound, None for unbounded
            until: Inclusive upper bound, None for no upper bound

        Returns:
            list[records.Alert]: Alerts in the window
        """
        stmt = select(Alert).where(Alert.ticker == ticker.upper())
        if since is not None:
            stmt = stmt.where(Alert.timestamp >= to_naive_utc(since))
        if until is not None:
            stmt = stmt.where(Alert.timestamp <= to_naive_utc(until))
        stmt = stmt.order_by(desc(Alert.timestamp))

        result = await db.execute(stmt)
        return [AlertService.to_record(row) for row in result.scalars().all()]

    @staticmethod
    async def query_since(
        db: AsyncSession,
        since: Optional[datetime],
        until: Optional[datetime] = None,
    ) -> list[records.Alert]:
        """All tickers' alerts inside [since, until], newest first."""
        stmt = select(Alert)
        if since is not None:
            stmt = stmt.where(Alert.timestamp >= to_naive_utc(since))
        if until is not None:
            stmt = stmt.where(Alert.timestamp <= to_naive_utc(until))
        stmt = stmt.order_by(desc(Alert.timestamp))

        result = await db.execute(stmt)
        return [AlertService.to_record(row) for row in result.scalars().all()]

    @staticmethod
    async def list_alerts(
        db: AsyncSession,
        limit: int = 100,
        ticker: Optional[str] = None,
    ) -> list[records.Alert]:
        """
        Most recent alerts, optionally for one ticker.

        CALLED BY: GET /api/alerts
        """
        stmt = select(Alert)
        if ticker:
            stmt = stmt.where(Alert.ticker == ticker.upper())
        stmt = stmt.order_by(desc(Alert.timestamp)).limit(limit)

        result = await db.execute(stmt)
        return [AlertService.to_record(row) for row in result.scalars().all()]

    @staticmethod
    async def count_alerts(db: AsyncSession) -> int:
        result = await db.execute(select(func.count(Alert.id)))
        return int(result.scalar_one())
