"""
PURPOSE: Read-only routes over the stored alert log.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from alertengine.core.rate_limit import READ_LIMIT, limiter
from alertengine.db.engine import get_db
from alertengine.schemas import AlertCount, AlertList
from alertengine.services.alert_service import AlertService


router = APIRouter(prefix="/alerts", tags=["alerts"])


@router.get("", response_model=AlertList)
@limiter.limit(READ_LIMIT)
async def list_alerts(
    request: Request,
    limit: int = Query(100, ge=1, le=1000),
    ticker: Optional[str] = Query(None, max_length=20),
    db: AsyncSession = Depends(get_db),
) -> AlertList:
    """
    PURPOSE: Most recent alerts, newest first, optionally for one ticker.

    CALLED BY: Dashboard alerts table
    """
    alerts = await AlertService.list_alerts(db, limit=limit, ticker=ticker)
    return AlertList(alerts=[AlertService.to_response(a) for a in alerts], count=len(alerts))


@router.get("/count", response_model=AlertCount)
@limiter.limit(READ_LIMIT)
async def count_alerts(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> AlertCount:
    return AlertCount(count=await AlertService.count_alerts(db))
