"""
PURPOSE: Read-only routes over the latest per-ticker indicator readings.
"""

from fastapi import APIRouter, Depends, HTTPException, Path, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from alertengine.core.rate_limit import READ_LIMIT, limiter
from alertengine.db.engine import get_db
from alertengine.schemas import TickerIndicatorList, TickerIndicatorResponse
from alertengine.services.ticker_indicator_service import TickerIndicatorService


router = APIRouter(prefix="/ticker-indicators", tags=["ticker-indicators"])


@router.get("", response_model=TickerIndicatorList)
@limiter.limit(READ_LIMIT)
async def list_ticker_indicators(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> TickerIndicatorList:
    """
    PURPOSE: Latest readings for every ticker, most recently updated first.

    CALLED BY: Dashboard ticker indicator panel
    """
    rows = await TickerIndicatorService.list_all(db)
    return TickerIndicatorList(
        tickers=[TickerIndicatorResponse.model_validate(row) for row in rows],
        count=len(rows),
    )


@router.get("/{ticker}", response_model=TickerIndicatorResponse)
@limiter.limit(READ_LIMIT)
async def get_ticker_indicators(
    request: Request,
    ticker: str = Path(..., max_length=20),
    db: AsyncSession = Depends(get_db),
) -> TickerIndicatorResponse:
    """
    PURPOSE: Latest readings for one ticker (case-insensitive).

    Raises:
        HTTP 404: No alert for this ticker has carried readings yet.
    """
    row = await TickerIndicatorService.get(db, ticker)
    if row is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No indicator readings for {ticker.upper()}",
        )
    return TickerIndicatorResponse.model_validate(row)
