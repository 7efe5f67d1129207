"""
PURPOSE: Dashboard score snapshot route.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from alertengine.config.settings import settings
from alertengine.core.rate_limit import READ_LIMIT, limiter
from alertengine.core.runtime import EngineRuntime, get_runtime
from alertengine.db.engine import get_db
from alertengine.schemas import ScoreSnapshot
from alertengine.services.score_service import ScoreService


router = APIRouter(tags=["scores"])


@router.get("/score", response_model=ScoreSnapshot)
@limiter.limit(READ_LIMIT)
async def get_score(
    request: Request,
    time_window: Optional[int] = Query(None, alias="timeWindow", ge=0),
    db: AsyncSession = Depends(get_db),
    runtime: EngineRuntime = Depends(get_runtime),
) -> ScoreSnapshot:
    """
    PURPOSE: Per-strategy best ticker, score and missing leaves inside the window.

    Args:
        time_window: Minutes to look back; defaults to SCORE_WINDOW_DEFAULT_MINUTES
            and is capped at SCORE_WINDOW_MAX_MINUTES.
    """
    window = settings.SCORE_WINDOW_DEFAULT_MINUTES if time_window is None else time_window
    window = min(window, settings.SCORE_WINDOW_MAX_MINUTES)
    return await ScoreService.ticker_scores(db, runtime.snapshot, window)
