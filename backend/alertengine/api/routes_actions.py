"""
PURPOSE: Read-only routes over recorded actions.
"""

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from alertengine.core.rate_limit import READ_LIMIT, limiter
from alertengine.db.engine import get_db
from alertengine.schemas import ActionList, LatestAction
from alertengine.services.action_service import ActionService


router = APIRouter(prefix="/actions", tags=["actions"])


@router.get("", response_model=ActionList)
@limiter.limit(READ_LIMIT)
async def list_actions(
    request: Request,
    limit: int = Query(50, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
) -> ActionList:
    """
    PURPOSE: Most recent actions first.

    CALLED BY: Dashboard action feed
    """
    actions = await ActionService.list_actions(db, limit=limit)
    return ActionList(actions=[ActionService.to_response(a) for a in actions], count=len(actions))


@router.get("/latest", response_model=LatestAction)
@limiter.limit(READ_LIMIT)
async def latest_action(
    request: Request,
    within_hours: int = Query(24, ge=1, le=24 * 30),
    db: AsyncSession = Depends(get_db),
) -> LatestAction:
    """
    PURPOSE: The newest action recorded within the look-back, or null.

    CALLED BY: Dashboard headline card
    """
    action = await ActionService.latest_action(db, within_hours=within_hours)
    return LatestAction(action=ActionService.to_response(action) if action else None)
