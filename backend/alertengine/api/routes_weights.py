"""
PURPOSE: CRUD routes over the available-alert weight catalogue.

Weight edits reach evaluation on the next snapshot refresh; POST
/api/config/reload forces one.
"""

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from alertengine.core.rate_limit import READ_LIMIT, WRITE_LIMIT, limiter
from alertengine.db.engine import get_db
from alertengine.schemas import AvailableAlertCreate, AvailableAlertResponse, AvailableAlertUpdate
from alertengine.services.weight_service import WeightService


router = APIRouter(prefix="/available-alerts", tags=["available-alerts"])


def _not_found(alert_id: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f"Available alert {alert_id} not found",
    )


@router.get("", response_model=list[AvailableAlertResponse])
@limiter.limit(READ_LIMIT)
async def list_available_alerts(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> list[AvailableAlertResponse]:
    return await WeightService.list_all(db)


@router.post("", response_model=AvailableAlertResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(WRITE_LIMIT)
async def create_available_alert(
    request: Request,
    data: AvailableAlertCreate,
    db: AsyncSession = Depends(get_db),
) -> AvailableAlertResponse:
    """
    Raises:
        HTTP 409: The (indicator, trigger) pair already exists.
    """
    try:
        return await WeightService.create(db, data)
    except IntegrityError:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"{data.indicator} / {data.trigger} already exists",
        )


@router.put("/{alert_id}", response_model=AvailableAlertResponse)
@limiter.limit(WRITE_LIMIT)
async def update_available_alert(
    request: Request,
    alert_id: str,
    data: AvailableAlertUpdate,
    db: AsyncSession = Depends(get_db),
) -> AvailableAlertResponse:
    updated = await WeightService.update(db, alert_id, data)
    if updated is None:
        raise _not_found(alert_id)
    return updated


@router.delete("/{alert_id}", status_code=status.HTTP_204_NO_CONTENT)
@limiter.limit(WRITE_LIMIT)
async def delete_available_alert(
    request: Request,
    alert_id: str,
    db: AsyncSession = Depends(get_db),
) -> Response:
    if not await WeightService.delete(db, alert_id):
        raise _not_found(alert_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
