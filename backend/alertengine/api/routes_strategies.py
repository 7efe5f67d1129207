"""
PURPOSE: Strategy CRUD routes.

Rule trees are validated on the way in: unknown operators and zero thresholds
are rejected with 422 here rather than failing at evaluation time.
"""

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from alertengine.core.rate_limit import READ_LIMIT, WRITE_LIMIT, limiter
from alertengine.db.engine import get_db
from alertengine.engine.errors import StrategyConfigError
from alertengine.schemas import StrategyCreate, StrategyResponse, StrategyUpdate
from alertengine.services.strategy_service import StrategyService
from alertengine.utils.logger import get_logger


logger = get_logger(__name__)
router = APIRouter(prefix="/strategies", tags=["strategies"])


def _not_found(strategy_id: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f"Strategy {strategy_id} not found",
    )


def _invalid(error: StrategyConfigError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        detail=str(error),
    )


# ════════════════════════════════════════════════════════════════
# Strategy Retrieval Routes
# ════════════════════════════════════════════════════════════════


@router.get("", response_model=list[StrategyResponse])
@limiter.limit(READ_LIMIT)
async def list_strategies(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> list[StrategyResponse]:
    """
    PURPOSE: Retrieve all strategies, enabled or not.

    CALLED BY: Strategy manager panel
    """
    try:
        return await StrategyService.list_all(db)
    except Exception as e:
        logger.error("strategies_list_failed", error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to retrieve strategies"
        )


@router.get("/{strategy_id}", response_model=StrategyResponse)
@limiter.limit(READ_LIMIT)
async def get_strategy(
    request: Request,
    strategy_id: str,
    db: AsyncSession = Depends(get_db),
) -> StrategyResponse:
    strategy = await StrategyService.get(db, strategy_id)
    if strategy is None:
        raise _not_found(strategy_id)
    return strategy


# ════════════════════════════════════════════════════════════════
# Strategy Mutation Routes
# ════════════════════════════════════════════════════════════════


@router.post("", response_model=StrategyResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(WRITE_LIMIT)
async def create_strategy(
    request: Request,
    data: StrategyCreate,
    db: AsyncSession = Depends(get_db),
) -> StrategyResponse:
    """
    PURPOSE: Create a strategy from rule groups or a legacy flat rules list.

    Raises:
        HTTP 422: Zero threshold, unknown operator, missing rules.
    """
    try:
        return await StrategyService.create(db, data)
    except StrategyConfigError as e:
        raise _invalid(e)


@router.put("/{strategy_id}", response_model=StrategyResponse)
@limiter.limit(WRITE_LIMIT)
async def update_strategy(
    request: Request,
    strategy_id: str,
    data: StrategyUpdate,
    db: AsyncSession = Depends(get_db),
) -> StrategyResponse:
    """
    PURPOSE: Update the fields present in the body.

    Raises:
        HTTP 404: Unknown strategy.
        HTTP 422: Zero threshold or unknown operator.
    """
    try:
        strategy = await StrategyService.update(db, strategy_id, data)
    except StrategyConfigError as e:
        raise _invalid(e)
    if strategy is None:
        raise _not_found(strategy_id)
    return strategy


@router.delete("/{strategy_id}", status_code=status.HTTP_204_NO_CONTENT)
@limiter.limit(WRITE_LIMIT)
async def delete_strategy(
    request: Request,
    strategy_id: str,
    db: AsyncSession = Depends(get_db),
) -> Response:
    if not await StrategyService.delete(db, strategy_id):
        raise _not_found(strategy_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
