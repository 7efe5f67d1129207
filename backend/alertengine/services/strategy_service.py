"""
Strategy service for the alert engine.

PURPOSE: Strategy CRUD with rule-tree validation, and conversion of stored
strategies into the engine's immutable Strategy record.

CALLED BY: strategy routes, SqlStrategyStore, ScoreService
"""

from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from alertengine.config.constants import GroupOperator
from alertengine.engine import records
from alertengine.engine.errors import StrategyConfigError
from alertengine.models.strategy import Strategy
from alertengine.schemas.strategy import StrategyCreate, StrategyResponse, StrategyUpdate
from alertengine.utils.logger import get_logger
from alertengine.utils.validators import validate_operator, validate_threshold


logger = get_logger("services.strategy")


def _parse_operator(value: Any, where: str) -> GroupOperator:
    if not validate_operator(value):
        raise StrategyConfigError(f"{where}: operator must be AND or OR, got {value!r}")
    return GroupOperator(value.strip().upper())


def _parse_leaf(raw: Any, where: str) -> records.Leaf:
    if not isinstance(raw, dict) or not raw.get("indicator") or not raw.get("trigger"):
        raise StrategyConfigError(f"{where}: leaf needs indicator and trigger")
    try:
        weight = Decimal(str(raw.get("weight", 0) or 0))
    except ArithmeticError as e:
        raise StrategyConfigError(f"{where}: invalid weight {raw.get('weight')!r}") from e
    return records.Leaf(indicator=str(raw["indicator"]), trigger=str(raw["trigger"]), weight=weight)


def parse_rule_groups(raw_groups: Any) -> tuple[records.RuleGroup, ...]:
    """
    PURPOSE: Build RuleGroup records from the stored JSON rule tree.

    Args:
        raw_groups: [{"operator": "AND", "leaves": [{indicator, trigger, weight}, ...]}, ...]

    Returns:
        tuple[RuleGroup, ...]: Groups in declaration order.

    Raises:
        StrategyConfigError: Malformed tree or unknown operator.
    """
    if not isinstance(raw_groups, list):
        raise StrategyConfigError("rule_groups must be a list")

    groups = []
    for index, raw in enumerate(raw_groups):
        where = f"group {index}"
        if not isinstance(raw, dict):
            raise StrategyConfigError(f"{where}: must be an object")
        leaves = raw.get("leaves", [])
        if not isinstance(leaves, list):
            raise StrategyConfigError(f"{where}: leaves must be a list")
        groups.append(
            records.RuleGroup(
                operator=_parse_operator(raw.get("operator", "AND"), where),
                leaves=tuple(_parse_leaf(leaf, where) for leaf in leaves),
            )
        )
    return tuple(groups)


class StrategyService:
    """
    Service for managing strategies.

    PURPOSE: Provide CRUD for strategies and the enabled-strategy read used
    by evaluation. Zero thresholds and unknown operators are rejected here,
    when a strategy is saved.

    CALLED BY: API routes for strategy endpoints, engine store adapters
    """

    @staticmethod
    def to_record(row: Strategy) -> records.Strategy:
        """
        Convert a stored strategy into the engine record.

        Raises:
            StrategyConfigError: The stored rule tree is malformed.
        """
        return records.Strategy(
            id=row.id,
            name=row.name,
            timeframe_minutes=int(row.timeframe),
            threshold=Decimal(str(row.threshold)),
            rule_groups=parse_rule_groups(row.rule_groups),
            inter_group_operator=_parse_operator(row.inter_group_operator or "AND", "strategy"),
            enabled=row.enabled,
            tickers=tuple(row.tickers or ()),
        )

    @staticmethod
    async def list_enabled(db: AsyncSession) -> list[records.Strategy]:
        """
        Every enabled strategy as an engine record.

        A strategy whose stored tree cannot be parsed is logged and left out,
        so it cannot stop the others from being evaluated.

        CALLED BY: SqlStrategyStore, ScoreService
        """
        result = await db.execute(select(Strategy).where(Strategy.enabled.is_(True)).order_by(Strategy.name))

        strategies = []
        for row in result.scalars().all():
            try:
                strategies.append(StrategyService.to_record(row))
            except StrategyConfigError as e:
                logger.error("strategy_config_invalid", strategy_id=row.id, strategy=row.name, error=str(e))
        return strategies

    @staticmethod
    async def list_all(db: AsyncSession) -> list[StrategyResponse]:
        """
        Retrieve all strategies.

        CALLED BY: GET /api/strategies
        """
        result = await db.execute(select(Strategy).order_by(Strategy.name))
        strategies = result.scalars().all()
        logger.info("all_strategies_retrieved", count=len(strategies))
        return [StrategyResponse.model_validate(s) for s in strategies]

    @staticmethod
    async def get(db: AsyncSession, strategy_id: str) -> Optional[StrategyResponse]:
        """
        Retrieve one strategy by id.

        CALLED BY: GET /api/strategies/{id}

        Returns:
            StrategyResponse if found, None otherwise
        """
        row = await db.get(Strategy, strategy_id)
        if row is None:
            logger.info("strategy_not_found", strategy_id=strategy_id)
            return None
        return StrategyResponse.model_validate(row)

    @staticmethod
    async def create(db: AsyncSession, data: StrategyCreate) -> StrategyResponse:
        """
        Create a strategy.

        CALLED BY: POST /api/strategies

        Args:
            db: Async database session
            data: Validated create payload (legacy rules already folded into groups)

        Returns:
            StrategyResponse: The stored strategy

        Raises:
            StrategyConfigError: Zero threshold
        """
        if not validate_threshold(data.threshold):
            raise StrategyConfigError("strategy threshold must be non-zero")

        row = Strategy(
            name=data.name,
            timeframe=data.timeframe,
            threshold=data.threshold,
            enabled=data.enabled,
            rule_groups=[g.model_dump() for g in data.rule_groups or []],
            inter_group_operator=data.inter_group_operator,
            tickers=list(data.tickers),
        )

        try:
            db.add(row)
            await db.commit()
            await db.refresh(row)
        except Exception as e:
            await db.rollback()
            logger.error("create_strategy_error", error=str(e), name=data.name)
            raise

        logger.info(
            "strategy_created",
            strategy_id=row.id,
            name=row.name,
            groups=len(row.rule_groups),
            threshold=str(row.threshold),
        )
        return StrategyResponse.model_validate(row)

    @staticmethod
    async def update(
        db: AsyncSession,
        strategy_id: str,
        data: StrategyUpdate,
    ) -> Optional[StrategyResponse]:
        """
        Apply the fields set on `data` to a strategy.

        CALLED BY: PUT /api/strategies/{id}

        Returns:
            StrategyResponse, or None if the strategy does not exist

        Raises:
            StrategyConfigError: Zero threshold
        """
        row = await db.get(Strategy, strategy_id)
        if row is None:
            logger.info("strategy_not_found", strategy_id=strategy_id)
            return None

        changes = data.model_dump(exclude_unset=True, exclude={"rules"})
        if data.rule_groups is not None:
            changes["rule_groups"] = [g.model_dump() for g in data.rule_groups]
        if "threshold" in changes and not validate_threshold(changes["threshold"]):
            raise StrategyConfigError("strategy threshold must be non-zero")

        for field, value in changes.items():
            if value is None:
                continue
            setattr(row, field, value)

        try:
            await db.commit()
            await db.refresh(row)
        except Exception as e:
            await db.rollback()
            logger.error("update_strategy_error", error=str(e), strategy_id=strategy_id)
            raise

        logger.info("strategy_updated", strategy_id=strategy_id, fields=sorted(changes))
        return StrategyResponse.model_validate(row)

    @staticmethod
    async def delete(db: AsyncSession, strategy_id: str) -> bool:
        """
        Delete a strategy and its recorded actions.

        CALLED BY: DELETE /api/strategies/{id}

        Returns:
            bool: False if the strategy does not exist
        """
        row = await db.get(Strategy, strategy_id)
        if row is None:
            return False

        try:
            await db.delete(row)
            await db.commit()
        except Exception as e:
            await db.rollback()
            logger.error("delete_strategy_error", error=str(e), strategy_id=strategy_id)
            raise

        logger.info("strategy_deleted", strategy_id=strategy_id)
        return True
