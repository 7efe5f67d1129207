"""
Action service for the alert engine.

PURPOSE: Record actions at most once per logical triggering event and read
them back for the dashboard.

A new action is refused when a prior action for the same strategy and ticker
has the same matched-leaf signature and either the same anchor (timestamp of
the most recent contributing alert) or an anchor within the replay tolerance
that came from a redelivery of the same webhook (same anchor fingerprint).
A distinct qualifying alert inside the tolerance still records a new action. The UNIQUE
dedupe_key column catches the race where two processes pass that check at
the same time.

CALLED BY: SqlActionStore, action routes
"""

from datetime import timedelta
from decimal import Decimal
from typing import Optional, Union

from sqlalchemy import and_, desc, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from alertengine.config.constants import ActionType
from alertengine.engine import records
from alertengine.engine.dispatcher import match_signature
from alertengine.engine.scoring import display_score
from alertengine.models.action import Action
from alertengine.schemas.action import ActionResponse
from alertengine.utils.logger import get_logger
from alertengine.utils.time_utils import as_utc, get_utc_now, to_naive_utc


logger = get_logger("services.action")


class ActionService:
    """
    Service for recorded actions.

    PURPOSE: Conditional insert used by the dispatcher, plus listing for the API.

    CALLED BY: engine store adapters, API routes for action endpoints
    """

    @staticmethod
    def to_record(row: Action) -> records.Action:
        return records.Action(
            id=row.id,
            strategy_id=row.strategy_id,
            strategy_name=row.strategy_name,
            ticker=row.ticker,
            action=ActionType(row.action),
            score=Decimal(str(row.score)),
            timestamp=as_utc(row.timestamp),
            anchor_at=as_utc(row.anchor_at),
            matched_alerts=tuple(row.matched_alerts or ()),
            missing_alerts=tuple(row.missing_alerts or ()),
            anchor_fingerprint=row.anchor_fingerprint,
            is_test=row.is_test,
        )

    @staticmethod
    def to_response(action: records.Action) -> ActionResponse:
        return ActionResponse(
            id=action.id,
            strategy_id=action.strategy_id,
            strategy_name=action.strategy_name,
            ticker=action.ticker,
            action=action.action.value,
            score=display_score(action.score),
            matched_alerts=list(action.matched_alerts),
            missing_alerts=list(action.missing_alerts),
            is_test=action.is_test,
            timestamp=action.timestamp,
        )

    @staticmethod
    async def _find_replay(
        db: AsyncSession,
        action: records.Action,
        signature: str,
        tolerance_seconds: float,
    ) -> Optional[Action]:
        if action.anchor_fingerprint is None:
            return None
        tolerance = timedelta(seconds=tolerance_seconds)
        anchor = to_naive_utc(action.anchor_at)
        stmt = (
            select(Action)
            .where(
                and_(
                    Action.strategy_id == action.strategy_id,
                    Action.ticker == action.ticker,
                    Action.match_signature == signature,
                    Action.anchor_fingerprint == action.anchor_fingerprint,
                    Action.anchor_at >= anchor - tolerance,
                    Action.anchor_at <= anchor + tolerance,
                )
            )
            .order_by(desc(Action.anchor_at))
            .limit(1)
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def _find_by_key(db: AsyncSession, dedupe_key: str) -> Optional[Action]:
        result = await db.execute(select(Action).where(Action.dedupe_key == dedupe_key))
        return result.scalar_one_or_none()

    @staticmethod
    async def insert_if_absent(
        db: AsyncSession,
        action: records.Action,
        dedupe_key: str,
        replay_tolerance_seconds: float = 30.0,
    ) -> Union[records.Action, records.DuplicateSuppressed]:
        """
        Persist an action unless an equivalent one is already recorded.

        CALLED BY: SqlActionStore.insert_if_absent (ActionDispatcher)

        Args:
            db: Async database session
            action: Action to record (no id yet)
            dedupe_key: SHA256 key of the triggering event
            replay_tolerance_seconds: Anchor distance under which a redelivered
                webhook with the same matched set counts as the same event

        Returns:
            records.Action with its id, or records.DuplicateSuppressed
        """
        signature = match_signature(action.matched_alerts)

        existing = await ActionService._find_replay(db, action, signature, replay_tolerance_seconds)
        if existing is None:
            existing = await ActionService._find_by_key(db, dedupe_key)
        if existing is not None:
            return records.DuplicateSuppressed(
                strategy_id=action.strategy_id,
                ticker=action.ticker,
                dedupe_key=dedupe_key,
                existing_action_id=existing.id,
            )

        row = Action(
            strategy_id=action.strategy_id,
            strategy_name=action.strategy_name,
            ticker=action.ticker,
            action=action.action.value,
            score=action.score,
            matched_alerts=list(action.matched_alerts),
            missing_alerts=list(action.missing_alerts),
            match_signature=signature,
            anchor_at=to_naive_utc(action.anchor_at),
            dedupe_key=dedupe_key,
            is_test=action.is_test,
            timestamp=to_naive_utc(action.timestamp),
        )

        try:
            db.add(row)
            await db.commit()
        except IntegrityError:
            await db.rollback()
            winner = await ActionService._find_by_key(db, dedupe_key)
            logger.info("action_insert_lost_race", strategy_id=action.strategy_id, ticker=action.ticker)
            return records.DuplicateSuppressed(
                strategy_id=action.strategy_id,
                ticker=action.ticker,
                dedupe_key=dedupe_key,
                existing_action_id=winner.id if winner is not None else None,
            )
        except Exception as e:
            await db.rollback()
            logger.error(
                "action_insert_failed",
                strategy_id=action.strategy_id,
                ticker=action.ticker,
                error=str(e),
                exception_type=type(e).__name__,
            )
            raise

        return ActionService.to_record(row)

    @staticmethod
    async def list_actions(db: AsyncSession, limit: int = 50) -> list[records.Action]:
        """
        Most recent actions first.

        CALLED BY: GET /api/actions
        """
        stmt = select(Action).order_by(desc(Action.timestamp)).limit(limit)
        result = await db.execute(stmt)
        return [ActionService.to_record(row) for row in result.scalars().all()]

    @staticmethod
    async def latest_action(db: AsyncSession, within_hours: int = 24) -> Optional[records.Action]:
        """
        The newest action recorded in the last `within_hours` hours, if any.

        CALLED BY: GET /api/actions/latest
        """
        cutoff = to_naive_utc(get_utc_now() - timedelta(hours=within_hours))
        stmt = (
            select(Action)
            .where(Action.timestamp >= cutoff)
            .order_by(desc(Action.timestamp))
            .limit(1)
        )
        result = await db.execute(stmt)
        row = result.scalar_one_or_none()
        return ActionService.to_record(row) if row is not None else None
