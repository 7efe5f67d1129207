"""
PURPOSE: Turn a satisfied strategy into at most one recorded BUY/SELL action.

Per strategy x ticker the flow is
UNMATCHED -> MATCHED (dedupe check) -> ACTION_RECORDED | SUPPRESSED_DUPLICATE.
Notification runs in the background after the action is recorded; its
failure never touches the recorded action.

CALLED BY:
    - alertengine/engine/evaluator.py
"""

import asyncio
import hashlib
from datetime import datetime
from decimal import Decimal
from typing import Any, Iterable, Optional, Union

from alertengine.config.constants import ActionType, EventType
from alertengine.engine.errors import StrategyConfigError
from alertengine.engine.ports import ActionStore, Notifier
from alertengine.engine.records import Action, Alert, DuplicateSuppressed, MatchResult, Strategy
from alertengine.utils.decorators import bounded
from alertengine.utils.logger import get_logger

logger = get_logger(__name__)


def action_type_for(threshold: Decimal) -> ActionType:
    """
    PURPOSE: Map the sign of a strategy threshold to the action it emits.

    Raises:
        StrategyConfigError: threshold == 0, which is rejected when strategies are saved.
    """
    if threshold > 0:
        return ActionType.BUY
    if threshold < 0:
        return ActionType.SELL
    raise StrategyConfigError("strategy threshold must be non-zero")


def match_signature(matched_names: Iterable[str]) -> str:
    """Order-independent digest of the matched leaf names."""
    material = "\x1f".join(sorted(name.casefold() for name in matched_names))
    return hashlib.sha256(material.encode()).hexdigest()


def alert_fingerprint(alert: Alert) -> str:
    """
    PURPOSE: Identify one delivered webhook so a redelivery can be told apart from a new alert.

    A redelivered webhook repeats its raw body but may get a new receipt
    timestamp. An explicit TIME field is part of the raw body, so distinct
    explicit-time alerts never share a fingerprint. Alerts without a raw body
    are identified by their timestamp.

    Returns:
        str: SHA256 hex digest (64 chars).
    """
    identity = alert.raw_body.strip() if alert.raw_body is not None else alert.timestamp.isoformat()
    material = f"{alert.ticker.upper()}:{alert.indicator.casefold()}:{alert.trigger.casefold()}:{identity}"
    return hashlib.sha256(material.encode()).hexdigest()


def build_dedupe_key(
    strategy_id: str,
    ticker: str,
    matched_names: Iterable[str],
    anchor: datetime,
) -> str:
    """
    PURPOSE: Generate the SHA256 idempotency key of one logical triggering event.

    Key material: strategy id, ticker, the matched leaf set and the timestamp
    of the most recent contributing alert.

    Returns:
        str: SHA256 hex digest (64 chars).
    """
    key_material = f"{strategy_id}:{ticker.upper()}:{match_signature(matched_names)}:{anchor.isoformat()}"
    return hashlib.sha256(key_material.encode()).hexdigest()


class ActionDispatcher:
    """
    PURPOSE: Record actions idempotently and hand them to the notifier.

    Attributes:
        _actions: ActionStore used for the conditional insert.
        _notifier: Fire-and-forget downstream delivery.
        _events: Optional event bus for suppression events.
        _store_timeout: Timeout for the action insert.
        _notify_timeout: Timeout for one notification send.
        _pending: Background notification tasks still running.
    """

    def __init__(
        self,
        actions: ActionStore,
        notifier: Optional[Notifier] = None,
        events: Optional[Any] = None,
        store_timeout: float = 5.0,
        notify_timeout: float = 10.0,
    ) -> None:
        self._actions = actions
        self._notifier = notifier
        self._events = events
        self._store_timeout = store_timeout
        self._notify_timeout = notify_timeout
        self._pending: set[asyncio.Task] = set()

    async def dispatch(
        self,
        strategy: Strategy,
        ticker: str,
        result: MatchResult,
        score: Decimal,
        now: datetime,
        is_test: bool = False,
    ) -> Union[Action, DuplicateSuppressed, None]:
        """
        PURPOSE: Record an action for a satisfied strategy unless it duplicates one already recorded.

        Args:
            strategy: The evaluated strategy.
            ticker: Ticker under evaluation.
            result: Matcher output.
            score: Aggregated score of the matched leaves.
            now: Evaluation instant, stored as the action timestamp.
            is_test: Whether the triggering webhook carried the TEST flag.

        Returns:
            Action | DuplicateSuppressed | None: None when the tree is not satisfied.

        Raises:
            StrategyConfigError: Zero threshold.
            StoreTimeoutError: The action insert timed out.
        """
        if not result.satisfied:
            return None

        kind = action_type_for(strategy.threshold)
        anchor_alert = result.anchor_alert()
        anchor = anchor_alert.timestamp if anchor_alert is not None else now
        dedupe_key = build_dedupe_key(strategy.id, ticker, result.matched_names, anchor)

        action = Action(
            strategy_id=strategy.id,
            strategy_name=strategy.name,
            ticker=ticker.upper(),
            action=kind,
            score=score,
            timestamp=now,
            anchor_at=anchor,
            matched_alerts=tuple(result.matched_names),
            missing_alerts=tuple(result.missing_names),
            is_test=is_test,
            anchor_fingerprint=alert_fingerprint(anchor_alert) if anchor_alert is not None else None,
        )

        outcome = await bounded(
            self._actions.insert_if_absent(action, dedupe_key),
            self._store_timeout,
            "action_insert",
        )

        if isinstance(outcome, DuplicateSuppressed):
            logger.info(
                "action_suppressed_duplicate",
                strategy_id=strategy.id,
                ticker=action.ticker,
                dedupe_key=dedupe_key,
                existing_action_id=outcome.existing_action_id,
            )
            if self._events is not None:
                await self._events.publish(
                    event_type=EventType.ACTION_SUPPRESSED.value,
                    data={
                        "strategy_id": strategy.id,
                        "ticker": action.ticker,
                        "existing_action_id": outcome.existing_action_id,
                    },
                    source="action_dispatcher",
                )
            return outcome

        logger.info(
            "action_recorded",
            action_id=outcome.id,
            strategy_id=strategy.id,
            strategy=strategy.name,
            ticker=outcome.ticker,
            action=outcome.action.value,
            score=str(outcome.score),
            matched=list(outcome.matched_alerts),
        )
        self._notify_in_background(outcome)
        return outcome

    def _notify_in_background(self, action: Action) -> None:
        if self._notifier is None:
            return
        task = asyncio.create_task(self._safe_notify(action))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _safe_notify(self, action: Action) -> None:
        try:
            await bounded(self._notifier.send(action), self._notify_timeout, "notify")
        except Exception as e:
            logger.warning(
                "notification_failed",
                action_id=action.id,
                ticker=action.ticker,
                error=str(e),
                exception_type=type(e).__name__,
            )

    async def drain(self) -> None:
        """Wait for in-flight notifications (shutdown and tests)."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
