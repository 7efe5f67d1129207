"""
PURPOSE: Evaluate every enabled strategy for a ticker after an alert is ingested.

Each (strategy, ticker) pair is evaluated under its own lock, so two webhooks
for the same ticker arriving together cannot both record an action. A failure
in one strategy (timeout, bad config, store error) is logged and reported for
that strategy only; the others still run.

CALLED BY:
    - alertengine/api/routes_webhook.py via EvaluationRunner.schedule()
"""

import asyncio
from datetime import datetime
from typing import Callable, Optional

from alertengine.config.constants import EvaluationState
from alertengine.engine.dispatcher import ActionDispatcher
from alertengine.engine.matcher import match_strategy
from alertengine.engine.ports import AlertStore, StrategyStore
from alertengine.engine.records import Action, Alert, DuplicateSuppressed, EvaluationOutcome, Strategy
from alertengine.engine.scoring import aggregate_score
from alertengine.engine.snapshot import ConfigSnapshot
from alertengine.utils.decorators import bounded
from alertengine.utils.logger import get_logger
from alertengine.utils.time_utils import as_utc, get_utc_now, window_start

logger = get_logger(__name__)


class KeyedLocks:
    """asyncio.Lock per key, dropped once no coroutine holds or waits on it."""

    def __init__(self) -> None:
        self._locks: dict[tuple, asyncio.Lock] = {}
        self._users: dict[tuple, int] = {}

    def __len__(self) -> int:
        return len(self._locks)

    def hold(self, *key) -> "_KeyedLockContext":
        return _KeyedLockContext(self, key)

    def _acquire_ref(self, key: tuple) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        self._users[key] = self._users.get(key, 0) + 1
        return lock

    def _release_ref(self, key: tuple) -> None:
        self._users[key] -= 1
        if self._users[key] == 0:
            del self._users[key]
            del self._locks[key]


class _KeyedLockContext:
    def __init__(self, owner: KeyedLocks, key: tuple) -> None:
        self._owner = owner
        self._key = key
        self._lock: Optional[asyncio.Lock] = None

    async def __aenter__(self) -> None:
        self._lock = self._owner._acquire_ref(self._key)
        try:
            await self._lock.acquire()
        except BaseException:
            self._owner._release_ref(self._key)
            raise

    async def __aexit__(self, *exc_info) -> None:
        self._lock.release()
        self._owner._release_ref(self._key)


class StrategyEvaluator:
    """
    PURPOSE: Run the match -> score -> dispatch pipeline for each applicable strategy.

    Attributes:
        _alerts: Window reader.
        _strategies: Source of enabled strategies.
        dispatcher: Records actions idempotently.
        _snapshot: Returns the ConfigSnapshot in effect.
        _store_timeout: Timeout for each store read.
        _locks: Per (strategy_id, ticker) mutual exclusion.
    """

    def __init__(
        self,
        alerts: AlertStore,
        strategies: StrategyStore,
        dispatcher: ActionDispatcher,
        snapshot_provider: Callable[[], ConfigSnapshot],
        store_timeout: float = 5.0,
    ) -> None:
        self._alerts = alerts
        self._strategies = strategies
        self.dispatcher = dispatcher
        self._snapshot = snapshot_provider
        self._store_timeout = store_timeout
        self._locks = KeyedLocks()

    async def evaluate_ticker(
        self,
        ticker: str,
        trigger_alert: Optional[Alert] = None,
        now: Optional[datetime] = None,
    ) -> list[EvaluationOutcome]:
        """
        PURPOSE: Evaluate all enabled strategies that apply to a ticker.

        CALLED BY: EvaluationRunner, tests

        Args:
            ticker: Ticker whose alert was just ingested.
            trigger_alert: The alert that caused this pass; only its test flag is used.
            now: Evaluation instant (defaults to current UTC time).

        Returns:
            list[EvaluationOutcome]: One outcome per evaluated strategy. Empty if
            the strategy list could not be read.
        """
        now = as_utc(now) if now is not None else get_utc_now()
        ticker = ticker.upper()
        is_test = bool(trigger_alert and trigger_alert.is_test)
        snapshot = self._snapshot()

        try:
            strategies = await bounded(
                self._strategies.list_enabled(), self._store_timeout, "strategy_list"
            )
        except Exception as e:
            logger.error(
                "strategy_list_failed",
                ticker=ticker,
                error=str(e),
                exception_type=type(e).__name__,
            )
            return []

        applicable = [s for s in strategies if s.enabled and s.applies_to(ticker)]
        outcomes = await asyncio.gather(
            *(self._evaluate_isolated(s, ticker, now, snapshot, is_test) for s in applicable)
        )

        logger.info(
            "ticker_evaluated",
            ticker=ticker,
            strategies=len(applicable),
            actions=sum(1 for o in outcomes if o.state is EvaluationState.ACTION_RECORDED),
            failures=sum(1 for o in outcomes if o.state is EvaluationState.FAILED),
        )
        return list(outcomes)

    async def _evaluate_isolated(
        self,
        strategy: Strategy,
        ticker: str,
        now: datetime,
        snapshot: ConfigSnapshot,
        is_test: bool,
    ) -> EvaluationOutcome:
        try:
            async with self._locks.hold(strategy.id, ticker):
                return await self.evaluate_strategy(strategy, ticker, now, snapshot, is_test)
        except Exception as e:
            logger.error(
                "strategy_evaluation_failed",
                strategy_id=strategy.id,
                strategy=strategy.name,
                ticker=ticker,
                error=str(e),
                exception_type=type(e).__name__,
            )
            return EvaluationOutcome(
                strategy_id=strategy.id,
                strategy_name=strategy.name,
                ticker=ticker,
                state=EvaluationState.FAILED,
                error=f"{type(e).__name__}: {e}",
            )

    async def evaluate_strategy(
        self,
        strategy: Strategy,
        ticker: str,
        now: datetime,
        snapshot: ConfigSnapshot,
        is_test: bool = False,
    ) -> EvaluationOutcome:
        """
        PURPOSE: Evaluate one strategy for one ticker. Callers hold the (strategy, ticker) lock.

        Raises:
            StoreTimeoutError: Window read or action insert timed out.
            StrategyConfigError: Malformed rule tree or zero threshold.
        """
        since = window_start(now, strategy.timeframe_minutes)
        alerts = await bounded(
            self._alerts.query_window(ticker, since, now),
            self._store_timeout,
            "alert_window",
        )

        result = match_strategy(strategy, alerts, snapshot)
        base = dict(
            strategy_id=strategy.id,
            strategy_name=strategy.name,
            ticker=ticker,
            matched=tuple(result.matched_names),
            missing=tuple(result.missing_names),
        )

        logger.debug(
            "strategy_matched",
            strategy_id=strategy.id,
            ticker=ticker,
            window_alerts=len(alerts),
            satisfied=result.satisfied,
            matched=result.matched_names,
            missing=result.missing_names,
        )

        if not result.satisfied:
            return EvaluationOutcome(state=EvaluationState.UNMATCHED, **base)

        score = aggregate_score(result.matched_leaves)
        dispatched = await self.dispatcher.dispatch(strategy, ticker, result, score, now, is_test)

        if isinstance(dispatched, Action):
            return EvaluationOutcome(
                state=EvaluationState.ACTION_RECORDED, score=score, action=dispatched, **base
            )
        if isinstance(dispatched, DuplicateSuppressed):
            return EvaluationOutcome(state=EvaluationState.SUPPRESSED_DUPLICATE, score=score, **base)
        return EvaluationOutcome(state=EvaluationState.UNMATCHED, score=score, **base)


class EvaluationRunner:
    """
    PURPOSE: Run ticker evaluations as tracked background tasks.

    The webhook acknowledges once the alert is stored; evaluation continues
    here. drain() waits for everything in flight during shutdown.
    """

    def __init__(self, evaluator: StrategyEvaluator) -> None:
        self.evaluator = evaluator
        self._pending: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._pending)

    def schedule(self, ticker: str, trigger_alert: Optional[Alert] = None) -> asyncio.Task:
        task = asyncio.create_task(self.evaluator.evaluate_ticker(ticker, trigger_alert))
        self._pending.add(task)
        task.add_done_callback(self._finished)
        return task

    def _finished(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(
                "evaluation_task_failed",
                error=str(error),
                exception_type=type(error).__name__,
            )

    async def drain(self) -> None:
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
        await self.evaluator.dispatcher.drain()
