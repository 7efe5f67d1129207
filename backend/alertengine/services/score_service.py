"""
Score service for the alert engine.

PURPOSE: Dashboard "current score" view. For each enabled strategy, find the
ticker in the window with the most matched leaves and report its score and
matched/missing leaves. Read-only: never records actions.

CALLED BY: GET /api/score
"""

from collections import defaultdict
from datetime import datetime
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from alertengine.engine import records
from alertengine.engine.matcher import match_strategy
from alertengine.engine.scoring import aggregate_score, display_score
from alertengine.engine.snapshot import ConfigSnapshot
from alertengine.schemas.score import ScoreSnapshot, StrategyScore
from alertengine.services.alert_service import AlertService
from alertengine.services.strategy_service import StrategyService
from alertengine.utils.decorators import timed
from alertengine.utils.logger import get_logger
from alertengine.utils.time_utils import get_utc_now, window_start


logger = get_logger("services.score")


class ScoreService:
    """
    Service computing the per-strategy score snapshot.

    CALLED BY: API routes for score endpoints
    """

    @staticmethod
    def best_ticker(
        strategy: records.Strategy,
        alerts_by_ticker: dict[str, list[records.Alert]],
        snapshot: ConfigSnapshot,
    ) -> StrategyScore:
        """
        Pick the ticker with the most matched leaves; ties go to the larger
        absolute score, then to the alphabetically first ticker.
        """
        best: Optional[tuple[str, records.MatchResult]] = None
        best_rank: Optional[tuple] = None

        for ticker in sorted(alerts_by_ticker):
            if not strategy.applies_to(ticker):
                continue
            result = match_strategy(strategy, alerts_by_ticker[ticker], snapshot)
            rank = (len(result.matched_leaves), abs(aggregate_score(result.matched_leaves)))
            if best_rank is None or rank > best_rank:
                best, best_rank = (ticker, result), rank

        if best is None or not best[1].matched_leaves:
            return StrategyScore(
                strategy_id=strategy.id,
                strategy_name=strategy.name,
                missing=[leaf.name for leaf in strategy.leaves()],
            )

        ticker, result = best
        return StrategyScore(
            strategy_id=strategy.id,
            strategy_name=strategy.name,
            ticker=ticker,
            score=display_score(aggregate_score(result.matched_leaves)),
            satisfied=result.satisfied,
            matched=result.matched_names,
            missing=result.missing_names,
        )

    @staticmethod
    @timed("score_snapshot_timing")
    async def ticker_scores(
        db: AsyncSession,
        snapshot: ConfigSnapshot,
        window_minutes: int,
        now: Optional[datetime] = None,
    ) -> ScoreSnapshot:
        """
        Score snapshot across every enabled strategy.

        Args:
            db: Async database session
            snapshot: Alias/weight configuration in effect
            window_minutes: Look-back window (0 = all alerts)
            now: Upper bound of the window, defaults to current UTC time

        Returns:
            ScoreSnapshot: One StrategyScore per enabled strategy
        """
        now = now or get_utc_now()
        strategies = await StrategyService.list_enabled(db)
        alerts = await AlertService.query_since(db, window_start(now, window_minutes), now)

        alerts_by_ticker: dict[str, list[records.Alert]] = defaultdict(list)
        for alert in alerts:
            alerts_by_ticker[alert.ticker].append(alert)

        scores = [ScoreService.best_ticker(s, alerts_by_ticker, snapshot) for s in strategies]
        logger.debug(
            "score_snapshot_computed",
            strategies=len(scores),
            tickers=len(alerts_by_ticker),
            window_minutes=window_minutes,
        )
        return ScoreSnapshot(time_window=window_minutes, strategies=scores)
