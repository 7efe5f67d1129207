"""
PURPOSE: Tests for the SQLAlchemy services and store adapters.

Uses a file-backed aiosqlite database per test. Tests:
- Alert persistence and the inclusive window query
- Conditional action insert: redelivery within the tolerance and unique dedupe key
- Latest per-ticker indicator readings merged from alerts
- Strategy CRUD, legacy rules folding, invalid stored trees skipped
- Weight catalogue seeding and snapshot loading
- Score snapshot best-ticker selection
- End-to-end evaluation through the SQL stores
"""

from dataclasses import replace
from datetime import timedelta
from decimal import Decimal
from typing import Optional

import pytest
from sqlalchemy import select

from alertengine.config.constants import DEFAULT_ALERT_WEIGHTS, ActionType, EvaluationState
from alertengine.engine.dispatcher import ActionDispatcher, build_dedupe_key, match_signature
from alertengine.engine.evaluator import StrategyEvaluator
from alertengine.engine.records import Action, DuplicateSuppressed, SubIndicators
from alertengine.engine.snapshot import ConfigSnapshot
from alertengine.models.action import Action as ActionRow
from alertengine.models.strategy import Strategy as StrategyRow
from alertengine.schemas.strategy import StrategyCreate, StrategyUpdate
from alertengine.services.action_service import ActionService
from alertengine.services.alert_service import AlertService
from alertengine.services.score_service import ScoreService
from alertengine.services.stores import SqlActionStore, SqlAlertStore, SqlStrategyStore, weight_source
from alertengine.services.strategy_service import StrategyService
from alertengine.services.ticker_indicator_service import TickerIndicatorService
from alertengine.services.weight_service import WeightService
from alertengine.utils.time_utils import to_naive_utc

from conftest import T0, RecordingNotifier, make_alert


async def _create_strategy(db, **overrides):
    payload = {
        "name": "Discount Divergence",
        "timeframe": 15,
        "threshold": 3,
        "rule_groups": [
            {
                "operator": "AND",
                "leaves": [
                    {"indicator": "Extreme Zones", "trigger": "Discount Zone", "weight": 1.9},
                    {"indicator": "Oscillator", "trigger": "Normal Bullish Divergence", "weight": 2.3},
                ],
            }
        ],
    }
    payload.update(overrides)
    return await StrategyService.create(db, StrategyCreate(**payload))


def _action(
    strategy_id: str,
    matched=("Discount Zone",),
    anchor=T0,
    ticker="AAPL",
    fingerprint: Optional[str] = None,
) -> Action:
    return Action(
        strategy_id=strategy_id,
        strategy_name="Discount Divergence",
        ticker=ticker,
        action=ActionType.BUY,
        score=Decimal("1.9"),
        timestamp=anchor + timedelta(minutes=1),
        anchor_at=anchor,
        matched_alerts=tuple(matched),
        anchor_fingerprint=fingerprint,
    )


class TestAlertService:
    """Test alert persistence and window reads."""

    async def test_insert_assigns_id(self, async_session):
        """Inserted alerts come back with an id and their fields intact."""
        alert = make_alert("Extreme Zones", "Discount Zone", weight="1.9")
        stored = await AlertService.insert(async_session, alert)
        assert stored.id is not None

        [read] = await AlertService.query_window(async_session, "aapl", None)
        assert read.id == stored.id
        assert read.timestamp == alert.timestamp
        assert read.weight == Decimal("1.9")

    async def test_sub_indicators_persisted(self, async_session):
        """Extracted annotations survive storage."""
        alert = replace(
            make_alert("Extreme Zones", "Discount Zone"),
            sub_indicators=SubIndicators(rsi_value=28.4, volume_level="HIGH"),
        )
        await AlertService.insert(async_session, alert)

        [read] = await AlertService.query_window(async_session, "AAPL", None)
        assert read.sub_indicators.rsi_value == pytest.approx(28.4)
        assert read.sub_indicators.volume_level == "HIGH"
        assert read.sub_indicators.adx_value is None

    async def test_window_lower_bound_inclusive(self, async_session):
        """An alert exactly at the bound is included, 1ms older is not."""
        await AlertService.insert(async_session, make_alert("Oscillator", "Buy Signal", minutes=0))
        older = replace(make_alert("Oscillator", "Sell Signal"), timestamp=T0 - timedelta(milliseconds=1))
        await AlertService.insert(async_session, older)

        window = await AlertService.query_window(async_session, "AAPL", T0, T0 + timedelta(minutes=15))
        assert [a.trigger for a in window] == ["Buy Signal"]

    async def test_window_filters_ticker_and_upper_bound(self, async_session):
        """Other tickers and future alerts are excluded."""
        await AlertService.insert(async_session, make_alert("Oscillator", "Buy Signal", ticker="AAPL"))
        await AlertService.insert(async_session, make_alert("Oscillator", "Buy Signal", ticker="MSFT"))
        await AlertService.insert(async_session, make_alert("Oscillator", "Sell Signal", minutes=30))

        window = await AlertService.query_window(async_session, "AAPL", T0 - timedelta(hours=1), T0)
        assert [(a.ticker, a.trigger) for a in window] == [("AAPL", "Buy Signal")]

    async def test_list_and_count(self, async_session):
        """Listing is newest first and honours the limit."""
        for minutes in (0, 1, 2):
            await AlertService.insert(async_session, make_alert("Oscillator", "Buy Signal", minutes=minutes))

        alerts = await AlertService.list_alerts(async_session, limit=2)
        assert [a.timestamp for a in alerts] == [T0 + timedelta(minutes=2), T0 + timedelta(minutes=1)]
        assert await AlertService.count_alerts(async_session) == 3


class TestTickerIndicatorService:
    """Test the latest-readings view."""

    async def test_alert_with_readings_creates_row(self, async_session):
        """Storing an extreme-zone alert records its readings for the ticker."""
        alert = replace(
            make_alert("Extreme Zones", "Discount Zone", ticker="btcusd"),
            sub_indicators=SubIndicators(rsi_value=28.4, rsi_status="OS", vwap_value=0.75),
        )
        await AlertService.insert(async_session, alert)

        row = await TickerIndicatorService.get(async_session, "BTCUSD")
        assert row is not None
        assert row.rsi_value == pytest.approx(28.4)
        assert row.rsi_status == "OS"
        assert row.vwap_value == pytest.approx(0.75)
        assert row.adx_value is None

    async def test_alert_without_readings_skipped(self, async_session):
        """Plain alerts leave the view untouched."""
        await AlertService.insert(async_session, make_alert("Oscillator", "Buy Signal"))
        assert await TickerIndicatorService.list_all(async_session) == []

    async def test_readings_merge_field_by_field(self, async_session):
        """A later alert overwrites only the readings it carries."""
        first = SubIndicators(rsi_value=28.4, rsi_status="OS", htf_status="Reversal Bullish")
        second = SubIndicators(rsi_value=55.0, rsi_status="Neutral", adx_value=32.1)
        await TickerIndicatorService.upsert(async_session, "AAPL", first, T0)
        await TickerIndicatorService.upsert(async_session, "aapl", second, T0 + timedelta(minutes=5))

        [row] = await TickerIndicatorService.list_all(async_session)
        assert row.ticker == "AAPL"
        assert row.rsi_value == pytest.approx(55.0)
        assert row.adx_value == pytest.approx(32.1)
        assert row.htf_status == "Reversal Bullish"
        assert row.last_alert_at == to_naive_utc(T0 + timedelta(minutes=5))

    async def test_older_alert_does_not_overwrite(self, async_session):
        """An alert older than the stored readings is ignored."""
        await TickerIndicatorService.upsert(async_session, "AAPL", SubIndicators(rsi_value=60.0), T0)
        stale = await TickerIndicatorService.upsert(
            async_session, "AAPL", SubIndicators(rsi_value=20.0), T0 - timedelta(minutes=1)
        )

        assert stale is None
        row = await TickerIndicatorService.get(async_session, "AAPL")
        assert row.rsi_value == pytest.approx(60.0)


class TestActionService:
    """Test the conditional action insert."""

    async def test_insert_then_replay_suppressed(self, async_session):
        """A redelivered webhook re-stamped at receipt inside the tolerance is a duplicate."""
        strategy = await _create_strategy(async_session)
        first = _action(strategy.id, fingerprint="a" * 64)
        key = build_dedupe_key(strategy.id, "AAPL", first.matched_alerts, first.anchor_at)

        stored = await ActionService.insert_if_absent(async_session, first, key)
        assert stored.id is not None

        replay = _action(strategy.id, anchor=T0 + timedelta(seconds=10), fingerprint="a" * 64)
        replay_key = build_dedupe_key(strategy.id, "AAPL", replay.matched_alerts, replay.anchor_at)
        outcome = await ActionService.insert_if_absent(async_session, replay, replay_key)

        assert isinstance(outcome, DuplicateSuppressed)
        assert outcome.existing_action_id == stored.id

    async def test_distinct_alert_inside_tolerance_recorded(self, async_session):
        """A different qualifying alert 20s later is a new event, not a replay."""
        strategy = await _create_strategy(async_session)
        first = _action(strategy.id, fingerprint="a" * 64)
        second = _action(strategy.id, anchor=T0 + timedelta(seconds=20), fingerprint="b" * 64)

        await ActionService.insert_if_absent(
            async_session, first, build_dedupe_key(strategy.id, "AAPL", first.matched_alerts, first.anchor_at)
        )
        outcome = await ActionService.insert_if_absent(
            async_session, second, build_dedupe_key(strategy.id, "AAPL", second.matched_alerts, second.anchor_at)
        )

        assert isinstance(outcome, Action)
        assert outcome.anchor_fingerprint == "b" * 64
        assert len(await ActionService.list_actions(async_session)) == 2

    async def test_outside_tolerance_recorded(self, async_session):
        """The same webhook body arriving beyond the tolerance is a new event."""
        strategy = await _create_strategy(async_session)
        first = _action(strategy.id, fingerprint="a" * 64)
        later = _action(strategy.id, anchor=T0 + timedelta(minutes=5), fingerprint="a" * 64)

        await ActionService.insert_if_absent(
            async_session, first, build_dedupe_key(strategy.id, "AAPL", first.matched_alerts, first.anchor_at)
        )
        outcome = await ActionService.insert_if_absent(
            async_session, later, build_dedupe_key(strategy.id, "AAPL", later.matched_alerts, later.anchor_at)
        )
        assert isinstance(outcome, Action)

    async def test_different_matched_set_recorded(self, async_session):
        """A different matched set at the same anchor is a new event."""
        strategy = await _create_strategy(async_session)
        first = _action(strategy.id)
        other = _action(strategy.id, matched=("Discount Zone", "Normal Bullish Divergence"))

        await ActionService.insert_if_absent(
            async_session, first, build_dedupe_key(strategy.id, "AAPL", first.matched_alerts, T0)
        )
        outcome = await ActionService.insert_if_absent(
            async_session, other, build_dedupe_key(strategy.id, "AAPL", other.matched_alerts, T0)
        )
        assert isinstance(outcome, Action)

    async def test_existing_dedupe_key_suppressed(self, async_session):
        """A row already holding the key wins even when the replay check misses it."""
        strategy = await _create_strategy(async_session)
        action = _action(strategy.id)
        key = build_dedupe_key(strategy.id, "AAPL", action.matched_alerts, action.anchor_at)

        async_session.add(
            ActionRow(
                strategy_id=strategy.id,
                strategy_name="Discount Divergence",
                ticker="AAPL",
                action="BUY",
                score=Decimal("1.9"),
                matched_alerts=["Something Else"],
                missing_alerts=[],
                match_signature=match_signature(["Something Else"]),
                anchor_at=to_naive_utc(T0 - timedelta(hours=1)),
                dedupe_key=key,
                is_test=False,
                timestamp=to_naive_utc(T0),
            )
        )
        await async_session.commit()

        outcome = await ActionService.insert_if_absent(async_session, action, key)
        assert isinstance(outcome, DuplicateSuppressed)

    async def test_list_actions(self, async_session):
        """Recorded actions are listed with their fields."""
        strategy = await _create_strategy(async_session)
        action = _action(strategy.id)
        await ActionService.insert_if_absent(
            async_session, action, build_dedupe_key(strategy.id, "AAPL", action.matched_alerts, T0)
        )

        [listed] = await ActionService.list_actions(async_session)
        assert listed.action is ActionType.BUY
        assert listed.matched_alerts == ("Discount Zone",)
        assert listed.anchor_at == T0


class TestStrategyService:
    """Test strategy CRUD."""

    async def test_create_and_load(self, async_session):
        """Created strategies load as engine records."""
        created = await _create_strategy(async_session, tickers=["aapl"])
        assert created.tickers == ["AAPL"]

        [record] = await StrategyService.list_enabled(async_session)
        assert record.id == created.id
        assert record.threshold == Decimal("3")
        assert record.timeframe_minutes == 15
        assert [leaf.trigger for leaf in record.leaves()] == ["Discount Zone", "Normal Bullish Divergence"]
        assert record.applies_to("AAPL") and not record.applies_to("MSFT")

    async def test_legacy_rules_folded(self, async_session):
        """A flat rules list becomes one AND group."""
        created = await StrategyService.create(
            async_session,
            StrategyCreate(
                name="Legacy",
                threshold=-2,
                rules=[{"indicator": "Waves", "trigger": "Sell"}, {"indicator": "SMC", "trigger": "Bearish BoS"}],
            ),
        )
        assert len(created.rule_groups) == 1
        assert created.rule_groups[0].operator == "AND"
        assert len(created.rule_groups[0].leaves) == 2

    async def test_update(self, async_session):
        """Only set fields change."""
        created = await _create_strategy(async_session)
        updated = await StrategyService.update(
            async_session, created.id, StrategyUpdate(threshold=-1, inter_group_operator="or")
        )
        assert updated.threshold == -1
        assert updated.inter_group_operator == "OR"
        assert updated.name == created.name

    async def test_update_missing(self, async_session):
        """Unknown id returns None."""
        assert await StrategyService.update(async_session, "nope", StrategyUpdate(enabled=False)) is None

    async def test_disabled_not_listed(self, async_session):
        """Disabled strategies are not evaluated."""
        created = await _create_strategy(async_session)
        await StrategyService.update(async_session, created.id, StrategyUpdate(enabled=False))
        assert await StrategyService.list_enabled(async_session) == []

    async def test_invalid_stored_tree_skipped(self, async_session):
        """A row with a broken tree is left out instead of failing the read."""
        await _create_strategy(async_session)
        async_session.add(
            StrategyRow(name="Broken", timeframe=15, threshold=Decimal("1"), rule_groups=[{"operator": "XOR"}])
        )
        await async_session.commit()

        names = [s.name for s in await StrategyService.list_enabled(async_session)]
        assert names == ["Discount Divergence"]

    async def test_delete(self, async_session):
        """Delete reports whether the strategy existed."""
        created = await _create_strategy(async_session)
        assert await StrategyService.delete(async_session, created.id) is True
        assert await StrategyService.delete(async_session, created.id) is False
        assert await StrategyService.get(async_session, created.id) is None


class TestWeightService:
    """Test the weight catalogue."""

    async def test_seed_idempotent(self, async_session):
        """Seeding twice adds the defaults once."""
        assert await WeightService.seed_defaults(async_session) == len(DEFAULT_ALERT_WEIGHTS)
        assert await WeightService.seed_defaults(async_session) == 0
        assert len(await WeightService.list_all(async_session)) == len(DEFAULT_ALERT_WEIGHTS)

    async def test_weight_source_builds_snapshot(self, db_sessions):
        """The loader's weight source reads enabled rows."""
        async with db_sessions() as db:
            await WeightService.seed_defaults(db)

        rows = await weight_source(db_sessions)()
        snap = ConfigSnapshot.build(weights=rows)
        assert snap.weight_for("Oscillator", "Buy Signal") == Decimal("2.4")


class TestScoreService:
    """Test the dashboard score snapshot."""

    async def test_best_ticker(self, async_session, snapshot):
        """The ticker with the most matched leaves is reported."""
        await _create_strategy(async_session, timeframe=60)
        await AlertService.insert(async_session, make_alert("Extreme Zones", "Discount Zone", ticker="AAPL"))
        await AlertService.insert(async_session, make_alert("Extreme Zones", "Discount Zone", ticker="MSFT"))
        await AlertService.insert(
            async_session, make_alert("Oscillator", "Normal Bullish Divergence", minutes=5, ticker="MSFT")
        )

        result = await ScoreService.ticker_scores(async_session, snapshot, 60, now=T0 + timedelta(minutes=10))
        [score] = result.strategies
        assert result.time_window == 60
        assert score.ticker == "MSFT"
        assert score.satisfied is True
        assert score.score == pytest.approx(4.2)
        assert score.missing == []

    async def test_nothing_matched(self, async_session, snapshot):
        """With no alerts every leaf is missing."""
        await _create_strategy(async_session)
        result = await ScoreService.ticker_scores(async_session, snapshot, 60, now=T0)
        [score] = result.strategies
        assert score.ticker is None
        assert score.missing == ["Discount Zone", "Normal Bullish Divergence"]


class TestSqlStores:
    """Test evaluation end to end through the SQL adapters."""

    async def test_evaluate_records_once(self, db_sessions, snapshot):
        """Two passes over the same window leave one action row."""
        async with db_sessions() as db:
            await _create_strategy(db)

        alerts = SqlAlertStore(db_sessions)
        await alerts.insert(make_alert("Extreme Zones", "Discount Zone", minutes=0))
        await alerts.insert(make_alert("Oscillator", "Normal Bullish Divergence", minutes=5))

        notifier = RecordingNotifier()
        evaluator = StrategyEvaluator(
            alerts,
            SqlStrategyStore(db_sessions),
            ActionDispatcher(SqlActionStore(db_sessions), notifier=notifier),
            snapshot_provider=lambda: snapshot,
        )

        first = await evaluator.evaluate_ticker("AAPL", now=T0 + timedelta(minutes=10))
        second = await evaluator.evaluate_ticker("AAPL", now=T0 + timedelta(minutes=11))
        await evaluator.dispatcher.drain()

        assert first[0].state is EvaluationState.ACTION_RECORDED
        assert second[0].state is EvaluationState.SUPPRESSED_DUPLICATE
        async with db_sessions() as db:
            rows = (await db.execute(select(ActionRow))).scalars().all()
        assert len(rows) == 1
        assert rows[0].score == Decimal("4.2")
        assert len(notifier.sent) == 1
