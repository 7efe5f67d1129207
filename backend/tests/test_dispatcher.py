"""
PURPOSE: Tests for idempotent action dispatch.

Tests:
- Threshold sign to BUY/SELL, zero rejected
- Dedupe key stability and discrimination
- Record-then-suppress for a replayed match
- Redelivered webhooks suppressed, distinct alerts inside the tolerance recorded
- Notification failures and timeouts never touch the recorded action
- Store timeouts surface as StoreTimeoutError
"""

import asyncio
from dataclasses import replace
from datetime import timedelta
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

from alertengine.config.constants import ActionType, EventType
from alertengine.engine.dispatcher import (
    ActionDispatcher,
    action_type_for,
    alert_fingerprint,
    build_dedupe_key,
    match_signature,
)
from alertengine.engine.errors import StoreTimeoutError, StrategyConfigError
from alertengine.engine.matcher import match_strategy
from alertengine.engine.records import Action, DuplicateSuppressed

from conftest import T0, InMemoryActionStore, RecordingNotifier, make_alert, make_strategy

NOW = T0 + timedelta(minutes=10)


@pytest.fixture
def mock_event_bus():
    """EventBus stand-in recording published events."""
    bus = MagicMock()
    bus.published = []

    async def _publish(event_type, data, source="unknown", severity="INFO"):
        bus.published.append({"event_type": event_type, "data": data, "source": source})

    bus.publish = AsyncMock(side_effect=_publish)
    return bus


@pytest.fixture
def satisfied(snapshot):
    strategy = make_strategy(("AND", [("Oscillator", "Buy Signal"), ("SMC", "Bullish BoS")]), threshold="3")
    alerts = [make_alert("Oscillator", "Buy Signal"), make_alert("SMC", "Bullish BoS", minutes=5)]
    return strategy, match_strategy(strategy, alerts, snapshot)


class TestActionType:
    """Test threshold sign mapping."""

    def test_positive_is_buy(self):
        """Positive threshold emits BUY."""
        assert action_type_for(Decimal("3")) is ActionType.BUY

    def test_negative_is_sell(self):
        """Negative threshold emits SELL."""
        assert action_type_for(Decimal("-0.5")) is ActionType.SELL

    def test_zero_rejected(self):
        """Zero threshold is a configuration error."""
        with pytest.raises(StrategyConfigError):
            action_type_for(Decimal("0"))


class TestDedupeKey:
    """Test the idempotency key."""

    def test_signature_order_and_case_independent(self):
        """Same leaf set in any order or case gives the same signature."""
        assert match_signature(["Buy Signal", "Bullish BoS"]) == match_signature(["bullish bos", "BUY SIGNAL"])

    def test_key_is_stable(self):
        """Same inputs give the same 64-char key; ticker case is ignored."""
        first = build_dedupe_key("s1", "aapl", ["A", "B"], T0)
        second = build_dedupe_key("s1", "AAPL", ["B", "A"], T0)
        assert first == second
        assert len(first) == 64

    def test_key_discriminates(self):
        """Strategy, ticker, leaf set and anchor all change the key."""
        base = build_dedupe_key("s1", "AAPL", ["A"], T0)
        assert build_dedupe_key("s2", "AAPL", ["A"], T0) != base
        assert build_dedupe_key("s1", "MSFT", ["A"], T0) != base
        assert build_dedupe_key("s1", "AAPL", ["A", "B"], T0) != base
        assert build_dedupe_key("s1", "AAPL", ["A"], T0 + timedelta(seconds=1)) != base

    def test_fingerprint_follows_raw_body(self):
        """A redelivered body keeps its fingerprint across receipt times; another body does not."""
        delivered = replace(make_alert("Oscillator", "Bull"), raw_body="AAPL|15|Oscillator|Bull")
        redelivered = replace(delivered, timestamp=T0 + timedelta(seconds=4))
        other = replace(delivered, raw_body="AAPL|15|Oscillator|Bull|1718020820")

        assert alert_fingerprint(delivered) == alert_fingerprint(redelivered)
        assert alert_fingerprint(delivered) != alert_fingerprint(other)

    def test_fingerprint_without_body_uses_timestamp(self):
        """Alerts built without a raw body differ by timestamp."""
        first = make_alert("Oscillator", "Bull")
        assert alert_fingerprint(first) == alert_fingerprint(make_alert("Oscillator", "Bull"))
        assert alert_fingerprint(first) != alert_fingerprint(make_alert("Oscillator", "Bull", minutes=0.5))


class TestDispatch:
    """Test the dispatch flow."""

    async def test_unsatisfied_records_nothing(self, snapshot):
        """No action for an unsatisfied tree."""
        store = InMemoryActionStore()
        strategy = make_strategy(("AND", [("Oscillator", "Buy Signal")]))
        result = match_strategy(strategy, [], snapshot)
        dispatcher = ActionDispatcher(store)

        assert await dispatcher.dispatch(strategy, "AAPL", result, Decimal("0"), NOW) is None
        assert store.actions == []

    async def test_records_action(self, satisfied):
        """A satisfied tree records one BUY action anchored at the latest matched alert."""
        strategy, result = satisfied
        store, notifier = InMemoryActionStore(), RecordingNotifier()
        dispatcher = ActionDispatcher(store, notifier=notifier)

        action = await dispatcher.dispatch(strategy, "aapl", result, Decimal("4.5"), NOW)
        await dispatcher.drain()

        assert isinstance(action, Action)
        assert action.id == "action-1"
        assert action.action is ActionType.BUY
        assert action.ticker == "AAPL"
        assert action.anchor_at == T0 + timedelta(minutes=5)
        assert action.timestamp == NOW
        assert set(action.matched_alerts) == {"Buy Signal", "Bullish BoS"}
        assert notifier.sent == [action]

    async def test_replay_suppressed(self, satisfied, mock_event_bus):
        """Dispatching the same match twice records once and reports the duplicate."""
        strategy, result = satisfied
        store, notifier = InMemoryActionStore(), RecordingNotifier()
        dispatcher = ActionDispatcher(store, notifier=notifier, events=mock_event_bus)

        first = await dispatcher.dispatch(strategy, "AAPL", result, Decimal("4.5"), NOW)
        second = await dispatcher.dispatch(strategy, "AAPL", result, Decimal("4.5"), NOW + timedelta(seconds=3))
        await dispatcher.drain()

        assert isinstance(second, DuplicateSuppressed)
        assert second.existing_action_id == first.id
        assert len(store.actions) == 1
        assert len(notifier.sent) == 1
        assert mock_event_bus.published[0]["event_type"] == EventType.ACTION_SUPPRESSED.value

    async def test_zero_threshold_raises(self, snapshot):
        """A zero threshold that slipped past validation fails loudly at dispatch."""
        strategy = make_strategy(("AND", [("Oscillator", "Buy Signal")]), threshold="0")
        result = match_strategy(strategy, [make_alert("Oscillator", "Buy Signal")], snapshot)
        dispatcher = ActionDispatcher(InMemoryActionStore())

        with pytest.raises(StrategyConfigError):
            await dispatcher.dispatch(strategy, "AAPL", result, Decimal("2.4"), NOW)

    async def test_notification_failure_isolated(self, satisfied):
        """A failing notifier leaves the recorded action alone."""
        strategy, result = satisfied
        store = InMemoryActionStore()
        dispatcher = ActionDispatcher(store, notifier=RecordingNotifier(error=RuntimeError("chat down")))

        action = await dispatcher.dispatch(strategy, "AAPL", result, Decimal("4.5"), NOW)
        await dispatcher.drain()

        assert isinstance(action, Action)
        assert store.actions == [action]

    async def test_notification_timeout_isolated(self, satisfied):
        """A hanging notifier is cut off by its timeout."""
        strategy, result = satisfied
        dispatcher = ActionDispatcher(
            InMemoryActionStore(),
            notifier=RecordingNotifier(delay=5.0),
            notify_timeout=0.05,
        )

        action = await dispatcher.dispatch(strategy, "AAPL", result, Decimal("4.5"), NOW)
        await asyncio.wait_for(dispatcher.drain(), timeout=1.0)
        assert isinstance(action, Action)

    async def test_store_timeout(self, satisfied):
        """A slow action insert raises StoreTimeoutError."""
        strategy, result = satisfied
        store = InMemoryActionStore()

        async def slow_insert(action, dedupe_key):
            await asyncio.sleep(5.0)

        store.insert_if_absent = slow_insert
        dispatcher = ActionDispatcher(store, store_timeout=0.05)

        with pytest.raises(StoreTimeoutError):
            await dispatcher.dispatch(strategy, "AAPL", result, Decimal("4.5"), NOW)


class TestRepeatedSatisfaction:
    """Test new qualifying alerts against redelivered webhooks."""

    @pytest.fixture
    def either_bull(self):
        return make_strategy(("OR", [("Oscillator", "Bull"), ("SMC", "Bullish BoS")]), threshold="2")

    async def test_distinct_explicit_time_alerts_both_recorded(self, either_bull, snapshot):
        """Two explicit-time alerts 20s apart each record an action."""
        store = InMemoryActionStore(replay_tolerance_seconds=30)
        dispatcher = ActionDispatcher(store)
        first = replace(make_alert("Oscillator", "Bull"), raw_body="AAPL|15|Oscillator|Bull|1718020800")
        second = replace(
            first,
            timestamp=T0 + timedelta(seconds=20),
            raw_body="AAPL|15|Oscillator|Bull|1718020820",
        )

        outcome_one = await dispatcher.dispatch(
            either_bull, "AAPL", match_strategy(either_bull, [first], snapshot), Decimal("1"), T0
        )
        outcome_two = await dispatcher.dispatch(
            either_bull,
            "AAPL",
            match_strategy(either_bull, [first, second], snapshot),
            Decimal("1"),
            T0 + timedelta(seconds=20),
        )

        assert isinstance(outcome_one, Action)
        assert isinstance(outcome_two, Action)
        assert outcome_two.anchor_at == T0 + timedelta(seconds=20)
        assert len(store.actions) == 2

    async def test_redelivered_webhook_suppressed(self, either_bull, snapshot):
        """The same body re-stamped at receipt 5s later is a duplicate."""
        store = InMemoryActionStore(replay_tolerance_seconds=30)
        dispatcher = ActionDispatcher(store)
        delivered = replace(make_alert("Oscillator", "Bull"), raw_body="AAPL|15|Oscillator|Bull")
        redelivered = replace(delivered, timestamp=T0 + timedelta(seconds=5))

        first = await dispatcher.dispatch(
            either_bull, "AAPL", match_strategy(either_bull, [delivered], snapshot), Decimal("1"), T0
        )
        second = await dispatcher.dispatch(
            either_bull,
            "AAPL",
            match_strategy(either_bull, [delivered, redelivered], snapshot),
            Decimal("1"),
            T0 + timedelta(seconds=5),
        )

        assert isinstance(first, Action)
        assert isinstance(second, DuplicateSuppressed)
        assert second.existing_action_id == first.id
        assert len(store.actions) == 1
