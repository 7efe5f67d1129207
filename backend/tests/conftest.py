"""
PURPOSE: Pytest fixtures for alert engine tests.

Provides:
- In-memory fakes for the engine's store and notifier ports
- A ConfigSnapshot loaded with the default weight catalogue
- Alert and strategy builders anchored at a fixed instant
- An aiosqlite-backed session factory with all tables created
- An httpx client against the FastAPI app with database and runtime overridden
"""

import asyncio
import os
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Optional

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("APP_ENV", "test")

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from alertengine.config.constants import DEFAULT_ALERT_WEIGHTS, GroupOperator
from alertengine.engine.dispatcher import ActionDispatcher, match_signature
from alertengine.engine.evaluator import StrategyEvaluator
from alertengine.engine.records import (
    Action,
    Alert,
    DuplicateSuppressed,
    Leaf,
    RuleGroup,
    Strategy,
)
from alertengine.engine.snapshot import ConfigSnapshot


T0 = datetime(2024, 6, 10, 12, 0, tzinfo=timezone.utc)


# ════════════════════════════════════════════════════════════════
# In-memory collaborators
# ════════════════════════════════════════════════════════════════


class InMemoryAlertStore:
    def __init__(self, alerts=(), delay: float = 0.0, error: Optional[Exception] = None):
        self.alerts: list[Alert] = []
        self.delay = delay
        self.error = error
        for alert in alerts:
            self.alerts.append(replace(alert, id=alert.id or f"alert-{len(self.alerts) + 1}"))

    async def insert(self, alert: Alert) -> Alert:
        stored = replace(alert, id=f"alert-{len(self.alerts) + 1}")
        self.alerts.append(stored)
        return stored

    async def query_window(self, ticker, since, until=None):
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return [
            a for a in self.alerts
            if a.ticker == ticker.upper()
            and (since is None or a.timestamp >= since)
            and (until is None or a.timestamp <= until)
        ]


class InMemoryStrategyStore:
    def __init__(self, strategies=(), delay: float = 0.0):
        self.strategies = list(strategies)
        self.delay = delay

    async def list_enabled(self):
        if self.delay:
            await asyncio.sleep(self.delay)
        return [s for s in self.strategies if s.enabled]


class InMemoryActionStore:
    """Same refusal rules as ActionService: redelivery within the tolerance, then unique dedupe key."""

    def __init__(self, replay_tolerance_seconds: float = 30.0, error: Optional[Exception] = None):
        self.actions: list[Action] = []
        self.keys: dict[str, str] = {}
        self.signatures: list[tuple[str, str, str, datetime, Optional[str], str]] = []
        self.tolerance = timedelta(seconds=replay_tolerance_seconds)
        self.error = error

    async def insert_if_absent(self, action: Action, dedupe_key: str):
        if self.error is not None:
            raise self.error
        signature = match_signature(action.matched_alerts)
        for strategy_id, ticker, sig, anchor, fingerprint, action_id in self.signatures:
            if (
                strategy_id == action.strategy_id
                and ticker == action.ticker
                and sig == signature
                and action.anchor_fingerprint is not None
                and fingerprint == action.anchor_fingerprint
                and abs(anchor - action.anchor_at) <= self.tolerance
            ):
                return DuplicateSuppressed(action.strategy_id, action.ticker, dedupe_key, action_id)
        # Yield between the check and the write so unserialized callers would race here
        await asyncio.sleep(0)
        if dedupe_key in self.keys:
            return DuplicateSuppressed(action.strategy_id, action.ticker, dedupe_key, self.keys[dedupe_key])

        stored = replace(action, id=f"action-{len(self.actions) + 1}")
        self.actions.append(stored)
        self.keys[dedupe_key] = stored.id
        self.signatures.append(
            (action.strategy_id, action.ticker, signature, action.anchor_at, action.anchor_fingerprint, stored.id)
        )
        return stored


class RecordingNotifier:
    def __init__(self, error: Optional[Exception] = None, delay: float = 0.0):
        self.sent: list[Action] = []
        self.error = error
        self.delay = delay

    async def send(self, action: Action) -> None:
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        self.sent.append(action)


# ════════════════════════════════════════════════════════════════
# Builders
# ════════════════════════════════════════════════════════════════


def make_alert(
    indicator: str,
    trigger: str,
    minutes: float = 0,
    ticker: str = "AAPL",
    weight: Optional[str] = None,
    is_test: bool = False,
) -> Alert:
    """Alert at T0 + minutes."""
    return Alert(
        ticker=ticker,
        indicator=indicator,
        trigger=trigger,
        timestamp=T0 + timedelta(minutes=minutes),
        timeframe="15",
        weight=Decimal(weight) if weight is not None else None,
        is_test=is_test,
    )


def make_strategy(
    *groups: tuple[str, list[tuple[str, str]]],
    strategy_id: str = "strat-1",
    name: str = "Test Strategy",
    timeframe: int = 60,
    threshold: str = "1",
    inter: GroupOperator = GroupOperator.AND,
    tickers: tuple[str, ...] = (),
) -> Strategy:
    """make_strategy(("AND", [("Oscillator", "Buy Signal")]), ...)"""
    rule_groups = tuple(
        RuleGroup(
            operator=GroupOperator(op),
            leaves=tuple(Leaf(indicator=i, trigger=t) for i, t in leaves),
        )
        for op, leaves in groups
    )
    return Strategy(
        id=strategy_id,
        name=name,
        timeframe_minutes=timeframe,
        threshold=Decimal(threshold),
        rule_groups=rule_groups,
        inter_group_operator=inter,
        tickers=tickers,
    )


# ════════════════════════════════════════════════════════════════
# Engine fixtures
# ════════════════════════════════════════════════════════════════


@pytest.fixture
def snapshot() -> ConfigSnapshot:
    """Default weight catalogue plus built-in aliases."""
    return ConfigSnapshot.build(weights=DEFAULT_ALERT_WEIGHTS)


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def action_store() -> InMemoryActionStore:
    return InMemoryActionStore()


@pytest.fixture
def build_evaluator(snapshot, notifier, action_store):
    """Factory: build_evaluator(alert_store, strategy_store, **kwargs) -> StrategyEvaluator."""

    def _build(alert_store, strategy_store, store_timeout: float = 1.0, actions=None, notify=None):
        dispatcher = ActionDispatcher(
            actions or action_store,
            notifier=notify or notifier,
            store_timeout=store_timeout,
            notify_timeout=1.0,
        )
        return StrategyEvaluator(
            alert_store,
            strategy_store,
            dispatcher,
            snapshot_provider=lambda: snapshot,
            store_timeout=store_timeout,
        )

    return _build


# ════════════════════════════════════════════════════════════════
# Database fixtures
# ════════════════════════════════════════════════════════════════


@pytest_asyncio.fixture
async def db_sessions(tmp_path):
    """
    PURPOSE: File-backed SQLite session factory with every table created.

    A file (not :memory:) so each session gets its own connection to the same
    database, as background evaluation does in production.
    """
    from alertengine.db.base import Base
    import alertengine.models  # noqa: F401

    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'alertengine.db'}", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    sessions = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    yield sessions

    await engine.dispose()


@pytest_asyncio.fixture
async def async_session(db_sessions):
    async with db_sessions() as session:
        yield session


# ════════════════════════════════════════════════════════════════
# API fixtures
# ════════════════════════════════════════════════════════════════


@pytest.fixture
def test_settings():
    """Settings with test values; no secret, no channels, no Redis."""
    from alertengine.config.settings import Settings

    return Settings(
        DATABASE_URL="sqlite+aiosqlite:///:memory:",
        REDIS_URL="",
        APP_ENV="test",
        LOG_LEVEL="DEBUG",
        WEBHOOK_SECRET="",
        STORE_TIMEOUT_SECONDS=2.0,
        NOTIFY_TIMEOUT_SECONDS=1.0,
    )


@pytest_asyncio.fixture
async def runtime(db_sessions, test_settings):
    from alertengine.core.runtime import build_runtime
    from alertengine.events.bus import EventBus
    from alertengine.notify.hub import NotificationHub
    from alertengine.services.weight_service import WeightService

    async with db_sessions() as session:
        await WeightService.seed_defaults(session)

    events = EventBus("")
    rt = build_runtime(test_settings, db_sessions, events, notifier=NotificationHub(events=events))
    await rt.snapshots.refresh()
    yield rt
    await rt.runner.drain()


@pytest_asyncio.fixture
async def client(db_sessions, runtime, monkeypatch):
    """
    PURPOSE: httpx AsyncClient bound to the app with test database and runtime.

    Rate limiting is disabled and the webhook secret cleared.
    """
    from alertengine.config.settings import settings
    from alertengine.core.rate_limit import limiter
    from alertengine.core.runtime import get_runtime
    from alertengine.db.engine import get_db
    from alertengine.main import app

    async def _get_db():
        async with db_sessions() as session:
            yield session

    monkeypatch.setattr(settings, "WEBHOOK_SECRET", "")
    monkeypatch.setattr(limiter, "enabled", False)
    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_runtime] = lambda: runtime

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as http:
        yield http

    app.dependency_overrides.clear()
