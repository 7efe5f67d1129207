"""
SQLAlchemy-backed implementations of the engine's store ports.

Evaluation runs in background tasks that outlive the request, so each call
opens its own session from the session factory.

CALLED BY: main.py (wiring the StrategyEvaluator and ActionDispatcher)
"""

from datetime import datetime
from typing import Optional, Union

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from alertengine.engine import records
from alertengine.services.action_service import ActionService
from alertengine.services.alert_service import AlertService
from alertengine.services.strategy_service import StrategyService
from alertengine.services.weight_service import WeightService


class SqlAlertStore:
    def __init__(self, sessions: async_sessionmaker[AsyncSession]) -> None:
        self._sessions = sessions

    async def insert(self, alert: records.Alert) -> records.Alert:
        async with self._sessions() as db:
            return await AlertService.insert(db, alert)

    async def query_window(
        self,
        ticker: str,
        since: Optional[datetime],
        until: Optional[datetime] = None,
    ) -> list[records.Alert]:
        async with self._sessions() as db:
            return await AlertService.query_window(db, ticker, since, until)


class SqlStrategyStore:
    def __init__(self, sessions: async_sessionmaker[AsyncSession]) -> None:
        self._sessions = sessions

    async def list_enabled(self) -> list[records.Strategy]:
        async with self._sessions() as db:
            return await StrategyService.list_enabled(db)


class SqlActionStore:
    def __init__(
        self,
        sessions: async_sessionmaker[AsyncSession],
        replay_tolerance_seconds: float = 30.0,
    ) -> None:
        self._sessions = sessions
        self._replay_tolerance_seconds = replay_tolerance_seconds

    async def insert_if_absent(
        self,
        action: records.Action,
        dedupe_key: str,
    ) -> Union[records.Action, records.DuplicateSuppressed]:
        async with self._sessions() as db:
            return await ActionService.insert_if_absent(
                db, action, dedupe_key, self._replay_tolerance_seconds
            )


def weight_source(sessions: async_sessionmaker[AsyncSession]):
    """Weight loader for ConfigSnapshotLoader."""

    async def load() -> list[tuple[str, str, float]]:
        async with sessions() as db:
            return await WeightService.load_weights(db)

    return load
