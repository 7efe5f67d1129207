"""
PURPOSE: Narrow interfaces of the external collaborators consumed by the engine.

The SQLAlchemy services and the notification hub implement these; tests use
in-memory fakes.
"""

from datetime import datetime
from typing import Optional, Protocol, Union

from alertengine.engine.records import Action, Alert, DuplicateSuppressed, Strategy


class AlertStore(Protocol):
    async def insert(self, alert: Alert) -> Alert:
        """Persist an alert and return it with its id."""

    async def query_window(
        self,
        ticker: str,
        since: Optional[datetime],
        until: Optional[datetime] = None,
    ) -> list[Alert]:
        """Alerts for ticker with since <= timestamp <= until; since=None is unbounded."""


class StrategyStore(Protocol):
    async def list_enabled(self) -> list[Strategy]:
        """Every enabled strategy."""


class ActionStore(Protocol):
    async def insert_if_absent(
        self,
        action: Action,
        dedupe_key: str,
    ) -> Union[Action, DuplicateSuppressed]:
        """Persist the action unless an equivalent one is already recorded."""


class Notifier(Protocol):
    async def send(self, action: Action) -> None:
        """Deliver a recorded action to downstream channels."""
