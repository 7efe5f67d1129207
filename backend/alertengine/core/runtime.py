"""
PURPOSE: Wire the evaluation engine to its SQL stores, notifier and event bus.

One EngineRuntime exists per process. It is built in the application
lifespan, installed with set_runtime(), and handed to routes through the
get_runtime dependency (overridable in tests).

CALLED BY:
    - alertengine/main.py (lifespan)
    - alertengine/api routes (Depends(get_runtime))
"""

from dataclasses import dataclass
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from alertengine.config.settings import Settings
from alertengine.engine.dispatcher import ActionDispatcher
from alertengine.engine.evaluator import EvaluationRunner, StrategyEvaluator
from alertengine.engine.snapshot import ConfigSnapshot, ConfigSnapshotLoader
from alertengine.events.bus import EventBus
from alertengine.notify.hub import NotificationHub
from alertengine.services.stores import SqlActionStore, SqlAlertStore, SqlStrategyStore, weight_source
from alertengine.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class EngineRuntime:
    """
    Attributes:
        settings: Settings the runtime was built from.
        snapshots: Alias/weight snapshot loader shared by ingestion and evaluation.
        evaluator: Per-ticker strategy evaluator.
        runner: Background scheduler for evaluations.
        events: Event bus.
        notifier: Notification fan-out.
    """

    settings: Settings
    snapshots: ConfigSnapshotLoader
    evaluator: StrategyEvaluator
    runner: EvaluationRunner
    events: EventBus
    notifier: NotificationHub

    @property
    def snapshot(self) -> ConfigSnapshot:
        return self.snapshots.current

    async def start(self) -> None:
        await self.snapshots.refresh()
        self.snapshots.start()
        logger.info("engine_runtime_started", snapshot_version=self.snapshot.version)

    async def stop(self) -> None:
        await self.snapshots.stop()
        await self.runner.drain()
        logger.info("engine_runtime_stopped")


def build_runtime(
    settings: Settings,
    sessions: async_sessionmaker[AsyncSession],
    events: EventBus,
    notifier: Optional[NotificationHub] = None,
) -> EngineRuntime:
    """
    PURPOSE: Assemble the engine against a session factory.

    Args:
        settings: Application settings.
        sessions: Session factory used by background evaluation.
        events: Event bus (connected or local-only).
        notifier: Override for the notification hub; built from settings by default.

    Returns:
        EngineRuntime: Not yet started.
    """
    snapshots = ConfigSnapshotLoader(
        weight_source(sessions),
        extra_aliases=settings.INDICATOR_ALIASES,
        refresh_seconds=settings.CONFIG_REFRESH_SECONDS,
    )
    notifier = notifier or NotificationHub.from_settings(settings, events)
    dispatcher = ActionDispatcher(
        SqlActionStore(sessions, settings.ACTION_REPLAY_TOLERANCE_SECONDS),
        notifier=notifier,
        events=events,
        store_timeout=settings.STORE_TIMEOUT_SECONDS,
        notify_timeout=settings.NOTIFY_TIMEOUT_SECONDS,
    )
    evaluator = StrategyEvaluator(
        SqlAlertStore(sessions),
        SqlStrategyStore(sessions),
        dispatcher,
        snapshot_provider=lambda: snapshots.current,
        store_timeout=settings.STORE_TIMEOUT_SECONDS,
    )
    return EngineRuntime(
        settings=settings,
        snapshots=snapshots,
        evaluator=evaluator,
        runner=EvaluationRunner(evaluator),
        events=events,
        notifier=notifier,
    )


# ════════════════════════════════════════════════════════════════
# Module-level singleton
# ════════════════════════════════════════════════════════════════

_runtime: Optional[EngineRuntime] = None


def set_runtime(runtime: Optional[EngineRuntime]) -> None:
    global _runtime
    _runtime = runtime


def get_runtime() -> EngineRuntime:
    """
    PURPOSE: Return the runtime installed by the application lifespan.

    CALLED BY: Route handlers via Depends(get_runtime)

    Raises:
        RuntimeError: The application has not finished starting.
    """
    if _runtime is None:
        raise RuntimeError("engine runtime is not initialized")
    return _runtime
