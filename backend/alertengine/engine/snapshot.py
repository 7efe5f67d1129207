"""
PURPOSE: Immutable alias/weight configuration snapshot and its out-of-band loader.

The same snapshot instance is handed to the normalizer at ingestion and to the
matcher/scorer at evaluation, so an indicator alias can never resolve one way
on the way in and another way during matching.
"""

import asyncio
import re
from dataclasses import dataclass, field
from decimal import Decimal
from types import MappingProxyType
from typing import Awaitable, Callable, Iterable, Mapping, Optional

from alertengine.config.constants import DEFAULT_INDICATOR_ALIASES
from alertengine.utils.logger import get_logger

logger = get_logger(__name__)

_NON_ALNUM = re.compile(r"[^0-9a-z]+")


def alias_key(name: str) -> str:
    """Fold an indicator name for alias lookup: lowercase, alphanumerics only."""
    return _NON_ALNUM.sub("", name.lower())


def pair_key(indicator: str, trigger: str) -> tuple[str, str]:
    """Case-insensitive key for an (indicator, trigger) pair."""
    return (indicator.strip().casefold(), trigger.strip().casefold())


@dataclass(frozen=True)
class ConfigSnapshot:
    """
    Read-only view of indicator aliases and per (indicator, trigger) weights.

    Attributes:
        aliases: alias_key(name) -> canonical indicator name.
        weights: pair_key(indicator, trigger) -> weight, keyed by canonical indicator.
        version: Monotonic counter, bumped by each successful refresh.
    """

    aliases: Mapping[str, str] = field(default_factory=lambda: MappingProxyType(dict(DEFAULT_INDICATOR_ALIASES)))
    weights: Mapping[tuple[str, str], Decimal] = field(default_factory=lambda: MappingProxyType({}))
    version: int = 0

    @classmethod
    def build(
        cls,
        weights: Iterable[tuple[str, str, float]] = (),
        extra_aliases: Optional[Mapping[str, str]] = None,
        version: int = 0,
    ) -> "ConfigSnapshot":
        """
        PURPOSE: Assemble a snapshot from raw weight rows and alias overrides.

        Weight rows are re-keyed by canonical indicator, so a row stored under
        a historical display name still applies to canonical alerts.
        """
        alias_table = dict(DEFAULT_INDICATOR_ALIASES)
        for name, canonical in (extra_aliases or {}).items():
            alias_table[alias_key(name)] = canonical

        snapshot_aliases = MappingProxyType(alias_table)
        resolver = cls(aliases=snapshot_aliases)

        weight_table: dict[tuple[str, str], Decimal] = {}
        for indicator, trigger, weight in weights:
            canonical = resolver.canonical_indicator(indicator)
            weight_table[pair_key(canonical, trigger)] = Decimal(str(weight))

        return cls(aliases=snapshot_aliases, weights=MappingProxyType(weight_table), version=version)

    def canonical_indicator(self, name: str) -> str:
        """Resolve an indicator through the alias table; unknown names pass through trimmed."""
        stripped = name.strip()
        return self.aliases.get(alias_key(stripped), stripped)

    def weight_for(self, indicator: str, trigger: str) -> Optional[Decimal]:
        """Live weight for a pair, or None when the pair is not configured."""
        return self.weights.get(pair_key(self.canonical_indicator(indicator), trigger))


WeightSource = Callable[[], Awaitable[list[tuple[str, str, float]]]]


class ConfigSnapshotLoader:
    """
    PURPOSE: Hold the current ConfigSnapshot and refresh it out-of-band.

    A failed refresh keeps serving the previous snapshot. Readers grab
    `current` once per evaluation and never see a half-built table.

    CALLED BY: Application lifespan (start/stop), webhook ingestion and the
    strategy evaluator (current), POST /api/config/reload (refresh).
    """

    def __init__(
        self,
        weight_source: WeightSource,
        extra_aliases: Optional[Mapping[str, str]] = None,
        refresh_seconds: float = 60.0,
    ) -> None:
        self._weight_source = weight_source
        self._extra_aliases = dict(extra_aliases or {})
        self._refresh_seconds = refresh_seconds
        self._current = ConfigSnapshot.build(extra_aliases=self._extra_aliases)
        self._task: Optional[asyncio.Task] = None

    @property
    def current(self) -> ConfigSnapshot:
        return self._current

    async def refresh(self) -> ConfigSnapshot:
        """
        PURPOSE: Rebuild the snapshot from the weight source.

        Returns:
            ConfigSnapshot: The snapshot now in effect (the old one if loading failed).
        """
        try:
            rows = await self._weight_source()
        except Exception as e:
            logger.warning(
                "config_snapshot_refresh_failed",
                error=str(e),
                exception_type=type(e).__name__,
                version=self._current.version,
            )
            return self._current

        self._current = ConfigSnapshot.build(
            weights=rows,
            extra_aliases=self._extra_aliases,
            version=self._current.version + 1,
        )
        logger.info(
            "config_snapshot_refreshed",
            version=self._current.version,
            weights=len(self._current.weights),
            aliases=len(self._current.aliases),
        )
        return self._current

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._refresh_seconds)
            await self.refresh()

    def start(self) -> None:
        """Start the periodic refresh task (idempotent)."""
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
