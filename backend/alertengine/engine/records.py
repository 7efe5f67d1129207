"""
PURPOSE: Immutable domain records shared by the normalizer, matcher, scorer and dispatcher.

These are plain frozen dataclasses so the evaluation core stays independent of
the ORM. Services convert between these records and SQLAlchemy models.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from alertengine.config.constants import ActionType, EvaluationState, GroupOperator


@dataclass(frozen=True)
class SubIndicators:
    """Annotations embedded in extreme-zone webhooks. Absent values stay None."""

    rsi_value: Optional[float] = None
    rsi_status: Optional[str] = None
    adx_value: Optional[float] = None
    adx_strength: Optional[str] = None
    adx_direction: Optional[str] = None
    vwap_value: Optional[float] = None
    htf_status: Optional[str] = None
    volume_amount: Optional[str] = None
    volume_change: Optional[float] = None
    volume_level: Optional[str] = None

    def as_dict(self) -> dict[str, Any]:
        """Only the attributes that were present in the payload."""
        return {k: v for k, v in self.__dict__.items() if v is not None}

    def is_empty(self) -> bool:
        return not self.as_dict()


@dataclass(frozen=True)
class Alert:
    """One normalized indicator-trigger event for a ticker at a point in time."""

    ticker: str
    indicator: str
    trigger: str
    timestamp: datetime
    timeframe: str = ""
    # None when the pair had no configured weight at ingestion
    weight: Optional[Decimal] = None
    price: Optional[float] = None
    htf: Optional[str] = None
    is_test: bool = False
    sub_indicators: SubIndicators = field(default_factory=SubIndicators)
    raw_body: Optional[str] = None
    id: Optional[str] = None


@dataclass(frozen=True)
class Leaf:
    """One (indicator, trigger) requirement with the weight captured when it was authored."""

    indicator: str
    trigger: str
    weight: Decimal = Decimal("0")

    @property
    def name(self) -> str:
        return self.trigger


@dataclass(frozen=True)
class RuleGroup:
    operator: GroupOperator
    leaves: tuple[Leaf, ...]


@dataclass(frozen=True)
class Strategy:
    """A named rule tree: ordered groups folded left-to-right by one inter-group operator."""

    id: str
    name: str
    timeframe_minutes: int
    threshold: Decimal
    rule_groups: tuple[RuleGroup, ...]
    inter_group_operator: GroupOperator = GroupOperator.AND
    enabled: bool = True
    # Empty means every ticker
    tickers: tuple[str, ...] = ()

    def applies_to(self, ticker: str) -> bool:
        return not self.tickers or ticker.upper() in {t.upper() for t in self.tickers}

    def leaves(self) -> list[Leaf]:
        return [leaf for group in self.rule_groups for leaf in group.leaves]


@dataclass(frozen=True)
class LeafMatch:
    """Result of scanning the window for one leaf."""

    leaf: Leaf
    alert: Optional[Alert] = None
    weight: Decimal = Decimal("0")

    @property
    def matched(self) -> bool:
        return self.alert is not None


@dataclass(frozen=True)
class MatchResult:
    satisfied: bool
    matched_leaves: tuple[LeafMatch, ...]
    missing_leaves: tuple[Leaf, ...]

    @property
    def matched_names(self) -> list[str]:
        return [m.leaf.name for m in self.matched_leaves]

    @property
    def missing_names(self) -> list[str]:
        return [leaf.name for leaf in self.missing_leaves]

    def anchor_alert(self) -> Optional[Alert]:
        """The most recent contributing alert."""
        alerts = [m.alert for m in self.matched_leaves if m.alert is not None]
        return max(alerts, key=lambda a: a.timestamp) if alerts else None

    def anchor(self) -> Optional[datetime]:
        """Timestamp of the most recent contributing alert."""
        alert = self.anchor_alert()
        return alert.timestamp if alert is not None else None


@dataclass(frozen=True)
class Action:
    """A recorded BUY/SELL decision. Never mutated once persisted."""

    strategy_id: str
    strategy_name: str
    ticker: str
    action: ActionType
    score: Decimal
    timestamp: datetime
    anchor_at: datetime
    matched_alerts: tuple[str, ...]
    missing_alerts: tuple[str, ...] = ()
    is_test: bool = False
    # Identity of the newest contributing alert, see dispatcher.alert_fingerprint
    anchor_fingerprint: Optional[str] = None
    id: Optional[str] = None


@dataclass(frozen=True)
class DuplicateSuppressed:
    """Returned instead of an Action when an equivalent action was already recorded."""

    strategy_id: str
    ticker: str
    dedupe_key: str
    existing_action_id: Optional[str] = None


@dataclass(frozen=True)
class EvaluationOutcome:
    """What happened to one strategy during one evaluation pass."""

    strategy_id: str
    strategy_name: str
    ticker: str
    state: EvaluationState
    score: Optional[Decimal] = None
    action: Optional[Action] = None
    matched: tuple[str, ...] = ()
    missing: tuple[str, ...] = ()
    error: Optional[str] = None
