"""
PURPOSE: Evaluate a strategy's rule tree against the alerts in its window.

Groups are combined strictly in declaration order: the first group's value is
folded left-to-right with each following group using the strategy's single
inter-group operator. There is no operator precedence. A group with no leaves
is never satisfied, and neither is a strategy with no groups.

CALLED BY:
    - alertengine/engine/evaluator.py (per-strategy evaluation)
    - alertengine/services/score_service.py (dashboard score snapshot)
"""

from decimal import Decimal
from typing import Iterable, Optional, Sequence

from alertengine.config.constants import GroupOperator
from alertengine.engine.errors import StrategyConfigError
from alertengine.engine.records import Alert, Leaf, LeafMatch, MatchResult, RuleGroup, Strategy
from alertengine.engine.snapshot import ConfigSnapshot, pair_key


def _alert_key(alert: Alert, snapshot: ConfigSnapshot) -> tuple[str, str]:
    return pair_key(snapshot.canonical_indicator(alert.indicator), alert.trigger)


def _leaf_key(leaf: Leaf, snapshot: ConfigSnapshot) -> tuple[str, str]:
    return pair_key(snapshot.canonical_indicator(leaf.indicator), leaf.trigger)


def index_alerts(alerts: Iterable[Alert], snapshot: ConfigSnapshot) -> dict[tuple[str, str], Alert]:
    """
    PURPOSE: Keep the most recent alert per canonical (indicator, trigger) pair.

    Args:
        alerts: Alerts in the window, any order.
        snapshot: Alias table used to canonicalize indicator names.

    Returns:
        dict: pair key -> most recent alert for that pair.
    """
    latest: dict[tuple[str, str], Alert] = {}
    for alert in alerts:
        key = _alert_key(alert, snapshot)
        current = latest.get(key)
        if current is None or alert.timestamp > current.timestamp:
            latest[key] = alert
    return latest


def resolve_weight(leaf: Leaf, alert: Alert, snapshot: ConfigSnapshot) -> Decimal:
    """
    Weight a matched leaf contributes: the live configured weight, else the
    weight the alert carried at ingestion, else the leaf's authored weight.
    """
    live = snapshot.weight_for(alert.indicator, alert.trigger)
    if live is not None:
        return live
    if alert.weight is not None:
        return alert.weight
    return leaf.weight


def match_leaf(
    leaf: Leaf,
    latest: dict[tuple[str, str], Alert],
    snapshot: ConfigSnapshot,
) -> LeafMatch:
    alert: Optional[Alert] = latest.get(_leaf_key(leaf, snapshot))
    if alert is None:
        return LeafMatch(leaf=leaf)
    return LeafMatch(leaf=leaf, alert=alert, weight=resolve_weight(leaf, alert, snapshot))


def evaluate_group(group: RuleGroup, matches: Sequence[LeafMatch]) -> bool:
    """AND needs every leaf matched, OR needs one. Empty groups are never satisfied."""
    if not matches:
        return False
    if group.operator is GroupOperator.AND:
        return all(m.matched for m in matches)
    if group.operator is GroupOperator.OR:
        return any(m.matched for m in matches)
    raise StrategyConfigError(f"unknown group operator: {group.operator!r}")


def fold_groups(values: Sequence[bool], operator: GroupOperator) -> bool:
    """Combine group results left-to-right with one operator."""
    if not values:
        return False
    result = values[0]
    for value in values[1:]:
        if operator is GroupOperator.AND:
            result = result and value
        elif operator is GroupOperator.OR:
            result = result or value
        else:
            raise StrategyConfigError(f"unknown inter-group operator: {operator!r}")
    return result


def match_strategy(
    strategy: Strategy,
    alerts: Iterable[Alert],
    snapshot: ConfigSnapshot,
) -> MatchResult:
    """
    PURPOSE: Decide whether the strategy's rule tree is satisfied by the window.

    A leaf matches when an alert in the window has the same canonical
    (indicator, trigger) pair, compared case-insensitively; the most recent
    such alert is the one recorded. A pair repeated across groups is reported
    once in matched/missing.

    Args:
        strategy: Strategy definition.
        alerts: Alerts returned by the window reader for the strategy's ticker.
        snapshot: Alias/weight configuration for this evaluation.

    Returns:
        MatchResult: satisfied flag, matched leaves with weights, missing leaves.

    Raises:
        StrategyConfigError: Unknown operator in the rule tree.
    """
    latest = index_alerts(alerts, snapshot)

    group_values: list[bool] = []
    matched: dict[tuple[str, str], LeafMatch] = {}
    missing: dict[tuple[str, str], Leaf] = {}

    for group in strategy.rule_groups:
        matches = [match_leaf(leaf, latest, snapshot) for leaf in group.leaves]
        group_values.append(evaluate_group(group, matches))
        for m in matches:
            key = _leaf_key(m.leaf, snapshot)
            if m.matched:
                matched.setdefault(key, m)
            else:
                missing.setdefault(key, m.leaf)

    return MatchResult(
        satisfied=fold_groups(group_values, strategy.inter_group_operator),
        matched_leaves=tuple(matched.values()),
        missing_leaves=tuple(missing.values()),
    )
