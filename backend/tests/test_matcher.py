"""
PURPOSE: Tests for rule-tree matching.

Tests:
- AND / OR group truth tables
- Left-to-right folding of groups with no precedence
- Empty groups and strategies without groups
- Case-insensitive, alias-aware leaf matching
- Most recent alert wins per pair
- Weight precedence: live snapshot, ingest weight, authored weight
"""

from decimal import Decimal

import pytest

from alertengine.config.constants import GroupOperator
from alertengine.engine.matcher import evaluate_group, fold_groups, match_strategy, resolve_weight
from alertengine.engine.records import Leaf, LeafMatch, RuleGroup
from alertengine.engine.snapshot import ConfigSnapshot

from conftest import make_alert, make_strategy

AND, OR = GroupOperator.AND, GroupOperator.OR


def _matches(*flags: bool) -> list[LeafMatch]:
    leaf = Leaf("Oscillator", "Buy Signal")
    hit = make_alert("Oscillator", "Buy Signal")
    return [LeafMatch(leaf=leaf, alert=hit if flag else None) for flag in flags]


class TestEvaluateGroup:
    """Test single-group truth tables."""

    @pytest.mark.parametrize(
        "flags,expected",
        [((True, True), True), ((True, False), False), ((False, False), False)],
    )
    def test_and(self, flags, expected):
        """AND needs every leaf."""
        assert evaluate_group(RuleGroup(AND, ()), _matches(*flags)) is expected

    @pytest.mark.parametrize(
        "flags,expected",
        [((True, True), True), ((True, False), True), ((False, False), False)],
    )
    def test_or(self, flags, expected):
        """OR needs one leaf."""
        assert evaluate_group(RuleGroup(OR, ()), _matches(*flags)) is expected

    def test_empty_group_unsatisfied(self):
        """An empty group is never satisfied, whatever its operator."""
        assert evaluate_group(RuleGroup(AND, ()), []) is False
        assert evaluate_group(RuleGroup(OR, ()), []) is False


class TestFoldGroups:
    """Test left-to-right folding."""

    def test_no_groups(self):
        """No groups means not satisfied."""
        assert fold_groups([], AND) is False
        assert fold_groups([], OR) is False

    def test_single_group(self):
        """A single group is its own value."""
        assert fold_groups([True], AND) is True
        assert fold_groups([False], OR) is False

    def test_no_precedence(self):
        """Values combine strictly left to right."""
        assert fold_groups([False, True, True], OR) is True
        assert fold_groups([True, True, False], AND) is False
        assert fold_groups([True, False, True], AND) is False


class TestMatchStrategy:
    """Test full rule-tree evaluation against a window."""

    def test_and_of_two_groups(self, snapshot):
        """Both groups satisfied."""
        strategy = make_strategy(
            ("AND", [("Oscillator", "Buy Signal")]),
            ("OR", [("SMC", "Bullish BoS"), ("SMC", "Bullish ChoCH")]),
        )
        alerts = [make_alert("Oscillator", "Buy Signal"), make_alert("SMC", "Bullish ChoCH", minutes=1)]
        result = match_strategy(strategy, alerts, snapshot)
        assert result.satisfied is True
        assert set(result.matched_names) == {"Buy Signal", "Bullish ChoCH"}
        assert result.missing_names == ["Bullish BoS"]

    def test_and_with_missing_leaf(self, snapshot):
        """One missing AND leaf fails the group."""
        strategy = make_strategy(("AND", [("Oscillator", "Buy Signal"), ("Waves", "Buy")]))
        result = match_strategy(strategy, [make_alert("Oscillator", "Buy Signal")], snapshot)
        assert result.satisfied is False
        assert result.missing_names == ["Buy"]

    def test_or_between_groups(self, snapshot):
        """Inter-group OR needs only one group."""
        strategy = make_strategy(
            ("AND", [("Oscillator", "Buy Signal"), ("Waves", "Buy")]),
            ("AND", [("SMC", "Bullish BoS")]),
            inter=OR,
        )
        result = match_strategy(strategy, [make_alert("SMC", "Bullish BoS")], snapshot)
        assert result.satisfied is True

    def test_empty_group_blocks_and(self, snapshot):
        """An empty group in an AND chain fails the strategy."""
        strategy = make_strategy(("AND", [("Oscillator", "Buy Signal")]), ("AND", []))
        result = match_strategy(strategy, [make_alert("Oscillator", "Buy Signal")], snapshot)
        assert result.satisfied is False

    def test_no_groups(self, snapshot):
        """A strategy with no groups is never satisfied."""
        strategy = make_strategy()
        assert match_strategy(strategy, [make_alert("Oscillator", "Buy Signal")], snapshot).satisfied is False

    def test_case_insensitive(self, snapshot):
        """Indicator and trigger compare case-insensitively."""
        strategy = make_strategy(("AND", [("oscillator", "BUY SIGNAL")]))
        result = match_strategy(strategy, [make_alert("Oscillator", "Buy Signal")], snapshot)
        assert result.satisfied is True

    def test_alias_on_leaf(self, snapshot):
        """A leaf authored with an alias matches the canonical alert."""
        strategy = make_strategy(("AND", [("Market Core Pro", "Bullish BoS")]))
        result = match_strategy(strategy, [make_alert("SMC", "Bullish BoS")], snapshot)
        assert result.satisfied is True

    def test_other_indicator_same_trigger(self, snapshot):
        """Same trigger text under another indicator does not match."""
        strategy = make_strategy(("AND", [("Waves", "Buy")]))
        result = match_strategy(strategy, [make_alert("Oscillator", "Buy")], snapshot)
        assert result.satisfied is False

    def test_most_recent_alert_recorded(self, snapshot):
        """With repeats in the window, the latest alert is the match."""
        strategy = make_strategy(("AND", [("Oscillator", "Buy Signal")]))
        alerts = [
            make_alert("Oscillator", "Buy Signal", minutes=-30),
            make_alert("Oscillator", "Buy Signal", minutes=-5),
            make_alert("Oscillator", "Buy Signal", minutes=-20),
        ]
        result = match_strategy(strategy, alerts, snapshot)
        assert result.anchor() == alerts[1].timestamp

    def test_repeated_leaf_reported_once(self, snapshot):
        """A pair used in two groups is listed once."""
        strategy = make_strategy(
            ("AND", [("Oscillator", "Buy Signal")]),
            ("OR", [("Oscillator", "Buy Signal"), ("Waves", "Buy")]),
        )
        result = match_strategy(strategy, [make_alert("Oscillator", "Buy Signal")], snapshot)
        assert result.matched_names == ["Buy Signal"]
        assert result.missing_names == ["Buy"]


class TestResolveWeight:
    """Test weight precedence for a matched leaf."""

    def test_live_weight_wins(self, snapshot):
        """Configured weight beats the ingest and authored weights."""
        leaf = Leaf("Oscillator", "Buy Signal", weight=Decimal("9"))
        alert = make_alert("Oscillator", "Buy Signal", weight="5")
        assert resolve_weight(leaf, alert, snapshot) == Decimal("2.4")

    def test_ingest_weight_next(self):
        """Without a live weight the alert's ingest weight is used."""
        empty = ConfigSnapshot.build()
        leaf = Leaf("Oscillator", "Buy Signal", weight=Decimal("9"))
        alert = make_alert("Oscillator", "Buy Signal", weight="5")
        assert resolve_weight(leaf, alert, empty) == Decimal("5")

    def test_authored_weight_last(self):
        """Unconfigured everywhere: the leaf's authored weight."""
        empty = ConfigSnapshot.build()
        leaf = Leaf("Oscillator", "Buy Signal", weight=Decimal("9"))
        assert resolve_weight(leaf, make_alert("Oscillator", "Buy Signal"), empty) == Decimal("9")
