"""
PURPOSE: Aggregate the weights of matched leaves into a strategy score.
"""

from decimal import Decimal
from typing import Iterable

from alertengine.engine.records import LeafMatch

SCORE_QUANTUM = Decimal("0.1")


def aggregate_score(matched_leaves: Iterable[LeafMatch]) -> Decimal:
    """
    PURPOSE: Sum the weights of matched leaves; unmatched leaves contribute zero.

    Weights are exact decimals, so [2.3, -1.8, 3.0] sums to exactly 3.5.

    Args:
        matched_leaves: LeafMatch records from match_strategy().

    Returns:
        Decimal: Signed total.
    """
    return sum((m.weight for m in matched_leaves if m.matched), Decimal("0"))


def display_score(score: Decimal) -> float:
    """Score rounded to one decimal place for storage and dashboards."""
    return float(score.quantize(SCORE_QUANTUM))
