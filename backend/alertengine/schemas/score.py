"""
Schemas for the dashboard score snapshot.
"""

from typing import Optional

from pydantic import BaseModel


class StrategyScore(BaseModel):
    """
    Best-matching ticker for one strategy inside the score window.

    Attributes:
        strategy_id: Strategy identifier
        strategy_name: Strategy name
        ticker: Ticker with the most matched leaves, None if nothing matched
        score: Sum of matched weights, one decimal
        satisfied: Whether the rule tree is satisfied for that ticker
        matched: Matched leaf names
        missing: Missing leaf names
    """

    strategy_id: str
    strategy_name: str
    ticker: Optional[str] = None
    score: float = 0.0
    satisfied: bool = False
    matched: list[str] = []
    missing: list[str] = []


class ScoreSnapshot(BaseModel):
    time_window: int
    strategies: list[StrategyScore]
