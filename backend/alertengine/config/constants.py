"""
PURPOSE: Enumerations and fixed tables shared by the alert engine.

Holds the action/operator/event vocabularies, the built-in indicator alias
table used by both ingestion and rule matching, and the default weight
catalogue seeded into the available_alerts table.
"""

from enum import Enum


class ActionType(str, Enum):
    """Direction of a recorded action."""

    BUY = "BUY"
    SELL = "SELL"


class GroupOperator(str, Enum):
    """Boolean operator joining leaves inside a group, or groups together."""

    AND = "AND"
    OR = "OR"


class EventType(str, Enum):
    """Event types published on the event bus."""

    ALERT_INGESTED = "ALERT_INGESTED"
    ACTION_RECORDED = "ACTION_RECORDED"
    ACTION_SUPPRESSED = "ACTION_SUPPRESSED"


class EvaluationState(str, Enum):
    """Per strategy x ticker outcome of one evaluation pass."""

    UNMATCHED = "UNMATCHED"
    ACTION_RECORDED = "ACTION_RECORDED"
    SUPPRESSED_DUPLICATE = "SUPPRESSED_DUPLICATE"
    FAILED = "FAILED"


EXTREME_ZONES = "Extreme Zones"
OSCILLATOR = "Oscillator"
SMC = "SMC"
WAVES = "Waves"

# Indicators whose webhooks carry free-form HTF text (possibly containing the
# field delimiter) and embedded sub-indicator annotations.
EXTREME_FAMILY = frozenset({EXTREME_ZONES})

# Keys are compared after alias_key() folding: lowercase, alphanumerics only.
DEFAULT_INDICATOR_ALIASES: dict[str, str] = {
    "extreme": EXTREME_ZONES,
    "extremezones": EXTREME_ZONES,
    "oscillator": OSCILLATOR,
    "nautilus": OSCILLATOR,
    "nautilusoscillator": OSCILLATOR,
    "nautiluscore": OSCILLATOR,
    "smc": SMC,
    "marketcore": SMC,
    "marketcorepro": SMC,
    "wave": WAVES,
    "waves": WAVES,
    "marketwaves": WAVES,
    "marketwavespro": WAVES,
}

# (indicator, trigger, weight)
DEFAULT_ALERT_WEIGHTS: tuple[tuple[str, str, float], ...] = (
    (OSCILLATOR, "Normal Bearish Divergence", -2.5),
    (OSCILLATOR, "Normal Bullish Divergence", 2.3),
    (OSCILLATOR, "Hidden Bearish Divergence", -2.8),
    (OSCILLATOR, "Hidden Bullish Divergence", 2.6),
    (OSCILLATOR, "Multiple Bullish Divergence", 3.2),
    (OSCILLATOR, "Multiple Bearish Divergence", -3.0),
    (OSCILLATOR, "Bullish DipX", 2.1),
    (OSCILLATOR, "Bearish DipX", -2.0),
    (OSCILLATOR, "Buy Signal", 2.4),
    (OSCILLATOR, "Sell Signal", -2.2),
    (OSCILLATOR, "Oscillator Oversold", 1.8),
    (OSCILLATOR, "Oscillator Overbought", -1.9),
    (OSCILLATOR, "Bullish Volume Cross", 1.5),
    (OSCILLATOR, "Bearish Volume Cross", -1.4),
    (OSCILLATOR, "Bullish Peak", 2.0),
    (OSCILLATOR, "Bearish Peak", -2.1),
    (SMC, "Bullish OB Break", 2.2),
    (SMC, "Bearish OB Break", -2.0),
    (SMC, "Touching Bearish OB", -1.5),
    (SMC, "Touching Bullish OB", 1.6),
    (SMC, "Bullish BoS", 2.1),
    (SMC, "Bearish BoS", -1.9),
    (SMC, "Bullish ChoCH", 1.8),
    (SMC, "Bearish ChoCH", -1.7),
    (SMC, "Bullish FVG Created", 1.4),
    (SMC, "Bearish FVG Created", -1.3),
    (SMC, "Bullish FVG Break", 2.0),
    (SMC, "Bearish FVG Break", -1.8),
    (SMC, "Bullish Liquidity Grab Created", 1.0),
    (SMC, "Bearish Liquidity Grab Created", -1.0),
    (SMC, "Resistance Level Break", 1.0),
    (SMC, "Support Level Break", -1.0),
    (WAVES, "Buy", 2.5),
    (WAVES, "Buy+", 3.0),
    (WAVES, "Any Buy", 2.2),
    (WAVES, "Sell", -2.3),
    (WAVES, "Sell+", -2.8),
    (WAVES, "Any Sell", -2.0),
    (WAVES, "Bullish FlowTrend", 2.2),
    (WAVES, "Bearish FlowTrend", -2.0),
    (WAVES, "FlowTrend Bullish Retest", 1.0),
    (WAVES, "FlowTrend Bearish Retest", -1.0),
    (WAVES, "Bullish TrendMagnet Signal", 1.0),
    (WAVES, "Bearish TrendMagnet Signal", -1.0),
    (EXTREME_ZONES, "Premium Zone", -1.8),
    (EXTREME_ZONES, "Discount Zone", 1.9),
    (EXTREME_ZONES, "Equilibrium Zone", 0.0),
)
