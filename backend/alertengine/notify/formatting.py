"""
PURPOSE: Render a recorded action as a chat message.

Three layouts are supported: "detailed" (multi-line card), "compact" (one line
with strategy and score) and "minimal" (action, ticker and score). Markup is
either HTML (Telegram) or Markdown (Discord).
"""

from typing import Literal

from alertengine.config.constants import ActionType
from alertengine.engine.records import Action
from alertengine.engine.scoring import display_score

MessageFormat = Literal["detailed", "compact", "minimal"]
Markup = Literal["html", "markdown"]

_RULE = "━━━━━━━━━━━━━━━"


def _bold(text: str, markup: Markup) -> str:
    return f"<b>{text}</b>" if markup == "html" else f"**{text}**"


def _signed(action: Action) -> str:
    value = display_score(action.score)
    return f"+{value}" if value > 0 else f"{value}"


def format_action_message(
    action: Action,
    message_format: str = "detailed",
    markup: Markup = "html",
) -> str:
    """
    PURPOSE: Build the notification text for one action.

    Args:
        action: The recorded action.
        message_format: detailed, compact or minimal; unknown values fall back to detailed.
        markup: html or markdown bold syntax.

    Returns:
        str: Message text ready to post.
    """
    emoji = "🟢" if action.action is ActionType.BUY else "🔴"
    test_tag = " (Test)" if action.is_test else ""

    if message_format == "minimal":
        return f"{emoji} {action.action.value} {action.ticker}{test_tag} ({_signed(action)})"

    if message_format == "compact":
        headline = _bold(f"{action.action.value} {action.ticker}{test_tag}", markup)
        return f"{emoji} {headline} | {action.strategy_name} | Score: {_signed(action)}"

    lines = [
        f"{emoji} {_bold(f'{action.action.value} SIGNAL{test_tag}', markup)}",
        _RULE,
        f"💎 {_bold('Ticker:', markup)} {action.ticker}",
        f"⏰ {_bold('Time:', markup)} {action.timestamp.strftime('%Y-%m-%d %H:%M:%S UTC')}",
        f"🧠 {_bold('Strategy:', markup)} {action.strategy_name}",
    ]
    if action.matched_alerts:
        lines.append(f"🎯 {_bold('Triggers:', markup)} {', '.join(action.matched_alerts)}")
    lines.append(f"🔥 {_bold('Score:', markup)} {_signed(action)}")
    lines.append(_RULE)
    return "\n".join(lines)
