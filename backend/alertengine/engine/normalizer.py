"""
PURPOSE: Normalize raw webhook payloads into canonical Alert records.

Accepted text grammars (fields separated by "|", whitespace around fields ignored):

    TICKER|TIMEFRAME|INDICATOR|TRIGGER
    TICKER|TIMEFRAME|INDICATOR|TRIGGER|TIME
    TICKER|TIMEFRAME|INDICATOR|TRIGGER|HTF|TIME
    TICKER|PRICE|TIMEFRAME|INDICATOR|TRIGGER[...]
    ...any of the above with a trailing literal "TEST"

JSON payloads carry the same fields: {ticker, indicator, trigger, time?, htf?,
timeframe?, price?}.

Normalization is a pure function of (payload, snapshot, received_at). The
caller persists the result; on ParseError nothing may be persisted.

CALLED BY:
    - alertengine/api/routes_webhook.py
"""

import json
import re
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Optional

from alertengine.config.constants import EXTREME_FAMILY
from alertengine.engine.errors import ParseError
from alertengine.engine.records import Alert, SubIndicators
from alertengine.engine.snapshot import ConfigSnapshot
from alertengine.utils.time_utils import as_utc, parse_timestamp
from alertengine.utils.validators import validate_ticker

DELIMITER = "|"
TEST_FLAG = "TEST"

_PRICE_PATTERN = re.compile(r"^\$?[0-9.]+$")
_TIMEFRAME_PATTERN = re.compile(r"^\d*[smhdwSHDWM]?$")

# Sub-indicator grammar. Each field is extracted independently.
_RSI = re.compile(r"RSI:\s*([\d.-]+)\s*\(([^)]+)\)", re.IGNORECASE)
_ADX = re.compile(r"ADX:\s*([\d.-]+)\s*\(([^)]+)\)", re.IGNORECASE)
_ADX_STATUS = re.compile(r"(Weak|Moderate|Strong)\s*(Bullish|Bearish|Neutral)?", re.IGNORECASE)
_VWAP = re.compile(r"VWAP:\s*([\d.-]+)%?", re.IGNORECASE)
_HTF_STATUS = re.compile(r"HTF:\s*([^|]+?)(?:\s*\||$)", re.IGNORECASE)
_VOLUME = re.compile(r"Vol:\s*([^|]+?)(?:\s*\||$)", re.IGNORECASE)
_VOLUME_AMOUNT = re.compile(r"([\d.]+[KMB]?)", re.IGNORECASE)
_VOLUME_CHANGE = re.compile(r"\(([+-]?\d+(?:\.\d+)?)%\)")
_VOLUME_LEVEL = re.compile(r"\b(HIGH|LOW|NORMAL)\b", re.IGNORECASE)


def _to_float(raw: str) -> Optional[float]:
    try:
        return float(raw)
    except ValueError:
        return None


def extract_sub_indicators(text: str) -> SubIndicators:
    """
    PURPOSE: Pull momentum, trend-strength, VWAP, HTF and volume annotations out of free text.

    Example input:
        "Discount Zone | VWAP: 0.75% | RSI: 68.5 (OB) | ADX: 32.1 (Strong Bullish)
         | HTF: Reversal Bullish | Vol: 12.49K (+149%) HIGH"

    Args:
        text: Trigger and HTF text joined by " | ".

    Returns:
        SubIndicators: Only the attributes that were found are set.
    """
    values: dict[str, Any] = {}

    rsi = _RSI.search(text)
    if rsi:
        values["rsi_value"] = _to_float(rsi.group(1))
        values["rsi_status"] = rsi.group(2).strip()

    adx = _ADX.search(text)
    if adx:
        values["adx_value"] = _to_float(adx.group(1))
        status = adx.group(2).strip()
        strength = _ADX_STATUS.search(status)
        if strength:
            values["adx_strength"] = strength.group(1).capitalize()
            values["adx_direction"] = (strength.group(2) or "Neutral").capitalize()
        else:
            values["adx_strength"] = status
            values["adx_direction"] = "Neutral"

    vwap = _VWAP.search(text)
    if vwap:
        values["vwap_value"] = _to_float(vwap.group(1))

    htf = _HTF_STATUS.search(text)
    if htf:
        values["htf_status"] = htf.group(1).strip()

    volume = _VOLUME.search(text)
    if volume:
        info = volume.group(1).strip()
        amount = _VOLUME_AMOUNT.search(info)
        if amount:
            values["volume_amount"] = amount.group(1).upper()
        change = _VOLUME_CHANGE.search(info)
        if change:
            values["volume_change"] = _to_float(change.group(1))
        level = _VOLUME_LEVEL.search(info)
        if level:
            values["volume_level"] = level.group(1).upper()

    return SubIndicators(**values)


def _looks_like_price(field: str) -> bool:
    cleaned = field.replace(",", "")
    return bool(cleaned) and bool(_PRICE_PATTERN.match(cleaned)) and any(c.isdigit() for c in cleaned)


def _looks_like_timeframe(field: str) -> bool:
    return bool(field) and bool(_TIMEFRAME_PATTERN.match(field))


def _parse_price(field: str, raw_body: str) -> float:
    try:
        return float(field.replace("$", "").replace(",", ""))
    except ValueError as e:
        raise ParseError(f"invalid price field: {field!r}", raw_body) from e


def _parse_time(raw: Any, raw_body: Any) -> datetime:
    if isinstance(raw, bool):
        raise ParseError(f"invalid time field: {raw!r}", raw_body)
    if isinstance(raw, (int, float)):
        seconds = raw / 1000 if raw > 1e12 else raw
        try:
            return datetime.fromtimestamp(seconds, tz=timezone.utc)
        except (ValueError, OverflowError, OSError) as e:
            raise ParseError(f"invalid time field: {raw!r}", raw_body) from e
    if not isinstance(raw, str):
        raise ParseError(f"invalid time field: {raw!r}", raw_body)
    try:
        return parse_timestamp(raw)
    except (ValueError, OverflowError, OSError) as e:
        raise ParseError(f"invalid time field: {raw!r}", raw_body) from e


def _is_test_flag(value: Any) -> bool:
    """Only JSON true or the string "true" (any case) mark a JSON alert as a test."""
    if isinstance(value, bool):
        return value
    return isinstance(value, str) and value.strip().lower() == "true"


def _finish(
    *,
    ticker: Any,
    timeframe: str,
    indicator: str,
    trigger: str,
    snapshot: ConfigSnapshot,
    received_at: datetime,
    raw_body: str,
    max_ticker_length: int,
    price: Optional[float] = None,
    htf: Optional[str] = None,
    time_field: Any = None,
    is_test: bool = False,
) -> Alert:
    if not validate_ticker(ticker, max_ticker_length):
        raise ParseError("invalid ticker", raw_body)
    if not indicator or not trigger:
        raise ParseError("missing required fields: indicator, trigger", raw_body)

    canonical = snapshot.canonical_indicator(indicator)
    timestamp = _parse_time(time_field, raw_body) if time_field not in (None, "") else as_utc(received_at)
    weight = snapshot.weight_for(canonical, trigger)

    search_text = trigger if not htf else f"{trigger} {DELIMITER} {htf}"

    return Alert(
        ticker=ticker.strip().upper(),
        indicator=canonical,
        trigger=trigger,
        timestamp=timestamp,
        timeframe=timeframe,
        weight=weight,
        price=price,
        htf=htf or None,
        is_test=is_test,
        sub_indicators=extract_sub_indicators(search_text),
        raw_body=raw_body,
    )


def parse_text_payload(
    body: str,
    snapshot: ConfigSnapshot,
    received_at: datetime,
    max_ticker_length: int = 20,
) -> Alert:
    """
    PURPOSE: Parse a delimited text webhook into an Alert.

    Extra fields after the core ones are positional and resolved in order:
        1. a trailing literal TEST sets is_test and is dropped
        2. extreme-zone indicators: everything left is rejoined verbatim as HTF
        3. one field left: explicit time
        4. two fields left: HTF then time
        5. more than two left: rejoined as HTF

    Args:
        body: Raw request body text.
        snapshot: Alias/weight configuration in effect.
        received_at: Receipt time, used when the payload has no time field.
        max_ticker_length: Upper bound on ticker length.

    Returns:
        Alert: Canonical alert, not yet persisted.

    Raises:
        ParseError: Malformed payload; raw body attached.
    """
    text = body.strip()
    raw_parts = text.split(DELIMITER)
    parts = [part.strip() for part in raw_parts]
    if len(parts) < 4:
        raise ParseError(
            "expected TICKER|TIMEFRAME|INDICATOR|TRIGGER or TICKER|PRICE|TIMEFRAME|INDICATOR|TRIGGER",
            body,
        )

    price: Optional[float] = None
    if len(parts) >= 5 and _looks_like_price(parts[1]) and _looks_like_timeframe(parts[2]):
        price = _parse_price(parts[1], body)
        ticker, timeframe, indicator, trigger = parts[0], parts[2], parts[3], parts[4]
        offset = 5
    else:
        ticker, timeframe, indicator, trigger = parts[0], parts[1], parts[2], parts[3]
        offset = 4
    rest, raw_rest = parts[offset:], raw_parts[offset:]

    if not timeframe:
        raise ParseError("missing required field: timeframe", body)

    is_test = False
    if rest and rest[-1] == TEST_FLAG:
        is_test = True
        rest, raw_rest = rest[:-1], raw_rest[:-1]

    htf: Optional[str] = None
    time_field: Optional[str] = None
    if rest:
        if snapshot.canonical_indicator(indicator) in EXTREME_FAMILY:
            htf = DELIMITER.join(raw_rest).strip()
        elif len(rest) == 1:
            time_field = rest[0]
        elif len(rest) == 2:
            htf, time_field = rest[0], rest[1]
        else:
            htf = DELIMITER.join(raw_rest).strip()

    return _finish(
        ticker=ticker,
        timeframe=timeframe,
        indicator=indicator,
        trigger=trigger,
        snapshot=snapshot,
        received_at=received_at,
        raw_body=body,
        max_ticker_length=max_ticker_length,
        price=price,
        htf=htf,
        time_field=time_field,
        is_test=is_test,
    )


def parse_json_payload(
    payload: Any,
    snapshot: ConfigSnapshot,
    received_at: datetime,
    max_ticker_length: int = 20,
) -> Alert:
    """
    PURPOSE: Parse a decoded JSON webhook object into an Alert.

    Required: ticker, indicator, trigger. Optional: time, htf, timeframe,
    price, test.

    Raises:
        ParseError: Missing or mistyped fields; raw payload attached.
    """
    raw_body = json.dumps(payload, default=str) if not isinstance(payload, str) else payload
    if not isinstance(payload, dict):
        raise ParseError("JSON payload must be an object", raw_body)

    missing = [name for name in ("ticker", "indicator", "trigger") if not payload.get(name)]
    if missing:
        raise ParseError(f"missing required fields: {', '.join(missing)}", raw_body)

    indicator, trigger = payload["indicator"], payload["trigger"]
    if not isinstance(indicator, str) or not isinstance(trigger, str):
        raise ParseError("indicator and trigger must be strings", raw_body)

    price = payload.get("price")
    if price is not None:
        if isinstance(price, str):
            price = _parse_price(price, raw_body)
        elif isinstance(price, (int, float)) and not isinstance(price, bool):
            price = float(price)
        else:
            raise ParseError(f"invalid price field: {price!r}", raw_body)

    htf = payload.get("htf")
    if htf is not None and not isinstance(htf, str):
        raise ParseError("htf must be a string", raw_body)

    return _finish(
        ticker=payload["ticker"],
        timeframe=str(payload.get("timeframe") or ""),
        indicator=indicator.strip(),
        trigger=trigger.strip(),
        snapshot=snapshot,
        received_at=received_at,
        raw_body=raw_body,
        max_ticker_length=max_ticker_length,
        price=price,
        htf=htf.strip() if htf else None,
        time_field=payload.get("time"),
        is_test=_is_test_flag(payload.get("test")),
    )


def normalize(
    raw: Any,
    snapshot: ConfigSnapshot,
    received_at: datetime,
    max_ticker_length: int = 20,
) -> Alert:
    """
    PURPOSE: Normalize either payload kind. Strings that look like a JSON object are decoded first.

    Raises:
        ParseError: Malformed payload of either kind.
    """
    if isinstance(raw, bytes):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ParseError("payload is not valid UTF-8", repr(raw[:200])) from e

    if isinstance(raw, str):
        stripped = raw.strip()
        if not stripped:
            raise ParseError("empty payload", raw)
        if stripped.startswith("{"):
            try:
                decoded = json.loads(stripped)
            except json.JSONDecodeError as e:
                raise ParseError(f"invalid JSON: {e.msg}", raw) from e
            alert = parse_json_payload(decoded, snapshot, received_at, max_ticker_length)
            return replace(alert, raw_body=raw)
        return parse_text_payload(raw, snapshot, received_at, max_ticker_length)

    return parse_json_payload(raw, snapshot, received_at, max_ticker_length)
