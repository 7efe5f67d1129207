"""
PURPOSE: Inbound webhook routes for charting-platform alerts.

POST /webhook accepts the pipe-delimited text grammars (and JSON objects sent
as text); POST /webhook/json accepts a JSON object body. Both normalize the
payload, store the alert, acknowledge, and schedule strategy evaluation for
the ticker in the background.

Charting platforms cannot attach auth headers of their choosing, so the
endpoints are protected by a shared secret read from the X-Webhook-Secret
header, the `secret` query parameter, or (JSON only) a `secret` body field.

CALLED BY:
    - Charting-platform alert webhooks (POST, public)
"""

import hmac
import json
from typing import Any, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from alertengine.config.constants import EventType
from alertengine.config.settings import settings
from alertengine.core.rate_limit import WEBHOOK_LIMIT, limiter
from alertengine.core.runtime import EngineRuntime, get_runtime
from alertengine.db.engine import get_db
from alertengine.engine.errors import ParseError
from alertengine.engine.normalizer import normalize
from alertengine.engine.records import Alert
from alertengine.schemas.alert import WebhookAccepted
from alertengine.services.alert_service import AlertService
from alertengine.utils.logger import get_logger
from alertengine.utils.time_utils import get_utc_now

logger = get_logger(__name__)

router = APIRouter(prefix="/webhook", tags=["webhook"])


# ════════════════════════════════════════════════════════════════
# Internal Helpers
# ════════════════════════════════════════════════════════════════


def _validate_webhook_secret(*candidates: Optional[str]) -> None:
    """
    PURPOSE: Check that the request carries the configured shared secret.

    Nothing is checked when WEBHOOK_SECRET is empty (development).

    Args:
        candidates: Secret values in precedence order (header, query, body).

    Raises:
        HTTPException: 401 if none of the candidates matches.
    """
    if not settings.webhook_protected():
        return

    provided = next((c for c in candidates if c), None)
    if not provided or not hmac.compare_digest(provided, settings.WEBHOOK_SECRET):
        logger.warning(
            "webhook_auth_failed",
            has_header=bool(candidates and candidates[0]),
            has_other_secret=any(candidates[1:]),
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing webhook secret",
        )


async def _read_body(request: Request) -> bytes:
    body = await request.body()
    if len(body) > settings.MAX_PAYLOAD_BYTES:
        logger.warning("webhook_payload_too_large", size=len(body), limit=settings.MAX_PAYLOAD_BYTES)
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"Payload exceeds {settings.MAX_PAYLOAD_BYTES} bytes",
        )
    return body


def _raise_webhook_route_error(action: str, error: Exception) -> None:
    """
    PURPOSE: Raise a consistent HTTP 500 response for webhook route failures.

    Args:
        action: Human-readable description of the failed operation.
        error:  The caught exception.

    Raises:
        HTTPException: Always raises HTTP 500.
    """
    logger.error(
        "webhook_route_failed",
        action=action,
        error=str(error),
        exception_type=type(error).__name__,
    )
    raise HTTPException(
        status_code=500,
        detail=f"Failed to {action}",
    )


async def _accept(
    raw: Any,
    db: AsyncSession,
    runtime: EngineRuntime,
) -> WebhookAccepted:
    """
    PURPOSE: Normalize, store, publish and schedule evaluation for one payload.

    Raises:
        ParseError: Payload cannot be normalized (mapped to HTTP 400).
        HTTPException: 500 if the alert cannot be stored.
    """
    alert: Alert = normalize(
        raw,
        runtime.snapshot,
        received_at=get_utc_now(),
        max_ticker_length=settings.MAX_TICKER_LENGTH,
    )

    try:
        stored = await AlertService.insert(db, alert)
    except Exception as e:
        _raise_webhook_route_error("store alert", e)

    response = AlertService.to_response(stored)
    await runtime.events.publish(
        event_type=EventType.ALERT_INGESTED.value,
        data=response.model_dump(mode="json"),
        source="webhook",
    )
    runtime.runner.schedule(stored.ticker, stored)

    return WebhookAccepted(alert=response)


# ════════════════════════════════════════════════════════════════
# Public Inbound Endpoints
# ════════════════════════════════════════════════════════════════


@router.post("", response_model=WebhookAccepted)
@limiter.limit(WEBHOOK_LIMIT)
async def text_webhook(
    request: Request,
    secret: Optional[str] = Query(None),
    x_webhook_secret: Optional[str] = Header(None, alias="X-Webhook-Secret"),
    db: AsyncSession = Depends(get_db),
    runtime: EngineRuntime = Depends(get_runtime),
) -> WebhookAccepted:
    """
    PURPOSE: Receive a text alert webhook.

    Accepted grammars (fields separated by "|", trailing "TEST" marks a test alert):
        TICKER|TIMEFRAME|INDICATOR|TRIGGER[|HTF][|TIME]
        TICKER|PRICE|TIMEFRAME|INDICATOR|TRIGGER[|HTF][|TIME]

    Returns:
        WebhookAccepted: {"success": true, "alert": {...}, "evaluation": "scheduled"}

    Raises:
        HTTP 400: Unparseable payload.
        HTTP 401: Invalid or missing webhook secret.
        HTTP 413: Payload too large.
        HTTP 429: Rate limit exceeded.
        HTTP 500: Alert could not be stored.
    """
    _validate_webhook_secret(x_webhook_secret, secret)
    body = await _read_body(request)

    logger.info("webhook_alert_received", kind="text", size=len(body))
    return await _accept(body, db, runtime)


@router.post("/json", response_model=WebhookAccepted)
@limiter.limit(WEBHOOK_LIMIT)
async def json_webhook(
    request: Request,
    secret: Optional[str] = Query(None),
    x_webhook_secret: Optional[str] = Header(None, alias="X-Webhook-Secret"),
    db: AsyncSession = Depends(get_db),
    runtime: EngineRuntime = Depends(get_runtime),
) -> WebhookAccepted:
    """
    PURPOSE: Receive a JSON alert webhook.

    Body: {"ticker", "indicator", "trigger", optional "timeframe", "price",
    "htf", "time", "test", "secret"}.

    Raises:
        HTTP 400: Invalid JSON or missing/invalid fields.
        HTTP 401: Invalid or missing webhook secret.
        HTTP 413: Payload too large.
        HTTP 500: Alert could not be stored.
    """
    body = await _read_body(request)
    text = body.decode("utf-8", errors="replace")
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as e:
        raise ParseError(f"invalid JSON: {e.msg}", text) from e
    if not isinstance(payload, dict):
        raise ParseError("JSON payload must be an object", text)

    body_secret = payload.pop("secret", None)
    _validate_webhook_secret(x_webhook_secret, secret, body_secret if isinstance(body_secret, str) else None)

    logger.info("webhook_alert_received", kind="json", size=len(body))
    return await _accept(payload, db, runtime)
