"""
PURPOSE: Send a synthetic action through the configured notification channels.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status

from alertengine.config.constants import ActionType
from alertengine.core.rate_limit import WRITE_LIMIT, limiter
from alertengine.core.runtime import EngineRuntime, get_runtime
from alertengine.notify.hub import sample_action
from alertengine.schemas import NotificationTestRequest, NotificationTestResult
from alertengine.utils.logger import get_logger


logger = get_logger(__name__)
router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.post("/test", response_model=NotificationTestResult)
@limiter.limit(WRITE_LIMIT)
async def test_notifications(
    request: Request,
    body: Optional[NotificationTestRequest] = None,
    runtime: EngineRuntime = Depends(get_runtime),
) -> NotificationTestResult:
    """
    PURPOSE: Check channel credentials by sending a test BUY or SELL message.

    The message carries the test tag and no action is recorded.

    CALLED BY: Dashboard notification settings, "Send Test" button

    Raises:
        HTTP 400: No channel is configured.
    """
    kind = ActionType(body.action) if body is not None else ActionType.BUY
    if not runtime.notifier.channel_names:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No notification channels configured",
        )

    results = await runtime.notifier.test_channels(sample_action(kind))
    logger.info("notification_test_sent", action=kind.value, results=results)
    return NotificationTestResult(
        success=all(outcome == "sent" for outcome in results.values()),
        results=results,
    )
