"""
PURPOSE: API router initialization and exports for the alert engine.

The dashboard REST routers are aggregated under /api; the inbound webhook
router is mounted at the application root (/webhook).
"""

from fastapi import APIRouter

from alertengine.api.routes_actions import router as actions_router
from alertengine.api.routes_alerts import router as alerts_router
from alertengine.api.routes_notifications import router as notifications_router
from alertengine.api.routes_scores import router as scores_router
from alertengine.api.routes_strategies import router as strategies_router
from alertengine.api.routes_system import router as system_router
from alertengine.api.routes_ticker_indicators import router as ticker_indicators_router
from alertengine.api.routes_webhook import router as webhook_router
from alertengine.api.routes_weights import router as weights_router

# Create the main API router
api_router = APIRouter(prefix="/api", tags=["api"])

# Include all sub-routers
api_router.include_router(strategies_router, tags=["strategies"])
api_router.include_router(alerts_router, tags=["alerts"])
api_router.include_router(ticker_indicators_router, tags=["ticker-indicators"])
api_router.include_router(actions_router, tags=["actions"])
api_router.include_router(scores_router, tags=["scores"])
api_router.include_router(weights_router, tags=["available-alerts"])
api_router.include_router(system_router, tags=["system"])
api_router.include_router(notifications_router, tags=["notifications"])

__all__ = ["api_router", "webhook_router"]
