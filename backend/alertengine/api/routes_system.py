"""
PURPOSE: System routes: health check and configuration snapshot reload.
"""

import time

from fastapi import APIRouter, Depends, Request
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from alertengine.core.rate_limit import READ_LIMIT, WRITE_LIMIT, limiter
from alertengine.core.runtime import EngineRuntime, get_runtime
from alertengine.db.engine import get_db
from alertengine.schemas import ConfigReloadResult, HealthCheck
from alertengine.utils.logger import get_logger
from alertengine.version import get_version


logger = get_logger(__name__)
router = APIRouter(tags=["system"])

_startup_time = time.time()


# ════════════════════════════════════════════════════════════════
# Health Check (Public)
# ════════════════════════════════════════════════════════════════


@router.get("/health", response_model=HealthCheck, tags=["health"])
@limiter.limit(READ_LIMIT)
async def health_check(
    request: Request,
    db: AsyncSession = Depends(get_db),
    runtime: EngineRuntime = Depends(get_runtime),
) -> HealthCheck:
    """Service statuses: database, Redis event bus, notification channels, evaluation backlog."""
    services: dict[str, str] = {}
    overall_status = "healthy"

    try:
        await db.execute(select(1))
        services["database"] = "connected"
    except Exception as e:
        logger.warning("health_database_unreachable", error=str(e))
        services["database"] = "disconnected"
        overall_status = "degraded"

    services["redis"] = "connected" if runtime.events.connected else "disabled"
    services["notifications"] = ",".join(runtime.notifier.channel_names) or "none"
    services["pending_evaluations"] = str(runtime.runner.pending)
    services["config_snapshot"] = f"v{runtime.snapshot.version}"

    return HealthCheck(
        status=overall_status,
        services=services,
        version=get_version().get("version", "unknown"),
        uptime_seconds=round(time.time() - _startup_time, 1),
    )


# ════════════════════════════════════════════════════════════════
# Configuration Snapshot
# ════════════════════════════════════════════════════════════════


@router.post("/config/reload", response_model=ConfigReloadResult)
@limiter.limit(WRITE_LIMIT)
async def reload_config(
    request: Request,
    runtime: EngineRuntime = Depends(get_runtime),
) -> ConfigReloadResult:
    """
    PURPOSE: Rebuild the alias/weight snapshot now instead of waiting for the next refresh.

    A failed reload keeps the snapshot that was in effect.
    """
    snapshot = await runtime.snapshots.refresh()
    return ConfigReloadResult(
        version=snapshot.version,
        weights=len(snapshot.weights),
        aliases=len(snapshot.aliases),
    )
