"""
PURPOSE: Main FastAPI application factory and lifecycle management for the alert engine.

Initializes the FastAPI application with:
- The inbound webhook router and the /api dashboard routers
- Rate limiting and CORS middleware
- Exception handlers (parse errors 400, validation 422, everything else 500)
- Startup (logging, migrations, EventBus, weight seeding, engine runtime)
- Shutdown (drain pending evaluations and notifications, close Redis)
"""

import asyncio
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from alertengine.api import api_router, webhook_router
from alertengine.config.settings import settings
from alertengine.core.rate_limit import limiter
from alertengine.core.runtime import build_runtime, get_runtime, set_runtime
from alertengine.db.engine import AsyncSessionLocal
from alertengine.engine.errors import ParseError
from alertengine.events.bus import get_event_bus, set_event_bus
from alertengine.services.weight_service import WeightService
from alertengine.utils.logger import get_logger, setup_logging
from alertengine.version import get_version


logger = get_logger(__name__)

ALEMBIC_INI = Path(__file__).resolve().parent.parent / "alembic.ini"


# ════════════════════════════════════════════════════════════════
# Lifecycle Events
# ════════════════════════════════════════════════════════════════


async def _run_migrations() -> None:
    from alembic import command
    from alembic.config import Config

    alembic_cfg = Config(str(ALEMBIC_INI))
    # env.py drives its own event loop, so it runs off the server loop
    await asyncio.to_thread(command.upgrade, alembic_cfg, "head")


async def on_startup() -> None:
    """
    PURPOSE: Execute startup tasks.

    CALLED BY: FastAPI lifespan startup

    Tasks:
        1. Setup logging with configured level
        2. Apply Alembic migrations
        3. Connect the EventBus (Redis optional)
        4. Seed the default weight catalogue
        5. Build and start the engine runtime (loads the first config snapshot)
    """
    try:
        setup_logging(settings.LOG_LEVEL)
        logger.info(
            "application_startup_starting",
            version=get_version().get("version"),
            log_level=settings.LOG_LEVEL,
            webhook_protected=settings.webhook_protected(),
        )

        if not settings.webhook_protected():
            logger.warning(
                "webhook_secret_not_configured",
                message="Inbound webhooks are unauthenticated. Set WEBHOOK_SECRET before deploying.",
            )

        try:
            await _run_migrations()
            logger.info("alembic_upgrade_complete")
        except Exception as e:
            logger.warning("alembic_upgrade_skipped", error=str(e))

        event_bus = get_event_bus()
        await event_bus.connect()
        set_event_bus(event_bus)

        try:
            async with AsyncSessionLocal() as session:
                await WeightService.seed_defaults(session)
        except Exception as e:
            logger.warning("available_alert_seeding_skipped", error=str(e))

        runtime = build_runtime(settings, AsyncSessionLocal, event_bus)
        await runtime.start()
        set_runtime(runtime)

        logger.info("application_startup_complete")

    except Exception as e:
        logger.critical("application_startup_failed", error=str(e))
        raise


async def on_shutdown() -> None:
    """
    PURPOSE: Gracefully stop background work and close connections.

    CALLED BY: FastAPI lifespan shutdown
    """
    try:
        logger.info("application_shutdown_starting")

        try:
            runtime = get_runtime()
        except RuntimeError:
            runtime = None
        if runtime is not None:
            await runtime.stop()
            set_runtime(None)

        await get_event_bus().disconnect()

        logger.info("application_shutdown_complete")

    except Exception as e:
        logger.error("application_shutdown_error", error=str(e))
        raise


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    PURPOSE: Manage application lifespan with startup and shutdown events.

    Args:
        app: FastAPI application instance

    Yields:
        None
    """
    await on_startup()

    yield

    await on_shutdown()


# ════════════════════════════════════════════════════════════════
# Exception Handlers
# ════════════════════════════════════════════════════════════════


async def parse_error_handler(request: Request, exc: ParseError) -> JSONResponse:
    """
    PURPOSE: Reject an unparseable webhook with 400 and echo what was received.

    Nothing is persisted for a payload that fails to parse.
    """
    received = exc.raw_body
    if isinstance(received, bytes):
        received = received.decode("utf-8", errors="replace")

    logger.warning(
        "webhook_parse_failed",
        path=request.url.path,
        reason=exc.message,
    )

    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=jsonable_encoder(
            {
                "status": "error",
                "detail": exc.message,
                "received": received,
            },
            custom_encoder={Exception: lambda e: str(e)},
        ),
    )


async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError
) -> JSONResponse:
    """
    PURPOSE: Handle Pydantic validation errors with consistent JSON response.

    CALLED BY: FastAPI when request validation fails

    Args:
        request: HTTP request that failed validation
        exc: RequestValidationError with validation details

    Returns:
        JSONResponse: Formatted error response with validation details
    """
    logger.warning(
        "request_validation_failed",
        path=request.url.path,
        method=request.method,
        error_count=len(exc.errors())
    )

    safe_errors = jsonable_encoder(
        exc.errors(),
        custom_encoder={
            ValueError: lambda e: str(e),
            Exception: lambda e: str(e),
        },
    )

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "status": "error",
            "detail": "Request validation failed",
            "errors": safe_errors,
        },
    )


async def general_exception_handler(
    request: Request,
    exc: Exception
) -> JSONResponse:
    """
    PURPOSE: Handle unexpected exceptions with logging and safe error response.

    Args:
        request: HTTP request that raised exception
        exc: Exception that was raised

    Returns:
        JSONResponse: Safe error response without exposing internals
    """
    logger.error(
        "unhandled_exception",
        path=request.url.path,
        method=request.method,
        error=str(exc),
        exception_type=type(exc).__name__
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "status": "error",
            "detail": "Internal server error",
        },
    )


# ════════════════════════════════════════════════════════════════
# FastAPI Application Factory
# ════════════════════════════════════════════════════════════════


def create_app() -> FastAPI:
    """
    PURPOSE: Create and configure the FastAPI application.

    CALLED BY: Application entrypoint (uvicorn alertengine.main:app), tests

    Returns:
        FastAPI: Configured application ready to run
    """
    # Outside development an unprotected webhook is a configuration error
    settings.validate_credentials()

    try:
        version = get_version().get("version", "unknown")
    except Exception as e:
        logger.warning("version_data_unavailable", error=str(e))
        version = "unknown"

    app = FastAPI(
        title="Alert Engine",
        description="Webhook alert ingestion and rule-tree strategy evaluation",
        version=version,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )

    # ────────────────────────────────────────────────────────────
    # Middleware
    # ────────────────────────────────────────────────────────────

    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[
            "http://localhost:3000",
            "http://localhost:8000",
        ],
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=[
            "Content-Type",
            "X-Webhook-Secret",
            "X-Request-ID",
        ],
    )

    # ────────────────────────────────────────────────────────────
    # Routes
    # ────────────────────────────────────────────────────────────

    app.include_router(webhook_router)
    app.include_router(api_router)

    @app.get("/", tags=["root"])
    async def root():
        """Root endpoint for API availability check."""
        return {
            "status": "ok",
            "service": "Alert Engine",
            "version": version,
        }

    # ────────────────────────────────────────────────────────────
    # Exception Handlers
    # ────────────────────────────────────────────────────────────

    app.add_exception_handler(ParseError, parse_error_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    logger.info(
        "fastapi_application_created",
        version=version,
        api_prefix="/api",
    )

    return app


# Create the application
app = create_app()
