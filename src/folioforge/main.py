"""Main application entry point.

Builds the security core, wires the FastAPI routers and starts the
maintenance scheduler alongside the API server.
"""

import argparse
from contextlib import asynccontextmanager

import structlog
import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from folioforge import __version__
from folioforge.api import auth_router, upload_router
from folioforge.auth.exceptions import RateLimitExceededError
from folioforge.config.settings import Settings, load_settings
from folioforge.context import SecurityCore, build_security_core
from folioforge.exceptions import IntegrityError
from folioforge.scheduler import create_maintenance_scheduler
from folioforge.storage.base import BlobStorage
from folioforge.utils.logger import configure_logging, get_logger

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager.

    Handles startup and shutdown of storage and the scheduler.
    """
    log = get_logger("lifespan")
    core: SecurityCore = app.state.core
    log.info("Starting FolioForge", environment=core.settings.environment)

    await core.storage.initialize()
    log.info("Storage initialized", db_path=str(core.settings.db_path))

    scheduler = None
    if core.settings.maintenance_enabled:
        scheduler = create_maintenance_scheduler(
            core,
            interval_minutes=core.settings.maintenance_interval_minutes,
        )
        scheduler.start()
        log.info("Scheduler started")
    app.state.scheduler = scheduler

    yield

    # Shutdown
    if scheduler is not None:
        scheduler.shutdown(wait=False)
    await core.storage.close()
    log.info("FolioForge stopped")


async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceededError) -> JSONResponse:
    return JSONResponse(
        status_code=429,
        content={
            "error": "Too many requests",
            "message": "Rate limit exceeded. Please try again later.",
            "retryAfter": exc.retry_after,
        },
        headers={**exc.headers, "Retry-After": str(exc.retry_after)},
    )


async def integrity_error_handler(request: Request, exc: IntegrityError) -> JSONResponse:
    logger.error("Unhandled integrity failure", path=request.url.path)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


def create_app(
    settings: Settings | None = None,
    blob_storage: BlobStorage | None = None,
) -> FastAPI:
    """Create FastAPI application.

    Args:
        settings: Settings to use; loaded from the environment when omitted.
        blob_storage: Optional blob storage override (tests use the in-memory one).

    Raises:
        ConfigurationError: If settings are missing or too weak.
    """
    settings = settings or load_settings()
    core = build_security_core(settings, blob_storage=blob_storage)

    app = FastAPI(
        title="FolioForge API",
        description="Accounts, sessions and encrypted résumé/photo uploads",
        version=__version__,
        lifespan=lifespan,
        debug=settings.debug,
    )
    app.state.core = core

    app.add_exception_handler(RateLimitExceededError, rate_limit_exceeded_handler)
    app.add_exception_handler(IntegrityError, integrity_error_handler)

    app.include_router(auth_router)
    app.include_router(upload_router)

    @app.get("/health", tags=["health"])
    async def health() -> dict:
        return {"status": "ok", "version": __version__}

    return app


def main():
    """Main entry point."""
    settings = load_settings()

    parser = argparse.ArgumentParser(description="FolioForge - secure résumé/photo API")
    parser.add_argument(
        "--host",
        default=settings.api_host,
        help=f"API server host (default: {settings.api_host})",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=settings.api_port,
        help=f"API server port (default: {settings.api_port})",
    )
    parser.add_argument(
        "--no-maintenance",
        action="store_true",
        help="Do not start the maintenance scheduler",
    )
    args = parser.parse_args()

    # Configure logging
    configure_logging(
        log_level=settings.log_level,
        json_format=settings.log_json,
    )

    if args.no_maintenance:
        settings = settings.model_copy(update={"maintenance_enabled": False})

    app = create_app(settings)
    uvicorn.run(
        app,
        host=args.host,
        port=args.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
