"""
Main FastAPI application factory.
"""
from contextlib import asynccontextmanager
from typing import Optional
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import settings
from .routes import webhooks, sync, tasks, health
from .models import ErrorResponse
from ..container import ServiceContainer
from ..utils.logger import setup_logger


logger = setup_logger("fastapi_app", settings.log_level)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup and shutdown events."""
    logger.info("Starting FastAPI application", environment=settings.environment, version=settings.api_version)

    owns_container = app.state.container is None
    if owns_container:
        try:
            app.state.container = await ServiceContainer.create(dry_run=settings.dry_run)
            logger.info("Services initialized successfully", dry_run=settings.dry_run)
        except Exception as e:
            logger.error("Failed to initialize services", error=str(e))
            raise

    container: ServiceContainer = app.state.container
    if app.state.start_monitor:
        container.register_default_probes(
            store_interval=settings.health_store_interval_seconds,
            auth_interval=settings.health_auth_interval_seconds,
            rate_limit_interval=settings.health_rate_limit_interval_seconds,
        )
        container.health_monitor.start()

    yield

    logger.info("Shutting down FastAPI application")
    await container.health_monitor.stop()
    if owns_container:
        await container.close()
        app.state.container = None


def create_app(container: Optional[ServiceContainer] = None, start_monitor: Optional[bool] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        container: Pre-built services; when omitted they are created at startup
        start_monitor: Run health probes in the background (defaults to settings)

    Returns:
        Configured FastAPI application instance
    """
    app = FastAPI(
        title=settings.app_name,
        description=settings.app_description,
        version=settings.app_version,
        docs_url=f"{settings.api_prefix}/docs",
        redoc_url=f"{settings.api_prefix}/redoc",
        openapi_url=f"{settings.api_prefix}/openapi.json",
        lifespan=lifespan
    )
    app.state.container = container
    app.state.start_monitor = settings.health_monitor_enabled if start_monitor is None else start_monitor

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=False,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )

    # Global exception handler
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Global exception handler for unhandled errors."""
        logger.error("Unhandled exception", path=request.url.path, error=str(exc), exc_info=True)
        return JSONResponse(
            status_code=500,
            content=ErrorResponse(
                success=False,
                message="Internal server error",
                error_code="INTERNAL_ERROR",
                details={"error": str(exc)}
            ).model_dump(mode="json")
        )

    # Include routers with versioning
    for module in (webhooks, sync, tasks, health):
        app.include_router(
            module.router,
            prefix=f"{settings.api_prefix}/{settings.api_version}"
        )

    # Root endpoint
    @app.get("/")
    async def root():
        """Root endpoint with API information."""
        return {
            "message": "Guesty Housekeeping Sync API is running",
            "version": settings.app_version,
            "environment": settings.environment,
            "docs": f"{settings.api_prefix}/docs"
        }

    return app
