"""
Dependency injection for the FastAPI application.
"""
from fastapi import HTTPException, Request

from ..container import ServiceContainer
from ..monitoring.health import HealthMonitor
from ..webhooks.ingestor import WebhookIngestor
from .services.sync_service import SyncService
from .services.task_service import TaskService


def get_container(request: Request) -> ServiceContainer:
    """Get the service container created during application startup."""
    container = getattr(request.app.state, "container", None)
    if container is None:
        raise HTTPException(
            status_code=503,
            detail={
                "message": "Services are not initialized",
                "error_code": "SERVICE_UNAVAILABLE",
                "details": {},
            },
        )
    return container


def get_sync_service(request: Request) -> SyncService:
    return SyncService(get_container(request))


def get_task_service(request: Request) -> TaskService:
    return TaskService(get_container(request))


def get_webhook_ingestor(request: Request) -> WebhookIngestor:
    return get_container(request).webhook_ingestor


def get_health_monitor(request: Request) -> HealthMonitor:
    return get_container(request).health_monitor
