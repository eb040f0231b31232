"""
Health check and monitoring endpoints.
"""
from fastapi import APIRouter, Depends
from ..config import settings
from ..dependencies import get_health_monitor
from ..models import HealthResponse, ProbeStatus
from ...monitoring.health import HealthMonitor


router = APIRouter(prefix="/health", tags=["health"])


@router.get(
    "",
    response_model=HealthResponse,
    summary="Health check endpoint",
    description="Check if the API is running and report the latest health probe results",
    responses={
        200: {"description": "Service status with per-probe state"}
    }
)
async def health_check(monitor: HealthMonitor = Depends(get_health_monitor)) -> HealthResponse:
    """
    Health check endpoint for monitoring.

    Returns:
        "healthy" unless a probe is currently failing; probes that have not
        run yet report `healthy: null`
    """
    probes = [ProbeStatus(**result.to_dict()) for result in monitor.results().values()]
    return HealthResponse(
        status="healthy" if monitor.healthy else "degraded",
        version=settings.app_version,
        probes=probes,
    )
