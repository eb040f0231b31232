"""
Manual sync triggers and sync history endpoints.
"""
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query

from ..models import ErrorResponse, SyncResultResponse, SyncLogsResponse, UsageMetricsResponse
from ..dependencies import get_sync_service
from ..services.sync_service import SyncService
from ...utils.models import SyncSummary


router = APIRouter(prefix="/sync", tags=["sync"])


def _to_response(summary: SyncSummary) -> SyncResultResponse:
    status_code = SyncService.failure_status(summary)
    if status_code is not None:
        raise HTTPException(
            status_code=status_code,
            detail={
                "message": summary.message,
                "error_code": (summary.error_category or "generic").upper(),
                "details": summary.to_dict(),
            }
        )
    return SyncResultResponse(
        success=summary.success,
        warning=summary.warning,
        message=summary.message,
        data=summary.to_dict(),
    )


@router.post(
    "/all",
    response_model=SyncResultResponse,
    summary="Sync all listings",
    description="Pull reservations for every active Guesty listing",
    responses={
        200: {"description": "Sync finished (possibly with warnings)"},
        500: {"description": "Configuration error", "model": ErrorResponse},
        502: {"description": "Sync failed", "model": ErrorResponse}
    }
)
async def sync_all(sync_service: SyncService = Depends(get_sync_service)) -> SyncResultResponse:
    """
    Run a full sync.

    Partial failures return 200 with `warning` set and the failed listings in
    `data.failed_listings` so they can be retried one at a time.
    """
    return _to_response(await sync_service.sync_all())


@router.post(
    "/listings/{listing_id}",
    response_model=SyncResultResponse,
    summary="Sync one listing",
    description="Retry the sync for a single listing",
    responses={
        200: {"description": "Listing synced"},
        502: {"description": "Sync failed", "model": ErrorResponse}
    }
)
async def sync_listing(
    listing_id: str,
    sync_service: SyncService = Depends(get_sync_service)
) -> SyncResultResponse:
    return _to_response(await sync_service.sync_listing(listing_id))


@router.get(
    "/logs",
    response_model=SyncLogsResponse,
    summary="Get sync history",
    description="Retrieve paginated sync log entries, newest first",
)
async def get_sync_logs(
    page: int = Query(1, ge=1, description="Page number for pagination"),
    limit: int = Query(20, ge=1, le=100, description="Number of entries per page"),
    service: Optional[str] = Query(None, description="Filter by service"),
    status: Optional[str] = Query(None, description="Filter by status (success, warning, error)"),
    sync_service: SyncService = Depends(get_sync_service)
) -> SyncLogsResponse:
    data = await sync_service.get_logs(page=page, page_size=limit, service=service, status=status)
    return SyncLogsResponse(success=True, message="Sync logs retrieved successfully", data=data)


@router.get(
    "/metrics",
    response_model=UsageMetricsResponse,
    summary="Get Guesty API usage metrics",
    description="Calls in the last 24 hours, most used endpoint and recent rate limiting",
)
async def get_usage_metrics(sync_service: SyncService = Depends(get_sync_service)) -> UsageMetricsResponse:
    data = await sync_service.get_metrics()
    message = "Guesty rate limit hit in the last 5 minutes" if data['rate_limit_alert'] else "API usage retrieved successfully"
    return UsageMetricsResponse(success=True, message=message, data=data)
