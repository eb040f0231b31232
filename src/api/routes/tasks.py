"""
Housekeeping task endpoints.
"""
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query

from ..models import ErrorResponse, TaskMaterializationResponse, MissingTasksResponse
from ..dependencies import get_task_service
from ..services.task_service import TaskService
from ...utils.errors import InvalidDateRangeError


router = APIRouter(prefix="/tasks", tags=["tasks"])


@router.post(
    "/bookings/{booking_id}/materialize",
    response_model=TaskMaterializationResponse,
    summary="Create housekeeping tasks for a booking",
    description="Apply the cleaning schedule to one booking; does nothing if it already has tasks",
    responses={
        404: {"description": "Booking not found", "model": ErrorResponse},
        422: {"description": "Booking has an invalid date range", "model": ErrorResponse}
    }
)
async def materialize_booking(
    booking_id: str,
    task_service: TaskService = Depends(get_task_service)
) -> TaskMaterializationResponse:
    try:
        data = await task_service.materialize_booking(booking_id)
    except LookupError as e:
        raise HTTPException(
            status_code=404,
            detail={"message": str(e), "error_code": "BOOKING_NOT_FOUND", "details": {"booking_id": booking_id}}
        )
    except InvalidDateRangeError as e:
        raise HTTPException(
            status_code=422,
            detail={"message": str(e), "error_code": "INVALID_DATE_RANGE", "details": {"booking_id": booking_id}}
        )

    message = data['reason'] if data['skipped'] else f"Created {data['created']} housekeeping tasks"
    return TaskMaterializationResponse(success=True, message=message, data=data)


@router.post(
    "/materialize",
    response_model=TaskMaterializationResponse,
    summary="Create tasks for all upcoming bookings",
    description="Apply the cleaning schedule to every confirmed, upcoming booking without tasks",
)
async def materialize_pending(
    listing_id: Optional[str] = Query(None, description="Limit to one listing"),
    task_service: TaskService = Depends(get_task_service)
) -> TaskMaterializationResponse:
    data = await task_service.materialize_pending(listing_id=listing_id)
    return TaskMaterializationResponse(
        success=not data['errors'],
        message=f"Created {data['tasks_created']} tasks for {data['processed']} bookings",
        data=data,
    )


@router.get(
    "/missing",
    response_model=MissingTasksResponse,
    summary="Audit bookings missing tasks",
    description="List confirmed, not yet checked-out bookings that have no housekeeping task",
)
async def missing_tasks(task_service: TaskService = Depends(get_task_service)) -> MissingTasksResponse:
    data = await task_service.missing_tasks()
    return MissingTasksResponse(
        success=True,
        message=f"{data['bookings_missing_tasks']} of {data['total_bookings']} bookings are missing tasks",
        data=data,
    )
