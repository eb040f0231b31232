"""
Immutable data models for API responses and requests.
"""
from typing import Optional, Dict, Any, List
from datetime import datetime, timezone
from pydantic import BaseModel, Field, ConfigDict, field_serializer


def _now() -> datetime:
    return datetime.now(timezone.utc)


class APIResponse(BaseModel):
    """Base API response model."""
    model_config = ConfigDict(frozen=True, extra="forbid")

    success: bool = Field(..., description="Whether the request was successful")
    message: str = Field(..., description="Response message")
    timestamp: datetime = Field(default_factory=_now, description="Response timestamp")

    @field_serializer('timestamp')
    def serialize_timestamp(self, timestamp: datetime) -> str:
        return timestamp.isoformat()


class ErrorResponse(APIResponse):
    """Error response model."""
    error_code: Optional[str] = Field(None, description="Error code for debugging")
    details: Optional[Dict[str, Any]] = Field(None, description="Additional error details")


class SyncResultResponse(APIResponse):
    """Response model for manual sync triggers."""
    warning: bool = Field(False, description="Partial success or nothing to sync")
    data: Dict[str, Any] = Field(..., description="Sync summary with counts and failed listings")


class SyncLogsResponse(APIResponse):
    """Response model for paginated sync history."""
    data: Dict[str, Any] = Field(..., description="Sync log entries and pagination metadata")


class UsageMetricsResponse(APIResponse):
    """Response model for Guesty API usage metrics."""
    data: Dict[str, Any] = Field(..., description="24h call totals, most used endpoint and rate limit state")


class TaskMaterializationResponse(APIResponse):
    """Response model for task materialization."""
    data: Dict[str, Any] = Field(..., description="Created tasks or batch counts")


class MissingTasksResponse(APIResponse):
    """Response model for the missing-task audit."""
    data: Dict[str, Any] = Field(..., description="Upcoming confirmed bookings without housekeeping tasks")


class ProbeStatus(BaseModel):
    """Status of one health probe."""
    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str
    healthy: Optional[bool] = None
    last_checked: Optional[str] = None
    consecutive_failures: int = 0


class HealthResponse(BaseModel):
    """Health check response model."""
    model_config = ConfigDict(frozen=True, extra="forbid")

    status: str = Field(..., description="Service status")
    timestamp: datetime = Field(default_factory=_now, description="Health check timestamp")
    version: str = Field(..., description="API version")
    probes: List[ProbeStatus] = Field(default_factory=list, description="Health probe states")

    @field_serializer('timestamp')
    def serialize_timestamp(self, timestamp: datetime) -> str:
        return timestamp.isoformat()
