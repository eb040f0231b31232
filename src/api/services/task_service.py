"""
Housekeeping task service.
"""
from datetime import date
from typing import Any, Dict, Optional

from ...container import ServiceContainer


class TaskService:
    """Service for materializing and auditing housekeeping tasks."""

    def __init__(self, container: ServiceContainer):
        self.materializer = container.materializer

    async def materialize_booking(self, booking_id: str) -> Dict[str, Any]:
        result = await self.materializer.materialize_for_booking(booking_id)
        return result.to_dict()

    async def materialize_pending(self, listing_id: Optional[str] = None,
                                  today: Optional[date] = None) -> Dict[str, Any]:
        result = await self.materializer.materialize_pending(listing_id=listing_id, today=today)
        return result.to_dict()

    async def missing_tasks(self, today: Optional[date] = None) -> Dict[str, Any]:
        report = await self.materializer.audit_missing_tasks(today=today)
        return report.to_dict()
