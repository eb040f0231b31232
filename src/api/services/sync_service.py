"""
Sync service backing the manual sync triggers and sync history endpoints.
"""
from typing import Any, Dict, Optional

from ...container import ServiceContainer
from ...utils.errors import ErrorCategory
from ...utils.models import SyncSummary

# HTTP status for a sync that failed outright, by error category
_FAILURE_STATUS = {
    ErrorCategory.CONFIGURATION.value: 500,
    ErrorCategory.RATE_LIMIT.value: 429,
}


class SyncService:
    """Service for triggering syncs and reading the sync log."""

    def __init__(self, container: ServiceContainer):
        self.container = container
        self.logger = container.logger

    async def sync_all(self) -> SyncSummary:
        return await self.container.sync_engine.sync_all()

    async def sync_listing(self, listing_id: str) -> SyncSummary:
        return await self.container.sync_engine.sync_listing(listing_id)

    @staticmethod
    def failure_status(summary: SyncSummary) -> Optional[int]:
        """HTTP status to answer with, or None when the summary should be returned as-is."""
        if summary.success or summary.warning:
            return None
        return _FAILURE_STATUS.get(summary.error_category, 502)

    async def get_logs(
        self,
        page: int = 1,
        page_size: int = 20,
        service: Optional[str] = None,
        status: Optional[str] = None,
    ) -> Dict[str, Any]:
        history = await self.container.sync_log.history(page=page, page_size=page_size, service=service, status=status)
        return history.to_dict()

    async def get_metrics(self) -> Dict[str, Any]:
        """24h API usage metrics plus the 5-minute rate limit alert flag."""
        metrics = await self.container.sync_log.usage_metrics()
        recent = await self.container.sync_log.has_recent_rate_limit()
        data = metrics.to_dict()
        data['rate_limit_alert'] = recent
        return data
