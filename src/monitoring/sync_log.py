"""
Append-only sync history and Guesty API usage metrics.
"""
from collections import Counter
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from config.settings import app_config
from ..storage.base import HousekeepingStore
from ..utils.cache import TTLCache
from ..utils.errors import classify_error
from ..utils.events import SyncLogWritten
from ..utils.logger import get_logger
from ..utils.models import ApiUsageRecord, SyncLogEntry, SyncStatus, SyncType, utcnow


@dataclass
class SyncLogPage:
    entries: List[SyncLogEntry]
    page: int
    page_size: int
    total: int

    @property
    def total_pages(self) -> int:
        return max(1, -(-self.total // self.page_size))

    def to_dict(self) -> Dict[str, Any]:
        return {
            'entries': [e.to_record() for e in self.entries],
            'pagination': {
                'page': self.page,
                'page_size': self.page_size,
                'total': self.total,
                'total_pages': self.total_pages,
            },
        }


@dataclass
class UsageMetrics:
    total_calls: int = 0
    most_used_endpoint: Optional[str] = None
    most_used_count: int = 0
    last_rate_limit_at: Optional[datetime] = None
    calls_by_endpoint: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'total_calls': self.total_calls,
            'most_used_endpoint': self.most_used_endpoint,
            'most_used_count': self.most_used_count,
            'last_rate_limit_at': self.last_rate_limit_at.isoformat() if self.last_rate_limit_at else None,
            'calls_by_endpoint': self.calls_by_endpoint,
        }


class SyncAttempt:
    """Mutable draft filled in while an attempt runs; written once on exit."""

    def __init__(self, service: str, sync_type: SyncType):
        self.service = service
        self.sync_type = sync_type
        self.start_time = utcnow()
        self.status = SyncStatus.SUCCESS
        self.message = ""
        self.items_count = 0
        self.error_category: Optional[str] = None

    def succeed(self, message: str, items_count: int = 0) -> None:
        self.status, self.message, self.items_count = SyncStatus.SUCCESS, message, items_count

    def warn(self, message: str, items_count: int = 0) -> None:
        self.status, self.message, self.items_count = SyncStatus.WARNING, message, items_count

    def fail(self, message: str, error: Optional[BaseException] = None, items_count: int = 0) -> None:
        self.status, self.message, self.items_count = SyncStatus.ERROR, message, items_count
        if error is not None:
            self.error_category = classify_error(error).value


class SyncLogStore:
    """Facade over the sync_logs and guesty_api_usage tables."""

    def __init__(self, store: HousekeepingStore, cache: Optional[TTLCache] = None):
        self.store = store
        self.cache = cache or TTLCache(ttl_seconds=app_config.metrics_cache_ttl_seconds, max_entries=16)
        self.logger = get_logger("sync_log_store")

    async def record(
        self,
        service: str,
        sync_type: SyncType,
        status: SyncStatus,
        message: str,
        items_count: int = 0,
        start_time: Optional[datetime] = None,
        end_time: Optional[datetime] = None,
        error_category: Optional[str] = None,
    ) -> SyncLogEntry:
        end_time = end_time or utcnow()
        entry = SyncLogEntry(
            service=service,
            sync_type=sync_type,
            status=status,
            start_time=start_time or end_time,
            end_time=end_time,
            message=message,
            items_count=items_count,
            error_category=error_category,
        )
        await self.store.append_sync_log(entry)
        await self.store.event_bus.publish(SyncLogWritten(
            entry_id=entry.entry_id,
            service=entry.service,
            sync_type=entry.sync_type.value,
            status=entry.status.value,
            message=entry.message,
        ))
        return entry

    @asynccontextmanager
    async def track(self, service: str, sync_type: SyncType):
        """
        Time an attempt and append its entry when the block exits.

        An exception escaping the block marks the attempt as an error and is
        re-raised after the entry is written.
        """
        attempt = SyncAttempt(service, sync_type)
        try:
            yield attempt
        except Exception as e:
            attempt.fail(str(e), e, attempt.items_count)
            raise
        finally:
            await self.record(
                service=attempt.service,
                sync_type=attempt.sync_type,
                status=attempt.status,
                message=attempt.message,
                items_count=attempt.items_count,
                start_time=attempt.start_time,
                error_category=attempt.error_category,
            )

    async def history(
        self,
        page: int = 1,
        page_size: int = 20,
        service: Optional[str] = None,
        status: Optional[str] = None,
    ) -> SyncLogPage:
        page = max(1, page)
        offset = (page - 1) * page_size
        entries = await self.store.list_sync_logs(offset=offset, limit=page_size, service=service, status=status)
        total = await self.store.count_sync_logs(service=service, status=status)
        return SyncLogPage(entries=entries, page=page, page_size=page_size, total=total)

    # API usage
    async def record_usage(self, record: ApiUsageRecord) -> None:
        await self.store.append_api_usage(record)
        self.cache.invalidate()

    def is_rate_limited(self, record: ApiUsageRecord) -> bool:
        if record.status_code == 429:
            return True
        return record.remaining is not None and record.remaining <= app_config.rate_limit_remaining_threshold

    async def usage_metrics(self, window: timedelta = timedelta(hours=24)) -> UsageMetrics:
        key = ("usage_metrics", window.total_seconds())
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        records = await self.store.list_api_usage(since=utcnow() - window)
        counts = Counter(r.endpoint or "unknown" for r in records)
        metrics = UsageMetrics(total_calls=len(records), calls_by_endpoint=dict(counts))
        if counts:
            metrics.most_used_endpoint, metrics.most_used_count = counts.most_common(1)[0]
        limited = [r.timestamp for r in records if self.is_rate_limited(r)]
        if limited:
            metrics.last_rate_limit_at = max(limited)

        self.cache.set(key, metrics)
        return metrics

    async def has_recent_rate_limit(self, within: timedelta = timedelta(minutes=5)) -> bool:
        records = await self.store.list_api_usage(since=utcnow() - within)
        return any(self.is_rate_limited(r) for r in records)
