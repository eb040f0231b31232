"""
Dict-backed store used for dry runs and tests.
"""
from datetime import date, datetime
from typing import Dict, Iterable, List, Optional, Set

from config.settings import app_config
from .base import HousekeepingStore
from ..utils.events import EventBus
from ..utils.models import ApiUsageRecord, Booking, BookingStatus, CleaningTask, Listing, SyncLogEntry


class InMemoryStore(HousekeepingStore):
    """Process-local implementation of HousekeepingStore."""

    def __init__(self, event_bus: Optional[EventBus] = None):
        super().__init__(event_bus)
        self.bookings: Dict[str, Booking] = {}
        self.listings: Dict[str, Listing] = {}
        self.tasks: Dict[str, CleaningTask] = {}
        self.sync_logs: List[SyncLogEntry] = []
        self.api_usage: List[ApiUsageRecord] = []
        self.cursors: Dict[str, datetime] = {}

    async def upsert_booking(self, booking: Booking) -> bool:
        is_new = booking.external_id not in self.bookings
        self.bookings[booking.external_id] = booking
        await self._emit(app_config.bookings_collection, "insert" if is_new else "update", booking.to_record())
        return is_new

    async def get_booking(self, booking_id: str) -> Optional[Booking]:
        return self.bookings.get(booking_id)

    async def list_bookings(
        self,
        status: Optional[BookingStatus] = None,
        check_out_gte: Optional[date] = None,
        listing_id: Optional[str] = None,
    ) -> List[Booking]:
        rows = list(self.bookings.values())
        if status is not None:
            rows = [b for b in rows if b.status == status]
        if check_out_gte is not None:
            rows = [b for b in rows if b.check_out >= check_out_gte]
        if listing_id is not None:
            rows = [b for b in rows if b.listing_id == listing_id]
        return sorted(rows, key=lambda b: (b.check_in, b.external_id))

    async def upsert_listing(self, listing: Listing) -> None:
        is_new = listing.listing_id not in self.listings
        self.listings[listing.listing_id] = listing
        await self._emit(app_config.listings_collection, "insert" if is_new else "update", listing.to_record())

    async def list_listings(self, active_only: bool = True) -> List[Listing]:
        return [listing for listing in self.listings.values() if listing.active or not active_only]

    async def insert_tasks(self, tasks: List[CleaningTask]) -> List[CleaningTask]:
        for task in tasks:
            self.tasks[task.task_id] = task
        for task in tasks:
            await self._emit(app_config.housekeeping_tasks_collection, "insert", task.to_record())
        return list(tasks)

    async def list_tasks(self, booking_id: Optional[str] = None) -> List[CleaningTask]:
        rows = [t for t in self.tasks.values() if booking_id is None or t.booking_id == booking_id]
        return sorted(rows, key=lambda t: (t.scheduled_date, t.task_id))

    async def booking_ids_with_tasks(self, booking_ids: Iterable[str]) -> Set[str]:
        wanted = set(booking_ids)
        return {t.booking_id for t in self.tasks.values() if t.booking_id in wanted}

    async def append_sync_log(self, entry: SyncLogEntry) -> None:
        self.sync_logs.append(entry)
        await self._emit(app_config.sync_logs_collection, "insert", entry.to_record())

    def _filtered_logs(self, service: Optional[str], status: Optional[str]) -> List[SyncLogEntry]:
        rows = self.sync_logs
        if service is not None:
            rows = [e for e in rows if e.service == service]
        if status is not None:
            rows = [e for e in rows if e.status.value == status]
        return rows

    async def list_sync_logs(
        self,
        offset: int = 0,
        limit: int = 20,
        service: Optional[str] = None,
        status: Optional[str] = None,
    ) -> List[SyncLogEntry]:
        rows = sorted(self._filtered_logs(service, status), key=lambda e: e.start_time, reverse=True)
        return rows[offset:offset + limit]

    async def count_sync_logs(self, service: Optional[str] = None, status: Optional[str] = None) -> int:
        return len(self._filtered_logs(service, status))

    async def append_api_usage(self, record: ApiUsageRecord) -> None:
        self.api_usage.append(record)

    async def list_api_usage(self, since: datetime) -> List[ApiUsageRecord]:
        rows = [r for r in self.api_usage if r.timestamp >= since]
        return sorted(rows, key=lambda r: r.timestamp, reverse=True)

    async def get_sync_cursor(self, listing_id: str) -> Optional[datetime]:
        return self.cursors.get(listing_id)

    async def set_sync_cursor(self, listing_id: str, cursor: datetime) -> None:
        self.cursors[listing_id] = cursor
