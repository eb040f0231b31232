"""
Store interface shared by the Supabase and in-memory implementations.
"""
from abc import ABC, abstractmethod
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional, Set

from ..utils.events import EventBus, ChangeEvent
from ..utils.models import ApiUsageRecord, Booking, BookingStatus, CleaningTask, Listing, SyncLogEntry


class HousekeepingStore(ABC):
    """
    Persistence for bookings, listings, housekeeping tasks, sync logs and API usage.

    Booking and listing writes are upserts keyed by the Guesty identifier, so
    concurrent writers for the same id resolve last-write-wins. Sync logs and
    API usage are append-only.
    """

    def __init__(self, event_bus: Optional[EventBus] = None):
        self.event_bus = event_bus or EventBus()

    async def _emit(self, table: str, kind: str, record: Dict[str, Any]) -> None:
        await self.event_bus.publish(ChangeEvent(table=table, kind=kind, record=record))

    # Bookings
    @abstractmethod
    async def upsert_booking(self, booking: Booking) -> bool:
        """Insert or overwrite a booking; returns True when it was new."""

    @abstractmethod
    async def get_booking(self, booking_id: str) -> Optional[Booking]:
        pass

    @abstractmethod
    async def list_bookings(
        self,
        status: Optional[BookingStatus] = None,
        check_out_gte: Optional[date] = None,
        listing_id: Optional[str] = None,
    ) -> List[Booking]:
        pass

    # Listings
    @abstractmethod
    async def upsert_listing(self, listing: Listing) -> None:
        pass

    @abstractmethod
    async def list_listings(self, active_only: bool = True) -> List[Listing]:
        pass

    # Housekeeping tasks
    @abstractmethod
    async def insert_tasks(self, tasks: List[CleaningTask]) -> List[CleaningTask]:
        pass

    @abstractmethod
    async def list_tasks(self, booking_id: Optional[str] = None) -> List[CleaningTask]:
        pass

    @abstractmethod
    async def booking_ids_with_tasks(self, booking_ids: Iterable[str]) -> Set[str]:
        pass

    # Sync logs
    @abstractmethod
    async def append_sync_log(self, entry: SyncLogEntry) -> None:
        pass

    @abstractmethod
    async def list_sync_logs(
        self,
        offset: int = 0,
        limit: int = 20,
        service: Optional[str] = None,
        status: Optional[str] = None,
    ) -> List[SyncLogEntry]:
        """Newest first."""

    @abstractmethod
    async def count_sync_logs(self, service: Optional[str] = None, status: Optional[str] = None) -> int:
        pass

    # API usage
    @abstractmethod
    async def append_api_usage(self, record: ApiUsageRecord) -> None:
        pass

    @abstractmethod
    async def list_api_usage(self, since: datetime) -> List[ApiUsageRecord]:
        """Newest first."""

    # Per-listing sync cursors
    @abstractmethod
    async def get_sync_cursor(self, listing_id: str) -> Optional[datetime]:
        pass

    @abstractmethod
    async def set_sync_cursor(self, listing_id: str, cursor: datetime) -> None:
        pass

    async def ping(self) -> bool:
        """Cheap reachability check used by health probes."""
        await self.list_listings(active_only=False)
        return True
