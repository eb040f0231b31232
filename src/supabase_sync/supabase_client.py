"""
Supabase-backed store for Guesty bookings, housekeeping tasks and sync telemetry.
"""
from datetime import datetime, date
from typing import Optional, Dict, Any, List, Iterable, Set

from supabase import acreate_client, AsyncClient

from ..storage.base import HousekeepingStore
from ..utils.errors import ConfigurationError, DataStoreError
from ..utils.events import EventBus
from ..utils.logger import get_logger
from ..utils.models import ApiUsageRecord, Booking, BookingStatus, CleaningTask, Listing, SyncLogEntry, parse_datetime
from config.settings import supabase_config, app_config


class SupabaseStore(HousekeepingStore):
    """Supabase implementation of HousekeepingStore."""

    def __init__(self, event_bus: Optional[EventBus] = None, client: Optional[AsyncClient] = None):
        super().__init__(event_bus)
        self.logger = get_logger("supabase_store")
        self.client = client
        self.initialized = client is not None

    async def initialize(self) -> None:
        """Create the async Supabase client from environment configuration."""
        if self.initialized:
            return

        auth_key = supabase_config.get_auth_key()
        if not supabase_config.url or not auth_key:
            self.logger.error("Supabase configuration missing", url=bool(supabase_config.url))
            raise ConfigurationError(
                "Supabase configuration missing: set SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY or SUPABASE_ANON_KEY"
            )

        try:
            self.client = await acreate_client(supabase_config.url, auth_key)
        except Exception as e:
            self.logger.error("Failed to initialize Supabase client", error=str(e))
            raise DataStoreError(f"Failed to initialize Supabase client: {e}") from e

        self.initialized = True
        self.logger.info("Supabase client initialized successfully", url=supabase_config.url)

    def _serialize_payload(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Recursively convert datetimes and dates to JSON-serializable values."""

        def serialize_value(value):
            if isinstance(value, (datetime, date)):
                return value.isoformat()
            if isinstance(value, dict):
                return {k: serialize_value(v) for k, v in value.items()}
            if isinstance(value, list):
                return [serialize_value(v) for v in value]
            return value

        return {k: serialize_value(v) for k, v in payload.items()}

    @staticmethod
    def _rows(res) -> List[Dict[str, Any]]:
        return getattr(res, "data", None) or []

    async def _execute(self, operation: str, query_builder):
        """Run a query built from the client, turning any failure into DataStoreError."""
        await self.initialize()
        try:
            return await query_builder(self.client).execute()
        except Exception as e:
            self.logger.error("Supabase operation failed", operation=operation, error=str(e))
            raise DataStoreError(f"Supabase {operation} failed: {e}") from e

    # Bookings
    async def upsert_booking(self, booking: Booking) -> bool:
        existing = await self.get_booking(booking.external_id)
        payload = self._serialize_payload(booking.to_record())
        await self._execute(
            "upsert_booking",
            lambda c: c.table(app_config.bookings_collection).upsert(payload, on_conflict="id"),
        )
        self.logger.info("Booking upserted", booking_id=booking.external_id, listing_id=booking.listing_id)
        await self._emit(app_config.bookings_collection, "insert" if existing is None else "update", payload)
        return existing is None

    async def get_booking(self, booking_id: str) -> Optional[Booking]:
        res = await self._execute(
            "get_booking",
            lambda c: c.table(app_config.bookings_collection).select("*").eq("id", booking_id).limit(1),
        )
        rows = self._rows(res)
        return Booking.from_record(rows[0]) if rows else None

    async def list_bookings(
        self,
        status: Optional[BookingStatus] = None,
        check_out_gte: Optional[date] = None,
        listing_id: Optional[str] = None,
    ) -> List[Booking]:
        def build(c):
            query = c.table(app_config.bookings_collection).select("*")
            if status is not None:
                query = query.eq("status", status.value)
            if check_out_gte is not None:
                query = query.gte("check_out", check_out_gte.isoformat())
            if listing_id is not None:
                query = query.eq("listing_id", listing_id)
            return query.order("check_in")

        res = await self._execute("list_bookings", build)
        return [Booking.from_record(row) for row in self._rows(res)]

    # Listings
    async def upsert_listing(self, listing: Listing) -> None:
        payload = self._serialize_payload(listing.to_record())
        await self._execute(
            "upsert_listing",
            lambda c: c.table(app_config.listings_collection).upsert(payload, on_conflict="id"),
        )
        await self._emit(app_config.listings_collection, "update", payload)

    async def list_listings(self, active_only: bool = True) -> List[Listing]:
        def build(c):
            query = c.table(app_config.listings_collection).select("*")
            if active_only:
                query = query.eq("active", True)
            return query

        res = await self._execute("list_listings", build)
        return [
            Listing(
                listing_id=str(row["id"]),
                title=row.get("title") or "",
                active=bool(row.get("active", True)),
                raw_data=row.get("raw_data") or {},
            )
            for row in self._rows(res)
        ]

    # Housekeeping tasks
    async def insert_tasks(self, tasks: List[CleaningTask]) -> List[CleaningTask]:
        if not tasks:
            return []
        payloads = [self._serialize_payload(t.to_record()) for t in tasks]
        res = await self._execute(
            "insert_tasks",
            lambda c: c.table(app_config.housekeeping_tasks_collection).insert(payloads),
        )
        inserted = [CleaningTask.from_record(row) for row in self._rows(res)] or list(tasks)
        for payload in payloads:
            await self._emit(app_config.housekeeping_tasks_collection, "insert", payload)
        return inserted

    async def list_tasks(self, booking_id: Optional[str] = None) -> List[CleaningTask]:
        def build(c):
            query = c.table(app_config.housekeeping_tasks_collection).select("*")
            if booking_id is not None:
                query = query.eq("booking_id", booking_id)
            return query.order("due_date")

        res = await self._execute("list_tasks", build)
        return [CleaningTask.from_record(row) for row in self._rows(res)]

    async def booking_ids_with_tasks(self, booking_ids: Iterable[str]) -> Set[str]:
        ids = list(booking_ids)
        if not ids:
            return set()
        res = await self._execute(
            "booking_ids_with_tasks",
            lambda c: c.table(app_config.housekeeping_tasks_collection).select("booking_id").in_("booking_id", ids),
        )
        return {str(row["booking_id"]) for row in self._rows(res) if row.get("booking_id")}

    # Sync logs
    async def append_sync_log(self, entry: SyncLogEntry) -> None:
        payload = entry.to_record()
        await self._execute(
            "append_sync_log",
            lambda c: c.table(app_config.sync_logs_collection).insert(payload),
        )
        await self._emit(app_config.sync_logs_collection, "insert", payload)

    async def list_sync_logs(
        self,
        offset: int = 0,
        limit: int = 20,
        service: Optional[str] = None,
        status: Optional[str] = None,
    ) -> List[SyncLogEntry]:
        def build(c):
            query = c.table(app_config.sync_logs_collection).select("*")
            if service is not None:
                query = query.eq("service", service)
            if status is not None:
                query = query.eq("status", status)
            return query.order("start_time", desc=True).range(offset, offset + limit - 1)

        res = await self._execute("list_sync_logs", build)
        return [SyncLogEntry.from_record(row) for row in self._rows(res)]

    async def count_sync_logs(self, service: Optional[str] = None, status: Optional[str] = None) -> int:
        def build(c):
            query = c.table(app_config.sync_logs_collection).select("id", count="exact")
            if service is not None:
                query = query.eq("service", service)
            if status is not None:
                query = query.eq("status", status)
            return query

        res = await self._execute("count_sync_logs", build)
        count = getattr(res, "count", None)
        return int(count) if count is not None else len(self._rows(res))

    # API usage
    async def append_api_usage(self, record: ApiUsageRecord) -> None:
        payload = record.to_record()
        await self._execute(
            "append_api_usage",
            lambda c: c.table(app_config.api_usage_collection).insert(payload),
        )

    async def list_api_usage(self, since: datetime) -> List[ApiUsageRecord]:
        res = await self._execute(
            "list_api_usage",
            lambda c: c.table(app_config.api_usage_collection)
            .select("*")
            .gte("timestamp", since.isoformat())
            .order("timestamp", desc=True),
        )
        return [ApiUsageRecord.from_record(row) for row in self._rows(res)]

    # Sync cursors
    async def get_sync_cursor(self, listing_id: str) -> Optional[datetime]:
        res = await self._execute(
            "get_sync_cursor",
            lambda c: c.table(app_config.sync_cursors_collection).select("*").eq("listing_id", listing_id).limit(1),
        )
        rows = self._rows(res)
        return parse_datetime(rows[0].get("cursor")) if rows else None

    async def set_sync_cursor(self, listing_id: str, cursor: datetime) -> None:
        payload = {"listing_id": listing_id, "cursor": cursor.isoformat()}
        await self._execute(
            "set_sync_cursor",
            lambda c: c.table(app_config.sync_cursors_collection).upsert(payload, on_conflict="listing_id"),
        )

    async def ping(self) -> bool:
        await self._execute(
            "ping",
            lambda c: c.table(app_config.bookings_collection).select("id").limit(1),
        )
        return True
