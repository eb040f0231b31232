"""
Unit tests for utility modules.
"""
import asyncio
import pytest
from unittest.mock import Mock
from datetime import datetime, date, timezone

from src.utils.cache import TTLCache
from src.utils.errors import (
    ApiError, AuthenticationError, ConfigurationError, DataStoreError, EmptyResponseError,
    ErrorCategory, MissingFieldsError, RateLimitError, SyncCancelledError,
    classify_error, is_retryable, operator_hint
)
from src.utils.events import ChangeEvent, EventBus, HealthStatusChanged
from src.utils.logger import setup_logger, SyncLogger
from src.utils.models import (
    Booking, BookingStatus, CleaningTask, Listing, ServiceType, SyncLogEntry, SyncStatus,
    SyncSummary, SyncType, FailedListing, parse_date
)

pytestmark = pytest.mark.unit


class TestModels:
    """Test cases for data models."""

    @pytest.mark.parametrize("raw,expected", [
        ("confirmed", BookingStatus.CONFIRMED),
        ("canceled", BookingStatus.CANCELLED),
        ("Cancelled", BookingStatus.CANCELLED),
        ("checked_in", BookingStatus.CHECKED_IN),
        ("checkedOut", BookingStatus.CHECKED_OUT),
        ("inquiry", BookingStatus.PENDING),
        ("reserved", BookingStatus.PENDING),
        ("", BookingStatus.CONFIRMED),
        (None, BookingStatus.CONFIRMED),
        ("something-new", BookingStatus.PENDING),
    ])
    def test_booking_status_normalize(self, raw, expected):
        assert BookingStatus.normalize(raw) == expected

    def test_parse_date(self):
        assert parse_date("2025-06-01T15:00:00.000Z") == date(2025, 6, 1)
        assert parse_date(datetime(2025, 6, 1, 23, 0)) == date(2025, 6, 1)
        assert parse_date("2025-06-01") == date(2025, 6, 1)
        assert parse_date(None) is None

    def test_booking_record_round_trip(self):
        booking = Booking(
            external_id="R1",
            listing_id="L1",
            check_in="2025-06-01",
            check_out="2025-06-04",
            guest_name="Jane Doe",
            status="canceled",
        )

        restored = Booking.from_record(booking.to_record())

        assert restored.check_in == date(2025, 6, 1)
        assert restored.status == BookingStatus.CANCELLED
        assert restored.stay_nights == 3

    def test_booking_validate(self):
        booking = Booking(external_id="R1", listing_id="L1", check_in="2025-06-04", check_out="2025-06-04")

        with pytest.raises(ValueError):
            booking.validate()

    def test_listing_from_payload(self):
        listing = Listing.from_payload({"_id": "L1", "nickname": "Loft", "isListed": False})

        assert listing.listing_id == "L1"
        assert listing.title == "Loft"
        assert listing.active is False

    def test_cleaning_task_record(self):
        task = CleaningTask(listing_id="L1", scheduled_date=date(2025, 6, 1), service_type=ServiceType.FULL,
                            booking_id="R1")

        record = task.to_record()

        assert record['due_date'] == "2025-06-01"
        assert record['task_type'] == "Full"
        assert CleaningTask.from_record(record).service_type == ServiceType.FULL

    def test_sync_log_entry_is_immutable(self):
        now = datetime.now(timezone.utc)
        entry = SyncLogEntry(service="guesty", sync_type=SyncType.POLL, status=SyncStatus.SUCCESS,
                             start_time=now, end_time=now)

        with pytest.raises(Exception):
            entry.message = "changed"

    def test_sync_summary_to_dict(self):
        summary = SyncSummary(success=False, warning=True, failed_listings=[FailedListing("L2", "boom")])

        data = summary.to_dict()

        assert data['failed_listings'] == [{'listing_id': 'L2', 'error': 'boom', 'category': 'generic'}]
        assert summary.failed_listing_ids == ["L2"]


class TestErrors:

    @pytest.mark.parametrize("error,expected", [
        (ConfigurationError("x"), ErrorCategory.CONFIGURATION),
        (AuthenticationError("x"), ErrorCategory.AUTHENTICATION),
        (DataStoreError("x"), ErrorCategory.DATA_STORE),
        (EmptyResponseError("x"), ErrorCategory.EMPTY_RESPONSE),
        (RateLimitError("x"), ErrorCategory.RATE_LIMIT),
        (SyncCancelledError("x"), ErrorCategory.CANCELLED),
        (ApiError("x", 403), ErrorCategory.AUTHENTICATION),
        (ApiError("x", 500), ErrorCategory.GENERIC),
        (RuntimeError("Missing environment variable GUESTY_CLIENT_ID"), ErrorCategory.CONFIGURATION),
        (RuntimeError("401 Unauthorized"), ErrorCategory.AUTHENTICATION),
        (RuntimeError("duplicate key violates unique constraint"), ErrorCategory.DATA_STORE),
        (RuntimeError("Too Many Requests"), ErrorCategory.RATE_LIMIT),
        (RuntimeError("No listings found"), ErrorCategory.EMPTY_RESPONSE),
        (RuntimeError("socket closed"), ErrorCategory.GENERIC),
    ])
    def test_classify_error(self, error, expected):
        assert classify_error(error) == expected

    def test_retryability(self):
        assert is_retryable(DataStoreError("x")) is True
        assert is_retryable(RuntimeError("socket closed")) is True
        assert is_retryable(RateLimitError("x")) is True
        assert is_retryable(ConfigurationError("x")) is False
        assert is_retryable(AuthenticationError("x")) is False

    def test_missing_fields_message(self):
        error = MissingFieldsError(["id", "endDate"])

        assert str(error) == "Missing required booking fields: id, endDate"
        assert error.missing == ["id", "endDate"]

    def test_operator_hint(self):
        assert "credentials" in operator_hint(AuthenticationError("x"))


class TestTTLCache:

    class Clock:
        def __init__(self):
            self.now = 0.0

        def __call__(self):
            return self.now

    def test_expiry(self):
        clock = self.Clock()
        cache = TTLCache(ttl_seconds=10, clock=clock)
        cache.set("a", 1)

        clock.now = 9.9
        assert cache.get("a") == 1
        clock.now = 10
        assert cache.get("a") is None

    def test_eviction_removes_soonest_expiry(self):
        clock = self.Clock()
        cache = TTLCache(ttl_seconds=10, max_entries=2, clock=clock)
        cache.set("short", 1, ttl_seconds=1)
        cache.set("long", 2, ttl_seconds=100)
        cache.set("new", 3)

        assert len(cache) == 2
        assert cache.get("short") is None
        assert cache.get("long") == 2

    def test_invalidate(self):
        cache = TTLCache(ttl_seconds=10)
        cache.set("a", 1)
        cache.set("b", 2)

        cache.invalidate("a")
        assert cache.get("a") is None
        cache.invalidate()
        assert len(cache) == 0


class TestEventBus:

    def test_subscribe_and_unsubscribe(self):
        bus = EventBus()
        handler = Mock()
        subscription = bus.subscribe(ChangeEvent, handler)
        event = ChangeEvent(table="guesty_bookings", kind="insert", record={"id": "R1"})

        asyncio.run(bus.publish(event))
        subscription.unsubscribe()
        asyncio.run(bus.publish(event))

        handler.assert_called_once_with(event)
        assert bus.subscriber_count(ChangeEvent) == 0

    def test_failing_handler_does_not_block_others(self):
        bus = EventBus()
        received = []

        async def async_handler(event):
            received.append(event)

        bus.subscribe(ChangeEvent, Mock(side_effect=RuntimeError("handler bug")))
        bus.subscribe(ChangeEvent, async_handler)

        asyncio.run(bus.publish(ChangeEvent(table="t", kind="update", record={})))

        assert len(received) == 1

    def test_events_are_routed_by_type(self):
        bus = EventBus()
        handler = Mock()
        bus.subscribe(HealthStatusChanged, handler)

        asyncio.run(bus.publish(ChangeEvent(table="t", kind="insert", record={})))

        handler.assert_not_called()

    def test_health_event_kind(self):
        assert HealthStatusChanged("db", True, None).kind == "initialized"
        assert HealthStatusChanged("db", False, True).kind == "failed"
        assert HealthStatusChanged("db", True, False).kind == "recovered"


class TestLogger:
    """Test cases for logger utilities."""

    def test_setup_logger(self):
        logger = setup_logger("test_logger", "DEBUG")

        assert logger is not None

    def test_sync_logger_stats(self):
        sync_logger = SyncLogger(Mock())

        sync_logger.log_listing_synced("L1", 3)
        sync_logger.log_listing_failed("L2", RuntimeError("boom"), "generic")
        sync_logger.log_tasks_created("R1", 2)
        sync_logger.log_retry("list_listings", 1, RuntimeError("boom"), 0.1)

        assert sync_logger.stats['listings_attempted'] == 2
        assert sync_logger.stats['listings_synced'] == 1
        assert sync_logger.stats['listings_failed'] == 1
        assert sync_logger.stats['bookings_upserted'] == 3
        assert sync_logger.stats['tasks_created'] == 2
        assert sync_logger.stats['retries'] == 1

        sync_logger.reset_stats()
        assert sync_logger.stats['listings_attempted'] == 0

    def test_print_summary(self, capsys):
        sync_logger = SyncLogger(Mock())
        sync_logger.log_listing_synced("L1", 1)

        sync_logger.print_summary()

        assert "SYNC SUMMARY" in capsys.readouterr().out
