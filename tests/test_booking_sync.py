"""
Unit tests for the booking sync engine.
"""
import asyncio
import pytest
from unittest.mock import Mock

from src.monitoring.sync_log import SyncLogStore
from src.sync.booking_sync import BookingSyncEngine
from src.sync.upsert import BookingUpserter
from src.utils.cancellation import CancellationToken
from src.utils.errors import AuthenticationError, ConfigurationError, DataStoreError
from src.utils.models import BookingStatus, SyncStatus, SyncType
from src.utils.retry import RetryOptions

pytestmark = pytest.mark.unit


def reservation(res_id, listing_id, start="2025-06-01", end="2025-06-05", status="confirmed"):
    return {
        "_id": res_id,
        "listingId": listing_id,
        "checkIn": start,
        "checkOut": end,
        "status": status,
        "guest": {"fullName": f"Guest {res_id}", "email": f"{res_id}@example.com"},
    }


class FakeGuesty:
    """Stands in for GuestyClient with per-listing canned reservations or errors."""

    def __init__(self, listings, reservations=None, failures=None, listings_error=None):
        self.listings = listings
        self.reservations = reservations or {}
        self.failures = failures or {}
        self.listings_error = listings_error
        self.reservation_calls = []
        self.invalidate = Mock()

    async def list_listings(self):
        if self.listings_error is not None:
            raise self.listings_error
        return self.listings

    async def list_reservations(self, listing_id, updated_since=None):
        self.reservation_calls.append((listing_id, updated_since))
        if listing_id in self.failures:
            raise self.failures[listing_id]
        return self.reservations.get(listing_id, [])


@pytest.fixture
def listings():
    return [{"_id": f"L{i}", "title": f"Listing {i}", "active": True} for i in range(1, 6)]


def make_engine(client, store, fake_sleep, max_retries=1):
    return BookingSyncEngine(
        client,
        store,
        sync_log=SyncLogStore(store),
        upserter=BookingUpserter(store, retry_options=RetryOptions(max_retries=1, initial_delay=0.01), sleep=fake_sleep),
        retry_options=RetryOptions(max_retries=max_retries, initial_delay=0.01),
        max_concurrency=3,
        sleep=fake_sleep,
    )


class TestFullSync:

    def test_all_listings_succeed(self, store, fake_sleep, listings):
        client = FakeGuesty(listings, {
            "L1": [reservation("R1", "L1")],
            "L2": [reservation("R2", "L2"), reservation("R3", "L2")],
        })
        engine = make_engine(client, store, fake_sleep)

        summary = asyncio.run(engine.sync_all())

        assert summary.success is True
        assert summary.warning is False
        assert summary.listings_attempted == 5
        assert summary.listings_synced == 5
        assert summary.bookings_synced == 3
        assert set(store.bookings) == {"R1", "R2", "R3"}
        assert store.sync_logs[-1].status == SyncStatus.SUCCESS
        assert store.sync_logs[-1].sync_type == SyncType.POLL

    def test_partial_failure_keeps_successful_listings(self, store, fake_sleep, listings):
        client = FakeGuesty(
            listings,
            reservations={
                "L1": [reservation("R1", "L1")],
                "L3": [reservation("R3", "L3")],
                "L5": [reservation("R5", "L5")],
            },
            failures={
                "L2": RuntimeError("Guesty returned 500"),
                "L4": RuntimeError("connection reset"),
            },
        )
        engine = make_engine(client, store, fake_sleep)

        summary = asyncio.run(engine.sync_all())

        assert summary.success is False
        assert summary.warning is True
        assert summary.listings_synced == 3
        assert len(summary.failed_listings) == 2
        assert sorted(summary.failed_listing_ids) == ["L2", "L4"]
        assert set(store.bookings) == {"R1", "R3", "R5"}
        assert summary.retry_after_seconds is not None
        assert store.sync_logs[-1].status == SyncStatus.WARNING

    def test_failed_listings_are_retried_before_giving_up(self, store, fake_sleep, listings):
        client = FakeGuesty(listings[:1], failures={"L1": RuntimeError("timeout")})
        engine = make_engine(client, store, fake_sleep, max_retries=2)

        asyncio.run(engine.sync_all())

        assert len(client.reservation_calls) == 3
        assert fake_sleep.delays == pytest.approx([0.01, 0.02])

    def test_total_failure(self, store, fake_sleep, listings):
        client = FakeGuesty(listings[:2], failures={
            "L1": RuntimeError("boom"),
            "L2": RuntimeError("boom"),
        })
        engine = make_engine(client, store, fake_sleep)

        summary = asyncio.run(engine.sync_all())

        assert summary.success is False
        assert summary.warning is False
        assert summary.listings_synced == 0
        assert store.sync_logs[-1].status == SyncStatus.ERROR

    def test_no_listings_is_a_warning_not_a_failure(self, store, fake_sleep):
        engine = make_engine(FakeGuesty([]), store, fake_sleep)

        summary = asyncio.run(engine.sync_all())

        assert summary.success is True
        assert summary.warning is True
        assert summary.error_category == "empty_response"
        assert "nothing to sync" in summary.message
        assert store.sync_logs[-1].status == SyncStatus.WARNING

    def test_inactive_listings_are_skipped(self, store, fake_sleep):
        client = FakeGuesty([
            {"_id": "L1", "active": True},
            {"_id": "L2", "active": False},
        ])
        engine = make_engine(client, store, fake_sleep)

        summary = asyncio.run(engine.sync_all())

        assert summary.listings_attempted == 1
        assert [c[0] for c in client.reservation_calls] == ["L1"]
        assert set(store.listings) == {"L1", "L2"}

    def test_configuration_error_surfaced_verbatim(self, store, fake_sleep):
        error = ConfigurationError("Guesty credentials not configured: missing environment variable(s) GUESTY_CLIENT_ID")
        engine = make_engine(FakeGuesty([], listings_error=error), store, fake_sleep)

        summary = asyncio.run(engine.sync_all())

        assert summary.success is False
        assert summary.message == str(error)
        assert summary.error_category == "configuration"
        assert summary.retry_after_seconds is None
        assert fake_sleep.delays == []

    def test_authentication_error_invalidates_token(self, store, fake_sleep):
        client = FakeGuesty([], listings_error=AuthenticationError("Unauthorized"))
        engine = make_engine(client, store, fake_sleep)

        summary = asyncio.run(engine.sync_all())

        assert summary.error_category == "authentication"
        client.invalidate.assert_called_once()
        assert fake_sleep.delays == []

    def test_invalid_reservations_are_skipped(self, store, fake_sleep, listings):
        client = FakeGuesty(listings[:1], {"L1": [
            reservation("R1", "L1"),
            {"_id": "R2", "listingId": "L1", "checkIn": "2025-06-01"},
            reservation("R3", "L1", start="2025-06-05", end="2025-06-01"),
        ]})
        engine = make_engine(client, store, fake_sleep)

        summary = asyncio.run(engine.sync_all())

        assert summary.success is True
        assert summary.bookings_synced == 1
        assert set(store.bookings) == {"R1"}

    def test_data_store_failure_fails_listing(self, store, fake_sleep, listings, mocker):
        client = FakeGuesty(listings[:1], {"L1": [reservation("R1", "L1")]})
        mocker.patch.object(store, "upsert_booking", side_effect=DataStoreError("Supabase upsert_booking failed"))
        engine = make_engine(client, store, fake_sleep)

        summary = asyncio.run(engine.sync_all())

        assert summary.success is False
        assert summary.failed_listings[0].category == "data_store"

    def test_cursor_advances_and_is_used(self, store, fake_sleep, listings):
        client = FakeGuesty(listings[:1], {"L1": [reservation("R1", "L1")]})
        engine = make_engine(client, store, fake_sleep)

        async def scenario():
            await engine.sync_all()
            first_cursor = store.cursors["L1"]
            await engine.sync_all()
            return first_cursor

        first_cursor = asyncio.run(scenario())

        assert client.reservation_calls[0] == ("L1", None)
        assert client.reservation_calls[1] == ("L1", first_cursor.isoformat())
        assert store.cursors["L1"] >= first_cursor

    def test_resync_updates_booking_in_place(self, store, fake_sleep, listings):
        client = FakeGuesty(listings[:1], {"L1": [reservation("R1", "L1")]})
        engine = make_engine(client, store, fake_sleep)

        async def scenario():
            await engine.sync_all()
            client.reservations["L1"] = [reservation("R1", "L1", status="canceled")]
            await engine.sync_all()

        asyncio.run(scenario())

        assert len(store.bookings) == 1
        assert store.bookings["R1"].status == BookingStatus.CANCELLED


class TestSingleListingSync:

    def test_retry_single_listing(self, store, fake_sleep):
        client = FakeGuesty([], {"L9": [reservation("R9", "L9")]})
        engine = make_engine(client, store, fake_sleep)

        summary = asyncio.run(engine.sync_listing("L9"))

        assert summary.success is True
        assert summary.listings_synced == 1
        assert "R9" in store.bookings
        assert store.sync_logs[-1].sync_type == SyncType.RETRY

    def test_single_listing_failure(self, store, fake_sleep):
        client = FakeGuesty([], failures={"L9": RuntimeError("boom")})
        engine = make_engine(client, store, fake_sleep)

        summary = asyncio.run(engine.sync_listing("L9"))

        assert summary.success is False
        assert summary.failed_listing_ids == ["L9"]
        assert store.sync_logs[-1].status == SyncStatus.ERROR


class TestCancellation:

    def test_cancelled_sync_attempts_nothing(self, store, fake_sleep, listings):
        client = FakeGuesty(listings, {"L1": [reservation("R1", "L1")]})
        engine = make_engine(client, store, fake_sleep)
        token = CancellationToken()
        token.cancel("shutdown")

        summary = asyncio.run(engine.sync_all(cancel_token=token))

        assert summary.success is False
        assert client.reservation_calls == []
        assert store.bookings == {}

    def test_cancel_mid_run_stops_remaining_listings(self, store, fake_sleep, listings):
        token = CancellationToken()

        class CancellingGuesty(FakeGuesty):
            async def list_reservations(self, listing_id, updated_since=None):
                result = await super().list_reservations(listing_id, updated_since)
                token.cancel("operator stop")
                return result

        client = CancellingGuesty(listings, {"L1": [reservation("R1", "L1")]})
        engine = BookingSyncEngine(
            client, store,
            upserter=BookingUpserter(store, sleep=fake_sleep),
            max_concurrency=1,
            sleep=fake_sleep,
        )

        summary = asyncio.run(engine.sync_all(cancel_token=token))

        assert len(client.reservation_calls) == 1
        assert summary.listings_synced == 0
        assert all(f.category == "cancelled" for f in summary.failed_listings)
