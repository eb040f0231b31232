"""
Unit tests for housekeeping task materialization and the missing-task audit.
"""
import asyncio
import pytest
from datetime import date

from src.scheduling.task_materializer import HousekeepingTaskMaterializer
from src.utils.events import TaskCreated
from src.utils.models import Booking, BookingStatus, ServiceType

pytestmark = pytest.mark.unit


TODAY = date(2025, 6, 1)


def _booking(booking_id, check_in, check_out, status=BookingStatus.CONFIRMED, listing_id="L1"):
    return Booking(
        external_id=booking_id,
        listing_id=listing_id,
        check_in=check_in,
        check_out=check_out,
        guest_name=f"Guest {booking_id}",
        status=status,
    )


@pytest.fixture
def materializer(store):
    return HousekeepingTaskMaterializer(store)


def _seed(store, *bookings):
    async def seed():
        for booking in bookings:
            await store.upsert_booking(booking)

    asyncio.run(seed())


def _task_keys(tasks):
    return sorted((t.booking_id, t.scheduled_date, t.service_type) for t in tasks)


class TestMaterializeForBooking:

    def test_creates_one_task_per_scheduled_visit(self, store, materializer):
        _seed(store, _booking("B1", date(2025, 6, 1), date(2025, 6, 8)))

        result = asyncio.run(materializer.materialize_for_booking("B1"))

        assert len(result.created) == 3
        assert _task_keys(store.tasks.values()) == [
            ("B1", date(2025, 6, 1), ServiceType.FULL),
            ("B1", date(2025, 6, 3), ServiceType.STANDARD),
            ("B1", date(2025, 6, 5), ServiceType.STANDARD),
        ]
        assert all(t.listing_id == "L1" for t in store.tasks.values())

    def test_idempotent(self, store, materializer):
        _seed(store, _booking("B1", date(2025, 6, 1), date(2025, 6, 11)))

        async def twice():
            first = await materializer.materialize_for_booking("B1")
            after_first = _task_keys(store.tasks.values())
            second = await materializer.materialize_for_booking("B1")
            return first, after_first, second

        first, after_first, second = asyncio.run(twice())

        assert second.skipped is True
        assert second.created == []
        assert _task_keys(store.tasks.values()) == after_first
        assert len(store.tasks) == len(first.created)

    def test_concurrent_calls_do_not_duplicate(self, store, materializer):
        _seed(store, _booking("B1", date(2025, 6, 1), date(2025, 6, 6)))

        async def race():
            return await asyncio.gather(*(materializer.materialize_for_booking("B1") for _ in range(5)))

        results = asyncio.run(race())

        assert len(store.tasks) == 2
        assert sum(1 for r in results if not r.skipped) == 1

    def test_cancelled_booking_is_skipped(self, store, materializer):
        _seed(store, _booking("B1", date(2025, 6, 1), date(2025, 6, 6), status=BookingStatus.CANCELLED))

        result = asyncio.run(materializer.materialize_for_booking("B1"))

        assert result.skipped is True
        assert store.tasks == {}

    def test_unknown_booking(self, materializer):
        with pytest.raises(LookupError):
            asyncio.run(materializer.materialize_for_booking("missing"))

    def test_publishes_task_created(self, store, materializer):
        _seed(store, _booking("B1", date(2025, 6, 1), date(2025, 6, 3)))
        events = []
        store.event_bus.subscribe(TaskCreated, events.append)

        asyncio.run(materializer.materialize_for_booking("B1"))

        assert len(events) == 1
        assert events[0].booking_id == "B1"
        assert events[0].service_type == "Full"


class TestBatchAndAudit:

    @pytest.fixture
    def seeded(self, store):
        _seed(
            store,
            _booking("UPCOMING", date(2025, 6, 10), date(2025, 6, 15)),
            _booking("IN_HOUSE", date(2025, 5, 28), date(2025, 6, 2)),
            _booking("PAST", date(2025, 5, 1), date(2025, 5, 5)),
            _booking("CANCELLED", date(2025, 6, 10), date(2025, 6, 12), status=BookingStatus.CANCELLED),
            _booking("OTHER_LISTING", date(2025, 6, 20), date(2025, 6, 22), listing_id="L2"),
        )
        return store

    def test_audit_reports_missing(self, seeded, materializer):
        report = asyncio.run(materializer.audit_missing_tasks(today=TODAY))

        assert report.total_bookings == 3
        assert report.bookings_with_tasks == 0
        assert sorted(m.booking_id for m in report.missing) == ["IN_HOUSE", "OTHER_LISTING", "UPCOMING"]
        upcoming = next(m for m in report.missing if m.booking_id == "UPCOMING")
        assert upcoming.stay_nights == 5
        assert upcoming.guest_name == "Guest UPCOMING"

    def test_audit_after_materializing_one(self, seeded, materializer):
        async def scenario():
            await materializer.materialize_for_booking("UPCOMING")
            return await materializer.audit_missing_tasks(today=TODAY)

        report = asyncio.run(scenario())

        assert report.bookings_with_tasks == 1
        assert report.bookings_missing_tasks == 2
        assert report.to_dict()['bookings_missing_tasks'] == 2

    def test_materialize_pending_for_listing(self, seeded, materializer):
        result = asyncio.run(materializer.materialize_pending(listing_id="L1", today=TODAY))

        assert result.processed == 2
        assert result.errors == []
        assert {t.booking_id for t in seeded.tasks.values()} == {"UPCOMING", "IN_HOUSE"}

    def test_materialize_pending_skips_existing(self, seeded, materializer):
        async def scenario():
            await materializer.materialize_pending(today=TODAY)
            return await materializer.materialize_pending(today=TODAY)

        second = asyncio.run(scenario())

        assert second.processed == 0
        assert second.skipped == 3
        assert second.tasks_created == 0
