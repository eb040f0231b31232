"""
Turns cleaning schedules into persisted housekeeping tasks.
"""
import asyncio
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional

from ..storage.base import HousekeepingStore
from ..utils.events import TaskCreated
from ..utils.logger import get_logger, SyncLogger
from ..utils.models import Booking, BookingStatus, CleaningTask, utcnow
from .cleaning_schedule import generate_cleaning_schedule


@dataclass
class MaterializationResult:
    booking_id: str
    created: List[CleaningTask] = field(default_factory=list)
    skipped: bool = False
    reason: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            'booking_id': self.booking_id,
            'created': len(self.created),
            'skipped': self.skipped,
            'reason': self.reason,
            'tasks': [t.to_record() for t in self.created],
        }


@dataclass
class BatchMaterializationResult:
    processed: int = 0
    tasks_created: int = 0
    skipped: int = 0
    errors: List[Dict[str, str]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'processed': self.processed,
            'tasks_created': self.tasks_created,
            'skipped': self.skipped,
            'errors': self.errors,
        }


@dataclass
class MissingTaskBooking:
    booking_id: str
    listing_id: str
    guest_name: str
    check_in: date
    check_out: date
    stay_nights: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            'booking_id': self.booking_id,
            'listing_id': self.listing_id,
            'guest_name': self.guest_name,
            'check_in': self.check_in.isoformat(),
            'check_out': self.check_out.isoformat(),
            'stay_nights': self.stay_nights,
        }


@dataclass
class MissingTasksReport:
    total_bookings: int = 0
    bookings_with_tasks: int = 0
    missing: List[MissingTaskBooking] = field(default_factory=list)

    @property
    def bookings_missing_tasks(self) -> int:
        return len(self.missing)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'total_bookings': self.total_bookings,
            'bookings_with_tasks': self.bookings_with_tasks,
            'bookings_missing_tasks': self.bookings_missing_tasks,
            'missing': [m.to_dict() for m in self.missing],
        }


class HousekeepingTaskMaterializer:
    """Applies the cleaning policy to bookings and persists the resulting tasks."""

    def __init__(self, store: HousekeepingStore, sync_logger: Optional[SyncLogger] = None):
        self.store = store
        self.logger = get_logger("task_materializer")
        self.sync_logger = sync_logger or SyncLogger(self.logger)
        self._locks: Dict[str, asyncio.Lock] = {}

    def _lock_for(self, booking_id: str) -> asyncio.Lock:
        lock = self._locks.get(booking_id)
        if lock is None:
            lock = self._locks[booking_id] = asyncio.Lock()
        return lock

    @staticmethod
    def build_tasks(booking: Booking) -> List[CleaningTask]:
        schedule = generate_cleaning_schedule(booking.check_in, booking.check_out)
        return [
            CleaningTask(
                booking_id=booking.external_id,
                listing_id=booking.listing_id,
                scheduled_date=day,
                service_type=service_type,
                description=f"{service_type.value} cleaning for {booking.guest_name} "
                            f"({schedule.stay_duration_nights} night stay)",
            )
            for day, service_type in schedule.entries()
        ]

    async def materialize_for_booking(self, booking_id: str) -> MaterializationResult:
        """
        Create the housekeeping tasks for one booking.

        Idempotent: a booking that already has any task is left alone, and
        concurrent calls for the same booking are serialized.

        Raises:
            LookupError: If the booking does not exist
            InvalidDateRangeError: If the booking's dates are inverted
        """
        async with self._lock_for(booking_id):
            booking = await self.store.get_booking(booking_id)
            if booking is None:
                raise LookupError(f"Booking {booking_id} not found")

            if booking.status == BookingStatus.CANCELLED:
                return MaterializationResult(booking_id, skipped=True, reason="booking cancelled")

            existing = await self.store.booking_ids_with_tasks([booking_id])
            if booking_id in existing:
                return MaterializationResult(booking_id, skipped=True, reason="tasks already exist")

            tasks = await self.store.insert_tasks(self.build_tasks(booking))
            for task in tasks:
                await self.store.event_bus.publish(TaskCreated(
                    task_id=task.task_id,
                    booking_id=task.booking_id,
                    listing_id=task.listing_id,
                    scheduled_date=task.scheduled_date.isoformat(),
                    service_type=task.service_type.value,
                ))
            self.sync_logger.log_tasks_created(booking_id, len(tasks))
            return MaterializationResult(booking_id, created=tasks)

    async def _upcoming_confirmed(self, today: Optional[date], listing_id: Optional[str] = None) -> List[Booking]:
        today = today or utcnow().date()
        return await self.store.list_bookings(
            status=BookingStatus.CONFIRMED,
            check_out_gte=today,
            listing_id=listing_id,
        )

    async def materialize_pending(self, listing_id: Optional[str] = None,
                                  today: Optional[date] = None) -> BatchMaterializationResult:
        """Materialize tasks for every upcoming confirmed booking that has none."""
        bookings = await self._upcoming_confirmed(today, listing_id)
        with_tasks = await self.store.booking_ids_with_tasks(b.external_id for b in bookings)

        batch = BatchMaterializationResult()
        for booking in bookings:
            if booking.external_id in with_tasks:
                batch.skipped += 1
                continue
            batch.processed += 1
            try:
                result = await self.materialize_for_booking(booking.external_id)
            except Exception as e:
                self.logger.error("Failed to materialize tasks", booking_id=booking.external_id, error=str(e))
                batch.errors.append({'booking_id': booking.external_id, 'error': str(e)})
                continue
            if result.skipped:
                batch.skipped += 1
            batch.tasks_created += len(result.created)

        self.logger.info("Batch materialization finished", listing_id=listing_id, **batch.to_dict())
        return batch

    async def audit_missing_tasks(self, today: Optional[date] = None) -> MissingTasksReport:
        """Report upcoming confirmed bookings that have no housekeeping task."""
        bookings = await self._upcoming_confirmed(today)
        with_tasks = await self.store.booking_ids_with_tasks(b.external_id for b in bookings)

        report = MissingTasksReport(total_bookings=len(bookings), bookings_with_tasks=len(with_tasks))
        for booking in bookings:
            if booking.external_id in with_tasks:
                continue
            report.missing.append(MissingTaskBooking(
                booking_id=booking.external_id,
                listing_id=booking.listing_id,
                guest_name=booking.guest_name,
                check_in=booking.check_in,
                check_out=booking.check_out,
                stay_nights=booking.stay_nights,
            ))
        return report
