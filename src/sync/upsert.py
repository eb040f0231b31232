"""
Booking normalization and the single-record upsert path shared by polling and webhooks.
"""
from typing import Any, Dict, Optional

from config.settings import app_config
from ..storage.base import HousekeepingStore
from ..utils.errors import DataStoreError, MissingFieldsError
from ..utils.logger import get_logger
from ..utils.models import Booking, BookingStatus, UpsertResult, parse_date, utcnow
from ..utils.retry import RetryOptions, run_with_retry


def _first(*values: Any) -> Any:
    for value in values:
        if value not in (None, ""):
            return value
    return None


def _guest_fields(payload: Dict[str, Any]):
    guest = payload.get("guest") or {}
    if isinstance(guest, str):
        return guest, None, None
    if not isinstance(guest, dict):
        guest = {}
    phones = guest.get("phones") or []
    name = _first(
        payload.get("guest_name"),
        payload.get("guestName"),
        guest.get("fullName"),
        guest.get("name"),
        " ".join(p for p in (guest.get("firstName"), guest.get("lastName")) if p) or None,
    )
    email = _first(guest.get("email"), payload.get("guest_email"), payload.get("guestEmail"))
    phone = _first(guest.get("phone"), phones[0] if phones else None, payload.get("guest_phone"))
    return name, email, phone


def unwrap_payload(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Guesty nests the reservation under `booking` or `reservation` depending on the event."""
    if not isinstance(payload, dict):
        return {}
    return payload.get("booking") or payload.get("reservation") or payload


def normalize_booking(payload: Dict[str, Any], listing_id: Optional[str] = None) -> Booking:
    """
    Build a Booking from any of the Guesty reservation shapes.

    Args:
        payload: Raw reservation dict (already unwrapped)
        listing_id: Listing to fall back to when the payload does not name one

    Returns:
        Normalized Booking

    Raises:
        MissingFieldsError: If id, listing id, start date or end date is absent
    """
    listing = payload.get("listing") or {}
    if not isinstance(listing, dict):
        listing = {"_id": listing}

    booking_id = _first(payload.get("id"), payload.get("_id"), payload.get("reservationId"))
    resolved_listing = _first(payload.get("listingId"), listing.get("_id"), listing.get("id"), listing_id)
    start = _first(
        payload.get("startDate"),
        payload.get("checkIn"),
        payload.get("checkInDateLocalized"),
        payload.get("check_in"),
    )
    end = _first(
        payload.get("endDate"),
        payload.get("checkOut"),
        payload.get("checkOutDateLocalized"),
        payload.get("check_out"),
    )

    missing = [
        name for name, value in (
            ("id", booking_id),
            ("listingId", resolved_listing),
            ("startDate", start),
            ("endDate", end),
        ) if value is None
    ]
    if missing:
        raise MissingFieldsError(missing)

    guest_name, guest_email, guest_phone = _guest_fields(payload)
    return Booking(
        external_id=str(booking_id),
        listing_id=str(resolved_listing),
        check_in=parse_date(start),
        check_out=parse_date(end),
        guest_name=guest_name or "Unknown Guest",
        guest_email=guest_email,
        guest_phone=guest_phone,
        status=BookingStatus.normalize(payload.get("status")),
        raw_data=payload,
    )


class BookingUpserter:
    """Validates bookings and writes them to the store, retrying data-store failures."""

    def __init__(self, store: HousekeepingStore, retry_options: Optional[RetryOptions] = None, sleep=None):
        self.store = store
        self.retry_options = retry_options or RetryOptions.from_millis(
            app_config.store_max_retries, app_config.store_retry_delay_ms
        )
        self.logger = get_logger("booking_upserter")
        self._sleep = sleep

    async def upsert(self, booking: Booking) -> UpsertResult:
        """
        Insert or overwrite `booking` keyed by its Guesty id.

        Repeating the call with the same data leaves one row; concurrent writes for
        the same id resolve last-write-wins in the store.

        Raises:
            ValueError: If check-out is not after check-in
            DataStoreError: If the store still fails after retries
        """
        booking.validate()
        booking.last_synced = utcnow()

        def log_retry(attempt: int, error: Exception, delay: float) -> None:
            self.logger.warning(
                "Booking upsert failed, retrying",
                booking_id=booking.external_id,
                attempt=attempt,
                error=str(error),
                next_delay_seconds=delay,
            )

        is_new = await run_with_retry(
            lambda: self.store.upsert_booking(booking),
            self.retry_options,
            should_retry=lambda e: isinstance(e, DataStoreError),
            on_retry=log_retry,
            sleep=self._sleep,
        )
        return UpsertResult(success=True, booking_id=booking.external_id, is_new=is_new)
