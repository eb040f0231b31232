"""
Booking sync from Guesty.
"""

from .booking_sync import BookingSyncEngine
from .upsert import BookingUpserter, normalize_booking, unwrap_payload

__all__ = ["BookingSyncEngine", "BookingUpserter", "normalize_booking", "unwrap_payload"]
