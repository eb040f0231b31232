"""
Data models for the Guesty housekeeping sync system.
"""
from dataclasses import dataclass, field
from datetime import datetime, date, timezone
from typing import Optional, Dict, Any, List
from enum import Enum
import uuid


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_date(value: Any) -> Optional[date]:
    """Coerce ISO strings, datetimes and dates into a plain date."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    # Guesty sends both "2025-06-01" and "2025-06-01T15:00:00.000Z"
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        return date.fromisoformat(text[:10])


def parse_datetime(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    text = str(value)
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return datetime.fromisoformat(text)


class BookingStatus(str, Enum):
    """Lifecycle status of a reservation."""
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    CHECKED_IN = "checked_in"
    CHECKED_OUT = "checked_out"
    PENDING = "pending"

    @classmethod
    def normalize(cls, value: Optional[str]) -> "BookingStatus":
        """Map vendor status strings onto the local enum."""
        if not value:
            return cls.CONFIRMED
        key = str(value).strip().lower().replace("-", "_")
        aliases = {
            "canceled": cls.CANCELLED,
            "declined": cls.CANCELLED,
            "checkedin": cls.CHECKED_IN,
            "checkedout": cls.CHECKED_OUT,
            "inquiry": cls.PENDING,
            "reserved": cls.PENDING,
            "pendingownerconfirmation": cls.PENDING,
            "awaitingpayment": cls.PENDING,
        }
        if key in aliases:
            return aliases[key]
        try:
            return cls(key)
        except ValueError:
            return cls.PENDING


class ServiceType(str, Enum):
    """Housekeeping service performed on a scheduled date."""
    FULL = "Full"
    STANDARD = "Standard"
    LINEN_AND_TOWEL_CHANGE = "LinenAndTowelChange"
    CUSTOM = "Custom"


class TaskStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class SyncType(str, Enum):
    POLL = "poll"
    WEBHOOK = "webhook"
    RETRY = "retry"


class SyncStatus(str, Enum):
    SUCCESS = "success"
    ERROR = "error"
    WARNING = "warning"


@dataclass
class Booking:
    """Reservation mirrored from Guesty."""
    external_id: str
    listing_id: str
    check_in: date
    check_out: date
    guest_name: str = "Unknown Guest"
    guest_email: Optional[str] = None
    guest_phone: Optional[str] = None
    status: BookingStatus = BookingStatus.CONFIRMED
    raw_data: Dict[str, Any] = field(default_factory=dict)
    last_synced: Optional[datetime] = None

    def __post_init__(self):
        if isinstance(self.status, str) and not isinstance(self.status, BookingStatus):
            self.status = BookingStatus.normalize(self.status)
        self.check_in = parse_date(self.check_in)
        self.check_out = parse_date(self.check_out)

    @property
    def stay_nights(self) -> int:
        return (self.check_out - self.check_in).days

    def validate(self) -> None:
        """Raise ValueError unless check-out falls after check-in."""
        if self.check_out <= self.check_in:
            raise ValueError(
                f"Booking {self.external_id} check-out {self.check_out} "
                f"is not after check-in {self.check_in}"
            )

    def to_record(self) -> Dict[str, Any]:
        """Convert booking to a row for the bookings table."""
        return {
            'id': self.external_id,
            'listing_id': self.listing_id,
            'guest_name': self.guest_name,
            'guest_email': self.guest_email,
            'guest_phone': self.guest_phone,
            'check_in': self.check_in.isoformat(),
            'check_out': self.check_out.isoformat(),
            'status': self.status.value,
            'raw_data': self.raw_data,
            'last_synced': (self.last_synced or utcnow()).isoformat(),
        }

    @classmethod
    def from_record(cls, row: Dict[str, Any]) -> 'Booking':
        return cls(
            external_id=str(row['id']),
            listing_id=str(row['listing_id']),
            check_in=row['check_in'],
            check_out=row['check_out'],
            guest_name=row.get('guest_name') or "Unknown Guest",
            guest_email=row.get('guest_email'),
            guest_phone=row.get('guest_phone'),
            status=BookingStatus.normalize(row.get('status')),
            raw_data=row.get('raw_data') or {},
            last_synced=parse_datetime(row.get('last_synced')),
        )

    def __str__(self) -> str:
        return (f"Booking(id='{self.external_id}', listing='{self.listing_id}', "
                f"guest='{self.guest_name}', check_in='{self.check_in}', "
                f"check_out='{self.check_out}', status='{self.status.value}')")


@dataclass
class Listing:
    """Rentable unit as represented in Guesty."""
    listing_id: str
    title: str = ""
    active: bool = True
    raw_data: Dict[str, Any] = field(default_factory=dict)

    def to_record(self) -> Dict[str, Any]:
        return {
            'id': self.listing_id,
            'title': self.title,
            'active': self.active,
            'raw_data': self.raw_data,
            'last_synced': utcnow().isoformat(),
        }

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> 'Listing':
        listing_id = payload.get('_id') or payload.get('id')
        active = payload.get('active')
        if active is None:
            active = payload.get('isListed', True)
        return cls(
            listing_id=str(listing_id),
            title=payload.get('title') or payload.get('nickname') or "",
            active=bool(active),
            raw_data=payload,
        )


@dataclass
class CleaningTask:
    """Housekeeping task materialized from a stay's schedule."""
    listing_id: str
    scheduled_date: date
    service_type: ServiceType
    booking_id: Optional[str] = None
    status: TaskStatus = TaskStatus.PENDING
    assignee: Optional[str] = None
    description: str = ""
    task_id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def to_record(self) -> Dict[str, Any]:
        return {
            'id': self.task_id,
            'booking_id': self.booking_id,
            'listing_id': self.listing_id,
            'due_date': self.scheduled_date.isoformat(),
            'task_type': self.service_type.value,
            'status': self.status.value,
            'assignee': self.assignee,
            'description': self.description,
        }

    @classmethod
    def from_record(cls, row: Dict[str, Any]) -> 'CleaningTask':
        return cls(
            task_id=str(row['id']),
            booking_id=row.get('booking_id'),
            listing_id=str(row['listing_id']),
            scheduled_date=parse_date(row['due_date']),
            service_type=ServiceType(row['task_type']),
            status=TaskStatus(row.get('status') or TaskStatus.PENDING.value),
            assignee=row.get('assignee'),
            description=row.get('description') or "",
        )


@dataclass(frozen=True)
class SyncLogEntry:
    """Immutable record of one synchronization attempt."""
    service: str
    sync_type: SyncType
    status: SyncStatus
    start_time: datetime
    end_time: datetime
    message: str = ""
    items_count: int = 0
    error_category: Optional[str] = None
    entry_id: str = field(default_factory=lambda: str(uuid.uuid4()))

    @property
    def duration_seconds(self) -> float:
        return (self.end_time - self.start_time).total_seconds()

    def to_record(self) -> Dict[str, Any]:
        return {
            'id': self.entry_id,
            'service': self.service,
            'sync_type': self.sync_type.value,
            'status': self.status.value,
            'start_time': self.start_time.isoformat(),
            'end_time': self.end_time.isoformat(),
            'message': self.message,
            'items_count': self.items_count,
            'error_category': self.error_category,
        }

    @classmethod
    def from_record(cls, row: Dict[str, Any]) -> 'SyncLogEntry':
        return cls(
            entry_id=str(row['id']),
            service=row['service'],
            sync_type=SyncType(row['sync_type']),
            status=SyncStatus(row['status']),
            start_time=parse_datetime(row['start_time']),
            end_time=parse_datetime(row['end_time']),
            message=row.get('message') or "",
            items_count=int(row.get('items_count') or 0),
            error_category=row.get('error_category'),
        )


@dataclass
class HealthCheckResult:
    """In-memory state of a registered health probe."""
    name: str
    healthy: Optional[bool] = None
    last_checked: Optional[datetime] = None
    consecutive_failures: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'healthy': self.healthy,
            'last_checked': self.last_checked.isoformat() if self.last_checked else None,
            'consecutive_failures': self.consecutive_failures,
        }


@dataclass(frozen=True)
class ApiUsageRecord:
    """One outbound Guesty API call."""
    endpoint: str
    status_code: int
    timestamp: datetime = field(default_factory=utcnow)
    rate_limit: Optional[int] = None
    remaining: Optional[int] = None

    def to_record(self) -> Dict[str, Any]:
        return {
            'endpoint': self.endpoint,
            'status_code': self.status_code,
            'timestamp': self.timestamp.isoformat(),
            'rate_limit': self.rate_limit,
            'remaining': self.remaining,
        }

    @classmethod
    def from_record(cls, row: Dict[str, Any]) -> 'ApiUsageRecord':
        return cls(
            endpoint=row.get('endpoint') or "unknown",
            status_code=int(row.get('status_code') or 0),
            timestamp=parse_datetime(row['timestamp']),
            rate_limit=row.get('rate_limit'),
            remaining=row.get('remaining'),
        )


@dataclass
class FailedListing:
    listing_id: str
    error: str
    category: str = "generic"

    def to_dict(self) -> Dict[str, Any]:
        return {'listing_id': self.listing_id, 'error': self.error, 'category': self.category}


@dataclass
class SyncSummary:
    """Result of a full or single-listing sync, suitable for display or branching."""
    success: bool
    warning: bool = False
    listings_attempted: int = 0
    listings_synced: int = 0
    bookings_synced: int = 0
    failed_listings: List[FailedListing] = field(default_factory=list)
    elapsed_seconds: float = 0.0
    message: str = ""
    retry_after_seconds: Optional[float] = None
    error_category: Optional[str] = None

    @property
    def failed_listing_ids(self) -> List[str]:
        return [f.listing_id for f in self.failed_listings]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'success': self.success,
            'warning': self.warning,
            'listings_attempted': self.listings_attempted,
            'listings_synced': self.listings_synced,
            'bookings_synced': self.bookings_synced,
            'failed_listings': [f.to_dict() for f in self.failed_listings],
            'elapsed_seconds': round(self.elapsed_seconds, 3),
            'message': self.message,
            'retry_after_seconds': self.retry_after_seconds,
            'error_category': self.error_category,
        }


@dataclass
class UpsertResult:
    """Result of writing one booking through the upsert path."""
    success: bool
    booking_id: str
    is_new: bool = False
    error_message: Optional[str] = None
