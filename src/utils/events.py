"""
Publish/subscribe bus for store changes, task creation, sync logs and health transitions.
"""
import inspect
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Type

from .logger import get_logger
from .models import utcnow


@dataclass(frozen=True)
class ChangeEvent:
    """A row was inserted or updated in the store."""
    table: str
    kind: str  # insert | update | delete
    record: Dict[str, Any]
    occurred_at: datetime = field(default_factory=utcnow)


@dataclass(frozen=True)
class TaskCreated:
    task_id: str
    booking_id: Optional[str]
    listing_id: str
    scheduled_date: str
    service_type: str


@dataclass(frozen=True)
class SyncLogWritten:
    entry_id: str
    service: str
    sync_type: str
    status: str
    message: str


@dataclass(frozen=True)
class HealthStatusChanged:
    name: str
    healthy: bool
    previous: Optional[bool]
    occurred_at: datetime = field(default_factory=utcnow)

    @property
    def kind(self) -> str:
        if self.previous is None:
            return "initialized" if self.healthy else "failed"
        return "recovered" if self.healthy else "failed"


Handler = Callable[[Any], Any]


class Subscription:
    """Handle returned by EventBus.subscribe; call unsubscribe() to detach."""

    def __init__(self, bus: "EventBus", event_type: Type, handler: Handler):
        self._bus = bus
        self.event_type = event_type
        self.handler = handler
        self.active = True

    def unsubscribe(self) -> None:
        if self.active:
            self._bus._remove(self)
            self.active = False


class EventBus:
    """In-process typed event bus."""

    def __init__(self):
        self.logger = get_logger("event_bus")
        self._subscriptions: Dict[Type, List[Subscription]] = {}

    def subscribe(self, event_type: Type, handler: Handler) -> Subscription:
        subscription = Subscription(self, event_type, handler)
        self._subscriptions.setdefault(event_type, []).append(subscription)
        return subscription

    def _remove(self, subscription: Subscription) -> None:
        handlers = self._subscriptions.get(subscription.event_type, [])
        if subscription in handlers:
            handlers.remove(subscription)

    def subscriber_count(self, event_type: Type) -> int:
        return len(self._subscriptions.get(event_type, []))

    async def publish(self, event: Any) -> None:
        """Deliver to every subscriber; a failing handler never blocks the others."""
        for subscription in list(self._subscriptions.get(type(event), [])):
            try:
                result = subscription.handler(event)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                self.logger.error(
                    "Event handler failed",
                    event_type=type(event).__name__,
                    error=str(e),
                )
