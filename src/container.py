"""
Wiring of stores, the Guesty client and the sync/scheduling components.
"""
from typing import Optional

from config.settings import app_config
from .guesty.client import GuestyClient
from .monitoring.health import HealthMonitor
from .monitoring.probes import data_store_probe, guesty_auth_probe, rate_limit_probe
from .monitoring.sync_log import SyncLogStore
from .scheduling.task_materializer import HousekeepingTaskMaterializer
from .storage.base import HousekeepingStore
from .storage.memory import InMemoryStore
from .supabase_sync.supabase_client import SupabaseStore
from .sync.booking_sync import BookingSyncEngine
from .sync.upsert import BookingUpserter
from .utils.events import EventBus
from .utils.logger import get_logger, SyncLogger
from .webhooks.ingestor import WebhookIngestor


class ServiceContainer:
    """Holds one instance of every component, sharing a single store, event bus and token cache."""

    def __init__(
        self,
        store: HousekeepingStore,
        client: Optional[GuestyClient] = None,
        webhook_secret: Optional[str] = None,
        sleep=None,
    ):
        self.logger = get_logger("service_container")
        self.store = store
        self.event_bus: EventBus = store.event_bus
        self.sync_log = SyncLogStore(store)
        self.client = client or GuestyClient(usage_recorder=self.sync_log.record_usage)
        if self.client.usage_recorder is None:
            self.client.usage_recorder = self.sync_log.record_usage
        self.sync_logger = SyncLogger(get_logger("housekeeping_sync"))
        self.upserter = BookingUpserter(store, sleep=sleep)
        self.sync_engine = BookingSyncEngine(
            self.client,
            store,
            sync_log=self.sync_log,
            upserter=self.upserter,
            sync_logger=self.sync_logger,
            sleep=sleep,
        )
        self.materializer = HousekeepingTaskMaterializer(store, sync_logger=self.sync_logger)
        self.webhook_ingestor = WebhookIngestor(
            self.upserter,
            self.sync_log,
            secret=webhook_secret,
            materializer=self.materializer,
        )
        self.health_monitor = HealthMonitor(self.event_bus)

    @classmethod
    async def create(cls, dry_run: bool = False, **kwargs) -> "ServiceContainer":
        """Build a container backed by Supabase, or by memory when `dry_run` is set."""
        if dry_run:
            store: HousekeepingStore = InMemoryStore()
        else:
            store = SupabaseStore()
            await store.initialize()
        return cls(store, **kwargs)

    def register_default_probes(self, store_interval: float = 60.0, auth_interval: float = 300.0,
                                rate_limit_interval: float = 60.0) -> None:
        self.health_monitor.register(data_store_probe(self.store, interval=store_interval))
        self.health_monitor.register(guesty_auth_probe(self.client, interval=auth_interval))
        self.health_monitor.register(rate_limit_probe(self.sync_log, interval=rate_limit_interval))

    async def close(self) -> None:
        if self.health_monitor.running:
            await self.health_monitor.stop()
        await self.client.close()
        self.logger.info("Services shut down", service=app_config.service_name)
