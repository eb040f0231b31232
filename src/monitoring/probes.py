"""
Built-in health probes.
"""
from typing import Optional

from ..guesty.client import GuestyClient
from ..storage.base import HousekeepingStore
from ..utils.retry import RetryOptions
from .health import HealthProbe
from .sync_log import SyncLogStore


def data_store_probe(store: HousekeepingStore, interval: float = 60.0,
                     retry_options: Optional[RetryOptions] = None) -> HealthProbe:
    """Healthy while the store answers a trivial read."""
    return HealthProbe(
        name="data_store",
        check=store.ping,
        interval=interval,
        retry_options=retry_options or RetryOptions(max_retries=2, initial_delay=1.0),
    )


def guesty_auth_probe(client: GuestyClient, interval: float = 300.0,
                      retry_options: Optional[RetryOptions] = None) -> HealthProbe:
    """Healthy while a bearer token can be obtained (cached tokens count)."""
    async def check() -> bool:
        return bool(await client.get_token())

    return HealthProbe(
        name="guesty_auth",
        check=check,
        interval=interval,
        retry_options=retry_options or RetryOptions(max_retries=1, initial_delay=5.0),
    )


def rate_limit_probe(sync_log: SyncLogStore, interval: float = 60.0) -> HealthProbe:
    """Unhealthy while a rate-limited call was seen in the last five minutes."""
    async def check() -> bool:
        return not await sync_log.has_recent_rate_limit()

    return HealthProbe(
        name="guesty_rate_limit",
        check=check,
        interval=interval,
        retry_options=RetryOptions(max_retries=0, initial_delay=0.0),
    )
