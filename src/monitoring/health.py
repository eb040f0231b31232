"""
Periodic health probes with transition-only status events.
"""
import asyncio
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, List, Optional

from ..utils.events import EventBus, HealthStatusChanged
from ..utils.logger import get_logger
from ..utils.models import HealthCheckResult, utcnow
from ..utils.retry import RetryOptions, run_with_retry


class ProbeFailed(Exception):
    """Raised inside a tick when a check reports unhealthy without raising."""


@dataclass
class HealthProbe:
    """
    A named check run every `interval` seconds.

    `check` returns True when healthy; returning False or raising counts as a
    failure once `retry_options` are exhausted. A check that does not finish
    within `timeout` seconds counts as a failed attempt.
    """
    name: str
    check: Callable[[], Awaitable[bool]]
    interval: float = 60.0
    timeout: float = 30.0
    retry_options: RetryOptions = field(default_factory=lambda: RetryOptions(max_retries=2, initial_delay=1.0))


class HealthMonitor:
    """Runs each registered probe on its own timer and publishes status transitions."""

    def __init__(self, event_bus: Optional[EventBus] = None, sleep=None):
        self.event_bus = event_bus or EventBus()
        self.logger = get_logger("health_monitor")
        self._sleep = sleep or asyncio.sleep
        self._probes: Dict[str, HealthProbe] = {}
        self._results: Dict[str, HealthCheckResult] = {}
        self._tasks: Dict[str, asyncio.Task] = {}

    def register(self, probe: HealthProbe) -> None:
        if probe.name in self._probes:
            raise ValueError(f"Probe '{probe.name}' already registered")
        self._probes[probe.name] = probe
        self._results[probe.name] = HealthCheckResult(name=probe.name)
        if self.running:
            self._tasks[probe.name] = asyncio.create_task(self._loop(probe))

    @property
    def running(self) -> bool:
        return bool(self._tasks)

    def results(self) -> Dict[str, HealthCheckResult]:
        return dict(self._results)

    @property
    def healthy(self) -> bool:
        """True unless some probe is known to be unhealthy."""
        return all(r.healthy is not False for r in self._results.values())

    async def _execute(self, probe: HealthProbe) -> bool:
        async def attempt():
            if not await asyncio.wait_for(probe.check(), probe.timeout):
                raise ProbeFailed(f"Probe '{probe.name}' reported unhealthy")
            return True

        def log_retry(attempt_no: int, error: Exception, delay: float) -> None:
            self.logger.debug(
                "Health probe attempt failed",
                probe=probe.name,
                attempt=attempt_no,
                error=str(error),
                next_delay_seconds=delay,
            )

        try:
            return await run_with_retry(
                attempt,
                probe.retry_options,
                should_retry=lambda e: True,
                on_retry=log_retry,
                sleep=self._sleep,
            )
        except Exception as e:
            self.logger.warning("Health probe failed", probe=probe.name, error=str(e))
            return False

    async def run_probe(self, name: str) -> HealthCheckResult:
        """Execute one tick of a probe and publish an event if its status changed."""
        probe = self._probes[name]
        healthy = await self._execute(probe)

        result = self._results.get(name)
        if result is None:
            # Monitor was stopped while the check ran
            return HealthCheckResult(name=name, healthy=healthy, last_checked=utcnow())

        previous = result.healthy
        result.healthy = healthy
        result.last_checked = utcnow()
        result.consecutive_failures = 0 if healthy else result.consecutive_failures + 1

        if previous != healthy:
            event = HealthStatusChanged(name=name, healthy=healthy, previous=previous)
            log = self.logger.info if healthy else self.logger.error
            log("Health status changed", probe=name, status=event.kind)
            await self.event_bus.publish(event)
        return result

    async def _loop(self, probe: HealthProbe) -> None:
        while True:
            try:
                await self.run_probe(probe.name)
            except KeyError:
                return
            await self._sleep(probe.interval)

    def start(self) -> None:
        """Start a timer task per probe; must be called from a running event loop."""
        for name, probe in self._probes.items():
            if name not in self._tasks:
                self._tasks[name] = asyncio.create_task(self._loop(probe))
        self.logger.info("Health monitor started", probes=list(self._probes))

    async def stop(self) -> None:
        """Cancel every probe timer and discard all state."""
        tasks: List[asyncio.Task] = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()
        self._probes.clear()
        self._results.clear()
        self.logger.info("Health monitor stopped")
