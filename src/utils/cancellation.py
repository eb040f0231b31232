"""
Cooperative cancellation for long-running syncs and retry loops.
"""
import asyncio
from typing import Optional

from .errors import SyncCancelledError


class CancellationToken:
    """Flag shared between a caller and the work it started."""

    def __init__(self):
        self._event = asyncio.Event()
        self.reason: Optional[str] = None

    def cancel(self, reason: str = "Cancelled by caller") -> None:
        self.reason = reason
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise SyncCancelledError(self.reason or "Cancelled by caller")

    async def sleep(self, delay: float) -> None:
        """Wait for `delay` seconds, waking early and raising if cancelled."""
        self.raise_if_cancelled()
        try:
            await asyncio.wait_for(self._event.wait(), timeout=delay)
        except asyncio.TimeoutError:
            return
        self.raise_if_cancelled()
