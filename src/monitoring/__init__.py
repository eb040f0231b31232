"""
Sync logs, API usage metrics and health probes.
"""

from .health import HealthMonitor, HealthProbe
from .sync_log import SyncLogStore

__all__ = ["HealthMonitor", "HealthProbe", "SyncLogStore"]
