"""
Persistence backends.
"""

from .base import HousekeepingStore
from .memory import InMemoryStore

__all__ = ["HousekeepingStore", "InMemoryStore"]
