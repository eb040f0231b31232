"""
API routes and endpoints.
"""

from . import webhooks, sync, tasks, health

__all__ = ["webhooks", "sync", "tasks", "health"]
