"""
Inbound webhook handling.
"""

from .ingestor import WebhookIngestor, WebhookOutcome

__all__ = ["WebhookIngestor", "WebhookOutcome"]
