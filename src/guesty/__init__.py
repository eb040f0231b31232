"""
Guesty open API client.
"""

from .client import GuestyClient

__all__ = ["GuestyClient"]
