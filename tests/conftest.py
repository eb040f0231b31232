"""
Shared fixtures for the test suite.
"""
from typing import List

import pytest

from config.settings import GuestyConfig
from src.storage.memory import InMemoryStore


class RecordingSleep:
    """Awaitable sleep that records requested delays and returns immediately."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def fake_sleep():
    return RecordingSleep()


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def guesty_settings():
    return GuestyConfig(
        client_id="client-id",
        client_secret="client-secret",
        api_url="https://guesty.test/v1",
        token_url="https://guesty.test/oauth2/token",
        webhook_secret="shh",
        token_safety_margin_seconds=300,
        page_size=2,
        timeout_seconds=5,
    )
