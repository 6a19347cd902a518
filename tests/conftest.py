"""Pytest fixtures for adplay-monitor tests."""

import pytest

from adplay_monitor.cache import EphemeralCache
from adplay_monitor.config import Settings
from adplay_monitor.service import StatsService
from tests.fixtures.moto import aws_credentials, mock_store  # noqa: F401
from tests.fixtures.stores import NOW, InMemoryStore


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def settings() -> Settings:
    """Settings isolated from the environment and any .env file."""
    return Settings(
        _env_file=None,
        plays_table="plays",
        labels_table="labels",
        media_bucket="media",
        device_cache_ttl=30,
        aggregate_cache_ttl=60,
        max_pages=50,
    )


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def service(store, settings, clock) -> StatsService:
    """StatsService over the in-memory store with a fixed wall clock."""
    return StatsService(store, settings, cache=EphemeralCache(clock=clock), now_fn=lambda: NOW)
