"""Shared fixtures: deterministic clock, recorded sleeps, in-memory store."""
import pytest
from datetime import datetime, timedelta, timezone

from finguard.adapters.mock import MockProviderAdapter
from finguard.config import Settings
from finguard.gateway import Gateway
from finguard.storage.database import InMemoryStore

FIXED_NOW = datetime(2024, 6, 15, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """Manually advanced clock; callable like ``utc_now``."""

    def __init__(self, start: datetime = FIXED_NOW):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, ms: float) -> None:
        self.now = self.now + timedelta(milliseconds=ms)

    def millis(self) -> float:
        return self.now.timestamp() * 1000


class FakeSleep:
    """Records requested delays and moves the clock forward instead of sleeping."""

    def __init__(self, clock: FakeClock):
        self.clock = clock
        self.delays = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)
        self.clock.advance(seconds * 1000)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fake_sleep(clock):
    return FakeSleep(clock)


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def test_settings():
    return Settings(_env_file=None, database_url="memory://", provider_adapter="mock")


@pytest.fixture
def mock_adapter(clock):
    return MockProviderAdapter(anchor=clock().date(), total_transactions=25)


@pytest.fixture
def gateway(store, mock_adapter, test_settings, clock, fake_sleep):
    return Gateway(store, mock_adapter, settings=test_settings, clock=clock, sleep=fake_sleep)


@pytest.fixture
def now():
    return FIXED_NOW
