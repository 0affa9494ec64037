"""Tests for usage tracking and free-tier accounting."""
import logging
import pytest
from datetime import datetime, timedelta, timezone

from finguard.services.usage import UsageTracker, month_bounds
from finguard.storage.database import InMemoryStore


class BrokenStore(InMemoryStore):
    def get(self, key, default=None):
        raise ConnectionError("store offline")

    def set(self, key, value):
        raise ConnectionError("store offline")


@pytest.fixture
def tracker(store, clock):
    return UsageTracker(store, monthly_cap=3, clock=clock)


def test_month_bounds():
    now = datetime(2024, 6, 15, tzinfo=timezone.utc)
    assert month_bounds(None, now) == (
        datetime(2024, 6, 1, tzinfo=timezone.utc),
        datetime(2024, 7, 1, tzinfo=timezone.utc),
    )
    assert month_bounds("2024-12", now)[1] == datetime(2025, 1, 1, tzinfo=timezone.utc)
    assert month_bounds(datetime(2023, 2, 10), now)[0] == datetime(2023, 2, 1, tzinfo=timezone.utc)
    with pytest.raises(ValueError):
        month_bounds("2024", now)
    with pytest.raises(ValueError):
        month_bounds("2024-13", now)


@pytest.mark.asyncio
async def test_monthly_usage_counts_per_endpoint(tracker, clock):
    clock.now = datetime(2024, 5, 31, 23, 59, tzinfo=timezone.utc)
    await tracker.track("user-1", "/transactions/get")

    clock.now = datetime(2024, 6, 15, 12, tzinfo=timezone.utc)
    await tracker.track("user-1", "/transactions/get")
    await tracker.track("user-1", "/transactions/get")
    await tracker.track("user-1", "/accounts/get")
    await tracker.track("user-2", "/transactions/get")

    assert await tracker.monthly_usage("user-1") == {"/transactions/get": 2, "/accounts/get": 1}
    assert await tracker.monthly_usage("user-1", "2024-05") == {"/transactions/get": 1}
    assert await tracker.monthly_usage("user-3") == {}


@pytest.mark.asyncio
async def test_free_tier_limits(tracker):
    status = await tracker.check_free_tier_limits("user-1")
    assert status.transactions_remaining == 3
    assert status.is_within_limits

    for _ in range(2):
        await tracker.track("user-1", "/transactions/get")
    await tracker.track("user-1", "/accounts/get")
    status = await tracker.check_free_tier_limits("user-1")
    assert status.transactions_remaining == 1
    assert status.is_within_limits

    for _ in range(3):
        await tracker.track("user-1", "/transactions/get")
    status = await tracker.check_free_tier_limits("user-1")
    assert status.transactions_remaining == 0
    assert not status.is_within_limits


@pytest.mark.asyncio
async def test_malformed_records_are_skipped(tracker, store):
    store.set("usage:user-1", [
        {"endpoint": "/transactions/get"},
        {"endpoint": "/transactions/get", "timestamp": "garbage"},
        {"endpoint": "/transactions/get", "timestamp": "2024-06-02T10:00:00Z"},
    ])
    assert await tracker.monthly_usage("user-1") == {"/transactions/get": 1}


@pytest.mark.asyncio
async def test_store_failures_are_best_effort(clock, caplog):
    tracker = UsageTracker(BrokenStore(), monthly_cap=3, clock=clock)

    with caplog.at_level(logging.ERROR, logger="finguard.diagnostics"):
        await tracker.track("user-1", "/transactions/get")
    assert any("Failed to record usage" in r.message for r in caplog.records)

    assert await tracker.monthly_usage("user-1") == {}
    status = await tracker.check_free_tier_limits("user-1")
    assert status.transactions_remaining == 0
    assert not status.is_within_limits
