"""Sliding-window rate limiter over an injected key-value store."""
import asyncio
import logging
import time
from typing import Awaitable, Callable, List, Mapping, Optional

from finguard.errors import RateLimitTimeout
from finguard.storage.database import KeyValueStore

logger = logging.getLogger(__name__)

Clock = Callable[[], float]
Sleep = Callable[[float], Awaitable[None]]


def epoch_millis() -> float:
    return time.time() * 1000


class RateLimiter:
    """
    Counts requests per ``(endpoint, resource_id)`` key over a trailing window.

    State lives in the store under ``<namespace>:<endpoint>[:<resource_id>]``
    as a list of epoch-millisecond timestamps. Entries older than the window
    are pruned on every ``can_proceed``, so keys never need resetting.

    ``can_proceed`` and ``record`` are separate read-modify-write steps with
    no lock between them. Two coroutines interleaved between those steps can
    both see room under the ceiling and both proceed, briefly exceeding it.
    That over-admission is bounded by the number of concurrent callers and
    is accepted; the provider's own throttling (retried by the API client)
    covers the remainder.
    """

    def __init__(
        self,
        store: KeyValueStore,
        limits: Optional[Mapping[str, int]] = None,
        default_limit: int = 30,
        window_ms: int = 60_000,
        clock: Optional[Clock] = None,
        sleep: Optional[Sleep] = None,
        namespace: str = "rate_limit",
    ):
        self.store = store
        self.limits = dict(limits or {})
        self.default_limit = default_limit
        self.window_ms = window_ms
        self.namespace = namespace
        self._clock = clock or epoch_millis
        self._sleep = sleep or asyncio.sleep

    def _key(self, endpoint: str, resource_id: Optional[str]) -> str:
        if resource_id:
            return f"{self.namespace}:{endpoint}:{resource_id}"
        return f"{self.namespace}:{endpoint}"

    def limit_for(self, endpoint: str) -> int:
        return self.limits.get(endpoint, self.default_limit)

    def _recent(self, key: str, now: float) -> List[float]:
        stamps = self.store.get(key) or []
        return [t for t in stamps if now - t < self.window_ms]

    def can_proceed(self, endpoint: str, resource_id: Optional[str] = None) -> bool:
        """Prune the key's window and report whether another request fits."""
        key = self._key(endpoint, resource_id)
        recent = self._recent(key, self._clock())
        self.store.set(key, recent)
        return len(recent) < self.limit_for(endpoint)

    def record(self, endpoint: str, resource_id: Optional[str] = None) -> None:
        """Count one request. Call only after ``can_proceed`` returned True."""
        self.store.append(self._key(endpoint, resource_id), self._clock())

    def remaining(self, endpoint: str, resource_id: Optional[str] = None) -> int:
        recent = self._recent(self._key(endpoint, resource_id), self._clock())
        return max(0, self.limit_for(endpoint) - len(recent))

    async def await_slot(
        self,
        endpoint: str,
        resource_id: Optional[str] = None,
        max_wait_ms: float = 30_000,
        poll_interval_ms: float = 1_000,
    ) -> None:
        """
        Wait until ``can_proceed`` is True.

        Args:
            endpoint: Endpoint (or operation) name
            resource_id: Optional resource the window is scoped to (item id)
            max_wait_ms: Overall budget before giving up
            poll_interval_ms: Fixed delay between checks

        Raises:
            RateLimitTimeout: No slot opened within max_wait_ms
        """
        started = self._clock()
        while not self.can_proceed(endpoint, resource_id):
            waited = self._clock() - started
            if waited >= max_wait_ms:
                logger.warning(
                    "Rate limit wait exhausted for %s (resource=%s) after %d ms",
                    endpoint, resource_id, waited,
                )
                raise RateLimitTimeout(endpoint, resource_id, waited)
            await self._sleep(poll_interval_ms / 1000)
