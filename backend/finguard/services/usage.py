"""Per-user provider usage recording and free-tier quota accounting."""
import logging
from collections import Counter
from datetime import date, datetime, timezone
from typing import Callable, Dict, Optional, Tuple, Union

from finguard.models.records import FreeTierStatus, UsageRecord
from finguard.services.provider_client import TRANSACTIONS_GET
from finguard.storage.database import KeyValueStore
from finguard.utils.timestamp import parse_timestamp, utc_now

logger = logging.getLogger(__name__)
diagnostics = logging.getLogger("finguard.diagnostics")

Month = Union[str, date, datetime, None]


def month_bounds(month: Month, now: datetime) -> Tuple[datetime, datetime]:
    """Return ``[start, next_start)`` for a ``YYYY-MM`` string, date, datetime or None (current month)."""
    if month is None:
        year, mon = now.year, now.month
    elif isinstance(month, (date, datetime)):
        year, mon = month.year, month.month
    else:
        parts = str(month).strip().split("-")
        if len(parts) < 2:
            raise ValueError(f"Month must be YYYY-MM, got {month!r}")
        year, mon = int(parts[0]), int(parts[1])
        if not 1 <= mon <= 12:
            raise ValueError(f"Month out of range: {month!r}")

    start = datetime(year, mon, 1, tzinfo=timezone.utc)
    if mon == 12:
        end = datetime(year + 1, 1, 1, tzinfo=timezone.utc)
    else:
        end = datetime(year, mon + 1, 1, tzinfo=timezone.utc)
    return start, end


class UsageTracker:
    """Append-only usage log with monthly aggregation against a fixed cap."""

    def __init__(
        self,
        store: KeyValueStore,
        monthly_cap: int = 2_000,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.store = store
        self.monthly_cap = monthly_cap
        self._now = clock or utc_now

    @staticmethod
    def _key(user_id: str) -> str:
        return f"usage:{user_id}"

    async def track(self, user_id: str, endpoint: str) -> None:
        """Record one call. Failures are logged and swallowed."""
        record = UsageRecord(user_id=user_id, endpoint=endpoint, timestamp=self._now())
        try:
            self.store.append(self._key(user_id), record.model_dump(mode="json"))
        except Exception:
            diagnostics.exception("Failed to record usage for %s on %s", user_id, endpoint)

    def _count(self, user_id: str, raw: list, start: datetime, end: datetime) -> Counter:
        counts: Counter = Counter()
        for item in raw:
            try:
                when = parse_timestamp(item["timestamp"])
            except (KeyError, TypeError, ValueError):
                logger.warning("Skipping malformed usage record for %s: %r", user_id, item)
                continue
            if start <= when < end:
                counts[item.get("endpoint", "unknown")] += 1
        return counts

    async def monthly_usage(self, user_id: str, month: Month = None) -> Dict[str, int]:
        """
        Count calls per endpoint within one calendar month (UTC).

        Args:
            user_id: User identifier
            month: "YYYY-MM", a date/datetime inside the month, or None for the current month

        Returns:
            Mapping of endpoint to call count; empty if the store is unavailable
        """
        start, end = month_bounds(month, self._now())
        try:
            raw = self.store.get(self._key(user_id)) or []
        except Exception:
            diagnostics.exception("Failed to read usage for %s", user_id)
            return {}
        return dict(self._count(user_id, raw, start, end))

    async def check_free_tier_limits(self, user_id: str) -> FreeTierStatus:
        """Month-to-date transaction fetches against the free-tier cap."""
        start, end = month_bounds(None, self._now())
        try:
            raw = self.store.get(self._key(user_id)) or []
        except Exception:
            diagnostics.exception("Failed to read usage for %s", user_id)
            return FreeTierStatus(transactions_remaining=0, is_within_limits=False)

        used = self._count(user_id, raw, start, end)[TRANSACTIONS_GET]
        return FreeTierStatus(
            transactions_remaining=max(0, self.monthly_cap - used),
            is_within_limits=used < self.monthly_cap,
        )
