"""Static heuristics for flagging suspicious writes."""
import logging
import math
from datetime import datetime
from typing import Any, Callable, List, Mapping, Optional, Tuple

from finguard.services.rate_limiter import RateLimiter
from finguard.services.security_log import SecurityLog
from finguard.utils.privacy import redact_record
from finguard.utils.timestamp import NormalizationFailure, normalize_timestamp, utc_now

logger = logging.getLogger(__name__)

UNUSUAL_CATEGORIES = frozenset({"test", "debug", "admin", "system"})


class ActivityMonitor:
    """Evaluates a fixed, ordered list of heuristics against an incoming write."""

    def __init__(
        self,
        rate_limiter: RateLimiter,
        security_log: SecurityLog,
        suspicious_amount: float = 100_000,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.rate_limiter = rate_limiter
        self.security_log = security_log
        self.suspicious_amount = suspicious_amount
        self._now = clock or utc_now
        self.patterns: List[Tuple[str, Callable[[str, str, Mapping[str, Any]], bool]]] = [
            ("rapid_operations", self._rapid_operations),
            ("large_amount", self._large_amount),
            ("unusual_category", self._unusual_category),
            ("future_date", self._future_date),
        ]

    def _rapid_operations(self, user_id: str, operation: str, data: Mapping[str, Any]) -> bool:
        # Every evaluated write counts toward the caller's per-operation window
        if not self.rate_limiter.can_proceed(operation, user_id):
            return True
        self.rate_limiter.record(operation, user_id)
        return False

    def _large_amount(self, user_id: str, operation: str, data: Mapping[str, Any]) -> bool:
        amount = data.get("amount")
        if not isinstance(amount, (int, float)) or isinstance(amount, bool) or not math.isfinite(amount):
            return False
        return abs(amount) > self.suspicious_amount

    def _unusual_category(self, user_id: str, operation: str, data: Mapping[str, Any]) -> bool:
        category = data.get("category")
        return isinstance(category, str) and category.strip().lower() in UNUSUAL_CATEGORIES

    def _future_date(self, user_id: str, operation: str, data: Mapping[str, Any]) -> bool:
        if data.get("date") is None:
            return False
        when = normalize_timestamp(data["date"])
        if isinstance(when, NormalizationFailure):
            return False
        return when > self._now()

    async def is_suspicious(self, user_id: str, operation: str, data: Mapping[str, Any]) -> bool:
        """
        Check a write against the heuristics, stopping at the first match.

        Args:
            user_id: Acting user
            operation: Operation name used for the rate window (e.g. "transactions")
            data: The record being written

        Returns:
            True if a pattern matched (a suspicious_activity event is emitted)
        """
        for name, check in self.patterns:
            if check(user_id, operation, data):
                logger.warning("Suspicious activity (%s) by %s on %s", name, user_id, operation)
                self.security_log.emit(user_id, "suspicious_activity", {
                    "pattern": name,
                    "operation": operation,
                    "data": redact_record(data),
                })
                return True
        return False
