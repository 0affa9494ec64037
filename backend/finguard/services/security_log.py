"""Best-effort security audit log."""
import asyncio
import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Set

from finguard.models.records import SecurityEvent
from finguard.storage.database import KeyValueStore
from finguard.utils.timestamp import utc_now

logger = logging.getLogger(__name__)
diagnostics = logging.getLogger("finguard.diagnostics")

SECURITY_LOG_KEY = "security_logs"


class SecurityLog:
    """
    Write-once audit entries.

    ``emit`` never raises and never blocks the caller: inside a running event
    loop the write is scheduled as a detached task whose failure is reported
    on the ``finguard.diagnostics`` logger. Outside a loop it is written
    inline under the same error handling.
    """

    def __init__(self, store: KeyValueStore, clock: Optional[Callable[[], datetime]] = None):
        self.store = store
        self._now = clock or utc_now
        self._pending: Set[asyncio.Task] = set()

    def emit(self, user_id: Optional[Any], event_type: str, details: Optional[Dict[str, Any]] = None) -> None:
        try:
            event = SecurityEvent(
                user_id=None if user_id is None else str(user_id),
                event_type=event_type,
                timestamp=self._now(),
                details=details or {},
            )
        except Exception:
            diagnostics.exception("Failed to build security event %s for user %s", event_type, user_id)
            return
        logger.info("Security event %s for user %s", event_type, user_id)

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._write_safely(event)
            return

        task = loop.create_task(self._write(event))
        self._pending.add(task)
        task.add_done_callback(self._finished)

    async def _write(self, event: SecurityEvent) -> None:
        self.store.append(SECURITY_LOG_KEY, event.model_dump(mode="json"))

    def _write_safely(self, event: SecurityEvent) -> None:
        try:
            self.store.append(SECURITY_LOG_KEY, event.model_dump(mode="json"))
        except Exception:
            diagnostics.exception("Failed to write security event %s", event.event_type)

    def _finished(self, task: asyncio.Task) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            diagnostics.error("Failed to write security event: %s", exc, exc_info=exc)

    async def drain(self) -> None:
        """Wait for scheduled writes to finish (tests, shutdown)."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    def events(self, event_type: Optional[str] = None) -> List[SecurityEvent]:
        raw = self.store.get(SECURITY_LOG_KEY) or []
        events = [SecurityEvent(**item) for item in raw]
        if event_type:
            events = [e for e in events if e.event_type == event_type]
        return events
