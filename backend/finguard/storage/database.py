"""Key-value storage backing rate-limit state, usage records and audit logs."""
import copy
import json
import sqlite3
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Optional


class KeyValueStore(ABC):
    """
    Minimal document store: values are JSON-compatible.

    ``append`` is a read-modify-write on a list value. It is not atomic;
    interleaved writers on one key can lose an entry, which the rate limiter
    and the best-effort logs tolerate.
    """

    @abstractmethod
    def get(self, key: str, default: Any = None) -> Any:
        pass

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        pass

    @abstractmethod
    def delete(self, key: str) -> None:
        pass

    def append(self, key: str, item: Any) -> None:
        items = list(self.get(key) or [])
        items.append(item)
        self.set(key, items)


class InMemoryStore(KeyValueStore):
    """Process-local store (tests, ephemeral sessions)."""

    def __init__(self):
        self._data: Dict[str, Any] = {}

    def get(self, key: str, default: Any = None) -> Any:
        if key not in self._data:
            return default
        return copy.deepcopy(self._data[key])

    def set(self, key: str, value: Any) -> None:
        self._data[key] = copy.deepcopy(value)

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self, prefix: str = "") -> list:
        return sorted(k for k in self._data if k.startswith(prefix))


class SQLiteStore(KeyValueStore):
    """Durable store using SQLite."""

    def __init__(self, db_path: str = "finguard.db"):
        self.db_path = db_path
        self._init_db()

    def _init_db(self):
        """Initialize database tables."""
        with self._get_conn() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS kv (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)
            conn.commit()

    @contextmanager
    def _get_conn(self):
        """Get database connection."""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
        finally:
            conn.close()

    def get(self, key: str, default: Any = None) -> Any:
        with self._get_conn() as conn:
            row = conn.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
        if not row:
            return default
        return json.loads(row["value"])

    def set(self, key: str, value: Any) -> None:
        with self._get_conn() as conn:
            conn.execute("""
                INSERT OR REPLACE INTO kv (key, value, updated_at)
                VALUES (?, ?, ?)
            """, (
                key,
                json.dumps(value, default=str),
                datetime.now(timezone.utc).isoformat(),
            ))
            conn.commit()

    def delete(self, key: str) -> None:
        with self._get_conn() as conn:
            conn.execute("DELETE FROM kv WHERE key = ?", (key,))
            conn.commit()


def get_store(database_url: Optional[str] = None) -> KeyValueStore:
    """Build a store from a URL: ``memory://`` or ``sqlite:///path``."""
    url = database_url or "memory://"
    if url.startswith("memory://"):
        return InMemoryStore()
    if url.startswith("sqlite:///"):
        return SQLiteStore(url[len("sqlite:///"):] or "finguard.db")
    raise ValueError(f"Unsupported database URL: {url}")
