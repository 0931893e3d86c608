"""
Time-boxed cache for downloaded sheet text.

Entries live in a key-value store as JSON ``{"data": <text>, "timestamp": <ms>}``
under a key derived from the sheet URL. An entry whose age has reached the TTL
(one hour by default) is treated as missing and removed on read.

Two stores are provided:

- ``MemoryKeyValueStore``: a dict, for tests and short-lived processes.
- ``SQLiteKeyValueStore``: a single ``kv_store`` table in a local sqlite file.

Cache failures never reach the caller. ``read_result``/``write_result`` report
them; ``read``/``write`` log and drop them.
"""

from __future__ import annotations

import base64
import json
import logging
import sqlite3
import time
from contextlib import contextmanager
from typing import Callable, Dict, Iterator, List, Optional, Protocol, Tuple, runtime_checkable

from .models import RawDocument
from .result import Err, Ok, Result

logger = logging.getLogger(__name__)

CACHE_TTL_MS = 60 * 60 * 1000
CACHE_KEY_PREFIX = "sheet-cache-"
KEY_LENGTH = 50


def _now_ms() -> int:
    return int(time.time() * 1000)


def cache_key(identifier: str, length: int = KEY_LENGTH) -> str:
    """Derive the storage key for *identifier*.

    The URL is base64 encoded and truncated, so two URLs sharing a long
    common prefix map to the same key.
    """
    encoded = base64.b64encode(identifier.encode("utf-8")).decode("ascii")
    return f"{CACHE_KEY_PREFIX}{encoded[:length]}"


@runtime_checkable
class KeyValueStore(Protocol):
    """Minimal persistence primitive used by :class:`SheetCache`."""

    def get(self, key: str) -> Optional[str]:
        ...

    def set(self, key: str, value: str) -> None:
        ...

    def delete(self, key: str) -> None:
        ...

    def keys(self) -> List[str]:
        ...


class MemoryKeyValueStore:
    """In-process store backed by a dict."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> List[str]:
        return list(self._data)


class SQLiteKeyValueStore:
    """Key-value store kept in a single sqlite table.

    A connection is opened per operation, so the store can be shared with
    the background revalidation thread.
    """

    def __init__(self, db_path: str):
        self.db_path = str(db_path)
        self._init_db()

    def _init_db(self) -> None:
        """Create the ``kv_store`` table if missing."""
        with self.get_connection() as conn:
            conn.execute('''
                CREATE TABLE IF NOT EXISTS kv_store (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at TEXT DEFAULT (datetime('now'))
                )
            ''')

    @contextmanager
    def get_connection(self) -> Iterator[sqlite3.Connection]:
        """Yield a connection that commits on success and rolls back on error."""
        conn = sqlite3.connect(self.db_path)
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def get(self, key: str) -> Optional[str]:
        with self.get_connection() as conn:
            row = conn.execute("SELECT value FROM kv_store WHERE key = ?", (key,)).fetchone()
        return row[0] if row else None

    def set(self, key: str, value: str) -> None:
        with self.get_connection() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO kv_store (key, value, updated_at) VALUES (?, ?, datetime('now'))",
                (key, value),
            )

    def delete(self, key: str) -> None:
        with self.get_connection() as conn:
            conn.execute("DELETE FROM kv_store WHERE key = ?", (key,))

    def keys(self) -> List[str]:
        with self.get_connection() as conn:
            return [row[0] for row in conn.execute("SELECT key FROM kv_store ORDER BY key")]


class SheetCache:
    """Expiring cache of raw sheet text keyed by URL."""

    def __init__(
        self,
        store: KeyValueStore,
        ttl_ms: int = CACHE_TTL_MS,
        clock: Callable[[], int] = _now_ms,
    ):
        self.store = store
        self.ttl_ms = ttl_ms
        self.clock = clock

    def read_result(self, identifier: str) -> Result[Optional[RawDocument]]:
        """Look up *identifier*; ``Ok(None)`` is a plain miss or an expired entry."""
        key = cache_key(identifier)
        try:
            raw = self.store.get(key)
            if not raw:
                return Ok(None)
            entry = json.loads(raw)
            data = entry["data"]
            timestamp = float(entry["timestamp"])
            if not isinstance(data, str):
                return Err(f"cache entry {key} holds {type(data).__name__}, not text")
        except Exception as exc:
            return Err(f"unreadable cache entry {key}: {exc}")

        age = self.clock() - timestamp
        if age < self.ttl_ms:
            return Ok(RawDocument(text=data, source=identifier))

        logger.debug("Cache entry %s expired (age %.0f ms)", key, age)
        try:
            self.store.delete(key)
        except Exception as exc:
            return Err(f"failed to delete expired cache entry {key}: {exc}")
        return Ok(None)

    def read(self, identifier: str) -> Optional[RawDocument]:
        """Return the cached document for *identifier*, or None."""
        result = self.read_result(identifier)
        if not result.ok:
            logger.debug("Treating cache read failure as a miss: %s", result.error)
        return result.unwrap_or(None)

    def write_result(self, identifier: str, text: str) -> Result[None]:
        key = cache_key(identifier)
        try:
            payload = json.dumps({"data": text, "timestamp": self.clock()})
            self.store.set(key, payload)
        except Exception as exc:
            return Err(f"failed to write cache entry {key}: {exc}")
        return Ok(None)

    def write(self, identifier: str, text: str) -> None:
        """Store *text* for *identifier*; failures are logged and dropped."""
        result = self.write_result(identifier, text)
        if not result.ok:
            logger.debug("Dropping cache write: %s", result.error)

    def entries(self) -> Iterator[Tuple[str, Optional[int], int]]:
        """Yield ``(key, age_ms, size)`` for every cache entry in the store.

        ``age_ms`` is None when the entry cannot be decoded.
        """
        now = self.clock()
        for key in self.store.keys():
            if not key.startswith(CACHE_KEY_PREFIX):
                continue
            raw = self.store.get(key) or ""
            try:
                age = int(now - float(json.loads(raw)["timestamp"]))
            except (ValueError, KeyError, TypeError):
                age = None
            yield key, age, len(raw)

    def clear(self) -> int:
        """Remove every cache entry from the store and return how many were removed."""
        removed = 0
        for key in self.store.keys():
            if key.startswith(CACHE_KEY_PREFIX):
                self.store.delete(key)
                removed += 1
        logger.info(f"Cleared {removed} cached sheet(s)")
        return removed


__all__ = [
    "CACHE_TTL_MS",
    "CACHE_KEY_PREFIX",
    "cache_key",
    "KeyValueStore",
    "MemoryKeyValueStore",
    "SQLiteKeyValueStore",
    "SheetCache",
]
