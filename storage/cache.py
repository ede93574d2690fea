"""
Get-or-compute cache layer and its default SQLite blob store.
Payloads are JSON documents stored as bytes, keyed by deterministic strings
built from the operation name and the ticket-identifying parameters.
"""

import json
import logging
import sqlite3
import threading
import time
from typing import Any, Callable, Dict, List, Optional, TypeVar

from errors import CacheStoreError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# noinspection SqlResolve
SQL_CREATE = """
CREATE TABLE IF NOT EXISTS blob_cache (
    key TEXT PRIMARY KEY,
    payload BLOB NOT NULL,
    timestamp REAL
);
"""


class Cache:
    """SQLite-backed key/value byte store.

    Implements the store protocol used by fetch_or_compute: exists, read, write, remove.
    Entries never expire; remove() is the only way to force a refetch.
    """

    def __init__(self, path: Optional[str] = None):
        """Create a cache instance.

        :param path: SQLite file path or None for in-memory.
        """
        self.path = path or ':memory:'
        self._lock = threading.RLock()
        try:
            self.conn = sqlite3.connect(self.path, check_same_thread=False)
            self._init_db()
        except sqlite3.Error as ex:
            raise CacheStoreError(f"Failed to open cache at {self.path}: {ex}") from ex

    def _init_db(self):
        with self._lock:
            cur = self.conn.cursor()
            cur.executescript(SQL_CREATE)
            self.conn.commit()

    def _cursor(self):
        if self.conn is None:
            raise CacheStoreError(f"Cache at {self.path} is closed")
        return self.conn.cursor()

    def close(self):
        with self._lock:
            if getattr(self, 'conn', None) is not None:
                try:
                    self.conn.close()
                finally:
                    self.conn = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def __del__(self):
        try:
            self.close()
        except sqlite3.Error:
            pass

    # noinspection SqlResolve
    def exists(self, key: str) -> bool:
        try:
            with self._lock:
                cur = self._cursor()
                cur.execute('SELECT 1 FROM blob_cache WHERE key = ?', (key,))
                return cur.fetchone() is not None
        except sqlite3.Error as ex:
            raise CacheStoreError(f"exists({key!r}) failed: {ex}") from ex

    # noinspection SqlResolve
    def read(self, key: str) -> bytes:
        try:
            with self._lock:
                cur = self._cursor()
                cur.execute('SELECT payload FROM blob_cache WHERE key = ?', (key,))
                row = cur.fetchone()
        except sqlite3.Error as ex:
            raise CacheStoreError(f"read({key!r}) failed: {ex}") from ex
        if row is None:
            raise CacheStoreError(f"Cache key not found: {key}")
        payload = row[0]
        return payload.encode('utf-8') if isinstance(payload, str) else bytes(payload)

    # noinspection SqlResolve
    def write(self, key: str, data: bytes):
        try:
            with self._lock:
                cur = self._cursor()
                cur.execute('REPLACE INTO blob_cache(key, payload, timestamp) VALUES (?, ?, ?)', (key, sqlite3.Binary(data), time.time()))
                self.conn.commit()
        except sqlite3.Error as ex:
            raise CacheStoreError(f"write({key!r}) failed: {ex}") from ex

    # noinspection SqlResolve
    def remove(self, key: str) -> int:
        """Delete a specific cache key. Returns number of rows deleted."""
        try:
            with self._lock:
                cur = self._cursor()
                cur.execute('DELETE FROM blob_cache WHERE key = ?', (key,))
                self.conn.commit()
                return cur.rowcount
        except sqlite3.Error as ex:
            raise CacheStoreError(f"remove({key!r}) failed: {ex}") from ex

    # noinspection SqlResolve
    def stats(self) -> Dict[str, Any]:
        """Return basic statistics about the cache: count, oldest timestamp, newest timestamp."""
        with self._lock:
            cur = self._cursor()
            cur.execute('SELECT COUNT(1), MIN(timestamp), MAX(timestamp) FROM blob_cache')
            count, oldest, newest = cur.fetchone()
        return {
            'count': int(count or 0),
            'oldest': float(oldest) if oldest is not None else None,
            'newest': float(newest) if newest is not None else None,
        }

    # noinspection SqlResolve
    def list_keys(self, limit: int = 1000) -> List[Dict[str, Any]]:
        """Return a list of cache keys with their size and timestamp, newest first."""
        with self._lock:
            cur = self._cursor()
            cur.execute('SELECT key, LENGTH(payload), timestamp FROM blob_cache ORDER BY timestamp DESC LIMIT ?', (limit,))
            rows = cur.fetchall()
        return [{'key': k, 'size': int(size or 0), 'timestamp': float(ts or 0)} for k, size, ts in rows]

    # noinspection SqlWithoutWhere
    def clear(self):
        """Clear all entries from the cache."""
        with self._lock:
            cur = self._cursor()
            cur.execute('DELETE FROM blob_cache')
            self.conn.commit()


def _decode(key: str, raw: bytes) -> Any:
    try:
        return json.loads(raw.decode('utf-8'))
    except (UnicodeDecodeError, ValueError) as ex:
        raise CacheStoreError(f"Corrupt cache entry for {key}: {ex}") from ex


def _store_call(op: str, key: str, fn: Callable[[], T]) -> T:
    """Run a store operation, normalizing unexpected store failures to CacheStoreError."""
    try:
        return fn()
    except CacheStoreError:
        raise
    except OSError as ex:
        raise CacheStoreError(f"{op}({key!r}) failed: {ex}") from ex


def fetch_or_compute(store, key: str, compute: Callable[[], T]) -> T:
    """Return the value cached under key, or compute, store and return it.

    A failing compute propagates and writes nothing. Store failures raise CacheStoreError.
    """
    if _store_call('exists', key, lambda: store.exists(key)):
        logger.debug("cache hit: %s", key)
        return _decode(key, _store_call('read', key, lambda: store.read(key)))

    logger.debug("cache miss: %s", key)
    value = compute()
    payload = json.dumps(value).encode('utf-8')
    _store_call('write', key, lambda: store.write(key, payload))
    return value


__all__ = ["Cache", "fetch_or_compute"]
