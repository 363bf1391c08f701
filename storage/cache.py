"""
SQLite response cache for GraphQL queries.
Stores raw JSON response bodies keyed by a hash of the query text and variables.
"""

import sqlite3
import json
import time
import hashlib
import threading
import logging
from typing import Optional, Any, Dict, List

from .retry import post_with_retries

logger = logging.getLogger(__name__)

# noinspection SqlResolve
SQL_CREATE = """
CREATE TABLE IF NOT EXISTS graphql_cache (
    key TEXT PRIMARY KEY,
    operation TEXT,
    response TEXT,
    timestamp REAL
);
"""


def payload_key(payload: Dict[str, Any]) -> str:
    """Stable cache key for a GraphQL payload (query + variables)."""
    canonical = json.dumps(payload, sort_keys=True, separators=(',', ':'))
    return hashlib.sha256(canonical.encode('utf-8')).hexdigest()


class Cache:
    def __init__(self, path: Optional[str] = None, max_entries: Optional[int] = None, ttl_seconds: Optional[float] = None):
        """Create a cache instance.

        :param path: SQLite file path or None for in-memory.
        :param max_entries: optional cap; the oldest entries are pruned when exceeded.
        :param ttl_seconds: optional TTL; expired entries are dropped on access and on write.
        """
        self.path = path or ':memory:'
        self.conn = sqlite3.connect(self.path, check_same_thread=False)
        self._lock = threading.RLock()
        self.max_entries = int(max_entries) if max_entries is not None else None
        self.ttl_seconds = float(ttl_seconds) if ttl_seconds is not None else None
        with self._lock:
            self.conn.executescript(SQL_CREATE)
            self.conn.commit()

    def close(self):
        with self._lock:
            if self.conn is not None:
                self.conn.close()
                self.conn = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    # noinspection SqlResolve
    def stats(self) -> Dict[str, Any]:
        """Return entry count and the oldest/newest timestamps."""
        with self._lock:
            cur = self.conn.execute('SELECT COUNT(1), MIN(timestamp), MAX(timestamp) FROM graphql_cache')
            count, oldest, newest = cur.fetchone()
        return {'path': self.path, 'count': int(count or 0), 'oldest': oldest, 'newest': newest}

    # noinspection SqlResolve
    def list_keys(self, limit: int = 1000) -> List[Dict[str, Any]]:
        """Return cache keys with their operation name and timestamp, newest first."""
        with self._lock:
            rows = self.conn.execute('SELECT key, operation, timestamp FROM graphql_cache ORDER BY timestamp DESC LIMIT ?', (limit,)).fetchall()
        return [{'key': k, 'operation': op, 'timestamp': float(ts or 0)} for k, op, ts in rows]

    # noinspection SqlWithoutWhere
    def clear(self):
        with self._lock:
            self.conn.execute('DELETE FROM graphql_cache')
            self.conn.commit()

    # noinspection SqlResolve
    def delete_key(self, key: str) -> int:
        with self._lock:
            cur = self.conn.execute('DELETE FROM graphql_cache WHERE key = ?', (key,))
            self.conn.commit()
            return cur.rowcount

    # noinspection SqlResolve
    def get(self, key: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            row = self.conn.execute('SELECT response, timestamp FROM graphql_cache WHERE key = ?', (key,)).fetchone()
        if not row:
            return None
        response, timestamp = row
        if self.ttl_seconds is not None and time.time() - float(timestamp) > self.ttl_seconds:
            self.delete_key(key)
            return None
        return {'response': json.loads(response), 'timestamp': timestamp}

    # noinspection SqlResolve
    def _prune(self):
        with self._lock:
            if self.ttl_seconds is not None:
                self.conn.execute('DELETE FROM graphql_cache WHERE timestamp < ?', (time.time() - self.ttl_seconds,))
            if self.max_entries is not None:
                count = self.conn.execute('SELECT COUNT(1) FROM graphql_cache').fetchone()[0] or 0
                if count > self.max_entries:
                    self.conn.execute(
                        'DELETE FROM graphql_cache WHERE key IN (SELECT key FROM graphql_cache ORDER BY timestamp ASC LIMIT ?)',
                        (count - self.max_entries,),
                    )
            self.conn.commit()

    # noinspection SqlResolve
    def set(self, key: str, response: Any, operation: str = ''):
        with self._lock:
            self.conn.execute(
                'REPLACE INTO graphql_cache(key, operation, response, timestamp) VALUES (?, ?, ?, ?)',
                (key, operation, json.dumps(response), time.time()),
            )
            self.conn.commit()
            self._prune()


def cached_post(
    url: str,
    headers: Dict[str, str],
    payload: Dict[str, Any],
    cache: Optional[Cache] = None,
    max_age: Optional[float] = None,
    timeout: Optional[float] = None,
    operation: str = '',
) -> Dict[str, Any]:
    """POST a GraphQL payload, serving and storing successful bodies through the cache.

    Only HTTP 200 responses without GraphQL errors are cached.
    """
    key = payload_key(payload) if cache is not None else None
    if key:
        cached = cache.get(key)
        if cached and (max_age is None or time.time() - float(cached['timestamp']) <= max_age):
            logger.debug("cache hit for %s", operation or key)
            return {'response': cached['response'], 'status': 200}

    result = post_with_retries(url, headers, payload, timeout=timeout)
    body = result.get('response')
    if key and result.get('status') == 200 and isinstance(body, dict) and not body.get('errors'):
        cache.set(key, body, operation)
    return result


__all__ = ["Cache", "cached_post", "payload_key"]
