"""
Versioned response cache for the offline layer.

CacheStorage – the set of named stores in one SQLite database, one store per
deployed build (``freeocr-cache-<version>``).
CacheStore – handle on one store; maps a request key to a captured response.

Entries are only written once the whole response body has been read, so a
store never holds a partially downloaded response.
"""

import asyncio
import json
import sqlite3
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple, Union

import httpx

from ..config.constants import CACHE_NAME_PREFIX, DEFAULT_CACHE_PATH
from .manifest import normalize_url

__all__ = [
    "CacheEntry",
    "CacheStorage",
    "CacheStore",
    "cache_name",
    "request_key",
    "url_key",
]

# Recomputed for the stored body on replay
_DROPPED_HEADERS = {"content-encoding", "content-length", "transfer-encoding"}


def cache_name(generation: str) -> str:
    return f"{CACHE_NAME_PREFIX}{generation}"


def url_key(url: Union[str, httpx.URL], method: str = "GET") -> str:
    """Cache key for a URL: upper-cased method plus fragment-free URL."""
    return f"{method.upper()} {normalize_url(url)}"


def request_key(request: httpx.Request) -> str:
    return url_key(request.url, request.method)


@dataclass
class CacheEntry:
    """
    A captured response.

    Attributes:
        key: Request key the response was captured for
        status_code: HTTP status of the captured response
        headers: Response headers, minus transfer/encoding headers
        content: Decoded response body
        stored_at: Capture time (epoch seconds)
    """
    key: str
    status_code: int
    headers: List[Tuple[str, str]]
    content: bytes
    stored_at: float = field(default_factory=time.time)

    @classmethod
    async def capture(cls, request: httpx.Request, response: httpx.Response) -> "CacheEntry":
        """
        Read a network response completely and snapshot it.

        The response is closed afterwards. Read errors propagate, in which case
        nothing is captured.
        """
        try:
            content = await response.aread()
        finally:
            await response.aclose()

        headers = [
            (name, value)
            for name, value in response.headers.multi_items()
            if name.lower() not in _DROPPED_HEADERS
        ]
        return cls(
            key=request_key(request),
            status_code=response.status_code,
            headers=headers,
            content=content,
        )

    def to_response(self) -> httpx.Response:
        """Build a fresh response; each call returns an independent copy."""
        return httpx.Response(self.status_code, headers=self.headers, content=self.content)


class CacheStorage:
    """All cache generations kept in one SQLite database."""

    def __init__(self, path: Union[str, Path] = DEFAULT_CACHE_PATH) -> None:
        self.path = str(path)
        if self.path != ":memory:":
            Path(self.path).parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(self.path, check_same_thread=False)
        self._lock = asyncio.Lock()
        self._init_db()

    # ------------------------------------------------------------------
    def _init_db(self) -> None:
        with self._conn:
            self._conn.execute("""
                CREATE TABLE IF NOT EXISTS caches (
                    name TEXT PRIMARY KEY,
                    created_at REAL NOT NULL
                )
            """)
            self._conn.execute("""
                CREATE TABLE IF NOT EXISTS entries (
                    cache_name TEXT NOT NULL,
                    key TEXT NOT NULL,
                    status_code INTEGER NOT NULL,
                    headers TEXT NOT NULL,
                    content BLOB NOT NULL,
                    stored_at REAL NOT NULL,
                    PRIMARY KEY (cache_name, key)
                )
            """)

    def close(self) -> None:
        self._conn.close()

    # Store management ----------------------------------------------------
    async def open(self, generation: str) -> "CacheStore":
        """
        Open the store for a generation, creating it empty if needed.

        Other generations are left untouched until ``delete_all_except``.
        """
        name = cache_name(generation)
        async with self._lock:
            with self._conn:
                self._conn.execute(
                    "INSERT OR IGNORE INTO caches (name, created_at) VALUES (?, ?)",
                    (name, time.time()),
                )
        return CacheStore(self, name)

    async def keys(self) -> List[str]:
        """Names of every existing store, oldest first."""
        async with self._lock:
            rows = self._conn.execute(
                "SELECT name FROM caches ORDER BY created_at, name"
            ).fetchall()
        return [row[0] for row in rows]

    async def delete(self, name: str) -> bool:
        """Delete a store and all of its entries. Returns False if it did not exist."""
        async with self._lock:
            with self._conn:
                self._conn.execute("DELETE FROM entries WHERE cache_name = ?", (name,))
                cur = self._conn.execute("DELETE FROM caches WHERE name = ?", (name,))
        return cur.rowcount > 0

    async def delete_all_except(self, generation: str) -> List[str]:
        """Delete every store but the one for ``generation``; returns deleted names."""
        keep = cache_name(generation)
        deleted = []
        for name in await self.keys():
            if name != keep and await self.delete(name):
                deleted.append(name)
        return deleted

    # Entry access (used by CacheStore) ----------------------------------
    async def _get(self, name: str, key: str) -> Optional[CacheEntry]:
        async with self._lock:
            row = self._conn.execute(
                "SELECT status_code, headers, content, stored_at FROM entries "
                "WHERE cache_name = ? AND key = ?",
                (name, key),
            ).fetchone()
        if row is None:
            return None
        status_code, headers_json, content, stored_at = row
        return CacheEntry(
            key=key,
            status_code=status_code,
            headers=[tuple(pair) for pair in json.loads(headers_json)],
            content=bytes(content),
            stored_at=stored_at,
        )

    async def _put(self, name: str, entry: CacheEntry) -> None:
        headers_json = json.dumps(entry.headers, separators=(",", ":"))
        async with self._lock:
            with self._conn:
                self._conn.execute(
                    "INSERT OR REPLACE INTO entries "
                    "(cache_name, key, status_code, headers, content, stored_at) "
                    "VALUES (?, ?, ?, ?, ?, ?)",
                    (name, entry.key, entry.status_code, headers_json,
                     sqlite3.Binary(entry.content), entry.stored_at),
                )

    async def _entry_keys(self, name: str) -> List[str]:
        async with self._lock:
            rows = self._conn.execute(
                "SELECT key FROM entries WHERE cache_name = ? ORDER BY key", (name,)
            ).fetchall()
        return [row[0] for row in rows]


class CacheStore:
    """Handle on one generation's store."""

    def __init__(self, storage: CacheStorage, name: str) -> None:
        self._storage = storage
        self.name = name

    async def get(self, key: str) -> Optional[CacheEntry]:
        """Entry for a key, or None on a cache miss."""
        return await self._storage._get(self.name, key)

    async def match(self, request: httpx.Request) -> Optional[CacheEntry]:
        return await self.get(request_key(request))

    async def put(self, entry: CacheEntry) -> None:
        """Insert or overwrite the entry for ``entry.key``."""
        await self._storage._put(self.name, entry)

    async def keys(self) -> List[str]:
        return await self._storage._entry_keys(self.name)
